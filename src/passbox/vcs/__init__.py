"""Version control gateways for PassBox."""

from .gateway import VersionControlGateway
from .git import GitBackend

__all__ = [
    "VersionControlGateway",
    "GitBackend",
]
