"""Version control gateway interface.

Every successful store mutation is recorded as one commit through this
interface. Remote operations (clone, pull, push, fetch) are only used by store
initialization and synchronization.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Tuple


class VersionControlGateway(ABC):
    """History and remote synchronization for a store root."""

    @abstractmethod
    def clone(self, url: str) -> bool:
        """Clone ``url`` into the store root; False when the clone failed."""

    @abstractmethod
    def init(self) -> None:
        """Create an empty repository in the store root."""

    @abstractmethod
    def delete_repository(self) -> None:
        """Remove the store root and its history."""

    @abstractmethod
    def commit(self, message: str) -> None:
        """Stage every change under the root and commit it; raises CommitFailedError."""

    @abstractmethod
    def ignore(self, path: str | Path) -> None:
        """Add ``path`` to the ignore list and commit the change."""

    @abstractmethod
    def pull(self) -> None:
        pass

    @abstractmethod
    def push(self) -> None:
        pass

    @abstractmethod
    def fetch(self) -> Tuple[int, int]:
        """Fetch the remote and return (ahead_by, behind_by); advisory only."""
