"""Encryption gateway interface.

The store engine never encrypts anything itself. Every at-rest operation goes
through an object implementing this interface, which keeps the engine testable
with in-process doubles and lets the back end (gpg, local keys) be swapped.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

from ..core.exceptions import DecryptFailedError


logger = logging.getLogger(__name__)


class EncryptionGateway(ABC):
    """Authenticated encrypt/decrypt of single files and batches."""

    @abstractmethod
    def encrypt(self, path: str | Path, plaintext: str, recipient: str) -> None:
        """Encrypt ``plaintext`` for ``recipient`` into ``path``.

        Raises EncryptFailedError (or KeyNotFoundError) on failure.
        """

    @abstractmethod
    def decrypt(self, path: str | Path) -> str:
        """Return the plaintext stored in ``path``; raises DecryptFailedError."""

    def decrypt_many(self, paths: Sequence[str | Path]) -> List[Optional[str]]:
        """
        Decrypt every path, positionally aligned with the input.

        A path that fails to decrypt yields None instead of aborting the batch.
        Implementations may run the decrypts concurrently.
        """
        results: List[Optional[str]] = []
        for path in paths:
            results.append(self._decrypt_or_none(path))
        return results

    def _decrypt_or_none(self, path: str | Path) -> Optional[str]:
        try:
            return self.decrypt(path)
        except DecryptFailedError as e:
            logger.warning("Unable to decrypt %s: %s", path, e)
            return None

    @abstractmethod
    def verify_key_valid(self, recipient: str) -> bool:
        """
        Check that ``recipient`` names a usable key.

        Raises KeyNotFoundError when the key is unknown and KeyInvalidError
        when it is expired or cannot encrypt.
        """

    def is_available(self) -> bool:
        return True
