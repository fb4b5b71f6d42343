"""Exclusive, verifiable lock over a store root.

The lock file holds an encrypted sentinel. Holding an OS-level exclusive lock
on it keeps a second process from writing to the same store, and decrypting
it before destructive operations proves the file was not swapped or corrupted
while the lock was held.
"""

from __future__ import annotations

import logging
import os
import tempfile
from typing import BinaryIO, Optional

from .exceptions import PassBoxError, StoreError
from .locator import LOCK_FILENAME, StoreLocator
from ..security.gateway import EncryptionGateway
from ..vcs.gateway import VersionControlGateway


logger = logging.getLogger(__name__)

# plaintext stored in the encrypted lock file
SENTINEL = LOCK_FILENAME


def _lock_file(handle: BinaryIO) -> None:
    if os.name == "nt":
        import msvcrt

        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)  # type: ignore[attr-defined]
        return
    import fcntl

    fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)


def _unlock_file(handle: BinaryIO) -> None:
    if os.name == "nt":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)  # type: ignore[attr-defined]
        return
    import fcntl

    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class LockManager:
    """Acquire, release and verify the store lock for one engine instance."""

    def __init__(self, locator: StoreLocator, encryption: EncryptionGateway, vcs: VersionControlGateway):
        self.locator = locator
        self.encryption = encryption
        self.vcs = vcs
        self._handle: Optional[BinaryIO] = None

    @property
    def is_held(self) -> bool:
        return self._handle is not None

    def _create_lock_file(self) -> bool:
        path = self.locator.lock_path
        try:
            self.encryption.encrypt(path, SENTINEL, self.locator.get_store_id())
        except PassBoxError as e:
            logger.error("Unable to encrypt lock file: %s", e)
            return False

        try:
            self.vcs.ignore(path)
        except PassBoxError as e:
            logger.error("Unable to git ignore lock file: %s", e)
            return False
        return True

    def acquire(self) -> bool:
        """Take the lock; False when already held here or held by someone else."""
        if self._handle is not None:
            return False

        path = self.locator.lock_path
        if not path.exists() and not self._create_lock_file():
            return False

        try:
            handle = open(path, "rb")
        except OSError as e:
            logger.error("Unable to open lock file: %s", e)
            return False

        try:
            _lock_file(handle)
        except OSError as e:
            handle.close()
            logger.error("Unable to acquire lock: %s", e)
            return False

        self._handle = handle
        logger.debug("Acquired store lock %s", path)
        return True

    def release(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            _unlock_file(handle)
        except OSError as e:
            logger.warning("Unable to unlock %s: %s", self.locator.lock_path, e)
        finally:
            handle.close()

    def verify(self) -> bool:
        """
        Check the held lock still decrypts to the sentinel.

        Fails closed: no handle, a missing or replaced file, or any decrypt
        error all return False.
        """
        if self._handle is None:
            return False

        path = self.locator.lock_path
        try:
            if not os.path.samestat(os.fstat(self._handle.fileno()), os.stat(path)):
                logger.warning("Lock file %s was replaced while held", path)
                return False
            self._handle.seek(0)
            data = self._handle.read()
        except OSError as e:
            logger.warning("Unable to read lock file: %s", e)
            return False

        # decrypt exactly the bytes read through the held handle
        fd, tmp_name = tempfile.mkstemp(suffix=".gpg")
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(data)
            content = self.encryption.decrypt(tmp_name)
        except PassBoxError as e:
            logger.warning("Lock verification failed: %s", e)
            return False
        finally:
            os.unlink(tmp_name)

        return content == SENTINEL

    def __enter__(self) -> "LockManager":
        if not self.acquire():
            raise StoreError(f"Unable to acquire the store lock {self.locator.lock_path}")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
