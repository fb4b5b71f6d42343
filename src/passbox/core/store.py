"""
PasswordStore: entry lifecycle operations over the store layout.

Each mutating operation writes the files of one entry (secret + metadata
sidecar) and records the change as a single commit. A failed secret write
during add() is rolled back; a failed second file during rename() or a failed
commit after a successful write is reported, not reverted.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Union

from .exceptions import (
    EmptySecretError,
    EntryAlreadyExistsError,
    EntryNotFoundError,
    IdentityNotFoundError,
    KeyInvalidError,
    LockVerificationFailedError,
    PassBoxError,
    RemoteCloneFailedError,
    StoreAlreadyInitializedError,
    StoreError,
    StoreFolderAlreadyExistsError,
)
from .generator import generate_password
from .lock import LockManager
from .locator import LOCK_FILENAME, StoreLocator
from .metadata import MetadataManager
from .models import (
    CREATED_KEY,
    MODIFIED_KEY,
    MetadataCollection,
    Password,
    StoreEntry,
    SyncStatus,
)
from .search import SearchEngine
from .settings import Settings
from .tree import DirectoryLister, EntryTreeBuilder, LocalDirectoryLister
from ..security.gateway import EncryptionGateway
from ..vcs.gateway import VersionControlGateway


logger = logging.getLogger(__name__)

RESERVED_KEYS = (CREATED_KEY, MODIFIED_KEY)

SecretInput = Union[Password, str]


def _secret_value(password: SecretInput) -> str:
    value = password.value if isinstance(password, Password) else password
    if not value:
        raise ValueError("Password must not be empty")
    return value


class PasswordStore:
    """High-level entry operations over the locator, lock, metadata and gateways."""

    def __init__(
        self,
        locator: StoreLocator,
        encryption: EncryptionGateway,
        vcs: VersionControlGateway,
        settings: Optional[Settings] = None,
        lister: Optional[DirectoryLister] = None,
        clock: Optional[Callable[[], datetime]] = None,
        lock: Optional[LockManager] = None,
    ):
        self.locator = locator
        self.encryption = encryption
        self.vcs = vcs
        self.settings = settings or Settings()
        self.lister = lister or LocalDirectoryLister(locator.root)
        self.metadata = MetadataManager(locator, encryption, clock=clock)
        self.lock = lock or LockManager(locator, encryption, vcs)
        self.tree_builder = EntryTreeBuilder(self.lister)
        self.search_engine = SearchEngine(self.lister, encryption, self.metadata)

    # ------------------------------------------------------------------
    # Lock
    # ------------------------------------------------------------------

    def acquire_lock(self) -> bool:
        return self.lock.acquire()

    def release_lock(self) -> None:
        self.lock.release()

    def _require_verified_lock(self) -> None:
        if not self.lock.verify():
            raise LockVerificationFailedError()

    def __enter__(self) -> "PasswordStore":
        self.lock.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.lock.release()

    # ------------------------------------------------------------------
    # Store lifecycle
    # ------------------------------------------------------------------

    def is_initialized(self) -> bool:
        return self.locator.is_initialized()

    def initialize(self, gpg_id: str, git_url: str = "") -> None:
        """
        Create the store for ``gpg_id``, cloning ``git_url`` when given.

        Any failure after the repository exists deletes it again.
        """
        if self.locator.is_initialized():
            raise StoreAlreadyInitializedError(f"Store in {self.locator.root} is already initialized")

        gpg_id = (gpg_id or "").strip()
        if not gpg_id:
            raise IdentityNotFoundError("Recipient identity must not be empty")

        if git_url:
            if not self.vcs.clone(git_url):
                raise RemoteCloneFailedError(f"Unable to clone '{git_url}'")
        else:
            if any(self.locator.root.iterdir()):
                raise StoreFolderAlreadyExistsError(f"Store folder {self.locator.root} is not empty")
            self.vcs.init()

        try:
            self._write_identity(gpg_id)
            self.vcs.ignore(LOCK_FILENAME)
        except PassBoxError:
            logger.error("Store initialization failed, deleting %s", self.locator.root)
            self.vcs.delete_repository()
            raise
        logger.info("Initialized store in %s", self.locator.root)

    def _write_identity(self, gpg_id: str) -> None:
        path = self.locator.gpg_id_path
        if path.exists():
            # a cloned store may already carry an identity; only the same one is accepted
            existing = path.read_text(encoding="utf-8").strip()
            if existing and existing != gpg_id:
                raise StoreFolderAlreadyExistsError(
                    f"Cloned store is bound to another identity ('{existing}')"
                )

        if not self.encryption.verify_key_valid(gpg_id):
            raise KeyInvalidError(f"Key '{gpg_id}' is not valid")

        self.locator.write_store_id(gpg_id)
        self.vcs.commit("Add '.gpg-id' file")

    def destroy(self) -> None:
        """Delete the whole store; requires a verified lock."""
        self._require_verified_lock()
        self.lock.release()
        self.vcs.delete_repository()
        logger.info("Destroyed store in %s", self.locator.root)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists(self, name: str, metadata: bool = False) -> bool:
        if metadata:
            return self.metadata.exists(name)
        return self.locator.entry_path(name).exists()

    def list_entries(self) -> List[StoreEntry]:
        return self.tree_builder.build()

    def search(self, text: str) -> List[StoreEntry]:
        return self.search_engine.search(text)

    def get_password(self, name: str, with_metadata: bool = True) -> Password:
        """
        Decrypt the secret of ``name``.

        The returned Password should be cleared by the caller once shown,
        e.g. ``with store.get_password(name) as password: ...``.
        """
        if not self.exists(name):
            raise EntryNotFoundError(f"Entry '{name}' not found")

        password = Password(self.encryption.decrypt(self.locator.entry_path(name)), name)
        if password.is_empty():
            raise EmptySecretError(f"Entry '{name}' decrypted to an empty value")

        if with_metadata:
            password.metadata = self.metadata.retrieve(name)
        return password

    def get_metadata(self, name: str) -> MetadataCollection:
        return self.metadata.retrieve(name)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, name: str, password: SecretInput) -> None:
        """Create entry ``name``; both files are removed again if the secret cannot be written."""
        if self.exists(name):
            raise EntryAlreadyExistsError(f"Entry '{name}' already exists")

        secret = _secret_value(password)
        recipient = self.locator.get_store_id()
        entry_path = self.locator.entry_path(name)
        metadata_path = self.locator.metadata_path(name)
        created_dirs = _make_parents(entry_path)

        try:
            self.metadata.create(name)
        except PassBoxError:
            _discard(metadata_path)
            _remove_empty(created_dirs)
            raise

        try:
            self.encryption.encrypt(entry_path, secret, recipient)
        except PassBoxError:
            logger.error("Unable to write secret of %s, rolling back", name)
            _discard(entry_path, metadata_path)
            _remove_empty(created_dirs)
            raise

        self._commit(f"Insert password '{name}'")

    def edit_password(self, name: str, password: SecretInput) -> None:
        """Replace the secret of ``name``; the modified stamp is written first."""
        if not self.exists(name):
            raise EntryNotFoundError(f"Entry '{name}' not found")

        secret = _secret_value(password)
        recipient = self.locator.get_store_id()

        # readers must never see new content with a stale modified stamp
        self.metadata.touch(name)
        self.encryption.encrypt(self.locator.entry_path(name), secret, recipient)

        self._commit(f"Password '{name}' updated")

    def edit_metadata(self, name: str, collection: MetadataCollection) -> MetadataCollection:
        """
        Replace the user metadata of ``name``.

        Internal stamps always come from the stored sidecar, so ``created``
        cannot be edited; ``modified`` is refreshed.
        """
        if not self.exists(name, metadata=True):
            raise EntryNotFoundError(f"Metadata of entry '{name}' not found")

        stored = self.metadata.retrieve(name)
        merged = MetadataCollection([m for m in stored.internal()], name)
        for item in collection.normal():
            if item.key in RESERVED_KEYS:
                logger.warning("Ignoring user metadata using reserved key '%s' on %s", item.key, name)
                continue
            merged.append(item)

        self.metadata.touch(name, merged)
        self._commit(f"Password metadata '{name}' updated")
        return merged

    def rename(self, name: str, new_name: str, duplicate: bool = False) -> None:
        """
        Move (or copy when ``duplicate``) both files of ``name`` to ``new_name``.

        If the sidecar transfer fails after the secret moved, the store is
        left partially applied and StoreError is raised.
        """
        if not self.exists(name):
            raise EntryNotFoundError(f"Entry '{name}' not found")
        if self.exists(new_name):
            raise EntryAlreadyExistsError(f"Entry '{new_name}' already exists")

        verb = "duplicate" if duplicate else "rename"
        transfer = shutil.copy2 if duplicate else shutil.move

        source = self.locator.entry_path(name)
        source_meta = self.locator.metadata_path(name)
        target = self.locator.entry_path(new_name)
        target_meta = self.locator.metadata_path(new_name)
        created_dirs = _make_parents(target)

        try:
            transfer(str(source), str(target))
        except OSError as e:
            _remove_empty(created_dirs)
            raise StoreError(f"Unable to {verb} '{name}' to '{new_name}': {e}") from e

        if source_meta.exists():
            try:
                transfer(str(source_meta), str(target_meta))
            except OSError as e:
                logger.error("Metadata of %s not transferred, store is partially updated", name)
                raise StoreError(
                    f"Secret of '{name}' was {verb}d but its metadata was not: {e}"
                ) from e

        action = "Duplicate" if duplicate else "Rename"
        self._commit(f"{action} password '{name}' to '{new_name}'")

    def remove(self, name: str) -> None:
        """Delete both files of ``name``; requires a verified lock."""
        if not self.exists(name):
            raise EntryNotFoundError(f"Entry '{name}' not found")

        self._require_verified_lock()

        try:
            self.locator.entry_path(name).unlink()
            self.locator.metadata_path(name).unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"Unable to remove '{name}': {e}") from e

        self._commit(f"Remove password '{name}'")

    def generate(self, name: str, length: int = 0, alphabet: str = "") -> Password:
        """
        Generate a new secret for ``name``, adding or replacing the entry.

        Zero length or a blank alphabet fall back to the configured defaults.
        The caller owns the returned Password and should clear it once shown.
        """
        effective_length = length if length > 0 else self.settings.default_length
        effective_alphabet = alphabet if alphabet and alphabet.strip() else self.settings.default_alphabet

        password = Password(generate_password(effective_length, effective_alphabet), name)
        try:
            if self.exists(name):
                self.edit_password(name, password)
            else:
                self.add(name, password)
        except PassBoxError:
            password.clear()
            raise
        return password

    # ------------------------------------------------------------------
    # Synchronization
    # ------------------------------------------------------------------

    def sync(self) -> None:
        self.vcs.pull()
        self.vcs.push()

    def sync_status(self) -> SyncStatus:
        ahead, behind = self.vcs.fetch()
        return SyncStatus(ahead, behind)

    def _commit(self, message: str) -> None:
        try:
            self.vcs.commit(message)
        except PassBoxError:
            logger.error("Store changed but not committed: %s", message)
            raise


def _make_parents(path: Path) -> List[Path]:
    """Create the missing parents of ``path``; return the ones created, deepest first."""
    missing = []
    parent = path.parent
    while not parent.exists():
        missing.append(parent)
        parent = parent.parent
    path.parent.mkdir(parents=True, exist_ok=True)
    return missing


def _remove_empty(dirs: List[Path]) -> None:
    for directory in dirs:
        try:
            directory.rmdir()
        except OSError:
            return


def _discard(*paths: Path) -> None:
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Unable to remove %s during rollback: %s", path, e)
