"""
Store locator: owns the on-disk layout of the password store.

Structure Map for reference:
==============================
 - <store_root>/
      - .gpg-id                recipient identity (plain text)
      - .lock                  encrypted lock sentinel (git ignored)
      - .gitignore
      - <path/to/name>.gpg     encrypted secret
      - <path/to/name>.m.gpg   encrypted metadata sidecar
==============================
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .exceptions import IdentityNotFoundError, InvalidEntryNameError
from .settings import DEFAULT_STORE_DIR


SECRET_SUFFIX = ".gpg"
METADATA_SUFFIX = ".m.gpg"
# last segment of names that would collide with a sidecar
RESERVED_NAME_SUFFIX = METADATA_SUFFIX[: -len(SECRET_SUFFIX)]
GPG_ID_FILENAME = ".gpg-id"
LOCK_FILENAME = ".lock"
GITIGNORE_FILENAME = ".gitignore"
VCS_DIRNAME = ".git"


class StoreLocator:
    """Resolves store paths and the recipient identity."""

    def __init__(self, root_path: Optional[str | Path] = None):
        self._root = (
            Path(root_path).expanduser() if root_path else DEFAULT_STORE_DIR
        ).resolve()

    @property
    def root(self) -> Path:
        # Created on first use so every caller sees an existing folder.
        if not self._root.exists():
            self._root.mkdir(parents=True, exist_ok=True)
        return self._root

    @property
    def gpg_id_path(self) -> Path:
        return self.root / GPG_ID_FILENAME

    @property
    def lock_path(self) -> Path:
        return self.root / LOCK_FILENAME

    @property
    def gitignore_path(self) -> Path:
        return self.root / GITIGNORE_FILENAME

    def _safe_path(self, name: str, suffix: str) -> Path:
        # Ensures the entry name does not lead outside the store root.
        cleaned = (name or "").strip().replace("\\", "/").strip("/")
        if not cleaned:
            raise InvalidEntryNameError("Entry name must not be empty")
        if any(part in ("", ".", "..") for part in cleaned.split("/")):
            raise InvalidEntryNameError(f"Invalid entry name '{name}'")
        if cleaned.endswith(RESERVED_NAME_SUFFIX):
            raise InvalidEntryNameError(f"Entry name '{name}' must not end with '{RESERVED_NAME_SUFFIX}'")
        path = (self.root / f"{cleaned}{suffix}").resolve()
        if self.root not in path.parents:
            raise InvalidEntryNameError(f"Entry name '{name}' escapes the store")
        return path

    def entry_path(self, name: str) -> Path:
        return self._safe_path(name, SECRET_SUFFIX)

    def metadata_path(self, name: str) -> Path:
        return self._safe_path(name, METADATA_SUFFIX)

    def get_store_id(self) -> str:
        """Return the recipient identity; raises if missing or empty."""
        path = self.gpg_id_path
        if not path.exists():
            raise IdentityNotFoundError(f"No {GPG_ID_FILENAME} file in {self.root}")
        store_id = path.read_text(encoding="utf-8").strip()
        if not store_id:
            raise IdentityNotFoundError(f"{GPG_ID_FILENAME} file in {self.root} is empty")
        return store_id

    def write_store_id(self, store_id: str) -> Path:
        path = self.gpg_id_path
        path.write_text(store_id, encoding="utf-8")
        return path

    def is_initialized(self) -> bool:
        if not self._root.exists():
            return False
        path = self._root / GPG_ID_FILENAME
        return path.exists() and bool(path.read_text(encoding="utf-8").strip())
