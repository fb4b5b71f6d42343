"""
Store tree enumeration.

Walks the store through a DirectoryLister so the traversal can run against the
real filesystem or an in-memory fake. Secret files (``.gpg``) become leaves,
directories become folders, sidecars (``.m.gpg``) and version control folders
are never emitted.

Ordering: inside a folder, leaves come first, then sub-folders; each group is
sorted by name.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from .locator import METADATA_SUFFIX, SECRET_SUFFIX, VCS_DIRNAME
from .models import StoreEntry


class DirectoryLister(ABC):
    """Read-only view over a directory tree addressed by relative posix paths."""

    @abstractmethod
    def list_dir(self, relative: str) -> Tuple[List[str], List[str]]:
        """Return (file names, directory names) directly inside ``relative`` ('' is the root)."""

    @abstractmethod
    def path_of(self, relative: str) -> str | Path:
        """Return the path the encryption gateway should use for ``relative``."""


class LocalDirectoryLister(DirectoryLister):
    def __init__(self, root: str | Path):
        self.root = Path(root)

    def list_dir(self, relative: str) -> Tuple[List[str], List[str]]:
        files: List[str] = []
        dirs: List[str] = []
        with os.scandir(self.path_of(relative)) as it:
            for entry in it:
                if entry.is_dir(follow_symlinks=False):
                    dirs.append(entry.name)
                elif entry.is_file():
                    files.append(entry.name)
        return files, dirs

    def path_of(self, relative: str) -> Path:
        return self.root / relative if relative else self.root


def join_path(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


def is_vcs_dir(name: str) -> bool:
    return name.endswith(VCS_DIRNAME)


def secret_name(filename: str) -> Optional[str]:
    """Return the entry name of a secret file, None for anything else."""
    if filename.endswith(METADATA_SUFFIX) or not filename.endswith(SECRET_SUFFIX):
        return None
    name = filename[: -len(SECRET_SUFFIX)]
    return name or None


def iter_secrets(lister: DirectoryLister, relative: str = "") -> Iterator[Tuple[str, Optional[str]]]:
    """
    Yield (entry path, sidecar relative path or None) for every secret, depth first.
    """
    files, dirs = lister.list_dir(relative)
    present = set(files)
    for filename in sorted(files):
        name = secret_name(filename)
        if name is None:
            continue
        sidecar = f"{name}{METADATA_SUFFIX}"
        yield join_path(relative, name), (join_path(relative, sidecar) if sidecar in present else None)

    for dirname in sorted(dirs):
        if is_vcs_dir(dirname):
            continue
        yield from iter_secrets(lister, join_path(relative, dirname))


class EntryTreeBuilder:
    """Builds a fresh StoreEntry tree on every call."""

    def __init__(self, lister: DirectoryLister):
        self.lister = lister

    def build(self) -> List[StoreEntry]:
        return self._build_level("")

    def _build_level(self, relative: str) -> List[StoreEntry]:
        files, dirs = self.lister.list_dir(relative)
        entries: List[StoreEntry] = []

        for filename in sorted(files):
            name = secret_name(filename)
            if name is None:
                continue
            entries.append(StoreEntry(name, join_path(relative, name)))

        for dirname in sorted(dirs):
            if is_vcs_dir(dirname):
                continue
            path = join_path(relative, dirname)
            # empty folders are kept, callers render a placeholder
            entries.append(StoreEntry(dirname, path, is_folder=True, children=self._build_level(path)))

        return entries
