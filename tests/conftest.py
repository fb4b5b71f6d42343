"""Shared fixtures: an in-process encryption back end and a recording VCS."""

import shutil
from pathlib import Path
from typing import List, Tuple

import pytest

from passbox.core.exceptions import CommitFailedError
from passbox.core.locator import GITIGNORE_FILENAME, StoreLocator
from passbox.security.encryption import LocalKeyBackend
from passbox.vcs.gateway import VersionControlGateway


RECIPIENT = "alice@example.com"


class FakeVcs(VersionControlGateway):
    """Records every call instead of running git."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.commits: List[str] = []
        self.calls: List[str] = []
        self.fail_commit = False
        self.clone_ok = True
        self.ahead_behind: Tuple[int, int] = (0, 0)

    def clone(self, url):
        self.calls.append(f"clone {url}")
        if self.clone_ok:
            self.root.mkdir(parents=True, exist_ok=True)
        return self.clone_ok

    def init(self):
        self.calls.append("init")
        self.root.mkdir(parents=True, exist_ok=True)

    def delete_repository(self):
        self.calls.append("delete_repository")
        if self.root.exists():
            shutil.rmtree(self.root)

    def commit(self, message):
        self.calls.append("commit")
        if self.fail_commit:
            raise CommitFailedError("commit refused")
        self.commits.append(message)

    def ignore(self, path):
        target = Path(path)
        if target.is_absolute():
            target = target.relative_to(self.root)
        entry = target.as_posix()
        gitignore = self.root / GITIGNORE_FILENAME
        lines = gitignore.read_text().splitlines() if gitignore.exists() else []
        if entry not in lines:
            lines.append(entry)
            gitignore.write_text("\n".join(lines) + "\n")
            self.commits.append(f"Add '{entry}' to '{GITIGNORE_FILENAME}' file")

    def pull(self):
        self.calls.append("pull")

    def push(self):
        self.calls.append("push")

    def fetch(self):
        self.calls.append("fetch")
        return self.ahead_behind


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    return (tmp_path / "store").resolve()


@pytest.fixture
def backend() -> LocalKeyBackend:
    """Local-key back end with a random key registered for RECIPIENT."""
    be = LocalKeyBackend()
    be.generate_key(RECIPIENT)
    return be


@pytest.fixture
def fake_vcs(store_root: Path) -> FakeVcs:
    return FakeVcs(store_root)


@pytest.fixture
def locator(store_root: Path) -> StoreLocator:
    """Locator over an initialized store root (.gpg-id written)."""
    loc = StoreLocator(store_root)
    loc.write_store_id(RECIPIENT)
    return loc
