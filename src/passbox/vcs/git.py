"""Git version control gateway.

Runs the ``git`` executable through subprocess inside the store root.
Interactive credential prompts are disabled so a missing credential fails the
call instead of blocking the engine.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Type

from ..core.exceptions import CommitFailedError, VersionControlError
from ..core.locator import GITIGNORE_FILENAME
from .gateway import VersionControlGateway


logger = logging.getLogger(__name__)

NOTHING_TO_COMMIT = ("nothing to commit", "nothing added to commit")


class GitBackend(VersionControlGateway):
    """Version control gateway backed by the git command line tool."""

    def __init__(self, root: str | Path, binary: str = "git", timeout: Optional[float] = None):
        self.root = Path(root).expanduser()
        self.binary = binary
        self.timeout = timeout

    def _run(
        self,
        args: Sequence[str],
        cwd: Optional[Path] = None,
        check: bool = True,
        error_cls: Type[VersionControlError] = VersionControlError,
    ) -> subprocess.CompletedProcess:
        """Run git and return the completed process; raise ``error_cls`` on failure when ``check``."""
        cmd: List[str] = [self.binary, *args]
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        try:
            process = subprocess.run(
                cmd,
                cwd=str(cwd or self.root),
                capture_output=True,
                text=True,
                env=env,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise error_cls(f"'{self.binary}' is not installed") from e
        except subprocess.TimeoutExpired as e:
            raise error_cls(f"git {args[0]} did not finish within {self.timeout}s") from e
        except OSError as e:
            raise error_cls(f"Unable to run git {args[0]}: {e}") from e

        if check and process.returncode != 0:
            output = ((process.stdout or "") + (process.stderr or "")).strip()
            raise error_cls(f"git {args[0]} failed: {output}")
        return process

    # ------------------------------------------------------------------
    # Repository lifecycle
    # ------------------------------------------------------------------

    def clone(self, url: str) -> bool:
        self.root.parent.mkdir(parents=True, exist_ok=True)
        try:
            process = self._run(["clone", url, str(self.root)], cwd=self.root.parent, check=False)
        except VersionControlError as e:
            logger.error("Unable to clone %s: %s", url, e)
            return False
        if process.returncode != 0:
            logger.error("Unable to clone %s: %s", url, (process.stderr or "").strip())
            return False
        return True

    def init(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self._run(["init", "--quiet"])

    def delete_repository(self) -> None:
        if not self.root.exists():
            return
        try:
            shutil.rmtree(self.root)
        except OSError as e:
            raise VersionControlError(f"Unable to delete {self.root}: {e}") from e

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def commit(self, message: str) -> None:
        self._run(["add", "--all"], error_cls=CommitFailedError)
        process = self._run(["commit", "--quiet", "-m", message], check=False, error_cls=CommitFailedError)
        if process.returncode == 0:
            logger.debug("Committed: %s", message)
            return
        output = ((process.stdout or "") + (process.stderr or "")).strip()
        if any(marker in output for marker in NOTHING_TO_COMMIT):
            logger.debug("Nothing to commit for: %s", message)
            return
        raise CommitFailedError(f"git commit failed: {output}")

    def ignore(self, path: str | Path) -> None:
        target = Path(path)
        if target.is_absolute():
            target = target.resolve().relative_to(self.root.resolve())
        entry = target.as_posix()

        gitignore = self.root / GITIGNORE_FILENAME
        lines = gitignore.read_text(encoding="utf-8").splitlines() if gitignore.exists() else []
        if entry in lines:
            return
        lines.append(entry)
        gitignore.write_text("\n".join(lines) + "\n", encoding="utf-8")

        # the file may have been committed before it was ignored
        self._run(["rm", "--cached", "--ignore-unmatch", "--quiet", entry])
        self.commit(f"Add '{entry}' to '{GITIGNORE_FILENAME}' file")

    # ------------------------------------------------------------------
    # Remote
    # ------------------------------------------------------------------

    def pull(self) -> None:
        self._run(["pull", "--no-edit", "--quiet"])

    def push(self) -> None:
        self._run(["push", "--quiet"])

    def fetch(self) -> Tuple[int, int]:
        self._run(["fetch", "--quiet"])
        process = self._run(["rev-list", "--left-right", "--count", "HEAD...@{upstream}"])
        parts = process.stdout.split()
        if len(parts) != 2:
            raise VersionControlError(f"Unexpected rev-list output: {process.stdout!r}")
        ahead, behind = (int(p) for p in parts)
        return ahead, behind
