"""GnuPG encryption gateway.

Drives the ``gpg`` executable through subprocess. Plaintext is passed over
stdin and read back from stdout, so secrets never touch the command line or a
temporary file.
"""

from __future__ import annotations

import logging
import subprocess
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Type

from ..core.exceptions import (
    DecryptFailedError,
    EncryptFailedError,
    EncryptionError,
    KeyInvalidError,
    KeyNotFoundError,
)
from .gateway import EncryptionGateway


logger = logging.getLogger(__name__)

GPG_REPO_URL = "https://gnupg.org/download/"

# --with-colons validity codes that make a key unusable
_UNUSABLE_VALIDITY = {"e": "expired", "r": "revoked", "i": "invalid", "d": "disabled", "n": "not valid"}


class GpgBackend(EncryptionGateway):
    """Encryption gateway backed by the gpg command line tool."""

    def __init__(
        self,
        binary: str = "gpg",
        homedir: Optional[str | Path] = None,
        timeout: Optional[float] = None,
        max_workers: int = 4,
    ):
        self.binary = binary
        self.homedir = str(homedir) if homedir else None
        self.timeout = timeout
        self.max_workers = max(1, max_workers)

    def _command(self, args: Sequence[str]) -> List[str]:
        cmd = [self.binary, "--quiet", "--yes", "--batch"]
        if self.homedir:
            cmd += ["--homedir", self.homedir]
        return cmd + list(args)

    def _run(
        self,
        args: Sequence[str],
        input_data: Optional[bytes] = None,
        error_cls: Type[EncryptionError] = EncryptionError,
    ) -> subprocess.CompletedProcess:
        """Run gpg and return the completed process; raise ``error_cls`` on failure."""
        cmd = self._command(args)
        try:
            return subprocess.run(
                cmd,
                input=input_data,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise EncryptionError(
                f"'{self.binary}' is not installed. Please visit {GPG_REPO_URL} for installation instructions."
            ) from e
        except subprocess.TimeoutExpired as e:
            raise error_cls(f"gpg did not answer within {self.timeout}s") from e
        except OSError as e:
            raise error_cls(f"Unable to run gpg: {e}") from e

    @staticmethod
    def _stderr(process: subprocess.CompletedProcess) -> str:
        return (process.stderr or b"").decode("utf-8", errors="replace").strip()

    # ------------------------------------------------------------------
    # Gateway operations
    # ------------------------------------------------------------------

    def is_available(self) -> bool:
        try:
            process = self._run(["--version"])
        except EncryptionError as e:
            logger.warning("Unable to verify GPG installation: %s", e)
            return False
        first_line = process.stdout.decode("utf-8", errors="replace").splitlines()[:1]
        return process.returncode == 0 and bool(first_line) and first_line[0].startswith("gpg (GnuPG)")

    def encrypt(self, path: str | Path, plaintext: str, recipient: str) -> None:
        process = self._run(
            [
                "--compress-algo=none",
                "--no-encrypt-to",
                "--encrypt",
                "--recipient",
                recipient,
                "--output",
                str(path),
            ],
            input_data=plaintext.encode("utf-8"),
            error_cls=EncryptFailedError,
        )
        if process.returncode != 0:
            message = self._stderr(process) or f"gpg exited with {process.returncode}"
            logger.error("Unable to encrypt %s", path)
            raise EncryptFailedError(message)

    def decrypt(self, path: str | Path) -> str:
        process = self._run(
            ["--compress-algo=none", "--no-encrypt-to", "--decrypt", str(path)],
            error_cls=DecryptFailedError,
        )
        if process.returncode != 0:
            raise DecryptFailedError(self._stderr(process) or f"gpg exited with {process.returncode}")
        try:
            return process.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptFailedError(f"Decrypted content of {path} is not UTF-8") from e

    def decrypt_many(self, paths: Sequence[str | Path]) -> List[Optional[str]]:
        # map() keeps results in input order whatever order the decrypts finish in
        if not paths:
            return []
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            return list(pool.map(self._decrypt_or_none, paths))

    def verify_key_valid(self, recipient: str) -> bool:
        process = self._run(["--list-keys", "--with-colons", recipient], error_cls=KeyNotFoundError)
        if process.returncode != 0:
            raise KeyNotFoundError(f"No public key for '{recipient}'")

        lines = process.stdout.decode("utf-8", errors="replace").splitlines()
        primaries = [line.split(":") for line in lines if line.startswith("pub:")]
        if not primaries:
            raise KeyNotFoundError(f"No public key for '{recipient}'")

        reasons = []
        for fields in primaries:
            reason = _unusable_reason(fields)
            if reason is None:
                return True
            reasons.append(reason)
        raise KeyInvalidError(f"Key '{recipient}' is unusable: {', '.join(reasons)}")


def _unusable_reason(fields: List[str]) -> Optional[str]:
    """Return why a ``pub`` record cannot be used for encryption, or None."""
    validity = fields[1] if len(fields) > 1 else ""
    if validity in _UNUSABLE_VALIDITY:
        return _UNUSABLE_VALIDITY[validity]

    expires = fields[6] if len(fields) > 6 else ""
    if expires:
        try:
            expires_at = datetime.fromtimestamp(int(expires))
        except ValueError:
            try:
                expires_at = datetime.fromisoformat(expires)
            except ValueError:
                return "unreadable expiry"
        if expires_at <= datetime.now():
            return "expired"

    # Field 12 lists the capabilities of the whole key; uppercase E = can encrypt
    capabilities = fields[11] if len(fields) > 11 else ""
    if capabilities and "E" not in capabilities:
        return "no encryption capability"
    return None
