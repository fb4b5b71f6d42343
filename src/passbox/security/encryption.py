"""
Local-key encryption gateway for PassBox stores.

An in-process alternative to gpg: each recipient identity maps to a 256-bit
key, either derived from a passphrase (Argon2id, see :mod:`passbox.security.kdf`),
generated at random, or loaded from the OS keystore.

Blob layout (all files written by this backend):
- 4 bytes: magic b'PBX1'
- 1 byte: length of the recipient identity (R)
- R bytes: recipient identity, UTF-8
- 12 bytes: nonce
- rest: AES-256-GCM ciphertext + tag

The header (magic + recipient) is bound as associated data, so swapping the
recipient of a file makes decryption fail instead of silently using another key.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..core.exceptions import (
    DecryptFailedError,
    EncryptFailedError,
    KeyNotFoundError,
)
from .gateway import EncryptionGateway
from .kdf import (
    DEFAULT_MEMORY_COST,
    DEFAULT_PARALLELISM,
    DEFAULT_TIME_COST,
    KEY_SIZE,
    derive_recipient_key,
    kdf_params_from_dict,
)
from .keystore import DEFAULT_SERVICE, load_key, save_key, delete_key


logger = logging.getLogger(__name__)

MAGIC = b"PBX1"
NONCE_SIZE = 12


def _atomic_write_bytes(path: Path, payload: bytes) -> None:
    # temp file in the target folder, then replace
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


class LocalKeyBackend(EncryptionGateway):
    """
    AES-256-GCM gateway keyed per recipient identity.

    Keys are kept in memory; when ``keyring_service`` is set, unknown
    recipients are looked up in the OS keystore and ``persist_key`` can store
    them there.
    """

    def __init__(self, keyring_service: Optional[str] = None):
        self.keyring_service = keyring_service
        self._keys: Dict[str, bytes] = {}

    # ------------------------------------------------------------------
    # Key lifecycle
    # ------------------------------------------------------------------

    def add_key(self, recipient: str, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise ValueError(f"Recipient keys must be {KEY_SIZE} bytes, got {len(key)}")
        self._keys[recipient] = bytes(key)

    def generate_key(self, recipient: str) -> bytes:
        """Create and register a random key for ``recipient``."""
        key = AESGCM.generate_key(bit_length=KEY_SIZE * 8)
        self.add_key(recipient, key)
        return key

    def unlock_with_passphrase(
        self,
        recipient: str,
        passphrase: bytes | str,
        salt: bytes,
        time_cost: int = DEFAULT_TIME_COST,
        memory_cost: int = DEFAULT_MEMORY_COST,
        parallelism: int = DEFAULT_PARALLELISM,
    ) -> None:
        """Derive the key of ``recipient`` from a passphrase and register it.

        The caller is responsible for storing ``salt`` for future derivations.
        """
        key = derive_recipient_key(
            passphrase,
            salt,
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )
        self.add_key(recipient, key)

    def unlock_with_params(self, recipient: str, passphrase: bytes | str, params: Mapping[str, Any]) -> None:
        """Like unlock_with_passphrase, with parameters saved by kdf_params_to_dict."""
        self.unlock_with_passphrase(recipient, passphrase, **kdf_params_from_dict(params))

    def forget(self, recipient: str) -> None:
        self._keys.pop(recipient, None)

    def persist_key(self, recipient: str) -> None:
        """Store the in-memory key of ``recipient`` in the OS keystore."""
        if recipient not in self._keys:
            raise KeyNotFoundError(f"No key loaded for '{recipient}'")
        save_key(self.keyring_service or DEFAULT_SERVICE, recipient, self._keys[recipient])

    def delete_persisted_key(self, recipient: str) -> bool:
        return delete_key(self.keyring_service or DEFAULT_SERVICE, recipient)

    def _key_for(self, recipient: str) -> bytes:
        key = self._keys.get(recipient)
        if key is not None:
            return key
        if self.keyring_service:
            key = load_key(self.keyring_service, recipient)
            if key is not None and len(key) == KEY_SIZE:
                self._keys[recipient] = key
                return key
        raise KeyNotFoundError(f"No key available for '{recipient}'")

    # ------------------------------------------------------------------
    # Byte-level encryption
    # ------------------------------------------------------------------

    @staticmethod
    def _header(recipient: str) -> bytes:
        raw = recipient.encode("utf-8")
        if not raw or len(raw) > 255:
            raise EncryptFailedError("Recipient identity must be 1-255 bytes")
        return MAGIC + bytes([len(raw)]) + raw

    def encrypt_bytes(self, data: bytes, recipient: str) -> bytes:
        header = self._header(recipient)
        key = self._key_for(recipient)
        nonce = os.urandom(NONCE_SIZE)
        return header + nonce + AESGCM(key).encrypt(nonce, data, header)

    def decrypt_bytes(self, blob: bytes) -> bytes:
        if len(blob) < len(MAGIC) + 1 or blob[: len(MAGIC)] != MAGIC:
            raise DecryptFailedError("Not a PassBox ciphertext")
        size = blob[len(MAGIC)]
        header_end = len(MAGIC) + 1 + size
        if len(blob) < header_end + NONCE_SIZE:
            raise DecryptFailedError("Ciphertext too short to contain nonce")

        header = blob[:header_end]
        try:
            recipient = header[len(MAGIC) + 1:].decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptFailedError("Corrupted recipient header") from e

        try:
            key = self._key_for(recipient)
        except KeyNotFoundError as e:
            raise DecryptFailedError(str(e)) from e

        nonce = blob[header_end: header_end + NONCE_SIZE]
        try:
            return AESGCM(key).decrypt(nonce, blob[header_end + NONCE_SIZE:], header)
        except InvalidTag as e:
            raise DecryptFailedError("Authentication tag mismatch") from e

    # ------------------------------------------------------------------
    # Gateway operations
    # ------------------------------------------------------------------

    def encrypt(self, path: str | Path, plaintext: str, recipient: str) -> None:
        blob = self.encrypt_bytes(plaintext.encode("utf-8"), recipient)
        try:
            _atomic_write_bytes(Path(path), blob)
        except OSError as e:
            logger.error("Unable to write %s: %s", path, e)
            raise EncryptFailedError(f"Unable to write {path}: {e}") from e

    def decrypt(self, path: str | Path) -> str:
        try:
            blob = Path(path).read_bytes()
        except OSError as e:
            raise DecryptFailedError(f"Unable to read {path}: {e}") from e
        data = self.decrypt_bytes(blob)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptFailedError(f"Decrypted content of {path} is not UTF-8") from e

    def verify_key_valid(self, recipient: str) -> bool:
        self._key_for(recipient)
        return True
