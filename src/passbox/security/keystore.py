"""OS keystore integration for recipient keys of the local-key gateway.

Keys are stored base64-encoded under a (service, recipient) pair. This is an
opt-in convenience; do not assume keyring provides hardware-backed security on
all platforms.
"""
import base64
import binascii
import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError


logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "passbox"


def save_key(service: str, recipient: str, key_bytes: bytes) -> None:
    """Persist binary key_bytes in the OS keystore under (service, recipient)."""
    secret = base64.b64encode(key_bytes).decode("ascii")
    keyring.set_password(service, recipient, secret)


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_secure, message) describing the current keyring backend.

    Heuristics are used because `keyring` exposes different backends across
    platforms.
    """
    try:
        backend = keyring.get_keyring()
    except KeyringError as e:
        return False, f"failed to get keyring backend: {e}"

    name = backend.__class__.__name__
    priority = getattr(backend, "priority", None)

    insecure_indicators = ("Plaintext", "Uncrypted", "Simple", "File", "Null", "Fail")
    if any(tok in name for tok in insecure_indicators):
        return False, f"insecure backend detected: {name}"

    if priority is not None and priority <= 0:
        return False, f"no suitable secure keyring backend available (priority={priority}, backend={name})"

    if "Win" in name or "Keychain" in name or "SecretService" in name or "KWallet" in name:
        return True, f"backend looks acceptable: {name} (priority={priority})"

    return True, f"unknown backend '{name}', treat with caution (priority={priority})"


def load_key(service: str, recipient: str) -> Optional[bytes]:
    """Load a persisted key from the OS keystore; returns raw bytes or None."""
    try:
        secret = keyring.get_password(service, recipient)
    except KeyringError as e:
        logger.warning("Keyring lookup failed for %s: %s", recipient, e)
        return None
    if secret is None:
        return None
    try:
        return base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError):
        logger.warning("Keyring entry for %s is not valid base64", recipient)
        return None


def delete_key(service: str, recipient: str) -> bool:
    """Remove the key from the OS keystore; returns False when nothing was stored."""
    try:
        keyring.delete_password(service, recipient)
    except PasswordDeleteError:
        return False
    return True
