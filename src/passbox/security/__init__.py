"""Encryption gateways for PassBox.

This package provides:
- the EncryptionGateway interface consumed by the store engine
- a GnuPG gateway driving the gpg executable
- a local-key gateway (AES-256-GCM, Argon2id-derived or keystore-held keys)
"""

from .gateway import EncryptionGateway
from .gpg import GpgBackend
from .encryption import LocalKeyBackend
from .kdf import generate_salt, derive_recipient_key, kdf_params_to_dict, kdf_params_from_dict
from .keystore import save_key, load_key, delete_key, assess_keyring_backend

__all__ = [
    "EncryptionGateway",
    "GpgBackend",
    "LocalKeyBackend",
    "generate_salt",
    "derive_recipient_key",
    "kdf_params_to_dict",
    "kdf_params_from_dict",
    "save_key",
    "load_key",
    "delete_key",
    "assess_keyring_backend",
]
