"""Argon2id derivation of local-key recipient keys.

A store that uses passphrase-derived keys keeps the parameters next to its
identity as a small JSON object (see ``kdf_params_to_dict``), so the same key
can be derived again on another machine.
"""

import os
from typing import Any, Dict, Mapping

from argon2.low_level import Type, hash_secret_raw


KEY_SIZE = 32
KDF_ALGORITHM = "argon2id"

DEFAULT_TIME_COST = 3
DEFAULT_MEMORY_COST = 65536  # KiB
DEFAULT_PARALLELISM = 1


def generate_salt(length: int = 16) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def derive_recipient_key(
    passphrase: bytes | str,
    salt: bytes,
    time_cost: int = DEFAULT_TIME_COST,
    memory_cost: int = DEFAULT_MEMORY_COST,
    parallelism: int = DEFAULT_PARALLELISM,
    key_len: int = KEY_SIZE,
) -> bytes:
    """
    Derive a recipient key from a passphrase using Argon2id.
    Returns raw derived key bytes.
    """
    if isinstance(passphrase, str):
        passphrase = passphrase.encode("utf-8")

    return hash_secret_raw(
        secret=passphrase,
        salt=salt,
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=key_len,
        type=Type.ID,
    )


def kdf_params_to_dict(salt: bytes, time_cost: int, memory_cost: int, parallelism: int) -> Dict:
    return {
        "algo": KDF_ALGORITHM,
        "salt": salt.hex(),
        "time": time_cost,
        "memory": memory_cost,
        "parallelism": parallelism,
    }


def kdf_params_from_dict(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate stored parameters and return keyword arguments for derive_recipient_key.

    Raises ValueError for another algorithm or malformed values.
    """
    if data.get("algo") != KDF_ALGORITHM:
        raise ValueError(f"Unsupported key derivation algorithm: {data.get('algo')!r}")
    try:
        params = {
            "salt": bytes.fromhex(data["salt"]),
            "time_cost": int(data.get("time", DEFAULT_TIME_COST)),
            "memory_cost": int(data.get("memory", DEFAULT_MEMORY_COST)),
            "parallelism": int(data.get("parallelism", DEFAULT_PARALLELISM)),
        }
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed key derivation parameters: {e}") from e
    if not params["salt"]:
        raise ValueError("Key derivation salt must not be empty")
    return params
