""" Random password generation. """

import secrets

from .settings import DEFAULT_ALPHABET


def generate_password(length: int = 20, alphabet: str = DEFAULT_ALPHABET) -> str:
    # Draws every character independently from the alphabet with a CSPRNG.
    if length <= 0:
        raise ValueError("Password length must be positive")
    # duplicates would skew the distribution
    pool = "".join(dict.fromkeys(alphabet))
    if not pool:
        raise ValueError("Password alphabet must not be empty")
    return "".join(secrets.choice(pool) for _ in range(length))
