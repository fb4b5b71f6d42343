"""
Unit tests for the keystore module.
"""

import base64
from unittest.mock import patch

import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from passbox.security import keystore


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def mock_keyring_lib():
    """Patches the keyring module within passbox.security.keystore."""
    with patch("passbox.security.keystore.keyring", autospec=True) as mock_lib:
        yield mock_lib


# ==============================================================================
# Tests: Save / Load / Delete
# ==============================================================================

def test_save_key_encodes_and_stores(mock_keyring_lib):
    """Key bytes are base64 encoded before storage."""
    key_bytes = b"\x01\x02\x03\x04"

    keystore.save_key("passbox_test", "alice@example.com", key_bytes)

    mock_keyring_lib.set_password.assert_called_once_with(
        "passbox_test", "alice@example.com", base64.b64encode(key_bytes).decode("ascii")
    )


def test_load_key_returns_bytes(mock_keyring_lib):
    original_key = b"secret_bytes"
    mock_keyring_lib.get_password.return_value = base64.b64encode(original_key).decode("ascii")

    assert keystore.load_key("svc", "usr") == original_key


def test_load_key_returns_none_if_missing(mock_keyring_lib):
    mock_keyring_lib.get_password.return_value = None
    assert keystore.load_key("svc", "usr") is None


def test_load_key_returns_none_on_corrupt_data(mock_keyring_lib):
    mock_keyring_lib.get_password.return_value = "NotValidBase64!!!"
    assert keystore.load_key("svc", "usr") is None


def test_load_key_returns_none_on_backend_error(mock_keyring_lib):
    mock_keyring_lib.get_password.side_effect = KeyringError("locked")
    assert keystore.load_key("svc", "usr") is None


def test_delete_key_calls_backend(mock_keyring_lib):
    assert keystore.delete_key("svc", "usr") is True
    mock_keyring_lib.delete_password.assert_called_once_with("svc", "usr")


def test_delete_key_missing_returns_false(mock_keyring_lib):
    mock_keyring_lib.delete_password.side_effect = PasswordDeleteError("not found")
    assert keystore.delete_key("svc", "usr") is False


# ==============================================================================
# Tests: Backend assessment
# ==============================================================================

def _backend_named(name, priority=1):
    backend_cls = type(name, (), {"priority": priority})
    return backend_cls()


@pytest.mark.parametrize(
    "name, secure",
    [
        ("PlaintextKeyring", False),
        ("NullKeyring", False),
        ("WinVaultKeyring", True),
        ("SecretServiceKeyring", True),
        ("SomethingElse", True),
    ],
)
def test_assess_keyring_backend(mock_keyring_lib, name, secure):
    mock_keyring_lib.get_keyring.return_value = _backend_named(name)
    is_secure, message = keystore.assess_keyring_backend()
    assert is_secure is secure
    assert name in message


def test_assess_low_priority_backend(mock_keyring_lib):
    mock_keyring_lib.get_keyring.return_value = _backend_named("ChainerBackend", priority=0)
    is_secure, _ = keystore.assess_keyring_backend()
    assert is_secure is False


def test_assess_backend_error(mock_keyring_lib):
    mock_keyring_lib.get_keyring.side_effect = KeyringError("boom")
    is_secure, message = keystore.assess_keyring_backend()
    assert is_secure is False
    assert "boom" in message


def test_local_backend_loads_key_from_keystore(mock_keyring_lib):
    """LocalKeyBackend falls back to the keystore for unknown recipients."""
    from passbox.security.encryption import LocalKeyBackend

    key = b"k" * 32
    mock_keyring_lib.get_password.return_value = base64.b64encode(key).decode("ascii")

    backend = LocalKeyBackend(keyring_service="passbox")
    blob = backend.encrypt_bytes(b"data", "bob")

    assert backend.decrypt_bytes(blob) == b"data"
    mock_keyring_lib.get_password.assert_called_once_with("passbox", "bob")
