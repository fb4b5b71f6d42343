"""
Unit tests for the LocalKeyBackend encryption gateway.
"""

from unittest.mock import patch

import pytest

from passbox.core.exceptions import DecryptFailedError, EncryptFailedError, KeyNotFoundError
from passbox.security.encryption import MAGIC, LocalKeyBackend
from passbox.security.kdf import generate_salt, kdf_params_to_dict


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def local():
    be = LocalKeyBackend()
    be.generate_key("alice")
    return be


# ==============================================================================
# Tests: Key lifecycle
# ==============================================================================

def test_add_key_rejects_wrong_size():
    with pytest.raises(ValueError):
        LocalKeyBackend().add_key("alice", b"short")


def test_unknown_recipient_raises_key_not_found():
    with pytest.raises(KeyNotFoundError):
        LocalKeyBackend().verify_key_valid("nobody")


def test_verify_key_valid(local):
    assert local.verify_key_valid("alice") is True


def test_passphrase_keys_interoperate():
    """Two backends unlocked with the same passphrase and salt share the key."""
    salt = generate_salt()
    be1, be2 = LocalKeyBackend(), LocalKeyBackend()
    be1.unlock_with_passphrase("alice", "pw", salt, time_cost=1, memory_cost=8)
    be2.unlock_with_passphrase("alice", b"pw", salt, time_cost=1, memory_cost=8)

    assert be2.decrypt_bytes(be1.encrypt_bytes(b"data", "alice")) == b"data"


def test_unlock_with_saved_params():
    """Parameters stored as a dict re-derive the same key."""
    salt = generate_salt()
    be1, be2 = LocalKeyBackend(), LocalKeyBackend()
    be1.unlock_with_passphrase("alice", "pw", salt, time_cost=1, memory_cost=8)
    be2.unlock_with_params("alice", "pw", kdf_params_to_dict(salt, 1, 8, 1))

    assert be2.decrypt_bytes(be1.encrypt_bytes(b"data", "alice")) == b"data"


def test_forget_drops_key(local):
    blob = local.encrypt_bytes(b"data", "alice")
    local.forget("alice")
    with pytest.raises(DecryptFailedError):
        local.decrypt_bytes(blob)


def test_persist_key_requires_loaded_key():
    with pytest.raises(KeyNotFoundError):
        LocalKeyBackend().persist_key("alice")


def test_persist_and_delete_use_keystore(local):
    with patch("passbox.security.encryption.save_key") as save, patch(
        "passbox.security.encryption.delete_key", return_value=True
    ) as delete:
        local.persist_key("alice")
        assert local.delete_persisted_key("alice") is True

    assert save.call_args[0][0] == "passbox"
    assert save.call_args[0][1] == "alice"
    delete.assert_called_once_with("passbox", "alice")


# ==============================================================================
# Tests: Blob format
# ==============================================================================

def test_blob_header(local):
    blob = local.encrypt_bytes(b"data", "alice")
    assert blob.startswith(MAGIC + bytes([5]) + b"alice")
    assert b"data" not in blob


def test_nonce_is_random(local):
    assert local.encrypt_bytes(b"data", "alice") != local.encrypt_bytes(b"data", "alice")


def test_tampered_ciphertext_fails(local):
    blob = bytearray(local.encrypt_bytes(b"data", "alice"))
    blob[-1] ^= 0x01
    with pytest.raises(DecryptFailedError):
        local.decrypt_bytes(bytes(blob))


def test_swapped_recipient_header_fails(local):
    """The header is authenticated, so relabelling a blob breaks it."""
    local.generate_key("alicf")
    blob = local.encrypt_bytes(b"data", "alice")
    forged = blob.replace(b"alice", b"alicf", 1)
    with pytest.raises(DecryptFailedError):
        local.decrypt_bytes(forged)


@pytest.mark.parametrize("blob", [b"", b"PBX", b"XXXX\x01a" + b"\x00" * 40, MAGIC + b"\x05ali"])
def test_malformed_blobs_fail(local, blob):
    with pytest.raises(DecryptFailedError):
        local.decrypt_bytes(blob)


def test_empty_recipient_rejected(local):
    with pytest.raises(EncryptFailedError):
        local.encrypt_bytes(b"data", "")


# ==============================================================================
# Tests: File operations
# ==============================================================================

def test_encrypt_decrypt_file(local, tmp_path):
    target = tmp_path / "deep" / "entry.gpg"
    local.encrypt(target, "päss", "alice")

    assert target.exists()
    assert local.decrypt(target) == "päss"
    # no temp files left next to the target
    assert [p.name for p in target.parent.iterdir()] == ["entry.gpg"]


def test_encrypt_replaces_existing(local, tmp_path):
    target = tmp_path / "entry.gpg"
    local.encrypt(target, "one", "alice")
    local.encrypt(target, "two", "alice")
    assert local.decrypt(target) == "two"


def test_encrypt_unknown_recipient_writes_nothing(local, tmp_path):
    target = tmp_path / "entry.gpg"
    with pytest.raises(KeyNotFoundError):
        local.encrypt(target, "x", "bob")
    assert not target.exists()


def test_decrypt_missing_file(local, tmp_path):
    with pytest.raises(DecryptFailedError):
        local.decrypt(tmp_path / "missing.gpg")


def test_decrypt_many_aligns_results(local, tmp_path):
    good = tmp_path / "good.gpg"
    bad = tmp_path / "bad.gpg"
    local.encrypt(good, "ok", "alice")
    bad.write_bytes(b"junk")

    assert local.decrypt_many([good, bad, tmp_path / "missing.gpg", good]) == ["ok", None, None, "ok"]
