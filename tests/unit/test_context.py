"""Unit tests for build_context and logging setup."""

import logging
from unittest.mock import patch

from passbox.context import AppContext, build_context
from passbox.core.settings import Settings
from passbox.core.store import PasswordStore
from passbox.logging_config import configure_logging
from passbox.security.encryption import LocalKeyBackend
from passbox.security.gpg import GpgBackend
from passbox.vcs.git import GitBackend


def test_build_context_defaults_to_gpg_and_git(tmp_path, monkeypatch):
    monkeypatch.delenv("PASSBOX_KEYRING_SERVICE", raising=False)
    settings = Settings(store_dir=str(tmp_path / "store"), gpg_binary="gpg2", command_timeout=3)

    context = build_context(settings)

    assert isinstance(context, AppContext)
    assert isinstance(context.store, PasswordStore)
    assert isinstance(context.store.encryption, GpgBackend)
    assert context.store.encryption.binary == "gpg2"
    assert context.store.encryption.timeout == 3
    assert isinstance(context.store.vcs, GitBackend)
    assert context.store.vcs.root == (tmp_path / "store").resolve()
    assert context.monitor.interval == settings.fetch_interval
    assert not context.monitor.running


def test_keyring_service_selects_local_backend(tmp_path, monkeypatch):
    monkeypatch.setenv("PASSBOX_KEYRING_SERVICE", "passbox-test")
    with patch("passbox.context.assess_keyring_backend", return_value=(True, "backend looks acceptable")):
        context = build_context(Settings(store_dir=str(tmp_path)))

    assert isinstance(context.store.encryption, LocalKeyBackend)
    assert context.store.encryption.keyring_service == "passbox-test"


def test_insecure_keyring_backend_is_reported(tmp_path, monkeypatch, caplog):
    monkeypatch.setenv("PASSBOX_KEYRING_SERVICE", "passbox-test")
    with patch(
        "passbox.context.assess_keyring_backend",
        return_value=(False, "insecure backend detected: PlaintextKeyring"),
    ) as assess, caplog.at_level(logging.WARNING, logger="passbox.context"):
        build_context(Settings(store_dir=str(tmp_path)))

    assess.assert_called_once_with()
    assert "PlaintextKeyring" in caplog.text


def test_gpg_backend_skips_keyring_check(tmp_path, monkeypatch):
    monkeypatch.delenv("PASSBOX_KEYRING_SERVICE", raising=False)
    with patch("passbox.context.assess_keyring_backend") as assess:
        build_context(Settings(store_dir=str(tmp_path)))
    assess.assert_not_called()


def test_explicit_gateways_are_used(tmp_path, fake_vcs, backend):
    context = build_context(Settings(store_dir=str(tmp_path)), encryption=backend, vcs=fake_vcs)
    assert context.store.encryption is backend
    assert context.store.vcs is fake_vcs
    assert context.monitor.vcs is fake_vcs


def test_build_context_reads_env_without_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("PASSBOX_STORE_DIR", str(tmp_path / "env-store"))
    context = build_context()
    assert context.store.locator.root == (tmp_path / "env-store").resolve()


def test_configure_logging_accepts_level_names():
    with patch("passbox.logging_config.logging.basicConfig") as basic:
        configure_logging("debug")
        assert basic.call_args.kwargs["level"] == logging.DEBUG

        configure_logging("not-a-level")
        assert basic.call_args.kwargs["level"] == logging.INFO

        configure_logging(logging.WARNING)
        assert basic.call_args.kwargs["level"] == logging.WARNING
