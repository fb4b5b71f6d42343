"""Small helper to build a ready PassBox store from settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import logging
import os

from passbox.core.locator import StoreLocator
from passbox.core.settings import Settings
from passbox.core.store import PasswordStore
from passbox.core.sync import SyncMonitor
from passbox.security.encryption import LocalKeyBackend
from passbox.security.gateway import EncryptionGateway
from passbox.security.gpg import GpgBackend
from passbox.security.keystore import assess_keyring_backend
from passbox.vcs.gateway import VersionControlGateway
from passbox.vcs.git import GitBackend


logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Container for runtime objects a front end needs."""

    settings: Settings
    store: PasswordStore
    monitor: SyncMonitor


def build_context(
    settings: Optional[Settings] = None,
    encryption: Optional[EncryptionGateway] = None,
    vcs: Optional[VersionControlGateway] = None,
) -> AppContext:
    """
    Wire locator, gateways and store for ``settings``.

    Encryption back end:

    - By default secrets are encrypted by the gpg executable named in
      ``settings.gpg_binary``.
    - If the environment variable ``PASSBOX_KEYRING_SERVICE`` is set, the
      local-key back end is used instead and recipient keys are looked up in
      the OS keystore under that service name.
      A warning is logged when the keyring backend does not look secure.

    The sync monitor is created but not started; front ends call
    ``context.monitor.start()`` once the store is initialized.
    """
    settings = settings or Settings.from_env()
    locator = StoreLocator(settings.store_dir)

    if encryption is None:
        keyring_service = os.getenv("PASSBOX_KEYRING_SERVICE")
        if keyring_service:
            encryption = LocalKeyBackend(keyring_service=keyring_service)
            is_secure, message = assess_keyring_backend()
            if not is_secure:
                logger.warning("Recipient keys stored in an unsafe keyring: %s", message)
        else:
            encryption = GpgBackend(binary=settings.gpg_binary, timeout=settings.command_timeout)

    if vcs is None:
        vcs = GitBackend(locator.root, binary=settings.git_binary, timeout=settings.command_timeout)

    store = PasswordStore(locator, encryption, vcs, settings=settings)
    monitor = SyncMonitor(vcs, interval=settings.fetch_interval)
    return AppContext(settings=settings, store=store, monitor=monitor)
