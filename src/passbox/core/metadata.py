from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from .exceptions import DecryptFailedError
from .locator import StoreLocator
from .models import (
    MODIFIED_KEY,
    MetadataCollection,
    MetadataType,
    format_timestamp,
)
from ..security.gateway import EncryptionGateway


logger = logging.getLogger(__name__)


class MetadataManager:
    """ Reads and writes the encrypted metadata sidecar of store entries. """

    def __init__(
        self,
        locator: StoreLocator,
        encryption: EncryptionGateway,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.locator = locator
        self.encryption = encryption
        self.clock = clock or datetime.now

    def exists(self, name: str) -> bool:
        return self.locator.metadata_path(name).exists()

    def retrieve(self, name: str) -> MetadataCollection:
        """
        Return the metadata of ``name``.

        Without a sidecar the collection is synthesized with created/modified
        set to now; nothing is written.
        """
        path = self.locator.metadata_path(name)
        if not path.exists():
            return MetadataCollection.with_timestamps(self.clock(), name)

        raw = self.encryption.decrypt(path)
        try:
            return MetadataCollection.from_json(raw, name)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            logger.error("Unable to deserialize metadata of %s: %s", name, e)
            raise DecryptFailedError(f"Unable to deserialize metadata of '{name}': {e}") from e

    def parse(self, name: str, raw: Optional[str]) -> Optional[MetadataCollection]:
        """Deserialize an already decrypted sidecar; None when absent or malformed."""
        if not raw:
            return None
        try:
            return MetadataCollection.from_json(raw, name)
        except ValueError as e:
            logger.warning("Unable to deserialize metadata of %s: %s", name, e)
            return None

    def write(self, name: str, collection: MetadataCollection) -> None:
        """Encrypt ``collection`` into the sidecar of ``name`` verbatim."""
        path = self.locator.metadata_path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.encryption.encrypt(path, collection.to_json(), self.locator.get_store_id())

    def create(self, name: str) -> MetadataCollection:
        """Write a fresh sidecar holding only the created/modified stamps."""
        collection = MetadataCollection.with_timestamps(self.clock(), name)
        self.write(name, collection)
        return collection

    def touch(self, name: str, collection: Optional[MetadataCollection] = None) -> MetadataCollection:
        """
        Refresh the modified stamp of ``name`` and write the sidecar.

        ``collection`` is used as-is when the caller already holds it,
        otherwise the current sidecar is loaded first.
        """
        if collection is None:
            collection = self.retrieve(name)

        # exactly one internal modified stamp survives
        collection.set_unique(MODIFIED_KEY, format_timestamp(self.clock()), MetadataType.INTERNAL)

        self.write(name, collection)
        return collection
