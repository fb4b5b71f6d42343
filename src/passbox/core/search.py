"""
Search over entry paths and decrypted metadata.

All sidecars are decrypted with a single decrypt_many call instead of one
round-trip per entry. A sidecar that fails to decrypt only loses its metadata
match; the search itself carries on.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Set, Tuple

from .metadata import MetadataManager
from .models import MetadataCollection, StoreEntry
from .tree import DirectoryLister, EntryTreeBuilder, iter_secrets
from ..security.gateway import EncryptionGateway


logger = logging.getLogger(__name__)


def metadata_matches(collection: MetadataCollection, query: str) -> bool:
    """True when ``query`` (already casefolded) occurs in a key, a value or "key: value"."""
    for item in collection:
        key = item.key.casefold()
        value = item.value.casefold()
        if query in key or query in value or query in f"{key}: {value}":
            return True
    return False


class SearchEngine:
    def __init__(self, lister: DirectoryLister, encryption: EncryptionGateway, metadata: MetadataManager):
        self.lister = lister
        self.encryption = encryption
        self.metadata = metadata

    def search(self, text: str) -> List[StoreEntry]:
        """
        Return the store tree pruned to entries matching ``text``.

        Leaves get ``highlight`` when the query is in their path and
        ``has_metadata_match`` when it is in their metadata. An empty query
        returns the whole tree, unflagged.
        """
        query = (text or "").strip().casefold()
        tree = EntryTreeBuilder(self.lister).build()
        if not query:
            return tree

        matched = self._metadata_matches(query)
        return self._prune(tree, query, matched)

    def _collect_sidecars(self) -> List[Tuple[str, str]]:
        # (entry path, sidecar path) for every secret that has a sidecar
        pairs = []
        for name, sidecar in iter_secrets(self.lister):
            if sidecar is not None:
                pairs.append((name, str(self.lister.path_of(sidecar))))
        return pairs

    def _metadata_matches(self, query: str) -> Set[str]:
        pairs = self._collect_sidecars()
        if not pairs:
            return set()

        decrypted = self.encryption.decrypt_many([path for _, path in pairs])
        if len(decrypted) != len(pairs):
            logger.error(
                "decrypt_many returned %d results for %d sidecars; ignoring metadata",
                len(decrypted),
                len(pairs),
            )
            return set()

        collections: Dict[str, MetadataCollection] = {}
        for (name, _), raw in zip(pairs, decrypted):
            collection = self.metadata.parse(name, raw)
            if collection is not None:
                collections[name] = collection

        return {name for name, collection in collections.items() if metadata_matches(collection, query)}

    def _prune(self, entries: List[StoreEntry], query: str, matched: Set[str]) -> List[StoreEntry]:
        kept = []
        for entry in entries:
            if entry.is_folder:
                entry.children = self._prune(entry.children, query, matched)
                entry.highlight = query in entry.name.casefold()
                if not entry.is_empty or entry.highlight:
                    kept.append(entry)
                continue

            entry.highlight = query in entry.path.casefold()
            entry.has_metadata_match = entry.path in matched
            if entry.highlight or entry.has_metadata_match:
                kept.append(entry)
        return kept
