"""
Base data models for store entries, passwords and metadata
"""

import json
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Iterator


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

CREATED_KEY = "created"
MODIFIED_KEY = "modified"


def format_timestamp(moment: datetime) -> str:
    # Sortable, second precision, local time
    return moment.strftime(TIMESTAMP_FORMAT)


class MetadataType(Enum):
    # Normal entries are user key/value pairs, Internal ones are system managed
    NORMAL = 0
    INTERNAL = 1


class Metadata:
    """
        One key/value pair attached to an entry
    """

    __slots__ = ('key', 'value', 'type')

    def __init__(self, key, value="", type=MetadataType.NORMAL):
        self.key = key
        self.value = value
        self.type = type

    @property
    def is_internal(self) -> bool:
        return self.type is MetadataType.INTERNAL

    def to_dict(self):
        """
            Convert metadata to dict
        """
        return {
            'key': self.key,
            'value': self.value,
            'type': self.type.value,
        }

    def __repr__(self):
        return f"Metadata(key={self.key!r}, type={self.type.name})"

    def __eq__(self, other):
        if not isinstance(other, Metadata):
            return NotImplemented
        return (self.key, self.value, self.type) == (other.key, other.value, other.type)


def _parse_metadata_type(raw) -> MetadataType:
    if isinstance(raw, MetadataType):
        return raw
    if isinstance(raw, str):
        name = raw.strip().upper()
        if name in MetadataType.__members__:
            return MetadataType[name]
        raw = int(raw)
    return MetadataType(raw)


def create_metadata_from_dict(data: Dict[str, Any]) -> Metadata:
    """
        Create Metadata from dict

        Accepts both the lowercase field names written by this package and the
        capitalized ones used by older stores.
    """
    key = data.get('key', data.get('Key'))
    if not isinstance(key, str):
        raise ValueError("metadata record has no key")
    value = data.get('value', data.get('Value', ''))
    raw_type = data.get('type', data.get('Type', MetadataType.NORMAL.value))
    return Metadata(key, "" if value is None else str(value), _parse_metadata_type(raw_type))


class MetadataCollection:
    """
        Ordered metadata of one entry

        Items keep their insertion order for serialization. Duplicate keys are
        tolerated; lookups act on the first item carrying the key.
    """

    __slots__ = ('name', '_items')

    def __init__(self, items: Optional[List[Metadata]] = None, name: str = ""):
        self.name = name
        self._items: List[Metadata] = list(items) if items else []

    def __iter__(self) -> Iterator[Metadata]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[Metadata]:
        """Return the first item with ``key`` or None when absent."""
        for item in self._items:
            if item.key == key:
                return item
        return None

    def set(self, key: str, value: str, type: MetadataType = MetadataType.NORMAL) -> bool:
        """
            Update the first item with ``key`` or append a new one.

            Returns True when an existing item was updated, False when appended.
        """
        item = self.get(key)
        if item is not None:
            item.value = value
            item.type = type
            return True
        self._items.append(Metadata(key, value, type))
        return False

    def set_unique(self, key: str, value: str, type: MetadataType = MetadataType.NORMAL) -> bool:
        """
            Like set(), but drops every further item carrying ``key``.

            The first occurrence keeps its position.
        """
        found = False
        kept = []
        for item in self._items:
            if item.key != key:
                kept.append(item)
            elif not found:
                item.value = value
                item.type = type
                kept.append(item)
                found = True
        if not found:
            kept.append(Metadata(key, value, type))
        self._items = kept
        return found

    def append(self, item: Metadata) -> None:
        self._items.append(item)

    def remove(self, key: str) -> bool:
        before = len(self._items)
        self._items = [m for m in self._items if m.key != key]
        return len(self._items) != before

    def normal(self) -> List[Metadata]:
        return [m for m in self._items if not m.is_internal]

    def internal(self) -> List[Metadata]:
        return [m for m in self._items if m.is_internal]

    def copy(self) -> "MetadataCollection":
        return MetadataCollection(
            [Metadata(m.key, m.value, m.type) for m in self._items], self.name
        )

    def to_json(self) -> str:
        return json.dumps([m.to_dict() for m in self._items], ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str, name: str = "") -> "MetadataCollection":
        """Parse a serialized sidecar; raises ValueError on malformed input."""
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError("metadata payload is not a list")
        items = []
        for record in data:
            if not isinstance(record, dict):
                raise ValueError("metadata record is not an object")
            items.append(create_metadata_from_dict(record))
        return cls(items, name)

    @classmethod
    def with_timestamps(cls, moment: datetime, name: str = "") -> "MetadataCollection":
        """Fresh collection holding only the internal audit stamps."""
        stamp = format_timestamp(moment)
        return cls(
            [
                Metadata(CREATED_KEY, stamp, MetadataType.INTERNAL),
                Metadata(MODIFIED_KEY, stamp, MetadataType.INTERNAL),
            ],
            name,
        )

    def __repr__(self):
        return f"MetadataCollection(name={self.name!r}, items={len(self._items)})"


class Password:
    """
        A secret value plus its metadata

        The value lives in a mutable buffer so clear() can zero it. Use it as a
        context manager to clear the value once it has been written or shown.
    """

    __slots__ = ('name', '_buffer', 'metadata')

    def __init__(self, value: str = "", name: str = "", metadata: Optional[MetadataCollection] = None):
        self.name = name
        self._buffer = bytearray(value.encode("utf-8"))
        self.metadata = metadata if metadata is not None else MetadataCollection(name=name)

    @property
    def value(self) -> str:
        return self._buffer.decode("utf-8")

    def is_empty(self) -> bool:
        return len(self._buffer) == 0

    def clear(self) -> None:
        """Zero the secret buffer and drop it."""
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._buffer = bytearray()

    def __enter__(self) -> "Password":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.clear()

    def __repr__(self):
        # never render the secret
        return f"Password(name={self.name!r}, value='***')"


class StoreEntry:
    """
        One node of the store tree: a secret (leaf) or a folder
    """

    __slots__ = ('name', 'path', 'is_folder', 'has_metadata_match', 'children', 'highlight')

    def __init__(self, name, path="", is_folder=False, has_metadata_match=False, children=None, highlight=False):
        self.name = name
        self.path = path or name
        self.is_folder = is_folder
        self.has_metadata_match = has_metadata_match
        # leaves never carry children
        self.children: List["StoreEntry"] = list(children) if (children and is_folder) else []
        self.highlight = highlight

    @property
    def is_empty(self) -> bool:
        return self.is_folder and not self.children

    def find(self, name: str) -> Optional["StoreEntry"]:
        """Return the direct child called ``name``."""
        for child in self.children:
            if child.name == name:
                return child
        return None

    def to_dict(self):
        """
            Convert entry (and its subtree) to dict
        """
        return {
            'name': self.name,
            'path': self.path,
            'is_folder': self.is_folder,
            'has_metadata_match': self.has_metadata_match,
            'highlight': self.highlight,
            'children': [child.to_dict() for child in self.children],
        }

    def __repr__(self):
        kind = "folder" if self.is_folder else "entry"
        return f"StoreEntry({kind} {self.path!r})"


class SyncStatus:
    """
        Advisory divergence between the local store and its remote
    """

    __slots__ = ('ahead', 'behind', 'checked_at')

    def __init__(self, ahead=0, behind=0, checked_at=None):
        self.ahead = ahead
        self.behind = behind
        self.checked_at = checked_at if checked_at is not None else datetime.now()

    @property
    def up_to_date(self) -> bool:
        return self.ahead == 0 and self.behind == 0

    def describe(self) -> str:
        parts = []
        if self.behind > 0:
            parts.append(f"Behind remote by {self.behind} change{'s' if self.behind > 1 else ''}")
        if self.ahead > 0:
            parts.append(f"Ahead of remote by {self.ahead} change{'s' if self.ahead > 1 else ''}")
        return " and ".join(parts) if parts else "The store is up to date"

    def to_dict(self):
        return {
            'ahead': self.ahead,
            'behind': self.behind,
            'checked_at': self.checked_at.isoformat(),
        }
