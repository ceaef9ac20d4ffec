"""
Dependency List Entries

The bulk list format is an array of 3-4 element tuples::

    [unit_id, provides, requires, size?]

Entries are validated as a whole before anything is registered, so a
malformed list never leaves the resolver half-populated.
"""

from dataclasses import dataclass
from typing import Any, List, Tuple

from ..shared.errors import ImportListError, MALFORMED_LIST_ENTRY
from ..utils.config import PATH_SEPARATOR, SCHEME_SEPARATOR


@dataclass(frozen=True)
class UnitEntry:
    unit_id: str
    provides: Tuple[str, ...]
    requires: Tuple[str, ...]
    size: int = 0

    def as_list(self) -> list:
        return [self.unit_id, list(self.provides), list(self.requires), self.size]

    def with_unit_id(self, unit_id: str) -> "UnitEntry":
        return UnitEntry(unit_id, self.provides, self.requires, self.size)


def _string_list(value: Any, what: str, index: int, location: str) -> Tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ImportListError(
            f"entry {index}: {what} must be a list of strings, got {value!r}",
            location,
            MALFORMED_LIST_ENTRY,
        )
    return tuple(value)


def parse_entries(data: Any, location: str = "") -> List[UnitEntry]:
    """
    Validate raw list data (as decoded from JSON).

    Raises:
        ImportListError: If the data is not a list of valid tuples
    """
    if not isinstance(data, list):
        raise ImportListError(
            f"dependency list must be an array, got {type(data).__name__}",
            location,
            MALFORMED_LIST_ENTRY,
        )

    entries: List[UnitEntry] = []
    for index, raw in enumerate(data):
        if not isinstance(raw, (list, tuple)) or len(raw) not in (3, 4):
            raise ImportListError(
                f"entry {index}: expected [unit_id, provides, requires, size?], got {raw!r}",
                location,
                MALFORMED_LIST_ENTRY,
            )
        unit_id = raw[0]
        if not isinstance(unit_id, str) or not unit_id:
            raise ImportListError(f"entry {index}: unit id must be a non-empty string", location, MALFORMED_LIST_ENTRY)
        provides = _string_list(raw[1], "provides", index, location)
        requires = _string_list(raw[2], "requires", index, location)
        size = raw[3] if len(raw) == 4 else 0
        if size is None:
            size = 0
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise ImportListError(f"entry {index}: size must be a non-negative integer", location, MALFORMED_LIST_ENTRY)
        entries.append(UnitEntry(unit_id, provides, requires, size))
    return entries


def list_directory(location: str) -> str:
    """
    Directory prefix of a list location, with trailing separator.

    >>> list_directory("http://host/game/deps.json")
    'http://host/game/'
    >>> list_directory("deps.json")
    ''
    """
    head, sep, _ = location.rpartition(PATH_SEPARATOR)
    return head + sep


def is_relative_unit_id(unit_id: str) -> bool:
    """Relative ids neither start with a separator nor carry a scheme/drive colon."""
    return SCHEME_SEPARATOR not in unit_id and not unit_id.startswith(PATH_SEPARATOR)


def resolve_unit_id(unit_id: str, base: str) -> str:
    if is_relative_unit_id(unit_id):
        return base + unit_id
    return unit_id
