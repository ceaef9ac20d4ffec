"""
Dependency Specifiers

A unit's `requires` list mixes plain namespace names with two sigils:

- ``>name``: deferred; the dependency is still loaded, but never blocks
  scheduling of the dependent (used to break ordering cycles)
- ``@url``: external resource outside the namespace system; dispatched
  directly to the unit loader and never expanded

Sigils are parsed once, at registration, into a tagged Specifier.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List

from ..utils.config import DEFERRED_SIGIL, EXTERNAL_SIGIL


class SpecKind(Enum):
    NORMAL = "normal"
    DEFERRED = "deferred"
    EXTERNAL = "external"


@dataclass(frozen=True)
class Specifier:
    kind: SpecKind
    name: str

    @property
    def is_deferred(self) -> bool:
        return self.kind is SpecKind.DEFERRED

    @property
    def is_external(self) -> bool:
        return self.kind is SpecKind.EXTERNAL

    @property
    def blocks_scheduling(self) -> bool:
        """Only plain dependencies can hold a namespace back from a batch."""
        return self.kind is SpecKind.NORMAL

    @property
    def key(self) -> str:
        """Pending-set key; external resources keep their sigil so they never collide with names."""
        if self.kind is SpecKind.EXTERNAL:
            return EXTERNAL_SIGIL + self.name
        return self.name

    def __str__(self) -> str:
        if self.kind is SpecKind.DEFERRED:
            return DEFERRED_SIGIL + self.name
        if self.kind is SpecKind.EXTERNAL:
            return EXTERNAL_SIGIL + self.name
        return self.name


def parse_specifier(raw: str) -> Specifier:
    """
    Parse a raw dependency string.

    >>> parse_specifier(">dusk.sgui.Group")
    Specifier(kind=<SpecKind.DEFERRED: 'deferred'>, name='dusk.sgui.Group')
    """
    if isinstance(raw, Specifier):
        return raw
    if raw.startswith(DEFERRED_SIGIL):
        return Specifier(SpecKind.DEFERRED, raw[len(DEFERRED_SIGIL):])
    if raw.startswith(EXTERNAL_SIGIL):
        return Specifier(SpecKind.EXTERNAL, raw[len(EXTERNAL_SIGIL):])
    return Specifier(SpecKind.NORMAL, raw)


def parse_specifiers(raw: Iterable[str]) -> List[Specifier]:
    return [parse_specifier(r) for r in raw]


def strip_deferred(name: str) -> str:
    """Namespace names passed to require/import may carry a deferred sigil."""
    if name.startswith(DEFERRED_SIGIL):
        return name[len(DEFERRED_SIGIL):]
    return name
