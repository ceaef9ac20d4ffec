"""
Namespace and Unit Registries

Pure bookkeeping for the resolver:
- namespace name -> NamespaceDescriptor (owning unit, state, dependencies,
  value, waiters)
- unit id -> UnitDescriptor (provided names, required specifiers, size,
  dispatched flag)

The first registration of a namespace owns it. Later registrations of the
same name are ignored for ownership; the registering unit still records its
own provides/requires.
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..shared.specifiers import Specifier, parse_specifiers

logger = logging.getLogger(__name__)

Waiter = Callable[[Any], None]


class NamespaceState(IntEnum):
    """Monotonic: a namespace never moves back to an earlier state."""
    UNLOADED = 0
    LOADING = 1
    LOADED = 2


@dataclass
class UnitDescriptor:
    unit_id: str
    provides: List[str] = field(default_factory=list)
    requires: List[Specifier] = field(default_factory=list)
    size: int = 0
    dispatched: bool = False
    external: bool = False

    def __str__(self) -> str:
        return f"Unit({self.unit_id}, provides={self.provides})"


@dataclass
class NamespaceDescriptor:
    """
    State of one namespace.

    owning_unit is None for placeholders: descriptors created because a
    waiter was attached (or a value provided) before any unit registered the
    name.
    """
    name: str
    owning_unit: Optional[str] = None
    state: NamespaceState = NamespaceState.UNLOADED
    dependencies: List[Specifier] = field(default_factory=list)
    value: Any = None
    waiters: List[Waiter] = field(default_factory=list)

    @property
    def is_registered(self) -> bool:
        return self.owning_unit is not None

    @property
    def is_loaded(self) -> bool:
        return self.state is NamespaceState.LOADED

    def advance(self, state: NamespaceState) -> bool:
        """Move forward to `state`; returns False (and leaves state alone) if that would go backwards."""
        if state < self.state:
            return False
        self.state = state
        return True

    def take_waiters(self) -> List[Waiter]:
        waiters, self.waiters = self.waiters, []
        return waiters


class Registry:
    """Namespace and unit registries owned by a single Loader."""

    def __init__(self):
        self.namespaces: Dict[str, NamespaceDescriptor] = {}
        self.units: Dict[str, UnitDescriptor] = {}

    def register_unit(
        self,
        unit_id: str,
        provides: List[str],
        requires: List[Any],
        size: int = 0,
    ) -> UnitDescriptor:
        """
        Record a unit and claim the namespaces it provides.

        Args:
            unit_id: Unit identifier (file path or URL)
            provides: Namespace names the unit provides
            requires: Raw dependency strings (or already parsed Specifiers)
            size: Approximate size in bytes, for progress reporting

        Returns:
            The UnitDescriptor recorded for unit_id
        """
        specs = parse_specifiers(requires)
        existing = self.units.get(unit_id)
        unit = UnitDescriptor(
            unit_id=unit_id,
            provides=list(provides),
            requires=specs,
            size=size or 0,
            dispatched=existing.dispatched if existing else False,
        )
        self.units[unit_id] = unit

        for name in provides:
            if not self.try_register(name, unit_id, specs):
                owner = self.namespaces[name].owning_unit
                logger.debug(f"{name} already provided by {owner}; ignoring registration from {unit_id}")
        logger.debug(f"Registered unit {unit_id}: provides {len(unit.provides)}, requires {len(specs)}")
        return unit

    def try_register(self, name: str, unit_id: str, dependencies: List[Specifier]) -> bool:
        """
        Claim `name` for `unit_id`.

        Returns:
            True if the unit now owns the namespace, False if another unit
            registered it first.
        """
        desc = self.namespaces.get(name)
        if desc is None:
            self.namespaces[name] = NamespaceDescriptor(
                name=name, owning_unit=unit_id, dependencies=list(dependencies)
            )
            return True
        if desc.is_registered:
            return False
        # Placeholder created by an early require/provide; keep its waiters and state
        desc.owning_unit = unit_id
        desc.dependencies = list(dependencies)
        return True

    def lookup(self, name: str) -> Optional[NamespaceDescriptor]:
        return self.namespaces.get(name)

    def lookup_registered(self, name: str) -> Optional[NamespaceDescriptor]:
        """Like lookup, but placeholders count as missing."""
        desc = self.namespaces.get(name)
        if desc is None or not desc.is_registered:
            return None
        return desc

    def lookup_unit(self, unit_id: str) -> Optional[UnitDescriptor]:
        return self.units.get(unit_id)

    def ensure(self, name: str) -> NamespaceDescriptor:
        """Return the descriptor for `name`, creating an unowned placeholder if needed."""
        desc = self.namespaces.get(name)
        if desc is None:
            logger.debug(f"Creating placeholder descriptor for unregistered namespace {name}")
            desc = NamespaceDescriptor(name=name)
            self.namespaces[name] = desc
        return desc

    def ensure_external(self, url: str) -> UnitDescriptor:
        """External resources are units that provide nothing."""
        unit = self.units.get(url)
        if unit is None:
            unit = UnitDescriptor(unit_id=url, external=True)
            self.units[url] = unit
        return unit

    def registered_names(self) -> Iterator[str]:
        """Registered namespace names, in registration order (placeholders skipped)."""
        return (name for name, desc in list(self.namespaces.items()) if desc.is_registered)

    def same_unit(self, a: str, b: str) -> bool:
        da, db = self.namespaces.get(a), self.namespaces.get(b)
        if da is None or db is None or not da.is_registered:
            return False
        return da.owning_unit == db.owning_unit

    def __contains__(self, name: str) -> bool:
        return self.lookup_registered(name) is not None

    def __len__(self) -> int:
        return sum(1 for _ in self.registered_names())
