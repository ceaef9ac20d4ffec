"""
Unit Loaders

The mechanism that actually fetches and executes a unit is external to the
resolver. It has one capability: begin loading a unit, which eventually
calls Loader.provide once per namespace the unit owns.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import TYPE_CHECKING, Any, Callable, Deque, List, Optional

if TYPE_CHECKING:
    from .loader import Loader

logger = logging.getLogger(__name__)


class UnitLoader(ABC):
    """Begins loading a unit; completion is reported back through provide()."""

    @abstractmethod
    def load(self, unit_id: str, external: bool = False) -> None:
        """
        Start loading `unit_id`.

        Args:
            unit_id: Unit identifier, or the URL of an external resource
            external: True for external resources (no namespaces expected back)
        """
        raise NotImplementedError


class CallbackUnitLoader(UnitLoader):
    """Adapts a plain callable `fn(unit_id, external)` to the UnitLoader interface."""

    def __init__(self, fn: Callable[[str, bool], None]):
        self.fn = fn

    def load(self, unit_id: str, external: bool = False) -> None:
        self.fn(unit_id, external)


class SimulatedUnitLoader(UnitLoader):
    """
    Stands in for script execution: "running" a unit provides each namespace
    it owns, with the value produced by `value_factory(name)`.

    With immediate=True units run synchronously inside load(), which
    exercises the scheduler's re-entrancy handling. Otherwise they are queued
    and run by run_pending()/run_all(), optionally in reverse order to
    simulate out-of-order completion.
    """

    def __init__(
        self,
        loader: Optional["Loader"] = None,
        immediate: bool = False,
        reverse: bool = False,
        value_factory: Optional[Callable[[str], Any]] = None,
    ):
        self.loader = loader
        self.immediate = immediate
        self.reverse = reverse
        self.value_factory = value_factory or (lambda name: name)
        self.loaded: List[str] = []
        self.externals: List[str] = []
        self.queue: Deque[str] = deque()

    def bind(self, loader: "Loader") -> None:
        self.loader = loader

    def load(self, unit_id: str, external: bool = False) -> None:
        logger.debug(f"Simulated load of {unit_id}{' (external)' if external else ''}")
        if external:
            # External resources are fetched but never tracked as namespaces
            self.externals.append(unit_id)
            return
        self.loaded.append(unit_id)
        if self.immediate:
            self.execute(unit_id)
        else:
            self.queue.append(unit_id)

    def execute(self, unit_id: str) -> None:
        unit = self.loader.registry.lookup_unit(unit_id)
        for name in unit.provides:
            self.loader.provide(name, self.value_factory(name))

    def run_pending(self) -> int:
        """Run the units queued so far (not ones queued while running). Returns how many ran."""
        pending = list(self.queue)
        self.queue.clear()
        if self.reverse:
            pending.reverse()
        for unit_id in pending:
            self.execute(unit_id)
        return len(pending)

    def run_all(self, max_rounds: int = 10000) -> int:
        """Keep running queued units until none are left."""
        total = 0
        for _ in range(max_rounds):
            ran = self.run_pending()
            if not ran:
                break
            total += ran
        return total
