"""
Loader

Public face of the resolver. Owns the registries, the pending sets and the
scheduler; one Loader is constructed per application and passed to whatever
needs to provide, require or import namespaces.

Typical use::

    loader = Loader(CallbackUnitLoader(inject_script))
    loader.import_list("game/deps.json")
    loader.import_("dusk.sgui.Pane", lambda pane: ...)

    # inside each unit, once it has executed:
    loader.provide("dusk.sgui.Pane", Pane)
"""

import logging
import re
from typing import Any, Callable, List, Optional, Pattern, Union

from .collector import DependencyCollector, PendingSet
from .registry import NamespaceState, Registry, UnitDescriptor, Waiter
from .scheduler import BatchScheduler
from .unit_loader import SimulatedUnitLoader, UnitLoader
from ..shared.errors import (
    CALLBACK_FAILURE,
    DUPLICATE_PROVIDE,
    DYNAMIC_PROVIDE,
    DiagnosticReporter,
    ImportListError,
)
from ..shared.specifiers import strip_deferred
from ..unit_list.entries import UnitEntry, list_directory, resolve_unit_id
from ..unit_list.sources import AutoListSource, ListSource
from ..utils.config import BYTES_PER_KIB

logger = logging.getLogger(__name__)

ProvideListener = Callable[[str], None]


class Loader:
    """
    Namespace resolver and batch loader.

    Args:
        unit_loader: Collaborator that starts loading units
        list_source: Where import_list fetches lists from (files and HTTP by default)
        reporter: Diagnostic sink (a fresh one by default)
    """

    def __init__(
        self,
        unit_loader: UnitLoader,
        list_source: Optional[ListSource] = None,
        reporter: Optional[DiagnosticReporter] = None,
    ):
        self.registry = Registry()
        self.reporter = reporter if reporter is not None else DiagnosticReporter()
        self.import_set: PendingSet = {}
        self.unit_loader = unit_loader
        if isinstance(unit_loader, SimulatedUnitLoader) and unit_loader.loader is None:
            unit_loader.bind(self)
        self.list_source = list_source if list_source is not None else AutoListSource()

        self.collector = DependencyCollector(self.registry, self.import_set, self.reporter)
        self.scheduler = BatchScheduler(self.registry, self.import_set, unit_loader, self.reporter)

        # Called with the namespace name after each first provide
        self.on_provide: List[ProvideListener] = []

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_unit(
        self,
        unit_id: str,
        provides: List[str],
        requires: List[str],
        size: int = 0,
    ) -> UnitDescriptor:
        """
        Declare a unit, the namespaces it provides and what it requires.

        The first unit to register a namespace owns it.
        """
        return self.registry.register_unit(unit_id, provides, requires, size)

    def import_list(
        self,
        location: str,
        callback: Optional[Callable[[List[UnitEntry]], None]] = None,
        error_callback: Optional[Callable[[ImportListError], None]] = None,
    ) -> Optional[List[UnitEntry]]:
        """
        Fetch a dependency list and register every entry in it.

        Relative unit ids are resolved against the list's own directory.

        Returns:
            The registered entries (with resolved unit ids), or None if the
            fetch failed and error_callback handled it

        Raises:
            ImportListError: If fetching or validation fails and no
                             error_callback was given
        """
        try:
            entries = self.list_source.fetch(location)
        except ImportListError as e:
            logger.error(f"Error getting import file {location}: {e}")
            self.reporter.error(str(e), e.code)
            if error_callback is not None:
                error_callback(e)
                return None
            raise

        base = list_directory(location)
        resolved = [entry.with_unit_id(resolve_unit_id(entry.unit_id, base)) for entry in entries]
        for entry in resolved:
            self.register_unit(entry.unit_id, list(entry.provides), list(entry.requires), entry.size)
        logger.debug(f"Registered {len(resolved)} units from {location}")

        if callback is not None:
            callback(resolved)
        return resolved

    # ------------------------------------------------------------------
    # provide / require / import
    # ------------------------------------------------------------------

    def provide(self, name: str, value: Any = None) -> None:
        """
        Mark `name` as loaded with `value`, run its waiters and lower the
        batch barrier.

        A second provide of the same name overwrites the value but neither
        re-runs waiters nor touches the barrier. Providing a name no unit
        registered is accepted as a dynamic registration.
        """
        desc = self.registry.lookup(name)
        if desc is None or (not desc.is_registered and desc.state is NamespaceState.UNLOADED):
            logger.debug(f"{name} provided without being registered; accepting dynamically")
            self.reporter.note(f"{name} provided without being registered", DYNAMIC_PROVIDE)
            desc = self.registry.ensure(name)

        if desc.is_loaded:
            logger.warning(f"{name} provided more than once; overwriting value")
            self.reporter.warning(f"{name} provided more than once", DUPLICATE_PROVIDE)
            desc.value = value
            return

        was_loading = desc.state is NamespaceState.LOADING
        desc.advance(NamespaceState.LOADED)
        desc.value = value

        for waiter in desc.take_waiters():
            self._call(waiter, value, name)
        for listener in list(self.on_provide):
            self._call(listener, name, name)

        self.scheduler.namespace_provided(name, was_loading)

    def require(self, name: str, on_ready: Optional[Waiter] = None) -> Any:
        """
        Declare a dependency on `name`.

        Returns the value if it is already loaded (calling on_ready
        immediately); otherwise on_ready is kept until it is provided. Does
        not itself cause anything to load.
        """
        name = strip_deferred(name)
        desc = self.registry.lookup(name)
        if desc is not None and desc.is_loaded:
            if on_ready is not None:
                self._call(on_ready, desc.value, name)
            return desc.value
        if on_ready is not None:
            self.registry.ensure(name).waiters.append(on_ready)
        return None

    # Same behaviour; documents a cyclic or deferred relationship
    suggest = require

    def import_(self, name: str, on_ready: Optional[Waiter] = None) -> Any:
        """
        Load `name` and everything it depends on.

        If it is already loaded this behaves like require. Otherwise the value
        is not available on return; on_ready is called once it is provided.
        """
        name = strip_deferred(name)
        if self.is_imported(name):
            return self.require(name, on_ready)

        if on_ready is not None:
            self.registry.ensure(name).waiters.append(on_ready)
        self.collector.collect(name)
        self.scheduler.start_or_continue()
        return None

    def import_all(self) -> None:
        logger.info("Importing everything!")
        for name in list(self.registry.registered_names()):
            self.import_(name)

    def import_match(self, pattern: Union[str, Pattern, Callable[[str], bool]]) -> List[str]:
        """
        Import every registered namespace matching `pattern`.

        Args:
            pattern: Regular expression (searched, not anchored) or predicate

        Returns:
            The matching names
        """
        if isinstance(pattern, str):
            pattern = re.compile(pattern)
        predicate = pattern.search if hasattr(pattern, "search") else pattern

        matched = [name for name in list(self.registry.registered_names()) if predicate(name)]
        for name in matched:
            self.import_(name)
        return matched

    def is_imported(self, name: str) -> bool:
        desc = self.registry.lookup(strip_deferred(name))
        return desc is not None and desc.is_loaded

    def abort(self) -> None:
        """Stop scheduling. Units already dispatched still finish and provide."""
        logger.info("Aborting import")
        self.scheduler.abort()

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    @property
    def is_batching(self) -> bool:
        return self.scheduler.active

    @property
    def provide_count(self) -> int:
        return self.scheduler.provide_count

    def pending_count(self) -> int:
        return len(self.import_set)

    def remaining_kib(self) -> int:
        """Approximate download still needed, in KiB, from the sizes units were registered with."""
        total = sum(unit.size for unit in self.scheduler.pending_units())
        return total // BYTES_PER_KIB

    # ------------------------------------------------------------------

    def _call(self, fn: Callable[[Any], None], arg: Any, name: str) -> None:
        try:
            fn(arg)
        except Exception as e:
            logger.error(f"Callback for {name} failed: {e}")
            self.reporter.error(f"callback for {name} failed: {e}", CALLBACK_FAILURE)
