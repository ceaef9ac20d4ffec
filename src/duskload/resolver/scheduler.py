"""
Batch Scheduler

Repeatedly picks the "ready" part of the import set, dispatches it to the
unit loader, and waits for the barrier (provide_count) to drop to zero before
computing the next batch.

A candidate namespace is ready when each of its dependencies is
- deferred or external, or
- LOADED, or
- owned by the same unit (co-unit escape: it becomes available as soon as
  the unit executes, before dependent code runs).

Re-entrancy: provide() may run synchronously inside a dispatch. Batch
requests therefore go through a work queue drained by a single driver loop;
a request made while the loop is running is only enqueued.
"""

import logging
from collections import deque
from typing import Callable, Deque, List, Optional, Set, Tuple

from .collector import PendingSet
from .registry import NamespaceDescriptor, NamespaceState, Registry, UnitDescriptor
from .unit_loader import UnitLoader
from ..shared.errors import (
    DEPENDENCY_CYCLE,
    MISSING_DEPENDENCY,
    UNIT_LOADER_FAILURE,
    DiagnosticReporter,
)
from ..shared.specifiers import Specifier

logger = logging.getLogger(__name__)


class BatchScheduler:
    """
    Computes and dispatches batches until the import set is empty.

    Attributes:
        batch_set: The batch dispatched most recently
        provide_count: Outstanding provides of dispatched units (the barrier)
        active: True while batching; False once idle, stalled or aborted
        batch_log: Keys of every dispatched batch, oldest first
    """

    def __init__(
        self,
        registry: Registry,
        import_set: PendingSet,
        unit_loader: UnitLoader,
        reporter: DiagnosticReporter,
    ):
        self.registry = registry
        self.import_set = import_set
        self.unit_loader = unit_loader
        self.reporter = reporter

        self.batch_set: List[Specifier] = []
        self.provide_count = 0
        self.active = False
        self.batch_log: List[List[str]] = []

        self._work: Deque[Callable[[], None]] = deque()
        self._draining = False
        self._batch_requested = False
        self._warned_missing: Set[Tuple[str, str]] = set()
        # Names left LOADING by a failed load; a late provide for them is not counted
        self._written_off: Set[str] = set()

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def start_or_continue(self) -> None:
        """Start batching if idle; a running scheduler picks up new entries on its next round."""
        if not self.import_set:
            return
        if not self.active:
            self.active = True
            self.request_batch()

    def request_batch(self) -> None:
        if self._batch_requested:
            return
        self._batch_requested = True
        self._work.append(self._next_batch)
        self._drain()

    def namespace_provided(self, name: str, was_loading: bool) -> None:
        """Called by the loader after a provide; only LOADING -> LOADED transitions lower the barrier."""
        if not was_loading:
            return
        if name in self._written_off:
            self._written_off.discard(name)
            return
        self.provide_count -= 1
        if self.provide_count == 0 and self.active:
            self.request_batch()

    def abort(self) -> None:
        """Drop all pending work. Units already dispatched finish on their own."""
        self.active = False
        self.import_set.clear()
        self.batch_set = []
        self._work.clear()
        self._batch_requested = False

    def _drain(self) -> None:
        if self._draining:
            return
        self._draining = True
        try:
            while self._work:
                job = self._work.popleft()
                job()
        finally:
            self._draining = False

    def _next_batch(self) -> None:
        self._batch_requested = False
        if not self.active or self.provide_count > 0:
            return
        if not self.import_set:
            logger.debug("Import set empty; scheduler idle")
            self.active = False
            return

        batch = self.compute_batch()
        if not batch:
            if self.import_set:
                logger.warning("Dependency problem! No namespace in the import set can be loaded.")
                self.compute_batch(trace=True)
            # Otherwise everything left was already loading or loaded
            self.active = False
            return

        self.dispatch(batch)
        if self.provide_count == 0:
            # Nothing to wait for: externals only, or all provides ran synchronously
            self.request_batch()

    # ------------------------------------------------------------------
    # Batch computation
    # ------------------------------------------------------------------

    def compute_batch(self, trace: bool = False) -> List[Specifier]:
        """
        Scan the import set and move ready entries into a new batch.

        Args:
            trace: Diagnostic pass; log and record every blocking pair and
                   leave the import set untouched.

        Returns:
            The ready entries (empty in trace mode)
        """
        batch: List[Specifier] = []
        for key, spec in list(self.import_set.items()):
            if spec.is_external:
                if not trace:
                    del self.import_set[key]
                    batch.append(spec)
                continue

            desc = self.registry.lookup(key)
            if desc is None or desc.state is not NamespaceState.UNLOADED:
                # Already loading/loaded (e.g. a co-unit member); never re-dispatch
                if not trace:
                    del self.import_set[key]
                continue

            blocker = self.blocking_dependency(desc)
            if blocker is None:
                if not trace:
                    del self.import_set[key]
                    batch.append(spec)
            elif trace:
                self._trace_block(desc, blocker)
        return batch

    def blocking_dependency(self, desc: NamespaceDescriptor) -> Optional[Specifier]:
        """Return the first dependency holding `desc` back, or None if it is ready."""
        for dep in desc.dependencies:
            if not dep.blocks_scheduling:
                continue
            target = self.registry.lookup(dep.name)
            if target is not None and target.is_loaded:
                continue
            if target is None or not target.is_registered:
                self._warn_missing(desc, dep)
                return dep
            if not self.registry.same_unit(desc.name, dep.name):
                return dep
        return None

    def _warn_missing(self, desc: NamespaceDescriptor, dep: Specifier) -> None:
        pair = (desc.owning_unit or desc.name, dep.name)
        if pair in self._warned_missing:
            return
        self._warned_missing.add(pair)
        logger.warning(f"{desc.owning_unit} depends on {dep.name}, which is not available.")
        self.reporter.warning(
            f"{desc.owning_unit} depends on {dep.name}, which is not available",
            MISSING_DEPENDENCY,
        )

    def _trace_block(self, desc: NamespaceDescriptor, blocker: Specifier) -> None:
        target = self.registry.lookup(blocker.name)
        blocker_unit = target.owning_unit if target is not None and target.owning_unit else blocker.name
        logger.warning(f"{desc.owning_unit} blocked by {blocker_unit} ({desc.name} needs {blocker.name})")
        self.reporter.warning(
            f"{desc.owning_unit} blocked by {blocker_unit}",
            DEPENDENCY_CYCLE,
            note=f"{desc.name} needs {blocker.name}",
            help=f"mark one edge of the cycle as deferred, e.g. '>{blocker.name}'",
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, batch: List[Specifier]) -> None:
        self.batch_set = batch
        keys = [spec.key for spec in batch]
        self.batch_log.append(keys)
        logger.info(f"Importing: {', '.join(keys)}")

        for spec in batch:
            if spec.is_external:
                unit = self.registry.ensure_external(spec.name)
            else:
                desc = self.registry.lookup(spec.name)
                unit = self.registry.lookup_unit(desc.owning_unit)
            self._dispatch_unit(unit)

    def _dispatch_unit(self, unit: UnitDescriptor) -> None:
        if unit.dispatched:
            return
        unit.dispatched = True

        # Raise the barrier before loading; the loader may provide synchronously
        loading = 0
        for name in unit.provides:
            desc = self.registry.lookup(name)
            if desc is not None and desc.owning_unit == unit.unit_id and desc.state is NamespaceState.UNLOADED:
                desc.advance(NamespaceState.LOADING)
                loading += 1
        self.provide_count += loading

        try:
            self.unit_loader.load(unit.unit_id, unit.external)
        except Exception as e:
            logger.error(f"Unit loader failed for {unit.unit_id}: {e}")
            self.reporter.error(f"unit loader failed for {unit.unit_id}: {e}", UNIT_LOADER_FAILURE)
            self._write_off(unit)

    def _write_off(self, unit: UnitDescriptor) -> None:
        """
        Release the barrier held by a unit whose load failed.

        Its names stay LOADING, so they are never dispatched again and their
        waiters keep waiting in case the unit provides after all.
        """
        stuck = []
        for name in unit.provides:
            desc = self.registry.lookup(name)
            if desc.owning_unit == unit.unit_id and desc.state is NamespaceState.LOADING and name not in self._written_off:
                stuck.append(name)
        self._written_off.update(stuck)
        self.provide_count -= len(stuck)
        if stuck:
            logger.warning(f"Not waiting for {', '.join(stuck)}")
        if self.provide_count == 0 and self.active:
            self.request_batch()

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def pending_units(self) -> List[UnitDescriptor]:
        """Distinct units owning pending namespaces, in import-set order."""
        seen: Set[str] = set()
        units: List[UnitDescriptor] = []
        for key, spec in self.import_set.items():
            if spec.is_external:
                continue
            desc = self.registry.lookup(key)
            if desc is None or desc.owning_unit is None or desc.owning_unit in seen:
                continue
            unit = self.registry.lookup_unit(desc.owning_unit)
            if unit is not None:
                seen.add(unit.unit_id)
                units.append(unit)
        return units
