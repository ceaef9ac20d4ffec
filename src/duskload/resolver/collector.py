"""
Dependency Collector

Expands a requested namespace into the full pending set of namespaces that
still need loading.
"""

import logging
from typing import Dict, List, Optional

from .registry import NamespaceDescriptor, NamespaceState, Registry
from ..shared.errors import DiagnosticReporter, UNKNOWN_NAMESPACE
from ..shared.specifiers import SpecKind, Specifier

logger = logging.getLogger(__name__)

# Ordered set: pending key -> specifier (externals keyed with their sigil)
PendingSet = Dict[str, Specifier]


class DependencyCollector:
    """
    Depth-first expansion into the import set.

    A name is skipped if it is already pending or not UNLOADED, which is what
    terminates cycles. Deferred dependencies are still collected (the tag only
    relaxes ordering). External dependencies are added as they are and never
    expanded.

    The walk uses an explicit stack but visits in the same preorder as the
    obvious recursive version, so long chains cannot hit the recursion limit.
    """

    def __init__(self, registry: Registry, import_set: PendingSet, reporter: DiagnosticReporter):
        self.registry = registry
        self.import_set = import_set
        self.reporter = reporter

    def collect(self, name: str) -> List[str]:
        """
        Add `name` and everything it transitively needs to the import set.

        Returns:
            Keys newly added to the import set, in visit order
        """
        added: List[str] = []
        stack: List[Specifier] = [Specifier(SpecKind.NORMAL, name)]

        while stack:
            spec = stack.pop()
            if spec.is_external:
                if spec.key not in self.import_set:
                    self.import_set[spec.key] = spec
                    added.append(spec.key)
                continue

            current = spec.name
            if current in self.import_set:
                continue
            desc = self._find(current)
            if desc is None or desc.state is not NamespaceState.UNLOADED:
                continue

            self.import_set[current] = Specifier(SpecKind.NORMAL, current)
            added.append(current)
            # Reversed so the first dependency is visited first
            for dep in reversed(desc.dependencies):
                if dep.is_deferred:
                    stack.append(Specifier(SpecKind.NORMAL, dep.name))
                else:
                    stack.append(dep)

        if added:
            logger.debug(f"Collected for {name}: {', '.join(added)}")
        return added

    def _find(self, name: str) -> Optional[NamespaceDescriptor]:
        desc = self.registry.lookup(name)
        if desc is not None and (desc.is_registered or desc.state is not NamespaceState.UNLOADED):
            return desc
        logger.error(f"{name} required but not found.")
        self.reporter.error(
            f"{name} required but not found",
            UNKNOWN_NAMESPACE,
            help="register the unit that provides it with register_unit or import_list",
        )
        return None
