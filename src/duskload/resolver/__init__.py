"""Namespace resolver: registries, dependency collection, batch scheduling."""

from .registry import Registry, NamespaceDescriptor, NamespaceState, UnitDescriptor
from .collector import DependencyCollector
from .scheduler import BatchScheduler
from .unit_loader import UnitLoader, CallbackUnitLoader, SimulatedUnitLoader
from .loader import Loader

__all__ = [
    'Registry',
    'NamespaceDescriptor',
    'NamespaceState',
    'UnitDescriptor',
    'DependencyCollector',
    'BatchScheduler',
    'UnitLoader',
    'CallbackUnitLoader',
    'SimulatedUnitLoader',
    'Loader',
]
