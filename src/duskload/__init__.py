"""
duskload: asynchronous namespace resolver and batch loader.

Units declare the namespaces they provide and require; the Loader works out
a safe loading order, hands units to a UnitLoader in batches, and notifies
waiters as namespaces are provided.
"""

from .resolver import (
    Loader,
    UnitLoader,
    CallbackUnitLoader,
    SimulatedUnitLoader,
    NamespaceState,
)
from .shared import (
    DiagnosticReporter,
    DuskloadError,
    ImportListError,
    ManifestParseError,
    SpecKind,
    Specifier,
    parse_specifier,
)
from .unit_list import (
    UnitEntry,
    ListSource,
    FileListSource,
    HttpListSource,
    StaticListSource,
    AutoListSource,
)

__version__ = "0.1.0"

__all__ = [
    'Loader',
    'UnitLoader',
    'CallbackUnitLoader',
    'SimulatedUnitLoader',
    'NamespaceState',
    'DiagnosticReporter',
    'DuskloadError',
    'ImportListError',
    'ManifestParseError',
    'SpecKind',
    'Specifier',
    'parse_specifier',
    'UnitEntry',
    'ListSource',
    'FileListSource',
    'HttpListSource',
    'StaticListSource',
    'AutoListSource',
]
