"""
Shared components: specifiers, diagnostics, source locations.
"""

from .source_location import SourceLocation
from .specifiers import SpecKind, Specifier, parse_specifier, parse_specifiers, strip_deferred
from .errors import (
    Diagnostic, DiagnosticReporter, Severity,
    DuskloadError, ImportListError, ManifestParseError,
)
