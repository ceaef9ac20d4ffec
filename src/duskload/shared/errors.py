"""
Diagnostics and Errors

Resolver failures are recovered locally: they are logged and recorded as
diagnostics on a DiagnosticReporter, never raised into the scheduler.
Exceptions are reserved for collaborator failures surfaced to the caller
(list fetching, manifest parsing).
"""

import os
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from .source_location import SourceLocation
from ..utils.config import ERROR_POINTER_CHAR


# ---------------------------------------------------------------------------
# Diagnostic codes
# ---------------------------------------------------------------------------

UNKNOWN_NAMESPACE = "L0001"
MISSING_DEPENDENCY = "L0002"
DEPENDENCY_CYCLE = "L0003"
DUPLICATE_PROVIDE = "L0004"
DYNAMIC_PROVIDE = "L0005"
CALLBACK_FAILURE = "L0006"
UNIT_LOADER_FAILURE = "L0007"
LIST_FETCH_FAILURE = "L0101"
MALFORMED_LIST_ENTRY = "L0102"
MANIFEST_PARSE_ERROR = "L0201"


# ---------------------------------------------------------------------------
# ANSI color helpers (disabled when NO_COLOR is set or DUSKLOAD_COLOR is off)
# ---------------------------------------------------------------------------

def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    explicit = os.environ.get("DUSKLOAD_COLOR", "").lower()
    if explicit in ("0", "false", "no", "never"):
        return False
    return True

_BOLD   = "\033[1m"
_RED    = "\033[31m"
_BLUE   = "\033[34m"
_CYAN   = "\033[36m"
_YELLOW = "\033[33m"
_RESET  = "\033[0m"

def _style(text: str, *codes: str, color: bool = True) -> str:
    if not color:
        return text
    prefix = "".join(codes)
    return f"{prefix}{text}{_RESET}" if prefix else text


# ---------------------------------------------------------------------------
# Diagnostic dataclass
# ---------------------------------------------------------------------------

class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"


_SEVERITY_COLOR = {
    Severity.ERROR: _RED,
    Severity.WARNING: _YELLOW,
    Severity.NOTE: _CYAN,
}


@dataclass
class Diagnostic:
    """A single recorded resolver or list problem."""
    message: str
    location: Optional[SourceLocation] = None
    code: Optional[str] = None
    severity: Severity = Severity.ERROR
    help: Optional[str] = None
    note: Optional[str] = None
    label: Optional[str] = None


# ---------------------------------------------------------------------------
# Formatting engine
# ---------------------------------------------------------------------------

def _format_diagnostic(
    diagnostic: Diagnostic,
    source_files: Dict[str, str],
    color: bool = False,
) -> str:
    """
    Render a single diagnostic in rustc style.

    Example output (plain, no color)::

        error[L0201]: unexpected token '}'
         --> deps/game.deps:3:5
          |
        3 |     }
          |     ^ expected ';'
    """
    out: List[str] = []
    sev = diagnostic.severity
    code_str = f"[{diagnostic.code}]" if diagnostic.code else ""
    out.append(
        _style(f"{sev.value}{code_str}", _BOLD, _SEVERITY_COLOR[sev], color=color)
        + _style(f": {diagnostic.message}", _BOLD, color=color)
    )

    loc = diagnostic.location
    if loc is None:
        _append_annotations(out, diagnostic, 1, color)
        return "\n".join(out)

    source = source_files.get(loc.file)
    src_lines = source.split("\n") if source is not None else []
    if not (1 <= loc.line <= len(src_lines)):
        out.append(_style(" --> ", _BOLD, _BLUE, color=color) + str(loc))
        _append_annotations(out, diagnostic, 1, color)
        return "\n".join(out)

    gw = len(str(loc.line))
    code_line = src_lines[loc.line - 1]
    col_start = max(loc.column, 1) - 1
    if loc.end_line in (0, loc.line) and loc.end_column > loc.column:
        span_len = loc.end_column - loc.column
    else:
        span_len = _guess_span(code_line, col_start)

    out.append(_style(" " * gw + "--> ", _BOLD, _BLUE, color=color) + str(loc))
    out.append(_style(" " * (gw + 1) + "|", _BOLD, _BLUE, color=color))
    out.append(_style(f"{loc.line} | ", _BOLD, _BLUE, color=color) + code_line)
    label_suffix = f" {diagnostic.label}" if diagnostic.label else ""
    carets = " " * col_start + ERROR_POINTER_CHAR * max(1, span_len)
    out.append(
        _style(" " * (gw + 1) + "| ", _BOLD, _BLUE, color=color)
        + _style(carets + label_suffix, _BOLD, _SEVERITY_COLOR[sev], color=color)
    )
    _append_annotations(out, diagnostic, gw, color)
    return "\n".join(out)


def _guess_span(code_line: str, col_start: int) -> int:
    """Guess token length when end_column is unavailable."""
    if col_start >= len(code_line):
        return 1
    length = 0
    for ch in code_line[col_start:]:
        if ch in (" ", "\t", ";", ",", "{", "}"):
            break
        length += 1
    return max(1, length)


def _append_annotations(out: List[str], diagnostic: Diagnostic, gw: int, color: bool) -> None:
    if not (diagnostic.help or diagnostic.note):
        return
    pad = " " * (gw + 1)
    out.append(_style(f"{pad}|", _BOLD, _BLUE, color=color))
    if diagnostic.help:
        out.append(
            _style(f"{pad}= ", _BOLD, _CYAN, color=color)
            + _style("help: ", _BOLD, color=color)
            + diagnostic.help
        )
    if diagnostic.note:
        out.append(
            _style(f"{pad}= ", _BOLD, _CYAN, color=color)
            + _style("note: ", _BOLD, color=color)
            + diagnostic.note
        )


# ---------------------------------------------------------------------------
# DiagnosticReporter
# ---------------------------------------------------------------------------

class DiagnosticReporter:
    """
    Collects the diagnostics of one loader and formats them.

    Recording a diagnostic never raises; callers log alongside it.
    """

    def __init__(self, source_files: Optional[Dict[str, str]] = None):
        self.source_files: Dict[str, str] = source_files if source_files is not None else {}
        self.diagnostics: List[Diagnostic] = []

    def report(
        self,
        message: str,
        code: Optional[str] = None,
        severity: Severity = Severity.ERROR,
        location: Optional[SourceLocation] = None,
        help: Optional[str] = None,
        note: Optional[str] = None,
        label: Optional[str] = None,
    ) -> Diagnostic:
        diagnostic = Diagnostic(
            message=message,
            location=location,
            code=code,
            severity=severity,
            help=help,
            note=note,
            label=label,
        )
        self.diagnostics.append(diagnostic)
        return diagnostic

    def error(self, message: str, code: Optional[str] = None, **kwargs) -> Diagnostic:
        return self.report(message, code, Severity.ERROR, **kwargs)

    def warning(self, message: str, code: Optional[str] = None, **kwargs) -> Diagnostic:
        return self.report(message, code, Severity.WARNING, **kwargs)

    def note(self, message: str, code: Optional[str] = None, **kwargs) -> Diagnostic:
        return self.report(message, code, Severity.NOTE, **kwargs)

    def with_code(self, code: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.code == code]

    def has_errors(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self.diagnostics)

    def format_diagnostic(self, diagnostic: Diagnostic, color: Optional[bool] = None) -> str:
        use_color = color if color is not None else _use_color()
        return _format_diagnostic(diagnostic, self.source_files, color=use_color)

    def format_all(self, color: Optional[bool] = None) -> str:
        return "\n\n".join(self.format_diagnostic(d, color=color) for d in self.diagnostics)

    def print_diagnostics(self) -> None:
        color = _use_color()
        for diagnostic in self.diagnostics:
            print(self.format_diagnostic(diagnostic, color=color), file=sys.stderr)


# ============================================================================
# Exception Classes
# ============================================================================

class DuskloadError(Exception):
    """Base exception for all duskload errors"""
    def __init__(self, message: str, location: Optional[SourceLocation] = None):
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self):
        if self.location:
            return f"{self.message}\n --> {self.location}"
        return self.message


class ImportListError(DuskloadError):
    """
    A dependency list could not be fetched or is malformed.

    Raised before any entry of the list is registered, so the resolver is
    left as it was.
    """
    def __init__(self, message: str, location: str = "", code: str = LIST_FETCH_FAILURE):
        super().__init__(message)
        self.list_location = location
        self.code = code

    def __str__(self):
        where = f" ({self.list_location})" if self.list_location else ""
        return f"[{self.code}] {self.message}{where}"


class ManifestParseError(DuskloadError):
    """Syntax error in a textual dependency manifest, rendered with a snippet."""
    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        source_code: Optional[str] = None,
        label: Optional[str] = None,
    ):
        super().__init__(message, location)
        self.source_code = source_code
        self.label_text = label

    def __str__(self):
        source_files: Dict[str, str] = {}
        if self.source_code is not None and self.location:
            source_files[self.location.file] = self.source_code
        diagnostic = Diagnostic(
            message=self.message,
            location=self.location,
            code=MANIFEST_PARSE_ERROR,
            label=self.label_text,
        )
        return _format_diagnostic(diagnostic, source_files, color=_use_color())
