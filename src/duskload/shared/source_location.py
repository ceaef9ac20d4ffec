"""
Source Location

Position of a construct inside a manifest file, used by parse diagnostics.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SourceLocation:
    """
    Source location (file, line, column), 1-based.

    Immutable (frozen) for hashability.
    """
    file: str
    line: int
    column: int
    end_line: int = 0
    end_column: int = 0

    def __str__(self) -> str:
        """Format as file:line:column"""
        return f"{self.file}:{self.line}:{self.column}"
