"""
Manifest Parser

Parses the textual dependency manifest (``.deps``) into UnitEntry values,
using Lark with native grammar caching.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from lark import Lark, Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken
from lark.lexer import Token

from ..shared.errors import ManifestParseError
from ..shared.source_location import SourceLocation
from ..unit_list.entries import UnitEntry
from ..utils.config import DEFAULT_MANIFEST_CACHE_FILE

logger = logging.getLogger(__name__)


def _unquote(token: Token) -> str:
    return json.loads(str(token))


@v_args(inline=True)
class ManifestTransformer(Transformer):
    """Converts the Lark parse tree to UnitEntry values"""

    def start(self, *units: UnitEntry) -> List[UnitEntry]:
        return list(units)

    def unit(self, unit_id: Token, *parts) -> UnitEntry:
        size = 0
        provides: List[str] = []
        requires: List[str] = []
        for kind, value in parts:
            if kind == "size":
                size = value
            elif kind == "provides":
                provides.extend(value)
            else:
                requires.extend(value)
        return UnitEntry(_unquote(unit_id), tuple(provides), tuple(requires), size)

    def size(self, value: Token):
        return ("size", int(value))

    def provides(self, *specs: str):
        return ("provides", list(specs))

    def requires(self, *specs: str):
        return ("requires", list(specs))

    def spec(self, token: Token) -> str:
        if token.type == "STRING":
            return _unquote(token)
        return str(token)


class ManifestParser:
    """
    Parser for ``.deps`` manifests.

    Stateless after construction; one instance can parse any number of
    manifests.
    """

    def __init__(self, cache_file: Optional[str] = DEFAULT_MANIFEST_CACHE_FILE):
        grammar_path = Path(__file__).parent / "manifest.lark"
        self.parser = Lark.open(
            str(grammar_path),
            start="start",
            parser="lalr",          # Required for caching
            cache=cache_file or False,
        )
        self.transformer = ManifestTransformer()

    def parse(self, source: str, source_file: str = "<manifest>") -> List[UnitEntry]:
        """
        Parse manifest text.

        Raises:
            ManifestParseError: With the offending line and column
        """
        try:
            tree = self.parser.parse(source)
        except UnexpectedInput as e:
            raise self._convert_error(e, source, source_file) from e
        entries = self.transformer.transform(tree)
        logger.debug(f"Parsed {len(entries)} units from {source_file}")
        return entries

    def _convert_error(self, e: UnexpectedInput, source: str, source_file: str) -> ManifestParseError:
        line = getattr(e, "line", -1)
        column = getattr(e, "column", -1)
        if line is None or line < 1:
            # End of input: point just past the last character
            lines = source.split("\n")
            line, column = len(lines), len(lines[-1]) + 1

        label = None
        if isinstance(e, UnexpectedToken) and e.token.type == "$END":
            message = "unexpected end of manifest"
            label = _expected_label(e.expected)
        elif isinstance(e, UnexpectedToken):
            message = f"unexpected token {str(e.token)!r}"
            label = _expected_label(e.expected)
        elif isinstance(e, UnexpectedCharacters):
            message = f"unexpected character {e.char!r}"
            label = _expected_label(e.allowed)
        elif isinstance(e, UnexpectedEOF):
            message = "unexpected end of manifest"
            label = _expected_label(e.expected)
        else:
            message = "invalid manifest syntax"

        location = SourceLocation(file=source_file, line=line, column=column)
        return ManifestParseError(message, location, source_code=source, label=label)


def _expected_label(expected) -> Optional[str]:
    if not expected:
        return None
    return "expected one of: " + ", ".join(sorted(str(x) for x in expected))


_default_parser: Optional[ManifestParser] = None


def parse_manifest(source: str, source_file: str = "<manifest>") -> List[UnitEntry]:
    """Parse with a shared parser instance (grammar is loaded once per process)."""
    global _default_parser
    if _default_parser is None:
        _default_parser = ManifestParser()
    return _default_parser.parse(source, source_file)
