"""
List Sources

Collaborators that fetch a dependency list from somewhere and return its
validated entries. Every failure surfaces as ImportListError; sources never
touch resolver state.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from .entries import UnitEntry, parse_entries
from ..shared.errors import (
    ImportListError,
    ManifestParseError,
    LIST_FETCH_FAILURE,
    MALFORMED_LIST_ENTRY,
    MANIFEST_PARSE_ERROR,
)
from ..utils.config import (
    DEFAULT_HTTP_TIMEOUT,
    HTTP_OK_MAX,
    HTTP_OK_MIN,
    MANIFEST_SUFFIX,
)
from ..utils.io_utils import read_source_file

logger = logging.getLogger(__name__)


def _is_manifest(location: str) -> bool:
    return location.split("?", 1)[0].endswith(MANIFEST_SUFFIX)


def _decode(text: str, location: str) -> List[UnitEntry]:
    """Decode list text: `.deps` manifests via the Lark parser, everything else as JSON."""
    if _is_manifest(location):
        from ..frontend.parser import parse_manifest
        try:
            return parse_manifest(text, location)
        except ManifestParseError as e:
            raise ImportListError(f"could not parse manifest: {e.message} at {e.location}", location, MANIFEST_PARSE_ERROR) from e
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ImportListError(f"invalid JSON: {e}", location, MALFORMED_LIST_ENTRY) from e
    return parse_entries(data, location)


class ListSource(ABC):
    """Fetches a dependency list."""

    @abstractmethod
    def fetch(self, location: str) -> List[UnitEntry]:
        """
        Raises:
            ImportListError: If the list cannot be fetched or is malformed
        """
        raise NotImplementedError


class FileListSource(ListSource):
    """Reads lists from the local filesystem, relative to `root` when given."""

    def __init__(self, root: Optional[Union[Path, str]] = None):
        self.root = Path(root) if root is not None else None

    def fetch(self, location: str) -> List[UnitEntry]:
        path = Path(location)
        if self.root is not None and not path.is_absolute():
            path = self.root / path
        try:
            text = read_source_file(path)
        except OSError as e:
            raise ImportListError(f"error reading list file: {e}", location) from e
        return _decode(text, location)


class HttpListSource(ListSource):
    """Fetches lists over HTTP(S) with httpx."""

    def __init__(self, client: Optional[httpx.Client] = None, timeout: float = DEFAULT_HTTP_TIMEOUT):
        self.client = client
        self.timeout = timeout

    def fetch(self, location: str) -> List[UnitEntry]:
        try:
            if self.client is not None:
                response = self.client.get(location, follow_redirects=True)
            else:
                response = httpx.get(location, timeout=self.timeout, follow_redirects=True)
        except httpx.HTTPError as e:
            raise ImportListError(f"error getting import file, {e}", location) from e

        if not (HTTP_OK_MIN <= response.status_code <= HTTP_OK_MAX):
            raise ImportListError(
                f"error getting import file, {response.status_code} {response.reason_phrase}",
                location,
                LIST_FETCH_FAILURE,
            )
        return _decode(response.text, location)


class StaticListSource(ListSource):
    """In-memory lists keyed by location (raw tuple data or manifest text)."""

    def __init__(self, lists: Optional[Dict[str, Any]] = None):
        self.lists: Dict[str, Any] = dict(lists or {})

    def add(self, location: str, data: Any) -> None:
        self.lists[location] = data

    def fetch(self, location: str) -> List[UnitEntry]:
        if location not in self.lists:
            raise ImportListError("no such list", location)
        data = self.lists[location]
        if isinstance(data, str):
            return _decode(data, location)
        return parse_entries(data, location)


class AutoListSource(ListSource):
    """Dispatches http(s) locations to HttpListSource and the rest to FileListSource."""

    def __init__(self, http: Optional[HttpListSource] = None, files: Optional[FileListSource] = None):
        self.http = http or HttpListSource()
        self.files = files or FileListSource()

    def fetch(self, location: str) -> List[UnitEntry]:
        if location.startswith(("http://", "https://")):
            return self.http.fetch(location)
        return self.files.fetch(location)
