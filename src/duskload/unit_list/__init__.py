"""Dependency lists: entry validation and list sources."""

from .entries import UnitEntry, parse_entries, list_directory, resolve_unit_id, is_relative_unit_id
from .sources import ListSource, FileListSource, HttpListSource, StaticListSource, AutoListSource

__all__ = [
    'UnitEntry',
    'parse_entries',
    'list_directory',
    'resolve_unit_id',
    'is_relative_unit_id',
    'ListSource',
    'FileListSource',
    'HttpListSource',
    'StaticListSource',
    'AutoListSource',
]
