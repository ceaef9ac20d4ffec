"""Textual dependency manifest frontend."""

from .parser import ManifestParser, ManifestTransformer, parse_manifest

__all__ = ['ManifestParser', 'ManifestTransformer', 'parse_manifest']
