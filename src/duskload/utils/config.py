"""
Configuration constants to replace magic values throughout duskload
"""

import os
import tempfile

# Specifier sigils
DEFERRED_SIGIL = ">"   # Load after the current chain (breaks ordering cycles)
EXTERNAL_SIGIL = "@"   # Remote resource, dispatched directly and never expanded

# Unit id resolution (relative ids resolve against the list's directory)
PATH_SEPARATOR = "/"
SCHEME_SEPARATOR = ":"

# Progress reporting
BYTES_PER_KIB = 1024

# List sources
DEFAULT_FILE_ENCODING = "utf-8"
MANIFEST_SUFFIX = ".deps"
DEFAULT_HTTP_TIMEOUT = 10.0  # seconds
HTTP_OK_MIN = 200
HTTP_OK_MAX = 299  # redirects are followed, never decoded

# Manifest parser (cache under temp dir to avoid cluttering project root)
DEFAULT_MANIFEST_CACHE_FILE = os.path.join(tempfile.gettempdir(), "duskload_manifest.cache")

# Error reporting
ERROR_POINTER_CHAR = "^"
