"""
Cache Key Builder

Derives the cache key from the normalized request fields and the two
representations derived from it (on-disk filename stem, HTTP entity tag).

Fields are joined with a plain separator and no escaping. Two tuples whose
field boundaries shift around the separator produce the same key:

    build_cache_key("A-B", "C") == build_cache_key("A", "B-C") == "A-B-C"

The key doubles as the persistent filename stem, so it must stay stable
across restarts; do not change the format without migrating the cache
directory.
"""

import re

from og_cache.core.config.constants import CACHE_KEY_SEPARATOR

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_]")
_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]")


def build_cache_key(*fields: str, separator: str = CACHE_KEY_SEPARATOR) -> str:
    """
    Join already-validated fields into a cache key.

    Example:
        >>> build_cache_key("Hello World", "Anonymous", "example.com", "light")
        'Hello World-Anonymous-example.com-light'
    """
    return separator.join(fields)


def sanitize_key(key: str) -> str:
    """Filename stem for ``key``: every character outside ``[A-Za-z0-9_-]`` becomes ``_``."""
    return _UNSAFE_FILENAME_CHARS.sub("_", key)


def entity_tag(key: str) -> str:
    """Quoted ETag value: the key with all non-alphanumeric characters removed."""
    return f'"{_NON_ALPHANUMERIC.sub("", key)}"'
