"""
Remote key layout of bottomless.

    <db_name>-<generation>/<page_no zero-padded to 12 digits>   one page
    <db_name>-<generation>/db.gz                                 consolidated snapshot
    <db_name>-<generation>/.changecounter                        change counter marker
    <db_name>-<generation>/.consistent                           consistent frame marker

Generations of a database are enumerated by listing prefix
``<db_name>-`` with delimiter ``/``.
"""

from __future__ import annotations

import uuid
from typing import Union

from .errors import MalformedKeyError

PAGE_SIZE = 4096
PAGE_NO_WIDTH = 12
DELIMITER = "/"

CHANGE_COUNTER_OBJECT = ".changecounter"
CONSISTENT_FRAME_OBJECT = ".consistent"
SNAPSHOT_OBJECT = "db.gz"
METADATA_OBJECTS = frozenset({CHANGE_COUNTER_OBJECT, CONSISTENT_FRAME_OBJECT, SNAPSHOT_OBJECT})


def database_prefix(db_name: str) -> str:
    """Listing prefix under which every generation of a database groups."""
    return f"{db_name}-"


def generation_prefix(db_name: str, generation: Union[uuid.UUID, str]) -> str:
    """Prefix of every object in a generation: ``<db_name>-<generation>/``."""
    return f"{db_name}-{generation}{DELIMITER}"


def page_key(db_name: str, generation: Union[uuid.UUID, str], page_no: int) -> str:
    """Object key of one page."""
    return f"{generation_prefix(db_name, generation)}{page_no:0{PAGE_NO_WIDTH}d}"


def generation_from_prefix(db_name: str, prefix: str) -> str:
    """Extract the generation text from a ``<db_name>-<generation>/`` prefix.

    Raises:
        MalformedKeyError: If the prefix does not belong to db_name
    """
    head = database_prefix(db_name)
    if not prefix.startswith(head) or not prefix.endswith(DELIMITER):
        raise MalformedKeyError(f"Unexpected generation prefix {prefix!r} for {db_name}", key=prefix)
    return prefix[len(head) : -len(DELIMITER)]


def page_no_from_name(name: str, key: str) -> int:
    """Parse the page number part of a page key.

    Raises:
        MalformedKeyError: If name is not a 12-digit decimal number
    """
    if len(name) != PAGE_NO_WIDTH or not name.isdigit() or not name.isascii():
        raise MalformedKeyError(f"Failed to parse page number from key {key}", key=key)
    return int(name)
