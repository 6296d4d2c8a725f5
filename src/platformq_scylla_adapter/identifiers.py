"""Identifier generation and parsing"""

import time
from typing import Any
from uuid import UUID, uuid4

from cassandra.util import uuid_from_time

from .exceptions import InvalidIdentifierFormat

UUID_KIND = "uuid"
TIMEUUID_KIND = "timeuuid"


def generate(kind: str = UUID_KIND) -> UUID:
    """Generate a new identifier.

    ``uuid`` columns get a random (v4) UUID, ``timeuuid`` columns a
    time-ordered (v1) UUID built from the current clock.
    """
    if kind == TIMEUUID_KIND:
        return uuid_from_time(time.time())
    if kind == UUID_KIND:
        return uuid4()
    raise ValueError(f"Unsupported identifier kind: {kind}")


def parse(value: Any) -> UUID:
    """Parse a textual identifier into a UUID"""
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str):
        raise InvalidIdentifierFormat(value)
    try:
        return UUID(value.strip())
    except ValueError:
        raise InvalidIdentifierFormat(value) from None
