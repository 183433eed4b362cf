"""Sortable unique row identifiers.

An identifier is 12 bytes rendered as 24 lowercase hex characters:

    4 bytes  unix time in seconds, big-endian
    5 bytes  random value chosen once per process
    3 bytes  counter seeded randomly, wrapping at 0xFFFFFF

Identifiers created in different seconds sort by creation time, and the counter
keeps identifiers created within the same second distinct.
"""

import os
import time
import secrets
import threading
from datetime import datetime, timezone

COUNTER_MODULUS = 0xFFFFFF

_PROCESS_UNIQUE = os.urandom(5)
_counter = secrets.randbelow(COUNTER_MODULUS)
_lock = threading.Lock()


def _next_counter() -> int:
    global _counter
    with _lock:
        _counter = (_counter + 1) % COUNTER_MODULUS
        return _counter


def new_id() -> str:
    timestamp = int(time.time()).to_bytes(4, "big")
    counter = _next_counter().to_bytes(3, "big")
    return (timestamp + _PROCESS_UNIQUE + counter).hex()


def id_timestamp(value: str) -> datetime:
    """Return the creation time embedded in an identifier"""
    if len(value) != 24:
        raise ValueError(f"Identifier must be 24 hex characters, got {len(value)}")
    seconds = int(value[:8], 16)
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
