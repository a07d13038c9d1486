"""
Generation identifiers for bottomless.

A generation is the namespace one replicator session writes into. Its
identifier is a version-7 style UUID whose leading 48 bits hold a
*reversed* millisecond timestamp:

    encoded = FAR_FUTURE_MS - unix_ms

S3 can only list keys in ascending order. Because newer generations
encode to smaller values, an ascending listing of generation prefixes
returns the newest generation first, and "N most recent" is a listing
with MaxKeys=N.

Invariants:
    - For T1 < T2, encode_timestamp(T1) > encode_timestamp(T2)
    - decode_timestamp(encode_timestamp(T)) == T at millisecond resolution
    - The canonical text of a minted UUID sorts the same way as its
      encoded timestamp (fixed-width hex prefix)

How to change safely:
    - Never change FAR_FUTURE_SECONDS; existing buckets depend on it
    - New layouts must keep the timestamp in the most significant bits
"""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Optional, Union

from .errors import MalformedKeyError

logger = logging.getLogger(__name__)

FAR_FUTURE_SECONDS = 253370761200
FAR_FUTURE_MS = FAR_FUTURE_SECONDS * 1000

# Length of "<generation>" in canonical text form
GENERATION_TEXT_LEN = 36

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_TIMESTAMP_BITS = 48
_UUID_VERSION = 7


def _to_unix_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    delta = moment - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def encode_timestamp(moment: datetime) -> int:
    """Encode a wall-clock time as a reversed millisecond value.

    Naive datetimes are taken as UTC.

    Raises:
        ValueError: If the time is before the Unix epoch or after the
            far-future constant
    """
    unix_ms = _to_unix_ms(moment)
    if unix_ms < 0 or unix_ms > FAR_FUTURE_MS:
        raise ValueError(f"Timestamp out of range for a generation: {moment.isoformat()}")
    return FAR_FUTURE_MS - unix_ms


def decode_timestamp(encoded: int) -> datetime:
    """Inverse of encode_timestamp; returns an aware UTC datetime.

    Raises:
        MalformedKeyError: If the value cannot have been produced by
            encode_timestamp
    """
    if encoded < 0 or encoded > FAR_FUTURE_MS:
        raise MalformedKeyError(f"Encoded generation timestamp out of range: {encoded}")
    unix_ms = FAR_FUTURE_MS - encoded
    seconds, millis = divmod(unix_ms, 1000)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=millis * 1000)


class GenerationClock:
    """Mints and decodes generation identifiers.

    Example:
        >>> clock = GenerationClock()
        >>> generation = clock.mint()
        >>> clock.decode(generation)
        datetime.datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=datetime.timezone.utc)
    """

    def mint(self, now: Optional[datetime] = None) -> uuid.UUID:
        """Create a fresh generation identifier.

        Args:
            now: Creation time, defaults to the current UTC time

        Returns:
            Version-7 layout UUID with a reversed timestamp
        """
        moment = now or datetime.now(timezone.utc)
        encoded = encode_timestamp(moment)

        rand = int.from_bytes(os.urandom(10), "big")
        rand_a = rand >> 68  # 12 bits
        rand_b = rand & ((1 << 62) - 1)

        value = encoded << 80
        value |= _UUID_VERSION << 76
        value |= rand_a << 64
        value |= 0b10 << 62
        value |= rand_b
        return uuid.UUID(int=value)

    def decode(self, generation: Union[uuid.UUID, str]) -> datetime:
        """Recover the creation time of a generation.

        Raises:
            MalformedKeyError: If the identifier is not a minted generation
        """
        if not isinstance(generation, uuid.UUID):
            generation = self.parse(generation)
        elif generation.version != _UUID_VERSION:
            raise MalformedKeyError(
                f"Generation {generation} is not a version {_UUID_VERSION} identifier",
                key=str(generation),
            )
        return decode_timestamp(generation.int >> (128 - _TIMESTAMP_BITS))

    def parse(self, text: str) -> uuid.UUID:
        """Parse the canonical textual form of a generation.

        Raises:
            MalformedKeyError: If text is not a version-7 UUID
        """
        if len(text) != GENERATION_TEXT_LEN:
            raise MalformedKeyError(f"Invalid generation identifier: {text!r}", key=text)
        try:
            generation = uuid.UUID(text)
        except ValueError as e:
            raise MalformedKeyError(f"Invalid generation identifier: {text!r}", key=text) from e
        if generation.version != _UUID_VERSION:
            raise MalformedKeyError(
                f"Generation {text} is not a version {_UUID_VERSION} identifier", key=text
            )
        return generation
