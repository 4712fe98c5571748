"""
Serialization utilities for distsort.

Converts a chunk of signed 32-bit integers into the payload carried by a wire
frame and back. The payload layout is:

    flag (1 byte: b'N' plain, b'C' zlib) | request id (>Q) | count (>I) | count * >i4
"""

import logging
import struct
import zlib
from typing import List, Sequence, Tuple

import numpy as np

from distsort.utils.errors import SerializationError

logger = logging.getLogger(__name__)

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1

BODY_HEADER = struct.Struct('>QI')
WIRE_DTYPE = np.dtype('>i4')

FLAG_PLAIN = b'N'
FLAG_COMPRESSED = b'C'


def _to_int32_array(values: Sequence[int]) -> np.ndarray:
    """Validate that values are integers within int32 range and convert them."""
    if isinstance(values, np.ndarray):
        array = values
    else:
        values = list(values)
        if not values:
            return np.empty(0, dtype=WIRE_DTYPE)
        array = np.asarray(values)

    if array.ndim != 1:
        raise SerializationError(f"Expected a flat sequence of integers, got shape {array.shape}")

    if array.size == 0:
        return np.empty(0, dtype=WIRE_DTYPE)

    # Object arrays show up for ints that do not fit int64
    if array.dtype.kind not in 'iu':
        raise SerializationError(f"Chunk must contain only integers (got dtype {array.dtype})")

    low, high = int(array.min()), int(array.max())
    if low < INT32_MIN or high > INT32_MAX:
        raise SerializationError(
            f"Chunk values must be within [{INT32_MIN}, {INT32_MAX}], got range [{low}, {high}]"
        )

    return array.astype(WIRE_DTYPE)


def serialize_chunk(
    values: Sequence[int],
    request_id: int = 0,
    compress: bool = False,
    compress_threshold: int = 1024
) -> bytes:
    """
    Serialize a chunk to a frame payload.

    Args:
        values: Ordered sequence of signed 32-bit integers
        request_id: Correlation id echoed back by the peer
        compress: Whether to compress the body when it is large
        compress_threshold: Minimum body size in bytes before compression applies

    Returns:
        Payload bytes ready to be framed
    """
    array = _to_int32_array(values)

    try:
        header = BODY_HEADER.pack(request_id, array.size)
    except struct.error as e:
        raise SerializationError(f"Invalid request id {request_id!r}: {e}") from e

    body = header + array.tobytes()

    if compress and len(body) > compress_threshold:
        return FLAG_COMPRESSED + zlib.compress(body)
    return FLAG_PLAIN + body


def deserialize_chunk(payload: bytes) -> Tuple[int, List[int]]:
    """
    Deserialize a frame payload.

    Args:
        payload: Bytes produced by serialize_chunk

    Returns:
        Tuple of (request id, list of integers)
    """
    if not payload:
        raise SerializationError("Empty payload")

    flag = payload[0:1]
    body = payload[1:]

    if flag == FLAG_COMPRESSED:
        try:
            body = zlib.decompress(body)
        except zlib.error as e:
            raise SerializationError(f"Corrupt compressed payload: {e}") from e
    elif flag != FLAG_PLAIN:
        raise SerializationError(f"Unknown payload flag {flag!r}")

    if len(body) < BODY_HEADER.size:
        raise SerializationError(f"Truncated payload header ({len(body)} bytes)")

    request_id, count = BODY_HEADER.unpack_from(body)
    expected = BODY_HEADER.size + count * WIRE_DTYPE.itemsize
    if len(body) != expected:
        raise SerializationError(
            f"Payload length mismatch: header announces {count} values ({expected} bytes), got {len(body)} bytes"
        )

    values = np.frombuffer(body, dtype=WIRE_DTYPE, count=count, offset=BODY_HEADER.size)
    return request_id, values.tolist()
