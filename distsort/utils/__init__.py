"""
Utility functions for the distsort system.

This package contains the error types, the chunk codec, socket framing and
data file helpers used by both coordinator and workers.
"""

from distsort.utils.errors import (
    DistSortError,
    ConfigError,
    NoWorkersError,
    TransportError,
    SerializationError
)
from distsort.utils.networking import (
    send_frame,
    receive_frame,
    send_chunk,
    receive_chunk,
    exchange_chunk,
    get_local_ip,
    create_tcp_server
)
from distsort.utils.serialization import (
    serialize_chunk,
    deserialize_chunk
)

__all__ = [
    "DistSortError",
    "ConfigError",
    "NoWorkersError",
    "TransportError",
    "SerializationError",
    "send_frame",
    "receive_frame",
    "send_chunk",
    "receive_chunk",
    "exchange_chunk",
    "get_local_ip",
    "create_tcp_server",
    "serialize_chunk",
    "deserialize_chunk"
]
