"""
Networking utilities for distsort.

Provides length-prefixed framing over TCP sockets so that many request/response
pairs can be exchanged over one long-lived connection. Framing never closes the
underlying socket; the connection owner decides its lifetime.
"""

import itertools
import logging
import socket
import struct
import threading
from typing import List, Optional, Sequence, Tuple

from distsort.utils.errors import SerializationError, TransportError
from distsort.utils.serialization import serialize_chunk, deserialize_chunk

logger = logging.getLogger(__name__)

# Message size constants
MAX_MESSAGE_SIZE = 100 * 1024 * 1024  # 100 MB default limit
FRAME_HEADER = struct.Struct('>Q')
HEADER_SIZE = FRAME_HEADER.size

_request_ids = itertools.count(1)
_request_ids_lock = threading.Lock()


def next_request_id() -> int:
    """Return a process-wide unique request id."""
    with _request_ids_lock:
        return next(_request_ids)


def send_frame(sock: socket.socket, payload: bytes, max_size: int = MAX_MESSAGE_SIZE):
    """
    Send one frame over a socket.

    Args:
        sock: Connected socket
        payload: Frame payload
        max_size: Maximum allowed payload size in bytes
    """
    if len(payload) > max_size:
        raise SerializationError(
            f"Message size ({len(payload)} bytes) exceeds maximum allowed size ({max_size} bytes)"
        )

    try:
        sock.sendall(FRAME_HEADER.pack(len(payload)) + payload)
    except OSError as e:
        raise TransportError(f"Error sending frame: {e}") from e


def receive_frame(sock: socket.socket, max_size: int = MAX_MESSAGE_SIZE) -> Optional[bytes]:
    """
    Receive one frame from a socket.

    Args:
        sock: Connected socket
        max_size: Maximum accepted payload size in bytes

    Returns:
        The frame payload, or None if the peer closed the stream at a frame boundary
    """
    header = recv_all(sock, HEADER_SIZE)
    if not header:
        return None
    if len(header) < HEADER_SIZE:
        raise TransportError("Connection closed while reading frame header")

    message_length = FRAME_HEADER.unpack(header)[0]
    if message_length > max_size:
        raise SerializationError(f"Incoming message too large: {message_length} bytes")

    payload = recv_all(sock, message_length)
    if len(payload) < message_length:
        raise TransportError(
            f"Connection closed mid-frame ({len(payload)} of {message_length} bytes received)"
        )
    return bytes(payload)


def recv_all(sock: socket.socket, n: int) -> bytearray:
    """
    Receive exactly n bytes from a socket.

    Args:
        sock: Socket to receive from
        n: Number of bytes to receive

    Returns:
        Received data; shorter than n only if the connection was closed
    """
    data = bytearray()
    while len(data) < n:
        try:
            packet = sock.recv(n - len(data))
        except OSError as e:
            raise TransportError(f"Error receiving data: {e}") from e
        if not packet:
            break  # Connection closed
        data.extend(packet)
    return data


def send_chunk(
    sock: socket.socket,
    values: Sequence[int],
    request_id: int,
    compress: bool = False,
    compress_threshold: int = 1024,
    max_size: int = MAX_MESSAGE_SIZE
):
    """Serialize a chunk and send it as one frame."""
    payload = serialize_chunk(values, request_id, compress, compress_threshold)
    send_frame(sock, payload, max_size)


def receive_chunk(
    sock: socket.socket,
    max_size: int = MAX_MESSAGE_SIZE
) -> Optional[Tuple[int, List[int]]]:
    """
    Receive one chunk frame.

    Returns:
        Tuple of (request id, values), or None on a clean end of stream
    """
    payload = receive_frame(sock, max_size)
    if payload is None:
        return None
    return deserialize_chunk(payload)


def exchange_chunk(
    sock: socket.socket,
    values: Sequence[int],
    compress: bool = False,
    compress_threshold: int = 1024,
    max_size: int = MAX_MESSAGE_SIZE
) -> List[int]:
    """
    Send a chunk as a request and block until the matching response arrives.

    The caller must hold exclusive use of the socket for the whole exchange.

    Returns:
        The values carried by the response
    """
    request_id = next_request_id()
    send_chunk(sock, values, request_id, compress, compress_threshold, max_size)

    response = receive_chunk(sock, max_size)
    if response is None:
        raise TransportError("Connection closed while awaiting response")

    response_id, result = response
    if response_id != request_id:
        raise SerializationError(
            f"Response correlation mismatch: expected request {request_id}, got {response_id}"
        )
    return result


def get_local_ip() -> str:
    """
    Get the local IP address.

    Returns:
        Local IP address as string
    """
    try:
        # Doesn't need to be reachable
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(('10.255.255.255', 1))
            return s.getsockname()[0]
    except OSError:
        return '127.0.0.1'


def create_tcp_server(host: str, port: int, backlog: int = 16) -> socket.socket:
    """
    Create a listening TCP server socket.

    Args:
        host: Host to bind to
        port: Port to bind to (0 picks a free port)
        backlog: Listen backlog

    Returns:
        Listening socket
    """
    server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server_socket.bind((host, port))
        server_socket.listen(backlog)
    except OSError as e:
        server_socket.close()
        logger.error(f"Error creating TCP server on {host}:{port}: {e}")
        raise
    return server_socket
