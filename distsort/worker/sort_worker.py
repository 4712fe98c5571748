"""
Sort worker for distsort.

A worker opens one outbound connection to the coordinator and keeps it for
its whole life. On that connection it repeatedly reads a chunk, sorts it and
writes it back, until the coordinator ends the stream.
"""

import logging
import socket
import threading
import time
from typing import Any, Dict, List, Optional, Sequence

from distsort.utils.errors import SerializationError, TransportError
from distsort.utils.networking import MAX_MESSAGE_SIZE, receive_chunk, send_chunk

logger = logging.getLogger(__name__)

STATE_DISCONNECTED = "disconnected"  # before the first successful connect
STATE_CONNECTED = "connected"
STATE_CLOSED = "closed"


def sort_chunk(values: Sequence[int]) -> List[int]:
    """Sort a chunk in ascending numeric order."""
    return sorted(values)


class SortWorker:
    """
    Worker side of the sort protocol.

    States: disconnected -> connected -> closed. The closed state is terminal;
    a new SortWorker is needed to reconnect.
    """

    def __init__(self, worker_config: Dict[str, Any], network_config: Optional[Dict[str, Any]] = None):
        """
        Args:
            worker_config: The "worker" configuration section
            network_config: The "network" configuration section
        """
        network_config = network_config or {}

        self.coordinator_host = worker_config["coordinator_host"]
        self.coordinator_port = worker_config["coordinator_port"]
        self.connect_timeout = worker_config.get("connect_timeout_seconds", 10.0)
        self.connect_retries = worker_config.get("connect_retries", 0)
        self.retry_interval = worker_config.get("retry_interval_seconds", 1.0)

        self.compress = network_config.get("compress", False)
        self.compress_threshold = network_config.get("compress_threshold", 1024)
        self.max_message_size = network_config.get("max_message_size", MAX_MESSAGE_SIZE)

        self.socket: Optional[socket.socket] = None
        self.state = STATE_DISCONNECTED
        self.chunks_processed = 0
        self.thread: Optional[threading.Thread] = None

    def connect(self) -> bool:
        """
        Connect to the coordinator, retrying up to connect_retries times.

        Returns:
            True if the connection succeeded
        """
        if self.state != STATE_DISCONNECTED:
            logger.warning(f"Cannot connect from state {self.state}")
            return self.state == STATE_CONNECTED

        attempts = self.connect_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                self.socket = socket.create_connection(
                    (self.coordinator_host, self.coordinator_port), timeout=self.connect_timeout
                )
            except OSError as e:
                logger.warning(f"Connection attempt {attempt}/{attempts} to coordinator at "
                               f"{self.coordinator_host}:{self.coordinator_port} failed: {e}")
                if attempt < attempts:
                    time.sleep(self.retry_interval)
                continue

            # No timeout on chunk transfer
            self.socket.settimeout(None)
            self.socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            self.state = STATE_CONNECTED
            logger.info(f"Connected to coordinator at {self.coordinator_host}:{self.coordinator_port}")
            return True

        logger.error("Could not connect to coordinator")
        return False

    def run(self):
        """Serve chunk requests until the coordinator closes the connection."""
        if self.state != STATE_CONNECTED:
            raise TransportError(f"Worker is not connected (state: {self.state})")

        try:
            while self.state == STATE_CONNECTED:
                if not self._process_next():
                    break
        finally:
            self._close()

    def _process_next(self) -> bool:
        """Handle one request. Returns False once the connection is done."""
        try:
            request = receive_chunk(self.socket, self.max_message_size)
        except (TransportError, SerializationError) as e:
            if self.state == STATE_CONNECTED:
                logger.error(f"Error reading chunk request: {e}")
            return False

        if request is None:
            logger.info("Coordinator closed connection.")
            return False

        request_id, values = request
        started = time.perf_counter()
        sorted_values = sort_chunk(values)

        try:
            send_chunk(self.socket, sorted_values, request_id,
                       self.compress, self.compress_threshold, self.max_message_size)
        except (TransportError, SerializationError) as e:
            logger.error(f"Error sending sorted chunk for request {request_id}: {e}")
            return False

        self.chunks_processed += 1
        logger.debug(f"Sorted request {request_id} ({len(values)} values) "
                     f"in {(time.perf_counter() - started) * 1000:.1f} ms")
        return True

    def start(self):
        """Run the worker loop on a background thread."""
        if self.thread is not None:
            logger.warning("Sort worker is already running")
            return

        self.thread = threading.Thread(target=self.run, name="sort-worker", daemon=True)
        self.thread.start()

    def shutdown(self):
        """Close the connection; the loop exits on its next read."""
        self._close()
        if self.thread is not None and self.thread is not threading.current_thread():
            self.thread.join(timeout=5.0)

    def _close(self):
        if self.state == STATE_CLOSED:
            return

        self.state = STATE_CLOSED
        if self.socket is not None:
            try:
                self.socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # Already disconnected
            self.socket.close()
        logger.info(f"Worker closed after {self.chunks_processed} chunks")
