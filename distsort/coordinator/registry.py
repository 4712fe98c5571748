"""
Worker registry for the coordinator.

Tracks every worker that has connected to the control port. Membership only
grows through registration; the advisory status attached to each handle is
updated by liveness probes. Removing entries is an explicit call to evict().
"""

import logging
import socket
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

STATUS_CONNECTED = "connected"
STATUS_ONLINE = "online"
STATUS_OFFLINE = "offline"

WORKER_STATUSES = (STATUS_CONNECTED, STATUS_ONLINE, STATUS_OFFLINE)


@dataclass
class WorkerHandle:
    """The coordinator's reference to a connected worker."""
    index: int
    host: str
    port: int
    connection: socket.socket
    status: str = STATUS_CONNECTED  # connected, online, offline
    registered_at: float = field(default_factory=time.time)
    last_probed_at: Optional[float] = None
    # Held for a complete request/response exchange on the connection
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def address(self) -> str:
        return self.host

    def close(self):
        try:
            self.connection.close()
        except OSError as e:
            logger.debug(f"Error closing connection to worker {self.index}: {e}")


class WorkerRegistry:
    """Thread-safe, append-only collection of worker handles."""

    def __init__(self):
        self._handles: List[WorkerHandle] = []
        self._next_index = 0
        self._lock = threading.Lock()

    def register(self, connection: socket.socket, address: Tuple[str, int]) -> WorkerHandle:
        """
        Register a newly accepted worker connection.

        Args:
            connection: Connected socket, owned by the registry from now on
            address: (host, port) of the peer

        Returns:
            The new WorkerHandle
        """
        with self._lock:
            handle = WorkerHandle(
                index=self._next_index,
                host=address[0],
                port=address[1],
                connection=connection
            )
            self._next_index += 1
            self._handles.append(handle)
            count = len(self._handles)

        logger.info(f"Worker {handle.index} registered from {handle.host}:{handle.port} ({count} total)")
        return handle

    def snapshot(self) -> List[WorkerHandle]:
        """Point-in-time copy of the registered handles, in registration order."""
        with self._lock:
            return list(self._handles)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def addresses(self) -> List[str]:
        return [handle.address for handle in self.snapshot()]

    def get(self, index: int) -> Optional[WorkerHandle]:
        with self._lock:
            for handle in self._handles:
                if handle.index == index:
                    return handle
        return None

    def update_status(self, index: int, status: str) -> bool:
        """
        Record an observed status for a worker.

        Returns:
            True if the worker is registered
        """
        if status not in WORKER_STATUSES:
            raise ValueError(f"Unknown worker status {status!r}")

        with self._lock:
            for handle in self._handles:
                if handle.index == index:
                    handle.status = status
                    handle.last_probed_at = time.time()
                    return True
        return False

    def evict(self, predicate: Callable[[WorkerHandle], bool]) -> List[WorkerHandle]:
        """
        Remove every handle matching predicate and close its connection.

        Returns:
            The evicted handles
        """
        with self._lock:
            kept, evicted = [], []
            for handle in self._handles:
                (evicted if predicate(handle) else kept).append(handle)
            self._handles = kept

        for handle in evicted:
            handle.close()
            logger.info(f"Evicted worker {handle.index} ({handle.host}:{handle.port}, status {handle.status})")
        return evicted

    def evict_offline(self) -> List[WorkerHandle]:
        return self.evict(lambda h: h.status == STATUS_OFFLINE)

    def close_all(self):
        """Close every worker connection. Handles stay registered."""
        for handle in self.snapshot():
            handle.close()
