"""
Liveness probing of workers.

A probe opens a fresh TCP connection, independent of any job connection, and
reports the worker online iff the connect succeeds within the timeout. Probes
never touch the registry; callers decide what to do with the status.
"""

import logging
import queue
import socket
import threading
from typing import Callable, Iterable, Iterator, Optional, Tuple

from distsort.coordinator.registry import STATUS_OFFLINE, STATUS_ONLINE

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 2.0

ProbeResult = Tuple[str, str]


def parse_address(address: str, default_port: int) -> Tuple[str, int]:
    """Split 'host', 'host:port' or '[v6]:port' into (host, port)."""
    if address.startswith('['):
        host, _, rest = address[1:].partition(']')
        if rest.startswith(':') and rest[1:].isdigit():
            return host, int(rest[1:])
        return host, default_port

    # Bare IPv6 addresses contain several colons and never a port
    if address.count(':') == 1:
        host, port = address.split(':')
        if port.isdigit():
            return host, int(port)
    return address, default_port


def probe(address: str, port: int, timeout: float = DEFAULT_PROBE_TIMEOUT) -> str:
    """
    Check whether address accepts TCP connections.

    Args:
        address: Host name or IP, optionally with ':port'
        port: Port used when address carries none
        timeout: Connect timeout in seconds

    Returns:
        STATUS_ONLINE or STATUS_OFFLINE
    """
    host, port = parse_address(address, port)
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return STATUS_ONLINE
    except (OSError, ValueError, OverflowError) as e:
        # Resolution of a malformed host name fails outside OSError
        logger.debug(f"Probe of {host}:{port} failed: {e}")
        return STATUS_OFFLINE


def probe_all(
    addresses: Iterable[str],
    port: int,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
    sink: Optional[Callable[[str, str], None]] = None
) -> Iterator[ProbeResult]:
    """
    Probe several addresses concurrently.

    Every probe runs on its own thread and is started before this function
    returns. Results are delivered through a single queue and yielded in
    completion order; sink, if given, is called from the consuming thread.

    Returns:
        Iterator of (address, status) pairs, one per address
    """
    addresses = list(addresses)
    results: "queue.Queue[ProbeResult]" = queue.Queue()

    def _run(address):
        status = STATUS_OFFLINE
        try:
            status = probe(address, port, timeout)
        except Exception as e:
            logger.error(f"Unexpected error probing {address}: {e}")
        finally:
            # Exactly one result per address
            results.put((address, status))

    for address in addresses:
        thread = threading.Thread(target=_run, args=(address,), daemon=True)
        thread.start()

    def _collect():
        for _ in range(len(addresses)):
            address, status = results.get()
            logger.info(f"Worker {address} is {status}")
            if sink is not None:
                sink(address, status)
            yield address, status

    return _collect()
