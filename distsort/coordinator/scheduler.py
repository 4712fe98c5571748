"""
Scheduler for the distsort coordinator.

The Scheduler is the master side of the master/worker model, responsible for:
1. Accepting worker connections on the control port and registering them
2. Partitioning a job's input, one chunk per registered worker
3. Dispatching every chunk concurrently over the worker's retained connection
4. Collecting every per-worker outcome and merging the sorted chunks
5. Probing worker liveness on request
"""

import logging
import socket
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from distsort.coordinator.liveness import ProbeResult, probe_all
from distsort.coordinator.partitioner import Chunk, partition
from distsort.coordinator.performance_monitor import PerformanceMonitor, TimeCounter
from distsort.coordinator.registry import WorkerHandle, WorkerRegistry
from distsort.coordinator.result_aggregator import ChunkResult, JobResult, ResultAggregator
from distsort.utils.errors import NoWorkersError, SerializationError, TransportError
from distsort.utils.networking import create_tcp_server, exchange_chunk

logger = logging.getLogger(__name__)

ACCEPT_POLL_SECONDS = 0.5


class Scheduler:
    """
    Coordinates sort jobs across the registered workers.
    """

    def __init__(self, config: Dict[str, Any]):
        """Initialize the scheduler with a configuration from distsort.config.load_config."""
        self.coordinator_config = config["coordinator"]
        self.network_config = config["network"]
        self.dispatch_config = config["dispatch"]
        self.liveness_config = config["liveness"]

        self.registry = WorkerRegistry()
        self.performance_monitor = PerformanceMonitor()

        # Bound port, known after start()
        self.port: Optional[int] = None

        self.running = False
        self._server_socket: Optional[socket.socket] = None
        self._server_thread: Optional[threading.Thread] = None

    def start(self):
        """Bind the control port and start accepting workers in the background."""
        if self.running:
            logger.warning("Scheduler is already running")
            return

        host = self.coordinator_config["host"]
        self._server_socket = create_tcp_server(
            host, self.coordinator_config["port"], self.coordinator_config.get("backlog", 16)
        )
        self._server_socket.settimeout(ACCEPT_POLL_SECONDS)
        self.port = self._server_socket.getsockname()[1]
        self.running = True

        self._server_thread = threading.Thread(target=self._run_server, name="accept-loop", daemon=True)
        self._server_thread.start()

        logger.info(f"Coordinator listening on {host}:{self.port}")

    def shutdown(self):
        """Stop accepting workers and close every connection."""
        if not self.running:
            return

        logger.info("Shutting down scheduler...")
        self.running = False

        if self._server_thread is not None:
            self._server_thread.join(timeout=5.0)
        if self._server_socket is not None:
            self._server_socket.close()

        # Workers see end-of-stream and exit their loops
        self.registry.close_all()
        logger.info("Scheduler shutdown complete")

    def _run_server(self):
        """Accept loop: the only place where workers get registered."""
        while self.running:
            try:
                client_socket, address = self._server_socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self.running:  # Only log if we're still supposed to be running
                    logger.error(f"Error accepting worker connection: {e}")
                    time.sleep(ACCEPT_POLL_SECONDS)
                continue

            try:
                self._configure_connection(client_socket)
            except OSError as e:
                logger.error(f"Error configuring connection from {address}: {e}")
                client_socket.close()
                continue

            self.registry.register(client_socket, address)

    def _configure_connection(self, client_socket: socket.socket):
        # Job traffic blocks without a timeout
        client_socket.settimeout(None)
        client_socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

    def list_workers(self) -> List[str]:
        """Addresses of every registered worker, in registration order."""
        return self.registry.addresses()

    def wait_for_workers(self, count: int, timeout: Optional[float] = None) -> bool:
        """
        Block until at least count workers are registered.

        Returns:
            True if enough workers registered before the timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while len(self.registry) < count:
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(0.05)
        return True

    def sort_distributed(self, items: Sequence[int]) -> List[int]:
        """
        Sort items across the registered workers.

        Returns:
            The sorted items, or an empty list if the job failed and partial
            results are not allowed
        """
        return self.run_job(items).values

    def run_job(self, items: Sequence[int]) -> JobResult:
        """
        Partition, dispatch and merge one sort job.

        Raises:
            NoWorkersError: if no worker is registered; no network I/O happens
        """
        handles = self.registry.snapshot()
        if not handles:
            raise NoWorkersError("No workers are connected.")

        job_id = uuid.uuid4().hex[:8]
        chunks = partition(items, len(handles))

        if not chunks:
            logger.info(f"Job {job_id}: empty input, nothing to dispatch")
            return JobResult(job_id=job_id, values=[])

        logger.info(f"Job {job_id}: sorting {len(items)} values in {len(chunks)} chunks "
                    f"across {len(handles)} workers")

        aggregator = ResultAggregator(len(chunks))
        communication_time = TimeCounter()
        start_time = time.perf_counter()

        max_threads = self.dispatch_config.get("max_threads") or len(chunks)
        with ThreadPoolExecutor(max_workers=min(max_threads, len(chunks)),
                                thread_name_prefix=f"job-{job_id}") as executor:
            # Chunk i goes to the i-th worker of the snapshot
            futures = [
                executor.submit(self._process_chunk, job_id, handles[chunk.index], chunk, communication_time)
                for chunk in chunks
            ]

            # Collected in submission order
            for future in futures:
                aggregator.add_result(future.result())

        allow_partial = self.dispatch_config.get("partial_results") == "partial"
        values = aggregator.merge(allow_partial=allow_partial)
        wall_time = time.perf_counter() - start_time

        result = JobResult(
            job_id=job_id,
            values=values,
            chunk_results=aggregator.ordered_results(),
            wall_time=wall_time,
            communication_time=communication_time.total
        )
        result.complete = result.ok

        self.performance_monitor.record_job(
            job_id, len(items), len(chunks), wall_time, result.communication_time, result.ok
        )

        if not result.ok:
            failed = ", ".join(f"worker {r.worker_index} ({r.address}): {r.error}" for r in result.failures)
            if allow_partial:
                logger.warning(f"Job {job_id}: returning partial result, failed chunks: {failed}")
            else:
                logger.error(f"Job {job_id} aborted, failed chunks: {failed}")

        logger.info(f"Job {job_id}: wall time {wall_time * 1000:.1f} ms, "
                    f"communication {result.communication_time * 1000:.1f} ms, "
                    f"computation {result.computation_time * 1000:.1f} ms")
        return result

    def _process_chunk(self, job_id: str, handle: WorkerHandle, chunk: Chunk,
                       communication_time: TimeCounter) -> ChunkResult:
        """Send one chunk to one worker and wait for the sorted response."""
        result = ChunkResult(chunk_index=chunk.index, worker_index=handle.index, address=handle.address)

        with handle.lock:
            started = time.perf_counter()
            try:
                values = exchange_chunk(
                    handle.connection,
                    chunk.values,
                    compress=self.network_config.get("compress", False),
                    compress_threshold=self.network_config.get("compress_threshold", 1024),
                    max_size=self.network_config["max_message_size"]
                )
                if len(values) != len(chunk):
                    raise SerializationError(
                        f"Worker returned {len(values)} values for a chunk of {len(chunk)}"
                    )
                result.values = values
            except (TransportError, SerializationError) as e:
                result.error = str(e)
            finally:
                result.round_trip_time = time.perf_counter() - started

        communication_time.add(result.round_trip_time)

        if result.ok:
            self.performance_monitor.record_round_trip(handle.index, result.round_trip_time, len(chunk))
            logger.debug(f"Job {job_id}: chunk {chunk.index} sorted by worker {handle.index} "
                         f"in {result.round_trip_time * 1000:.1f} ms")
        else:
            self.performance_monitor.record_failure(handle.index)
            logger.error(f"Job {job_id}: chunk {chunk.index} failed on worker {handle.index} "
                         f"({handle.host}:{handle.port}): {result.error}")
        return result

    def _probe_port(self) -> int:
        return self.liveness_config.get("port") or self.coordinator_config["port"]

    def probe_all(self, addresses: Optional[Iterable[str]] = None,
                  timeout: Optional[float] = None) -> Iterator[ProbeResult]:
        """
        Probe addresses (default: every registered worker) concurrently.

        Returns:
            Iterator of (address, status) in completion order
        """
        if addresses is None:
            addresses = self.registry.addresses()
        if timeout is None:
            timeout = self.liveness_config["timeout_seconds"]
        return probe_all(addresses, self._probe_port(), timeout)

    def refresh_workers(self, timeout: Optional[float] = None) -> List[Tuple[int, str, str]]:
        """
        Probe every registered worker and record the observed status.

        Returns:
            List of (worker index, address, status) in registration order
        """
        handles = self.registry.snapshot()
        unique_hosts = list(dict.fromkeys(handle.host for handle in handles))
        statuses = dict(self.probe_all(unique_hosts, timeout))

        results = []
        for handle in handles:
            status = statuses[handle.host]
            self.registry.update_status(handle.index, status)
            results.append((handle.index, handle.address, status))
        return results

    def get_worker_status(self) -> Dict[int, Dict[str, Any]]:
        """Status information about all registered workers."""
        return {
            handle.index: {
                "address": f"{handle.host}:{handle.port}",
                "status": handle.status,
                "registered_at": handle.registered_at,
                "last_probed_at": handle.last_probed_at,
                "performance_summary": self.performance_monitor.get_worker_summary(handle.index)
            }
            for handle in self.registry.snapshot()
        }
