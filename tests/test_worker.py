"""
Unit tests for the sort worker.

A bare listening socket plays the coordinator so each test controls exactly
what the worker receives.
"""

import socket

import pytest

from distsort.utils.errors import TransportError
from distsort.utils.networking import exchange_chunk, send_frame
from distsort.worker.sort_worker import (
    STATE_CLOSED,
    STATE_CONNECTED,
    STATE_DISCONNECTED,
    SortWorker,
    sort_chunk,
)


@pytest.fixture
def coordinator_socket():
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    server.settimeout(5.0)
    yield server
    server.close()


def _worker_config(port, **overrides):
    config = {
        "coordinator_host": "127.0.0.1",
        "coordinator_port": port,
        "connect_timeout_seconds": 2.0,
        "connect_retries": 0,
        "retry_interval_seconds": 0.0,
    }
    config.update(overrides)
    return config


@pytest.fixture
def connected(coordinator_socket):
    """A started worker and the coordinator side of its connection."""
    worker = SortWorker(_worker_config(coordinator_socket.getsockname()[1]))
    assert worker.connect()
    connection, _ = coordinator_socket.accept()
    connection.settimeout(5.0)
    worker.start()

    yield worker, connection

    connection.close()
    worker.shutdown()


def test_sort_chunk():
    assert sort_chunk([5, -3, 8, -3, 0]) == [-3, -3, 0, 5, 8]
    assert sort_chunk([]) == []


class TestSortWorker:
    """Test the worker loop against a scripted coordinator."""

    def test_initial_state(self):
        worker = SortWorker(_worker_config(5000))
        assert worker.state == STATE_DISCONNECTED

    def test_sorts_repeated_requests_on_one_connection(self, connected):
        worker, connection = connected

        assert exchange_chunk(connection, [5, 3, 8]) == [3, 5, 8]
        assert exchange_chunk(connection, [1, 9, 2]) == [1, 2, 9]
        assert exchange_chunk(connection, [-2147483648, 2147483647, 0]) == [-2147483648, 0, 2147483647]
        assert exchange_chunk(connection, []) == []
        assert worker.state == STATE_CONNECTED

    def test_end_of_stream_closes_worker(self, connected):
        worker, connection = connected
        assert exchange_chunk(connection, [2, 1]) == [1, 2]

        connection.shutdown(socket.SHUT_WR)
        worker.thread.join(timeout=5.0)

        assert not worker.thread.is_alive()
        assert worker.state == STATE_CLOSED
        assert worker.chunks_processed == 1

    def test_malformed_request_closes_worker(self, connected):
        worker, connection = connected
        send_frame(connection, b"Xgarbage")

        worker.thread.join(timeout=5.0)
        assert worker.state == STATE_CLOSED
        assert connection.recv(1) == b""

    def test_compressed_responses(self, coordinator_socket):
        worker = SortWorker(
            _worker_config(coordinator_socket.getsockname()[1]),
            {"compress": True, "compress_threshold": 16}
        )
        assert worker.connect()
        connection, _ = coordinator_socket.accept()
        worker.start()

        try:
            values = list(range(500, 0, -1))
            assert exchange_chunk(connection, values, compress=True, compress_threshold=16) == sorted(values)
        finally:
            connection.close()
            worker.shutdown()

    def test_shutdown_stops_loop(self, connected):
        worker, _ = connected
        worker.shutdown()

        assert not worker.thread.is_alive()
        assert worker.state == STATE_CLOSED


class TestConnect:
    """Test connecting to the coordinator."""

    def test_connect_failure(self, closed_port):
        worker = SortWorker(_worker_config(closed_port, connect_retries=2))

        assert not worker.connect()
        assert worker.state == STATE_DISCONNECTED

    def test_run_requires_connection(self):
        worker = SortWorker(_worker_config(5000))

        with pytest.raises(TransportError):
            worker.run()
