"""
Shared fixtures: a coordinator on an ephemeral localhost port and a factory
for in-process sort workers connected to it.
"""

import socket

import pytest

from distsort.config import load_config
from distsort.coordinator.scheduler import Scheduler
from distsort.worker.sort_worker import SortWorker


@pytest.fixture
def config():
    """Default configuration bound to an ephemeral loopback port."""
    config = load_config()
    config["coordinator"]["host"] = "127.0.0.1"
    config["coordinator"]["port"] = 0
    config["worker"]["coordinator_host"] = "127.0.0.1"
    config["worker"]["connect_timeout_seconds"] = 5.0
    return config


@pytest.fixture
def scheduler(config):
    """A running coordinator."""
    scheduler = Scheduler(config)
    scheduler.start()
    yield scheduler
    scheduler.shutdown()


@pytest.fixture
def start_workers(scheduler, config):
    """Factory that connects N sort workers and waits until they are registered."""
    workers = []

    def _start(count):
        worker_config = dict(config["worker"], coordinator_port=scheduler.port)
        started = []
        for _ in range(count):
            worker = SortWorker(worker_config, config["network"])
            assert worker.connect()
            worker.start()
            # Register one at a time so registry order matches start order
            assert scheduler.wait_for_workers(len(workers) + len(started) + 1, timeout=5.0)
            started.append(worker)
        workers.extend(started)
        return started

    yield _start

    for worker in workers:
        worker.shutdown()


@pytest.fixture
def listening_port():
    """A loopback port with a listener that never accepts."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(8)
    yield server.getsockname()[1]
    server.close()


@pytest.fixture
def closed_port():
    """A loopback port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
