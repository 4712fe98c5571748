"""
Tests for the worker registry.
"""

import socket
import threading

import pytest

from distsort.coordinator.registry import (
    STATUS_CONNECTED,
    STATUS_OFFLINE,
    STATUS_ONLINE,
    WorkerRegistry,
)


@pytest.fixture
def registry():
    registry = WorkerRegistry()
    yield registry
    registry.close_all()


def _connection():
    """One end of a connected socket pair; the other end is returned too."""
    return socket.socketpair()


class TestRegistration:
    """Test register() and snapshot()"""

    def test_register_assigns_sequential_indexes(self, registry):
        first = registry.register(_connection()[0], ("10.0.0.1", 40001))
        second = registry.register(_connection()[0], ("10.0.0.2", 40002))

        assert (first.index, second.index) == (0, 1)
        assert first.status == STATUS_CONNECTED
        assert registry.addresses() == ["10.0.0.1", "10.0.0.2"]
        assert len(registry) == 2

    def test_snapshot_is_a_copy(self, registry):
        registry.register(_connection()[0], ("10.0.0.1", 40001))
        snapshot = registry.snapshot()
        snapshot.clear()

        registry.register(_connection()[0], ("10.0.0.2", 40002))
        assert len(registry.snapshot()) == 2

    def test_concurrent_registration(self, registry):
        """Every concurrent registration gets a distinct index."""
        barrier = threading.Barrier(20)

        def _register(i):
            barrier.wait()
            registry.register(_connection()[0], (f"10.0.0.{i}", 40000 + i))

        threads = [threading.Thread(target=_register, args=(i,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        indexes = [h.index for h in registry.snapshot()]
        assert sorted(indexes) == list(range(20))
        assert indexes == sorted(indexes)

    def test_get(self, registry):
        handle = registry.register(_connection()[0], ("10.0.0.1", 40001))

        assert registry.get(handle.index) is handle
        assert registry.get(99) is None


class TestStatus:
    """Test status updates, which never remove entries."""

    def test_update_status(self, registry):
        handle = registry.register(_connection()[0], ("10.0.0.1", 40001))

        assert registry.update_status(handle.index, STATUS_OFFLINE)
        assert handle.status == STATUS_OFFLINE
        assert handle.last_probed_at is not None
        assert len(registry) == 1

        assert registry.update_status(handle.index, STATUS_ONLINE)
        assert handle.status == STATUS_ONLINE

    def test_update_unknown_worker(self, registry):
        assert not registry.update_status(5, STATUS_ONLINE)

    def test_update_invalid_status(self, registry):
        handle = registry.register(_connection()[0], ("10.0.0.1", 40001))
        with pytest.raises(ValueError):
            registry.update_status(handle.index, "sleeping")


class TestEviction:
    """Test the explicit eviction policy."""

    def test_evict_offline(self, registry):
        offline = registry.register(_connection()[0], ("10.0.0.1", 40001))
        online = registry.register(_connection()[0], ("10.0.0.2", 40002))
        registry.update_status(offline.index, STATUS_OFFLINE)
        registry.update_status(online.index, STATUS_ONLINE)

        evicted = registry.evict_offline()

        assert evicted == [offline]
        assert registry.snapshot() == [online]
        assert offline.connection.fileno() == -1

    def test_indexes_not_reused_after_eviction(self, registry):
        first = registry.register(_connection()[0], ("10.0.0.1", 40001))
        registry.evict(lambda h: h is first)

        assert registry.register(_connection()[0], ("10.0.0.2", 40002)).index == 1

    def test_evict_nothing(self, registry):
        registry.register(_connection()[0], ("10.0.0.1", 40001))

        assert registry.evict(lambda h: False) == []
        assert len(registry) == 1
