"""
Tests for input partitioning.
"""

import math

import pytest

from distsort.coordinator.partitioner import Chunk, chunk_size, partition
from distsort.utils.errors import NoWorkersError


class TestPartition:
    """Test partition()"""

    def test_three_workers_example(self):
        chunks = partition([5, 3, 8, 1, 9, 2, 7, 4, 6], 3)

        assert [c.values for c in chunks] == [[5, 3, 8], [1, 9, 2], [7, 4, 6]]
        assert [c.index for c in chunks] == [0, 1, 2]
        assert [c.offset for c in chunks] == [0, 3, 6]

    def test_last_chunk_shorter(self):
        chunks = partition(list(range(10)), 4)

        assert [len(c) for c in chunks] == [3, 3, 3, 1]

    def test_fewer_items_than_workers(self):
        """Extra workers get no chunk."""
        chunks = partition([2, 1], 5)

        assert [c.values for c in chunks] == [[2], [1]]

    def test_empty_input(self):
        assert partition([], 3) == []

    def test_no_workers(self):
        with pytest.raises(NoWorkersError):
            partition([1, 2, 3], 0)

    def test_chunks_copy_input(self):
        """Chunks do not alias the caller's list."""
        items = [3, 2, 1]
        chunks = partition(items, 1)
        chunks[0].values.sort()

        assert items == [3, 2, 1]

    @pytest.mark.parametrize("n", [0, 1, 2, 5, 9, 10, 17, 100, 1001])
    @pytest.mark.parametrize("workers", [1, 2, 3, 4, 7, 16])
    def test_partition_invariants(self, n, workers):
        """Lengths sum to n, order is kept, only the last chunk may be shorter."""
        items = list(range(n, 0, -1))
        chunks = partition(items, workers)

        assert sum(len(c) for c in chunks) == n
        assert [v for c in chunks for v in c.values] == items
        assert len(chunks) <= workers

        if n:
            size = math.ceil(n / workers)
            assert len(chunks) == min(workers, math.ceil(n / size))
            assert all(len(c) == size for c in chunks[:-1])
            assert 0 < len(chunks[-1]) <= size
            assert all(c.offset == c.index * size for c in chunks)


class TestChunkSize:

    def test_rounds_up(self):
        assert chunk_size(10, 4) == 3
        assert chunk_size(9, 3) == 3

    def test_minimum_one(self):
        assert chunk_size(0, 4) == 1

    def test_zero_workers(self):
        with pytest.raises(NoWorkersError):
            chunk_size(10, 0)


def test_chunk_len():
    assert len(Chunk(index=0, offset=0, values=[1, 2, 3])) == 3
