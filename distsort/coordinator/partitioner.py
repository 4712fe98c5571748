"""
Input partitioning for sort jobs.

Splits the input into contiguous, near-equal chunks, at most one per worker.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence

from distsort.utils.errors import NoWorkersError


@dataclass
class Chunk:
    """A contiguous slice of a job's input, assigned to one worker."""
    index: int
    offset: int  # position of the first element in the original input
    values: List[int]

    def __len__(self):
        return len(self.values)


def chunk_size(total: int, worker_count: int) -> int:
    """Number of elements per chunk; the last chunk may hold fewer."""
    if worker_count <= 0:
        raise NoWorkersError("Cannot partition input: no workers are available")
    return max(1, math.ceil(total / worker_count))


def partition(items: Sequence[int], worker_count: int) -> List[Chunk]:
    """
    Split items into contiguous chunks, preserving element order.

    Produces min(worker_count, ceil(len(items) / size)) chunks where
    size = ceil(len(items) / worker_count). Empty input yields no chunks.

    Args:
        items: Input sequence
        worker_count: Number of workers available for the job

    Returns:
        List of chunks, chunk i destined for worker i
    """
    size = chunk_size(len(items), worker_count)

    chunks = []
    for index, offset in enumerate(range(0, len(items), size)):
        chunks.append(Chunk(index=index, offset=offset, values=list(items[offset:offset + size])))

    return chunks
