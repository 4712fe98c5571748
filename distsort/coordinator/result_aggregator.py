"""
Result Aggregator for distsort.

Collects the outcome of every dispatched chunk, successful or not, and merges
the sorted chunks of a job into one sorted sequence with a k-way heap merge.
"""

import heapq
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class ChunkResult:
    """Outcome of sending one chunk to one worker."""
    chunk_index: int
    worker_index: int
    address: str
    values: Optional[List[int]] = None
    error: Optional[str] = None
    round_trip_time: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class JobResult:
    """Everything known about a finished sort job."""
    job_id: str
    values: List[int]
    chunk_results: List[ChunkResult] = field(default_factory=list)
    wall_time: float = 0.0
    communication_time: float = 0.0
    complete: bool = True  # False when failed chunks were left out of values

    @property
    def computation_time(self) -> float:
        # Approximation: summed per-task communication is subtracted from wall time
        return self.wall_time - self.communication_time

    @property
    def failures(self) -> List[ChunkResult]:
        return [r for r in self.chunk_results if not r.ok]

    @property
    def ok(self) -> bool:
        return not self.failures


def merge_sorted_chunks(chunks: Iterable[Sequence[int]]) -> List[int]:
    """
    Merge non-decreasing chunks into one non-decreasing list.

    The heap holds one (value, chunk index, offset) entry per non-exhausted
    chunk, so the cost is O(N log W). Inputs are not re-validated.
    """
    chunks = [chunk for chunk in chunks if len(chunk) > 0]
    heap = [(chunk[0], chunk_index, 0) for chunk_index, chunk in enumerate(chunks)]
    heapq.heapify(heap)

    merged = []
    while heap:
        value, chunk_index, offset = heap[0]
        merged.append(value)
        offset += 1
        chunk = chunks[chunk_index]
        if offset < len(chunk):
            heapq.heapreplace(heap, (chunk[offset], chunk_index, offset))
        else:
            heapq.heappop(heap)

    return merged


class ResultAggregator:
    """
    Collects per-chunk results for a single job.
    Safe to feed from several dispatch threads.
    """

    def __init__(self, expected_chunks: int):
        self.expected_chunks = expected_chunks
        self.results: Dict[int, ChunkResult] = {}
        self.lock = threading.Lock()

    def add_result(self, result: ChunkResult):
        with self.lock:
            if result.chunk_index in self.results:
                logger.warning(f"Duplicate result for chunk {result.chunk_index}, keeping the first")
                return
            self.results[result.chunk_index] = result

    def is_complete(self) -> bool:
        with self.lock:
            return len(self.results) == self.expected_chunks

    def ordered_results(self) -> List[ChunkResult]:
        with self.lock:
            return [self.results[i] for i in sorted(self.results)]

    def failures(self) -> List[ChunkResult]:
        return [r for r in self.ordered_results() if not r.ok]

    def merge(self, allow_partial: bool = False) -> List[int]:
        """
        Merge the collected chunks.

        Args:
            allow_partial: Merge successful chunks even if some failed

        Returns:
            Merged values; empty when a chunk failed and partial results are not allowed
        """
        results = self.ordered_results()
        failed = [r for r in results if not r.ok]
        missing = self.expected_chunks - len(results)

        if (failed or missing) and not allow_partial:
            return []

        if failed:
            logger.warning(
                f"Merging partial result: {len(failed)} of {self.expected_chunks} chunks missing "
                f"(workers {[r.worker_index for r in failed]})"
            )

        return merge_sorted_chunks(r.values for r in results if r.ok)
