"""
Worker components for the distsort system.
"""

from distsort.worker.sort_worker import SortWorker, sort_chunk

__all__ = [
    "SortWorker",
    "sort_chunk"
]
