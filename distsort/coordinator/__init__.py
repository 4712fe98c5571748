"""
Coordinator components for the distsort system.

This package contains the components of the coordinator node: the worker
registry, partitioner, scheduler, result aggregator, liveness probe and
performance monitor.
"""

from distsort.coordinator.scheduler import Scheduler
from distsort.coordinator.registry import WorkerRegistry, WorkerHandle
from distsort.coordinator.partitioner import Chunk, partition
from distsort.coordinator.result_aggregator import (
    ChunkResult,
    JobResult,
    ResultAggregator,
    merge_sorted_chunks
)
from distsort.coordinator.liveness import probe, probe_all
from distsort.coordinator.performance_monitor import PerformanceMonitor

__all__ = [
    "Scheduler",
    "WorkerRegistry",
    "WorkerHandle",
    "Chunk",
    "partition",
    "ChunkResult",
    "JobResult",
    "ResultAggregator",
    "merge_sorted_chunks",
    "probe",
    "probe_all",
    "PerformanceMonitor"
]
