"""
Performance Monitor for distsort.

Tracks per-worker round-trip times and per-job timing so that slow or
flaky workers can be spotted from the coordinator.
"""

import logging
import threading
import time
from collections import defaultdict, deque
from typing import Any, Dict

import numpy as np

logger = logging.getLogger(__name__)


class TimeCounter:
    """Update-only accumulator of elapsed seconds, shared by dispatch threads."""

    def __init__(self):
        self._total = 0.0
        self._lock = threading.Lock()

    def add(self, seconds: float):
        with self._lock:
            self._total += seconds

    @property
    def total(self) -> float:
        with self._lock:
            return self._total


class PerformanceMonitor:
    """
    Keeps a bounded history of round-trip times per worker and of job timings.
    """

    def __init__(self, metrics_history_size: int = 100):
        """
        Initialize the performance monitor.

        Args:
            metrics_history_size: Number of samples kept per worker and for jobs
        """
        self.metrics_history_size = metrics_history_size
        self.round_trips = defaultdict(lambda: deque(maxlen=metrics_history_size))
        self.failures = defaultdict(int)
        self.jobs = deque(maxlen=metrics_history_size)
        self.lock = threading.RLock()
        self.start_time = time.time()

    def record_round_trip(self, worker_index: int, seconds: float, elements: int = 0):
        with self.lock:
            self.round_trips[worker_index].append((seconds, elements))

    def record_failure(self, worker_index: int):
        with self.lock:
            self.failures[worker_index] += 1

    def record_job(self, job_id: str, elements: int, chunks: int, wall_time: float,
                   communication_time: float, ok: bool):
        with self.lock:
            self.jobs.append({
                'job_id': job_id,
                'elements': elements,
                'chunks': chunks,
                'wall_time': wall_time,
                'communication_time': communication_time,
                'computation_time': wall_time - communication_time,
                'ok': ok,
                'timestamp': time.time()
            })

    def get_worker_summary(self, worker_index: int) -> Dict[str, Any]:
        """Summarize round-trip statistics for one worker."""
        with self.lock:
            samples = list(self.round_trips.get(worker_index, ()))
            failures = self.failures.get(worker_index, 0)

        if not samples:
            return {'samples': 0, 'failures': failures}

        times = np.array([s[0] for s in samples])
        elements = np.array([s[1] for s in samples])
        total_time = float(times.sum())

        return {
            'samples': len(samples),
            'failures': failures,
            'avg_round_trip': float(np.mean(times)),
            'p95_round_trip': float(np.percentile(times, 95)),
            'max_round_trip': float(np.max(times)),
            'elements_per_second': float(elements.sum() / total_time) if total_time > 0 else 0.0
        }

    def get_current_metrics(self) -> Dict[str, Any]:
        """Snapshot of all tracked metrics."""
        with self.lock:
            worker_indexes = set(self.round_trips) | set(self.failures)
            jobs = list(self.jobs)

        metrics = {
            'uptime': time.time() - self.start_time,
            'worker_metrics': {i: self.get_worker_summary(i) for i in sorted(worker_indexes)},
            'jobs': {'count': len(jobs), 'failed': sum(1 for j in jobs if not j['ok'])}
        }

        if jobs:
            wall_times = np.array([j['wall_time'] for j in jobs])
            metrics['jobs']['avg_wall_time'] = float(np.mean(wall_times))
            metrics['jobs']['avg_computation_time'] = float(
                np.mean([j['computation_time'] for j in jobs])
            )

        return metrics
