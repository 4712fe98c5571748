#!/usr/bin/env python3
"""
Benchmark script for distsort.

Compares a single-process sort against a distributed sort running a local
coordinator and a configurable number of in-process workers.
"""

import argparse
import json
import logging
import time
from typing import Any, Dict, List

import numpy as np

from distsort.config import load_config
from distsort.coordinator.scheduler import Scheduler
from distsort.worker.sort_worker import SortWorker


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler('benchmark.log')
    ]
)
logger = logging.getLogger("Benchmark")


def generate_data(size: int, seed: int = 0) -> List[int]:
    """Random signed 32-bit integers."""
    rng = np.random.default_rng(seed)
    return rng.integers(-2 ** 31, 2 ** 31 - 1, size=size, dtype=np.int64).tolist()


def benchmark_local_sort(data: List[int], num_iterations: int = 5) -> Dict[str, Any]:
    """
    Benchmark sorting in this process.

    Returns:
        Dictionary of benchmark results
    """
    logger.info(f"Benchmarking local sort of {len(data)} values")

    times = []
    for i in range(num_iterations):
        start_time = time.perf_counter()
        sorted(data)
        times.append(time.perf_counter() - start_time)
        logger.info(f"Iteration {i+1}/{num_iterations}: {times[-1] * 1000:.1f} ms")

    return {
        "mode": "local",
        "size": len(data),
        "num_iterations": num_iterations,
        "average_time": float(np.mean(times)),
        "min_time": float(np.min(times)),
    }


def benchmark_distributed_sort(data: List[int], num_workers: int = 2,
                               num_iterations: int = 5) -> Dict[str, Any]:
    """
    Benchmark a distributed sort on localhost.

    Returns:
        Dictionary of benchmark results
    """
    logger.info(f"Benchmarking distributed sort of {len(data)} values with {num_workers} workers")

    config = load_config()
    config["coordinator"]["host"] = "127.0.0.1"
    config["coordinator"]["port"] = 0

    scheduler = Scheduler(config)
    scheduler.start()

    worker_config = dict(config["worker"], coordinator_port=scheduler.port)
    workers = [SortWorker(worker_config, config["network"]) for _ in range(num_workers)]

    try:
        for worker in workers:
            if not worker.connect():
                raise RuntimeError("Worker could not connect to the local coordinator")
            worker.start()

        if not scheduler.wait_for_workers(num_workers, timeout=10.0):
            raise RuntimeError("Workers did not register in time")

        times, computation_times, communication_times = [], [], []
        for i in range(num_iterations):
            result = scheduler.run_job(data)
            if not result.ok:
                raise RuntimeError(f"Job {result.job_id} failed: {[r.error for r in result.failures]}")

            times.append(result.wall_time)
            computation_times.append(result.computation_time)
            communication_times.append(result.communication_time)
            logger.info(f"Iteration {i+1}/{num_iterations}: {result.wall_time * 1000:.1f} ms "
                        f"(communication {result.communication_time * 1000:.1f} ms)")

        return {
            "mode": "distributed",
            "size": len(data),
            "num_workers": num_workers,
            "num_iterations": num_iterations,
            "average_time": float(np.mean(times)),
            "min_time": float(np.min(times)),
            "average_computation_time": float(np.mean(computation_times)),
            "average_communication_time": float(np.mean(communication_times)),
            "worker_metrics": scheduler.performance_monitor.get_current_metrics()["worker_metrics"],
        }

    finally:
        scheduler.shutdown()
        for worker in workers:
            worker.shutdown()


def save_results(results, output_file: str):
    """
    Save benchmark results to a file.

    Args:
        results: Benchmark results to save
        output_file: Path to output file
    """
    with open(output_file, 'w') as f:
        json.dump(results, f, indent=2)

    logger.info(f"Saved results to {output_file}")


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Benchmark distsort.")
    parser.add_argument("--mode", choices=["local", "distributed", "both"], default="both",
                        help="Benchmark mode")
    parser.add_argument("--size", type=int, default=1_000_000,
                        help="Number of integers to sort")
    parser.add_argument("--iterations", type=int, default=5,
                        help="Number of benchmark iterations")
    parser.add_argument("--workers", type=int, default=4,
                        help="Number of workers for distributed mode")
    parser.add_argument("--output", default="benchmark_results.json",
                        help="Output file for benchmark results")

    args = parser.parse_args()

    data = generate_data(args.size)
    results = []

    if args.mode in ("local", "both"):
        results.append(benchmark_local_sort(data, args.iterations))

    if args.mode in ("distributed", "both"):
        results.append(benchmark_distributed_sort(data, args.workers, args.iterations))

    save_results(results, args.output)


if __name__ == "__main__":
    main()
