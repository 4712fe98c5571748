#!/usr/bin/env python3
"""
distsort - Main Entry Point

Starts a coordinator node, a worker node, or a one-shot liveness probe,
depending on the command line arguments and the YAML configuration.
"""

import argparse
import logging
import signal
import sys
import time
from pathlib import Path

from distsort.config import load_config
from distsort.coordinator.liveness import probe_all
from distsort.coordinator.scheduler import Scheduler
from distsort.utils.data_io import read_integers, write_integers
from distsort.utils.errors import DistSortError
from distsort.utils.networking import get_local_ip
from distsort.worker.sort_worker import SortWorker

logger = logging.getLogger("distsort")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level, log_file=None):
    """Configure root logging once for the process."""
    handlers = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=getattr(logging, level), format=LOG_FORMAT, handlers=handlers, force=True)


def run_sort(scheduler, args):
    """Wait for workers, sort the input file, write the result. Returns an exit code."""
    try:
        data = read_integers(args.input)
    except (OSError, ValueError) as e:
        logger.error(f"Error reading file: {e}")
        return 1

    logger.info(f"Waiting for {args.min_workers} worker(s)...")
    if not scheduler.wait_for_workers(args.min_workers, args.wait_timeout):
        logger.error(f"Only {len(scheduler.list_workers())} worker(s) connected "
                     f"after {args.wait_timeout}s, giving up")
        return 1

    start_time = time.perf_counter()
    try:
        result = scheduler.run_job(data)
    except DistSortError as e:
        logger.error(f"Error during distributed sorting: {e}")
        return 1
    elapsed = time.perf_counter() - start_time

    if not result.ok and not result.values and data:
        logger.error("Error during distributed sorting, no result written")
        return 1

    write_integers(args.output, result.values)
    logger.info(f"Sorted {len(result.values)} values in {elapsed * 1000:.1f} ms "
                f"(computation {result.computation_time * 1000:.1f} ms)")
    return 0 if result.ok else 2


def start_coordinator(config, args):
    """Initialize and start the coordinator node."""
    logger.info("Starting distsort coordinator node...")

    scheduler = Scheduler(config)
    scheduler.start()
    logger.info(f"Workers should connect to {get_local_ip()}:{scheduler.port}")

    if args.input:
        try:
            return run_sort(scheduler, args)
        finally:
            scheduler.shutdown()

    # Register signal handlers for graceful shutdown
    def signal_handler(sig, frame):
        logger.info("Received shutdown signal, gracefully stopping coordinator...")
        scheduler.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        # Keep the main thread running
        while scheduler.running:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down coordinator...")
        scheduler.shutdown()
    return 0


def start_worker(config):
    """Initialize and run a worker node until the coordinator goes away."""
    logger.info("Starting distsort worker node...")

    worker = SortWorker(config["worker"], config["network"])

    def signal_handler(sig, frame):
        logger.info("Received shutdown signal, gracefully stopping worker...")
        worker.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if not worker.connect():
        return 1

    worker.run()
    return 0


def start_probe(config, args):
    """Probe each address once and print results as they arrive."""
    port = args.port or config["liveness"].get("port") or config["coordinator"]["port"]
    timeout = args.timeout or config["liveness"]["timeout_seconds"]

    offline = 0
    for address, status in probe_all(args.addresses, port, timeout):
        print(f"{address} ({status.capitalize()})")
        offline += status != "online"
    return 1 if offline else 0


def main(argv=None):
    """Parse command line arguments and start the appropriate node type."""
    parser = argparse.ArgumentParser(description="distsort - sort integers across networked worker processes.")
    parser.add_argument("--mode", choices=["coordinator", "worker", "probe"], required=True,
                        help="Run as coordinator or worker node, or probe worker addresses")
    parser.add_argument("--config", help="Path to a YAML configuration file")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Set logging level (overrides the configuration)")
    parser.add_argument("--log-file", help="Also write logs to this file")

    coordinator_group = parser.add_argument_group("coordinator")
    coordinator_group.add_argument("--input", help="Integer file to sort once, then exit")
    coordinator_group.add_argument("--output", default="distributed_sorted_result.txt",
                                   help="Where to write the sorted integers")
    coordinator_group.add_argument("--min-workers", type=int, default=1,
                                   help="Workers required before sorting --input")
    coordinator_group.add_argument("--wait-timeout", type=float, default=None,
                                   help="Seconds to wait for --min-workers")

    worker_group = parser.add_argument_group("worker")
    worker_group.add_argument("--host", help="Coordinator host")
    worker_group.add_argument("--port", type=int, help="Coordinator port (probe: port to probe)")

    probe_group = parser.add_argument_group("probe")
    probe_group.add_argument("--addresses", nargs="+", default=[], help="Worker addresses to probe")
    probe_group.add_argument("--timeout", type=float, help="Probe timeout in seconds")

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except DistSortError as e:
        setup_logging("ERROR")
        logger.error(str(e))
        return 1

    setup_logging(args.log_level or config["logging"]["level"], args.log_file or config["logging"]["file"])

    if args.mode == "coordinator":
        if args.port is not None:
            config["coordinator"]["port"] = args.port
        return start_coordinator(config, args)

    if args.mode == "worker":
        if args.host:
            config["worker"]["coordinator_host"] = args.host
        if args.port is not None:
            config["worker"]["coordinator_port"] = args.port
        return start_worker(config)

    if not args.addresses:
        parser.error("--mode probe requires --addresses")
    return start_probe(config, args)


if __name__ == "__main__":
    sys.exit(main())
