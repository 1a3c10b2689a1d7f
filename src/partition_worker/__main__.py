"""
Entry point for running the partition step worker.

Usage:
    # Run with configuration from environment
    python -m partition_worker

    # Overlay a YAML config file (``worker:`` section)
    python -m partition_worker --config config/worker.yaml

    # Run with metrics server on a custom port
    python -m partition_worker --metrics-port 9090

    # Development mode: local Kafka, in-memory entity sink
    python -m partition_worker --dev
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from prometheus_client import start_http_server

from core.errors import ConfigurationError
from core.logging.context import set_log_context
from core.logging.setup import get_logger, setup_logging
from partition_worker.config import WorkerConfig
from partition_worker.context import WorkerContext
from partition_worker.workers.partition_worker import PartitionStepWorker

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)

DEV_BOOTSTRAP_SERVERS = "localhost:9092"


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Run the partition step worker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run against the configured Kafka cluster and Delta table
    python -m partition_worker

    # Run in development mode (local Kafka, in-memory sink)
    python -m partition_worker --dev

    # Run with custom metrics port
    python -m partition_worker --metrics-port 9090
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML config file overlaid on environment settings",
    )

    parser.add_argument(
        "--metrics-port",
        type=int,
        default=8000,
        help="Port for Prometheus metrics server (default: 8000)",
    )

    parser.add_argument(
        "--dev",
        action="store_true",
        help="Development mode: local Kafka and in-memory entity sink",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Log directory path (default: from LOG_DIR env var or ./logs)",
    )

    return parser.parse_args(argv)


async def run_worker(context: WorkerContext) -> None:
    """Run the partition step worker until the shutdown event is set.

    On shutdown the worker finishes the shard it is processing, publishes its
    status and stops.
    """
    set_log_context(stage="worker")
    logger.info("Starting partition step worker...")

    worker = PartitionStepWorker(context)

    async def shutdown_watcher():
        """Wait for shutdown signal and stop worker gracefully."""
        await context.shutdown_event.wait()
        logger.info("Shutdown signal received, stopping partition step worker...")
        await worker.stop()

    watcher_task = asyncio.create_task(shutdown_watcher())

    try:
        await worker.start()
    finally:
        watcher_task.cancel()
        try:
            await watcher_task
        except asyncio.CancelledError:
            pass
        await worker.stop()


def setup_signal_handlers(loop: asyncio.AbstractEventLoop, shutdown_event: asyncio.Event):
    """Set up signal handlers for graceful shutdown.

    First SIGINT/SIGTERM sets the shutdown event; a second one cancels all
    tasks immediately.
    """

    def handle_signal(sig):
        logger.info(f"Received signal {sig.name}, initiating graceful shutdown...")
        if not shutdown_event.is_set():
            shutdown_event.set()
        else:
            logger.warning("Received second signal, forcing immediate shutdown...")
            for task in asyncio.all_tasks(loop):
                task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))


def main(argv=None):
    """Main entry point."""
    global logger
    args = parse_args(argv)

    log_level = getattr(logging, args.log_level)

    # Set JSON_LOGS=false for human-readable file logs during local development
    json_logs = os.getenv("JSON_LOGS", "true").lower() in ("true", "1", "yes")

    # Log directory: CLI arg > env var > default ./logs
    log_dir = Path(args.log_dir or os.getenv("LOG_DIR", "logs"))

    worker_id = os.getenv("WORKER_ID", f"partition-worker-{os.getpid()}")

    setup_logging(
        name="partition_worker",
        stage="worker",
        domain="partition",
        log_dir=log_dir,
        json_format=json_logs,
        console_level=log_level,
        worker_id=worker_id,
    )
    logger = get_logger(__name__)

    if args.dev:
        logger.info("Running in DEVELOPMENT mode (local Kafka, in-memory sink)")
        os.environ.setdefault("KAFKA_BOOTSTRAP_SERVERS", DEV_BOOTSTRAP_SERVERS)

    try:
        config = WorkerConfig.load(args.config)
    except (ValueError, FileNotFoundError, ConfigurationError) as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Use --dev flag for local development against localhost Kafka")
        sys.exit(1)

    logger.info(f"Starting metrics server on port {args.metrics_port}")
    start_http_server(args.metrics_port)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    context = WorkerContext.build(config, dev=args.dev)
    setup_signal_handlers(loop, context.shutdown_event)

    try:
        loop.run_until_complete(run_worker(context))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        loop.close()
        logger.info("Worker shutdown complete")


if __name__ == "__main__":
    main()
