"""Tests for the command line entry point."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from partition_worker.__main__ import parse_args, run_worker
from partition_worker.config import WorkerConfig
from partition_worker.context import WorkerContext


class TestParseArgs:

    def test_defaults(self):
        args = parse_args([])

        assert args.config is None
        assert args.metrics_port == 8000
        assert args.dev is False
        assert args.log_level == "INFO"
        assert args.log_dir is None

    def test_flags(self):
        args = parse_args(
            ["--config", "w.yaml", "--metrics-port", "9090", "--dev", "--log-level", "DEBUG"]
        )

        assert args.config == "w.yaml"
        assert args.metrics_port == 9090
        assert args.dev is True
        assert args.log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(SystemExit):
            parse_args(["--log-level", "TRACE"])


@pytest.mark.asyncio
class TestRunWorker:

    async def test_shutdown_event_stops_worker(self):
        context = WorkerContext.build(WorkerConfig(bootstrap_servers="localhost:9092"))

        with patch("partition_worker.__main__.PartitionStepWorker") as mock_worker_cls:
            worker = mock_worker_cls.return_value
            started = asyncio.Event()

            async def start():
                started.set()
                await asyncio.sleep(3600)

            worker.start = AsyncMock(side_effect=start)
            worker.stop = AsyncMock()

            task = asyncio.create_task(run_worker(context))
            await started.wait()
            context.shutdown_event.set()
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert worker.stop.await_count >= 1
