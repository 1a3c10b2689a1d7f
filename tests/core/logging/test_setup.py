"""Tests for logging setup, formatters and log context."""

import json
import logging
import re
import sys

import pytest

from core.logging.context import clear_log_context, get_log_context, set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.setup import get_log_file_path, get_logger, setup_logging


def make_record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="partition_worker.test",
        level=level,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:

    def test_set_only_provided_values(self):
        set_log_context(domain="partition", stage="worker")
        set_log_context(shard_id="shard-1")

        assert get_log_context() == {
            "domain": "partition",
            "stage": "worker",
            "worker_id": None,
            "shard_id": "shard-1",
        }

    def test_clear(self):
        set_log_context(domain="partition", shard_id="s")

        clear_log_context()

        assert all(v is None for v in get_log_context().values())


class TestJSONFormatter:

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(make_record()))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "partition_worker.test"
        assert entry["msg"] == "hello"
        assert entry["ts"].endswith("Z")
        assert "file" not in entry

    def test_includes_known_extras_only(self):
        record = make_record(shard_id="s1", processed_count=150, not_a_field="x")

        entry = json.loads(JSONFormatter().format(record))

        assert entry["shard_id"] == "s1"
        assert entry["processed_count"] == 150
        assert "not_a_field" not in entry

    def test_injects_log_context(self):
        set_log_context(domain="partition", stage="worker", shard_id="s9")

        entry = json.loads(JSONFormatter().format(make_record()))

        assert entry["domain"] == "partition"
        assert entry["stage"] == "worker"
        assert entry["shard_id"] == "s9"

    def test_error_includes_source_and_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record(level=logging.ERROR)
            record.exc_info = sys.exc_info()

        entry = json.loads(JSONFormatter().format(record))

        assert entry["file"].endswith(":10")
        assert "ValueError: boom" in entry["exception"]


class TestConsoleFormatter:

    def test_prefix_includes_context(self):
        set_log_context(domain="partition", shard_id="s1")

        line = ConsoleFormatter().format(make_record("chunk written"))

        assert "INFO" in line
        assert "[partition]" in line
        assert "[s1]" in line
        assert line.endswith("chunk written")


class TestGetLogFilePath:

    def test_domain_and_stage(self, tmp_path):
        path = get_log_file_path(tmp_path, domain="partition", stage="worker")

        assert path.parent.parent == tmp_path / "partition"
        assert re.fullmatch(r"partition_worker_\d{8}\.log", path.name)

    def test_instance_id(self, tmp_path):
        path = get_log_file_path(tmp_path, domain="partition", stage="worker", instance_id="p42")

        assert path.name.endswith("_p42.log")

    def test_no_domain(self, tmp_path):
        path = get_log_file_path(tmp_path)

        assert path.parent.parent == tmp_path
        assert path.name.startswith("pipeline_")


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore(self, restore_root_logger):
        yield

    def test_creates_file_and_console_handlers(self, tmp_path):
        setup_logging(domain="partition", stage="worker", log_dir=tmp_path)

        root_logger = logging.getLogger()
        assert len(root_logger.handlers) == 2
        assert list((tmp_path / "partition").rglob("partition_worker_*.log"))

    def test_sets_log_context(self, tmp_path):
        setup_logging(domain="partition", stage="worker", worker_id="w-1", log_dir=tmp_path)

        ctx = get_log_context()
        assert ctx["domain"] == "partition"
        assert ctx["worker_id"] == "w-1"

    def test_writes_json_lines(self, tmp_path):
        setup_logging(domain="partition", stage="worker", log_dir=tmp_path, use_instance_id=False)

        get_logger("partition_worker.test").info("shard done", extra={"shard_id": "s1"})
        for handler in logging.getLogger().handlers:
            handler.flush()

        log_file = next((tmp_path / "partition").rglob("*.log"))
        entries = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert any(e["msg"] == "shard done" and e["shard_id"] == "s1" for e in entries)

    def test_suppresses_noisy_loggers(self, tmp_path):
        setup_logging(domain="partition", stage="worker", log_dir=tmp_path)

        assert logging.getLogger("aiokafka").level == logging.WARNING
        assert logging.getLogger("deltalake").level == logging.WARNING
