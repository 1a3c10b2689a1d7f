"""
pytest configuration for partition worker tests.

Adds src directory to Python path for imports and provides shared fixtures.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from core.logging.context import clear_log_context  # noqa: E402


def _make_records(count: int, user_id: str = "u1"):
    return [
        {"id": f"f{i}", "mimeType": "text/plain", "userId": user_id}
        for i in range(1, count + 1)
    ]


@pytest.fixture
def make_records():
    """Factory for raw records f1..f{count} with text/plain content type."""
    return _make_records


@pytest.fixture
def records_150():
    return _make_records(150)


@pytest.fixture(autouse=True)
def reset_log_context():
    """Keep contextvar log context from leaking between tests."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def restore_root_logger():
    """Restore root logger handlers after tests that call setup_logging()."""
    root_logger = logging.getLogger()
    saved_handlers = list(root_logger.handlers)
    saved_level = root_logger.level
    yield
    for handler in root_logger.handlers:
        if handler not in saved_handlers:
            handler.close()
    root_logger.handlers[:] = saved_handlers
    root_logger.setLevel(saved_level)
