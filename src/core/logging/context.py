"""Log context propagation using contextvars.

Context values survive ``await`` boundaries, so each asyncio task processing
a shard sees its own ``shard_id`` without any locking.
"""

from contextvars import ContextVar
from typing import Dict, Optional

_domain: ContextVar[Optional[str]] = ContextVar("log_domain", default=None)
_stage: ContextVar[Optional[str]] = ContextVar("log_stage", default=None)
_worker_id: ContextVar[Optional[str]] = ContextVar("log_worker_id", default=None)
_shard_id: ContextVar[Optional[str]] = ContextVar("log_shard_id", default=None)

_VARS = {
    "domain": _domain,
    "stage": _stage,
    "worker_id": _worker_id,
    "shard_id": _shard_id,
}


def set_log_context(
    domain: Optional[str] = None,
    stage: Optional[str] = None,
    worker_id: Optional[str] = None,
    shard_id: Optional[str] = None,
) -> None:
    """Set any provided context values, leaving the others untouched."""
    if domain is not None:
        _domain.set(domain)
    if stage is not None:
        _stage.set(stage)
    if worker_id is not None:
        _worker_id.set(worker_id)
    if shard_id is not None:
        _shard_id.set(shard_id)


def get_log_context() -> Dict[str, Optional[str]]:
    """Return a snapshot of the current log context."""
    return {name: var.get() for name, var in _VARS.items()}


def clear_log_context() -> None:
    """Reset every context value to None."""
    for var in _VARS.values():
        var.set(None)
