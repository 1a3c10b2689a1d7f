"""
Structured logging module.

Provides JSON file logging, console logging and context propagation
(domain, stage, worker_id, shard_id) across asyncio tasks.

Import directly from sub-modules:
    from core.logging.setup import get_logger, setup_logging
    from core.logging.context import set_log_context
"""
