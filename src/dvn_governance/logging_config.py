"""Structured logging with per-chain context.

Each chain pipeline runs in its own asyncio task, so the chain name and
operation are kept in context variables and stamped onto every record by
ChainContextFilter. Key material must never be passed to a logger.
"""
from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)
chain_var: ContextVar[Optional[str]] = ContextVar("chain", default=None)
operation_var: ContextVar[Optional[str]] = ContextVar("operation", default=None)

_CONTEXT_FIELDS = ("run_id", "chain", "operation")

_STANDARD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        *_CONTEXT_FIELDS,
    }
)


class ChainContextFilter(logging.Filter):
    """Adds run, chain and operation context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_var.get()
        record.chain = chain_var.get()
        record.operation = operation_var.get()
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in _CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # extra= fields
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure root logging for a CLI run."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_output:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(chain)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.addFilter(ChainContextFilter())
    root_logger.addHandler(handler)


def set_chain_context(chain: str) -> None:
    """Set the chain name for the current task."""
    chain_var.set(chain)


def set_operation_context(operation: str) -> None:
    operation_var.set(operation)


def new_run_id() -> str:
    """Generate and install a run ID for this invocation."""
    run_id = f"run_{uuid.uuid4().hex[:16]}"
    run_id_var.set(run_id)
    return run_id


def mask_address(address: str, visible: int = 6) -> str:
    """Shorten an address for log output, e.g. ``0x1234...abcd``."""
    if len(address) <= visible * 2:
        return address
    return f"{address[:visible]}...{address[-4:]}"
