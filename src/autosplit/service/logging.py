"""Structured logging for the AutoSplit service.

structlog renders JSON when stderr is not a terminal (or ``AUTOSPLIT_LOG_JSON=1``)
and a console format otherwise. The ledger and persistence packages log through
the standard library; their records go through the same processor chain, so a
payment logged by ``SplitLedger`` and a request logged by the middleware share
one format and one set of bound fields.

Amounts are u64 on the wire and render as strings everywhere else the ledger
emits JSON; log lines follow the same rule.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

AMOUNT_FIELDS = frozenset(
    {"amount", "attached_amount", "balance", "owner_share", "share", "total_received"}
)
SECRET_FIELDS = frozenset({"authorization", "token"})


def _add_service(service_name: str):
    def processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return processor


def _stringify_amounts(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in AMOUNT_FIELDS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, int) and not isinstance(value, bool):
            event_dict[key] = str(value)
    return event_dict


def _mask_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in SECRET_FIELDS.intersection(event_dict):
        value = str(event_dict[key])
        event_dict[key] = value[:4] + "..." if len(value) > 8 else "***"
    return event_dict


def configure_logging(
    level: str | None = None,
    json_output: bool | None = None,
    service_name: str = "autosplit",
) -> None:
    """Install the structlog pipeline on the root logger.

    Args:
        level: Log level name. Defaults to ``AUTOSPLIT_LOG_LEVEL`` or INFO.
        json_output: Force JSON output. If None, decided from the environment.
        service_name: Value of the ``service`` field on every entry.
    """
    level = level or os.getenv("AUTOSPLIT_LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = not sys.stderr.isatty() or os.getenv("AUTOSPLIT_LOG_JSON") == "1"

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service(service_name),
        _stringify_amounts,
        _mask_secrets,
    ]

    if json_output:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # The middleware already logs one line per request
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind fields onto every entry logged from the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def ledger_call(caller: str, operation: str, **fields: Any) -> Iterator[None]:
    """Scope ``caller`` and ``operation`` to the log entries of one ledger call.

    The previous values are restored on exit, so a request that performs
    several calls logs each under its own operation name.
    """
    with structlog.contextvars.bound_contextvars(caller=caller, operation=operation, **fields):
        yield


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "ledger_call",
]
