"""GateKeeper — Structured logging.

structlog routed through stdlib ``logging`` so GateKeeper records land in
the host's handlers.  Every record carries level, logger name, an ISO
timestamp and, inside a world-scoped operation, the ``tenant_id``.

The host normally owns logging.  ``configure_logging`` is for standalone
bootstraps (the CLI, tests).
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, WrappedLogger

if TYPE_CHECKING:
    from gatekeeper.config import LoggingConfig

_ctx_tenant_id: ContextVar[str | None] = ContextVar("tenant_id", default=None)


@contextmanager
def tenant_context(tenant_id: str) -> Iterator[None]:
    """Tag log records emitted inside the block with *tenant_id*.

    The previous value is restored on exit, so a host thread does not carry
    a world id out of the operation that set it.
    """
    token = _ctx_tenant_id.set(tenant_id)
    try:
        yield
    finally:
        _ctx_tenant_id.reset(token)


def current_tenant_id() -> str | None:
    return _ctx_tenant_id.get()


def _add_tenant_id(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    if (tenant_id := _ctx_tenant_id.get()) is not None:
        event_dict.setdefault("tenant_id", tenant_id)
    return event_dict


def configure_logging(config: LoggingConfig) -> None:
    """Install structlog and a stdout (plus optional file) handler."""
    pre_chain: list[Any] = [
        _add_tenant_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if config.format == "json"
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.file is not None:
        handlers.append(logging.FileHandler(config.file))
    for handler in handlers:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = handlers
    root.setLevel(config.level.upper())


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
