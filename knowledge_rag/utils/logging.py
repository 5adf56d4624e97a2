"""structlog configuration for the API server and the CLI.

Every log line goes through one processor chain and ends in a console
renderer (development) or a JSON renderer (production).  The standard
library is routed through the same chain, so lines from chromadb, httpx
and uvicorn render like our own.

Knowledge-base log lines are correlated by tenant and agent.  Instead of
threading those ids through every service call, request and command entry
points wrap their work in :func:`log_scope`, and ``merge_contextvars``
adds the bound ids to each line emitted inside it.
"""

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog

# Client libraries that log every request or heartbeat at INFO.
QUIET_LOGGERS = ("chromadb", "httpx", "httpcore", "openai")


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    app_env: str | None = None,
) -> structlog.BoundLogger:
    """Configure structlog and bridge the standard library into it.

    Args:
        log_level: Threshold name, e.g. ``"INFO"``.  At ``DEBUG`` the
            :data:`QUIET_LOGGERS` are left at the same level.
        json_output: Render JSON regardless of environment.
        app_env: Deployment environment; ``"production"`` selects JSON.
            Falls back to the ``APP_ENV`` variable.

    Returns:
        The root structlog logger.
    """
    level_name = log_level.upper()
    environment = app_env if app_env is not None else os.environ.get("APP_ENV", "development")

    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        timestamper,
    ]
    renderer: structlog.types.Processor
    if json_output or environment == "production":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*pre_chain, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level_name)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    stdlib_handler = logging.StreamHandler(sys.stdout)
    stdlib_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *pre_chain,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(stdlib_handler)
    root.setLevel(level_name)

    quiet_level = logging.DEBUG if level_name == "DEBUG" else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger bound with ``logger_name``, configuring defaults if needed."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)


@contextmanager
def log_scope(**ids: Any) -> Iterator[None]:
    """Bind knowledge-base identifiers to every log line in the block.

    ``None`` values are skipped, so ``log_scope(tenant_id=t, agent_id=None)``
    binds only the tenant.
    """
    bound = {key: value for key, value in ids.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield
