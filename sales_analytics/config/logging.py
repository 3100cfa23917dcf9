"""
Logging Configuration for the Sales Analytics Engine

structlog events are rendered through the stdlib logging tree, so library
loggers (SQLAlchemy, polars) and the engine's own events share one handler
and one format. Run context (snapshot_id, shards, shard) is bound with
structlog.contextvars by the run orchestrator and merged into every event.
"""

import logging
import sys
from typing import IO, List, Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import ProcessorFormatter, add_log_level

from sales_analytics.config.settings import MonitoringSettings, get_settings

# libraries that log every statement at INFO
NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")

_handler: Optional[logging.Handler] = None


def _shared_processors() -> List:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(
    log_level: Optional[str] = None,
    settings: Optional[MonitoringSettings] = None,
    stream: Optional[IO[str]] = None,
) -> logging.Handler:
    """
    Configure structured logging for an application embedding the engine.

    Calling it again replaces the handler installed by the previous call;
    handlers added by anything else are left alone.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        settings: Logging settings (default from environment)
        stream: Output stream (default stdout)

    Returns:
        The installed handler
    """
    global _handler

    settings = settings or get_settings().monitoring
    level = log_level or settings.log_level
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    shared_processors = _shared_processors()

    structlog.configure(
        processors=shared_processors + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        # module-level loggers must follow later reconfiguration
        cache_logger_on_first_use=False,
    )

    if settings.log_format == "json":
        renderer = JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    formatter = ProcessorFormatter(
        processors=[ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    if _handler is not None:
        root_logger.removeHandler(_handler)
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)
    _handler = handler

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
        )

    structlog.get_logger(__name__).debug(
        "Logging configured",
        level=logging.getLevelName(numeric_level),
        format=settings.log_format,
    )
    return handler
