"""
Logging Configuration for Retail Sales Analytics

Routes structlog through the standard library so application, uvicorn and
database driver records share one renderer. Every event is stamped with
the service name and environment; ingestion events also carry the
``batch_id`` the loader binds for the duration of a batch.
"""

import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import add_log_level, ProcessorFormatter
from structlog.types import EventDict, Processor

from retail_analytics.config.settings import Settings, get_settings

# Driver loggers that only matter when debugging the storage layer.
# SQL echo is controlled by POSTGRES_ECHO instead.
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite", "asyncpg")


class ServiceContext:
    """Processor that stamps events with the service name and environment."""

    def __init__(self, service: str, environment: str):
        self.service = service
        self.environment = environment

    def __call__(self, logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", self.service)
        event_dict.setdefault("env", self.environment)
        return event_dict


def build_processors(settings: Settings) -> List[Processor]:
    """Processors shared by structlog events and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        ServiceContext(settings.app_name, settings.app_env),
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(log_level: Optional[str] = None) -> Dict[str, Any]:
    """
    Configure structured logging for the application.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        The effective level and format
    """
    settings = get_settings()
    level = (log_level or settings.monitoring.log_level).upper()
    numeric_level = getattr(logging, level, logging.INFO)
    shared_processors = build_processors(settings)

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if settings.monitoring.log_format == "json":
        # Store and brand names are often Korean
        renderer = JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        server_logger = logging.getLogger(name)
        server_logger.handlers = [handler]
        server_logger.setLevel(numeric_level)
        server_logger.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    effective = {"level": level, "format": settings.monitoring.log_format}
    structlog.get_logger(__name__).info("Logging configured", **effective)
    return effective
