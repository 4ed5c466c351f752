from __future__ import annotations

import logging
from typing import Iterable, Optional

import structlog

# Third-party loggers that are chatty at INFO (httpx logs every request line).
NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """
    Initialize stdlib logging and structlog for the tutor.

    Library modules log through `logging.getLogger(__name__)`; the level set here governs
    the `macrobius_tutor` logger tree. structlog (used for the CLI's event-style records)
    renders as JSON or as coloured console output. Loggers named in `quiet` are raised to
    WARNING unless DEBUG was requested.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level)
    logging.getLogger("macrobius_tutor").setLevel(numeric_level)
    if numeric_level > logging.DEBUG:
        for name in quiet:
            logging.getLogger(name).setLevel(logging.WARNING)

    processors = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
    ]
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def get_logger(name: Optional[str] = None):
    """Return a structlog logger bound to the global configuration."""
    return structlog.get_logger(name)
