"""structlog setup shared by the CLI and the library modules."""

import logging
import sys
from typing import Any

import structlog

# Third-party loggers that are chatty at INFO during fitting and tracking
NOISY_LOGGERS = ("matplotlib", "mlflow", "urllib3", "PIL", "alembic")


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Route structlog and stdlib logging to stderr.

    Rich tables printed by the CLI on stdout stay clean when output is piped.

    Args:
        level: Level name; unknown names fall back to INFO.
        json_output: Emit one JSON object per event instead of console lines.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors: list[structlog.types.Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Resolve sys.stderr per call so redirected streams are honoured
        logger_factory=lambda *args: structlog.PrintLogger(sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Module logger; pass ``__name__``."""
    return structlog.get_logger(name)


def log_context(**kwargs: Any) -> structlog.contextvars.bound_contextvars:
    """
    Bind key-value pairs to every event logged inside a ``with`` block.

    Example:
        with log_context(model="Boosted Trees", step="tune"):
            log.info("Fitting resample")  # includes model and step
    """
    return structlog.contextvars.bound_contextvars(**kwargs)
