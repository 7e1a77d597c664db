"""
structlog setup for the API process.

Records are event names with keyword context, e.g.
``logger.info("suite_finished", suite_id=..., status="partial")``.
Console output is human-readable; with LOG_FILE set, the same records are
also written there as JSON lines.
"""

import logging
import sys
from pathlib import Path

import structlog

# Third-party loggers that should share our handlers instead of their own
ROUTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

# Noisy in production; SQL echo is only useful while debugging
QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "anthropic")

_PRE_CHAIN = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
]


def _handler(handler: logging.Handler, renderer, level: int) -> logging.Handler:
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=_PRE_CHAIN)
    )
    handler.setLevel(level)
    return handler


def setup_logging(log_level: str = "INFO", debug: bool = True, log_file: str | None = None) -> None:
    """Configure structlog and the stdlib root logger. Safe to call twice."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[*_PRE_CHAIN, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers = [
        _handler(
            logging.StreamHandler(sys.stdout),
            structlog.dev.ConsoleRenderer(colors=debug),
            logging.DEBUG if debug else level,
        )
    ]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_handler(
            logging.FileHandler(log_file, encoding="utf-8"),
            structlog.processors.JSONRenderer(ensure_ascii=False),
            logging.DEBUG,
        ))

    for name in (None, *ROUTED_LOGGERS):
        target = logging.getLogger(name)
        target.handlers[:] = handlers
        target.setLevel(level)
        if name is not None:
            target.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if debug else logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
