"""structlog setup for the bot: console or JSON on stderr, optional log files.

Every module logs through ``get_logger(__name__)`` with snake_case event
names and keyword context. stdlib loggers (python-telegram-bot, ccxt)
are routed through the same ProcessorFormatter so their records render
identically.
"""

import logging
import os
from pathlib import Path

import structlog

_PRE_CHAIN: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]

# Libraries that are chatty at INFO (httpx logs every getUpdates poll)
_QUIET_LOGGERS = ("httpx", "telegram.ext.Updater")


def _make_formatter(renderer: structlog.types.Processor) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_PRE_CHAIN,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def _file_handler(path: Path, level: int = logging.NOTSET) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(_make_formatter(structlog.processors.JSONRenderer()))
    return handler


def setup_logging(log_level: str = "INFO", log_dir: str | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    The stderr renderer follows the LOG_FORMAT environment variable
    ("console" by default, "json" for production). With ``log_dir`` set,
    ``combined.log`` (all records) and ``error.log`` (ERROR and above) are
    written there as JSON lines regardless of LOG_FORMAT.
    """
    structlog.configure(
        processors=[*_PRE_CHAIN, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if os.environ.get("LOG_FORMAT", "console").lower() == "json":
        stderr_renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        stderr_renderer = structlog.dev.ConsoleRenderer()

    stderr = logging.StreamHandler()
    stderr.setFormatter(_make_formatter(stderr_renderer))
    handlers: list[logging.Handler] = [stderr]

    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        handlers.append(_file_handler(directory / "combined.log"))
        handlers.append(_file_handler(directory / "error.log", logging.ERROR))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
