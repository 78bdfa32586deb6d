"""Logging configuration setup.

Provides logging configuration using:
- dictConfig for root level and filters
- QueueHandler + QueueListener so realtime callbacks never block on I/O
- ContextInjectingFilter for automatic context propagation
- All handlers on the root logger (child loggers propagate)
- JSONL format for machine parsing
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from realtime_service.infra.logging.context import ContextInjectingFilter

if TYPE_CHECKING:
    from collections.abc import Callable

    from realtime_service.core.settings.logs import LoggingSettings

_log_queue: Queue[logging.LogRecord] | None = None
_listener: QueueListener | None = None
_root_handler: logging.Handler | None = None
_LOGGING_INITIALIZED = False
_ATEXIT_REGISTERED = False

logger = logging.getLogger(__name__)

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def shutdown() -> None:
    """Stop the QueueListener, flushing pending records.

    Registered with atexit; safe to call more than once.
    """
    global _log_queue, _listener, _root_handler

    if _listener is not None:
        _listener.stop()
        _listener = None

    if _root_handler is not None:
        logging.getLogger().removeHandler(_root_handler)
        _root_handler = None

    _log_queue = None


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    settings_obj = log_settings
    if settings_obj is None:
        from realtime_service.core.settings import get_logging_settings

        settings_obj = get_logging_settings()

    log_config = {**settings_obj.to_logging_kwargs(), **configure_kwargs}
    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    console_level: str | None = None,
    file_level: str | None = None,
    file_path: str | Path | None = None,
    json_logs: bool = True,
    console_enabled: bool = True,
    include_context: bool = True,
    capture_warnings: bool = True,
    include_function_name: bool = False,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    service_name: str = "realtime-service",
    **kwargs: Any,
) -> None:
    """Configure logging with dictConfig and the QueueHandler pattern.

    Args:
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        console_level: Console handler level. If None, uses log_level.
        file_level: File handler level. If None, uses log_level.
        file_path: Path to log file. None disables file logging.
        json_logs: Enable JSONL structured logging.
        console_enabled: Enable console/stderr logging.
        include_context: Enable ContextInjectingFilter for auto context.
        capture_warnings: Forward Python warnings to logging system.
        include_function_name: Include function name in records.
        file_max_bytes: Maximum log file size before rotation.
        file_backup_count: Number of rotated log files to keep.
        service_name: Static ``service`` field added to JSON records.
        **kwargs: Ignored extra settings.

    Example:
        from realtime_service.core.settings import get_logging_settings
        configure_logging(**get_logging_settings().to_logging_kwargs())
    """
    if kwargs:
        logger.debug("Unused logging kwargs supplied: %s", ", ".join(sorted(kwargs)))

    if capture_warnings:
        logging.captureWarnings(True)

    path = Path(file_path) if file_path else None
    if path:
        path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            # Handlers are attached to the QueueListener below, not to root
            "root": {
                "level": log_level.upper(),
                "handlers": [],
            },
        }
    )

    _setup_queue_logging(
        console_enabled=console_enabled,
        console_level=console_level or log_level,
        file_path=path,
        file_level=file_level or log_level,
        file_max_bytes=file_max_bytes,
        file_backup_count=file_backup_count,
        include_context=include_context,
        formatter_factory=lambda: _build_formatter(
            json_logs=json_logs,
            include_function_name=include_function_name,
            service_name=service_name,
        ),
    )


def _build_formatter(
    json_logs: bool,
    include_function_name: bool,
    service_name: str,
) -> logging.Formatter:
    from realtime_service.infra.logging.formatters import JSONFormatter

    if json_logs:
        fmt_keys = {"level": "levelname", "logger": "name", "message": "message"}
        if include_function_name:
            fmt_keys["function"] = "funcName"
        return JSONFormatter(fmt_keys=fmt_keys, static={"service": service_name})

    fmt = TEXT_FORMAT
    if include_function_name:
        fmt = "%(asctime)s - %(levelname)s - %(name)s - %(funcName)s - %(message)s"
    return logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT)


def _setup_queue_logging(
    console_enabled: bool,
    console_level: str,
    file_path: Path | None,
    file_level: str,
    file_max_bytes: int,
    file_backup_count: int,
    include_context: bool,
    formatter_factory: Callable[[], logging.Formatter],
) -> None:
    """Create the real handlers, attach them to a QueueListener and give the
    root logger a single QueueHandler.

    The context filter runs on the QueueHandler, where it sees records from
    every logger. With no output enabled the root logger gets a NullHandler
    and no queue.
    """
    global _log_queue, _listener, _root_handler, _ATEXIT_REGISTERED

    # Reconfiguring replaces the previous listener
    shutdown()

    handlers: list[logging.Handler] = []

    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(getattr(logging, console_level.upper()))
        console_handler.setFormatter(formatter_factory())
        handlers.append(console_handler)

    if file_path:
        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=file_max_bytes,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(getattr(logging, file_level.upper()))
        file_handler.setFormatter(formatter_factory())
        handlers.append(file_handler)

    if not handlers:
        _root_handler = logging.NullHandler()
        logging.getLogger().addHandler(_root_handler)
        return

    _log_queue = Queue()
    _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
    _listener.start()
    if not _ATEXIT_REGISTERED:
        atexit.register(shutdown)
        _ATEXIT_REGISTERED = True

    _root_handler = QueueHandler(_log_queue)
    if include_context:
        _root_handler.addFilter(ContextInjectingFilter())
    logging.getLogger().addHandler(_root_handler)
