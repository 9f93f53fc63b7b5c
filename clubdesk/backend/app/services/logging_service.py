from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

FMT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEBUG_FMT = "%(asctime)s %(levelname)s %(name)s [%(filename)s:%(lineno)d]: %(message)s"


def _has_file_handler(lg: logging.Logger, path: Path) -> bool:
    return any(
        getattr(h, "baseFilename", None) == str(path)
        for h in lg.handlers
        if isinstance(h, logging.FileHandler)
    )


def _file_handler(path: Path, level: int, formatter: logging.Formatter, rotate: bool) -> logging.Handler:
    if rotate:
        # max 10MB, keep 5 files
        handler: logging.Handler = RotatingFileHandler(str(path), maxBytes=10 * 1024 * 1024, backupCount=5)
    else:
        handler = logging.FileHandler(str(path))
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(log_dir: Path, production: bool = False) -> None:
    """Configure application logging (file + console) and attach to uvicorn loggers.

    In production the files rotate, errors also go to errors.log and the
    console only shows warnings. Idempotent: safe to call multiple times.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    server_log_path = log_dir / "server.log"
    debug_log_path = log_dir / "debug.log"
    error_log_path = log_dir / "errors.log"

    formatter = logging.Formatter(FMT)
    debug_formatter = logging.Formatter(DEBUG_FMT)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    server_handler = _file_handler(
        server_log_path, logging.INFO if production else logging.DEBUG, formatter, production
    )
    if not _has_file_handler(root_logger, server_log_path):
        root_logger.addHandler(server_handler)

    if production and not _has_file_handler(root_logger, error_log_path):
        root_logger.addHandler(_file_handler(error_log_path, logging.ERROR, debug_formatter, True))

    if not any(type(h) is logging.StreamHandler for h in root_logger.handlers):
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setLevel(logging.WARNING if production else logging.INFO)
        stream_handler.setFormatter(formatter)
        root_logger.addHandler(stream_handler)

    # Detailed logger for debugging series operations
    debug_logger = logging.getLogger("clubdesk.debug")
    debug_logger.setLevel(logging.DEBUG)
    if not _has_file_handler(debug_logger, debug_log_path):
        debug_logger.addHandler(_file_handler(debug_log_path, logging.DEBUG, debug_formatter, production))

    # Uvicorn loggers
    for uv_logger_name in ("uvicorn.error", "uvicorn.access", "uvicorn"):
        lg = logging.getLogger(uv_logger_name)
        lg.setLevel(logging.INFO if production else logging.DEBUG)
        if not _has_file_handler(lg, server_log_path):
            lg.addHandler(server_handler)


def log_environment_info() -> None:
    """Log deployment details once at startup."""
    logger = logging.getLogger("clubdesk.debug")
    logger.info("Python version: %s", sys.version.split()[0])
    logger.info("Working directory: %s", os.getcwd())
    logger.info("ENVIRONMENT=%s", os.environ.get("ENVIRONMENT", "development"))
