# src/papercapsule/utils/logging_config.py
"""
File-based logging for the persistent stores.

Usage:
    from papercapsule.utils.logging_config import Logger, LogFiles

    Logger.info("Session closed", file=LogFiles.READING)
    Logger.warning("Durable cache write failed", file=LogFiles.CACHE)

Environment variables:
    PAPERCAPSULE_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
    PAPERCAPSULE_LOG_DIR: base directory for log files (default: logs/)
    PAPERCAPSULE_LOG_MAX_BYTES: rotation size per file (default: 5MB)
    PAPERCAPSULE_LOG_BACKUP_COUNT: rotated files to keep (default: 3)
"""

from __future__ import annotations

import inspect
import logging
import os
import uuid
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

import yaml

_trace_id_var: ContextVar[Optional[str]] = ContextVar("papercapsule_trace_id", default=None)

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_FILE = "papercapsule.log"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 3
LINE_FORMAT = "{timestamp} [{level}] [{trace_id}] {filename}:{lineno} - {message}"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_CONFIG_FILE = Path(__file__).parent / "log_config.yaml"

_DEFAULT_FILES: Dict[str, str] = {
    "aggregator": "aggregator/aggregator.log",
    "cache": "cache/cache.log",
    "reading": "reading/reading.log",
    "error": "errors/error.log",
}

_stdlib_logger = logging.getLogger("papercapsule.files")


class _LogFilesMeta(type):
    """Allows ``LogFiles.READING`` style attribute access."""

    def __getattr__(cls, name: str) -> str:
        files = cls._mapping()
        key = name.lower()
        if key in files:
            return files[key]
        raise AttributeError(f"Log file '{name}' is not configured")


class LogFiles(metaclass=_LogFilesMeta):
    """Named log files, defaults overridable from ``log_config.yaml``."""

    _files: Optional[Dict[str, str]] = None

    @classmethod
    def _mapping(cls) -> Dict[str, str]:
        if cls._files is None:
            files = dict(_DEFAULT_FILES)
            if LOG_CONFIG_FILE.exists():
                try:
                    with open(LOG_CONFIG_FILE, "r", encoding="utf-8") as fh:
                        config = yaml.safe_load(fh) or {}
                except (OSError, yaml.YAMLError) as exc:
                    _stdlib_logger.warning("Could not read %s: %s", LOG_CONFIG_FILE, exc)
                    config = {}
                for name, path in (config.get("files") or {}).items():
                    files[str(name).lower()] = str(path)
            cls._files = files
        return cls._files

    @classmethod
    def get(cls, name: str) -> str:
        return cls._mapping().get(name.lower(), f"{name}/{name}.log")


LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_config: Dict[str, object] = {}
_handlers: Dict[str, RotatingFileHandler] = {}


def _config_from_env() -> Dict[str, object]:
    return {
        "level": os.environ.get("PAPERCAPSULE_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        "base_dir": os.environ.get("PAPERCAPSULE_LOG_DIR", DEFAULT_LOG_DIR),
        "max_bytes": int(os.environ.get("PAPERCAPSULE_LOG_MAX_BYTES", DEFAULT_MAX_BYTES)),
        "backup_count": int(os.environ.get("PAPERCAPSULE_LOG_BACKUP_COUNT", DEFAULT_BACKUP_COUNT)),
    }


def _handler_for(path: Path) -> RotatingFileHandler:
    key = str(path)
    handler = _handlers.get(key)
    if handler is None:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            filename=key,
            maxBytes=int(_config.get("max_bytes", DEFAULT_MAX_BYTES)),
            backupCount=int(_config.get("backup_count", DEFAULT_BACKUP_COUNT)),
            encoding="utf-8",
        )
        _handlers[key] = handler
    return handler


def _emit(level: str, message: str, file: Optional[str]) -> None:
    threshold = LOG_LEVELS.get(str(_config.get("level", DEFAULT_LOG_LEVEL)), logging.INFO)
    if LOG_LEVELS.get(level, 0) < threshold:
        return

    # two frames up: Logger.<level> -> caller
    frame = inspect.currentframe()
    caller = frame.f_back.f_back if frame and frame.f_back else None
    filename = os.path.basename(caller.f_code.co_filename) if caller else "unknown"
    lineno = caller.f_lineno if caller else 0

    line = LINE_FORMAT.format(
        timestamp=datetime.now().strftime(DATE_FORMAT),
        level=level,
        trace_id=_trace_id_var.get() or "-",
        filename=filename,
        lineno=lineno,
        message=message,
    )

    base_dir = Path(str(_config.get("base_dir", DEFAULT_LOG_DIR)))
    path = base_dir / (file or DEFAULT_LOG_FILE)
    handler = _handler_for(path)
    handler.acquire()
    try:
        if handler.shouldRollover(logging.makeLogRecord({"msg": line})):
            handler.doRollover()
        handler.stream.write(line + "\n")
        handler.stream.flush()
    finally:
        handler.release()


class Logger:
    """Static logger writing to named files under the log directory."""

    @staticmethod
    def init(level: Optional[str] = None, base_dir: Optional[str] = None) -> None:
        if _config:
            return
        _config.update(_config_from_env())
        if level:
            _config["level"] = level.upper()
        if base_dir:
            _config["base_dir"] = base_dir

    @staticmethod
    def debug(message: str, file: Optional[str] = None) -> None:
        Logger.init()
        _emit("DEBUG", message, file)

    @staticmethod
    def info(message: str, file: Optional[str] = None) -> None:
        Logger.init()
        _emit("INFO", message, file)

    @staticmethod
    def warning(message: str, file: Optional[str] = None) -> None:
        Logger.init()
        _emit("WARNING", message, file)

    @staticmethod
    def error(message: str, file: Optional[str] = None) -> None:
        Logger.init()
        _emit("ERROR", message, file)

    @staticmethod
    def set_level(level: str) -> None:
        Logger.init()
        _config["level"] = level.upper()

    @staticmethod
    def close() -> None:
        for handler in _handlers.values():
            handler.close()
        _handlers.clear()
        _config.clear()


def set_trace_id(trace_id: Optional[str] = None) -> str:
    """Bind a trace id to the current context (a fresh one when omitted)."""
    tid = trace_id or f"req-{uuid.uuid4().hex[:12]}"
    _trace_id_var.set(tid)
    return tid


def get_trace_id() -> Optional[str]:
    return _trace_id_var.get()


def clear_trace_id() -> None:
    _trace_id_var.set(None)
