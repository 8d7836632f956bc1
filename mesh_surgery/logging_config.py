"""
Structured logging for the mesh_surgery package.

Every module logs through ``logging.getLogger(__name__)``, so all records
land under the ``mesh_surgery`` logger. This module only decides where they
go and how they look:

- JSONFormatter: one JSON object per line, for machine consumption
- ConsoleFormatter: short colored lines for a terminal
- log_timing / timed: start/complete/failed records with elapsed time
- LogContext: scoped fields (mesh id, operation batch) stamped on records

Usage:
    from mesh_surgery.logging_config import setup_logging, log_timing

    setup_logging(level=logging.DEBUG, json_file="surgery.log.json")

    with LogContext(mesh_id="scan-42"):
        with log_timing(logger, "fill holes", loops=3):
            results = fill_holes(mesh)
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, TextIO, TypeVar, Union

F = TypeVar('F', bound=Callable[..., Any])

PACKAGE_LOGGER = "mesh_surgery"

# Attributes every LogRecord carries; anything else arrived through `extra=`
RESERVED_KEYS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'taskName', 'message', 'asctime',
})


def extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields attached to a record via `extra=` or a LogContext."""
    return {k: v for k, v in record.__dict__.items() if k not in RESERVED_KEYS}


class JSONFormatter(logging.Formatter):
    """One JSON line per record.

    Output:
        {"timestamp": "...", "level": "INFO", "logger": "...", "message": "...", ...}

    Warnings, errors and debug records also carry a "location" object.
    numpy arrays and scalars become lists and numbers; anything else json
    cannot encode (AABBs, objects) is stored as str().
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.levelno >= logging.WARNING or record.levelno <= logging.DEBUG:
            entry["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            for key, value in extra_fields(record).items():
                entry[key] = _jsonable(value)

        return json.dumps(entry, ensure_ascii=False)


def _jsonable(value: Any) -> Any:
    if hasattr(value, "tolist"):
        value = value.tolist()
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class ConsoleFormatter(logging.Formatter):
    """Terminal formatter.

    Format: [HH:MM:SS] LEVEL    module: message [key=value, ...]
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True, show_extra: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.show_extra = show_extra

    def _level(self, levelname: str) -> str:
        padded = f"{levelname:8}"
        if self.use_colors and levelname in self.COLORS:
            return f"{self.COLORS[levelname]}{padded}{self.RESET}"
        return padded

    @staticmethod
    def _short_name(name: str) -> str:
        prefix = PACKAGE_LOGGER + "."
        return name[len(prefix):] if name.startswith(prefix) else name

    @staticmethod
    def _format_value(value: Any) -> str:
        if isinstance(value, float):
            return f"{value:.3g}"
        if isinstance(value, (list, tuple)) and len(value) > 3:
            return f"[...{len(value)} items]"
        return str(value)

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = (
            f"[{stamp}] {self._level(record.levelname)} "
            f"{self._short_name(record.name)}: {record.getMessage()}"
        )

        if self.show_extra:
            extras = [f"{k}={self._format_value(v)}" for k, v in extra_fields(record).items()]
            if extras:
                line += " [" + ", ".join(extras) + "]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: int = logging.INFO,
    json_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    use_colors: bool = True,
    root_logger: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Attach console and/or JSON-file handlers.

    Existing handlers on the target logger are replaced, so calling this
    twice does not duplicate output.

    Args:
        level: Minimum level for the logger and its handlers
        json_file: Path of a JSON-lines log file, or None
        console: Write human-readable lines to `stream`
        use_colors: ANSI colors on the console
        root_logger: Configure the root logger instead of mesh_surgery
        stream: Console stream (default sys.stderr)

    Returns:
        The configured logger
    """
    logger = logging.getLogger("" if root_logger else PACKAGE_LOGGER)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if console:
        console_handler = logging.StreamHandler(stream or sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(ConsoleFormatter(use_colors=use_colors))
        logger.addHandler(console_handler)

    if json_file:
        json_handler = logging.FileHandler(Path(json_file), encoding='utf-8')
        json_handler.setLevel(level)
        json_handler.setFormatter(JSONFormatter())
        logger.addHandler(json_handler)

    if not root_logger:
        logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_timing(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    **fields: Any,
) -> Iterator[Dict[str, Any]]:
    """Log the start, completion (or failure) and duration of a block.

    The yielded dict may be filled inside the block; its entries are added
    to the completion record (e.g. number of triangles produced).

    Failures are logged at ERROR and re-raised.
    """
    info: Dict[str, Any] = {}
    started = time.perf_counter()
    logger.log(level, "Starting: %s", operation,
               extra={"event": "start", "operation": operation, **fields})
    try:
        yield info
    except Exception as exc:
        elapsed = time.perf_counter() - started
        logger.error(
            "Failed: %s (%.3fs) - %s", operation, elapsed, exc,
            extra={"event": "error", "operation": operation,
                   "elapsed_seconds": elapsed, "error": str(exc), **fields},
        )
        raise

    elapsed = time.perf_counter() - started
    info['elapsed_seconds'] = elapsed
    logger.log(
        level, "Completed: %s (%.3fs)", operation, elapsed,
        extra={"event": "complete", "operation": operation, **fields, **info},
    )


def timed(
    logger: Optional[logging.Logger] = None,
    level: int = logging.DEBUG,
    operation: Optional[str] = None,
) -> Callable[[F], F]:
    """Decorator form of log_timing.

    Uses the decorated function's module logger and name by default.
    """
    def decorator(func: F) -> F:
        func_logger = logger or logging.getLogger(func.__module__)
        op_name = operation or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with log_timing(func_logger, op_name, level):
                return func(*args, **kwargs)

        return wrapper  # type: ignore
    return decorator


class _ContextFilter(logging.Filter):
    def __init__(self, fields: Dict[str, Any]):
        super().__init__()
        self.fields = fields

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.fields.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class LogContext:
    """Stamp fields onto every mesh_surgery record inside a `with` block.

    The filter is installed on the package logger and on each of its
    handlers, so records from child loggers are stamped too. Fields passed
    explicitly with `extra=` win over context fields.

    Example:
        with LogContext(mesh_id="scan-42"):
            trace_polyline(mesh, points)
    """

    _current: Optional['LogContext'] = None

    def __init__(self, **fields: Any):
        self.fields = fields
        self._previous: Optional['LogContext'] = None
        self._filter = _ContextFilter(fields)
        self._targets: List[Union[logging.Logger, logging.Handler]] = []

    def __enter__(self) -> 'LogContext':
        self._previous = LogContext._current
        LogContext._current = self

        package_logger = logging.getLogger(PACKAGE_LOGGER)
        self._targets = [package_logger, *package_logger.handlers]
        for target in self._targets:
            target.addFilter(self._filter)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        for target in self._targets:
            target.removeFilter(self._filter)
        self._targets = []
        LogContext._current = self._previous

    @classmethod
    def current(cls) -> Optional['LogContext']:
        return cls._current


def configure_default_logging(verbose: bool = False) -> logging.Logger:
    """Console logging at INFO (DEBUG when verbose)."""
    return setup_logging(level=logging.DEBUG if verbose else logging.INFO)
