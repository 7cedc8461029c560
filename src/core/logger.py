"""Logging setup for the reconciler.

Two loggers are handed to every component:

* ``console_logger`` prints progress, request traces and score breakdowns
  through a Rich handler bound to the shared console, so log lines and the
  result tables never interleave.
* ``error_logger`` feeds a queue; a background listener writes its records
  to the run log file, off the event loop thread.

The run log keeps one banner per run and is trimmed to the last
``logging.max_runs`` runs when the handler closes. ``get_loggers`` never
raises: a broken setup degrades to plain stream loggers.
"""

from __future__ import annotations

import logging
import queue
import sys
import time
import traceback
from datetime import UTC, datetime
from functools import lru_cache
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from typing import TYPE_CHECKING, NamedTuple

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from core.models.config_models import AppConfig

__all__ = [
    "CONSOLE_LOGGER_NAME",
    "ERROR_LOGGER_NAME",
    "LEVEL_ABBREV",
    "RUN_HEADER_PREFIX",
    "RUN_SEPARATOR",
    "CompactFormatter",
    "LogLevels",
    "NamePrefixFilter",
    "RunLogHandler",
    "SafeQueueListener",
    "ensure_directory",
    "fallback_loggers",
    "get_loggers",
    "get_shared_console",
    "resolve_log_path",
    "run_banner",
    "shorten_path",
    "trim_runs",
]

CONSOLE_LOGGER_NAME = "console_logger"
ERROR_LOGGER_NAME = "error_logger"
CONFIG_LOGGER_NAME = "config"
RUN_SEPARATOR = "=" * 80
RUN_HEADER_PREFIX = "NEW RUN:"
FILE_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(short_pathname)s:%(lineno)d - %(message)s"

LEVEL_ABBREV = {
    "DEBUG": "D",
    "INFO": "I",
    "WARNING": "W",
    "ERROR": "E",
    "CRITICAL": "C",
}


@lru_cache(maxsize=1)
def get_shared_console() -> Console:
    """Return the process-wide Rich console used by logs and reports."""
    return Console()


class LogLevels(NamedTuple):
    """Numeric levels for the console and the run log file."""

    console: int
    file: int

    @classmethod
    def from_config(cls, config: AppConfig) -> LogLevels:
        """Resolve level names such as ``"debug"`` into ``logging`` constants.

        Unknown or empty names fall back to INFO.
        """
        return cls(
            console=_level_number(config.logging.levels.console),
            file=_level_number(config.logging.levels.main_file),
        )


def _level_number(name: str | None) -> int:
    if not name:
        return logging.INFO
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


class SafeQueueListener(QueueListener):
    """QueueListener whose ``stop`` may be called more than once."""

    def stop(self) -> None:
        if getattr(self, "_thread", None) is None:
            return
        try:
            super().stop()
        except (AttributeError, RuntimeError, TypeError) as e:
            print(f"Warning: could not stop the log listener: {e}", file=sys.stderr)

    def close_handlers(self) -> None:
        """Stop the thread and close every file handler it feeds."""
        self.stop()
        for handler in self.handlers:
            handler.close()


class NamePrefixFilter(logging.Filter):
    """Pass records from the given loggers and their children only.

    ``NamePrefixFilter(["error_logger"])`` lets ``error_logger`` and
    ``error_logger.deezer`` through but not ``error_logger_other``.
    """

    def __init__(self, names: list[str]) -> None:
        super().__init__()
        self.names = tuple(names)

    def filter(self, record: logging.LogRecord) -> bool:
        return any(record.name == name or record.name.startswith(name + ".") for name in self.names)


def ensure_directory(path: str | Path, error_logger: logging.Logger | None = None) -> None:
    """Create ``path`` and its parents; failures are reported, not raised."""
    if not path:
        return
    directory = Path(path)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        if error_logger is not None:
            error_logger.exception("Cannot create log directory %s", directory)
        else:
            print(f"ERROR: cannot create log directory {directory}: {e}", file=sys.stderr)


def resolve_log_path(
    config: AppConfig | None,
    key: str,
    default: str,
    error_logger: logging.Logger | None = None,
) -> Path:
    """Return ``logs_base_dir / logging.<key>`` and make sure its folder exists.

    Without a config the ``default`` relative path is used as is.
    """
    if config is None:
        if error_logger is not None:
            error_logger.error("No configuration given for log file %s", key)
        path = Path(default)
    else:
        relative = getattr(config.logging, key, None) or default
        path = Path(config.logging.logs_base_dir) / str(relative)

    ensure_directory(path.parent, error_logger)
    return path


def shorten_path(path: str) -> str:
    """Replace the home directory prefix of ``path`` with ``~``."""
    if not path:
        return ""
    try:
        home = str(Path.home())
    except (OSError, RuntimeError, KeyError):
        return path
    if path == home:
        return "~"
    return "~" + path[len(home) :] if path.startswith(home + "/") else path


def trim_runs(log_file: str | Path, max_runs: int) -> None:
    """Drop everything before the ``max_runs``-th most recent run banner."""
    path = Path(log_file)
    if max_runs <= 0 or not path.exists():
        return

    try:
        lines = path.read_text(encoding="utf-8", errors="ignore").splitlines(keepends=True)
        starts = [
            index
            for index in range(len(lines) - 1)
            if lines[index].strip() == RUN_SEPARATOR and lines[index + 1].startswith(RUN_HEADER_PREFIX)
        ]
        if len(starts) <= max_runs:
            return
        temp = path.with_name(path.name + ".tmp")
        temp.write_text("".join(lines[starts[-max_runs] :]), encoding="utf-8")
        temp.replace(path)
    except OSError as e:
        print(f"Error trimming log file {path}: {e}", file=sys.stderr)


def run_banner(title: str) -> str:
    """Frame ``title`` between separator lines."""
    return f"\n\n{RUN_SEPARATOR}\n{title}\n{RUN_SEPARATOR}\n\n"


class CompactFormatter(logging.Formatter):
    """File formatter with one-letter levels and ``~``-relative source paths."""

    def __init__(self, fmt: str = FILE_FORMAT, datefmt: str = "%Y-%m-%d %H:%M:%S") -> None:
        super().__init__(fmt, datefmt)

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        record.levelname = LEVEL_ABBREV.get(levelname, levelname[:1])
        record.short_pathname = shorten_path(record.pathname)
        try:
            return super().format(record)
        finally:
            # the same record may reach other handlers
            record.levelname = levelname
            del record.short_pathname


class RunLogHandler(logging.FileHandler):
    """File handler that frames each run with banners and trims old runs on close."""

    def __init__(self, filename: str | Path, max_runs: int = 3) -> None:
        ensure_directory(Path(filename).parent)
        super().__init__(filename, mode="a", encoding="utf-8")
        self.max_runs = max_runs
        self.started = time.monotonic()
        self._banner_written = False
        self._closed = False

    def emit(self, record: logging.LogRecord) -> None:
        if not self._banner_written:
            self._banner_written = True
            stamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
            try:
                self.stream.write(run_banner(f"{RUN_HEADER_PREFIX} {record.name} - {stamp}"))
            except OSError:
                self.handleError(record)
        super().emit(record)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if self._banner_written and self.stream:
                elapsed = time.monotonic() - self.started
                self.stream.write(run_banner(f"END RUN: Total time: {elapsed:.2f}s"))
                self.flush()
        except (OSError, ValueError) as e:
            print(f"ERROR: cannot write run footer to {self.baseFilename}: {e}", file=sys.stderr)
        finally:
            super().close()
            trim_runs(self.baseFilename, self.max_runs)


def _console_logger(level: int) -> logging.Logger:
    logger = logging.getLogger(CONSOLE_LOGGER_NAME)
    if not logger.handlers:
        handler = RichHandler(
            level=level,
            console=get_shared_console(),
            show_path=False,
            enable_link_path=False,
            log_time_format="%H:%M:%S",
            markup=False,
        )
        logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = False
    return logger


def _queue_loggers(config: AppConfig, level: int) -> tuple[logging.Logger, SafeQueueListener]:
    file_handler = RunLogHandler(resolve_log_path(config, "main_log_file", "main/main.log"), config.logging.max_runs)
    file_handler.setFormatter(CompactFormatter())
    file_handler.setLevel(level)
    file_handler.addFilter(NamePrefixFilter([ERROR_LOGGER_NAME, CONFIG_LOGGER_NAME]))

    records: queue.Queue[logging.LogRecord] = queue.Queue()
    listener = SafeQueueListener(records, file_handler, respect_handler_level=True)
    listener.start()

    queue_handler = QueueHandler(records)
    for name in (ERROR_LOGGER_NAME, CONFIG_LOGGER_NAME):
        logger = logging.getLogger(name)
        if all(isinstance(h, logging.NullHandler) for h in logger.handlers):
            logger.handlers[:] = [queue_handler]
            logger.setLevel(level)
            logger.propagate = False
    return logging.getLogger(ERROR_LOGGER_NAME), listener


def get_loggers(config: AppConfig) -> tuple[logging.Logger, logging.Logger, SafeQueueListener | None]:
    """Build ``(console_logger, error_logger, listener)`` from the configuration.

    The listener is ``None`` when setup failed and fallback loggers were returned.
    """
    try:
        levels = LogLevels.from_config(config)
        console_logger = _console_logger(levels.console)
        error_logger, listener = _queue_loggers(config, levels.file)
    except (OSError, ValueError, AttributeError, TypeError) as e:
        return fallback_loggers(e)

    console_logger.debug("Logging ready (console=%s, file=%s)", levels.console, levels.file)
    return console_logger, error_logger, listener


def fallback_loggers(error: Exception) -> tuple[logging.Logger, logging.Logger, None]:
    """Plain stdout/stderr loggers used when the regular setup fails."""
    print(f"FATAL ERROR: logging setup failed: {error}", file=sys.stderr)
    traceback.print_exc(file=sys.stderr)

    console_fallback = logging.getLogger("console_fallback")
    error_fallback = logging.getLogger("error_fallback")
    for logger, stream in ((console_fallback, sys.stdout), (error_fallback, sys.stderr)):
        if not logger.handlers:
            logger.addHandler(logging.StreamHandler(stream))
        logger.setLevel(logging.INFO)
    error_fallback.critical("Falling back to basic logging: %s", error)
    return console_fallback, error_fallback, None
