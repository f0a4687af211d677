"""
elfcal Structured Logger
=========================

Provides :class:`ElfcalLogger`, a structured logging facade that emits
human-friendly Rich console output and, optionally, machine-parseable
JSON lines to a rotating log file.

References:
    - Python logging HOWTO. https://docs.python.org/3/howto/logging.html
    - Rich library. https://github.com/Textualize/rich
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

if TYPE_CHECKING:
    from shared.config import ElfcalConfig

_LOG_THEME = Theme(
    {
        "log.level.debug": "dim cyan",
        "log.level.info": "bold bright_blue",
        "log.level.warning": "bold yellow",
        "log.level.error": "bold red",
        "log.level.critical": "bold white on red",
    }
)

_STANDARD_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel"})


# ========================== JSON Formatter =================================


class _JSONFormatter(logging.Formatter):
    """Emit each log record as a single-line JSON object.

    Output fields::

        {
          "timestamp": "...",
          "level": "WARNING",
          "logger": "elfcal.calibration",
          "message": "...",
          "component": "calibration",
          "operation": "read_all",
          "extra": {"image": 0, "address": 4104},
          "exc_info": "..."
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for attr in ("component", "operation"):
            val = getattr(record, attr, None)
            if val is not None:
                entry[attr] = val

        extra = getattr(record, "elfcal_extra", None)
        if extra is not None:
            entry["extra"] = extra

        if record.exc_info and record.exc_info[1] is not None:
            entry["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class _ColorConsoleHandler(RichHandler):
    """:class:`rich.logging.RichHandler` writing to stderr with the elfcal theme."""

    def __init__(self, **kwargs: Any) -> None:
        console = Console(theme=_LOG_THEME, stderr=True)
        super().__init__(
            console=console,
            show_path=False,
            show_time=True,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            markup=False,
            **kwargs,
        )


# ========================== ElfcalLogger ===================================


class ElfcalLogger:
    """Structured, context-aware logger bound to one elfcal component.

    Keyword arguments that are not understood by :mod:`logging` are
    collected into a structured ``extra`` payload, so call sites can
    attach machine-readable context without formatting it into the
    message::

        log = ElfcalLogger("loader")
        with log.operation("parse"):
            log.info("Parsed %d sections", count, path=str(path))

    Args:
        component:       Component name; the stdlib logger is ``elfcal.<component>``.
        log_level:       Minimum severity (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file:        Path to the rotating log file. ``None`` disables file logging.
        json_logs:       If ``True`` the file handler emits JSON lines.
        max_bytes:       Maximum log-file size before rotation (default 10 MiB).
        backup_count:    Number of rotated backup files to keep.
        console_output:  If ``True`` attach a colour Rich console handler.
    """

    def __init__(
        self,
        component: str,
        *,
        log_level: str = "INFO",
        log_file: str | Path | None = None,
        json_logs: bool = False,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
        console_output: bool = True,
    ) -> None:
        self._component = component
        self._operation: str | None = None
        level = getattr(logging, log_level.upper(), logging.INFO)

        self._logger = logging.getLogger(f"elfcal.{component}")
        self._logger.setLevel(level)
        self._logger.propagate = False

        # Re-instantiation must not stack handlers
        self._logger.handlers.clear()

        if console_output:
            self._logger.addHandler(_ColorConsoleHandler(level=level))

        if log_file is not None:
            file_path = Path(log_file)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            fh = RotatingFileHandler(
                filename=str(file_path),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            fh.setLevel(level)
            if json_logs:
                fh.setFormatter(_JSONFormatter())
            else:
                fh.setFormatter(
                    logging.Formatter(
                        fmt=(
                            "%(asctime)s | %(levelname)-8s | "
                            "%(name)s | %(message)s"
                        ),
                        datefmt="%Y-%m-%dT%H:%M:%S%z",
                    )
                )
            self._logger.addHandler(fh)

    @classmethod
    def from_config(
        cls,
        component: str,
        config: ElfcalConfig,
        *,
        console_output: bool = True,
    ) -> ElfcalLogger:
        """Build a logger from the ``[global]`` table of *config*."""
        settings = config.global_settings
        level = "DEBUG" if settings.debug else settings.log_level
        return cls(
            component,
            log_level=level,
            log_file=settings.log_file,
            json_logs=settings.log_json,
            console_output=console_output,
        )

    # ------------------------------------------------------------------ #
    #  Context management -- operation scope
    # ------------------------------------------------------------------ #

    class _OperationContext:
        """Context manager that temporarily binds an operation name."""

        def __init__(self, parent: ElfcalLogger, operation: str) -> None:
            self._parent = parent
            self._operation = operation
            self._prev: str | None = None

        def __enter__(self) -> ElfcalLogger:
            self._prev = self._parent._operation
            self._parent._operation = self._operation
            return self._parent

        def __exit__(self, *exc: Any) -> None:
            self._parent._operation = self._prev

    def operation(self, name: str) -> _OperationContext:
        """Return a context manager that sets the *operation* field."""
        return self._OperationContext(self, name)

    # ------------------------------------------------------------------ #
    #  Log methods
    # ------------------------------------------------------------------ #

    def _enrich(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        extra = kwargs.pop("extra", {}) or {}

        payload: dict[str, Any] = {}
        for key in list(kwargs):
            if key not in _STANDARD_KWARGS:
                payload[key] = kwargs.pop(key)

        extra["component"] = self._component
        extra["operation"] = self._operation
        if payload:
            extra["elfcal_extra"] = payload

        kwargs["extra"] = extra
        return kwargs

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.debug(msg, *args, **self._enrich(kwargs))

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.info(msg, *args, **self._enrich(kwargs))

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.warning(msg, *args, **self._enrich(kwargs))

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.error(msg, *args, **self._enrich(kwargs))

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log an ERROR-level message with full exception traceback."""
        kwargs["exc_info"] = kwargs.get("exc_info", True)
        self._logger.error(msg, *args, **self._enrich(kwargs))

    # ------------------------------------------------------------------ #
    #  Timing helper
    # ------------------------------------------------------------------ #

    class _TimingContext:
        """Context manager for measuring and logging elapsed time."""

        def __init__(self, logger_inst: ElfcalLogger, label: str) -> None:
            self._logger = logger_inst
            self._label = label
            self._start: float = 0.0

        def __enter__(self) -> ElfcalLogger._TimingContext:
            self._start = time.perf_counter()
            self._logger.debug("Started: %s", self._label)
            return self

        def __exit__(self, *exc: Any) -> None:
            self._logger.debug(
                "Completed: %s (%.3f sec)", self._label, self.elapsed
            )

        @property
        def elapsed(self) -> float:
            """Seconds elapsed since entering the context."""
            return time.perf_counter() - self._start

    def timed(self, label: str) -> _TimingContext:
        """Context manager that logs start / finish and elapsed time."""
        return self._TimingContext(self, label)

    # ------------------------------------------------------------------ #
    #  Properties
    # ------------------------------------------------------------------ #

    @property
    def component(self) -> str:
        """Name of the component this logger is bound to."""
        return self._component

    @property
    def underlying(self) -> logging.Logger:
        """Direct access to the stdlib :class:`logging.Logger`."""
        return self._logger
