"""Logging wrapper shared by the client, auth and transport layers."""

from __future__ import annotations

import logging
from typing import Any, Callable, Literal, Protocol

LogLevel = Literal["trace", "debug", "info", "warn", "error"]

TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, "TRACE")

DEFAULT_LOGGER_NAME = "vimsdk"


class LoggerProtocol(Protocol):
    def trace(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def warn(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


LOG_LEVEL_PRIORITY: dict[LogLevel, int] = {
    "trace": 0,
    "debug": 1,
    "info": 2,
    "warn": 3,
    "error": 4,
}

_PYTHON_LEVELS: dict[LogLevel, int] = {
    "trace": TRACE_LEVEL,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class BoundLogger:
    """Filters by the client's log level, then hands records to a Python or duck-typed logger."""

    def __init__(
        self,
        logger: Any | None = None,
        *,
        level: LogLevel = "info",
    ) -> None:
        self._logger = logger or _default_logger()
        self._level = level

    @property
    def level(self) -> LogLevel:
        return self._level

    def trace(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit("trace", msg, *args, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit("debug", msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit("info", msg, *args, **kwargs)

    def warn(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit("warn", msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit("error", msg, *args, **kwargs)

    def child(self, name: str) -> "BoundLogger":
        """Return a logger for one component, e.g. ``vimsdk.client``."""
        if isinstance(self._logger, logging.Logger):
            base = self._logger.getChild(name)
        else:
            base = self._logger
        return BoundLogger(base, level=self._level)

    def _emit(self, level: LogLevel, msg: str, *args: Any, **kwargs: Any) -> None:
        if LOG_LEVEL_PRIORITY[level] < LOG_LEVEL_PRIORITY[self._level]:
            return
        try:
            if hasattr(self._logger, "log"):
                self._logger.log(_PYTHON_LEVELS[level], msg, *args, **kwargs)
                return

            # duck-typed loggers (structlog, custom adapters)
            handler: Callable[..., Any] | None = getattr(self._logger, level, None)
            if handler:
                handler(msg, *args, **kwargs)
        except Exception:
            # Logging failures never reach client code
            pass


def _default_logger() -> logging.Logger:
    logger = logging.getLogger(DEFAULT_LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(TRACE_LEVEL)
    return logger


def create_logger(*, logger: Any | None = None, level: LogLevel = "info") -> BoundLogger:
    if isinstance(logger, BoundLogger):
        return logger
    return BoundLogger(logger, level=level)


__all__ = ["BoundLogger", "LogLevel", "LoggerProtocol", "TRACE_LEVEL", "create_logger"]
