from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .context import snapshot

_RESERVED = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
    "asctime",
}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # trace_id/session_id/turn_id/state/errors[] on every record.
        payload.update(snapshot())

        # Convention: extra fields are carried in record.__dict__.
        for k, v in record.__dict__.items():
            if k in _RESERVED or k.startswith("_"):
                continue
            try:
                json.dumps(v)
                payload[k] = v
            except TypeError:
                payload[k] = repr(v)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


class KVLogger:
    """A tiny structured logging adapter: `log.info("event", key=value)`."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def debug(self, msg: str, *args: object, **kwargs: object) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: object) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: object) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: object) -> None:
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args: object, **kwargs: object) -> None:
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, *args, **kwargs)

    def _log(self, level: int, msg: str, *args: object, **kwargs: object) -> None:
        if not self._logger.isEnabledFor(level):
            return

        extra = kwargs.pop("extra", None)
        exc_info = kwargs.pop("exc_info", None)
        stack_info = bool(kwargs.pop("stack_info", False))
        if extra is None:
            extra_dict: dict[str, object] = {}
        elif isinstance(extra, dict):
            extra_dict = dict(extra)
        else:
            extra_dict = {"extra": repr(extra)}

        for k, v in kwargs.items():
            extra_dict[k] = v

        self._logger.log(
            level,
            msg,
            *args,
            extra=extra_dict,
            exc_info=exc_info,  # type: ignore[arg-type]
            stack_info=stack_info,
            stacklevel=3,
        )


def configure_logging(*, level: str = "INFO") -> None:
    """Configure root logging with JSON-lines output on stderr.

    Safe to call multiple times; the last level wins.
    """

    root = logging.getLogger()
    root.setLevel(level.upper())

    if getattr(root, "_turnloop_configured", False):
        return

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    setattr(root, "_turnloop_configured", True)


def get_logger(name: str = "turnloop") -> KVLogger:
    return KVLogger(logging.getLogger(name))
