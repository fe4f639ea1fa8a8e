# crane/core/logging/formatters.py
from __future__ import annotations

import json
import logging
from typing import Any

from .context import getLogContext

__all__ = ["DevFormatter", "JsonFormatter"]



def _contextSuffix(ctx: dict[str, object] | None) -> str:
    """Console tail like ' [RunUpdate/alpha#2]'; empty without context."""
    if not ctx:
        return ""
    parts: list[str] = []
    if ctx.get("command"):
        parts.append(str(ctx["command"]))
    package = ctx.get("package")
    if package:
        index = ctx.get("index")
        parts.append(f"{package}#{index}" if index is not None else str(package))
    return f" [{'/'.join(parts)}]" if parts else ""



class JsonFormatter(logging.Formatter):
    """One JSON object per line, for the rotating log file."""
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": round(record.created * 1000),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "ctx": getLogContext() or {},
            "proc": {"pid": record.process, "name": record.processName},
        }
        if record.exc_info and record.exc_info[0] is not None:
            excType, excValue, _tb = record.exc_info
            payload["exc"] = {
                "type": excType.__name__,
                "message": str(excValue),
                "stack": self.formatException(record.exc_info),
            }
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)



class DevFormatter(logging.Formatter):
    """Console lines: timestamp with milliseconds, level, logger, message, worker context."""
    def format(self, record: logging.LogRecord) -> str:
        text = record.getMessage()
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        if record.stack_info:
            text = f"{text}\n{record.stack_info}"
        stamp = f"{self.formatTime(record, '%Y-%m-%dT%H:%M:%S')}.{int(record.msecs):03d}"
        return f"{stamp} {record.levelname}: [{record.name}] {text}{_contextSuffix(getLogContext())}"
