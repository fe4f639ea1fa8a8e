# crane/core/logging/context.py
from __future__ import annotations
import contextvars
from contextlib import contextmanager
from collections.abc import Iterator

# Worker context (command, package) lives here. The actor enriches it per step.
_logContextVar: contextvars.ContextVar[dict[str, object] | None] = contextvars.ContextVar("crane.logctx", default=None)

def setLogContext(**kvs):
    """Set or update per-log context values (command, package, index)."""
    current = dict(_logContextVar.get() or {}) # use copy
    for key, value in kvs.items():
        if value is not None:
            current[key] = value
    _logContextVar.set(current)

def clearLogContext():
    """Clear context after a command is fully handled."""
    _logContextVar.set(None)

def getLogContext():
    """Return current content dict or None."""
    return _logContextVar.get()

@contextmanager
def logContext(**kvs) -> Iterator[None]:
    """Scoped setLogContext(); restores the previous context on exit."""
    token = _logContextVar.set(dict(_logContextVar.get() or {}))
    try:
        setLogContext(**kvs)
        yield
    finally:
        _logContextVar.reset(token)
