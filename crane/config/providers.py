# crane/config/providers.py
from __future__ import annotations
import copy
import logging
import os
from abc import ABC, abstractmethod
from typing import Any
from collections.abc import Mapping
from pathlib import Path

import json5

from crane.core.dictpath import deleteByPath, getByPath, setByPath

logger = logging.getLogger(__name__)

__all__ = [
    "ConfigProvider", "OverrideProvider", "DefaultsProvider", "FileProvider",
]



def _readObject(path: Path, owner: str) -> dict[str, Any] | None:
    """
    Parse a JSON/JSON5 document that must hold an object.

    Returns None when the text is not valid JSON5 (caller decides how loud to be).
    Raises TypeError when it parses to anything other than an object.
    """
    try:
        parsed = json5.loads(path.read_text(encoding="utf-8"))
    except ValueError as err:
        logger.warning("%s: cannot parse '%s': %s", owner, path, err)
        return None

    if parsed is None:
        return {}
    if not isinstance(parsed, Mapping):
        raise TypeError(f"{owner}: '{path}' must contain a JSON object, got '{type(parsed).__name__}'")
    return dict(parsed)



class ConfigProvider(ABC):
    """One layer of configuration. Keys are dotted paths ("worker.rateLimitMs")."""

    @abstractmethod
    def get(self, key: str) -> Any | None: ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None: ...

    @abstractmethod
    def to_dict(self) -> dict[str, Any]: ...

    def save(self) -> None:
        return



class _DictLayer(ConfigProvider):
    """Shared storage for layers backed by a plain nested dict."""
    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return getByPath(self._data, key, None)

    def _write(self, key: str, value: Any) -> None:
        # None removes the key so lower layers show through again
        if value is None:
            deleteByPath(self._data, key, pruneEmptyParents=True)
        else:
            setByPath(self._data, key, copy.deepcopy(value), createIfMissing=True)

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)



# ----------------------------------------------
#               Runtime overrides
# ----------------------------------------------

class OverrideProvider(_DictLayer):
    """Topmost layer: CLI flags, test overrides. Lives in memory only."""
    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self._data = copy.deepcopy(dict(data or {}))

    def set(self, key: str, value: Any) -> None:
        self._write(key, value)



# ----------------------------------------------
#               Shipped defaults
# ----------------------------------------------

class DefaultsProvider(_DictLayer):
    """
    Bottom layer holding the values Crane ships with. Never written.

    Built from an in-memory mapping, or from a JSON5 file via `path`.
    With strict=False a missing file yields an empty layer instead of FileNotFoundError.
    """
    def __init__(
        self,
        data: Mapping[str, Any] | None = None,
        *,
        path: Path | str | None = None,
        strict: bool = True,
    ) -> None:
        super().__init__()
        owner = type(self).__name__
        if (data is None) == (path is None):
            raise ValueError(f"{owner}: pass exactly one of 'data' or 'path'")

        if data is not None:
            if not isinstance(data, Mapping):
                raise TypeError(f"{owner}: 'data' must be a Mapping, got '{type(data).__name__}'")
            self._data = copy.deepcopy(dict(data))
            return

        source = Path(path)
        if not source.exists():
            if strict:
                raise FileNotFoundError(f"{owner}: defaults file '{source}' not found")
            return
        parsed = _readObject(source, owner)
        if parsed is None:
            raise TypeError(f"{owner}: defaults file '{source}' is not valid JSON5")
        self._data = parsed

    def set(self, key: str, value: Any) -> None:
        raise RuntimeError(f"{type(self).__name__} is read-only")



# ----------------------------------------------
#             User config file (JSON5)
# ----------------------------------------------

class FileProvider(_DictLayer):
    """
    The user's config file, layered between defaults and overrides.

    A missing file is an empty layer and an unparsable one is treated the
    same way (with a warning); a file holding a non-object raises TypeError.
    save() rewrites the whole file atomically.
    """
    def __init__(self, path: str | Path, *, readOnly: bool = False) -> None:
        super().__init__()
        self.path = Path(path)
        self.readOnly = readOnly
        self.reload()

    def reload(self) -> None:
        owner = type(self).__name__
        if not self.path.exists():
            logger.debug("%s: no file at '%s', using an empty layer", owner, self.path)
            self._data = {}
            return
        if not self.path.is_file():
            raise IsADirectoryError(f"{owner}: '{self.path}' is not a regular file")
        self._data = _readObject(self.path, owner) or {}

    def _checkWritable(self) -> None:
        if self.readOnly:
            raise RuntimeError(f"{type(self).__name__}({self.path}) is read-only")

    def set(self, key: str, value: Any) -> None:
        self._checkWritable()
        self._write(key, value)

    def save(self) -> None:
        self._checkWritable()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = json5.dumps(self._data, indent=2, quote_keys=True).rstrip("\n") + "\n"

        tmpPath = self.path.with_name(self.path.name + ".tmp")
        tmpPath.write_text(text, encoding="utf-8")
        os.replace(tmpPath, self.path)
        logger.debug("%s: wrote %d top-level keys to '%s'", type(self).__name__, len(self._data), self.path)
