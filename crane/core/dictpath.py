# crane/core/dictpath.py
from __future__ import annotations
import copy
from typing import Any
from collections.abc import Mapping, MutableMapping

__all__ = ["getByPath", "setByPath", "deleteByPath", "deepMerge"]



# ----------------------------------------------
#                  path parsing
# ----------------------------------------------

def _splitPath(path: str) -> list[str]:
    """
    Splits a dotted path into segments; backslash escapes the next character.

    Examples:
      - worker.rateLimitMs -> ["worker", "rateLimitMs"]
      - crates\\.io.url    -> ["crates.io", "url"]
    """
    if not isinstance(path, str) or path == "":
        raise ValueError("Path must be a non-empty string")

    segments: list[str] = [""]
    chars = iter(path)
    for ch in chars:
        if ch == ".":
            segments.append("")
        elif ch == "\\":
            escaped = next(chars, None)
            if escaped is None:
                raise ValueError(f"Path '{path}' ends with a lone backslash")
            segments[-1] += escaped
        else:
            segments[-1] += ch

    if "" in segments:
        raise ValueError(f"Path '{path}' has an empty segment")
    return segments



# ----------------------------------------------
#                   Public API
# ----------------------------------------------

def getByPath(obj: Mapping[str, Any], path: str, default: Any | None = None) -> Any:
    """
    Returns the value at `path` from nested mappings, or `default` when any hop is missing.
    An invalid path is treated as "not found".
    """
    try:
        parts = _splitPath(path)
    except ValueError:
        return default

    current: Any = obj
    for part in parts:
        if isinstance(current, Mapping) and part in current:
            current = current[part]
            continue
        return default
    return current



def setByPath(obj: MutableMapping[str, Any], path: str, value: Any, *, createIfMissing: bool = False) -> None:
    """
    Sets the value at `path`. Missing intermediate mappings are created only
    when createIfMissing=True, otherwise KeyError is raised.
    """
    parts = _splitPath(path)

    current: Any = obj
    for part in parts[:-1]:
        if not isinstance(current, MutableMapping):
            raise TypeError(f"Cannot descend into '{part}': {type(current).__name__} is not a mutable mapping")
        if part not in current:
            if not createIfMissing:
                raise KeyError(f"path segment '{part}' not found in mapping")
            current[part] = {}
        current = current[part]

    if not isinstance(current, MutableMapping):
        raise TypeError(f"Cannot write '{parts[-1]}' into {type(current).__name__}")
    current[parts[-1]] = value



def deleteByPath(obj: MutableMapping[str, Any], path: str, *, pruneEmptyParents: bool = True) -> bool:
    """
    Deletes the value at `path`. Returns True if something was removed.

    With pruneEmptyParents=True, intermediate mappings left empty by the
    delete are removed as well (never the root itself).
    """
    parts = _splitPath(path)

    stack: list[tuple[MutableMapping[str, Any], str]] = []
    current: Any = obj
    for part in parts[:-1]:
        if not isinstance(current, MutableMapping) or part not in current:
            return False
        stack.append((current, part))
        current = current[part]

    last = parts[-1]
    if not isinstance(current, MutableMapping) or last not in current:
        return False
    del current[last]

    if pruneEmptyParents:
        for parent, key in reversed(stack):
            child = parent.get(key)
            if isinstance(child, MutableMapping) and len(child) == 0:
                del parent[key]
            else:
                break
    return True



def deepMerge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """
    Returns a new dict with `overlay` merged over `base`.
    Nested mappings merge key by key; any other value in overlay replaces the base value.
    """
    merged: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in overlay.items():
        existing = merged.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            merged[key] = deepMerge(existing, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged
