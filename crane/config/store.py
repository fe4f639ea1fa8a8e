# crane/config/store.py
from __future__ import annotations

import logging
from typing import Any, Callable, Literal

from crane.core.dictpath import deepMerge
from .providers import ConfigProvider, DefaultsProvider, FileProvider, OverrideProvider

logger = logging.getLogger(__name__)

__all__ = ["ConfigStore", "ChangeListener"]

ChangeListener = Callable[[str, Any, Any], None]

Target = Literal["runtime", "file"]

_ROLE_TYPES: tuple[tuple[str, type[ConfigProvider]], ...] = (
    ("runtime", OverrideProvider),
    ("file", FileProvider),
    ("defaults", DefaultsProvider),
)



class ConfigStore:
    """
    Stack of providers, lowest precedence first.

    get() answers from the highest layer that has the key, set() writes into
    one named layer and re-validates the merged document, undoing the write
    if validation fails. Listeners hear about effective value changes only.
    """

    def __init__(self, *, providers: list[ConfigProvider], validator: Callable[[dict[str, Any]], Any] | None = None):
        self._providers = list(providers)
        self._validator = validator
        self._listeners: list[ChangeListener] = []

    def _layerFor(self, target: str) -> ConfigProvider:
        for role, kind in _ROLE_TYPES:
            if role != target:
                continue
            # Lowest matching layer owns the role
            for provider in self._providers:
                if isinstance(provider, kind):
                    return provider
        raise KeyError(f"No provider mapped for target '{target}'")

    def merged(self) -> dict[str, Any]:
        """Effective document with higher layers merged over lower ones."""
        doc: dict[str, Any] = {}
        for layer in self._providers:
            doc = deepMerge(doc, layer.to_dict())
        return doc

    def get(self, key: str, default: Any | None = None) -> Any | None:
        for layer in reversed(self._providers):
            found = layer.get(key)
            if found is not None:
                return found
        return default

    def set(self, key: str, value: Any, *, target: Target = "runtime") -> None:
        layer = self._layerFor(target)
        before = self.get(key)
        undo = layer.get(key)

        layer.set(key, value)
        if self._validator is not None:
            try:
                self._validator(self.merged())
            except Exception:
                layer.set(key, undo)
                raise

        after = self.get(key)
        if before == after:
            return
        for listener in list(self._listeners):
            try:
                listener(key, before, after)
            except Exception:
                logger.exception("Config listener failed for key %r", key)

    def subscribe(self, fn: ChangeListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that removes it again."""
        self._listeners.append(fn)

        def unsubscribe() -> None:
            if fn in self._listeners:
                self._listeners.remove(fn)
        return unsubscribe

    def snapshot(self) -> dict[str, Any]:
        return {
            "values": self.merged(),
            "layers": [type(layer).__name__ for layer in self._providers],
        }

    def saveAll(self) -> None:
        for layer in self._providers:
            layer.save()
