# crane/inventory/cache.py
from __future__ import annotations
import logging
import os
from pathlib import Path
from collections.abc import Iterable

from pydantic import BaseModel, Field, ValidationError

from crane.config.settings import defaultDataDir

logger = logging.getLogger(__name__)

__all__ = ["CrateCacheEntry", "CacheDocument", "CrateCacheStore", "defaultCachePath"]



class CrateCacheEntry(BaseModel):
    description: str = ""
    features: list[str] = Field(default_factory=list)
    crateVersion: str | None = None
    pinned: bool = False
    locked: bool = False



class CacheDocument(BaseModel):
    crateCache: dict[str, CrateCacheEntry] = Field(default_factory=dict)



def defaultCachePath() -> Path:
    return defaultDataDir() / "crane.json"



class CrateCacheStore:
    """
    Last-seen registry data and user flags per crate, persisted as JSON.

    Every update* call writes the file immediately.
    """
    def __init__(self, path: str | Path | None = None, document: CacheDocument | None = None) -> None:
        self.path = Path(path) if path is not None else defaultCachePath()
        self.document = document or CacheDocument()

    @classmethod
    def load(cls, path: str | Path | None = None) -> CrateCacheStore:
        """Open the cache file, creating it when missing. A corrupt file starts over empty."""
        store = cls(path)
        if not store.path.exists():
            store.save()
            return store

        try:
            store.document = CacheDocument.model_validate_json(store.path.read_text(encoding="utf-8"))
        except ValidationError as err:
            logger.warning("Cache file '%s' is unreadable, starting empty: %s", store.path, err)
            store.document = CacheDocument()
        return store

    def get(self, name: str) -> CrateCacheEntry | None:
        return self.document.crateCache.get(name)

    def _entry(self, name: str) -> CrateCacheEntry:
        return self.document.crateCache.setdefault(name, CrateCacheEntry())

    def updateCache(self, name: str, description: str, features: Iterable[str], crateVersion: str) -> None:
        entry = self._entry(name)
        entry.description = description
        entry.features = sorted(set(features))
        entry.crateVersion = crateVersion
        self.save()

    def updatePinned(self, name: str, pinned: bool) -> None:
        self._entry(name).pinned = pinned
        self.save()

    def updateLocked(self, name: str, locked: bool) -> None:
        self._entry(name).locked = locked
        self.save()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        out = self.document.model_dump_json(indent=2)

        # Atomic write
        tmpPath = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmpPath, "w", encoding="utf-8") as fl:
            fl.write(out)
            fl.write("\n")
        os.replace(tmpPath, self.path)
        logger.debug("Cache saved (%d crates) to '%s'", len(self.document.crateCache), self.path)
