# crane/inventory/state.py
from __future__ import annotations
import logging
from collections import deque
from collections.abc import Iterable

from crane.semver import tryParseVersion
from crane.worker.commands import Command, ResolveCommits, ResolveVersions, RunDelete, RunUpdate
from crane.worker.events import (
    CommitLookupFailed,
    CommitLookupSucceeded,
    DeleteDone,
    Deleting,
    Log,
    Ready,
    ReadyFailed,
    UpdateDone,
    Updating,
    VersionLookupDone,
    VersionLookupFailed,
    VersionLookupSucceeded,
    WorkerEvent,
)
from .cache import CrateCacheStore
from .manifest import ManifestEntry
from .records import DEFAULT_DESCRIPTION, OperationCursor, OperationPhase, PackageRecord, PendingOperationSet

logger = logging.getLogger(__name__)

__all__ = ["MAX_LOG_LINES", "Inventory"]

MAX_LOG_LINES = 1000



class Inventory:
    """
    Consumer-side state: installed packages, the pending operation set and
    the progress of whatever the worker is doing.

    Applies worker events (handleEvent) and turns user intents into worker
    commands. This is the only place package records are mutated.
    """
    def __init__(
        self,
        records: Iterable[PackageRecord] = (),
        *,
        cache: CrateCacheStore | None = None,
        rateLimitMs: int = 1000,
    ) -> None:
        self.records: dict[str, PackageRecord] = {record.name: record for record in sorted(records, key=lambda r: r.name)}
        self.cache = cache
        self.rateLimitMs = rateLimitMs
        self.pending = PendingOperationSet()
        self.cursor: OperationCursor | None = None
        self.logs: deque[str] = deque(maxlen=MAX_LOG_LINES)
        self.fetchDone: int | None = None # Version lookups finished in the running batch
        self.operationActive = False

    @classmethod
    def fromSources(
        cls,
        entries: Iterable[ManifestEntry],
        cache: CrateCacheStore | None = None,
        *,
        rateLimitMs: int = 1000,
    ) -> Inventory:
        """Manifest entries merged with whatever the cache remembers about them."""
        records: list[PackageRecord] = []
        for entry in entries:
            record = PackageRecord(
                name=entry.name,
                version=entry.version,
                activatedFeatures=set(entry.features),
                noDefaultFeatures=entry.noDefaultFeatures,
                gitLink=entry.gitLink,
                localHash=entry.localHash,
            )
            cached = cache.get(entry.name) if cache is not None else None
            if cached is not None:
                record.latestVersion = tryParseVersion(cached.crateVersion)
                record.cachedFeatures = tuple(cached.features)
                record.description = cached.description or DEFAULT_DESCRIPTION
                record.locked = cached.locked
            records.append(record)
        return cls(records, cache=cache, rateLimitMs=rateLimitMs)

    # ----------------------------------------------
    #                  Lookups
    # ----------------------------------------------

    def get(self, name: str) -> PackageRecord:
        try:
            return self.records[name]
        except KeyError:
            raise KeyError(f"Unknown package {name!r}") from None

    def hasUpdate(self, name: str) -> bool:
        return self.get(name).hasUpdate()

    def fetchProgress(self) -> float | None:
        """Percent of version lookups finished, None when no lookup batch is running."""
        if self.fetchDone is None or not self.records:
            return None
        return (self.fetchDone / len(self.records)) * 100.0

    def operationProgress(self) -> float | None:
        """Percent of the combined update+delete batch, None when idle."""
        total = self.pending.total
        if self.cursor is None or total == 0:
            return None
        if self.cursor.phase is OperationPhase.UPDATE:
            currentlyAt = self.cursor.index
        else:
            currentlyAt = len(self.pending.toUpdate) + self.cursor.index
        return (currentlyAt / total) * 100.0

    # ----------------------------------------------
    #                 User intents
    # ----------------------------------------------

    def toggleUpdate(self, name: str) -> bool:
        record = self.get(name)
        if record.locked:
            logger.info("Refusing to queue locked crate %s for update", name)
            return False
        return self.pending.toggleUpdate(record)

    def toggleDelete(self, name: str) -> bool:
        record = self.get(name)
        if record.locked:
            logger.info("Refusing to queue locked crate %s for deletion", name)
            return False
        return self.pending.toggleDelete(record)

    def updateAll(self) -> list[str]:
        """Queue every unlocked package that has something newer. Returns the queued names."""
        queued: list[str] = []
        for record in self.records.values():
            if record.locked or not record.hasUpdate():
                continue
            self.pending.toDelete.pop(record.name, None)
            self.pending.toUpdate[record.name] = record.snapshot()
            queued.append(record.name)
        return queued

    def toggleFeature(self, name: str, feature: str) -> None:
        """The pseudo-feature "default" flips noDefaultFeatures; any other name toggles membership."""
        record = self.get(name)
        if feature == "default":
            record.noDefaultFeatures = not record.noDefaultFeatures
        elif feature in record.activatedFeatures:
            record.activatedFeatures.discard(feature)
        else:
            record.activatedFeatures.add(feature)

        # Keep a queued update in step with what the user now wants installed
        if name in self.pending.toUpdate:
            self.pending.toUpdate[name] = record.snapshot()

    def toggleLock(self, name: str) -> bool:
        record = self.get(name)
        record.locked = not record.locked
        self.pending.discard(name)
        if self.cache is not None:
            self.cache.updateLocked(name, record.locked)
        return record.locked

    def setGitLink(self, name: str, link: str) -> None:
        record = self.get(name)
        link = link.strip()
        if link:
            record.gitLink = link

    def clearGitLink(self, name: str) -> None:
        self.get(name).gitLink = None

    def suggestedGitLink(self, name: str) -> str:
        return self.get(name).repository or ""

    def cancelPending(self) -> None:
        if self.operationActive:
            logger.warning("Cannot cancel: an operation batch is already running")
            return
        self.pending.clear()

    # ----------------------------------------------
    #                  Commands
    # ----------------------------------------------

    def initialCommands(self, rateLimitMs: int | None = None) -> list[Command]:
        commands: list[Command] = []
        if self.records:
            self.fetchDone = 0
            commands.append(ResolveVersions(
                names=tuple(self.records),
                rateLimitMs=self.rateLimitMs if rateLimitMs is None else rateLimitMs,
            ))
        commitCommand = self.commitCommand()
        if commitCommand is not None:
            commands.append(commitCommand)
        return commands

    def commitCommand(self) -> ResolveCommits | None:
        links = {record.name: record.gitLink for record in self.records.values() if record.gitLink}
        return ResolveCommits(repoLinks=links) if links else None

    def applyCommand(self) -> Command | None:
        """Updates run first; pending deletes follow once the update batch is done."""
        if self.operationActive:
            return None
        command: Command | None = None
        if self.pending.toUpdate:
            command = RunUpdate(specs=tuple(record.installSpec() for record in self.pending.toUpdate.values()))
        elif self.pending.toDelete:
            command = RunDelete(names=tuple(self.pending.toDelete))
        if command is not None:
            self.operationActive = True
        return command

    # ----------------------------------------------
    #                Worker events
    # ----------------------------------------------

    def handleEvent(self, event: WorkerEvent) -> list[Command]:
        """Apply one worker event. Returns the commands that should be sent next."""
        if isinstance(event, Log):
            self.logs.append(event.text)
        elif isinstance(event, Ready):
            return self.initialCommands()
        elif isinstance(event, ReadyFailed):
            logger.error("Failed to start client for fetching crates info: %s", event.reason)
            self.logs.append(f"Registry client unavailable: {event.reason}")
            self.fetchDone = None
        elif isinstance(event, VersionLookupSucceeded):
            self.fetchDone = event.index + 1
            self._applyVersion(event)
        elif isinstance(event, VersionLookupFailed):
            self.fetchDone = event.index + 1
        elif isinstance(event, VersionLookupDone):
            self.fetchDone = None
        elif isinstance(event, CommitLookupSucceeded):
            record = self.records.get(event.name)
            if record is not None:
                record.latestHash = event.commit
        elif isinstance(event, CommitLookupFailed):
            self.logs.append(f"Could not resolve latest commit for {event.name}: {event.reason}")
        elif isinstance(event, Updating):
            self._finishCursor()
            self.cursor = OperationCursor(name=event.name, phase=OperationPhase.UPDATE, index=event.index)
        elif isinstance(event, Deleting):
            self._finishCursor()
            self.cursor = OperationCursor(name=event.name, phase=OperationPhase.DELETE, index=event.index)
        elif isinstance(event, UpdateDone):
            self._finishCursor()
            self.cursor = None
            if self.pending.toDelete:
                return [RunDelete(names=tuple(self.pending.toDelete))]
            self._endOperation()
        elif isinstance(event, DeleteDone):
            self._finishCursor()
            self._endOperation()
        else:
            logger.info("Received unhandled worker event: %r", event)
        return []

    def _applyVersion(self, event: VersionLookupSucceeded) -> None:
        latest = tryParseVersion(event.latestVersion)
        if latest is None:
            logger.error("Failed to parse version %s for %s", event.latestVersion, event.name)
            return
        record = self.records.get(event.name)
        if record is None:
            logger.warning("Version lookup for unknown crate %s", event.name)
            return

        # Back from the registry means it still exists; it's no longer a delete candidate
        self.pending.toDelete.pop(event.name, None)
        record.description = event.description
        record.latestVersion = latest
        record.cachedFeatures = tuple(event.features)
        record.repository = event.repository
        if self.cache is not None:
            self.cache.updateCache(event.name, event.description, event.features, str(latest))

    def _finishCursor(self) -> None:
        """The package under the cursor is done: bump its version or drop its record."""
        cursor = self.cursor
        if cursor is None:
            return
        self.cursor = None
        if cursor.phase is OperationPhase.DELETE:
            self.records.pop(cursor.name, None)
            return
        record = self.records.get(cursor.name)
        if record is None:
            return
        if record.latestVersion is not None:
            record.version = record.latestVersion
        if record.latestHash is not None and record.gitLink:
            record.localHash = record.latestHash

    def _endOperation(self) -> None:
        self.cursor = None
        self.pending.clear()
        self.operationActive = False
