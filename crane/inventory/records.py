# crane/inventory/records.py
from __future__ import annotations
import copy
from dataclasses import dataclass, field
from enum import Enum

from crane.semver import Version, isNewer
from crane.worker.commands import InstallSpec

__all__ = [
    "DEFAULT_DESCRIPTION",
    "OperationPhase",
    "PackageRecord",
    "OperationCursor",
    "PendingOperationSet",
]

DEFAULT_DESCRIPTION = "This crate has no description"



class OperationPhase(str, Enum):
    UPDATE = "update"
    DELETE = "delete"



@dataclass
class PackageRecord:
    """
    One installed package and what we know about its remote state.

    Owned by the Inventory; the worker only ever sees snapshots of it.
    """
    name: str                                   # Unique key
    version: Version                            # Installed version from the manifest
    description: str = DEFAULT_DESCRIPTION
    latestVersion: Version | None = None        # Newest version on the registry
    latestHash: str | None = None               # Newest commit on the VCS host
    localHash: str | None = None                # Commit the local install was built from
    activatedFeatures: set[str] = field(default_factory=set)
    noDefaultFeatures: bool = False
    gitLink: str | None = None                  # VCS URL used for commit lookups
    locked: bool = False                        # Excluded from batch updates
    cachedFeatures: tuple[str, ...] = ()        # Feature names known from the registry/cache
    repository: str | None = None               # Repository URL reported by the registry

    @property
    def useDefaultFeatures(self) -> bool:
        return not self.noDefaultFeatures

    def snapshot(self) -> PackageRecord:
        return copy.deepcopy(self)

    def installSpec(self) -> InstallSpec:
        return InstallSpec(
            name=self.name,
            features=tuple(self.activatedFeatures),
            noDefaultFeatures=self.noDefaultFeatures,
        )

    def hasUpdate(self) -> bool:
        """Git-linked installs compare commits when both are known, everything else compares versions."""
        if self.gitLink and self.latestHash and self.localHash:
            return self.latestHash != self.localHash
        return isNewer(self.latestVersion, self.version)



@dataclass(frozen=True, slots=True)
class OperationCursor:
    """The package a running update/delete batch is currently working on."""
    name: str
    phase: OperationPhase
    index: int



@dataclass
class PendingOperationSet:
    """
    Packages queued for the next apply. A name is never in both mappings.
    Values are snapshots taken when the package was queued.
    """
    toUpdate: dict[str, PackageRecord] = field(default_factory=dict)
    toDelete: dict[str, PackageRecord] = field(default_factory=dict)

    def toggleUpdate(self, record: PackageRecord) -> bool:
        """Returns True when the package is now queued for update."""
        if record.name in self.toUpdate:
            del self.toUpdate[record.name]
            return False
        self.toDelete.pop(record.name, None)
        self.toUpdate[record.name] = record.snapshot()
        return True

    def toggleDelete(self, record: PackageRecord) -> bool:
        """Returns True when the package is now queued for deletion."""
        if record.name in self.toDelete:
            del self.toDelete[record.name]
            return False
        self.toUpdate.pop(record.name, None)
        self.toDelete[record.name] = record.snapshot()
        return True

    def discard(self, name: str) -> None:
        self.toUpdate.pop(name, None)
        self.toDelete.pop(name, None)

    def clear(self) -> None:
        self.toUpdate.clear()
        self.toDelete.clear()

    @property
    def total(self) -> int:
        return len(self.toUpdate) + len(self.toDelete)

    def isEmpty(self) -> bool:
        return self.total == 0
