# crane/worker/commands.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Union
from collections.abc import Mapping

__all__ = [
    "InstallSpec",
    "ResolveVersions",
    "ResolveCommits",
    "RunUpdate",
    "RunDelete",
    "Command",
]



@dataclass(frozen=True, slots=True)
class InstallSpec:
    """What to pass to `<pm> install` for one package."""
    name: str
    features: tuple[str, ...] = ()
    noDefaultFeatures: bool = False

    def __post_init__(self):
        # Sorted so the invocation is deterministic regardless of set ordering upstream
        object.__setattr__(self, "features", tuple(sorted(set(self.features))))

    def installArgs(self) -> list[str]:
        args = ["install", self.name]
        if self.noDefaultFeatures:
            args.append("--no-default-features")
        for feature in self.features:
            args.extend(("--features", feature))
        return args



@dataclass(frozen=True, slots=True)
class ResolveVersions:
    """Look up the latest registry version for each name, in order, spaced by rateLimitMs."""
    names: tuple[str, ...]
    rateLimitMs: int = 1000

    def __post_init__(self):
        object.__setattr__(self, "names", tuple(self.names))
        if self.rateLimitMs < 0:
            raise ValueError("rateLimitMs must be >= 0")



@dataclass(frozen=True, slots=True)
class ResolveCommits:
    """Look up the latest commit for each (package name → VCS URL) pair."""
    repoLinks: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "repoLinks", dict(self.repoLinks))



@dataclass(frozen=True, slots=True)
class RunUpdate:
    specs: tuple[InstallSpec, ...]

    def __post_init__(self):
        object.__setattr__(self, "specs", tuple(self.specs))



@dataclass(frozen=True, slots=True)
class RunDelete:
    names: tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "names", tuple(self.names))



Command = Union[ResolveVersions, ResolveCommits, RunUpdate, RunDelete]
