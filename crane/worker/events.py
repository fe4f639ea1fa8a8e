# crane/worker/events.py
from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union
from collections.abc import Awaitable, Callable

if TYPE_CHECKING:
    from .channel import Sender

__all__ = [
    "Ready",
    "ReadyFailed",
    "VersionLookupSucceeded",
    "VersionLookupFailed",
    "VersionLookupDone",
    "CommitLookupSucceeded",
    "CommitLookupFailed",
    "Updating",
    "Deleting",
    "UpdateDone",
    "DeleteDone",
    "Log",
    "WorkerEvent",
    "Emit",
]



@dataclass(frozen=True, slots=True)
class Ready:
    """First event of every worker: where to send commands."""
    sender: Sender[Any]



@dataclass(frozen=True, slots=True)
class ReadyFailed:
    """The registry client could not be built; the current command was dropped."""
    reason: str = ""



@dataclass(frozen=True, slots=True)
class VersionLookupSucceeded:
    index: int
    name: str
    description: str
    latestVersion: str
    features: tuple[str, ...] = ()
    repository: str | None = None



@dataclass(frozen=True, slots=True)
class VersionLookupFailed:
    index: int
    name: str
    reason: str = ""



@dataclass(frozen=True, slots=True)
class VersionLookupDone:
    pass



@dataclass(frozen=True, slots=True)
class CommitLookupSucceeded:
    name: str
    commit: str



@dataclass(frozen=True, slots=True)
class CommitLookupFailed:
    name: str
    reason: str = ""



@dataclass(frozen=True, slots=True)
class Updating:
    name: str
    index: int



@dataclass(frozen=True, slots=True)
class Deleting:
    name: str
    index: int



@dataclass(frozen=True, slots=True)
class UpdateDone:
    pass



@dataclass(frozen=True, slots=True)
class DeleteDone:
    pass



@dataclass(frozen=True, slots=True)
class Log:
    """Free text: subprocess output or the worker narrating what it runs."""
    text: str



WorkerEvent = Union[
    Ready,
    ReadyFailed,
    VersionLookupSucceeded,
    VersionLookupFailed,
    VersionLookupDone,
    CommitLookupSucceeded,
    CommitLookupFailed,
    Updating,
    Deleting,
    UpdateDone,
    DeleteDone,
    Log,
]

# Every producer inside the worker holds one of these; they all feed the same stream.
Emit = Callable[[WorkerEvent], Awaitable[None]]
