# crane/worker/__init__.py
from .actor import CommandActor, startWorker
from .channel import ChannelClosed, Receiver, Sender, channel
from .commands import Command, InstallSpec, ResolveCommits, ResolveVersions, RunDelete, RunUpdate
from .events import (
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
from .process import ProcessRunner
from .ratelimit import RateLimiter
from .registry import RegistryClient

__all__ = [
    "CommandActor",
    "startWorker",
    "ChannelClosed",
    "Receiver",
    "Sender",
    "channel",
    "Command",
    "InstallSpec",
    "ResolveCommits",
    "ResolveVersions",
    "RunDelete",
    "RunUpdate",
    "CommitLookupFailed",
    "CommitLookupSucceeded",
    "DeleteDone",
    "Deleting",
    "Log",
    "Ready",
    "ReadyFailed",
    "UpdateDone",
    "Updating",
    "VersionLookupDone",
    "VersionLookupFailed",
    "VersionLookupSucceeded",
    "WorkerEvent",
    "ProcessRunner",
    "RateLimiter",
    "RegistryClient",
]
