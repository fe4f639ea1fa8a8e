# crane/worker/actor.py
from __future__ import annotations
import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence

from crane.config.settings import CraneSettings
from crane.core.errors import RegistryError
from crane.core.logging import logContext, setLogContext
from .channel import Receiver, Sender, channel
from .commands import Command, InstallSpec, ResolveCommits, ResolveVersions, RunDelete, RunUpdate
from .events import (
    DeleteDone,
    Deleting,
    Log,
    Ready,
    ReadyFailed,
    UpdateDone,
    Updating,
    Emit,
    WorkerEvent,
)
from .process import ProcessRunner
from .ratelimit import RateLimiter
from .registry import RegistryClient

logger = logging.getLogger(__name__)

__all__ = ["CommandActor", "startWorker"]

# Strong references to live worker tasks; the event loop only keeps weak ones
_LIVE_TASKS: set[asyncio.Task[None]] = set()

RegistryFactory = Callable[[], RegistryClient]



class CommandActor:
    """
    Long-lived background worker.

    Reads commands from a bounded channel one at a time, runs each to
    completion (registry lookups, install/uninstall subprocesses) and
    reports everything that happens as events on an outbound channel.
    It never touches package records; consumers apply the events.
    """
    def __init__(
        self,
        settings: CraneSettings | None = None,
        *,
        runner: ProcessRunner | None = None,
        registryFactory: RegistryFactory | None = None,
        limiterFactory: Callable[[int], RateLimiter] = RateLimiter.fromMs,
    ) -> None:
        self.settings = settings or CraneSettings()
        self.runner = runner or ProcessRunner()
        self._registryFactory = registryFactory or (lambda: RegistryClient(self.settings.registry))
        self._limiterFactory = limiterFactory
        self._task: asyncio.Task[None] | None = None

    @property
    def packageManager(self) -> str:
        return self.settings.worker.packageManager

    # ----------------------------------------------
    #                   Lifecycle
    # ----------------------------------------------

    def start(self) -> tuple[Sender[Command], Receiver[WorkerEvent]]:
        """
        Create both channels and schedule the actor loop on the running event loop.

        The first event on the returned stream is Ready(sender), for consumers
        that learn the command handle from the stream rather than from this call.
        """
        if self._task is not None:
            raise RuntimeError("CommandActor already started")

        commandTx, commandRx = channel(self.settings.worker.commandCapacity)
        eventTx, eventRx = channel(0)
        # Ready goes in before the loop task exists so it is always the first event
        eventTx.trySend(Ready(sender=commandTx))
        self._task = asyncio.get_running_loop().create_task(self._run(commandRx, eventTx), name="crane-worker")
        _LIVE_TASKS.add(self._task)
        self._task.add_done_callback(_LIVE_TASKS.discard)
        return commandTx, eventRx

    async def join(self) -> None:
        if self._task is not None:
            await self._task

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self, commands: Receiver[Command], events: Sender[WorkerEvent]) -> None:
        logger.info("Worker ready")
        try:
            while True:
                command = await commands.recv()
                if command is None:
                    logger.warning("Command channel closed; worker stopping")
                    return
                await self.dispatch(command, events.send)
        finally:
            await events.close()

    # ----------------------------------------------
    #                   Dispatch
    # ----------------------------------------------

    async def dispatch(self, command: Command, emit: Emit) -> None:
        """Run one command to completion. Failures are reported as events, never raised."""
        with logContext(command=type(command).__name__):
            try:
                if isinstance(command, ResolveVersions):
                    await self.handleResolveVersions(command.names, command.rateLimitMs, emit)
                elif isinstance(command, ResolveCommits):
                    await self.handleResolveCommits(command.repoLinks, emit)
                elif isinstance(command, RunUpdate):
                    await self.handleUpdate(command.specs, emit)
                elif isinstance(command, RunDelete):
                    await self.handleDelete(command.names, emit)
                else:
                    logger.error("Unknown command %r", command)
                    await emit(Log(f"Worker ignored unknown command: {type(command).__name__}"))
            except asyncio.CancelledError:
                raise
            except Exception as err:
                logger.exception("Worker failed while handling %s", type(command).__name__)
                await emit(Log(f"Worker failed while handling {type(command).__name__}: {err}"))

    def _openRegistry(self) -> RegistryClient | None:
        try:
            return self._registryFactory()
        except RegistryError as err:
            logger.error("Failed to create registry client: %s", err)
            return None

    async def handleResolveVersions(self, names: Sequence[str], rateLimitMs: int, emit: Emit) -> None:
        client = self._openRegistry()
        if client is None:
            await emit(ReadyFailed(reason="failed to create registry client"))
            return
        async with client:
            await client.resolveVersions(names, emit, limiter=self._limiterFactory(rateLimitMs))

    async def handleResolveCommits(self, repoLinks: Mapping[str, str], emit: Emit) -> None:
        client = self._openRegistry()
        if client is None:
            await emit(ReadyFailed(reason="failed to create registry client"))
            return
        async with client:
            await client.resolveCommits(repoLinks, emit)

    async def _runPackage(self, name: str, args: list[str], emit: Emit, *, verb: str) -> None:
        """One package of a batch. A crash here is reported and the batch moves on."""
        try:
            await self.runner.run(name, self.packageManager, args, emit, verb=verb)
        except asyncio.CancelledError:
            raise
        except Exception as err:
            logger.exception("Runner failed while %s %s", verb, name)
            await emit(Log(f"Failed {verb} {name}: {err}"))

    async def handleUpdate(self, specs: Sequence[InstallSpec], emit: Emit) -> None:
        pm = self.packageManager
        for index, spec in enumerate(specs):
            setLogContext(package=spec.name, index=index)
            args = spec.installArgs()
            await emit(Log(f"Executing: {' '.join([pm, *args])}"))
            await emit(Updating(name=spec.name, index=index))
            await self._runPackage(spec.name, args, emit, verb="installing")
        await emit(UpdateDone())

    async def handleDelete(self, names: Sequence[str], emit: Emit) -> None:
        pm = self.packageManager
        for index, name in enumerate(names):
            setLogContext(package=name, index=index)
            args = ["uninstall", name]
            await emit(Log(f"Executing: {' '.join([pm, *args])}"))
            await emit(Deleting(name=name, index=index))
            await self._runPackage(name, args, emit, verb="uninstalling")
        await emit(DeleteDone())



def startWorker(
    settings: CraneSettings | None = None,
    **kwargs,
) -> tuple[Sender[Command], Receiver[WorkerEvent]]:
    """
    Start a worker on the running loop and return (commandSender, eventStream).

    Close the sender to stop the worker; the event stream ends after the
    last event of the last command.
    """
    return CommandActor(settings, **kwargs).start()
