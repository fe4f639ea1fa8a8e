# crane/inventory/controller.py
from __future__ import annotations
import asyncio
import logging
from collections.abc import Callable

from crane.config.settings import CraneSettings
from crane.worker.actor import CommandActor
from crane.worker.channel import Receiver, Sender
from crane.worker.commands import Command
from crane.worker.events import WorkerEvent
from .state import Inventory

logger = logging.getLogger(__name__)

__all__ = ["InventoryController"]



class InventoryController:
    """
    Wires an Inventory to a running worker.

    Events are pulled explicitly (pumpOnce / pumpUntil) so a UI loop or a
    test decides when state changes.
    """
    def __init__(
        self,
        inventory: Inventory,
        settings: CraneSettings | None = None,
        *,
        actor: CommandActor | None = None,
    ) -> None:
        self.inventory = inventory
        self.settings = settings or CraneSettings()
        self.actor = actor or CommandActor(self.settings)
        self._commands: Sender[Command] | None = None
        self._events: Receiver[WorkerEvent] | None = None
        self.finished = False

    async def start(self) -> None:
        """Start the worker and apply its Ready event, which queues the initial lookups."""
        if self._commands is not None:
            raise RuntimeError("InventoryController already started")
        self._commands, self._events = self.actor.start()
        await self.pumpOnce()

    async def send(self, command: Command) -> None:
        if self._commands is None:
            raise RuntimeError("InventoryController not started")
        logger.debug("Sending %s", type(command).__name__)
        await self._commands.send(command)

    async def pumpOnce(self, timeout: float | None = None) -> WorkerEvent | None:
        """Apply the next event and forward its follow-up commands. None once the stream ended."""
        if self._events is None:
            raise RuntimeError("InventoryController not started")
        event = await self._events.recv(timeout)
        if event is None:
            self.finished = True
            return None
        for command in self.inventory.handleEvent(event):
            await self.send(command)
        return event

    async def pumpUntil(
        self,
        predicate: Callable[[WorkerEvent], bool],
        *,
        timeout: float | None = None,
    ) -> WorkerEvent | None:
        """Pump until an event satisfies `predicate` (returned) or the stream ends (None)."""
        async def _loop() -> WorkerEvent | None:
            while True:
                event = await self.pumpOnce()
                if event is None or predicate(event):
                    return event

        if timeout is None:
            return await _loop()
        return await asyncio.wait_for(_loop(), timeout)

    async def apply(self) -> Command | None:
        """Send whatever the pending set turns into; None when nothing is pending."""
        command = self.inventory.applyCommand()
        if command is not None:
            await self.send(command)
        return command

    async def stop(self) -> None:
        """Close the command channel, drain remaining events and wait for the worker."""
        if self._commands is None:
            return
        await self._commands.close()
        while not self.finished:
            event = await self.pumpOnce()
            if event is None:
                break
        await self.actor.join()
