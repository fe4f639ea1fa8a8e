# crane/worker/process.py
from __future__ import annotations
import asyncio
import logging
from collections.abc import Sequence

from .events import Emit, Log

logger = logging.getLogger(__name__)

__all__ = ["ProcessRunner", "describeStatus"]

# Per-line buffer limit for the stream readers (cargo's progress lines stay far below this)
_LINE_LIMIT = 1024 * 1024



def describeStatus(returncode: int) -> str:
    if returncode < 0:
        return f"signal: {-returncode}"
    return f"exit status: {returncode}"



class ProcessRunner:
    """
    Runs one external command and turns everything it prints into Log events.

    Both pipes are drained by their own task while a third awaitable waits
    for exit; all three are joined before the final status line, so the
    status line is always the last event of an invocation.
    """
    def __init__(self, *, lineLimit: int = _LINE_LIMIT) -> None:
        self.lineLimit = lineLimit

    async def run(
        self,
        displayName: str,
        executable: str,
        args: Sequence[str],
        emit: Emit,
        *,
        verb: str = "installing",
    ) -> int | None:
        """
        Returns the exit code, or None when the process could not be spawned
        or waited on. The outcome is also reported as the final Log line.
        """
        argv = [executable, *args]
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=self.lineLimit,
            )
        except (OSError, ValueError) as err:
            # ValueError: argv the OS cannot take, e.g. an embedded NUL byte
            action = " ".join(argv[:2])
            logger.error("Failed to spawn %s for %s: %s", action, displayName, err)
            await emit(Log(f"Failed to spawn {action} for {displayName}: {err}"))
            return None

        logger.debug("Spawned pid=%s: %s", proc.pid, " ".join(argv))
        if proc.stdout is None or proc.stderr is None:
            raise RuntimeError(f"Spawned {executable} without output pipes")
        readers = asyncio.gather(
            self._pump(proc.stdout, emit, "stdout"),
            self._pump(proc.stderr, emit, "stderr"),
        )

        returncode: int | None = None
        waitError: BaseException | None = None
        try:
            returncode = await proc.wait()
        except asyncio.CancelledError:
            readers.cancel()
            raise
        except Exception as err:
            waitError = err

        # Whatever was still buffered in the pipes goes out before the status line
        await readers

        if waitError is not None:
            logger.error("Failed to wait on %s for %s: %s", executable, displayName, waitError)
            await emit(Log(f"Failed to wait on {executable} for {displayName}: {waitError}"))
            return None

        status = describeStatus(returncode)
        logger.info("Finished %s %s with status: %s", verb, displayName, status)
        await emit(Log(f"Finished {verb} {displayName} with status: {status}"))
        return returncode

    async def _pump(self, stream: asyncio.StreamReader, emit: Emit, label: str) -> None:
        while True:
            try:
                raw = await stream.readline()
            except ValueError:
                # Line exceeded lineLimit; the reader already discarded it
                logger.warning("Dropped an over-long %s line (> %d bytes)", label, self.lineLimit)
                await emit(Log(f"[{label}: line longer than {self.lineLimit} bytes omitted]"))
                continue
            if not raw:
                return
            await emit(Log(raw.decode("utf-8", errors="replace").rstrip("\r\n")))
