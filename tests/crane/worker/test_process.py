# tests/crane/worker/test_process.py
from __future__ import annotations
import sys

import pytest

from crane.worker.events import Log
from crane.worker.process import ProcessRunner, describeStatus


class Collector:
    def __init__(self) -> None:
        self.lines: list[str] = []

    async def __call__(self, event) -> None:
        assert isinstance(event, Log)
        self.lines.append(event.text)


SCRIPT = """
import sys
for i in range({m}):
    print(f"out {{i}}", flush=True)
    print(f"err {{i}}", file=sys.stderr, flush=True)
for i in range({m}, {k}):
    print(f"err {{i}}", file=sys.stderr, flush=True)
sys.exit({code})
"""


def test_describeStatus():
    assert describeStatus(0) == "exit status: 0"
    assert describeStatus(101) == "exit status: 101"
    assert describeStatus(-9) == "signal: 9"


@pytest.mark.asyncio
async def test_run_capturesBothStreamsThenStatus():
    out = Collector()
    m, k = 3, 5

    code = await ProcessRunner().run("alpha", sys.executable, ["-c", SCRIPT.format(m=m, k=k, code=0)], out)

    assert code == 0
    assert len(out.lines) == m + k + 1
    assert out.lines[-1] == "Finished installing alpha with status: exit status: 0"
    body = out.lines[:-1]
    assert sorted(line for line in body if line.startswith("out")) == [f"out {i}" for i in range(m)]
    # Each stream keeps its own order
    assert [line for line in body if line.startswith("err")] == [f"err {i}" for i in range(k)]
    assert [line for line in body if line.startswith("out")] == [f"out {i}" for i in range(m)]


@pytest.mark.asyncio
async def test_run_reportsNonZeroExitWithVerb():
    out = Collector()
    code = await ProcessRunner().run("beta", sys.executable, ["-c", "import sys; sys.exit(3)"], out, verb="uninstalling")

    assert code == 3
    assert out.lines == ["Finished uninstalling beta with status: exit status: 3"]


@pytest.mark.asyncio
async def test_run_silentProcessOnlyStatus():
    out = Collector()
    await ProcessRunner().run("quiet", sys.executable, ["-c", "pass"], out)
    assert out.lines == ["Finished installing quiet with status: exit status: 0"]


@pytest.mark.asyncio
async def test_run_spawnFailureIsSingleLine(tmp_path):
    out = Collector()
    missing = str(tmp_path / "no-such-cargo")

    code = await ProcessRunner().run("alpha", missing, ["install", "alpha"], out)

    assert code is None
    assert len(out.lines) == 1
    assert out.lines[0].startswith(f"Failed to spawn {missing} install for alpha: ")


@pytest.mark.asyncio
async def test_run_argvWithNulByteIsSpawnFailure():
    out = Collector()

    code = await ProcessRunner().run("al\0pha", sys.executable, ["uninstall", "al\0pha"], out, verb="uninstalling")

    assert code is None
    assert len(out.lines) == 1
    assert out.lines[0].startswith(f"Failed to spawn {sys.executable} uninstall for al\0pha: ")


@pytest.mark.asyncio
async def test_run_overlongLineIsReplacedByNotice():
    out = Collector()
    script = "import sys; print('x' * 5000); print('short')"

    code = await ProcessRunner(lineLimit=1024).run("alpha", sys.executable, ["-c", script], out)

    assert code == 0
    assert "short" in out.lines
    assert any("line longer than 1024 bytes omitted" in line for line in out.lines)
    assert out.lines[-1].startswith("Finished installing alpha")


@pytest.mark.asyncio
async def test_run_decodesInvalidUtf8WithReplacement():
    out = Collector()
    script = "import sys; sys.stdout.buffer.write(b'caf\\xff\\n')"
    await ProcessRunner().run("alpha", sys.executable, ["-c", script], out)
    assert out.lines[0] == "caf\ufffd"
