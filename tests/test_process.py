# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import asyncio
import sys

import pytest

from coreason_runner.models import Channel, ProcessExit
from coreason_runner.process import ProcessHandle


async def spawn(code: str) -> ProcessHandle:
    process = await asyncio.create_subprocess_exec(
        sys.executable,
        "-u",
        "-c",
        code,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    return ProcessHandle(process, label="test")


async def collect(handle: ProcessHandle) -> dict[Channel, str]:
    collected = {Channel.STDOUT: "", Channel.STDERR: ""}
    async for chunk in handle.output():
        collected[chunk.channel] += chunk.text
    return collected


@pytest.mark.asyncio
async def test_output_streams_both_channels() -> None:
    handle = await spawn("import sys\nprint('out')\nsys.stderr.write('err\\n')")

    collected = await collect(handle)
    outcome = await handle.wait()

    assert collected[Channel.STDOUT] == "out\n"
    assert collected[Channel.STDERR] == "err\n"
    assert outcome == ProcessExit(exit_code=0)


@pytest.mark.asyncio
async def test_stdout_order_is_preserved() -> None:
    handle = await spawn("for i in range(200):\n    print(i)")

    collected = await collect(handle)
    await handle.wait()

    assert collected[Channel.STDOUT].split() == [str(i) for i in range(200)]


@pytest.mark.asyncio
async def test_multibyte_text_is_decoded() -> None:
    handle = await spawn("import sys\nsys.stdout.buffer.write('실행 시간\\n'.encode('utf-8'))")
    handle.chunk_size = 1

    collected = await collect(handle)
    await handle.wait()

    assert collected[Channel.STDOUT] == "실행 시간\n"


@pytest.mark.asyncio
async def test_input_is_forwarded() -> None:
    handle = await spawn("print(int(input()) * 2)")

    await handle.write_input("21\n")
    collected = await collect(handle)

    assert collected[Channel.STDOUT] == "42\n"
    assert (await handle.wait()).exit_code == 0


@pytest.mark.asyncio
async def test_nonzero_exit_code() -> None:
    handle = await spawn("raise SystemExit(7)")
    await collect(handle)
    assert await handle.wait() == ProcessExit(exit_code=7)


@pytest.mark.asyncio
async def test_kill_running_process() -> None:
    handle = await spawn("import time\ntime.sleep(30)")

    handle.kill()
    outcome = await handle.wait()

    assert outcome == ProcessExit(killed=True)
    assert handle.killed


@pytest.mark.asyncio
async def test_kill_after_exit_is_noop() -> None:
    handle = await spawn("print('done')")
    await collect(handle)
    first = await handle.wait()

    handle.kill()
    handle.kill()

    assert first == ProcessExit(exit_code=0)
    assert await handle.wait() == first
    assert not handle.killed


@pytest.mark.asyncio
async def test_concurrent_kill_and_exit_yield_one_outcome() -> None:
    handle = await spawn("pass")

    async def killer() -> None:
        await asyncio.sleep(0)
        handle.kill()

    outcomes = await asyncio.gather(handle.wait(), handle.wait(), killer())
    first, second = outcomes[0], outcomes[1]

    assert first == second
    assert first.killed or first.exit_code == 0
    assert first.killed != (first.exit_code is not None)


@pytest.mark.asyncio
async def test_write_after_exit_is_noop() -> None:
    handle = await spawn("pass")
    await collect(handle)
    await handle.wait()

    await handle.write_input("ignored\n")


@pytest.mark.asyncio
async def test_no_output_after_kill() -> None:
    handle = await spawn("import time\nwhile True:\n    print('tick')\n    time.sleep(0.01)")
    seen = 0

    async for _chunk in handle.output():
        seen += 1
        if seen == 1:
            handle.kill()

    assert seen == 1
    assert (await handle.wait()).killed
