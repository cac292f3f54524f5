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
from typing import Any

import pytest

from coreason_runner.models import EventName, Killed, RuntimeFailure, Success
from coreason_runner.runner import InteractiveRunner
from coreason_runner.runtimes.local import LocalRuntime
from helpers import CRASHER, GREETER, PYTHON_COMMAND, RecordingSink, wait_until


@pytest.mark.asyncio
async def test_run_success(make_execution: Any, local_runtime: LocalRuntime, sink: RecordingSink) -> None:
    execution = await make_execution("print('hello')\n")

    outcome = await InteractiveRunner(PYTHON_COMMAND).run(execution)

    assert isinstance(outcome, Success)
    assert outcome.exit_code == 0
    assert sink.output("client-1") == "hello\n"
    assert sink.results("client-1")[0].startswith("Execution succeeded! Execution time: ")
    assert sink.names("client-1")[-1] is EventName.RUN_ELIGIBLE
    assert sink.count("client-1", EventName.RUN_ELIGIBLE) == 1

    await local_runtime.drain()
    assert local_runtime.live_handles() == []


@pytest.mark.asyncio
async def test_request_input_follows_every_stdout_chunk(make_execution: Any, sink: RecordingSink) -> None:
    execution = await make_execution("print('a')\n")

    await InteractiveRunner(PYTHON_COMMAND).run(execution)

    names = sink.names("client-1")
    index = names.index(EventName.TERMINAL_OUTPUT)
    assert names[index + 1] is EventName.REQUEST_INPUT
    assert sink.for_client("client-1")[index + 1].data is True


@pytest.mark.asyncio
async def test_run_failure_and_stderr(make_execution: Any, sink: RecordingSink) -> None:
    execution = await make_execution(CRASHER)

    outcome = await InteractiveRunner(PYTHON_COMMAND).run(execution)

    assert isinstance(outcome, Success)
    assert outcome.exit_code == 3
    assert "Error: boom\n" in sink.output("client-1")
    assert sink.results("client-1")[0].startswith("Execution failed... Execution time: ")
    # stderr never signals an input request
    assert EventName.REQUEST_INPUT not in sink.names("client-1")


@pytest.mark.asyncio
async def test_interactive_input(make_execution: Any, sink: RecordingSink) -> None:
    execution = await make_execution(GREETER)
    task = asyncio.create_task(InteractiveRunner(PYTHON_COMMAND).run(execution))

    await wait_until(lambda: "Name? " in sink.output("client-1"))
    assert execution.process is not None
    await execution.process.write_input("World\n")
    outcome = await task

    assert isinstance(outcome, Success)
    assert "Hello, World\n" in sink.output("client-1")


@pytest.mark.asyncio
async def test_spawn_error(make_execution: Any, local_runtime: LocalRuntime, sink: RecordingSink) -> None:
    execution = await make_execution("print(1)\n")

    outcome = await InteractiveRunner(["/nonexistent/interpreter", "{artifact}"]).run(execution)

    assert isinstance(outcome, RuntimeFailure)
    assert sink.output("client-1").startswith("Error: ")
    assert sink.count("client-1", EventName.RUN_ELIGIBLE) == 1
    assert EventName.EXECUTION_RESULT not in sink.names("client-1")
    assert execution.released

    await local_runtime.drain()
    assert local_runtime.live_handles() == []


@pytest.mark.asyncio
async def test_killed_process_reports_failure(make_execution: Any, sink: RecordingSink) -> None:
    execution = await make_execution("import time\nprint('go')\ntime.sleep(30)\n")
    task = asyncio.create_task(InteractiveRunner(PYTHON_COMMAND).run(execution))

    await wait_until(lambda: "go" in sink.output("client-1"))
    assert execution.process is not None
    execution.process.kill()
    outcome = await task

    assert isinstance(outcome, Killed)
    assert sink.results("client-1")[0].startswith("Execution failed...")
    assert sink.count("client-1", EventName.RUN_ELIGIBLE) == 1
