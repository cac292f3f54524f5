# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import shutil
from typing import Awaitable, Callable, Generator

import pytest

from coreason_runner.config import RunnerConfig
from coreason_runner.execution import Execution
from coreason_runner.models import TestCase
from coreason_runner.runtimes.local import LocalRuntime
from coreason_runner.session_store import ClientSession
from helpers import PYTHON_COMMAND, RecordingSink


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def local_runtime() -> Generator[LocalRuntime, None, None]:
    runtime = LocalRuntime()
    yield runtime
    # Leave nothing behind if a test failed before cleanup
    for key, workdir in list(runtime.workdirs.items()):
        for proc in runtime.processes.pop(key, []):
            proc.kill()
        shutil.rmtree(workdir, ignore_errors=True)
    runtime.workdirs.clear()


@pytest.fixture
def local_config() -> RunnerConfig:
    return RunnerConfig(
        runtime="local",
        run_command=PYTHON_COMMAND,
        case_timeout=1.0,
        test_cases=[
            TestCase(input="5\n", expected_output="25\n"),
            TestCase(input="10\n", expected_output="100\n"),
        ],
    )


@pytest.fixture
def make_execution(local_runtime: LocalRuntime, sink: RecordingSink) -> Callable[..., Awaitable[Execution]]:
    async def _make(code: str, client_id: str = "client-1") -> Execution:
        handle = await local_runtime.create()
        await local_runtime.inject(handle, code.encode("utf-8"))
        session = ClientSession(client_id=client_id)
        session.track(handle)
        return Execution(session, handle, local_runtime, sink)

    return _make
