# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""One-shot grading outside of a client session."""

import anyio

from coreason_runner.config import RunnerConfig
from coreason_runner.events import EventSink, LoggingSink
from coreason_runner.execution import Execution
from coreason_runner.factory import RuntimeFactory
from coreason_runner.grading import GradingPipeline
from coreason_runner.models import GradeReport
from coreason_runner.runtime import SandboxRuntime
from coreason_runner.session_store import ClientSession

GRADER_CLIENT_ID = "grader"


async def grade_async(
    code: str,
    config: RunnerConfig | None = None,
    runtime: SandboxRuntime | None = None,
    sink: EventSink | None = None,
) -> GradeReport | None:
    """Grade ``code`` against the configured test cases in a fresh sandbox.

    Args:
        code: The submitted source.
        config: Configuration for the sandbox and the test cases.
        runtime: Optional runtime. Built from the configuration if not provided.
        sink: Where per-case events go. Defaults to the log.

    Returns:
        GradeReport | None: The report, or None if grading could not complete.

    Raises:
        ProvisionError: If no sandbox could be created.
        InjectionError: If the code could not be placed into the sandbox.
    """
    config = config or RunnerConfig()
    runtime = runtime or RuntimeFactory.get_runtime(config)
    sink = sink or LoggingSink()

    handle = await runtime.create()
    session = ClientSession(client_id=GRADER_CLIENT_ID)
    session.track(handle)
    execution = Execution(session, handle, runtime, sink)
    try:
        await runtime.inject(handle, code.encode("utf-8"))
        pipeline = GradingPipeline(config.run_command, config.test_cases, case_timeout=config.case_timeout)
        return await pipeline.run(execution)
    finally:
        execution.release()
        await runtime.drain()


def grade(code: str, config: RunnerConfig | None = None) -> GradeReport | None:
    """Synchronous facade for ``grade_async``, executed via anyio.run."""
    return anyio.run(grade_async, code, config)

