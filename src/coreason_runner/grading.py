# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""Sequential, timeout-bounded grading against a fixed list of test cases."""

import asyncio
import time
from contextlib import aclosing

from loguru import logger

from coreason_runner.exceptions import ExecutionError, SpawnError
from coreason_runner.execution import Execution
from coreason_runner.models import (
    CaseResult,
    Channel,
    GradeReport,
    Killed,
    ProcessExit,
    ServerEvent,
    Success,
    TestCase,
    TimedOut,
)
from coreason_runner.process import ProcessHandle


class GradingPipeline:
    """Runs every test case, one after another, in the execution's sandbox.

    Each case gets a fresh process. The case's input is written immediately after
    spawn, and the process races a ``case_timeout`` timer. A case passes when the
    process exits within the timeout and its stdout contains the expected output
    as a substring.
    """

    def __init__(self, command: list[str], test_cases: list[TestCase], case_timeout: float = 1.0):
        self.command = command
        self.test_cases = list(test_cases)
        self.case_timeout = case_timeout

    async def run(self, execution: Execution) -> GradeReport | None:
        """Grade the artifact in ``execution``'s sandbox.

        Returns:
            GradeReport | None: The final report, or None when a runtime error aborted
            the pipeline or the execution was cancelled.
        """
        report = GradeReport()
        started = time.monotonic()

        for index, case in enumerate(self.test_cases):
            if execution.cancelled:
                return None
            try:
                result = await self._run_case(execution, index, case)
            except (SpawnError, ExecutionError) as e:
                logger.error(f"Grading for {execution.client_id} aborted at case {index}: {e}")
                await execution.emit(ServerEvent.output(f"Error: {e}"))
                execution.release()
                await execution.finish()
                return None
            report.record(result)

        report.total_elapsed_seconds = time.monotonic() - started
        execution.release()
        logger.info(
            f"Grading for {execution.client_id} complete: "
            f"{report.passed_count} passed, {report.failed_count} failed"
        )
        await execution.emit(
            ServerEvent.output(f"Grading Complete: {report.passed_count} Passed, {report.failed_count} Failed")
        )
        await execution.emit(ServerEvent.result(f"Total execution time: {report.total_elapsed_seconds:.3f}s."))
        await execution.finish()
        return report

    async def _run_case(self, execution: Execution, index: int, case: TestCase) -> CaseResult:
        number = index + 1
        started = time.monotonic()
        process = await execution.runtime.execute(execution.sandbox, self.command)
        execution.process = process

        stdout: list[str] = []
        try:
            exit_ = await asyncio.wait_for(
                self._collect(execution, process, case.input, stdout), timeout=self.case_timeout
            )
        except asyncio.TimeoutError:
            elapsed = time.monotonic() - started
            await execution.emit(
                ServerEvent.output(
                    f"Test Case {number}: Failed (Execution time exceeded {self.case_timeout:g} second)\n"
                )
            )
            process.kill()
            await process.wait()
            timed_out = TimedOut(elapsed_seconds=elapsed)
            return CaseResult(index=index, passed=False, outcome=timed_out, elapsed_seconds=elapsed)

        elapsed = time.monotonic() - started
        if exit_.killed:
            await execution.emit(ServerEvent.output(f"Test Case {number}: Failed\n"))
            return CaseResult(index=index, passed=False, outcome=Killed(), elapsed_seconds=elapsed)

        assert exit_.exit_code is not None
        outcome = Success(exit_code=exit_.exit_code, elapsed_seconds=elapsed)
        output = "".join(stdout)
        if elapsed <= self.case_timeout and case.expected_output in output:
            await execution.emit(ServerEvent.output(f"Test Case {number}: Passed (Execution Time: {elapsed:.3f}s)\n"))
            return CaseResult(index=index, passed=True, outcome=outcome, elapsed_seconds=elapsed)
        if elapsed > self.case_timeout:
            await execution.emit(
                ServerEvent.output(f"Test Case {number}: Failed (Timeout, Execution Time: {elapsed:.3f}s)\n")
            )
            timed_out = TimedOut(elapsed_seconds=elapsed)
            return CaseResult(index=index, passed=False, outcome=timed_out, elapsed_seconds=elapsed)

        await execution.emit(ServerEvent.output(f"Test Case {number}: Failed\n"))
        return CaseResult(index=index, passed=False, outcome=outcome, elapsed_seconds=elapsed)

    async def _collect(
        self, execution: Execution, process: ProcessHandle, case_input: str, stdout: list[str]
    ) -> ProcessExit:
        # Input is written concurrently with reading output
        writer = asyncio.create_task(process.write_input(case_input))
        try:
            async with aclosing(process.output()) as chunks:
                async for chunk in chunks:
                    if chunk.channel is Channel.STDOUT:
                        stdout.append(chunk.text)
                        await execution.emit(ServerEvent.output(chunk.text))
                    else:
                        await execution.emit(ServerEvent.output(f"Error: {chunk.text}"))
            await writer
        finally:
            writer.cancel()
        return await process.wait()
