# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import time
from contextlib import aclosing

from loguru import logger

from coreason_runner.exceptions import ExecutionError, SpawnError
from coreason_runner.execution import Execution
from coreason_runner.models import Channel, ExecutionOutcome, Killed, RuntimeFailure, ServerEvent, Success


class InteractiveRunner:
    """Free-runs one process for a client, relaying its output and the client's input.

    Every stdout chunk is followed by a ``request-input`` event. This does not detect
    that the program is actually blocked on a read; clients treat it as a hint that
    input may be expected.
    """

    def __init__(self, command: list[str]):
        self.command = command

    async def run(self, execution: Execution) -> ExecutionOutcome:
        """Drive the process to completion.

        Args:
            execution: The execution whose sandbox already holds the artifact.

        Returns:
            ExecutionOutcome: How the process ended.
        """
        started = time.monotonic()
        try:
            process = await execution.runtime.execute(execution.sandbox, self.command)
        except SpawnError as e:
            logger.error(f"Failed to start run for {execution.client_id}: {e}")
            return await self._fail(execution, str(e))

        execution.process = process
        try:
            async with aclosing(process.output()) as chunks:
                async for chunk in chunks:
                    if chunk.channel is Channel.STDOUT:
                        await execution.emit(ServerEvent.output(chunk.text))
                        await execution.emit(ServerEvent.request_input(True))
                    else:
                        await execution.emit(ServerEvent.output(f"Error: {chunk.text}"))
            exit_ = await process.wait()
        except ExecutionError as e:
            logger.error(f"Run for {execution.client_id} failed: {e}")
            return await self._fail(execution, str(e))

        elapsed = time.monotonic() - started
        execution.release()

        outcome: ExecutionOutcome
        if exit_.killed:
            outcome = Killed()
            summary = f"Execution failed... Execution time: {elapsed:.3f}s."
        else:
            assert exit_.exit_code is not None
            outcome = Success(exit_code=exit_.exit_code, elapsed_seconds=elapsed)
            if exit_.exit_code == 0:
                summary = f"Execution succeeded! Execution time: {elapsed:.3f}s."
            else:
                summary = f"Execution failed... Execution time: {elapsed:.3f}s."

        logger.info(f"Run for {execution.client_id} finished: {outcome}")
        await execution.emit(ServerEvent.result(summary))
        await execution.finish()
        return outcome

    async def _fail(self, execution: Execution, message: str) -> RuntimeFailure:
        await execution.emit(ServerEvent.output(f"Error: {message}"))
        execution.release()
        await execution.finish()
        return RuntimeFailure(message=message)
