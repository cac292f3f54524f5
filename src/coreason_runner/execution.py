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

from loguru import logger

from coreason_runner.events import EventSink
from coreason_runner.models import SandboxHandle, ServerEvent
from coreason_runner.process import ProcessHandle
from coreason_runner.runtime import SandboxRuntime
from coreason_runner.session_store import ClientSession


class Execution:
    """One in-flight interactive run or grading pass for a client.

    Owns the sandbox it was started in and whichever process is currently running in
    it. Every terminal path funnels through ``release`` (sandbox teardown) and
    ``finish`` (run-eligibility), each of which takes effect only once.
    """

    def __init__(
        self,
        session: ClientSession,
        sandbox: SandboxHandle,
        runtime: SandboxRuntime,
        sink: EventSink,
    ):
        self.session = session
        self.sandbox = sandbox
        self.runtime = runtime
        self.sink = sink
        self.process: ProcessHandle | None = None
        self.task: asyncio.Task[None] | None = None
        self.cancelled = False
        self._released = False
        self._finished = False

    @property
    def client_id(self) -> str:
        return self.session.client_id

    @property
    def released(self) -> bool:
        return self._released

    async def emit(self, event: ServerEvent) -> None:
        """Send an event to the client unless this execution has been cancelled."""
        if self.cancelled:
            return
        await self.sink.emit(self.client_id, event)

    def cancel(self) -> None:
        """Silence the execution and kill its process."""
        self.cancelled = True
        if self.process is not None:
            self.process.kill()

    def release(self) -> bool:
        """Kill the process and schedule the sandbox's destruction.

        Returns:
            bool: True for the call that actually performed the release.
        """
        if self._released:
            return False
        self._released = True
        if self.process is not None:
            self.process.kill()
        self.session.forget(self.sandbox)
        logger.debug(f"Releasing sandbox {self.sandbox.short_id} for client {self.client_id}")
        self.runtime.destroy_later(self.sandbox)
        return True

    async def finish(self) -> None:
        """Re-enable the client's run control; only the first call emits."""
        if self._finished:
            return
        self._finished = True
        await self.sink.emit(self.client_id, ServerEvent.run_eligible())

    def supersede(self) -> None:
        """Mark as replaced: the replacing execution owns run-eligibility from here on."""
        self._finished = True
