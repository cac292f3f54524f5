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
from typing import Literal

from loguru import logger

from coreason_runner.config import RunnerConfig
from coreason_runner.events import EventSink
from coreason_runner.exceptions import InjectionError, ProvisionError
from coreason_runner.execution import Execution
from coreason_runner.factory import RuntimeFactory
from coreason_runner.grading import GradingPipeline
from coreason_runner.models import ServerEvent
from coreason_runner.runner import InteractiveRunner
from coreason_runner.runtime import SandboxRuntime
from coreason_runner.session_store import ClientSession, SessionStore

Mode = Literal["run", "grade"]


class SessionController:
    """Entry point for client events.

    Start, stop and disconnect for a client are serialized on that client's session
    lock, so replacing an execution (tear down the old one, then stand up the new one)
    is never observed half done. Different clients proceed independently.
    """

    def __init__(
        self,
        sink: EventSink,
        config: RunnerConfig | None = None,
        runtime: SandboxRuntime | None = None,
        store: SessionStore | None = None,
    ):
        """Initializes the SessionController.

        Args:
            sink: Where client-bound events are delivered.
            config: Optional configuration object. If not provided, defaults are used.
            runtime: Optional sandbox runtime. Built from the configuration if not provided.
            store: Optional session store.
        """
        self.config = config or RunnerConfig()
        self.sink = sink
        self.runtime = runtime or RuntimeFactory.get_runtime(self.config)
        self.store = store or SessionStore()

    async def start_run(self, client_id: str, code: str) -> None:
        """Begin an interactive run of ``code``, replacing any active execution."""
        await self._start(client_id, code, "run")

    async def start_grade(self, client_id: str, code: str) -> None:
        """Begin grading ``code`` against the configured test cases, replacing any active execution."""
        await self._start(client_id, code, "grade")

    async def _start(self, client_id: str, code: str, mode: Mode) -> None:
        session = self.store.get_or_create(client_id)
        async with session.lock:
            if session.closed:
                logger.warning(f"Ignoring {mode} request for disconnected client {client_id}")
                return

            previous = await self._teardown(session)
            if previous is not None:
                previous.supersede()
                logger.info(f"Replaced active execution for client {client_id}")

            await self.sink.emit(client_id, ServerEvent.clear())

            try:
                handle = await self.runtime.create()
            except ProvisionError as e:
                logger.error(f"Error starting {mode} for {client_id}: {e}")
                await self._provision_failed(client_id, mode)
                return
            except Exception:
                logger.exception(f"Unexpected failure provisioning {mode} for {client_id}")
                await self._provision_failed(client_id, mode)
                return

            session.track(handle)
            execution = Execution(session, handle, self.runtime, self.sink)

            try:
                await self.runtime.inject(handle, code.encode("utf-8"))
            except InjectionError as e:
                logger.error(f"Error copying code for {client_id}: {e}")
                await self._injection_failed(execution)
                return
            except Exception:
                logger.exception(f"Unexpected failure copying code for {client_id}")
                await self._injection_failed(execution)
                return

            session.execution = execution
            execution.task = asyncio.create_task(self._drive(session, execution, mode))
            logger.info(f"Started {mode} for client {client_id} in sandbox {handle.short_id}")

    async def _provision_failed(self, client_id: str, mode: Mode) -> None:
        failure = "Failed to run code." if mode == "run" else "Failed to grade code."
        await self.sink.emit(client_id, ServerEvent.output(failure))
        await self.sink.emit(client_id, ServerEvent.run_eligible())

    async def _injection_failed(self, execution: Execution) -> None:
        await execution.emit(ServerEvent.output("Failed to copy code to container."))
        execution.release()
        await execution.finish()

    async def _drive(self, session: ClientSession, execution: Execution, mode: Mode) -> None:
        try:
            if mode == "run":
                await InteractiveRunner(self.config.run_command).run(execution)
            else:
                pipeline = GradingPipeline(
                    self.config.run_command,
                    self.config.test_cases,
                    case_timeout=self.config.case_timeout,
                )
                await pipeline.run(execution)
        except Exception as e:
            logger.exception(f"Unexpected failure during {mode} for {execution.client_id}")
            await execution.emit(ServerEvent.output(f"Error: {e}"))
            execution.release()
            await execution.finish()
        finally:
            # No await between the check and the clear, so this cannot interleave with a replacement
            if session.execution is execution:
                session.execution = None

    async def _teardown(self, session: ClientSession) -> Execution | None:
        """Stop the session's execution, if any. Caller must hold ``session.lock``.

        Returns:
            Execution | None: The execution that was torn down.
        """
        execution = session.execution
        if execution is None:
            return None
        session.execution = None

        execution.cancel()
        execution.release()
        task = execution.task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            # Only a cancellation of the caller propagates
            await asyncio.wait({task})
        return execution

    async def supply_input(self, client_id: str, text: str) -> bool:
        """Forward a line of input to the client's active process.

        Returns:
            bool: False if there was no process to receive it.
        """
        session = self.store.get(client_id)
        execution = session.execution if session else None
        process = execution.process if execution else None
        if process is None:
            logger.debug(f"Dropping input for client {client_id}: nothing is running")
            return False

        await process.write_input(text + "\n")
        await self.sink.emit(client_id, ServerEvent.request_input(False))
        return True

    async def stop(self, client_id: str) -> bool:
        """Terminate the client's active execution.

        Returns:
            bool: False if nothing was running.
        """
        session = self.store.get(client_id)
        if session is None:
            return False
        async with session.lock:
            execution = session.execution
            if execution is None:
                return False
            await self._teardown(session)
            logger.info(f"Stopped execution for client {client_id}")
            await self.sink.emit(client_id, ServerEvent.output("Code execution stopped.\n"))
            await execution.finish()
            return True

    async def disconnect(self, client_id: str) -> None:
        """Tear down everything associated with a departing client."""
        session = self.store.pop(client_id)
        if session is None:
            return
        logger.info(f"Client disconnected: {client_id}")
        async with session.lock:
            session.closed = True
            execution = session.execution
            if execution is not None:
                await self._teardown(session)
                execution.supersede()
            for handle in list(session.sandboxes.values()):
                logger.warning(f"Reclaiming leftover sandbox {handle.short_id} for {client_id}")
                session.forget(handle)
                self.runtime.destroy_later(handle)

    async def shutdown(self) -> None:
        """
        Disconnect every client and wait for all sandbox teardown to finish.
        """
        logger.info(f"Shutting down SessionController. Closing {len(self.store)} sessions.")
        for client_id in list(self.store.sessions):
            try:
                await self.disconnect(client_id)
            except Exception as e:
                logger.error(f"Error closing session {client_id} during shutdown: {e}")
        await self.runtime.drain()
