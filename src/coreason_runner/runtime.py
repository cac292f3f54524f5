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
from abc import ABC, abstractmethod
from typing import Any, Coroutine

from loguru import logger

from coreason_runner.models import SandboxHandle
from coreason_runner.process import ProcessHandle

ARTIFACT_PLACEHOLDER = "{artifact}"


class SandboxRuntime(ABC):
    """
    Abstract base class for sandbox runtimes (e.g., Docker, local).
    Follows the Strategy Pattern.
    """

    def __init__(self) -> None:
        self._pending: set[asyncio.Task[None]] = set()

    @abstractmethod
    async def create(self) -> SandboxHandle:
        """Allocate a new isolated environment.

        Returns:
            SandboxHandle: Handle identifying the new environment.

        Raises:
            ProvisionError: If the provider cannot allocate an environment.
        """
        pass  # pragma: no cover

    @abstractmethod
    async def inject(self, handle: SandboxHandle, artifact: bytes) -> None:
        """Place the artifact (submitted source) into the environment.

        Args:
            handle: The target environment.
            artifact: The raw artifact content.

        Raises:
            InjectionError: If the environment is gone or the artifact cannot be placed.
        """
        pass  # pragma: no cover

    @abstractmethod
    async def execute(self, handle: SandboxHandle, command: list[str]) -> ProcessHandle:
        """Start a command inside the environment with piped stdio.

        Occurrences of ``{artifact}`` in the command are replaced with the artifact's location.

        Args:
            handle: The target environment.
            command: The argv to run.

        Returns:
            ProcessHandle: The running process.

        Raises:
            SpawnError: If the environment cannot host a new process.
        """
        pass  # pragma: no cover

    @abstractmethod
    async def destroy(self, handle: SandboxHandle) -> None:
        """Kill and clean up the environment.

        Idempotent. Failures are logged, never raised.
        """
        pass  # pragma: no cover

    @abstractmethod
    def live_handles(self) -> list[SandboxHandle]:
        """Handles created by this runtime that have not been destroyed yet."""
        pass  # pragma: no cover

    def destroy_later(self, handle: SandboxHandle) -> None:
        """Schedule ``destroy`` in the background so callers never wait on teardown."""
        self.in_background(self.destroy(handle))

    def in_background(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        """Run cleanup work as a tracked task that ``drain`` waits for."""
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled destroy and background cleanup to complete."""
        while self._pending:
            results = await asyncio.gather(*list(self._pending), return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.warning(f"Background sandbox cleanup failed: {result}")

    @staticmethod
    def render_command(command: list[str], artifact_location: str) -> list[str]:
        return [part.replace(ARTIFACT_PLACEHOLDER, artifact_location) for part in command]
