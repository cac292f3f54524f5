# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""Unisolated runtime for development and tests.

Each "sandbox" is a scratch directory on the host and commands run as ordinary
child processes. It provides no isolation whatsoever.
"""

import asyncio
import os
import shutil
import tempfile
from pathlib import Path

from loguru import logger

from coreason_runner.exceptions import InjectionError, ProvisionError, SpawnError
from coreason_runner.models import SandboxHandle
from coreason_runner.process import ProcessHandle
from coreason_runner.runtime import SandboxRuntime


class LocalRuntime(SandboxRuntime):
    def __init__(self, artifact_name: str = "code.py", chunk_size: int = 4096):
        super().__init__()
        self.artifact_name = artifact_name
        self.chunk_size = chunk_size
        self.workdirs: dict[str, Path] = {}
        self.processes: dict[str, list[ProcessHandle]] = {}

    async def create(self) -> SandboxHandle:
        try:
            workdir = Path(tempfile.mkdtemp(prefix="coreason-runner-"))
        except OSError as e:
            raise ProvisionError(f"Failed to create scratch directory: {e}") from e
        handle = SandboxHandle(id=str(workdir), runtime="local")
        self.workdirs[handle.id] = workdir
        self.processes[handle.id] = []
        logger.info(f"Local sandbox created: {workdir}")
        return handle

    async def inject(self, handle: SandboxHandle, artifact: bytes) -> None:
        workdir = self.workdirs.get(handle.id)
        if workdir is None:
            raise InjectionError(f"Sandbox {handle.id} is not running")
        try:
            await asyncio.to_thread((workdir / self.artifact_name).write_bytes, artifact)
        except OSError as e:
            raise InjectionError(f"Failed to write artifact into {handle.id}: {e}") from e

    async def execute(self, handle: SandboxHandle, command: list[str]) -> ProcessHandle:
        workdir = self.workdirs.get(handle.id)
        if workdir is None:
            raise SpawnError(f"Sandbox {handle.id} is not running")

        argv = self.render_command(command, str(workdir / self.artifact_name))
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(workdir),
                env={"PATH": os.environ.get("PATH", "/usr/local/bin:/usr/bin:/bin")},
            )
        except OSError as e:
            raise SpawnError(f"Failed to start {argv[0]}: {e}") from e

        proc = ProcessHandle(process, label=f"local/{process.pid}", chunk_size=self.chunk_size)
        self.processes[handle.id].append(proc)
        return proc

    async def destroy(self, handle: SandboxHandle) -> None:
        workdir = self.workdirs.pop(handle.id, None)
        if workdir is None:
            logger.warning(f"Attempted to destroy non-existent local sandbox {handle.id}")
            return

        # Killing the sandbox takes every process still running in it down too
        for proc in self.processes.pop(handle.id, []):
            proc.kill()
        await asyncio.to_thread(shutil.rmtree, workdir, True)
        logger.info(f"Local sandbox destroyed: {workdir}")

    def live_handles(self) -> list[SandboxHandle]:
        return [SandboxHandle(id=key, runtime="local") for key in self.workdirs]
