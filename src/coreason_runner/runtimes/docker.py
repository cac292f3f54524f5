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
import io
import os
import tarfile
import time
import uuid

import docker
from docker.errors import DockerException
from docker.models.containers import Container
from loguru import logger
from requests.exceptions import RequestException

from coreason_runner.exceptions import InjectionError, ProvisionError, SpawnError
from coreason_runner.models import ProcessExit, SandboxHandle
from coreason_runner.process import ProcessHandle
from coreason_runner.runtime import SandboxRuntime

# The SDK raises requests errors, not DockerException, when the daemon connection drops
DOCKER_ERRORS = (DockerException, RequestException)

PID_DIR = "/tmp"


class DockerProcessHandle(ProcessHandle):
    """
    A ``docker exec`` client process. Killing it also kills the command it started
    inside the container, whose pid the exec wrapper records in ``pid_file``.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        label: str,
        runtime: "DockerRuntime",
        container: Container,
        pid_file: str,
        chunk_size: int = 4096,
    ):
        super().__init__(process, label=label, chunk_size=chunk_size)
        self.runtime = runtime
        self.container = container
        self.pid_file = pid_file
        self._container_kill: asyncio.Task[None] | None = None

    def kill(self) -> None:
        if self.killed or self.finished:
            return
        super().kill()
        self._container_kill = self.runtime.in_background(
            self.runtime.kill_in_container(self.container, self.pid_file)
        )

    async def _resolve(self) -> ProcessExit:
        outcome = await super()._resolve()
        # A killed process is not reaped until the container side is gone too
        if self._container_kill is not None:
            await asyncio.shield(self._container_kill)
        return outcome


class DockerRuntime(SandboxRuntime):
    """
    Docker-based implementation of the SandboxRuntime.

    Containers are managed through the Docker SDK. Commands run through a
    ``docker exec -i`` child process so their stdio can be streamed and written to.
    """

    def __init__(
        self,
        image: str = "python:3.9-slim",
        cpu_limit: float = 1.0,
        mem_limit: str = "512m",
        network_mode: str = "none",
        artifact_path: str = "/code.py",
        docker_binary: str = "docker",
        chunk_size: int = 4096,
    ):
        super().__init__()
        self._client: docker.DockerClient | None = None
        self.image = image
        self.cpu_limit = cpu_limit
        self.mem_limit = mem_limit
        self.network_mode = network_mode
        self.artifact_path = artifact_path
        self.docker_binary = docker_binary
        self.chunk_size = chunk_size
        self.containers: dict[str, Container] = {}

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    async def create(self) -> SandboxHandle:
        """
        Start an idle container that commands are executed in.
        """
        logger.info(f"Starting Docker sandbox with image {self.image}")
        try:
            container = await asyncio.to_thread(
                self.client.containers.run,
                self.image,
                command="sleep infinity",
                detach=True,
                network_mode=self.network_mode,
                mem_limit=self.mem_limit,
                nano_cpus=int(self.cpu_limit * 1e9),
                remove=True,
            )
        except DOCKER_ERRORS as e:
            logger.error(f"Failed to start Docker sandbox: {e}")
            raise ProvisionError(f"Failed to start Docker sandbox: {e}") from e

        self.containers[container.id] = container
        handle = SandboxHandle(id=container.id, runtime="docker")
        logger.info(f"Docker sandbox started: {handle.short_id}")
        return handle

    async def inject(self, handle: SandboxHandle, artifact: bytes) -> None:
        """
        Copy the artifact into the container at ``artifact_path``.
        """
        container = self.containers.get(handle.id)
        if container is None:
            raise InjectionError(f"Sandbox {handle.short_id} is not running")

        logger.info(f"Injecting {len(artifact)} bytes into {handle.short_id}:{self.artifact_path}")

        tar_stream = io.BytesIO()
        with tarfile.open(fileobj=tar_stream, mode="w") as tar:
            info = tarfile.TarInfo(name=os.path.basename(self.artifact_path))
            info.size = len(artifact)
            info.mtime = int(time.time())
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(artifact))
        tar_stream.seek(0)

        parent_dir = os.path.dirname(self.artifact_path) or "/"
        try:
            placed = await asyncio.to_thread(container.put_archive, parent_dir, tar_stream.getvalue())
        except DOCKER_ERRORS as e:
            logger.error(f"Injection failed: {e}")
            raise InjectionError(f"Failed to copy artifact into {handle.short_id}: {e}") from e
        if placed is False:
            raise InjectionError(f"Failed to copy artifact into {handle.short_id}")

    async def execute(self, handle: SandboxHandle, command: list[str]) -> ProcessHandle:
        """
        Run ``command`` in the container via ``docker exec -i``.

        A ``sh`` wrapper records the command's pid inside the container before
        exec'ing it, so a kill can reach past the local ``docker`` client.
        """
        container = self.containers.get(handle.id)
        if container is None:
            raise SpawnError(f"Sandbox {handle.short_id} is not running")

        rendered = self.render_command(command, self.artifact_path)
        pid_file = f"{PID_DIR}/.coreason-{uuid.uuid4().hex}.pid"
        argv = [
            self.docker_binary,
            "exec",
            "-i",
            handle.id,
            "sh",
            "-c",
            f'echo $$ > {pid_file} && exec "$@"',
            "sh",
            *rendered,
        ]
        logger.info(f"Executing {rendered} in sandbox {handle.short_id}")
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Failed to spawn docker exec: {e}")
            raise SpawnError(f"Failed to start process in {handle.short_id}: {e}") from e
        return DockerProcessHandle(
            process,
            label=f"{handle.short_id}/{process.pid}",
            runtime=self,
            container=container,
            pid_file=pid_file,
            chunk_size=self.chunk_size,
        )

    async def kill_in_container(self, container: Container, pid_file: str) -> None:
        """
        SIGKILL the process recorded in ``pid_file``. Failures are logged only.
        """
        script = f'kill -9 "$(cat {pid_file})" 2>/dev/null; rm -f {pid_file}'
        try:
            await asyncio.to_thread(container.exec_run, ["sh", "-c", script])
        except DOCKER_ERRORS as e:
            logger.warning(f"Error killing process in sandbox {container.id[:12]}: {e}")

    async def destroy(self, handle: SandboxHandle) -> None:
        """
        Kill the container; ``remove=True`` makes Docker delete it afterwards.
        """
        container = self.containers.pop(handle.id, None)
        if container is None:
            logger.warning(f"Attempted to terminate non-existent Docker sandbox {handle.short_id}")
            return

        logger.info(f"Terminating Docker sandbox: {handle.short_id}")
        try:
            await asyncio.to_thread(container.kill)
        except DOCKER_ERRORS as e:
            logger.warning(f"Error terminating Docker sandbox: {e}")

    def live_handles(self) -> list[SandboxHandle]:
        return [SandboxHandle(id=cid, runtime="docker") for cid in self.containers]
