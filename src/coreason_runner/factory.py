# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from coreason_runner.config import RunnerConfig
from coreason_runner.runtime import SandboxRuntime
from coreason_runner.runtimes.docker import DockerRuntime
from coreason_runner.runtimes.local import LocalRuntime


class RuntimeFactory:
    """
    Factory to create SandboxRuntime instances based on configuration.
    """

    @staticmethod
    def get_runtime(config: RunnerConfig) -> SandboxRuntime:
        """
        Returns an instance of the configured SandboxRuntime.
        """
        if config.runtime == "docker":
            return DockerRuntime(
                image=config.docker_image,
                cpu_limit=config.cpu_limit,
                mem_limit=config.mem_limit,
                network_mode=config.network_mode,
                artifact_path=config.artifact_path,
                docker_binary=config.docker_binary,
                chunk_size=config.chunk_size,
            )
        elif config.runtime == "local":
            return LocalRuntime(
                artifact_name=config.artifact_path.rsplit("/", 1)[-1] or "code.py",
                chunk_size=config.chunk_size,
            )
        else:
            # This should be unreachable due to Pydantic validation, but for safety:
            raise ValueError(f"Unknown runtime: {config.runtime}")  # pragma: no cover
