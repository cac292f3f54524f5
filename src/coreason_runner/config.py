# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from coreason_runner.models import TestCase

DEFAULT_TEST_CASES = [
    TestCase(input="5\n", expected_output="25\n"),
    TestCase(input="10\n", expected_output="100\n"),
]


class RunnerConfig(BaseSettings):
    """
    Configuration for the execution supervisor.
    """

    runtime: Literal["docker", "local"] = "docker"

    # Docker
    docker_image: str = "python:3.9-slim"
    docker_binary: str = "docker"
    cpu_limit: float = 1.0
    mem_limit: str = "512m"
    network_mode: str = "none"

    # Artifact placement and the command that runs it; "{artifact}" is substituted per runtime
    artifact_path: str = "/code.py"
    run_command: list[str] = ["python3", "-u", "{artifact}"]

    # Grading
    case_timeout: float = Field(default=1.0, gt=0)
    test_cases: list[TestCase] = Field(default_factory=lambda: list(DEFAULT_TEST_CASES))

    chunk_size: int = Field(default=4096, gt=0)

    # Undelivered events kept per client before the oldest are dropped
    outbox_limit: int = Field(default=1000, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="COREASON_RUNNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
