# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""
coreason-runner
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import RunnerConfig
from .controller import SessionController
from .exceptions import ExecutionError, InjectionError, ProvisionError, SandboxError, SpawnError
from .factory import RuntimeFactory
from .grader import grade, grade_async
from .models import GradeReport, SandboxHandle, ServerEvent, TestCase
from .process import ProcessHandle
from .runtime import SandboxRuntime
from .runtimes.docker import DockerRuntime
from .runtimes.local import LocalRuntime

__all__ = [
    "SandboxRuntime",
    "DockerRuntime",
    "LocalRuntime",
    "ProcessHandle",
    "RunnerConfig",
    "RuntimeFactory",
    "SessionController",
    "GradeReport",
    "SandboxHandle",
    "ServerEvent",
    "TestCase",
    "grade",
    "grade_async",
    "SandboxError",
    "ProvisionError",
    "InjectionError",
    "SpawnError",
    "ExecutionError",
]
