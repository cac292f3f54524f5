# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""Error taxonomy for sandbox provisioning and process execution."""


class SandboxError(Exception):
    """Base class for failures raised by a sandbox runtime."""


class ProvisionError(SandboxError):
    """The isolation provider could not allocate an environment."""


class InjectionError(SandboxError):
    """The artifact could not be placed into the environment."""


class SpawnError(SandboxError):
    """The environment could not host a new process."""


class ExecutionError(SandboxError):
    """A running process failed at the process level (pipe or provider failure)."""
