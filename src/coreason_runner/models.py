# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class SandboxHandle(BaseModel):
    """Identifies one isolated environment instance.

    Attributes:
        id: Provider-specific identifier (container id, scratch directory, ...).
        runtime: Name of the runtime that created the handle.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    runtime: str

    @property
    def short_id(self) -> str:
        return self.id[:12]


class TestCase(BaseModel):
    """One grading case: the stdin fed to the program and the text its stdout must contain."""

    __test__ = False  # keep pytest from collecting this class

    model_config = ConfigDict(frozen=True)

    input: str
    expected_output: str


class Channel(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


class OutputChunk(BaseModel):
    channel: Channel
    text: str


class ProcessExit(BaseModel):
    """Terminal outcome of a process: an exit code on natural exit, or killed."""

    exit_code: int | None = None
    killed: bool = False


class Success(BaseModel):
    kind: Literal["success"] = "success"
    exit_code: int
    elapsed_seconds: float


class TimedOut(BaseModel):
    kind: Literal["timed_out"] = "timed_out"
    elapsed_seconds: float


class Killed(BaseModel):
    kind: Literal["killed"] = "killed"


class RuntimeFailure(BaseModel):
    kind: Literal["runtime_error"] = "runtime_error"
    message: str


ExecutionOutcome = Annotated[Union[Success, TimedOut, Killed, RuntimeFailure], Field(discriminator="kind")]


class CaseResult(BaseModel):
    """Outcome of a single grading case.

    Attributes:
        index: Zero-based position of the case in the configured list.
        passed: Whether the case passed.
        outcome: How the case's process ended.
        elapsed_seconds: Wall-clock time from spawn to exit or timeout.
    """

    index: int
    passed: bool
    outcome: ExecutionOutcome
    elapsed_seconds: float


class GradeReport(BaseModel):
    """Aggregated result of a grading pass."""

    passed_count: int = 0
    failed_count: int = 0
    outcomes: list[CaseResult] = Field(default_factory=list)
    total_elapsed_seconds: float = 0.0

    def record(self, result: CaseResult) -> None:
        self.outcomes.append(result)
        if result.passed:
            self.passed_count += 1
        else:
            self.failed_count += 1


class EventName(str, Enum):
    TERMINAL_OUTPUT = "terminal-output"
    CLEAR_TERMINAL = "clear-terminal"
    REQUEST_INPUT = "request-input"
    EXECUTION_RESULT = "execution-result"
    RUN_ELIGIBLE = "run-eligible"


class ServerEvent(BaseModel):
    """An event sent from the supervisor to one client."""

    name: EventName
    data: str | bool | None = None

    @classmethod
    def output(cls, text: str) -> "ServerEvent":
        return cls(name=EventName.TERMINAL_OUTPUT, data=text)

    @classmethod
    def clear(cls) -> "ServerEvent":
        return cls(name=EventName.CLEAR_TERMINAL)

    @classmethod
    def request_input(cls, enabled: bool) -> "ServerEvent":
        return cls(name=EventName.REQUEST_INPUT, data=enabled)

    @classmethod
    def result(cls, summary: str) -> "ServerEvent":
        return cls(name=EventName.EXECUTION_RESULT, data=summary)

    @classmethod
    def run_eligible(cls) -> "ServerEvent":
        return cls(name=EventName.RUN_ELIGIBLE)

    def to_message(self) -> dict[str, str | bool | None]:
        return {"event": self.name.value, "data": self.data}
