# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from typing import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from coreason_runner.events import EventOutbox
from coreason_runner.main import disconnect, grade_code, main, poll_events, run_code, send_input, stop_code
from coreason_runner.models import ServerEvent


@pytest.fixture
def mock_controller() -> Generator[MagicMock, None, None]:
    with patch("coreason_runner.main.controller", new_callable=MagicMock) as mock:
        mock.start_run = AsyncMock()
        mock.start_grade = AsyncMock()
        mock.supply_input = AsyncMock(return_value=True)
        mock.stop = AsyncMock(return_value=True)
        mock.disconnect = AsyncMock()
        yield mock


@pytest.fixture
def outbox() -> Generator[EventOutbox, None, None]:
    fresh = EventOutbox()
    with patch("coreason_runner.main.outbox", fresh):
        yield fresh


@pytest.mark.asyncio
async def test_run_code(mock_controller: MagicMock) -> None:
    assert await run_code("c1", "print(1)") == "Run started."
    mock_controller.start_run.assert_awaited_once_with("c1", "print(1)")


@pytest.mark.asyncio
async def test_run_code_error(mock_controller: MagicMock) -> None:
    mock_controller.start_run.side_effect = ValueError("Client ID is required")
    assert await run_code("", "print(1)") == "Error running code: Client ID is required"


@pytest.mark.asyncio
async def test_grade_code(mock_controller: MagicMock) -> None:
    assert await grade_code("c1", "print(25)") == "Grading started."
    mock_controller.start_grade.assert_awaited_once_with("c1", "print(25)")


@pytest.mark.asyncio
async def test_grade_code_error(mock_controller: MagicMock) -> None:
    mock_controller.start_grade.side_effect = RuntimeError("boom")
    assert await grade_code("c1", "print(25)") == "Error grading code: boom"


@pytest.mark.asyncio
async def test_send_input(mock_controller: MagicMock) -> None:
    assert await send_input("c1", "5") == "Input sent."
    mock_controller.supply_input.assert_awaited_once_with("c1", "5")

    mock_controller.supply_input.return_value = False
    assert await send_input("c1", "5") == "No running program."


@pytest.mark.asyncio
async def test_stop_code(mock_controller: MagicMock) -> None:
    assert await stop_code("c1") == "Stopped."
    mock_controller.stop.return_value = False
    assert await stop_code("c1") == "Nothing to stop."


@pytest.mark.asyncio
async def test_disconnect_discards_events(mock_controller: MagicMock, outbox: EventOutbox) -> None:
    await outbox.emit("c1", ServerEvent.output("stale"))

    assert await disconnect("c1") == "Disconnected."

    mock_controller.disconnect.assert_awaited_once_with("c1")
    assert await outbox.drain("c1") == []


@pytest.mark.asyncio
async def test_poll_events(outbox: EventOutbox) -> None:
    await outbox.emit("c1", ServerEvent.clear())
    await outbox.emit("c1", ServerEvent.output("25\n"))

    messages = await poll_events("c1", timeout=0)

    assert messages == [
        {"event": "clear-terminal", "data": None},
        {"event": "terminal-output", "data": "25\n"},
    ]
    assert await poll_events("c1", timeout=0.01) == []


def test_main() -> None:
    with patch("coreason_runner.main.mcp.run") as mock_run:
        main()
        mock_run.assert_called_once()
