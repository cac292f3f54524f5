# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from typing import Any

from mcp.server.fastmcp import FastMCP

from coreason_runner.config import RunnerConfig
from coreason_runner.controller import SessionController
from coreason_runner.events import EventOutbox
from coreason_runner.utils.logger import logger

# Initialize Supervisor Logic
config = RunnerConfig()
outbox = EventOutbox(max_pending=config.outbox_limit)
controller = SessionController(outbox, config)

# Initialize MCP Server
mcp = FastMCP("coreason-runner")


@mcp.tool()  # type: ignore[misc]
async def run_code(client_id: str, code: str) -> str:
    """
    Run code interactively. Output, input requests and the result arrive via poll_events.
    """
    try:
        await controller.start_run(client_id, code)
    except Exception as e:
        logger.error(f"run_code failed for {client_id}: {e}")
        return f"Error running code: {e!s}"
    return "Run started."


@mcp.tool()  # type: ignore[misc]
async def grade_code(client_id: str, code: str) -> str:
    """
    Grade code against the configured test cases. Progress arrives via poll_events.
    """
    try:
        await controller.start_grade(client_id, code)
    except Exception as e:
        logger.error(f"grade_code failed for {client_id}: {e}")
        return f"Error grading code: {e!s}"
    return "Grading started."


@mcp.tool()  # type: ignore[misc]
async def send_input(client_id: str, text: str) -> str:
    """
    Send one line of input to the running program.
    """
    delivered = await controller.supply_input(client_id, text)
    return "Input sent." if delivered else "No running program."


@mcp.tool()  # type: ignore[misc]
async def stop_code(client_id: str) -> str:
    """
    Stop the running program and discard its sandbox.
    """
    stopped = await controller.stop(client_id)
    return "Stopped." if stopped else "Nothing to stop."


@mcp.tool()  # type: ignore[misc]
async def disconnect(client_id: str) -> str:
    """
    Release every resource held for the client.
    """
    await controller.disconnect(client_id)
    outbox.discard(client_id)
    return "Disconnected."


@mcp.tool()  # type: ignore[misc]
async def poll_events(client_id: str, timeout: float = 1.0) -> list[dict[str, Any]]:
    """
    Collect pending events for the client, waiting up to `timeout` seconds for the first one.
    """
    events = await outbox.drain(client_id, timeout=max(0.0, min(timeout, 30.0)))
    return [event.to_message() for event in events]


def main() -> None:
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":  # pragma: no cover
    main()
