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
import sys
from typing import Callable

from coreason_runner.models import EventName, ServerEvent

PYTHON_COMMAND = [sys.executable, "-u", "{artifact}"]

SQUARE = "n = int(input())\nprint(n * n)\n"
ANSWER = "n = int(input())\nprint(f'Answer: {n * n}')\n"
WRONG = "n = int(input())\nprint(n + n)\n"
SLEEPY = "import time\nn = int(input())\ntime.sleep(5)\nprint(n * n)\n"
FOREVER = "import time\nprint('started')\ntime.sleep(30)\n"
GREETER = "name = input('Name? ')\nprint('Hello, ' + name)\n"
CRASHER = "import sys\nsys.stderr.write('boom\\n')\nsys.exit(3)\n"


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, ServerEvent]] = []

    async def emit(self, client_id: str, event: ServerEvent) -> None:
        self.events.append((client_id, event))

    def for_client(self, client_id: str) -> list[ServerEvent]:
        return [event for cid, event in self.events if cid == client_id]

    def names(self, client_id: str) -> list[EventName]:
        return [event.name for event in self.for_client(client_id)]

    def output(self, client_id: str) -> str:
        return "".join(
            str(event.data) for event in self.for_client(client_id) if event.name is EventName.TERMINAL_OUTPUT
        )

    def results(self, client_id: str) -> list[str]:
        return [str(event.data) for event in self.for_client(client_id) if event.name is EventName.EXECUTION_RESULT]

    def count(self, client_id: str, name: EventName) -> int:
        return self.names(client_id).count(name)


async def wait_until(predicate: Callable[[], bool], timeout: float = 10.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=timeout)
