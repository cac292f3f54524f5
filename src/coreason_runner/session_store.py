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
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from coreason_runner.models import SandboxHandle

if TYPE_CHECKING:
    from coreason_runner.execution import Execution


@dataclass
class ClientSession:
    """Everything the supervisor tracks for one connected client.

    ``execution`` is the in-flight run or grading pass, if any. ``sandboxes`` holds
    every sandbox provisioned for the client whose teardown has not been issued yet.
    """

    client_id: str
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    execution: "Execution | None" = None
    sandboxes: dict[str, SandboxHandle] = field(default_factory=dict)
    closed: bool = False

    def track(self, handle: SandboxHandle) -> None:
        self.sandboxes[handle.id] = handle

    def forget(self, handle: SandboxHandle) -> None:
        self.sandboxes.pop(handle.id, None)


class SessionStore:
    """Process-wide map from client id to that client's session.

    Sessions are only mutated by the SessionController, under the session's lock.
    """

    def __init__(self) -> None:
        self.sessions: dict[str, ClientSession] = {}

    def get(self, client_id: str) -> ClientSession | None:
        return self.sessions.get(client_id)

    def get_or_create(self, client_id: str) -> ClientSession:
        if not client_id:
            raise ValueError("Client ID is required")
        session = self.sessions.get(client_id)
        if session is None:
            logger.debug(f"Creating session for client {client_id}")
            session = ClientSession(client_id=client_id)
            self.sessions[client_id] = session
        return session

    def pop(self, client_id: str) -> ClientSession | None:
        return self.sessions.pop(client_id, None)

    def active_sandboxes(self, client_id: str) -> list[SandboxHandle]:
        session = self.sessions.get(client_id)
        return list(session.sandboxes.values()) if session else []

    def has_active_execution(self, client_id: str) -> bool:
        session = self.sessions.get(client_id)
        return session is not None and session.execution is not None

    def __len__(self) -> int:
        return len(self.sessions)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self.sessions
