# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""A single command running inside a sandbox."""

import asyncio
import codecs
from typing import AsyncIterator

from loguru import logger

from coreason_runner.exceptions import ExecutionError
from coreason_runner.models import Channel, OutputChunk, ProcessExit


class _ReadFailure:
    def __init__(self, channel: Channel, error: Exception):
        self.channel = channel
        self.error = error


class ProcessHandle:
    """Wraps one child process bound to a sandbox.

    Output is streamed chunk by chunk as it arrives on stdout and stderr. Ordering is
    FIFO per channel; the two channels are not ordered relative to each other.

    The terminal outcome is resolved exactly once. If ``kill()`` lands before the
    process has exited, the outcome is ``killed``; otherwise the natural exit code
    wins and the late ``kill()`` is a no-op.
    """

    def __init__(self, process: asyncio.subprocess.Process, label: str, chunk_size: int = 4096):
        self._process = process
        self.label = label
        self.chunk_size = chunk_size
        self._killed = False
        self._outcome: asyncio.Future[ProcessExit] | None = None

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def finished(self) -> bool:
        return self._process.returncode is not None

    @property
    def killed(self) -> bool:
        return self._killed

    async def output(self) -> AsyncIterator[OutputChunk]:
        """Yield output chunks from both channels until both reach EOF.

        Each call starts reading from wherever the streams currently are. Nothing is
        yielded once the process has been killed.
        """
        queue: asyncio.Queue[OutputChunk | _ReadFailure | None] = asyncio.Queue()
        readers = [
            asyncio.create_task(self._pump(self._process.stdout, Channel.STDOUT, queue)),
            asyncio.create_task(self._pump(self._process.stderr, Channel.STDERR, queue)),
        ]
        remaining = len(readers)
        try:
            while remaining:
                item = await queue.get()
                if item is None:
                    remaining -= 1
                    continue
                if self._killed:
                    break
                if isinstance(item, _ReadFailure):
                    message = f"Failed reading {item.channel.value} of {self.label}: {item.error}"
                    raise ExecutionError(message) from item.error
                yield item
        finally:
            for reader in readers:
                reader.cancel()
            await asyncio.gather(*readers, return_exceptions=True)

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        channel: Channel,
        queue: "asyncio.Queue[OutputChunk | _ReadFailure | None]",
    ) -> None:
        if stream is None:
            queue.put_nowait(None)
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                data = await stream.read(self.chunk_size)
                if not data:
                    tail = decoder.decode(b"", final=True)
                    if tail:
                        queue.put_nowait(OutputChunk(channel=channel, text=tail))
                    break
                text = decoder.decode(data)
                if text:
                    queue.put_nowait(OutputChunk(channel=channel, text=text))
        except OSError as e:
            queue.put_nowait(_ReadFailure(channel, e))
        finally:
            queue.put_nowait(None)

    async def write_input(self, text: str) -> None:
        """Write to the process's stdin. A no-op once the process has terminated."""
        stdin = self._process.stdin
        if self.finished or self._killed or stdin is None or stdin.is_closing():
            logger.debug(f"Dropping input for finished process {self.label}")
            return
        try:
            stdin.write(text.encode("utf-8"))
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug(f"Process {self.label} exited while input was being written")

    def kill(self) -> None:
        """Forcibly terminate the process. Safe to call repeatedly or after exit."""
        if self._killed or self.finished:
            return
        self._killed = True
        logger.info(f"Killing process {self.label}")
        try:
            self._process.kill()
        except ProcessLookupError:
            pass

    async def wait(self) -> ProcessExit:
        """Wait for the terminal outcome; every caller observes the same one."""
        if self._outcome is None:
            self._outcome = asyncio.ensure_future(self._resolve())
        return await asyncio.shield(self._outcome)

    async def _resolve(self) -> ProcessExit:
        returncode = await self._process.wait()
        if self._killed:
            outcome = ProcessExit(killed=True)
        else:
            outcome = ProcessExit(exit_code=returncode)
        logger.debug(f"Process {self.label} finished: {outcome}")
        return outcome
