"""One live connection from a device: bounded outbound queue plus read/write pumps."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Protocol

logger = logging.getLogger(__name__)

PING_FRAME = json.dumps({"type": "ping"})


class Transport(Protocol):
    """The slice of a WebSocket a session needs."""

    async def send_text(self, data: str) -> None: ...

    async def receive_text(self) -> str: ...


PongHandler = Callable[["LiveSession"], Awaitable[None]]


class LiveSession:
    """Per-connection state owned by the hub while the connection is open.

    ``offer()`` never blocks: when the queue is full the message is dropped
    for this session only. ``serve()`` runs the inbound and outbound pumps
    until either one stops, then cancels the other.
    """

    def __init__(
        self,
        device_id: str,
        transport: Transport,
        *,
        queue_size: int = 256,
        write_wait: float = 10.0,
        pong_wait: float = 60.0,
        ping_period: float = 54.0,
        max_message_size: int = 512,
        on_pong: PongHandler | None = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.device_id = device_id
        self._transport = transport
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=queue_size)
        self._write_wait = write_wait
        self._pong_wait = pong_wait
        self._ping_period = ping_period
        self._max_message_size = max_message_size
        self._on_pong = on_pong
        self._closed = False

    def __repr__(self) -> str:
        return f"LiveSession(device={self.device_id!r}, id={self.id!r})"

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def queued(self) -> int:
        return self._queue.qsize()

    def offer(self, message: str) -> bool:
        """Enqueue a serialized message. Returns False if dropped."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        """Close the outbound queue. The write pump exits after waking."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # Pump is busy on a full queue and re-checks the flag per message.
            pass

    async def serve(self) -> str:
        """Run both pumps until one stops. Returns the reason it stopped."""
        reader = asyncio.create_task(self._read_pump())
        writer = asyncio.create_task(self._write_pump())
        try:
            done, _ = await asyncio.wait(
                {reader, writer}, return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            self._closed = True
            reader.cancel()
            writer.cancel()
            await asyncio.gather(reader, writer, return_exceptions=True)
        finished = done.pop()
        if finished.cancelled():
            return "cancelled"
        return finished.result()

    async def _read_pump(self) -> str:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._pong_wait
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return "read deadline exceeded"
            try:
                frame = await asyncio.wait_for(self._transport.receive_text(), remaining)
            except asyncio.TimeoutError:
                return "read deadline exceeded"
            except Exception as error:
                logger.debug("%r read failed: %s", self, error)
                return "transport closed"
            if len(frame.encode()) > self._max_message_size:
                logger.warning("%r sent an oversized frame (%d bytes)", self, len(frame))
                return "message too large"
            try:
                message = json.loads(frame)
            except ValueError:
                logger.warning("%r sent a malformed frame", self)
                return "malformed frame"
            if not isinstance(message, dict):
                logger.warning("%r sent a non-object frame", self)
                return "malformed frame"
            if message.get("type") == "pong":
                deadline = loop.time() + self._pong_wait
                await self._handle_pong()

    async def _handle_pong(self) -> None:
        if self._on_pong is None:
            return
        try:
            await self._on_pong(self)
        except Exception:
            logger.exception("Pong handler failed for %r", self)

    async def _write_pump(self) -> str:
        loop = asyncio.get_running_loop()
        next_ping = loop.time() + self._ping_period
        while not self._closed:
            timeout = next_ping - loop.time()
            if timeout <= 0:
                if not await self._write(PING_FRAME):
                    return "write failed"
                next_ping = loop.time() + self._ping_period
                continue
            try:
                message = await asyncio.wait_for(self._queue.get(), timeout)
            except asyncio.TimeoutError:
                continue
            if message is None:
                break
            if not await self._write(message):
                return "write failed"
        return "closed by hub"

    async def _write(self, data: str) -> bool:
        try:
            await asyncio.wait_for(self._transport.send_text(data), self._write_wait)
        except Exception as error:
            logger.debug("%r write failed: %s", self, error)
            return False
        return True
