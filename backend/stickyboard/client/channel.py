import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional
from urllib.parse import urlencode
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException
from stickyboard.exceptions import ChannelUnreachable
from stickyboard.realtime import protocol

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict], Awaitable[None]]


class LiveChannel:
    """
    Client end of the push channel.

    ``open`` is attempted once per session; if it fails the caller goes
    degraded for good. ``send`` only queues, so callers never wait on the
    network and never see a send error.
    """

    def __init__(self, url: str, open_timeout: float = 5.0, connect=None):
        self.url = url
        self.open_timeout = open_timeout
        self._connect = connect or websockets.connect
        self._ws = None
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._tasks: list = []
        self._on_message: Optional[MessageHandler] = None
        self.failed = False
        self.closed = False

    @classmethod
    def for_session(cls, ws_base_url: str, access_token: str, username: str, **kwargs) -> "LiveChannel":
        query = urlencode({"access_token": access_token, "user": username})
        return cls(f"{ws_base_url.rstrip('/')}/ws?{query}", **kwargs)

    @property
    def usable(self) -> bool:
        return self._ws is not None and not self.failed and not self.closed

    async def open(self, on_message: MessageHandler) -> None:
        try:
            self._ws = await asyncio.wait_for(self._connect(self.url), self.open_timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self.failed = True
            raise ChannelUnreachable(str(e) or type(e).__name__) from e

        self._on_message = on_message
        self._tasks = [
            asyncio.create_task(self._read_loop()),
            asyncio.create_task(self._write_loop()),
        ]
        logger.info("Push channel open")

    def send(self, id, action, **payload) -> None:
        if not self.usable:
            return
        message = protocol.build(id, protocol.Action(action), **payload)
        self._outbox.put_nowait(protocol.encode(message))

    async def _write_loop(self) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await self._ws.send(frame)
            except Exception as e:
                logger.debug("Push channel send failed, frames dropped from now on: %s", e)
                self.closed = True
                return

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                try:
                    message = json.loads(raw)
                except ValueError:
                    logger.warning("Ignoring non-JSON push frame")
                    continue
                if not isinstance(message, dict):
                    continue
                try:
                    await self._on_message(message)
                except Exception:
                    logger.exception("Handler failed for %s", message.get("action"))
        except ConnectionClosed as e:
            logger.info("Push channel closed: %s", e)
        finally:
            self.closed = True

    async def close(self) -> None:
        self.closed = True
        for task in self._tasks:
            task.cancel()
        if self._ws is not None:
            await self._ws.close()
