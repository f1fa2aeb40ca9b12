import logging
from typing import Awaitable, Callable, Optional

from websockets.asyncio.client import connect as ws_connect  # type: ignore
from websockets.exceptions import ConnectionClosed  # type: ignore
from websockets.protocol import State  # type: ignore


class FeedConnection:
    """Async websocket wrapper that delivers frames to four bound callbacks."""

    def __init__(
        self,
        ws_url: str,
        open_timeout_s: float = 10.0,
        close_timeout_s: float = 5.0,
        max_queue: int = 256,
    ):
        self.ws_url = ws_url
        self.open_timeout_s = max(0.1, float(open_timeout_s))
        self.close_timeout_s = max(0.1, float(close_timeout_s))
        self.max_queue = max(1, int(max_queue))

        self.on_open_cb: Optional[Callable[[], Awaitable[None]]] = None
        self.on_message_cb: Optional[Callable[[str], Awaitable[None]]] = None
        self.on_error_cb: Optional[Callable[[str], None]] = None
        self.on_close_cb: Optional[Callable[[Optional[int], Optional[str]], None]] = None

        self._ws = None
        self._close_emitted = False
        self._log = logging.getLogger("ws_latency.connection")

    def bind(
        self,
        on_open: Callable[[], Awaitable[None]],
        on_message: Callable[[str], Awaitable[None]],
        on_error: Callable[[str], None],
        on_close: Callable[[Optional[int], Optional[str]], None],
    ) -> None:
        self.on_open_cb = on_open
        self.on_message_cb = on_message
        self.on_error_cb = on_error
        self.on_close_cb = on_close

    @property
    def is_open(self) -> bool:
        ws = self._ws
        return ws is not None and getattr(ws, "state", None) is State.OPEN

    async def open(self) -> None:
        if self.on_message_cb is None:
            raise RuntimeError("FeedConnection.open() called before bind()")
        self._ws = await ws_connect(
            self.ws_url,
            ping_interval=None,
            ping_timeout=None,
            open_timeout=self.open_timeout_s,
            close_timeout=self.close_timeout_s,
            max_queue=self.max_queue,
        )
        self._log.info("Connected to %s", self.ws_url)
        if self.on_open_cb:
            await self.on_open_cb()

    async def send(self, text: str) -> None:
        if self._ws is None:
            raise RuntimeError("FeedConnection.send() on an unopened connection")
        await self._ws.send(text)

    def _emit_close(self, code: Optional[int], reason: Optional[str]) -> None:
        if self._close_emitted:
            return
        self._close_emitted = True
        if self.on_close_cb:
            self.on_close_cb(code, reason)

    async def run(self) -> None:
        """Inbound delivery loop; returns once the connection is gone."""
        ws = self._ws
        if ws is None:
            raise RuntimeError("FeedConnection.run() on an unopened connection")
        assert self.on_message_cb is not None
        while True:
            try:
                msg = await ws.recv()
            except ConnectionClosed:
                break
            except Exception as exc:
                self._log.warning("WS receive failed: %s", exc)
                if self.on_error_cb:
                    self.on_error_cb(str(exc))
                break
            await self.on_message_cb(msg)

        self._emit_close(getattr(ws, "close_code", None), getattr(ws, "close_reason", None))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        ws = self._ws
        if ws is None:
            return
        await ws.close(code=code, reason=reason)
