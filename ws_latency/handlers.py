from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from ws_latency.frame_log import utc_now
from ws_latency.messages import decode_frame, is_stale, latency_ms, reported_instant, subscribe_message
from ws_latency.types import CloseRecord, LatencySample, PipelineContext


class ConnectionHandlers:
    """The four callbacks bound to one feed connection.

    Exceptions from ``on_open`` and ``on_message`` are not caught here: a
    failed subscribe, a malformed frame, or a failed log write ends the
    delivery loop and with it the process.
    """

    def __init__(
        self,
        ctx: PipelineContext,
        connection,
        stale_threshold_ms: int,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.ctx = ctx
        self.connection = connection
        self.stale_threshold_ms = int(stale_threshold_ms)
        self.clock = clock
        self.messages_seen = 0
        self._log = logging.getLogger("ws_latency.handlers")

    async def on_open(self) -> None:
        self.ctx.frame_log.connected()
        for market in self.ctx.markets:
            payload = subscribe_message(market)
            await self.connection.send(payload)
            self.ctx.frame_log.out(payload)
            self._log.info("Subscribed market=%s", market)

    async def on_message(self, raw: str | bytes) -> None:
        received_at = self.clock()
        frame = decode_frame(raw)
        self.messages_seen += 1

        if frame.data.time == 0:
            self.ctx.frame_log.inbound(frame.raw, "OK", None)
            return

        reported_at = reported_instant(frame.data.time)
        lat = latency_ms(received_at, reported_at)
        status = "STALE" if is_stale(lat, self.stale_threshold_ms) else "OK"
        self.ctx.frame_log.inbound(frame.raw, status, lat)
        # Blocks while the queue is full; samples are never dropped.
        await self.ctx.samples.put(LatencySample(reported_at=reported_at, latency_ms=lat))

    def on_error(self, text: str) -> None:
        self.ctx.frame_log.error(text)
        self._log.warning("WS error: %s", text)

    def on_close(self, code: int | None, reason: str | None) -> None:
        record = CloseRecord(code=code, reason=reason or "")
        self.ctx.frame_log.disconnected(record)
        self._log.info("WS closed code=%s reason=%s", code, record.reason)
