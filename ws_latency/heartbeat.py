from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from ws_latency.frame_log import FrameLogger
from ws_latency.messages import ping_message

log = logging.getLogger("ws_latency.heartbeat")


async def run_heartbeat(
    connection,
    frame_log: FrameLogger,
    interval_s: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> int:
    """Send a keep-alive ping every ``interval_s`` while the connection is open.

    Returns the number of pings sent once the connection is seen closed. Send
    and log failures propagate.
    """
    sent = 0
    payload = ping_message()
    while True:
        await sleep(interval_s)
        if not connection.is_open:
            log.info("Heartbeat stopping: connection closed after %d pings", sent)
            return sent
        await connection.send(payload)
        frame_log.out(payload)
        sent += 1
