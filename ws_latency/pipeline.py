from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import threading
from typing import Awaitable, Callable, Iterable, Optional, TextIO, Tuple

from ws_latency.aggregator import LatencyAggregator
from ws_latency.connection import FeedConnection
from ws_latency.frame_log import FrameLogger
from ws_latency.handlers import ConnectionHandlers
from ws_latency.heartbeat import run_heartbeat
from ws_latency.settings import CLOSE_CODE, CLOSE_REASON, Settings
from ws_latency.types import PipelineContext

log = logging.getLogger("ws_latency.pipeline")


class UsageError(ValueError):
    """Invocation without any usable market identifier."""


def normalize_markets(raw: Iterable[str]) -> Tuple[str, ...]:
    return tuple(m.strip() for m in raw if m and m.strip())


async def wait_for_blank_line(stream: Optional[TextIO] = None) -> None:
    """Resolve once a blank line (or EOF) is read from ``stream``.

    The read runs in a daemon thread so a process exiting for another reason
    is never held up by a pending stdin read.
    """
    loop = asyncio.get_running_loop()
    done: asyncio.Future = loop.create_future()
    src = stream if stream is not None else sys.stdin

    def _resolve() -> None:
        if not done.done():
            done.set_result(None)

    def _reader() -> None:
        while True:
            line = src.readline()
            if not line.strip():
                break
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(_resolve)

    threading.Thread(target=_reader, name="exit-signal", daemon=True).start()
    await done


async def _cancel(tasks: Iterable[asyncio.Task]) -> None:
    for task in tasks:
        task.cancel()
    for task in tasks:
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await task


async def _shutdown(
    connection,
    frame_log: FrameLogger,
    reader: asyncio.Task,
    background: Iterable[asyncio.Task],
    settings: Settings,
) -> None:
    log.info("Exit requested; closing connection")
    try:
        await connection.close(CLOSE_CODE, CLOSE_REASON)
    except Exception:
        log.exception("Failed to close connection")

    # Give the delivery loop a chance to record the disconnect.
    done, _ = await asyncio.wait({reader}, timeout=settings.ws_close_timeout_s + 1.0)
    if reader in done and not reader.cancelled() and reader.exception() is not None:
        log.error("Delivery loop failed during shutdown", exc_info=reader.exception())
    await _cancel([reader, *background])

    try:
        frame_log.exit()
    except Exception:
        log.exception("Failed to write exit record")
    frame_log.close()


async def run_pipeline(
    markets: Iterable[str],
    settings: Optional[Settings] = None,
    connection=None,
    wait_for_exit: Optional[Callable[[], Awaitable[None]]] = None,
    emit: Callable[[str], None] = print,
) -> None:
    """Run the monitor until the exit signal, then shut down in order.

    Any failure in the delivery loop, the aggregator or the heartbeat is
    fatal: the other activities are cancelled and the exception propagates.
    """
    settings = settings or Settings()
    requested = normalize_markets(markets)
    if not requested:
        raise UsageError("at least one market is required")

    frame_log = FrameLogger(settings.frame_log_path)
    samples: asyncio.Queue = asyncio.Queue(maxsize=settings.sample_queue_max)
    ctx = PipelineContext(markets=requested, samples=samples, frame_log=frame_log)

    if connection is None:
        connection = FeedConnection(
            ws_url=settings.ws_url,
            open_timeout_s=settings.ws_open_timeout_s,
            close_timeout_s=settings.ws_close_timeout_s,
            max_queue=settings.ws_max_queue,
        )
    handlers = ConnectionHandlers(ctx, connection, settings.stale_threshold_ms)
    connection.bind(handlers.on_open, handlers.on_message, handlers.on_error, handlers.on_close)
    aggregator = LatencyAggregator(
        samples,
        interval_s=settings.flush_interval_s,
        stale_threshold_ms=settings.stale_threshold_ms,
        timer_flush=settings.flush_on_timer,
        emit=emit,
    )
    wait_for_exit = wait_for_exit or wait_for_blank_line

    log.info(
        "Pipeline config url=%s markets=%s log=%s stale_ms=%d flush_s=%.1f heartbeat_s=%.1f queue=%d",
        settings.ws_url,
        ",".join(requested),
        settings.frame_log_path,
        settings.stale_threshold_ms,
        settings.flush_interval_s,
        settings.heartbeat_interval_s,
        settings.sample_queue_max,
    )

    tasks: list[asyncio.Task] = []
    try:
        frame_log.connect(settings.ws_url)
        await connection.open()

        reader = asyncio.create_task(connection.run(), name="delivery")
        background = [
            asyncio.create_task(aggregator.run(), name="aggregator"),
            asyncio.create_task(
                run_heartbeat(connection, frame_log, settings.heartbeat_interval_s), name="heartbeat"
            ),
        ]
        exit_task = asyncio.create_task(wait_for_exit(), name="exit-signal")
        tasks = [reader, *background, exit_task]

        pending = set(tasks)
        while exit_task in pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                exc = task.exception()
                if exc is not None:
                    log.error("%s failed: %s", task.get_name(), exc)
                    raise exc
                if task is not exit_task:
                    log.info("%s finished; waiting for exit signal", task.get_name())
    except BaseException:
        await _cancel(tasks)
        with contextlib.suppress(Exception):
            await connection.close(CLOSE_CODE, CLOSE_REASON)
        frame_log.close()
        raise

    await _shutdown(connection, frame_log, reader, background, settings)
    log.info("Pipeline stopped after %d messages", handlers.messages_seen)
