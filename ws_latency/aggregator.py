from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Callable, Optional

from ws_latency.frame_log import format_ts
from ws_latency.messages import is_stale
from ws_latency.types import LatencySample, WindowState


def first_deadline(now: float, interval_s: float) -> float:
    """First flush boundary, aligned to wall-clock multiples of the interval."""
    return math.floor(now / interval_s) * interval_s + interval_s


def next_deadline(deadline: float, now: float, interval_s: float) -> float:
    """Smallest aligned boundary strictly after ``now``."""
    if deadline > now:
        return deadline
    steps = math.floor((now - deadline) / interval_s) + 1
    return deadline + steps * interval_s


def format_summary(state: WindowState, threshold_ms: int) -> str:
    if state.count == 0:
        return "No messages seen"
    avg_s = state.latency_sum_s / state.count
    marker = "SLOW" if is_stale(int(avg_s * 1000), threshold_ms) else "OK"
    stale = "no stale msgs" if state.stale == 0 else f"{state.stale} stale msgs"
    return f"{marker} avg latency {avg_s:.3f}s over {state.count} msgs, {stale}"


def format_alert(sample: LatencySample) -> str:
    return f"ALERT stale message reported at {format_ts(sample.reported_at)}, latency {sample.latency_ms}ms"


class LatencyAggregator:
    """Drains latency samples and prints one summary per aggregation window.

    With ``timer_flush`` the wait for the next sample is bounded by the flush
    deadline, so a quiet feed still reports on schedule. Without it the flush
    check only runs after a sample arrives.
    """

    def __init__(
        self,
        samples: "asyncio.Queue[LatencySample]",
        interval_s: float,
        stale_threshold_ms: int,
        timer_flush: bool = True,
        emit: Callable[[str], None] = print,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be positive (got {interval_s!r})")
        self.samples = samples
        self.interval_s = float(interval_s)
        self.stale_threshold_ms = int(stale_threshold_ms)
        self.timer_flush = timer_flush
        self.emit = emit
        self.clock = clock
        self.state = WindowState()
        self.deadline = first_deadline(clock(), self.interval_s)
        self._log = logging.getLogger("ws_latency.aggregator")

    def add(self, sample: LatencySample) -> None:
        st = self.state
        st.latency_sum_s += sample.latency_ms / 1000.0
        st.count += 1
        if is_stale(sample.latency_ms, self.stale_threshold_ms):
            st.stale += 1
            if not st.alerted:
                self.emit(format_alert(sample))
                st.alerted = True

    def maybe_flush(self) -> bool:
        now = self.clock()
        if now < self.deadline:
            return False
        self.flush(now)
        return True

    def flush(self, now: Optional[float] = None) -> str:
        if now is None:
            now = self.clock()
        line = format_summary(self.state, self.stale_threshold_ms)
        self.emit(line)
        self._log.debug(
            "flush count=%d stale=%d sum_s=%.6f deadline=%.3f",
            self.state.count,
            self.state.stale,
            self.state.latency_sum_s,
            self.deadline,
        )
        self.state.reset()
        self.deadline = next_deadline(self.deadline, now, self.interval_s)
        return line

    async def _receive(self) -> Optional[LatencySample]:
        if not self.timer_flush:
            return await self.samples.get()
        timeout = max(0.0, self.deadline - self.clock())
        try:
            return await asyncio.wait_for(self.samples.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    async def run(self) -> None:
        while True:
            sample = await self._receive()
            if sample is not None:
                self.add(sample)
            self.maybe_flush()
