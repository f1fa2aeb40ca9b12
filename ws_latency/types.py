from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple, TYPE_CHECKING

from ws_latency.settings import ORDERBOOK_CHANNEL

if TYPE_CHECKING:
    from ws_latency.frame_log import FrameLogger


@dataclass(frozen=True)
class SubscriptionRequest:
    market: str
    channel: str = ORDERBOOK_CHANNEL
    op: str = "subscribe"

    def to_json(self) -> str:
        return json.dumps({"op": self.op, "channel": self.channel, "market": self.market})


@dataclass(frozen=True)
class BookData:
    # 0.0 means the feed did not report a time
    time: float = 0.0
    checksum: int = 0
    bids: List[List[float]] = field(default_factory=list)
    asks: List[List[float]] = field(default_factory=list)
    action: str = ""


@dataclass(frozen=True)
class InboundFrame:
    raw: str
    channel: str = ""
    market: str = ""
    type: str = ""
    data: BookData = field(default_factory=BookData)


@dataclass(frozen=True)
class LatencySample:
    reported_at: datetime
    latency_ms: int


@dataclass
class WindowState:
    latency_sum_s: float = 0.0
    count: int = 0
    stale: int = 0
    alerted: bool = False

    def reset(self) -> None:
        self.latency_sum_s = 0.0
        self.count = 0
        self.stale = 0
        self.alerted = False


@dataclass(frozen=True)
class CloseRecord:
    code: Optional[int]
    reason: str = ""

    def to_json(self) -> str:
        return json.dumps({"code": self.code, "reason": self.reason}, ensure_ascii=False)


@dataclass(frozen=True)
class PipelineContext:
    markets: Tuple[str, ...]
    samples: "asyncio.Queue[LatencySample]"
    frame_log: "FrameLogger"
