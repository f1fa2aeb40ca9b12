from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, List, Tuple

from ws_latency.types import BookData, InboundFrame, SubscriptionRequest


class FrameDecodeError(ValueError):
    """Inbound frame that cannot be decoded; treated as a protocol violation."""


def subscribe_message(market: str) -> str:
    return SubscriptionRequest(market=market).to_json()


def ping_message() -> str:
    return json.dumps({"op": "ping"})


def parse_subscription(text: str) -> Tuple[str, str]:
    payload = json.loads(text)
    return payload["channel"], payload["market"]


def _as_levels(levels: Any) -> List[List[float]]:
    out: List[List[float]] = []
    for lv in levels or []:
        out.append([float(lv[0]), float(lv[1])])
    return out


def _parse_book_data(data: Any) -> BookData:
    if data is None:
        return BookData()
    if not isinstance(data, dict):
        # Some control frames carry a string payload (e.g. error text).
        return BookData()
    ts = data.get("time", 0.0)
    if ts is None:
        ts = 0.0
    if isinstance(ts, bool) or not isinstance(ts, (int, float)):
        raise FrameDecodeError(f"non-numeric time field: {ts!r}")
    try:
        return BookData(
            time=float(ts),
            checksum=int(data.get("checksum") or 0),
            bids=_as_levels(data.get("bids")),
            asks=_as_levels(data.get("asks")),
            action=str(data.get("action") or ""),
        )
    except (TypeError, ValueError, IndexError) as exc:
        raise FrameDecodeError(f"malformed book data: {exc}") from exc


def decode_frame(raw: str | bytes) -> InboundFrame:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FrameDecodeError(f"frame is not utf-8: {exc}") from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise FrameDecodeError(f"invalid JSON frame: {exc}") from exc
    if not isinstance(payload, dict):
        raise FrameDecodeError(f"expected a JSON object, got {type(payload).__name__}")

    return InboundFrame(
        raw=raw,
        channel=str(payload.get("channel") or ""),
        market=str(payload.get("market") or ""),
        type=str(payload.get("type") or ""),
        data=_parse_book_data(payload.get("data")),
    )


def reported_instant(seconds: float) -> datetime:
    # fromtimestamp rounds to the nearest microsecond
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def latency_ms(received_at: datetime, reported_at: datetime) -> int:
    micros = (received_at - reported_at) // timedelta(microseconds=1)
    # truncate toward zero so clock skew does not round away from it
    if micros < 0:
        return -((-micros) // 1000)
    return micros // 1000


def is_stale(latency: int, threshold_ms: int) -> bool:
    return latency >= threshold_ms
