from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from ws_latency.messages import (
    FrameDecodeError,
    decode_frame,
    is_stale,
    latency_ms,
    ping_message,
    reported_instant,
    subscribe_message,
)


def test_subscribe_and_ping_payloads() -> None:
    assert json.loads(subscribe_message("BTC/USD")) == {
        "op": "subscribe",
        "channel": "orderbook",
        "market": "BTC/USD",
    }
    assert json.loads(ping_message()) == {"op": "ping"}


def test_decode_book_update() -> None:
    raw = json.dumps(
        {
            "channel": "orderbook",
            "market": "BTC-PERP",
            "type": "update",
            "data": {
                "time": 1792238400.25,
                "checksum": 3115602423,
                "bids": [[19000.5, 0.25]],
                "asks": [[19001.0, 1.5], [19002.0, 0.1]],
                "action": "update",
            },
        }
    )
    frame = decode_frame(raw.encode("utf-8"))

    assert frame.raw == raw
    assert (frame.channel, frame.market, frame.type) == ("orderbook", "BTC-PERP", "update")
    assert frame.data.time == 1792238400.25
    assert frame.data.checksum == 3115602423
    assert frame.data.bids == [[19000.5, 0.25]]
    assert len(frame.data.asks) == 2
    assert frame.data.action == "update"


def test_control_frames_have_no_reported_time() -> None:
    assert decode_frame('{"type": "pong"}').data.time == 0.0
    assert decode_frame('{"type": "error", "code": 400, "data": "bad market"}').data.time == 0.0
    assert decode_frame('{"type": "partial", "data": {"time": null}}').data.time == 0.0


@pytest.mark.parametrize(
    "raw",
    [
        "{oops",
        "[1, 2, 3]",
        '"text"',
        '{"data": {"time": "soon"}}',
        '{"data": {"time": 1.0, "bids": [[1.0]]}}',
        b"\xff\xfe",
    ],
)
def test_malformed_frames_raise(raw) -> None:
    with pytest.raises(FrameDecodeError):
        decode_frame(raw)


def test_latency_math_at_microsecond_resolution() -> None:
    recv = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)
    reported = reported_instant(recv.timestamp() - 2.5)

    assert reported == recv - timedelta(milliseconds=2500)
    assert latency_ms(recv, reported) == 2500
    assert latency_ms(recv, recv - timedelta(microseconds=1999)) == 1
    # A feed clock ahead of ours gives negative latency, truncated toward zero.
    assert latency_ms(recv, recv + timedelta(microseconds=1500)) == -1


def test_stale_classification_is_inclusive() -> None:
    assert not is_stale(4999, 5000)
    assert is_stale(5000, 5000)
    assert is_stale(12000, 5000)
