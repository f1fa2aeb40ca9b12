from __future__ import annotations

import importlib
from pathlib import Path

import pytest

import ws_latency.settings as settings_mod


def test_invalid_env_does_not_crash(monkeypatch):
    monkeypatch.setenv("STALE_THRESHOLD_MS", "not-a-number")
    monkeypatch.setenv("HEARTBEAT_INTERVAL_S", "nope")
    monkeypatch.setenv("SAMPLE_QUEUE_MAX", "1k")
    monkeypatch.setenv("FEED_WS_URL", "   ")

    mod = importlib.reload(settings_mod)
    try:
        assert mod.STALE_THRESHOLD_MS == 5000
        assert mod.HEARTBEAT_INTERVAL_S == 15.0
        assert mod.SAMPLE_QUEUE_MAX == 1024
        assert mod.FEED_WS_URL == "wss://ftx.com/ws/"
    finally:
        monkeypatch.undo()
        importlib.reload(settings_mod)


def test_env_overrides_defaults(monkeypatch):
    monkeypatch.setenv("FLUSH_INTERVAL_S", "2.5")
    monkeypatch.setenv("FLUSH_ON_TIMER", "no")
    monkeypatch.setenv("FRAME_LOG_PATH", "/var/log/feed.log")

    mod = importlib.reload(settings_mod)
    try:
        s = mod.Settings()
        assert s.flush_interval_s == 2.5
        assert s.flush_on_timer is False
        assert s.frame_log_path == "/var/log/feed.log"
    finally:
        monkeypatch.undo()
        importlib.reload(settings_mod)


def test_yaml_overlay_then_overrides(tmp_path: Path):
    cfg = tmp_path / "monitor.yaml"
    cfg.write_text("ws_url: wss://feed.test/ws\nstale_threshold_ms: 2500\nflush_on_timer: false\n", encoding="utf-8")

    s = settings_mod.load_settings(cfg, frame_log_path="out.log", ws_url=None)

    assert s.ws_url == "wss://feed.test/ws"
    assert s.stale_threshold_ms == 2500
    assert s.flush_on_timer is False
    assert s.frame_log_path == "out.log"


def test_yaml_unknown_key_rejected(tmp_path: Path):
    cfg = tmp_path / "monitor.yaml"
    cfg.write_text("reconnect: true\n", encoding="utf-8")
    with pytest.raises(ValueError, match="reconnect"):
        settings_mod.load_settings(cfg)


def test_empty_yaml_is_defaults(tmp_path: Path):
    cfg = tmp_path / "empty.yaml"
    cfg.write_text("", encoding="utf-8")
    assert settings_mod.load_settings(cfg) == settings_mod.Settings()
