from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y")


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


ORDERBOOK_CHANNEL = "orderbook"
CLOSE_CODE = 1000
CLOSE_REASON = "client exit"

FEED_WS_URL = _env_str("FEED_WS_URL", "wss://ftx.com/ws/")
FRAME_LOG_PATH = _env_str("FRAME_LOG_PATH", "latency.log")

# Latency accounting
STALE_THRESHOLD_MS = _env_int("STALE_THRESHOLD_MS", 5000)
FLUSH_INTERVAL_S = _env_float("FLUSH_INTERVAL_S", 10.0)
FLUSH_ON_TIMER = _env_bool("FLUSH_ON_TIMER", True)
SAMPLE_QUEUE_MAX = _env_int("SAMPLE_QUEUE_MAX", 1024)

# WS keepalive/connect
HEARTBEAT_INTERVAL_S = _env_float("HEARTBEAT_INTERVAL_S", 15.0)
WS_OPEN_TIMEOUT_S = _env_float("WS_OPEN_TIMEOUT_S", 10.0)
WS_CLOSE_TIMEOUT_S = _env_float("WS_CLOSE_TIMEOUT_S", 5.0)
WS_MAX_QUEUE = _env_int("WS_MAX_QUEUE", 256)

LOG_LEVEL = _env_str("LOG_LEVEL", "INFO")
LOG_DIR = _env_str("LOG_DIR", "logs")


@dataclass(frozen=True)
class Settings:
    ws_url: str = FEED_WS_URL
    frame_log_path: str = FRAME_LOG_PATH
    stale_threshold_ms: int = STALE_THRESHOLD_MS
    flush_interval_s: float = FLUSH_INTERVAL_S
    flush_on_timer: bool = FLUSH_ON_TIMER
    sample_queue_max: int = SAMPLE_QUEUE_MAX
    heartbeat_interval_s: float = HEARTBEAT_INTERVAL_S
    ws_open_timeout_s: float = WS_OPEN_TIMEOUT_S
    ws_close_timeout_s: float = WS_CLOSE_TIMEOUT_S
    ws_max_queue: int = WS_MAX_QUEUE
    log_level: str = LOG_LEVEL
    log_dir: str = LOG_DIR


def load_config(path: str | Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_settings(path: str | Path | None = None, **overrides) -> Settings:
    """Build settings from env defaults, an optional YAML file, then overrides.

    YAML keys must match ``Settings`` field names. ``None`` overrides are
    ignored so CLI flags that were not given leave lower layers intact.
    """
    settings = Settings()
    known = {f.name for f in fields(Settings)}

    if path is not None:
        cfg_raw = load_config(path)
        if not isinstance(cfg_raw, dict):
            raise ValueError(f"Config {path} must be a mapping (got {type(cfg_raw).__name__}).")
        unknown = sorted(set(cfg_raw) - known)
        if unknown:
            raise ValueError(f"Unknown config keys in {path}: {', '.join(unknown)}")
        settings = replace(settings, **cfg_raw)

    given = {k: v for k, v in overrides.items() if v is not None}
    unknown = sorted(set(given) - known)
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(unknown)}")
    return replace(settings, **given)
