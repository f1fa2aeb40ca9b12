"""Order-book feed latency monitor."""

from ws_latency.settings import Settings, load_settings
from ws_latency.pipeline import UsageError, run_pipeline

__all__ = ["Settings", "UsageError", "load_settings", "run_pipeline"]
