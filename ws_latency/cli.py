from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import yaml

from ws_latency.logging_config import setup_logging
from ws_latency.pipeline import normalize_markets, run_pipeline
from ws_latency.settings import load_settings

USAGE = (
    "usage: ws-latency [--config FILE] [--url URL] [--log-path PATH] MARKET [MARKET ...]\n"
    "  e.g. ws-latency BTC-PERP ETH-PERP"
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ws-latency",
        description="Measure staleness of order-book messages on a websocket feed.",
        usage=USAGE.splitlines()[0][len("usage: "):],
    )
    parser.add_argument("markets", nargs="*", help="Market identifiers, e.g. BTC-PERP")
    parser.add_argument("--config", default=None, help="YAML file overriding env defaults")
    parser.add_argument("--url", default=None, help="Feed websocket URL")
    parser.add_argument("--log-path", default=None, help="Append-only frame log path")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    markets = normalize_markets(args.markets)
    if not markets:
        print(USAGE, file=sys.stderr)
        return 1

    try:
        settings = load_settings(args.config, ws_url=args.url, frame_log_path=args.log_path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        # Logging is not configured yet; report on the console only.
        print(f"ws-latency: invalid configuration: {exc}", file=sys.stderr)
        return 1

    log_path = setup_logging(settings.log_level, component="ws_latency", base_dir=settings.log_dir)
    log = logging.getLogger("ws_latency.cli")
    log.info("Diagnostics logging to %s; press Enter to exit", log_path)

    # Surface crashes in the diagnostic log as well as on the console.
    try:
        asyncio.run(run_pipeline(markets, settings))
    except KeyboardInterrupt:
        log.warning("Interrupted")
        return 130
    except Exception:
        log.exception("Latency monitor crashed")
        return 1
    return 0
