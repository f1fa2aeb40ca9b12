from __future__ import annotations

from pathlib import Path

import ws_latency.cli as cli_mod


def test_no_markets_prints_usage_and_exits_1(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)

    assert cli_mod.main(["", "  "]) == 1

    err = capsys.readouterr().err
    assert err.splitlines() == cli_mod.USAGE.splitlines()
    assert list(tmp_path.iterdir()) == []


def test_runs_pipeline_with_cli_overrides(tmp_path: Path, monkeypatch) -> None:
    seen = {}

    async def fake_run_pipeline(markets, settings):
        seen["markets"] = markets
        seen["settings"] = settings

    monkeypatch.setattr(cli_mod, "run_pipeline", fake_run_pipeline)
    monkeypatch.setattr(cli_mod, "setup_logging", lambda *a, **k: tmp_path / "diag.log")

    rc = cli_mod.main([" BTC-PERP ", "ETH-PERP", "--url", "wss://feed.test/ws", "--log-path", str(tmp_path / "f.log")])

    assert rc == 0
    assert seen["markets"] == ("BTC-PERP", "ETH-PERP")
    assert seen["settings"].ws_url == "wss://feed.test/ws"
    assert seen["settings"].frame_log_path == str(tmp_path / "f.log")


def test_crash_exits_nonzero(tmp_path: Path, monkeypatch) -> None:
    async def boom(markets, settings):
        raise OSError("cannot open log")

    monkeypatch.setattr(cli_mod, "run_pipeline", boom)
    monkeypatch.setattr(cli_mod, "setup_logging", lambda *a, **k: tmp_path / "diag.log")

    assert cli_mod.main(["BTC-PERP"]) == 1


def test_bad_config_exits_1_with_message(tmp_path: Path, monkeypatch, capsys) -> None:
    def fail_setup(*a, **k):
        raise AssertionError("logging must not be configured for a bad config")

    monkeypatch.setattr(cli_mod, "setup_logging", fail_setup)

    unknown = tmp_path / "unknown.yaml"
    unknown.write_text("reconnect: true\n", encoding="utf-8")
    not_mapping = tmp_path / "list.yaml"
    not_mapping.write_text("- a\n- b\n", encoding="utf-8")
    broken = tmp_path / "broken.yaml"
    broken.write_text("ws_url: [unclosed\n", encoding="utf-8")

    for cfg in (tmp_path / "missing.yaml", unknown, not_mapping, broken):
        assert cli_mod.main(["BTC-PERP", "--config", str(cfg)]) == 1
        assert "invalid configuration" in capsys.readouterr().err
