"""Test the auric-atx command line."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from auric_atx.cli import main


@pytest.fixture
def trades_file(tmp_path, scenario_trades):
    path = tmp_path / "trades.json"
    path.write_text(json.dumps(
        {"trades": [t.model_dump(mode="json", by_alias=True) for t in scenario_trades]}
    ))
    return path


class TestScoreCommand:
    def test_scores_one_day(self, trades_file):
        result = CliRunner().invoke(
            main, ["score", str(trades_file), "--start", "2024-03-08", "--end", "2024-03-09"],
        )
        assert result.exit_code == 0, result.output
        body = json.loads(result.stdout)
        assert body["tradeCount"] == 4
        assert body["atx"]["score"] == 64.0
        assert body["atx"]["flags"] == ["RISK_INTEGRITY_LOW"]
        assert body["window"]["end"] - body["window"]["start"] == 86_400_000
        assert body["commentary"]["summary"]

    def test_source_filter(self, trades_file):
        result = CliRunner().invoke(
            main,
            ["score", str(trades_file), "--start", "2024-03-04", "--end", "2024-03-30",
             "--sources", "ctrader"],
        )
        assert result.exit_code == 0, result.output
        body = json.loads(result.stdout)
        assert body["tradeCount"] == 0
        assert "INSUFFICIENT_DATA" in body["atx"]["flags"]

    def test_reversed_window(self, trades_file):
        result = CliRunner().invoke(
            main, ["score", str(trades_file), "--start", "2024-03-09", "--end", "2024-03-08"],
        )
        assert result.exit_code == 2


class TestReplayCommand:
    def test_replay_detects_epoch(self, trades_file):
        result = CliRunner().invoke(
            main, ["replay", str(trades_file), "--until", "2024-03-29T00:30:00"],
        )
        assert result.exit_code == 0, result.output
        account = json.loads(result.stdout)["1"]
        assert account["phase"] == "none"
        assert account["openEpoch"] is None
        [epoch] = account["epochs"]
        assert epoch["triggerFlags"] == ["RISK_INTEGRITY_LOW"]
        assert epoch["provisional"] is False
        assert epoch["averageScore"] == 70.0
        assert account["momentum"]["streak"] == 6

    def test_replay_mid_epoch(self, trades_file):
        result = CliRunner().invoke(
            main, ["replay", str(trades_file), "--until", "2024-03-11T00:00:00"],
        )
        account = json.loads(result.stdout)["1"]
        assert account["phase"] == "confirmed"
        assert account["openEpoch"]["epochId"] == 1
        assert account["openEpoch"]["endedAt"] is None


class TestMockTradesCommand:
    def test_deterministic(self):
        args = ["mock-trades", "--account", "5", "--days", "10", "--seed", "3",
                "--end", "2024-03-29"]
        first = CliRunner().invoke(main, args)
        second = CliRunner().invoke(main, args)
        assert first.exit_code == 0, first.output
        assert first.stdout == second.stdout
        trades = json.loads(first.stdout)
        assert trades
        assert {t["source"] for t in trades} == {"mock"}
        assert {t["accountId"] for t in trades} == {5}
