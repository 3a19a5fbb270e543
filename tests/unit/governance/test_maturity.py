"""Tests for governance.maturity — observation maturity bands."""

from datetime import timedelta

import pytest

from auric_atx.core.config import MaturityConfig
from auric_atx.core.enums import MaturityBand
from auric_atx.governance.maturity import classify, is_established, summarize


@pytest.fixture
def maturity_config():
    return MaturityConfig()


class TestClassify:
    @pytest.mark.parametrize("trades, days, band", [
        (0, 0, MaturityBand.INITIAL),
        (19, 30, MaturityBand.INITIAL),
        (20, 5, MaturityBand.DEVELOPING),
        (500, 19, MaturityBand.DEVELOPING),
        (59, 40, MaturityBand.DEVELOPING),
        (60, 20, MaturityBand.ESTABLISHED),
    ])
    def test_bands(self, maturity_config, trades, days, band):
        assert classify(trades, days, maturity_config).band == band

    def test_lower_dimension_wins(self, maturity_config):
        # plenty of trades crammed into four days
        assert classify(1000, 4, maturity_config).band == MaturityBand.INITIAL

    def test_label_and_memo(self, maturity_config):
        m = classify(60, 20, maturity_config)
        assert m.label == "Established"
        assert m.memo
        assert is_established(m)

    def test_custom_thresholds(self):
        cfg = MaturityConfig(established_min_trades=10, established_min_days=2)
        assert classify(10, 2, cfg).band == MaturityBand.ESTABLISHED


class TestSummarize:
    def test_empty(self):
        summary = summarize([])
        assert summary.total_trades == 0
        assert summary.first_trade_at is None

    def test_counts_distinct_days(self, day_trades, scenario_day):
        trades = day_trades(scenario_day(1)) + day_trades(scenario_day(3))
        summary = summarize(trades)
        assert summary.total_trades == 8
        assert summary.active_days == 2
        assert summary.first_trade_at == scenario_day(1) + timedelta(hours=9)
        assert summary.last_trade_at == scenario_day(3) + timedelta(hours=15)
