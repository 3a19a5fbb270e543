"""Tests for narration.commentary — commentary and digests."""

from datetime import datetime, timedelta, timezone

from auric_atx.core.models import ATXSnapshot, Subscores, TrendPoint
from auric_atx.narration.commentary import (
    build_commentary,
    build_digest,
    top_driver,
    watch_list,
)
from auric_atx.scoring.aggregator import score_trades

NOW = datetime(2024, 4, 1, tzinfo=timezone.utc)
_DIRECTIVE_WORDS = ("should", "must", "stop trading", "you need to")


def _snap(score: float, flags: list[str] | None = None, **subs) -> ATXSnapshot:
    values = dict(
        discipline=80.0,
        risk_integrity=80.0,
        execution_stability=80.0,
        behavioural_volatility=20.0,
        consistency=80.0,
    )
    values.update(subs)
    return ATXSnapshot(score=score, subscores=Subscores(**values), flags=flags or [])


def _point(n: int, snap: ATXSnapshot | None) -> TrendPoint:
    start = NOW - timedelta(days=10 - n)
    return TrendPoint(
        period=start.date().isoformat(),
        start=start,
        end=start + timedelta(days=1),
        trade_count=0 if snap is None else 4,
        atx=snap,
    )


class TestCommentary:
    def test_no_trades(self):
        c = build_commentary(_snap(50.0, ["INSUFFICIENT_DATA"]), 0)
        assert "No trades" in c.summary
        assert c.bullet_points == []

    def test_one_bullet_per_flag(self, day_trades, scoring_config, scenario_day):
        snap = score_trades(day_trades(scenario_day(1), protected=False), scoring_config)
        c = build_commentary(snap, 4)
        assert "64.0" in c.summary
        assert len(c.bullet_points) == 1
        assert "Risk integrity" in c.bullet_points[0]
        assert c.reflection_questions

    def test_insufficient_data_mentioned(self):
        c = build_commentary(_snap(70.0, ["INSUFFICIENT_DATA"]), 2)
        assert "limited data" in c.summary

    def test_clean_window_names_strongest_dimension(self):
        c = build_commentary(_snap(85.0, discipline=95.0), 10)
        assert any("Discipline" in b for b in c.bullet_points)

    def test_non_directive(self, day_trades, scoring_config, scenario_day):
        snap = score_trades(day_trades(scenario_day(1), protected=False), scoring_config)
        c = build_commentary(snap, 4)
        text = " ".join([c.summary, *c.bullet_points, *c.reflection_questions]).lower()
        assert not any(word in text for word in _DIRECTIVE_WORDS)
        assert all(q.endswith("?") for q in c.reflection_questions)

    def test_deterministic(self):
        snap = _snap(55.0, ["DISCIPLINE_LOW", "BEHAVIOURAL_VOLATILITY_HIGH"])
        assert build_commentary(snap, 9) == build_commentary(snap, 9)


class TestDigest:
    def test_no_scored_points(self):
        digest = build_digest([_point(1, None), _point(2, None)], NOW)
        assert digest.top_driver is None
        assert digest.watch_list == []
        assert digest.generated_at == NOW

    def test_single_point(self):
        digest = build_digest([_point(1, _snap(70.0, ["CONSISTENCY_LOW"]))], NOW)
        assert digest.top_driver is None
        assert digest.watch_list == ["CONSISTENCY_LOW"]

    def test_top_driver_uses_last_two_scored(self):
        points = [
            _point(1, _snap(80.0)),
            _point(2, _snap(75.0, consistency=60.0)),
            _point(3, None),
            _point(4, _snap(50.0, ["RISK_INTEGRITY_LOW"], risk_integrity=30.0)),
        ]
        digest = build_digest(points, NOW)
        assert digest.top_driver.subscore == "risk_integrity"
        assert digest.top_driver.delta == -50.0
        assert "down 25.0" in digest.summary
        assert digest.watch_list == ["RISK_INTEGRITY_LOW"]

    def test_watch_list_excludes_persisting_and_insufficient(self):
        previous = _snap(50.0, ["DISCIPLINE_LOW"])
        latest = _snap(40.0, ["INSUFFICIENT_DATA", "DISCIPLINE_LOW", "CONSISTENCY_LOW"])
        assert watch_list(previous, latest, 3) == ["CONSISTENCY_LOW"]

    def test_watch_list_bounded(self):
        latest = _snap(10.0, [
            "DISCIPLINE_LOW", "RISK_INTEGRITY_LOW", "BEHAVIOURAL_VOLATILITY_HIGH",
            "EXECUTION_UNSTABLE", "CONSISTENCY_LOW",
        ])
        assert len(watch_list(None, latest, 3)) == 3

    def test_no_movement_no_driver(self):
        assert top_driver(_snap(80.0), _snap(80.0)) is None
