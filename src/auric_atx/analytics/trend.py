"""Trend builder — ATX per time bucket, overall and per source."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

from auric_atx.core.config import ScoringConfig, TrendConfig
from auric_atx.core.enums import Interval
from auric_atx.core.errors import InvalidWindowError
from auric_atx.core.models import SeriesPoint, Trade, TrendPoint, TrendReport, Window
from auric_atx.core.sources import source_matches
from auric_atx.core.windows import trailing_buckets
from auric_atx.narration.commentary import build_digest
from auric_atx.scoring.aggregator import score_trades


def _bucket_points(
    trades: Sequence[Trade], buckets: Sequence[Window], config: ScoringConfig,
) -> list[TrendPoint]:
    points: list[TrendPoint] = []
    for window in buckets:
        selected = [t for t in trades if window.contains(t.timestamp)]
        points.append(TrendPoint(
            period=window.start.date().isoformat(),
            start=window.start,
            end=window.end,
            trade_count=len(selected),
            atx=score_trades(selected, config) if selected else None,
        ))
    return points


def _series(points: Sequence[TrendPoint]) -> list[SeriesPoint]:
    return [
        SeriesPoint(period=p.period, score=p.atx.score if p.atx is not None else None)
        for p in points
    ]


class TrendBuilder:
    """Bucket trades into trailing intervals and score each bucket."""

    def __init__(self, scoring: ScoringConfig, trend: TrendConfig) -> None:
        self._scoring = scoring
        self._trend = trend

    def resolve_limit(self, limit: int | None) -> int:
        if limit is None:
            return self._trend.default_limit
        if limit < 1 or limit > self._trend.max_limit:
            raise InvalidWindowError(
                f"limit must be between 1 and {self._trend.max_limit}, got {limit}"
            )
        return limit

    def build(
        self,
        account_id: int,
        trades: Iterable[Trade],
        interval: Interval,
        now: datetime,
        *,
        limit: int | None = None,
        sources: Sequence[str] | None = None,
    ) -> TrendReport:
        buckets = trailing_buckets(interval, self.resolve_limit(limit), now)
        span = Window(start=buckets[0].start, end=buckets[-1].end)
        selected = [
            t for t in trades
            if account_id == t.account_id
            and span.contains(t.timestamp)
            and source_matches(t.source, sources)
        ]

        points = _bucket_points(selected, buckets, self._scoring)
        by_source: dict[str, list[TrendPoint]] = {}
        for tag in sorted({t.source for t in selected}):
            by_source[tag] = _bucket_points(
                [t for t in selected if t.source == tag], buckets, self._scoring,
            )

        return TrendReport(
            account_id=account_id,
            interval=interval,
            points=points,
            by_source=by_source,
            series_by_source={tag: _series(pts) for tag, pts in by_source.items()},
            digest=build_digest(points, now, self._trend.watch_list_size),
        )
