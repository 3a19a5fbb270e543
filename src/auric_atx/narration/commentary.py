"""Narrative layer — plain-language commentary and digests.

Wording is descriptive and non-directive: it names what the numbers show
and asks reflection questions, but never tells the trader what to do.
Output is deterministic for identical input.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from auric_atx.core.enums import Flag
from auric_atx.core.models import (
    SUBSCORE_NAMES,
    ATXSnapshot,
    Commentary,
    Digest,
    TopDriver,
    TrendPoint,
)
from auric_atx.scoring.aggregator import sort_flags

_SUBSCORE_LABELS: dict[str, str] = {
    "discipline": "Discipline",
    "risk_integrity": "Risk integrity",
    "execution_stability": "Execution stability",
    "behavioural_volatility": "Behavioural volatility",
    "consistency": "Consistency",
}

_FLAG_BULLETS: dict[str, str] = {
    Flag.DISCIPLINE_LOW.value: (
        "Discipline is low: stops were often missing or positions were oversized "
        "relative to your usual size."
    ),
    Flag.RISK_INTEGRITY_LOW.value: (
        "Risk integrity is low: protective orders were missing, misplaced or "
        "position value varied widely."
    ),
    Flag.BEHAVIOURAL_VOLATILITY_HIGH.value: (
        "Behavioural volatility is elevated: trade frequency and size swung more "
        "than usual."
    ),
    Flag.EXECUTION_UNSTABLE.value: (
        "Execution was uneven: entry timing or order types changed frequently."
    ),
    Flag.CONSISTENCY_LOW.value: (
        "Consistency is low: sizing and stop placement differed from trade to trade."
    ),
    Flag.INSUFFICIENT_DATA.value: (
        "There are too few trades in this window for the scores to carry much weight."
    ),
}

_FLAG_QUESTIONS: dict[str, str] = {
    Flag.DISCIPLINE_LOW.value: "What was different about the trades placed without a stop?",
    Flag.RISK_INTEGRITY_LOW.value: "How did you decide where protective orders belonged?",
    Flag.BEHAVIOURAL_VOLATILITY_HIGH.value: (
        "What was happening around the moments your activity picked up?"
    ),
    Flag.EXECUTION_UNSTABLE.value: "What led you to switch how you entered positions?",
    Flag.CONSISTENCY_LOW.value: "Which of these trades felt most like your usual process?",
}

_CALM_QUESTION = "What helped keep your process steady during this period?"


def _band(score: float) -> str:
    if score >= 75:
        return "steady"
    if score >= 50:
        return "mixed"
    return "unsettled"


def build_commentary(snapshot: ATXSnapshot, trade_count: int) -> Commentary:
    """Describe one scored window."""
    if trade_count == 0:
        return Commentary(
            summary="No trades were recorded in this window, so there is nothing to score yet.",
        )

    flags = sort_flags(snapshot.flags)
    bullets = [_FLAG_BULLETS[f] for f in flags if f in _FLAG_BULLETS]
    behavioural = [f for f in flags if f != Flag.INSUFFICIENT_DATA.value]

    if Flag.INSUFFICIENT_DATA.value in flags:
        summary = (
            f"ATX {snapshot.score:.1f} across {trade_count} "
            f"trade{'s' if trade_count != 1 else ''}. "
            "This is an early read on limited data."
        )
    else:
        summary = (
            f"ATX {snapshot.score:.1f} across {trade_count} trades; "
            f"behaviour in this window looks {_band(snapshot.score)}."
        )

    if not behavioural:
        strongest = max(
            (n for n in SUBSCORE_NAMES if n != "behavioural_volatility"),
            key=lambda n: getattr(snapshot.subscores, n),
        )
        bullets.append(
            f"{_SUBSCORE_LABELS[strongest]} was the strongest dimension at "
            f"{getattr(snapshot.subscores, strongest):.1f}."
        )
        questions = [_CALM_QUESTION]
    else:
        questions = [_FLAG_QUESTIONS[f] for f in behavioural if f in _FLAG_QUESTIONS]

    return Commentary(summary=summary, bullet_points=bullets, reflection_questions=questions)


# ---------------------------------------------------------------------------
# Digest
# ---------------------------------------------------------------------------

def _scored(points: Sequence[TrendPoint]) -> list[TrendPoint]:
    return [p for p in points if p.atx is not None]


def top_driver(previous: ATXSnapshot, latest: ATXSnapshot) -> TopDriver | None:
    """Subscore with the largest absolute move between two snapshots."""
    before = previous.subscores.as_dict()
    after = latest.subscores.as_dict()
    name = max(SUBSCORE_NAMES, key=lambda n: abs(after[n] - before[n]))
    delta = round(after[name] - before[name], 1)
    if delta == 0:
        return None
    return TopDriver(subscore=name, previous=before[name], latest=after[name], delta=delta)


def watch_list(
    previous: ATXSnapshot | None, latest: ATXSnapshot, size: int,
) -> list[str]:
    """Flags that emerged in the latest bucket."""
    seen = set(previous.flags) if previous is not None else set()
    emerging = [
        f for f in sort_flags(latest.flags)
        if f not in seen and f != Flag.INSUFFICIENT_DATA.value
    ]
    return emerging[:size]


def build_digest(
    points: Sequence[TrendPoint],
    now: datetime,
    watch_list_size: int = 3,
) -> Digest:
    """Summarise the most recent movement across a trend series."""
    scored = _scored(points)
    if not scored:
        return Digest(
            summary="No scored periods in this range yet.",
            generated_at=now,
        )

    latest = scored[-1]
    assert latest.atx is not None
    if len(scored) == 1:
        return Digest(
            summary=f"ATX {latest.atx.score:.1f} for {latest.period}; no earlier period to compare.",
            watch_list=watch_list(None, latest.atx, watch_list_size),
            generated_at=now,
        )

    previous = scored[-2]
    assert previous.atx is not None
    change = round(latest.atx.score - previous.atx.score, 1)
    if change > 0:
        movement = f"up {change:.1f}"
    elif change < 0:
        movement = f"down {abs(change):.1f}"
    else:
        movement = "unchanged"
    driver = top_driver(previous.atx, latest.atx)
    summary = (
        f"ATX {latest.atx.score:.1f} for {latest.period}, {movement} "
        f"from {previous.period}."
    )
    if driver is not None:
        direction = "rose" if driver.delta > 0 else "fell"
        summary += (
            f" {_SUBSCORE_LABELS[driver.subscore]} moved most: it {direction} "
            f"{abs(driver.delta):.1f} points."
        )
    return Digest(
        summary=summary,
        top_driver=driver,
        watch_list=watch_list(previous.atx, latest.atx, watch_list_size),
        generated_at=now,
    )
