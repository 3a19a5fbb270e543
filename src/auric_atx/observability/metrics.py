"""Prometheus metrics for the ATX engine.

Exposed by the HTTP app at ``/metrics``.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram, Info

SYSTEM_INFO = Info("atx_engine", "ATX engine information")

# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

ATX_COMPUTATIONS = Counter(
    "atx_computations_total",
    "ATX snapshots computed",
    ["kind"],
)

ATX_SCORE = Histogram(
    "atx_score",
    "Distribution of computed ATX scores",
    buckets=(10, 20, 30, 40, 50, 60, 70, 80, 90, 100),
)

ATX_COMPUTE_LATENCY = Histogram(
    "atx_compute_latency_seconds",
    "Time spent building an ATX response",
    ["kind"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

# ---------------------------------------------------------------------------
# Ingestion & epochs
# ---------------------------------------------------------------------------

TRADES_INGESTED = Counter(
    "atx_trades_ingested_total",
    "Trades accepted into the store",
    ["outcome"],  # "ingested" or "duplicate"
)

EPOCH_TRANSITIONS = Counter(
    "atx_epoch_transitions_total",
    "Epoch state machine events",
    ["event"],
)

STATE_CONFLICTS = Counter(
    "atx_epoch_state_conflicts_total",
    "Optimistic version conflicts while saving epoch state",
)

BASELINE_LOCKS = Counter(
    "atx_baseline_locks_total",
    "Baselines locked",
    ["trigger"],  # "auto" or "manual"
)


def record_computation(kind: str, score: float | None = None) -> None:
    """Record an ATX computation and, when present, its score."""
    ATX_COMPUTATIONS.labels(kind=kind).inc()
    if score is not None:
        ATX_SCORE.observe(score)


def record_compute_latency(kind: str, seconds: float) -> None:
    ATX_COMPUTE_LATENCY.labels(kind=kind).observe(seconds)


def record_ingestion(ingested: int, duplicates: int) -> None:
    """Record a trade ingestion batch."""
    if ingested:
        TRADES_INGESTED.labels(outcome="ingested").inc(ingested)
    if duplicates:
        TRADES_INGESTED.labels(outcome="duplicate").inc(duplicates)


def record_epoch_event(event: str) -> None:
    EPOCH_TRANSITIONS.labels(event=event).inc()


def record_state_conflict() -> None:
    STATE_CONFLICTS.inc()


def record_baseline_lock(trigger: str) -> None:
    BASELINE_LOCKS.labels(trigger=trigger).inc()


def set_system_info(version: str, backend: str) -> None:
    SYSTEM_INFO.info({"version": version, "storage_backend": backend})
