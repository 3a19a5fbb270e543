"""CLI entry point for the ATX engine."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import click

_DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]


def _settings(config: str | None, overrides: dict[str, Any] | None = None):
    from .core.config import load_settings

    return load_settings(config_path=config, overrides=overrides)


def _load_trades(path: str) -> list:
    import pydantic

    from .core.models import Trade

    raw = json.loads(Path(path).read_text())
    if isinstance(raw, dict):
        raw = raw.get("trades", [])
    return pydantic.TypeAdapter(list[Trade]).validate_python(raw)


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2))


@click.group()
def main() -> None:
    """Auric ATX behavioural reliability engine."""


@main.command()
@click.option("--config", default=None, help="Config file path")
@click.option("--host", default=None, help="Bind host override")
@click.option("--port", default=None, type=int, help="Bind port override")
def serve(config: str | None, host: str | None, port: int | None) -> None:
    """Serve the HTTP API."""
    import uvicorn

    from .api.app import create_app
    from .observability.logger import setup_logging

    settings = _settings(config)
    setup_logging(settings.observability.log_level, settings.observability.log_format)
    app = create_app(settings=settings)
    uvicorn.run(
        app,
        host=host or settings.api.host,
        port=port or settings.api.port,
        log_config=None,
    )


@main.command()
@click.argument("trades_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--start", required=True, type=click.DateTime(_DATE_FORMATS), help="Window start (UTC)")
@click.option("--end", required=True, type=click.DateTime(_DATE_FORMATS), help="Window end (UTC, exclusive)")
@click.option("--sources", default=None, help="Comma-separated source filter")
@click.option("--config", default=None, help="Config file path")
def score(
    trades_file: str,
    start: datetime,
    end: datetime,
    sources: str | None,
    config: str | None,
) -> None:
    """Compute the ATX snapshot for a window of trades."""
    from .core.models import Window
    from .core.sources import parse_sources
    from .narration.commentary import build_commentary
    from .scoring.aggregator import compute_atx, select_trades

    settings = _settings(config)
    trades = _load_trades(trades_file)
    try:
        window = Window(start=start, end=end)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--start/--end") from exc
    filters = parse_sources(sources)
    snapshot = compute_atx(trades, window, settings.scoring, filters)
    count = len(select_trades(trades, window, filters))
    _echo_json({
        "window": window.model_dump(mode="json"),
        "tradeCount": count,
        "atx": snapshot.model_dump(mode="json", by_alias=True),
        "commentary": build_commentary(snapshot, count).model_dump(mode="json", by_alias=True),
    })


@main.command()
@click.argument("trades_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--until", required=True, type=click.DateTime(_DATE_FORMATS), help="Replay clock (UTC)")
@click.option("--config", default=None, help="Config file path")
def replay(trades_file: str, until: datetime, config: str | None) -> None:
    """Replay a trade history through the epoch detector."""
    import asyncio

    from .core.clock import SimClock
    from .core.models import ensure_utc
    from .service import AtxService
    from .storage.memory import InMemoryEpochStateStore, InMemoryTradeStore

    settings = _settings(config)
    trades = _load_trades(trades_file)

    async def _run() -> dict[str, Any]:
        service = AtxService(
            settings, InMemoryTradeStore(), InMemoryEpochStateStore(),
            SimClock(ensure_utc(until)),
        )
        batch = settings.storage.max_trades_per_request
        accounts = sorted({t.account_id for t in trades})
        out: dict[str, Any] = {}
        for account_id in accounts:
            mine = [t for t in trades if t.account_id == account_id]
            for i in range(0, len(mine), batch):
                await service.ingest_trades(account_id, mine[i:i + batch])
            state = await service.load_state(account_id)
            out[str(account_id)] = {
                "phase": state.phase.value,
                "epochs": [e.model_dump(mode="json", by_alias=True) for e in state.epoch_log()],
                "openEpoch": (
                    state.open_epoch.model_dump(mode="json", by_alias=True)
                    if state.open_epoch is not None else None
                ),
                "momentum": state.momentum.model_dump(mode="json", by_alias=True),
            }
        return out

    _echo_json(asyncio.run(_run()))


@main.command("mock-trades")
@click.option("--account", "account_id", required=True, type=int, help="Account id")
@click.option("--days", default=30, type=int, help="Number of days to generate")
@click.option("--seed", default=0, type=int, help="Random seed")
@click.option("--end", default=None, type=click.DateTime(_DATE_FORMATS), help="End of range (UTC, default now)")
def mock_trades(account_id: int, days: int, seed: int, end: datetime | None) -> None:
    """Print deterministic mock trades as JSON."""
    from .core.clock import WallClock
    from .core.models import ensure_utc
    from .data.mock_feed import generate_mock_trades

    until = ensure_utc(end) if end is not None else WallClock().now()
    trades = generate_mock_trades(account_id, days=days, end=until, seed=seed)
    _echo_json([t.model_dump(mode="json", by_alias=True) for t in trades])


if __name__ == "__main__":
    main()
