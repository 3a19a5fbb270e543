"""ATX HTTP API — FastAPI application.

Routes:
  GET  /atx/accounts/{id}                 account snapshot for a timeframe
  GET  /atx/accounts/{id}/trend           bucketed trend, digest and epoch log
  GET  /atx/accounts/{id}/day             single-day snapshot
  POST /atx/accounts/{id}/trades          ingest trades (then refresh epochs)
  POST /atx/accounts/{id}/refresh         observe pending complete days
  POST /atx/accounts/{id}/baseline/lock   lock the baseline onto an epoch
  GET  /atx/accounts/{id}/momentum        momentum streak
  POST /atx/accounts/{id}/momentum/reset  zero the momentum streak
  GET  /dev/accounts                      known account ids (dev only)
  POST /dev/accounts/{id}/mock-trades     seed deterministic mock trades (dev only)
  GET  /health
  GET  /metrics                           Prometheus exposition

Bodies are camelCase JSON; timestamps on epochs and trend points are
epoch milliseconds.  Malformed parameters give 400 ``{"error": ...}``.

Usage::

    from auric_atx.api.app import create_app

    app = create_app(service=service)
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import pydantic
import structlog
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from auric_atx.core.config import Settings
from auric_atx.core.enums import Interval, Timeframe
from auric_atx.core.errors import (
    AtxError,
    BaselineLockError,
    InvalidWindowError,
    ValidationError,
)
from auric_atx.core.models import Trade
from auric_atx.core.sources import parse_sources
from auric_atx.core.windows import parse_day
from auric_atx.observability.logger import set_trace_id
from auric_atx.service import AtxService, build_service

logger = logging.getLogger(__name__)

_TRADES = pydantic.TypeAdapter(list[Trade])


def _dump(model: pydantic.BaseModel) -> JSONResponse:
    return JSONResponse(model.model_dump(mode="json", by_alias=True))


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status)


def _parse_enum(enum_cls: Any, value: str | None, default: Any, name: str) -> Any:
    if value is None or value == "":
        return default
    try:
        return enum_cls(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidWindowError(f"invalid {name} {value!r}, expected one of: {allowed}") from exc


def _validation_message(exc: pydantic.ValidationError | RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "invalid request"


def create_app(
    service: AtxService | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create the ATX API application.

    When ``service`` is omitted it is built from ``settings`` on startup,
    so SQL engines are bound to the server's event loop.
    """
    settings = settings or (service.settings if service is not None else Settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = app.state.service is None
        if owned:
            app.state.service = await build_service(settings)
        try:
            yield
        finally:
            if owned:
                await app.state.service.close()
                app.state.service = None

    app = FastAPI(title="Auric ATX", lifespan=lifespan)
    app.state.service = service
    app.state.settings = settings

    def _service() -> AtxService:
        svc = app.state.service
        if svc is None:
            raise RuntimeError("ATX service not initialised")
        return svc

    app.mount("/metrics", make_asgi_app())

    # ------------------------------------------------------------------
    # Middleware & error mapping
    # ------------------------------------------------------------------

    @app.middleware("http")
    async def trace_request(request: Request, call_next: Any) -> Any:
        trace_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        set_trace_id(trace_id)
        structlog.contextvars.bind_contextvars(trace_id=trace_id, path=request.url.path)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()
        response.headers["X-Request-ID"] = trace_id
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError,
    ) -> JSONResponse:
        return _error(400, _validation_message(exc))

    @app.exception_handler(pydantic.ValidationError)
    async def model_validation_handler(
        request: Request, exc: pydantic.ValidationError,
    ) -> JSONResponse:
        return _error(400, _validation_message(exc))

    @app.exception_handler(ValidationError)
    async def atx_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(BaselineLockError)
    async def baseline_handler(request: Request, exc: BaselineLockError) -> JSONResponse:
        return _error(409, str(exc))

    @app.exception_handler(AtxError)
    async def atx_error_handler(request: Request, exc: AtxError) -> JSONResponse:
        logger.error("ATX error on %s: %s", request.url.path, exc)
        return _error(500, "Internal server error")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s", request.url.path)
        return _error(500, "Internal server error")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @app.get("/atx/accounts/{account_id}")
    async def account_atx(
        account_id: int,
        timeframe: str | None = None,
        sources: str | None = None,
        source: str | None = None,
    ) -> JSONResponse:
        tf = _parse_enum(Timeframe, timeframe, Timeframe.EPOCH, "timeframe")
        report = await _service().get_account_atx(
            account_id, tf, parse_sources(sources, source),
        )
        return _dump(report)

    @app.get("/atx/accounts/{account_id}/trend")
    async def account_trend(
        account_id: int,
        interval: str | None = None,
        limit: int | None = None,
        sources: str | None = None,
        source: str | None = None,
    ) -> JSONResponse:
        iv = _parse_enum(Interval, interval, Interval.DAILY, "interval")
        report = await _service().get_trend(
            account_id, iv, limit, parse_sources(sources, source),
        )
        return _dump(report)

    @app.get("/atx/accounts/{account_id}/day")
    async def account_day(
        account_id: int,
        date: str = Query(...),
        sources: str | None = None,
        source: str | None = None,
    ) -> JSONResponse:
        report = await _service().get_day(
            account_id, parse_day(date), parse_sources(sources, source),
        )
        return _dump(report)

    @app.get("/atx/accounts/{account_id}/momentum")
    async def account_momentum(account_id: int) -> JSONResponse:
        return _dump(await _service().get_momentum(account_id))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @app.post("/atx/accounts/{account_id}/trades")
    async def ingest_trades(account_id: int, request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except ValueError as exc:
            raise ValidationError("request body must be JSON") from exc
        raw = body.get("trades") if isinstance(body, dict) else body
        if not isinstance(raw, list):
            raise ValidationError("expected a list of trades or {\"trades\": [...]}")
        for item in raw:
            if isinstance(item, dict) and "accountId" not in item and "account_id" not in item:
                item["accountId"] = account_id
        trades = _TRADES.validate_python(raw)
        result = await _service().ingest_trades(account_id, trades)
        return _dump(result)

    @app.post("/atx/accounts/{account_id}/refresh")
    async def refresh(account_id: int) -> JSONResponse:
        events = await _service().refresh_epochs(account_id)
        return JSONResponse({
            "accountId": account_id,
            "events": [e.value for e in events],
        })

    @app.post("/atx/accounts/{account_id}/baseline/lock")
    async def baseline_lock(
        account_id: int,
        epoch_id: int | None = Query(default=None, alias="epochId"),
    ) -> JSONResponse:
        baseline = await _service().lock_baseline(account_id, epoch_id)
        return _dump(baseline)

    @app.post("/atx/accounts/{account_id}/momentum/reset")
    async def momentum_reset(account_id: int) -> JSONResponse:
        return _dump(await _service().reset_momentum(account_id))

    # ------------------------------------------------------------------
    # Dev routes
    # ------------------------------------------------------------------

    if settings.api.enable_dev_routes:
        from auric_atx.data.mock_feed import generate_mock_trades

        @app.get("/dev/accounts")
        async def dev_accounts() -> dict[str, list[int]]:
            return {"accounts": await _service().list_accounts()}

        @app.post("/dev/accounts/{account_id}/mock-trades")
        async def dev_mock_trades(
            account_id: int,
            days: int = Query(default=30, ge=1, le=366),
            seed: int = 0,
        ) -> JSONResponse:
            svc = _service()
            trades = generate_mock_trades(account_id, days=days, end=svc.clock.now(), seed=seed)
            return _dump(await svc.ingest_trades(account_id, trades))

    # ------------------------------------------------------------------
    # Health endpoint
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
