"""Quake Risk Oracle API - FastAPI service.

Exposes stored events, alerts, exchange-rate correlation and the
metered financial impact oracle. Oracle endpoints require an X-API-Key
header; every authorized call spends one request of the key's budget.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import requests
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from quakerisk.core.alerts import Alert
from quakerisk.core.correlation import CurrencyPair
from quakerisk.core.errors import (
    AccessError,
    ExpiredError,
    InvalidKeyError,
    NotFoundError,
    QuotaExhaustedError,
)
from quakerisk.core.event import Event, EventFilters
from quakerisk.core.formatter import format_time_ago
from quakerisk.core.quota import Subscription
from quakerisk.core.risk import MarketRiskReport, RiskAssessment
from quakerisk.main import get_orchestrator
from quakerisk.orchestrator import Orchestrator
from quakerisk.risk_engine import MARKET_TIMEFRAMES


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the periodic ingestion loop alongside the API when enabled."""
    scheduler = None
    if os.environ.get("INGESTION_ENABLED", "false").lower() == "true":
        scheduler = get_orchestrator().scheduler()
        scheduler.start()
    yield
    if scheduler is not None:
        scheduler.stop(timeout=5)


app = FastAPI(
    title="Quake Risk Oracle",
    description="Seismic events, alerts and metered financial impact assessments",
    version="1.0.0",
    lifespan=lifespan,
)


ACCESS_ERROR_STATUS = {
    InvalidKeyError: (401, "INVALID_API_KEY"),
    ExpiredError: (403, "SUBSCRIPTION_EXPIRED"),
    QuotaExhaustedError: (429, "QUOTA_EXHAUSTED"),
}


@app.exception_handler(AccessError)
async def access_error_handler(request: Request, exc: AccessError) -> JSONResponse:
    status_code, code = ACCESS_ERROR_STATUS.get(type(exc), (401, "ACCESS_DENIED"))
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": str(exc), "code": code},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"success": False, "error": str(exc), "code": "NOT_FOUND"},
    )


# ===== Request Models =====

class ApiKeyCreate(BaseModel):
    organization_name: str = Field(min_length=3)
    contact_email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    wallet_address: str = Field(min_length=1)
    duration_days: int = Field(ge=1, le=365)
    request_limit: int = Field(ge=1, le=100000)


class ApiKeyRenew(BaseModel):
    extra_days: int = Field(default=0, ge=0, le=365)
    extra_requests: int = Field(default=0, ge=0, le=100000)


class BulkImpactRequest(BaseModel):
    start_time: datetime
    end_time: datetime
    min_magnitude: float = 0.0


class MarketRiskRequest(BaseModel):
    markets: list[str] = Field(min_length=1)
    timeframe: str = "24h"


# ===== Serialization =====

def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _as_utc(value: datetime) -> datetime:
    """Treat naive request times as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _event_to_dict(event: Event, now: datetime) -> dict[str, Any]:
    return {
        "id": event.id,
        "place": event.place,
        "magnitude": event.magnitude,
        "depth": event.depth_km,
        "latitude": event.latitude,
        "longitude": event.longitude,
        "time": _iso(event.time),
        "time_ago": format_time_ago(event.time, now),
        "source": event.source,
        "verified": event.verified,
        "tsunami": event.tsunami,
        "url": event.url or None,
        "ledger_tx_hash": event.ledger_tx_hash,
    }


def _alert_to_dict(alert: Alert) -> dict[str, Any]:
    return {
        "id": alert.id,
        "message": alert.message,
        "severity": alert.severity.value,
        "magnitude": alert.magnitude,
        "location": alert.location,
        "event_id": alert.event_id,
        "timestamp": _iso(alert.timestamp),
        "active": alert.active,
    }


def _assessment_to_dict(assessment: RiskAssessment) -> dict[str, Any]:
    return {
        "event_id": assessment.event_id,
        "timestamp": _iso(assessment.timestamp),
        "market_impact_score": assessment.market_impact_score,
        "volatility_index": assessment.volatility_index,
        "risk_level": assessment.risk_level.value,
        "affected_markets": list(assessment.affected_markets),
        "affected_currencies": list(assessment.affected_currencies),
        "market_specific_scores": dict(assessment.market_specific_scores),
        "summary": assessment.summary,
        "recommendations": list(assessment.recommendations),
    }


def _market_report_to_dict(report: MarketRiskReport) -> dict[str, Any]:
    return {
        "market_risks": [
            {
                "market": r.market,
                "risk_level": r.risk_level.value,
                "risk_score": r.risk_score,
                "affecting_events": r.affecting_events,
            }
            for r in report.market_risks
        ],
        "overall_risk": {
            "level": report.overall_level.value,
            "score": report.overall_score,
        },
        "event_ids": list(report.event_ids),
    }


def _subscription_to_dict(subscription: Subscription) -> dict[str, Any]:
    return {
        "api_key": subscription.api_key,
        "subscription_id": subscription.id,
        "organization": subscription.organization_name,
        "start_time": _iso(subscription.start_time),
        "expires_at": _iso(subscription.end_time),
        "remaining_requests": subscription.remaining_requests,
        "active": subscription.active,
    }


# ===== Dependencies =====

def services() -> Orchestrator:
    """Process-wide orchestrator (overridden in tests)."""
    return get_orchestrator()


def _require_key(x_api_key: str | None) -> str:
    if not x_api_key:
        raise HTTPException(
            status_code=401,
            detail={"error": "API key is required", "code": "MISSING_API_KEY"},
        )
    return x_api_key


# ===== Public Endpoints =====

@app.get("/health")
async def health_check():
    """Health check endpoint for Cloud Run."""
    return {"status": "healthy"}


@app.get("/earthquakes")
def list_earthquakes(
    time_range: str = Query(default="24h"),
    min_magnitude: float | None = Query(default=None),
    region: str = Query(default="global"),
    oracle: Orchestrator = Depends(services),
):
    """Stored events matching the filters, newest first."""
    now = oracle.clock()
    filters = EventFilters(time_range=time_range, min_magnitude=min_magnitude, region=region)

    try:
        events = oracle.store.query_events(filters, now)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "earthquakes": [_event_to_dict(e, now) for e in events],
        "count": len(events),
    }


@app.get("/earthquakes/stats")
def earthquake_stats(
    time_range: str = Query(default="24h"),
    oracle: Orchestrator = Depends(services),
):
    """Magnitude statistics over a time range."""
    stats = oracle.store.stats(time_range)
    return {
        "time_range": time_range,
        "total": stats.total,
        "average_magnitude": round(stats.average_magnitude, 2),
        "major_count": stats.major_count,
        "moderate_count": stats.moderate_count,
        "minor_count": stats.minor_count,
    }


@app.get("/earthquakes/recent")
def recent_earthquakes(
    limit: int = Query(default=10, ge=1, le=100),
    oracle: Orchestrator = Depends(services),
):
    """Most recent stored events regardless of time range."""
    now = oracle.clock()
    events = oracle.store.recent_events(limit)
    return {"earthquakes": [_event_to_dict(e, now) for e in events]}


@app.get("/earthquakes/verified")
def verified_earthquakes(oracle: Orchestrator = Depends(services)):
    """Events confirmed by the ledger, newest first."""
    now = oracle.clock()
    events = oracle.store.verified_events()
    return {"earthquakes": [_event_to_dict(e, now) for e in events], "count": len(events)}


@app.get("/earthquakes/{event_id}")
def get_earthquake(event_id: str, oracle: Orchestrator = Depends(services)):
    """A single stored event."""
    event = oracle.store.require_event(event_id)
    return _event_to_dict(event, oracle.clock())


@app.get("/alerts")
def list_alerts(
    active_only: bool = Query(default=False),
    oracle: Orchestrator = Depends(services),
):
    """Raised alerts, newest first."""
    alerts = oracle.store.active_alerts() if active_only else oracle.store.alerts()
    return {"alerts": [_alert_to_dict(a) for a in alerts]}


@app.get("/alerts/{alert_id}")
def get_alert(alert_id: int, oracle: Orchestrator = Depends(services)):
    alert = oracle.store.get_alert(alert_id)
    if alert is None:
        raise NotFoundError(f"Alert not found: {alert_id}")
    return _alert_to_dict(alert)


@app.post("/alerts/{alert_id}/deactivate")
def deactivate_alert(alert_id: int, oracle: Orchestrator = Depends(services)):
    """Stop listing an alert as active."""
    alert = oracle.store.deactivate_alert(alert_id)
    return {"success": True, "data": _alert_to_dict(alert)}


@app.get("/exchange-rates")
def exchange_rates(
    pair: str = Query(default="USD/SGD"),
    days: int = Query(default=30, ge=1, le=365),
    oracle: Orchestrator = Depends(services),
):
    """Daily rate series with significant events overlaid."""
    try:
        currency_pair = CurrencyPair.parse(pair)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if currency_pair not in oracle.config.currency_pairs:
        offered = ", ".join(p.name for p in oracle.config.currency_pairs)
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported currency pair {currency_pair.name} (offered: {offered})",
        )

    try:
        result = oracle.correlate_pair(currency_pair, days)
    except requests.RequestException:
        logger.exception("Failed to fetch exchange rates")
        raise HTTPException(status_code=502, detail="Failed to fetch exchange rates")

    return {
        "pair": result.pair.name,
        "rates": [
            {
                "date": s.date.isoformat(),
                "rate": s.rate,
                "earthquake": (
                    {"id": s.event.id, "magnitude": s.event.magnitude, "place": s.event.place}
                    if s.event is not None else None
                ),
            }
            for s in result.samples
        ],
        "analysis": result.analysis,
    }


# ===== Oracle Endpoints =====

@app.post("/api-keys", status_code=201)
def create_api_key(body: ApiKeyCreate, oracle: Orchestrator = Depends(services)):
    """Issue a new API key."""
    subscription = oracle.access_controller.issue(
        owner=body.wallet_address,
        organization_name=body.organization_name,
        contact_email=body.contact_email,
        duration_days=body.duration_days,
        request_limit=body.request_limit,
    )
    return {"success": True, "data": _subscription_to_dict(subscription)}


@app.get("/api-keys/validate")
def validate_api_key(
    x_api_key: str | None = Header(default=None),
    oracle: Orchestrator = Depends(services),
):
    """Describe a key without spending a request."""
    validation = oracle.access_controller.validate(_require_key(x_api_key))
    return {
        "valid": validation.valid,
        "remaining_requests": validation.remaining_requests,
        "expires_at": _iso(validation.expires_at),
        "subscription_id": validation.subscription_id,
        "organization": validation.organization,
        "reason": validation.reason,
    }


@app.post("/api-keys/renew")
def renew_api_key(
    body: ApiKeyRenew,
    x_api_key: str | None = Header(default=None),
    oracle: Orchestrator = Depends(services),
):
    """Extend a key's period and budget."""
    subscription = oracle.access_controller.renew(
        _require_key(x_api_key), body.extra_days, body.extra_requests
    )
    return {"success": True, "data": _subscription_to_dict(subscription)}


@app.delete("/api-keys")
def revoke_api_key(
    x_api_key: str | None = Header(default=None),
    oracle: Orchestrator = Depends(services),
):
    """Permanently disable a key."""
    subscription = oracle.access_controller.revoke(_require_key(x_api_key))
    return {"success": True, "data": _subscription_to_dict(subscription)}


@app.get("/subscriptions/{owner}")
def owner_subscriptions(owner: str, oracle: Orchestrator = Depends(services)):
    """Whether an owner holds a live subscription. Keys are not disclosed."""
    subscriptions = oracle.access_controller.subscriptions_for(owner)
    return {
        "owner": owner,
        "active": bool(subscriptions),
        "subscriptions": [
            {
                "subscription_id": s.id,
                "organization": s.organization_name,
                "expires_at": _iso(s.end_time),
                "remaining_requests": s.remaining_requests,
            }
            for s in subscriptions
        ],
    }


@app.get("/financial-impact/{event_id}")
def financial_impact(
    event_id: str,
    x_api_key: str | None = Header(default=None),
    oracle: Orchestrator = Depends(services),
):
    """Risk assessment of one event."""
    controller = oracle.access_controller
    key = _require_key(x_api_key)

    assessment, remaining = controller.authorized(
        key, oracle.risk_engine.score_for_id, event_id
    )

    return {
        "success": True,
        "data": _assessment_to_dict(assessment),
        "meta": {
            "remaining_requests": remaining,
            "timestamp": _iso(oracle.clock()),
        },
    }


@app.post("/bulk-financial-impact")
def bulk_financial_impact(
    body: BulkImpactRequest,
    x_api_key: str | None = Header(default=None),
    oracle: Orchestrator = Depends(services),
):
    """Risk assessments of every event in a period."""
    controller = oracle.access_controller
    key = _require_key(x_api_key)
    start = _as_utc(body.start_time)
    end = _as_utc(body.end_time)

    assessments, remaining = controller.authorized(
        key,
        oracle.risk_engine.assessments_between,
        start,
        end,
        body.min_magnitude,
    )

    return {
        "success": True,
        "data": [_assessment_to_dict(a) for a in assessments],
        "meta": {
            "count": len(assessments),
            "time_range": {"start": _iso(start), "end": _iso(end)},
            "remaining_requests": remaining,
        },
    }


@app.post("/market-risk-assessment")
def market_risk_assessment(
    body: MarketRiskRequest,
    x_api_key: str | None = Header(default=None),
    oracle: Orchestrator = Depends(services),
):
    """Per-market risk over a timeframe."""
    controller = oracle.access_controller
    key = _require_key(x_api_key)

    # Reject bad input before spending budget
    if body.timeframe not in MARKET_TIMEFRAMES:
        raise HTTPException(status_code=400, detail=f"Invalid timeframe: {body.timeframe}")

    report, remaining = controller.authorized(
        key, oracle.risk_engine.market_risk, body.markets, body.timeframe
    )

    return {
        "success": True,
        "data": _market_report_to_dict(report),
        "meta": {
            "timeframe": body.timeframe,
            "remaining_requests": remaining,
        },
    }
