"""Tests for the FastAPI service.

Uses FastAPI's TestClient with the orchestrator dependency overridden.
"""

import random
import pytest
import requests
from datetime import date, datetime, timedelta, timezone
from unittest.mock import Mock

from fastapi.testclient import TestClient

from api.main import app, services
from quakerisk.core.alerts import AlertDraft, Severity
from quakerisk.core.config import Config
from quakerisk.core.correlation import ExchangeRateSample
from quakerisk.core.event import EventCandidate
from quakerisk.orchestrator import Orchestrator


NOW = datetime(2024, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self):
        self.now = NOW

    def __call__(self):
        return self.now


def make_candidate(place="Tokyo Bay", magnitude=8.0, hours_ago=1.0,
                   latitude=35.6762, longitude=139.6503):
    return EventCandidate(
        place=place,
        magnitude=magnitude,
        depth_km=8.0,
        latitude=latitude,
        longitude=longitude,
        time=NOW - timedelta(hours=hours_ago),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def oracle(clock):
    return Orchestrator(
        Config(),
        usgs_client=Mock(),
        slack_client=Mock(),
        exchange_rate_client=Mock(),
        rng=random.Random(23),
        clock=clock,
    )


@pytest.fixture
def client(oracle):
    app.dependency_overrides[services] = lambda: oracle
    yield TestClient(app)
    app.dependency_overrides.clear()


def issue_key(client, request_limit=5, duration_days=30):
    response = client.post("/api-keys", json={
        "organization_name": "Acme Capital",
        "contact_email": "risk@acme.example",
        "wallet_address": "0xabc",
        "duration_days": duration_days,
        "request_limit": request_limit,
    })
    assert response.status_code == 201
    return response.json()["data"]["api_key"]


class TestPublicEndpoints:
    """Tests for endpoints that need no API key."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_list_earthquakes(self, client, oracle):
        event = oracle.store.create_event(make_candidate())
        oracle.store.create_event(make_candidate(magnitude=3.0, hours_ago=2))
        oracle.store.create_event(make_candidate(hours_ago=48))

        response = client.get("/earthquakes", params={"min_magnitude": 4})

        body = response.json()
        assert response.status_code == 200
        assert body["count"] == 1
        assert body["earthquakes"][0]["id"] == event.id
        assert body["earthquakes"][0]["time_ago"] == "1 hour ago"

    def test_region_filter(self, client, oracle):
        oracle.store.create_event(make_candidate())
        oracle.store.create_event(make_candidate(place="SF", latitude=37.77, longitude=-122.42))

        body = client.get("/earthquakes", params={"region": "north_america"}).json()

        assert [e["place"] for e in body["earthquakes"]] == ["SF"]

    def test_unknown_region(self, client):
        response = client.get("/earthquakes", params={"region": "atlantis"})
        assert response.status_code == 400

    def test_stats(self, client, oracle):
        oracle.store.create_event(make_candidate(magnitude=6.0))
        oracle.store.create_event(make_candidate(magnitude=4.5))

        body = client.get("/earthquakes/stats").json()

        assert body["total"] == 2
        assert body["average_magnitude"] == 5.25
        assert body["major_count"] == 1
        assert body["moderate_count"] == 1

    def test_alerts(self, client, oracle):
        alert = oracle.store.create_alert(AlertDraft(
            message="Major Earthquake Warning",
            severity=Severity.HIGH,
            magnitude=6.5,
            location="Tokyo Bay",
            event_id="eq_x",
        ))
        oracle.store.create_alert(AlertDraft(
            message="Moderate Earthquake Alert",
            severity=Severity.MEDIUM,
            magnitude=4.5,
            location="Chile",
            event_id="eq_y",
        ))
        oracle.store.deactivate_alert(alert.id)

        all_alerts = client.get("/alerts").json()["alerts"]
        active = client.get("/alerts", params={"active_only": True}).json()["alerts"]

        assert [a["id"] for a in all_alerts] == [2, 1]
        assert [a["id"] for a in active] == [2]
        assert all_alerts[1]["severity"] == "high"

    def test_exchange_rates(self, client, oracle):
        oracle.store.create_event(make_candidate(magnitude=7.5))
        oracle.exchange_rate_client.fetch_series.return_value = [
            ExchangeRateSample(date(2024, 3, 1), 1.35),
            ExchangeRateSample(date(2024, 3, 2), 1.35),
        ]

        response = client.get("/exchange-rates", params={"pair": "USD/SGD", "days": 1})

        body = response.json()
        assert response.status_code == 200
        assert body["pair"] == "USD/SGD"
        assert body["rates"][1]["rate"] == 1.323
        assert body["rates"][1]["earthquake"]["magnitude"] == 7.5
        assert body["rates"][0]["earthquake"] is None

    def test_exchange_rates_bad_pair(self, client):
        assert client.get("/exchange-rates", params={"pair": "USDSGD"}).status_code == 400

    def test_exchange_rates_unconfigured_pair(self, client, oracle):
        """Only the configured pairs are offered."""
        response = client.get("/exchange-rates", params={"pair": "USD/KRW"})

        assert response.status_code == 400
        assert "USD/SGD" in response.json()["detail"]
        oracle.exchange_rate_client.fetch_series.assert_not_called()

    def test_recent_earthquakes(self, client, oracle):
        old = oracle.store.create_event(make_candidate(hours_ago=72))
        new = oracle.store.create_event(make_candidate(hours_ago=1))

        body = client.get("/earthquakes/recent", params={"limit": 5}).json()

        assert [e["id"] for e in body["earthquakes"]] == [new.id, old.id]

    def test_verified_earthquakes(self, client, oracle):
        event = oracle.store.create_event(make_candidate())
        oracle.store.create_event(make_candidate(place="Chile"))
        oracle.store.mark_verified(event.id, "0xfeed")

        body = client.get("/earthquakes/verified").json()

        assert body["count"] == 1
        assert body["earthquakes"][0]["ledger_tx_hash"] == "0xfeed"

    def test_get_earthquake(self, client, oracle):
        event = oracle.store.create_event(make_candidate())

        response = client.get(f"/earthquakes/{event.id}")

        assert response.status_code == 200
        assert response.json()["place"] == "Tokyo Bay"

    def test_get_unknown_earthquake(self, client):
        response = client.get("/earthquakes/eq_missing")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_get_and_deactivate_alert(self, client, oracle):
        alert = oracle.store.create_alert(AlertDraft(
            message="Major Earthquake Warning",
            severity=Severity.HIGH,
            magnitude=6.5,
            location="Tokyo Bay",
            event_id="eq_x",
        ))

        assert client.get(f"/alerts/{alert.id}").json()["active"] is True

        response = client.post(f"/alerts/{alert.id}/deactivate")

        assert response.status_code == 200
        assert response.json()["data"]["active"] is False
        assert oracle.store.active_alerts() == []

    def test_unknown_alert(self, client):
        assert client.get("/alerts/99").status_code == 404
        assert client.post("/alerts/99/deactivate").status_code == 404

    def test_exchange_rates_upstream_failure(self, client, oracle):
        oracle.exchange_rate_client.fetch_series.side_effect = requests.ConnectionError("down")
        assert client.get("/exchange-rates").status_code == 502


class TestApiKeys:
    """Tests for key issue, validation, renewal and revocation."""

    def test_issue(self, client):
        response = client.post("/api-keys", json={
            "organization_name": "Acme Capital",
            "contact_email": "risk@acme.example",
            "wallet_address": "0xabc",
            "duration_days": 30,
            "request_limit": 100,
        })

        data = response.json()["data"]
        assert response.status_code == 201
        assert data["api_key"].startswith("qs_")
        assert data["remaining_requests"] == 100
        assert data["expires_at"] == (NOW + timedelta(days=30)).isoformat()

    @pytest.mark.parametrize("field,value", [
        ("organization_name", "AC"),
        ("contact_email", "not-an-email"),
        ("duration_days", 0),
        ("duration_days", 366),
        ("request_limit", 100001),
    ])
    def test_issue_validation(self, client, field, value):
        body = {
            "organization_name": "Acme Capital",
            "contact_email": "risk@acme.example",
            "wallet_address": "0xabc",
            "duration_days": 30,
            "request_limit": 100,
        }
        body[field] = value
        assert client.post("/api-keys", json=body).status_code == 422

    def test_validate(self, client):
        key = issue_key(client)

        body = client.get("/api-keys/validate", headers={"X-API-Key": key}).json()

        assert body["valid"] is True
        assert body["remaining_requests"] == 5

    def test_validate_unknown(self, client):
        body = client.get("/api-keys/validate", headers={"X-API-Key": "qs_nope"}).json()
        assert body["valid"] is False

    def test_missing_key(self, client):
        response = client.get("/api-keys/validate")
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "MISSING_API_KEY"

    def test_renew(self, client):
        key = issue_key(client, request_limit=1)

        response = client.post(
            "/api-keys/renew",
            json={"extra_days": 10, "extra_requests": 50},
            headers={"X-API-Key": key},
        )

        data = response.json()["data"]
        assert data["remaining_requests"] == 51
        assert data["expires_at"] == (NOW + timedelta(days=40)).isoformat()

    def test_owner_subscriptions(self, client):
        issue_key(client)

        body = client.get("/subscriptions/0xabc").json()

        assert body["active"] is True
        assert body["subscriptions"][0]["organization"] == "Acme Capital"
        assert "api_key" not in body["subscriptions"][0]

    def test_owner_without_subscription(self, client):
        body = client.get("/subscriptions/0xnobody").json()
        assert body == {"owner": "0xnobody", "active": False, "subscriptions": []}

    def test_revoke(self, client, oracle):
        key = issue_key(client)
        oracle.store.create_event(make_candidate())

        assert client.delete("/api-keys", headers={"X-API-Key": key}).status_code == 200

        response = client.post(
            "/market-risk-assessment",
            json={"markets": ["NIKKEI"]},
            headers={"X-API-Key": key},
        )
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_API_KEY"


class TestOracleEndpoints:
    """Tests for the metered oracle endpoints."""

    def test_financial_impact(self, client, oracle):
        event = oracle.store.create_event(make_candidate())
        key = issue_key(client, request_limit=2)

        response = client.get(f"/financial-impact/{event.id}", headers={"X-API-Key": key})

        body = response.json()
        assert response.status_code == 200
        assert body["data"]["event_id"] == event.id
        assert body["data"]["market_impact_score"] == 86
        assert body["data"]["risk_level"] == "CRITICAL"
        assert body["meta"]["remaining_requests"] == 1

    def test_assessment_is_stable(self, client, oracle):
        event = oracle.store.create_event(make_candidate())
        key = issue_key(client)
        headers = {"X-API-Key": key}

        first = client.get(f"/financial-impact/{event.id}", headers=headers).json()["data"]
        second = client.get(f"/financial-impact/{event.id}", headers=headers).json()["data"]

        assert first == second

    def test_unknown_event(self, client):
        key = issue_key(client)
        response = client.get("/financial-impact/eq_missing", headers={"X-API-Key": key})
        assert response.status_code == 404

    def test_quota_exhausted(self, client, oracle):
        event = oracle.store.create_event(make_candidate())
        key = issue_key(client, request_limit=1)
        headers = {"X-API-Key": key}

        assert client.get(f"/financial-impact/{event.id}", headers=headers).status_code == 200
        response = client.get(f"/financial-impact/{event.id}", headers=headers)

        assert response.status_code == 429
        assert response.json()["code"] == "QUOTA_EXHAUSTED"

    def test_expired(self, client, oracle, clock):
        event = oracle.store.create_event(make_candidate())
        key = issue_key(client, duration_days=1)
        clock.now = NOW + timedelta(days=2)

        response = client.get(f"/financial-impact/{event.id}", headers={"X-API-Key": key})

        assert response.status_code == 403
        assert response.json()["code"] == "SUBSCRIPTION_EXPIRED"

    def test_invalid_key(self, client, oracle):
        event = oracle.store.create_event(make_candidate())
        response = client.get(f"/financial-impact/{event.id}", headers={"X-API-Key": "qs_nope"})
        assert response.status_code == 401

    def test_bulk(self, client, oracle):
        oracle.store.create_event(make_candidate(magnitude=6.0))
        oracle.store.create_event(make_candidate(magnitude=4.0, hours_ago=2))
        oracle.store.create_event(make_candidate(magnitude=6.0, hours_ago=72))
        key = issue_key(client)

        response = client.post(
            "/bulk-financial-impact",
            json={
                "start_time": "2024-03-01T12:00:00Z",
                "end_time": "2024-03-02T12:00:00Z",
                "min_magnitude": 5.0,
            },
            headers={"X-API-Key": key},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["meta"]["count"] == 1
        assert body["meta"]["remaining_requests"] == 4

    def test_bulk_naive_times_are_utc(self, client, oracle):
        oracle.store.create_event(make_candidate())
        key = issue_key(client)

        response = client.post(
            "/bulk-financial-impact",
            json={"start_time": "2024-03-01T12:00:00", "end_time": "2024-03-02T12:00:00"},
            headers={"X-API-Key": key},
        )

        assert response.json()["meta"]["count"] == 1

    def test_market_risk(self, client, oracle):
        event = oracle.store.create_event(make_candidate())
        key = issue_key(client)

        response = client.post(
            "/market-risk-assessment",
            json={"markets": ["NIKKEI", "ASX200"], "timeframe": "48h"},
            headers={"X-API-Key": key},
        )

        data = response.json()["data"]
        assert response.status_code == 200
        assert [r["market"] for r in data["market_risks"]] == ["NIKKEI", "ASX200"]
        assert data["market_risks"][1]["risk_score"] == 0
        assert data["event_ids"] == [event.id]

    def test_market_risk_bad_timeframe_spends_nothing(self, client):
        key = issue_key(client)

        response = client.post(
            "/market-risk-assessment",
            json={"markets": ["NIKKEI"], "timeframe": "1y"},
            headers={"X-API-Key": key},
        )

        assert response.status_code == 400
        validation = client.get("/api-keys/validate", headers={"X-API-Key": key}).json()
        assert validation["remaining_requests"] == 5

    def test_market_risk_requires_markets(self, client):
        key = issue_key(client)
        response = client.post(
            "/market-risk-assessment",
            json={"markets": []},
            headers={"X-API-Key": key},
        )
        assert response.status_code == 422
