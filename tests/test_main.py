"""
Tests for the HTTP surface

Tests cover:
- Webhook fulfillment payloads
- Request validation (400) and catalog outages (503)
- The JSON query endpoint and health checks
"""

import pytest
from fastapi.testclient import TestClient

from planbot.errors import CatalogUnavailableError
from planbot.main import create_app


class StubLoader:
    def __init__(self, catalog=None, error=None):
        self.catalog = catalog
        self.error = error
        self.calls = 0
        self.closed = False

    def get(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.catalog

    def close(self):
        self.closed = True

    def status(self):
        return {"catalog_loaded": self.catalog is not None, "catalog_age_seconds": 0.0}


@pytest.fixture
def loader(catalog):
    return StubLoader(catalog)


@pytest.fixture
def client(settings, loader):
    return TestClient(create_app(settings=settings, catalog_loader=loader))


def _webhook(text, **parameters):
    return {"queryResult": {"queryText": text, "parameters": parameters}, "session": "projects/x/sessions/1"}


class TestWebhook:
    def test_budget_query(self, client):
        response = client.post("/webhook", json=_webhook("Show me Jio prepaid plans under 500"))
        assert response.status_code == 200
        body = response.json()
        assert body["fulfillmentText"].startswith("Here are JIO PREPAID plans under ₹500:")
        assert body["payload"]["filters"]["operator"] == "jio"
        assert body["payload"]["filters"]["budget"] == 500
        assert body["payload"]["total"] == 3

    def test_entity_parameters(self, client):
        payload = _webhook("plans please", operator="geo", budget={"amount": 200, "currency": "INR"})
        body = client.post("/webhook", json=payload).json()
        assert body["fulfillmentText"].startswith("(Assuming you meant JIO instead of GEO) Here are JIO PREPAID")
        assert "₹149" in body["fulfillmentText"]
        assert "₹399" not in body["fulfillmentText"]

    def test_offset_parameter(self, client):
        body = client.post("/webhook", json=_webhook("jio plans", offset=2)).json()
        assert (body["payload"]["offset"], body["payload"]["shown"], body["payload"]["total"]) == (2, 2, 4)

    def test_greeting_skips_catalog(self, client, loader):
        body = client.post("/webhook", json=_webhook("hi")).json()
        assert body["fulfillmentText"]
        assert body["payload"]["filters"] is None
        assert loader.calls == 0

    def test_no_match_is_not_an_error(self, client):
        response = client.post("/webhook", json=_webhook("airtel plans under 50"))
        assert response.status_code == 200
        assert "cheapest available plan is ₹179" in response.json()["fulfillmentText"]

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"queryResult": {}},
            _webhook("x" * 501),
            _webhook("<>{}"),
        ],
    )
    def test_validation_errors(self, client, payload):
        response = client.post("/webhook", json=payload)
        assert response.status_code == 400
        body = response.json()
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["fulfillmentText"].startswith("Validation failed")

    def test_catalog_outage(self, settings):
        loader = StubLoader(error=CatalogUnavailableError("Request timeout while fetching plans data"))
        client = TestClient(create_app(settings=settings, catalog_loader=loader))
        response = client.post("/webhook", json=_webhook("jio plans"))
        assert response.status_code == 503
        assert response.json() == {
            "fulfillmentText": "Request timeout while fetching plans data",
            "error": {"code": "EXTERNAL_API_ERROR", "message": "Request timeout while fetching plans data"},
        }


class TestQueryEndpoint:
    @pytest.mark.parametrize("path", ["/query", "/api/query"])
    def test_regex_mode(self, client, path):
        response = client.post(path, json={"query": "cheapest airtel plans"})
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert [p["price"] for p in body["plans"]] == ["179", "699"]
        assert body["meta"]["filters"]["sort_by"] == "price"
        assert body["meta"]["debug"]["parser_mode"] == "regex"
        assert "airtel" in body["meta"]["debug"]["tokens"]

    def test_alternatives(self, client):
        body = client.post("/query", json={"query": "jio plans for 30 days"}).json()
        assert body["plans"] == []
        assert [p["validity"] for p in body["alternatives"]] == ["28 days", "28 days", "56 days"]

    def test_ai_mode_without_key_uses_rules(self, client):
        body = client.post("/query", json={"query": "vi postpaid plans", "parser_mode": "ai"}).json()
        assert body["ok"] is True
        assert body["meta"]["debug"]["ai_fallback_used"] is False
        assert body["meta"]["filters"]["operator"] == "vi"

    def test_catalog_outage_reported_inline(self, settings):
        loader = StubLoader(error=CatalogUnavailableError("Plans data source not found"))
        client = TestClient(create_app(settings=settings, catalog_loader=loader))
        body = client.post("/query", json={"query": "jio plans"}).json()
        assert body["ok"] is False
        assert body["error"] == "Plans data source not found"

    def test_rejects_negative_offset(self, client):
        response = client.post("/query", json={"query": "jio plans", "offset": -1})
        assert response.status_code == 400


class TestHealth:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.text == "Telecom Plan Suggestion API is running"

    @pytest.mark.parametrize("path", ["/healthz", "/api/healthz"])
    def test_health(self, client, path):
        assert client.get(path).json() == {"status": "ok", "catalog_loaded": True, "catalog_age_seconds": 0.0}


def test_shutdown_closes_catalog_loader(settings, loader):
    with TestClient(create_app(settings=settings, catalog_loader=loader)) as client:
        assert client.get("/healthz").status_code == 200
        assert loader.closed is False
    assert loader.closed is True
