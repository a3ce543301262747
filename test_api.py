"""
test_api.py - HTTP layer tests via FastAPI's TestClient.

Usage: python test_api.py   (or: python -m pytest test_api.py)
"""

from __future__ import annotations

import os
import sys

import pytest
from fastapi.testclient import TestClient

# Ensure we can import from project root
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import api
from settings_store import SettingsStore


@pytest.fixture
def client(tmp_path, monkeypatch):
    for name in ("COLLECTION_API_BASE_URL", "COLLECTION_API_KEY", "COLLECTION_ID"):
        monkeypatch.delenv(name, raising=False)
    store = SettingsStore(str(tmp_path / "settings.json"))
    monkeypatch.setattr(api, "settings_store", store)
    return TestClient(api.app)


def test_health_unconfigured(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "configured": False, "budgets": 0}


def test_expenses_fall_back_to_sample_when_unconfigured(client):
    response = client.get("/expenses")
    assert response.status_code == 200
    payload = response.json()
    assert payload["source"] == "sample"
    assert payload["stats"]["transactionCount"] == len(payload["records"]) > 0
    assert "budgetProgress" not in payload
    assert {"categoryBreakdown", "merchantBreakdown", "monthlyTrend", "dailyTrend"} <= set(payload)


def test_expenses_rejects_unknown_range(client):
    assert client.get("/expenses", params={"range": "fortnight"}).status_code == 422
    assert client.get("/expenses", params={"source": "cache"}).status_code == 422


def test_live_source_without_config_is_a_bad_request(client):
    response = client.get("/expenses", params={"source": "live"})
    assert response.status_code == 400
    assert "Base URL" in response.json()["detail"]


def test_summary_over_supplied_items(client):
    body = {
        "items": [
            {"id": "a", "properties": {"Vendor": "Cafe", "Total": "$4.50", "Category": "☕ Coffee", "Date": "2025-12-01"}},
            {"id": "b", "properties": {"Vendor": "Cafe", "Amount": 5.5, "Category": "☕ Coffee", "Date": "2025-12-02"}},
        ],
        "range": "all",
        "budgets": [{"category": "☕ Coffee", "monthlyLimit": 20}],
    }
    response = client.post("/expenses/summary", json=body)
    assert response.status_code == 200
    payload = response.json()
    assert payload["stats"]["totalSpending"] == pytest.approx(10.0)
    assert payload["merchantBreakdown"][0]["merchant"] == "Cafe"
    assert payload["merchantBreakdown"][0]["count"] == 2
    assert payload["budgetProgress"][0]["category"] == "☕ Coffee"


def test_settings_round_trip_masks_key(client):
    response = client.put(
        "/settings",
        json={
            "config": {"apiBaseUrl": "https://api.example.com/v1/", "apiKey": "Bearer secret-7890"},
            "budgets": [{"category": "Dining", "monthlyLimit": 150}],
        },
    )
    assert response.status_code == 200
    assert response.json()["config"]["apiKey"] == "****7890"
    assert response.json()["config"]["apiBaseUrl"] == "https://api.example.com/v1"

    fetched = client.get("/settings").json()
    assert fetched["config"]["apiKey"] == "****7890"
    assert fetched["budgets"] == [{"category": "Dining", "monthlyLimit": 150.0}]
    assert client.get("/health").json()["configured"] is True


def test_saving_fetched_settings_keeps_the_real_key(client):
    client.put(
        "/settings",
        json={"config": {"apiBaseUrl": "https://api.example.com/v1", "apiKey": "secret-7890"}},
    )

    fetched = client.get("/settings").json()
    assert fetched["config"]["apiKey"] == "****7890"
    fetched["budgets"].append({"category": "Dining", "monthlyLimit": 80})

    response = client.put("/settings", json=fetched)
    assert response.status_code == 200
    assert response.json()["config"]["apiKey"] == "****7890"

    stored = api.settings_store.load_settings()
    assert stored.config.api_key == "secret-7890"
    assert [budget.category for budget in stored.budgets] == ["Dining"]


def test_new_key_replaces_stored_key(client):
    client.put("/settings", json={"config": {"apiBaseUrl": "https://a.example.com", "apiKey": "old-1111"}})
    client.put("/settings", json={"config": {"apiBaseUrl": "https://a.example.com", "apiKey": "new-2222"}})
    assert api.settings_store.load_settings().config.api_key == "new-2222"


def test_settings_rejects_negative_budget(client):
    response = client.put("/settings", json={"budgets": [{"category": "Dining", "monthlyLimit": -1}]})
    assert response.status_code == 422


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__, "-v"]))
