"""
test_collection_client.py - Fetch boundary tests against a mocked transport.

Usage: python test_collection_client.py   (or: python -m pytest test_collection_client.py)
"""

from __future__ import annotations

import os
import sys
from decimal import Decimal

import httpx
import pytest

# Ensure we can import from project root
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from collection_client import CollectionApiError, CollectionClient
from endpoints import ConfigurationError
from models import EndpointConfig

BASE = "https://connect.example.com/links/abc/api/v1"

ITEMS_PAYLOAD = {
    "items": [
        {
            "id": "r1",
            "type": "collectionItem",
            "title": "Whole Foods - 2025-12-25",
            "properties": {"Store": "Whole Foods", "Date": "2025-12-25", "Total": "$169.48"},
        },
        {"id": "r2", "title": "No properties"},
        "not-an-item",
    ]
}


def _client(handler, **config) -> CollectionClient:
    transport = httpx.MockTransport(handler)
    return CollectionClient(
        EndpointConfig(**config),
        client=httpx.Client(transport=transport),
    )


def test_fetch_with_configured_collection():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=ITEMS_PAYLOAD)

    client = _client(handler, api_base_url=BASE + "/", api_key="Bearer s3cret", collection_id="C1")
    expenses = client.fetch_expenses()

    assert len(seen) == 1
    assert str(seen[0].url) == f"{BASE}/collections/C1/items"
    assert seen[0].headers["Authorization"] == "Bearer s3cret"
    assert seen[0].headers["Accept"] == "application/json"
    assert [expense.id for expense in expenses] == ["r1", "r2"]
    assert expenses[0].merchant == "Whole Foods"
    assert expenses[0].total == Decimal("169.48")
    assert expenses[1].merchant == "No properties"


def test_no_authorization_header_without_key():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "Authorization" not in request.headers
        return httpx.Response(200, json={"items": []})

    assert _client(handler, api_base_url=BASE, collection_id="C1").fetch_items() == []


def test_discovers_collection_when_id_missing():
    urls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        urls.append(str(request.url))
        if request.url.path.endswith("/collections"):
            assert request.url.params["documentFilterMode"] == "include"
            return httpx.Response(
                200,
                json={"items": [{"id": "misc", "name": "Misc"}, {"id": "rcpt", "name": "Receipts"}]},
            )
        return httpx.Response(200, json=ITEMS_PAYLOAD)

    client = _client(handler, api_base_url=BASE)
    assert client.resolve_collection_id() == "rcpt"
    items = client.fetch_items()
    assert urls[-1] == f"{BASE}/collections/rcpt/items"
    assert len(items) == 2


def test_discovery_tolerates_odd_collection_names():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "items": [
                    {"id": "a", "name": 2025},
                    {"id": "c", "name": {"label": "x"}},
                    {"id": "d", "name": True},
                    {"id": "b", "name": "Receipts"},
                ]
            },
        )

    client = _client(handler, api_base_url=BASE)
    refs = client.list_collections()
    assert [(ref.id, ref.name) for ref in refs] == [
        ("a", "2025"),
        ("c", None),
        ("d", None),
        ("b", "Receipts"),
    ]
    assert client.resolve_collection_id() == "b"


def test_discovery_with_no_collections_is_a_configuration_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"items": []})

    with pytest.raises(ConfigurationError):
        _client(handler, api_base_url=BASE).fetch_items()


def test_discovery_failure_reports_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": "forbidden"})

    with pytest.raises(CollectionApiError) as excinfo:
        _client(handler, api_base_url=BASE).resolve_collection_id()
    assert excinfo.value.status_code == 403
    assert "Unable to list collections" in str(excinfo.value)


@pytest.mark.parametrize(
    "status, fragment",
    [(401, "unauthorized (401)"), (404, "not found (404)"), (500, "500")],
)
def test_http_errors_map_to_collection_api_error(status, fragment):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status)

    with pytest.raises(CollectionApiError) as excinfo:
        _client(handler, api_base_url=BASE, collection_id="C1").fetch_items()
    assert excinfo.value.status_code == status
    assert fragment in str(excinfo.value)
    assert excinfo.value.url == f"{BASE}/collections/C1/items"


def test_transport_failure_maps_to_collection_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(CollectionApiError) as excinfo:
        _client(handler, api_base_url=BASE, collection_id="C1").fetch_items()
    assert excinfo.value.status_code is None


def test_non_json_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>login</html>")

    with pytest.raises(CollectionApiError):
        _client(handler, api_base_url=BASE, collection_id="C1").fetch_items()


def test_missing_base_url_is_rejected_up_front():
    with pytest.raises(ConfigurationError):
        CollectionClient(EndpointConfig(api_base_url="   ", collection_id="C1"))


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__, "-v"]))
