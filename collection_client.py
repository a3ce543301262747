"""
collection_client.py - Fetch boundary for the collection API.

This is the only module that talks to the network. It uses `endpoints.py`
to work out the URLs, then hands raw items to `normalize.py`. Everything
downstream only ever sees `Expense` records.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from endpoints import (
    ConfigurationError,
    build_collections_url,
    build_items_url,
    normalize_config,
    select_collection_id,
)
from logging_config import get_logger
from models import CollectionItem, CollectionRef, EndpointConfig, Expense
from normalize import normalize_items

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class CollectionApiError(RuntimeError):
    """The collection API answered with an error or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


def _error_for_status(response: httpx.Response, url: str) -> CollectionApiError:
    status = response.status_code
    if status == 401:
        message = (
            "Collection API unauthorized (401). If the link uses an API key, "
            "verify the key. If the link is public, leave the API key empty. "
            f"URL: {url}"
        )
    elif status == 404:
        message = (
            "Collection API not found (404). Check that the API Base URL is "
            f"correct and that the collection exists. URL tried: {url}"
        )
    else:
        message = (
            f"Failed to fetch from the collection API: {status} "
            f"{response.reason_phrase}. URL: {url}"
        )
    return CollectionApiError(message, status_code=status, url=url)


class CollectionClient:
    """Synchronous client for one configured collection link."""

    def __init__(
        self,
        config: EndpointConfig,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.config = normalize_config(config)
        if not self.config.api_base_url:
            raise ConfigurationError(
                "No collection API configuration found. Set an API Base URL in settings."
            )
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None

    def __enter__(self) -> "CollectionClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _get_json(self, url: str) -> Any:
        try:
            response = self._client.get(url, headers=self.headers())
        except httpx.HTTPError as exc:
            logger.error(
                "collection_api_unreachable | url=%s | error_type=%s | error=%s",
                url,
                type(exc).__name__,
                exc,
            )
            raise CollectionApiError(f"Collection API unreachable: {exc}", url=url) from exc

        if response.status_code >= 400:
            logger.error(
                "collection_api_error | url=%s | status=%s",
                url,
                response.status_code,
            )
            raise _error_for_status(response, url)

        try:
            return response.json()
        except ValueError as exc:
            raise CollectionApiError(
                "Collection API returned a non-JSON response.",
                status_code=response.status_code,
                url=url,
            ) from exc

    @staticmethod
    def _items_of(payload: Any) -> list[Any]:
        if isinstance(payload, dict):
            items = payload.get("items")
            return items if isinstance(items, list) else []
        if isinstance(payload, list):
            return payload
        return []

    def list_collections(self) -> list[CollectionRef]:
        url = build_collections_url(self.config)
        if not url:
            raise ConfigurationError(
                "A Collection ID or a valid API Base URL is needed to discover collections."
            )
        try:
            payload = self._get_json(url)
        except CollectionApiError as exc:
            raise CollectionApiError(
                f"Unable to list collections ({exc.status_code or 'no response'}). "
                "Provide a Collection ID or verify API access.",
                status_code=exc.status_code,
                url=url,
            ) from exc

        refs = [
            CollectionRef.model_validate(entry)
            for entry in self._items_of(payload)
            if isinstance(entry, dict) and entry.get("id") is not None
        ]
        logger.info("list_collections | url=%s | collections=%s", url, len(refs))
        return refs

    def resolve_collection_id(self) -> str:
        """Configured collection id, else the best-ranked discovered one."""
        if self.config.collection_id:
            return self.config.collection_id

        collection_id = select_collection_id(self.list_collections())
        if not collection_id:
            raise ConfigurationError(
                "No collections found. Provide a Collection ID or check API access."
            )
        return collection_id

    def fetch_items(self) -> list[CollectionItem]:
        url = build_items_url(self.config, self.resolve_collection_id())
        payload = self._get_json(url)
        items = [
            CollectionItem.model_validate(entry)
            for entry in self._items_of(payload)
            if isinstance(entry, dict)
        ]
        logger.info("fetch_items | url=%s | items=%s", url, len(items))
        return items

    def fetch_expenses(self) -> list[Expense]:
        return normalize_items(self.fetch_items())
