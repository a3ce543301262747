"""
endpoints.py - Work out which collection API URLs to call.

Users paste whatever URL the collection tool shows them: an API root, a
collection URL, or a full items URL. This module turns that partial
configuration into:

    build_collections_url(config)            -> collections listing URL
    build_items_url(config, override=None)   -> items URL for one collection
    select_collection_id(collections)        -> best guess when no id is set

No network calls happen here; `collection_client.py` does the fetching.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Optional
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from logging_config import get_logger
from models import CollectionRef, EndpointConfig

logger = get_logger(__name__)

# Path markers that end the API root, checked in this order.
API_ROOT_MARKERS: tuple[str, ...] = (
    "/collections/",
    "/collections",
    "/documents",
    "/blocks",
    "/tasks",
)

# Case-insensitive name keywords used to rank collections, best first.
COLLECTION_KEYWORDS: tuple[tuple[str, int], ...] = (
    ("receipt", 4),
    ("expense", 3),
    ("transaction", 2),
    ("spend", 1),
)

_ITEMS_PATH = re.compile(r"/collections/[^/]+/items$")
_COLLECTION_PATH = re.compile(r"/collections/[^/]+$")
_BEARER_PREFIX = re.compile(r"^bearer\s+", re.IGNORECASE)


class ConfigurationError(ValueError):
    """The endpoint configuration cannot produce a usable URL."""


def normalize_config(config: EndpointConfig | Mapping[str, Any]) -> EndpointConfig:
    """Trim all fields, drop trailing slashes and a leading "Bearer " from the key."""
    if not isinstance(config, EndpointConfig):
        config = EndpointConfig.model_validate(config)

    return EndpointConfig(
        api_base_url=config.api_base_url.strip().rstrip("/"),
        api_key=_BEARER_PREFIX.sub("", config.api_key.strip()),
        collection_id=config.collection_id.strip(),
    )


def _api_root(api_base_url: str) -> str:
    trimmed = api_base_url.rstrip("/")
    for marker in API_ROOT_MARKERS:
        index = trimmed.find(marker)
        if index != -1:
            return trimmed[:index]
    return trimmed


def build_collections_url(config: EndpointConfig) -> str:
    """Return the collections listing URL, or "" when no base URL is set."""
    if not config.api_base_url:
        return ""

    root = _api_root(config.api_base_url)
    if not root:
        return ""

    parts = urlsplit(f"{root}/collections")
    if not parts.scheme or not parts.netloc:
        raise ConfigurationError(
            f"API Base URL must be an absolute URL (got {config.api_base_url!r})."
        )

    query = [(key, value) for key, value in parse_qsl(parts.query) if key != "documentFilterMode"]
    query.append(("documentFilterMode", "include"))
    return urlunsplit(parts._replace(query=urlencode(query)))


def _has_collection_in_path(path: str) -> bool:
    return bool(_COLLECTION_PATH.search(path) or _ITEMS_PATH.search(path)) or "/collections/" in path


def _resolve_path(path: str, collection_id: str) -> str:
    """Apply the items-URL decision table to a path with no trailing slash."""
    if _ITEMS_PATH.search(path):
        return path
    if _COLLECTION_PATH.search(path):
        return f"{path}/items"
    if "/collections/" in path:
        return path
    return f"{path}/collections/{quote(collection_id, safe='')}/items"


def build_items_url(
    config: EndpointConfig,
    collection_override: Optional[str] = None,
) -> str:
    """Return the URL that lists a collection's items.

    `collection_override` (for example an auto-discovered id) wins over the
    configured collection id when it is not None.

    Raises:
        ConfigurationError: no base URL, or no collection id and none in
            the URL path.
    """
    if not config.api_base_url:
        raise ConfigurationError("API Base URL is required for the collection API.")

    collection_id = (
        collection_override if collection_override is not None else config.collection_id
    )

    parts = urlsplit(config.api_base_url)
    if parts.scheme and parts.netloc:
        path = parts.path.rstrip("/")
        if not collection_id and not _has_collection_in_path(path):
            raise ConfigurationError("Collection ID is required for the collection API.")
        resolved = _resolve_path(path, collection_id)
        return urlunsplit(parts._replace(path=resolved))

    # Not an absolute URL: fall back to plain string handling.
    logger.debug(
        "build_items_url | unstructured_base=%r | mode='string'",
        config.api_base_url,
    )
    trimmed = config.api_base_url.rstrip("/")
    if not collection_id and not _has_collection_in_path(trimmed):
        raise ConfigurationError("Collection ID is required for the collection API.")
    if trimmed.endswith("/items"):
        return trimmed
    return _resolve_path(trimmed, collection_id)


def collection_score(name: Optional[str]) -> int:
    """Score a collection name by how expense-like it looks (0-4)."""
    if not name:
        return 0
    lowered = name.lower()
    for keyword, score in COLLECTION_KEYWORDS:
        if keyword in lowered:
            return score
    return 0


def select_collection_id(
    collections: Iterable[CollectionRef | Mapping[str, Any]],
) -> Optional[str]:
    """Pick the most receipt-like collection.

    Best-effort: when no name matches a keyword the first collection is
    returned, which may be unrelated. Ties keep listing order. Returns None
    for an empty listing.
    """
    refs = [
        entry if isinstance(entry, CollectionRef) else CollectionRef.model_validate(entry)
        for entry in collections
    ]
    if not refs:
        return None

    ranked = sorted(refs, key=lambda ref: collection_score(ref.name), reverse=True)
    chosen = ranked[0]
    logger.info(
        "select_collection_id | candidates=%s | chosen=%s | name=%r | score=%s",
        len(refs),
        chosen.id,
        chosen.name,
        collection_score(chosen.name),
    )
    return chosen.id
