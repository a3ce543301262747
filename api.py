"""
api.py - FastAPI HTTP layer for the expense dashboard.

Endpoints:
  - GET  /health
  - GET  /expenses          (fetch + report, or bundled sample data)
  - POST /expenses/summary  (report over items supplied by the caller)
  - GET  /settings, PUT /settings

No normalization or aggregation logic is implemented here.
"""

from __future__ import annotations

import os
from typing import Any, Optional

import uvicorn
from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from aggregate import build_report
from collection_client import CollectionApiError, CollectionClient
from endpoints import ConfigurationError
from logging_config import get_logger, setup_logging
from main import SAMPLE_ITEMS_PATH, load_items_json
from models import Budget, DateRange, EndpointConfig, Expense
from normalize import normalize_items
from report import format_report_json
from settings_store import DashboardSettings, SettingsStore

logger = get_logger("expense-api")

app = FastAPI(
    title="Expense Insights API",
    version="1.0.0",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

# Allows local dashboard use from another host/port.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[os.getenv("FRONTEND_ORIGIN", "*")],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

settings_store = SettingsStore()


class SummaryRequest(BaseModel):
    """Body of POST /expenses/summary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    items: list[dict[str, Any]] = Field(default_factory=list)
    range: DateRange = DateRange.ALL
    budgets: Optional[list[Budget]] = None


KEY_MASK = "****"


def _mask_key(api_key: str) -> str:
    if not api_key:
        return ""
    if len(api_key) <= 4:
        return KEY_MASK
    return f"{KEY_MASK}{api_key[-4:]}"


def _keep_stored_key(incoming: DashboardSettings, stored: DashboardSettings) -> DashboardSettings:
    """A masked key echoed back from GET /settings means "unchanged"."""
    api_key = incoming.config.api_key.strip()
    if not api_key.startswith(KEY_MASK):
        return incoming
    logger.info("settings_update | api_key=unchanged | reason=masked_value")
    config = incoming.config.model_copy(update={"api_key": stored.config.api_key})
    return incoming.model_copy(update={"config": config})


def _sample_expenses() -> list[Expense]:
    return normalize_items(load_items_json(SAMPLE_ITEMS_PATH))


def _live_expenses(config: EndpointConfig) -> list[Expense]:
    with CollectionClient(config) as client:
        return client.fetch_expenses()


@app.get("/health")
def health() -> dict[str, Any]:
    settings = settings_store.load_settings()
    return {
        "status": "ok",
        "configured": settings.config.is_configured,
        "budgets": len(settings.budgets),
    }


@app.get("/expenses")
def get_expenses(
    range: DateRange = Query(DateRange.ALL),
    source: str = Query("auto", pattern="^(auto|mock|live)$"),
) -> dict[str, Any]:
    """Report for the configured collection, or the bundled sample items."""
    settings = settings_store.load_settings()
    use_sample = source == "mock" or (source == "auto" and not settings.config.is_configured)

    try:
        if use_sample:
            logger.info("expenses_request | source=sample | range=%s", range.value)
            expenses = _sample_expenses()
        else:
            logger.info("expenses_request | source=live | range=%s", range.value)
            expenses = _live_expenses(settings.config)
    except ConfigurationError as exc:
        logger.error("expenses_config_error | error=%s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CollectionApiError as exc:
        logger.error("expenses_upstream_error | status=%s | error=%s", exc.status_code, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    report = build_report(
        expenses,
        date_range=range,
        budgets=settings.budgets or None,
    )
    payload = format_report_json(report)
    payload["source"] = "sample" if use_sample else "live"
    return payload


@app.post("/expenses/summary")
def summarize_expenses(request: SummaryRequest = Body(...)) -> dict[str, Any]:
    """Report over raw items the caller already fetched."""
    expenses = normalize_items(request.items)
    report = build_report(expenses, date_range=request.range, budgets=request.budgets)
    return format_report_json(report)


@app.get("/settings")
def get_settings() -> dict[str, Any]:
    settings = settings_store.load_settings()
    payload = settings.model_dump(mode="json", by_alias=True)
    payload["config"]["apiKey"] = _mask_key(settings.config.api_key)
    return payload


@app.put("/settings")
def put_settings(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    try:
        settings = DashboardSettings.model_validate(payload)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    settings = _keep_stored_key(settings, settings_store.load_settings())
    saved = settings_store.save_settings(settings)
    response = saved.model_dump(mode="json", by_alias=True)
    response["config"]["apiKey"] = _mask_key(saved.config.api_key)
    return response


def run() -> None:
    setup_logging()
    port = int(os.getenv("PORT", "8000"))
    logger.info("api_start | port=%s", port)
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    run()
