"""
settings_store.py - Persisted dashboard settings (endpoint config + budgets).

Stores a single settings snapshot in a local JSON file. The core never
reads this file; the CLI and API load settings here and pass them by value.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from endpoints import normalize_config
from logging_config import get_logger
from models import Budget, EndpointConfig

logger = get_logger(__name__)

try:
    load_dotenv()
except UnicodeDecodeError:
    # Fallback for legacy Windows-encoded .env files.
    load_dotenv(encoding="cp1252")

DEFAULT_SETTINGS_FILE = "data/settings.json"


def config_from_env() -> EndpointConfig:
    """Endpoint config from COLLECTION_API_BASE_URL / _KEY / COLLECTION_ID."""
    return normalize_config(
        EndpointConfig(
            api_base_url=os.getenv("COLLECTION_API_BASE_URL", ""),
            api_key=os.getenv("COLLECTION_API_KEY", ""),
            collection_id=os.getenv("COLLECTION_ID", ""),
        )
    )


class DashboardSettings(BaseModel):
    """Everything the user can edit in the settings dialog."""

    model_config = ConfigDict(extra="ignore")

    config: EndpointConfig = Field(default_factory=EndpointConfig)
    budgets: list[Budget] = Field(default_factory=list)
    updated_at: Optional[str] = None

    @field_validator("budgets", mode="before")
    @classmethod
    def _one_budget_per_category(cls, value: Any) -> list[Any]:
        source = value if isinstance(value, list) else []
        by_category: dict[str, Any] = {}
        for raw in source:
            if isinstance(raw, Budget):
                category = raw.category
            elif isinstance(raw, dict):
                category = str(raw.get("category") or "")
            else:
                continue
            if not category:
                continue
            by_category.pop(category, None)
            by_category[category] = raw
        return list(by_category.values())


class SettingsStore:
    """Disk-backed settings store using one JSON file and atomic writes."""

    def __init__(self, path: Optional[str] = None) -> None:
        target = path or os.getenv("SETTINGS_FILE", DEFAULT_SETTINGS_FILE)
        self.path = Path(target).resolve()

    @staticmethod
    def default_settings() -> DashboardSettings:
        return DashboardSettings(config=config_from_env())

    def load_settings(self) -> DashboardSettings:
        """Load settings from disk, returning env-based defaults if missing/unreadable."""
        if not self.path.exists():
            return self.default_settings()

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            settings = DashboardSettings.model_validate(raw)
            settings.config = normalize_config(settings.config)
            return settings
        except Exception as exc:
            logger.warning(
                "settings_load_warning | path=%s | error_type=%s | error=%s | fallback='default'",
                self.path,
                type(exc).__name__,
                exc,
            )
            return self.default_settings()

    def save_settings(self, settings: DashboardSettings | dict[str, Any]) -> DashboardSettings:
        """Persist settings atomically via temp-file + replace."""
        normalized = DashboardSettings.model_validate(settings)
        normalized.config = normalize_config(normalized.config)
        normalized.updated_at = datetime.now(timezone.utc).isoformat()

        self.path.parent.mkdir(parents=True, exist_ok=True)

        payload = normalized.model_dump(mode="json", by_alias=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(self.path.parent),
            delete=False,
            suffix=".tmp",
            prefix="settings-",
        ) as tmp_file:
            json.dump(payload, tmp_file, ensure_ascii=False, indent=2)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
            tmp_path = Path(tmp_file.name)

        os.replace(tmp_path, self.path)
        logger.info(
            "settings_saved | path=%s | budgets=%s | configured=%s",
            self.path,
            len(normalized.budgets),
            normalized.config.is_configured,
        )
        return normalized

    def reset_settings(self) -> None:
        """Remove the persisted settings file if present."""
        try:
            if self.path.exists():
                self.path.unlink()
        except OSError as exc:
            logger.warning(
                "settings_reset_warning | path=%s | error_type=%s | error=%s",
                self.path,
                type(exc).__name__,
                exc,
            )
