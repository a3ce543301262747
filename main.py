"""
main.py - CLI orchestration for the expense insights pipeline.

This module is orchestration-only:
1. load or fetch raw collection items
2. normalize
3. filter + aggregate
4. format
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from aggregate import build_report
from collection_client import CollectionApiError, CollectionClient
from endpoints import ConfigurationError
from logging_config import get_logger, setup_logging
from models import Budget, DateRange, Expense, ExpenseReport
from normalize import normalize_items
from report import format_report_json, format_report_text
from settings_store import SettingsStore

logger = get_logger("expense-insights")

SAMPLE_ITEMS_PATH = Path(__file__).resolve().parent / "sample_data" / "collection_items.json"


def _items_from_payload(payload: Any) -> list[Any]:
    if isinstance(payload, dict):
        items = payload.get("items")
        if isinstance(items, list):
            return items
        raise ValueError("Items JSON must be a list or an object with an 'items' list.")
    if isinstance(payload, list):
        return payload
    raise ValueError("Items JSON must be a list or an object with an 'items' list.")


def load_items_json(path: str | Path) -> list[Any]:
    """Load raw items from a saved collection API response."""
    path = Path(str(path).strip())
    if not path.is_file():
        raise FileNotFoundError(f"Items file not found: {path}\nProvide a valid path with --items")

    try:
        payload = json.loads(path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to parse items JSON '{path}': {exc}") from exc

    items = _items_from_payload(payload)
    logger.info("items_loaded | path=%s | items=%s", path, len(items))
    return items


def load_items_csv(path: str | Path) -> list[dict[str, Any]]:
    """Load raw items from a collection table exported as CSV.

    Every column except `id` and `title` becomes an item property, so the
    export goes through the same alias matching as live API items.
    """
    csv_path = str(path).strip()
    if not os.path.exists(csv_path):
        raise FileNotFoundError(f"Items CSV not found: {csv_path}\nProvide a valid path with --csv")

    try:
        df = pd.read_csv(csv_path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except UnicodeDecodeError:
        logger.warning(
            "csv_encoding_warning | path=%s | reason='utf-8 decode failed' | fallback=latin-1",
            csv_path,
        )
        df = pd.read_csv(csv_path, dtype=str, keep_default_na=False, encoding="latin-1")
    except Exception as exc:
        raise ValueError(f"Failed to read CSV '{csv_path}': {exc}") from exc

    df.columns = [str(column).strip() for column in df.columns]
    lowered = {column.lower(): column for column in df.columns}
    id_column = lowered.get("id")
    title_column = lowered.get("title")

    items: list[dict[str, Any]] = []
    for position, row in enumerate(df.to_dict(orient="records"), start=1):
        if not any(str(value).strip() for value in row.values()):
            continue
        item_id = str(row.pop(id_column, "") or position) if id_column else str(position)
        title = row.pop(title_column, "") if title_column else ""
        items.append({"id": item_id, "title": title or None, "properties": row})

    logger.info("csv_loaded | path=%s | rows=%s | columns=%s", csv_path, len(items), list(df.columns))
    return items


def load_budgets(path: Optional[str]) -> Optional[list[Budget]]:
    """Budgets from a JSON list, or from the settings file when no path is given."""
    if path:
        budgets_path = Path(path)
        if not budgets_path.is_file():
            raise FileNotFoundError(f"Budgets file not found: {budgets_path}")
        try:
            raw = json.loads(budgets_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Failed to parse budgets JSON '{budgets_path}': {exc}") from exc
        if not isinstance(raw, list):
            raise ValueError("Budgets JSON must be a list of {category, monthlyLimit} objects.")
        return [Budget.model_validate(entry) for entry in raw]

    settings = SettingsStore().load_settings()
    return settings.budgets or None


def fetch_expenses() -> list[Expense]:
    """Fetch and normalize items from the configured collection link."""
    settings = SettingsStore().load_settings()
    with CollectionClient(settings.config) as client:
        return client.fetch_expenses()


def run_pipeline(
    items: list[Any] | None = None,
    expenses: list[Expense] | None = None,
    date_range: DateRange | str = DateRange.ALL,
    budgets: Optional[list[Budget]] = None,
) -> ExpenseReport:
    """Run normalization and aggregation for one batch of items."""
    pipeline_start = time.time()

    if expenses is None:
        stage_start = time.time()
        expenses = normalize_items(items or [])
        logger.info(
            "pipeline_stage | name=normalize | status=complete | expenses=%s | duration_s=%.3f",
            len(expenses),
            time.time() - stage_start,
        )

    report = build_report(expenses, date_range=date_range, budgets=budgets)
    logger.info(
        "pipeline_complete | range=%s | selected=%s | total_duration_s=%.3f",
        getattr(date_range, "value", date_range),
        len(report.records),
        time.time() - pipeline_start,
    )
    return report


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point for expense insights."""
    parser = argparse.ArgumentParser(
        prog="expense-insights",
        description=(
            "Expense insights for receipt collections\n"
            "Normalizes collection items into expenses and reports totals, "
            "breakdowns, trends and budget status."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s --items sample_data/collection_items.json\n"
            "  %(prog)s --csv receipts.csv --range thisMonth --json\n"
            "  %(prog)s --fetch --range last3Months --budgets budgets.json\n"
        ),
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--items", "-i", type=str, help="Path to a saved items JSON response")
    source.add_argument("--csv", "-c", type=str, help="Path to a collection table exported as CSV")
    source.add_argument(
        "--fetch",
        "-f",
        action="store_true",
        help="Fetch items from the configured collection API (env or settings file)",
    )
    source.add_argument(
        "--sample",
        action="store_true",
        help="Use the bundled sample items",
    )
    parser.add_argument(
        "--range",
        "-r",
        choices=[option.value for option in DateRange],
        default=DateRange.ALL.value,
        help="Date window for stats and breakdowns (default: all)",
    )
    parser.add_argument(
        "--budgets",
        "-b",
        type=str,
        help="Path to a budgets JSON list (default: budgets from the settings file)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose (DEBUG-level) logging",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output the report as JSON instead of formatted text",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs as JSON lines (for production/log aggregation)",
    )

    args = parser.parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_format=args.log_json,
    )

    if not (args.items or args.csv or args.fetch or args.sample):
        parser.error("Provide one of --items PATH, --csv PATH, --fetch or --sample")

    try:
        budgets = load_budgets(args.budgets)
        if args.fetch:
            logger.info("cli_mode | mode=fetch | range=%s", args.range)
            report = run_pipeline(expenses=fetch_expenses(), date_range=args.range, budgets=budgets)
        else:
            if args.csv:
                items = load_items_csv(args.csv)
            else:
                items = load_items_json(args.items or SAMPLE_ITEMS_PATH)
            logger.info("cli_mode | mode=file | items=%s | range=%s", len(items), args.range)
            report = run_pipeline(items=items, date_range=args.range, budgets=budgets)

        if args.json:
            print(json.dumps(format_report_json(report), indent=2, ensure_ascii=False))
        else:
            print(format_report_text(report))
    except ConfigurationError as exc:
        logger.error("cli_error | type=ConfigurationError | error=%s", exc)
        print(f"\nConfiguration error: {exc}")
        raise SystemExit(1) from exc
    except CollectionApiError as exc:
        logger.error("cli_error | type=CollectionApiError | status=%s | error=%s", exc.status_code, exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except FileNotFoundError as exc:
        logger.error("cli_error | type=FileNotFoundError | error=%s", exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except ValueError as exc:
        logger.error("cli_error | type=ValueError | error=%s", exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        print("\nInterrupted.")
        raise SystemExit(130)
    except Exception as exc:
        logger.error(
            "cli_error | type=%s | error=%s",
            type(exc).__name__,
            exc,
            exc_info=True,
        )
        print(f"\nUnexpected error: {exc}")
        print("Run with --verbose for full traceback.")
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
