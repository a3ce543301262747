"""
models.py - Data models shared by every stage of the expense pipeline.

Pipeline flow and the model each stage produces:

    collection_client.py -> list[CollectionItem]   (raw, untrusted)
    normalize.py         -> list[Expense]          (canonical, trusted)
    date_filter.py       -> list[Expense]          (narrowed)
    aggregate.py         -> ExpenseReport          (derived views)

Design principles:
1. Raw items are accepted in whatever shape the collection API returns;
   only `Expense` and the derived views have a fixed schema.
2. Money is fixed-point `Decimal` internally and a plain JSON number on
   the wire.
3. Output models serialize with camelCase keys, the shape the dashboard
   front end consumes. Inputs accept snake_case and camelCase alike.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

ZERO = Decimal("0")

UNKNOWN = "Unknown"
DEFAULT_CATEGORY = "📦 Other"
NOT_AVAILABLE = "N/A"

Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]


class WireModel(BaseModel):
    """Base for models exchanged with the front end (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class DateRange(str, Enum):
    """Date windows offered by the dashboard filter."""

    ALL = "all"
    THIS_MONTH = "thisMonth"
    LAST_MONTH = "lastMonth"
    LAST_3_MONTHS = "last3Months"
    THIS_YEAR = "thisYear"


class BudgetStatus(str, Enum):
    """Traffic-light status of one category budget for the current month."""

    # Under 70% of the monthly limit.
    SAFE = "safe"
    # 70% up to (not including) 90%.
    WARNING = "warning"
    # 90% and above, including overspend.
    DANGER = "danger"


class CollectionItem(WireModel):
    """One raw item as returned by the collection API's items endpoint.

    Nothing about the shape is guaranteed beyond an identifier. The
    `properties` bag holds user-defined columns under whatever names the
    collection owner chose ("Store", "payment_method", "Total Amount", ...),
    with values that may be strings, numbers, lists or nested objects.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str = ""
    title: Optional[str] = None
    merchant: Any = None
    properties: dict[str, Any] = Field(default_factory=dict)
    markdown: Optional[str] = None
    content: Optional[list[Any]] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("title", "markdown", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Optional[str]:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return None

    @field_validator("properties", mode="before")
    @classmethod
    def _properties_default(cls, value: Any) -> dict[str, Any]:
        if isinstance(value, dict):
            return {str(key): raw for key, raw in value.items()}
        return {}

    @field_validator("content", mode="before")
    @classmethod
    def _content_list(cls, value: Any) -> Optional[list[Any]]:
        return value if isinstance(value, list) else None


class Expense(WireModel):
    """Canonical expense record produced by `normalize.normalize_item`.

    Created once per raw item and never modified afterwards; the
    aggregation functions only read it.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(..., description="Identifier of the source collection item.")
    title: str = ""
    merchant: str = UNKNOWN
    date: str = Field(
        default="",
        description="ISO calendar date as given by the source; empty when undated.",
    )
    category: str = DEFAULT_CATEGORY
    subtotal: Money = Field(default=ZERO, ge=0)
    tax: Money = Field(
        default=ZERO,
        ge=0,
        description="Informational only; never reconciled against subtotal/total.",
    )
    total: Money = Field(
        default=ZERO,
        ge=0,
        description="Amount spent. Falls back to subtotal when the source has no total.",
    )
    payment_method: str = UNKNOWN
    summary: str = ""
    logged_at: str = ""


class EndpointConfig(WireModel):
    """Where to fetch items from: API base URL, optional key, optional collection."""

    api_base_url: str = ""
    api_key: str = ""
    collection_id: str = ""

    @field_validator("api_base_url", "api_key", "collection_id", mode="before")
    @classmethod
    def _blank_when_missing(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_base_url.strip())


class CollectionRef(WireModel):
    """One entry of the collections listing (`{"items": [{id, name}]}`)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str
    name: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("name", mode="before")
    @classmethod
    def _name_as_text(cls, value: Any) -> Optional[str]:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return None


class Budget(WireModel):
    """Monthly spending limit for one category label.

    The label must equal `Expense.category` exactly (emoji included) for
    spend to count against it.
    """

    category: str
    monthly_limit: Money = Field(default=ZERO, ge=0)


class CategorySummary(WireModel):
    category: str
    total: Money
    count: int
    percentage: Money
    color: str


class MerchantSummary(WireModel):
    merchant: str
    total: Money
    count: int
    average_transaction: Money


class MonthlySummary(WireModel):
    month: str = Field(..., description="Display label such as 'Dec 2025'.")
    total: Money
    count: int


class DailySummary(WireModel):
    date: str
    total: Money
    count: int


class ExpenseStats(WireModel):
    total_spending: Money = ZERO
    transaction_count: int = 0
    average_transaction: Money = ZERO
    top_category: str = NOT_AVAILABLE
    top_merchant: str = NOT_AVAILABLE
    top_payment_method: str = NOT_AVAILABLE


class BudgetProgress(WireModel):
    category: str
    spent: Money
    limit: Money
    percentage: Money
    status: BudgetStatus

    @property
    def remaining(self) -> Decimal:
        """Amount left this month; negative when the budget is exceeded."""
        return self.limit - self.spent


class ExpenseReport(WireModel):
    """Everything the dashboard renders for one request."""

    records: list[Expense] = Field(default_factory=list)
    stats: ExpenseStats = Field(default_factory=ExpenseStats)
    category_breakdown: list[CategorySummary] = Field(default_factory=list)
    merchant_breakdown: list[MerchantSummary] = Field(default_factory=list)
    monthly_trend: list[MonthlySummary] = Field(default_factory=list)
    daily_trend: list[DailySummary] = Field(default_factory=list)
    budget_progress: Optional[list[BudgetProgress]] = None
