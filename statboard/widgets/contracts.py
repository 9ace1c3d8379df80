"""Pydantic models for modules, descriptors and render output."""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Category(str, Enum):
    DASHBOARD = "dashboard"
    ADVANCED = "advanced"
    STANDARD = "standard"


class WidgetSize(str, Enum):
    SMALL = "small"    # 1 grid column
    MEDIUM = "medium"  # 2 grid columns
    LARGE = "large"    # 4 grid columns
    FULL = "full"      # 4 grid columns, dashboard-height


class WidgetType(str, Enum):
    KPI = "kpi"
    CHART = "chart"
    TABLE = "table"


class Temporality(str, Enum):
    MONTHLY = "monthly"                    # rolling 30 days
    MONTHLY_CALENDAR = "monthly_calendar"  # since the 1st of the month
    QUARTERLY = "quarterly"                # last 3 months
    YEARLY = "yearly"                      # last 12 months


class RenderMode(str, Enum):
    INDICATOR = "indicator"
    CHART = "chart"
    TABLE = "table"
    UNSUPPORTED = "unsupported"


# ── Custom widget descriptor ──
class WidgetFilter(BaseModel):
    column: str
    operator: str = "eq"
    value: Any = None


class WidgetAggregation(BaseModel):
    function: str  # count / sum / avg / min / max
    column: str = "id"
    alias: str = "total"


class CustomWidgetDataConfig(BaseModel):
    """Declarative data binding of a custom widget.

    Unknown keys sent by the authoring flow are kept so the descriptor
    round-trips unchanged. camelCase keys (``orderBy``, ``groupBy``) are
    accepted on input; output always uses snake_case.
    """

    model_config = ConfigDict(extra="allow")

    table: str = Field(min_length=1)
    select: Optional[str] = None
    filters: list[WidgetFilter] = []
    order_by: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("order_by", "orderBy")
    )
    ascending: bool = True
    limit: Optional[int] = Field(default=None, ge=1)
    aggregations: list[WidgetAggregation] = []
    group_by: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("group_by", "groupBy")
    )


class CustomWidgetDefinition(BaseModel):
    """Payload produced by the widget-authoring flow for create/update."""

    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    original_prompt: str = Field(min_length=1)
    ai_interpretation: Optional[dict[str, Any]] = None
    widget_type: WidgetType
    chart_type: Optional[str] = None
    data_source: Optional[str] = None
    data_config: CustomWidgetDataConfig
    display_config: dict[str, Any] = {}
    # None keeps the current state on update; create defaults to enabled
    enabled: Optional[bool] = None


# ── Modules ──
class Module(BaseModel):
    id: str
    name: str
    description: str = ""
    category: Category = Category.STANDARD
    size: WidgetSize = WidgetSize.MEDIUM
    enabled: bool = True
    order: int = 0
    is_custom: bool = False
    custom_widget_id: Optional[str] = None
    original_prompt: Optional[str] = None
    ai_interpretation: Optional[dict[str, Any]] = None
    widget_type: Optional[WidgetType] = None
    chart_type: Optional[str] = None
    data_source: Optional[str] = None
    data_config: Optional[CustomWidgetDataConfig] = None
    display_config: Optional[dict[str, Any]] = None
    revision: Optional[int] = None


class WidgetConfigOverride(BaseModel):
    temporality: Temporality = Temporality.MONTHLY
    status_filter: Optional[list[str]] = None
    type_filter: Optional[list[str]] = None

    @field_validator("status_filter", "type_filter")
    @classmethod
    def empty_means_all(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        if not v:
            return None
        return v


# ── Rendering ──
class RenderResult(BaseModel):
    mode: RenderMode
    empty: bool = False
    degraded: bool = False
    chart_type: Optional[str] = None
    value: Any = None
    series: list[dict[str, Any]] = []
    columns: list[str] = []
    rows: list[dict[str, Any]] = []
    total_rows: int = 0


class RenderData(BaseModel):
    module_id: str
    revision: int
    render_mode: RenderMode
    rows: list[dict[str, Any]]
    result: RenderResult
    error: Optional[str] = None
