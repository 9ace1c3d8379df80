"""Declarative Data-Binding Interpreter for custom widgets.

Turns a stored :class:`CustomWidgetDataConfig` into a record-store query and
turns the resulting rows into a render payload. ``classify`` and ``present``
are pure and total: unknown widget or chart types map to ``unsupported`` and
malformed chart rows fall back to a table instead of raising.
"""

from typing import Any, Optional, Sequence

from .contracts import CustomWidgetDataConfig, RenderMode, RenderResult, WidgetType
from .record_store import (
    Aggregate,
    RecordQuery,
    WidgetQueryError,
    parse_group_by,
    parse_projection,
)
from ..utils.logging import get_logger

logger = get_logger("widgets.interpreter")

# "{shop_id}" is what earlier authoring prompts emitted
CURRENT_TENANT_PLACEHOLDERS = frozenset({"current-tenant", "{tenant}", "{shop_id}"})

SUPPORTED_OPERATORS = frozenset({"eq"})

ORDERED_CHART_TYPES = frozenset({"line", "bar", "area"})
CHART_TYPES = ORDERED_CHART_TYPES | {"pie"}

DEFAULT_DISPLAY_CAP = 10


def _coerce_widget_type(widget_type: Any) -> Optional[str]:
    if isinstance(widget_type, WidgetType):
        return widget_type.value
    if isinstance(widget_type, str):
        return widget_type.strip().lower()
    return None


def classify(widget_type: Any, chart_type: Any = None) -> RenderMode:
    """Map a widget shape to a render mode. Never raises."""
    kind = _coerce_widget_type(widget_type)
    if kind == WidgetType.KPI.value:
        return RenderMode.INDICATOR
    if kind == WidgetType.TABLE.value:
        return RenderMode.TABLE
    if kind == WidgetType.CHART.value:
        if isinstance(chart_type, str) and chart_type.strip().lower() in CHART_TYPES:
            return RenderMode.CHART
        return RenderMode.UNSUPPORTED
    return RenderMode.UNSUPPORTED


def _table_result(rows: Sequence[Any], display_cap: int, degraded: bool = False) -> RenderResult:
    # Scalar rows become single-column records
    records = [dict(r) if isinstance(r, dict) else {"value": r} for r in rows]
    columns = list(records[0].keys()) if records else []
    return RenderResult(
        mode=RenderMode.TABLE,
        empty=not rows,
        degraded=degraded,
        columns=columns,
        rows=records[:display_cap],
        total_rows=len(rows),
    )


def present(
    rows: Sequence[dict],
    widget_type: Any,
    chart_type: Any = None,
    display_cap: int = DEFAULT_DISPLAY_CAP,
) -> RenderResult:
    """Shape resolved rows for the render mode of ``widget_type``."""
    rows = list(rows or [])
    mode = classify(widget_type, chart_type)

    if mode is RenderMode.INDICATOR:
        if rows and isinstance(rows[0], dict) and "total" in rows[0]:
            value = rows[0]["total"]
        else:
            value = len(rows)
        return RenderResult(mode=mode, empty=not rows, value=value, total_rows=len(rows))

    if mode is RenderMode.CHART:
        kind = chart_type.strip().lower()
        if any(not isinstance(r, dict) or "name" not in r or "value" not in r for r in rows):
            logger.debug("chart_rows_malformed", chart_type=kind, rows=len(rows))
            return _table_result(rows, display_cap, degraded=True)
        # line/bar/area keep query order as the x-axis; pie is one slice per row
        series = [{"name": r["name"], "value": r["value"]} for r in rows]
        return RenderResult(
            mode=mode,
            empty=not rows,
            chart_type=kind,
            series=series,
            total_rows=len(rows),
        )

    if mode is RenderMode.TABLE:
        return _table_result(rows, display_cap)

    return RenderResult(mode=RenderMode.UNSUPPORTED, empty=not rows, total_rows=len(rows))


class DataBindingInterpreter:
    """Resolves custom widget descriptors against a record store."""

    def __init__(self, record_store, display_cap: int = DEFAULT_DISPLAY_CAP):
        self._record_store = record_store
        self._display_cap = display_cap

    @property
    def display_cap(self) -> int:
        return self._display_cap

    @staticmethod
    def substitute(value: Any, tenant_id: str) -> Any:
        if isinstance(value, str) and value.strip() in CURRENT_TENANT_PLACEHOLDERS:
            return tenant_id
        return value

    def build_query(self, config: CustomWidgetDataConfig, tenant_id: str) -> RecordQuery:
        """Translate a descriptor into a :class:`RecordQuery`.

        Raises WidgetQueryError for operators or expressions outside the
        supported subset. Table and column existence is checked by the store.
        """
        filters = []
        for flt in config.filters:
            operator = (flt.operator or "eq").strip().lower()
            if operator not in SUPPORTED_OPERATORS:
                raise WidgetQueryError(
                    f"Unsupported filter operator {flt.operator!r} on {flt.column!r}"
                )
            filters.append((flt.column, self.substitute(flt.value, tenant_id)))

        return RecordQuery(
            table=config.table,
            projections=parse_projection(config.select),
            filters=tuple(filters),
            aggregates=tuple(
                Aggregate(function=a.function, column=a.column, alias=a.alias)
                for a in config.aggregations
            ),
            group_by=parse_group_by(config.group_by),
            order_by=config.order_by,
            ascending=config.ascending,
            limit=config.limit,
        )

    async def resolve(self, config: CustomWidgetDataConfig, tenant_id: str) -> list[dict]:
        """Execute the descriptor for ``tenant_id``. Re-queries on every call."""
        query = self.build_query(config, tenant_id)
        rows = await self._record_store.fetch(query, tenant_id)
        logger.debug("widget_resolved", table=config.table, rows=len(rows))
        return rows

    def present(self, rows: Sequence[dict], widget_type: Any, chart_type: Any = None) -> RenderResult:
        return present(rows, widget_type, chart_type, display_cap=self._display_cap)
