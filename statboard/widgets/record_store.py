"""Allow-listed, schema-validated query builder over record tables.

Custom widget descriptors name tables and columns as plain strings. Nothing
reaches the database unless the table is both declared on the metadata and
listed in the configured allow-list, and every referenced column exists on
that table. Identifiers are never interpolated into SQL text.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Table, asc, desc, func, select
from sqlalchemy.exc import SQLAlchemyError

from ..models import RECORD_TABLES, Base
from ..utils.logging import get_logger

logger = get_logger("widgets.record_store")

TENANT_COLUMN = "tenant_id"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")
_PROJECTION_RE = re.compile(
    r"^\s*([A-Za-z_][A-Za-z0-9_]*)(?:\s+as\s+([A-Za-z_][A-Za-z0-9_]*))?\s*$",
    re.IGNORECASE,
)

AGGREGATE_FUNCTIONS = {
    "count": func.count,
    "sum": func.sum,
    "avg": func.avg,
    "min": func.min,
    "max": func.max,
}


class WidgetQueryError(ValueError):
    """A descriptor references a source, column or construct the store rejects."""


@dataclass(frozen=True)
class Projection:
    column: str
    alias: str


@dataclass(frozen=True)
class Aggregate:
    function: str
    column: str
    alias: str


@dataclass(frozen=True)
class RecordQuery:
    """Validated-shape query against one record table."""

    table: str
    projections: tuple[Projection, ...] = ()  # empty: every column
    filters: tuple[tuple[str, Any], ...] = ()  # equality predicates
    aggregates: tuple[Aggregate, ...] = ()
    group_by: tuple[str, ...] = ()
    order_by: Optional[str] = None
    ascending: bool = True
    limit: Optional[int] = None


def parse_projection(select_clause: Optional[str]) -> tuple[Projection, ...]:
    """Parse ``"id, device_brand as name"`` into projections. ``*`` means all."""
    if select_clause is None or select_clause.strip() in ("", "*"):
        return ()
    projections = []
    for part in select_clause.split(","):
        match = _PROJECTION_RE.match(part)
        if not match:
            raise WidgetQueryError(f"Unsupported select expression: {part.strip()!r}")
        column, alias = match.group(1), match.group(2)
        projections.append(Projection(column=column, alias=alias or column))
    return tuple(projections)


def parse_group_by(group_clause: Optional[str]) -> tuple[str, ...]:
    if not group_clause:
        return ()
    names = tuple(part.strip() for part in group_clause.split(",") if part.strip())
    for name in names:
        if not _IDENTIFIER_RE.match(name):
            raise WidgetQueryError(f"Unsupported group_by expression: {name!r}")
    return names


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


class SQLRecordStore:
    """Executes :class:`RecordQuery` objects through SQLAlchemy Core."""

    def __init__(
        self,
        session_factory,
        allowed_sources,
        max_limit: int = 1000,
        metadata=None,
        record_tables=RECORD_TABLES,
    ):
        self._session_factory = session_factory
        self._metadata = metadata if metadata is not None else Base.metadata
        # Only declared record tables can ever be allow-listed
        self._allowed = frozenset(allowed_sources) & frozenset(record_tables)
        self._max_limit = max_limit

    @property
    def allowed_sources(self) -> frozenset[str]:
        return self._allowed

    def _table(self, name: str) -> Table:
        if name not in self._allowed or name not in self._metadata.tables:
            raise WidgetQueryError(f"Unknown or disallowed data source {name!r}")
        return self._metadata.tables[name]

    @staticmethod
    def _column(table: Table, name: str):
        if not _IDENTIFIER_RE.match(name or "") or name not in table.c:
            raise WidgetQueryError(f"Unknown column {name!r} on {table.name!r}")
        return table.c[name]

    def build(self, query: RecordQuery, tenant_id: str):
        """Compile ``query`` into a SQLAlchemy select, scoped to ``tenant_id``."""
        table = self._table(query.table)
        selected = []
        labelled = {}

        for projection in query.projections:
            if not _IDENTIFIER_RE.match(projection.alias):
                raise WidgetQueryError(f"Invalid alias {projection.alias!r}")
            expr = self._column(table, projection.column).label(projection.alias)
            selected.append(expr)
            labelled[projection.alias] = expr

        for aggregate in query.aggregates:
            fn = AGGREGATE_FUNCTIONS.get(aggregate.function.lower())
            if fn is None:
                raise WidgetQueryError(
                    f"Unsupported aggregation {aggregate.function!r}. "
                    f"Allowed: {sorted(AGGREGATE_FUNCTIONS)}"
                )
            if not _IDENTIFIER_RE.match(aggregate.alias):
                raise WidgetQueryError(f"Invalid alias {aggregate.alias!r}")
            expr = fn(self._column(table, aggregate.column)).label(aggregate.alias)
            selected.append(expr)
            labelled[aggregate.alias] = expr

        group_columns = [self._column(table, name) for name in query.group_by]
        if query.aggregates:
            stray = [p.column for p in query.projections if p.column not in query.group_by]
            if stray:
                raise WidgetQueryError(
                    f"Columns {stray} must appear in group_by when aggregating"
                )
        elif group_columns:
            raise WidgetQueryError("group_by requires at least one aggregation")

        stmt = select(*selected).select_from(table) if selected else select(table)

        # Tenant scoping is not optional, whatever the descriptor filters on
        if TENANT_COLUMN in table.c:
            stmt = stmt.where(table.c[TENANT_COLUMN] == tenant_id)
        for column, value in query.filters:
            stmt = stmt.where(self._column(table, column) == value)

        if group_columns:
            stmt = stmt.group_by(*group_columns)

        if query.order_by:
            target = labelled.get(query.order_by)
            if target is None:
                target = self._column(table, query.order_by)
            stmt = stmt.order_by(asc(target) if query.ascending else desc(target))

        limit = self._max_limit if query.limit is None else min(query.limit, self._max_limit)
        return stmt.limit(limit)

    async def fetch(self, query: RecordQuery, tenant_id: str) -> list[dict]:
        """Run ``query`` and return JSON-safe row dicts."""
        stmt = self.build(query, tenant_id)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = [
                    {key: _jsonable(value) for key, value in row._mapping.items()}
                    for row in result
                ]
        except SQLAlchemyError as e:
            logger.warning("record_query_failed", table=query.table, error=str(e))
            raise WidgetQueryError(
                f"Query on {query.table!r} was rejected by the database"
            ) from e
        return rows
