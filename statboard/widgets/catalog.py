"""Widget Descriptor Catalog — static metadata for every builtin statistics widget.

Default positions follow declaration order. Builtin modules are seeded from
this catalog the first time a tenant's module list is read.
"""

from dataclasses import dataclass

from .contracts import Category, Module, WidgetSize


@dataclass(frozen=True)
class WidgetDescriptor:
    """Immutable description of a builtin widget."""

    id: str
    name: str
    description: str
    category: Category
    default_enabled: bool = True
    default_size: WidgetSize = WidgetSize.MEDIUM
    default_order: int = 0
    is_custom: bool = False

    def to_module(self) -> Module:
        return Module(
            id=self.id,
            name=self.name,
            description=self.description,
            category=self.category,
            size=self.default_size,
            enabled=self.default_enabled,
            order=self.default_order,
        )


_D = Category.DASHBOARD
_A = Category.ADVANCED
_S = Category.STANDARD

_SMALL = WidgetSize.SMALL
_MEDIUM = WidgetSize.MEDIUM
_LARGE = WidgetSize.LARGE
_FULL = WidgetSize.FULL

# (id, name, description, category, size)
_BUILTINS = [
    # SAV dashboard
    ("sav-types-grid", "SAV types", "Breakdown and quick access by SAV type", _D, _MEDIUM),
    ("finance-kpis", "Financial indicators (month)", "Revenue, costs, margin, takeovers", _D, _MEDIUM),
    ("storage-usage", "Storage space", "Storage usage", _D, _MEDIUM),
    ("sav-type-distribution", "SAV distribution", "By service type", _D, _MEDIUM),
    ("monthly-profitability", "Monthly profitability", "Revenue vs costs vs margin", _D, _MEDIUM),
    ("annual-stats", "Annual statistics", "Month-by-month evolution over the year", _D, _LARGE),
    # Combined widgets on the statistics page
    ("financial-overview", "Financial overview", "Combined finance chart with KPIs", _A, _FULL),
    ("performance-trends", "Performance trends", "Combined SAV performance analysis", _A, _FULL),
    ("parts-usage-heatmap", "Parts usage", "Heatmap and usage analysis of parts", _A, _LARGE),
    # Single KPIs
    ("kpi-revenue", "Revenue", "Total revenue", _S, _SMALL),
    ("kpi-expenses", "Expenses", "Cost of parts", _S, _SMALL),
    ("kpi-profit", "Profit", "Net profit", _S, _SMALL),
    ("kpi-takeover", "Takeovers", "Amount and count", _S, _SMALL),
    ("sav-stats", "SAV & duration", "Total SAV and average time", _S, _SMALL),
    ("late-rate", "Late rate", "Late SAV cases", _S, _SMALL),
    # Specialised charts
    ("profitability-chart", "Profitability trend", "Revenue/expenses/profit chart", _S, _MEDIUM),
    ("completed-sav-chart", "Completed SAV", "Completed SAV over time", _S, _MEDIUM),
    ("top-parts-chart", "Top parts used", "Parts ranking", _S, _MEDIUM),
    ("late-rate-chart", "Late rate trend", "Late rate over time", _S, _MEDIUM),
    ("top-devices", "Device podium", "Most repaired phones", _S, _MEDIUM),
    # Comparisons
    ("monthly-comparison", "Monthly comparison", "Month over month comparison", _A, _LARGE),
    ("revenue-breakdown", "Revenue breakdown", "Detailed revenue analysis", _A, _LARGE),
    ("customer-satisfaction", "Customer satisfaction", "Satisfaction indicators", _A, _MEDIUM),
]

CATALOG: tuple[WidgetDescriptor, ...] = tuple(
    WidgetDescriptor(
        id=widget_id,
        name=name,
        description=description,
        category=category,
        default_size=size,
        default_order=position,
    )
    for position, (widget_id, name, description, category, size) in enumerate(_BUILTINS)
)

CATALOG_BY_ID: dict[str, WidgetDescriptor] = {d.id: d for d in CATALOG}


def get_descriptor(widget_id: str) -> WidgetDescriptor | None:
    return CATALOG_BY_ID.get(widget_id)


def is_builtin(widget_id: str) -> bool:
    return widget_id in CATALOG_BY_ID


def default_modules() -> list[Module]:
    """Every builtin at its default state, sorted by default position."""
    return [d.to_module() for d in CATALOG]


def descriptors_in(*categories: Category) -> list[WidgetDescriptor]:
    wanted = set(categories)
    return [d for d in CATALOG if d.category in wanted]
