"""Module reconciliation — folds a reordered visible subset back into the full list.

A view (e.g. "enabled dashboard widgets") only exposes part of a tenant's
modules to the drag surface. After the user moves one item inside that
subset, the complete list is rebuilt as::

    M' = V' ++ sort(M \\ V, key=(group, previous order, previous position))

where the groups are, in precedence order: disabled modules, modules whose
category the view excludes, then any remaining enabled modules. Order values
are renumbered from zero. Nothing here performs I/O.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from .contracts import Category, Module

GROUP_DISABLED = 0
GROUP_CATEGORY_EXCLUDED = 1
GROUP_OTHER = 2


class ReorderError(ValueError):
    """Raised when a requested ordering is not a permutation of known modules."""


@dataclass(frozen=True)
class ModuleView:
    """A category + enabled filter defining which modules a screen shows."""

    name: str
    categories: Optional[frozenset[Category]] = None  # None: every category
    enabled_only: bool = True

    def includes_category(self, category: Category) -> bool:
        return self.categories is None or category in self.categories

    def shows(self, module: Module) -> bool:
        if self.enabled_only and not module.enabled:
            return False
        return self.includes_category(module.category)

    def visible(self, modules: Sequence[Module]) -> list[Module]:
        """The view's modules in current display order."""
        return sort_modules(m for m in modules if self.shows(m))


DASHBOARD_VIEW = ModuleView("dashboard", frozenset({Category.DASHBOARD}))
STATISTICS_VIEW = ModuleView("statistics", frozenset({Category.STANDARD, Category.ADVANCED}))
ALL_VIEW = ModuleView("all")

VIEWS: dict[str, ModuleView] = {v.name: v for v in (DASHBOARD_VIEW, STATISTICS_VIEW, ALL_VIEW)}


def get_view(name: str) -> ModuleView:
    try:
        return VIEWS[name]
    except KeyError:
        raise ReorderError(f"Unknown view {name!r}. Allowed: {sorted(VIEWS)}") from None


def sort_modules(modules) -> list[Module]:
    """Sort by order; ties keep their incoming sequence (sorted() is stable)."""
    return sorted(modules, key=lambda m: m.order)


def move(ids: Sequence[str], from_index: int, to_index: int) -> list[str]:
    """Move one element to a new index, shifting the others."""
    result = list(ids)
    size = len(result)
    if from_index == to_index or not (0 <= from_index < size) or not (0 <= to_index < size):
        return result
    item = result.pop(from_index)
    result.insert(to_index, item)
    return result


def _group(module: Module, view: ModuleView) -> int:
    if not module.enabled:
        return GROUP_DISABLED
    if not view.includes_category(module.category):
        return GROUP_CATEGORY_EXCLUDED
    return GROUP_OTHER


def reconcile(
    modules: Sequence[Module],
    reordered_visible_ids: Sequence[str],
    view: ModuleView = ALL_VIEW,
) -> list[Module]:
    """Build the full module list with ``reordered_visible_ids`` placed first.

    Returns copies with ``order`` renumbered from 0; the input is untouched.
    """
    by_id = {m.id: m for m in modules}
    if len(by_id) != len(modules):
        raise ReorderError("Module list contains duplicate ids")

    seen: set[str] = set()
    for module_id in reordered_visible_ids:
        if module_id not in by_id:
            raise ReorderError(f"Unknown module id {module_id!r}")
        if module_id in seen:
            raise ReorderError(f"Module id {module_id!r} repeated in ordering")
        seen.add(module_id)

    if not seen:
        return list(modules)

    position = {m.id: index for index, m in enumerate(modules)}
    head = [by_id[module_id] for module_id in reordered_visible_ids]
    tail = sorted(
        (m for m in modules if m.id not in seen),
        key=lambda m: (_group(m, view), m.order, position[m.id]),
    )
    return [m.model_copy(update={"order": index}) for index, m in enumerate(head + tail)]


def reorder_visible(
    modules: Sequence[Module],
    visible_ids: Sequence[str],
    from_index: int,
    to_index: int,
    view: ModuleView,
) -> list[Module]:
    """Apply a drag from ``visible_ids[from_index]`` onto ``visible_ids[to_index]``.

    ``visible_ids`` is what the client rendered. The move is replayed on the
    view's current visible subset, so a client list that has gone stale can
    only produce a no-op, never a corrupt ordering. A no-op returns the
    modules unchanged, including their order values.
    """
    if not (0 <= from_index < len(visible_ids)) or not (0 <= to_index < len(visible_ids)):
        return list(modules)
    active_id = visible_ids[from_index]
    over_id = visible_ids[to_index]
    if active_id == over_id:
        return list(modules)

    current = [m.id for m in view.visible(modules)]
    if active_id not in current or over_id not in current:
        return list(modules)

    reordered = move(current, current.index(active_id), current.index(over_id))
    return reconcile(modules, reordered, view)
