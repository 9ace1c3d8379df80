"""Widget catalog, module store, reconciliation and custom widget data binding."""

from .catalog import CATALOG, WidgetDescriptor, default_modules, get_descriptor
from .contracts import (
    Category,
    CustomWidgetDataConfig,
    CustomWidgetDefinition,
    Module,
    RenderData,
    RenderMode,
    RenderResult,
    WidgetConfigOverride,
)
from .interpreter import DataBindingInterpreter, classify, present
from .reconcile import (
    ALL_VIEW,
    DASHBOARD_VIEW,
    STATISTICS_VIEW,
    ModuleView,
    ReorderError,
    move,
    reconcile,
    reorder_visible,
)
from .record_store import SQLRecordStore, WidgetQueryError
from .service import BuiltinModuleError, DashboardService
from .store import ModuleStore, ModuleStoreError, UnknownModuleError

__all__ = [
    "ALL_VIEW",
    "CATALOG",
    "DASHBOARD_VIEW",
    "STATISTICS_VIEW",
    "BuiltinModuleError",
    "Category",
    "CustomWidgetDataConfig",
    "CustomWidgetDefinition",
    "DashboardService",
    "DataBindingInterpreter",
    "Module",
    "ModuleStore",
    "ModuleStoreError",
    "ModuleView",
    "RenderData",
    "RenderMode",
    "RenderResult",
    "ReorderError",
    "SQLRecordStore",
    "UnknownModuleError",
    "WidgetConfigOverride",
    "WidgetDescriptor",
    "WidgetQueryError",
    "classify",
    "default_modules",
    "get_descriptor",
    "move",
    "present",
    "reconcile",
    "reorder_visible",
]
