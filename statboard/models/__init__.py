"""SQLAlchemy models package."""

from .base import Base
from .custom_widget import CustomWidget
from .dashboard_module import DashboardModule
from .widget_configuration import WidgetConfiguration
# Record store
from .records import RECORD_TABLES, Customer, Part, Quote, SavCase

__all__ = [
    "Base",
    "CustomWidget",
    "DashboardModule",
    "WidgetConfiguration",
    "Customer",
    "Part",
    "Quote",
    "SavCase",
    "RECORD_TABLES",
]
