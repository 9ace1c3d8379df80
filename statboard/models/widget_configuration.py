"""Per-module widget configuration override (temporality and filters)."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class WidgetConfiguration(Base):
    __tablename__ = "widget_configurations"
    __table_args__ = (
        UniqueConstraint("tenant_id", "module_id", name="uq_widget_configurations_tenant_module"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    module_id: Mapped[str] = mapped_column(String(100), nullable=False)
    temporality: Mapped[str] = mapped_column(String(20), default="monthly", nullable=False)
    # NULL means "all"
    status_filter_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type_filter_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )
