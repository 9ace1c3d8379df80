"""Custom widget: declarative definition produced by the authoring flow."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class CustomWidget(Base):
    __tablename__ = "custom_widgets"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    original_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    ai_interpretation_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    widget_type: Mapped[str] = mapped_column(String(20), nullable=False)  # kpi / chart / table
    chart_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    data_source: Mapped[str] = mapped_column(String(100), nullable=False)
    data_config_json: Mapped[str] = mapped_column(Text, nullable=False)
    display_config_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    revision: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )
