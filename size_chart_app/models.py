from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    return uuid4().hex


class TemplateKindEnum(str, PyEnum):
    table = "table"
    measurement = "measurement"


class SizeChartTemplate(Base):
    __tablename__ = "size_chart_templates"
    __table_args__ = (UniqueConstraint("shop", "name", name="uq_size_chart_template_shop_name"),)

    id: Mapped[str] = mapped_column(String(length=32), primary_key=True, default=_uuid_str)
    shop: Mapped[str] = mapped_column(String(length=255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    gender: Mapped[str] = mapped_column(String(length=32), nullable=False, default="unisex")
    category: Mapped[str | None] = mapped_column(String(length=128), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    kind: Mapped[TemplateKindEnum] = mapped_column(
        Enum(TemplateKindEnum, name="template_kind"),
        nullable=False,
        default=TemplateKindEnum.table,
        index=True,
    )
    chart_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    assignments: Mapped[list["ProductAssignment"]] = relationship(
        back_populates="template",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProductAssignment.created_at",
    )


class ProductAssignment(Base):
    __tablename__ = "size_chart_product_assignments"
    __table_args__ = (
        UniqueConstraint("template_id", "product_id", name="uq_size_chart_assignment_template_product"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop: Mapped[str] = mapped_column(String(length=255), nullable=False, index=True)
    template_id: Mapped[str] = mapped_column(
        String(length=32),
        ForeignKey("size_chart_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[str] = mapped_column(String(length=64), nullable=False, index=True)
    product_title: Mapped[str | None] = mapped_column(String(length=512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    template: Mapped[SizeChartTemplate] = relationship(back_populates="assignments")


class ThemeSettings(Base):
    __tablename__ = "theme_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop: Mapped[str] = mapped_column(String(length=255), unique=True, nullable=False, index=True)
    button_text: Mapped[str] = mapped_column(String(length=128), nullable=False, default="Size Chart")
    custom_size_button_text: Mapped[str] = mapped_column(
        String(length=128), nullable=False, default="Custom Size"
    )
    button_size: Mapped[str] = mapped_column(String(length=32), nullable=False, default="large")
    button_width: Mapped[str] = mapped_column(String(length=32), nullable=False, default="fit")
    alignment: Mapped[str] = mapped_column(String(length=32), nullable=False, default="center")
    button_type: Mapped[str] = mapped_column(String(length=32), nullable=False, default="primary")
    icon_type: Mapped[str] = mapped_column(String(length=32), nullable=False, default="none")
    icon_position: Mapped[str] = mapped_column(String(length=32), nullable=False, default="left")
    background_color: Mapped[str] = mapped_column(String(length=32), nullable=False, default="#ffffff")
    border_color: Mapped[str] = mapped_column(String(length=32), nullable=False, default="#000000")
    text_color: Mapped[str] = mapped_column(String(length=32), nullable=False, default="#000000")
    border_radius: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    margin_top: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    margin_bottom: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    margin_left: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    margin_right: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    app_url: Mapped[str | None] = mapped_column(String(length=512), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Plan(Base):
    __tablename__ = "plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(length=64), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(length=128), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    currency: Mapped[str] = mapped_column(String(length=3), nullable=False, default="USD")
    interval: Mapped[str] = mapped_column(String(length=16), nullable=False, default="month")
    features: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    limits: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop: Mapped[str] = mapped_column(String(length=255), unique=True, nullable=False, index=True)
    plan_id: Mapped[int] = mapped_column(Integer, ForeignKey("plans.id"), nullable=False)
    plan_name: Mapped[str] = mapped_column(String(length=64), nullable=False, default="free")
    status: Mapped[str] = mapped_column(String(length=32), nullable=False, default="active")
    limits: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    trial_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    plan: Mapped[Plan] = relationship()


class ShopSession(Base):
    __tablename__ = "shop_sessions"

    id: Mapped[str] = mapped_column(String(length=255), primary_key=True)
    shop: Mapped[str] = mapped_column(String(length=255), nullable=False, index=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
