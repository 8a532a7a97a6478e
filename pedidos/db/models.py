from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class RequestMetric(Base):
    __tablename__ = "request_metrics"
    __table_args__ = (Index("ix_request_metrics_subject_captured", "subject_id", "captured_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    method: Mapped[str] = mapped_column(String(16), nullable=False)
    path: Mapped[str] = mapped_column(Text, index=True, nullable=False)
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    elapsed_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    captured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True, nullable=False)
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    customer: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(64), nullable=False, default="-")
    address_street: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    address_number: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    address_district: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    address_reference: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    order_type: Mapped[str] = mapped_column(String(32), nullable=False, default="delivery")
    payment_method: Mapped[str] = mapped_column(String(64), nullable=False, default="other")
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    estimated_delivery_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    courier_id: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    courier_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    items: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    created_by: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True, default=_utcnow, nullable=False)
