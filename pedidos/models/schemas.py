from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

OrderStatus = Literal["pending", "preparing", "out_for_delivery", "delivered", "cancelled"]
OrderType = Literal["delivery", "pickup", "dine_in"]


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ClientLoginRequest(BaseModel):
    id_token: str = Field(min_length=1)


class TokenResponse(BaseModel):
    ok: bool = True
    token: str


class ClientTokenResponse(TokenResponse):
    client_id: str


class IdentityOut(BaseModel):
    subject_id: str
    role: Literal["internal", "client"]
    label: str | None = None
    expires_at: datetime


class Address(BaseModel):
    street: str = ""
    number: str = ""
    district: str = ""
    reference: str = ""


class Courier(BaseModel):
    id: str = ""
    name: str = ""


class OrderItem(BaseModel):
    name: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    notes: str | None = None


class OrderCreate(BaseModel):
    """New order. Only `customer` and `address` are required."""

    customer: str = Field(min_length=1, max_length=255)
    address: Address
    phone: str = "-"
    order_type: OrderType = "delivery"
    payment_method: str = "other"
    status: OrderStatus = "pending"
    delivery_fee: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(default=Decimal("0"), ge=0)
    estimated_delivery_minutes: int = Field(default=30, gt=0)
    courier: Courier = Field(default_factory=Courier)
    items: list[OrderItem] = Field(default_factory=list)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderOut(BaseModel):
    id: str
    customer: str
    address: Address
    phone: str
    order_type: OrderType
    payment_method: str
    status: OrderStatus
    delivery_fee: Decimal
    total: Decimal
    estimated_delivery_minutes: int
    courier: Courier
    items: list[OrderItem]
    created_by: str
    created_at: datetime


class OrdersResponse(BaseModel):
    day: str
    orders: list[OrderOut]


class MetricRecordOut(BaseModel):
    subject_id: str
    method: str
    path: str
    status_code: int | None
    elapsed_ms: int
    captured_at: datetime
    client_ip: str | None = None
    user_agent: str | None = None


class MetricsResponse(BaseModel):
    subject_id: str | None
    count: int
    records: list[MetricRecordOut]
