from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from pedidos.db.models import Order
from pedidos.models.domain import Identity
from pedidos.models.schemas import Address, Courier, OrderCreate, OrderItem, OrderOut, OrderStatus

logger = logging.getLogger(__name__)


def _to_out(order: Order) -> OrderOut:
    return OrderOut(
        id=order.id,
        customer=order.customer,
        address=Address(
            street=order.address_street,
            number=order.address_number,
            district=order.address_district,
            reference=order.address_reference,
        ),
        phone=order.phone,
        order_type=order.order_type,  # type: ignore[arg-type]
        payment_method=order.payment_method,
        status=order.status,  # type: ignore[arg-type]
        delivery_fee=order.delivery_fee,
        total=order.total,
        estimated_delivery_minutes=order.estimated_delivery_minutes,
        courier=Courier(id=order.courier_id, name=order.courier_name),
        items=[OrderItem.model_validate(item) for item in order.items or []],
        created_by=order.created_by,
        created_at=order.created_at,
    )


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def today() -> date:
    return datetime.now(timezone.utc).date()


def create_order(db: Session, identity: Identity, payload: OrderCreate) -> OrderOut:
    order = Order(
        customer=payload.customer,
        phone=payload.phone,
        address_street=payload.address.street,
        address_number=payload.address.number,
        address_district=payload.address.district,
        address_reference=payload.address.reference,
        order_type=payload.order_type,
        payment_method=payload.payment_method,
        status=payload.status,
        delivery_fee=payload.delivery_fee,
        total=payload.total,
        estimated_delivery_minutes=payload.estimated_delivery_minutes,
        courier_id=payload.courier.id,
        courier_name=payload.courier.name,
        items=[item.model_dump(mode="json") for item in payload.items],
        created_by=identity.subject_id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(order)
    db.commit()
    db.refresh(order)

    logger.info("order.created", extra={"order_id": order.id, "subject_id": identity.subject_id})
    return _to_out(order)


def list_orders(db: Session, day: date) -> list[OrderOut]:
    start, end = _day_bounds(day)
    rows = db.execute(
        select(Order).where(Order.created_at >= start, Order.created_at < end).order_by(Order.created_at.desc())
    ).scalars()
    return [_to_out(row) for row in rows]


def get_order(db: Session, order_id: str) -> OrderOut | None:
    order = db.get(Order, order_id)
    return _to_out(order) if order else None


def update_order_status(db: Session, order_id: str, status: OrderStatus) -> OrderOut:
    order = db.get(Order, order_id)
    if order is None:
        raise LookupError("Order not found")

    order.status = status
    db.add(order)
    db.commit()
    db.refresh(order)

    logger.info("order.status_changed", extra={"order_id": order_id, "status": status})
    return _to_out(order)


def delete_order(db: Session, order_id: str) -> None:
    order = db.get(Order, order_id)
    if order is None:
        raise LookupError("Order not found")
    db.delete(order)
    db.commit()
    logger.info("order.deleted", extra={"order_id": order_id})
