from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from pedidos.db.session import get_db
from pedidos.models.domain import Identity
from pedidos.models.schemas import OrderCreate, OrderOut, OrdersResponse, OrderStatusUpdate
from pedidos.services.auth_dependencies import require_identity
from pedidos.services.order_service import (
    create_order,
    delete_order,
    get_order,
    list_orders,
    today,
    update_order_status,
)

router = APIRouter(prefix="/orders", tags=["orders"], dependencies=[Depends(require_identity)])


@router.post("", response_model=OrderOut, status_code=201)
def post_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
) -> OrderOut:
    return create_order(db=db, identity=identity, payload=payload)


@router.get("", response_model=OrdersResponse)
def get_orders(day: date | None = None, db: Session = Depends(get_db)) -> OrdersResponse:
    selected = day or today()
    return OrdersResponse(day=selected.isoformat(), orders=list_orders(db=db, day=selected))


@router.get("/{order_id}", response_model=OrderOut)
def get_order_by_id(order_id: str, db: Session = Depends(get_db)) -> OrderOut:
    order = get_order(db=db, order_id=order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.patch("/{order_id}", response_model=OrderOut)
def patch_order(order_id: str, payload: OrderStatusUpdate, db: Session = Depends(get_db)) -> OrderOut:
    try:
        return update_order_status(db=db, order_id=order_id, status=payload.status)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.delete("/{order_id}")
def remove_order(order_id: str, db: Session = Depends(get_db)) -> dict[str, str]:
    try:
        delete_order(db=db, order_id=order_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"status": "deleted"}
