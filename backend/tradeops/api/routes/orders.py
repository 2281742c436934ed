from __future__ import annotations

# ruff: noqa: B008
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from tradeops import models
from tradeops.api.deps import reject_null_required, require_roles
from tradeops.database import get_db
from tradeops.schemas import (
    BLOrderRead,
    HasExecutedHedgeRead,
    OrderCreate,
    OrderRead,
    OrderUpdate,
    PlannedShipmentsRequest,
)
from tradeops.services.hedging import order_has_executed_hedge
from tradeops.services.order_matching import create_planned_bl_orders, order_margin_pct

router = APIRouter(prefix="/orders", tags=["orders"])

_read_roles_dep = require_roles()
_write_roles_dep = require_roles(models.RoleName.trader, models.RoleName.operations)


def _get_order(db: Session, order_id: str) -> models.Order:
    order = db.get(models.Order, order_id)
    if order is None or order.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


@router.get("", response_model=List[OrderRead])
def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    q = db.query(models.Order).filter(models.Order.deleted_at.is_(None))
    if status_filter:
        q = q.filter(models.Order.status == status_filter)
    return q.order_by(models.Order.created_at.desc(), models.Order.id.desc()).limit(limit).all()


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return _get_order(db, order_id)


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    if db.get(models.Order, payload.id) is not None:
        raise HTTPException(status_code=409, detail="Order already exists")

    order = models.Order(**reject_null_required(models.Order, payload.model_dump(exclude_unset=True)))
    order.margin = order_margin_pct(order.buy_price, order.sell_price)
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


@router.put("/{order_id}", response_model=OrderRead)
def update_order(
    order_id: str,
    payload: OrderUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    order = _get_order(db, order_id)
    data = reject_null_required(models.Order, payload.model_dump(exclude_unset=True))
    for field, value in data.items():
        setattr(order, field, value)
    order.margin = order_margin_pct(order.buy_price, order.sell_price)
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    order = _get_order(db, order_id)
    order.deleted_at = datetime.now(timezone.utc)
    db.add(order)
    db.commit()


@router.get("/{order_id}/bl-orders", response_model=List[BLOrderRead])
def list_order_bl_orders(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    order = _get_order(db, order_id)
    return [bl for bl in order.bl_orders if bl.deleted_at is None]


@router.post(
    "/{order_id}/planned-shipments",
    response_model=List[BLOrderRead],
    status_code=status.HTTP_201_CREATED,
)
def create_planned_shipments(
    order_id: str,
    payload: Optional[PlannedShipmentsRequest] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    order = _get_order(db, order_id)
    count = payload.count if payload is not None else None
    created = create_planned_bl_orders(db=db, order=order, count=count)
    db.commit()
    for bl in created:
        db.refresh(bl)
    return created


@router.get("/{order_id}/has-executed-hedge", response_model=HasExecutedHedgeRead)
def has_executed_hedge(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    _get_order(db, order_id)
    return HasExecutedHedgeRead(has_executed_hedge=order_has_executed_hedge(db, order_id))
