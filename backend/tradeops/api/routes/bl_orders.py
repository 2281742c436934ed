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
    BLAllocateRequest,
    BLExtractionRead,
    BLExtractionUpsert,
    BLOrderCreate,
    BLOrderRead,
    BLOrderUpdate,
    ContainerRead,
    ContainersReplace,
    HasExecutedHedgeRead,
)
from tradeops.services.hedging import bl_order_has_executed_hedge
from tradeops.services.order_matching import allocate_bl_orders

router = APIRouter(prefix="/bl-orders", tags=["bl-orders"])

_read_roles_dep = require_roles()
_write_roles_dep = require_roles(models.RoleName.operations, models.RoleName.trader)

# Extraction fields mirrored onto the BL order itself.
_SYNCED_FIELDS = (
    "bl_number",
    "bl_issue_date",
    "port_of_loading",
    "port_of_discharge",
    "final_destination",
)


def _get_bl_order(db: Session, bl_order_id: int) -> models.BLOrder:
    bl = db.get(models.BLOrder, bl_order_id)
    if bl is None or bl.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="BL order not found")
    return bl


@router.get("", response_model=List[BLOrderRead])
def list_bl_orders(
    order_id: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(500, ge=1, le=2000),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    q = db.query(models.BLOrder).filter(models.BLOrder.deleted_at.is_(None))
    if order_id:
        q = q.filter(models.BLOrder.order_id == order_id)
    if status_filter:
        q = q.filter(models.BLOrder.status == status_filter)
    return q.order_by(models.BLOrder.id.desc()).limit(limit).all()


@router.get("/{bl_order_id}", response_model=BLOrderRead)
def get_bl_order(
    bl_order_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return _get_bl_order(db, bl_order_id)


@router.post("", response_model=BLOrderRead, status_code=status.HTTP_201_CREATED)
def create_bl_order(
    payload: BLOrderCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    if payload.order_id and db.get(models.Order, payload.order_id) is None:
        raise HTTPException(status_code=400, detail="Order not found")
    bl = models.BLOrder(**reject_null_required(models.BLOrder, payload.model_dump(exclude_unset=True)))
    db.add(bl)
    db.commit()
    db.refresh(bl)
    return bl


@router.post("/allocate", response_model=List[BLOrderRead])
def allocate_to_order(
    payload: BLAllocateRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    """Attach BL orders to an order; each is renamed ``{order_id}-{next}``."""

    order = db.get(models.Order, payload.order_id)
    if order is None or order.deleted_at is not None:
        raise HTTPException(status_code=400, detail="Order not found")

    ids = list(dict.fromkeys(payload.bl_order_ids))
    bl_orders = [_get_bl_order(db, bl_id) for bl_id in ids]
    allocate_bl_orders(db=db, order=order, bl_orders=bl_orders)
    db.commit()
    for bl in bl_orders:
        db.refresh(bl)
    return bl_orders


@router.put("/{bl_order_id}", response_model=BLOrderRead)
def update_bl_order(
    bl_order_id: int,
    payload: BLOrderUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    bl = _get_bl_order(db, bl_order_id)
    data = reject_null_required(models.BLOrder, payload.model_dump(exclude_unset=True))
    for field, value in data.items():
        setattr(bl, field, value)
    db.add(bl)
    db.commit()
    db.refresh(bl)
    return bl


@router.delete("/{bl_order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_bl_order(
    bl_order_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    bl = _get_bl_order(db, bl_order_id)
    bl.deleted_at = datetime.now(timezone.utc)
    db.add(bl)
    db.commit()


@router.get("/{bl_order_id}/extraction", response_model=BLExtractionRead)
def get_extraction(
    bl_order_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    bl = _get_bl_order(db, bl_order_id)
    if bl.extraction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="BL extraction not found")
    return bl.extraction


@router.put("/{bl_order_id}/extraction", response_model=BLExtractionRead)
def upsert_extraction(
    bl_order_id: int,
    payload: BLExtractionUpsert,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    bl = _get_bl_order(db, bl_order_id)
    data = payload.model_dump(exclude_unset=True)

    extraction = bl.extraction
    if extraction is None:
        extraction = models.BLExtraction(bl_order_id=bl.id)
        bl.extraction = extraction
    for field, value in data.items():
        setattr(extraction, field, value)

    for field in _SYNCED_FIELDS:
        if field in data:
            setattr(bl, field, data[field])

    db.add(bl)
    db.commit()
    db.refresh(extraction)
    return extraction


@router.get("/{bl_order_id}/containers", response_model=List[ContainerRead])
def list_containers(
    bl_order_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return _get_bl_order(db, bl_order_id).containers


@router.put("/{bl_order_id}/containers", response_model=List[ContainerRead])
def replace_containers(
    bl_order_id: int,
    payload: ContainersReplace,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    """Replace the full container list of a BL order."""

    bl = _get_bl_order(db, bl_order_id)
    bl.containers = [
        models.BLExtractionContainer(bl_number=bl.bl_number, **c.model_dump())
        for c in payload.containers
    ]
    db.add(bl)
    db.commit()
    db.refresh(bl)
    return bl.containers


@router.get("/{bl_order_id}/has-executed-hedge", response_model=HasExecutedHedgeRead)
def has_executed_hedge(
    bl_order_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    _get_bl_order(db, bl_order_id)
    return HasExecutedHedgeRead(has_executed_hedge=bl_order_has_executed_hedge(db, bl_order_id))
