from __future__ import annotations

# ruff: noqa: B008
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from tradeops import models
from tradeops.api.deps import reject_null_required, require_roles
from tradeops.core.observability import request_context
from tradeops.database import get_db
from tradeops.schemas import ClaimCreate, ClaimRead, ClaimsDashboardRead, ClaimUpdate
from tradeops.services.audit import audit_event
from tradeops.services.claims_aging import (
    aging_band,
    apply_resolution_days,
    claimed_pct,
    days_to_raise,
    display_status,
    load_dashboard,
)

router = APIRouter(prefix="/claims", tags=["claims"])

_read_roles_dep = require_roles()
_write_roles_dep = require_roles(models.RoleName.operations, models.RoleName.trader)


def _to_read(claim: models.Claim) -> ClaimRead:
    out = ClaimRead.model_validate(claim)
    days = days_to_raise(claim)
    out.display_status = display_status(claim.status)
    out.days_to_raise = days
    out.aging_band = aging_band(days)
    out.claimed_pct = claimed_pct(claim, claim.order)
    return out


def _get_claim(db: Session, claim_id: int) -> models.Claim:
    claim = db.get(models.Claim, claim_id)
    if claim is None or claim.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Claim not found")
    return claim


def _fill_from_bl_order(db: Session, claim: models.Claim) -> None:
    if claim.bl_order_id is None:
        return
    bl = db.get(models.BLOrder, claim.bl_order_id)
    if bl is None or bl.deleted_at is not None:
        raise HTTPException(status_code=400, detail="BL order not found")
    if claim.order_id is None:
        claim.order_id = bl.order_id
    if claim.ata is None and bl.ata is not None:
        claim.ata = bl.ata


@router.get("", response_model=List[ClaimRead])
def list_claims(
    status_filter: Optional[models.ClaimStatus] = Query(None, alias="status"),
    bl_order_id: Optional[int] = Query(None),
    order_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    q = db.query(models.Claim).filter(models.Claim.deleted_at.is_(None))
    if status_filter is not None:
        q = q.filter(models.Claim.status == status_filter)
    if bl_order_id is not None:
        q = q.filter(models.Claim.bl_order_id == bl_order_id)
    if order_id:
        q = q.filter(models.Claim.order_id == order_id)
    return [_to_read(c) for c in q.order_by(models.Claim.id.desc()).all()]


@router.get("/dashboard", response_model=ClaimsDashboardRead)
def claims_dashboard(
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return ClaimsDashboardRead.model_validate(load_dashboard(db, today=as_of))


@router.get("/{claim_id}", response_model=ClaimRead)
def get_claim(
    claim_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return _to_read(_get_claim(db, claim_id))


@router.post("", response_model=ClaimRead, status_code=status.HTTP_201_CREATED)
def create_claim(
    payload: ClaimCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    claim = models.Claim(**payload.model_dump())
    _fill_from_bl_order(db, claim)
    apply_resolution_days(claim)
    db.add(claim)
    db.commit()
    db.refresh(claim)

    audit_event(
        "claim.created",
        getattr(current_user, "id", None),
        {"claim_id": claim.id, "bl_order_id": claim.bl_order_id, "claim_type": claim.claim_type.value},
        db=db,
        idempotency_key=f"claim:{claim.id}:created",
        **request_context(request),
    )
    return _to_read(claim)


@router.put("/{claim_id}", response_model=ClaimRead)
def update_claim(
    claim_id: int,
    payload: ClaimUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    claim = _get_claim(db, claim_id)
    previous_status = claim.status
    data = reject_null_required(models.Claim, payload.model_dump(exclude_unset=True))
    for field, value in data.items():
        setattr(claim, field, value)
    if "bl_order_id" in data:
        _fill_from_bl_order(db, claim)
    apply_resolution_days(claim)
    db.add(claim)
    db.commit()
    db.refresh(claim)

    if claim.status != previous_status:
        audit_event(
            "claim.status_changed",
            getattr(current_user, "id", None),
            {"claim_id": claim.id, "from": previous_status.value, "to": claim.status.value},
            db=db,
            **request_context(request),
        )
    return _to_read(claim)


@router.delete("/{claim_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_claim(
    claim_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    claim = _get_claim(db, claim_id)
    claim.deleted_at = datetime.now(timezone.utc)
    db.add(claim)
    db.commit()
