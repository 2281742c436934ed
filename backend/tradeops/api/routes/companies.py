from __future__ import annotations

# ruff: noqa: B008
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from tradeops import models
from tradeops.api.deps import reject_null_required, require_roles, require_webhook_secret
from tradeops.core.observability import request_context
from tradeops.database import get_db
from tradeops.schemas import (
    CompanyAddressCreate,
    CompanyAddressRead,
    CompanyCreate,
    CompanyRead,
    CompanyUpdate,
    KybGateRead,
)
from tradeops.services.audit import audit_event
from tradeops.services.kyb import apply_kyb_webhook, customer_reference_for, resolve_company_kyb_gate

router = APIRouter(prefix="/companies", tags=["companies"])

_read_roles_dep = require_roles()
_write_roles_dep = require_roles(
    models.RoleName.trader, models.RoleName.operations, models.RoleName.cfo
)


def _get_company(db: Session, company_id: int) -> models.Company:
    company = db.get(models.Company, company_id)
    if company is None or company.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
    return company


def _demote_primary(company: models.Company) -> None:
    for address in company.addresses:
        address.is_primary = False


@router.get("", response_model=List[CompanyRead])
def list_companies(
    q: Optional[str] = Query(None, description="Name contains"),
    kyb_status: Optional[models.KybStatus] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    query = db.query(models.Company).filter(models.Company.deleted_at.is_(None))
    if q:
        query = query.filter(models.Company.name.ilike(f"%{q.strip()}%"))
    if kyb_status is not None:
        query = query.filter(models.Company.kyb_status == kyb_status)
    return query.order_by(models.Company.name.asc()).all()


@router.post("/kyb/webhook", status_code=status.HTTP_200_OK)
def kyb_webhook(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    _secret: None = Depends(require_webhook_secret),
):
    company = apply_kyb_webhook(db=db, payload=payload)
    db.commit()

    audit_event(
        "company.kyb_webhook",
        None,
        {
            "company_id": company.id,
            "profile_id": company.detected_profile_id,
            "review_status": company.detected_review_status,
            "risk_label": company.detected_risk_label,
        },
        db=db,
        **request_context(request),
    )
    return {"ok": True, "company_id": company.id}


@router.get("/{company_id}", response_model=CompanyRead)
def get_company(
    company_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return _get_company(db, company_id)


@router.post("", response_model=CompanyRead, status_code=status.HTTP_201_CREATED)
def create_company(
    payload: CompanyCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    data = payload.model_dump(exclude={"addresses"})
    company = models.Company(**data)
    addresses = [models.CompanyAddress(**a.model_dump()) for a in payload.addresses]
    if addresses and not any(a.is_primary for a in addresses):
        addresses[0].is_primary = True
    company.addresses = addresses
    db.add(company)
    db.commit()
    db.refresh(company)

    audit_event(
        "company.created",
        getattr(current_user, "id", None),
        {"company_id": company.id, "name": company.name},
        db=db,
        idempotency_key=f"company:{company.id}:created",
        **request_context(request),
    )
    return company


@router.put("/{company_id}", response_model=CompanyRead)
def update_company(
    company_id: int,
    payload: CompanyUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    company = _get_company(db, company_id)
    previous_kyb = company.kyb_status
    data = reject_null_required(models.Company, payload.model_dump(exclude_unset=True))
    for field, value in data.items():
        setattr(company, field, value)
    db.add(company)
    db.commit()
    db.refresh(company)

    if company.kyb_status != previous_kyb:
        audit_event(
            "company.kyb_status_changed",
            getattr(current_user, "id", None),
            {
                "company_id": company.id,
                "from": previous_kyb.value if previous_kyb else None,
                "to": company.kyb_status.value if company.kyb_status else None,
            },
            db=db,
            **request_context(request),
        )
    return company


@router.delete("/{company_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_company(
    company_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    company = _get_company(db, company_id)
    company.deleted_at = datetime.now(timezone.utc)
    db.add(company)
    db.commit()


@router.get("/{company_id}/kyb-gate", response_model=KybGateRead)
def kyb_gate(
    company_id: int,
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return KybGateRead.model_validate(resolve_company_kyb_gate(db, company_id, today=as_of))


@router.get("/{company_id}/kyb-reference")
def kyb_reference(
    company_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    company = _get_company(db, company_id)
    return {"company_id": company.id, "customer_reference": customer_reference_for(company.id)}


# Addresses


@router.get("/{company_id}/addresses", response_model=List[CompanyAddressRead])
def list_addresses(
    company_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return _get_company(db, company_id).addresses


@router.post(
    "/{company_id}/addresses",
    response_model=CompanyAddressRead,
    status_code=status.HTTP_201_CREATED,
)
def add_address(
    company_id: int,
    payload: CompanyAddressCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    company = _get_company(db, company_id)
    address = models.CompanyAddress(**payload.model_dump())
    # A single primary address per company.
    if address.is_primary:
        _demote_primary(company)
    elif not company.addresses:
        address.is_primary = True
    company.addresses.append(address)
    db.add(company)
    db.commit()
    db.refresh(address)
    return address


@router.put("/{company_id}/addresses/{address_id}", response_model=CompanyAddressRead)
def update_address(
    company_id: int,
    address_id: int,
    payload: CompanyAddressCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    company = _get_company(db, company_id)
    address = next((a for a in company.addresses if a.id == address_id), None)
    if address is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Address not found")
    data = reject_null_required(models.CompanyAddress, payload.model_dump(exclude_unset=True))
    if data.get("is_primary"):
        _demote_primary(company)
    for field, value in data.items():
        setattr(address, field, value)
    db.add(address)
    db.commit()
    db.refresh(address)
    return address


@router.delete("/{company_id}/addresses/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_address(
    company_id: int,
    address_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    company = _get_company(db, company_id)
    address = next((a for a in company.addresses if a.id == address_id), None)
    if address is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Address not found")
    company.addresses.remove(address)
    db.add(company)
    db.commit()
