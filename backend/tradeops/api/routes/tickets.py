from __future__ import annotations

# ruff: noqa: B008
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from tradeops import models
from tradeops.api.deps import reject_null_required, require_roles
from tradeops.core.observability import request_context
from tradeops.database import get_db
from tradeops.schemas import TicketCreate, TicketRead, TicketUpdate
from tradeops.services.approval_rules import apply_ticket_evaluation
from tradeops.services.audit import audit_event

router = APIRouter(prefix="/tickets", tags=["tickets"])

_read_roles_dep = require_roles()
_write_roles_dep = require_roles(models.RoleName.trader)

_FINAL_STATUSES = {models.TicketStatus.approved, models.TicketStatus.rejected}


def _validate_amounts(quantity: Optional[float], price: Optional[float]) -> None:
    if quantity is not None and quantity < 0:
        raise HTTPException(status_code=400, detail="quantity must be non-negative")
    if price is not None and price < 0:
        raise HTTPException(status_code=400, detail="price must be non-negative")


def apply_signed_values(ticket: models.Ticket) -> None:
    """Buy tickets carry positive volume/price, sell tickets negative."""

    sign = -1.0 if ticket.type == models.TradeType.sell else 1.0
    ticket.signed_volume = sign * float(ticket.quantity) if ticket.quantity is not None else None
    ticket.signed_price = sign * float(ticket.price) if ticket.price is not None else None


def _get_ticket(db: Session, ticket_id: int) -> models.Ticket:
    ticket = db.get(models.Ticket, ticket_id)
    if ticket is None or ticket.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    return ticket


@router.get("", response_model=List[TicketRead])
def list_tickets(
    type: Optional[models.TradeType] = Query(None),
    status_filter: Optional[models.TicketStatus] = Query(None, alias="status"),
    company_id: Optional[int] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    q = db.query(models.Ticket).filter(models.Ticket.deleted_at.is_(None))
    if type is not None:
        q = q.filter(models.Ticket.type == type)
    if status_filter is not None:
        q = q.filter(models.Ticket.status == status_filter)
    if company_id is not None:
        q = q.filter(models.Ticket.company_id == company_id)
    return q.order_by(models.Ticket.id.desc()).limit(limit).all()


@router.get("/{ticket_id}", response_model=TicketRead)
def get_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return _get_ticket(db, ticket_id)


@router.post("", response_model=TicketRead, status_code=status.HTTP_201_CREATED)
def create_ticket(
    payload: TicketCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    _validate_amounts(payload.quantity, payload.price)
    if payload.company_id is not None and db.get(models.Company, payload.company_id) is None:
        raise HTTPException(status_code=400, detail="Company not found")

    ticket = models.Ticket(**reject_null_required(models.Ticket, payload.model_dump(exclude_unset=True)))
    if ticket.trader_id is None:
        ticket.trader_id = getattr(current_user, "id", None)
    ticket.status = models.TicketStatus.draft
    apply_signed_values(ticket)
    db.add(ticket)
    db.commit()
    db.refresh(ticket)

    evaluation = apply_ticket_evaluation(db=db, ticket=ticket)
    db.commit()
    db.refresh(ticket)

    audit_event(
        "ticket.created",
        getattr(current_user, "id", None),
        {
            "ticket_id": ticket.id,
            "status": ticket.status.value,
            "rules_triggered": evaluation.rules_triggered,
        },
        db=db,
        idempotency_key=f"ticket:{ticket.id}:created",
        **request_context(request),
    )
    return ticket


@router.put("/{ticket_id}", response_model=TicketRead)
def update_ticket(
    ticket_id: int,
    payload: TicketUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    ticket = _get_ticket(db, ticket_id)
    data = reject_null_required(models.Ticket, payload.model_dump(exclude_unset=True))
    _validate_amounts(data.get("quantity"), data.get("price"))

    for field, value in data.items():
        setattr(ticket, field, value)
    apply_signed_values(ticket)
    db.add(ticket)
    db.commit()
    db.refresh(ticket)

    if ticket.status not in _FINAL_STATUSES:
        apply_ticket_evaluation(db=db, ticket=ticket)
        db.commit()
        db.refresh(ticket)
    return ticket


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    ticket = _get_ticket(db, ticket_id)
    ticket.deleted_at = datetime.now(timezone.utc)
    db.add(ticket)
    db.commit()
