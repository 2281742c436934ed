from __future__ import annotations

# ruff: noqa: B008
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from tradeops import models
from tradeops.api.deps import reject_null_required, require_roles
from tradeops.database import get_db
from tradeops.schemas import (
    ApprovalRuleCreate,
    ApprovalRuleRead,
    ApprovalRuleUpdate,
    FixStatusRequest,
)
from tradeops.services import approval_rules as rules_service

router = APIRouter(prefix="/approval-rules", tags=["approval-rules"])

_read_roles_dep = require_roles()
_manage_roles_dep = require_roles(models.RoleName.management, models.RoleName.cfo)


@router.get("", response_model=List[ApprovalRuleRead])
def list_rules(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return (
        db.query(models.ApprovalRule)
        .order_by(models.ApprovalRule.priority.asc(), models.ApprovalRule.id.asc())
        .all()
    )


@router.get("/catalog")
def rule_catalog(current_user: models.User = Depends(_read_roles_dep)):
    """Fields, operators and options a rule editor can offer."""
    return {
        "categories": rules_service.RULE_CATEGORIES,
        "operator_labels": rules_service.OPERATOR_LABELS,
        "approver_roles": [r.value for r in models.ApproverRole],
    }


@router.post("", response_model=ApprovalRuleRead, status_code=status.HTTP_201_CREATED)
def create_rule(
    payload: ApprovalRuleCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_manage_roles_dep),
):
    rule = models.ApprovalRule(**payload.model_dump(mode="json"))
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


@router.put("/{rule_id}", response_model=ApprovalRuleRead)
def update_rule(
    rule_id: int,
    payload: ApprovalRuleUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_manage_roles_dep),
):
    rule = db.get(models.ApprovalRule, rule_id)
    if rule is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Approval rule not found")

    data = reject_null_required(models.ApprovalRule, payload.model_dump(mode="json", exclude_unset=True))
    for field, value in data.items():
        setattr(rule, field, value)
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_manage_roles_dep),
):
    rule = db.get(models.ApprovalRule, rule_id)
    if rule is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Approval rule not found")
    db.delete(rule)
    db.commit()


@router.post("/seed")
def seed_rules(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_manage_roles_dep),
):
    created = rules_service.seed_default_rules(db)
    return {"created": created}


@router.post("/fix-status")
def fix_status(
    payload: FixStatusRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_manage_roles_dep),
):
    """Re-run rule evaluation for one ticket, or normalise every legacy ``b2b`` ticket."""

    if payload.bulk:
        return rules_service.fix_legacy_ticket_statuses(db=db)

    if payload.ticketId is None:
        raise HTTPException(status_code=400, detail="ticketId is required when bulk is not true")

    ticket = db.get(models.Ticket, payload.ticketId)
    if ticket is None or ticket.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    return rules_service.fix_ticket_status(db=db, ticket=ticket)
