from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import HTTPException
from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tradeops import models
from tradeops.services.audit import audit_event

logger = logging.getLogger("tradeops.approvals")

_OPEN = models.ApprovalRequestStatus.pending_approval


@dataclass(frozen=True)
class DecisionResult:
    history: models.ApprovalHistory
    request: models.ApprovalRequest
    replayed: bool


def _find_decision(
    db: Session, *, request: models.ApprovalRequest, role: models.ApproverRole
) -> models.ApprovalHistory | None:
    return (
        db.query(models.ApprovalHistory)
        .filter(
            models.ApprovalHistory.approval_request_id == request.id,
            models.ApprovalHistory.approver_role == role,
            models.ApprovalHistory.round == request.round,
        )
        .first()
    )


def _replay_or_conflict(
    existing: models.ApprovalHistory,
    *,
    request: models.ApprovalRequest,
    action: models.ApprovalAction,
) -> DecisionResult:
    if existing.action == action:
        return DecisionResult(history=existing, request=request, replayed=True)
    raise HTTPException(
        status_code=409,
        detail={
            "code": "approver_already_decided",
            "message": f"{existing.approver_role.value} already decided this round",
            "action": existing.action.value,
        },
    )


def record_decision(
    *,
    db: Session,
    request: models.ApprovalRequest,
    approver_role: models.ApproverRole,
    action: models.ApprovalAction,
    comment: str | None,
    user_id: int | None,
    request_id: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> DecisionResult:
    """Record one approver's decision on an approval request and move the ticket along.

    Each role decides once per round. Repeating the same decision returns the
    stored one; deciding on a closed request is a conflict.
    """

    required = [str(r) for r in (request.required_approvers or [])]
    if approver_role.value not in required:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "approver_not_required",
                "message": f"{approver_role.value} is not a required approver for this request",
                "required_approvers": required,
            },
        )

    existing = _find_decision(db, request=request, role=approver_role)
    if existing is not None:
        return _replay_or_conflict(existing, request=request, action=action)

    if request.status != _OPEN:
        raise HTTPException(
            status_code=409,
            detail={"code": "approval_request_closed", "status": request.status.value},
        )

    now = datetime.now(timezone.utc)
    approved_roles = {
        h.approver_role.value
        for h in request.history
        if h.round == request.round and h.action == models.ApprovalAction.approve
    }

    values: dict = {"updated_at": now}
    ticket_status: models.TicketStatus | None = None
    if action == models.ApprovalAction.approve:
        approved_roles.add(approver_role.value)
        values["current_approver_index"] = len(approved_roles)
        if all(r in approved_roles for r in required):
            values["status"] = models.ApprovalRequestStatus.approved
            values["decided_at"] = now
            ticket_status = models.TicketStatus.approved
    elif action == models.ApprovalAction.reject:
        values["status"] = models.ApprovalRequestStatus.rejected
        values["decided_at"] = now
        ticket_status = models.TicketStatus.rejected
    else:
        values["status"] = models.ApprovalRequestStatus.changes_requested
        ticket_status = models.TicketStatus.draft

    # Atomic guard: only decisions against the state we read may land.
    updated = (
        db.query(models.ApprovalRequest)
        .filter(
            and_(
                models.ApprovalRequest.id == request.id,
                models.ApprovalRequest.status == _OPEN,
                models.ApprovalRequest.current_approver_index == request.current_approver_index,
            )
        )
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        db.refresh(request)
        existing = _find_decision(db, request=request, role=approver_role)
        if existing is not None:
            return _replay_or_conflict(existing, request=request, action=action)
        raise HTTPException(status_code=409, detail="Approval request status changed")

    history = models.ApprovalHistory(
        approval_request_id=request.id,
        ticket_id=request.ticket_id,
        approver_role=approver_role,
        action=action,
        comment=comment,
        user_id=user_id,
        round=request.round,
    )
    db.add(history)

    if ticket_status is not None:
        ticket = db.get(models.Ticket, request.ticket_id)
        if ticket is not None:
            ticket.status = ticket_status
            db.add(ticket)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        db.refresh(request)
        existing = _find_decision(db, request=request, role=approver_role)
        if existing is None:
            raise
        return _replay_or_conflict(existing, request=request, action=action)

    db.refresh(history)
    db.refresh(request)

    audit_event(
        "approval.decision.created",
        user_id,
        {
            "approval_request_id": request.id,
            "ticket_id": request.ticket_id,
            "approver_role": approver_role.value,
            "action": action.value,
            "round": request.round,
            "status": request.status.value,
        },
        db=db,
        idempotency_key=f"approval:{request.id}:{request.round}:{approver_role.value}",
        request_id=request_id,
        ip=ip,
        user_agent=user_agent,
    )

    logger.info(
        "approval_decided",
        extra={
            "approval_request_id": request.id,
            "ticket_id": request.ticket_id,
            "approver_role": approver_role.value,
            "action": action.value,
            "status": request.status.value,
        },
    )
    return DecisionResult(history=history, request=request, replayed=False)
