from __future__ import annotations

# ruff: noqa: B008
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session, selectinload

from tradeops import models
from tradeops.api.deps import ensure_can_decide_as, require_roles
from tradeops.core.observability import request_context
from tradeops.database import get_db
from tradeops.schemas import (
    ApprovalDecisionCreate,
    ApprovalDecisionRead,
    ApprovalHistoryRead,
    ApprovalRequestRead,
)
from tradeops.services.approvals import record_decision

router = APIRouter(prefix="/approvals", tags=["approvals"])

_read_roles_dep = require_roles()
_decide_roles_dep = require_roles(
    models.RoleName.hedging,
    models.RoleName.cfo,
    models.RoleName.management,
    models.RoleName.operations,
)


@router.get("/requests", response_model=List[ApprovalRequestRead])
def list_approval_requests(
    status_filter: Optional[models.ApprovalRequestStatus] = Query(None, alias="status"),
    ticket_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    q = db.query(models.ApprovalRequest).options(selectinload(models.ApprovalRequest.history))
    if status_filter is not None:
        q = q.filter(models.ApprovalRequest.status == status_filter)
    if ticket_id is not None:
        q = q.filter(models.ApprovalRequest.ticket_id == ticket_id)
    return q.order_by(models.ApprovalRequest.id.desc()).limit(limit).all()


@router.get("/requests/{approval_request_id}", response_model=ApprovalRequestRead)
def get_approval_request(
    approval_request_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    req = db.get(models.ApprovalRequest, approval_request_id)
    if req is None:
        raise HTTPException(status_code=404, detail="Approval request not found")
    return req


@router.post(
    "/requests/{approval_request_id}/decisions",
    response_model=ApprovalDecisionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_decision(
    approval_request_id: int,
    payload: ApprovalDecisionCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_decide_roles_dep),
):
    req = db.get(models.ApprovalRequest, approval_request_id)
    if req is None:
        raise HTTPException(status_code=404, detail="Approval request not found")

    ensure_can_decide_as(current_user, payload.approver_role)

    result = record_decision(
        db=db,
        request=req,
        approver_role=payload.approver_role,
        action=payload.action,
        comment=payload.comment,
        user_id=getattr(current_user, "id", None),
        **request_context(request),
    )
    return ApprovalDecisionRead(
        replayed=result.replayed,
        history=ApprovalHistoryRead.model_validate(result.history),
        request=ApprovalRequestRead.model_validate(result.request),
    )
