from __future__ import annotations

# ruff: noqa: B008
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session, selectinload

from tradeops import models
from tradeops.api.deps import reject_null_required, require_roles
from tradeops.core.observability import request_context
from tradeops.database import get_db
from tradeops.schemas import (
    HedgeCloseRequest,
    HedgeCoverageRead,
    HedgeExecutionCreate,
    HedgeExecutionRead,
    HedgeLinkCreate,
    HedgeLinkRead,
    HedgeRejectRequest,
    HedgeRequestCreate,
    HedgeRequestRead,
    HedgeRequestUpdate,
    HedgeRollCreate,
    HedgeRollRead,
)
from tradeops.services.audit import audit_event
from tradeops.services.hedge_coverage import first_ticket_id, load_hedge_coverage
from tradeops.services.hedging import (
    close_execution,
    default_hedge_quantity_mt,
    map_commodity_to_hedge_metal,
)
from tradeops.services.kyb import resolve_company_kyb_gate

router = APIRouter(prefix="/hedging", tags=["hedging"])

_read_roles_dep = require_roles()
_request_roles_dep = require_roles(models.RoleName.trader, models.RoleName.hedging)
_approve_roles_dep = require_roles(
    models.RoleName.hedging, models.RoleName.cfo, models.RoleName.management
)
_execute_roles_dep = require_roles(models.RoleName.hedging)

_Req = models.HedgeRequestStatus
_EDITABLE = {_Req.draft, _Req.pending_approval}


def _get_request(db: Session, hedge_request_id: int) -> models.HedgeRequest:
    req = db.get(models.HedgeRequest, hedge_request_id)
    if req is None or req.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Hedge request not found")
    return req


def _get_execution(db: Session, execution_id: int) -> models.HedgeExecution:
    execution = db.get(models.HedgeExecution, execution_id)
    if execution is None or execution.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Hedge execution not found")
    return execution


def _transition_conflict(req: models.HedgeRequest, action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "code": "invalid_hedge_request_transition",
            "message": f"Cannot {action} a hedge request in status {req.status.value}",
            "status": req.status.value,
        },
    )


def _request_ticket(db: Session, req: models.HedgeRequest) -> models.Ticket | None:
    """Ticket behind a hedge request: direct, else the first buy ticket of its order."""

    if req.ticket_id is not None:
        return db.get(models.Ticket, req.ticket_id)

    order_id = req.order_id
    if order_id is None and req.bl_order_id is not None:
        bl = db.get(models.BLOrder, req.bl_order_id)
        order_id = bl.order_id if bl is not None else None
    if order_id is None:
        return None

    order = db.get(models.Order, order_id)
    if order is None:
        return None
    ticket_id = first_ticket_id(order.buyer) or first_ticket_id(order.seller)
    return db.get(models.Ticket, ticket_id) if ticket_id is not None else None


def _default_quantity(db: Session, payload: HedgeRequestCreate) -> float:
    if payload.bl_order_id is not None:
        bl = db.get(models.BLOrder, payload.bl_order_id)
        if bl is None:
            raise HTTPException(status_code=400, detail="BL order not found")
        return default_hedge_quantity_mt("bl", bl_order=bl)
    if payload.order_id is not None:
        order = db.get(models.Order, payload.order_id)
        if order is None:
            raise HTTPException(status_code=400, detail="Order not found")
        return default_hedge_quantity_mt("order", order=order)
    raise HTTPException(
        status_code=400,
        detail="quantity_mt is required when no order or BL order is referenced",
    )


# Hedge requests


@router.get("/requests", response_model=List[HedgeRequestRead])
def list_hedge_requests(
    status_filter: Optional[models.HedgeRequestStatus] = Query(None, alias="status"),
    ticket_id: Optional[int] = Query(None),
    order_id: Optional[str] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    q = db.query(models.HedgeRequest).filter(models.HedgeRequest.deleted_at.is_(None))
    if status_filter is not None:
        q = q.filter(models.HedgeRequest.status == status_filter)
    if ticket_id is not None:
        q = q.filter(models.HedgeRequest.ticket_id == ticket_id)
    if order_id:
        q = q.filter(models.HedgeRequest.order_id == order_id)
    return q.order_by(models.HedgeRequest.id.desc()).limit(limit).all()


@router.get("/requests/{hedge_request_id}", response_model=HedgeRequestRead)
def get_hedge_request(
    hedge_request_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return _get_request(db, hedge_request_id)


@router.post("/requests", response_model=HedgeRequestRead, status_code=status.HTTP_201_CREATED)
def create_hedge_request(
    payload: HedgeRequestCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_request_roles_dep),
):
    ticket = None
    if payload.ticket_id is not None:
        ticket = db.get(models.Ticket, payload.ticket_id)
        if ticket is None or ticket.deleted_at is not None:
            raise HTTPException(status_code=400, detail="Ticket not found")

    data = payload.model_dump(exclude_unset=True, exclude={"submit"})
    if payload.quantity_mt is None:
        data["quantity_mt"] = _default_quantity(db, payload)
    if data["quantity_mt"] <= 0:
        raise HTTPException(status_code=400, detail="quantity_mt must be positive")

    req = models.HedgeRequest(**data)
    if req.hedge_metal is None:
        req.hedge_metal = map_commodity_to_hedge_metal(
            req.metal or (ticket.commodity_type if ticket is not None else None)
        )
    req.status = _Req.pending_approval if payload.submit else _Req.draft
    req.requested_by = getattr(current_user, "id", None)
    db.add(req)
    db.commit()
    db.refresh(req)
    return req


@router.put("/requests/{hedge_request_id}", response_model=HedgeRequestRead)
def update_hedge_request(
    hedge_request_id: int,
    payload: HedgeRequestUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_request_roles_dep),
):
    req = _get_request(db, hedge_request_id)
    if req.status not in _EDITABLE:
        raise _transition_conflict(req, "edit")
    data = reject_null_required(models.HedgeRequest, payload.model_dump(exclude_unset=True))
    for field, value in data.items():
        setattr(req, field, value)
    db.add(req)
    db.commit()
    db.refresh(req)
    return req


@router.delete("/requests/{hedge_request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_hedge_request(
    hedge_request_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_request_roles_dep),
):
    req = _get_request(db, hedge_request_id)
    if req.status not in _EDITABLE:
        raise _transition_conflict(req, "delete")
    req.deleted_at = datetime.now(timezone.utc)
    db.add(req)
    db.commit()


@router.post("/requests/{hedge_request_id}/submit", response_model=HedgeRequestRead)
def submit_hedge_request(
    hedge_request_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_request_roles_dep),
):
    req = _get_request(db, hedge_request_id)
    if req.status == _Req.pending_approval:
        return req
    if req.status != _Req.draft:
        raise _transition_conflict(req, "submit")
    req.status = _Req.pending_approval
    db.add(req)
    db.commit()
    db.refresh(req)
    return req


@router.post("/requests/{hedge_request_id}/approve", response_model=HedgeRequestRead)
def approve_hedge_request(
    hedge_request_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_approve_roles_dep),
):
    req = _get_request(db, hedge_request_id)
    if req.status == _Req.approved:
        return req
    if req.status not in _EDITABLE:
        raise _transition_conflict(req, "approve")

    ticket = _request_ticket(db, req)
    if ticket is not None:
        gate = resolve_company_kyb_gate(db, ticket.company_id)
        if not gate.allowed:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={
                    "code": "kyb_gate_blocked",
                    "message": "Counterparty KYB does not allow hedging",
                    "reason_code": gate.reason_code,
                    "company_id": gate.blocked_company_id,
                    "details": gate.details,
                },
            )

    req.status = _Req.approved
    req.approved_by = getattr(current_user, "id", None)
    req.approved_at = datetime.now(timezone.utc)
    req.rejection_reason = None
    db.add(req)
    db.commit()
    db.refresh(req)

    audit_event(
        "hedge_request.approved",
        getattr(current_user, "id", None),
        {"hedge_request_id": req.id, "quantity_mt": req.quantity_mt},
        db=db,
        idempotency_key=f"hedge_request:{req.id}:approved",
        **request_context(request),
    )
    return req


@router.post("/requests/{hedge_request_id}/reject", response_model=HedgeRequestRead)
def reject_hedge_request(
    hedge_request_id: int,
    payload: HedgeRejectRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_approve_roles_dep),
):
    req = _get_request(db, hedge_request_id)
    if req.status == _Req.rejected:
        return req
    if req.status not in _EDITABLE:
        raise _transition_conflict(req, "reject")

    req.status = _Req.rejected
    req.rejection_reason = payload.reason
    req.approved_by = getattr(current_user, "id", None)
    req.approved_at = datetime.now(timezone.utc)
    db.add(req)
    db.commit()
    db.refresh(req)

    audit_event(
        "hedge_request.rejected",
        getattr(current_user, "id", None),
        {"hedge_request_id": req.id, "reason": payload.reason},
        db=db,
        idempotency_key=f"hedge_request:{req.id}:rejected",
        **request_context(request),
    )
    return req


@router.post("/requests/{hedge_request_id}/cancel", response_model=HedgeRequestRead)
def cancel_hedge_request(
    hedge_request_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_request_roles_dep),
):
    req = _get_request(db, hedge_request_id)
    if req.status == _Req.cancelled:
        return req
    if req.status not in (_EDITABLE | {_Req.approved}):
        raise _transition_conflict(req, "cancel")
    req.status = _Req.cancelled
    db.add(req)
    db.commit()
    db.refresh(req)
    return req


# Executions


@router.get("/executions", response_model=List[HedgeExecutionRead])
def list_executions(
    status_filter: Optional[models.HedgeExecutionStatus] = Query(None, alias="status"),
    hedge_request_id: Optional[int] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    q = (
        db.query(models.HedgeExecution)
        .options(selectinload(models.HedgeExecution.links))
        .filter(models.HedgeExecution.deleted_at.is_(None))
    )
    if status_filter is not None:
        q = q.filter(models.HedgeExecution.status == status_filter)
    if hedge_request_id is not None:
        q = q.filter(models.HedgeExecution.hedge_request_id == hedge_request_id)
    return q.order_by(models.HedgeExecution.id.desc()).limit(limit).all()


@router.get("/executions/{execution_id}", response_model=HedgeExecutionRead)
def get_execution(
    execution_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return _get_execution(db, execution_id)


@router.post("/executions", response_model=HedgeExecutionRead, status_code=status.HTTP_201_CREATED)
def create_execution(
    payload: HedgeExecutionCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_execute_roles_dep),
):
    hedge_request = None
    if payload.hedge_request_id is not None:
        hedge_request = _get_request(db, payload.hedge_request_id)
        if hedge_request.status not in {_Req.approved, _Req.executed}:
            raise _transition_conflict(hedge_request, "execute")

    allocated = sum(link.allocated_quantity_mt for link in payload.links)
    if allocated > payload.quantity_mt + 1e-9:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "links_exceed_execution_quantity",
                "message": "Linked quantity exceeds the executed quantity",
            },
        )

    execution = models.HedgeExecution(**payload.model_dump(exclude={"links"}))
    execution.open_quantity_mt = execution.quantity_mt
    execution.status = models.HedgeExecutionStatus.executed
    execution.links = [models.HedgeLink(**link.model_dump()) for link in payload.links]
    db.add(execution)

    if hedge_request is not None:
        hedge_request.status = _Req.executed
        db.add(hedge_request)

    db.commit()
    db.refresh(execution)

    audit_event(
        "hedge_execution.created",
        getattr(current_user, "id", None),
        {
            "execution_id": execution.id,
            "hedge_request_id": execution.hedge_request_id,
            "quantity_mt": execution.quantity_mt,
            "metal": execution.metal.value,
        },
        db=db,
        idempotency_key=f"hedge_execution:{execution.id}:created",
        **request_context(request),
    )
    return execution


@router.post("/executions/{execution_id}/links", response_model=HedgeLinkRead, status_code=status.HTTP_201_CREATED)
def add_execution_link(
    execution_id: int,
    payload: HedgeLinkCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_execute_roles_dep),
):
    execution = _get_execution(db, execution_id)
    allocated = sum(float(link.allocated_quantity_mt) for link in execution.links)
    if allocated + payload.allocated_quantity_mt > float(execution.quantity_mt) + 1e-9:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "links_exceed_execution_quantity",
                "message": "Linked quantity exceeds the executed quantity",
                "already_allocated_mt": allocated,
            },
        )
    link = models.HedgeLink(hedge_execution_id=execution.id, **payload.model_dump())
    db.add(link)
    db.commit()
    db.refresh(link)
    return link


@router.post("/executions/{execution_id}/close", response_model=HedgeExecutionRead)
def close_hedge_execution(
    execution_id: int,
    payload: HedgeCloseRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_execute_roles_dep),
):
    execution = _get_execution(db, execution_id)
    result = close_execution(
        db=db,
        execution=execution,
        quantity_mt=payload.quantity_mt,
        close_price=payload.close_price,
    )
    db.commit()
    db.refresh(execution)

    audit_event(
        "hedge_execution.closed",
        getattr(current_user, "id", None),
        {
            "execution_id": execution.id,
            "closed_quantity_mt": result.closed_quantity_mt,
            "open_quantity_mt": result.open_quantity_mt,
            "close_price": payload.close_price,
        },
        db=db,
        **request_context(request),
    )
    return execution


# Rolls


@router.get("/rolls", response_model=List[HedgeRollRead])
def list_rolls(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return db.query(models.HedgeRoll).order_by(models.HedgeRoll.roll_date.desc(), models.HedgeRoll.id.desc()).all()


@router.post("/rolls", response_model=HedgeRollRead, status_code=status.HTTP_201_CREATED)
def create_roll(
    payload: HedgeRollCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_execute_roles_dep),
):
    if payload.open_execution_id == payload.close_execution_id:
        raise HTTPException(status_code=400, detail="A roll needs two different executions")
    _get_execution(db, payload.open_execution_id)
    _get_execution(db, payload.close_execution_id)

    roll = models.HedgeRoll(**payload.model_dump())
    db.add(roll)
    db.commit()
    db.refresh(roll)
    return roll


@router.get("/coverage", response_model=HedgeCoverageRead)
def hedge_coverage(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    coverage = load_hedge_coverage(db)
    return HedgeCoverageRead(
        total_hedgeable_mt=round(coverage.total_hedgeable_mt, 4),
        priced_mt=round(coverage.priced_mt, 4),
        unpriced_mt=round(coverage.unpriced_mt, 4),
        coverage_pct=round(coverage.coverage_pct, 2),
        open_hedge_mt=round(coverage.open_hedge_mt, 4),
        band=coverage.band,
    )
