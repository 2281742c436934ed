from __future__ import annotations

# ruff: noqa: B008
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tradeops import models
from tradeops.api.deps import reject_null_required, require_roles
from tradeops.core.observability import request_context
from tradeops.database import get_db
from tradeops.schemas import (
    CashBankBalanceCreate,
    CashBankBalanceRead,
    CashFlowForecastRead,
    InvoiceCommentCreate,
    InvoiceCommentRead,
    InvoiceCreate,
    InvoiceRead,
    InvoiceUpdate,
    OverduesRead,
    PaymentCreate,
    PaymentRead,
    PaymentsSummaryRead,
)
from tradeops.schemas.finance import OverdueTotalsRead
from tradeops.services.audit import audit_event
from tradeops.services.cashflow_forecast import load_forecast
from tradeops.services.document_numbering import next_invoice_number
from tradeops.services.invoices import compute_overdues, refresh_invoice_status, summarize_payments

router = APIRouter(prefix="/finance", tags=["finance"])

_read_roles_dep = require_roles(models.RoleName.cfo, models.RoleName.management)
_write_roles_dep = require_roles(models.RoleName.cfo)


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _get_invoice(db: Session, invoice_id: int) -> models.Invoice:
    invoice = db.get(models.Invoice, invoice_id)
    if invoice is None or invoice.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return invoice


def _duplicate_number(invoice_number: str | None) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "code": "duplicate_invoice_number",
            "message": "Invoice number already exists",
            "invoice_number": invoice_number,
        },
    )


# Invoices


@router.get("/invoices", response_model=List[InvoiceRead])
def list_invoices(
    direction: Optional[models.InvoiceDirection] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    order_id: Optional[str] = Query(None),
    bl_order_id: Optional[int] = Query(None),
    limit: int = Query(500, ge=1, le=2000),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    q = db.query(models.Invoice).filter(models.Invoice.deleted_at.is_(None))
    if direction is not None:
        q = q.filter(models.Invoice.invoice_direction == direction)
    if status_filter:
        q = q.filter(models.Invoice.status == status_filter)
    if order_id:
        q = q.filter(models.Invoice.order_id == order_id)
    if bl_order_id is not None:
        q = q.filter(models.Invoice.bl_order_id == bl_order_id)
    return q.order_by(models.Invoice.id.desc()).limit(limit).all()


@router.get("/invoices/{invoice_id}", response_model=InvoiceRead)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return _get_invoice(db, invoice_id)


@router.post("/invoices", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    data = reject_null_required(models.Invoice, payload.model_dump(exclude_unset=True))
    if not data.get("invoice_number"):
        data["invoice_number"] = next_invoice_number(db)

    invoice = models.Invoice(**data)
    invoice.status = "Open"
    db.add(invoice)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _duplicate_number(data.get("invoice_number"))
    db.refresh(invoice)

    audit_event(
        "invoice.created",
        getattr(current_user, "id", None),
        {
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "direction": invoice.invoice_direction.value,
            "total_amount": invoice.total_amount,
        },
        db=db,
        idempotency_key=f"invoice:{invoice.id}:created",
        **request_context(request),
    )
    return invoice


@router.put("/invoices/{invoice_id}", response_model=InvoiceRead)
def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    invoice = _get_invoice(db, invoice_id)
    data = reject_null_required(models.Invoice, payload.model_dump(exclude_unset=True))
    for field, value in data.items():
        setattr(invoice, field, value)
    if "total_amount" in data:
        refresh_invoice_status(db=db, invoice=invoice)
    db.add(invoice)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _duplicate_number(data.get("invoice_number"))
    db.refresh(invoice)
    return invoice


@router.delete("/invoices/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    invoice = _get_invoice(db, invoice_id)
    invoice.deleted_at = datetime.now(timezone.utc)
    db.add(invoice)
    db.commit()


# Payments


@router.get("/invoices/{invoice_id}/payments", response_model=List[PaymentRead])
def list_payments(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    invoice = _get_invoice(db, invoice_id)
    return [p for p in invoice.payments if p.deleted_at is None]


@router.post(
    "/invoices/{invoice_id}/payments",
    response_model=PaymentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_payment(
    invoice_id: int,
    payload: PaymentCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    invoice = _get_invoice(db, invoice_id)
    payment = models.Payment(invoice_id=invoice.id, **payload.model_dump(exclude_unset=True))
    if payment.payment_direction is None:
        payment.payment_direction = invoice.invoice_direction
    db.add(payment)
    new_status = refresh_invoice_status(db=db, invoice=invoice)
    db.commit()
    db.refresh(payment)

    audit_event(
        "payment.created",
        getattr(current_user, "id", None),
        {
            "invoice_id": invoice.id,
            "payment_id": payment.id,
            "amount": payment.total_amount_paid,
            "invoice_status": new_status,
        },
        db=db,
        idempotency_key=f"payment:{payment.id}:created",
        **request_context(request),
    )
    return payment


@router.delete("/payments/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    payment = db.get(models.Payment, payment_id)
    if payment is None or payment.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    payment.deleted_at = datetime.now(timezone.utc)
    db.add(payment)
    refresh_invoice_status(db=db, invoice=payment.invoice)
    db.commit()


# Comments


@router.get("/invoices/{invoice_id}/comments", response_model=List[InvoiceCommentRead])
def list_comments(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return _get_invoice(db, invoice_id).comments


@router.post(
    "/invoices/{invoice_id}/comments",
    response_model=InvoiceCommentRead,
    status_code=status.HTTP_201_CREATED,
)
def add_comment(
    invoice_id: int,
    payload: InvoiceCommentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    invoice = _get_invoice(db, invoice_id)
    comment = models.InvoiceComment(
        invoice_id=invoice.id,
        comment_text=payload.comment_text,
        created_by=getattr(current_user, "id", None),
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment


# Cash position


@router.get("/cash-balances", response_model=List[CashBankBalanceRead])
def list_cash_balances(
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    q = db.query(models.CashBankBalance)
    if as_of is not None:
        q = q.filter(models.CashBankBalance.as_of_date <= as_of)
    return q.order_by(models.CashBankBalance.as_of_date.desc(), models.CashBankBalance.id.desc()).all()


@router.post("/cash-balances", response_model=CashBankBalanceRead, status_code=status.HTTP_201_CREATED)
def create_cash_balance(
    payload: CashBankBalanceCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    balance = models.CashBankBalance(**payload.model_dump())
    db.add(balance)
    db.commit()
    db.refresh(balance)
    return balance


@router.get("/cashflow/forecast", response_model=CashFlowForecastRead)
def cashflow_forecast(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    beginning_cash: Optional[float] = Query(None, description="Overrides bank balances"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    start = start_date or _today()
    if end_date is not None and end_date < start:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")
    forecast = load_forecast(db, start_date=start, end_date=end_date, beginning_cash=beginning_cash)
    return CashFlowForecastRead.model_validate(forecast)


@router.get("/overdues", response_model=OverduesRead)
def overdues(
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    today = as_of or _today()
    invoices = db.query(models.Invoice).filter(models.Invoice.deleted_at.is_(None)).all()
    result = compute_overdues(invoices, today=today)
    return OverduesRead(
        as_of=today,
        receivables=OverdueTotalsRead.model_validate(result["receivables"]),
        payables=OverdueTotalsRead.model_validate(result["payables"]),
    )


@router.get("/summary", response_model=PaymentsSummaryRead)
def payments_summary(
    direction: Optional[models.InvoiceDirection] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    q = db.query(models.Invoice).filter(models.Invoice.deleted_at.is_(None))
    if direction is not None:
        q = q.filter(models.Invoice.invoice_direction == direction)
    return PaymentsSummaryRead.model_validate(summarize_payments(q.all()))
