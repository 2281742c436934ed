from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Iterable

from sqlalchemy.orm import Session

from tradeops import models
from tradeops.services.cashflow_forecast import PAID_STATUS, effective_due_date

logger = logging.getLogger("tradeops.finance")

PARTIALLY_PAID_STATUS = "Partially Paid"
OPEN_STATUS = "Open"


def _direction(value: Any) -> str:
    return str(value.value if isinstance(value, Enum) else value or "")


def total_paid(invoice: models.Invoice) -> float:
    return sum(
        float(p.total_amount_paid or 0.0) for p in invoice.payments if p.deleted_at is None
    )


def refresh_invoice_status(*, db: Session, invoice: models.Invoice) -> str:
    """Derive Paid / Partially Paid / Open from the invoice's live payments; caller commits."""

    db.flush()
    db.refresh(invoice, attribute_names=["payments"])
    paid = total_paid(invoice)
    total = float(invoice.total_amount or 0.0)

    if paid > 0 and paid + 1e-9 >= total:
        status = PAID_STATUS
    elif paid > 0:
        status = PARTIALLY_PAID_STATUS
    else:
        status = OPEN_STATUS

    if invoice.status != status:
        logger.info(
            "invoice_status_changed",
            extra={"invoice_id": invoice.id, "from_status": invoice.status, "to_status": status},
        )
        invoice.status = status
        db.add(invoice)
    return status


def round_half_up(value: float) -> int:
    """2.5 rounds to 3, unlike the built-in ``round``."""
    return int(math.floor(value + 0.5))


def days_overdue(invoice: Any, *, today: date) -> int:
    due = effective_due_date(invoice)
    if due is None:
        return 0
    return max(0, (today - due).days)


@dataclass
class OverdueTotals:
    total_amount: float = 0.0
    weighted_avg_days: int = 0
    invoices: list[dict[str, Any]] = field(default_factory=list)


def _totals(rows: list[tuple[Any, int]]) -> OverdueTotals:
    out = OverdueTotals()
    weighted = 0.0
    for inv, days in rows:
        amount = float(inv.total_amount or 0.0)
        out.total_amount += amount
        weighted += days * amount
        out.invoices.append(
            {
                "id": inv.id,
                "invoice_number": inv.invoice_number,
                "bl_order_name": inv.bl_order_name,
                "total_amount": amount,
                "currency": inv.currency,
                "due_date": effective_due_date(inv),
                "days_overdue": days,
                "status": inv.status,
            }
        )
    out.weighted_avg_days = round_half_up(weighted / out.total_amount) if out.total_amount > 0 else 0
    out.invoices.sort(key=lambda r: r["days_overdue"], reverse=True)
    return out


def compute_overdues(invoices: Iterable[Any], *, today: date) -> dict[str, OverdueTotals]:
    """Unpaid invoices whose effective due date is before ``today``, split by direction."""

    receivable: list[tuple[Any, int]] = []
    payable: list[tuple[Any, int]] = []
    for inv in invoices:
        if getattr(inv, "deleted_at", None) is not None or inv.status == PAID_STATUS:
            continue
        due = effective_due_date(inv)
        if due is None or due >= today:
            continue
        row = (inv, days_overdue(inv, today=today))
        direction = _direction(inv.invoice_direction)
        if direction == models.InvoiceDirection.receivable.value:
            receivable.append(row)
        elif direction == models.InvoiceDirection.payable.value:
            payable.append(row)
    return {"receivables": _totals(receivable), "payables": _totals(payable)}


@dataclass(frozen=True)
class PaymentsSummary:
    invoiced: float
    paid: float
    outstanding: float
    invoice_count: int


def summarize_payments(invoices: Iterable[models.Invoice]) -> PaymentsSummary:
    invoiced = 0.0
    paid = 0.0
    count = 0
    for inv in invoices:
        if inv.deleted_at is not None:
            continue
        count += 1
        invoiced += float(inv.total_amount or 0.0)
        paid += total_paid(inv)
    return PaymentsSummary(
        invoiced=invoiced, paid=paid, outstanding=max(0.0, invoiced - paid), invoice_count=count
    )
