"""Rolling cash-flow forecast over unpaid invoices.

Receivables and payables are bucketed by their effective due date (actual due
date when set, otherwise the original one). Credit and debit notes are reported
on their own and never move the expected end cash.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Iterable

from sqlalchemy.orm import Session

from tradeops import models

DEFAULT_HORIZON_DAYS = 60
DEFAULT_ACCOUNT_KEY = "__default__"

CREDIT_NOTE = "credit note"
DEBIT_NOTE = "debit note"
PAID_STATUS = "Paid"

_KEYS = ("receivables", "payables", "credit_notes", "debit_notes")


@dataclass(frozen=True)
class WeekBucket:
    week_number: int
    week_start: date
    week_end: date
    receivables: float
    payables: float
    credit_notes: float
    debit_notes: float
    invoice_ids: list[int]

    @property
    def net(self) -> float:
        return self.receivables - self.payables


@dataclass(frozen=True)
class DayBucket:
    day: date
    receivables: float
    payables: float
    credit_notes: float
    debit_notes: float

    @property
    def net(self) -> float:
        return self.receivables - self.payables


@dataclass(frozen=True)
class CashFlowForecast:
    start_date: date
    end_date: date
    beginning_cash: float
    receivables: float
    payables: float
    credit_notes: float
    debit_notes: float
    weeks: list[WeekBucket] = field(default_factory=list)
    days: list[DayBucket] = field(default_factory=list)

    @property
    def expected_end_cash(self) -> float:
        return self.beginning_cash + self.receivables - self.payables


def _direction(value: Any) -> str:
    return str(value.value if isinstance(value, Enum) else value or "")


def note_kind(invoice_type: Any) -> str | None:
    kind = str(invoice_type or "").strip().lower()
    if kind in {CREDIT_NOTE, DEBIT_NOTE}:
        return kind
    return None


def effective_due_date(invoice: Any) -> date | None:
    return getattr(invoice, "actual_due_date", None) or getattr(invoice, "original_due_date", None)


def latest_balances_by_account(balances: Iterable[Any], *, as_of: date | None = None) -> dict[str, Any]:
    latest: dict[str, Any] = {}
    for b in balances:
        if as_of is not None and b.as_of_date > as_of:
            continue
        key = b.account_name or DEFAULT_ACCOUNT_KEY
        current = latest.get(key)
        if current is None or (b.as_of_date, b.id or 0) > (current.as_of_date, current.id or 0):
            latest[key] = b
    return latest


def beginning_cash_from_balances(balances: Iterable[Any], *, as_of: date | None = None) -> float:
    return sum(float(b.balance or 0.0) for b in latest_balances_by_account(balances, as_of=as_of).values())


def _week_start(d: date) -> date:
    return d - timedelta(days=d.weekday())


def compute_forecast(
    invoices: Iterable[Any],
    *,
    start_date: date,
    end_date: date | None = None,
    beginning_cash: float = 0.0,
) -> CashFlowForecast:
    end_date = end_date or (start_date + timedelta(days=DEFAULT_HORIZON_DAYS))

    included = []
    for inv in invoices:
        if getattr(inv, "deleted_at", None) is not None or inv.status == PAID_STATUS:
            continue
        due = effective_due_date(inv)
        if due is None or due < start_date or due > end_date:
            continue
        included.append((due, inv))

    totals = defaultdict(float)
    by_week: dict[date, dict[str, Any]] = {}
    by_day: dict[date, dict[str, float]] = {}

    for due, inv in included:
        amount = float(inv.total_amount or 0.0)
        note = note_kind(inv.invoice_type)
        if note == CREDIT_NOTE:
            key = "credit_notes"
        elif note == DEBIT_NOTE:
            key = "debit_notes"
        elif _direction(inv.invoice_direction) == models.InvoiceDirection.receivable.value:
            key = "receivables"
        else:
            key = "payables"

        totals[key] += amount

        ws = _week_start(due)
        week = by_week.setdefault(ws, {"ids": [], **{k: 0.0 for k in _KEYS}})
        week[key] += amount
        week["ids"].append(int(inv.id))

        day = by_day.setdefault(due, {k: 0.0 for k in _KEYS})
        day[key] += amount

    weeks = [
        WeekBucket(
            week_number=ws.isocalendar()[1],
            week_start=ws,
            week_end=ws + timedelta(days=6),
            receivables=w["receivables"],
            payables=w["payables"],
            credit_notes=w["credit_notes"],
            debit_notes=w["debit_notes"],
            invoice_ids=w["ids"],
        )
        for ws, w in sorted(by_week.items())
    ]
    days = [DayBucket(day=d, **v) for d, v in sorted(by_day.items())]

    return CashFlowForecast(
        start_date=start_date,
        end_date=end_date,
        beginning_cash=float(beginning_cash),
        receivables=totals["receivables"],
        payables=totals["payables"],
        credit_notes=totals["credit_notes"],
        debit_notes=totals["debit_notes"],
        weeks=weeks,
        days=days,
    )


def load_forecast(
    db: Session,
    *,
    start_date: date,
    end_date: date | None = None,
    beginning_cash: float | None = None,
) -> CashFlowForecast:
    """Forecast from the database; beginning cash defaults to bank balances as of ``start_date``."""

    if beginning_cash is None:
        balances = db.query(models.CashBankBalance).all()
        beginning_cash = beginning_cash_from_balances(balances, as_of=start_date)

    invoices = (
        db.query(models.Invoice)
        .filter(models.Invoice.deleted_at.is_(None), models.Invoice.status != PAID_STATUS)
        .all()
    )
    return compute_forecast(
        invoices, start_date=start_date, end_date=end_date, beginning_cash=beginning_cash
    )
