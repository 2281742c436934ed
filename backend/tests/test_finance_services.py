from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from tradeops import models
from tradeops.services.cashflow_forecast import (
    beginning_cash_from_balances,
    compute_forecast,
    effective_due_date,
    note_kind,
)
from tradeops.services.document_numbering import format_monthly_number, highest_sequence, next_invoice_number
from tradeops.services.invoices import compute_overdues, refresh_invoice_status, round_half_up


def _inv(id, direction, amount, *, due=None, actual=None, status="Open", invoice_type=None):
    return SimpleNamespace(
        id=id,
        invoice_number=f"INV-{id}",
        bl_order_name=None,
        invoice_direction=direction,
        total_amount=amount,
        currency="USD",
        original_due_date=due,
        actual_due_date=actual,
        status=status,
        invoice_type=invoice_type,
        deleted_at=None,
    )


R = models.InvoiceDirection.receivable
P = models.InvoiceDirection.payable


def test_effective_due_date_prefers_actual():
    inv = _inv(1, R, 10.0, due=date(2025, 1, 10), actual=date(2025, 1, 20))
    assert effective_due_date(inv) == date(2025, 1, 20)
    inv.actual_due_date = None
    assert effective_due_date(inv) == date(2025, 1, 10)


def test_note_kind_is_case_insensitive():
    assert note_kind("Credit Note") == "credit note"
    assert note_kind(" debit note ") == "debit note"
    assert note_kind("Final") is None


def test_forecast_buckets_by_week_and_excludes_notes_from_cash():
    start = date(2025, 3, 3)  # Monday
    invoices = [
        _inv(1, R, 1000.0, due=date(2025, 3, 4)),
        _inv(2, P, 400.0, due=date(2025, 3, 6)),
        _inv(3, R, 250.0, due=date(2025, 3, 12)),
        _inv(4, R, 99.0, due=date(2025, 3, 5), invoice_type="Credit Note"),
        _inv(5, R, 500.0, due=date(2025, 3, 5), status="Paid"),
        _inv(6, P, 700.0, due=date(2025, 6, 1)),  # beyond horizon
        _inv(7, R, 300.0, due=date(2025, 2, 1), actual=date(2025, 3, 7)),
    ]

    fc = compute_forecast(invoices, start_date=start, beginning_cash=5000.0)

    assert fc.end_date == date(2025, 5, 2)
    assert fc.receivables == pytest.approx(1550.0)
    assert fc.payables == pytest.approx(400.0)
    assert fc.credit_notes == pytest.approx(99.0)
    assert fc.expected_end_cash == pytest.approx(5000.0 + 1550.0 - 400.0)

    assert [w.week_start for w in fc.weeks] == [date(2025, 3, 3), date(2025, 3, 10)]
    first = fc.weeks[0]
    assert first.week_end == date(2025, 3, 9)
    assert first.net == pytest.approx(1300.0 - 400.0)
    assert sorted(first.invoice_ids) == [1, 2, 4, 7]
    assert [d.day for d in fc.days] == sorted(d.day for d in fc.days)


def test_beginning_cash_uses_latest_balance_per_account():
    balances = [
        SimpleNamespace(id=1, account_name="Main", balance=100.0, as_of_date=date(2025, 1, 1)),
        SimpleNamespace(id=2, account_name="Main", balance=150.0, as_of_date=date(2025, 1, 5)),
        SimpleNamespace(id=3, account_name=None, balance=20.0, as_of_date=date(2025, 1, 2)),
        SimpleNamespace(id=4, account_name="Main", balance=999.0, as_of_date=date(2025, 2, 1)),
    ]
    assert beginning_cash_from_balances(balances, as_of=date(2025, 1, 31)) == pytest.approx(170.0)


def test_overdues_split_and_weighted_days():
    today = date(2025, 4, 30)
    invoices = [
        _inv(1, R, 100.0, due=date(2025, 4, 20)),  # 10 days
        _inv(2, R, 300.0, due=date(2025, 4, 28)),  # 2 days
        _inv(3, R, 50.0, due=date(2025, 4, 1), status="Paid"),
        _inv(4, P, 80.0, due=date(2025, 3, 31), actual=date(2025, 5, 10)),  # not yet due
        _inv(5, P, 60.0, due=date(2025, 4, 29)),
    ]
    out = compute_overdues(invoices, today=today)

    rec = out["receivables"]
    assert rec.total_amount == pytest.approx(400.0)
    assert rec.weighted_avg_days == 4
    assert [r["id"] for r in rec.invoices] == [1, 2]

    pay = out["payables"]
    assert [r["id"] for r in pay.invoices] == [5]
    assert pay.invoices[0]["days_overdue"] == 1


def test_overdue_weighted_days_round_half_up_and_need_direction():
    today = date(2025, 4, 30)
    invoices = [
        _inv(1, P, 100.0, due=date(2025, 4, 28)),  # 2 days
        _inv(2, P, 100.0, due=date(2025, 4, 27)),  # 3 days
        _inv(3, None, 500.0, due=date(2025, 1, 1)),
    ]
    out = compute_overdues(invoices, today=today)

    assert out["payables"].weighted_avg_days == 3
    assert [r["id"] for r in out["payables"].invoices] == [2, 1]
    assert out["payables"].total_amount == pytest.approx(200.0)
    assert out["receivables"].invoices == []
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2


def test_format_monthly_number():
    now = datetime(2025, 3, 9, tzinfo=timezone.utc)
    assert format_monthly_number(prefix="INV", seq=1, now=now) == "INV_001-03.25"


def test_invoice_numbers_continue_from_highest_in_month(db_session):
    now = datetime(2025, 3, 9, tzinfo=timezone.utc)
    assert next_invoice_number(db_session, now=now) == "INV_001-03.25"

    db_session.add_all(
        [
            models.Invoice(invoice_direction=R, total_amount=1.0, invoice_number="INV_001-03.25"),
            models.Invoice(invoice_direction=R, total_amount=1.0, invoice_number="INV_007-03.25"),
            models.Invoice(invoice_direction=R, total_amount=1.0, invoice_number="INV_009-02.25"),
            models.Invoice(invoice_direction=R, total_amount=1.0, invoice_number="CUSTOM-03.25"),
        ]
    )
    db_session.commit()

    assert next_invoice_number(db_session, now=now) == "INV_008-03.25"
    assert next_invoice_number(db_session, now=datetime(2025, 4, 1, tzinfo=timezone.utc)) == "INV_001-04.25"


def test_highest_sequence_ignores_foreign_numbers():
    numbers = ["INV_012-03.25", "INV_3-03.25", "INV_099-03.24", None, "inv_050-03.25"]
    assert highest_sequence(numbers, prefix="INV", suffix="03.25") == 12


def test_refresh_invoice_status_tracks_payments(db_session):
    invoice = models.Invoice(invoice_direction=R, total_amount=100.0, status="Open")
    db_session.add(invoice)
    db_session.commit()

    db_session.add(models.Payment(invoice_id=invoice.id, total_amount_paid=40.0))
    assert refresh_invoice_status(db=db_session, invoice=invoice) == "Partially Paid"

    db_session.add(models.Payment(invoice_id=invoice.id, total_amount_paid=60.0))
    assert refresh_invoice_status(db=db_session, invoice=invoice) == "Paid"
    db_session.commit()
    assert invoice.status == "Paid"
