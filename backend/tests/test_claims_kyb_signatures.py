from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from tradeops import models
from tradeops.config import settings
from tradeops.services.claims_aging import (
    aging_band,
    apply_resolution_days,
    build_dashboard,
    claimed_pct,
    days_to_raise,
    display_status,
)
from tradeops.services.kyb import (
    apply_kyb_webhook,
    customer_reference_for,
    parse_customer_reference,
    resolve_company_kyb_gate,
)
from tradeops.services.signatures import (
    apply_status_webhook,
    can_transition,
    create_signature_request,
    mark_sent,
)

S = models.SignatureStatus


# Claims


def test_display_status_and_aging_band():
    assert display_status(models.ClaimStatus.closed) == "Closed"
    assert display_status("counter_offer") == "Open"
    assert aging_band(None) is None
    assert aging_band(4) == "green"
    assert aging_band(5) == "yellow"
    assert aging_band(15) == "yellow"
    assert aging_band(16) == "red"


def test_days_to_raise_falls_back_to_created_at():
    claim = SimpleNamespace(ata=date(2025, 1, 1), claimed_file_date=None, created_at=datetime(2025, 1, 9, 8, 0))
    assert days_to_raise(claim) == 8
    claim.claimed_file_date = date(2025, 1, 4)
    assert days_to_raise(claim) == 3
    claim.ata = None
    assert days_to_raise(claim) is None


def test_claimed_pct_against_order_value():
    claim = SimpleNamespace(claimed_value_amount=500.0)
    order = SimpleNamespace(allocated_quantity_mt=10.0, sell_price=1000.0)
    assert claimed_pct(claim, order) == pytest.approx(5.0)
    assert claimed_pct(claim, SimpleNamespace(allocated_quantity_mt=0, sell_price=1000.0)) is None
    assert claimed_pct(claim, None) is None


def test_resolution_days_stamped_once_settled():
    claim = models.Claim(
        claim_type=models.ClaimType.moisture,
        status=models.ClaimStatus.settled,
        ata=date(2025, 1, 1),
        claimed_file_date=date(2025, 1, 5),
    )
    apply_resolution_days(claim, today=date(2025, 2, 4))
    assert claim.settled_at == date(2025, 2, 4)
    assert claim.days_to_resolve_since_ata == 34
    assert claim.days_to_resolve_since_claim == 30

    open_claim = models.Claim(claim_type=models.ClaimType.dust, status=models.ClaimStatus.draft)
    apply_resolution_days(open_claim, today=date(2025, 2, 4))
    assert open_claim.settled_at is None


def test_dashboard_counts_and_claim_window():
    today = date(2025, 5, 20)
    claims = [
        SimpleNamespace(
            status=models.ClaimStatus.draft,
            claim_type=models.ClaimType.quality,
            ata=today - timedelta(days=10),
            claimed_value_amount=100.0,
            final_settlement_amount=None,
            bl_order_id=1,
            deleted_at=None,
        ),
        SimpleNamespace(
            status=models.ClaimStatus.closed,
            claim_type=models.ClaimType.quality,
            ata=today - timedelta(days=40),
            claimed_value_amount=50.0,
            final_settlement_amount=30.0,
            bl_order_id=None,
            deleted_at=None,
        ),
    ]
    bl_orders = [
        SimpleNamespace(id=1, bl_order_name="A-1", ata=today - timedelta(days=20), deleted_at=None),
        SimpleNamespace(id=2, bl_order_name="A-2", ata=today - timedelta(days=9), deleted_at=None),
        SimpleNamespace(id=3, bl_order_name="A-3", ata=today - timedelta(days=3), deleted_at=None),
    ]
    dash = build_dashboard(claims, bl_orders, today=today)

    assert (dash.total, dash.open, dash.closed) == (2, 1, 1)
    assert dash.past_window == 1
    assert dash.total_claimed_amount == pytest.approx(150.0)
    assert dash.total_settled_amount == pytest.approx(30.0)
    assert dash.by_type == {"quality": 2}
    assert [r["bl_order_id"] for r in dash.claim_window_bl_orders] == [2]


# KYB


def _company(db, **kw):
    company = models.Company(name=kw.pop("name", "Acme Metals"), **kw)
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


def test_customer_reference_round_trip():
    ref = customer_reference_for(42)
    assert ref == f"{settings.kyb_customer_reference_prefix}-42"
    assert parse_customer_reference(ref) == 42
    assert parse_customer_reference("other-42") is None
    assert parse_customer_reference(f"{settings.kyb_customer_reference_prefix}-x") is None


def test_kyb_gate_reasons(db_session):
    today = date(2025, 6, 1)
    assert resolve_company_kyb_gate(db_session, 999, today=today).reason_code == "COMPANY_NOT_FOUND"

    pending = _company(db_session, kyb_status=models.KybStatus.needs_review)
    assert (
        resolve_company_kyb_gate(db_session, pending.id, today=today).reason_code
        == "COMPANY_KYB_STATUS_NOT_APPROVED"
    )

    expired = _company(
        db_session,
        kyb_status=models.KybStatus.approved,
        kyb_effective_date=today - timedelta(days=settings.kyb_validity_days + 1),
    )
    gate = resolve_company_kyb_gate(db_session, expired.id, today=today)
    assert gate.reason_code == "COMPANY_KYB_EXPIRED"

    risky = _company(db_session, kyb_status=models.KybStatus.approved, detected_risk_label="HIGH")
    assert resolve_company_kyb_gate(db_session, risky.id, today=today).reason_code == "COMPANY_RISK_REJECTED"

    ok = _company(db_session, kyb_status=models.KybStatus.approved, kyb_effective_date=today)
    gate = resolve_company_kyb_gate(db_session, ok.id, today=today)
    assert gate.allowed is True
    assert gate.reason_code is None


def test_kyb_webhook_updates_detected_fields(db_session):
    company = _company(db_session)
    payload = {
        "data": {
            "id": "prof_123",
            "customer_reference": customer_reference_for(company.id),
            "review_status": "completed",
            "risk": {"category": "medium", "label": "low"},
        }
    }
    apply_kyb_webhook(db=db_session, payload=payload, now=datetime(2025, 1, 1, tzinfo=timezone.utc))
    db_session.commit()
    db_session.refresh(company)

    assert company.detected_profile_id == "prof_123"
    assert company.detected_review_status == "completed"
    assert company.detected_risk_label == "low"


def test_kyb_webhook_rejects_bad_payloads(db_session):
    with pytest.raises(HTTPException) as exc:
        apply_kyb_webhook(db=db_session, payload={"id": "p"})
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        apply_kyb_webhook(db=db_session, payload={"id": "p", "customer_reference": "nope-1"})
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        apply_kyb_webhook(db=db_session, payload={"id": "p", "customer_reference": customer_reference_for(404)})
    assert exc.value.status_code == 404


# Signatures


def test_signature_transitions_only_move_forward():
    assert can_transition(S.draft, S.sent)
    assert can_transition(S.sent, S.completed)
    assert can_transition(S.viewed, S.declined)
    assert not can_transition(S.viewed, S.sent)
    assert not can_transition(S.completed, S.voided)
    assert not can_transition(S.declined, S.completed)


def test_signature_lifecycle(db_session):
    with pytest.raises(HTTPException):
        create_signature_request(
            db=db_session, reference_table="orders", reference_id="ORD-1", document_name="SO.pdf", recipients=[]
        )

    sig = create_signature_request(
        db=db_session,
        reference_table="orders",
        reference_id="ORD-1",
        document_name="SO.pdf",
        recipients=[{"email": "buyer@example.com", "name": "Buyer"}],
    )
    assert sig.status == S.draft

    mark_sent(db=db_session, signature=sig, provider_document_id="doc-1", signing_link="https://sign/1")
    assert sig.status == S.sent
    with pytest.raises(HTTPException) as exc:
        mark_sent(db=db_session, signature=sig)
    assert exc.value.status_code == 409

    _, changed = apply_status_webhook(db=db_session, payload={"document_id": "doc-1", "status": "completed"})
    db_session.commit()
    assert changed is True
    assert sig.status == S.completed
    assert sig.completed_at is not None

    _, changed = apply_status_webhook(db=db_session, payload={"document_id": "doc-1", "status": "viewed"})
    assert changed is False
    assert sig.status == S.completed


def test_signature_webhook_validation(db_session):
    with pytest.raises(HTTPException) as exc:
        apply_status_webhook(db=db_session, payload={"document_id": "x", "status": "exploded"})
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        apply_status_webhook(db=db_session, payload={"document_id": "missing", "status": "sent"})
    assert exc.value.status_code == 404
