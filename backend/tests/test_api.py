from fastapi.testclient import TestClient

from tradeops import models
from tradeops.api import deps
from tradeops.core.security import create_access_token_for_subject
from tradeops.main import app
from tradeops.models.domain import RoleName
from tradeops.services.approval_rules import seed_default_rules
from tradeops.services.audit import audit_event

client = TestClient(app)


def _stub_user(role_name: RoleName, user_id: int = 1):
    class StubUser:
        def __init__(self):
            self.id = user_id
            self.email = f"{role_name.value}@test.com"
            self.active = True
            self.role = type("Role", (), {"name": role_name})()

    return StubUser()


def _as(role_name: RoleName) -> None:
    app.dependency_overrides[deps.get_current_user] = lambda: _stub_user(role_name)


def test_healthcheck_and_request_id_header():
    r = client.get("/api/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert "environment" in body
    assert "uptime_seconds" in body
    assert "X-Request-ID" in r.headers


def test_request_id_is_propagated():
    r = client.get("/api/health", headers={"X-Request-ID": "req-123"})
    assert r.headers["X-Request-ID"] == "req-123"


def test_unauthenticated_requests_are_rejected():
    r = client.get("/api/tickets")
    assert r.status_code == 401


def test_bearer_token_resolves_active_user(db_session):
    role = models.Role(name=RoleName.trader)
    db_session.add(role)
    db_session.commit()
    db_session.add(models.User(email="trader@test.com", name="Trader", role_id=role.id, active=True))
    db_session.commit()

    token = create_access_token_for_subject("Trader@Test.com")
    r = client.get("/api/tickets", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json() == []

    r = client.get("/api/tickets", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401


def test_audit_event_is_idempotent(db_session):
    first = audit_event("test.event", None, {"a": 1}, db=db_session, idempotency_key="k-1")
    second = audit_event("test.event", None, {"a": 1}, db=db_session, idempotency_key="k-1")
    assert first is not None
    assert first == second
    assert db_session.query(models.AuditLog).filter_by(action="test.event").count() == 1


def test_trader_cannot_manage_approval_rules():
    _as(RoleName.trader)
    r = client.post("/api/approval-rules/seed")
    assert r.status_code == 403
    assert r.json()["detail"] == "Insufficient role"


def test_admin_passes_every_role_check():
    _as(RoleName.admin)
    r = client.post("/api/approval-rules/seed")
    assert r.status_code == 200
    r = client.get("/api/finance/invoices")
    assert r.status_code == 200


def test_fix_status_requires_ticket_id_unless_bulk():
    _as(RoleName.cfo)
    r = client.post("/api/approval-rules/fix-status", json={})
    assert r.status_code == 400

    r = client.post("/api/approval-rules/fix-status", json={"ticketId": 999})
    assert r.status_code == 404

    r = client.post("/api/approval-rules/fix-status", json={"bulk": True})
    assert r.status_code == 200
    assert r.json()["fixed"] == 0


def test_fixed_price_ticket_skips_approval(db_session):
    seed_default_rules(db_session)
    _as(RoleName.trader)

    r = client.post(
        "/api/tickets",
        json={"type": "Sell", "transaction_type": "B2B", "pricing_type": "Fixed", "quantity": 10, "price": 100},
    )
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "Draft"
    assert body["signed_volume"] == -10
    assert body["signed_price"] == -100

    assert db_session.query(models.AuditLog).filter_by(action="ticket.created").count() == 1


def test_negative_quantity_is_rejected():
    _as(RoleName.trader)
    r = client.post("/api/tickets", json={"type": "Buy", "quantity": -1})
    assert r.status_code == 400


def test_index_ticket_goes_through_both_approvers(db_session):
    seed_default_rules(db_session)
    _as(RoleName.trader)
    r = client.post(
        "/api/tickets",
        json={"type": "Buy", "transaction_type": "B2B", "pricing_type": "Index", "quantity": 25, "price": 2100},
    )
    assert r.status_code == 201
    ticket = r.json()
    assert ticket["status"] == "Pending Approval"

    r = client.get("/api/approvals/requests", params={"ticket_id": ticket["id"]})
    assert r.status_code == 200
    (req,) = r.json()
    assert req["required_approvers"] == ["Hedging", "CFO"]
    url = f"/api/approvals/requests/{req['id']}/decisions"

    # A CFO user may not sign off as Hedging.
    _as(RoleName.cfo)
    r = client.post(url, json={"approver_role": "Hedging", "action": "Approve"})
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "approver_role_mismatch"

    _as(RoleName.hedging)
    r = client.post(url, json={"approver_role": "Hedging", "action": "Approve"})
    assert r.status_code == 201
    assert r.json()["replayed"] is False
    assert r.json()["request"]["status"] == "Pending Approval"

    # Same decision again is a replay.
    r = client.post(url, json={"approver_role": "Hedging", "action": "Approve"})
    assert r.status_code == 201
    assert r.json()["replayed"] is True

    r = client.post(url, json={"approver_role": "Hedging", "action": "Reject"})
    assert r.status_code == 409

    _as(RoleName.cfo)
    r = client.post(url, json={"approver_role": "CFO", "action": "Approve"})
    assert r.status_code == 201
    assert r.json()["request"]["status"] == "Approved"

    _as(RoleName.trader)
    r = client.get(f"/api/tickets/{ticket['id']}")
    assert r.json()["status"] == "Approved"


def test_approver_not_required_is_rejected(db_session):
    seed_default_rules(db_session)
    _as(RoleName.trader)
    r = client.post("/api/tickets", json={"type": "Buy", "transaction_type": "B2B", "pricing_type": "Index"})
    req_id = client.get("/api/approvals/requests").json()[0]["id"]

    _as(RoleName.management)
    r = client.post(
        f"/api/approvals/requests/{req_id}/decisions",
        json={"approver_role": "Management", "action": "Approve"},
    )
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "approver_not_required"


def test_trader_cannot_decide():
    _as(RoleName.trader)
    r = client.post("/api/approvals/requests/1/decisions", json={"approver_role": "CFO", "action": "Approve"})
    assert r.status_code == 403


def test_expired_or_foreign_tokens_are_rejected(db_session):
    from datetime import datetime, timedelta, timezone

    from tradeops.core.security import decode_access_token, decode_access_token_subject

    role = models.Role(name=RoleName.cfo)
    db_session.add(role)
    db_session.commit()
    db_session.add(models.User(email="cfo@test.com", name="CFO", role_id=role.id, active=True))
    db_session.commit()

    stale = create_access_token_for_subject(
        "cfo@test.com", expires_minutes=5, now=datetime.now(timezone.utc) - timedelta(hours=1)
    )
    assert decode_access_token(stale) is None
    r = client.get("/api/tickets", headers={"Authorization": f"Bearer {stale}"})
    assert r.status_code == 401

    named = create_access_token_for_subject("cfo@test.com", extra_claims={"name": "CFO"})
    assert decode_access_token(named)["name"] == "CFO"

    token = create_access_token_for_subject("  CFO@Test.com ")
    assert decode_access_token_subject(token) == "cfo@test.com"


def test_ticket_update_rejects_null_for_required_fields():
    _as(RoleName.trader)
    r = client.post("/api/tickets", json={"type": "Buy", "quantity": 5, "price": 10})
    ticket_id = r.json()["id"]

    r = client.put(f"/api/tickets/{ticket_id}", json={"type": None})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "field_not_nullable"
    assert r.json()["detail"]["fields"] == ["type"]

    r = client.put(f"/api/tickets/{ticket_id}", json={"currency": None, "lme_action_needed": None})
    assert r.status_code == 400
    assert r.json()["detail"]["fields"] == ["currency", "lme_action_needed"]

    # Nullable columns may still be cleared.
    r = client.put(f"/api/tickets/{ticket_id}", json={"price": None})
    assert r.status_code == 200
    assert r.json()["type"] == "Buy"
