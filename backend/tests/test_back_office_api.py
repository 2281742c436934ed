from datetime import date

import pytest
from fastapi.testclient import TestClient

from tradeops import models
from tradeops.api import deps
from tradeops.config import settings
from tradeops.main import app
from tradeops.models.domain import RoleName
from tradeops.services.kyb import customer_reference_for


def _stub_user(role_name: RoleName):
    class StubUser:
        def __init__(self):
            self.id = 1
            self.email = f"{role_name.value}@test.com"
            self.active = True
            self.role = type("Role", (), {"name": role_name})()

    return StubUser()


def _as(role_name: RoleName) -> None:
    app.dependency_overrides[deps.get_current_user] = lambda: _stub_user(role_name)


@pytest.fixture
def client():
    return TestClient(app)


# Finance


def test_invoice_numbering_payments_and_overdues(client):
    _as(RoleName.cfo)
    r = client.post(
        "/api/finance/invoices",
        json={"invoice_direction": "receivable", "total_amount": 1000, "original_due_date": "2025-01-10"},
    )
    assert r.status_code == 201
    invoice = r.json()
    assert invoice["invoice_number"].startswith("INV_001-")
    assert invoice["status"] == "Open"
    assert invoice["effective_due_date"] == "2025-01-10"

    r = client.post(
        "/api/finance/invoices",
        json={"invoice_direction": "payable", "total_amount": 5, "invoice_number": invoice["invoice_number"]},
    )
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "duplicate_invoice_number"

    r = client.post(
        "/api/finance/invoices",
        json={
            "invoice_direction": "payable",
            "total_amount": 300,
            "original_due_date": "2025-01-01",
            "actual_due_date": "2025-01-20",
        },
    )
    assert r.status_code == 201
    assert r.json()["invoice_number"].startswith("INV_002-")

    r = client.post(f"/api/finance/invoices/{invoice['id']}/payments", json={"total_amount_paid": 400})
    assert r.status_code == 201
    assert r.json()["payment_direction"] == "receivable"
    assert client.get(f"/api/finance/invoices/{invoice['id']}").json()["status"] == "Partially Paid"

    r = client.get("/api/finance/overdues", params={"as_of": "2025-02-01"})
    body = r.json()
    assert body["receivables"]["total_amount"] == 1000
    assert body["receivables"]["invoices"][0]["days_overdue"] == 22
    assert body["payables"]["invoices"][0]["days_overdue"] == 12

    client.post(f"/api/finance/invoices/{invoice['id']}/payments", json={"total_amount_paid": 600})
    assert client.get(f"/api/finance/invoices/{invoice['id']}").json()["status"] == "Paid"

    _as(RoleName.management)
    summary = client.get("/api/finance/summary").json()
    assert summary == {"invoiced": 1300.0, "paid": 1000.0, "outstanding": 300.0, "invoice_count": 2}

    r = client.get("/api/finance/overdues", params={"as_of": "2025-02-01"})
    assert r.json()["receivables"]["invoices"] == []


def test_management_reads_but_cannot_write_finance(client):
    _as(RoleName.management)
    assert client.get("/api/finance/invoices").status_code == 200
    r = client.post("/api/finance/invoices", json={"invoice_direction": "payable", "total_amount": 1})
    assert r.status_code == 403

    _as(RoleName.trader)
    assert client.get("/api/finance/invoices").status_code == 403


def test_cashflow_forecast_uses_bank_balances(client):
    _as(RoleName.cfo)
    client.post("/api/finance/cash-balances", json={"account_name": "Main", "balance": 2000, "as_of_date": "2025-03-01"})
    client.post(
        "/api/finance/invoices",
        json={"invoice_direction": "receivable", "total_amount": 500, "original_due_date": "2025-03-05"},
    )
    client.post(
        "/api/finance/invoices",
        json={"invoice_direction": "payable", "total_amount": 200, "original_due_date": "2025-03-12"},
    )

    r = client.get("/api/finance/cashflow/forecast", params={"start_date": "2025-03-03"})
    assert r.status_code == 200
    fc = r.json()
    assert fc["beginning_cash"] == 2000
    assert fc["receivables"] == 500
    assert fc["payables"] == 200
    assert fc["expected_end_cash"] == 2300
    assert [w["week_start"] for w in fc["weeks"]] == ["2025-03-03", "2025-03-10"]

    r = client.get(
        "/api/finance/cashflow/forecast", params={"start_date": "2025-03-03", "end_date": "2025-03-01"}
    )
    assert r.status_code == 400


# Companies / KYB


def test_company_with_addresses_and_kyb_gate(client):
    _as(RoleName.operations)
    r = client.post(
        "/api/companies",
        json={"name": "Metal Buyer Ltd", "addresses": [{"line1": "1 Quay"}, {"line1": "2 Quay"}]},
    )
    assert r.status_code == 201
    company = r.json()
    assert [a["is_primary"] for a in company["addresses"]] == [True, False]

    r = client.get(f"/api/companies/{company['id']}/kyb-gate")
    assert r.json()["allowed"] is False
    assert r.json()["reason_code"] == "COMPANY_KYB_STATUS_NOT_APPROVED"

    r = client.get(f"/api/companies/{company['id']}/kyb-reference")
    assert r.status_code == 200
    assert r.json()["customer_reference"] == customer_reference_for(company["id"])


def test_kyb_webhook_checks_shared_secret(client, db_session, monkeypatch):
    company = models.Company(name="Checked Co")
    db_session.add(company)
    db_session.commit()
    monkeypatch.setattr(settings, "webhook_secret", "hook-secret")

    payload = {
        "id": "prof_9",
        "customer_reference": customer_reference_for(company.id),
        "review_status": "completed",
        "risk": {"label": "high"},
    }
    assert client.post("/api/companies/kyb/webhook", json=payload).status_code == 401
    r = client.post("/api/companies/kyb/webhook", json=payload, headers={"X-Webhook-Secret": "wrong"})
    assert r.status_code == 403

    r = client.post("/api/companies/kyb/webhook", json=payload, headers={"X-Webhook-Secret": "hook-secret"})
    assert r.status_code == 200
    assert r.json() == {"ok": True, "company_id": company.id}

    db_session.refresh(company)
    assert company.detected_risk_label == "high"
    assert company.detected_profile_id == "prof_9"


# Claims


def test_claim_takes_order_and_ata_from_bl_order(client, db_session):
    db_session.add(models.Order(id="ORD-C", allocated_quantity_mt=10, sell_price=1000))
    db_session.commit()
    bl = models.BLOrder(order_id="ORD-C", bl_order_name="ORD-C-1", ata=date(2025, 4, 1))
    db_session.add(bl)
    db_session.commit()

    _as(RoleName.operations)
    r = client.post(
        "/api/claims",
        json={
            "bl_order_id": bl.id,
            "claim_type": "moisture",
            "claimed_file_date": "2025-04-04",
            "claimed_value_amount": 500,
        },
    )
    assert r.status_code == 201
    claim = r.json()
    assert claim["order_id"] == "ORD-C"
    assert claim["ata"] == "2025-04-01"
    assert claim["days_to_raise"] == 3
    assert claim["aging_band"] == "green"
    assert claim["claimed_pct"] == pytest.approx(5.0)
    assert claim["display_status"] == "Open"

    r = client.put(f"/api/claims/{claim['id']}", json={"status": "closed", "final_settlement_amount": 250})
    assert r.status_code == 200
    assert r.json()["display_status"] == "Closed"
    assert r.json()["settled_at"] is not None

    r = client.get("/api/claims/dashboard", params={"as_of": "2025-04-20"})
    dash = r.json()
    assert dash["total"] == 1
    assert dash["closed"] == 1
    assert dash["total_settled_amount"] == 250

    r = client.post("/api/claims", json={"bl_order_id": 999, "claim_type": "dust"})
    assert r.status_code == 400


def test_hedging_role_cannot_raise_claims(client):
    _as(RoleName.hedging)
    assert client.post("/api/claims", json={"claim_type": "dust"}).status_code == 403


# Documents and signatures


def test_template_preview(client):
    _as(RoleName.trader)
    r = client.post(
        "/api/documents/templates/preview",
        json={"content": "<p>{{vessel_name}} / {{missing_field}}</p>", "data": {"vessel_name": "MV Test"}},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["html"] == "<p>MV Test / —</p>"
    assert body["placeholders"] == ["vessel_name", "missing_field"]

    assert client.post("/api/documents/templates/preview", json={}).status_code == 400

    r = client.get("/api/documents/templates/variables")
    assert r.status_code == 200
    assert r.json()


def test_generate_sales_order_then_sign(client, db_session):
    company = models.Company(name="Buyer GmbH")
    db_session.add(company)
    db_session.commit()
    sell = models.Ticket(type=models.TradeType.sell, company_id=company.id, payment_terms="Net 30")
    db_session.add(sell)
    db_session.commit()
    db_session.add(models.Order(id="ORD-S", seller=str(sell.id)))
    db_session.commit()

    _as(RoleName.operations)
    r = client.post(
        "/api/documents/templates",
        json={"name": "Sales Order", "category": "Order", "content": '<div class="page">{{buyer_name}} {{payment_terms}}</div>'},
    )
    assert r.status_code == 201

    r = client.post("/api/documents/generate/order", json={"template_name": "Sales Order", "order_id": "ORD-S"})
    assert r.status_code == 201
    doc = r.json()
    assert doc["order_id"] == "ORD-S"
    assert doc["document_name"].endswith(".pdf")

    r = client.get(f"/api/documents/generated/{doc['id']}/download")
    assert r.status_code == 200
    assert r.content.startswith(b"%PDF-1.4")

    r = client.get("/api/orders/ORD-S")
    assert r.json()["sales_order_url"] == doc["document_url"]

    r = client.post(
        "/api/signatures",
        json={
            "reference_table": "orders",
            "reference_id": "ORD-S",
            "document_name": doc["document_name"],
            "generated_document_id": doc["id"],
            "recipients": [{"email": "buyer@example.com", "name": "Buyer"}],
        },
    )
    assert r.status_code == 201
    signature = r.json()
    assert signature["status"] == "draft"
    assert signature["document_url"] == doc["document_url"]

    r = client.post(f"/api/signatures/{signature['id']}/send", json={"provider_document_id": "prov-1"})
    assert r.status_code == 200
    assert r.json()["status"] == "sent"

    r = client.post(f"/api/signatures/{signature['id']}/send")
    assert r.status_code == 409

    r = client.post("/api/signatures/webhook", json={"document_id": "prov-1", "status": "completed"})
    assert r.status_code == 200
    assert r.json()["changed"] is True

    r = client.get(f"/api/signatures/{signature['id']}")
    assert r.json()["status"] == "completed"
    assert r.json()["completed_at"] is not None


def test_signature_needs_recipients(client):
    _as(RoleName.trader)
    r = client.post(
        "/api/signatures",
        json={"reference_table": "orders", "reference_id": "ORD-1", "document_name": "SO.pdf", "recipients": []},
    )
    assert r.status_code == 400


def test_invoice_and_order_updates_reject_null_required_fields(client):
    _as(RoleName.cfo)
    invoice = client.post("/api/finance/invoices", json={"invoice_direction": "payable", "total_amount": 50}).json()
    r = client.put(f"/api/finance/invoices/{invoice['id']}", json={"total_amount": None, "currency": None})
    assert r.status_code == 400
    assert r.json()["detail"]["fields"] == ["currency", "total_amount"]
    assert client.get(f"/api/finance/invoices/{invoice['id']}").json()["total_amount"] == 50

    _as(RoleName.trader)
    client.post("/api/orders", json={"id": "ORD-N"})
    r = client.put("/api/orders/ORD-N", json={"status": None})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "field_not_nullable"
