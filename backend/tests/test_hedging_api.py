from datetime import date

import pytest
from fastapi.testclient import TestClient

from tradeops import models
from tradeops.api import deps
from tradeops.main import app
from tradeops.models.domain import RoleName


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


@pytest.fixture
def index_ticket(db_session):
    company = models.Company(name="Smelter SA", kyb_status=models.KybStatus.needs_review)
    db_session.add(company)
    db_session.commit()
    ticket = models.Ticket(
        type=models.TradeType.buy,
        pricing_type=models.PricingType.index,
        commodity_type=models.Commodity.copper,
        company_id=company.id,
        quantity=25.0,
    )
    db_session.add(ticket)
    db_session.commit()
    return ticket


def test_hedge_request_requires_quantity_or_reference(client):
    _as(RoleName.trader)
    r = client.post("/api/hedging/requests", json={"direction": "Buy"})
    assert r.status_code == 400


def test_hedge_request_quantity_defaults_from_bl_order(client, db_session):
    db_session.add(models.Order(id="ORD-3", buyer="", seller=""))
    db_session.commit()
    bl = models.BLOrder(order_id="ORD-3", bl_order_name="ORD-3-1", total_quantity_mt=18.5)
    db_session.add(bl)
    db_session.commit()

    _as(RoleName.hedging)
    r = client.post("/api/hedging/requests", json={"direction": "Sell", "bl_order_id": bl.id, "metal": "Aluminium"})
    assert r.status_code == 201
    body = r.json()
    assert body["quantity_mt"] == 18.5
    assert body["hedge_metal"] == "ALUMINIUM"
    assert body["status"] == "Draft"

    r = client.post(f"/api/hedging/requests/{body['id']}/submit")
    assert r.json()["status"] == "Pending Approval"


def test_hedge_lifecycle_with_kyb_gate(client, index_ticket):
    _as(RoleName.trader)
    r = client.post(
        "/api/hedging/requests",
        json={"ticket_id": index_ticket.id, "quantity_mt": 25, "direction": "Buy", "submit": True},
    )
    assert r.status_code == 201
    req = r.json()
    assert req["status"] == "Pending Approval"
    assert req["hedge_metal"] == "COPPER"

    # Traders request hedges but do not approve them.
    r = client.post(f"/api/hedging/requests/{req['id']}/approve")
    assert r.status_code == 403

    _as(RoleName.hedging)
    r = client.post(f"/api/hedging/requests/{req['id']}/approve")
    assert r.status_code == 409
    detail = r.json()["detail"]
    assert detail["code"] == "kyb_gate_blocked"
    assert detail["reason_code"] == "COMPANY_KYB_STATUS_NOT_APPROVED"

    _as(RoleName.trader)
    r = client.put(
        f"/api/companies/{index_ticket.company_id}",
        json={"kyb_status": "Approved", "kyb_effective_date": date.today().isoformat()},
    )
    assert r.status_code == 200

    _as(RoleName.cfo)
    r = client.post(f"/api/hedging/requests/{req['id']}/approve")
    assert r.status_code == 200
    assert r.json()["status"] == "Approved"

    _as(RoleName.hedging)
    r = client.post(
        "/api/hedging/executions",
        json={
            "hedge_request_id": req["id"],
            "direction": "Buy",
            "metal": "COPPER",
            "quantity_mt": 25,
            "executed_price": 9000,
            "links": [
                {"link_level": "Ticket", "link_id": str(index_ticket.id), "side": "BUY", "allocated_quantity_mt": 25}
            ],
        },
    )
    assert r.status_code == 201
    execution = r.json()
    assert execution["status"] == "EXECUTED"
    assert execution["open_quantity_mt"] == 25
    assert execution["links"][0]["allocation_type"] == "INITIAL_HEDGE"

    r = client.get(f"/api/hedging/requests/{req['id']}")
    assert r.json()["status"] == "Executed"

    r = client.get("/api/hedging/coverage")
    assert r.json()["coverage_pct"] == 0
    assert r.json()["open_hedge_mt"] == 25

    r = client.post(
        f"/api/hedging/executions/{execution['id']}/links",
        json={"link_level": "Ticket", "link_id": str(index_ticket.id), "side": "BUY", "allocated_quantity_mt": 1},
    )
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "links_exceed_execution_quantity"

    r = client.post(
        f"/api/hedging/executions/{execution['id']}/close", json={"quantity_mt": 10, "close_price": 9100}
    )
    assert r.status_code == 200
    closed = r.json()
    assert closed["status"] == "PARTIALLY_CLOSED"
    assert closed["open_quantity_mt"] == 15
    assert closed["pnl_realized"] == pytest.approx(1000.0)

    r = client.get("/api/hedging/coverage")
    coverage = r.json()
    assert coverage["total_hedgeable_mt"] == 25
    assert coverage["priced_mt"] == pytest.approx(10.0)
    assert coverage["coverage_pct"] == pytest.approx(40.0)
    assert coverage["band"] == "bad"


def test_execution_links_cannot_exceed_quantity(client):
    _as(RoleName.hedging)
    r = client.post(
        "/api/hedging/executions",
        json={
            "direction": "Sell",
            "metal": "ZINC",
            "quantity_mt": 5,
            "links": [{"link_level": "Order", "link_id": "ORD-1", "side": "SELL", "allocated_quantity_mt": 6}],
        },
    )
    assert r.status_code == 400


def test_rejected_request_cannot_be_executed(client, db_session):
    _as(RoleName.hedging)
    r = client.post("/api/hedging/requests", json={"direction": "Buy", "quantity_mt": 5, "submit": True})
    req_id = r.json()["id"]

    r = client.post(f"/api/hedging/requests/{req_id}/reject", json={"reason": "No limit"})
    assert r.status_code == 200
    assert r.json()["status"] == "Rejected"
    assert r.json()["rejection_reason"] == "No limit"

    r = client.post(
        "/api/hedging/executions",
        json={"hedge_request_id": req_id, "direction": "Buy", "metal": "COPPER", "quantity_mt": 5},
    )
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "invalid_hedge_request_transition"


def test_order_planned_shipments_and_executed_hedge_flag(client, db_session):
    buy = models.Ticket(type=models.TradeType.buy, planned_shipments=2)
    sell = models.Ticket(type=models.TradeType.sell, planned_shipments=2)
    db_session.add_all([buy, sell])
    db_session.commit()

    _as(RoleName.trader)
    r = client.post(
        "/api/orders",
        json={"id": "ORD-10", "buyer": str(buy.id), "seller": str(sell.id), "allocated_quantity_mt": 40,
              "buy_price": 400, "sell_price": 500},
    )
    assert r.status_code == 201
    assert r.json()["margin"] == pytest.approx(25.0)

    r = client.post("/api/orders", json={"id": "ORD-10"})
    assert r.status_code == 409

    r = client.post("/api/orders/ORD-10/planned-shipments")
    assert r.status_code == 201
    assert [b["bl_order_name"] for b in r.json()] == ["ORD-10-1", "ORD-10-2"]

    r = client.get("/api/orders/ORD-10/has-executed-hedge")
    assert r.json() == {"has_executed_hedge": False}


def test_planned_shipments_and_allocation_keep_bl_names_unique(client, db_session):
    _as(RoleName.operations)
    client.post("/api/orders", json={"id": "9001", "allocated_quantity_mt": 40})
    client.post("/api/orders", json={"id": "9002"})

    r = client.post("/api/orders/9001/planned-shipments", json={"count": 2})
    assert [b["bl_order_name"] for b in r.json()] == ["9001-1", "9001-2"]
    r = client.post("/api/orders/9001/planned-shipments", json={"count": 2})
    assert [b["bl_order_name"] for b in r.json()] == ["9001-3", "9001-4"]

    stray = client.post("/api/bl-orders", json={"order_id": "9002", "bl_order_name": "9002-1"}).json()
    r = client.post("/api/bl-orders/allocate", json={"order_id": "9001", "bl_order_ids": [stray["id"]]})
    assert r.status_code == 200
    assert r.json()[0]["order_id"] == "9001"
    assert r.json()[0]["bl_order_name"] == "9001-5"

    names = [b["bl_order_name"] for b in client.get("/api/bl-orders", params={"order_id": "9001"}).json()]
    assert sorted(names) == ["9001-1", "9001-2", "9001-3", "9001-4", "9001-5"]

    r = client.post("/api/bl-orders/allocate", json={"order_id": "missing", "bl_order_ids": [stray["id"]]})
    assert r.status_code == 400
    assert client.post("/api/bl-orders/allocate", json={"order_id": "9001", "bl_order_ids": []}).status_code == 422
