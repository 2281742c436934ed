from datetime import date
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from tradeops import models
from tradeops.services.hedge_coverage import coverage_band, compute_hedge_coverage, first_ticket_id
from tradeops.services.hedging import (
    close_execution,
    default_hedge_quantity_mt,
    format_qp_month,
    format_qp_month_display,
    map_commodity_to_hedge_metal,
    order_has_executed_hedge,
    physical_side_label,
)
from tradeops.services.order_matching import (
    allocate_bl_orders,
    create_planned_bl_orders,
    create_planned_shipment_rows,
    derive_planned_bl_count,
    next_bl_order_names,
    order_margin_pct,
    parse_ticket_ids,
)


@pytest.mark.parametrize(
    "commodity,expected",
    [
        ("Copper", models.HedgeMetal.copper),
        ("Copper Scrap", models.HedgeMetal.copper),
        ("aluminum", models.HedgeMetal.aluminium),
        (models.Commodity.brass, models.HedgeMetal.copper),
        ("Nickel/stainless/hi-temp", models.HedgeMetal.nickel),
        ("Magnesium", None),
        (None, None),
    ],
)
def test_map_commodity_to_hedge_metal(commodity, expected):
    assert map_commodity_to_hedge_metal(commodity) == expected


def test_physical_side_label():
    assert physical_side_label(models.TradeType.buy) == "Physical purchase"
    assert physical_side_label("Sell") == "Physical sale"
    assert physical_side_label(None) == "Unknown"


def test_default_quantity_prefers_loaded_then_total():
    bl = SimpleNamespace(loaded_quantity_mt=None, total_quantity_mt=24.456)
    assert default_hedge_quantity_mt("bl", bl_order=bl) == 24.46
    bl.loaded_quantity_mt = 20.0
    assert default_hedge_quantity_mt("bl", bl_order=bl) == 20.0

    order = SimpleNamespace(allocated_quantity_mt=0, total_quantity_mt=50)
    assert default_hedge_quantity_mt("order", order=order) == 50.0
    assert default_hedge_quantity_mt("matching", matched_qty_mt=12.3) == 12.3
    assert default_hedge_quantity_mt("unknown") == 0.0


def test_qp_month_is_one_based():
    assert format_qp_month(2025, 1) == "2025-01-01"
    assert format_qp_month_display("2025-03-01") == "March 2025"
    assert format_qp_month_display(None) == "—"
    assert format_qp_month_display("not a date") == "—"


def test_coverage_band_thresholds():
    assert coverage_band(80.0) == "good"
    assert coverage_band(79.9) == "warning"
    assert coverage_band(50.0) == "warning"
    assert coverage_band(49.99) == "bad"


def test_first_ticket_id_skips_garbage():
    assert first_ticket_id(" x, 12,13") == 12
    assert first_ticket_id(None) is None


def _execution(id, qty, open_qty):
    return SimpleNamespace(id=id, quantity_mt=qty, open_quantity_mt=open_qty, deleted_at=None)


def _link(execution_id, level, link_id, side, qty):
    return SimpleNamespace(
        hedge_execution_id=execution_id,
        link_level=level,
        link_id=link_id,
        side=side,
        allocated_quantity_mt=qty,
    )


def test_coverage_counts_closed_share_as_priced():
    requests = [
        SimpleNamespace(ticket_id=1, quantity_mt=100.0, deleted_at=None),
        SimpleNamespace(ticket_id=2, quantity_mt=40.0, deleted_at=None),  # fixed price
    ]
    executions = [_execution(10, 100.0, 25.0)]
    links = [_link(10, models.HedgeLinkLevel.order, "ORD-1", models.HedgeLinkSide.buy, 100.0)]
    orders = [SimpleNamespace(id="ORD-1", buyer="1", seller="3")]

    cov = compute_hedge_coverage(
        hedge_requests=requests,
        executions=executions,
        links=links,
        orders=orders,
        bl_orders=[],
        ticket_pricing={1: models.PricingType.index, 2: models.PricingType.fixed, 3: "Formula"},
    )
    assert cov.total_hedgeable_mt == 100.0
    assert cov.priced_mt == pytest.approx(75.0)
    assert cov.open_hedge_mt == pytest.approx(25.0)
    assert cov.unpriced_mt == pytest.approx(25.0)
    assert cov.coverage_pct == pytest.approx(75.0)
    assert cov.band == "warning"


def test_coverage_resolves_bl_order_links_through_order():
    requests = [SimpleNamespace(ticket_id=3, quantity_mt=50.0, deleted_at=None)]
    executions = [_execution(1, 50.0, 0.0)]
    links = [_link(1, models.HedgeLinkLevel.bl_order, "7", models.HedgeLinkSide.sell, 50.0)]

    cov = compute_hedge_coverage(
        hedge_requests=requests,
        executions=executions,
        links=links,
        orders=[SimpleNamespace(id="ORD-9", buyer="1", seller="3")],
        bl_orders=[SimpleNamespace(id=7, order_id="ORD-9")],
        ticket_pricing={3: "Formula"},
    )
    assert cov.coverage_pct == pytest.approx(100.0)
    assert cov.band == "good"


def test_coverage_without_links_is_all_unpriced():
    cov = compute_hedge_coverage(
        hedge_requests=[SimpleNamespace(ticket_id=1, quantity_mt=30.0, deleted_at=None)],
        executions=[],
        links=[],
        orders=[],
        bl_orders=[],
        ticket_pricing={1: "Index"},
    )
    assert cov.unpriced_mt == 30.0
    assert cov.coverage_pct == 0.0


def _persisted_execution(db, *, qty=10.0, price=2000.0, direction=models.HedgeDirection.buy):
    execution = models.HedgeExecution(
        direction=direction,
        metal=models.HedgeMetal.copper,
        quantity_mt=qty,
        open_quantity_mt=qty,
        executed_price=price,
        status=models.HedgeExecutionStatus.executed,
    )
    db.add(execution)
    db.commit()
    db.refresh(execution)
    return execution


def test_close_execution_partial_then_full(db_session):
    execution = _persisted_execution(db_session)

    partial = close_execution(db=db_session, execution=execution, quantity_mt=4.0, close_price=2100.0)
    db_session.commit()
    assert partial.status == models.HedgeExecutionStatus.partially_closed.value
    assert partial.open_quantity_mt == pytest.approx(6.0)
    assert partial.realized_pnl == pytest.approx(400.0)

    full = close_execution(db=db_session, execution=execution, quantity_mt=6.0, close_price=1900.0)
    db_session.commit()
    assert full.status == models.HedgeExecutionStatus.closed.value
    assert execution.closed_at is not None
    assert execution.pnl_realized == pytest.approx(400.0 - 600.0)

    with pytest.raises(HTTPException) as exc:
        close_execution(db=db_session, execution=execution, quantity_mt=1.0, close_price=2000.0)
    assert exc.value.status_code == 409


def test_close_execution_sell_side_pnl_and_overclose(db_session):
    execution = _persisted_execution(db_session, direction=models.HedgeDirection.sell)

    with pytest.raises(HTTPException) as exc:
        close_execution(db=db_session, execution=execution, quantity_mt=10.5, close_price=1.0)
    assert exc.value.status_code == 400

    result = close_execution(db=db_session, execution=execution, quantity_mt=10.0, close_price=1950.0)
    assert result.realized_pnl == pytest.approx(500.0)


def test_order_has_executed_hedge_via_bl_order(db_session):
    order = models.Order(id="ORD-77", buyer="1", seller="2", allocated_quantity_mt=40.0)
    db_session.add(order)
    db_session.commit()
    bl = models.BLOrder(order_id=order.id, bl_order_name="ORD-77-1")
    db_session.add(bl)
    db_session.commit()

    assert order_has_executed_hedge(db_session, order.id) is False

    execution = _persisted_execution(db_session)
    db_session.add(
        models.HedgeLink(
            hedge_execution_id=execution.id,
            link_level=models.HedgeLinkLevel.bl_order,
            link_id=str(bl.id),
            side=models.HedgeLinkSide.buy,
            allocated_quantity_mt=10.0,
        )
    )
    db_session.commit()
    assert order_has_executed_hedge(db_session, order.id) is True


def test_planned_bl_count_and_rows():
    assert derive_planned_bl_count(3, 2) == 2
    assert derive_planned_bl_count(None, 4) == 4
    assert derive_planned_bl_count(0, 0) == 0

    rows = create_planned_shipment_rows("ORD-1", 3, 100.0)
    assert [r.shipment_number for r in rows] == [1, 2, 3]
    assert all(r.quantity_mt == 33.33 for r in rows)
    assert create_planned_shipment_rows("ORD-1", 0, 100.0) == []


def test_margin_and_ticket_id_parsing():
    assert order_margin_pct(400.0, 500.0) == pytest.approx(25.0)
    assert order_margin_pct(0.0, 500.0) is None
    assert order_margin_pct(None, 500.0) is None
    assert parse_ticket_ids("4, 5,,abc,6") == [4, 5, 6]


def test_create_planned_bl_orders_from_ticket_shipments(db_session):
    buy = models.Ticket(type=models.TradeType.buy, planned_shipments=2)
    sell = models.Ticket(type=models.TradeType.sell, planned_shipments=3)
    db_session.add_all([buy, sell])
    db_session.commit()
    order = models.Order(id="ORD-5", buyer=str(buy.id), seller=str(sell.id), allocated_quantity_mt=50.0)
    db_session.add(order)
    db_session.commit()

    created = create_planned_bl_orders(db=db_session, order=order)
    db_session.commit()
    assert [b.bl_order_name for b in created] == ["ORD-5-1", "ORD-5-2"]
    assert all(b.status == "Planned" and b.total_quantity_mt == 25.0 for b in created)
    again = create_planned_bl_orders(db=db_session, order=order, count=2)
    db_session.commit()
    assert [b.bl_order_name for b in again] == ["ORD-5-3", "ORD-5-4"]


def test_next_bl_order_names_continue_after_highest():
    existing = ["9001-1", "9001-7", "9001-3 (split)", "90011-20", None, "OTHER-9"]
    assert next_bl_order_names(existing, "9001", 2) == ["9001-8", "9001-9"]
    assert next_bl_order_names([], "ORD.1", 1) == ["ORD.1-1"]
    assert next_bl_order_names(["ORDX1-4"], "ORD.1", 1) == ["ORD.1-1"]
    assert next_bl_order_names(existing, "9001", 0) == []


def test_allocate_bl_orders_renames_onto_target(db_session):
    db_session.add_all([models.Order(id="ORD-A"), models.Order(id="ORD-B")])
    db_session.commit()
    kept = models.BLOrder(order_id="ORD-B", bl_order_name="ORD-B-2")
    stray = models.BLOrder(order_id="ORD-A", bl_order_name="ORD-A-1")
    loose = models.BLOrder(bl_order_name="UNKNOWN-BL")
    db_session.add_all([kept, stray, loose])
    db_session.commit()

    order_b = db_session.get(models.Order, "ORD-B")
    allocate_bl_orders(db=db_session, order=order_b, bl_orders=[stray, loose])
    db_session.commit()

    assert (stray.order_id, stray.bl_order_name) == ("ORD-B", "ORD-B-3")
    assert (loose.order_id, loose.bl_order_name) == ("ORD-B", "ORD-B-4")
    assert kept.bl_order_name == "ORD-B-2"


def test_qp_month_helper_accepts_dates():
    assert format_qp_month_display(date(2024, 12, 15)) == "December 2024"
