from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping

from sqlalchemy.orm import Session

from tradeops import models

_HEDGEABLE_PRICING = {"index", "formula"}

COVERAGE_GOOD_PCT = 80.0
COVERAGE_WARNING_PCT = 50.0


@dataclass(frozen=True)
class HedgeCoverage:
    total_hedgeable_mt: float
    priced_mt: float
    unpriced_mt: float
    coverage_pct: float
    open_hedge_mt: float

    @property
    def band(self) -> str:
        return coverage_band(self.coverage_pct)


def coverage_band(coverage_pct: float) -> str:
    if coverage_pct >= COVERAGE_GOOD_PCT:
        return "good"
    if coverage_pct >= COVERAGE_WARNING_PCT:
        return "warning"
    return "bad"


def _value(v: Any) -> Any:
    return v.value if isinstance(v, Enum) else v


def is_hedgeable_pricing(pricing_type: Any) -> bool:
    raw = _value(pricing_type)
    return str(raw or "").strip().lower() in _HEDGEABLE_PRICING


def first_ticket_id(csv_ids: str | None) -> int | None:
    """First parsable ticket id from an order's comma-separated buyer/seller column."""

    for part in str(csv_ids or "").split(","):
        part = part.strip()
        if part.isdigit():
            return int(part)
    return None


def _ticket_for_order(order: Any, side: Any) -> int | None:
    if order is None:
        return None
    if str(_value(side) or "").upper() == models.HedgeLinkSide.buy.value:
        return first_ticket_id(getattr(order, "buyer", None))
    return first_ticket_id(getattr(order, "seller", None))


def resolve_link_ticket_id(
    link: Any,
    *,
    orders_by_id: Mapping[str, Any],
    bl_orders_by_id: Mapping[int, Any],
) -> int | None:
    level = _value(getattr(link, "link_level", None))
    link_id = str(getattr(link, "link_id", "") or "").strip()
    if not link_id:
        return None

    if level == models.HedgeLinkLevel.ticket.value:
        return int(link_id) if link_id.isdigit() else None

    if level == models.HedgeLinkLevel.order.value:
        return _ticket_for_order(orders_by_id.get(link_id), getattr(link, "side", None))

    if level == models.HedgeLinkLevel.bl_order.value:
        if not link_id.isdigit():
            return None
        bl_order = bl_orders_by_id.get(int(link_id))
        order_id = getattr(bl_order, "order_id", None) if bl_order is not None else None
        if order_id is None:
            return None
        return _ticket_for_order(orders_by_id.get(str(order_id)), getattr(link, "side", None))

    return None


def compute_hedge_coverage(
    *,
    hedge_requests: Iterable[Any],
    executions: Iterable[Any],
    links: Iterable[Any],
    orders: Iterable[Any],
    bl_orders: Iterable[Any],
    ticket_pricing: Mapping[int, Any],
) -> HedgeCoverage:
    """Coverage of index/formula-priced physical tonnage by closed hedges.

    A hedge execution contributes to *priced* tonnage in proportion to the share
    of it that has been closed; the still-open share counts as open hedge.
    """

    total = 0.0
    for req in hedge_requests:
        if getattr(req, "deleted_at", None) is not None:
            continue
        ticket_id = getattr(req, "ticket_id", None)
        if ticket_id is None or not is_hedgeable_pricing(ticket_pricing.get(int(ticket_id))):
            continue
        total += float(getattr(req, "quantity_mt", 0.0) or 0.0)

    exec_by_id = {
        int(e.id): e for e in executions if getattr(e, "deleted_at", None) is None
    }
    link_rows = list(links)

    if not link_rows or not exec_by_id:
        return HedgeCoverage(
            total_hedgeable_mt=total,
            priced_mt=0.0,
            unpriced_mt=total,
            coverage_pct=0.0,
            open_hedge_mt=0.0,
        )

    orders_by_id = {str(o.id): o for o in orders}
    bl_orders_by_id = {int(b.id): b for b in bl_orders}

    priced = 0.0
    open_hedge = 0.0
    for link in link_rows:
        execution = exec_by_id.get(int(link.hedge_execution_id))
        if execution is None:
            continue

        qty = float(getattr(execution, "quantity_mt", 0.0) or 0.0)
        open_qty = getattr(execution, "open_quantity_mt", None)
        open_qty = qty if open_qty is None else float(open_qty)
        closed_ratio = (qty - open_qty) / qty if qty > 0 else 0.0

        ticket_id = resolve_link_ticket_id(
            link, orders_by_id=orders_by_id, bl_orders_by_id=bl_orders_by_id
        )
        if ticket_id is None or not is_hedgeable_pricing(ticket_pricing.get(ticket_id)):
            continue

        allocated = float(getattr(link, "allocated_quantity_mt", 0.0) or 0.0)
        priced += allocated * closed_ratio
        open_hedge += allocated * (1.0 - closed_ratio)

    unpriced = max(0.0, total - priced)
    coverage_pct = (priced / total) * 100.0 if total > 0 else 0.0

    return HedgeCoverage(
        total_hedgeable_mt=total,
        priced_mt=priced,
        unpriced_mt=unpriced,
        coverage_pct=coverage_pct,
        open_hedge_mt=open_hedge,
    )


def load_hedge_coverage(db: Session) -> HedgeCoverage:
    hedge_requests = (
        db.query(models.HedgeRequest).filter(models.HedgeRequest.deleted_at.is_(None)).all()
    )
    executions = (
        db.query(models.HedgeExecution).filter(models.HedgeExecution.deleted_at.is_(None)).all()
    )
    links = db.query(models.HedgeLink).all()
    orders = db.query(models.Order).all()
    bl_orders = db.query(models.BLOrder).all()

    ticket_pricing: dict[int, Any] = defaultdict(lambda: None)
    for ticket_id, pricing_type in db.query(models.Ticket.id, models.Ticket.pricing_type).all():
        ticket_pricing[int(ticket_id)] = pricing_type

    return compute_hedge_coverage(
        hedge_requests=hedge_requests,
        executions=executions,
        links=links,
        orders=orders,
        bl_orders=bl_orders,
        ticket_pricing=ticket_pricing,
    )
