from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.orm import Session

from tradeops import models
from tradeops.services.hedge_coverage import first_ticket_id


@dataclass(frozen=True)
class PlannedShipmentRow:
    order_id: str
    shipment_number: int
    quantity_mt: float


def derive_planned_bl_count(buy_planned: int | None, sell_planned: int | None) -> int:
    buy = int(buy_planned or 0)
    sell = int(sell_planned or 0)
    if buy > 0 and sell > 0:
        return min(buy, sell)
    if buy > 0:
        return buy
    if sell > 0:
        return sell
    return 0


def create_planned_shipment_rows(
    order_id: str, count: int, allocated_qty: float | None
) -> list[PlannedShipmentRow]:
    """Split the allocated quantity evenly over ``count`` shipments."""

    if count <= 0:
        return []
    per_shipment = round(float(allocated_qty or 0.0) / count, 2)
    return [
        PlannedShipmentRow(order_id=str(order_id), shipment_number=n, quantity_mt=per_shipment)
        for n in range(1, count + 1)
    ]


def order_margin_pct(buy_price: float | None, sell_price: float | None) -> float | None:
    if buy_price is None or sell_price is None or buy_price <= 0:
        return None
    return (float(sell_price) - float(buy_price)) / float(buy_price) * 100.0


def parse_ticket_ids(csv_ids: str | None) -> list[int]:
    out: list[int] = []
    for part in str(csv_ids or "").split(","):
        part = part.strip()
        if part.isdigit():
            out.append(int(part))
    return out


def join_ticket_ids(ids: Iterable[int]) -> str:
    return ",".join(str(int(i)) for i in ids)


def order_tickets(db: Session, order: models.Order) -> tuple[models.Ticket | None, models.Ticket | None]:
    """First buy and first sell ticket referenced by an order."""

    buy_id = first_ticket_id(order.buyer)
    sell_id = first_ticket_id(order.seller)
    buy = db.get(models.Ticket, buy_id) if buy_id is not None else None
    sell = db.get(models.Ticket, sell_id) if sell_id is not None else None
    return buy, sell


def next_bl_order_names(existing_names: Iterable[str | None], order_id: str, count: int) -> list[str]:
    """``{order_id}-{n}`` names continuing after the highest number already used."""

    pattern = re.compile(rf"^{re.escape(str(order_id))}-(\d+)")
    highest = 0
    for name in existing_names:
        m = pattern.match(str(name or ""))
        if m:
            highest = max(highest, int(m.group(1)))
    return [f"{order_id}-{highest + i}" for i in range(1, max(count, 0) + 1)]


def _existing_bl_names(db: Session, order_id: str) -> list[str | None]:
    # Soft-deleted BL orders keep their numbers.
    rows = (
        db.query(models.BLOrder.bl_order_name)
        .filter(models.BLOrder.order_id == order_id, models.BLOrder.bl_order_name.isnot(None))
        .all()
    )
    return [r[0] for r in rows]


def create_planned_bl_orders(*, db: Session, order: models.Order, count: int | None = None) -> list[models.BLOrder]:
    """Create ``Planned`` BL orders for an order; caller commits.

    Without an explicit count, the count is derived from the tickets' planned
    shipments. Names continue after the order's existing BL orders.
    """

    if count is None:
        buy, sell = order_tickets(db, order)
        count = derive_planned_bl_count(
            getattr(buy, "planned_shipments", None), getattr(sell, "planned_shipments", None)
        )

    rows = create_planned_shipment_rows(order.id, count, order.allocated_quantity_mt)
    names = next_bl_order_names(_existing_bl_names(db, order.id), order.id, len(rows))
    created: list[models.BLOrder] = []
    for row, name in zip(rows, names):
        bl = models.BLOrder(
            order_id=order.id,
            bl_order_name=name,
            status="Planned",
            total_quantity_mt=row.quantity_mt,
        )
        db.add(bl)
        created.append(bl)
    db.flush()
    return created


def allocate_bl_orders(*, db: Session, order: models.Order, bl_orders: list[models.BLOrder]) -> list[models.BLOrder]:
    """Move BL orders onto ``order``, renaming each with the order's next number; caller commits."""

    names = next_bl_order_names(_existing_bl_names(db, order.id), order.id, len(bl_orders))
    for bl, name in zip(bl_orders, names):
        bl.order_id = order.id
        bl.bl_order_name = name
        db.add(bl)
    db.flush()
    return bl_orders
