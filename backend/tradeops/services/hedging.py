from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from tradeops import models

logger = logging.getLogger("tradeops.hedging")

_DIRECT_METALS: dict[str, models.HedgeMetal] = {
    "COPPER": models.HedgeMetal.copper,
    "ALUMINIUM": models.HedgeMetal.aluminium,
    "ALUMINUM": models.HedgeMetal.aluminium,
    "ZINC": models.HedgeMetal.zinc,
    "NICKEL": models.HedgeMetal.nickel,
    "LEAD": models.HedgeMetal.lead,
    "TIN": models.HedgeMetal.tin,
}

HEDGE_REASON_LABELS = {
    models.HedgeReason.physical_sale_pricing: "Physical sale pricing",
    models.HedgeReason.unpricing: "Unpricing",
    models.HedgeReason.pre_lending: "Pre-lending",
    models.HedgeReason.pre_borrowing: "Pre-borrowing",
    models.HedgeReason.roll: "Roll",
    models.HedgeReason.price_fix: "Price fix",
}

QP_MONTH_PLACEHOLDER = "—"

# Executions still counted as live exposure for "has executed hedge" checks.
_EXECUTED = models.HedgeExecutionStatus.executed


def map_commodity_to_hedge_metal(commodity: Any) -> models.HedgeMetal | None:
    """Map a ticket/order commodity to the LME metal it is hedged against.

    "Copper Scrap" resolves to COPPER through a substring match; brass is hedged
    as copper. Anything else has no hedge metal.
    """

    if isinstance(commodity, Enum):
        commodity = commodity.value
    if not commodity:
        return None

    normalized = str(commodity).upper().strip()
    if normalized in _DIRECT_METALS:
        return _DIRECT_METALS[normalized]

    for key, metal in _DIRECT_METALS.items():
        if key in normalized:
            return metal

    if "BRASS" in normalized:
        return models.HedgeMetal.copper
    return None


def physical_side_label(ticket_type: Any) -> str:
    if isinstance(ticket_type, Enum):
        ticket_type = ticket_type.value
    if ticket_type == models.TradeType.buy.value:
        return "Physical purchase"
    if ticket_type == models.TradeType.sell.value:
        return "Physical sale"
    return "Unknown"


def default_hedge_quantity_mt(
    kind: str,
    *,
    matched_qty_mt: float | None = None,
    order: Any = None,
    bl_order: Any = None,
) -> float:
    quantity = 0.0
    if kind == "matching":
        quantity = float(matched_qty_mt or 0.0)
    elif kind == "order" and order is not None:
        allocated = getattr(order, "allocated_quantity_mt", None)
        if allocated and allocated > 0:
            quantity = float(allocated)
        else:
            quantity = float(getattr(order, "total_quantity_mt", None) or 0.0)
    elif kind == "bl" and bl_order is not None:
        loaded = getattr(bl_order, "loaded_quantity_mt", None)
        total = getattr(bl_order, "total_quantity_mt", None)
        quantity = float(loaded if loaded is not None else (total or 0.0))
    return round(quantity, 2)


def format_qp_month(year: int, month: int) -> str:
    """First day of the QP month as stored in ``estimated_qp_month`` (month is 1-12)."""

    return date(int(year), int(month), 1).isoformat()


def parse_qp_month(value: Any) -> tuple[int, int] | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.year, value.month
    if isinstance(value, date):
        return value.year, value.month
    try:
        parsed = date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None
    return parsed.year, parsed.month


def format_qp_month_display(value: Any) -> str:
    parsed = parse_qp_month(value)
    if parsed is None:
        return QP_MONTH_PLACEHOLDER
    year, month = parsed
    return f"{calendar.month_name[month]} {year}"


def _executed_link_exists(db: Session, *, level: models.HedgeLinkLevel, link_ids: list[str]) -> bool:
    if not link_ids:
        return False
    row = (
        db.query(models.HedgeLink.id)
        .join(models.HedgeExecution, models.HedgeExecution.id == models.HedgeLink.hedge_execution_id)
        .filter(
            models.HedgeLink.link_level == level,
            models.HedgeLink.link_id.in_(link_ids),
            models.HedgeExecution.status == _EXECUTED,
            models.HedgeExecution.deleted_at.is_(None),
        )
        .first()
    )
    return row is not None


def bl_order_has_executed_hedge(db: Session, bl_order_id: int) -> bool:
    return _executed_link_exists(
        db, level=models.HedgeLinkLevel.bl_order, link_ids=[str(int(bl_order_id))]
    )


def order_has_executed_hedge(db: Session, order_id: str) -> bool:
    if _executed_link_exists(db, level=models.HedgeLinkLevel.order, link_ids=[str(order_id)]):
        return True

    bl_ids = [
        str(row.id)
        for row in db.query(models.BLOrder.id)
        .filter(models.BLOrder.order_id == str(order_id), models.BLOrder.deleted_at.is_(None))
        .all()
    ]
    return _executed_link_exists(db, level=models.HedgeLinkLevel.bl_order, link_ids=bl_ids)


@dataclass(frozen=True)
class CloseResult:
    execution_id: int
    closed_quantity_mt: float
    open_quantity_mt: float
    status: str
    realized_pnl: float | None


def _realized_pnl(execution: models.HedgeExecution, *, close_price: float, close_qty: float) -> float | None:
    if execution.executed_price is None:
        return None
    diff = float(close_price) - float(execution.executed_price)
    if execution.direction == models.HedgeDirection.sell:
        diff = -diff
    return diff * float(close_qty)


def close_execution(
    *,
    db: Session,
    execution: models.HedgeExecution,
    quantity_mt: float,
    close_price: float,
    now: datetime | None = None,
) -> CloseResult:
    """Close part or all of an execution's open quantity at ``close_price``.

    Caller commits.
    """

    if execution.deleted_at is not None or execution.status in {
        models.HedgeExecutionStatus.closed,
        models.HedgeExecutionStatus.cancelled,
    }:
        raise HTTPException(
            status_code=409,
            detail={"code": "execution_not_open", "status": execution.status.value},
        )

    qty = float(quantity_mt)
    open_qty = execution.open_quantity_mt
    open_qty = float(execution.quantity_mt) if open_qty is None else float(open_qty)
    if qty <= 0:
        raise HTTPException(status_code=400, detail="quantity_mt must be positive")
    if qty > open_qty + 1e-9:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "close_exceeds_open_quantity",
                "message": "Close quantity exceeds open quantity",
                "open_quantity_mt": open_qty,
            },
        )

    new_open = max(0.0, round(open_qty - qty, 6))
    pnl = _realized_pnl(execution, close_price=close_price, close_qty=qty)

    execution.open_quantity_mt = new_open
    execution.closed_price = float(close_price)
    if new_open <= 0:
        execution.status = models.HedgeExecutionStatus.closed
        execution.closed_at = now or datetime.now(timezone.utc)
    else:
        execution.status = models.HedgeExecutionStatus.partially_closed
    if pnl is not None:
        execution.pnl_realized = float(execution.pnl_realized or 0.0) + pnl
    db.add(execution)

    logger.info(
        "hedge_execution_closed",
        extra={
            "execution_id": execution.id,
            "closed_quantity_mt": qty,
            "open_quantity_mt": new_open,
            "status": execution.status.value,
        },
    )
    return CloseResult(
        execution_id=int(execution.id),
        closed_quantity_mt=qty,
        open_quantity_mt=new_open,
        status=execution.status.value,
        realized_pnl=pnl,
    )
