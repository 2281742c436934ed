from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterable

from sqlalchemy.orm import Session

from tradeops import models

GREEN_MAX_DAYS = 5  # exclusive
YELLOW_MAX_DAYS = 15  # inclusive
CLAIM_WINDOW_DAYS = 7


def _as_date(value: Any) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _status_value(status: Any) -> str:
    return str(status.value if isinstance(status, Enum) else status or "")


def display_status(status: Any) -> str:
    return "Closed" if _status_value(status).lower() == "closed" else "Open"


def days_to_raise(claim: Any) -> int | None:
    """Days between the shipment's ATA and the claim being filed.

    Falls back to the record's creation date when no file date was captured.
    """

    ata = _as_date(getattr(claim, "ata", None))
    if ata is None:
        return None
    filed = _as_date(getattr(claim, "claimed_file_date", None))
    if filed is None:
        filed = _as_date(getattr(claim, "created_at", None))
    if filed is None:
        return None
    return (filed - ata).days


def aging_band(days: int | None) -> str | None:
    if days is None:
        return None
    if days < GREEN_MAX_DAYS:
        return "green"
    if days <= YELLOW_MAX_DAYS:
        return "yellow"
    return "red"


def claimed_pct(claim: Any, order: Any) -> float | None:
    amount = getattr(claim, "claimed_value_amount", None)
    if amount is None or order is None:
        return None
    qty = getattr(order, "allocated_quantity_mt", None) or 0.0
    price = getattr(order, "sell_price", None) or 0.0
    total_value = float(qty) * float(price)
    if total_value <= 0:
        return None
    return float(amount) / total_value * 100.0


def apply_resolution_days(claim: models.Claim, *, today: date | None = None) -> None:
    """Stamp resolution ages once a claim is settled or closed."""

    if _status_value(claim.status) not in {
        models.ClaimStatus.settled.value,
        models.ClaimStatus.closed.value,
    }:
        return
    settled = claim.settled_at or today or datetime.now(timezone.utc).date()
    claim.settled_at = settled
    ata = _as_date(claim.ata)
    filed = _as_date(claim.claimed_file_date)
    claim.days_to_resolve_since_ata = (settled - ata).days if ata else None
    claim.days_to_resolve_since_claim = (settled - filed).days if filed else None


@dataclass
class ClaimsDashboard:
    total: int = 0
    open: int = 0
    closed: int = 0
    total_claimed_amount: float = 0.0
    total_settled_amount: float = 0.0
    past_window: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_type: dict[str, int] = field(default_factory=dict)
    claim_window_bl_orders: list[dict[str, Any]] = field(default_factory=list)


def build_dashboard(
    claims: Iterable[Any],
    bl_orders: Iterable[Any],
    *,
    today: date,
) -> ClaimsDashboard:
    rows = [c for c in claims if getattr(c, "deleted_at", None) is None]
    by_status: dict[str, int] = defaultdict(int)
    by_type: dict[str, int] = defaultdict(int)
    claimed_bl_ids: set[int] = set()

    out = ClaimsDashboard(total=len(rows))
    for c in rows:
        status = _status_value(c.status)
        by_status[status] += 1
        by_type[_status_value(c.claim_type)] += 1
        if display_status(status) == "Closed":
            out.closed += 1
        else:
            out.open += 1
            ata = _as_date(c.ata)
            if ata is not None and (today - ata).days > CLAIM_WINDOW_DAYS:
                out.past_window += 1
        out.total_claimed_amount += float(c.claimed_value_amount or 0.0)
        out.total_settled_amount += float(c.final_settlement_amount or 0.0)
        if c.bl_order_id is not None:
            claimed_bl_ids.add(int(c.bl_order_id))

    for bl in bl_orders:
        if getattr(bl, "deleted_at", None) is not None or int(bl.id) in claimed_bl_ids:
            continue
        ata = _as_date(bl.ata)
        if ata is None:
            continue
        days = (today - ata).days
        if days > CLAIM_WINDOW_DAYS:
            out.claim_window_bl_orders.append(
                {
                    "bl_order_id": bl.id,
                    "bl_order_name": bl.bl_order_name,
                    "ata": ata.isoformat(),
                    "days_since_ata": days,
                }
            )

    out.by_status = dict(sorted(by_status.items()))
    out.by_type = dict(sorted(by_type.items()))
    out.claim_window_bl_orders.sort(key=lambda r: r["days_since_ata"], reverse=True)
    return out


def load_dashboard(db: Session, *, today: date | None = None) -> ClaimsDashboard:
    today = today or datetime.now(timezone.utc).date()
    claims = db.query(models.Claim).filter(models.Claim.deleted_at.is_(None)).all()
    bl_orders = (
        db.query(models.BLOrder)
        .filter(models.BLOrder.deleted_at.is_(None), models.BLOrder.ata.is_not(None))
        .all()
    )
    return build_dashboard(claims, bl_orders, today=today)
