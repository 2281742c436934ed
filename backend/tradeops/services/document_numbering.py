"""Invoice numbers of the form ``INV_007-03.25``.

The running number restarts every month and continues from the highest
number already issued for that month, soft-deleted invoices included, so a
number is never handed out twice. ``invoices.invoice_number`` is unique; a
concurrent writer that grabs the same number loses on commit.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from tradeops import models

INVOICE_PREFIX = "INV"


def month_suffix(now: datetime) -> str:
    return now.strftime("%m.%y")


def format_monthly_number(*, prefix: str, seq: int, now: datetime) -> str:
    return f"{prefix}_{seq:03d}-{month_suffix(now)}"


def _number_pattern(prefix: str, suffix: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(prefix)}_(\d+)-{re.escape(suffix)}$")


def highest_sequence(numbers: list[str | None], *, prefix: str, suffix: str) -> int:
    pattern = _number_pattern(prefix, suffix)
    best = 0
    for number in numbers:
        m = pattern.match(str(number or "").strip())
        if m:
            best = max(best, int(m.group(1)))
    return best


def next_invoice_number(db: Session, *, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    suffix = month_suffix(now)
    # LIKE narrows the scan; the regex decides.
    rows = (
        db.query(models.Invoice.invoice_number)
        .filter(models.Invoice.invoice_number.like(f"{INVOICE_PREFIX}%-{suffix}"))
        .all()
    )
    seq = highest_sequence([r[0] for r in rows], prefix=INVOICE_PREFIX, suffix=suffix) + 1
    return format_monthly_number(prefix=INVOICE_PREFIX, seq=seq, now=now)
