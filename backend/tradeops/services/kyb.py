from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from tradeops import models
from tradeops.config import settings

logger = logging.getLogger("tradeops.kyb")

_BLOCKED_RISK_LABELS = {"high", "rejected"}


@dataclass(frozen=True)
class KybGateResult:
    allowed: bool
    reason_code: str | None = None
    blocked_company_id: int | None = None
    details: dict[str, Any] | None = None


def customer_reference_for(company_id: int) -> str:
    return f"{settings.kyb_customer_reference_prefix}-{int(company_id)}"


def parse_customer_reference(reference: str) -> int | None:
    prefix = f"{settings.kyb_customer_reference_prefix}-"
    ref = str(reference or "").strip()
    if not ref.startswith(prefix):
        return None
    raw = ref[len(prefix):]
    return int(raw) if raw.isdigit() else None


def resolve_company_kyb_gate(
    db: Session,
    company_id: int | None,
    *,
    today: date | None = None,
) -> KybGateResult:
    """Resolve whether a company may be traded with / hedged for.

    Guardrails:
    - Company must exist and not be soft-deleted
    - kyb_status must be Approved
    - Approval is valid for KYB_VALIDITY_DAYS from kyb_effective_date
    - A provider risk label of high/rejected blocks regardless of manual status
    """

    today = today or datetime.now(timezone.utc).date()

    company = db.get(models.Company, company_id) if company_id is not None else None
    if company is None or company.deleted_at is not None:
        return KybGateResult(
            allowed=False,
            reason_code="COMPANY_NOT_FOUND",
            blocked_company_id=company_id,
        )

    if company.kyb_status != models.KybStatus.approved:
        return KybGateResult(
            allowed=False,
            reason_code="COMPANY_KYB_STATUS_NOT_APPROVED",
            blocked_company_id=company.id,
            details={"kyb_status": company.kyb_status.value if company.kyb_status else None},
        )

    if company.kyb_effective_date is not None:
        expires_on = company.kyb_effective_date + timedelta(days=int(settings.kyb_validity_days))
        if expires_on < today:
            return KybGateResult(
                allowed=False,
                reason_code="COMPANY_KYB_EXPIRED",
                blocked_company_id=company.id,
                details={
                    "kyb_effective_date": company.kyb_effective_date.isoformat(),
                    "expired_on": expires_on.isoformat(),
                },
            )

    risk_label = (company.detected_risk_label or "").strip().lower()
    if risk_label in _BLOCKED_RISK_LABELS:
        return KybGateResult(
            allowed=False,
            reason_code="COMPANY_RISK_REJECTED",
            blocked_company_id=company.id,
            details={"risk_label": company.detected_risk_label},
        )

    return KybGateResult(allowed=True, blocked_company_id=None)


def apply_kyb_webhook(
    *,
    db: Session,
    payload: dict[str, Any],
    now: datetime | None = None,
) -> models.Company:
    """Store a provider review result on the referenced company; caller commits."""

    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    profile_id = data.get("id")
    reference = data.get("customer_reference")
    if not profile_id or not reference:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_webhook_payload", "message": "id and customer_reference are required"},
        )

    company_id = parse_customer_reference(str(reference))
    if company_id is None:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_customer_reference", "customer_reference": reference},
        )

    company = db.get(models.Company, company_id)
    if company is None or company.deleted_at is not None:
        raise HTTPException(status_code=404, detail="Company not found")

    risk = data.get("risk") if isinstance(data.get("risk"), dict) else {}
    company.detected_profile_id = str(profile_id)
    company.detected_review_status = data.get("review_status")
    company.detected_risk_category = risk.get("category")
    company.detected_risk_label = risk.get("label")
    company.detected_last_checked = now or datetime.now(timezone.utc)
    db.add(company)

    logger.info(
        "kyb_webhook_applied",
        extra={
            "company_id": company.id,
            "review_status": company.detected_review_status,
            "risk_label": company.detected_risk_label,
        },
    )
    return company
