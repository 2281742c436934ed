from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from tradeops import models

logger = logging.getLogger("tradeops.signatures")

_Status = models.SignatureStatus

_RANK = {
    _Status.draft: 0,
    _Status.sent: 1,
    _Status.viewed: 2,
    _Status.completed: 3,
}
TERMINAL_STATUSES = {_Status.completed, _Status.declined, _Status.voided}


def parse_status(value: Any) -> models.SignatureStatus | None:
    if isinstance(value, _Status):
        return value
    try:
        return _Status(str(value or "").strip().lower())
    except ValueError:
        return None


def can_transition(current: models.SignatureStatus, target: models.SignatureStatus) -> bool:
    """Statuses only move forward; completed, declined and voided are final."""

    if current in TERMINAL_STATUSES:
        return False
    if target in (_Status.declined, _Status.voided):
        return True
    return _RANK[target] > _RANK[current]


def create_signature_request(
    *,
    db: Session,
    reference_table: str,
    reference_id: str,
    document_name: str,
    recipients: list[dict[str, Any]],
    document_type: str | None = None,
    document_url: str | None = None,
    generated_document_id: int | None = None,
    user_id: int | None = None,
) -> models.DocumentSignature:
    if not recipients:
        raise HTTPException(status_code=400, detail="At least one recipient is required")

    if generated_document_id is not None:
        generated = db.get(models.GeneratedDocument, generated_document_id)
        if generated is None:
            raise HTTPException(status_code=404, detail="Generated document not found")
        document_url = document_url or generated.document_url
        document_type = document_type or generated.document_type

    signature = models.DocumentSignature(
        reference_table=reference_table,
        reference_id=str(reference_id),
        generated_document_id=generated_document_id,
        document_name=document_name,
        document_type=document_type,
        document_url=document_url,
        recipients=list(recipients),
        status=_Status.draft,
        created_by=user_id,
    )
    db.add(signature)
    db.commit()
    db.refresh(signature)
    logger.info(
        "signature_request_created",
        extra={
            "signature_id": signature.id,
            "reference_table": reference_table,
            "reference_id": signature.reference_id,
        },
    )
    return signature


def mark_sent(
    *,
    db: Session,
    signature: models.DocumentSignature,
    provider_document_id: str | None = None,
    signing_link: str | None = None,
    now: datetime | None = None,
) -> models.DocumentSignature:
    if signature.status != _Status.draft:
        raise HTTPException(
            status_code=409,
            detail={
                "code": "signature_not_draft",
                "message": "Only draft signature requests can be sent",
                "status": signature.status.value,
            },
        )

    signature.status = _Status.sent
    signature.sent_at = now or datetime.now(timezone.utc)
    if provider_document_id:
        signature.provider_document_id = provider_document_id
    if signing_link:
        signature.signing_link = signing_link
    db.add(signature)
    db.commit()
    db.refresh(signature)
    return signature


def apply_status_webhook(
    *,
    db: Session,
    payload: dict[str, Any],
    now: datetime | None = None,
) -> tuple[models.DocumentSignature, bool]:
    """Apply a provider status event. Returns (signature, changed); caller commits."""

    provider_document_id = payload.get("document_id") or payload.get("provider_document_id")
    status = parse_status(payload.get("status"))
    if not provider_document_id or status is None:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_webhook_payload", "message": "document_id and a known status are required"},
        )

    signature = (
        db.query(models.DocumentSignature)
        .filter(models.DocumentSignature.provider_document_id == str(provider_document_id))
        .first()
    )
    if signature is None:
        raise HTTPException(status_code=404, detail="Signature request not found")

    signing_link = payload.get("signing_link")
    if signing_link and signature.status not in TERMINAL_STATUSES:
        signature.signing_link = signing_link

    if not can_transition(signature.status, status):
        logger.info(
            "signature_status_ignored",
            extra={
                "signature_id": signature.id,
                "current_status": signature.status.value,
                "incoming_status": status.value,
            },
        )
        return signature, False

    previous = signature.status
    signature.status = status
    if status == _Status.completed:
        signature.completed_at = now or datetime.now(timezone.utc)
    db.add(signature)

    logger.info(
        "signature_status_changed",
        extra={
            "signature_id": signature.id,
            "from_status": previous.value,
            "to_status": status.value,
        },
    )
    return signature, True
