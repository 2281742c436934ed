from __future__ import annotations

# ruff: noqa: B008
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tradeops import models
from tradeops.api.deps import require_roles, require_webhook_secret
from tradeops.core.observability import request_context
from tradeops.database import get_db
from tradeops.schemas import SignatureCreate, SignatureRead, SignatureSendRequest
from tradeops.services.audit import audit_event
from tradeops.services.signatures import apply_status_webhook, create_signature_request, mark_sent

router = APIRouter(prefix="/signatures", tags=["signatures"])

_read_roles_dep = require_roles()
_write_roles_dep = require_roles(models.RoleName.operations, models.RoleName.trader)


def _get_signature(db: Session, signature_id: int) -> models.DocumentSignature:
    signature = db.get(models.DocumentSignature, signature_id)
    if signature is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Signature request not found")
    return signature


@router.get("", response_model=List[SignatureRead])
def list_signatures(
    reference_table: Optional[str] = Query(None),
    reference_id: Optional[str] = Query(None),
    status_filter: Optional[models.SignatureStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    q = db.query(models.DocumentSignature)
    if reference_table:
        q = q.filter(models.DocumentSignature.reference_table == reference_table)
    if reference_id:
        q = q.filter(models.DocumentSignature.reference_id == reference_id)
    if status_filter is not None:
        q = q.filter(models.DocumentSignature.status == status_filter)
    return q.order_by(models.DocumentSignature.id.desc()).all()


@router.post("/webhook")
def signature_webhook(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    _secret: None = Depends(require_webhook_secret),
):
    signature, changed = apply_status_webhook(db=db, payload=payload)
    db.commit()
    if changed:
        audit_event(
            "signature.status_changed",
            None,
            {"signature_id": signature.id, "status": signature.status.value},
            db=db,
            **request_context(request),
        )
    return {"ok": True, "signature_id": signature.id, "status": signature.status.value, "changed": changed}


@router.get("/{signature_id}", response_model=SignatureRead)
def get_signature(
    signature_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return _get_signature(db, signature_id)


@router.post("", response_model=SignatureRead, status_code=status.HTTP_201_CREATED)
def create_signature(
    payload: SignatureCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    signature = create_signature_request(
        db=db,
        reference_table=payload.reference_table,
        reference_id=payload.reference_id,
        document_name=payload.document_name,
        recipients=[r.model_dump() for r in payload.recipients],
        document_type=payload.document_type,
        document_url=payload.document_url,
        generated_document_id=payload.generated_document_id,
        user_id=getattr(current_user, "id", None),
    )
    audit_event(
        "signature.created",
        getattr(current_user, "id", None),
        {
            "signature_id": signature.id,
            "reference_table": signature.reference_table,
            "reference_id": signature.reference_id,
        },
        db=db,
        idempotency_key=f"signature:{signature.id}:created",
        **request_context(request),
    )
    return signature


@router.post("/{signature_id}/send", response_model=SignatureRead)
def send_signature(
    signature_id: int,
    payload: Optional[SignatureSendRequest] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    payload = payload or SignatureSendRequest()
    signature = _get_signature(db, signature_id)
    try:
        return mark_sent(
            db=db,
            signature=signature,
            provider_document_id=payload.provider_document_id,
            signing_link=payload.signing_link,
        )
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "code": "duplicate_provider_document_id",
                "message": "provider_document_id is already linked to another request",
            },
        )
