from __future__ import annotations

# ruff: noqa: B008
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from tradeops import models
from tradeops.api.deps import reject_null_required, require_roles
from tradeops.core.observability import request_context
from tradeops.database import get_db
from tradeops.schemas import (
    DocumentTemplateCreate,
    DocumentTemplateRead,
    DocumentTemplateUpdate,
    GenerateBLDocumentRequest,
    GeneratedDocumentRead,
    GenerateOrderDocumentRequest,
    TemplatePreviewRead,
    TemplatePreviewRequest,
)
from tradeops.services.audit import audit_event
from tradeops.services.document_generation import (
    PDF_CONTENT_TYPE,
    generate_bl_document,
    generate_order_document,
)
from tradeops.services.document_storage import resolve_storage_uri
from tradeops.services.template_engine import find_placeholders, render_template, sample_data
from tradeops.services.template_variables import catalog_as_dict

router = APIRouter(prefix="/documents", tags=["documents"])

_read_roles_dep = require_roles()
_write_roles_dep = require_roles(models.RoleName.operations, models.RoleName.trader)


def _get_template(db: Session, template_id: int) -> models.DocumentTemplate:
    template = db.get(models.DocumentTemplate, template_id)
    if template is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    return template


# Templates


@router.get("/templates", response_model=List[DocumentTemplateRead])
def list_templates(
    include_inactive: bool = Query(False),
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    q = db.query(models.DocumentTemplate)
    if not include_inactive:
        q = q.filter(models.DocumentTemplate.is_active.is_(True))
    if category:
        q = q.filter(models.DocumentTemplate.category == category)
    return q.order_by(models.DocumentTemplate.name.asc()).all()


@router.get("/templates/variables")
def template_variables(current_user: models.User = Depends(_read_roles_dep)):
    return catalog_as_dict()


@router.get("/templates/{template_id}", response_model=DocumentTemplateRead)
def get_template(
    template_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    return _get_template(db, template_id)


@router.post("/templates", response_model=DocumentTemplateRead, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: DocumentTemplateCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    template = models.DocumentTemplate(**payload.model_dump())
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


@router.put("/templates/{template_id}", response_model=DocumentTemplateRead)
def update_template(
    template_id: int,
    payload: DocumentTemplateUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    template = _get_template(db, template_id)
    data = reject_null_required(models.DocumentTemplate, payload.model_dump(exclude_unset=True))
    for field, value in data.items():
        setattr(template, field, value)
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_template(
    template_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    # Generated documents keep pointing at the template row.
    template = _get_template(db, template_id)
    template.is_active = False
    db.add(template)
    db.commit()


@router.post("/templates/preview", response_model=TemplatePreviewRead)
def preview_unsaved_template(
    payload: TemplatePreviewRequest,
    current_user: models.User = Depends(_read_roles_dep),
):
    if not payload.content:
        raise HTTPException(status_code=400, detail="content is required")
    data = payload.data if payload.data is not None else sample_data(today=payload.today)
    return TemplatePreviewRead(
        html=render_template(payload.content, data, today=payload.today),
        placeholders=find_placeholders(payload.content),
    )


@router.post("/templates/{template_id}/preview", response_model=TemplatePreviewRead)
def preview_stored_template(
    template_id: int,
    payload: Optional[TemplatePreviewRequest] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    payload = payload or TemplatePreviewRequest()
    content = payload.content or _get_template(db, template_id).content
    data = payload.data if payload.data is not None else sample_data(today=payload.today)
    return TemplatePreviewRead(
        html=render_template(content, data, today=payload.today),
        placeholders=find_placeholders(content),
    )


# Generated documents


@router.post(
    "/generate/bl",
    response_model=GeneratedDocumentRead,
    status_code=status.HTTP_201_CREATED,
)
def generate_for_bl_order(
    payload: GenerateBLDocumentRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    result = generate_bl_document(
        db=db,
        template_id=payload.template_id,
        bl_order_id=payload.bl_order_id,
        comment=payload.comment,
        user_id=getattr(current_user, "id", None),
    )
    audit_event(
        "document.generated",
        getattr(current_user, "id", None),
        {
            "generated_document_id": result.document.id,
            "template_id": payload.template_id,
            "bl_order_id": payload.bl_order_id,
        },
        db=db,
        **request_context(request),
    )
    return result.document


@router.post(
    "/generate/order",
    response_model=GeneratedDocumentRead,
    status_code=status.HTTP_201_CREATED,
)
def generate_for_order(
    payload: GenerateOrderDocumentRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_write_roles_dep),
):
    result = generate_order_document(
        db=db,
        template_name=payload.template_name,
        order_id=payload.order_id,
        user_id=getattr(current_user, "id", None),
    )
    audit_event(
        "document.generated",
        getattr(current_user, "id", None),
        {
            "generated_document_id": result.document.id,
            "template_name": payload.template_name,
            "order_id": payload.order_id,
        },
        db=db,
        **request_context(request),
    )
    return result.document


@router.get("/generated", response_model=List[GeneratedDocumentRead])
def list_generated_documents(
    bl_order_id: Optional[int] = Query(None),
    order_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    q = db.query(models.GeneratedDocument)
    if bl_order_id is not None:
        q = q.filter(models.GeneratedDocument.bl_order_id == bl_order_id)
    if order_id:
        q = q.filter(models.GeneratedDocument.order_id == order_id)
    return q.order_by(models.GeneratedDocument.id.desc()).all()


@router.get("/generated/{document_id}", response_model=GeneratedDocumentRead)
def get_generated_document(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    doc = db.get(models.GeneratedDocument, document_id)
    if doc is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return doc


@router.get("/generated/{document_id}/download")
def download_generated_document(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_read_roles_dep),
):
    doc = db.get(models.GeneratedDocument, document_id)
    if doc is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    try:
        path = resolve_storage_uri(doc.document_url)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document file not available")
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document file not available")
    return FileResponse(path, media_type=PDF_CONTENT_TYPE, filename=doc.document_name)
