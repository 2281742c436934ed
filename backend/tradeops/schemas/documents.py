from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tradeops.models.domain import SignatureStatus


class DocumentTemplateBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=64)
    content: str
    is_active: bool = True


class DocumentTemplateCreate(DocumentTemplateBase):
    pass


class DocumentTemplateUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    content: Optional[str] = None
    is_active: Optional[bool] = None


class DocumentTemplateRead(DocumentTemplateBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TemplatePreviewRequest(BaseModel):
    content: Optional[str] = Field(None, description="Render this instead of the stored template")
    data: Optional[Dict[str, Any]] = Field(None, description="Overrides the built-in sample data")
    today: Optional[date] = None


class TemplatePreviewRead(BaseModel):
    html: str
    placeholders: List[str]


class GenerateBLDocumentRequest(BaseModel):
    template_id: int
    bl_order_id: int
    comment: Optional[str] = None


class GenerateOrderDocumentRequest(BaseModel):
    template_name: str
    order_id: str


class GeneratedDocumentRead(BaseModel):
    id: int
    template_id: Optional[int] = None
    bl_order_id: Optional[int] = None
    order_id: Optional[str] = None
    document_name: str
    document_url: str
    document_type: Optional[str] = None
    comment: Optional[str] = None
    size_bytes: Optional[int] = None
    checksum_sha256: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SignatureRecipient(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    name: Optional[str] = None
    role: Optional[str] = None


class SignatureCreate(BaseModel):
    reference_table: str = Field(..., min_length=1, max_length=64)
    reference_id: str = Field(..., min_length=1, max_length=64)
    document_name: str = Field(..., min_length=1, max_length=512)
    document_type: Optional[str] = None
    document_url: Optional[str] = None
    generated_document_id: Optional[int] = None
    recipients: List[SignatureRecipient]


class SignatureSendRequest(BaseModel):
    provider_document_id: Optional[str] = None
    signing_link: Optional[str] = None


class SignatureRead(BaseModel):
    id: int
    reference_table: str
    reference_id: str
    generated_document_id: Optional[int] = None
    document_name: str
    document_type: Optional[str] = None
    document_url: Optional[str] = None
    provider_document_id: Optional[str] = None
    status: SignatureStatus
    recipients: List[Dict[str, Any]]
    signing_link: Optional[str] = None
    sent_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
