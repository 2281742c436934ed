from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tradeops.models.domain import KybStatus


class CompanyAddressBase(BaseModel):
    line1: Optional[str] = Field(None, max_length=255)
    line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=128)
    postal_code: Optional[str] = Field(None, max_length=32)
    country: Optional[str] = Field(None, max_length=128)
    vat_id: Optional[str] = Field(None, max_length=64)
    pan_number: Optional[str] = Field(None, max_length=64)
    iec_code: Optional[str] = Field(None, max_length=64)
    contact_name_1: Optional[str] = Field(None, max_length=255)
    email_1: Optional[str] = Field(None, max_length=255)
    phone_1: Optional[str] = Field(None, max_length=64)
    is_primary: bool = False


class CompanyAddressCreate(CompanyAddressBase):
    pass


class CompanyAddressRead(CompanyAddressBase):
    id: int
    company_id: int

    model_config = ConfigDict(from_attributes=True)


class CompanyBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    kyb_status: Optional[KybStatus] = None
    kyb_effective_date: Optional[date] = None
    risk_rating: Optional[str] = Field(None, max_length=32)
    credit_limit: Optional[float] = None


class CompanyCreate(CompanyBase):
    addresses: List[CompanyAddressCreate] = Field(default_factory=list)


class CompanyUpdate(BaseModel):
    name: Optional[str] = None
    kyb_status: Optional[KybStatus] = None
    kyb_effective_date: Optional[date] = None
    risk_rating: Optional[str] = None
    credit_limit: Optional[float] = None


class CompanyRead(CompanyBase):
    id: int
    detected_review_status: Optional[str] = None
    detected_risk_category: Optional[str] = None
    detected_risk_label: Optional[str] = None
    detected_last_checked: Optional[datetime] = None
    detected_profile_id: Optional[str] = None
    created_at: Optional[datetime] = None
    addresses: List[CompanyAddressRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class KybGateRead(BaseModel):
    allowed: bool
    reason_code: Optional[str] = None
    blocked_company_id: Optional[int] = None
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(from_attributes=True)
