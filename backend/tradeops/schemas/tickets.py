from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from tradeops.models.domain import (
    Commodity,
    PaymentTriggerTiming,
    PricingType,
    TicketStatus,
    TradeType,
)


class TicketBase(BaseModel):
    type: TradeType
    transaction_type: Optional[str] = Field(None, max_length=16)
    company_id: Optional[int] = None
    trader_id: Optional[int] = None

    commodity_type: Optional[Commodity] = None
    isri_grade: Optional[str] = Field(None, max_length=64)
    metal_form: Optional[str] = Field(None, max_length=64)
    product_details: Optional[str] = None
    country_of_origin: Optional[str] = Field(None, max_length=128)
    transport_method: Optional[str] = Field(None, max_length=32)

    quantity: Optional[float] = None
    price: Optional[float] = None
    currency: str = Field("USD", max_length=8)

    pricing_type: Optional[PricingType] = None
    basis: Optional[str] = Field(None, max_length=64)
    payable_percent: Optional[float] = None
    premium_discount: Optional[float] = None
    lme_action_needed: bool = False
    fixation_method: Optional[str] = Field(None, max_length=32)
    qp_start: Optional[date] = None
    qp_end: Optional[date] = None

    payment_terms: Optional[str] = Field(None, max_length=255)
    payment_trigger_event: Optional[str] = Field(None, max_length=64)
    payment_trigger_timing: Optional[PaymentTriggerTiming] = None
    payment_offset_days: Optional[int] = None
    down_payment_amount_percent: Optional[float] = None

    incoterms: Optional[str] = Field(None, max_length=16)
    ship_from: Optional[str] = Field(None, max_length=255)
    ship_to: Optional[str] = Field(None, max_length=255)
    planned_shipments: Optional[int] = None


class TicketCreate(TicketBase):
    pass


class TicketUpdate(BaseModel):
    type: Optional[TradeType] = None
    transaction_type: Optional[str] = None
    company_id: Optional[int] = None
    trader_id: Optional[int] = None
    commodity_type: Optional[Commodity] = None
    isri_grade: Optional[str] = None
    metal_form: Optional[str] = None
    product_details: Optional[str] = None
    country_of_origin: Optional[str] = None
    transport_method: Optional[str] = None
    quantity: Optional[float] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    pricing_type: Optional[PricingType] = None
    basis: Optional[str] = None
    payable_percent: Optional[float] = None
    premium_discount: Optional[float] = None
    lme_action_needed: Optional[bool] = None
    fixation_method: Optional[str] = None
    qp_start: Optional[date] = None
    qp_end: Optional[date] = None
    payment_terms: Optional[str] = None
    payment_trigger_event: Optional[str] = None
    payment_trigger_timing: Optional[PaymentTriggerTiming] = None
    payment_offset_days: Optional[int] = None
    down_payment_amount_percent: Optional[float] = None
    incoterms: Optional[str] = None
    ship_from: Optional[str] = None
    ship_to: Optional[str] = None
    planned_shipments: Optional[int] = None


class TicketRead(TicketBase):
    id: int
    status: TicketStatus
    signed_volume: Optional[float] = None
    signed_price: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
