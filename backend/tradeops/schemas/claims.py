from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from tradeops.models.domain import ClaimStatus, ClaimType


class ClaimBase(BaseModel):
    bl_order_id: Optional[int] = None
    order_id: Optional[str] = None
    buyer_id: Optional[int] = None
    supplier_id: Optional[int] = None
    claim_type: ClaimType
    status: ClaimStatus = ClaimStatus.draft
    description: Optional[str] = None
    ata: Optional[date] = None
    claimed_file_date: Optional[date] = None
    claimed_value_amount: Optional[float] = None
    claimed_value_currency: Optional[str] = None
    final_settlement_amount: Optional[float] = None
    final_settlement_currency: Optional[str] = None
    settled_at: Optional[date] = None


class ClaimCreate(ClaimBase):
    pass


class ClaimUpdate(BaseModel):
    bl_order_id: Optional[int] = None
    order_id: Optional[str] = None
    buyer_id: Optional[int] = None
    supplier_id: Optional[int] = None
    claim_type: Optional[ClaimType] = None
    status: Optional[ClaimStatus] = None
    description: Optional[str] = None
    ata: Optional[date] = None
    claimed_file_date: Optional[date] = None
    claimed_value_amount: Optional[float] = None
    claimed_value_currency: Optional[str] = None
    final_settlement_amount: Optional[float] = None
    final_settlement_currency: Optional[str] = None
    settled_at: Optional[date] = None


class ClaimRead(ClaimBase):
    id: int
    days_to_resolve_since_ata: Optional[int] = None
    days_to_resolve_since_claim: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Derived per response.
    display_status: str = "Open"
    days_to_raise: Optional[int] = None
    aging_band: Optional[str] = None
    claimed_pct: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)


class ClaimWindowBLOrder(BaseModel):
    bl_order_id: int
    bl_order_name: Optional[str] = None
    ata: date
    days_since_ata: int


class ClaimsDashboardRead(BaseModel):
    total: int
    open: int
    closed: int
    total_claimed_amount: float
    total_settled_amount: float
    past_window: int
    by_status: Dict[str, int]
    by_type: Dict[str, int]
    claim_window_bl_orders: List[ClaimWindowBLOrder]

    model_config = ConfigDict(from_attributes=True)
