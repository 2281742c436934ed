from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tradeops.models.domain import (
    HedgeDirection,
    HedgeExecutionStatus,
    HedgeInstrument,
    HedgeLinkAllocationType,
    HedgeLinkLevel,
    HedgeLinkSide,
    HedgeMetal,
    HedgeReason,
    HedgeRequestSource,
    HedgeRequestStatus,
    ReferenceType,
)


class HedgeRequestBase(BaseModel):
    ticket_id: Optional[int] = None
    order_id: Optional[str] = None
    bl_order_id: Optional[int] = None
    quantity_mt: float = Field(..., gt=0)
    direction: HedgeDirection
    metal: Optional[str] = Field(None, max_length=64)
    hedge_metal: Optional[HedgeMetal] = None
    instrument_type: HedgeInstrument = HedgeInstrument.future
    reason: Optional[HedgeReason] = None
    reference: ReferenceType = ReferenceType.lme_3m
    source: HedgeRequestSource = HedgeRequestSource.manual
    estimated_qp_month: Optional[date] = None
    target_price: Optional[float] = None
    notes: Optional[str] = None


class HedgeRequestCreate(HedgeRequestBase):
    quantity_mt: Optional[float] = Field(None, gt=0, description="Defaults from the BL order or order")
    submit: bool = Field(False, description="Create directly in Pending Approval")


class HedgeRequestUpdate(BaseModel):
    quantity_mt: Optional[float] = Field(None, gt=0)
    direction: Optional[HedgeDirection] = None
    metal: Optional[str] = None
    hedge_metal: Optional[HedgeMetal] = None
    instrument_type: Optional[HedgeInstrument] = None
    reason: Optional[HedgeReason] = None
    reference: Optional[ReferenceType] = None
    estimated_qp_month: Optional[date] = None
    target_price: Optional[float] = None
    notes: Optional[str] = None


class HedgeRequestRead(HedgeRequestBase):
    id: int
    status: HedgeRequestStatus
    rejection_reason: Optional[str] = None
    requested_by: Optional[int] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class HedgeRejectRequest(BaseModel):
    reason: Optional[str] = None


class HedgeLinkBase(BaseModel):
    link_level: HedgeLinkLevel
    link_id: str = Field(..., min_length=1, max_length=64)
    side: HedgeLinkSide
    allocated_quantity_mt: float = Field(..., gt=0)
    allocation_type: HedgeLinkAllocationType = HedgeLinkAllocationType.initial_hedge
    exec_price: Optional[float] = None
    fixing_price: Optional[float] = None


class HedgeLinkCreate(HedgeLinkBase):
    pass


class HedgeLinkRead(HedgeLinkBase):
    id: int
    hedge_execution_id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class HedgeExecutionBase(BaseModel):
    hedge_request_id: Optional[int] = None
    direction: HedgeDirection
    metal: HedgeMetal
    instrument_type: HedgeInstrument = HedgeInstrument.future
    reference: ReferenceType = ReferenceType.lme_3m
    broker: Optional[str] = Field(None, max_length=128)
    quantity_mt: float = Field(..., gt=0)
    executed_price: Optional[float] = None
    execution_date: Optional[date] = None
    expiry_date: Optional[date] = None


class HedgeExecutionCreate(HedgeExecutionBase):
    links: List[HedgeLinkCreate] = Field(default_factory=list)


class HedgeExecutionRead(HedgeExecutionBase):
    id: int
    open_quantity_mt: Optional[float] = None
    status: HedgeExecutionStatus
    closed_price: Optional[float] = None
    closed_at: Optional[datetime] = None
    pnl_realized: Optional[float] = None
    pnl_unrealized: Optional[float] = None
    created_at: Optional[datetime] = None
    links: List[HedgeLinkRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class HedgeCloseRequest(BaseModel):
    quantity_mt: float
    close_price: float


class HedgeRollCreate(BaseModel):
    open_execution_id: int
    close_execution_id: int
    rolled_qty_mt: float = Field(..., gt=0)
    roll_cost: Optional[float] = None
    roll_date: date
    notes: Optional[str] = None


class HedgeRollRead(HedgeRollCreate):
    id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class HedgeCoverageRead(BaseModel):
    total_hedgeable_mt: float
    priced_mt: float
    unpriced_mt: float
    coverage_pct: float
    open_hedge_mt: float
    band: str
