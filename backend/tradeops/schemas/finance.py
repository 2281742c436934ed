from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tradeops.models.domain import InvoiceDirection, PaymentType


class InvoiceBase(BaseModel):
    order_id: Optional[str] = None
    bl_order_id: Optional[int] = None
    bl_order_name: Optional[str] = Field(None, max_length=64)
    company_id: Optional[int] = None
    invoice_type: Optional[str] = Field(None, max_length=32)
    invoice_direction: InvoiceDirection
    total_amount: float = Field(..., ge=0)
    currency: str = Field("USD", max_length=8)
    issue_date: Optional[date] = None
    original_due_date: Optional[date] = None
    actual_due_date: Optional[date] = None
    adjusts_invoice_id: Optional[int] = None
    notes: Optional[str] = None


class InvoiceCreate(InvoiceBase):
    invoice_number: Optional[str] = Field(None, max_length=64)


class InvoiceUpdate(BaseModel):
    invoice_number: Optional[str] = None
    order_id: Optional[str] = None
    bl_order_id: Optional[int] = None
    bl_order_name: Optional[str] = None
    company_id: Optional[int] = None
    invoice_type: Optional[str] = None
    invoice_direction: Optional[InvoiceDirection] = None
    total_amount: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = None
    issue_date: Optional[date] = None
    original_due_date: Optional[date] = None
    actual_due_date: Optional[date] = None
    adjusts_invoice_id: Optional[int] = None
    notes: Optional[str] = None


class InvoiceRead(InvoiceBase):
    id: int
    invoice_number: Optional[str] = None
    status: str
    effective_due_date: Optional[date] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentCreate(BaseModel):
    total_amount_paid: float = Field(..., gt=0)
    paid_date: Optional[date] = None
    payment_direction: Optional[InvoiceDirection] = None
    payment_type: Optional[PaymentType] = None
    reference: Optional[str] = Field(None, max_length=128)


class PaymentRead(PaymentCreate):
    id: int
    invoice_id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InvoiceCommentCreate(BaseModel):
    comment_text: str = Field(..., min_length=1)


class InvoiceCommentRead(InvoiceCommentCreate):
    id: int
    invoice_id: int
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CashBankBalanceCreate(BaseModel):
    account_name: Optional[str] = Field(None, max_length=128)
    balance: float
    currency: str = Field("USD", max_length=8)
    as_of_date: date


class CashBankBalanceRead(CashBankBalanceCreate):
    id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ForecastWeekRead(BaseModel):
    week_number: int
    week_start: date
    week_end: date
    receivables: float
    payables: float
    credit_notes: float
    debit_notes: float
    net: float
    invoice_ids: List[int]

    model_config = ConfigDict(from_attributes=True)


class ForecastDayRead(BaseModel):
    day: date
    receivables: float
    payables: float
    credit_notes: float
    debit_notes: float
    net: float

    model_config = ConfigDict(from_attributes=True)


class CashFlowForecastRead(BaseModel):
    start_date: date
    end_date: date
    beginning_cash: float
    receivables: float
    payables: float
    credit_notes: float
    debit_notes: float
    expected_end_cash: float
    weeks: List[ForecastWeekRead]
    days: List[ForecastDayRead]

    model_config = ConfigDict(from_attributes=True)


class OverdueInvoiceRead(BaseModel):
    id: int
    invoice_number: Optional[str] = None
    bl_order_name: Optional[str] = None
    total_amount: float
    currency: Optional[str] = None
    due_date: Optional[date] = None
    days_overdue: int
    status: str


class OverdueTotalsRead(BaseModel):
    total_amount: float
    weighted_avg_days: int
    invoices: List[OverdueInvoiceRead]

    model_config = ConfigDict(from_attributes=True)


class OverduesRead(BaseModel):
    as_of: date
    receivables: OverdueTotalsRead
    payables: OverdueTotalsRead


class PaymentsSummaryRead(BaseModel):
    invoiced: float
    paid: float
    outstanding: float
    invoice_count: int

    model_config = ConfigDict(from_attributes=True)
