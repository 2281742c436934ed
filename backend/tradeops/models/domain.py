# ruff: noqa: E501
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradeops.database import Base


def _enum(enum_cls: type[PyEnum]) -> Enum:
    # Stored as VARCHAR holding the enum *value* so labels like "Pending Approval" survive as-is.
    return Enum(
        enum_cls,
        native_enum=False,
        length=64,
        values_callable=lambda members: [m.value for m in members],
    )


class RoleName(PyEnum):
    admin = "admin"
    trader = "trader"
    hedging = "hedging"
    cfo = "cfo"
    management = "management"
    operations = "operations"


class TicketStatus(PyEnum):
    draft = "Draft"
    pending_approval = "Pending Approval"
    approved = "Approved"
    rejected = "Rejected"


class TradeType(PyEnum):
    buy = "Buy"
    sell = "Sell"


class PricingType(PyEnum):
    fixed = "Fixed"
    formula = "Formula"
    index = "Index"


class PaymentTriggerTiming(PyEnum):
    before = "Before"
    after = "After"


class Commodity(PyEnum):
    aluminium = "Aluminium"
    mixed_metals = "Mixed metals"
    zinc = "Zinc"
    magnesium = "Magnesium"
    lead = "Lead"
    nickel_stainless = "Nickel/stainless/hi-temp"
    copper = "Copper"
    brass = "Brass"
    steel = "Steel"
    iron = "Iron"


class KybStatus(PyEnum):
    approved = "Approved"
    rejected = "Rejected"
    needs_review = "Needs Review"


class ApproverRole(PyEnum):
    hedging = "Hedging"
    cfo = "CFO"
    management = "Management"
    operations = "Operations"


class ApprovalAction(PyEnum):
    approve = "Approve"
    reject = "Reject"
    request_changes = "Request Changes"


class ApprovalRequestStatus(PyEnum):
    pending_approval = "Pending Approval"
    approved = "Approved"
    rejected = "Rejected"
    changes_requested = "Changes Requested"


class HedgeDirection(PyEnum):
    buy = "Buy"
    sell = "Sell"


class HedgeMetal(PyEnum):
    copper = "COPPER"
    aluminium = "ALUMINIUM"
    zinc = "ZINC"
    nickel = "NICKEL"
    lead = "LEAD"
    tin = "TIN"


class HedgeInstrument(PyEnum):
    future = "FUTURE"
    option = "OPTION"
    fx = "FX"


class HedgeReason(PyEnum):
    physical_sale_pricing = "PHYSICAL_SALE_PRICING"
    unpricing = "UNPRICING"
    pre_lending = "PRE_LENDING"
    pre_borrowing = "PRE_BORROWING"
    roll = "ROLL"
    price_fix = "PRICE_FIX"


class ReferenceType(PyEnum):
    lme_cash = "LME_CASH"
    lme_3m = "LME_3M"
    comex = "COMEX"
    shfe = "SHFE"
    other = "OTHER"


class HedgeRequestSource(PyEnum):
    manual = "Manual"
    auto_qp = "Auto_QP"
    price_fix = "Price_Fix"
    roll = "Roll"


class HedgeRequestStatus(PyEnum):
    draft = "Draft"
    pending_approval = "Pending Approval"
    approved = "Approved"
    rejected = "Rejected"
    cancelled = "Cancelled"
    executed = "Executed"


class HedgeExecutionStatus(PyEnum):
    executed = "EXECUTED"
    partially_closed = "PARTIALLY_CLOSED"
    closed = "CLOSED"
    cancelled = "CANCELLED"


class HedgeLinkLevel(PyEnum):
    order = "Order"
    bl_order = "Bl_order"
    ticket = "Ticket"


class HedgeLinkSide(PyEnum):
    buy = "BUY"
    sell = "SELL"


class HedgeLinkAllocationType(PyEnum):
    initial_hedge = "INITIAL_HEDGE"
    price_fix = "PRICE_FIX"
    roll = "ROLL"


class InvoiceDirection(PyEnum):
    payable = "payable"
    receivable = "receivable"


class PaymentType(PyEnum):
    downpayment = "Downpayment"
    provisional = "Provisional"
    final = "Final"


class ClaimStatus(PyEnum):
    draft = "draft"
    preliminary_submitted = "preliminary_submitted"
    formal_submitted = "formal_submitted"
    under_supplier_review = "under_supplier_review"
    accepted = "accepted"
    rejected = "rejected"
    counter_offer = "counter_offer"
    settled = "settled"
    closed = "closed"
    submitted = "submitted"


class ClaimType(PyEnum):
    quality = "quality"
    contamination = "contamination"
    moisture = "moisture"
    weight_loss = "weight_loss"
    other = "other"
    loss_of_metal = "loss_of_metal"
    dust = "dust"


class SignatureStatus(PyEnum):
    draft = "draft"
    sent = "sent"
    viewed = "viewed"
    completed = "completed"
    declined = "declined"
    voided = "voided"


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[RoleName] = mapped_column(_enum(RoleName), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(255))

    users = relationship("User", back_populates="role")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id"), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    role = relationship("Role", back_populates="users", lazy="joined")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    payload_json: Mapped[str | None] = mapped_column(Text)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(256), nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(
        String(128), nullable=True, unique=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Company(Base):
    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    kyb_status: Mapped[KybStatus | None] = mapped_column(_enum(KybStatus), nullable=True)
    kyb_effective_date: Mapped[date | None] = mapped_column(Date)
    risk_rating: Mapped[str | None] = mapped_column(String(32))
    credit_limit: Mapped[float | None] = mapped_column(Float)

    # Written by the KYB verification provider webhook.
    detected_review_status: Mapped[str | None] = mapped_column(String(64))
    detected_risk_category: Mapped[str | None] = mapped_column(String(64))
    detected_risk_label: Mapped[str | None] = mapped_column(String(64))
    detected_last_checked: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    detected_profile_id: Mapped[str | None] = mapped_column(String(128))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    addresses = relationship(
        "CompanyAddress",
        back_populates="company",
        cascade="all, delete-orphan",
        order_by="CompanyAddress.id",
    )

    @property
    def primary_address(self) -> "CompanyAddress | None":
        for address in self.addresses:
            if address.is_primary:
                return address
        return self.addresses[0] if self.addresses else None


class CompanyAddress(Base):
    __tablename__ = "company_addresses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    line1: Mapped[str | None] = mapped_column(String(255))
    line2: Mapped[str | None] = mapped_column(String(255))
    city: Mapped[str | None] = mapped_column(String(128))
    postal_code: Mapped[str | None] = mapped_column(String(32))
    country: Mapped[str | None] = mapped_column(String(128))
    vat_id: Mapped[str | None] = mapped_column(String(64))
    pan_number: Mapped[str | None] = mapped_column(String(64))
    iec_code: Mapped[str | None] = mapped_column(String(64))
    contact_name_1: Mapped[str | None] = mapped_column(String(255))
    email_1: Mapped[str | None] = mapped_column(String(255))
    phone_1: Mapped[str | None] = mapped_column(String(64))
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    company = relationship("Company", back_populates="addresses")


class Ticket(Base):
    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[TradeType] = mapped_column(_enum(TradeType), nullable=False)
    status: Mapped[TicketStatus] = mapped_column(
        _enum(TicketStatus), default=TicketStatus.draft, nullable=False, index=True
    )
    # Free text: legacy rows carry lowercase values normalised by the bulk status fix.
    transaction_type: Mapped[str | None] = mapped_column(String(16))
    company_id: Mapped[int | None] = mapped_column(ForeignKey("companies.id"), index=True)
    trader_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))

    commodity_type: Mapped[Commodity | None] = mapped_column(_enum(Commodity))
    isri_grade: Mapped[str | None] = mapped_column(String(64))
    metal_form: Mapped[str | None] = mapped_column(String(64))
    product_details: Mapped[str | None] = mapped_column(Text)
    country_of_origin: Mapped[str | None] = mapped_column(String(128))
    transport_method: Mapped[str | None] = mapped_column(String(32))

    quantity: Mapped[float | None] = mapped_column(Float)
    price: Mapped[float | None] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(8), default="USD", nullable=False)
    signed_volume: Mapped[float | None] = mapped_column(Float)
    signed_price: Mapped[float | None] = mapped_column(Float)

    pricing_type: Mapped[PricingType | None] = mapped_column(_enum(PricingType))
    basis: Mapped[str | None] = mapped_column(String(64))
    payable_percent: Mapped[float | None] = mapped_column(Float)
    premium_discount: Mapped[float | None] = mapped_column(Float)
    lme_action_needed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    fixation_method: Mapped[str | None] = mapped_column(String(32))
    qp_start: Mapped[date | None] = mapped_column(Date)
    qp_end: Mapped[date | None] = mapped_column(Date)

    payment_terms: Mapped[str | None] = mapped_column(String(255))
    payment_trigger_event: Mapped[str | None] = mapped_column(String(64))
    payment_trigger_timing: Mapped[PaymentTriggerTiming | None] = mapped_column(
        _enum(PaymentTriggerTiming)
    )
    payment_offset_days: Mapped[int | None] = mapped_column(Integer)
    down_payment_amount_percent: Mapped[float | None] = mapped_column(Float)

    incoterms: Mapped[str | None] = mapped_column(String(16))
    ship_from: Mapped[str | None] = mapped_column(String(255))
    ship_to: Mapped[str | None] = mapped_column(String(255))
    planned_shipments: Mapped[int | None] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    company = relationship("Company", lazy="joined")
    approval_request = relationship("ApprovalRequest", back_populates="ticket", uselist=False)


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Comma-separated ticket ids.
    buyer: Mapped[str | None] = mapped_column(String(255))
    seller: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(32), default="Draft", nullable=False)
    transaction_type: Mapped[str | None] = mapped_column(String(16))

    commodity_type: Mapped[Commodity | None] = mapped_column(_enum(Commodity))
    isri_grade: Mapped[str | None] = mapped_column(String(64))
    metal_form: Mapped[str | None] = mapped_column(String(64))
    product_details: Mapped[str | None] = mapped_column(Text)

    allocated_quantity_mt: Mapped[float | None] = mapped_column(Float)
    buy_price: Mapped[float | None] = mapped_column(Float)
    sell_price: Mapped[float | None] = mapped_column(Float)
    margin: Mapped[float | None] = mapped_column(Float)

    ship_from: Mapped[str | None] = mapped_column(String(255))
    ship_to: Mapped[str | None] = mapped_column(String(255))
    incoterms: Mapped[str | None] = mapped_column(String(16))

    sales_order_url: Mapped[str | None] = mapped_column(Text)
    purchase_order_url: Mapped[str | None] = mapped_column(Text)
    sales_order_sign_date: Mapped[date | None] = mapped_column(Date)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    bl_orders = relationship("BLOrder", back_populates="order", order_by="BLOrder.id")


class BLOrder(Base):
    __tablename__ = "bl_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str | None] = mapped_column(ForeignKey("orders.id"), index=True)
    bl_order_name: Mapped[str | None] = mapped_column(String(64), index=True)
    bl_number: Mapped[str | None] = mapped_column(String(64))
    bl_issue_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(32), default="Planned", nullable=False)

    loaded_quantity_mt: Mapped[float | None] = mapped_column(Float)
    total_quantity_mt: Mapped[float | None] = mapped_column(Float)

    loading_date: Mapped[date | None] = mapped_column(Date)
    etd: Mapped[date | None] = mapped_column(Date)
    eta: Mapped[date | None] = mapped_column(Date)
    atd: Mapped[date | None] = mapped_column(Date)
    ata: Mapped[date | None] = mapped_column(Date)

    port_of_loading: Mapped[str | None] = mapped_column(String(255))
    port_of_discharge: Mapped[str | None] = mapped_column(String(255))
    final_destination: Mapped[str | None] = mapped_column(String(255))

    buy_final_price: Mapped[float | None] = mapped_column(Float)
    sell_final_price: Mapped[float | None] = mapped_column(Float)
    revenue: Mapped[float | None] = mapped_column(Float)
    cost: Mapped[float | None] = mapped_column(Float)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    order = relationship("Order", back_populates="bl_orders")
    extraction = relationship(
        "BLExtraction", back_populates="bl_order", uselist=False, cascade="all, delete-orphan"
    )
    containers = relationship(
        "BLExtractionContainer",
        back_populates="bl_order",
        cascade="all, delete-orphan",
        order_by="BLExtractionContainer.id",
    )


class BLExtraction(Base):
    __tablename__ = "bl_extractions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bl_order_id: Mapped[int] = mapped_column(
        ForeignKey("bl_orders.id"), unique=True, nullable=False
    )
    bl_number: Mapped[str | None] = mapped_column(String(64))
    bl_issue_date: Mapped[date | None] = mapped_column(Date)
    onboard_date: Mapped[date | None] = mapped_column(Date)
    vessel_name: Mapped[str | None] = mapped_column(String(255))
    shipping_line: Mapped[str | None] = mapped_column(String(255))
    shipper: Mapped[str | None] = mapped_column(Text)
    consignee_name: Mapped[str | None] = mapped_column(String(255))
    consignee_address: Mapped[str | None] = mapped_column(Text)
    consignee_contact_person_name: Mapped[str | None] = mapped_column(String(255))
    consignee_contact_person_email: Mapped[str | None] = mapped_column(String(255))
    notify_name: Mapped[str | None] = mapped_column(String(255))
    notify_address: Mapped[str | None] = mapped_column(Text)
    notify_contact_person_name: Mapped[str | None] = mapped_column(String(255))
    notify_contact_person_email: Mapped[str | None] = mapped_column(String(255))
    description_of_goods: Mapped[str | None] = mapped_column(Text)
    product_description: Mapped[str | None] = mapped_column(Text)
    hs_code: Mapped[str | None] = mapped_column(String(32))
    country_of_origin: Mapped[str | None] = mapped_column(String(128))
    port_of_loading: Mapped[str | None] = mapped_column(String(255))
    port_of_discharge: Mapped[str | None] = mapped_column(String(255))
    final_destination: Mapped[str | None] = mapped_column(String(255))
    number_of_packages: Mapped[int | None] = mapped_column(Integer)
    number_of_containers: Mapped[int | None] = mapped_column(Integer)
    applicable_free_days: Mapped[int | None] = mapped_column(Integer)
    # Metric tonnes; documents render kilograms.
    total_net_weight: Mapped[float | None] = mapped_column(Float)
    total_gross_weight: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    bl_order = relationship("BLOrder", back_populates="extraction")


class BLExtractionContainer(Base):
    __tablename__ = "bl_extraction_containers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bl_order_id: Mapped[int] = mapped_column(ForeignKey("bl_orders.id"), nullable=False, index=True)
    bl_number: Mapped[str | None] = mapped_column(String(64))
    container_number: Mapped[str] = mapped_column(String(32), nullable=False)
    container_size: Mapped[str | None] = mapped_column(String(16))
    seal_number: Mapped[str | None] = mapped_column(String(64))
    net_weight: Mapped[float | None] = mapped_column(Float)
    gross_weight: Mapped[float | None] = mapped_column(Float)

    bl_order = relationship("BLOrder", back_populates="containers")


class HedgeRequest(Base):
    __tablename__ = "hedge_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int | None] = mapped_column(ForeignKey("tickets.id"), index=True)
    order_id: Mapped[str | None] = mapped_column(ForeignKey("orders.id"), index=True)
    bl_order_id: Mapped[int | None] = mapped_column(ForeignKey("bl_orders.id"), index=True)

    quantity_mt: Mapped[float] = mapped_column(Float, nullable=False)
    direction: Mapped[HedgeDirection] = mapped_column(_enum(HedgeDirection), nullable=False)
    metal: Mapped[str | None] = mapped_column(String(64))
    hedge_metal: Mapped[HedgeMetal | None] = mapped_column(_enum(HedgeMetal))
    instrument_type: Mapped[HedgeInstrument] = mapped_column(
        _enum(HedgeInstrument), default=HedgeInstrument.future, nullable=False
    )
    reason: Mapped[HedgeReason | None] = mapped_column(_enum(HedgeReason))
    reference: Mapped[ReferenceType] = mapped_column(
        _enum(ReferenceType), default=ReferenceType.lme_3m, nullable=False
    )
    source: Mapped[HedgeRequestSource] = mapped_column(
        _enum(HedgeRequestSource), default=HedgeRequestSource.manual, nullable=False
    )
    status: Mapped[HedgeRequestStatus] = mapped_column(
        _enum(HedgeRequestStatus), default=HedgeRequestStatus.draft, nullable=False, index=True
    )
    estimated_qp_month: Mapped[date | None] = mapped_column(Date)
    target_price: Mapped[float | None] = mapped_column(Float)
    notes: Mapped[str | None] = mapped_column(Text)
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    requested_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    approved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    ticket = relationship("Ticket")
    executions = relationship("HedgeExecution", back_populates="hedge_request")


class HedgeExecution(Base):
    __tablename__ = "hedge_executions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hedge_request_id: Mapped[int | None] = mapped_column(
        ForeignKey("hedge_requests.id"), index=True
    )
    direction: Mapped[HedgeDirection] = mapped_column(_enum(HedgeDirection), nullable=False)
    metal: Mapped[HedgeMetal] = mapped_column(_enum(HedgeMetal), nullable=False)
    instrument_type: Mapped[HedgeInstrument] = mapped_column(
        _enum(HedgeInstrument), default=HedgeInstrument.future, nullable=False
    )
    reference: Mapped[ReferenceType] = mapped_column(
        _enum(ReferenceType), default=ReferenceType.lme_3m, nullable=False
    )
    broker: Mapped[str | None] = mapped_column(String(128))
    quantity_mt: Mapped[float] = mapped_column(Float, nullable=False)
    open_quantity_mt: Mapped[float | None] = mapped_column(Float)
    executed_price: Mapped[float | None] = mapped_column(Float)
    execution_date: Mapped[date | None] = mapped_column(Date)
    expiry_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[HedgeExecutionStatus] = mapped_column(
        _enum(HedgeExecutionStatus), default=HedgeExecutionStatus.executed, nullable=False, index=True
    )
    closed_price: Mapped[float | None] = mapped_column(Float)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    pnl_realized: Mapped[float | None] = mapped_column(Float)
    pnl_unrealized: Mapped[float | None] = mapped_column(Float)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    hedge_request = relationship("HedgeRequest", back_populates="executions")
    links = relationship("HedgeLink", back_populates="execution", cascade="all, delete-orphan")


class HedgeLink(Base):
    __tablename__ = "hedge_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hedge_execution_id: Mapped[int] = mapped_column(
        ForeignKey("hedge_executions.id"), nullable=False, index=True
    )
    link_level: Mapped[HedgeLinkLevel] = mapped_column(_enum(HedgeLinkLevel), nullable=False)
    # Ticket id, order id or BL order id depending on link_level.
    link_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    side: Mapped[HedgeLinkSide] = mapped_column(_enum(HedgeLinkSide), nullable=False)
    allocated_quantity_mt: Mapped[float] = mapped_column(Float, nullable=False)
    allocation_type: Mapped[HedgeLinkAllocationType] = mapped_column(
        _enum(HedgeLinkAllocationType),
        default=HedgeLinkAllocationType.initial_hedge,
        nullable=False,
    )
    exec_price: Mapped[float | None] = mapped_column(Float)
    fixing_price: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    execution = relationship("HedgeExecution", back_populates="links")


class HedgeRoll(Base):
    __tablename__ = "hedge_rolls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    open_execution_id: Mapped[int] = mapped_column(
        ForeignKey("hedge_executions.id"), nullable=False
    )
    close_execution_id: Mapped[int] = mapped_column(
        ForeignKey("hedge_executions.id"), nullable=False
    )
    rolled_qty_mt: Mapped[float] = mapped_column(Float, nullable=False)
    roll_cost: Mapped[float | None] = mapped_column(Float)
    roll_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str | None] = mapped_column(ForeignKey("orders.id"), index=True)
    bl_order_id: Mapped[int | None] = mapped_column(ForeignKey("bl_orders.id"), index=True)
    bl_order_name: Mapped[str | None] = mapped_column(String(64))
    company_id: Mapped[int | None] = mapped_column(ForeignKey("companies.id"))
    invoice_number: Mapped[str | None] = mapped_column(String(64), unique=True)
    invoice_type: Mapped[str | None] = mapped_column(String(32))
    invoice_direction: Mapped[InvoiceDirection] = mapped_column(
        _enum(InvoiceDirection), nullable=False, index=True
    )
    total_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    currency: Mapped[str] = mapped_column(String(8), default="USD", nullable=False)
    issue_date: Mapped[date | None] = mapped_column(Date)
    original_due_date: Mapped[date | None] = mapped_column(Date)
    actual_due_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(32), default="Open", nullable=False, index=True)
    adjusts_invoice_id: Mapped[int | None] = mapped_column(ForeignKey("invoices.id"))
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    company = relationship("Company")
    payments = relationship("Payment", back_populates="invoice", order_by="Payment.id")
    comments = relationship(
        "InvoiceComment", back_populates="invoice", order_by="InvoiceComment.id"
    )

    @property
    def effective_due_date(self) -> date | None:
        return self.actual_due_date or self.original_due_date


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id"), nullable=False, index=True)
    total_amount_paid: Mapped[float] = mapped_column(Float, nullable=False)
    paid_date: Mapped[date | None] = mapped_column(Date)
    payment_direction: Mapped[InvoiceDirection | None] = mapped_column(_enum(InvoiceDirection))
    payment_type: Mapped[PaymentType | None] = mapped_column(_enum(PaymentType))
    reference: Mapped[str | None] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    invoice = relationship("Invoice", back_populates="payments")


class InvoiceComment(Base):
    __tablename__ = "invoice_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id"), nullable=False, index=True)
    comment_text: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    invoice = relationship("Invoice", back_populates="comments")


class CashBankBalance(Base):
    __tablename__ = "cash_bank_balances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_name: Mapped[str | None] = mapped_column(String(128))
    balance: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default="USD", nullable=False)
    as_of_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ApprovalRule(Base):
    __tablename__ = "approval_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    # {"logic": "AND"|"OR", "rules": [{"field", "operator", "value"?, "values"?}]}
    conditions: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    required_approvers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class ApprovalRequest(Base):
    __tablename__ = "approval_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(
        ForeignKey("tickets.id"), nullable=False, unique=True, index=True
    )
    required_approvers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    rule_triggered: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ApprovalRequestStatus] = mapped_column(
        _enum(ApprovalRequestStatus),
        default=ApprovalRequestStatus.pending_approval,
        nullable=False,
        index=True,
    )
    current_approver_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    round: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    ticket = relationship("Ticket", back_populates="approval_request")
    history = relationship(
        "ApprovalHistory", back_populates="approval_request", order_by="ApprovalHistory.id"
    )


class ApprovalHistory(Base):
    __tablename__ = "approval_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    approval_request_id: Mapped[int] = mapped_column(
        ForeignKey("approval_requests.id"), nullable=False, index=True
    )
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id"), nullable=False)
    approver_role: Mapped[ApproverRole] = mapped_column(_enum(ApproverRole), nullable=False)
    action: Mapped[ApprovalAction] = mapped_column(_enum(ApprovalAction), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    round: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    approval_request = relationship("ApprovalRequest", back_populates="history")

    __table_args__ = (
        UniqueConstraint(
            "approval_request_id", "approver_role", "round", name="uq_approval_history_role_round"
        ),
    )


class Claim(Base):
    __tablename__ = "claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bl_order_id: Mapped[int | None] = mapped_column(ForeignKey("bl_orders.id"), index=True)
    order_id: Mapped[str | None] = mapped_column(ForeignKey("orders.id"), index=True)
    buyer_id: Mapped[int | None] = mapped_column(ForeignKey("companies.id"))
    supplier_id: Mapped[int | None] = mapped_column(ForeignKey("companies.id"))
    claim_type: Mapped[ClaimType] = mapped_column(_enum(ClaimType), nullable=False)
    status: Mapped[ClaimStatus] = mapped_column(
        _enum(ClaimStatus), default=ClaimStatus.draft, nullable=False, index=True
    )
    description: Mapped[str | None] = mapped_column(Text)
    ata: Mapped[date | None] = mapped_column(Date)
    claimed_file_date: Mapped[date | None] = mapped_column(Date)
    claimed_value_amount: Mapped[float | None] = mapped_column(Float)
    claimed_value_currency: Mapped[str | None] = mapped_column(String(8))
    final_settlement_amount: Mapped[float | None] = mapped_column(Float)
    final_settlement_currency: Mapped[str | None] = mapped_column(String(8))
    settled_at: Mapped[date | None] = mapped_column(Date)
    days_to_resolve_since_ata: Mapped[int | None] = mapped_column(Integer)
    days_to_resolve_since_claim: Mapped[int | None] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    bl_order = relationship("BLOrder")
    order = relationship("Order")


class DocumentTemplate(Base):
    __tablename__ = "document_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    category: Mapped[str | None] = mapped_column(String(64))
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class GeneratedDocument(Base):
    __tablename__ = "generated_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    template_id: Mapped[int | None] = mapped_column(ForeignKey("document_templates.id"))
    bl_order_id: Mapped[int | None] = mapped_column(ForeignKey("bl_orders.id"), index=True)
    order_id: Mapped[str | None] = mapped_column(ForeignKey("orders.id"), index=True)
    document_name: Mapped[str] = mapped_column(String(512), nullable=False)
    document_url: Mapped[str] = mapped_column(Text, nullable=False)
    document_type: Mapped[str | None] = mapped_column(String(64))
    comment: Mapped[str | None] = mapped_column(Text)
    size_bytes: Mapped[int | None] = mapped_column(Integer)
    checksum_sha256: Mapped[str | None] = mapped_column(String(64))
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    template = relationship("DocumentTemplate")


class DocumentSignature(Base):
    __tablename__ = "document_signatures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reference_table: Mapped[str] = mapped_column(String(64), nullable=False)
    reference_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    generated_document_id: Mapped[int | None] = mapped_column(
        ForeignKey("generated_documents.id")
    )
    document_name: Mapped[str] = mapped_column(String(512), nullable=False)
    document_type: Mapped[str | None] = mapped_column(String(64))
    document_url: Mapped[str | None] = mapped_column(Text)
    provider_document_id: Mapped[str | None] = mapped_column(String(128), unique=True)
    status: Mapped[SignatureStatus] = mapped_column(
        _enum(SignatureStatus), default=SignatureStatus.draft, nullable=False, index=True
    )
    # [{"email", "name", "role"}]
    recipients: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    signing_link: Mapped[str | None] = mapped_column(Text)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
