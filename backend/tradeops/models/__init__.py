from tradeops.models.domain import (
    RoleName,
    TicketStatus,
    TradeType,
    PricingType,
    PaymentTriggerTiming,
    Commodity,
    KybStatus,
    ApproverRole,
    ApprovalAction,
    ApprovalRequestStatus,
    HedgeDirection,
    HedgeMetal,
    HedgeInstrument,
    HedgeReason,
    ReferenceType,
    HedgeRequestSource,
    HedgeRequestStatus,
    HedgeExecutionStatus,
    HedgeLinkLevel,
    HedgeLinkSide,
    HedgeLinkAllocationType,
    InvoiceDirection,
    PaymentType,
    ClaimStatus,
    ClaimType,
    SignatureStatus,
    Role,
    User,
    AuditLog,
    Company,
    CompanyAddress,
    Ticket,
    Order,
    BLOrder,
    BLExtraction,
    BLExtractionContainer,
    HedgeRequest,
    HedgeExecution,
    HedgeLink,
    HedgeRoll,
    Invoice,
    Payment,
    InvoiceComment,
    CashBankBalance,
    ApprovalRule,
    ApprovalRequest,
    ApprovalHistory,
    Claim,
    DocumentTemplate,
    GeneratedDocument,
    DocumentSignature,
)

__all__ = [
    "RoleName",
    "TicketStatus",
    "TradeType",
    "PricingType",
    "PaymentTriggerTiming",
    "Commodity",
    "KybStatus",
    "ApproverRole",
    "ApprovalAction",
    "ApprovalRequestStatus",
    "HedgeDirection",
    "HedgeMetal",
    "HedgeInstrument",
    "HedgeReason",
    "ReferenceType",
    "HedgeRequestSource",
    "HedgeRequestStatus",
    "HedgeExecutionStatus",
    "HedgeLinkLevel",
    "HedgeLinkSide",
    "HedgeLinkAllocationType",
    "InvoiceDirection",
    "PaymentType",
    "ClaimStatus",
    "ClaimType",
    "SignatureStatus",
    "Role",
    "User",
    "AuditLog",
    "Company",
    "CompanyAddress",
    "Ticket",
    "Order",
    "BLOrder",
    "BLExtraction",
    "BLExtractionContainer",
    "HedgeRequest",
    "HedgeExecution",
    "HedgeLink",
    "HedgeRoll",
    "Invoice",
    "Payment",
    "InvoiceComment",
    "CashBankBalance",
    "ApprovalRule",
    "ApprovalRequest",
    "ApprovalHistory",
    "Claim",
    "DocumentTemplate",
    "GeneratedDocument",
    "DocumentSignature",
]
