from tradeops.schemas.approvals import (
    ApprovalDecisionCreate,
    ApprovalDecisionRead,
    ApprovalHistoryRead,
    ApprovalRequestRead,
    ApprovalRuleCreate,
    ApprovalRuleRead,
    ApprovalRuleUpdate,
    FixStatusRequest,
    RuleCondition,
    RuleConditions,
)
from tradeops.schemas.claims import (
    ClaimCreate,
    ClaimRead,
    ClaimsDashboardRead,
    ClaimUpdate,
    ClaimWindowBLOrder,
)
from tradeops.schemas.companies import (
    CompanyAddressCreate,
    CompanyAddressRead,
    CompanyCreate,
    CompanyRead,
    CompanyUpdate,
    KybGateRead,
)
from tradeops.schemas.documents import (
    DocumentTemplateCreate,
    DocumentTemplateRead,
    DocumentTemplateUpdate,
    GenerateBLDocumentRequest,
    GeneratedDocumentRead,
    GenerateOrderDocumentRequest,
    SignatureCreate,
    SignatureRead,
    SignatureRecipient,
    SignatureSendRequest,
    TemplatePreviewRead,
    TemplatePreviewRequest,
)
from tradeops.schemas.finance import (
    CashBankBalanceCreate,
    CashBankBalanceRead,
    CashFlowForecastRead,
    InvoiceCommentCreate,
    InvoiceCommentRead,
    InvoiceCreate,
    InvoiceRead,
    InvoiceUpdate,
    OverduesRead,
    PaymentCreate,
    PaymentRead,
    PaymentsSummaryRead,
)
from tradeops.schemas.hedging import (
    HedgeCloseRequest,
    HedgeCoverageRead,
    HedgeExecutionCreate,
    HedgeExecutionRead,
    HedgeLinkCreate,
    HedgeLinkRead,
    HedgeRejectRequest,
    HedgeRequestCreate,
    HedgeRequestRead,
    HedgeRequestUpdate,
    HedgeRollCreate,
    HedgeRollRead,
)
from tradeops.schemas.orders import (
    BLAllocateRequest,
    BLExtractionRead,
    BLExtractionUpsert,
    BLOrderCreate,
    BLOrderRead,
    BLOrderUpdate,
    ContainerBase,
    ContainerRead,
    ContainersReplace,
    HasExecutedHedgeRead,
    OrderCreate,
    OrderRead,
    OrderUpdate,
    PlannedShipmentsRequest,
)
from tradeops.schemas.tickets import TicketCreate, TicketRead, TicketUpdate

__all__ = [
    "BLAllocateRequest",
    "ApprovalDecisionCreate",
    "ApprovalDecisionRead",
    "ApprovalHistoryRead",
    "ApprovalRequestRead",
    "ApprovalRuleCreate",
    "ApprovalRuleRead",
    "ApprovalRuleUpdate",
    "FixStatusRequest",
    "RuleCondition",
    "RuleConditions",
    "ClaimCreate",
    "ClaimRead",
    "ClaimsDashboardRead",
    "ClaimUpdate",
    "ClaimWindowBLOrder",
    "CompanyAddressCreate",
    "CompanyAddressRead",
    "CompanyCreate",
    "CompanyRead",
    "CompanyUpdate",
    "KybGateRead",
    "DocumentTemplateCreate",
    "DocumentTemplateRead",
    "DocumentTemplateUpdate",
    "GenerateBLDocumentRequest",
    "GeneratedDocumentRead",
    "GenerateOrderDocumentRequest",
    "SignatureCreate",
    "SignatureRead",
    "SignatureRecipient",
    "SignatureSendRequest",
    "TemplatePreviewRead",
    "TemplatePreviewRequest",
    "CashBankBalanceCreate",
    "CashBankBalanceRead",
    "CashFlowForecastRead",
    "InvoiceCommentCreate",
    "InvoiceCommentRead",
    "InvoiceCreate",
    "InvoiceRead",
    "InvoiceUpdate",
    "OverduesRead",
    "PaymentCreate",
    "PaymentRead",
    "PaymentsSummaryRead",
    "HedgeCloseRequest",
    "HedgeCoverageRead",
    "HedgeExecutionCreate",
    "HedgeExecutionRead",
    "HedgeLinkCreate",
    "HedgeLinkRead",
    "HedgeRejectRequest",
    "HedgeRequestCreate",
    "HedgeRequestRead",
    "HedgeRequestUpdate",
    "HedgeRollCreate",
    "HedgeRollRead",
    "BLExtractionRead",
    "BLExtractionUpsert",
    "BLOrderCreate",
    "BLOrderRead",
    "BLOrderUpdate",
    "ContainerBase",
    "ContainerRead",
    "ContainersReplace",
    "HasExecutedHedgeRead",
    "OrderCreate",
    "OrderRead",
    "OrderUpdate",
    "PlannedShipmentsRequest",
    "TicketCreate",
    "TicketRead",
    "TicketUpdate",
]
