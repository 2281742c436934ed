from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from tradeops.models.domain import ApprovalAction, ApprovalRequestStatus, ApproverRole


class RuleCondition(BaseModel):
    field: str
    operator: str
    value: Any = None
    values: Optional[List[Any]] = None


class RuleConditions(BaseModel):
    logic: Literal["AND", "OR"] = "AND"
    rules: List[RuleCondition] = Field(default_factory=list)


class ApprovalRuleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    required_approvers: List[ApproverRole] = Field(default_factory=list)
    priority: int = 100
    is_enabled: bool = True


class ApprovalRuleCreate(ApprovalRuleBase):
    pass


class ApprovalRuleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    conditions: Optional[RuleConditions] = None
    required_approvers: Optional[List[ApproverRole]] = None
    priority: Optional[int] = None
    is_enabled: Optional[bool] = None


class ApprovalRuleRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    conditions: dict
    required_approvers: List[str]
    priority: int
    is_enabled: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class FixStatusRequest(BaseModel):
    ticketId: Optional[int] = None
    bulk: bool = False


class ApprovalHistoryRead(BaseModel):
    id: int
    approval_request_id: int
    ticket_id: int
    approver_role: ApproverRole
    action: ApprovalAction
    comment: Optional[str] = None
    user_id: Optional[int] = None
    round: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ApprovalRequestRead(BaseModel):
    id: int
    ticket_id: int
    required_approvers: List[str]
    rule_triggered: Optional[str] = None
    status: ApprovalRequestStatus
    current_approver_index: int
    round: int
    created_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None
    history: List[ApprovalHistoryRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ApprovalDecisionCreate(BaseModel):
    approver_role: ApproverRole
    action: ApprovalAction
    comment: Optional[str] = None


class ApprovalDecisionRead(BaseModel):
    replayed: bool
    history: ApprovalHistoryRead
    request: ApprovalRequestRead
