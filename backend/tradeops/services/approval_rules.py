"""Approval rule evaluation for trade tickets.

Rules are declarative: each carries ``conditions = {"logic": "AND"|"OR",
"rules": [{"field", "operator", "value"?, "values"?}]}`` and a list of
approver roles. ``evaluate_rules`` is pure; the ``*_ticket_*`` helpers load
rules, persist the resulting ticket status and open approval requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tradeops import models

logger = logging.getLogger("tradeops.approvals")


FORMULA_B2B_LME = "formula_b2b_lme"
_LEGACY_B2B = "b2b"

OPERATOR_LABELS: dict[str, str] = {
    "equals": "equals",
    "not_equals": "does not equal",
    "greater_than": "greater than",
    "less_than": "less than",
    "is_one_of": "is one of",
    "in": "is one of",
    "not_in": "is not one of",
}

_ENUM_OPS = ["equals", "not_equals", "in", "not_in"]
_NUMBER_OPS = ["equals", "not_equals", "greater_than", "less_than"]

PAYMENT_TRIGGER_EVENTS = [
    "ATA",
    "BL confirmed",
    "BL issuance",
    "BL release",
    "Booking",
    "Customs Clearance",
    "Delivery Note Issued (CMR)",
    "DP (documents against payment)",
    "ETA",
    "ETD (vessel departure)",
    "Fixation",
    "Inspection",
    "Invoice",
    "Loading",
    "Other - custom",
    "Sales Order Signed Date",
    "Seal",
]

RULE_CATEGORIES: list[dict[str, Any]] = [
    {
        "id": "pricing",
        "label": "Pricing Rules",
        "description": "Rules based on pricing type, fixation method, or LME requirements",
        "fields": [
            {
                "name": "pricing_type",
                "label": "Pricing Type",
                "type": "enum",
                "operators": _ENUM_OPS,
                "options": [p.value for p in models.PricingType],
            },
            {
                "name": "lme_action_needed",
                "label": "LME Action Needed",
                "type": "enum",
                "operators": ["equals", "not_equals"],
                "options": ["Yes", "No"],
            },
            {
                "name": "fixation_method",
                "label": "Fixation Method",
                "type": "enum",
                "operators": _ENUM_OPS,
                "options": ["1-day", "5-day avg", "Month avg", "Custom"],
            },
            {"name": "price", "label": "Price", "type": "number", "operators": _NUMBER_OPS},
            {
                "name": "signed_price",
                "label": "Signed Price",
                "type": "number",
                "operators": _NUMBER_OPS,
            },
        ],
    },
    {
        "id": "payment",
        "label": "Payment Terms",
        "description": "Rules based on payment triggers, timing, or down payment terms",
        "fields": [
            {
                "name": "payment_trigger_event",
                "label": "Payment Trigger Event",
                "type": "enum",
                "operators": _ENUM_OPS,
                "options": PAYMENT_TRIGGER_EVENTS,
            },
            {
                "name": "payment_trigger_timing",
                "label": "Payment Trigger Timing",
                "type": "enum",
                "operators": ["equals", "not_equals"],
                "options": [t.value for t in models.PaymentTriggerTiming],
            },
            {
                "name": "payment_trigger_combined",
                "label": "Payment Trigger (Event + Timing)",
                "type": "text",
                "operators": ["equals", "not_equals"],
            },
            {
                "name": "down_payment_amount_percent",
                "label": "Down Payment %",
                "type": "number",
                "operators": _NUMBER_OPS,
            },
        ],
    },
    {
        "id": "counterparty",
        "label": "Counterparty Rules",
        "description": "Rules based on company KYB status or risk rating",
        "fields": [
            {
                "name": "company_kyb_status",
                "label": "Company KYB Status",
                "type": "enum",
                "operators": _ENUM_OPS,
                "options": [k.value for k in models.KybStatus],
            },
            {
                "name": "company_risk_rating",
                "label": "Company Risk Rating",
                "type": "text",
                "operators": ["equals", "not_equals"],
            },
        ],
    },
    {
        "id": "volume",
        "label": "Volume & Quantity",
        "description": "Rules based on trade quantities or volumes",
        "fields": [
            {"name": "quantity", "label": "Quantity (MT)", "type": "number", "operators": _NUMBER_OPS},
            {
                "name": "signed_volume",
                "label": "Signed Volume",
                "type": "number",
                "operators": _NUMBER_OPS,
            },
        ],
    },
    {
        "id": "custom",
        "label": "Custom Rule",
        "description": "Build a custom rule with any field and condition",
        "fields": [
            {
                "name": "transaction_type",
                "label": "Transaction Type",
                "type": "enum",
                "operators": ["equals", "not_equals"],
                "options": ["B2B", "Warehouse"],
            },
            {
                "name": "commodity_type",
                "label": "Commodity Type",
                "type": "enum",
                "operators": _ENUM_OPS,
                "options": [c.value for c in models.Commodity],
            },
            {
                "name": "incoterms",
                "label": "Incoterms",
                "type": "enum",
                "operators": _ENUM_OPS,
                "options": ["CFR", "CIF", "CIP", "CPT", "DAP", "DDP", "DPU", "EXW", "FAS", "FCA", "FOB"],
            },
        ],
    },
]

DEFAULT_RULES: list[dict[str, Any]] = [
    {
        "name": "Non-standard pricing",
        "description": "Triggered when payment trigger is Inspection, BL release, Customs Clearance, or ATA After",
        "conditions": {
            "logic": "OR",
            "rules": [
                {
                    "field": "payment_trigger_event",
                    "operator": "in",
                    "values": ["Inspection", "BL release", "Customs Clearance"],
                },
                {"field": "payment_trigger_combined", "operator": "equals", "value": "ATA_After"},
            ],
        },
        "required_approvers": ["Hedging", "CFO"],
        "priority": 1,
        "is_enabled": True,
    },
    {
        "name": "Deals requiring hedge",
        "description": "Triggered for Index pricing, or B2B Formula pricing that needs LME action",
        "conditions": {
            "logic": "OR",
            "rules": [
                {"field": "pricing_type", "operator": "equals", "value": "Index"},
                {"field": "pricing_formula_check", "operator": "custom", "value": FORMULA_B2B_LME},
            ],
        },
        "required_approvers": ["Hedging", "CFO"],
        "priority": 2,
        "is_enabled": True,
    },
    {
        "name": "Counterparty KYB gap",
        "description": "Triggered when counterparty company KYB status is not Approved",
        "conditions": {
            "logic": "AND",
            "rules": [
                {"field": "company_kyb_status", "operator": "not_equals", "value": "Approved"},
            ],
        },
        "required_approvers": ["Operations"],
        "priority": 3,
        "is_enabled": True,
    },
]


@dataclass(frozen=True)
class ApprovalEvaluation:
    requires_approval: bool
    required_approvers: list[str] = field(default_factory=list)
    rules_triggered: list[str] = field(default_factory=list)

    @property
    def rule_triggered_label(self) -> str:
        return ", ".join(self.rules_triggered)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"yes", "true", "1", "y", "on"}


def _same(actual: Any, expected: Any) -> bool:
    actual, expected = _plain(actual), _plain(expected)
    if actual is None or expected is None:
        return actual is None and expected is None
    if isinstance(actual, bool):
        return actual == _as_bool(expected)
    left, right = _as_number(actual), _as_number(expected)
    if left is not None and right is not None:
        return left == right
    return str(actual) == str(expected)


def _condition_values(condition: Mapping[str, Any]) -> list[Any]:
    values = condition.get("values")
    if values is None and isinstance(condition.get("value"), list):
        values = condition.get("value")
    return list(values or [])


def ticket_snapshot(ticket: models.Ticket) -> dict[str, Any]:
    """Flatten a ticket (plus its company's KYB fields) into plain values."""

    snapshot = {c.key: _plain(getattr(ticket, c.key)) for c in ticket.__table__.columns}
    company = getattr(ticket, "company", None)
    snapshot["company_kyb_status"] = _plain(company.kyb_status) if company else None
    snapshot["company_risk_rating"] = company.risk_rating if company else None
    return snapshot


def evaluate_condition(ticket: Mapping[str, Any], condition: Mapping[str, Any]) -> bool:
    field_name = condition.get("field")
    operator = condition.get("operator")
    value = condition.get("value")

    if field_name == "pricing_formula_check":
        if value != FORMULA_B2B_LME:
            return False
        return (
            ticket.get("pricing_type") == models.PricingType.formula.value
            and ticket.get("transaction_type") == "B2B"
            and bool(ticket.get("lme_action_needed"))
        )

    if field_name == "payment_trigger_combined":
        actual: Any = "{}_{}".format(
            ticket.get("payment_trigger_event") or "", ticket.get("payment_trigger_timing") or ""
        )
    else:
        actual = ticket.get(field_name)

    if field_name == "company_kyb_status" and operator == "not_equals":
        return actual is not None and not _same(actual, value)

    if operator == "equals":
        return _same(actual, value)
    if operator == "not_equals":
        return not _same(actual, value)
    if operator in {"in", "is_one_of"}:
        return any(_same(actual, v) for v in _condition_values(condition))
    if operator == "not_in":
        return not any(_same(actual, v) for v in _condition_values(condition))
    if operator in {"greater_than", "less_than"}:
        left, right = _as_number(actual), _as_number(value)
        if left is None or right is None:
            return False
        return left > right if operator == "greater_than" else left < right
    if operator == "custom":
        return False

    logger.warning(
        "approval_rule_unknown_operator",
        extra={"field": field_name, "operator": operator},
    )
    return False


def _rule_attr(rule: Any, name: str, default: Any = None) -> Any:
    if isinstance(rule, Mapping):
        return rule.get(name, default)
    return getattr(rule, name, default)


def rule_matches(ticket: Mapping[str, Any], conditions: Mapping[str, Any] | None) -> bool:
    conditions = conditions or {}
    checks = list(conditions.get("rules") or [])
    if not checks:
        return False
    logic = str(conditions.get("logic") or "").upper()
    if logic == "OR":
        return any(evaluate_condition(ticket, c) for c in checks)
    if logic == "AND":
        return all(evaluate_condition(ticket, c) for c in checks)
    return False


def evaluate_rules(ticket: Mapping[str, Any], rules: Iterable[Any]) -> ApprovalEvaluation:
    """Evaluate prioritized rules against a ticket snapshot.

    Rules are consumed in the given order; disabled rules are skipped.
    Approvers are merged across matching rules without duplicates.
    """

    approvers: list[str] = []
    triggered: list[str] = []
    for rule in rules:
        if not _rule_attr(rule, "is_enabled", True):
            continue
        if not rule_matches(ticket, _rule_attr(rule, "conditions")):
            continue
        triggered.append(str(_rule_attr(rule, "name")))
        for approver in _rule_attr(rule, "required_approvers") or []:
            if approver not in approvers:
                approvers.append(approver)

    return ApprovalEvaluation(
        requires_approval=bool(triggered),
        required_approvers=approvers,
        rules_triggered=triggered,
    )


def load_enabled_rules(db: Session) -> list[models.ApprovalRule]:
    return (
        db.query(models.ApprovalRule)
        .filter(models.ApprovalRule.is_enabled.is_(True))
        .order_by(models.ApprovalRule.priority.asc(), models.ApprovalRule.id.asc())
        .all()
    )


def seed_default_rules(db: Session) -> int:
    """Insert the default rule set when the table is empty. Returns rows created."""

    if db.query(models.ApprovalRule.id).first() is not None:
        return 0
    for fields in DEFAULT_RULES:
        db.add(models.ApprovalRule(**fields))
    db.commit()
    logger.info("approval_rules_seeded", extra={"count": len(DEFAULT_RULES)})
    return len(DEFAULT_RULES)


def _open_approval_request(
    db: Session, ticket: models.Ticket, evaluation: ApprovalEvaluation
) -> models.ApprovalRequest:
    existing = (
        db.query(models.ApprovalRequest)
        .filter(models.ApprovalRequest.ticket_id == ticket.id)
        .first()
    )
    if existing is not None:
        # A request sent back for changes starts a new round once the ticket is re-evaluated.
        if existing.status == models.ApprovalRequestStatus.changes_requested:
            existing.status = models.ApprovalRequestStatus.pending_approval
            existing.required_approvers = list(evaluation.required_approvers)
            existing.rule_triggered = evaluation.rule_triggered_label
            existing.current_approver_index = 0
            existing.round = int(existing.round or 1) + 1
            existing.decided_at = None
            db.add(existing)
        return existing

    request = models.ApprovalRequest(
        ticket_id=ticket.id,
        required_approvers=list(evaluation.required_approvers),
        rule_triggered=evaluation.rule_triggered_label,
        status=models.ApprovalRequestStatus.pending_approval,
        current_approver_index=0,
        round=1,
    )
    db.add(request)
    try:
        db.flush()
    except IntegrityError:
        # Concurrent evaluation of the same ticket created the request first.
        db.rollback()
        existing = (
            db.query(models.ApprovalRequest)
            .filter(models.ApprovalRequest.ticket_id == ticket.id)
            .first()
        )
        if existing is None:
            raise
        return existing
    return request


def apply_ticket_evaluation(
    *,
    db: Session,
    ticket: models.Ticket,
    rules: Iterable[Any] | None = None,
) -> ApprovalEvaluation:
    """Evaluate rules for a persisted ticket and update status/approval request.

    Does not commit; callers own the transaction.
    """

    if rules is None:
        rules = load_enabled_rules(db)
    evaluation = evaluate_rules(ticket_snapshot(ticket), rules)

    if evaluation.requires_approval:
        _open_approval_request(db, ticket, evaluation)
        ticket.status = models.TicketStatus.pending_approval
    else:
        ticket.status = models.TicketStatus.approved
    db.add(ticket)

    logger.info(
        "approval_evaluated",
        extra={
            "ticket_id": ticket.id,
            "requires_approval": evaluation.requires_approval,
            "rules_triggered": evaluation.rules_triggered,
        },
    )
    return evaluation


def _evaluation_payload(evaluation: ApprovalEvaluation) -> dict[str, Any]:
    return {
        "success": True,
        "requires_approval": evaluation.requires_approval,
        "required_approvers": evaluation.required_approvers,
        "rules_triggered": evaluation.rules_triggered,
    }


def fix_ticket_status(*, db: Session, ticket: models.Ticket) -> dict[str, Any]:
    """Normalise a legacy transaction type and re-run the approval evaluation."""

    if (ticket.transaction_type or "") == _LEGACY_B2B:
        ticket.transaction_type = "B2B"
    evaluation = apply_ticket_evaluation(db=db, ticket=ticket)
    db.commit()
    return _evaluation_payload(evaluation)


def fix_legacy_ticket_statuses(*, db: Session) -> dict[str, Any]:
    """Bulk variant: upper-case legacy ``b2b`` tickets, then re-evaluate each of them."""

    tickets = (
        db.query(models.Ticket)
        .filter(
            models.Ticket.transaction_type == _LEGACY_B2B,
            models.Ticket.deleted_at.is_(None),
        )
        .order_by(models.Ticket.id.asc())
        .all()
    )
    if not tickets:
        return {
            "success": True,
            "message": "No tickets found with lowercase b2b",
            "fixed": 0,
            "results": [],
        }

    for ticket in tickets:
        ticket.transaction_type = "B2B"
    db.flush()

    rules = load_enabled_rules(db)
    results: list[dict[str, Any]] = []
    for ticket in tickets:
        evaluation = apply_ticket_evaluation(db=db, ticket=ticket, rules=rules)
        results.append({"ticket_id": ticket.id, **_evaluation_payload(evaluation)})
    db.commit()

    logger.info("approval_bulk_fix_applied", extra={"fixed": len(tickets)})
    return {
        "success": True,
        "message": f"Fixed {len(tickets)} tickets",
        "fixed": len(tickets),
        "results": results,
    }
