from tradeops import models
from tradeops.services.approval_rules import (
    DEFAULT_RULES,
    FORMULA_B2B_LME,
    apply_ticket_evaluation,
    evaluate_condition,
    evaluate_rules,
    fix_legacy_ticket_statuses,
    rule_matches,
    seed_default_rules,
)


def _ticket(**overrides):
    base = {
        "type": "Buy",
        "transaction_type": "B2B",
        "pricing_type": "Fixed",
        "lme_action_needed": False,
        "payment_trigger_event": "Invoice",
        "payment_trigger_timing": "After",
        "quantity": 100.0,
        "price": 1500.0,
        "company_kyb_status": "Approved",
    }
    base.update(overrides)
    return base


def test_equals_and_not_equals():
    t = _ticket()
    assert evaluate_condition(t, {"field": "pricing_type", "operator": "equals", "value": "Fixed"})
    assert not evaluate_condition(t, {"field": "pricing_type", "operator": "equals", "value": "Index"})
    assert evaluate_condition(t, {"field": "pricing_type", "operator": "not_equals", "value": "Index"})


def test_numeric_comparisons_coerce_strings():
    t = _ticket(quantity=250.0)
    assert evaluate_condition(t, {"field": "quantity", "operator": "greater_than", "value": "200"})
    assert not evaluate_condition(t, {"field": "quantity", "operator": "less_than", "value": 100})
    # Missing values never satisfy an ordering comparison.
    assert not evaluate_condition(_ticket(quantity=None), {"field": "quantity", "operator": "greater_than", "value": 0})


def test_in_accepts_values_or_list_value():
    t = _ticket(payment_trigger_event="Inspection")
    assert evaluate_condition(
        t, {"field": "payment_trigger_event", "operator": "in", "values": ["Inspection", "ATA"]}
    )
    assert evaluate_condition(
        t, {"field": "payment_trigger_event", "operator": "is_one_of", "value": ["Inspection"]}
    )
    assert not evaluate_condition(
        t, {"field": "payment_trigger_event", "operator": "not_in", "values": ["Inspection"]}
    )


def test_boolean_field_matches_yes_no_labels():
    t = _ticket(lme_action_needed=True)
    assert evaluate_condition(t, {"field": "lme_action_needed", "operator": "equals", "value": "Yes"})
    assert not evaluate_condition(t, {"field": "lme_action_needed", "operator": "equals", "value": "No"})


def test_payment_trigger_combined_joins_event_and_timing():
    t = _ticket(payment_trigger_event="ATA", payment_trigger_timing="After")
    assert evaluate_condition(
        t, {"field": "payment_trigger_combined", "operator": "equals", "value": "ATA_After"}
    )


def test_formula_b2b_lme_check():
    cond = {"field": "pricing_formula_check", "operator": "custom", "value": FORMULA_B2B_LME}
    assert evaluate_condition(_ticket(pricing_type="Formula", lme_action_needed=True), cond)
    assert not evaluate_condition(_ticket(pricing_type="Formula", lme_action_needed=False), cond)
    assert not evaluate_condition(
        _ticket(pricing_type="Formula", lme_action_needed=True, transaction_type="Warehouse"), cond
    )


def test_kyb_not_equals_ignores_tickets_without_company():
    cond = {"field": "company_kyb_status", "operator": "not_equals", "value": "Approved"}
    assert not evaluate_condition(_ticket(company_kyb_status=None), cond)
    assert evaluate_condition(_ticket(company_kyb_status="Needs Review"), cond)


def test_unknown_operator_never_matches():
    assert not evaluate_condition(_ticket(), {"field": "price", "operator": "between", "value": 1})


def test_rule_matches_empty_or_unknown_logic_is_false():
    rule = {"field": "pricing_type", "operator": "equals", "value": "Fixed"}
    assert not rule_matches(_ticket(), {"logic": "AND", "rules": []})
    assert not rule_matches(_ticket(), None)
    assert not rule_matches(_ticket(), {"logic": "XOR", "rules": [rule]})
    assert rule_matches(_ticket(), {"logic": "and", "rules": [rule]})


def test_evaluate_rules_merges_approvers_in_priority_order():
    rules = [
        {
            "name": "Index",
            "conditions": {"logic": "AND", "rules": [{"field": "pricing_type", "operator": "equals", "value": "Index"}]},
            "required_approvers": ["Hedging", "CFO"],
        },
        {
            "name": "Big",
            "conditions": {"logic": "AND", "rules": [{"field": "quantity", "operator": "greater_than", "value": 50}]},
            "required_approvers": ["CFO", "Management"],
        },
        {
            "name": "Disabled",
            "is_enabled": False,
            "conditions": {"logic": "AND", "rules": [{"field": "quantity", "operator": "greater_than", "value": 0}]},
            "required_approvers": ["Operations"],
        },
    ]
    result = evaluate_rules(_ticket(pricing_type="Index"), rules)
    assert result.requires_approval is True
    assert result.required_approvers == ["Hedging", "CFO", "Management"]
    assert result.rules_triggered == ["Index", "Big"]
    assert result.rule_triggered_label == "Index, Big"


def test_default_rules_flag_non_standard_payment_terms():
    result = evaluate_rules(_ticket(payment_trigger_event="Customs Clearance"), DEFAULT_RULES)
    assert result.rules_triggered == ["Non-standard pricing"]
    assert result.required_approvers == ["Hedging", "CFO"]

    clean = evaluate_rules(_ticket(), DEFAULT_RULES)
    assert clean.requires_approval is False


def test_seed_default_rules_only_once(db_session):
    assert seed_default_rules(db_session) == len(DEFAULT_RULES)
    assert seed_default_rules(db_session) == 0
    assert db_session.query(models.ApprovalRule).count() == len(DEFAULT_RULES)


def test_apply_ticket_evaluation_opens_request(db_session):
    seed_default_rules(db_session)
    ticket = models.Ticket(
        type=models.TradeType.buy,
        transaction_type="B2B",
        pricing_type=models.PricingType.index,
        quantity=20.0,
        price=2000.0,
    )
    db_session.add(ticket)
    db_session.commit()

    evaluation = apply_ticket_evaluation(db=db_session, ticket=ticket)
    db_session.commit()

    assert evaluation.requires_approval
    assert ticket.status == models.TicketStatus.pending_approval
    req = db_session.query(models.ApprovalRequest).filter_by(ticket_id=ticket.id).one()
    assert req.required_approvers == ["Hedging", "CFO"]
    assert req.round == 1


def test_bulk_fix_normalizes_legacy_b2b(db_session):
    seed_default_rules(db_session)
    legacy = models.Ticket(
        type=models.TradeType.sell,
        transaction_type="b2b",
        pricing_type=models.PricingType.formula,
        lme_action_needed=True,
    )
    db_session.add(legacy)
    db_session.commit()

    out = fix_legacy_ticket_statuses(db=db_session)
    assert out["fixed"] == 1
    db_session.refresh(legacy)
    assert legacy.transaction_type == "B2B"
    # Formula + B2B + LME action now triggers the hedge rule.
    assert legacy.status == models.TicketStatus.pending_approval

    again = fix_legacy_ticket_statuses(db=db_session)
    assert again["fixed"] == 0
