from datetime import date, datetime, timezone

import pytest
from fastapi import HTTPException

from tradeops import models
from tradeops.services.document_generation import SALES_ORDER, generate_bl_document, generate_order_document
from tradeops.services.document_pdf import build_text_pdf_bytes, html_to_page_blocks, paginate, render_html_to_pdf
from tradeops.services.document_storage import resolve_storage_uri, safe_filename
from tradeops.services.template_engine import (
    MISSING,
    find_placeholders,
    format_number,
    format_value,
    preview_template,
    render_template,
)
from tradeops.services.template_variables import catalog_as_dict, get_variable


def test_format_number_and_values():
    assert format_number(1234.5) == "1,234.5"
    assert format_number(2.0) == "2"
    assert format_number(0.004) == "0"
    assert format_value(None) == MISSING
    assert format_value("") == ""
    assert format_value(date(2025, 3, 7)) == "3/7/2025"
    assert format_value("2025-03-07T10:00:00") == "3/7/2025"
    assert format_value(True) == "true"


def test_prefix_resolution_and_missing_placeholders():
    data = {
        "order": {"id": "ORD-1", "sell_price": 520},
        "bl_order": {"bl_order_name": "ORD-1-1"},
        "company": {"name": "Buyer GmbH"},
    }
    out = render_template("{{order_id}}|{{bl_order_name}}|{{buyer_name}}|{{nope}}", data)
    assert out == f"ORD-1|ORD-1-1|Buyer GmbH|{MISSING}"


def test_container_section_renders_weights_in_kg():
    data = {
        "containers": [
            {"container_number": "C1", "net_weight": 20.5},
            {"container_number": "C2", "net_weight": 19},
        ]
    }
    out = render_template("{{#containers}}[{{container_number}}:{{net_weight}}]{{/containers}}", data)
    assert out == "[C1:20,500][C2:19,000]"
    assert render_template("{{#containers}}x{{/containers}}", {}) == ""


def test_computed_values_from_ticket():
    data = {
        "ticket": {
            "payment_terms": "100% CAD",
            "payment_trigger_event": "ETA",
            "payment_offset_days": -7,
            "basis": "3M LLME",
            "payable_percent": 0.57,
            "pricing_type": "Formula",
        },
        "order": {"allocated_quantity_mt": 40, "sell_price": 520},
    }
    out = render_template("{{formatted_payment_terms}}|{{basis_with_payable}}|{{total_sell_value}}", data)
    assert out == "100% CAD, 7 days before ETA|3M LLME 57%|20,800"
    assert "Pricing basis:</strong> 3M LLME 57%" in render_template("{{pricing_basis_line}}", data)


def test_comment_is_escaped():
    out = render_template("{{document_comment}}", {"document_comment": "<b>x</b>\nline"})
    assert out == "&lt;b&gt;x&lt;/b&gt;<br/>line"
    assert render_template("{{document_notes_section}}", {}) == ""


def test_current_date_uses_given_day():
    assert render_template("{{current_date}}", {}, today=date(2025, 12, 1)) == "12/1/2025"


def test_find_placeholders_keeps_first_seen_order():
    tpl = "{{#containers}}{{seal_number}}{{/containers}} {{order_id}} {{order_id}} {{vessel_name}}"
    assert find_placeholders(tpl) == ["containers", "seal_number", "order_id", "vessel_name"]


def test_preview_uses_sample_data():
    out = preview_template("{{bl_number}} {{hs_code}}", today=date(2025, 1, 1))
    assert out == "SAMPLE-BL-12345 7602.00.00"


def test_variable_catalog_lookup():
    catalog = catalog_as_dict()
    assert catalog
    first_category = next(iter(catalog.values()))
    key = first_category["variables"][0]["key"]
    assert get_variable(key) is not None
    assert get_variable("definitely_not_a_variable") is None


def test_page_blocks_follow_page_class():
    html = (
        "<html><head><style>p{}</style></head><body>"
        '<div class="page"><h1>Sales Order</h1><p>Line one</p></div>'
        '<div class="page"><table><tr><td>A</td><td>B</td></tr></table></div>'
        "</body></html>"
    )
    blocks = html_to_page_blocks(html)
    assert blocks == [["Sales Order", "Line one"], ["A B"]]


def test_paginate_wraps_long_blocks():
    block = ["x" * 10] * 60
    pages = paginate([block], lines_per_page=25)
    assert [len(p) for p in pages] == [25, 25, 10]


def test_pdf_bytes_are_deterministic_and_paged():
    pdf = build_text_pdf_bytes([["a"], ["b (c)"]], footer="Page {page} of {pages}")
    assert pdf.startswith(b"%PDF-1.4")
    assert pdf.rstrip().endswith(b"%%EOF")
    assert b"/Count 2" in pdf
    assert b"b \\(c\\)" in pdf
    assert b"Page 2 of 2" in pdf
    assert render_html_to_pdf("<p>hi</p>") == render_html_to_pdf("<p>hi</p>")


def test_safe_filename():
    assert safe_filename("Sales Order_ORD 1/2") == "Sales_Order_ORD_1_2"
    assert safe_filename("...") == "document"


def _seed_order(db, *, transaction_type="B2B"):
    company = models.Company(name="Buyer GmbH")
    company.addresses.append(models.CompanyAddress(line1="1 Dock Road", city="Rotterdam", is_primary=True))
    db.add(company)
    db.commit()
    buy = models.Ticket(type=models.TradeType.buy, company_id=company.id, payment_terms="CAD")
    sell = models.Ticket(type=models.TradeType.sell, company_id=company.id, payment_terms="100% CAD")
    db.add_all([buy, sell])
    db.commit()
    order = models.Order(
        id="ORD-42",
        buyer=str(buy.id),
        seller=str(sell.id),
        transaction_type=transaction_type,
        allocated_quantity_mt=40.0,
        sell_price=520.0,
    )
    db.add(order)
    db.commit()
    return order


def test_generate_bl_document_renders_and_stores_pdf(db_session):
    order = _seed_order(db_session)
    bl = models.BLOrder(order_id=order.id, bl_order_name="ORD-42-1")
    bl.containers.append(models.BLExtractionContainer(container_number="CONT1", net_weight=20.0))
    db_session.add(bl)
    template = models.DocumentTemplate(
        name="Packing List",
        category="BL",
        content='<div class="page">{{bl_order_name}} {{buyer_name}} {{#containers}}{{container_number}}={{net_weight}}{{/containers}}</div>',
    )
    db_session.add(template)
    db_session.commit()

    now = datetime(2025, 3, 1, tzinfo=timezone.utc)
    result = generate_bl_document(
        db=db_session, template_id=template.id, bl_order_id=bl.id, comment="Handle with care", now=now
    )

    assert result.html == '<div class="page">ORD-42-1 Buyer GmbH CONT1=20,000</div>'
    doc = result.document
    assert doc.id is not None
    assert doc.bl_order_id == bl.id
    assert doc.order_id == "ORD-42"
    assert doc.document_type == "BL"
    assert doc.document_name.startswith("Packing_List_ORD-42-1_") and doc.document_name.endswith(".pdf")
    path = resolve_storage_uri(doc.document_url)
    assert path.read_bytes().startswith(b"%PDF-1.4")
    assert doc.size_bytes == path.stat().st_size


def test_generate_bl_document_requires_active_template(db_session):
    template = models.DocumentTemplate(name="Old", content="x", is_active=False)
    db_session.add(template)
    db_session.commit()
    with pytest.raises(HTTPException) as exc:
        generate_bl_document(db=db_session, template_id=template.id, bl_order_id=1)
    assert exc.value.status_code == 404


def test_generate_sales_order_links_url_on_order(db_session):
    order = _seed_order(db_session)
    db_session.add(models.DocumentTemplate(name=SALES_ORDER, content="<p>{{order_id}} {{payment_terms}}</p>"))
    db_session.commit()

    result = generate_order_document(db=db_session, template_name=SALES_ORDER, order_id=order.id)
    db_session.refresh(order)

    assert result.html == "<p>ORD-42 100% CAD</p>"
    assert order.sales_order_url == result.document.document_url
    assert order.purchase_order_url is None


def test_inventory_buy_order_cannot_get_sales_order(db_session):
    company = models.Company(name="Stock")
    db_session.add(company)
    db_session.commit()
    buy = models.Ticket(type=models.TradeType.buy, company_id=company.id)
    db_session.add(buy)
    db_session.commit()
    db_session.add(models.Order(id="INV-1", buyer=str(buy.id), transaction_type="Inventory"))
    db_session.add(models.DocumentTemplate(name=SALES_ORDER, content="x"))
    db_session.commit()

    with pytest.raises(HTTPException) as exc:
        generate_order_document(db=db_session, template_name=SALES_ORDER, order_id="INV-1")
    assert exc.value.status_code == 400
    assert exc.value.detail["code"] == "document_not_allowed_for_inventory_order"

    with pytest.raises(HTTPException) as exc:
        generate_order_document(db=db_session, template_name="Invoice", order_id="INV-1")
    assert exc.value.status_code == 400
