from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from tradeops import models
from tradeops.services.document_pdf import render_html_to_pdf
from tradeops.services.document_storage import safe_filename, write_document_bytes
from tradeops.services.order_matching import parse_ticket_ids
from tradeops.services.template_engine import render_template, row_to_data

logger = logging.getLogger("tradeops.documents")

SALES_ORDER = "Sales Order"
PURCHASE_ORDER = "Purchase Order"
PDF_CONTENT_TYPE = "application/pdf"


@dataclass(frozen=True)
class GenerationResult:
    document: models.GeneratedDocument
    html: str
    artifact: dict[str, Any]


def _timestamp_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def _company_data(db: Session, company_id: int | None) -> tuple[dict | None, dict | None]:
    if company_id is None:
        return None, None
    company = db.get(models.Company, company_id)
    if company is None:
        return None, None
    address = company.primary_address
    return row_to_data(company), row_to_data(address)


def _get_template(db: Session, template_id: int) -> models.DocumentTemplate:
    template = db.get(models.DocumentTemplate, template_id)
    if template is None or not template.is_active:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


def build_bl_document_data(
    db: Session, *, bl_order: models.BLOrder, comment: str | None = None
) -> dict[str, Any]:
    """Render data for a BL-level document.

    The company is the one on the first buyer ticket of the BL's order.
    """

    order = db.get(models.Order, bl_order.order_id) if bl_order.order_id else None
    ticket = None
    if order is not None:
        buyer_ids = parse_ticket_ids(order.buyer)
        if buyer_ids:
            ticket = db.get(models.Ticket, buyer_ids[0])

    company, address = _company_data(db, ticket.company_id if ticket is not None else None)

    return {
        "bl_extraction": row_to_data(bl_order.extraction) or {},
        "bl_order": row_to_data(bl_order) or {},
        "order": row_to_data(order, keep_bookkeeping=True) or {},
        "company": company or {},
        "company_address": address or {},
        "containers": [row_to_data(c) for c in bl_order.containers],
        "ticket": row_to_data(ticket) or {},
        "document_comment": comment or "",
    }


def _record_pdf(
    *,
    db: Session,
    html: str,
    folder: str,
    document_name: str,
    template: models.DocumentTemplate,
    bl_order_id: int | None,
    order_id: str | None,
    comment: str | None,
    user_id: int | None,
) -> GenerationResult:
    pdf_bytes = render_html_to_pdf(html)
    artifact = write_document_bytes(
        folder=folder,
        filename=document_name,
        content=pdf_bytes,
        content_type=PDF_CONTENT_TYPE,
    )

    doc = models.GeneratedDocument(
        template_id=template.id,
        bl_order_id=bl_order_id,
        order_id=order_id,
        document_name=document_name,
        document_url=artifact["storage_uri"],
        document_type=template.category or template.name,
        comment=comment or None,
        size_bytes=artifact["size_bytes"],
        checksum_sha256=artifact["checksum_sha256"],
        created_by=user_id,
    )
    db.add(doc)
    return GenerationResult(document=doc, html=html, artifact=artifact)


def _link_order_document(order: models.Order | None, template_name: str, url: str) -> None:
    if order is None:
        return
    if template_name == SALES_ORDER:
        order.sales_order_url = url
    elif template_name == PURCHASE_ORDER:
        order.purchase_order_url = url


def generate_bl_document(
    *,
    db: Session,
    template_id: int,
    bl_order_id: int,
    comment: str | None = None,
    user_id: int | None = None,
    now: datetime | None = None,
) -> GenerationResult:
    now = now or datetime.now(timezone.utc)
    template = _get_template(db, template_id)

    bl_order = db.get(models.BLOrder, bl_order_id)
    if bl_order is None or bl_order.deleted_at is not None:
        raise HTTPException(status_code=404, detail="BL order not found")

    data = build_bl_document_data(db, bl_order=bl_order, comment=comment)
    html = render_template(template.content, data, today=now.date())

    document_name = safe_filename(
        f"{template.name}_{bl_order.bl_order_name or bl_order.id}_{_timestamp_ms(now)}"
    ) + ".pdf"
    result = _record_pdf(
        db=db,
        html=html,
        folder="documents",
        document_name=document_name,
        template=template,
        bl_order_id=bl_order.id,
        order_id=bl_order.order_id,
        comment=comment,
        user_id=user_id,
    )

    if bl_order.order_id:
        _link_order_document(db.get(models.Order, bl_order.order_id), template.name, result.artifact["storage_uri"])

    db.commit()
    db.refresh(result.document)

    logger.info(
        "document_generated",
        extra={
            "generated_document_id": result.document.id,
            "template": template.name,
            "bl_order_id": bl_order.id,
            "size_bytes": result.artifact["size_bytes"],
        },
    )
    return result


def generate_order_document(
    *,
    db: Session,
    template_name: str,
    order_id: str,
    user_id: int | None = None,
    now: datetime | None = None,
) -> GenerationResult:
    """Generate a Sales Order (from the sell ticket) or Purchase Order (from the buy ticket)."""

    now = now or datetime.now(timezone.utc)
    if template_name not in {SALES_ORDER, PURCHASE_ORDER}:
        raise HTTPException(
            status_code=400,
            detail={"code": "unsupported_order_document", "template_name": template_name},
        )

    template = (
        db.query(models.DocumentTemplate)
        .filter(
            models.DocumentTemplate.name == template_name,
            models.DocumentTemplate.is_active.is_(True),
        )
        .order_by(models.DocumentTemplate.id.desc())
        .first()
    )
    if template is None:
        raise HTTPException(status_code=404, detail=f"{template_name} template not found")

    order = db.get(models.Order, order_id)
    if order is None or order.deleted_at is not None:
        raise HTTPException(status_code=404, detail="Order not found")

    buy_ids = parse_ticket_ids(order.buyer)
    sell_ids = parse_ticket_ids(order.seller)

    # Inventory orders only have one physical side.
    if (order.transaction_type or "").lower() == "inventory":
        side_ids = buy_ids or sell_ids
        side = db.get(models.Ticket, side_ids[0]) if side_ids else None
        side_type = side.type if side is not None else None
        if (side_type == models.TradeType.buy and template_name == SALES_ORDER) or (
            side_type == models.TradeType.sell and template_name == PURCHASE_ORDER
        ):
            raise HTTPException(
                status_code=400,
                detail={
                    "code": "document_not_allowed_for_inventory_order",
                    "message": f"Cannot generate {template_name} for inventory {side_type.value} orders",
                },
            )

    ticket_ids = sell_ids if template_name == SALES_ORDER else buy_ids
    ticket = db.get(models.Ticket, ticket_ids[0]) if ticket_ids else None
    company, address = _company_data(db, ticket.company_id if ticket is not None else None)

    ticket_data = row_to_data(ticket) or {}
    data = {
        "order": {**(row_to_data(order, keep_bookkeeping=True) or {}), "order_id": order.id},
        "company": company or {},
        "company_address": address or {},
        "ticket": ticket_data,
        "currency": ticket_data.get("currency") or "USD",
        "transport_method": ticket_data.get("transport_method"),
        "country_of_origin": ticket_data.get("country_of_origin"),
        "qp_start": ticket_data.get("qp_start"),
        "qp_end": ticket_data.get("qp_end"),
        "incoterms": ticket_data.get("incoterms"),
        "payment_terms": ticket_data.get("payment_terms"),
    }
    html = render_template(template.content, data, today=now.date())

    document_name = safe_filename(f"{template_name}_{order.id}_{_timestamp_ms(now)}") + ".pdf"
    result = _record_pdf(
        db=db,
        html=html,
        folder="orders",
        document_name=document_name,
        template=template,
        bl_order_id=None,
        order_id=order.id,
        comment=None,
        user_id=user_id,
    )
    _link_order_document(order, template_name, result.artifact["storage_uri"])
    db.add(order)
    db.commit()
    db.refresh(result.document)

    logger.info(
        "document_generated",
        extra={
            "generated_document_id": result.document.id,
            "template": template_name,
            "order_id": order.id,
            "size_bytes": result.artifact["size_bytes"],
        },
    )
    return result
