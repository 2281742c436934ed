"""HTML template rendering for trade documents.

Templates use two placeholder forms:

- ``{{name}}`` is replaced by a value resolved from the render data.
- ``{{#containers}}...{{/containers}}`` repeats its body once per list item,
  resolving placeholders against the item.

Unknown placeholders render as an em dash so gaps are visible on the
document rather than silently blank.
"""

from __future__ import annotations

import html
import math
import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping

from sqlalchemy import inspect as sa_inspect

from tradeops.config import settings

MISSING = "—"
_UNSET = object()

_SECTION_RE = re.compile(r"\{\{#(\w+)\}\}([\s\S]*?)\{\{/\1\}\}")
_VAR_RE = re.compile(r"\{\{(\w+)\}\}")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")

_WEIGHT_FIELDS = {"net_weight", "gross_weight"}

# Checked in order; a prefix whose source lacks the field falls through to the next.
_PREFIX_SOURCES: tuple[tuple[str, str], ...] = (
    ("issuer_", "issuer"),
    ("bl_", "bl_extraction"),
    ("bl_order_", "bl_order"),
    ("order_", "order"),
    ("purchaser_", "company"),
    ("seller_", "company"),
    ("buyer_", "company"),
)

_SOURCES = ("issuer", "bl_extraction", "bl_order", "order", "company", "company_address")

_ADDRESS_ALIASES: dict[str, str] = {
    "buyer_address": "line1",
    "seller_address": "line1",
    "purchaser_address": "line1",
    "seller_contact_name": "contact_name_1",
    "seller_contact_email": "email_1",
    "purchaser_contact_name": "contact_name_1",
    "purchaser_contact_email": "email_1",
    "purchaser_vat": "vat_id",
    "seller_city": "city",
    "purchaser_city": "city",
    "seller_country": "country",
    "purchaser_country": "country",
}

# Only rendered when the value is present.
_OPTIONAL_ADDRESS_ALIASES: dict[str, str] = {
    "consignee_vat_id": "vat_id",
    "consignee_pan_number": "pan_number",
    "consignee_iec_code": "iec_code",
}

_CONSIGNEE_LINES: dict[str, tuple[str, str]] = {
    "consignee_vat_line": ("vat_id", "VAT ID"),
    "consignee_pan_line": ("pan_number", "PAN"),
    "consignee_iec_line": ("iec_code", "IEC"),
}

_BOOKKEEPING_COLUMNS = {"created_at", "updated_at", "deleted_at"}


def _js_round(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_number(value: float, *, max_decimals: int = 2) -> str:
    """en-US grouping with up to ``max_decimals`` fraction digits, no trailing zeros."""

    text = f"{float(value):,.{max_decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in {"-0", "-0."}:
        return "0"
    return text


def format_date(value: date) -> str:
    return f"{value.month}/{value.day}/{value.year}"


def kilograms(value_mt: Any) -> str:
    try:
        return format_number(float(value_mt) * 1000, max_decimals=3)
    except (TypeError, ValueError):
        return format_value(value_mt)


def format_value(value: Any) -> str:
    if value is None:
        return MISSING
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str) and value == "":
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return format_number(float(value))
    if isinstance(value, datetime):
        return format_date(value.date())
    if isinstance(value, date):
        return format_date(value)
    if isinstance(value, str) and _ISO_DATE_RE.match(value):
        try:
            return format_date(date.fromisoformat(value[:10]))
        except ValueError:
            return value
    return str(value)


def row_to_data(obj: Any, *, keep_bookkeeping: bool = False) -> dict[str, Any] | None:
    """Column values of an ORM row as a plain dict; enums become their values."""

    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return dict(obj)
    data: dict[str, Any] = {}
    for attr in sa_inspect(obj).mapper.column_attrs:
        if not keep_bookkeeping and attr.key in _BOOKKEEPING_COLUMNS:
            continue
        value = getattr(obj, attr.key)
        data[attr.key] = value.value if isinstance(value, Enum) else value
    return data


def issuer_data() -> dict[str, Any]:
    return settings.issuer_info()


def _percent(payable_percent: Any) -> int:
    # Stored either as a fraction (0.57) or as a percentage (57).
    value = float(payable_percent)
    return _js_round(value if value > 1.5 else value * 100)


def _value(v: Any) -> Any:
    return v.value if isinstance(v, Enum) else v


class TemplateEngine:
    def __init__(self, data: Mapping[str, Any], *, today: date | None = None):
        self.data: dict[str, Any] = dict(data)
        self.data["issuer"] = dict(self.data.get("issuer") or issuer_data())
        self.today = today

    def render(self, template: str) -> str:
        result = self._render_sections(template)
        return _VAR_RE.sub(lambda m: format_value(self.resolve(m.group(1))), result)

    def _render_sections(self, template: str) -> str:
        def _section(match: re.Match) -> str:
            items = self.data.get(match.group(1))
            if not isinstance(items, list):
                return ""
            body = match.group(2)
            return "".join(self._render_item(body, item) for item in items)

        return _SECTION_RE.sub(_section, template)

    @staticmethod
    def _render_item(body: str, item: Any) -> str:
        row = item if isinstance(item, Mapping) else {}

        def _var(match: re.Match) -> str:
            name = match.group(1)
            value = row.get(name)
            if name in _WEIGHT_FIELDS and value is not None:
                return kilograms(value)
            return format_value(value)

        return _VAR_RE.sub(_var, body)

    def _source(self, name: str) -> Mapping[str, Any] | None:
        src = self.data.get(name)
        return src if isinstance(src, Mapping) else None

    def resolve(self, name: str) -> Any:
        extraction = self._source("bl_extraction") or {}
        bl_order = self._source("bl_order") or {}
        address = self._source("company_address")
        containers = self.data.get("containers") or []

        if name == "current_date":
            today = self.today or datetime.now(timezone.utc).date()
            return today.isoformat()

        if name == "document_notes_section":
            comment = self.data.get("document_comment")
            if not comment:
                return ""
            escaped = html.escape(str(comment)).replace("\n", " ")
            return f'<p class="notes"><strong>Notes / Special Instructions:</strong> {escaped}</p>'

        if name == "document_comment":
            comment = self.data.get("document_comment")
            if not comment:
                return ""
            return html.escape(str(comment)).replace("\n", "<br/>")

        if name in {"product_details", "description_of_goods"} and extraction.get("product_description"):
            return extraction["product_description"]

        if name in {"total_net_weight", "total_gross_weight"} and extraction.get(name) is not None:
            return kilograms(extraction[name])

        if name == "container_numbers" and containers:
            return ", ".join(str(c.get("container_number")) for c in containers if c.get("container_number"))

        if name == "container_size" and containers:
            return ", ".join(str(c.get("container_size")) for c in containers if c.get("container_size"))

        if name == "package_number" and extraction.get("number_of_packages") is not None:
            return extraction["number_of_packages"]

        if name == "on_board_date" and extraction.get("onboard_date"):
            return extraction["onboard_date"]

        if name == "bl_order_name":
            if bl_order.get("bl_order_name"):
                return bl_order["bl_order_name"]
            if extraction.get("bl_order_name"):
                return extraction["bl_order_name"]

        if name in _CONSIGNEE_LINES:
            field, label = _CONSIGNEE_LINES[name]
            value = (address or {}).get(field)
            return f"<p>{label}: {value}</p>" if value else ""

        if name in self.data:
            return self.data[name]

        for prefix, source_name in _PREFIX_SOURCES:
            if name.startswith(prefix):
                source = self._source(source_name)
                field_name = name[len(prefix):]
                if source is not None and field_name in source:
                    return source[field_name]

        for source_name in _SOURCES:
            source = self._source(source_name)
            if source is not None and name in source:
                return source[name]

        computed = self._computed(name)
        if computed is not _UNSET:
            return computed

        if address is not None:
            if name in _ADDRESS_ALIASES:
                return address.get(_ADDRESS_ALIASES[name])
            if name in _OPTIONAL_ADDRESS_ALIASES and address.get(_OPTIONAL_ADDRESS_ALIASES[name]):
                return address[_OPTIONAL_ADDRESS_ALIASES[name]]

        return None

    def _computed(self, name: str) -> Any:
        order = self._source("order")
        ticket = self._source("ticket")

        if name in {"total_sell_value", "total_buy_value"} and order is not None:
            qty = order.get("allocated_quantity_mt") or 0
            price = order.get("sell_price" if name == "total_sell_value" else "buy_price") or 0
            return float(qty) * float(price)

        if ticket is None:
            return _UNSET

        if name == "formatted_payment_terms":
            terms = ticket.get("payment_terms") or ""
            event = ticket.get("payment_trigger_event") or ""
            offset = ticket.get("payment_offset_days")
            if terms and event and offset is not None:
                timing = "before" if float(offset) < 0 else "after"
                return f"{terms}, {abs(int(offset))} days {timing} {event}"
            return terms

        if name == "basis_with_payable":
            basis = ticket.get("basis") or ""
            payable = ticket.get("payable_percent")
            if basis and payable is not None:
                return f"{basis} {_percent(payable)}%"
            return basis

        if name == "pricing_basis_line":
            return self._pricing_basis_line(ticket)

        if name == "delivery_location_line":
            ship_to = ticket.get("ship_to") or (order or {}).get("ship_to")
            if _value(ticket.get("incoterms")) == "EXW" or not ship_to:
                return ""
            return f"<p><strong>Delivery location:</strong> {ship_to}</p>"

        if name == "ticket_product_details":
            return ticket.get("product_details")

        if name == "payment_terms":
            return ticket.get("payment_terms")

        return _UNSET

    @staticmethod
    def _pricing_basis_line(ticket: Mapping[str, Any]) -> str:
        pricing_type = _value(ticket.get("pricing_type"))
        basis = ticket.get("basis") or ""

        if pricing_type == "Formula":
            payable = ticket.get("payable_percent")
            if basis and payable is not None:
                return f"<p><strong>Pricing basis:</strong> {basis} {_percent(payable)}%</p>"
            return f"<p><strong>Pricing basis:</strong> {basis}</p>" if basis else ""

        if pricing_type == "Index":
            premium = ticket.get("premium_discount")
            if basis and premium is not None:
                sign = "+" if float(premium) >= 0 else ""
                return (
                    f"<p><strong>Pricing basis:</strong> {basis} "
                    f"{sign}{format_number(float(premium), max_decimals=3)}</p>"
                )
            return f"<p><strong>Pricing basis:</strong> {basis}</p>" if basis else ""

        return ""


def render_template(template: str, data: Mapping[str, Any], *, today: date | None = None) -> str:
    return TemplateEngine(data, today=today).render(template)


def find_placeholders(template: str) -> list[str]:
    """Placeholder names used by a template, in first-seen order, section names included."""

    seen: list[str] = []
    for name in [m.group(1) for m in _SECTION_RE.finditer(template)] + _VAR_RE.findall(template):
        if name not in seen:
            seen.append(name)
    return seen


def sample_data(*, today: date | None = None) -> dict[str, Any]:
    today = today or datetime.now(timezone.utc).date()
    return {
        "issuer": issuer_data(),
        "bl_extraction": {
            "bl_number": "SAMPLE-BL-12345",
            "bl_issue_date": today,
            "onboard_date": today,
            "vessel_name": "SAMPLE VESSEL",
            "shipping_line": "Sample Shipping Line",
            "shipper": "Sample Shipper Company\n123 Export Street\nExport City, Country",
            "consignee_name": "Sample Consignee",
            "consignee_address": "456 Import Avenue\nImport City, Country",
            "consignee_contact_person_name": "John Doe",
            "consignee_contact_person_email": "john@example.com",
            "notify_name": "Sample Notify Party",
            "notify_address": "789 Notify Road\nNotify City, Country",
            "notify_contact_person_name": "Jane Smith",
            "notify_contact_person_email": "jane@example.com",
            "description_of_goods": "Aluminium Scrap",
            "product_description": "HMS 1&2 80/20",
            "hs_code": "7602.00.00",
            "country_of_origin": "Germany",
            "port_of_loading": "Hamburg, Germany",
            "port_of_discharge": "Shanghai, China",
            "final_destination": "Shanghai, China",
            "number_of_packages": 20,
            "number_of_containers": 2,
            "applicable_free_days": 7,
            "total_net_weight": 40,
            "total_gross_weight": 42,
        },
        "bl_order": {
            "bl_order_name": "28878-1",
            "status": "In Transit",
            "loaded_quantity_mt": 40,
            "total_quantity_mt": 40,
            "loading_date": today,
            "etd": today + timedelta(days=7),
            "eta": today + timedelta(days=37),
            "buy_final_price": 450,
            "sell_final_price": 520,
            "revenue": 2800,
            "cost": 18000,
        },
        "order": {
            "id": "ORD-2024-001",
            "buyer": "Sample Buyer Company",
            "seller": "Sample Seller Company",
            "commodity_type": "Aluminium",
            "isri_grade": "Tense",
            "metal_form": "Baled",
            "product_details": "Aluminium extrusions, clean",
            "allocated_quantity_mt": 40,
            "buy_price": 450,
            "sell_price": 520,
            "margin": 15.56,
            "ship_from": "Hamburg, Germany",
            "ship_to": "Shanghai, China",
            "incoterms": "FOB",
            "created_at": today,
            "sales_order_sign_date": today,
        },
        "company": {"name": "Sample Company Ltd"},
        "company_address": {
            "line1": "123 Business Park",
            "city": "Business City",
            "country": "Sample Country",
            "vat_id": "VAT123456789",
            "pan_number": "ABCDE1234F",
            "iec_code": "IEC0123456",
            "contact_name_1": "Contact Person",
            "email_1": "contact@sample.com",
            "phone_1": "+1234567890",
        },
        "ticket": {
            "payment_terms": "100% CAD",
            "payment_trigger_event": "ETA",
            "payment_offset_days": -7,
            "product_details": "Aluminium extrusions, clean, min 95% purity",
            "currency": "USD",
            "transport_method": "Sea",
            "country_of_origin": "Germany",
            "incoterms": "FOB",
            "basis": "3M LLME",
            "payable_percent": 0.57,
            "pricing_type": "Formula",
        },
        "containers": [
            {
                "container_number": "CONT123456",
                "container_size": "20ft",
                "seal_number": "SEAL789012",
                "net_weight": 20,
                "gross_weight": 21,
            },
            {
                "container_number": "CONT654321",
                "container_size": "20ft",
                "seal_number": "SEAL210987",
                "net_weight": 20,
                "gross_weight": 21,
            },
        ],
    }


def preview_template(template: str, *, today: date | None = None) -> str:
    return render_template(template, sample_data(today=today), today=today)


def rows_to_data(rows: Iterable[Any]) -> list[dict[str, Any]]:
    return [row_to_data(r) for r in rows]
