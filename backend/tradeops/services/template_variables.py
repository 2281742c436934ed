"""Catalog of template placeholders, grouped the way template editors list them."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional


@dataclass(frozen=True)
class TemplateVariable:
    key: str
    label: str
    path: str
    format: Optional[str] = None  # date | number | currency


@dataclass(frozen=True)
class VariableCategory:
    key: str
    label: str
    variables: tuple[TemplateVariable, ...]


def _v(key: str, label: str, path: str, fmt: str | None = None) -> TemplateVariable:
    return TemplateVariable(key=key, label=label, path=path, format=fmt)


TEMPLATE_VARIABLES: tuple[VariableCategory, ...] = (
    VariableCategory(
        key="issuer",
        label="Issuer Company Info",
        variables=(
            _v("issuer_name", "Company Name", "issuer.name"),
            _v("issuer_address", "Address", "issuer.address"),
            _v("issuer_city", "City", "issuer.city"),
            _v("issuer_country", "Country", "issuer.country"),
            _v("issuer_phone", "Phone", "issuer.phone"),
            _v("issuer_email", "Email", "issuer.email"),
            _v("issuer_managing_directors", "Managing Directors", "issuer.managing_directors"),
            _v("issuer_register", "Company Register", "issuer.register"),
            _v("issuer_vat_id", "VAT ID", "issuer.vat_id"),
            _v("issuer_bank_1", "Bank 1 Name", "issuer.bank_1"),
            _v("issuer_iban_1", "Bank 1 IBAN", "issuer.iban_1"),
            _v("issuer_bic_1", "Bank 1 BIC", "issuer.bic_1"),
            _v("issuer_bank_2", "Bank 2 Name", "issuer.bank_2"),
            _v("issuer_iban_2", "Bank 2 IBAN", "issuer.iban_2"),
            _v("issuer_bic_2", "Bank 2 BIC", "issuer.bic_2"),
            _v("current_date", "Current Date", "current_date", "date"),
        ),
    ),
    VariableCategory(
        key="bl_extraction",
        label="Bill of Lading Information",
        variables=(
            _v("bl_number", "BL Number", "bl_extraction.bl_number"),
            _v("bl_issue_date", "BL Issue Date", "bl_extraction.bl_issue_date", "date"),
            _v("on_board_date", "On Board Date", "bl_extraction.onboard_date", "date"),
            _v("vessel_name", "Vessel Name", "bl_extraction.vessel_name"),
            _v("shipping_line", "Shipping Line", "bl_extraction.shipping_line"),
            _v("shipper", "Shipper", "bl_extraction.shipper"),
            _v("description_of_goods", "Description of Goods", "bl_extraction.description_of_goods"),
            _v("product_description", "Product Description", "bl_extraction.product_description"),
            _v("hs_code", "HS Code", "bl_extraction.hs_code"),
            _v("country_of_origin", "Country of Origin", "bl_extraction.country_of_origin"),
            _v("number_of_packages", "Number of Packages", "bl_extraction.number_of_packages"),
            _v("package_number", "Package Number", "bl_extraction.number_of_packages"),
            _v("number_of_containers", "Number of Containers", "bl_extraction.number_of_containers"),
            _v("applicable_free_days", "Applicable Free Days", "bl_extraction.applicable_free_days"),
            _v("total_net_weight", "Total Net Weight (KGS)", "bl_extraction.total_net_weight", "number"),
            _v("total_gross_weight", "Total Gross Weight (KGS)", "bl_extraction.total_gross_weight", "number"),
            _v("container_numbers", "Container Numbers", "containers.container_number"),
            _v("container_size", "Container Sizes", "containers.container_size"),
        ),
    ),
    VariableCategory(
        key="bl_consignee",
        label="Consignee Information",
        variables=(
            _v("consignee_name", "Consignee Name", "bl_extraction.consignee_name"),
            _v("consignee_address", "Consignee Address", "bl_extraction.consignee_address"),
            _v("consignee_contact_person_name", "Contact Person", "bl_extraction.consignee_contact_person_name"),
            _v("consignee_contact_person_email", "Contact Email", "bl_extraction.consignee_contact_person_email"),
            _v("consignee_vat_id", "Consignee VAT ID", "company_address.vat_id"),
            _v("consignee_pan_number", "Consignee PAN Number", "company_address.pan_number"),
            _v("consignee_iec_code", "Consignee IEC Code", "company_address.iec_code"),
            _v("consignee_vat_line", "Consignee VAT Line", "computed.consignee_vat_line"),
            _v("consignee_pan_line", "Consignee PAN Line", "computed.consignee_pan_line"),
            _v("consignee_iec_line", "Consignee IEC Line", "computed.consignee_iec_line"),
        ),
    ),
    VariableCategory(
        key="bl_notify",
        label="Notify Party Information",
        variables=(
            _v("notify_name", "Notify Party Name", "bl_extraction.notify_name"),
            _v("notify_address", "Notify Address", "bl_extraction.notify_address"),
            _v("notify_contact_person_name", "Contact Person", "bl_extraction.notify_contact_person_name"),
            _v("notify_contact_person_email", "Contact Email", "bl_extraction.notify_contact_person_email"),
        ),
    ),
    VariableCategory(
        key="bl_ports",
        label="Ports & Locations",
        variables=(
            _v("port_of_loading", "Port of Loading", "bl_extraction.port_of_loading"),
            _v("port_of_discharge", "Port of Discharge", "bl_extraction.port_of_discharge"),
            _v("final_destination", "Final Destination", "bl_extraction.final_destination"),
        ),
    ),
    VariableCategory(
        key="bl_order",
        label="BL Order Details",
        variables=(
            _v("bl_order_name", "BL Order Name", "bl_order.bl_order_name"),
            _v("status", "Status", "bl_order.status"),
            _v("loaded_quantity_mt", "Loaded Quantity (MT)", "bl_order.loaded_quantity_mt", "number"),
            _v("total_quantity_mt", "Total Quantity (MT)", "bl_order.total_quantity_mt", "number"),
            _v("loading_date", "Loading Date", "bl_order.loading_date", "date"),
            _v("etd", "ETD", "bl_order.etd", "date"),
            _v("eta", "ETA", "bl_order.eta", "date"),
            _v("atd", "ATD", "bl_order.atd", "date"),
            _v("ata", "ATA", "bl_order.ata", "date"),
        ),
    ),
    VariableCategory(
        key="bl_financial",
        label="BL Financial",
        variables=(
            _v("buy_final_price", "Buy Final Price", "bl_order.buy_final_price", "currency"),
            _v("sell_final_price", "Sell Final Price", "bl_order.sell_final_price", "currency"),
            _v("revenue", "Revenue", "bl_order.revenue", "currency"),
            _v("cost", "Cost", "bl_order.cost", "currency"),
        ),
    ),
    VariableCategory(
        key="order",
        label="Order Information",
        variables=(
            _v("order_id", "Order ID", "order.id"),
            _v("buyer", "Buyer", "order.buyer"),
            _v("seller", "Seller", "order.seller"),
            _v("commodity_type", "Commodity Type", "order.commodity_type"),
            _v("isri_grade", "ISRI Grade", "order.isri_grade"),
            _v("metal_form", "Metal Form", "order.metal_form"),
            _v("product_details", "Product Details", "order.product_details"),
            _v("ticket_product_details", "Ticket Product Details", "ticket.product_details"),
            _v("allocated_quantity_mt", "Allocated Quantity (MT)", "order.allocated_quantity_mt", "number"),
            _v("buy_price", "Buy Price", "order.buy_price", "currency"),
            _v("sell_price", "Sell Price", "order.sell_price", "currency"),
            _v("margin", "Margin", "order.margin", "number"),
            _v("total_buy_value", "Total Buy Value", "computed.total_buy_value", "currency"),
            _v("total_sell_value", "Total Sell Value", "computed.total_sell_value", "currency"),
            _v("ship_from", "Ship From", "order.ship_from"),
            _v("ship_to", "Ship To", "order.ship_to"),
            _v("incoterms", "Incoterms", "order.incoterms"),
            _v("payment_terms", "Payment Terms", "ticket.payment_terms"),
            _v("formatted_payment_terms", "Formatted Payment Terms (with timing)", "computed.formatted_payment_terms"),
            _v("basis_with_payable", "Basis with Payable %", "computed.basis_with_payable"),
            _v("pricing_basis_line", "Pricing Basis Line", "computed.pricing_basis_line"),
            _v("delivery_location_line", "Delivery Location Line", "computed.delivery_location_line"),
            _v("created_at", "Created At", "order.created_at", "date"),
            _v("sales_order_sign_date", "Sales Order Sign Date", "order.sales_order_sign_date", "date"),
        ),
    ),
    VariableCategory(
        key="company",
        label="Company/Purchaser Details",
        variables=(
            _v("purchaser_name", "Purchaser Name", "company.name"),
            _v("purchaser_address", "Purchaser Address", "company_address.line1"),
            _v("purchaser_city", "Purchaser City", "company_address.city"),
            _v("purchaser_country", "Purchaser Country", "company_address.country"),
            _v("purchaser_vat", "Purchaser VAT", "company_address.vat_id"),
            _v("purchaser_contact_name", "Purchaser Contact", "company_address.contact_name_1"),
            _v("purchaser_contact_email", "Purchaser Email", "company_address.email_1"),
            _v("purchaser_phone", "Purchaser Phone", "company_address.phone_1"),
            _v("seller_contact_name", "Seller Contact", "company_address.contact_name_1"),
            _v("seller_contact_email", "Seller Email", "company_address.email_1"),
        ),
    ),
    VariableCategory(
        key="containers",
        label="Containers (Repeating Section)",
        variables=(
            _v("container_number", "Container Number", "container.container_number"),
            _v("container_size", "Container Size", "container.container_size"),
            _v("seal_number", "Seal Number", "container.seal_number"),
            _v("net_weight", "Net Weight (KGS)", "container.net_weight", "number"),
            _v("gross_weight", "Gross Weight (KGS)", "container.gross_weight", "number"),
        ),
    ),
)

_BY_KEY: dict[str, TemplateVariable] = {}
for _category in TEMPLATE_VARIABLES:
    for _variable in _category.variables:
        _BY_KEY.setdefault(_variable.key, _variable)


def get_variable(key: str) -> TemplateVariable | None:
    return _BY_KEY.get(key)


def catalog_as_dict() -> dict[str, dict]:
    return {
        c.key: {"label": c.label, "variables": [asdict(v) for v in c.variables]}
        for c in TEMPLATE_VARIABLES
    }
