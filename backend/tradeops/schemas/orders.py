from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tradeops.models.domain import Commodity


class OrderBase(BaseModel):
    buyer: Optional[str] = Field(None, max_length=255, description="Comma-separated buy ticket ids")
    seller: Optional[str] = Field(None, max_length=255, description="Comma-separated sell ticket ids")
    status: str = Field("Draft", max_length=32)
    transaction_type: Optional[str] = Field(None, max_length=16)
    commodity_type: Optional[Commodity] = None
    isri_grade: Optional[str] = Field(None, max_length=64)
    metal_form: Optional[str] = Field(None, max_length=64)
    product_details: Optional[str] = None
    allocated_quantity_mt: Optional[float] = None
    buy_price: Optional[float] = None
    sell_price: Optional[float] = None
    ship_from: Optional[str] = Field(None, max_length=255)
    ship_to: Optional[str] = Field(None, max_length=255)
    incoterms: Optional[str] = Field(None, max_length=16)
    sales_order_sign_date: Optional[date] = None


class OrderCreate(OrderBase):
    id: str = Field(..., min_length=1, max_length=64)


class OrderUpdate(BaseModel):
    buyer: Optional[str] = None
    seller: Optional[str] = None
    status: Optional[str] = None
    transaction_type: Optional[str] = None
    commodity_type: Optional[Commodity] = None
    isri_grade: Optional[str] = None
    metal_form: Optional[str] = None
    product_details: Optional[str] = None
    allocated_quantity_mt: Optional[float] = None
    buy_price: Optional[float] = None
    sell_price: Optional[float] = None
    ship_from: Optional[str] = None
    ship_to: Optional[str] = None
    incoterms: Optional[str] = None
    sales_order_sign_date: Optional[date] = None


class OrderRead(OrderBase):
    id: str
    margin: Optional[float] = None
    sales_order_url: Optional[str] = None
    purchase_order_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PlannedShipmentsRequest(BaseModel):
    count: Optional[int] = Field(None, ge=0, description="Defaults to the tickets' planned shipments")


class BLAllocateRequest(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=64)
    bl_order_ids: List[int] = Field(..., min_length=1)


class HasExecutedHedgeRead(BaseModel):
    has_executed_hedge: bool


class BLOrderBase(BaseModel):
    order_id: Optional[str] = None
    bl_order_name: Optional[str] = Field(None, max_length=64)
    bl_number: Optional[str] = Field(None, max_length=64)
    bl_issue_date: Optional[date] = None
    status: str = Field("Planned", max_length=32)
    loaded_quantity_mt: Optional[float] = None
    total_quantity_mt: Optional[float] = None
    loading_date: Optional[date] = None
    etd: Optional[date] = None
    eta: Optional[date] = None
    atd: Optional[date] = None
    ata: Optional[date] = None
    port_of_loading: Optional[str] = None
    port_of_discharge: Optional[str] = None
    final_destination: Optional[str] = None
    buy_final_price: Optional[float] = None
    sell_final_price: Optional[float] = None
    revenue: Optional[float] = None
    cost: Optional[float] = None


class BLOrderCreate(BLOrderBase):
    pass


class BLOrderUpdate(BaseModel):
    order_id: Optional[str] = None
    bl_order_name: Optional[str] = None
    bl_number: Optional[str] = None
    bl_issue_date: Optional[date] = None
    status: Optional[str] = None
    loaded_quantity_mt: Optional[float] = None
    total_quantity_mt: Optional[float] = None
    loading_date: Optional[date] = None
    etd: Optional[date] = None
    eta: Optional[date] = None
    atd: Optional[date] = None
    ata: Optional[date] = None
    port_of_loading: Optional[str] = None
    port_of_discharge: Optional[str] = None
    final_destination: Optional[str] = None
    buy_final_price: Optional[float] = None
    sell_final_price: Optional[float] = None
    revenue: Optional[float] = None
    cost: Optional[float] = None


class BLOrderRead(BLOrderBase):
    id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BLExtractionBase(BaseModel):
    bl_number: Optional[str] = None
    bl_issue_date: Optional[date] = None
    onboard_date: Optional[date] = None
    vessel_name: Optional[str] = None
    shipping_line: Optional[str] = None
    shipper: Optional[str] = None
    consignee_name: Optional[str] = None
    consignee_address: Optional[str] = None
    consignee_contact_person_name: Optional[str] = None
    consignee_contact_person_email: Optional[str] = None
    notify_name: Optional[str] = None
    notify_address: Optional[str] = None
    notify_contact_person_name: Optional[str] = None
    notify_contact_person_email: Optional[str] = None
    description_of_goods: Optional[str] = None
    product_description: Optional[str] = None
    hs_code: Optional[str] = None
    country_of_origin: Optional[str] = None
    port_of_loading: Optional[str] = None
    port_of_discharge: Optional[str] = None
    final_destination: Optional[str] = None
    number_of_packages: Optional[int] = None
    number_of_containers: Optional[int] = None
    applicable_free_days: Optional[int] = None
    total_net_weight: Optional[float] = Field(None, description="Metric tonnes")
    total_gross_weight: Optional[float] = Field(None, description="Metric tonnes")


class BLExtractionUpsert(BLExtractionBase):
    pass


class BLExtractionRead(BLExtractionBase):
    id: int
    bl_order_id: int

    model_config = ConfigDict(from_attributes=True)


class ContainerBase(BaseModel):
    container_number: str = Field(..., min_length=1, max_length=32)
    container_size: Optional[str] = Field(None, max_length=16)
    seal_number: Optional[str] = Field(None, max_length=64)
    net_weight: Optional[float] = None
    gross_weight: Optional[float] = None


class ContainerRead(ContainerBase):
    id: int
    bl_order_id: int
    bl_number: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ContainersReplace(BaseModel):
    containers: List[ContainerBase] = Field(default_factory=list)
