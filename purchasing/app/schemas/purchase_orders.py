from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from purchasing.app.db.models.core_types import POStatus


class POItemCreate(BaseModel):
    product_id: int | None = None
    supplier_sku: str | None = Field(default=None, max_length=64)
    product_name: str = Field(min_length=1, max_length=255)
    qty_ordered: int = Field(gt=0)
    unit_price: Decimal | None = Field(default=None, ge=0)
    theoretical_need: int | None = None
    supposed_need: int | None = None


class POCreate(BaseModel):
    supplier_id: int
    items: list[POItemCreate] = Field(default_factory=list)
    notes: str | None = None
    send_externally: bool = False


class POStatusUpdate(BaseModel):
    status: POStatus
    order_date: datetime | None = None
    expected_date: date | None = None
    notes: str | None = None


class POReceivedUpdate(BaseModel):
    qty_received: int


class POItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int | None
    supplier_sku: str | None
    product_name: str
    qty_ordered: int
    qty_received: int
    unit_price: Decimal | None


class POOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    supplier_id: int
    status: POStatus
    external_id: str | None
    external_reference: str | None
    order_date: datetime | None
    expected_date: date | None
    received_date: datetime | None
    total_items: int
    total_qty: int
    total_amount: Decimal
    notes: str | None
    items: list[POItemOut] = Field(default_factory=list)
