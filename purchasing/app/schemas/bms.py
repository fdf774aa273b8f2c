"""
DTOs for the BMS (myFulfillment) REST payloads.

Every field the platform may omit is optional. Timestamps without an offset
are read as UTC and ids are normalised to strings so they compare cleanly
with the ``external_id`` columns.
"""
from __future__ import annotations

from datetime import datetime, date, timezone
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _as_str(value):
    if value is None or value == "":
        return None
    return str(value)


class BmsModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class BmsPurchaseOrderItem(BmsModel):
    sku: str | None = None
    name: str | None = None
    qty: int = 0
    qty_received: int = 0
    price: Decimal | None = None

    @field_validator("sku", mode="before")
    @classmethod
    def _sku(cls, v):
        return _as_str(v)

    @field_validator("qty", "qty_received", mode="before")
    @classmethod
    def _qty(cls, v):
        return 0 if v in (None, "") else v


class BmsPurchaseOrder(BmsModel):
    id: str
    reference: str | None = None
    status: str | None = None
    supplier_id: str | None = None
    expected_at: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    items: list[BmsPurchaseOrderItem] = Field(default_factory=list)

    @field_validator("id", "supplier_id", "reference", mode="before")
    @classmethod
    def _ids(cls, v):
        return _as_str(v)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, v):
        return _as_utc(v)

    @field_validator("expected_at", mode="before")
    @classmethod
    def _expected(cls, v):
        # BMS sends either a date or a full timestamp
        if isinstance(v, str) and len(v) > 10:
            return v[:10]
        return v or None

    @field_validator("items", mode="before")
    @classmethod
    def _items(cls, v):
        return v or []

    @property
    def total_ordered(self) -> int:
        return sum(i.qty for i in self.items)

    @property
    def total_received(self) -> int:
        return sum(i.qty_received for i in self.items)


class BmsReceptionItem(BmsModel):
    sku: str | None = None
    qty: int = 0

    @field_validator("sku", mode="before")
    @classmethod
    def _sku(cls, v):
        return _as_str(v)

    @field_validator("qty", mode="before")
    @classmethod
    def _qty(cls, v):
        return 0 if v in (None, "") else v


class BmsReception(BmsModel):
    id: str
    reference: str | None = None
    created_at: datetime | None = None
    items: list[BmsReceptionItem] = Field(default_factory=list)

    @field_validator("id", "reference", mode="before")
    @classmethod
    def _ids(cls, v):
        return _as_str(v)

    @field_validator("created_at")
    @classmethod
    def _utc(cls, v):
        return _as_utc(v)

    @field_validator("items", mode="before")
    @classmethod
    def _items(cls, v):
        return v or []


class BmsSupplier(BmsModel):
    id: str
    name: str
    code: str | None = None
    email: str | None = None
    telephone: str | None = None
    street1: str | None = None
    street2: str | None = None
    postcode: str | None = None
    city: str | None = None
    country_code: str | None = None
    currency: str | None = None
    shipping_delay: int | None = None
    is_active: int | bool | None = None

    @field_validator("id", "code", "telephone", "postcode", mode="before")
    @classmethod
    def _strings(cls, v):
        return _as_str(v)

    @property
    def address(self) -> str | None:
        return "\n".join(part for part in (self.street1, self.street2) if part) or None


class BmsCreatedOrder(BmsModel):
    id: str
    reference: str | None = None

    @field_validator("id", "reference", mode="before")
    @classmethod
    def _ids(cls, v):
        return _as_str(v)
