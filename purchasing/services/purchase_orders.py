"""
Purchase order aggregate: an order and the line items it exclusively owns.

Status rule, shared with the reception reconciler:

    received  if total ordered > 0 and total received >= total ordered
    partial   if 0 < total received < total ordered
    otherwise the explicit status is kept

Cached totals (items / qty / amount) are recomputed whenever the items are
written; they are not live on read.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, date, timezone
from decimal import Decimal
from typing import Iterable, Sequence

from pydantic import ValidationError
from sqlalchemy import select, func
from sqlalchemy.orm import Session, selectinload

from purchasing.app.core.config import settings
from purchasing.app.core.logging import get_logger
from purchasing.app.db.models.core_types import POStatus
from purchasing.app.db.models.models_v1 import (
    Product,
    PurchaseOrder,
    PurchaseOrderItem,
    Supplier,
)
from purchasing.app.schemas.purchase_orders import POItemCreate
from purchasing.services.errors import NotFoundError, OrderValidationError

logger = get_logger(__name__)

TERMINAL_STATUSES = {POStatus.received, POStatus.cancelled}

# Explicit operator transitions. received/partial are reachable from anywhere.
ALLOWED_TRANSITIONS: dict[POStatus, set[POStatus]] = {
    POStatus.draft: {POStatus.sent},
    POStatus.sent: {POStatus.confirmed, POStatus.shipped},
    POStatus.confirmed: {POStatus.shipped},
    POStatus.shipped: set(),
    POStatus.partial: set(),
    POStatus.received: set(),
    POStatus.cancelled: set(),
}


class DeleteOutcome(str, enum.Enum):
    deleted = "deleted"
    not_found = "not_found"
    not_draft = "not_draft"


@dataclass(frozen=True)
class DeleteResult:
    outcome: DeleteOutcome
    order_id: int
    order_number: str | None = None
    status: POStatus | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is DeleteOutcome.deleted


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------- STATUS ----------
def derive_status(total_ordered: int, total_received: int, current: POStatus) -> POStatus:
    if total_ordered > 0 and total_received >= total_ordered:
        return POStatus.received
    if total_received > 0:
        return POStatus.partial
    return current


def can_transition(current: POStatus, new: POStatus) -> bool:
    if new in (POStatus.received, POStatus.partial):
        return True
    if new is POStatus.cancelled:
        return current not in TERMINAL_STATUSES
    return new in ALLOWED_TRANSITIONS.get(current, set())


def clamp_received(qty: int, qty_ordered: int) -> int:
    return max(0, min(int(qty), int(qty_ordered)))


def refresh_status(order: PurchaseOrder) -> POStatus:
    """Re-derive ``order.status`` from its items and return it."""
    ordered = sum(i.qty_ordered for i in order.items)
    received = sum(i.qty_received for i in order.items)
    order.status = derive_status(ordered, received, order.status)
    return order.status


def recompute_totals(order: PurchaseOrder) -> None:
    amount = Decimal("0")
    for item in order.items:
        if item.unit_price is not None:
            amount += Decimal(item.unit_price) * item.qty_ordered
    order.total_items = len(order.items)
    order.total_qty = sum(i.qty_ordered for i in order.items)
    order.total_amount = amount.quantize(Decimal("0.01"))


def generate_order_number(db: Session, today: date | None = None) -> str:
    prefix = f"PO-{(today or _now().date()):%Y%m%d}-"
    # Numbers are zero-padded to 4 digits and grow past that: compare by length first
    last = db.execute(
        select(PurchaseOrder.order_number)
        .where(PurchaseOrder.order_number.like(f"{prefix}%"))
        .order_by(func.length(PurchaseOrder.order_number).desc(), PurchaseOrder.order_number.desc())
        .limit(1)
    ).scalar_one_or_none()
    seq = int(last.rsplit("-", 1)[1]) + 1 if last else 1
    return f"{prefix}{seq:04d}"


# ---------- READ ----------
def get_order(db: Session, order_id: int) -> PurchaseOrder:
    order = db.execute(
        select(PurchaseOrder)
        .options(selectinload(PurchaseOrder.items))
        .where(PurchaseOrder.id == order_id)
    ).scalar_one_or_none()
    if order is None:
        raise NotFoundError(f"Purchase order {order_id} not found")
    return order


def list_orders(
    db: Session,
    *,
    supplier_id: int | None = None,
    status: POStatus | None = None,
    limit: int = 50,
) -> list[PurchaseOrder]:
    stmt = select(PurchaseOrder).order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
    if supplier_id is not None:
        stmt = stmt.where(PurchaseOrder.supplier_id == supplier_id)
    if status is not None:
        stmt = stmt.where(PurchaseOrder.status == status)
    return list(db.execute(stmt.limit(limit)).scalars().all())


# ---------- WRITE ----------
def _validate_items(items: Iterable[POItemCreate | dict]) -> list[POItemCreate]:
    try:
        return [i if isinstance(i, POItemCreate) else POItemCreate.model_validate(i) for i in items]
    except ValidationError as exc:
        raise OrderValidationError(f"Invalid order item: {exc}") from exc


def create_order(
    db: Session,
    supplier_id: int,
    items: Sequence[POItemCreate | dict],
    *,
    notes: str | None = None,
    send_externally: bool = False,
    client=None,
) -> PurchaseOrder:
    """
    Create a draft order with its items in one commit.

    With ``send_externally`` the committed draft is then pushed to BMS and
    moves to ``sent``. There is no idempotency key on the BMS create call: if
    the push succeeds remotely but the response is lost, the order stays a
    local draft until the next order sync links it to the remote copy through
    the reference (our order number).
    """
    lines = _validate_items(items)
    if not lines:
        raise OrderValidationError("items must be a non-empty list")

    supplier = db.get(Supplier, supplier_id)
    if supplier is None:
        raise OrderValidationError(f"Unknown supplier_id {supplier_id}")

    for line in lines:
        if line.product_id is not None and db.get(Product, line.product_id) is None:
            raise OrderValidationError(f"Unknown product_id {line.product_id}")

    if send_externally:
        if client is None:
            raise OrderValidationError("send_externally requires a BMS client")
        if not supplier.external_id:
            raise OrderValidationError(f"Supplier {supplier_id} is not linked to BMS")

    order = PurchaseOrder(
        order_number=generate_order_number(db),
        supplier_id=supplier_id,
        status=POStatus.draft,
        notes=notes,
        items=[
            PurchaseOrderItem(
                product_id=line.product_id,
                supplier_sku=line.supplier_sku,
                product_name=line.product_name,
                qty_ordered=line.qty_ordered,
                qty_received=0,
                unit_price=line.unit_price,
                theoretical_need=line.theoretical_need,
                supposed_need=line.supposed_need,
            )
            for line in lines
        ],
    )
    recompute_totals(order)
    db.add(order)
    db.commit()
    logger.info("purchase_order.created", order_id=order.id, order_number=order.order_number)

    if send_externally:
        push_order(db, order, client)

    return get_order(db, order.id)


def build_external_payload(order: PurchaseOrder) -> dict:
    items = []
    for item in order.items:
        sku = item.supplier_sku or (item.product.sku if item.product else None)
        items.append(
            {
                "sku": sku,
                "qty": item.qty_ordered,
                "price": float(item.unit_price) if item.unit_price is not None else None,
                "name": item.product_name,
            }
        )
    return {
        "reference": order.order_number,
        "status": settings.bms_push_status,
        "supplier_id": order.supplier.external_id,
        "warehouse_id": settings.bms_warehouse_id,
        "items": items,
    }


def push_order(db: Session, order: PurchaseOrder, client) -> PurchaseOrder:
    """Create ``order`` on BMS, store the returned ids and mark it sent."""
    created = client.create_purchase_order(build_external_payload(order))

    order.external_id = created.id
    order.external_reference = created.reference or order.order_number
    order.status = POStatus.sent
    if order.order_date is None:
        order.order_date = _now()
    db.commit()
    logger.info(
        "purchase_order.pushed",
        order_id=order.id,
        external_id=order.external_id,
        external_reference=order.external_reference,
    )
    return order


def update_order_status(
    db: Session,
    order_id: int,
    status: POStatus,
    *,
    order_date: datetime | None = None,
    expected_date: date | None = None,
    notes: str | None = None,
) -> PurchaseOrder:
    order = get_order(db, order_id)
    status = POStatus(status)

    if not can_transition(order.status, status):
        raise OrderValidationError(f"Cannot move order {order.order_number} from {order.status.value} to {status.value}")

    order.status = status
    if order_date is not None:
        order.order_date = order_date
    elif status is POStatus.sent:
        order.order_date = _now()
    if expected_date is not None:
        order.expected_date = expected_date
    if status is POStatus.received:
        order.received_date = _now()
    if notes:
        order.notes = notes

    db.commit()
    logger.info("purchase_order.status_updated", order_id=order.id, status=status.value)
    return order


def update_received_qty(db: Session, order_id: int, item_id: int, qty: int) -> PurchaseOrder:
    order = get_order(db, order_id)
    item = next((i for i in order.items if i.id == item_id), None)
    if item is None:
        raise NotFoundError(f"Item {item_id} not found on purchase order {order_id}")

    item.qty_received = clamp_received(qty, item.qty_ordered)
    previous = order.status
    if refresh_status(order) is POStatus.received and previous is not POStatus.received:
        order.received_date = _now()

    db.commit()
    logger.info(
        "purchase_order.received_qty_updated",
        order_id=order.id,
        item_id=item.id,
        requested=qty,
        stored=item.qty_received,
        status=order.status.value,
    )
    return order


def delete_order(db: Session, order_id: int) -> DeleteResult:
    order = db.get(PurchaseOrder, order_id)
    if order is None:
        return DeleteResult(DeleteOutcome.not_found, order_id)
    if order.status is not POStatus.draft:
        return DeleteResult(DeleteOutcome.not_draft, order_id, order.order_number, order.status)

    number = order.order_number
    db.delete(order)
    db.commit()
    logger.info("purchase_order.deleted", order_id=order_id, order_number=number)
    return DeleteResult(DeleteOutcome.deleted, order_id, number, POStatus.draft)
