"""
Order sync: make local purchase orders match BMS, incrementally.

BMS has no incremental filter, so the whole (deduplicated) list is fetched
and filtered locally against ``last_order_sync_at``. The run is one
transaction: any unexpected failure rolls back every upsert and leaves the
watermark where it was, so a retry starts from scratch.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from purchasing.app.core.logging import get_logger
from purchasing.app.db.models.core_types import POStatus, SyncKey
from purchasing.app.db.models.models_v1 import (
    Product,
    ProductSupplier,
    PurchaseOrder,
    PurchaseOrderItem,
    Supplier,
)
from purchasing.app.schemas.bms import BmsPurchaseOrder
from purchasing.services.purchase_orders import (
    clamp_received,
    generate_order_number,
    recompute_totals,
)
from purchasing.services.watermarks import get_watermark, set_watermark

logger = get_logger(__name__)

_DIRECT_STATUS = {
    "draft": POStatus.draft,
    "cancelled": POStatus.cancelled,
    "shipped": POStatus.shipped,
    "confirmed": POStatus.confirmed,
}


@dataclass
class OrderSyncResult:
    created: int = 0
    updated: int = 0
    skipped: int = 0


def map_external_status(ext: BmsPurchaseOrder) -> POStatus:
    status = (ext.status or "").strip().lower()
    if status in _DIRECT_STATUS:
        return _DIRECT_STATUS[status]
    if status == "expected":
        return POStatus.partial if ext.total_received > 0 else POStatus.confirmed
    if status == "complete":
        ordered = ext.total_ordered
        if ordered > 0 and ext.total_received >= ordered:
            return POStatus.received
        return POStatus.partial
    return POStatus.sent


def is_candidate(ext: BmsPurchaseOrder, watermark: datetime | None) -> bool:
    if watermark is None:
        return True
    stamps = [ts for ts in (ext.created_at, ext.updated_at) if ts is not None]
    if not stamps:
        return True
    return any(ts >= watermark for ts in stamps)


def _build_items(ext: BmsPurchaseOrder, products: dict[str, int]) -> list[PurchaseOrderItem]:
    items = []
    for line in ext.items:
        qty_ordered = max(0, line.qty)
        items.append(
            PurchaseOrderItem(
                product_id=products.get(line.sku) if line.sku else None,
                supplier_sku=line.sku,
                product_name=line.name or line.sku or "?",
                qty_ordered=qty_ordered,
                qty_received=clamp_received(line.qty_received, qty_ordered),
                unit_price=line.price,
            )
        )
    return items


def _upsert_product_supplier(
    db: Session,
    product_id: int,
    supplier_id: int,
    supplier_sku: str | None,
    price: Decimal,
) -> None:
    link = db.execute(
        select(ProductSupplier)
        .where(ProductSupplier.product_id == product_id)
        .where(ProductSupplier.supplier_id == supplier_id)
    ).scalar_one_or_none()

    if link is None:
        link = ProductSupplier(
            product_id=product_id,
            supplier_id=supplier_id,
            is_primary=False,
            min_order_qty=1,
        )
        db.add(link)

    link.supplier_sku = supplier_sku
    link.supplier_price = price
    db.flush()


def _upsert_order(
    db: Session,
    ext: BmsPurchaseOrder,
    supplier_id: int,
    products: dict[str, int],
) -> bool:
    """Insert or replace one external order. Returns True when created."""
    order = db.execute(
        select(PurchaseOrder)
        .options(selectinload(PurchaseOrder.items))
        .where(PurchaseOrder.external_id == ext.id)
    ).scalar_one_or_none()

    if order is None and ext.reference:
        # A pushed draft whose create response was lost carries our order number as reference
        order = db.execute(
            select(PurchaseOrder)
            .options(selectinload(PurchaseOrder.items))
            .where(PurchaseOrder.order_number == ext.reference)
            .where(PurchaseOrder.external_id.is_(None))
        ).scalar_one_or_none()
        if order is not None:
            order.external_id = ext.id
            logger.info("order_sync.draft_linked", order_id=order.id, external_id=ext.id)

    created = order is None
    if created:
        order = PurchaseOrder(
            order_number=generate_order_number(db),
            external_id=ext.id,
            order_date=ext.created_at,
        )
        db.add(order)

    order.supplier_id = supplier_id
    order.external_reference = ext.reference
    order.status = map_external_status(ext)
    if ext.expected_at is not None:
        order.expected_date = ext.expected_at
    if order.status is POStatus.received and order.received_date is None:
        order.received_date = ext.updated_at or datetime.now(timezone.utc)

    # Lines have no identity of their own: replace them wholesale.
    order.items.clear()
    db.flush()
    order.items.extend(_build_items(ext, products))
    recompute_totals(order)
    db.flush()

    for line in ext.items:
        product_id = products.get(line.sku) if line.sku else None
        if product_id is not None and line.price is not None:
            _upsert_product_supplier(db, product_id, supplier_id, line.sku, line.price)

    return created


def run_order_sync(db: Session, client, now: datetime | None = None) -> OrderSyncResult:
    now = now or datetime.now(timezone.utc)
    result = OrderSyncResult()

    try:
        watermark = get_watermark(db, SyncKey.orders)
        external = client.list_purchase_orders()
        candidates = [o for o in external if is_candidate(o, watermark)]

        suppliers = {
            ext_id: sid
            for sid, ext_id in db.execute(
                select(Supplier.id, Supplier.external_id).where(Supplier.external_id.is_not(None))
            ).all()
        }
        products = {
            sku: pid
            for pid, sku in db.execute(select(Product.id, Product.sku).where(Product.sku.is_not(None))).all()
        }

        for ext in candidates:
            supplier_id = suppliers.get(ext.supplier_id) if ext.supplier_id else None
            if supplier_id is None:
                result.skipped += 1
                logger.warning(
                    "order_sync.unknown_supplier",
                    external_id=ext.id,
                    external_supplier_id=ext.supplier_id,
                )
                continue

            if _upsert_order(db, ext, supplier_id, products):
                result.created += 1
            else:
                result.updated += 1

        set_watermark(db, SyncKey.orders, now)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("order_sync.aborted")
        raise

    logger.info(
        "order_sync.completed",
        fetched=len(external),
        candidates=len(candidates),
        created=result.created,
        updated=result.updated,
        skipped=result.skipped,
    )
    return result
