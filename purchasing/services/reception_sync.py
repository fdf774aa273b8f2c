"""
Reception sync: apply BMS goods receipts to open purchase orders.

A reception names its order by the free-text reference. References are not
guaranteed unique locally, so a reference matching more than one order is
skipped rather than guessed.

Received quantities are added, so a reception must be applied once: the
watermark moves to the newest stamp fetched and only strictly newer
receptions are candidates afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from purchasing.app.core.logging import get_logger
from purchasing.app.db.models.core_types import SyncKey
from purchasing.app.db.models.models_v1 import Product, PurchaseOrder
from purchasing.app.schemas.bms import BmsReception
from purchasing.services.purchase_orders import clamp_received, refresh_status
from purchasing.services.watermarks import get_watermark, set_watermark

logger = get_logger(__name__)


@dataclass
class ReceptionSyncResult:
    processed: int = 0
    skipped: int = 0
    updated_orders: int = 0


def _resolve_order(db: Session, reference: str | None) -> tuple[PurchaseOrder | None, int]:
    if not reference:
        return None, 0
    matches = (
        db.execute(
            select(PurchaseOrder)
            .options(selectinload(PurchaseOrder.items))
            .where(PurchaseOrder.external_reference == reference)
            .limit(2)
        )
        .scalars()
        .all()
    )
    if len(matches) != 1:
        return None, len(matches)
    return matches[0], 1


def apply_reception(db: Session, order: PurchaseOrder, reception: BmsReception, now: datetime) -> bool:
    """Add the reception's quantities to ``order``. Returns True if a line changed."""
    changed = False
    for line in reception.items:
        if not line.sku:
            continue
        product_id = db.execute(select(Product.id).where(Product.sku == line.sku)).scalar_one_or_none()
        if product_id is None:
            logger.warning("reception_sync.unknown_sku", reception_id=reception.id, sku=line.sku)
            continue

        item = next((i for i in order.items if i.product_id == product_id), None)
        if item is None:
            logger.warning(
                "reception_sync.sku_not_on_order",
                reception_id=reception.id,
                order_id=order.id,
                sku=line.sku,
            )
            continue

        new_qty = clamp_received(item.qty_received + line.qty, item.qty_ordered)
        if new_qty != item.qty_received:
            item.qty_received = new_qty
            changed = True

    if changed:
        refresh_status(order)
        if order.received_date is None:
            order.received_date = now
    return changed


def run_reception_sync(db: Session, client, now: datetime | None = None) -> ReceptionSyncResult:
    now = now or datetime.now(timezone.utc)
    result = ReceptionSyncResult()
    updated: set[int] = set()

    try:
        watermark = get_watermark(db, SyncKey.receptions)
        fetched = client.list_receptions()

        receptions = []
        for r in fetched:
            if r.created_at is None:
                # Receipts add up: undated ones are only taken before the first watermark
                if watermark is not None:
                    result.skipped += 1
                    logger.warning("reception_sync.undated_skipped", reception_id=r.id, reference=r.reference)
                    continue
            elif watermark is not None and r.created_at <= watermark:
                continue
            receptions.append(r)

        for reception in receptions:
            order, matches = _resolve_order(db, reception.reference)
            if order is None:
                result.skipped += 1
                logger.warning(
                    "reception_sync.ambiguous_reference" if matches > 1 else "reception_sync.unknown_reference",
                    reception_id=reception.id,
                    reference=reception.reference,
                )
                continue

            if apply_reception(db, order, reception, now):
                updated.add(order.id)
            db.flush()
            result.processed += 1

        result.updated_orders = len(updated)
        # Newest stamp seen wins over the run start (late stamps, clock skew)
        newest = max((r.created_at for r in fetched if r.created_at is not None), default=now)
        set_watermark(db, SyncKey.receptions, max(now, newest))
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("reception_sync.aborted")
        raise

    logger.info(
        "reception_sync.completed",
        processed=result.processed,
        skipped=result.skipped,
        updated_orders=result.updated_orders,
    )
    return result
