from __future__ import annotations

from typing import Iterable

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from purchasing.app.db.models.models_v1 import PurchaseOrder, PurchaseOrderItem
from purchasing.app.db.models.core_types import POStatus


# Orders whose outstanding quantity counts as "incoming"
ENGAGED_PO_STATUSES = {
    POStatus.sent,
    POStatus.confirmed,
    POStatus.shipped,
    POStatus.partial,
}


def incoming_qty(db: Session, product_ids: Iterable[int]) -> dict[int, int]:
    """
    Outstanding quantity per product on engaged purchase orders.

    Rule:
        incoming = SUM(qty_ordered - qty_received) over engaged orders

    Products with nothing engaged map to 0.
    """
    product_ids = sorted({int(pid) for pid in product_ids if pid is not None})
    if not product_ids:
        return {}

    rows = db.execute(
        select(
            PurchaseOrderItem.product_id,
            func.coalesce(
                func.sum(PurchaseOrderItem.qty_ordered - PurchaseOrderItem.qty_received),
                0,
            ).label("incoming_qty"),
        )
        .join(PurchaseOrder, PurchaseOrder.id == PurchaseOrderItem.purchase_order_id)
        .where(PurchaseOrder.status.in_(ENGAGED_PO_STATUSES))
        .where(PurchaseOrderItem.product_id.in_(product_ids))
        .group_by(PurchaseOrderItem.product_id)
    ).all()

    incoming = {int(pid): max(0, int(qty)) for pid, qty in rows}
    return {pid: incoming.get(pid, 0) for pid in product_ids}
