from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from purchasing.app.core.logging import get_logger
from purchasing.app.db.models.models_v1 import Supplier
from purchasing.app.schemas.bms import BmsSupplier

logger = get_logger(__name__)


@dataclass
class SupplierSyncResult:
    total: int = 0
    created: int = 0
    updated: int = 0
    suppliers: list[dict] = field(default_factory=list)


def _apply(supplier: Supplier, bms: BmsSupplier, now: datetime) -> None:
    supplier.name = bms.name
    supplier.code = bms.code
    supplier.email = bms.email.strip() if bms.email else None
    supplier.phone = bms.telephone
    supplier.address = bms.address
    supplier.country_code = bms.country_code
    supplier.currency = bms.currency or "EUR"
    supplier.lead_time_days = bms.shipping_delay or 1
    supplier.is_active = bms.is_active == 1
    supplier.external_synced_at = now


def run_supplier_sync(db: Session, client, now: datetime | None = None) -> SupplierSyncResult:
    """Upsert every BMS supplier by external id, in one transaction."""
    now = now or datetime.now(timezone.utc)
    result = SupplierSyncResult()

    try:
        remote = client.list_suppliers()
        result.total = len(remote)

        for bms in remote:
            supplier = db.execute(select(Supplier).where(Supplier.external_id == bms.id)).scalar_one_or_none()
            action = "updated"
            if supplier is None:
                supplier = Supplier(external_id=bms.id)
                db.add(supplier)
                action = "created"

            _apply(supplier, bms, now)
            db.flush()

            if action == "created":
                result.created += 1
            else:
                result.updated += 1
            result.suppliers.append(
                {"id": supplier.id, "external_id": supplier.external_id, "name": supplier.name, "action": action}
            )

        db.commit()
    except Exception:
        db.rollback()
        logger.exception("supplier_sync.aborted")
        raise

    logger.info("supplier_sync.completed", total=result.total, created=result.created, updated=result.updated)
    return result
