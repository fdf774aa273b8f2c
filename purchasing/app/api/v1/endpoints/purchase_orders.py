from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from purchasing.app.api.deps import get_db, get_bms_client
from purchasing.app.db.models.core_types import POStatus
from purchasing.app.schemas.purchase_orders import (
    POCreate,
    POOut,
    POReceivedUpdate,
    POStatusUpdate,
)
from purchasing.services import procurement
from purchasing.services.errors import GatewayError, NotFoundError, OrderValidationError

router = APIRouter(prefix="/purchase-orders")


@router.get("")
def list_pos(
    supplier_id: int | None = None,
    status: POStatus | None = None,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    rows = procurement.list_orders(db, supplier_id=supplier_id, status=status, limit=limit)
    return [
        {
            "id": po.id,
            "order_number": po.order_number,
            "supplier_id": po.supplier_id,
            "status": po.status,
            "external_id": po.external_id,
            "external_reference": po.external_reference,
            "order_date": po.order_date,
            "expected_date": po.expected_date,
            "received_date": po.received_date,
            "total_items": po.total_items,
            "total_qty": po.total_qty,
            "total_amount": float(po.total_amount),
        }
        for po in rows
    ]


@router.get("/{po_id}", response_model=POOut)
def get_po(po_id: int, db: Session = Depends(get_db)):
    try:
        return procurement.get_order(db, po_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Purchase order not found")


@router.post("", response_model=POOut, status_code=201)
def create_po(payload: POCreate, db: Session = Depends(get_db), client=Depends(get_bms_client)):
    try:
        return procurement.create_order(
            db,
            payload.supplier_id,
            payload.items,
            notes=payload.notes,
            send_externally=payload.send_externally,
            client=client,
        )
    except OrderValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except GatewayError as exc:
        raise HTTPException(status_code=502, detail=str(exc))


@router.put("/{po_id}/status", response_model=POOut)
def update_po_status(po_id: int, payload: POStatusUpdate, db: Session = Depends(get_db)):
    try:
        return procurement.update_order_status(
            db,
            po_id,
            payload.status,
            order_date=payload.order_date,
            expected_date=payload.expected_date,
            notes=payload.notes,
        )
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    except OrderValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.put("/{po_id}/items/{item_id}/received", response_model=POOut)
def update_item_received(po_id: int, item_id: int, payload: POReceivedUpdate, db: Session = Depends(get_db)):
    try:
        return procurement.update_received_qty(db, po_id, item_id, payload.qty_received)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.delete("/{po_id}")
def delete_po(po_id: int, db: Session = Depends(get_db)):
    result = procurement.delete_order(db, po_id)
    if result.outcome is procurement.DeleteOutcome.not_found:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    if result.outcome is procurement.DeleteOutcome.not_draft:
        raise HTTPException(
            status_code=409,
            detail=f"Only draft orders can be deleted (order is {result.status.value})",
        )
    return {"id": result.order_id, "order_number": result.order_number, "deleted": True}
