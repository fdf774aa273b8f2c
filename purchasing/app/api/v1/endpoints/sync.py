from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from purchasing.app.api.deps import get_bms_client, get_db
from purchasing.services import procurement
from purchasing.services.errors import GatewayError

router = APIRouter(prefix="/sync")


@router.post("/orders")
def sync_orders(db: Session = Depends(get_db), client=Depends(get_bms_client)):
    try:
        result = procurement.run_order_sync(db, client)
    except GatewayError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {"created": result.created, "updated": result.updated, "skipped": result.skipped}


@router.post("/receptions")
def sync_receptions(db: Session = Depends(get_db), client=Depends(get_bms_client)):
    try:
        result = procurement.run_reception_sync(db, client)
    except GatewayError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {
        "processed": result.processed,
        "skipped": result.skipped,
        "updated_orders": result.updated_orders,
    }


@router.get("/status")
def sync_status(db: Session = Depends(get_db)):
    return procurement.get_sync_status(db)
