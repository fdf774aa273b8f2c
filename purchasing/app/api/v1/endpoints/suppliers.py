from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from purchasing.app.api.deps import get_bms_client, get_db
from purchasing.app.db.models.models_v1 import Supplier
from purchasing.services import procurement
from purchasing.services.errors import GatewayError

router = APIRouter(prefix="/suppliers")


class SupplierCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    code: str | None = Field(default=None, max_length=64)
    email: str | None = Field(default=None, max_length=255)
    country_code: str | None = Field(default=None, max_length=2)
    analysis_period_months: int = Field(default=1, gt=0)
    coverage_months: float = Field(default=1, gt=0)
    lead_time_days: int = Field(default=2, ge=0)


@router.get("")
def list_suppliers(active_only: bool = False, db: Session = Depends(get_db)):
    stmt = select(Supplier).order_by(Supplier.name)
    if active_only:
        stmt = stmt.where(Supplier.is_active.is_(True))
    rows = db.execute(stmt).scalars().all()
    return [
        {
            "id": s.id,
            "external_id": s.external_id,
            "name": s.name,
            "code": s.code,
            "country_code": s.country_code,
            "currency": s.currency,
            "lead_time_days": s.lead_time_days,
            "analysis_period_months": s.analysis_period_months,
            "coverage_months": float(s.coverage_months),
            "is_active": s.is_active,
        }
        for s in rows
    ]


@router.post("", status_code=201)
def create_supplier(payload: SupplierCreate, db: Session = Depends(get_db)):
    exists = db.execute(select(Supplier).where(Supplier.name == payload.name)).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="Supplier already exists")

    s = Supplier(
        name=payload.name,
        code=payload.code,
        email=payload.email,
        country_code=payload.country_code,
        analysis_period_months=payload.analysis_period_months,
        coverage_months=payload.coverage_months,
        lead_time_days=payload.lead_time_days,
    )
    db.add(s)
    db.commit()
    db.refresh(s)
    return {"id": s.id, "name": s.name}


@router.post("/sync")
def sync_suppliers(db: Session = Depends(get_db), client=Depends(get_bms_client)):
    try:
        result = procurement.run_supplier_sync(db, client)
    except GatewayError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {
        "total": result.total,
        "created": result.created,
        "updated": result.updated,
        "suppliers": result.suppliers,
    }
