from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from purchasing.app.api.deps import get_db
from purchasing.services import procurement
from purchasing.services.errors import NotFoundError, OrderValidationError

router = APIRouter(prefix="/needs")


@router.get("/{product_id}")
def get_product_needs(
    product_id: int,
    analysis_period_months: int | None = Query(default=None, gt=0),
    coverage_months: float | None = Query(default=None, gt=0),
    db: Session = Depends(get_db),
):
    try:
        needs = procurement.product_needs(db, product_id, analysis_period_months, coverage_months)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Product not found")
    except OrderValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    out = asdict(needs)
    out["monthly_sales"] = [
        {"month": m.month.strftime("%Y-%m"), "qty": m.qty, "max_order_qty": m.max_order_qty}
        for m in needs.monthly_sales
    ]
    return out
