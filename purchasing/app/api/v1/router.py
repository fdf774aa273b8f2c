from fastapi import APIRouter

from purchasing.app.api.v1.endpoints.purchase_orders import router as purchase_orders_router
from purchasing.app.api.v1.endpoints.suppliers import router as suppliers_router
from purchasing.app.api.v1.endpoints.sync import router as sync_router
from purchasing.app.api.v1.endpoints.needs import router as needs_router

router = APIRouter()
router.include_router(purchase_orders_router, tags=["purchase_orders"])
router.include_router(suppliers_router, tags=["suppliers"])
router.include_router(sync_router, tags=["sync"])
router.include_router(needs_router, tags=["needs"])
