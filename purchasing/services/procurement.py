"""
Procurement service.

The operations controllers, the UI and the scheduler call. This module only
re-exports: order lifecycle lives in ``purchasing.services.purchase_orders``,
the BMS reconcilers in ``order_sync`` / ``reception_sync`` /
``supplier_sync``, and the needs calculation in ``needs``.
"""

from purchasing.services.needs import product_needs
from purchasing.services.order_sync import run_order_sync
from purchasing.services.purchase_orders import (
    DeleteOutcome,
    create_order,
    delete_order,
    get_order,
    list_orders,
    update_order_status,
    update_received_qty,
)
from purchasing.services.reception_sync import run_reception_sync
from purchasing.services.supplier_sync import run_supplier_sync
from purchasing.services.watermarks import get_sync_status

__all__ = [
    "DeleteOutcome",
    "create_order",
    "delete_order",
    "get_order",
    "get_sync_status",
    "list_orders",
    "product_needs",
    "run_order_sync",
    "run_reception_sync",
    "run_supplier_sync",
    "update_order_status",
    "update_received_qty",
]
