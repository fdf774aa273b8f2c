import enum


class POStatus(str, enum.Enum):
    draft = "draft"
    sent = "sent"
    confirmed = "confirmed"
    shipped = "shipped"
    partial = "partial"
    received = "received"
    cancelled = "cancelled"


class CustomerOrderStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    delivered = "delivered"
    cancelled = "cancelled"
    refunded = "refunded"


class SyncKey(str, enum.Enum):
    orders = "last_order_sync_at"
    receptions = "last_reception_sync_at"
