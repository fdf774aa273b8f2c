from __future__ import annotations


class PurchasingError(Exception):
    pass


class OrderValidationError(PurchasingError):
    """Bad input to a create/update call. Nothing has been written."""


class NotFoundError(PurchasingError):
    pass


class GatewayError(PurchasingError):
    """BMS call failed. ``status`` is None for transport failures."""

    def __init__(self, message: str, status: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status = status
        self.body = body


class GatewayAuthError(GatewayError):
    pass
