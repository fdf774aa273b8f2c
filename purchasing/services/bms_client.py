"""
BMS (myFulfillment) REST client.

One instance owns its bearer token: ``authenticate()`` caches it for a fixed
TTL, shorter than the platform's own expiry, and every call re-authenticates
only on a cache miss.

The purchase-order list endpoint pads its last page with records from earlier
pages instead of returning a short page. The page count therefore comes from
the first page's ``meta.total`` and the collected list is deduplicated by id.
"""
from __future__ import annotations

import math
import time
from typing import Any, Callable

import requests
from pydantic import ValidationError

from purchasing.app.core.config import Settings, settings as default_settings
from purchasing.app.core.logging import get_logger
from purchasing.app.schemas.bms import (
    BmsCreatedOrder,
    BmsPurchaseOrder,
    BmsReception,
    BmsSupplier,
)
from purchasing.services.errors import GatewayAuthError, GatewayError

logger = get_logger(__name__)


class BmsClient:
    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        *,
        page_size: int = 100,
        token_ttl_seconds: float = 3600,
        timeout: float = 30,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.page_size = page_size
        self.token_ttl_seconds = token_ttl_seconds
        self.timeout = timeout
        self.session = session or requests.Session()
        self._clock = clock
        self._token: str | None = None
        self._expires_at: float = 0.0

    @classmethod
    def from_settings(cls, settings: Settings = default_settings, **kwargs) -> "BmsClient":
        return cls(
            settings.bms_api_url,
            settings.bms_username,
            settings.bms_password,
            page_size=settings.bms_page_size,
            token_ttl_seconds=settings.bms_token_ttl_seconds,
            timeout=settings.bms_timeout_seconds,
            **kwargs,
        )

    # ---------- AUTH ----------
    def authenticate(self) -> str:
        if self._token and self._clock() < self._expires_at:
            return self._token

        try:
            response = self.session.post(
                f"{self.base_url}/auth/token",
                json={"username": self.username, "password": self.password},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GatewayError(f"BMS auth request failed: {exc}") from exc

        if not response.ok:
            raise GatewayAuthError(
                f"BMS auth failed: {response.status_code}",
                status=response.status_code,
                body=response.text,
            )

        token = (response.json() or {}).get("token")
        if not token:
            raise GatewayAuthError("BMS auth response carried no token", status=response.status_code)

        self._token = token
        self._expires_at = self._clock() + self.token_ttl_seconds
        logger.info("bms.authenticated", ttl_seconds=self.token_ttl_seconds)
        return token

    def invalidate_token(self) -> None:
        self._token = None
        self._expires_at = 0.0

    # ---------- TRANSPORT ----------
    def call(self, endpoint: str, method: str = "GET", body: dict | None = None) -> Any:
        token = self.authenticate()
        kwargs: dict[str, Any] = {
            "headers": {"Authorization": f"Bearer {token}"},
            "timeout": self.timeout,
        }
        if body is not None and method.upper() != "GET":
            kwargs["json"] = body

        try:
            response = self.session.request(method.upper(), f"{self.base_url}{endpoint}", **kwargs)
        except requests.RequestException as exc:
            raise GatewayError(f"BMS request {method} {endpoint} failed: {exc}") from exc

        if response.status_code in (401, 403):
            self.invalidate_token()
            raise GatewayAuthError(
                f"BMS rejected credentials on {endpoint}: {response.status_code}",
                status=response.status_code,
                body=response.text,
            )
        if not response.ok:
            raise GatewayError(
                f"BMS API error: {response.status_code} - {response.text}",
                status=response.status_code,
                body=response.text,
            )
        return response.json()

    # ---------- PURCHASE ORDERS ----------
    def list_purchase_orders(self) -> list[BmsPurchaseOrder]:
        limit = self.page_size
        first = self.call(f"/supplier/purchase-orders?page=1&limit={limit}") or {}
        total = int((first.get("meta") or {}).get("total") or 0)
        rows: list[dict] = list(first.get("data") or [])

        total_pages = math.ceil(total / limit)
        for page in range(2, total_pages + 1):
            data = self.call(f"/supplier/purchase-orders?page={page}&limit={limit}") or {}
            rows.extend(data.get("data") or [])

        orders = self._parse_many(BmsPurchaseOrder, rows)

        seen: set[str] = set()
        unique: list[BmsPurchaseOrder] = []
        for order in orders:
            if order.id in seen:
                continue
            seen.add(order.id)
            unique.append(order)

        logger.info(
            "bms.purchase_orders.fetched",
            total=total,
            pages=max(total_pages, 1),
            fetched=len(rows),
            unique=len(unique),
        )
        return unique

    def create_purchase_order(self, payload: dict) -> BmsCreatedOrder:
        data = self.call("/supplier/purchase-orders", "POST", payload)
        try:
            return BmsCreatedOrder.model_validate(data)
        except ValidationError as exc:
            raise GatewayError(f"Unexpected BMS create response: {exc}", body=str(data)) from exc

    # ---------- RECEPTIONS / SUPPLIERS ----------
    def list_receptions(self) -> list[BmsReception]:
        data = self.call("/supplier/receptions") or {}
        return self._parse_many(BmsReception, data.get("data") or [])

    def list_suppliers(self) -> list[BmsSupplier]:
        data = self.call("/supplier/suppliers") or {}
        return self._parse_many(BmsSupplier, data.get("data") or [])

    @staticmethod
    def _parse_many(model, rows: list[dict]) -> list:
        try:
            return [model.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise GatewayError(f"Unexpected BMS payload for {model.__name__}: {exc}") from exc
