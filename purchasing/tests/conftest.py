from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from purchasing.app.db.base import Base
from purchasing.app.db.models.models_v1 import Product, Supplier
from purchasing.app.schemas.bms import (
    BmsCreatedOrder,
    BmsPurchaseOrder,
    BmsReception,
    BmsSupplier,
)


@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory SQLite database per test, shared across connections."""
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    return datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def supplier(db_session):
    s = Supplier(
        name="ACME Distribution",
        code="ACME",
        external_id="77",
        analysis_period_months=3,
        coverage_months=Decimal("2"),
    )
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture
def products(db_session):
    rows = [
        Product(sku="SKU-A", name="Widget A", stock=5),
        Product(sku="SKU-B", name="Widget B", stock=0),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return rows


class FakeBmsClient:
    """In-memory stand-in for ``BmsClient``, fed with raw BMS payload dicts."""

    def __init__(self, orders=None, receptions=None, suppliers=None, created=None, fail_on=None):
        self.orders = [BmsPurchaseOrder.model_validate(o) for o in orders or []]
        self.receptions = [BmsReception.model_validate(r) for r in receptions or []]
        self.suppliers = [BmsSupplier.model_validate(s) for s in suppliers or []]
        self.created = created or {"id": "9001", "reference": None}
        self.fail_on = fail_on
        self.pushed: list[dict] = []

    def _maybe_fail(self, name):
        if self.fail_on is not None and self.fail_on[0] == name:
            raise self.fail_on[1]

    def list_purchase_orders(self):
        self._maybe_fail("list_purchase_orders")
        return list(self.orders)

    def list_receptions(self):
        self._maybe_fail("list_receptions")
        return list(self.receptions)

    def list_suppliers(self):
        self._maybe_fail("list_suppliers")
        return list(self.suppliers)

    def create_purchase_order(self, payload):
        self._maybe_fail("create_purchase_order")
        self.pushed.append(payload)
        return BmsCreatedOrder.model_validate(self.created)


@pytest.fixture
def fake_bms():
    return FakeBmsClient
