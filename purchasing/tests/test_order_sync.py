from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from purchasing.app.db.models.core_types import POStatus, SyncKey
from purchasing.app.db.models.models_v1 import ProductSupplier, PurchaseOrder
from purchasing.app.schemas.bms import BmsPurchaseOrder
from purchasing.services import order_sync
from purchasing.services.bms_client import BmsClient
from purchasing.services.errors import GatewayError
from purchasing.services.order_sync import is_candidate, map_external_status, run_order_sync
from purchasing.services.purchase_orders import create_order
from purchasing.services.watermarks import get_watermark, set_watermark


def _ext(id_, status="expected", supplier_id=77, items=None, **extra):
    return {
        "id": id_,
        "reference": f"REF-{id_}",
        "status": status,
        "supplier_id": supplier_id,
        "items": items if items is not None else [{"sku": "SKU-A", "name": "Widget A", "qty": 10, "price": "2.5"}],
        **extra,
    }


def _dto(**kwargs):
    return BmsPurchaseOrder.model_validate(_ext("1", **kwargs))


class TestStatusMapping:
    @pytest.mark.parametrize("status", ["draft", "cancelled", "shipped", "confirmed"])
    def test_direct(self, status):
        assert map_external_status(_dto(status=status)) is POStatus(status)

    def test_expected_without_receipts_is_confirmed(self):
        assert map_external_status(_dto(status="expected")) is POStatus.confirmed

    def test_expected_with_receipts_is_partial(self):
        items = [{"sku": "SKU-A", "qty": 10, "qty_received": 2}]
        assert map_external_status(_dto(status="expected", items=items)) is POStatus.partial

    def test_complete_fully_received(self):
        items = [{"sku": "SKU-A", "qty": 10, "qty_received": 10}]
        assert map_external_status(_dto(status="complete", items=items)) is POStatus.received

    def test_complete_short_is_partial(self):
        items = [{"sku": "SKU-A", "qty": 10, "qty_received": 9}]
        assert map_external_status(_dto(status="complete", items=items)) is POStatus.partial

    def test_unknown_status_is_sent(self):
        assert map_external_status(_dto(status="on_the_moon")) is POStatus.sent
        assert map_external_status(_dto(status=None)) is POStatus.sent


class TestCandidates:
    def test_timestamps_against_watermark(self):
        mark = datetime(2026, 3, 10, tzinfo=timezone.utc)
        fresh = _dto(created_at="2026-03-01T00:00:00Z", updated_at="2026-03-12T00:00:00Z")
        stale = _dto(created_at="2026-03-01T00:00:00Z", updated_at="2026-03-05T00:00:00Z")
        undated = _dto()

        assert is_candidate(fresh, mark)
        assert not is_candidate(stale, mark)
        assert is_candidate(undated, mark)
        assert is_candidate(stale, None)


class TestRunOrderSync:
    def test_creates_orders_items_and_supplier_links(self, db_session, supplier, products, fake_bms, now):
        items = [
            {"sku": "SKU-A", "name": "Widget A", "qty": 10, "qty_received": 0, "price": "2.5"},
            {"sku": "NOT-IN-CATALOG", "name": "Mystery", "qty": 3, "price": "1"},
        ]
        client = fake_bms(orders=[_ext(1001, items=items, expected_at="2026-04-01 00:00:00")])

        result = run_order_sync(db_session, client, now=now)

        assert (result.created, result.updated, result.skipped) == (1, 0, 0)
        order = db_session.execute(select(PurchaseOrder)).scalar_one()
        assert order.external_id == "1001"
        assert order.external_reference == "REF-1001"
        assert order.status is POStatus.confirmed
        assert order.expected_date.isoformat() == "2026-04-01"
        assert order.total_items == 2
        assert order.total_qty == 13
        assert order.total_amount == Decimal("28.00")
        assert [i.product_id for i in order.items] == [products[0].id, None]

        link = db_session.execute(select(ProductSupplier)).scalar_one()
        assert (link.product_id, link.supplier_id) == (products[0].id, supplier.id)
        assert link.supplier_price == Decimal("2.5")

        assert get_watermark(db_session, SyncKey.orders) == now

    def test_rerun_is_idempotent(self, db_session, supplier, products, fake_bms, now):
        client = fake_bms(orders=[_ext(1001), _ext(1002)])

        run_order_sync(db_session, client, now=now)
        second = run_order_sync(db_session, client, now=now + timedelta(hours=1))

        assert (second.created, second.updated) == (0, 2)
        orders = db_session.execute(select(PurchaseOrder)).scalars().all()
        assert len(orders) == 2
        assert all(len(o.items) == 1 for o in orders)
        assert len(db_session.execute(select(ProductSupplier)).scalars().all()) == 1

    def test_remote_quantities_replace_local_lines(self, db_session, supplier, products, fake_bms, now):
        client = fake_bms(orders=[_ext(1001)])
        run_order_sync(db_session, client, now=now)

        items = [{"sku": "SKU-A", "qty": 10, "qty_received": 10, "price": "2.5"}]
        client = fake_bms(orders=[_ext(1001, status="complete", items=items, updated_at="2026-03-20T08:00:00Z")])
        run_order_sync(db_session, client, now=now + timedelta(days=6))

        order = db_session.execute(select(PurchaseOrder)).scalar_one()
        assert order.status is POStatus.received
        assert order.received_date is not None
        assert [i.qty_received for i in order.items] == [10]

    def test_unlinked_pushed_draft_is_adopted(self, db_session, supplier, products, fake_bms, now):
        draft = create_order(
            db_session,
            supplier.id,
            [{"product_id": products[0].id, "product_name": "Widget A", "qty_ordered": 10}],
        )
        remote = _ext(1001) | {"reference": draft.order_number}

        result = run_order_sync(db_session, fake_bms(orders=[remote]), now=now)

        assert (result.created, result.updated) == (0, 1)
        order = db_session.execute(select(PurchaseOrder)).scalar_one()
        assert order.id == draft.id
        assert order.external_id == "1001"
        assert order.status is POStatus.confirmed

    def test_unknown_supplier_is_skipped(self, db_session, supplier, products, fake_bms, now):
        client = fake_bms(orders=[_ext(1001), _ext(1002, supplier_id=999), _ext(1003, supplier_id=None)])

        result = run_order_sync(db_session, client, now=now)

        assert (result.created, result.skipped) == (1, 2)
        assert db_session.execute(select(PurchaseOrder.external_id)).scalars().all() == ["1001"]

    def test_stale_orders_are_not_touched(self, db_session, supplier, products, fake_bms, now):
        set_watermark(db_session, SyncKey.orders, datetime(2026, 3, 10, tzinfo=timezone.utc))
        db_session.commit()
        client = fake_bms(
            orders=[
                _ext(1001, created_at="2026-03-01T00:00:00Z", updated_at="2026-03-05T00:00:00Z"),
                _ext(1002, created_at="2026-03-11T00:00:00Z"),
            ]
        )

        result = run_order_sync(db_session, client, now=now)

        assert result.created == 1
        assert db_session.execute(select(PurchaseOrder.external_id)).scalars().all() == ["1002"]

    def test_failure_rolls_back_everything(self, db_session, supplier, products, fake_bms, now, monkeypatch):
        real_upsert = order_sync._upsert_order
        calls = []

        def flaky_upsert(db, ext, supplier_id, products):
            calls.append(ext.id)
            if len(calls) == 2:
                raise RuntimeError("database hiccup")
            return real_upsert(db, ext, supplier_id, products)

        monkeypatch.setattr(order_sync, "_upsert_order", flaky_upsert)
        client = fake_bms(orders=[_ext(1001), _ext(1002)])

        with pytest.raises(RuntimeError):
            run_order_sync(db_session, client, now=now)

        assert db_session.execute(select(PurchaseOrder)).scalars().all() == []
        assert get_watermark(db_session, SyncKey.orders) is None

    def test_gateway_failure_keeps_watermark(self, db_session, supplier, fake_bms, now):
        previous = datetime(2026, 3, 1, tzinfo=timezone.utc)
        set_watermark(db_session, SyncKey.orders, previous)
        db_session.commit()
        client = fake_bms(fail_on=("list_purchase_orders", GatewayError("timeout")))

        with pytest.raises(GatewayError):
            run_order_sync(db_session, client, now=now)

        assert get_watermark(db_session, SyncKey.orders) == previous

    def test_padded_pages_yield_one_local_order_each(self, db_session, supplier, products, now):
        def response(payload):
            r = MagicMock(status_code=200, ok=True, text="")
            r.json.return_value = payload
            return r

        page1 = [_ext(i) for i in range(1, 61)]
        page2 = [_ext(i) for i in range(61, 101)] + [_ext(i) for i in range(1, 21)]
        http = MagicMock()
        http.post.return_value = response({"token": "t"})
        http.request.side_effect = [
            response({"data": page1, "meta": {"total": 100}}),
            response({"data": page2, "meta": {"total": 100}}),
        ]
        client = BmsClient("https://bms.test/api", "u", "p", page_size=60, session=http)

        result = run_order_sync(db_session, client, now=now)

        assert result.created == 100
        assert len(db_session.execute(select(PurchaseOrder.id)).all()) == 100
