from sqlalchemy import select

from purchasing.app.db.models.models_v1 import Supplier
from purchasing.services.supplier_sync import run_supplier_sync


def _bms_supplier(**overrides):
    data = {
        "id": 77,
        "name": "ACME Distribution SAS",
        "code": "ACME",
        "email": "  orders@acme.test ",
        "telephone": "0102030405",
        "street1": "12 rue des Lilas",
        "street2": None,
        "country_code": "FR",
        "currency": None,
        "shipping_delay": 5,
        "is_active": 1,
    }
    data.update(overrides)
    return data


def test_existing_supplier_is_updated_in_place(db_session, supplier, fake_bms, now):
    client = fake_bms(suppliers=[_bms_supplier()])

    result = run_supplier_sync(db_session, client, now=now)

    assert (result.total, result.created, result.updated) == (1, 0, 1)
    s = db_session.get(Supplier, supplier.id)
    assert s.name == "ACME Distribution SAS"
    assert s.email == "orders@acme.test"
    assert s.phone == "0102030405"
    assert s.address == "12 rue des Lilas"
    assert s.currency == "EUR"
    assert s.lead_time_days == 5
    assert s.is_active is True
    assert s.external_synced_at is not None
    # Local forecast parameters are not owned by BMS
    assert s.analysis_period_months == 3


def test_new_suppliers_are_created(db_session, fake_bms, now):
    client = fake_bms(
        suppliers=[
            _bms_supplier(id=1, code="S1", name="One", street2="BP 12", is_active=0, shipping_delay=None),
            _bms_supplier(id=2, code="S2", name="Two", currency="USD"),
        ]
    )

    result = run_supplier_sync(db_session, client, now=now)

    assert (result.total, result.created, result.updated) == (2, 2, 0)
    assert [r["action"] for r in result.suppliers] == ["created", "created"]

    one, two = db_session.execute(select(Supplier).order_by(Supplier.external_id)).scalars().all()
    assert one.address == "12 rue des Lilas\nBP 12"
    assert one.is_active is False
    assert one.lead_time_days == 1
    assert two.currency == "USD"


def test_rerun_does_not_duplicate(db_session, fake_bms, now):
    client = fake_bms(suppliers=[_bms_supplier()])

    run_supplier_sync(db_session, client, now=now)
    second = run_supplier_sync(db_session, client, now=now)

    assert (second.created, second.updated) == (0, 1)
    assert len(db_session.execute(select(Supplier)).scalars().all()) == 1
