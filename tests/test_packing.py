import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from granthalaya import create_app
from granthalaya.extensions import db
from granthalaya.models import AdminLog, CustomerOrder, CustomerOrderItem, DeliveryStatus, Product
from granthalaya.qr_payload import ScanKind, format_order_qr, format_product_qr
from granthalaya.scanner import ScanEvent
from granthalaya.services.packing import (
    LEVEL_ERROR,
    LEVEL_INFO,
    LEVEL_SUCCESS,
    PackingError,
    PackingStation,
    PackingStationRegistry,
    find_order,
)


@pytest.fixture
def app():
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def order(app):
    db.session.add(Product(id=5, name="Diya"))
    order = CustomerOrder(order_number="a7k2m9q1", customer_name="Asha Devi")
    order.items = [
        CustomerOrderItem(
            product_code="GG-BK-GITA-00101", title="Bhagavad Gita", quantity=2, rack_id="RACK-A3"
        ),
        CustomerOrderItem(product_id=5, title="Diya", quantity=1),
    ]
    db.session.add(order)
    db.session.commit()
    return order


def _burst(text, start=0.0):
    events = [{"key": char, "at": start + index * 5.0} for index, char in enumerate(text)]
    events.append({"key": "Enter", "at": start + len(text) * 5.0})
    return {"events": events}


def test_find_order_by_number_prefix_and_customer(order):
    assert find_order("a7k2m9q1") is order
    assert find_order("ORD-A7K2M9Q1") is order
    assert find_order("#a7k2m9q1") is order
    assert find_order("asha devi") is order
    assert find_order("ORD-55") is None
    assert find_order("") is None


def test_short_references_do_not_match_customer_names(app):
    db.session.add(CustomerOrder(order_number="X-1", customer_name="Ram"))
    db.session.commit()

    assert find_order("ram") is None


def test_product_scan_requires_an_order(app):
    station = PackingStation("desk-1")

    outcome = station.verify_product("GG-BK-GITA-00101")

    assert outcome.level == LEVEL_ERROR
    assert outcome.message == "Scan an order first"


def test_unknown_order(app):
    outcome = PackingStation("desk-1").load_order("ORD-NOPE")

    assert outcome.level == LEVEL_ERROR
    assert outcome.message == "Order not found: NOPE"


def test_full_packing_flow(order):
    station = PackingStation("desk-1")

    loaded = station.load_order("ORD-A7K2M9Q1")
    assert loaded.level == LEVEL_SUCCESS
    assert loaded.message == "Order loaded: #a7k2m9q1"
    assert station.progress == 0

    assert station.verify_rack("a3").message == "Rack verified: RACK-A3"
    unneeded = station.verify_rack("B9")
    assert unneeded.level == LEVEL_INFO
    assert unneeded.message == "Rack RACK-B9 not needed for this order"
    assert station.verified_racks == {"RACK-A3"}

    assert station.verify_product("gg-bk-gita-00101").message == "Verified: Bhagavad Gita"
    assert station.progress == 33
    station.verify_product("GG-BK-GITA-00101")
    assert station.progress == 67

    extra = station.verify_product("GG-BK-GITA-00101")
    assert extra.level == LEVEL_INFO
    assert extra.message == "Item already fully verified: Bhagavad Gita"

    missing = station.verify_product("GG-SM-KUMKUM-00102")
    assert missing.level == LEVEL_ERROR
    assert missing.message == "Item not in order: GG-SM-KUMKUM-00102"

    with pytest.raises(PackingError):
        station.complete("ravi")

    # Legacy labels carry the product id.
    assert station.verify_product("5").message == "Verified: Diya"
    assert station.progress == 100

    done = station.complete("ravi")
    assert done.level == LEVEL_SUCCESS
    assert order.status == DeliveryStatus.PACKED
    assert order.delivery_status == DeliveryStatus.PACKED
    assert order.packed_by == "ravi"
    assert order.packed_at is not None

    entry = AdminLog.query.one()
    assert entry.collection == "orders"
    assert entry.document_id == "a7k2m9q1"
    assert entry.admin_user == "ravi"

    assert station.complete().level == LEVEL_INFO
    assert station.load_order("a7k2m9q1").message == "Order is already packed."


def test_progress_is_persisted_between_stations(order):
    first = PackingStation("desk-1")
    first.load_order("a7k2m9q1")
    first.verify_product("GG-BK-GITA-00101")

    second = PackingStation("desk-2")
    second.load_order("a7k2m9q1")

    assert second.progress == 33
    assert order.items[0].verified_quantity == 1


def test_complete_without_order_is_rejected(app):
    with pytest.raises(PackingError):
        PackingStation("desk-1").complete()


def test_handle_scan_dispatches_by_kind(order):
    station = PackingStation("desk-1")

    outcome = station.handle_scan(ScanEvent(ScanKind.ORDER, "a7k2m9q1"))
    assert outcome.level == LEVEL_SUCCESS
    assert outcome.kind == ScanKind.ORDER
    assert outcome.identifier == "a7k2m9q1"

    assert station.handle_scan(ScanEvent(ScanKind.RACK, "RACK-A3")).level == LEVEL_SUCCESS
    assert station.handle_scan(ScanEvent(ScanKind.PRODUCT, "GG-BK-GITA-00101")).level == LEVEL_SUCCESS


def test_registry_returns_same_station_until_released(app):
    registry = PackingStationRegistry()

    station = registry.get("desk-1")
    assert registry.get("desk-1") is station
    assert registry.release("desk-1") is True
    assert registry.get("desk-1") is not station


def test_packing_api_scan_keys_and_complete(client, order):
    loaded = client.post(
        "/packing/api/stations/desk-1/scan", json={"value": format_order_qr("a7k2m9q1")}
    )
    assert loaded.status_code == 200
    assert loaded.get_json()["outcome"]["level"] == LEVEL_SUCCESS

    response = client.post(
        "/packing/api/stations/desk-1/keys",
        json=_burst(format_product_qr("GG-BK-GITA-00101")),
    )
    assert response.status_code == 200
    results = response.get_json()["results"]
    assert [result["scan"]["kind"] for result in results] == [ScanKind.PRODUCT]
    assert results[0]["outcome"]["message"] == "Verified: Bhagavad Gita"

    incomplete = client.post("/packing/api/stations/desk-1/complete", json={"packed_by": "ravi"})
    assert incomplete.status_code == 400

    client.post(
        "/packing/api/stations/desk-1/scan",
        json={"kind": "product", "identifier": "GG-BK-GITA-00101"},
    )
    client.post("/packing/api/stations/desk-1/scan", json={"value": "5"})

    snapshot = client.get("/packing/api/stations/desk-1").get_json()
    assert snapshot["progress"] == 100
    assert snapshot["order"]["order_number"] == "a7k2m9q1"

    completed = client.post("/packing/api/stations/desk-1/complete", json={"packed_by": "ravi"})
    assert completed.status_code == 200
    assert completed.get_json()["station"]["order"]["delivery_status"] == DeliveryStatus.PACKED


def test_packing_api_rejects_bad_scans(client):
    assert client.post("/packing/api/stations/desk-1/scan", json={}).status_code == 400
    assert (
        client.post(
            "/packing/api/stations/desk-1/scan", json={"kind": "shelf", "identifier": "S1"}
        ).status_code
        == 400
    )
    assert (
        client.post("/packing/api/stations/desk-1/scan", json={"value": "{broken}"}).status_code
        == 400
    )
    assert client.post("/packing/api/stations/desk-1/keys", json={"events": "x"}).status_code == 400
    assert client.post("/packing/api/stations/desk-1/scan", json=["ORD-1"]).status_code == 400


def test_complete_rejects_non_text_packer(client, order):
    client.post("/packing/api/stations/desk-1/scan", json={"kind": "ORDER", "identifier": "a7k2m9q1"})

    response = client.post("/packing/api/stations/desk-1/complete", json={"packed_by": 42})

    assert response.status_code == 400
    assert response.get_json()["error"] == "packed_by must be a string."
    assert client.post("/packing/api/stations/desk-1/complete", json=[1]).status_code == 400
