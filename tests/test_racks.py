import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from granthalaya import create_app
from granthalaya.extensions import db
from granthalaya.models import AdminLog, Product, Rack
from granthalaya.services.racks import (
    DuplicateRackError,
    RackError,
    assign_product_to_rack,
    create_rack,
    delete_rack,
    get_rack,
    normalize_rack_id,
    search_racks,
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


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("a3", "RACK-A3"),
        ("rack-b1", "RACK-B1"),
        ("RACK-A3", "RACK-A3"),
        ("  rack c 2 ", "RACK-C-2"),
        ("RACKD4", "RACK-D4"),
        ("", None),
        ("   ", None),
        (None, None),
        ("rack-", None),
    ],
)
def test_normalize_rack_id(raw, expected):
    assert normalize_rack_id(raw) == expected


def test_create_and_find_rack(app):
    rack = create_rack("a3", "Scriptures", section="North", shelf="2")

    assert rack.rack_id == "RACK-A3"
    assert get_rack("rack-a3") is rack
    assert get_rack("") is None


def test_duplicate_rack_is_rejected(app):
    create_rack("A3", "Scriptures")

    with pytest.raises(DuplicateRackError, match="already exists"):
        create_rack("rack-a3", "Another")


def test_rack_text_fields_must_be_strings(app):
    for kwargs in ({"name": 108}, {"name": "Scriptures", "section": 4}, {"name": "Scriptures", "shelf": ["2"]}):
        name = kwargs.pop("name")
        with pytest.raises(RackError, match="must be text"):
            create_rack("A3", name, **kwargs)
    assert Rack.query.count() == 0

    with pytest.raises(RackError):
        assign_product_to_rack(5, "A3")


def test_rack_requires_name(app):
    with pytest.raises(RackError):
        create_rack("A3", "  ")


def test_search_matches_id_name_and_section(app):
    create_rack("A1", "Scriptures", section="North")
    create_rack("B1", "Puja Samagri", section="South")

    assert [rack.rack_id for rack in search_racks("north")] == ["RACK-A1"]
    assert [rack.rack_id for rack in search_racks("samagri")] == ["RACK-B1"]
    assert [rack.rack_id for rack in search_racks("rack-b")] == ["RACK-B1"]
    assert len(search_racks()) == 2


def test_assign_product_by_code(app):
    create_rack("A3", "Scriptures")
    db.session.add(Product(name="Gita", type="BK", product_code="GG-BK-GITA-00101"))
    db.session.commit()

    product = assign_product_to_rack("gg-bk-gita-00101", "a3")

    assert product.rack_id == "RACK-A3"
    assert get_rack("A3").product_codes == ["GG-BK-GITA-00101"]

    assign_product_to_rack(product, None)
    assert product.rack_id is None


def test_assign_to_unknown_or_inactive_rack_fails(app):
    db.session.add(Product(name="Gita", type="BK", product_code="GG-BK-GITA-00101"))
    db.session.add(Rack(rack_id="RACK-OLD", name="Retired", is_active=False))
    db.session.commit()

    with pytest.raises(RackError, match="does not exist"):
        assign_product_to_rack("GG-BK-GITA-00101", "Z9")
    with pytest.raises(RackError, match="inactive"):
        assign_product_to_rack("GG-BK-GITA-00101", "old")
    with pytest.raises(RackError, match="Product"):
        assign_product_to_rack("GG-BK-NOPE-00001", None)


def test_delete_rack_clears_product_locations(app):
    rack = create_rack("A3", "Scriptures")
    db.session.add(Product(name="Gita", type="BK", product_code="GG-BK-GITA-00101", rack_id="RACK-A3"))
    db.session.commit()

    delete_rack(rack, admin_user="meera")

    assert Rack.query.count() == 0
    assert Product.query.one().rack_id is None
    entry = AdminLog.query.one()
    assert entry.action == AdminLog.ACTION_DELETE
    assert entry.collection == "racks"
    assert entry.document_id == "RACK-A3"
    assert entry.admin_user == "meera"
    assert entry.previous_data["product_codes"] == ["GG-BK-GITA-00101"]


def test_rack_api_create_list_and_assign(client):
    response = client.post(
        "/racks/api/racks", json={"rack_id": "a3", "name": "Scriptures", "section": "North"}
    )
    assert response.status_code == 201
    assert response.get_json()["rack_id"] == "RACK-A3"

    duplicate = client.post("/racks/api/racks", json={"rack_id": "A3", "name": "Again"})
    assert duplicate.status_code == 409

    missing = client.post("/racks/api/racks", json={"name": "No id"})
    assert missing.status_code == 400

    product = client.post(
        "/products/api/products", json={"name": "Gita", "type": "BOOK"}
    ).get_json()

    assigned = client.post(
        "/racks/api/racks/rack-a3/products", json={"product_code": product["product_code"]}
    )
    assert assigned.status_code == 200
    body = assigned.get_json()
    assert body["product"]["rack_id"] == "RACK-A3"
    assert body["rack"]["product_codes"] == [product["product_code"]]

    listing = client.get("/racks/api/racks?q=scrip").get_json()
    assert [rack["rack_id"] for rack in listing["racks"]] == ["RACK-A3"]

    assert client.post("/racks/api/racks/Z9/products", json={"product_code": "X"}).status_code == 404


def test_rack_label_preview_uses_high_error_correction(client):
    client.post("/racks/api/racks", json={"rack_id": "B1", "name": "Samagri", "section": "South"})

    response = client.post("/racks/api/racks/B1/label", json={"preview": True})

    assert response.status_code == 200
    zpl = response.get_json()["zpl"]
    assert '^FDHA,{"rackId":"RACK-B1"}^FS' in zpl
    assert "^FDSouth^FS" in zpl
    assert "WAREHOUSE IDENTITY SYSTEM" in zpl


def test_rack_api_rejects_non_text_and_non_object_input(client):
    assert client.post("/racks/api/racks", json={"rack_id": "A3", "name": 108}).status_code == 400
    assert client.post("/racks/api/racks", json=["A3"]).status_code == 400

    client.post("/racks/api/racks", json={"rack_id": "A3", "name": "Scriptures"})
    response = client.post("/racks/api/racks/RACK-A3/products", json={"product_code": 5})
    assert response.status_code == 400
    assert response.get_json()["error"] == "product_code must be a string."

    response = client.post(
        "/racks/api/racks/RACK-A3/label", data='"preview"', content_type="application/json"
    )
    assert response.status_code == 400


def test_rack_api_delete_clears_locations_and_audits(client):
    client.post("/racks/api/racks", json={"rack_id": "A3", "name": "Scriptures"})
    product = client.post(
        "/products/api/products", json={"name": "Gita", "type": "BOOK", "rack_id": "A3"}
    ).get_json()

    response = client.delete("/racks/api/racks/a3", json={"admin_user": "meera"})

    assert response.status_code == 200
    assert response.get_json() == {"rack_id": "RACK-A3", "deleted": True}
    assert Rack.query.count() == 0
    assert client.get(f"/products/api/products/{product['product_code']}").get_json()["rack_id"] is None

    entry = AdminLog.query.filter_by(action=AdminLog.ACTION_DELETE).one()
    assert entry.collection == "racks"
    assert entry.admin_user == "meera"

    assert client.delete("/racks/api/racks/a3").status_code == 404
