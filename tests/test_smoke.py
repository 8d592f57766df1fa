import os
import sys

from flask.cli import routes_command

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from granthalaya import create_app
from granthalaya.extensions import PACKING_EXTENSION, SCANNER_EXTENSION, db


def _make_app(**overrides):
    config = {"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"}
    config.update(overrides)
    return create_app(config)


def test_app_factory_smoke():
    app = _make_app()
    assert app is not None
    assert app.config["DATABASE_AVAILABLE"] is True
    assert SCANNER_EXTENSION in app.extensions
    assert PACKING_EXTENSION in app.extensions


def test_blueprints_registered():
    app = _make_app()
    for name in ["health", "products", "racks", "scanning", "packing", "admin", "errors"]:
        assert name in app.blueprints


def test_health_reports_database(tmp_path):
    app = _make_app(LOG_DIR=str(tmp_path))
    client = app.test_client()

    response = client.get("/health/")

    assert response.status_code == 200
    assert response.get_json()["database"] is True
    assert response.headers["X-Request-ID"]
    assert (tmp_path / "granthalaya.log").exists()


def test_request_id_is_echoed():
    app = _make_app()
    client = app.test_client()

    response = client.get("/health/", headers={"X-Request-ID": "scan-desk-1"})

    assert response.headers["X-Request-ID"] == "scan-desk-1"


def test_unreachable_database_still_boots(tmp_path):
    missing = tmp_path / "missing" / "granthalaya.db"
    app = _make_app(SQLALCHEMY_DATABASE_URI=f"sqlite:///{missing}")

    assert app.config["DATABASE_AVAILABLE"] is False
    assert "Unable to connect" in app.config["DATABASE_ERROR"]


def test_unknown_route_returns_json_404():
    app = _make_app()
    client = app.test_client()

    response = client.get("/nowhere")

    assert response.status_code == 404
    assert "error" in response.get_json()


def test_unhandled_errors_return_json_and_roll_back(monkeypatch):
    app = _make_app()
    client = app.test_client()
    rolled_back = []

    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr("granthalaya.routes.racks.search_racks", explode)
    with app.app_context():
        monkeypatch.setattr(db.session(), "rollback", lambda: rolled_back.append(True))
        response = client.get("/racks/api/racks")

    assert response.status_code == 500
    assert response.get_json()["error"] == "boom"
    assert rolled_back


def test_flask_routes_listed():
    app = _make_app()
    runner = app.test_cli_runner()
    result = runner.invoke(routes_command)
    assert result.exit_code == 0
    assert "/packing/api/stations/<station>/keys" in result.output


def test_integrity_errors_map_to_conflict(monkeypatch):
    from sqlalchemy.exc import IntegrityError

    app = _make_app()
    client = app.test_client()

    def conflict(*args, **kwargs):
        raise IntegrityError("INSERT INTO rack", {}, Exception("UNIQUE constraint failed"))

    monkeypatch.setattr("granthalaya.routes.racks.search_racks", conflict)
    response = client.get("/racks/api/racks")

    assert response.status_code == 409
