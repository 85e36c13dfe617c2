from __future__ import annotations

import sys
from pathlib import Path

from sqlalchemy.exc import OperationalError

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import stockledger as stockledger_module
from stockledger import create_app
from stockledger.extensions import db


def _offline(monkeypatch):
    def fake_ping() -> None:
        raise OperationalError("SELECT 1", {}, Exception("database offline"))

    monkeypatch.setattr(stockledger_module, "_ping_database", fake_ping)


def test_create_app_handles_database_outage(monkeypatch):
    """The application should initialize even when the database is offline."""

    _offline(monkeypatch)

    create_all_called = False

    def record_create_all(*args, **kwargs):  # type: ignore[no-untyped-def]
        nonlocal create_all_called
        create_all_called = True

    monkeypatch.setattr(db, "create_all", record_create_all)

    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})

    assert app.config["DATABASE_AVAILABLE"] is False
    assert "Unable to connect" in (app.config["DATABASE_ERROR"] or "")
    assert "database offline" in (app.config["DATABASE_ERROR"] or "")
    assert create_all_called is False


def test_api_answers_503_while_database_is_offline(monkeypatch):
    _offline(monkeypatch)

    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    client = app.test_client()

    response = client.get("/api/products", headers={"X-Owner-Id": "owner-1"})
    assert response.status_code == 503
    assert response.get_json()["type"] == "BackendError"
    assert "database offline" in response.get_json()["error"]

    health = client.get("/health")
    assert health.status_code == 503
    assert health.get_json()["status"] == "DEGRADED"
    assert health.get_json()["database"] is False


def test_create_app_builds_schema_when_database_is_up():
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})

    assert app.config["DATABASE_AVAILABLE"] is True
    assert app.config["DATABASE_ERROR"] is None

    response = app.test_client().get("/api/categories", headers={"X-Owner-Id": "owner-1"})
    assert response.status_code == 200
