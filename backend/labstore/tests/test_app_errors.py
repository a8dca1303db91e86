from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from labstore.apps.inventory import models as inventory_models
from labstore.database import get_db, get_read_db
from labstore.main import app


@pytest.fixture()
def client(db_session, admin):
    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_read_db] = _override_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(client):
    response = client.post("/auth/login", json={"username": "admin", "password": "admin123"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_missing_token_renders_unauthorized_envelope(client):
    response = client.get("/components")
    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "error": {"kind": "Unauthorized", "message": "Unauthorized"},
    }


def test_bad_login_renders_unauthorized_envelope(client):
    response = client.post("/auth/login", json={"username": "admin", "password": "wrong"})
    assert response.status_code == 401
    assert response.json()["error"]["kind"] == "Unauthorized"


def test_logged_out_token_stops_working(client, auth_headers):
    assert client.get("/auth/me", headers=auth_headers).json()["username"] == "admin"
    assert client.post("/auth/logout", headers=auth_headers).json()["success"] is True
    assert client.get("/auth/me", headers=auth_headers).status_code == 401


def test_issue_round_trip_and_insufficient_stock_envelope(client, auth_headers):
    added = client.post(
        "/add-component",
        json={"name": "Resistor", "quantity": 5},
        headers=auth_headers,
    )
    assert added.status_code == 200
    body = added.json()
    assert body["success"] is True
    assert body["message"] == "Component Added"
    component_id = body["component"]["id"]

    rejected = client.post(
        "/create-issue",
        json={
            "student_name": "Asha",
            "usn": "1AB20CS001",
            "phone": "9999999999",
            "items": [{"component_id": component_id, "quantity": 6}],
        },
        headers=auth_headers,
    )
    assert rejected.status_code == 409
    assert rejected.json() == {
        "success": False,
        "error": {
            "kind": "InsufficientStock",
            "message": f"Insufficient stock for component ID {component_id}",
        },
    }

    created = client.post(
        "/create-issue",
        json={
            "student_name": "Asha",
            "usn": "1AB20CS001",
            "items": [{"component_id": component_id, "quantity": 5}],
        },
        headers=auth_headers,
    )
    assert created.status_code == 201
    assert created.json()["issue"]["items"][0]["remaining"] == 5

    summary = client.get("/dashboard-summary", headers=auth_headers).json()
    assert summary == {"total_components": 1, "total_out": 5, "total_students": 1}

    blocked = client.post("/delete-component", json={"id": component_id}, headers=auth_headers)
    assert blocked.status_code == 409
    assert blocked.json()["error"] == {
        "kind": "HasActiveIssues",
        "message": "Cannot delete component with active issues",
    }


def test_empty_issue_renders_empty_request(client, auth_headers):
    response = client.post(
        "/create-issue",
        json={"student_name": "Asha", "usn": "1AB20CS001", "items": []},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == {"kind": "EmptyRequest", "message": "No items provided"}


def test_schema_violation_renders_invalid_input(client, auth_headers):
    response = client.post(
        "/add-component",
        json={"name": "Resistor", "quantity": 0},
        headers=auth_headers,
    )
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"]["kind"] == "InvalidInput"
    assert "quantity" in body["error"]["message"]


def test_unknown_item_renders_not_found(client, auth_headers):
    response = client.post(
        "/return-item",
        json={"item_id": 123, "return_quantity": 1},
        headers=auth_headers,
    )
    assert response.status_code == 404
    assert response.json()["error"] == {"kind": "NotFound", "message": "Item not found"}


def test_mutations_without_a_token_write_nothing(client, db_session):
    added = client.post("/add-component", json={"name": "Resistor", "quantity": 5})
    assert added.status_code == 401
    assert added.json()["error"]["kind"] == "Unauthorized"

    issued = client.post(
        "/create-issue",
        json={
            "student_name": "Asha",
            "usn": "1AB20CS001",
            "items": [{"component_id": 1, "quantity": 1}],
        },
        headers={"Authorization": "Bearer not-a-real-token"},
    )
    assert issued.status_code == 401

    assert db_session.query(inventory_models.Component).count() == 0
    assert db_session.query(inventory_models.Student).count() == 0
    assert db_session.query(inventory_models.Issue).count() == 0


def test_storage_failure_on_a_read_renders_storage_error(client, auth_headers, db_session, caplog):
    db_session.execute(text("DROP TABLE issue_items"))
    db_session.commit()

    with caplog.at_level("ERROR", logger="labstore.main"):
        response = client.get("/dashboard-summary", headers=auth_headers)

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"]["kind"] == "StorageError"
    assert "Storage failure on GET /dashboard-summary" in caplog.text


@pytest.mark.parametrize("query", ["skip=-1", "limit=0", "limit=5001"])
def test_transactions_paging_is_bounded(client, auth_headers, query):
    response = client.get(f"/transactions?{query}", headers=auth_headers)
    assert response.status_code == 422
    assert response.json()["error"]["kind"] == "InvalidInput"


def test_transactions_default_paging(client, auth_headers):
    response = client.get("/transactions", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == []
