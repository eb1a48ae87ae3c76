"""Provisioning and reporting endpoints."""

import uuid

from keygate.core.config import settings
from factories import provision_over_http


def test_create_client(client):
    response = client.post("/admin/clients", json={"name": "Acme Corp", "email": "ops@acme.test"})

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Acme Corp"
    assert data["email"] == "ops@acme.test"
    uuid.UUID(data["id"])


def test_create_client_rejects_unknown_fields(client):
    response = client.post(
        "/admin/clients",
        json={"name": "Acme", "email": "ops@acme.test", "tier": "gold"},
    )
    assert response.status_code == 422


def test_create_api_key_returns_raw_key_once(client):
    client_id, key = provision_over_http(client, daily_limit=25)

    assert key["client_id"] == client_id
    assert key["daily_limit"] == 25
    assert key["is_active"] is True
    assert key["api_key"].startswith("kg_live_")
    assert key["prefix"] == key["api_key"][:12]


def test_create_api_key_unknown_client_returns_404(client):
    response = client.post(
        "/admin/api-keys",
        json={"client_id": str(uuid.uuid4()), "daily_limit": 10},
    )
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NotFound"


def test_create_api_key_rejects_non_positive_limit(client):
    response = client.post("/admin/clients", json={"name": "Acme", "email": "ops@acme.test"})
    client_id = response.json()["id"]

    for limit in (0, -5):
        response = client.post(
            "/admin/api-keys", json={"client_id": client_id, "daily_limit": limit},
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "InvalidConfig"


def test_disable_unknown_key_returns_404(client):
    response = client.put("/admin/disable", json={"api_key": "kg_live_ghost"})
    assert response.status_code == 404


def test_disable_key_response(client):
    _, key = provision_over_http(client)

    response = client.put("/admin/disable", json={"api_key": key["api_key"]})

    assert response.status_code == 200
    assert response.json() == {
        "message": "API key disabled successfully",
        "data": {"id": key["id"], "is_active": False},
    }


def test_disable_accepts_key_with_surrounding_whitespace(client):
    _, key = provision_over_http(client)
    padded = f"  {key['api_key']}\n"

    response = client.put("/admin/disable", json={"api_key": padded})
    assert response.status_code == 200
    assert response.json()["data"]["is_active"] is False
    assert client.get("/api/data", headers={"X-API-Key": key["api_key"]}).status_code == 403


def test_disable_blank_key_is_rejected(client):
    response = client.put("/admin/disable", json={"api_key": "   "})
    assert response.status_code == 422


def test_usage_report_groups_by_endpoint(client):
    client_id, key = provision_over_http(client, daily_limit=10)
    for _ in range(3):
        client.get("/api/data", headers={"X-API-Key": key["api_key"]})

    response = client.get(f"/admin/usage/{client_id}")

    assert response.status_code == 200
    assert response.json() == [
        {"endpoint": "/api/data", "request_count": 3, "client_name": "Acme Corp"},
    ]


def test_usage_report_for_idle_client_is_empty(client):
    client_id, _ = provision_over_http(client)
    response = client.get(f"/admin/usage/{client_id}")
    assert response.status_code == 200
    assert response.json() == []


def test_usage_report_unknown_client_returns_404(client):
    response = client.get(f"/admin/usage/{uuid.uuid4()}")
    assert response.status_code == 404


def test_quota_status(client):
    _, key = provision_over_http(client, daily_limit=4)
    client.get("/api/data", headers={"X-API-Key": key["api_key"]})

    response = client.get(f"/admin/api-keys/{key['id']}/quota")

    assert response.status_code == 200
    data = response.json()
    assert data["request_count"] == 1
    assert data["daily_limit"] == 4
    assert data["remaining"] == 3
    assert data["is_active"] is True


def test_quota_status_unknown_key_returns_404(client):
    response = client.get(f"/admin/api-keys/{uuid.uuid4()}/quota")
    assert response.status_code == 404


def test_admin_token_enforced_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "s3cret")
    body = {"name": "Acme", "email": "ops@acme.test"}

    assert client.post("/admin/clients", json=body).status_code == 401
    assert client.post(
        "/admin/clients", json=body, headers={"X-Admin-Token": "wrong"},
    ).status_code == 401
    assert client.post(
        "/admin/clients", json=body, headers={"X-Admin-Token": "s3cret"},
    ).status_code == 201
