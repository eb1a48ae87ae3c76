"""End-to-end admission through the protected /api routes."""

from factories import provision_over_http


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_missing_api_key_returns_401(client):
    response = client.get("/api/data")
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "CredentialMissing"
    assert response.headers["www-authenticate"] == "X-API-Key"


def test_unknown_api_key_returns_403(client):
    response = client.get("/api/data", headers={"X-API-Key": "kg_live_not_a_real_key"})
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "CredentialInvalid"


def test_valid_key_allows_access(client):
    _, key = provision_over_http(client, daily_limit=5)

    response = client.get("/api/data", headers={"X-API-Key": key["api_key"]})

    assert response.status_code == 200
    assert response.json() == {"message": "Protected data accessed"}


def test_header_name_is_case_insensitive(client):
    _, key = provision_over_http(client)
    response = client.get("/api/data", headers={"x-api-key": key["api_key"]})
    assert response.status_code == 200


def test_daily_limit_returns_429_after_quota(client):
    _, key = provision_over_http(client, daily_limit=2)
    headers = {"X-API-Key": key["api_key"]}

    assert client.get("/api/data", headers=headers).status_code == 200
    assert client.get("/api/data", headers=headers).status_code == 200

    response = client.get("/api/data", headers=headers)
    assert response.status_code == 429
    assert response.json()["detail"]["code"] == "QuotaExceeded"


def test_disabled_key_returns_403(client):
    _, key = provision_over_http(client, daily_limit=50)
    headers = {"X-API-Key": key["api_key"]}
    assert client.get("/api/data", headers=headers).status_code == 200

    response = client.put("/admin/disable", json={"api_key": key["api_key"]})
    assert response.status_code == 200

    response = client.get("/api/data", headers=headers)
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "CredentialInvalid"


def test_two_keys_for_one_client_are_metered_independently(client):
    client_id, first = provision_over_http(client, daily_limit=1)
    response = client.post(
        "/admin/api-keys", json={"client_id": client_id, "daily_limit": 1},
    )
    second = response.json()
    assert first["api_key"] != second["api_key"]

    assert client.get("/api/data", headers={"X-API-Key": first["api_key"]}).status_code == 200
    assert client.get("/api/data", headers={"X-API-Key": first["api_key"]}).status_code == 429
    assert client.get("/api/data", headers={"X-API-Key": second["api_key"]}).status_code == 200


def test_denied_requests_are_not_recorded(client):
    client_id, key = provision_over_http(client, daily_limit=1)
    headers = {"X-API-Key": key["api_key"]}
    client.get("/api/data", headers=headers)
    client.get("/api/data", headers=headers)

    usage = client.get(f"/admin/usage/{client_id}").json()
    assert usage == [
        {"endpoint": "/api/data", "request_count": 1, "client_name": "Acme Corp"},
    ]
