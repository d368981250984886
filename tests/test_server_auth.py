from __future__ import annotations

from unittest.mock import patch

import apps.server.app as server_app


def make_client():
    """Return a test client with an empty in-memory player store."""
    server_app.db = None  # ensure in-memory store is used
    server_app.app.config["TESTING"] = False
    server_app.app.config["_local_users"] = {}
    return server_app.app.test_client()


def auth_header() -> dict[str, str]:
    return {"Authorization": "Bearer test-token"}


def test_requires_auth():
    client = make_client()
    resp = client.get("/api/v1/users/me")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "ERR_UNAUTHENTICATED"


def test_health_is_public():
    client = make_client()
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}


@patch("apps.server.app.auth.verify_id_token")
def test_profile_create_and_update(mock_verify):
    client = make_client()
    mock_verify.return_value = {"uid": "alice"}

    # Initially no player document
    resp = client.get("/api/v1/users/me", headers=auth_header())
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "ERR_NOT_FOUND"

    resp = client.put(
        "/api/v1/users/me",
        json={"playerName": "Alice", "pilotActive": "falcon"},
        headers=auth_header(),
    )
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["playerName"] == "Alice"
    assert data["playerList"] == {"friend": [], "request": [], "block": []}

    resp = client.put("/api/v1/users/me", json={"pilotActive": "viper"}, headers=auth_header())
    assert resp.get_json()["data"]["pilotActive"] == "viper"
    assert resp.get_json()["data"]["playerName"] == "Alice"

    resp = client.get("/api/v1/users/me", headers=auth_header())
    assert resp.status_code == 200
    profile = resp.get_json()["data"]
    assert profile["userId"] == "alice"
    assert profile["playerList"] == {"friend": [], "request": [], "block": []}


@patch("apps.server.app.auth.verify_id_token")
def test_invalid_profile_payload(mock_verify):
    client = make_client()
    mock_verify.return_value = {"uid": "alice"}
    resp = client.put("/api/v1/users/me", json={"playerName": 42}, headers=auth_header())
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "ERR_INVALID_REQUEST"
