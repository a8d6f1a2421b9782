"""
tests/test_login_routes.py -- Integration tests for the /Login endpoints.

These tests exercise the full stack: FastAPI routing -> body decoding ->
protocol -> AccountStore/SessionRegistry -> camelCase response serialization.

Fixtures used (from conftest.py):
  - api_client: TestClient over the real app with tmp_path databases.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from conftest import make_player
from core.errors import StorageError

LOGIN = "/api/v1/Login/login"
MIGRATION = "/api/v1/Login/migration"
MIGRATION_PASSWORD = "/api/v1/Login/getMigrationPassword"


def _login(client: TestClient, user_id: str, password: str):
    return client.post(LOGIN, json={"lineAuth": {"userId": user_id, "password": password}})


class TestLoginRoute:
    def test_register(self, api_client: TestClient) -> None:
        resp = _login(api_client, "0", "")
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["statusCode"] == -10104
        assert data["errorMessage"] == "Bad password"
        assert data["userId"] and data["password"] and data["key"]
        assert "serverTime" in data
        assert resp.headers["Cache-Control"] == "no-store"

    def test_empty_line_auth_registers(self, api_client: TestClient) -> None:
        resp = api_client.post(LOGIN, json={"lineAuth": {}})
        assert resp.status_code == 200
        assert resp.json()["userId"]

    def test_password_without_id_is_rejected(self, api_client: TestClient) -> None:
        before = api_client.app.state.accounts.count_players()
        resp = _login(api_client, "0", "hunter2")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_request"
        assert resp.json()["statusCode"] == -10100
        assert api_client.app.state.accounts.count_players() == before

    def test_key_check_existing_player(self, api_client: TestClient) -> None:
        api_client.app.state.accounts.add_player(make_player("4200000001"))
        data = _login(api_client, "4200000001", "").json()
        assert data["statusCode"] == -10104
        assert data["key"] == "hunter2"

    def test_key_check_missing_player(self, api_client: TestClient) -> None:
        data = _login(api_client, "99", "").json()
        assert data["statusCode"] == -10102
        assert data["key"] == ""

    def test_authenticate(self, api_client: TestClient) -> None:
        accounts = api_client.app.state.accounts
        accounts.add_player(make_player("4200000002", username="Sonic"))

        data = _login(api_client, "4200000002", "hunter2").json()

        assert data["statusCode"] == 0
        assert data["errorMessage"] == "OK"
        assert data["userName"] == "Sonic"
        assert api_client.app.state.sessions.resolve(data["sessionId"]) == "4200000002"
        assert accounts.get_player("4200000002").last_login > 0

    def test_register_then_login_with_issued_credentials(self, api_client: TestClient) -> None:
        reg = _login(api_client, "0", "").json()
        data = _login(api_client, reg["userId"], reg["password"]).json()
        assert data["statusCode"] == 0
        assert data["sessionId"]

    def test_undecodable_body_is_400(self, api_client: TestClient) -> None:
        resp = api_client.post(LOGIN, content=b"not json")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "decode_error"
        assert resp.json()["statusCode"] == -10100

    def test_wrong_shape_is_400(self, api_client: TestClient) -> None:
        resp = api_client.post(LOGIN, json={"lineAuth": "nope"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "decode_error"

    def test_storage_failure_is_500(self, api_client: TestClient, monkeypatch) -> None:
        def fail(username: str = "") -> None:
            raise StorageError("disk full")

        monkeypatch.setattr(api_client.app.state.accounts, "create_account", fail)
        resp = _login(api_client, "0", "")
        assert resp.status_code == 500
        body = resp.json()
        assert body["error"]["code"] == "internal_error"
        assert body["statusCode"] == -19999
        assert "disk full" not in resp.text


class TestMigrationRoutes:
    def test_full_migration_flow(self, api_client: TestClient) -> None:
        reg = _login(api_client, "0", "").json()
        session_id = _login(api_client, reg["userId"], reg["password"]).json()["sessionId"]

        issued = api_client.post(
            MIGRATION_PASSWORD, json={"sessionId": session_id, "userPassword": "carry-me"}
        ).json()
        assert issued["statusCode"] == 0
        assert issued["migrationPassword"]

        data = api_client.post(
            MIGRATION,
            json={"lineAuth": {"migrationPassword": "carry-me", "password": issued["migrationPassword"]}},
        ).json()
        assert data["statusCode"] == 0
        assert data["userId"] == reg["userId"]
        assert data["sessionId"]
        assert data["password"] != reg["password"]
        assert len(data["password"]) == 10

    def test_wrong_migration_password(self, api_client: TestClient) -> None:
        api_client.app.state.accounts.add_player(make_player("4200000003", user_password="wrong-flow"))
        data = api_client.post(
            MIGRATION, json={"lineAuth": {"migrationPassword": "wrong-flow", "password": "nope"}}
        ).json()
        assert data["statusCode"] == -10104
        assert "sessionId" not in data

    def test_no_matching_account(self, api_client: TestClient) -> None:
        data = api_client.post(
            MIGRATION, json={"lineAuth": {"migrationPassword": "nobody-has-this", "password": "x"}}
        ).json()
        assert data["statusCode"] == -10102
        assert data["errorMessage"] == "Missing player"

    def test_migration_password_with_stale_session(self, api_client: TestClient) -> None:
        data = api_client.post(MIGRATION_PASSWORD, json={"sessionId": "stale", "userPassword": "x"}).json()
        assert data["statusCode"] == -10103

    def test_migration_password_requires_user_password(self, api_client: TestClient) -> None:
        resp = api_client.post(MIGRATION_PASSWORD, json={"sessionId": "stale", "userPassword": ""})
        assert resp.status_code == 400


def test_health(api_client: TestClient) -> None:
    resp = api_client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["components"] == {"app": "ok", "database": "ok"}
