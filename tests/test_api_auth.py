"""
tests/test_api_auth.py -- Integration tests for /api/auth/* and /api/protected.

These tests exercise the full stack: FastAPI routing -> request validation ->
auth dependency injection -> AuthService/UserStore -> response model
serialisation -> error envelope. Unit tests of the service would miss the
camelCase wire format, the exception handlers and the status-code mapping.

Coverage:
  - register: 201 + user + tokens, role "user", 400 shape/strength, 409 duplicate
  - login: 200, identical 401 for unknown email and wrong password
  - access token lifecycle: expired access -> 401 token_expired -> refresh -> 200
  - refresh rotation and reuse, logout (single + everywhere)
  - profile read/update, change-password revokes every session
  - deactivated user with a still-valid access token is refused

Fixtures used (from conftest.py):
  - api: ApiContext -- TestClient over fresh stores with a FakeClock
"""

from __future__ import annotations

from conftest import ACCESS_TTL, STRONG_PASSWORD, ApiContext, user_data


class TestRegister:
    def test_register_returns_user_and_tokens(self, api: ApiContext) -> None:
        resp = api.client.post("/api/auth/register", json=user_data(email="New@Example.com"))
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        assert resp.headers["cache-control"] == "no-store"

        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "User registered successfully"
        assert body["user"]["email"] == "new@example.com"
        assert body["user"]["role"] == "user"
        assert body["user"]["isActive"] is True
        assert "hashedPassword" not in body["user"]
        assert "refreshTokens" not in body["user"]

        tokens = body["tokens"]
        assert tokens["tokenType"] == "Bearer"
        assert tokens["expiresIn"] == ACCESS_TTL
        claims = api.issuer.verify(tokens["accessToken"])
        assert claims.role.value == "user"

    def test_register_ignores_role_in_body(self, api: ApiContext) -> None:
        body = api.register(role="admin")
        assert body["user"]["role"] == "user"

    def test_duplicate_email_is_409(self, api: ApiContext) -> None:
        api.register(email="dup@example.com")
        resp = api.client.post("/api/auth/register", json=user_data(email="DUP@example.com"))
        assert resp.status_code == 409
        assert resp.json() == {"success": False, "message": "Email already exists", "code": "conflict"}

    def test_weak_password_lists_rules(self, api: ApiContext) -> None:
        resp = api.client.post("/api/auth/register", json=user_data(password="password"))
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == "validation_error"
        assert len(body["errors"]) == 3

    def test_missing_fields_are_400(self, api: ApiContext) -> None:
        resp = api.client.post("/api/auth/register", json={"email": "x@example.com"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["message"] == "Validation failed"
        fields = {e.split(":")[0] for e in body["errors"]}
        assert {"name", "password", "age", "city"} <= fields

    def test_invalid_email_is_400(self, api: ApiContext) -> None:
        resp = api.client.post("/api/auth/register", json=user_data(email="not-an-email"))
        assert resp.status_code == 400
        assert any(e.startswith("email:") for e in resp.json()["errors"])


class TestLogin:
    def test_login_success(self, api: ApiContext) -> None:
        api.register(email="ada@example.com")
        resp = api.client.post("/api/auth/login", json={"email": "ADA@example.com", "password": STRONG_PASSWORD})
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        body = resp.json()
        assert body["message"] == "Login successful"
        assert body["user"]["lastLogin"] is not None

    def test_unknown_email_and_wrong_password_are_identical(self, api: ApiContext) -> None:
        api.register(email="ada@example.com")
        wrong_pw = api.client.post("/api/auth/login", json={"email": "ada@example.com", "password": "Wr0ngPass!"})
        unknown = api.client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "Wr0ngPass!"})
        assert wrong_pw.status_code == unknown.status_code == 401
        assert wrong_pw.json() == unknown.json()
        assert wrong_pw.json()["message"] == "Invalid credentials"
        assert wrong_pw.headers["www-authenticate"] == "Bearer"


class TestScenarios:
    def test_register_login_profile_duplicate(self, api: ApiContext) -> None:
        api.register(name="Ada", email="ada@example.com")
        tokens = api.login("ada@example.com")["tokens"]

        profile = api.client.get("/api/auth/profile", headers=api.bearer(tokens["accessToken"]))
        assert profile.status_code == 200
        assert profile.json()["user"]["name"] == "Ada"
        assert profile.json()["user"]["email"] == "ada@example.com"

        again = api.client.post("/api/auth/register", json=user_data(email="ada@example.com"))
        assert again.status_code == 409

    def test_expired_access_then_refresh(self, api: ApiContext) -> None:
        tokens = api.register()["tokens"]
        api.clock.advance(ACCESS_TTL + 1)

        expired = api.client.get("/api/auth/profile", headers=api.bearer(tokens["accessToken"]))
        assert expired.status_code == 401
        assert expired.json()["code"] == "token_expired"
        assert "expired" in expired.json()["message"].lower()
        assert 'error="invalid_token"' in expired.headers["www-authenticate"]

        refreshed = api.client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert refreshed.status_code == 200, refreshed.text
        new_tokens = refreshed.json()["tokens"]
        assert new_tokens["accessToken"] != tokens["accessToken"]
        assert new_tokens["refreshToken"] != tokens["refreshToken"]

        profile = api.client.get("/api/auth/profile", headers=api.bearer(new_tokens["accessToken"]))
        assert profile.status_code == 200


class TestRefreshAndLogout:
    def test_refresh_token_reuse_fails(self, api: ApiContext) -> None:
        old = api.register()["tokens"]["refreshToken"]
        assert api.client.post("/api/auth/refresh", json={"refreshToken": old}).status_code == 200
        reused = api.client.post("/api/auth/refresh", json={"refreshToken": old})
        assert reused.status_code == 401
        assert reused.json()["code"] == "unauthorized"

    def test_refresh_accepts_snake_case_body(self, api: ApiContext) -> None:
        old = api.register()["tokens"]["refreshToken"]
        assert api.client.post("/api/auth/refresh", json={"refresh_token": old}).status_code == 200

    def test_refresh_with_access_token_fails(self, api: ApiContext) -> None:
        access = api.register()["tokens"]["accessToken"]
        assert api.client.post("/api/auth/refresh", json={"refreshToken": access}).status_code == 401

    def test_refresh_requires_token(self, api: ApiContext) -> None:
        assert api.client.post("/api/auth/refresh", json={}).status_code == 400

    def test_logout_one_session_keeps_the_other(self, api: ApiContext) -> None:
        first = api.register(email="ada@example.com")["tokens"]
        second = api.login("ada@example.com")["tokens"]

        resp = api.client.post(
            "/api/auth/logout",
            json={"refreshToken": first["refreshToken"]},
            headers=api.bearer(first["accessToken"]),
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "Logout successful"

        assert api.client.post("/api/auth/refresh", json={"refreshToken": first["refreshToken"]}).status_code == 401
        assert api.client.post("/api/auth/refresh", json={"refreshToken": second["refreshToken"]}).status_code == 200

    def test_logout_without_body_ends_every_session(self, api: ApiContext) -> None:
        first = api.register(email="ada@example.com")["tokens"]
        second = api.login("ada@example.com")["tokens"]

        resp = api.client.post("/api/auth/logout", headers=api.bearer(first["accessToken"]))
        assert resp.status_code == 200
        for tokens in (first, second):
            assert api.client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]}).status_code == 401

    def test_logout_requires_auth(self, api: ApiContext) -> None:
        resp = api.client.post("/api/auth/logout")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Access token required"


class TestProfile:
    def test_profile_requires_token(self, api: ApiContext) -> None:
        assert api.client.get("/api/auth/profile").status_code == 401

    def test_update_profile(self, api: ApiContext) -> None:
        access = api.register()["tokens"]["accessToken"]
        resp = api.client.put("/api/auth/profile", json={"city": "Paris", "age": 31}, headers=api.bearer(access))
        assert resp.status_code == 200
        user = resp.json()["user"]
        assert user["city"] == "Paris"
        assert user["age"] == 31
        assert user["name"] == "Test User"

    def test_update_profile_rejects_password(self, api: ApiContext) -> None:
        access = api.register()["tokens"]["accessToken"]
        resp = api.client.put("/api/auth/profile", json={"password": "N3wPassw0rd!"}, headers=api.bearer(access))
        assert resp.status_code == 400
        assert "change password" in resp.json()["message"]

    def test_update_profile_rejects_role(self, api: ApiContext) -> None:
        access = api.register()["tokens"]["accessToken"]
        resp = api.client.put("/api/auth/profile", json={"role": "admin"}, headers=api.bearer(access))
        assert resp.status_code == 400

    def test_update_profile_email_conflict(self, api: ApiContext) -> None:
        access = api.register()["tokens"]["accessToken"]
        resp = api.client.put("/api/auth/profile", json={"email": "admin@example.com"}, headers=api.bearer(access))
        assert resp.status_code == 409


class TestChangePassword:
    def test_change_password_revokes_every_refresh_token(self, api: ApiContext) -> None:
        first = api.register(email="ada@example.com")["tokens"]
        second = api.login("ada@example.com")["tokens"]

        resp = api.client.post(
            "/api/auth/change-password",
            json={"currentPassword": STRONG_PASSWORD, "newPassword": "N3wPassw0rd!"},
            headers=api.bearer(first["accessToken"]),
        )
        assert resp.status_code == 200, resp.text

        for tokens in (first, second):
            assert api.client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]}).status_code == 401
        assert api.client.post(
            "/api/auth/login", json={"email": "ada@example.com", "password": STRONG_PASSWORD}
        ).status_code == 401
        api.login("ada@example.com", "N3wPassw0rd!")

    def test_wrong_current_password(self, api: ApiContext) -> None:
        access = api.register()["tokens"]["accessToken"]
        resp = api.client.post(
            "/api/auth/change-password",
            json={"currentPassword": "Wr0ngPass!", "newPassword": "N3wPassw0rd!"},
            headers=api.bearer(access),
        )
        assert resp.status_code == 401
        assert resp.json()["message"] == "Current password is incorrect"

    def test_weak_new_password(self, api: ApiContext) -> None:
        access = api.register()["tokens"]["accessToken"]
        resp = api.client.post(
            "/api/auth/change-password",
            json={"currentPassword": STRONG_PASSWORD, "newPassword": "weak"},
            headers=api.bearer(access),
        )
        assert resp.status_code == 400
        assert resp.json()["errors"]


class TestProtected:
    def test_protected_echoes_user_and_claims(self, api: ApiContext) -> None:
        resp = api.client.get("/api/protected", headers=api.bearer(api.admin_token))
        assert resp.status_code == 200
        body = resp.json()
        assert body["user"]["id"] == api.admin.id
        assert body["tokenInfo"]["userId"] == api.admin.id
        assert body["tokenInfo"]["role"] == "admin"
        assert body["tokenInfo"]["type"] == "access"

    def test_deactivated_user_token_is_refused(self, api: ApiContext) -> None:
        body = api.register()
        access = body["tokens"]["accessToken"]
        resp = api.client.post(f"/api/users/{body['user']['id']}/deactivate", headers=api.bearer(api.admin_token))
        assert resp.status_code == 200

        refused = api.client.get("/api/protected", headers=api.bearer(access))
        assert refused.status_code == 401
        assert refused.json()["message"] == "User account is deactivated"

    def test_invalid_token(self, api: ApiContext) -> None:
        resp = api.client.get("/api/protected", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "unauthorized"
