"""
Tests for /api/v1/auth and request authentication
=================================================
Covers:
- Register: creates the Auth account and profile, returns tokens
- Register: duplicate email rejected (profile table or Supabase Auth)
- Register: password length and email format validated
- Login: tokens + profile, profile recreated when missing, bad credentials
- Refresh: new token pair, rejected refresh token
- Logout: revokes the session, still succeeds when revoke fails
- Bearer handling: missing header, invalid token, token without profile
- Health endpoint

Run: pytest tests/test_auth_routes.py -v
"""

from __future__ import annotations


def _session(auth_client, user_id: str = "u-1") -> None:
    session = auth_client.auth.sign_in_with_password.return_value.session
    session.access_token = "access-token"
    session.refresh_token = "refresh-token"
    session.user.id = user_id


class TestHealth:

    def test_health(self, client) -> None:
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "sol-api"}


class TestRegister:

    def test_creates_account_and_profile(self, client, db, auth_client) -> None:
        db.auth.admin.create_user.return_value.user.id = "new-user"
        _session(auth_client, "new-user")

        response = client.post("/api/v1/auth/register", json={
            "email": "Olena.Koval@Gmail.com",
            "password": "s3cret-pass",
            "first_name": "Olena",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["token"] == "access-token"
        assert body["refresh_token"] == "refresh-token"
        assert body["user"]["id"] == "new-user"
        assert body["user"]["email"] == "olena.koval@gmail.com"
        assert body["user"]["role"] == "patient"

        created = db.auth.admin.create_user.call_args.args[0]
        assert created["email_confirm"] is True
        assert created["user_metadata"] == {"role": "patient"}
        assert db.tables["users"][0]["first_name"] == "Olena"

    def test_duplicate_profile_email(self, client, db) -> None:
        db.add_user(email="taken@gmail.com")

        response = client.post("/api/v1/auth/register", json={
            "email": "taken@gmail.com", "password": "s3cret-pass",
        })

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "email_exists"
        db.auth.admin.create_user.assert_not_called()

    def test_duplicate_in_supabase_auth(self, client, db) -> None:
        db.auth.admin.create_user.side_effect = Exception("User already registered")

        response = client.post("/api/v1/auth/register", json={
            "email": "someone@gmail.com", "password": "s3cret-pass",
        })

        assert response.status_code == 409
        assert not db.tables.get("users")

    def test_auth_outage_is_500(self, client, db) -> None:
        db.auth.admin.create_user.side_effect = Exception("connection reset")

        response = client.post("/api/v1/auth/register", json={
            "email": "someone@gmail.com", "password": "s3cret-pass",
        })

        assert response.status_code == 500
        assert response.json()["detail"]["code"] == "db_error"

    def test_short_password(self, client) -> None:
        response = client.post("/api/v1/auth/register", json={
            "email": "someone@gmail.com", "password": "short",
        })
        assert response.status_code == 422

    def test_invalid_email(self, client) -> None:
        response = client.post("/api/v1/auth/register", json={
            "email": "not-an-email", "password": "s3cret-pass",
        })
        assert response.status_code == 422


class TestLogin:

    def test_returns_tokens_and_profile(self, client, auth_client, patient) -> None:
        _session(auth_client, patient["id"])

        response = client.post("/api/v1/auth/login", json={
            "email": "olena@gmail.com", "password": "s3cret-pass",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["token"] == "access-token"
        assert body["user"]["first_name"] == "Olena"
        auth_client.auth.sign_in_with_password.assert_called_once_with(
            {"email": "olena@gmail.com", "password": "s3cret-pass"}
        )

    def test_recreates_missing_profile(self, client, db, auth_client) -> None:
        _session(auth_client, "orphan")

        response = client.post("/api/v1/auth/login", json={
            "email": "orphan@gmail.com", "password": "s3cret-pass",
        })

        assert response.status_code == 200
        assert response.json()["user"]["id"] == "orphan"
        assert db.tables["users"][0]["email"] == "orphan@gmail.com"

    def test_wrong_password(self, client, auth_client) -> None:
        auth_client.auth.sign_in_with_password.side_effect = Exception("Invalid login credentials")

        response = client.post("/api/v1/auth/login", json={
            "email": "olena@gmail.com", "password": "nope",
        })

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "invalid_credentials"

    def test_no_session(self, client, auth_client) -> None:
        auth_client.auth.sign_in_with_password.return_value.session = None

        response = client.post("/api/v1/auth/login", json={
            "email": "olena@gmail.com", "password": "s3cret-pass",
        })

        assert response.status_code == 401


class TestRefresh:

    def test_new_pair(self, client, auth_client) -> None:
        session = auth_client.auth.refresh_session.return_value.session
        session.access_token = "fresh-access"
        session.refresh_token = "fresh-refresh"

        response = client.post("/api/v1/auth/refresh", json={"refresh_token": "old"})

        assert response.status_code == 200
        assert response.json() == {"token": "fresh-access", "refresh_token": "fresh-refresh"}
        auth_client.auth.refresh_session.assert_called_once_with("old")

    def test_rejected(self, client, auth_client) -> None:
        auth_client.auth.refresh_session.side_effect = Exception("Invalid Refresh Token")

        response = client.post("/api/v1/auth/refresh", json={"refresh_token": "old"})

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "auth_invalid"


class TestLogout:

    def test_revokes_session(self, client, db, patient) -> None:
        response = client.post("/api/v1/auth/logout", headers=db.login(patient))

        assert response.status_code == 200
        assert response.json() == {"message": "Logged out"}
        db.auth.admin.sign_out.assert_called_once_with(f"token-{patient['id']}")

    def test_revoke_failure_still_logs_out(self, client, db, patient) -> None:
        db.auth.admin.sign_out.side_effect = Exception("network")

        response = client.post("/api/v1/auth/logout", headers=db.login(patient))

        assert response.status_code == 200


class TestBearerHandling:

    def test_missing_header(self, client) -> None:
        response = client.get("/api/v1/users/profile")
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "auth_required"

    def test_not_bearer(self, client) -> None:
        response = client.get("/api/v1/users/profile", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401

    def test_invalid_token(self, client) -> None:
        response = client.get(
            "/api/v1/users/profile", headers={"Authorization": "Bearer forged"},
        )
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "auth_invalid"

    def test_token_without_profile(self, client, db) -> None:
        response = client.get("/api/v1/users/profile", headers=db.login({"id": "ghost"}))
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "user_not_found"
