"""Login, bearer sessions, role guards and user administration."""

from __future__ import annotations

from datetime import timedelta

from washstation.extensions import db
from washstation.models import User, UserSession, utcnow_naive


class TestLogin:

    def test_success_returns_token(self, client, make_user, station, password):
        make_user(username="alice", cws=station)
        resp = client.post("/api/auth/login", json={"username": "alice", "password": password})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["token"]
        assert body["user"]["username"] == "alice"
        assert body["cws"]["code"] == "KY"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.get_json()["username"] == "alice"

    def test_bad_password(self, client, make_user):
        make_user(username="alice")
        resp = client.post("/api/auth/login", json={"username": "alice", "password": "wrong"})
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "Invalid username or password"}

    def test_missing_credentials(self, client):
        resp = client.post("/api/auth/login", json={"username": "alice"})
        assert resp.status_code == 400


class TestSessions:

    def test_no_token(self, client):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401

    def test_unknown_token(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_expired_token(self, client, manager_user):
        user_session = UserSession.issue(manager_user)
        user_session.expires_at = utcnow_naive() - timedelta(minutes=1)
        db.session.add(user_session)
        db.session.commit()
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {user_session.token}"})
        assert resp.status_code == 401

    def test_logout_revokes(self, client, manager_headers):
        assert client.post("/api/auth/logout", headers=manager_headers).status_code == 200
        assert client.get("/api/auth/me", headers=manager_headers).status_code == 401


class TestUserAdministration:

    def test_register_requires_admin(self, client, manager_headers, password):
        resp = client.post(
            "/api/auth/register",
            json={"username": "bob", "password": password, "role": "OPERATIONS"},
            headers=manager_headers,
        )
        assert resp.status_code == 403

    def test_register_enforces_password_policy(self, client, auth_headers):
        resp = client.post(
            "/api/auth/register",
            json={"username": "bob", "password": "short", "role": "OPERATIONS"},
            headers=auth_headers,
        )
        assert resp.status_code == 400

    def test_register_and_duplicate(self, client, auth_headers, station, password):
        payload = {"username": "bob", "password": password, "role": "cws manager", "cwsId": station.id}
        resp = client.post("/api/auth/register", json=payload, headers=auth_headers)
        assert resp.status_code == 201
        assert resp.get_json()["role"] == "CWS_MANAGER"
        assert resp.get_json()["cwsId"] == station.id

        resp = client.post("/api/auth/register", json=payload, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Username already exists"

    def test_unknown_role(self, client, auth_headers, password):
        resp = client.post(
            "/api/auth/register",
            json={"username": "bob", "password": password, "role": "JANITOR"},
            headers=auth_headers,
        )
        assert resp.status_code == 400

    def test_self_update_cannot_change_role(self, client, manager_user, manager_headers):
        resp = client.put(
            f"/api/auth/users/{manager_user.id}",
            json={"role": "SUPER_ADMIN", "username": "manager2"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["role"] == "CWS_MANAGER"
        assert resp.get_json()["username"] == "manager2"

    def test_cannot_update_someone_else(self, client, make_user, manager_headers):
        other = make_user(username="other")
        resp = client.put(f"/api/auth/users/{other.id}", json={"username": "x"}, headers=manager_headers)
        assert resp.status_code == 403

    def test_delete_user_removes_sessions(self, client, auth_headers, manager_user, token_for):
        user_id = manager_user.id
        token_for(manager_user)
        resp = client.delete(f"/api/auth/users/{user_id}", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json() == {"message": "User deleted successfully", "deletedUserId": user_id}
        assert db.session.get(User, user_id) is None
        assert UserSession.query.filter_by(user_id=user_id).count() == 0

    def test_delete_missing_user(self, client, auth_headers):
        resp = client.delete("/api/auth/users/999", headers=auth_headers)
        assert resp.status_code == 404

    def test_list_users_newest_first(self, client, auth_headers, make_user):
        make_user(username="later")
        resp = client.get("/api/auth/users", headers=auth_headers)
        names = [u["username"] for u in resp.get_json()]
        assert set(names) == {"admin", "later"}
