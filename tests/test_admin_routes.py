"""
tests/test_admin_routes.py -- Integration tests for /api/v1/users and /api/v1/departments.

Covers:
  - admin-only gates (403 for responsible users, 401 without a token)
  - create / read / update / delete happy paths
  - 409 on duplicates, 404 on missing ids, 400 on self-delete
  - redaction: no password hash or TOTP secret in any user payload
"""

from __future__ import annotations

import pytest

from auth.models import Role
from auth.tokens import verify_password
from inventory.models import Department


@pytest.fixture
def responsible_id(api) -> int:
    return api.users.create_user("bob", "bob@x.com", "secret1", role=Role.responsible)


class TestUserAdministration:
    def test_create_user(self, api, admin_id) -> None:
        body = {"username": "erin", "email": "erin@x.com", "password": "secret1", "role": "responsible"}
        resp = api.client.post("/api/v1/users", headers=api.headers_for(admin_id), json=body)
        assert resp.status_code == 201
        data = resp.json()
        assert data["username"] == "erin"
        assert data["role"] == "responsible"
        assert "password" not in resp.text
        assert "hashed" not in resp.text.lower()
        assert verify_password("secret1", api.users.get_by_email("erin@x.com").hashed_password)

    def test_duplicate_email_is_409(self, api, admin_id) -> None:
        body = {"username": "alice2", "email": "alice@x.com", "password": "secret1"}
        resp = api.client.post("/api/v1/users", headers=api.headers_for(admin_id), json=body)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_invalid_email_is_400(self, api, admin_id) -> None:
        body = {"username": "zed", "email": "not-an-email", "password": "secret1"}
        resp = api.client.post("/api/v1/users", headers=api.headers_for(admin_id), json=body)
        assert resp.status_code == 400

    def test_short_password_is_400(self, api, admin_id) -> None:
        body = {"username": "zed", "email": "zed@x.com", "password": "12345"}
        resp = api.client.post("/api/v1/users", headers=api.headers_for(admin_id), json=body)
        assert resp.status_code == 400

    def test_multibyte_password_over_72_bytes_is_400(self, api, admin_id) -> None:
        body = {"username": "zed", "email": "zed@x.com", "password": "é" * 40}
        resp = api.client.post("/api/v1/users", headers=api.headers_for(admin_id), json=body)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"
        assert api.users.get_by_email("zed@x.com") is None

    def test_list_count_get(self, api, admin_id, responsible_id) -> None:
        headers = api.headers_for(admin_id)
        assert [u["username"] for u in api.client.get("/api/v1/users", headers=headers).json()] == ["alice", "bob"]
        assert api.client.get("/api/v1/users/count", headers=headers).json() == {"total": 2}
        assert api.client.get(f"/api/v1/users/{responsible_id}", headers=headers).json()["email"] == "bob@x.com"
        assert api.client.get("/api/v1/users/999", headers=headers).status_code == 404

    def test_update_rehashes_password(self, api, admin_id, responsible_id) -> None:
        resp = api.client.put(
            f"/api/v1/users/{responsible_id}",
            headers=api.headers_for(admin_id),
            json={"password": "newpass1", "profileImage": "/img/bob.png"},
        )
        assert resp.status_code == 200
        assert resp.json()["profileImage"] == "/img/bob.png"
        user = api.users.get_by_id(responsible_id)
        assert verify_password("newpass1", user.hashed_password)

    def test_update_missing_user_is_404(self, api, admin_id) -> None:
        resp = api.client.put("/api/v1/users/999", headers=api.headers_for(admin_id), json={"username": "x"})
        assert resp.status_code == 404

    def test_delete_clears_department_responsibility(self, api, admin_id, responsible_id) -> None:
        dept_id = api.inventory.create_department(Department(name="IT", code="IT", responsible_id=responsible_id))
        resp = api.client.delete(f"/api/v1/users/{responsible_id}", headers=api.headers_for(admin_id))
        assert resp.status_code == 200
        assert api.users.get_by_id(responsible_id) is None
        assert api.inventory.get_department(dept_id).responsible_id is None

    def test_admin_cannot_delete_self(self, api, admin_id) -> None:
        resp = api.client.delete(f"/api/v1/users/{admin_id}", headers=api.headers_for(admin_id))
        assert resp.status_code == 400
        assert api.users.get_by_id(admin_id) is not None

    def test_responsible_user_forbidden(self, api, responsible_id) -> None:
        assert api.client.get("/api/v1/users", headers=api.headers_for(responsible_id)).status_code == 403

    def test_unauthenticated(self, api) -> None:
        assert api.client.get("/api/v1/users").status_code == 401


class TestDepartmentAdministration:
    def test_create_and_read(self, api, admin_id, responsible_id) -> None:
        headers = api.headers_for(admin_id)
        body = {"name": "Maintenance", "code": "MNT", "responsible_id": responsible_id}
        resp = api.client.post("/api/v1/departments", headers=headers, json=body)
        assert resp.status_code == 201
        dept_id = resp.json()["id"]
        assert api.users.get_by_id(responsible_id).department_id == dept_id

        reader = api.headers_for(responsible_id)
        assert api.client.get(f"/api/v1/departments/{dept_id}", headers=reader).json()["code"] == "MNT"
        assert api.client.get("/api/v1/departments", headers=reader).status_code == 200
        assert api.client.get("/api/v1/departments/count", headers=reader).json() == {"total": 1}

    def test_duplicate_code_is_409(self, api, admin_id) -> None:
        headers = api.headers_for(admin_id)
        api.client.post("/api/v1/departments", headers=headers, json={"name": "A", "code": "DUP"})
        resp = api.client.post("/api/v1/departments", headers=headers, json={"name": "B", "code": "DUP"})
        assert resp.status_code == 409

    def test_unknown_responsible_is_404(self, api, admin_id) -> None:
        body = {"name": "A", "code": "A", "responsible_id": 999}
        resp = api.client.post("/api/v1/departments", headers=api.headers_for(admin_id), json=body)
        assert resp.status_code == 404

    def test_update_and_delete(self, api, admin_id) -> None:
        headers = api.headers_for(admin_id)
        dept_id = api.inventory.create_department(Department(name="Old", code="OLD"))
        resp = api.client.put(f"/api/v1/departments/{dept_id}", headers=headers, json={"name": "New"})
        assert resp.status_code == 200
        assert resp.json()["name"] == "New"
        assert api.client.delete(f"/api/v1/departments/{dept_id}", headers=headers).status_code == 200
        assert api.client.get(f"/api/v1/departments/{dept_id}", headers=headers).status_code == 404
        assert api.client.delete(f"/api/v1/departments/{dept_id}", headers=headers).status_code == 404

    def test_mutations_are_admin_only(self, api, responsible_id) -> None:
        headers = api.headers_for(responsible_id)
        resp = api.client.post("/api/v1/departments", headers=headers, json={"name": "X", "code": "X"})
        assert resp.status_code == 403

