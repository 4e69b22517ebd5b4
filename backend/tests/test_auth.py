# Overview: Pytest coverage for login, sessions, branch selection and permissions.

from datetime import timedelta

import pytest

from gympos.extensions import db
from gympos.models import SessionToken
from gympos.services import auth_service, permission_service, session_service
from gympos.services.auth_service import PasswordValidationError
from gympos.time_utils import utcnow

from conftest import auth_headers, get_auth_token


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = auth_service.hash_password("Password123!", rounds=4)

        assert hashed != "Password123!"
        assert auth_service.verify_password("Password123!", hashed)
        assert not auth_service.verify_password("wrong-password", hashed)

    def test_short_password_rejected(self):
        with pytest.raises(PasswordValidationError):
            auth_service.hash_password("short")

    def test_malformed_hash_never_matches(self):
        assert not auth_service.verify_password("Password123!", "not-a-bcrypt-hash")


class TestLogin:

    def test_login_returns_token_and_context(self, client, admin_user, branch):
        resp = client.post("/api/auth/login", json={"email": "ADMIN@gympos.test", "password": "Password123!"})

        assert resp.status_code == 200
        assert len(resp.json["token"]) == 64
        assert resp.json["user"]["email"] == "admin@gympos.test"
        assert resp.json["selected_branch_id"] == branch.id
        assert [b["id"] for b in resp.json["branches"]] == [branch.id]
        assert "MANAGE_USERS" in resp.json["permissions"]

    def test_bad_credentials(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"email": admin_user.email, "password": "nope-nope"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        assert client.post("/api/auth/login", json={"email": "x@y.z"}).status_code == 400

    def test_inactive_user_cannot_login(self, client, staff_user):
        staff_user.is_active = False
        db.session.commit()

        assert get_auth_token(client, "staff@gympos.test") is None

    def test_me_and_logout(self, client, staff_user):
        token = get_auth_token(client, staff_user.email)
        headers = auth_headers(token)

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json["permissions"] == ["MANAGE_SALES", "VIEW_INVENTORY"]

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_garbage_token(self, client, db_session):
        assert client.get("/api/auth/me", headers=auth_headers("abc")).status_code == 401


class TestSessions:

    def test_idle_session_is_revoked(self, staff_user):
        session, token = session_service.create_session(staff_user.id)
        session.last_used_at = utcnow() - timedelta(hours=3)
        db.session.commit()

        assert session_service.validate_session(token) is None
        db.session.expire_all()
        assert db.session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_expired_session(self, staff_user):
        session, token = session_service.create_session(staff_user.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()

        assert session_service.validate_session(token) is None

    def test_session_carries_selected_branch(self, staff_user, branch):
        _, token = session_service.create_session(staff_user.id)

        context = session_service.validate_session(token)
        assert context.branch_id == branch.id
        assert context.user.id == staff_user.id


class TestSelectBranch:

    def test_switch_to_member_branch(self, client, admin_user, other_branch):
        from gympos.services import branch_service
        branch_service.add_user_to_branch(admin_user.id, other_branch.id)
        headers = auth_headers(get_auth_token(client, admin_user.email))

        resp = client.post("/api/auth/select-branch", headers=headers, json={"branch_id": other_branch.id})

        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=headers).json["selected_branch_id"] == other_branch.id

    def test_switch_to_foreign_branch_is_forbidden(self, client, staff_headers, other_branch):
        resp = client.post("/api/auth/select-branch", headers=staff_headers, json={"branch_id": other_branch.id})
        assert resp.status_code == 403


class TestPermissions:

    def test_role_permissions(self, admin_user, staff_user):
        assert permission_service.user_has_permission(admin_user.id, "MANAGE_USERS")
        assert not permission_service.user_has_permission(staff_user.id, "MANAGE_INVENTORY")
        assert permission_service.get_user_permissions(staff_user.id) == {"VIEW_INVENTORY", "MANAGE_SALES"}

    def test_user_without_role_has_nothing(self, setup_roles, branch):
        user = auth_service.create_user("Guest", "guest@gympos.test", "Password123!", bcrypt_rounds=4)
        assert permission_service.get_user_permissions(user.id) == set()

    def test_seeding_is_idempotent(self, setup_roles):
        assert permission_service.initialize_permissions() == 0


class TestCompaniesAndBranches:

    def test_admin_creates_company_and_branch(self, client, admin_headers):
        resp = client.post("/api/companies", headers=admin_headers, json={
            "name": "Second Gym Co", "registration_number": "REG-200",
            "vat_number": "VAT-200", "address": "2 Side Street",
        })
        assert resp.status_code == 201
        company_id = resp.json["id"]

        resp = client.post("/api/branches", headers=admin_headers, json={"company_id": company_id, "name": "Harbour"})
        assert resp.status_code == 201
        assert resp.json["company_name"] == "Second Gym Co"

        listed = client.get(f"/api/branches?company_id={company_id}", headers=admin_headers)
        assert [b["name"] for b in listed.json] == ["Harbour"]

    def test_duplicate_registration_conflicts(self, client, admin_headers, company):
        resp = client.post("/api/companies", headers=admin_headers, json={
            "name": "Copycat", "registration_number": company.registration_number,
            "vat_number": "VAT-NEW", "address": "x",
        })
        assert resp.status_code == 409

    def test_staff_cannot_create_branch(self, client, staff_headers, company):
        resp = client.post("/api/branches", headers=staff_headers, json={"company_id": company.id, "name": "Nope"})
        assert resp.status_code == 403


def test_health(client, setup_roles):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json["status"] == "healthy"
