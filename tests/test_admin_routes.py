"""HTTP tests for /api/admin and /api/admin-setup."""

import pytest

from cyclofit.shared.admin.setup import create_admin_user, get_admin_counts
from cyclofit.shared.auth.database import User

from conftest import ADMIN_API_KEY, auth_headers, create_user, make_ai_payload


@pytest.fixture
def analysis(service, user):
    return service.save_analysis(
        user_id=user.id,
        video_bytes=b"video",
        content_type="video/mp4",
        filename="ride.mp4",
        user_height_cm=178,
        bike_type="tt",
        ai_payload=make_ai_payload(),
    )


class TestAccess:
    """Admin routes are closed to regular users."""

    @pytest.mark.parametrize("path", ["/api/admin/dashboard/stats", "/api/admin/users", "/api/admin/analyses"])
    def test_regular_user_forbidden(self, client, headers, path):
        assert client.get(path, headers=headers).status_code == 403

    def test_anonymous_unauthorized(self, client):
        assert client.get("/api/admin/users").status_code == 401


class TestDashboard:

    def test_stats(self, client, admin_headers, analysis, user):
        data = client.get("/api/admin/dashboard/stats", headers=admin_headers).json()["data"]

        assert data["overview"]["total_users"] == 2
        assert data["overview"]["total_analyses"] == 1
        assert data["overview"]["analyses_last_7_days"] == 1
        assert data["charts"]["analysis_growth"][0]["count"] == 1
        assert data["most_active_users"][0]["user_id"] == user.id
        assert data["most_active_users"][0]["analysis_count"] == 1

    def test_system_health(self, client, admin_headers):
        data = client.get("/api/admin/system/health", headers=admin_headers).json()["data"]
        assert data["status"] == "healthy"
        assert data["database"]["status"] == "connected"
        assert data["storage"]["connected"] is True


class TestUserManagement:

    def test_list_and_search(self, client, admin_headers, user, other_user, analysis):
        data = client.get("/api/admin/users", headers=admin_headers, params={"search": "other"}).json()["data"]
        assert [u["email"] for u in data["users"]] == [other_user.email]

        data = client.get("/api/admin/users", headers=admin_headers, params={"role": "user"}).json()["data"]
        counts = {u["email"]: u["analysis_count"] for u in data["users"]}
        assert counts == {user.email: 1, other_user.email: 0}
        assert data["pagination"] == {"current_page": 1, "total_pages": 1, "total": 2, "limit": 20}

    def test_pagination(self, client, admin_headers, user, other_user):
        data = client.get("/api/admin/users", headers=admin_headers, params={"limit": 2, "page": 2}).json()["data"]
        assert len(data["users"]) == 1
        assert data["pagination"]["total_pages"] == 2

    def test_toggle_status(self, client, admin_headers, user, db):
        response = client.patch(f"/api/admin/users/{user.id}/status", headers=admin_headers)
        assert response.json()["data"]["is_active"] is False
        db.expire_all()
        assert db.get(User, user.id).is_active is False

        inactive = client.get("/api/admin/users", headers=admin_headers, params={"status": "inactive"}).json()
        assert [u["id"] for u in inactive["data"]["users"]] == [user.id]

    def test_cannot_deactivate_super_admin(self, client, admin_headers, db):
        boss = create_user(db, email="boss@example.com", role="super_admin")
        assert client.patch(f"/api/admin/users/{boss.id}/status", headers=admin_headers).status_code == 403

    def test_change_role(self, client, admin_headers, user):
        response = client.patch(f"/api/admin/users/{user.id}/role", headers=admin_headers, json={"role": "admin"})
        assert response.status_code == 200
        assert response.json()["data"]["role"] == "admin"

    def test_invalid_role(self, client, admin_headers, user):
        response = client.patch(f"/api/admin/users/{user.id}/role", headers=admin_headers, json={"role": "owner"})
        assert response.status_code == 400

    def test_only_super_admin_grants_super_admin(self, client, admin_headers, user, db, settings):
        path = f"/api/admin/users/{user.id}/role"
        assert client.patch(path, headers=admin_headers, json={"role": "super_admin"}).status_code == 403

        boss = create_user(db, email="boss@example.com", role="super_admin")
        assert client.patch(path, headers=auth_headers(boss, settings), json={"role": "super_admin"}).status_code == 200


class TestAnalysisManagement:
    """Admins see and delete every analysis, regardless of owner."""

    def test_list_with_owner(self, client, admin_headers, analysis, user):
        data = client.get("/api/admin/analyses", headers=admin_headers).json()["data"]
        assert data["analyses"][0]["id"] == analysis.id
        assert data["analyses"][0]["user"]["email"] == user.email

    def test_filter_by_bike_type(self, client, admin_headers, analysis):
        data = client.get("/api/admin/analyses", headers=admin_headers, params={"bike_type": "road"}).json()["data"]
        assert data["analyses"] == []

    def test_filter_by_date(self, client, admin_headers, analysis):
        params = {"start_date": "2000-01-01T00:00:00", "end_date": "2000-12-31T00:00:00"}
        data = client.get("/api/admin/analyses", headers=admin_headers, params=params).json()["data"]
        assert data["pagination"]["total"] == 0

    def test_detail_and_media(self, client, admin_headers, analysis):
        assert client.get(f"/api/admin/analyses/{analysis.id}", headers=admin_headers).json()["data"]["id"] == analysis.id
        assert client.get(f"/api/admin/analyses/{analysis.id}/processed-video", headers=admin_headers).status_code == 200
        assert len(client.get(f"/api/admin/analyses/{analysis.id}/keyframes", headers=admin_headers).json()["keyframes"]) == 3

    def test_delete(self, client, admin_headers, analysis, store):
        assert client.delete(f"/api/admin/analyses/{analysis.id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/admin/analyses/{analysis.id}", headers=admin_headers).status_code == 404
        assert store.objects == {}

    def test_delete_unknown(self, client, admin_headers):
        assert client.delete("/api/admin/analyses/missing", headers=admin_headers).status_code == 404


class TestInbox:

    def test_contacts_and_status(self, client, admin_headers):
        client.post("/api/contact", json={
            "name": "Eddy", "email": "eddy@example.com", "subject": "Fit", "message": "Please check my fit results.",
        })
        contacts = client.get("/api/admin/contacts", headers=admin_headers).json()["data"]["contacts"]
        assert len(contacts) == 1

        response = client.patch(
            f"/api/admin/contacts/{contacts[0]['id']}/status", headers=admin_headers, json={"status": "read"}
        )
        assert response.json()["data"]["status"] == "read"
        filtered = client.get("/api/admin/contacts", headers=admin_headers, params={"status": "new"}).json()
        assert filtered["data"]["contacts"] == []

    def test_subscribers(self, client, admin_headers):
        client.post("/api/newsletter", json={"email": "fan@example.com"})
        data = client.get("/api/admin/subscribers", headers=admin_headers).json()["data"]
        assert [s["email"] for s in data["subscribers"]] == ["fan@example.com"]


class TestAdminSetup:
    """Bootstrap of the first admin account."""

    def test_check_admins(self, client, db):
        assert client.get("/api/admin-setup/check-admins").json()["data"]["has_admins"] is False
        create_user(db, email="boss@example.com", role="super_admin")
        data = client.get("/api/admin-setup/check-admins").json()["data"]
        assert data == {"has_admins": True, "has_super_admin": True, "total_admins": 1, "super_admins": 1}

    def test_create_admin_requires_key(self, client):
        payload = {"first_name": "Ada", "last_name": "Admin", "email": "ada@example.com", "password": "admin-password"}
        assert client.post("/api/admin-setup/create-admin", json=payload).status_code == 401

        response = client.post("/api/admin-setup/create-admin", json=payload, headers={"X-API-Key": ADMIN_API_KEY})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["role"] == "admin"
        assert data["is_email_verified"] is True
        assert client.get("/api/admin/users", headers={"Authorization": f"Bearer {data['token']}"}).status_code == 200

    def test_create_admin_duplicate(self, db, user):
        with pytest.raises(ValueError):
            create_admin_user(db, user.email, "admin-password", "Dup", "User")

    def test_create_admin_bad_role(self, db):
        with pytest.raises(ValueError):
            create_admin_user(db, "x@example.com", "admin-password", "X", "Y", role="user")
        assert get_admin_counts(db)["total_admins"] == 0
