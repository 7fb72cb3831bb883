"""Tests for user management endpoints."""
from dairyfarm.access import PERMISSION_NAMES
from dairyfarm.constants import Collections
from dairyfarm.errors import DependencyError
from dairyfarm.models import Identity
from dairyfarm.store import DocumentStore

from .utils import PASSWORD, fetch, login


def _new_user(client, headers, email="worker@farm.test", **overrides):
    payload = {
        "email": email,
        "password": PASSWORD,
        "firstName": "Peter",
        "lastName": "Otieno",
        "role": "farmer",
        "assignedFarm": "kisii",
    }
    payload.update(overrides)
    return client.post("/users", json=payload, headers=headers)


def test_admin_creates_farmer_with_default_permissions(client, admin_headers):
    response = _new_user(client, admin_headers)
    assert response.status_code == 201
    user = response.json()["data"]["user"]
    assert user["role"] == "farmer"
    assert user["assignedFarm"] == "kisii"
    assert set(user["permissions"]) == set(PERMISSION_NAMES)
    assert user["permissions"]["canAddMilkRecords"] is True
    assert user["permissions"]["canDeleteCows"] is False

    # The new account can log in straight away
    assert login(client, "worker@farm.test", PASSWORD)


def test_farmer_cannot_manage_users(client, farmer_headers):
    assert client.get("/users", headers=farmer_headers).status_code == 403
    assert _new_user(client, farmer_headers).status_code == 403


def test_list_users_filters(client, admin_headers, farmer_user, kisii_farmer_user):
    all_users = client.get("/users", headers=admin_headers).json()["data"]["users"]
    assert len(all_users) == 3

    farmers = client.get("/users", params={"role": "farmer"}, headers=admin_headers).json()["data"]["users"]
    assert {u["email"] for u in farmers} == {"farmer@farm.test", "kisii@farm.test"}

    by_farm = client.get("/users/farm/kisii", headers=admin_headers).json()["data"]["users"]
    assert [u["email"] for u in by_farm] == ["kisii@farm.test"]


def test_get_missing_user(client, admin_headers):
    response = client.get("/users/does-not-exist", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "User not found"


def test_role_change_resets_permissions(client, admin_headers, farmer_user, test_db):
    response = client.put(f"/users/{farmer_user['id']}", json={"role": "admin"}, headers=admin_headers)
    assert response.status_code == 200
    stored = fetch(test_db, Collections.USERS, farmer_user["id"])
    assert stored["role"] == "admin"
    assert all(stored["permissions"].values())


def test_update_permissions_merges(client, admin_headers, farmer_user):
    response = client.put(
        f"/users/{farmer_user['id']}/permissions",
        json={"permissions": {"canEditCows": True}},
        headers=admin_headers,
    )
    assert response.status_code == 200
    permissions = response.json()["data"]["user"]["permissions"]
    assert permissions["canEditCows"] is True
    assert permissions["canViewCows"] is True
    assert permissions["canManageUsers"] is False


def test_unknown_permission_rejected(client, admin_headers, farmer_user):
    response = client.put(
        f"/users/{farmer_user['id']}/permissions",
        json={"permissions": {"canLaunchRockets": True}},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert "canLaunchRockets" in response.json()["error"]


def test_delete_user_removes_profile_and_identity(client, admin_headers, farmer_user, test_db):
    response = client.delete(f"/users/{farmer_user['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert fetch(test_db, Collections.USERS, farmer_user["id"]) is None

    db = test_db()
    assert db.get(Identity, farmer_user["id"]) is None
    db.close()


def test_admin_cannot_delete_self(client, admin_headers, admin_user):
    response = client.delete(f"/users/{admin_user['id']}", headers=admin_headers)
    assert response.status_code == 400


def test_disabled_user_is_refused(client, admin_headers, farmer_user, farmer_headers):
    client.put(f"/users/{farmer_user['id']}", json={"isActive": False}, headers=admin_headers)
    response = client.get("/cows", headers=farmer_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "Account is disabled"


def test_failed_profile_write_removes_identity(client, admin_headers, test_db, monkeypatch):
    original_create = DocumentStore.create

    def failing_create(self, collection, doc, doc_id=None):
        if collection == Collections.USERS:
            raise DependencyError("Failed to create users")
        return original_create(self, collection, doc, doc_id)

    monkeypatch.setattr(DocumentStore, "create", failing_create)
    assert _new_user(client, admin_headers).status_code == 500

    db = test_db()
    assert db.query(Identity).filter_by(email="worker@farm.test").first() is None
    db.close()

    # The email is free again once the store recovers
    monkeypatch.undo()
    assert _new_user(client, admin_headers).status_code == 201
