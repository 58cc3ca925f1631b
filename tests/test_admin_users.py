import pytest

from app.staffpanel.models import AuditEvent
from conftest import INERTIA

JSON = {"Accept": "application/json"}
NEW_PASSWORD = "Strong-pass9"


@pytest.fixture()
def admin_client(client, login):
    login("admin@example.com")
    return client


def _payload(**overrides):
    payload = {
        "name": "New Person",
        "email": "new.person@example.com",
        "password": NEW_PASSWORD,
        "password_confirmation": NEW_PASSWORD,
        "roles": ["MOD-02"],
    }
    payload.update(overrides)
    return payload


def test_user_list(admin_client):
    r = admin_client.get("/internal/admin/users", headers=INERTIA)
    assert r.status_code == 200
    page = r.json
    assert page["component"] == "modules/admin/user/list"
    users = page["props"]["users"]
    assert users["total"] == 3
    assert users["current_page"] == 1
    assert users["last_page"] == 1
    assert (users["from"], users["to"]) == (1, 3)
    assert [r["name"] for r in page["props"]["roles"]] == ["ADMIN", "DEV", "MOD-01", "MOD-02"]
    assert [b["title"] for b in page["props"]["breadcrumbs"]] == ["Administration", "User list"]
    assert [i["title"] for i in page["props"]["contextualNavItems"]] == ["Back to panel", "Create user"]


def test_user_list_filters_and_sorting(admin_client):
    r = admin_client.get("/internal/admin/users?search=mod1", headers=INERTIA)
    assert [u["email"] for u in r.json["props"]["users"]["data"]] == ["mod1@example.com"]
    assert r.json["props"]["filters"] == {"search": "mod1"}

    r = admin_client.get("/internal/admin/users?role=ADMIN", headers=INERTIA)
    assert [u["email"] for u in r.json["props"]["users"]["data"]] == ["admin@example.com"]

    r = admin_client.get("/internal/admin/users?sort_field=name&sort_direction=asc", headers=INERTIA)
    assert [u["name"] for u in r.json["props"]["users"]["data"]] == ["Ada Admin", "Mo Dule", "Una Verified"]


def test_user_list_pagination(admin_client):
    r = admin_client.get("/internal/admin/users?per_page=2&page=2&sort_field=email&sort_direction=asc", headers=INERTIA)
    users = r.json["props"]["users"]
    assert users["last_page"] == 2
    assert users["per_page"] == 2
    assert [u["email"] for u in users["data"]] == ["unverified@example.com"]
    assert (users["from"], users["to"]) == (3, 3)


def test_create_page(admin_client):
    r = admin_client.get("/internal/admin/users/create", headers=INERTIA)
    assert r.json["component"] == "modules/admin/user/create"
    assert [b["title"] for b in r.json["props"]["breadcrumbs"]] == ["Administration", "User list", "Create user"]


def test_store_user(admin_client, csrf, find_user, db, outbox):
    r = admin_client.post("/internal/admin/users", json=_payload(), headers=csrf())
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/internal/admin/users")

    user = find_user("new.person@example.com")
    assert user.role_names() == ["MOD-02"]
    assert user.has_verified_email()
    assert not any(m.subject == "Verify your email address" for m in outbox)
    assert db.query(AuditEvent).filter(AuditEvent.action == "staff_user.created").count() == 1

    flash = admin_client.get("/internal/admin/users", headers=INERTIA).json["props"]["flash"]
    assert flash["success"] == "User 'New Person' created successfully."
    assert flash["credentials"] == {"email": "new.person@example.com", "password": NEW_PASSWORD}


def test_store_unverified_user_sends_verification(admin_client, csrf, find_user, outbox):
    admin_client.post("/internal/admin/users", json=_payload(auto_verify_email=False), headers=csrf())
    assert not find_user("new.person@example.com").has_verified_email()
    assert [m.to for m in outbox if m.subject == "Verify your email address"] == ["new.person@example.com"]


def test_store_cannot_grant_protected_roles(admin_client, csrf, find_user):
    admin_client.post("/internal/admin/users", json=_payload(roles=["ADMIN", "MOD-01"]), headers=csrf())
    assert find_user("new.person@example.com").role_names() == ["MOD-01"]


def test_store_validation(admin_client, csrf):
    r = admin_client.post(
        "/internal/admin/users",
        json=_payload(name="Al", email="mod1@example.com", roles=[], password="short", password_confirmation="short"),
        headers=csrf(JSON),
    )
    assert r.status_code == 422
    assert r.json["errors"] == {
        "name": "The name must be at least 3 characters.",
        "email": "This email is already in use.",
        "roles": "Select at least one role.",
        "password": "The password must be at least 8 characters.",
    }


@pytest.mark.parametrize(
    "overrides, field, message",
    [
        ({"name": 12345}, "name", "The name must be a string."),
        ({"email": ["a@b.c"]}, "email", "The email must be a string."),
        ({"roles": 5}, "roles", "The roles must be a list of role names."),
        ({"roles": ["MOD-01", 7]}, "roles", "The roles must be a list of role names."),
        ({"password": 12345678, "password_confirmation": 12345678}, "password", "The password must be a string."),
    ],
)
def test_store_rejects_non_string_fields(admin_client, csrf, find_user, overrides, field, message):
    r = admin_client.post("/internal/admin/users", json=_payload(**overrides), headers=csrf(JSON))
    assert r.status_code == 422
    assert r.json["errors"] == {field: message}
    assert find_user("new.person@example.com") is None

def test_store_validation_redirects_back_with_errors(admin_client, csrf):
    r = admin_client.post(
        "/internal/admin/users",
        json=_payload(roles=["NOPE"]),
        headers=csrf({"Referer": "http://localhost/internal/admin/users/create"}),
    )
    assert r.status_code == 303
    assert r.headers["Location"] == "http://localhost/internal/admin/users/create"

    r = admin_client.get("/internal/admin/users/create", headers=INERTIA)
    assert r.json["props"]["errors"] == {"roles": "One of the selected roles is invalid."}


def test_edit_page(admin_client, find_user):
    user = find_user("mod1@example.com")
    r = admin_client.get(f"/internal/admin/users/{user.id}/edit", headers=INERTIA)
    props = r.json["props"]
    assert r.json["component"] == "modules/admin/user/edit"
    assert props["user"]["email"] == "mod1@example.com"
    assert props["user"]["roles"] == [{"id": user.roles[0].id, "name": "MOD-01"}]
    assert props["breadcrumbs"][-1] == {"title": "Edit user: Mo Dule", "href": f"/internal/admin/users/{user.id}/edit"}
    assert [i["title"] for i in props["contextualNavItems"]] == ["Back to panel", "Back to list"]


def test_edit_missing_user(admin_client):
    assert admin_client.get("/internal/admin/users/999/edit").status_code == 404


def test_update_user(admin_client, csrf, find_user, outbox):
    user = find_user("mod1@example.com")
    r = admin_client.put(
        f"/internal/admin/users/{user.id}",
        json={"name": "Mo Renamed", "email": "mod1@example.com", "roles": ["MOD-01", "MOD-02"]},
        headers=csrf(),
    )
    assert r.status_code == 303

    user = find_user("mod1@example.com")
    assert user.name == "Mo Renamed"
    assert user.role_names() == ["MOD-01", "MOD-02"]
    mail = next(m for m in outbox if m.subject == "Security alert: changes to your account")
    assert mail.to == "mod1@example.com"
    assert "Name: changed from 'Mo Dule' to 'Mo Renamed'." in mail.body


def test_update_keeps_password_when_blank(admin_client, csrf, find_user, login):
    user = find_user("mod1@example.com")
    admin_client.put(
        f"/internal/admin/users/{user.id}",
        json={"name": "Mo Dule", "email": "mod1@example.com", "roles": ["MOD-01"], "password": ""},
        headers=csrf(),
    )
    admin_client.post("/internal/logout")
    r = login("mod1@example.com")
    assert r.headers["Location"].endswith("/internal/dashboard")


def test_update_cannot_remove_protected_role(admin_client, csrf, find_user):
    admin = find_user("admin@example.com")
    r = admin_client.put(
        f"/internal/admin/users/{admin.id}",
        json={"name": "Ada Admin", "email": "admin@example.com", "roles": ["MOD-01"]},
        headers=csrf(JSON),
    )
    assert r.status_code == 422
    assert r.json["errors"] == {"roles": "Protected roles cannot be removed from an administrator."}


def test_update_missing_user(admin_client, csrf):
    r = admin_client.put("/internal/admin/users/999", json=_payload(), headers=csrf())
    assert r.status_code == 303
    flash = admin_client.get("/internal/admin/users", headers=INERTIA).json["props"]["flash"]
    assert flash["error"] == "User not found. The update could not be applied."


def test_destroy_user(admin_client, csrf, find_user, db):
    user = find_user("mod1@example.com")
    r = admin_client.delete(f"/internal/admin/users/{user.id}", headers=csrf())
    assert r.status_code == 303
    assert find_user("mod1@example.com") is None
    assert db.query(AuditEvent).filter(AuditEvent.action == "staff_user.deleted").count() == 1


def test_destroy_protected_user_is_refused(admin_client, csrf, find_user):
    admin = find_user("admin@example.com")
    r = admin_client.delete(f"/internal/admin/users/{admin.id}", headers=csrf())
    assert r.status_code == 303
    assert find_user("admin@example.com") is not None

    flash = admin_client.get("/internal/dashboard", headers=INERTIA).json["props"]["flash"]
    assert flash["error"] == "Users with protected roles (ADMIN or DEV) cannot be deleted."


def test_users_area_requires_admin_permission(client, login, csrf, find_user):
    login("mod1@example.com")
    victim = find_user("unverified@example.com")
    assert client.delete(f"/internal/admin/users/{victim.id}", headers=csrf()).status_code == 403
    assert find_user("unverified@example.com") is not None
