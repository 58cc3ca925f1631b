from urllib.parse import urlsplit

import pytest

from app.staffpanel.models import AuditEvent
from conftest import INERTIA, PASSWORD

JSON = {"Accept": "application/json"}


@pytest.fixture()
def mod_client(client, login):
    login("mod1@example.com")
    return client


def test_settings_root_redirects_to_profile(mod_client):
    r = mod_client.get("/internal/settings/")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/internal/settings/profile")


def test_profile_page(mod_client):
    r = mod_client.get("/internal/settings/profile", headers=INERTIA)
    page = r.json
    assert page["component"] == "settings/profile"
    assert page["props"]["profile"] == {"name": "Mo Dule", "email": "mod1@example.com"}
    assert page["props"]["mustVerifyEmail"] is False
    nav = page["props"]["contextualNavItems"]
    assert [(i["title"], i["current"]) for i in nav] == [("Profile", True), ("Password", False), ("Appearance", False)]


def test_appearance_page(mod_client):
    r = mod_client.get("/internal/settings/appearance", headers=INERTIA)
    assert r.json["component"] == "settings/appearance"


def test_update_profile_name(mod_client, csrf, find_user, outbox):
    r = mod_client.patch(
        "/internal/settings/profile",
        json={"name": "Mo Updated", "email": "mod1@example.com"},
        headers=csrf(),
    )
    assert r.status_code == 303
    assert r.headers["Location"].endswith("/internal/settings/profile")

    user = find_user("mod1@example.com")
    assert user.name == "Mo Updated"
    assert user.has_verified_email()
    assert any(m.subject == "Security alert: changes to your account" for m in outbox)

    flash = mod_client.get("/internal/settings/profile", headers=INERTIA).json["props"]["flash"]
    assert flash["success"] == "Profile updated."


def test_update_profile_email_requires_new_verification(mod_client, csrf, find_user, outbox):
    mod_client.patch(
        "/internal/settings/profile",
        json={"name": "Mo Dule", "email": "mo.new@example.com"},
        headers=csrf(),
    )
    user = find_user("mo.new@example.com")
    assert user is not None
    assert user.email_verified_at is None
    assert [m.to for m in outbox if m.subject == "Verify your email address"] == ["mo.new@example.com"]

    r = mod_client.get("/internal/dashboard")
    assert urlsplit(r.headers["Location"]).path == "/internal/verify-email"


def test_update_profile_validation(mod_client, csrf):
    r = mod_client.patch(
        "/internal/settings/profile",
        json={"name": "", "email": "admin@example.com"},
        headers=csrf(JSON),
    )
    assert r.status_code == 422
    assert r.json["errors"] == {
        "name": "The name field is required.",
        "email": "The email has already been taken.",
    }


def test_update_password(mod_client, csrf, login, db):
    r = mod_client.put(
        "/internal/settings/password",
        json={"current_password": PASSWORD, "password": "Another-pass7", "password_confirmation": "Another-pass7"},
        headers=csrf(),
    )
    assert r.status_code == 303
    assert db.query(AuditEvent).filter(AuditEvent.action == "staff_user.password_changed").count() == 1

    mod_client.post("/internal/logout")
    assert login("mod1@example.com").headers["Location"].endswith("/internal/login")
    assert login("mod1@example.com", "Another-pass7").headers["Location"].endswith("/internal/dashboard")


def test_update_password_checks_current(mod_client, csrf):
    r = mod_client.put(
        "/internal/settings/password",
        json={"current_password": "Wrong-pass1", "password": "Another-pass7", "password_confirmation": "Another-pass7"},
        headers=csrf(JSON),
    )
    assert r.status_code == 422
    assert r.json["errors"] == {"current_password": "The provided password does not match your current password."}


def test_update_password_enforces_policy(mod_client, csrf):
    r = mod_client.put(
        "/internal/settings/password",
        json={"current_password": PASSWORD, "password": "alllowercase1!", "password_confirmation": "alllowercase1!"},
        headers=csrf(JSON),
    )
    assert r.status_code == 422
    assert r.json["errors"] == {"password": "The password must contain at least one uppercase and one lowercase letter."}


def test_delete_account_requires_password(mod_client, csrf, find_user):
    r = mod_client.delete("/internal/settings/profile", json={"password": "Wrong-pass1"}, headers=csrf(JSON))
    assert r.status_code == 422
    assert find_user("mod1@example.com") is not None


def test_delete_account(mod_client, csrf, find_user):
    r = mod_client.delete("/internal/settings/profile", json={"password": PASSWORD}, headers=csrf())
    assert r.status_code == 303
    assert urlsplit(r.headers["Location"]).path == "/"
    assert find_user("mod1@example.com") is None

    r = mod_client.get("/internal/dashboard")
    assert r.headers["Location"].endswith("/internal/login")


def test_protected_account_cannot_delete_itself(client, login, csrf, find_user):
    login("admin@example.com")
    r = client.delete("/internal/settings/profile", json={"password": PASSWORD}, headers=csrf())
    assert r.status_code == 303
    assert find_user("admin@example.com") is not None

    flash = client.get("/internal/settings/profile", headers=INERTIA).json["props"]["flash"]
    assert flash["error"] == "Accounts with a protected role cannot be deleted."
