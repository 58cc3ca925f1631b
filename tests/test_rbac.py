import time

import pytest
from flask import g

from app.staffpanel.constants import INTENDED_URL_SESSION_KEY, PASSWORD_CONFIRMED_SESSION_KEY
from app.staffpanel.rbac import require_password_confirmed, require_permission, require_verified


@pytest.fixture(autouse=True)
def guarded_routes(app):
    @app.get("/_guarded/verified")
    @require_verified
    def verified_only():
        return "verified"

    @app.get("/_guarded/admin")
    @require_permission("access-admin")
    def admin_only():
        return "admin"

    @app.get("/_guarded/sensitive")
    @require_password_confirmed
    def sensitive():
        return "sensitive"


@pytest.mark.parametrize("path", ["/_guarded/verified", "/_guarded/admin", "/_guarded/sensitive"])
def test_guests_are_sent_to_login(client, path):
    r = client.get(path)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/internal/login")
    with client.session_transaction() as sess:
        assert sess[INTENDED_URL_SESSION_KEY] == path


def test_require_verified(client, login):
    login("unverified@example.com")
    r = client.get("/_guarded/verified")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/internal/verify-email")

    client.post("/internal/logout")
    login("mod1@example.com")
    assert client.get("/_guarded/verified").get_data(as_text=True) == "verified"


def test_require_permission(client, login):
    login("mod1@example.com")
    with client:
        r = client.get("/_guarded/admin")
        assert r.status_code == 403
        assert g.missing_permission == "access-admin"

    client.post("/internal/logout")
    login("admin@example.com")
    assert client.get("/_guarded/admin").get_data(as_text=True) == "admin"


def test_require_password_confirmed(app, client, login):
    login("mod1@example.com")
    r = client.get("/_guarded/sensitive")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/internal/confirm-password")

    timeout = app.config["PASSWORD_CONFIRM_TIMEOUT"]
    with client.session_transaction() as sess:
        sess[PASSWORD_CONFIRMED_SESSION_KEY] = time.time() - timeout - 1
    assert client.get("/_guarded/sensitive").headers["Location"].endswith("/internal/confirm-password")

    with client.session_transaction() as sess:
        sess[PASSWORD_CONFIRMED_SESSION_KEY] = time.time()
    r = client.get("/_guarded/sensitive")
    assert r.status_code == 200
    assert r.get_data(as_text=True) == "sensitive"
