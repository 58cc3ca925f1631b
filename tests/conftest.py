import json
from datetime import datetime

import pytest
from werkzeug.security import generate_password_hash

from app.staffpanel import create_app
from app.staffpanel.db import session_scope
from app.staffpanel.models import Base, StaffUser
from scripts.init_db import seed

PASSWORD = "Secret-pass1"
INERTIA = {"X-Inertia": "true"}


@pytest.fixture()
def statuses_file(tmp_path):
    path = tmp_path / "modules_statuses.json"
    path.write_text(json.dumps({"Admin": True, "Module01": True, "Module02": True}), encoding="utf-8")
    return path


@pytest.fixture()
def app(tmp_path, monkeypatch, statuses_file):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("MAIL_BACKEND", "memory")
    monkeypatch.setenv("MODULE_STATUSES_PATH", str(statuses_file))
    for k in ("ASSET_VERSION", "LOGIN_MAX_ATTEMPTS", "SESSION_FORCE_LOGOUT_ON_IP_CHANGE"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    app.config["TESTING"] = True

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        seed(
            s,
            [
                {"email": "admin@example.com", "password": PASSWORD, "name": "Ada Admin", "role": "ADMIN"},
                {"email": "mod1@example.com", "password": PASSWORD, "name": "Mo Dule", "role": "MOD-01"},
            ],
        )
        s.add(
            StaffUser(
                name="Una Verified",
                email="unverified@example.com",
                password_hash=generate_password_hash(PASSWORD),
                is_active=True,
                email_verified_at=None,
                password_changed_at=datetime.utcnow(),
            )
        )

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def outbox(app):
    return app.extensions["mailer"].outbox


@pytest.fixture()
def login(client):
    def _login(email, password=PASSWORD):
        return client.post("/internal/login", data={"email": email, "password": password})

    return _login


@pytest.fixture()
def csrf(client):
    """Headers carrying the session's CSRF token (a GET must have happened first, or a login)."""

    def _headers(extra=None):
        with client.session_transaction() as sess:
            token = sess.get("csrf_token")
            if not token:
                token = "test-csrf-token"
                sess["csrf_token"] = token
        return {"X-CSRF-Token": token, **(extra or {})}

    return _headers


@pytest.fixture()
def db(app):
    """Session for assertions outside a request."""
    s = app.extensions["sqlalchemy_sessionmaker"]()
    yield s
    s.close()


@pytest.fixture()
def find_user(db):
    def _find(email):
        db.rollback()
        return db.query(StaffUser).filter(StaffUser.email == email).one_or_none()

    return _find
