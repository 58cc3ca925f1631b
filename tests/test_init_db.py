import pytest
from werkzeug.security import check_password_hash

from app.staffpanel.db import build_engine, make_sessionmaker
from app.staffpanel.models import Base, Permission, Role, StaffUser
from scripts.init_db import seed, staff_users_from_env


@pytest.fixture()
def session(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path/'seed.db'}")
    Base.metadata.create_all(bind=engine)
    s = make_sessionmaker(engine)()
    yield s
    s.close()
    engine.dispose()


def test_staff_users_from_env():
    env = {
        "USER_STAFF_1_EMAIL": " Root@Example.com ",
        "USER_STAFF_1_PASSWORD": "Root-pass1",
        "USER_STAFF_1_NAME": "Root",
        "USER_STAFF_1_ROLE": "DEV",
        "USER_STAFF_1_FORCE_PASSWORD_UPDATE": "true",
        "USER_STAFF_2_EMAIL": "nopassword@example.com",
        "USER_STAFF_3_EMAIL": "third@example.com",
        "USER_STAFF_3_PASSWORD": "Third-pass1",
    }
    assert staff_users_from_env(env) == [
        {
            "email": "root@example.com",
            "password": "Root-pass1",
            "name": "Root",
            "role": "DEV",
            "force_password_update": True,
        },
        {
            "email": "third@example.com",
            "password": "Third-pass1",
            "name": "User 3",
            "role": None,
            "force_password_update": False,
        },
    ]


def test_staff_users_from_env_respects_max():
    env = {"USER_STAFF_MAX": "1", "USER_STAFF_2_EMAIL": "b@example.com", "USER_STAFF_2_PASSWORD": "B-pass123"}
    assert staff_users_from_env(env) == []


def test_seed_roles_and_permissions(session):
    seed(session, [])
    session.commit()

    roles = {r.name: sorted(p.name for p in r.permissions) for r in session.query(Role).all()}
    assert roles == {
        "ADMIN": ["access-admin", "access-module-01", "access-module-02"],
        "DEV": ["access-admin", "access-module-01", "access-module-02"],
        "MOD-01": ["access-module-01"],
        "MOD-02": ["access-module-02"],
    }
    assert session.query(Permission).count() == 3


def test_seed_is_idempotent(session):
    users = [{"email": "root@example.com", "password": "Root-pass1", "name": "Root", "role": "DEV"}]
    assert seed(session, users) == {"created": 1, "updated": 0, "assigned_roles": 1}
    session.commit()
    assert seed(session, users) == {"created": 0, "updated": 0, "assigned_roles": 0}
    session.commit()

    assert session.query(Role).count() == 4
    user = session.query(StaffUser).one()
    assert user.role_names() == ["DEV"]
    assert user.has_verified_email()


def test_seed_only_overwrites_password_when_forced(session):
    seed(session, [{"email": "root@example.com", "password": "Root-pass1", "name": "Root", "role": None}])
    session.commit()

    seed(session, [{"email": "root@example.com", "password": "Other-pass2", "name": "Root", "role": None}])
    session.commit()
    user = session.query(StaffUser).one()
    assert check_password_hash(user.password_hash, "Root-pass1")

    result = seed(
        session,
        [{"email": "root@example.com", "password": "Other-pass2", "name": "Root", "role": None, "force_password_update": True}],
    )
    session.commit()
    assert result["updated"] == 1
    assert check_password_hash(session.query(StaffUser).one().password_hash, "Other-pass2")


def test_seed_skips_unknown_role(session):
    result = seed(session, [{"email": "x@example.com", "password": "X-pass1234", "name": "X", "role": "GHOST"}])
    assert result == {"created": 1, "updated": 0, "assigned_roles": 0}
