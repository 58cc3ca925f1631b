from datetime import datetime, timedelta

from app.staffpanel.models import Permission, Role, StaffUser
from app.staffpanel.orchestration import slug_from_module_path
from app.staffpanel.passwords import is_valid_email, password_expired, validate_password
from app.staffpanel.rbac import frontend_permissions
from app.staffpanel.route_filter import filter_routes
from app.staffpanel.security import load_token, make_token, network_prefix


def test_network_prefix():
    assert network_prefix("192.168.1.77") == "192.168.1.0/24"
    assert network_prefix("2001:db8::1") == "2001:db8::/64"
    assert network_prefix("not-an-ip") == "not-an-ip"
    assert network_prefix(None) == ""


def test_tokens_round_trip_and_expire(app):
    with app.app_context():
        token = make_token("password-reset", {"uid": 1})
        assert load_token("password-reset", token, 60) == {"uid": 1}
        assert load_token("other-salt", token, 60) is None
        assert load_token("password-reset", token + "x", 60) is None
        assert load_token("password-reset", token, -1) is None


def test_validate_password():
    assert validate_password("Good-pass1", "Good-pass1") == []
    assert validate_password("", "", required=False) == []
    assert validate_password(None, None) == ["The password field is required."]
    assert validate_password("Good-pass1", "Other-pass1") == ["The password confirmation does not match."]
    assert validate_password("NoSymbol12", "NoSymbol12") == ["The password must contain at least one symbol."]
    assert validate_password("No-digits", "No-digits") == ["The password must contain at least one number."]


def test_is_valid_email():
    assert is_valid_email("a.b@example.com")
    assert not is_valid_email("a.b@example")
    assert not is_valid_email("a b@example.com")


def test_password_expired():
    now = datetime(2026, 1, 31)
    user = StaffUser(password_changed_at=datetime(2026, 1, 1))
    assert not password_expired(user, 90, now=now)
    assert password_expired(user, 10, now=now)
    assert password_expired(StaffUser(password_changed_at=None), 90, now=now)
    assert not password_expired(StaffUser(password_changed_at=now - timedelta(days=89)), 90, now=now)


def test_slug_from_module_path():
    assert slug_from_module_path("app.staffpanel.modules.module01.admin") == "module01"
    assert slug_from_module_path("app.staffpanel.settings") == ""


def test_filter_routes():
    routes = {
        "routes.welcome": {},
        "routes.healthz": {},
        "auth.login": {},
        "auth.logout": {},
        "internal.dashboard": {},
    }
    assert sorted(filter_routes(routes, None)) == ["auth.login", "routes.welcome"]
    assert sorted(filter_routes(routes, StaffUser())) == ["auth.login", "auth.logout", "internal.dashboard", "routes.welcome"]


def test_frontend_permissions_hide_destructive_names():
    role = Role(name="EDITOR", permissions=[Permission(name="access-admin"), Permission(name="delete-users"), Permission(name="manage-roles")])
    user = StaffUser(is_active=True, roles=[role])
    assert frontend_permissions(user) == ["access-admin"]
    assert frontend_permissions(StaffUser(is_active=False, roles=[role])) == []
    assert frontend_permissions(None) == []
