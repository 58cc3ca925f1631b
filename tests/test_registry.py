import json

import pytest

from app.staffpanel.models import Permission, Role, StaffUser
from app.staffpanel.registry import ModuleRegistryService, read_statuses, studly


def _user(*roles):
    user = StaffUser(name="Test", email="t@example.com", password_hash="x", is_active=True)
    user.roles = list(roles)
    return user


def _role(name, *permissions):
    role = Role(name=name, guard_name="staff")
    role.permissions = [Permission(name=p, guard_name="staff") for p in permissions]
    return role


@pytest.fixture()
def registry(tmp_path):
    path = tmp_path / "statuses.json"
    path.write_text(json.dumps({"Admin": True, "Module01": True, "Module02": False}), encoding="utf-8")
    return ModuleRegistryService(path)


def test_studly():
    assert studly("module01") == "Module01"
    assert studly("user_reports") == "UserReports"
    assert studly("audit-log") == "AuditLog"


def test_read_statuses(tmp_path):
    assert read_statuses(tmp_path / "missing.json") == {}
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert read_statuses(broken) == {}


def test_discovery_orders_modules(registry):
    assert [(m.name, m.slug, m.order) for m in registry.all_modules()] == [
        ("Admin", "admin", 0),
        ("Module01", "module01", 10),
        ("Module02", "module02", 20),
    ]


def test_disabled_modules_are_excluded(registry):
    assert [m.name for m in registry.get_all_enabled_modules()] == ["Admin", "Module01"]


def test_modules_missing_from_statuses_are_enabled(tmp_path):
    registry = ModuleRegistryService(tmp_path / "nothing.json")
    assert [m.name for m in registry.get_all_enabled_modules()] == ["Admin", "Module01", "Module02"]


def test_find(registry):
    assert registry.find("module01").name == "Module01"
    assert registry.find("ADMIN").slug == "admin"
    assert registry.find("reports") is None


def test_module_config(registry):
    assert registry.get_module_config("Module01")["base_permission"] == "access-module-01"
    assert registry.get_module_config("unknown") == {}

    registry.clear_config_cache()
    assert registry.get_module_config("admin")["functional_name"] == "Administration"


def test_access_by_permission(registry):
    module01 = registry.find("module01")
    admin = registry.find("admin")
    user = _user(_role("MOD-01", "access-module-01"))

    assert registry.can_user_access_module(user, module01)
    assert not registry.can_user_access_module(user, admin)
    assert [m.name for m in registry.get_available_modules_for_user(user)] == ["Module01"]


def test_protected_roles_access_everything_enabled(registry):
    user = _user(_role("ADMIN"))
    assert [m.name for m in registry.get_available_modules_for_user(user)] == ["Admin", "Module01"]


def test_inactive_user_has_no_module_permissions(registry):
    user = _user(_role("MOD-01", "access-module-01"))
    user.is_active = False
    assert not registry.can_user_access_module(user, registry.find("module01"))


def test_accessible_modules_without_user(registry):
    assert [m.name for m in registry.get_accessible_modules()] == ["Admin", "Module01"]


def test_global_nav_items(registry):
    assert [i["route_name"] for i in registry.get_global_nav_items()] == [
        "internal.settings.profile.edit",
        "internal.settings.password.edit",
        "internal.settings.appearance",
    ]
