from conftest import INERTIA


def _page(client, path):
    r = client.get(path, headers=INERTIA)
    assert r.status_code == 200, r.data
    return r.json


def test_admin_dashboard(client, login):
    login("admin@example.com")
    page = _page(client, "/internal/dashboard")
    props = page["props"]

    assert page["component"] == "internal/dashboard"
    assert props["accessibleModules"] == ["Admin", "Module01", "Module02"]
    assert props["restrictedModules"] == []
    assert all(card["canAccess"] for card in props["modules"])
    assert props["breadcrumbs"] == [{"title": "Dashboard", "href": "/internal/dashboard"}]
    assert [i["title"] for i in props["moduleNavItems"]] == ["Administration", "Generic module 1", "Generic module 2"]
    assert [i["title"] for i in props["globalNavItems"]] == ["Profile", "Password", "Appearance"]
    assert props["passwordChangeRequired"] is False
    assert props["sessionInfo"]["ip"] == "127.0.0.1"


def test_restricted_dashboard(client, login):
    login("mod1@example.com")
    props = _page(client, "/internal/dashboard")["props"]

    assert props["accessibleModules"] == ["Module01"]
    assert props["restrictedModules"] == ["Admin", "Module02"]
    assert [(c["name"], c["canAccess"]) for c in props["modules"]] == [
        ("Administration", False),
        ("Generic module 1", True),
        ("Generic module 2", False),
    ]
    assert [i["title"] for i in props["moduleNavItems"]] == ["Generic module 1"]
    assert props["auth"]["can"] == {"access-module-01": True}


def test_shared_routes_follow_the_user(client, login):
    login("mod1@example.com")
    routes = _page(client, "/internal/dashboard")["props"]["routes"]
    assert routes["internal.dashboard"]["uri"] == "/internal/dashboard"
    assert routes["internal.admin.users.edit"]["parameters"] == ["user_id"]
    assert "routes.healthz" not in routes


def test_expired_password_is_flagged(client, login, db, find_user):
    from datetime import datetime, timedelta

    user = find_user("mod1@example.com")
    user.password_changed_at = datetime.utcnow() - timedelta(days=365)
    db.commit()

    login("mod1@example.com")
    props = _page(client, "/internal/dashboard")["props"]
    assert props["passwordChangeRequired"] is True


def test_module_panel(client, login):
    login("mod1@example.com")
    page = _page(client, "/internal/module-01/")
    props = page["props"]

    assert page["component"] == "modules/module01/index"
    assert props["pageTitle"] == "Generic module 1"
    assert props["description"] == "Generic module for demonstration purposes."
    assert [(s["key"], s["value"]) for s in props["stats"]] == [("panel_items", 1), ("contextual_links", 1)]
    assert [(i["name"], i["route_name"]) for i in props["panelItems"]] == [("Sample item 1", "internal.module01.index")]
    assert props["contextualNavItems"] == [
        {
            "title": "Sample panel",
            "icon": "LayoutDashboard",
            "permission": "access-module-01",
            "href": "/internal/module-01/",
            "current": True,
        }
    ]
    assert props["breadcrumbs"] == [{"title": "Generic module 1", "href": "/internal/module-01/"}]
    assert props["globalNavItems"] == []


def test_module_panel_resolves_refs(client, login):
    login("admin@example.com")
    props = _page(client, "/internal/module-02/")["props"]
    assert [i["title"] for i in props["contextualNavItems"]] == ["Control panel"]


def test_module_without_permission_is_forbidden(client, login):
    login("mod1@example.com")
    assert client.get("/internal/module-02/").status_code == 403
    assert client.get("/internal/admin/").status_code == 403
    r = client.get("/internal/admin/users", headers=INERTIA)
    assert r.status_code == 403
    assert r.json["props"]["status"] == 403


def test_admin_panel(client, login):
    login("admin@example.com")
    page = _page(client, "/internal/admin/")
    props = page["props"]

    assert page["component"] == "modules/admin/index"
    assert {s["key"]: s["value"] for s in props["stats"]} == {"total_users": 3, "total_roles": 4}
    assert [i["title"] for i in props["contextualNavItems"]] == ["Administration", "User list", "Create user"]
    assert props["breadcrumbs"] == [{"title": "Administration", "href": "/internal/admin/"}]
    assert props["panelItems"][0]["name"] == "User list"
    assert any(a["title"] == "Signed in" for a in props["recentActivity"])
