import json

import pytest

from conftest import INERTIA


@pytest.fixture()
def statuses_file(tmp_path):
    path = tmp_path / "modules_statuses.json"
    path.write_text(json.dumps({"Admin": True, "Module01": True, "Module02": False}), encoding="utf-8")
    return path


def test_disabled_module_has_no_routes(client, login):
    login("admin@example.com")
    assert client.get("/internal/module-02/").status_code == 404
    assert client.get("/internal/module-01/").status_code == 200


def test_disabled_module_is_left_off_the_dashboard(client, login):
    login("admin@example.com")
    props = client.get("/internal/dashboard", headers=INERTIA).json["props"]
    assert props["accessibleModules"] == ["Admin", "Module01"]
    assert [c["name"] for c in props["modules"]] == ["Administration", "Generic module 1"]
    assert "internal.module02.index" not in props["routes"]
