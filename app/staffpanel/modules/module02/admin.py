from __future__ import annotations

from flask import Blueprint

from app.staffpanel.orchestration import ModuleOrchestrationController
from app.staffpanel.rbac import staff_guard

bp = Blueprint("module02", __name__, url_prefix="/module-02")

bp.before_request(staff_guard("access-module-02"))


class Module02PanelController(ModuleOrchestrationController):
    pass


bp.add_url_rule("/", "index", Module02PanelController.as_view("show_module_panel"))
