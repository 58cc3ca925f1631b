from __future__ import annotations

from flask import Blueprint

from app.staffpanel.orchestration import ModuleOrchestrationController
from app.staffpanel.rbac import staff_guard
from app.staffpanel.stats import EnhancedStat

bp = Blueprint("module01", __name__, url_prefix="/module-01")

bp.before_request(staff_guard("access-module-01"))


class Module01PanelController(ModuleOrchestrationController):
    def get_module_stats(self) -> list[EnhancedStat] | None:
        contextual = (self.module_config.get("contextual_nav") or {}).get("default") or []
        return [
            EnhancedStat(
                key="panel_items",
                title="Panel items",
                value=len(self.module_config.get("panel_items") or []),
                description="Shortcuts available on the panel",
                icon="layout-dashboard",
            ),
            EnhancedStat(
                key="contextual_links",
                title="Contextual navigation",
                value=len(contextual),
                description="Available links",
                icon="list",
            ),
        ]


bp.add_url_rule("/", "index", Module01PanelController.as_view("show_module_panel"))
