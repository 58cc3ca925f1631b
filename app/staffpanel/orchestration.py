"""
Template-method base class for feature module views.

Subclasses live in ``app.staffpanel.modules.<slug>.admin``; the module slug and
its config are picked up from that location. A subclass typically only fills
in the hooks (``get_module_stats``, ``get_additional_panel_data``) and adds
its own actions that end in ``prepare_and_render_module_view``.
"""
from __future__ import annotations

from collections.abc import Callable
from typing import Any

from flask import Response, abort, g, request

from app.staffpanel.composer import ViewComposerService, get_composer
from app.staffpanel.models import StaffUser
from app.staffpanel.navigation import NavigationBuilderService, get_navigation
from app.staffpanel.rbac import permission_checker
from app.staffpanel.registry import ModuleRegistryService, get_registry
from app.staffpanel.stats import EnhancedStat


def slug_from_module_path(module_path: str) -> str:
    parts = module_path.split(".")
    if "modules" in parts:
        idx = parts.index("modules")
        if idx + 1 < len(parts):
            return parts[idx + 1].lower()
    return ""


class ModuleOrchestrationController:
    module_slug: str = ""

    def __init__(
        self,
        registry: ModuleRegistryService | None = None,
        composer: ViewComposerService | None = None,
        navigation: NavigationBuilderService | None = None,
    ):
        self.registry = registry or get_registry()
        self.composer = composer or get_composer()
        self.navigation = navigation or get_navigation()
        if not self.module_slug:
            self.module_slug = slug_from_module_path(type(self).__module__)
        self.module_config: dict[str, Any] = self.registry.get_module_config(self.module_slug) if self.module_slug else {}

    @classmethod
    def as_view(cls, method_name: str) -> Callable[..., Any]:
        """Flask view function that runs `method_name` on a fresh controller per request."""

        def view(**kwargs: Any):
            return getattr(cls(), method_name)(**kwargs)

        view.__name__ = f"{cls.__name__}_{method_name}"
        view.__doc__ = getattr(cls, method_name).__doc__
        return view

    # ---------- config getters ----------

    @property
    def functional_name(self) -> str:
        return self.module_config.get("functional_name") or ""

    @property
    def view_directory(self) -> str:
        return self.module_config.get("inertia_view_directory") or self.module_slug

    @property
    def base_permission(self) -> str | None:
        return self.module_config.get("base_permission")

    @property
    def auth_guard(self) -> str:
        return self.module_config.get("auth_guard") or ""

    def authenticated_user(self) -> StaffUser | None:
        user: StaffUser | None = getattr(g, "current_user", None)
        if user is None:
            return None
        if self.auth_guard and user.auth_guard != self.auth_guard:
            return None
        return user

    def panel_items_config(self) -> list[dict[str, Any]] | dict[str, Any]:
        panel = self.module_config.get("panel_items") or []
        return panel if isinstance(panel, (list, dict)) else []

    def contextual_nav_config(self, route_suffix: str | None = None) -> list[Any]:
        nav = self.module_config.get("contextual_nav") or {}
        if not isinstance(nav, dict):
            return []
        suffix = route_suffix or self.route_suffix()
        if isinstance(nav.get(suffix), list):
            return nav[suffix]
        if isinstance(nav.get("default"), list):
            return nav["default"]
        return []

    def route_suffix(self) -> str:
        endpoint = request.endpoint or ""
        prefix = f"internal.{self.module_slug}."
        if endpoint.startswith(prefix):
            return endpoint[len(prefix):]
        return endpoint.rsplit(".", 1)[-1] or "panel"

    # ---------- hooks ----------

    def get_module_stats(self) -> list[EnhancedStat] | None:
        return None

    def get_additional_panel_data(self) -> dict[str, Any]:
        return {}

    # ---------- rendering ----------

    def show_module_panel(self, **_route_params: Any) -> Response:
        additional: dict[str, Any] = {"stats": self.get_module_stats()}
        extras = self.get_additional_panel_data()
        if extras:
            additional.update(extras)
        return self.prepare_and_render_module_view("index", additional_data=additional)

    def resolve_config_references(self, config: Any, route_params: dict[str, Any] | None = None) -> Any:
        if not config:
            return config
        return self.navigation.resolve_config_references(config, self.module_config, route_params or {})

    def render_module_view(self, view: str, data: dict[str, Any]) -> Response:
        return self.composer.render_module_view(view, self.view_directory, data)

    def prepare_and_render_module_view(
        self,
        view: str,
        additional_data: dict[str, Any] | None = None,
        custom_panel_items: Any = None,
        custom_nav_items: Any = None,
        route_suffix: str | None = None,
        route_params: dict[str, Any] | None = None,
        dynamic_title_data: dict[str, Any] | None = None,
    ) -> Response:
        user = self.authenticated_user()
        if user is None:
            abort(403)

        if not route_params:
            route_params = dict(request.view_args or {})

        panel_config = custom_panel_items if custom_panel_items is not None else self.panel_items_config()
        nav_config = custom_nav_items if custom_nav_items is not None else self.contextual_nav_config()
        panel_config = self.resolve_config_references(panel_config, route_params)
        nav_config = self.resolve_config_references(nav_config, route_params)

        route_suffix = route_suffix or self.route_suffix()
        view_data = {**(additional_data or {}), **(dynamic_title_data or {})}
        stats = view_data.pop("stats", None)

        context = self.composer.compose_module_view_context(
            module_slug=self.module_slug,
            panel_items_config=panel_config,
            contextual_nav_config=nav_config,
            permission_checker=permission_checker(user),
            user=user,
            functional_name=self.functional_name,
            data=view_data,
            stats=stats,
            route_suffix=route_suffix,
            route_params=route_params,
        )
        return self.render_module_view(view, context)
