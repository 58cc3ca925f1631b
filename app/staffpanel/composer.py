from __future__ import annotations

from typing import Any

from flask import Response, current_app

from app.staffpanel.inertia import flash_props, render_page
from app.staffpanel.models import StaffUser
from app.staffpanel.navigation import NavigationBuilderService, PermissionChecker, generate_route
from app.staffpanel.registry import Module, ModuleRegistryService
from app.staffpanel.stats import EnhancedStat


def _serialize_stats(stats: list[EnhancedStat | dict[str, Any]] | None) -> list[dict[str, Any]]:
    return [s.to_dict() if isinstance(s, EnhancedStat) else dict(s) for s in stats or []]


class ViewComposerService:
    """Builds the props every module page and the dashboard are rendered with."""

    def __init__(self, registry: ModuleRegistryService, navigation: NavigationBuilderService):
        self.registry = registry
        self.navigation = navigation

    def get_flash_messages(self) -> dict[str, Any]:
        return flash_props()

    def prepare_module_view_data(
        self,
        module_slug: str,
        panel_items_config: Any,
        permission_checker: PermissionChecker,
        functional_name: str,
        stats: list[EnhancedStat | dict[str, Any]] | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if isinstance(panel_items_config, dict):
            panel_items_config = [panel_items_config]
        config = self.registry.get_module_config(module_slug)
        return {
            "panelItems": self.navigation.build_panel_items(
                panel_items_config or [], permission_checker, module_slug, functional_name
            ),
            "stats": _serialize_stats(stats),
            "pageTitle": functional_name,
            "description": config.get("description"),
            "flash": self.get_flash_messages(),
            **(data or {}),
        }

    def render_module_view(self, view: str, module_view_path: str, data: dict[str, Any]) -> Response:
        return render_page(f"modules/{module_view_path}/{view}", data)

    def compose_module_view_context(
        self,
        module_slug: str,
        panel_items_config: Any,
        contextual_nav_config: Any,
        permission_checker: PermissionChecker,
        user: StaffUser | None,
        functional_name: str | None = None,
        data: dict[str, Any] | None = None,
        stats: list[EnhancedStat | dict[str, Any]] | None = None,
        route_suffix: str | None = None,
        route_params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        config = self.registry.get_module_config(module_slug)
        if not functional_name:
            configured = config.get("functional_name")
            functional_name = configured if isinstance(configured, str) and configured else module_slug.capitalize()

        view_data = self.prepare_module_view_data(
            module_slug, panel_items_config, permission_checker, functional_name, stats, data
        )
        navigation = self.navigation.assemble_navigation_structure(
            permission_checker,
            module_slug,
            contextual_nav_config,
            user,
            functional_name,
            route_suffix,
            route_params or {},
            data or {},
        )
        return {
            "panelItems": view_data.pop("panelItems"),
            "mainNavItems": navigation["mainNavItems"],
            "moduleNavItems": navigation["moduleNavItems"],
            "contextualNavItems": navigation["contextualNavItems"],
            "globalNavItems": navigation["globalNavItems"],
            "breadcrumbs": navigation["breadcrumbs"],
            **view_data,
        }

    def compose_dashboard_view_context(
        self,
        user: StaffUser,
        available_modules: list[Module],
        permission_checker: PermissionChecker,
    ) -> dict[str, Any]:
        all_modules = self.registry.get_all_enabled_modules()
        accessible = {m.slug for m in available_modules}
        navigation = self.navigation.assemble_navigation_structure(permission_checker, None, (), user)
        return {
            "modules": self.navigation.build_module_cards(all_modules, available_modules),
            "accessibleModules": [m.name for m in available_modules],
            "restrictedModules": [m.name for m in all_modules if m.slug not in accessible],
            "mainNavItems": navigation["mainNavItems"],
            "moduleNavItems": navigation["moduleNavItems"],
            "contextualNavItems": navigation["contextualNavItems"],
            "globalNavItems": navigation["globalNavItems"],
            "breadcrumbs": [{"title": "Dashboard", "href": generate_route("internal.dashboard")}],
            "pageTitle": "Dashboard",
            "description": f"Welcome to {current_app.config.get('APP_NAME') or 'the staff panel'}. Pick a module to get started.",
        }


def get_composer() -> ViewComposerService:
    return current_app.extensions["view_composer"]
