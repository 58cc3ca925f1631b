"""
Navigation assembly for the staff panel.

Module configs describe navigation declaratively (nav item, contextual links,
panel items, breadcrumbs). Entries may point at shared blocks with
``"$ref:dotted.path"`` strings; this service resolves those references,
filters items by permission, turns route names into URLs and produces the
plain dicts the pages consume.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from flask import current_app, request, url_for
from werkzeug.routing import BuildError

from app.staffpanel.nav_items import ContextualNavItem, PanelItem
from app.staffpanel.registry import Module, ModuleRegistryService

logger = logging.getLogger(__name__)

PermissionChecker = Callable[[str], bool]

NAV_TYPE_CONTEXTUAL = "contextual"
NAV_TYPE_PANEL = "panel"
NAV_TYPE_GLOBAL = "global"

# text key, template key, and extra output fields (output key -> source)
NAV_TYPE_CONFIG: dict[str, dict[str, Any]] = {
    NAV_TYPE_CONTEXTUAL: {
        "text_key": "title",
        "template_key": "title_template",
        "extra_fields": {"href": "route", "current": "current"},
    },
    NAV_TYPE_PANEL: {
        "text_key": "name",
        "template_key": "name_template",
        "extra_fields": {"route_name": "route_name", "description": "description"},
    },
    NAV_TYPE_GLOBAL: {
        "text_key": "title",
        "template_key": "title_template",
        "extra_fields": {"href": "route", "current": "current"},
    },
}

REF_PREFIX = "$ref:"
_MISSING = object()


def _walk(config: Any, parts: Sequence[str]) -> Any:
    value = config
    for part in parts:
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _string_keys(params: Any) -> dict[str, Any]:
    if not isinstance(params, dict):
        return {}
    return {k: v for k, v in params.items() if isinstance(k, str)}


def extract_dynamic_title(path: str, data: Any) -> str | None:
    """Dotted lookup into view data (dicts or objects); scalars only."""
    value = data
    for part in path.split("."):
        if isinstance(value, dict) and value.get(part) is not None:
            value = value[part]
        elif not isinstance(value, dict) and getattr(value, part, None) is not None:
            value = getattr(value, part)
        else:
            return None
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


def route_arguments(route_name: str) -> set[str]:
    if route_name not in current_app.view_functions:
        return set()
    rule = next(current_app.url_map.iter_rules(route_name))
    return set(rule.arguments)


def generate_route(route_name: str, parameters: dict[str, Any] | None = None) -> str:
    """URL for a named route, or "#" when the route or one of its required values is missing."""
    parameters = parameters or {}
    try:
        if route_name not in current_app.view_functions:
            return "#"
        rule = next(current_app.url_map.iter_rules(route_name))
        missing = [arg for arg in rule.arguments if arg not in parameters and arg not in (rule.defaults or {})]
        if missing:
            return "#"
        return url_for(route_name, **parameters)
    except (BuildError, KeyError, ValueError, TypeError) as e:
        if current_app.config.get("ENV") in ("prod", "production"):
            logger.error("Route generation failed route_name=%s params=%s error=%s", route_name, parameters, e)
        else:
            logger.debug("Route generation failed route_name=%s params=%s error=%s", route_name, parameters, e)
    return "#"


def is_current_route(route_name: str) -> bool:
    current = request.endpoint
    if not current or not route_name:
        return False
    return current == route_name or current.startswith(f"{route_name}.")


def is_current_url(url: str) -> bool:
    if url == "#":
        return False
    return url in (request.path, request.base_url)


class NavigationBuilderService:
    def __init__(self, registry: ModuleRegistryService):
        self.registry = registry

    # ---------- reference resolution ----------

    def _lookup_ref(self, path: str, config: dict[str, Any]) -> Any:
        parts = path.split(".")
        value = _walk(config, parts)
        if value is not _MISSING:
            return value
        if len(parts) >= 2 and parts[0] in ("links", "groups"):
            return _walk(config, ["nav_components", *parts])
        return _MISSING

    def resolve_config_references(
        self,
        item: Any,
        config: dict[str, Any],
        route_params: dict[str, Any] | None = None,
    ) -> Any:
        route_params = route_params or {}

        if isinstance(item, str) and item.startswith(REF_PREFIX):
            value = self._lookup_ref(item[len(REF_PREFIX):], config)
            if value is _MISSING:
                logger.warning("Unresolved config reference %s (alternative paths tried)", item)
                return item
            if isinstance(value, (dict, list)):
                return self.resolve_config_references(value, config, route_params)
            if isinstance(value, str) and value.startswith("internal.") and route_params:
                return generate_route(value, route_params)
            return value

        if isinstance(item, dict):
            if isinstance(item.get("route_parameters"), dict) and route_params:
                item = dict(item)
                item["route_parameters"] = {
                    key: (
                        route_params.get(value[1:], value)
                        if isinstance(value, str) and value.startswith(":")
                        else value
                    )
                    for key, value in item["route_parameters"].items()
                }
            return {key: self.resolve_config_references(value, config, route_params) for key, value in item.items()}

        if isinstance(item, (list, tuple)):
            result: list[Any] = []
            for value in item:
                out = self.resolve_config_references(value, config, route_params)
                if isinstance(out, list):
                    result.extend(out)
                else:
                    result.append(out)
            return result

        return item

    # ---------- item building ----------

    def build_navigation(
        self,
        nav_type: str,
        items_config: Any,
        permission_checker: PermissionChecker,
        module_slug: str,
        functional_name: str | None = None,
    ) -> list[dict[str, Any]]:
        type_config = NAV_TYPE_CONFIG.get(nav_type)
        if type_config is None:
            logger.warning("Unknown navigation type: %s", nav_type)
            return []

        module_config = self.registry.get_module_config(module_slug)
        resolved = self.resolve_config_references(items_config, module_config)
        if isinstance(resolved, dict):
            resolved = list(resolved.values())
        if not isinstance(resolved, list):
            resolved = []
        items = [v for v in resolved if isinstance(v, dict)]
        return self._build_items(items, permission_checker, module_slug, functional_name, **type_config)

    def _build_items(
        self,
        items_config: list[dict[str, Any]],
        permission_checker: PermissionChecker,
        module_slug: str,
        functional_name: str | None,
        *,
        text_key: str,
        template_key: str,
        extra_fields: dict[str, str],
    ) -> list[dict[str, Any]]:
        built: list[dict[str, Any]] = []
        for config in items_config:
            if text_key == "name":
                errors = PanelItem.validate(config)
            else:
                errors = ContextualNavItem.validate(config)
            if errors:
                logger.warning("Invalid nav item config module=%s errors=%s config=%s", module_slug, errors, config)
                continue

            permission = config.get("permission")
            if permission:
                if isinstance(permission, list):
                    allowed = any(isinstance(p, str) and permission_checker(p) for p in permission)
                else:
                    allowed = permission_checker(permission)
                if not allowed:
                    continue

            text = config.get(text_key) if isinstance(config.get(text_key), str) else None
            template = config.get(template_key)
            if isinstance(template, str) and functional_name:
                text = template.replace("%s", functional_name, 1)

            route_name = config.get("route_name")
            if not route_name:
                suffix = config.get("route_name_suffix")
                route_name = f"internal.{module_slug}.{suffix}" if isinstance(suffix, str) and suffix else f"internal.{module_slug}"

            if isinstance(config.get("route_params"), dict):
                params = config["route_params"]
            elif isinstance(config.get("route_parameters"), dict):
                params = config["route_parameters"]
            else:
                params = {}

            item: dict[str, Any] = {
                text_key: text,
                "icon": config.get("icon") if isinstance(config.get("icon"), str) else None,
                "permission": permission,
            }
            for field, source in extra_fields.items():
                if source == "route":
                    item[field] = generate_route(route_name, _string_keys(params))
                elif source == "current":
                    item[field] = is_current_route(route_name)
                elif source == "route_name":
                    item[field] = route_name
                else:
                    item[field] = config.get(source)
            built.append(item)
        return built

    def build_contextual_nav_items(
        self,
        items_config: Any,
        permission_checker: PermissionChecker,
        module_slug: str,
        functional_name: str | None = None,
    ) -> list[dict[str, Any]]:
        return self.build_navigation(NAV_TYPE_CONTEXTUAL, items_config, permission_checker, module_slug, functional_name)

    def build_panel_items(
        self,
        items_config: Any,
        permission_checker: PermissionChecker,
        module_slug: str,
        functional_name: str | None = None,
    ) -> list[dict[str, Any]]:
        return self.build_navigation(NAV_TYPE_PANEL, items_config, permission_checker, module_slug, functional_name)

    # ---------- module level navigation ----------

    def _module_nav_item(self, module: Module, permission_checker: PermissionChecker) -> tuple[dict[str, Any], bool] | None:
        config = self.registry.get_module_config(module.slug)
        nav_item = config.get("nav_item")
        if not isinstance(nav_item, dict) or not nav_item.get("show_in_nav"):
            return None
        permission = config.get("base_permission")
        if permission and not permission_checker(permission):
            return None
        route_name = nav_item.get("route_name") if isinstance(nav_item.get("route_name"), str) else None
        functional_name = config.get("functional_name")
        item = {
            "title": functional_name if isinstance(functional_name, str) else module.slug,
            "href": generate_route(route_name) if route_name else "#",
            "icon": nav_item.get("icon") if isinstance(nav_item.get("icon"), str) else None,
            "current": bool(route_name) and is_current_route(route_name),
        }
        return item, bool(nav_item.get("show_in_main_nav", False))

    def build_nav_items(self, modules: list[Module], permission_checker: PermissionChecker) -> list[dict[str, Any]]:
        items = []
        for module in modules:
            built = self._module_nav_item(module, permission_checker)
            if built and built[1]:
                items.append(built[0])
        return items

    def build_module_nav_items(self, modules: list[Module], permission_checker: PermissionChecker) -> list[dict[str, Any]]:
        items = []
        for module in modules:
            built = self._module_nav_item(module, permission_checker)
            if built and not built[1]:
                items.append(built[0])
        return items

    def build_module_cards(self, all_modules: list[Module], accessible_modules: list[Module] | None = None) -> list[dict[str, Any]]:
        accessible = {m.slug for m in accessible_modules or []}
        cards = []
        for module in all_modules:
            config = self.registry.get_module_config(module.slug)
            nav_item = config.get("nav_item")
            if not isinstance(nav_item, dict):
                continue
            route_name = nav_item.get("route_name") if isinstance(nav_item.get("route_name"), str) else None
            functional_name = config.get("functional_name")
            cards.append(
                {
                    "name": functional_name if isinstance(functional_name, str) else module.name,
                    "description": config.get("description", ""),
                    "href": generate_route(route_name) if route_name else "#",
                    "icon": nav_item.get("icon") if isinstance(nav_item.get("icon"), str) else None,
                    "canAccess": module.slug in accessible,
                }
            )
        return cards

    # ---------- breadcrumbs ----------

    def _root_breadcrumb(self, module_slug: str, config: dict[str, Any]) -> list[dict[str, str]]:
        functional_name = config.get("functional_name")
        return [
            {
                "title": functional_name if isinstance(functional_name, str) else module_slug.capitalize(),
                "href": generate_route(f"internal.{module_slug}.panel"),
            }
        ]

    def build_configured_breadcrumbs(
        self,
        module_slug: str,
        route_suffix: str,
        route_params: dict[str, Any] | None = None,
        view_data: dict[str, Any] | None = None,
    ) -> list[dict[str, str]]:
        config = self.registry.get_module_config(module_slug)
        breadcrumbs_config = config.get("breadcrumbs")
        if not isinstance(breadcrumbs_config, dict):
            return self._root_breadcrumb(module_slug, config)
        entries = breadcrumbs_config.get(route_suffix, breadcrumbs_config.get("default"))
        if entries is None:
            return self._root_breadcrumb(module_slug, config)

        resolved = self.resolve_config_references(entries, config, route_params or {})
        if not isinstance(resolved, list):
            return self._root_breadcrumb(module_slug, config)

        breadcrumbs = []
        for entry in resolved:
            if not isinstance(entry, dict):
                continue
            title = entry.get("title") if isinstance(entry.get("title"), str) else ""
            dynamic_path = entry.get("dynamic_title") or entry.get("dynamic_title_prop")
            if isinstance(dynamic_path, str) and dynamic_path:
                dynamic = extract_dynamic_title(dynamic_path, view_data or {})
                if dynamic is not None:
                    title = f"{title}: {dynamic}"

            href = entry.get("href")
            if not (isinstance(href, str) and href):
                route_name = entry.get("route_name") if isinstance(entry.get("route_name"), str) else None
                if not route_name:
                    suffix = entry.get("route_name_suffix")
                    route_name = f"internal.{module_slug}.{suffix}" if isinstance(suffix, str) and suffix else None
                params = entry.get("route_params")
                if params is None:
                    params = entry.get("route_parameters")
                if params is None and route_name:
                    # Reuse the current view's params for the segments this route declares.
                    wanted = route_arguments(route_name)
                    params = {k: v for k, v in (route_params or {}).items() if k in wanted}
                href = generate_route(route_name, _string_keys(params)) if route_name else "#"
            breadcrumbs.append({"title": title, "href": href})
        return breadcrumbs

    def build_breadcrumbs_from_contextual(self, contextual_items: list[dict[str, Any]], module_slug: str) -> list[dict[str, str]]:
        current = request.endpoint or ""
        prefix = f"internal.{module_slug}."
        if not current.startswith(prefix):
            return [{"title": module_slug.capitalize(), "href": generate_route(f"internal.{module_slug}.panel")}]

        suffix = current[len(prefix):]
        config = self.registry.get_module_config(module_slug)
        if isinstance(config.get("breadcrumbs"), dict) and suffix in config["breadcrumbs"]:
            return self.build_configured_breadcrumbs(module_slug, suffix)

        breadcrumbs: list[dict[str, str]] = []
        if contextual_items:
            first = contextual_items[0]
            first_title = first.get("title") if isinstance(first.get("title"), str) else module_slug.capitalize()
            breadcrumbs.append({"title": first_title, "href": first.get("href") if isinstance(first.get("href"), str) else "#"})
            for item in contextual_items:
                title = item.get("title") if isinstance(item.get("title"), str) else ""
                if item.get("current") is True and title != first_title:
                    breadcrumbs.append({"title": title, "href": item.get("href") if isinstance(item.get("href"), str) else "#"})
                    break
        return breadcrumbs

    # ---------- global navigation ----------

    def build_global_nav_items(self, items_config: list[dict[str, Any]], permission_checker: PermissionChecker) -> list[dict[str, Any]]:
        items = []
        for config in items_config:
            permission = config.get("permission")
            if permission and not permission_checker(permission):
                continue
            item: dict[str, Any] = {
                "title": config.get("title") if isinstance(config.get("title"), str) else "",
                "icon": config.get("icon") if isinstance(config.get("icon"), str) else None,
                "permission": permission,
            }
            if "href" in config:
                href = config["href"] if isinstance(config["href"], str) else "#"
                item["href"] = href
                item["current"] = is_current_url(href)
            elif isinstance(config.get("route_name"), str):
                params = config.get("route_params") or config.get("route_parameters") or {}
                item["href"] = generate_route(config["route_name"], _string_keys(params))
                item["current"] = is_current_route(config["route_name"])
            else:
                item["href"] = "#"
                item["current"] = False
            items.append(item)
        return items

    # ---------- full structure ----------

    def assemble_navigation_structure(
        self,
        permission_checker: PermissionChecker,
        module_slug: str | None = None,
        contextual_items_config: Any = (),
        user: Any = None,
        functional_name: str | None = None,
        route_suffix: str | None = None,
        route_params: dict[str, Any] | None = None,
        view_data: dict[str, Any] | None = None,
    ) -> dict[str, list[dict[str, Any]]]:
        modules = self.registry.get_accessible_modules(user)
        main_nav_items = self.build_nav_items(modules, permission_checker)
        module_nav_items = self.build_module_nav_items(modules, permission_checker)

        contextual_nav_items: list[dict[str, Any]] = []
        if contextual_items_config:
            contextual_nav_items = self.build_contextual_nav_items(
                contextual_items_config, permission_checker, module_slug or "", functional_name
            )

        global_nav_items: list[dict[str, Any]] = []
        if module_slug is None:
            global_nav_items = self.build_global_nav_items(self.registry.get_global_nav_items(user), permission_checker)

        breadcrumbs: list[dict[str, str]] = []
        if module_slug and route_suffix:
            breadcrumbs = self.build_configured_breadcrumbs(module_slug, route_suffix, route_params or {}, view_data or {})
        elif contextual_nav_items:
            breadcrumbs = self.build_breadcrumbs_from_contextual(contextual_nav_items, module_slug or "")

        return {
            "mainNavItems": main_nav_items,
            "moduleNavItems": module_nav_items,
            "contextualNavItems": contextual_nav_items,
            "globalNavItems": global_nav_items,
            "breadcrumbs": breadcrumbs,
        }


def get_navigation() -> NavigationBuilderService:
    return current_app.extensions["navigation_builder"]
