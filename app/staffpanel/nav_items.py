"""
Shape checks for navigation item config dicts.

Both validators return a list of human-readable problems; an empty list means
the item can be built. Invalid items are skipped by the navigation builder.
"""
from __future__ import annotations

from typing import Any


def _non_empty_str(config: dict[str, Any], key: str) -> bool:
    value = config.get(key)
    return isinstance(value, str) and value != ""


def _common_errors(config: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    if not (_non_empty_str(config, "route_name") or _non_empty_str(config, "route_name_suffix")):
        errors.append("Missing 'route_name' or 'route_name_suffix'")

    if config.get("permission") is not None:
        perm = config["permission"]
        if not isinstance(perm, (str, list)):
            errors.append("'permission' must be a string or a list")
        elif isinstance(perm, list) and not all(isinstance(p, str) for p in perm):
            errors.append("Every 'permission' entry must be a string")

    if config.get("icon") is not None and not isinstance(config["icon"], str):
        errors.append("'icon' must be a string when provided")
    if config.get("route_params") is not None and not isinstance(config["route_params"], dict):
        errors.append("'route_params' must be a dict when provided")
    return errors


class PanelItem:
    @staticmethod
    def validate(config: dict[str, Any]) -> list[str]:
        errors: list[str] = []
        if not (_non_empty_str(config, "name") or _non_empty_str(config, "name_template")):
            errors.append("Missing 'name' or 'name_template'")
        errors += _common_errors(config)
        if config.get("description") is not None and not isinstance(config["description"], str):
            errors.append("'description' must be a string when provided")
        return errors


class ContextualNavItem:
    @staticmethod
    def validate(config: dict[str, Any]) -> list[str]:
        errors: list[str] = []
        if not (_non_empty_str(config, "title") or _non_empty_str(config, "title_template")):
            errors.append("Missing 'title' or 'title_template'")
        errors += _common_errors(config)
        if config.get("current") is not None and not isinstance(config["current"], bool):
            errors.append("'current' must be a boolean when provided")
        return errors
