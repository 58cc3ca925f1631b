"""
Named-route map shared with the browser, filtered by who is asking.
"""
from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Any

from flask import Flask

from app.staffpanel.models import StaffUser

PUBLIC_ROUTES = (
    "routes.welcome",
    "routes.health",
    "auth.login",
    "auth.login_store",
    "auth.password_request",
    "auth.password_email",
    "auth.password_reset",
    "auth.password_store",
)

STAFF_ROUTES = (
    "internal.*",
    "auth.*",
)


def route_map(app: Flask) -> dict[str, dict[str, Any]]:
    routes: dict[str, dict[str, Any]] = {}
    for rule in app.url_map.iter_rules():
        if rule.endpoint == "static" or rule.endpoint in routes:
            continue
        routes[rule.endpoint] = {
            "uri": rule.rule,
            "methods": sorted(m for m in (rule.methods or ()) if m not in ("HEAD", "OPTIONS")),
            "parameters": sorted(rule.arguments),
        }
    return routes


def _matches(name: str, patterns: tuple[str, ...]) -> bool:
    if name in patterns:
        return True
    return any("*" in p and fnmatchcase(name, p) for p in patterns)


def filter_routes(routes: dict[str, dict[str, Any]], user: StaffUser | None) -> dict[str, dict[str, Any]]:
    patterns = PUBLIC_ROUTES if user is None else PUBLIC_ROUTES + STAFF_ROUTES
    return {name: data for name, data in routes.items() if _matches(name, patterns)}
