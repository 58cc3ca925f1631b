"""
Feature module discovery and access control.

A feature module is a sub-package of ``app.staffpanel.modules`` with a
``config`` module exposing ``CONFIG`` (a plain dict) and an ``admin`` module
exposing the Flask blueprint ``bp``. Enabled/disabled state is read from a
JSON statuses file (``{"Admin": true, "Module02": false}``); modules missing
from the file are enabled.
"""
from __future__ import annotations

import importlib
import json
import logging
import pkgutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from flask import Blueprint, current_app

from app.staffpanel.constants import PROTECTED_ROLES
from app.staffpanel.models import StaffUser
from app.staffpanel.rbac import user_has_permission

logger = logging.getLogger(__name__)

MODULES_PACKAGE = "app.staffpanel.modules"


@dataclass(frozen=True)
class Module:
    name: str
    slug: str
    package: str
    enabled: bool = True
    order: int = 0

    def get_name(self) -> str:
        return self.name

    def blueprint(self) -> Blueprint:
        return importlib.import_module(f"{self.package}.admin").bp


def studly(slug: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in slug.replace("-", "_").split("_") if part)


def read_statuses(path: Path) -> dict[str, bool]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Cannot read module statuses file %s: %s", path, e)
        return {}
    return {str(k): bool(v) for k, v in data.items()} if isinstance(data, dict) else {}


class ModuleRegistryService:
    def __init__(self, statuses_path: Path | None = None, package: str = MODULES_PACKAGE):
        self.statuses_path = statuses_path
        self.package = package
        self._modules: list[Module] | None = None
        self._config_cache: dict[str, dict[str, Any]] = {}

    # ---------- discovery ----------

    def _discover(self) -> list[Module]:
        root = importlib.import_module(self.package)
        statuses = read_statuses(self.statuses_path) if self.statuses_path else {}
        found: list[Module] = []
        for info in pkgutil.iter_modules(root.__path__):
            if not info.ispkg:
                continue
            package = f"{self.package}.{info.name}"
            try:
                config_mod = importlib.import_module(f"{package}.config")
            except ModuleNotFoundError:
                logger.debug("Skipping %s: no config module", package)
                continue
            config = getattr(config_mod, "CONFIG", None)
            if not isinstance(config, dict):
                logger.warning("Skipping %s: CONFIG is not a dict", package)
                continue
            name = config.get("name") or studly(info.name)
            found.append(
                Module(
                    name=name,
                    slug=info.name.lower(),
                    package=package,
                    enabled=statuses.get(name, True),
                    order=int(config.get("order", 0)),
                )
            )
            self._config_cache[info.name.lower()] = config
        found.sort(key=lambda m: (m.order, m.name))
        return found

    def all_modules(self) -> list[Module]:
        if self._modules is None:
            self._modules = self._discover()
        return list(self._modules)

    def get_all_enabled_modules(self) -> list[Module]:
        return [m for m in self.all_modules() if m.enabled]

    def find(self, name: str) -> Module | None:
        wanted = name.lower()
        for m in self.all_modules():
            if m.slug == wanted or m.name.lower() == wanted:
                return m
        return None

    # ---------- config ----------

    def get_module_config(self, module_name: str) -> dict[str, Any]:
        key = (module_name or "").lower()
        if key not in self._config_cache:
            # Discovery fills the cache for every module it sees.
            self.all_modules()
        return self._config_cache.get(key, {})

    def clear_config_cache(self) -> None:
        self._config_cache.clear()
        self._modules = None

    # ---------- access ----------

    def can_user_access_module(self, user: StaffUser, module: Module) -> bool:
        config = self.get_module_config(module.slug)
        if not config:
            return False
        guard = config.get("auth_guard")
        if guard and guard != getattr(user, "auth_guard", None):
            return False
        if user.has_role(*PROTECTED_ROLES):
            return True
        permission = config.get("base_permission")
        if permission is None:
            return True
        return user_has_permission(user, permission)

    def get_available_modules_for_user(self, user: StaffUser) -> list[Module]:
        return [m for m in self.get_all_enabled_modules() if self.can_user_access_module(user, m)]

    def get_accessible_modules(self, user: StaffUser | None = None) -> list[Module]:
        if user is None:
            return self.get_all_enabled_modules()
        return self.get_available_modules_for_user(user)

    def get_global_nav_items(self, user: StaffUser | None = None) -> list[dict[str, Any]]:
        return [
            {
                "title": "Profile",
                "route_name": "internal.settings.profile.edit",
                "icon": "UserCog",
                "permission": None,
            },
            {
                "title": "Password",
                "route_name": "internal.settings.password.edit",
                "icon": "KeyRound",
                "permission": None,
            },
            {
                "title": "Appearance",
                "route_name": "internal.settings.appearance",
                "icon": "Palette",
                "permission": None,
            },
        ]


def get_registry() -> ModuleRegistryService:
    return current_app.extensions["module_registry"]
