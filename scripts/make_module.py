#!/usr/bin/env python3
"""Scaffold a new feature module and enable it.

Usage:
  python scripts/make_module.py Reports
  python scripts/make_module.py "Module 03" --force
"""

from __future__ import annotations

import argparse
import json
import re
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

MODULES_DIR = ROOT / "app" / "staffpanel" / "modules"
STATUSES_PATH = ROOT / "modules_statuses.json"

INIT_TEMPLATE = '''"""{title} module."""
'''

CONFIG_TEMPLATE = '''CONFIG = {{
    "module_slug": "{slug}",
    "functional_name": "{title}",
    "description": "{title} module.",
    "inertia_view_directory": "{slug}",
    "base_permission": "{permission}",
    "order": 100,
    "nav_item": {{
        "show_in_nav": True,
        "route_name": "internal.{slug}.index",
        "icon": "LayoutDashboard",
    }},
    "contextual_nav": {{
        "default": [
            {{
                "title": "{title}",
                "route_name_suffix": "index",
                "icon": "LayoutDashboard",
                "permission": "{permission}",
            }},
        ],
    }},
    "panel_items": [],
    "breadcrumbs": {{
        "default": [
            {{"title": "{title}", "route_name_suffix": "index"}},
        ],
    }},
}}
'''

ADMIN_TEMPLATE = '''from __future__ import annotations

from flask import Blueprint

from app.staffpanel.orchestration import ModuleOrchestrationController
from app.staffpanel.rbac import staff_guard

bp = Blueprint("{slug}", __name__, url_prefix="/{url_segment}")

bp.before_request(staff_guard("{permission}"))


class {studly}PanelController(ModuleOrchestrationController):
    pass


bp.add_url_rule("/", "index", {studly}PanelController.as_view("show_module_panel"))
'''


class ModuleExistsError(RuntimeError):
    pass


def module_names(name: str) -> dict[str, str]:
    words = re.findall(r"[A-Za-z0-9]+", name)
    if not words:
        raise ValueError(f"Invalid module name: {name!r}")
    slug = "".join(words).lower()
    if slug[0].isdigit():
        raise ValueError("Module names must start with a letter.")
    url_segment = re.sub(r"(?<=[a-z])(?=\d)", "-", "-".join(w.lower() for w in words))
    return {
        "slug": slug,
        "studly": "".join(w[:1].upper() + w[1:] for w in words),
        "title": " ".join(words),
        "url_segment": url_segment,
        "permission": f"access-{url_segment}",
    }


def _enable(statuses_path: Path, studly: str) -> None:
    statuses: dict = {}
    if statuses_path.exists():
        statuses = json.loads(statuses_path.read_text(encoding="utf-8") or "{}")
    statuses[studly] = True
    statuses_path.write_text(json.dumps(statuses, indent=4) + "\n", encoding="utf-8")


def scaffold_module(
    name: str,
    *,
    modules_dir: Path = MODULES_DIR,
    statuses_path: Path = STATUSES_PATH,
    force: bool = False,
) -> dict[str, str]:
    names = module_names(name)
    target = modules_dir / names["slug"]
    if target.exists() and not force:
        raise ModuleExistsError(f"Module {names['studly']} already exists at {target}. Use --force to overwrite.")

    target.mkdir(parents=True, exist_ok=True)
    (target / "__init__.py").write_text(INIT_TEMPLATE.format(**names), encoding="utf-8")
    (target / "config.py").write_text(CONFIG_TEMPLATE.format(**names), encoding="utf-8")
    (target / "admin.py").write_text(ADMIN_TEMPLATE.format(**names), encoding="utf-8")
    _enable(statuses_path, names["studly"])
    return names


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("name", help="Module name, e.g. Reports")
    parser.add_argument("--force", action="store_true", help="Overwrite an existing module")
    args = parser.parse_args()

    try:
        names = scaffold_module(args.name, force=args.force)
    except (ModuleExistsError, ValueError) as e:
        print(str(e))
        sys.exit(1)

    print(f"Created module {names['studly']} (app/staffpanel/modules/{names['slug']}).")
    print(f"Next: add '{names['permission']}' to DEFAULT_PERMISSIONS in app/staffpanel/constants.py,")
    print("grant it to a role, then run python scripts/init_db.py.")


if __name__ == "__main__":
    main()
