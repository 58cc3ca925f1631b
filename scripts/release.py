"""
Release phase: migrate the schema, seed access control and report module state.

Steps:
- resolve settings the same way the web app does (dotenv + environment)
- refuse SQLite in production
- alembic upgrade head
- seed permissions, roles and system users (never overwrites passwords unless forced)
- print which feature modules the statuses file enables

Usage:
  python scripts/release.py [--skip-seed]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _upgrade(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def _report_modules(statuses_path: str) -> None:
    from app.staffpanel.registry import read_statuses

    path = Path(statuses_path)
    if not path.is_absolute():
        path = ROOT / path
    statuses = read_statuses(path)
    if not statuses:
        print(f"No module statuses at {path}; every discovered module is enabled.", flush=True)
        return
    for name, enabled in sorted(statuses.items()):
        print(f"  module {name}: {'enabled' if enabled else 'disabled'}", flush=True)


def run_release(*, seed: bool = True) -> None:
    from dotenv import load_dotenv

    from app.staffpanel.config import load_settings

    load_dotenv()
    settings = load_settings()
    db_url = settings.database_url
    if settings.env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to release against a sqlite DATABASE_URL in production.")

    print(f"=== {settings.app_name} release (ENV={settings.env}) ===", flush=True)
    _upgrade(db_url)
    print("Schema at head.", flush=True)

    if seed:
        from scripts import init_db

        init_db.seed_only(database_url=db_url)
    else:
        print("Seed skipped.", flush=True)

    _report_modules(settings.module_statuses_path)
    print("=== release done ===", flush=True)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run migrations and seed staff access control.")
    parser.add_argument("--skip-seed", action="store_true", help="only run migrations")
    args = parser.parse_args(argv)
    run_release(seed=not args.skip_seed)


if __name__ == "__main__":
    main()
