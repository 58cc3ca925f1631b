import logging
import os
import sys
from datetime import datetime
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy.orm import Session

from app.staffpanel.constants import DEFAULT_PERMISSIONS, DEFAULT_ROLE_PERMISSIONS, STAFF_GUARD
from app.staffpanel.models import Permission, Role, StaffUser

logger = logging.getLogger(__name__)

USER_STAFF_MAX_LIMIT = 50


def _truthy(raw: str | None) -> bool:
    return (raw or "").strip().lower() in ("1", "true", "yes", "on")


def staff_users_from_env(environ: dict | None = None) -> list[dict]:
    """
    System users declared as USER_STAFF_{i}_EMAIL / _PASSWORD / _NAME / _ROLE /
    _FORCE_PASSWORD_UPDATE for i in 1..USER_STAFF_MAX (default 10, capped at 50).
    Entries missing an email or password are skipped.
    """
    env = os.environ if environ is None else environ
    try:
        max_users = int((env.get("USER_STAFF_MAX") or "10").strip())
    except ValueError:
        max_users = 10
    max_users = min(max_users, USER_STAFF_MAX_LIMIT) if max_users > 0 else 10

    users = []
    for i in range(1, max_users + 1):
        email = (env.get(f"USER_STAFF_{i}_EMAIL") or "").strip().lower()
        password = env.get(f"USER_STAFF_{i}_PASSWORD") or ""
        if not email or not password:
            continue
        users.append(
            {
                "email": email,
                "password": password,
                "name": (env.get(f"USER_STAFF_{i}_NAME") or f"User {i}").strip(),
                "role": (env.get(f"USER_STAFF_{i}_ROLE") or "").strip() or None,
                "force_password_update": _truthy(env.get(f"USER_STAFF_{i}_FORCE_PASSWORD_UPDATE")),
            }
        )
    return users


def seed(s: Session, staff_users: list[dict] | None = None) -> dict[str, int]:
    """
    Idempotent seed of permissions, roles and system users. Existing passwords are
    only overwritten when the entry asks for force_password_update.
    """
    now = datetime.utcnow()

    def ensure_perm(name: str) -> Permission:
        p = s.query(Permission).filter(Permission.name == name, Permission.guard_name == STAFF_GUARD).one_or_none()
        if not p:
            p = Permission(name=name, guard_name=STAFF_GUARD)
            s.add(p)
        return p

    perms = {name: ensure_perm(name) for name in DEFAULT_PERMISSIONS}

    roles: dict[str, Role] = {}
    for role_name, perm_names in DEFAULT_ROLE_PERMISSIONS.items():
        role = s.query(Role).filter(Role.name == role_name, Role.guard_name == STAFF_GUARD).one_or_none()
        if not role:
            role = Role(name=role_name, guard_name=STAFF_GUARD)
            s.add(role)
        for perm_name in perm_names:
            if perms[perm_name] not in role.permissions:
                role.permissions.append(perms[perm_name])
        roles[role_name] = role
    s.flush()

    created = updated = assigned = 0
    for cfg in staff_users if staff_users is not None else staff_users_from_env():
        user = s.query(StaffUser).filter(StaffUser.email == cfg["email"]).one_or_none()
        if not user:
            user = StaffUser(
                name=cfg["name"],
                email=cfg["email"],
                password_hash=generate_password_hash(cfg["password"]),
                is_active=True,
                email_verified_at=now,
                password_changed_at=now,
            )
            s.add(user)
            created += 1
        else:
            changed = False
            if user.name != cfg["name"]:
                user.name = cfg["name"]
                changed = True
            if cfg.get("force_password_update"):
                user.password_hash = generate_password_hash(cfg["password"])
                user.password_changed_at = now
                changed = True
            updated += int(changed)

        role_name = cfg.get("role")
        if role_name:
            role = roles.get(role_name) or s.query(Role).filter(
                Role.name == role_name, Role.guard_name == STAFF_GUARD
            ).one_or_none()
            if role is None:
                logger.warning("Unknown role %r for system user %s; skipped", role_name, cfg["email"])
            elif role not in user.roles:
                user.roles.append(role)
                assigned += 1

    logger.info("System users seeded created=%s updated=%s assigned_roles=%s", created, updated, assigned)
    return {"created": created, "updated": updated, "assigned_roles": assigned}


def seed_only(*, database_url: str | None = None) -> None:
    from scripts._db_utils import script_session

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///staffpanel.db").strip()

    # Direct engine/session so this can run in release without importing app.wsgi.
    with script_session(db_url) as s:
        result = seed(s)

    print("Initialized database (seed_only).")
    print(f"System users created={result['created']} updated={result['updated']} roles_assigned={result['assigned_roles']}")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
