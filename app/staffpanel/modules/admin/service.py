from __future__ import annotations

import math
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_
from werkzeug.security import generate_password_hash

from app.staffpanel.audit import record_event
from app.staffpanel.constants import PROTECTED_ROLES, ROLE_DESCRIPTIONS, STAFF_GUARD
from app.staffpanel.errors import ProtectedUserError
from app.staffpanel.models import Role, StaffUser
from app.staffpanel.passwords import is_valid_email, validate_password

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


ALLOWED_SORT_FIELDS = ("name", "email", "created_at")
DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100
NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 128
EMAIL_MAX_LENGTH = 42


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_user(user: StaffUser) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "is_active": user.is_active,
        "email_verified_at": _iso(user.email_verified_at),
        "created_at": _iso(user.created_at),
        "updated_at": _iso(user.updated_at),
        "roles": [{"id": r.id, "name": r.name} for r in sorted(user.roles, key=lambda r: r.name)],
    }


def _int_param(raw: Any, default: int) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def list_users(s: "Session", params: dict[str, Any], per_page: int = DEFAULT_PER_PAGE) -> dict[str, Any]:
    """
    Paginated staff users. Filters: search (name/email), role. Sort on name, email
    or created_at; anything else falls back to newest first.
    """
    q = s.query(StaffUser)

    search = (params.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(or_(StaffUser.name.ilike(like), StaffUser.email.ilike(like)))

    role = (params.get("role") or "").strip()
    if role:
        q = q.filter(StaffUser.roles.any(Role.name == role))

    sort_field = params.get("sort_field") or "created_at"
    direction = "asc" if (params.get("sort_direction") or "desc").lower() == "asc" else "desc"
    if sort_field in ALLOWED_SORT_FIELDS:
        column = getattr(StaffUser, sort_field)
        q = q.order_by(column.asc() if direction == "asc" else column.desc(), StaffUser.id.asc())
    else:
        q = q.order_by(StaffUser.created_at.desc(), StaffUser.id.asc())

    per_page = max(1, min(_int_param(params.get("per_page"), per_page), MAX_PER_PAGE))
    total = q.count()
    last_page = max(1, math.ceil(total / per_page))
    page = max(1, min(_int_param(params.get("page"), 1), last_page))
    rows = q.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "data": [serialize_user(u) for u in rows],
        "current_page": page,
        "last_page": last_page,
        "per_page": per_page,
        "total": total,
        "from": (page - 1) * per_page + 1 if rows else None,
        "to": (page - 1) * per_page + len(rows) if rows else None,
    }


def get_all_roles(s: "Session") -> list[dict[str, Any]]:
    roles = s.query(Role).filter(Role.guard_name == STAFF_GUARD).order_by(Role.name.asc()).all()
    return [
        {
            "id": r.id,
            "name": r.name,
            "guard_name": r.guard_name,
            "description": ROLE_DESCRIPTIONS.get(r.name.upper(), f"{r.name} role"),
        }
        for r in roles
    ]


def total_users(s: "Session") -> int:
    return s.query(StaffUser).count()


def total_roles(s: "Session") -> int:
    return s.query(Role).filter(Role.guard_name == STAFF_GUARD).count()


def _text(payload: dict[str, Any], key: str) -> str | None:
    """Stripped string value, "" when absent, None when the value is not a string."""
    value = payload.get(key)
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return None


def _roles_well_formed(payload: dict[str, Any]) -> bool:
    raw = payload.get("roles")
    if raw is None or isinstance(raw, str):
        return True
    return isinstance(raw, list) and all(isinstance(r, str) for r in raw)


def requested_roles(payload: dict[str, Any]) -> list[str]:
    raw = payload.get("roles")
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    return [r.strip() for r in raw if isinstance(r, str) and r.strip()]


def validate_user_payload(s: "Session", payload: dict[str, Any], user: StaffUser | None = None) -> dict[str, str]:
    """
    Validate staff user create (user=None) or update payload. Returns field -> message.
    """
    errors: dict[str, str] = {}

    name = _text(payload, "name")
    if name is None:
        errors["name"] = "The name must be a string."
    elif not name:
        errors["name"] = "The name is required."
    elif len(name) < NAME_MIN_LENGTH:
        errors["name"] = f"The name must be at least {NAME_MIN_LENGTH} characters."
    elif len(name) > NAME_MAX_LENGTH:
        errors["name"] = f"The name may not be greater than {NAME_MAX_LENGTH} characters."

    email = _text(payload, "email")
    if email is None:
        errors["email"] = "The email must be a string."
    elif not email:
        errors["email"] = "The email is required."
    elif not is_valid_email(email):
        errors["email"] = "Enter a valid email address."
    elif len(email) > EMAIL_MAX_LENGTH:
        errors["email"] = f"The email may not be greater than {EMAIL_MAX_LENGTH} characters."
    else:
        q = s.query(StaffUser).filter(StaffUser.email == email.lower())
        if user is not None:
            q = q.filter(StaffUser.id != user.id)
        if q.first() is not None:
            errors["email"] = "This email is already in use."

    roles = requested_roles(payload)
    if not _roles_well_formed(payload):
        errors["roles"] = "The roles must be a list of role names."
    elif not roles:
        errors["roles"] = "Select at least one role."
    else:
        known = {r.name for r in s.query(Role).filter(Role.guard_name == STAFF_GUARD).all()}
        if any(r not in known for r in roles):
            errors["roles"] = "One of the selected roles is invalid."
        elif user is not None:
            current_protected = {r.name.upper() for r in user.roles if r.name.upper() in PROTECTED_ROLES}
            if not current_protected.issubset({r.upper() for r in roles}):
                errors["roles"] = "Protected roles cannot be removed from an administrator."

    password = payload.get("password")
    confirmation = payload.get("password_confirmation")
    if password is not None and not isinstance(password, str):
        errors["password"] = "The password must be a string."
    else:
        password_errors = validate_password(
            password,
            confirmation if isinstance(confirmation, str) else None,
            required=user is None,
        )
        if password_errors:
            errors["password"] = password_errors[0]

    return errors


def sync_roles(s: "Session", user: StaffUser, role_names: list[str]) -> list[str]:
    """
    Replace the user's roles. ADMIN/DEV cannot be granted here and are never taken away.
    """
    assignable = {n for n in role_names if n.upper() not in PROTECTED_ROLES}
    kept = {r.name for r in user.roles if r.name.upper() in PROTECTED_ROLES}
    wanted = assignable | kept
    roles = s.query(Role).filter(Role.guard_name == STAFF_GUARD, Role.name.in_(wanted)).all() if wanted else []
    user.roles = sorted(roles, key=lambda r: r.name)
    return sorted(r.name for r in roles)


def create_user(s: "Session", payload: dict[str, Any], actor: StaffUser) -> StaffUser:
    now = datetime.utcnow()
    auto_verify = payload.get("auto_verify_email", True)
    if isinstance(auto_verify, str):
        auto_verify = auto_verify.strip().lower() in ("1", "true", "on", "yes")

    user = StaffUser(
        name=(payload.get("name") or "").strip(),
        email=(payload.get("email") or "").strip().lower(),
        password_hash=generate_password_hash(payload["password"]),
        is_active=True,
        email_verified_at=now if auto_verify else None,
        password_changed_at=now,
        created_at=now,
        updated_at=now,
    )
    s.add(user)
    s.flush()
    roles = sync_roles(s, user, requested_roles(payload))

    record_event(
        s,
        actor=actor,
        action="staff_user.created",
        entity_type="StaffUser",
        entity_id=str(user.id),
        description=f"Created user {user.name}",
        metadata={"email": user.email, "roles": roles, "auto_verify_email": bool(auto_verify)},
    )
    return user


def update_user(s: "Session", user: StaffUser, payload: dict[str, Any], actor: StaffUser) -> dict[str, Any]:
    """Apply an update and return the changed fields (old/new; password only flagged)."""
    changes: dict[str, Any] = {}

    name = (payload.get("name") or "").strip()
    if name != user.name:
        changes["name"] = {"old": user.name, "new": name}
        user.name = name

    email = (payload.get("email") or "").strip().lower()
    if email != user.email:
        changes["email"] = {"old": user.email, "new": email}
        user.email = email

    password = payload.get("password")
    if password:
        user.password_hash = generate_password_hash(password)
        user.password_changed_at = datetime.utcnow()
        changes["password"] = "changed"

    before = user.role_names()
    after = sync_roles(s, user, requested_roles(payload))
    if before != after:
        changes["roles"] = {"old": before, "new": after}

    if changes:
        user.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=actor,
            action="staff_user.updated",
            entity_type="StaffUser",
            entity_id=str(user.id),
            description=f"Updated user {user.name}",
            metadata={"changes": {k: v for k, v in changes.items() if k != "password"}, "password_changed": "password" in changes},
        )
    return changes


def delete_user(s: "Session", user: StaffUser, actor: StaffUser) -> None:
    if user.has_protected_role():
        raise ProtectedUserError("Users with protected roles (ADMIN or DEV) cannot be deleted.")
    if user.id == actor.id:
        raise ProtectedUserError("You cannot delete your own account from the user list.")

    record_event(
        s,
        actor=actor,
        action="staff_user.deleted",
        entity_type="StaffUser",
        entity_id=str(user.id),
        description=f"Deleted user {user.name}",
        metadata={"email": user.email},
    )
    s.delete(user)
