"""Personal account settings: profile, password, appearance."""
from __future__ import annotations

from datetime import datetime

from flask import Blueprint, current_app, flash, g, redirect, request, session, url_for
from werkzeug.security import check_password_hash, generate_password_hash

from app.staffpanel.audit import record_event
from app.staffpanel.db import db_session
from app.staffpanel.errors import ValidationError
from app.staffpanel.inertia import render_page, request_data, status_message
from app.staffpanel.models import StaffUser
from app.staffpanel.navigation import get_navigation
from app.staffpanel.notifications import send_account_updated, send_email_verification
from app.staffpanel.passwords import is_valid_email, validate_password
from app.staffpanel.rbac import permission_checker
from app.staffpanel.registry import get_registry

bp = Blueprint("settings", __name__, url_prefix="/settings")
profile_bp = Blueprint("profile", __name__, url_prefix="/profile")
password_bp = Blueprint("password", __name__, url_prefix="/password")


def _current_user() -> StaffUser:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _settings_nav(user: StaffUser) -> list[dict]:
    return get_navigation().build_global_nav_items(get_registry().get_global_nav_items(user), permission_checker(user))


def _render_settings(component: str, user: StaffUser, props: dict | None = None):
    return render_page(component, {"contextualNavItems": _settings_nav(user), **(props or {})})


@bp.get("/")
def index_redirect():
    return redirect(url_for("internal.settings.profile.edit"))


@bp.get("/appearance")
def appearance():
    return _render_settings("settings/appearance", _current_user())


# ---------- Profile ----------

@profile_bp.get("", endpoint="edit")
def profile_edit():
    user = _current_user()
    return _render_settings(
        "settings/profile",
        user,
        {
            "mustVerifyEmail": not user.has_verified_email(),
            "status": status_message(),
            "profile": {"name": user.name, "email": user.email},
        },
    )


@profile_bp.patch("", endpoint="update")
def profile_update():
    user = _current_user()
    data = request_data()
    name = str(data.get("name") or "").strip()
    email = str(data.get("email") or "").strip().lower()

    s = db_session()
    errors: dict[str, str] = {}
    if not name:
        errors["name"] = "The name field is required."
    elif len(name) > 255:
        errors["name"] = "The name may not be greater than 255 characters."
    if not email:
        errors["email"] = "The email field is required."
    elif not is_valid_email(email) or len(email) > 255:
        errors["email"] = "The email must be a valid email address."
    elif s.query(StaffUser).filter(StaffUser.email == email, StaffUser.id != user.id).first() is not None:
        errors["email"] = "The email has already been taken."
    if errors:
        raise ValidationError(errors)

    changes: dict[str, dict[str, str]] = {}
    if name != user.name:
        changes["name"] = {"old": user.name, "new": name}
        user.name = name
    if email != user.email:
        changes["email"] = {"old": user.email, "new": email}
        user.email = email
        user.email_verified_at = None

    if changes:
        record_event(
            s,
            actor=user,
            action="staff_user.updated",
            entity_type="StaffUser",
            entity_id=str(user.id),
            description="Profile updated",
            metadata={"changes": changes},
        )
    s.commit()

    if changes:
        send_account_updated(user, changes, request.remote_addr)
    if "email" in changes:
        from app.staffpanel.auth import verification_url

        send_email_verification(user, verification_url(user))
    flash("Profile updated.", "success")
    return redirect(url_for("internal.settings.profile.edit"))


@profile_bp.delete("", endpoint="destroy")
def profile_destroy():
    user = _current_user()
    password = str(request_data().get("password") or "")
    if not password or not check_password_hash(user.password_hash, password):
        raise ValidationError({"password": "The provided password is incorrect."})
    if user.has_protected_role():
        flash("Accounts with a protected role cannot be deleted.", "error")
        return redirect(url_for("internal.settings.profile.edit"))

    s = db_session()
    record_event(
        s,
        actor=None,
        action="staff_user.deleted",
        entity_type="StaffUser",
        entity_id=str(user.id),
        description=f"Account {user.email} deleted by its owner",
    )
    s.delete(user)
    s.commit()
    current_app.logger.info("Staff user deleted own account user_id=%s", user.id)
    session.clear()
    return redirect(url_for("routes.welcome"))


# ---------- Password ----------

@password_bp.get("", endpoint="edit")
def password_edit():
    return _render_settings("settings/password", _current_user(), {"status": status_message()})


@password_bp.put("", endpoint="update")
def password_update():
    user = _current_user()
    data = request_data()
    current = str(data.get("current_password") or "")
    password = str(data.get("password") or "")
    confirmation = str(data.get("password_confirmation") or "")

    if not current or not check_password_hash(user.password_hash, current):
        raise ValidationError({"current_password": "The provided password does not match your current password."})
    problems = validate_password(password, confirmation, min_length=current_app.config["PASSWORD_MIN_LENGTH"])
    if problems:
        raise ValidationError({"password": problems[0]})

    s = db_session()
    user.password_hash = generate_password_hash(password)
    user.password_changed_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="staff_user.password_changed",
        entity_type="StaffUser",
        entity_id=str(user.id),
        description="Password changed",
    )
    s.commit()
    send_account_updated(user, {"password": "changed"}, request.remote_addr)
    flash("Password updated.", "success")
    return redirect(url_for("internal.settings.password.edit"))


bp.register_blueprint(profile_bp)
bp.register_blueprint(password_bp)
