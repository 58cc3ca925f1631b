from __future__ import annotations

from datetime import datetime, timedelta

from flask import Blueprint, abort, current_app, flash, g, redirect, request, url_for

from app.staffpanel.composer import get_composer
from app.staffpanel.constants import LAST_ACTIVITY_THROTTLE_SECONDS
from app.staffpanel.db import db_session
from app.staffpanel.devices import parse_user_agent, trust_device as mark_device_trusted
from app.staffpanel.inertia import render_page
from app.staffpanel.models import StaffUser
from app.staffpanel.passwords import password_expired
from app.staffpanel.rbac import permission_checker, staff_guard
from app.staffpanel.registry import Module, get_registry
from app.staffpanel.security import has_valid_signature
from app.staffpanel.settings import bp as settings_bp


def _current_user() -> StaffUser:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _touch_last_activity(user: StaffUser) -> None:
    now = datetime.utcnow()
    if user.last_activity and now - user.last_activity < timedelta(seconds=LAST_ACTIVITY_THROTTLE_SECONDS):
        return
    user.last_activity = now
    db_session().commit()


def dashboard():
    user = _current_user()
    available = get_registry().get_available_modules_for_user(user)
    props = get_composer().compose_dashboard_view_context(user, available, permission_checker(user))

    last_login = None
    if user.last_login_at:
        device = parse_user_agent(user.last_login_user_agent)
        last_login = {
            "at": _iso(user.last_login_at),
            "ip": user.last_login_ip,
            "device": " on ".join(p for p in (device["browser"], device["platform"]) if p) or device["device_type"],
        }
    props.update(
        {
            "passwordChangeRequired": password_expired(user, current_app.config["PASSWORD_MAX_AGE_DAYS"]),
            "lastLogin": last_login,
            "sessionInfo": {
                "ip": request.remote_addr,
                "userAgent": request.headers.get("User-Agent", ""),
                "lastActivity": _iso(user.last_activity),
            },
            "verified": request.args.get("verified") == "1",
        }
    )
    _touch_last_activity(user)
    return render_page("internal/dashboard", props)


def trust_device(login_info_id: int):
    if not has_valid_signature(request):
        abort(403)
    user = _current_user()
    s = db_session()
    mark_device_trusted(s, user, login_info_id)
    s.commit()
    flash("This device is now marked as trusted.", "success")
    return redirect(url_for("internal.dashboard"))


def create_internal_blueprint(modules: list[Module]) -> Blueprint:
    """
    Staff area under /internal. Built per app so each enabled module's blueprint
    nests under it and gets `internal.<slug>.*` endpoint names.
    """
    bp = Blueprint("internal", __name__, url_prefix="/internal")
    bp.before_request(staff_guard())
    bp.add_url_rule("/dashboard", "dashboard", dashboard)
    bp.add_url_rule("/trust-device/<int:login_info_id>", "trust_device", trust_device)
    bp.register_blueprint(settings_bp)
    for module in modules:
        bp.register_blueprint(module.blueprint())
    return bp
