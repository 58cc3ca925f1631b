from __future__ import annotations

import hashlib
import time
import uuid
from datetime import datetime

from flask import Blueprint, abort, current_app, flash, g, redirect, request, session, url_for
from werkzeug.security import check_password_hash, generate_password_hash

from app.staffpanel.audit import record_event
from app.staffpanel.constants import INTENDED_URL_SESSION_KEY, PASSWORD_CONFIRMED_SESSION_KEY
from app.staffpanel.db import db_session
from app.staffpanel.devices import handle_login
from app.staffpanel.errors import RateLimitedError, ValidationError
from app.staffpanel.inertia import redirect_back, render_page, request_data, status_message
from app.staffpanel.login_attempts import LoginAttemptService
from app.staffpanel.models import StaffUser
from app.staffpanel.notifications import send_email_verification, send_password_confirmed, send_password_reset
from app.staffpanel.passwords import is_valid_email, validate_password
from app.staffpanel.rbac import require_guest, require_login
from app.staffpanel.security import (
    has_valid_signature,
    load_token,
    make_token,
    rotate_csrf_token,
    session_fingerprint,
    signed_url,
)

bp = Blueprint("auth", __name__)

RESET_LINK_STATUS = "If an account exists for that email, we have sent a password reset link."

_FAILED_LOGIN_MESSAGES = {
    "user_not_found": "These credentials do not match our records.",
    "invalid_credentials": "These credentials do not match our records.",
    "account_inactive": "This account is inactive. Please contact an administrator.",
}


def _limiter() -> LoginAttemptService:
    return current_app.extensions["login_limiter"]


def _current_user() -> StaffUser:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _safe_next(url: str | None) -> str | None:
    # Local paths only; browsers read a backslash as "/".
    if url and url.startswith("/") and not url.startswith("//") and "\\" not in url:
        return url
    return None


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return
    user = db_session().get(StaffUser, int(user_id))
    if user is None:
        session.pop("user_id", None)
    g.current_user = user


def start_session(user: StaffUser) -> None:
    """Fresh session for a newly authenticated user (prevents session fixation)."""
    session.clear()
    session["user_id"] = user.id
    session["fingerprint"] = session_fingerprint(request)
    session.permanent = True
    rotate_csrf_token()
    g.current_user = user


def email_hash(user: StaffUser) -> str:
    return hashlib.sha1(user.email.encode("utf-8")).hexdigest()


def verification_url(user: StaffUser) -> str:
    return signed_url(
        "auth.verification_verify",
        current_app.config["EMAIL_VERIFY_EXPIRY_MINUTES"] * 60,
        user_id=user.id,
        hash=email_hash(user),
    )


def _reset_fingerprint(user: StaffUser) -> str:
    # Tokens die as soon as the password changes.
    return hashlib.sha256(user.password_hash.encode("utf-8")).hexdigest()[:16]


def password_reset_url(user: StaffUser) -> str:
    token = make_token("password-reset", {"uid": user.id, "fp": _reset_fingerprint(user)})
    return url_for("auth.password_reset", token=token, email=user.email, _external=True)


# ---------- Login ----------

@bp.get("/login")
@require_guest
def login():
    return render_page(
        "auth/login",
        {"canResetPassword": True, "status": status_message()},
    )


def _validate_login(data: dict) -> tuple[str, str]:
    email = str(data.get("email") or "").strip().lower()
    password = str(data.get("password") or "")
    errors: dict[str, str] = {}
    if not email:
        errors["email"] = "The email field is required."
    elif not is_valid_email(email):
        errors["email"] = "The email must be a valid email address."
    if not password:
        errors["password"] = "The password field is required."
    elif len(password) < 8:
        errors["password"] = "The password must be at least 8 characters."
    if errors:
        raise ValidationError(errors)
    return email, password


def _ensure_not_rate_limited(email: str, ip: str | None) -> None:
    limiter = _limiter()
    if limiter.is_ip_blocked(ip):
        current_app.logger.warning("Login refused for blocked ip=%s email=%s", ip, email)
        raise RateLimitedError(
            "email",
            "Access from your network has been temporarily blocked due to suspicious activity.",
            24 * 60 * 60,
        )
    if limiter.has_too_many_attempts(email, ip):
        seconds = limiter.available_in(email, ip)
        minutes = limiter.remaining_minutes(email, ip)
        current_app.logger.warning("Login throttled email=%s ip=%s retry_in=%ss", email, ip, seconds)
        raise RateLimitedError(
            "email",
            f"Too many login attempts. Please try again in {minutes} minute{'s' if minutes != 1 else ''}.",
            seconds,
        )


def _fail_login(email: str, ip: str | None, reason: str, user: StaffUser | None) -> None:
    attempts = _limiter().increment(email, ip)
    current_app.logger.warning("Failed login reason=%s email=%s ip=%s attempts=%s", reason, email, ip, attempts)
    s = db_session()
    record_event(
        s,
        actor=None,
        action="auth.login_failed",
        entity_type="StaffUser",
        entity_id=str(user.id) if user else email,
        description="Failed sign-in attempt",
        reason=reason,
        metadata={"email": email, "attempts": attempts},
    )
    s.commit()
    raise ValidationError({"email": _FAILED_LOGIN_MESSAGES[reason]})


@bp.post("/login")
@require_guest
def login_store():
    data = request_data()
    email, password = _validate_login(data)
    ip = request.remote_addr
    _ensure_not_rate_limited(email, ip)

    s = db_session()
    user = s.query(StaffUser).filter(StaffUser.email == email).one_or_none()
    if user is None:
        _fail_login(email, ip, "user_not_found", None)
    elif not user.is_active:
        _fail_login(email, ip, "account_inactive", user)
    elif not check_password_hash(user.password_hash, password):
        _fail_login(email, ip, "invalid_credentials", user)

    _limiter().clear(email, ip)
    intended = _safe_next(session.get(INTENDED_URL_SESSION_KEY))
    start_session(user)
    handle_login(s, user, ip, request.headers.get("User-Agent"))
    record_event(s, actor=user, action="auth.login", entity_type="StaffUser", entity_id=str(user.id), description="Signed in")
    s.commit()
    current_app.logger.info("Login ok user_id=%s ip=%s", user.id, ip)
    return redirect(intended or url_for("internal.dashboard"))


@bp.post("/logout")
@require_login
def logout():
    s = db_session()
    user = _current_user()
    record_event(s, actor=user, action="auth.logout", entity_type="StaffUser", entity_id=str(user.id), description="Signed out")
    s.commit()
    session.clear()
    return redirect(url_for("routes.welcome"))


# ---------- Password reset ----------

@bp.get("/forgot-password")
@require_guest
def password_request():
    return render_page("auth/forgot-password", {"status": status_message()})


@bp.post("/forgot-password")
@require_guest
def password_email():
    email = str(request_data().get("email") or "").strip().lower()
    if not email:
        raise ValidationError({"email": "The email field is required."})
    if not is_valid_email(email):
        raise ValidationError({"email": "The email must be a valid email address."})

    s = db_session()
    user = s.query(StaffUser).filter(StaffUser.email == email).one_or_none()
    if user is not None and user.is_active:
        send_password_reset(user, password_reset_url(user), current_app.config["PASSWORD_RESET_EXPIRY_MINUTES"])
        record_event(
            s,
            actor=None,
            action="auth.password_reset_requested",
            entity_type="StaffUser",
            entity_id=str(user.id),
            description="Password reset requested",
        )
        s.commit()
    else:
        current_app.logger.info("Password reset requested for unknown or inactive email=%s", email)
    # Same answer whether or not the account exists.
    flash(RESET_LINK_STATUS, "status")
    return redirect(url_for("auth.password_request"))


@bp.get("/reset-password/<token>")
@require_guest
def password_reset(token: str):
    return render_page("auth/reset-password", {"token": token, "email": request.args.get("email", "")})


@bp.post("/reset-password")
@require_guest
def password_store():
    data = request_data()
    token = str(data.get("token") or "")
    email = str(data.get("email") or "").strip().lower()
    password = str(data.get("password") or "")
    confirmation = str(data.get("password_confirmation") or "")

    invalid = ValidationError({"email": "This password reset token is invalid or has expired."})
    payload = load_token("password-reset", token, current_app.config["PASSWORD_RESET_EXPIRY_MINUTES"] * 60)
    if payload is None:
        raise invalid
    s = db_session()
    user = s.get(StaffUser, int(payload.get("uid") or 0))
    if user is None or user.email != email or payload.get("fp") != _reset_fingerprint(user):
        raise invalid

    problems = validate_password(password, confirmation, min_length=current_app.config["PASSWORD_MIN_LENGTH"])
    if problems:
        raise ValidationError({"password": problems[0]})

    user.password_hash = generate_password_hash(password)
    user.password_changed_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="auth.password_reset",
        entity_type="StaffUser",
        entity_id=str(user.id),
        description="Password reset completed",
    )
    s.commit()
    flash("Your password has been reset.", "status")
    return redirect(url_for("auth.login"))


# ---------- Email verification ----------

@bp.get("/verify-email")
@require_login
def verification_notice():
    user = _current_user()
    if user.has_verified_email():
        return redirect(url_for("internal.dashboard"))
    return render_page("auth/verify-email", {"status": status_message()})


@bp.get("/verify-email/<int:user_id>/<hash>")
@require_login
def verification_verify(user_id: int, hash: str):
    user = _current_user()
    if not has_valid_signature(request):
        abort(403)
    if user_id != user.id or hash != email_hash(user):
        abort(403)
    if not user.has_verified_email():
        s = db_session()
        user.email_verified_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="auth.email_verified",
            entity_type="StaffUser",
            entity_id=str(user.id),
            description="Email address verified",
        )
        s.commit()
    return redirect(url_for("internal.dashboard", verified=1))


@bp.post("/email/verification-notification")
@require_login
def verification_send():
    user = _current_user()
    if user.has_verified_email():
        return redirect(url_for("internal.dashboard"))
    send_email_verification(user, verification_url(user))
    flash("verification-link-sent", "status")
    return redirect_back(url_for("auth.verification_notice"))


# ---------- Password confirmation ----------

@bp.get("/confirm-password")
@require_login
def password_confirm():
    return render_page("auth/confirm-password")


@bp.post("/confirm-password")
@require_login
def password_confirm_store():
    user = _current_user()
    password = str(request_data().get("password") or "")
    if not password or not check_password_hash(user.password_hash, password):
        raise ValidationError({"password": "The provided password is incorrect."})
    session[PASSWORD_CONFIRMED_SESSION_KEY] = time.time()
    send_password_confirmed(
        user,
        action="sensitive action",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    intended = _safe_next(session.pop(INTENDED_URL_SESSION_KEY, None))
    return redirect(intended or url_for("internal.dashboard"))
