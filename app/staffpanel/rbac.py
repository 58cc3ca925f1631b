import time
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, current_app, g, redirect, request, session, url_for

from app.staffpanel.constants import (
    HIDDEN_PERMISSION_PREFIXES,
    INTENDED_URL_SESSION_KEY,
    PASSWORD_CONFIRMED_SESSION_KEY,
    PROTECTED_ROLES,
)
from app.staffpanel.models import StaffUser

PermissionChecker = Callable[[str], bool]


def user_has_permission(user: StaffUser | None, permission_name: str) -> bool:
    if not user or not user.is_active:
        return False
    if user.has_role(*PROTECTED_ROLES):
        return True
    for role in user.roles:
        for perm in role.permissions:
            if perm.name == permission_name:
                return True
    return False


def permission_checker(user: StaffUser | None) -> PermissionChecker:
    def check(permission_name: str) -> bool:
        return user_has_permission(user, permission_name)

    return check


def frontend_permissions(user: StaffUser | None) -> list[str]:
    """Granted permission names safe to expose to the browser."""
    if not user or not user.is_active:
        return []
    return [p for p in user.permission_names() if not p.startswith(HIDDEN_PERMISSION_PREFIXES)]


def _current_user() -> StaffUser | None:
    user: StaffUser | None = getattr(g, "current_user", None)
    if not user or not user.is_active:
        return None
    return user


def _redirect_to_login():
    if request.method == "GET":
        nxt = request.full_path or request.path
        # Avoid trailing '?' from full_path when there is no query string.
        if nxt.endswith("?"):
            nxt = nxt[:-1]
        session[INTENDED_URL_SESSION_KEY] = nxt
    return redirect(url_for("auth.login"))


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if _current_user() is None:
            return _redirect_to_login()
        return fn(*args, **kwargs)

    return wrapped


def require_verified(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user = _current_user()
        if user is None:
            return _redirect_to_login()
        if not user.has_verified_email():
            return redirect(url_for("auth.verification_notice"))
        return fn(*args, **kwargs)

    return wrapped


def require_guest(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if _current_user() is not None:
            return redirect(url_for("internal.dashboard"))
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = _current_user()
            # Unauthenticated → redirect to login
            if user is None:
                return _redirect_to_login()
            # Authenticated but unauthorized → 403
            if not user_has_permission(user, permission_name):
                g.missing_permission = permission_name
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def staff_guard(permission_name: str | None = None, *, verified: bool = True) -> Callable[[], Any]:
    """
    `before_request` hook for a whole blueprint (nested blueprints included):
    signed in, optionally verified, optionally holding `permission_name`.
    """

    def guard():
        user = _current_user()
        if user is None:
            return _redirect_to_login()
        if verified and not user.has_verified_email():
            return redirect(url_for("auth.verification_notice"))
        if permission_name and not user_has_permission(user, permission_name):
            g.missing_permission = permission_name
            abort(403)
        return None

    return guard


def password_recently_confirmed() -> bool:
    confirmed_at = session.get(PASSWORD_CONFIRMED_SESSION_KEY)
    if not confirmed_at:
        return False
    return (time.time() - float(confirmed_at)) < current_app.config["PASSWORD_CONFIRM_TIMEOUT"]


def require_password_confirmed(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if _current_user() is None:
            return _redirect_to_login()
        if not password_recently_confirmed():
            if request.method == "GET":
                session[INTENDED_URL_SESSION_KEY] = request.path
            return redirect(url_for("auth.password_confirm"))
        return fn(*args, **kwargs)

    return wrapped
