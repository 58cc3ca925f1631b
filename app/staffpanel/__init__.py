import logging
import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, flash, g, jsonify, redirect, request, session, url_for
from werkzeug.exceptions import HTTPException

from app.staffpanel.auth import bp as auth_bp, load_current_user
from app.staffpanel.composer import ViewComposerService
from app.staffpanel.config import load_config
from app.staffpanel.db import init_db, teardown_db_session
from app.staffpanel.errors import ProtectedUserError, RateLimitedError, ValidationError, describe_status
from app.staffpanel.inertia import flash_props, init_inertia, is_inertia_request, redirect_back, render_page
from app.staffpanel.internal import create_internal_blueprint
from app.staffpanel.login_attempts import LoginAttemptService
from app.staffpanel.mail import mailer_from_config
from app.staffpanel.navigation import NavigationBuilderService
from app.staffpanel.passwords import password_expired
from app.staffpanel.rbac import frontend_permissions, permission_checker
from app.staffpanel.registry import ModuleRegistryService
from app.staffpanel.route_filter import filter_routes, route_map
from app.staffpanel.routes import bp as routes_bp
from app.staffpanel.security import (
    apply_no_cache_headers,
    apply_security_headers,
    ensure_csrf_token,
    network_prefix,
    session_fingerprint,
    validate_csrf,
)

PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Endpoints reachable without a session (and without CSRF on the login form).
_SKIP_USER_PATHS = ("/static/", "/health", "/healthz")
_CSRF_EXEMPT_ENDPOINTS = ("auth.login_store", "auth.logout")


def _current_user():
    return getattr(g, "current_user", None)


def _user_payload(user) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "email_verified_at": user.email_verified_at.isoformat() if user.email_verified_at else None,
        "roles": user.role_names(),
        "permissions": frontend_permissions(user),
    }


def _wants_json() -> bool:
    if is_inertia_request():
        return False
    best = request.accept_mimetypes.best_match(["application/json", "text/html"])
    return best == "application/json" and request.accept_mimetypes[best] > request.accept_mimetypes["text/html"]


def error_page(status: int, message: str | None = None):
    title, default_message = describe_status(status)
    if _wants_json():
        return jsonify({"message": message or default_message}), status
    return render_page("errors/error-page", {"status": status, "title": title, "message": message or default_message}, status)


def _statuses_path(configured: str) -> Path:
    path = Path(configured)
    return path if path.is_absolute() else PROJECT_ROOT / path


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=app.config["SESSION_LIFETIME_HOURS"])
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    is_production = env in ("prod", "production")
    if is_production:
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.extensions["mailer"] = mailer_from_config(app.config)
    app.extensions["login_limiter"] = LoginAttemptService(max_attempts=app.config["LOGIN_MAX_ATTEMPTS"])

    registry = ModuleRegistryService(_statuses_path(app.config["MODULE_STATUSES_PATH"]))
    navigation = NavigationBuilderService(registry)
    app.extensions["module_registry"] = registry
    app.extensions["navigation_builder"] = navigation
    app.extensions["view_composer"] = ViewComposerService(registry, navigation)

    modules = registry.get_all_enabled_modules()
    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/internal")
    app.register_blueprint(create_internal_blueprint(modules))
    app.logger.info("Registered modules: %s", ", ".join(m.name for m in modules) or "none")

    # ---------- shared page props ----------

    def _routes() -> dict:
        if "route_map" not in app.extensions:
            app.extensions["route_map"] = route_map(app)
        return filter_routes(app.extensions["route_map"], _current_user())

    def _can() -> dict:
        user = _current_user()
        return {p: True for p in frontend_permissions(user)}

    def _global_nav() -> list:
        user = _current_user()
        if user is None:
            return []
        return navigation.build_global_nav_items(registry.get_global_nav_items(user), permission_checker(user))

    def _password_change_required() -> bool:
        user = _current_user()
        return bool(user) and password_expired(user, app.config["PASSWORD_MAX_AGE_DAYS"])

    init_inertia(
        app,
        {
            "name": lambda: app.config["APP_NAME"],
            "auth": lambda: {
                "user": _user_payload(_current_user()),
                "staff": _user_payload(_current_user()),
                "can": _can(),
                "impersonate": None,
            },
            "routes": _routes,
            "flash": flash_props,
            "csrf_token": ensure_csrf_token,
            "sidebarOpen": lambda: request.cookies.get("sidebar_state", "true") == "true",
            "contextualNavItems": list,
            "globalNavItems": _global_nav,
            "passwordChangeRequired": _password_change_required,
        },
    )

    # ---------- request hooks ----------

    @app.before_request
    def _load_user():
        if request.path.startswith(_SKIP_USER_PATHS):
            g.current_user = None
            return None
        return load_current_user()

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_SKIP_USER_PATHS):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if request.endpoint in _CSRF_EXEMPT_ENDPOINTS:
                return None
            if not validate_csrf(request):
                app.logger.warning("CSRF token mismatch path=%s ip=%s", request.path, request.remote_addr)
                return error_page(419)
        return None

    @app.before_request
    def _session_integrity():
        user = _current_user()
        stored = session.get("fingerprint")
        if user is None or not stored:
            return None
        current = session_fingerprint(request)
        if app.config["SESSION_FORCE_LOGOUT_ON_IP_CHANGE"]:
            changed = stored != current
        else:
            changed = stored.split("|", 1)[0] != current.split("|", 1)[0]
        if not changed:
            return None
        app.logger.warning(
            "Session fingerprint changed user_id=%s network=%s; forcing logout",
            user.id,
            network_prefix(request.remote_addr),
        )
        session.clear()
        g.current_user = None
        flash("Your session was ended because your connection changed. Please sign in again.", "warning")
        return redirect(url_for("auth.login"))

    @app.before_request
    def _active_user():
        user = _current_user()
        if user is None or user.is_active:
            return None
        app.logger.warning("Inactive user session terminated user_id=%s", user.id)
        session.clear()
        g.current_user = None
        flash("This account is inactive. Please contact an administrator.", "error")
        return redirect(url_for("auth.login"))

    @app.after_request
    def _response_headers(resp):
        apply_security_headers(resp, request)
        if _current_user() is not None:
            apply_no_cache_headers(resp)
        token = session.get("csrf_token")
        if token and request.cookies.get("XSRF-TOKEN") != token:
            resp.set_cookie(
                "XSRF-TOKEN",
                token,
                samesite="Lax",
                secure=app.config["SESSION_COOKIE_SECURE"],
            )
        return resp

    @app.after_request
    def _log_failed_requests(resp):
        if is_production and resp.status_code >= 400:
            user = _current_user()
            app.logger.warning(
                "HTTP %s %s -> %s user_id=%s ip=%s request_id=%s",
                request.method,
                request.path,
                resp.status_code,
                user.id if user else None,
                request.remote_addr,
                getattr(g, "request_id", None),
            )
        return resp

    app.teardown_appcontext(teardown_db_session)

    # ---------- error handlers ----------

    @app.errorhandler(ValidationError)
    def _validation_error(e: ValidationError):
        if _wants_json():
            return jsonify({"message": "The given data was invalid.", "errors": e.errors}), 422
        session["errors"] = e.errors
        resp = redirect_back(request.path)
        if isinstance(e, RateLimitedError):
            resp.headers["Retry-After"] = str(e.retry_after)
        return resp

    @app.errorhandler(ProtectedUserError)
    def _protected_user(e: ProtectedUserError):
        flash(str(e), "error")
        return redirect_back(url_for("internal.dashboard"))

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        if e.code is None or e.code < 400:
            return e
        if e.code == 403:
            missing = getattr(g, "missing_permission", None)
            if missing:
                app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        if e.code == 500:
            return _err_500(e)
        return error_page(e.code)

    @app.errorhandler(500)
    def _err_500(e):
        request_id = getattr(g, "request_id", None)
        original = getattr(e, "original_exception", None)
        if original is not None:
            app.logger.error("Unhandled 500 (request_id=%s)", request_id, exc_info=original)
        else:
            app.logger.error("HTTP 500 aborted path=%s (request_id=%s)", request.path, request_id)
        return error_page(500)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
