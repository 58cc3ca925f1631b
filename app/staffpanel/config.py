import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    app_name: str
    asset_version: str

    mail_backend: str
    mail_host: str
    mail_port: int
    mail_username: str
    mail_password: str
    mail_use_tls: bool
    mail_from: str

    login_max_attempts: int
    password_min_length: int
    password_max_age_days: int
    password_reset_expiry_minutes: int
    email_verify_expiry_minutes: int
    trust_device_expiry_days: int
    password_confirm_timeout: int

    session_lifetime_hours: int
    session_force_logout_on_ip_change: bool

    module_statuses_path: str

    hsts_max_age: int
    x_frame_options: str
    referrer_policy: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getint(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///staffpanel.db"),
        app_name=_getenv("APP_NAME", "Staff Panel"),
        asset_version=_getenv("ASSET_VERSION", "1"),
        mail_backend=_getenv("MAIL_BACKEND", "log"),
        mail_host=_getenv("MAIL_HOST", "localhost"),
        mail_port=_getint("MAIL_PORT", 587),
        mail_username=_getenv("MAIL_USERNAME", ""),
        mail_password=_getenv("MAIL_PASSWORD", ""),
        mail_use_tls=_getbool("MAIL_USE_TLS", True),
        mail_from=_getenv("MAIL_FROM", "no-reply@staffpanel.local"),
        login_max_attempts=_getint("LOGIN_MAX_ATTEMPTS", 5),
        password_min_length=_getint("PASSWORD_MIN_LENGTH", 8),
        password_max_age_days=_getint("PASSWORD_MAX_AGE_DAYS", 90),
        password_reset_expiry_minutes=_getint("PASSWORD_RESET_EXPIRY_MINUTES", 15),
        email_verify_expiry_minutes=_getint("EMAIL_VERIFY_EXPIRY_MINUTES", 60),
        trust_device_expiry_days=_getint("TRUST_DEVICE_EXPIRY_DAYS", 7),
        password_confirm_timeout=_getint("PASSWORD_CONFIRM_TIMEOUT", 10800),
        session_lifetime_hours=_getint("SESSION_LIFETIME_HOURS", 2),
        session_force_logout_on_ip_change=_getbool("SESSION_FORCE_LOGOUT_ON_IP_CHANGE", True),
        module_statuses_path=_getenv("MODULE_STATUSES_PATH", "modules_statuses.json"),
        hsts_max_age=_getint("HSTS_MAX_AGE", 31536000),
        x_frame_options=_getenv("X_FRAME_OPTIONS", "DENY"),
        referrer_policy=_getenv("REFERRER_POLICY", "strict-origin-when-cross-origin"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "APP_NAME": s.app_name,
        "ASSET_VERSION": s.asset_version,
        "MAIL_BACKEND": s.mail_backend,
        "MAIL_HOST": s.mail_host,
        "MAIL_PORT": s.mail_port,
        "MAIL_USERNAME": s.mail_username,
        "MAIL_PASSWORD": s.mail_password,
        "MAIL_USE_TLS": s.mail_use_tls,
        "MAIL_FROM": s.mail_from,
        "LOGIN_MAX_ATTEMPTS": s.login_max_attempts,
        "PASSWORD_MIN_LENGTH": s.password_min_length,
        "PASSWORD_MAX_AGE_DAYS": s.password_max_age_days,
        "PASSWORD_RESET_EXPIRY_MINUTES": s.password_reset_expiry_minutes,
        "EMAIL_VERIFY_EXPIRY_MINUTES": s.email_verify_expiry_minutes,
        "TRUST_DEVICE_EXPIRY_DAYS": s.trust_device_expiry_days,
        "PASSWORD_CONFIRM_TIMEOUT": s.password_confirm_timeout,
        "SESSION_LIFETIME_HOURS": s.session_lifetime_hours,
        "SESSION_FORCE_LOGOUT_ON_IP_CHANGE": s.session_force_logout_on_ip_change,
        "MODULE_STATUSES_PATH": s.module_statuses_path,
        "HSTS_MAX_AGE": s.hsts_max_age,
        "X_FRAME_OPTIONS": s.x_frame_options,
        "REFERRER_POLICY": s.referrer_policy,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        "MAX_CONTENT_LENGTH": 10 * 1024 * 1024,
    }
