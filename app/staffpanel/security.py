from __future__ import annotations

import hmac
import ipaddress
import secrets
from typing import Any

from flask import Request, Response, current_app, session, url_for
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def rotate_csrf_token() -> str:
    session.pop("csrf_token", None)
    return ensure_csrf_token()


def validate_csrf(req: Request) -> bool:
    """Validate CSRF token from header, form, or JSON body."""
    token = req.headers.get("X-CSRF-Token") or req.headers.get("X-XSRF-TOKEN") or req.form.get("csrf_token")
    if not token and req.is_json:
        json_data = req.get_json(silent=True) or {}
        if isinstance(json_data, dict):
            token = json_data.get("csrf_token")
    expected = session.get("csrf_token")
    return bool(token and expected and hmac.compare_digest(str(token), str(expected)))


# ---------- Signed URLs ----------

def _serializer(salt: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=salt)


def signed_url(endpoint: str, expires_in: int, *, external: bool = True, **values: Any) -> str:
    """
    Build a URL for `endpoint` carrying a `signature` query param bound to the
    endpoint, its values and a max age in seconds.
    """
    payload = {"e": endpoint, "v": {k: str(v) for k, v in values.items()}, "ttl": int(expires_in)}
    signature = _serializer("signed-url").dumps(payload)
    return url_for(endpoint, _external=external, signature=signature, **values)


def has_valid_signature(req: Request) -> bool:
    signature = req.args.get("signature")
    if not signature:
        return False
    s = _serializer("signed-url")
    try:
        payload = s.loads(signature)
        s.loads(signature, max_age=int(payload.get("ttl", 0)))
    except SignatureExpired:
        current_app.logger.info("Expired signed URL for endpoint=%s", req.endpoint)
        return False
    except BadSignature:
        current_app.logger.warning("Invalid URL signature for endpoint=%s", req.endpoint)
        return False
    view_args = {k: str(v) for k, v in (req.view_args or {}).items()}
    return payload.get("e") == req.endpoint and payload.get("v") == view_args


def make_token(salt: str, payload: dict[str, Any]) -> str:
    return _serializer(salt).dumps(payload)


def load_token(salt: str, token: str, max_age: int) -> dict[str, Any] | None:
    try:
        data = _serializer(salt).loads(token, max_age=max_age)
    except (SignatureExpired, BadSignature):
        return None
    return data if isinstance(data, dict) else None


# ---------- Session integrity ----------

def network_prefix(ip: str | None) -> str:
    """IPv4 /24 or IPv6 /64 prefix so a DHCP renew on the same network does not log users out."""
    if not ip:
        return ""
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return ip
    prefix = 24 if addr.version == 4 else 64
    return str(ipaddress.ip_network(f"{addr}/{prefix}", strict=False))


def session_fingerprint(req: Request) -> str:
    ua = req.headers.get("User-Agent", "")
    return f"{ua}|{network_prefix(req.remote_addr)}"


# ---------- Response headers ----------

def apply_security_headers(resp: Response, req: Request) -> Response:
    cfg = current_app.config
    resp.headers.setdefault("X-Content-Type-Options", "nosniff")
    resp.headers.setdefault("X-Frame-Options", cfg.get("X_FRAME_OPTIONS", "DENY"))
    resp.headers.setdefault("Referrer-Policy", cfg.get("REFERRER_POLICY", "strict-origin-when-cross-origin"))
    resp.headers.setdefault("Permissions-Policy", "camera=(), microphone=(), geolocation=()")
    if cfg.get("ENV") in ("prod", "production") and req.is_secure:
        resp.headers.setdefault("Strict-Transport-Security", f"max-age={cfg.get('HSTS_MAX_AGE', 31536000)}; includeSubDomains")
    return resp


def apply_no_cache_headers(resp: Response) -> Response:
    resp.headers["Cache-Control"] = "no-cache, no-store, max-age=0, must-revalidate"
    resp.headers["Pragma"] = "no-cache"
    resp.headers["Expires"] = "Fri, 01 Jan 1990 00:00:00 GMT"
    return resp
