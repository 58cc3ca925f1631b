"""
Inertia-style page protocol.

Every page is a dict ``{component, props, url, version}``. Requests carrying
``X-Inertia`` receive it as JSON; plain browser requests receive the HTML shell
with the page embedded in ``data-page`` for the client bundle to boot from.
"""
from __future__ import annotations

from collections.abc import Callable
from typing import Any

from flask import (
    Flask,
    Response,
    current_app,
    g,
    get_flashed_messages,
    jsonify,
    make_response,
    redirect,
    render_template,
    request,
    session,
)

FLASH_KEYS = ("success", "error", "info", "warning", "credentials")


def is_inertia_request() -> bool:
    return request.headers.get("X-Inertia", "").lower() == "true"


def asset_version() -> str:
    return str(current_app.config.get("ASSET_VERSION") or "1")


def share(app: Flask, key: str, value: Any) -> None:
    """Register a prop sent with every page. Callables are resolved per request."""
    app.extensions.setdefault("inertia_shared", {})[key] = value


def request_data() -> dict[str, Any]:
    """Submitted fields from a JSON body (Inertia forms) or a classic form post."""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    data: dict[str, Any] = {}
    for key in request.form:
        values = request.form.getlist(key)
        if key.endswith("[]"):
            data[key[:-2]] = values
        else:
            data[key] = values[-1] if values else ""
    return data


def consume_flashes() -> dict[str, Any]:
    """Flash messages for this request; popped from the session once and cached."""
    cached = getattr(g, "_inertia_flashes", None)
    if cached is None:
        cached = {}
        for category, message in get_flashed_messages(with_categories=True):
            cached[category] = message
        g._inertia_flashes = cached
    return cached


def flash_props() -> dict[str, Any]:
    flashes = consume_flashes()
    return {key: flashes.get(key) for key in FLASH_KEYS}


def status_message() -> str | None:
    return consume_flashes().get("status")


def consume_errors() -> dict[str, str]:
    cached = getattr(g, "_inertia_errors", None)
    if cached is None:
        cached = session.pop("errors", None) or {}
        g._inertia_errors = cached
    return cached


def _resolve(value: Any) -> Any:
    return value() if callable(value) else value


def _partial_keys(component: str) -> list[str] | None:
    if request.headers.get("X-Inertia-Partial-Component") != component:
        return None
    raw = request.headers.get("X-Inertia-Partial-Data", "")
    keys = [k.strip() for k in raw.split(",") if k.strip()]
    return keys or None


def build_page(component: str, props: dict[str, Any] | None = None) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    merged.update(current_app.extensions.get("inertia_shared", {}))
    merged.update(props or {})
    merged.setdefault("errors", consume_errors)

    only = _partial_keys(component) if is_inertia_request() else None
    if only is not None:
        merged = {k: v for k, v in merged.items() if k in only or k == "errors"}

    url = request.full_path if request.query_string else request.path
    return {
        "component": component,
        "props": {k: _resolve(v) for k, v in merged.items()},
        "url": url,
        "version": asset_version(),
    }


def render_page(component: str, props: dict[str, Any] | None = None, status: int = 200) -> Response:
    page = build_page(component, props)
    if is_inertia_request():
        resp = jsonify(page)
        resp.status_code = status
        resp.headers["X-Inertia"] = "true"
    else:
        resp = make_response(render_template("app.html", page=page), status)
    resp.headers.add("Vary", "X-Inertia")
    return resp


def location(url: str) -> Response:
    """Full page visit: 409 + X-Inertia-Location for Inertia clients, plain redirect otherwise."""
    if is_inertia_request():
        resp = make_response("", 409)
        resp.headers["X-Inertia-Location"] = url
        return resp
    return redirect(url)


def redirect_back(fallback: str) -> Response:
    referrer = request.referrer
    if referrer and referrer.startswith(request.host_url):
        return redirect(referrer, 303 if request.method != "GET" else 302)
    return redirect(fallback, 303 if request.method != "GET" else 302)


def init_inertia(app: Flask, shared: dict[str, Callable[[], Any] | Any] | None = None) -> None:
    for key, value in (shared or {}).items():
        share(app, key, value)

    @app.before_request
    def _inertia_version_check():
        if request.method != "GET" or not is_inertia_request():
            return None
        client_version = request.headers.get("X-Inertia-Version")
        if client_version is not None and client_version != asset_version():
            # Stale client bundle: force a full reload. Keep flashes for the next request.
            return location(request.url)
        return None

    @app.after_request
    def _inertia_redirect_status(resp: Response) -> Response:
        # PUT/PATCH/DELETE followed by 302 would be replayed with the same verb by browsers.
        if resp.status_code == 302 and request.method in ("PUT", "PATCH", "DELETE"):
            resp.status_code = 303
        return resp
