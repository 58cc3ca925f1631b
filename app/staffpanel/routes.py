from datetime import datetime, timezone

from flask import Blueprint, redirect, url_for

from app.staffpanel.inertia import render_page

bp = Blueprint("routes", __name__)


@bp.get("/")
def welcome():
    return render_page("public/welcome")


@bp.get("/register")
def register():
    # Staff accounts are created by administrators only.
    return redirect(url_for("auth.login"))


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}


@bp.get("/healthz")
def healthz():
    """
    Fast liveness check for the container runtime. No DB access.
    """
    return "ok", 200
