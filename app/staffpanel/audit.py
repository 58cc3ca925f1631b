import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.staffpanel.models import AuditEvent, StaffUser

_EVENT_ICONS = {
    "created": "UserPlus",
    "updated": "UserCog",
    "deleted": "UserMinus",
    "login": "LogIn",
    "logout": "LogOut",
    "login_failed": "ShieldAlert",
    "password_reset": "KeyRound",
    "password_changed": "KeyRound",
    "email_verified": "MailCheck",
    "device_trusted": "ShieldCheck",
}


def record_event(
    s: Session,
    *,
    actor: StaffUser | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    description: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """
    Append-only audit event helper.
    """
    in_request = has_request_context()
    rid = request_id or (getattr(g, "request_id", None) if in_request else None)
    ev = AuditEvent(
        request_id=rid,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=request.remote_addr if in_request else None,
    )
    s.add(ev)
    return ev


def icon_for_action(action: str) -> str:
    verb = action.rsplit(".", 1)[-1]
    return _EVENT_ICONS.get(verb, "Activity")


def recent_activity(s: Session, limit: int = 5) -> list[dict[str, Any]]:
    events = s.query(AuditEvent).order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit).all()
    return [
        {
            "id": ev.id,
            "user": {"name": ev.actor.name if ev.actor else (ev.actor_user_email or "System")},
            "title": ev.description or ev.action,
            "timestamp": ev.created_at.isoformat(),
            "icon": icon_for_action(ev.action),
        }
        for ev in events
    ]
