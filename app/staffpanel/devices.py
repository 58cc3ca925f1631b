from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from flask import abort, current_app
from sqlalchemy.orm import Session
from user_agents import parse as parse_ua

from app.staffpanel.audit import record_event
from app.staffpanel.models import LoginInfo, StaffUser
from app.staffpanel.notifications import send_login_alert
from app.staffpanel.security import signed_url

logger = logging.getLogger(__name__)


def parse_user_agent(user_agent: str | None) -> dict[str, Any]:
    if not user_agent:
        return {"device_type": "unknown", "browser": None, "platform": None, "is_mobile": False}
    ua = parse_ua(user_agent)
    if ua.is_bot:
        device_type = "bot"
    elif ua.is_tablet:
        device_type = "tablet"
    elif ua.is_mobile:
        device_type = "mobile"
    elif ua.is_pc:
        device_type = "desktop"
    else:
        device_type = "unknown"
    return {
        "device_type": device_type,
        "browser": ua.browser.family or None,
        "platform": ua.os.family or None,
        "is_mobile": bool(ua.is_mobile),
    }


def is_suspicious_login(user: StaffUser, ip: str | None, user_agent: str | None) -> bool:
    """
    A login is suspicious unless this ip/agent pair (or a trusted device with the
    same agent) was seen before. Must run before the current login is recorded.
    """
    if not ip or not user_agent:
        return True
    for info in user.login_infos:
        if info.matches(ip, user_agent):
            return False
        if info.is_trusted and info.user_agent == user_agent:
            return False
    return True


def record_login(s: Session, user: StaffUser, ip: str | None, user_agent: str | None) -> LoginInfo:
    for info in user.login_infos:
        if info.matches(ip, user_agent):
            info.update_last_login()
            return info
    info = LoginInfo(
        user=user,
        ip_address=ip,
        user_agent=user_agent,
        is_trusted=False,
        last_login_at=datetime.utcnow(),
        login_count=1,
        **parse_user_agent(user_agent),
    )
    s.add(info)
    return info


def handle_login(s: Session, user: StaffUser, ip: str | None, user_agent: str | None) -> LoginInfo:
    suspicious = is_suspicious_login(user, ip, user_agent)
    info = record_login(s, user, ip, user_agent)
    s.flush()

    user.last_login_at = datetime.utcnow()
    user.last_login_ip = ip
    user.last_login_user_agent = user_agent

    if suspicious:
        logger.info("New device login user_id=%s ip=%s login_info_id=%s", user.id, ip, info.id)
        trust_url = signed_url(
            "internal.trust_device",
            current_app.config["TRUST_DEVICE_EXPIRY_DAYS"] * 24 * 60 * 60,
            login_info_id=info.id,
        )
        send_login_alert(
            user,
            ip_address=ip,
            user_agent=user_agent,
            location=info.location,
            trust_url=trust_url,
        )
    return info


def trust_device(s: Session, user: StaffUser, login_info_id: int) -> LoginInfo:
    info = s.get(LoginInfo, login_info_id)
    if info is None:
        abort(404)
    if info.staff_user_id != user.id:
        logger.warning("Trust-device attempt on foreign login info user_id=%s login_info_id=%s", user.id, login_info_id)
        abort(403)
    info.is_trusted = True
    record_event(
        s,
        actor=user,
        action="auth.device_trusted",
        entity_type="LoginInfo",
        entity_id=str(info.id),
        description="Device marked as trusted",
    )
    return info
