from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import current_app, url_for

from app.staffpanel.mail import MailMessage, send_mail
from app.staffpanel.models import StaffUser

_FOOTER = "This is an automated security email. Please do not reply to this message."

_FIELD_LABELS = {
    "name": "Name",
    "email": "Email address",
    "password": "Password",
    "roles": "Roles",
}


def _app_name() -> str:
    return current_app.config.get("APP_NAME") or "Staff Panel"


def _compose(user: StaffUser, subject: str, lines: list[str]) -> MailMessage:
    body = "\n".join([f"Hello {user.name}!", "", *lines, "", _FOOTER, f"-- {_app_name()}"])
    return MailMessage(to=user.email, subject=subject, body=body)


def send_password_reset(user: StaffUser, reset_url: str, expires_minutes: int) -> bool:
    return send_mail(
        _compose(
            user,
            "Reset your password",
            [
                "You are receiving this email because we received a password reset request for your account.",
                f"Reset your password: {reset_url}",
                f"This link will expire in {expires_minutes} minutes.",
                "If you did not request a password reset, no further action is required.",
            ],
        )
    )


def send_email_verification(user: StaffUser, verify_url: str) -> bool:
    return send_mail(
        _compose(
            user,
            "Verify your email address",
            [
                "Please confirm your email address to finish setting up your account.",
                f"Verify email address: {verify_url}",
                "If you did not create an account, no further action is required.",
            ],
        )
    )


def send_login_alert(
    user: StaffUser,
    *,
    ip_address: str | None,
    user_agent: str | None,
    location: str,
    trust_url: str | None,
) -> bool:
    lines = [
        "We detected a sign-in from a device or location you have not used before.",
        "If this was you, there is nothing to do. If you do not recognize this activity, your account may be at risk.",
        "",
        "Sign-in details:",
        f"- Date and time: {datetime.utcnow():%d/%m/%Y %H:%M:%S} UTC",
    ]
    if ip_address:
        lines.append(f"- IP address: {ip_address}")
    if user_agent:
        lines.append(f"- Device: {user_agent}")
    lines.append(f"- Approximate location: {location}")
    if trust_url:
        lines += ["", "Was this you? Mark this device as trusted to stop receiving alerts for it:", trust_url]
    lines += [
        "",
        "Not you? Change your password immediately:",
        url_for("auth.password_request", _external=True),
    ]
    return send_mail(_compose(user, "Security alert: new device detected", lines))


def _format_value(field: str, value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value) or "none"
    return str(value) if value not in (None, "") else "empty"


def send_account_updated(user: StaffUser, changes: dict[str, Any], ip_address: str | None = None) -> bool:
    lines = ["The following changes were made to your account:"]
    for field, values in changes.items():
        label = _FIELD_LABELS.get(field, field)
        if field == "password":
            lines.append("- Your password was changed.")
        elif isinstance(values, dict) and "old" in values and "new" in values:
            lines.append(f"- {label}: changed from '{_format_value(field, values['old'])}' to '{_format_value(field, values['new'])}'.")
        else:
            lines.append(f"- {label} was updated.")
    lines.append(f"These changes were made on {datetime.utcnow():%d/%m/%Y} at {datetime.utcnow():%H:%M:%S} UTC.")
    if ip_address:
        lines.append(f"Changes were made from IP address: {ip_address}.")
    lines += [
        "If you do not recognize these changes, contact support immediately.",
        f"Go to my account: {url_for('internal.settings.profile.edit', _external=True)}",
    ]
    return send_mail(_compose(user, "Security alert: changes to your account", lines))


def send_password_confirmed(
    user: StaffUser,
    *,
    action: str,
    ip_address: str | None,
    user_agent: str | None,
) -> bool:
    lines = [
        f"Your password was just used to confirm the following action: {action}.",
        f"- Date and time: {datetime.utcnow():%d/%m/%Y %H:%M:%S} UTC",
    ]
    if ip_address:
        lines.append(f"- IP address: {ip_address}")
    if user_agent:
        lines.append(f"- Device: {user_agent}")
    lines += [
        "If this was not you, your account may be compromised. Change your password now:",
        url_for("auth.password_request", _external=True),
    ]
    return send_mail(_compose(user, "Security alert: password confirmed for a sensitive action", lines))
