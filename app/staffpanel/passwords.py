from __future__ import annotations

import re
from datetime import datetime, timedelta

from app.staffpanel.models import StaffUser

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def validate_password(
    password: str | None,
    confirmation: str | None,
    *,
    min_length: int = 8,
    required: bool = True,
) -> list[str]:
    """
    Password policy: length, confirmation, mixed case, numbers and symbols.
    An empty password passes when not required (optional password change).
    """
    if not password:
        return ["The password field is required."] if required else []
    errors: list[str] = []
    if len(password) < min_length:
        errors.append(f"The password must be at least {min_length} characters.")
    if password != (confirmation or ""):
        errors.append("The password confirmation does not match.")
    if not (re.search(r"[a-z]", password) and re.search(r"[A-Z]", password)):
        errors.append("The password must contain at least one uppercase and one lowercase letter.")
    if not re.search(r"\d", password):
        errors.append("The password must contain at least one number.")
    if not re.search(r"[^A-Za-z0-9]", password):
        errors.append("The password must contain at least one symbol.")
    return errors


def password_expired(user: StaffUser, max_age_days: int, now: datetime | None = None) -> bool:
    if user.password_changed_at is None:
        return True
    now = now or datetime.utcnow()
    return user.password_changed_at < now - timedelta(days=max_age_days)
