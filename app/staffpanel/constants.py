"""
Central constants for the staff panel.
"""
from __future__ import annotations

STAFF_GUARD = "staff"

# Roles that bypass permission checks and can never be removed or deleted through the UI.
PROTECTED_ROLES = frozenset({"ADMIN", "DEV"})

ROLE_DESCRIPTIONS = {
    "ADMIN": "Full access to every module and administrative tool.",
    "DEV": "Developer access with every permission granted.",
    "MOD-01": "Access to generic module 01.",
    "MOD-02": "Access to generic module 02.",
}

# Permission prefixes never exposed to the browser in shared props.
HIDDEN_PERMISSION_PREFIXES = ("delete-", "manage-", "admin-")

DEFAULT_PERMISSIONS = ("access-module-01", "access-module-02", "access-admin")

DEFAULT_ROLE_PERMISSIONS = {
    "ADMIN": DEFAULT_PERMISSIONS,
    "DEV": DEFAULT_PERMISSIONS,
    "MOD-01": ("access-module-01",),
    "MOD-02": ("access-module-02",),
}

PASSWORD_CONFIRMED_SESSION_KEY = "auth.password_confirmed_at"
INTENDED_URL_SESSION_KEY = "url.intended"
LAST_ACTIVITY_THROTTLE_SECONDS = 300
