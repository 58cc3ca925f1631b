from __future__ import annotations

from app.staffpanel.db import db_session
from app.staffpanel.models import StaffUser
from app.staffpanel.modules.admin.service import total_roles, total_users
from app.staffpanel.stats import EnhancedStat


class AdminStatsService:
    def get_panel_stats(self, user: StaffUser | None = None) -> list[EnhancedStat]:
        s = db_session()
        return [
            EnhancedStat(
                key="total_users",
                title="Total users",
                value=total_users(s),
                description="Registered staff accounts",
                icon="users",
            ),
            EnhancedStat(
                key="total_roles",
                title="Total roles",
                value=total_roles(s),
                description="Roles available to staff",
                icon="shield-check",
            ),
        ]
