from __future__ import annotations

from datetime import datetime
from difflib import SequenceMatcher

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from app.staffpanel.constants import PROTECTED_ROLES, STAFF_GUARD


class Base(DeclarativeBase):
    pass


class StaffUserRole(Base):
    __tablename__ = "staff_user_roles"
    staff_user_id: Mapped[int] = mapped_column(ForeignKey("staff_users.id", ondelete="CASCADE"), primary_key=True)
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)


class RolePermission(Base):
    __tablename__ = "role_permissions"
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id: Mapped[int] = mapped_column(ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True)


class StaffUser(Base):
    __tablename__ = "staff_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    password_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_activity: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_login_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_login_user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    roles: Mapped[list["Role"]] = relationship(
        secondary="staff_user_roles",
        back_populates="users",
        lazy="selectin",
    )
    login_infos: Mapped[list["LoginInfo"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="LoginInfo.last_login_at.desc()",
    )

    # Staff users are the only principals this app authenticates.
    auth_guard = STAFF_GUARD

    def role_names(self) -> list[str]:
        return sorted(r.name for r in self.roles)

    def has_role(self, *names: str) -> bool:
        wanted = set(names)
        return any(r.name in wanted for r in self.roles)

    def has_protected_role(self) -> bool:
        return self.has_role(*PROTECTED_ROLES)

    def permission_names(self) -> list[str]:
        names = {p.name for r in self.roles for p in r.permissions}
        return sorted(names)

    def has_verified_email(self) -> bool:
        return self.email_verified_at is not None


class Role(Base):
    __tablename__ = "roles"
    __table_args__ = (UniqueConstraint("name", "guard_name", name="uq_roles_name_guard"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)  # e.g. "ADMIN"
    guard_name: Mapped[str] = mapped_column(String(32), nullable=False, default=STAFF_GUARD)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    users: Mapped[list[StaffUser]] = relationship(secondary="staff_user_roles", back_populates="roles", lazy="selectin")
    permissions: Mapped[list["Permission"]] = relationship(
        secondary="role_permissions",
        back_populates="roles",
        lazy="selectin",
    )


class Permission(Base):
    __tablename__ = "permissions"
    __table_args__ = (UniqueConstraint("name", "guard_name", name="uq_permissions_name_guard"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "access-admin"
    guard_name: Mapped[str] = mapped_column(String(32), nullable=False, default=STAFF_GUARD)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    roles: Mapped[list[Role]] = relationship(secondary="role_permissions", back_populates="permissions", lazy="selectin")


def user_agent_similarity(a: str, b: str) -> float:
    """Percentage similarity between two user agent strings (0-100)."""
    if not a and not b:
        return 100.0
    return SequenceMatcher(None, a, b).ratio() * 100


class LoginInfo(Base):
    """
    One row per device (ip + user agent) a staff user has signed in from.
    """

    __tablename__ = "staff_login_infos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    staff_user_id: Mapped[int] = mapped_column(ForeignKey("staff_users.id", ondelete="CASCADE"), nullable=False, index=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    device_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    browser: Mapped[str | None] = mapped_column(String(64), nullable=True)
    platform: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_mobile: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_trusted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    login_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user: Mapped[StaffUser] = relationship(back_populates="login_infos")

    @property
    def location(self) -> str:
        # No geo-IP lookup is wired in.
        return "Unknown location"

    def matches(self, ip: str | None, user_agent: str | None) -> bool:
        if self.ip_address != ip:
            return False
        return user_agent_similarity(self.user_agent or "", user_agent or "") > 80

    def update_last_login(self) -> None:
        self.last_login_at = datetime.utcnow()
        self.login_count = (self.login_count or 0) + 1


class AuditEvent(Base):
    """
    Append-only audit trail event. Also feeds the admin panel's recent activity list.
    """

    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow, index=True)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("staff_users.id", ondelete="SET NULL"), nullable=True)
    actor_user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    action: Mapped[str] = mapped_column(String(128), nullable=False, index=True)  # e.g. "staff_user.created"
    entity_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor: Mapped[StaffUser | None] = relationship(lazy="joined")
