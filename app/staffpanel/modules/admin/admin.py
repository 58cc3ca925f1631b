from __future__ import annotations

from typing import Any

from flask import Blueprint, abort, current_app, flash, redirect, request, url_for

from app.staffpanel.audit import recent_activity
from app.staffpanel.db import db_session
from app.staffpanel.errors import ValidationError
from app.staffpanel.inertia import request_data
from app.staffpanel.models import StaffUser
from app.staffpanel.modules.admin.service import (
    create_user,
    delete_user,
    get_all_roles,
    list_users,
    serialize_user,
    update_user,
    validate_user_payload,
)
from app.staffpanel.modules.admin.stats import AdminStatsService
from app.staffpanel.notifications import send_account_updated, send_email_verification
from app.staffpanel.orchestration import ModuleOrchestrationController
from app.staffpanel.rbac import staff_guard
from app.staffpanel.stats import EnhancedStat

bp = Blueprint("admin", __name__, url_prefix="/admin")
users_bp = Blueprint("users", __name__, url_prefix="/users")

bp.before_request(staff_guard("access-admin"))


class AdminPanelController(ModuleOrchestrationController):
    stats_service = AdminStatsService()

    def get_module_stats(self) -> list[EnhancedStat] | None:
        return self.stats_service.get_panel_stats(self.authenticated_user())

    def get_additional_panel_data(self) -> dict[str, Any]:
        return {"recentActivity": recent_activity(db_session())}


class StaffUserController(ModuleOrchestrationController):
    def _actor(self) -> StaffUser:
        user = self.authenticated_user()
        if user is None:
            abort(403)
        return user

    def _find(self, user_id: int) -> StaffUser | None:
        return db_session().get(StaffUser, user_id)

    # ---------- List ----------
    def index(self):
        params = {
            "search": request.args.get("search"),
            "role": request.args.get("role"),
            "sort_field": request.args.get("sort_field", "created_at"),
            "sort_direction": request.args.get("sort_direction", "desc"),
            "per_page": request.args.get("per_page", 10),
            "page": request.args.get("page", 1),
        }
        s = db_session()
        return self.prepare_and_render_module_view(
            "user/list",
            additional_data={
                "users": list_users(s, params),
                "roles": get_all_roles(s),
                "filters": {k: request.args[k] for k in ("search", "role", "sort_field", "sort_direction") if k in request.args},
            },
        )

    # ---------- Create ----------
    def create(self):
        return self.prepare_and_render_module_view("user/create", additional_data={"roles": get_all_roles(db_session())})

    def store(self):
        actor = self._actor()
        payload = request_data()
        s = db_session()
        errors = validate_user_payload(s, payload)
        if errors:
            raise ValidationError(errors)

        user = create_user(s, payload, actor)
        s.commit()
        current_app.logger.info("Staff user created user_id=%s by actor_id=%s", user.id, actor.id)

        if not user.has_verified_email():
            from app.staffpanel.auth import verification_url

            send_email_verification(user, verification_url(user))
        flash(f"User '{user.name}' created successfully.", "success")
        flash({"email": user.email, "password": payload["password"]}, "credentials")
        return redirect(url_for("internal.admin.users.index"))

    # ---------- Edit ----------
    def edit(self, user_id: int):
        user = self._find(user_id)
        if user is None:
            abort(404)
        return self.prepare_and_render_module_view(
            "user/edit",
            additional_data={"user": serialize_user(user), "roles": get_all_roles(db_session())},
        )

    def update(self, user_id: int):
        actor = self._actor()
        user = self._find(user_id)
        if user is None:
            flash("User not found. The update could not be applied.", "error")
            return redirect(url_for("internal.admin.users.index"))

        payload = request_data()
        s = db_session()
        errors = validate_user_payload(s, payload, user)
        if errors:
            raise ValidationError(errors)

        changes = update_user(s, user, payload, actor)
        s.commit()
        if changes:
            send_account_updated(user, changes, request.remote_addr)
        flash(f"User '{user.name}' updated successfully.", "success")
        return redirect(url_for("internal.admin.users.index"))

    def destroy(self, user_id: int):
        actor = self._actor()
        user = self._find(user_id)
        if user is None:
            flash("User not found. Nothing was deleted.", "error")
            return redirect(url_for("internal.admin.users.index"))

        s = db_session()
        name = user.name
        delete_user(s, user, actor)
        s.commit()
        current_app.logger.info("Staff user deleted user_id=%s by actor_id=%s", user_id, actor.id)
        flash(f"User '{name}' deleted successfully.", "success")
        return redirect(url_for("internal.admin.users.index"))


bp.add_url_rule("/", "panel", AdminPanelController.as_view("show_module_panel"))

users_bp.add_url_rule("", "index", StaffUserController.as_view("index"))
users_bp.add_url_rule("/create", "create", StaffUserController.as_view("create"))
users_bp.add_url_rule("", "store", StaffUserController.as_view("store"), methods=["POST"])
users_bp.add_url_rule("/<int:user_id>/edit", "edit", StaffUserController.as_view("edit"))
users_bp.add_url_rule("/<int:user_id>", "update", StaffUserController.as_view("update"), methods=["PUT"])
users_bp.add_url_rule("/<int:user_id>", "destroy", StaffUserController.as_view("destroy"), methods=["DELETE"])

bp.register_blueprint(users_bp)
