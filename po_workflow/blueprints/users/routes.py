"""
User Management API (SUPERADMIN only, except /users/me).

Rules enforced (in services.users):
- username and email are unique.
- role is one of the closed UserRole set.
- Deactivated users can no longer authenticate.

Audit:
- CREATE / UPDATE / DELETE logged
"""

from flask import Blueprint, jsonify
from flask_login import login_required

from ...errors import NotFoundError
from ...forms import UserCreateForm, UserUpdateForm
from ...security import Action, authorize, current_actor
from ...services import users as user_service

users_bp = Blueprint(
    "users",
    __name__,
    url_prefix="/users",
)


# ---------------------------------------------------------------------
# READ
# ---------------------------------------------------------------------

@users_bp.route("/", methods=["GET"])
@login_required
def list_users():
    users = user_service.list_users(current_actor())
    return jsonify([user.to_dict() for user in users])


@users_bp.route("/me", methods=["GET"])
@login_required
def me():
    """The resolved caller. Available to every active user."""
    return jsonify(current_actor().to_dict())


@users_bp.route("/<int:user_id>", methods=["GET"])
@login_required
def get_user(user_id):
    user = user_service.get_user(current_actor(), user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return jsonify(user.to_dict())


# ---------------------------------------------------------------------
# CREATE / UPDATE / DELETE
# ---------------------------------------------------------------------

@users_bp.route("/", methods=["POST"])
@login_required
def create_user():
    actor = current_actor()
    authorize(actor, Action.MANAGE_USERS)
    form = UserCreateForm()
    form.validate_or_raise()

    user = user_service.create_user(
        actor,
        username=form.username.data,
        email=form.email.data,
        full_name=form.full_name.data,
        role=form.role.data,
        # Absent is_active means active.
        is_active=form.is_active.data if form.is_active.raw_data else True,
    )
    return jsonify(user.to_dict()), 201


@users_bp.route("/<int:user_id>", methods=["PATCH"])
@login_required
def update_user(user_id):
    actor = current_actor()
    authorize(actor, Action.MANAGE_USERS)
    form = UserUpdateForm()
    form.validate_or_raise()

    user = user_service.update_user(actor, user_id, **form.supplied())
    return jsonify(user.to_dict())


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@login_required
def delete_user(user_id):
    user_service.delete_user(current_actor(), user_id)
    return jsonify({"success": True})
