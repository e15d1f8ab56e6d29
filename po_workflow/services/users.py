"""
User administration (SUPERADMIN only).

Rules enforced:
- username and email are unique (checked up front, IntegrityError as the backstop).
- role is one of UserRole.
- delete is a hard delete; it fails with PreconditionError if the store still
  references the user through an enforced foreign key.
"""

from __future__ import annotations

import logging
from typing import Any

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError

from ..audit import log_action, serialize_model
from ..errors import PreconditionError, UniquenessViolation, ValidationError
from ..extensions import db
from ..models import User, UserRole
from ..security import Action, authorize
from . import check_fields, commit, find, get_or_raise
from .validation import flag, required_text

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("username", "email", "full_name", "role", "is_active")


def _coerce_role(value) -> UserRole:
    try:
        return UserRole(value)
    except ValueError:
        raise ValidationError({"role": ["Not a valid choice."]})


def _ensure_unique(field: str, value: str, exclude_user_id: int | None = None) -> None:
    query = User.query.filter(getattr(User, field) == value)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first() is not None:
        raise UniquenessViolation("User", field, value)


def _clean_email(value) -> str:
    email = required_text("email", value, max_length=255, min_length=3)
    try:
        result = validate_email(email, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError({"email": [str(exc)]})
    return result.normalized.lower()


def list_users(actor: User) -> list[User]:
    authorize(actor, Action.MANAGE_USERS)
    return User.query.order_by(User.id.asc()).all()


def get_user(actor: User, user_id: int) -> User | None:
    authorize(actor, Action.MANAGE_USERS)
    return find(User, user_id)


def create_user(
    actor: User,
    *,
    username: str,
    email: str,
    full_name: str,
    role,
    is_active: bool = True,
) -> User:
    authorize(actor, Action.MANAGE_USERS)

    username = required_text("username", username, max_length=50, min_length=3)
    email = _clean_email(email)
    full_name = required_text("full_name", full_name, max_length=100)
    role = _coerce_role(role)

    _ensure_unique("username", username)
    _ensure_unique("email", email)

    user = User(
        username=username,
        email=email,
        full_name=full_name,
        role=role,
        is_active=flag("is_active", is_active),
    )
    db.session.add(user)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise UniquenessViolation("User", "username/email", f"{username}/{email}")

    log_action(user, "CREATE", actor=actor, after=serialize_model(user))
    commit()

    logger.info("User %s (%s) created by %s", user.username, user.role.value, actor.username)
    return user


def update_user(actor: User, user_id: int, **fields: Any) -> User:
    check_fields(fields, UPDATABLE_FIELDS)
    authorize(actor, Action.MANAGE_USERS)
    user = get_or_raise(User, user_id)

    values: dict[str, Any] = {}
    if "username" in fields:
        values["username"] = required_text("username", fields["username"], max_length=50, min_length=3)
        _ensure_unique("username", values["username"], exclude_user_id=user.id)
    if "email" in fields:
        values["email"] = _clean_email(fields["email"])
        _ensure_unique("email", values["email"], exclude_user_id=user.id)
    if "full_name" in fields:
        values["full_name"] = required_text("full_name", fields["full_name"], max_length=100)
    if "role" in fields:
        values["role"] = _coerce_role(fields["role"])
    if "is_active" in fields:
        values["is_active"] = flag("is_active", fields["is_active"])

    if not values:
        return user

    before_snapshot = serialize_model(user)
    for name, value in values.items():
        setattr(user, name, value)

    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise UniquenessViolation("User", "username/email", user_id)

    log_action(user, "UPDATE", actor=actor, before=before_snapshot, after=serialize_model(user))
    commit()
    return user


def delete_user(actor: User, user_id: int) -> None:
    authorize(actor, Action.MANAGE_USERS)
    user = get_or_raise(User, user_id)
    if user.id == actor.id:
        raise PreconditionError("Users cannot delete their own account", user_id=user_id)

    before_snapshot = serialize_model(user)
    username = user.username

    db.session.delete(user)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise PreconditionError(f"User {user_id} is still referenced by purchase orders or estimates", user_id=user_id)

    log_action(user, "DELETE", actor=actor, before=before_snapshot)
    commit()

    logger.info("User %s deleted by %s", username, actor.username)
