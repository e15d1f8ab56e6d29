"""
po_workflow/security.py

Access control for the Purchase Order Workflow.

Key rules:
- UI is never trusted; every service operation calls authorize() before touching data.
- Capabilities are a closed table keyed by (Action, UserRole). No role strings, no ad-hoc checks.
- Inactive users hold no capabilities.
- Identity comes from the request (IDENTITY_HEADER) via Flask-Login's request_loader and is
  passed explicitly to services as `actor`.

Some capabilities also look at the target:
- EDIT_PURCHASE_ORDER: any role while DRAFT, SUPERADMIN/ADMIN afterwards.
- DELETE_LINE_ITEM: the estimate's creator must hold the BSP role. Only BSP creates estimates
  (CREATE_COST_ESTIMATE), so this holds unless the creator's role changes later.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from flask import current_app
from flask_login import current_user

from .errors import AuthorizationError
from .extensions import db
from .models import MAX_INT, CostEstimate, PurchaseOrder, PurchaseOrderStatus, User, UserRole

ALL_ROLES = frozenset(UserRole)
ESTIMATE_ROLES = frozenset({UserRole.SUPERADMIN, UserRole.ADMIN, UserRole.BSP, UserRole.DAU})


class Action(str, enum.Enum):
    MANAGE_USERS = "MANAGE_USERS"

    VIEW_PURCHASE_ORDERS = "VIEW_PURCHASE_ORDERS"
    CREATE_PURCHASE_ORDER = "CREATE_PURCHASE_ORDER"
    EDIT_PURCHASE_ORDER = "EDIT_PURCHASE_ORDER"
    OVERRIDE_PURCHASE_ORDER_STATUS = "OVERRIDE_PURCHASE_ORDER_STATUS"
    SUBMIT_PURCHASE_ORDER = "SUBMIT_PURCHASE_ORDER"
    APPROVE_PURCHASE_ORDER = "APPROVE_PURCHASE_ORDER"
    COMPLETE_PURCHASE_ORDER = "COMPLETE_PURCHASE_ORDER"
    DELETE_PURCHASE_ORDER = "DELETE_PURCHASE_ORDER"

    VIEW_COST_ESTIMATES = "VIEW_COST_ESTIMATES"
    CREATE_COST_ESTIMATE = "CREATE_COST_ESTIMATE"
    MANAGE_COST_ESTIMATE = "MANAGE_COST_ESTIMATE"
    APPROVE_COST_ESTIMATE = "APPROVE_COST_ESTIMATE"
    DELETE_LINE_ITEM = "DELETE_LINE_ITEM"


CAPABILITIES: dict[Action, frozenset[UserRole]] = {
    Action.MANAGE_USERS: frozenset({UserRole.SUPERADMIN}),
    Action.VIEW_PURCHASE_ORDERS: ALL_ROLES,
    Action.CREATE_PURCHASE_ORDER: ALL_ROLES,
    Action.EDIT_PURCHASE_ORDER: ALL_ROLES,
    Action.OVERRIDE_PURCHASE_ORDER_STATUS: frozenset({UserRole.SUPERADMIN, UserRole.ADMIN}),
    Action.SUBMIT_PURCHASE_ORDER: ALL_ROLES,
    Action.APPROVE_PURCHASE_ORDER: frozenset({UserRole.BSP, UserRole.DAU}),
    Action.COMPLETE_PURCHASE_ORDER: frozenset({UserRole.SUPERADMIN, UserRole.ADMIN}),
    Action.DELETE_PURCHASE_ORDER: ALL_ROLES,
    Action.VIEW_COST_ESTIMATES: ESTIMATE_ROLES,
    Action.CREATE_COST_ESTIMATE: frozenset({UserRole.BSP}),
    Action.MANAGE_COST_ESTIMATE: ESTIMATE_ROLES,
    Action.APPROVE_COST_ESTIMATE: frozenset({UserRole.DAU}),
    Action.DELETE_LINE_ITEM: ESTIMATE_ROLES,
}


def can(actor: Optional[User], action: Action, target: Any = None) -> bool:
    """Return True if actor may perform action (on target, where the rule depends on it)."""
    try:
        authorize(actor, action, target)
    except AuthorizationError:
        return False
    return True


def authorize(actor: Optional[User], action: Action, target: Any = None) -> None:
    """
    Raise AuthorizationError unless actor holds the capability.

    Called first thing by every service operation, independent of transport.
    """
    if actor is None or not actor.is_active:
        raise AuthorizationError(action.value, reason="Caller is not an active user")

    if actor.role not in CAPABILITIES[action]:
        raise AuthorizationError(action.value, role=actor.role.value)

    if action is Action.EDIT_PURCHASE_ORDER and isinstance(target, PurchaseOrder):
        if target.status is not PurchaseOrderStatus.DRAFT and not actor.is_privileged:
            raise AuthorizationError(
                action.value,
                role=actor.role.value,
                reason=f"Only SUPERADMIN/ADMIN may edit a purchase order in status {target.status.value}",
            )

    if action is Action.DELETE_LINE_ITEM and isinstance(target, CostEstimate):
        creator = target.creator
        if creator is None or creator.role is not UserRole.BSP:
            raise AuthorizationError(
                action.value,
                role=actor.role.value,
                reason="Only line items of estimates created by a BSP user can be deleted",
            )


def load_user_from_request(req) -> Optional[User]:
    """
    Flask-Login request_loader: resolve the acting user from the identity header.

    Returns None (-> 401) for a missing/invalid header, an unknown id or an inactive user.
    """
    header = current_app.config.get("IDENTITY_HEADER", "X-User-Id")
    raw = (req.headers.get(header) or "").strip()
    if not raw:
        return None
    try:
        user_id = int(raw)
    except ValueError:
        return None
    if user_id > MAX_INT:
        return None

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


def current_actor() -> Optional[User]:
    """Unwrap Flask-Login's current_user proxy into the User passed to services."""
    if not current_user.is_authenticated:
        return None
    return current_user._get_current_object()
