"""
Purchase order workflow.

    DRAFT -> PENDING_APPROVAL -> APPROVED | REJECTED
    APPROVED -> PROGRESS (forced when one of its cost estimates is approved)
    PROGRESS -> COMPLETED

Only DRAFT orders can be deleted. Non-privileged roles can only edit DRAFT orders.
Setting `status` through update is a SUPERADMIN/ADMIN override that bypasses the table.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func

from ..audit import log_action, serialize_model
from ..errors import InvalidStateError, PreconditionError, ValidationError
from ..extensions import db
from ..models import PURCHASE_ORDER_TRANSITIONS, PurchaseOrder, PurchaseOrderStatus, User
from ..security import Action, authorize
from . import check_fields, commit, find, get_or_raise
from .validation import optional_text, positive_money, required_text

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "total_amount", "status")


def _transition(order: PurchaseOrder, target: PurchaseOrderStatus, operation: str) -> None:
    if order.can_transition_to(target):
        return
    sources = [s.value for s, allowed in PURCHASE_ORDER_TRANSITIONS.items() if target in allowed]
    raise InvalidStateError("PurchaseOrder", order.id, order.status.value, operation, " or ".join(sources) or None)


# ---------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------
def list_purchase_orders(actor: User) -> list[PurchaseOrder]:
    authorize(actor, Action.VIEW_PURCHASE_ORDERS)
    return PurchaseOrder.query.order_by(PurchaseOrder.id.asc()).all()


def get_purchase_order(actor: User, purchase_order_id: int) -> PurchaseOrder | None:
    authorize(actor, Action.VIEW_PURCHASE_ORDERS)
    return find(PurchaseOrder, purchase_order_id)


def purchase_order_status_counts(actor: User) -> dict[str, int]:
    """Per-status totals for the dashboard; every status is present."""
    authorize(actor, Action.VIEW_PURCHASE_ORDERS)
    counts = {status.value: 0 for status in PurchaseOrderStatus}
    rows = (
        db.session.query(PurchaseOrder.status, func.count(PurchaseOrder.id))
        .group_by(PurchaseOrder.status)
        .all()
    )
    for status, count in rows:
        counts[status.value] = count
    return counts


# ---------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------
def create_purchase_order(actor: User, *, title: str, description: str | None = None, total_amount) -> PurchaseOrder:
    authorize(actor, Action.CREATE_PURCHASE_ORDER)

    order = PurchaseOrder(
        title=required_text("title", title, max_length=200),
        description=optional_text(description),
        total_amount=positive_money("total_amount", total_amount),
        requested_by=actor.id,
        approved_by=None,
        status=PurchaseOrderStatus.DRAFT,
    )

    db.session.add(order)
    db.session.flush()
    log_action(order, "CREATE", actor=actor, after=serialize_model(order))
    commit()

    logger.info("Purchase order %s created by %s", order.po_number, actor.username)
    return order


def update_purchase_order(actor: User, purchase_order_id: int, **fields: Any) -> PurchaseOrder:
    check_fields(fields, UPDATABLE_FIELDS)
    authorize(actor, Action.EDIT_PURCHASE_ORDER)

    order = get_or_raise(PurchaseOrder, purchase_order_id)
    authorize(actor, Action.EDIT_PURCHASE_ORDER, order)

    new_status = None
    if "status" in fields:
        authorize(actor, Action.OVERRIDE_PURCHASE_ORDER_STATUS)
        try:
            new_status = PurchaseOrderStatus(fields["status"])
        except ValueError:
            raise ValidationError({"status": ["Not a valid choice."]})

    # Validate everything before the first assignment.
    values: dict[str, Any] = {}
    if "title" in fields:
        values["title"] = required_text("title", fields["title"], max_length=200)
    if "description" in fields:
        values["description"] = optional_text(fields["description"])
    if "total_amount" in fields:
        values["total_amount"] = positive_money("total_amount", fields["total_amount"])

    before_snapshot = serialize_model(order)

    for name, value in values.items():
        setattr(order, name, value)

    if new_status is not None and new_status is not order.status:
        logger.info(
            "Purchase order %s status overridden %s -> %s by %s",
            order.po_number, order.status.value, new_status.value, actor.username,
        )
        order.status = new_status

    db.session.flush()
    log_action(order, "UPDATE", actor=actor, before=before_snapshot, after=serialize_model(order))
    commit()
    return order


def submit_purchase_order(actor: User, purchase_order_id: int) -> PurchaseOrder:
    """DRAFT -> PENDING_APPROVAL."""
    authorize(actor, Action.SUBMIT_PURCHASE_ORDER)
    order = get_or_raise(PurchaseOrder, purchase_order_id)
    _transition(order, PurchaseOrderStatus.PENDING_APPROVAL, "submit")

    before_snapshot = serialize_model(order)
    order.status = PurchaseOrderStatus.PENDING_APPROVAL
    db.session.flush()
    log_action(order, "SUBMIT", actor=actor, before=before_snapshot, after=serialize_model(order))
    commit()

    logger.info("Purchase order %s submitted for approval by %s", order.po_number, actor.username)
    return order


def approve_purchase_order(actor: User, purchase_order_id: int, approved: bool) -> PurchaseOrder:
    """PENDING_APPROVAL -> APPROVED (approved=True) or REJECTED (approved=False)."""
    authorize(actor, Action.APPROVE_PURCHASE_ORDER)
    order = get_or_raise(PurchaseOrder, purchase_order_id)

    if order.status is not PurchaseOrderStatus.PENDING_APPROVAL:
        raise InvalidStateError(
            "PurchaseOrder",
            order.id,
            order.status.value,
            "approve" if approved else "reject",
            PurchaseOrderStatus.PENDING_APPROVAL.value,
        )

    before_snapshot = serialize_model(order)
    order.status = PurchaseOrderStatus.APPROVED if approved else PurchaseOrderStatus.REJECTED
    order.approved_by = actor.id
    db.session.flush()
    log_action(
        order,
        "APPROVE" if approved else "REJECT",
        actor=actor,
        before=before_snapshot,
        after=serialize_model(order),
    )
    commit()

    logger.info("Purchase order %s %s by %s", order.po_number, order.status.value, actor.username)
    return order


def complete_purchase_order(actor: User, purchase_order_id: int) -> PurchaseOrder:
    """PROGRESS -> COMPLETED."""
    authorize(actor, Action.COMPLETE_PURCHASE_ORDER)
    order = get_or_raise(PurchaseOrder, purchase_order_id)
    _transition(order, PurchaseOrderStatus.COMPLETED, "complete")

    before_snapshot = serialize_model(order)
    order.status = PurchaseOrderStatus.COMPLETED
    db.session.flush()
    log_action(order, "COMPLETE", actor=actor, before=before_snapshot, after=serialize_model(order))
    commit()

    logger.info("Purchase order %s completed by %s", order.po_number, actor.username)
    return order


def delete_purchase_order(actor: User, purchase_order_id: int) -> None:
    authorize(actor, Action.DELETE_PURCHASE_ORDER)
    order = get_or_raise(PurchaseOrder, purchase_order_id)

    if order.status is not PurchaseOrderStatus.DRAFT:
        raise InvalidStateError(
            "PurchaseOrder", order.id, order.status.value, "delete", PurchaseOrderStatus.DRAFT.value
        )
    if order.cost_estimates:
        raise PreconditionError(
            f"Purchase order {order.id} still has cost estimates",
            purchase_order_id=order.id,
        )

    before_snapshot = serialize_model(order)
    po_number = order.po_number
    db.session.delete(order)
    db.session.flush()
    log_action(order, "DELETE", actor=actor, before=before_snapshot)
    commit()

    logger.info("Purchase order %s deleted by %s", po_number, actor.username)
