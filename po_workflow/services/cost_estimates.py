"""
Cost estimate workflow.

    DRAFT -> PENDING_APPROVAL -> APPROVED | REJECTED

- Creation requires the purchase order to be APPROVED.
- Only DRAFT estimates can be edited, deleted, or have line items changed.
- Approval (approved=True) forces the parent purchase order to PROGRESS, whatever its
  current status. Both writes are committed together.
"""

from __future__ import annotations

import logging
from typing import Any

from flask import current_app
from sqlalchemy import func

from ..audit import log_action, serialize_model
from ..errors import InvalidStateError, PreconditionError
from ..extensions import db
from ..models import (
    CostEstimate,
    CostEstimateStatus,
    PurchaseOrder,
    PurchaseOrderStatus,
    User,
)
from ..security import Action, authorize
from . import check_fields, commit, find, get_or_raise
from .validation import optional_text, positive_money, required_text

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "total_cost")
EMPTY_TOTAL_POLICIES = ("zero", "preserve")


def empty_total_policy() -> str:
    policy = current_app.config.get("COST_ESTIMATE_EMPTY_TOTAL_POLICY", "zero")
    if policy not in EMPTY_TOTAL_POLICIES:
        raise RuntimeError(
            f"COST_ESTIMATE_EMPTY_TOTAL_POLICY must be one of {EMPTY_TOTAL_POLICIES}, got {policy!r}"
        )
    return policy


def require_draft(estimate: CostEstimate, operation: str) -> None:
    if estimate.status is not CostEstimateStatus.DRAFT:
        raise InvalidStateError(
            "CostEstimate", estimate.id, estimate.status.value, operation, CostEstimateStatus.DRAFT.value
        )


# ---------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------
def list_cost_estimates(actor: User) -> list[CostEstimate]:
    authorize(actor, Action.VIEW_COST_ESTIMATES)
    return CostEstimate.query.order_by(CostEstimate.id.asc()).all()


def get_cost_estimate(actor: User, cost_estimate_id: int) -> CostEstimate | None:
    authorize(actor, Action.VIEW_COST_ESTIMATES)
    return find(CostEstimate, cost_estimate_id)


def cost_estimate_status_counts(actor: User) -> dict[str, int]:
    authorize(actor, Action.VIEW_COST_ESTIMATES)
    counts = {status.value: 0 for status in CostEstimateStatus}
    rows = (
        db.session.query(CostEstimate.status, func.count(CostEstimate.id))
        .group_by(CostEstimate.status)
        .all()
    )
    for status, count in rows:
        counts[status.value] = count
    return counts


# ---------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------
def create_cost_estimate(
    actor: User,
    *,
    purchase_order_id: int,
    title: str,
    description: str | None = None,
    total_cost,
) -> CostEstimate:
    authorize(actor, Action.CREATE_COST_ESTIMATE)

    order = get_or_raise(PurchaseOrder, purchase_order_id)
    if order.status is not PurchaseOrderStatus.APPROVED:
        raise PreconditionError(
            f"Purchase order {order.id} must be APPROVED to create cost estimates (status {order.status.value})",
            purchase_order_id=order.id,
            status=order.status.value,
        )

    estimate = CostEstimate(
        purchase_order_id=order.id,
        title=required_text("title", title, max_length=200),
        description=optional_text(description),
        total_cost=positive_money("total_cost", total_cost),
        created_by=actor.id,
        approved_by=None,
        status=CostEstimateStatus.DRAFT,
    )

    db.session.add(estimate)
    db.session.flush()
    log_action(estimate, "CREATE", actor=actor, after=serialize_model(estimate))
    commit()

    logger.info("Cost estimate %s created for purchase order %s by %s", estimate.id, order.po_number, actor.username)
    return estimate


def update_cost_estimate(actor: User, cost_estimate_id: int, **fields: Any) -> CostEstimate:
    """
    Update a DRAFT estimate.

    Without an explicit total_cost the total is re-aggregated from the line items; with
    no line items COST_ESTIMATE_EMPTY_TOTAL_POLICY decides between 0.00 and the stored total.
    """
    check_fields(fields, UPDATABLE_FIELDS)
    authorize(actor, Action.MANAGE_COST_ESTIMATE)

    estimate = get_or_raise(CostEstimate, cost_estimate_id)
    require_draft(estimate, "update")

    values: dict[str, Any] = {}
    if "title" in fields:
        values["title"] = required_text("title", fields["title"], max_length=200)
    if "description" in fields:
        values["description"] = optional_text(fields["description"])
    if "total_cost" in fields:
        values["total_cost"] = positive_money("total_cost", fields["total_cost"])
    policy = empty_total_policy()

    before_snapshot = serialize_model(estimate)

    for name, value in values.items():
        setattr(estimate, name, value)

    if "total_cost" not in values:
        estimate.recalc_total(empty_policy=policy)

    db.session.flush()
    log_action(estimate, "UPDATE", actor=actor, before=before_snapshot, after=serialize_model(estimate))
    commit()
    return estimate


def submit_cost_estimate(actor: User, cost_estimate_id: int) -> CostEstimate:
    """DRAFT -> PENDING_APPROVAL."""
    authorize(actor, Action.MANAGE_COST_ESTIMATE)
    estimate = get_or_raise(CostEstimate, cost_estimate_id)
    require_draft(estimate, "submit")

    before_snapshot = serialize_model(estimate)
    estimate.status = CostEstimateStatus.PENDING_APPROVAL
    db.session.flush()
    log_action(estimate, "SUBMIT", actor=actor, before=before_snapshot, after=serialize_model(estimate))
    commit()

    logger.info("Cost estimate %s submitted for approval by %s", estimate.id, actor.username)
    return estimate


def approve_cost_estimate(actor: User, cost_estimate_id: int, approved: bool) -> CostEstimate:
    """
    PENDING_APPROVAL -> APPROVED | REJECTED.

    On approval the parent purchase order is moved to PROGRESS unconditionally, in the same
    transaction as the estimate update.
    """
    authorize(actor, Action.APPROVE_COST_ESTIMATE)
    estimate = get_or_raise(CostEstimate, cost_estimate_id)

    if estimate.status is not CostEstimateStatus.PENDING_APPROVAL:
        raise InvalidStateError(
            "CostEstimate",
            estimate.id,
            estimate.status.value,
            "approve" if approved else "reject",
            CostEstimateStatus.PENDING_APPROVAL.value,
        )

    before_snapshot = serialize_model(estimate)
    estimate.status = CostEstimateStatus.APPROVED if approved else CostEstimateStatus.REJECTED
    estimate.approved_by = actor.id

    order = estimate.purchase_order
    if approved and order is not None:
        order_before = serialize_model(order)
        previous = order.status
        order.status = PurchaseOrderStatus.PROGRESS
        db.session.flush()
        log_action(order, "UPDATE", actor=actor, before=order_before, after=serialize_model(order))
        logger.info(
            "Purchase order %s moved %s -> PROGRESS by approval of cost estimate %s",
            order.po_number, previous.value, estimate.id,
        )

    db.session.flush()
    log_action(
        estimate,
        "APPROVE" if approved else "REJECT",
        actor=actor,
        before=before_snapshot,
        after=serialize_model(estimate),
    )
    commit()

    logger.info("Cost estimate %s %s by %s", estimate.id, estimate.status.value, actor.username)
    return estimate


def delete_cost_estimate(actor: User, cost_estimate_id: int) -> None:
    """Delete a DRAFT estimate together with all of its line items."""
    authorize(actor, Action.MANAGE_COST_ESTIMATE)
    estimate = get_or_raise(CostEstimate, cost_estimate_id)
    require_draft(estimate, "delete")

    before_snapshot = serialize_model(estimate)
    item_count = len(estimate.line_items)

    db.session.delete(estimate)
    db.session.flush()
    log_action(estimate, "DELETE", actor=actor, before=before_snapshot)
    commit()

    logger.info(
        "Cost estimate %s deleted with %d line item(s) by %s", cost_estimate_id, item_count, actor.username
    )
