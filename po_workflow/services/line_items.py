"""
Line items (bill of quantities) and the estimate total they drive.

- total_price = quantity * unit_price, recomputed on every write.
- create adds the new line's total to the estimate's stored total_cost.
- update/delete re-aggregate total_cost over all remaining line items (no deltas).
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from flask import current_app

from ..audit import log_action, serialize_model
from ..extensions import db
from ..models import CostEstimate, CostEstimateLineItem, CostEstimateStatus, User, money
from ..security import Action, authorize
from . import check_fields, commit, find, get_or_raise
from .cost_estimates import require_draft
from .validation import positive_int, positive_money, required_text, within_money_range

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("description", "quantity", "unit_price")


def _line_total(quantity: int, unit_price) -> Decimal:
    return within_money_range("total_price", money(Decimal(quantity) * money(unit_price)))


def list_line_items(actor: User, cost_estimate_id: int) -> list[CostEstimateLineItem]:
    """Line items of an estimate by id; an unknown estimate simply has none."""
    authorize(actor, Action.VIEW_COST_ESTIMATES)
    if find(CostEstimate, cost_estimate_id) is None:
        return []
    return (
        CostEstimateLineItem.query.filter_by(cost_estimate_id=cost_estimate_id)
        .order_by(CostEstimateLineItem.id.asc())
        .all()
    )


def create_line_item(
    actor: User,
    cost_estimate_id: int,
    *,
    description: str,
    quantity: int,
    unit_price,
) -> CostEstimateLineItem:
    authorize(actor, Action.MANAGE_COST_ESTIMATE)
    estimate = get_or_raise(CostEstimate, cost_estimate_id)

    if current_app.config.get("LINE_ITEM_CREATE_REQUIRES_DRAFT", True):
        require_draft(estimate, "add line items to")
    elif estimate.status is not CostEstimateStatus.DRAFT:
        logger.warning(
            "Line item added to cost estimate %s in status %s (DRAFT guard disabled)",
            estimate.id, estimate.status.value,
        )

    item = CostEstimateLineItem(
        description=required_text("description", description, max_length=200),
        quantity=positive_int("quantity", quantity),
        unit_price=positive_money("unit_price", unit_price),
    )
    total_price = _line_total(item.quantity, item.unit_price)
    new_total = within_money_range("total_cost", money(estimate.total_cost) + total_price)
    # Update and delete re-aggregate, so the item sum must fit as well.
    within_money_range("total_cost", estimate.line_items_total() + total_price)
    item.recalc_price()

    estimate.line_items.append(item)
    estimate.total_cost = new_total

    db.session.flush()
    log_action(item, "CREATE", actor=actor, after=serialize_model(item))
    commit()

    logger.info(
        "Line item %s added to cost estimate %s (%s); total now %s",
        item.id, estimate.id, item.total_price, estimate.total_cost,
    )
    return item


def update_line_item(actor: User, line_item_id: int, **fields: Any) -> CostEstimateLineItem:
    check_fields(fields, UPDATABLE_FIELDS)
    authorize(actor, Action.MANAGE_COST_ESTIMATE)

    item = get_or_raise(CostEstimateLineItem, line_item_id)
    estimate = item.cost_estimate
    require_draft(estimate, "update line items of")

    values: dict[str, Any] = {}
    if "description" in fields:
        values["description"] = required_text("description", fields["description"], max_length=200)
    if "quantity" in fields:
        values["quantity"] = positive_int("quantity", fields["quantity"])
    if "unit_price" in fields:
        values["unit_price"] = positive_money("unit_price", fields["unit_price"])

    total_price = _line_total(values.get("quantity", item.quantity), values.get("unit_price", item.unit_price))
    within_money_range("total_cost", estimate.line_items_total() - money(item.total_price) + total_price)

    before_snapshot = serialize_model(item)

    for name, value in values.items():
        setattr(item, name, value)
    item.recalc_price()
    estimate.recalc_total()

    db.session.flush()
    log_action(item, "UPDATE", actor=actor, before=before_snapshot, after=serialize_model(item))
    commit()

    logger.info("Line item %s updated; cost estimate %s total now %s", item.id, estimate.id, estimate.total_cost)
    return item


def delete_line_item(actor: User, line_item_id: int) -> CostEstimate:
    """
    Delete a line item of a DRAFT estimate created by a BSP user.

    Returns the parent estimate with its re-aggregated total (0.00 when no items remain).
    """
    authorize(actor, Action.DELETE_LINE_ITEM)

    item = get_or_raise(CostEstimateLineItem, line_item_id)
    estimate = item.cost_estimate
    require_draft(estimate, "delete line items of")
    authorize(actor, Action.DELETE_LINE_ITEM, estimate)

    before_snapshot = serialize_model(item)

    estimate.line_items.remove(item)
    estimate.recalc_total()

    db.session.flush()
    log_action(item, "DELETE", actor=actor, before=before_snapshot)
    commit()

    logger.info("Line item %s deleted; cost estimate %s total now %s", line_item_id, estimate.id, estimate.total_cost)
    return estimate
