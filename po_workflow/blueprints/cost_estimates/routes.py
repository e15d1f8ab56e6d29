"""
Cost Estimate API (SUPERADMIN, ADMIN, BSP, DAU).

Workflow (enforced in services.cost_estimates / services.line_items):
- create: only for an APPROVED purchase order -> DRAFT
- submit: DRAFT -> PENDING_APPROVAL
- approve {approved: bool}: PENDING_APPROVAL -> APPROVED | REJECTED (DAU);
  approval moves the purchase order to PROGRESS
- line items: only while the estimate is DRAFT; total_cost follows the line items

Audit:
- every mutation logged in the same transaction
"""

from flask import Blueprint, jsonify
from flask_login import login_required

from ...errors import NotFoundError
from ...forms import (
    ApprovalForm,
    CostEstimateCreateForm,
    CostEstimateUpdateForm,
    LineItemCreateForm,
    LineItemUpdateForm,
)
from ...security import Action, authorize, current_actor
from ...services import cost_estimates as estimate_service
from ...services import line_items as line_item_service

cost_estimates_bp = Blueprint(
    "cost_estimates",
    __name__,
    url_prefix="/cost-estimates",
)


# ---------------------------------------------------------------------
# READ
# ---------------------------------------------------------------------

@cost_estimates_bp.route("/", methods=["GET"])
@login_required
def list_cost_estimates():
    estimates = estimate_service.list_cost_estimates(current_actor())
    return jsonify([estimate.to_dict() for estimate in estimates])


@cost_estimates_bp.route("/summary", methods=["GET"])
@login_required
def summary():
    """Count of cost estimates per status."""
    return jsonify(estimate_service.cost_estimate_status_counts(current_actor()))


@cost_estimates_bp.route("/<int:cost_estimate_id>", methods=["GET"])
@login_required
def get_cost_estimate(cost_estimate_id):
    estimate = estimate_service.get_cost_estimate(current_actor(), cost_estimate_id)
    if estimate is None:
        raise NotFoundError("CostEstimate", cost_estimate_id)
    data = estimate.to_dict()
    data["line_items"] = [item.to_dict() for item in estimate.line_items]
    return jsonify(data)


# ---------------------------------------------------------------------
# CREATE / UPDATE / DELETE
# ---------------------------------------------------------------------

@cost_estimates_bp.route("/", methods=["POST"])
@login_required
def create_cost_estimate():
    actor = current_actor()
    authorize(actor, Action.CREATE_COST_ESTIMATE)
    form = CostEstimateCreateForm()
    form.validate_or_raise()

    estimate = estimate_service.create_cost_estimate(
        actor,
        purchase_order_id=form.purchase_order_id.data,
        title=form.title.data,
        description=form.description.data,
        total_cost=form.total_cost.data,
    )
    return jsonify(estimate.to_dict()), 201


@cost_estimates_bp.route("/<int:cost_estimate_id>", methods=["PATCH"])
@login_required
def update_cost_estimate(cost_estimate_id):
    actor = current_actor()
    authorize(actor, Action.MANAGE_COST_ESTIMATE)
    form = CostEstimateUpdateForm()
    form.validate_or_raise()

    estimate = estimate_service.update_cost_estimate(actor, cost_estimate_id, **form.supplied())
    return jsonify(estimate.to_dict())


@cost_estimates_bp.route("/<int:cost_estimate_id>", methods=["DELETE"])
@login_required
def delete_cost_estimate(cost_estimate_id):
    estimate_service.delete_cost_estimate(current_actor(), cost_estimate_id)
    return jsonify({"success": True})


# ---------------------------------------------------------------------
# WORKFLOW
# ---------------------------------------------------------------------

@cost_estimates_bp.route("/<int:cost_estimate_id>/submit", methods=["POST"])
@login_required
def submit_cost_estimate(cost_estimate_id):
    estimate = estimate_service.submit_cost_estimate(current_actor(), cost_estimate_id)
    return jsonify(estimate.to_dict())


@cost_estimates_bp.route("/<int:cost_estimate_id>/approve", methods=["POST"])
@login_required
def approve_cost_estimate(cost_estimate_id):
    actor = current_actor()
    authorize(actor, Action.APPROVE_COST_ESTIMATE)
    form = ApprovalForm()
    form.validate_or_raise()

    estimate = estimate_service.approve_cost_estimate(actor, cost_estimate_id, form.approved.data)
    return jsonify(estimate.to_dict())


# ---------------------------------------------------------------------
# LINE ITEMS
# ---------------------------------------------------------------------

@cost_estimates_bp.route("/<int:cost_estimate_id>/line-items", methods=["GET"])
@login_required
def list_line_items(cost_estimate_id):
    items = line_item_service.list_line_items(current_actor(), cost_estimate_id)
    return jsonify([item.to_dict() for item in items])


@cost_estimates_bp.route("/<int:cost_estimate_id>/line-items", methods=["POST"])
@login_required
def create_line_item(cost_estimate_id):
    actor = current_actor()
    authorize(actor, Action.MANAGE_COST_ESTIMATE)
    form = LineItemCreateForm()
    form.validate_or_raise()

    item = line_item_service.create_line_item(
        actor,
        cost_estimate_id,
        description=form.description.data,
        quantity=form.quantity.data,
        unit_price=form.unit_price.data,
    )
    return jsonify(item.to_dict()), 201


@cost_estimates_bp.route("/line-items/<int:line_item_id>", methods=["PATCH"])
@login_required
def update_line_item(line_item_id):
    actor = current_actor()
    authorize(actor, Action.MANAGE_COST_ESTIMATE)
    form = LineItemUpdateForm()
    form.validate_or_raise()

    item = line_item_service.update_line_item(actor, line_item_id, **form.supplied())
    return jsonify(item.to_dict())


@cost_estimates_bp.route("/line-items/<int:line_item_id>", methods=["DELETE"])
@login_required
def delete_line_item(line_item_id):
    estimate = line_item_service.delete_line_item(current_actor(), line_item_id)
    return jsonify({"success": True, "cost_estimate": estimate.to_dict()})
