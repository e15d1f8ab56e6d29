"""
Purchase Order API.

Workflow (enforced in services.purchase_orders):
- create -> DRAFT, requested_by = caller
- submit: DRAFT -> PENDING_APPROVAL
- approve {approved: bool}: PENDING_APPROVAL -> APPROVED | REJECTED (BSP, DAU)
- complete: PROGRESS -> COMPLETED (SUPERADMIN, ADMIN)
- delete: DRAFT only, and only without cost estimates

Audit:
- every mutation logged in the same transaction
"""

from flask import Blueprint, jsonify
from flask_login import login_required

from ...errors import NotFoundError
from ...forms import ApprovalForm, PurchaseOrderCreateForm, PurchaseOrderUpdateForm
from ...security import Action, authorize, current_actor
from ...services import purchase_orders as po_service

purchase_orders_bp = Blueprint(
    "purchase_orders",
    __name__,
    url_prefix="/purchase-orders",
)


# ---------------------------------------------------------------------
# READ
# ---------------------------------------------------------------------

@purchase_orders_bp.route("/", methods=["GET"])
@login_required
def list_purchase_orders():
    orders = po_service.list_purchase_orders(current_actor())
    return jsonify([order.to_dict() for order in orders])


@purchase_orders_bp.route("/summary", methods=["GET"])
@login_required
def summary():
    """Count of purchase orders per status."""
    return jsonify(po_service.purchase_order_status_counts(current_actor()))


@purchase_orders_bp.route("/<int:purchase_order_id>", methods=["GET"])
@login_required
def get_purchase_order(purchase_order_id):
    order = po_service.get_purchase_order(current_actor(), purchase_order_id)
    if order is None:
        raise NotFoundError("PurchaseOrder", purchase_order_id)
    return jsonify(order.to_dict())


# ---------------------------------------------------------------------
# CREATE / UPDATE / DELETE
# ---------------------------------------------------------------------

@purchase_orders_bp.route("/", methods=["POST"])
@login_required
def create_purchase_order():
    actor = current_actor()
    authorize(actor, Action.CREATE_PURCHASE_ORDER)
    form = PurchaseOrderCreateForm()
    form.validate_or_raise()

    order = po_service.create_purchase_order(
        actor,
        title=form.title.data,
        description=form.description.data,
        total_amount=form.total_amount.data,
    )
    return jsonify(order.to_dict()), 201


@purchase_orders_bp.route("/<int:purchase_order_id>", methods=["PATCH"])
@login_required
def update_purchase_order(purchase_order_id):
    actor = current_actor()
    authorize(actor, Action.EDIT_PURCHASE_ORDER)
    form = PurchaseOrderUpdateForm()
    form.validate_or_raise()

    order = po_service.update_purchase_order(actor, purchase_order_id, **form.supplied())
    return jsonify(order.to_dict())


@purchase_orders_bp.route("/<int:purchase_order_id>", methods=["DELETE"])
@login_required
def delete_purchase_order(purchase_order_id):
    po_service.delete_purchase_order(current_actor(), purchase_order_id)
    return jsonify({"success": True})


# ---------------------------------------------------------------------
# WORKFLOW
# ---------------------------------------------------------------------

@purchase_orders_bp.route("/<int:purchase_order_id>/submit", methods=["POST"])
@login_required
def submit_purchase_order(purchase_order_id):
    order = po_service.submit_purchase_order(current_actor(), purchase_order_id)
    return jsonify(order.to_dict())


@purchase_orders_bp.route("/<int:purchase_order_id>/approve", methods=["POST"])
@login_required
def approve_purchase_order(purchase_order_id):
    actor = current_actor()
    authorize(actor, Action.APPROVE_PURCHASE_ORDER)
    form = ApprovalForm()
    form.validate_or_raise()

    order = po_service.approve_purchase_order(actor, purchase_order_id, form.approved.data)
    return jsonify(order.to_dict())


@purchase_orders_bp.route("/<int:purchase_order_id>/complete", methods=["POST"])
@login_required
def complete_purchase_order(purchase_order_id):
    order = po_service.complete_purchase_order(current_actor(), purchase_order_id)
    return jsonify(order.to_dict())
