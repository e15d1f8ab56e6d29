"""
Purchase Order Workflow – Domain Models

Entities:
- User (role-carrying actor)
- PurchaseOrder (DRAFT -> PENDING_APPROVAL -> APPROVED/REJECTED -> PROGRESS -> COMPLETED)
- CostEstimate (DRAFT -> PENDING_APPROVAL -> APPROVED/REJECTED), attached to an APPROVED PurchaseOrder
- CostEstimateLineItem (bill of quantities line, owned by its CostEstimate)
- AuditLog

Roles and statuses are closed enums. Transition tables below are keyed by them, so adding
a member forces every table to be revisited.

IMPORTANT:
- Money is Decimal end to end (Numeric(15, 2) columns, quantized ROUND_HALF_UP).
- Workflow rules live in po_workflow.services; models only hold state and derived totals.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from flask_login import UserMixin

from .extensions import db

# Largest values the Integer and Numeric(15, 2) columns hold.
MAX_INT = 2**31 - 1
MAX_MONEY = Decimal("9999999999999.99")


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _to_decimal(value) -> Decimal:
    """Convert Numeric/None to Decimal safely."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value))


def _money(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def money(value) -> Decimal:
    """Public money normalizer: any numeric input -> Decimal with 2 places."""
    return _money(_to_decimal(value))


def money_str(value) -> str | None:
    """Money as a fixed 2-place string for JSON ("31000.00")."""
    if value is None:
        return None
    return str(money(value))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def generate_po_number() -> str:
    """PO-YYYYMMDD-XXXXXXXX (date + random hex, unique column backs it)."""
    return f"PO-{datetime.utcnow():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


# ---------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------
class UserRole(str, enum.Enum):
    SUPERADMIN = "SUPERADMIN"
    ADMIN = "ADMIN"
    UNIT_KERJA = "UNIT_KERJA"
    BSP = "BSP"
    KKF = "KKF"
    DAU = "DAU"


class PurchaseOrderStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    PROGRESS = "PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class CostEstimateStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


PRIVILEGED_ROLES = frozenset({UserRole.SUPERADMIN, UserRole.ADMIN})

PURCHASE_ORDER_TRANSITIONS: dict[PurchaseOrderStatus, frozenset[PurchaseOrderStatus]] = {
    PurchaseOrderStatus.DRAFT: frozenset({PurchaseOrderStatus.PENDING_APPROVAL}),
    PurchaseOrderStatus.PENDING_APPROVAL: frozenset(
        {PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.REJECTED}
    ),
    PurchaseOrderStatus.APPROVED: frozenset({PurchaseOrderStatus.PROGRESS}),
    PurchaseOrderStatus.PROGRESS: frozenset({PurchaseOrderStatus.COMPLETED}),
    PurchaseOrderStatus.COMPLETED: frozenset(),
    PurchaseOrderStatus.REJECTED: frozenset(),
}

COST_ESTIMATE_TRANSITIONS: dict[CostEstimateStatus, frozenset[CostEstimateStatus]] = {
    CostEstimateStatus.DRAFT: frozenset({CostEstimateStatus.PENDING_APPROVAL}),
    CostEstimateStatus.PENDING_APPROVAL: frozenset(
        {CostEstimateStatus.APPROVED, CostEstimateStatus.REJECTED}
    ),
    CostEstimateStatus.APPROVED: frozenset(),
    CostEstimateStatus.REJECTED: frozenset(),
}


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System user. Identity is resolved per request (see security.load_user_from_request)."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(50), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(100), nullable=False)

    role = db.Column(db.Enum(UserRole, name="user_role"), nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role.value,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<User {self.username} ({self.role.value})>"


# ---------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------
class PurchaseOrder(db.Model):
    __tablename__ = "purchase_orders"

    id = db.Column(db.Integer, primary_key=True)

    po_number = db.Column(db.String(40), unique=True, nullable=False, index=True, default=generate_po_number)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)

    requested_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    status = db.Column(
        db.Enum(PurchaseOrderStatus, name="purchase_order_status"),
        nullable=False,
        default=PurchaseOrderStatus.DRAFT,
        index=True,
    )

    total_amount = db.Column(db.Numeric(15, 2), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    requester = db.relationship("User", foreign_keys=[requested_by])
    approver = db.relationship("User", foreign_keys=[approved_by])

    cost_estimates = db.relationship(
        "CostEstimate",
        back_populates="purchase_order",
        lazy=True,
    )

    def can_transition_to(self, target: PurchaseOrderStatus) -> bool:
        return target in PURCHASE_ORDER_TRANSITIONS[self.status]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "po_number": self.po_number,
            "title": self.title,
            "description": self.description,
            "requested_by": self.requested_by,
            "approved_by": self.approved_by,
            "status": self.status.value,
            "total_amount": money_str(self.total_amount),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<PurchaseOrder {self.po_number} {self.status.value}>"


# ---------------------------------------------------------------------
# Cost estimates
# ---------------------------------------------------------------------
class CostEstimate(db.Model):
    __tablename__ = "cost_estimates"

    id = db.Column(db.Integer, primary_key=True)

    purchase_order_id = db.Column(
        db.Integer,
        db.ForeignKey("purchase_orders.id"),
        nullable=False,
        index=True,
    )

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    status = db.Column(
        db.Enum(CostEstimateStatus, name="cost_estimate_status"),
        nullable=False,
        default=CostEstimateStatus.DRAFT,
        index=True,
    )

    total_cost = db.Column(db.Numeric(15, 2), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    purchase_order = db.relationship("PurchaseOrder", back_populates="cost_estimates")
    creator = db.relationship("User", foreign_keys=[created_by])
    approver = db.relationship("User", foreign_keys=[approved_by])

    line_items = db.relationship(
        "CostEstimateLineItem",
        back_populates="cost_estimate",
        cascade="all, delete-orphan",
        order_by="CostEstimateLineItem.id",
    )

    def can_transition_to(self, target: CostEstimateStatus) -> bool:
        return target in COST_ESTIMATE_TRANSITIONS[self.status]

    def line_items_total(self) -> Decimal:
        total = Decimal("0.00")
        for item in self.line_items:
            total += _to_decimal(item.total_price)
        return _money(total)

    def recalc_total(self, empty_policy: str = "zero") -> None:
        """
        Re-aggregate total_cost from every line item.

        With no line items:
        - "zero": total_cost = 0.00
        - "preserve": stored total is left as is
        """
        if not self.line_items and empty_policy == "preserve":
            return
        self.total_cost = self.line_items_total()
        self.updated_at = datetime.utcnow()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "title": self.title,
            "description": self.description,
            "created_by": self.created_by,
            "approved_by": self.approved_by,
            "status": self.status.value,
            "total_cost": money_str(self.total_cost),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<CostEstimate {self.id} {self.status.value}>"


class CostEstimateLineItem(db.Model):
    __tablename__ = "cost_estimate_line_items"

    id = db.Column(db.Integer, primary_key=True)

    cost_estimate_id = db.Column(
        db.Integer,
        db.ForeignKey("cost_estimates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    description = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(15, 2), nullable=False)
    total_price = db.Column(db.Numeric(15, 2), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    cost_estimate = db.relationship("CostEstimate", back_populates="line_items")

    def recalc_price(self) -> Decimal:
        self.total_price = _money(Decimal(int(self.quantity)) * _to_decimal(self.unit_price))
        return self.total_price

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cost_estimate_id": self.cost_estimate_id,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "total_price": money_str(self.total_price),
            "created_at": _iso(self.created_at),
        }


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    """Who did what to which entity, with before/after snapshots."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(150), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
