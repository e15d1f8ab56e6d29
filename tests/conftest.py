"""
Shared fixtures.

Two ways in:
- service tests use `ctx` (an app context held for the whole test) and `actors`
  (User objects bound to that context's session);
- HTTP tests use `client` and `headers` only. They must not hold an app context,
  because Flask-Login caches the resolved user on `g` for the lifetime of the context.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from config import TestConfig
from po_workflow import create_app
from po_workflow.extensions import db
from po_workflow.models import User, UserRole
from po_workflow.services import cost_estimates as estimate_service
from po_workflow.services import purchase_orders as po_service


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def user_ids(app) -> dict[UserRole, int]:
    """One active user per role, keyed by role."""
    with app.app_context():
        for role in UserRole:
            name = role.value.lower()
            db.session.add(
                User(
                    username=name,
                    email=f"{name}@procure.co.id",
                    full_name=f"{role.value.title()} User",
                    role=role,
                    is_active=True,
                )
            )
        db.session.commit()
        return {user.role: user.id for user in User.query.all()}


# =============================================================================
# Service-level fixtures
# =============================================================================


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def actors(ctx, user_ids) -> dict[UserRole, User]:
    return {role: db.session.get(User, user_id) for role, user_id in user_ids.items()}


@pytest.fixture
def draft_order(actors):
    return po_service.create_purchase_order(
        actors[UserRole.UNIT_KERJA],
        title="Office Equipment",
        description="Desks and chairs for the new wing",
        total_amount=Decimal("15000.00"),
    )


@pytest.fixture
def pending_order(actors, draft_order):
    return po_service.submit_purchase_order(actors[UserRole.UNIT_KERJA], draft_order.id)


@pytest.fixture
def approved_order(actors, pending_order):
    return po_service.approve_purchase_order(actors[UserRole.BSP], pending_order.id, True)


@pytest.fixture
def draft_estimate(actors, approved_order):
    """DRAFT estimate created by BSP with a manual total of 25000.00."""
    return estimate_service.create_cost_estimate(
        actors[UserRole.BSP],
        purchase_order_id=approved_order.id,
        title="Laptop procurement",
        total_cost=Decimal("25000.00"),
    )


# =============================================================================
# HTTP fixtures
# =============================================================================


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def headers(app, user_ids):
    def _headers(role: UserRole) -> dict[str, str]:
        return {app.config["IDENTITY_HEADER"]: str(user_ids[role])}

    return _headers
