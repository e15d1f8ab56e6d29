"""
Tests for line items and the estimate total they drive.

Creation adds to the stored total; update and delete re-aggregate over all items.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from po_workflow.errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from po_workflow.extensions import db
from po_workflow.models import CostEstimateLineItem, UserRole
from po_workflow.services import cost_estimates as estimate_service
from po_workflow.services import line_items as line_item_service
from po_workflow.services import users as user_service


@pytest.fixture
def bsp(actors):
    return actors[UserRole.BSP]


@pytest.fixture
def laptop_item(bsp, draft_estimate):
    return line_item_service.create_line_item(
        bsp, draft_estimate.id, description="Laptop", quantity=50, unit_price=Decimal("120.00")
    )


class TestCreateLineItem:

    def test_office_equipment_scenario(self, draft_estimate, laptop_item):
        assert laptop_item.total_price == Decimal("6000.00")
        db.session.refresh(draft_estimate)
        assert draft_estimate.total_cost == Decimal("31000.00")
        assert draft_estimate.to_dict()["total_cost"] == "31000.00"

    def test_total_price_is_exact_decimal(self, bsp, draft_estimate):
        item = line_item_service.create_line_item(
            bsp, draft_estimate.id, description="Cable ties", quantity=3, unit_price="0.10"
        )
        assert item.total_price == Decimal("0.30")
        assert item.to_dict()["total_price"] == "0.30"

    def test_unit_price_rounded_half_up(self, bsp, draft_estimate):
        item = line_item_service.create_line_item(
            bsp, draft_estimate.id, description="Screws", quantity=1, unit_price="2.345"
        )
        assert item.unit_price == Decimal("2.35")
        assert item.total_price == Decimal("2.35")

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "3"])
    def test_quantity_must_be_positive_int(self, bsp, draft_estimate, quantity):
        with pytest.raises(ValidationError):
            line_item_service.create_line_item(
                bsp, draft_estimate.id, description="Bad", quantity=quantity, unit_price="1.00"
            )
        assert CostEstimateLineItem.query.count() == 0

    def test_quantity_past_integer_range(self, bsp, draft_estimate):
        with pytest.raises(ValidationError) as exc_info:
            line_item_service.create_line_item(
                bsp, draft_estimate.id, description="Bolts", quantity=10**20, unit_price="1.00"
            )
        assert "quantity" in exc_info.value.errors
        assert CostEstimateLineItem.query.count() == 0

    @pytest.mark.parametrize("unit_price", ["NaN", "sNaN", "Infinity"])
    def test_non_finite_unit_price(self, bsp, draft_estimate, unit_price):
        with pytest.raises(ValidationError) as exc_info:
            line_item_service.create_line_item(
                bsp, draft_estimate.id, description="Odd", quantity=1, unit_price=unit_price
            )
        assert "unit_price" in exc_info.value.errors

    def test_line_total_past_money_range(self, bsp, draft_estimate):
        with pytest.raises(ValidationError) as exc_info:
            line_item_service.create_line_item(
                bsp, draft_estimate.id, description="Fleet", quantity=1000, unit_price="9999999999999.99"
            )
        assert "total_price" in exc_info.value.errors
        db.session.refresh(draft_estimate)
        assert draft_estimate.total_cost == Decimal("25000.00")

    def test_estimate_total_past_money_range(self, bsp, draft_estimate):
        with pytest.raises(ValidationError) as exc_info:
            line_item_service.create_line_item(
                bsp, draft_estimate.id, description="Campus", quantity=1, unit_price="9999999999999.99"
            )
        assert "total_cost" in exc_info.value.errors
        assert CostEstimateLineItem.query.count() == 0

    def test_missing_estimate(self, bsp):
        with pytest.raises(NotFoundError):
            line_item_service.create_line_item(bsp, 999, description="Ghost", quantity=1, unit_price="1")

    def test_non_draft_estimate_rejected(self, bsp, draft_estimate):
        estimate_service.submit_cost_estimate(bsp, draft_estimate.id)
        with pytest.raises(InvalidStateError):
            line_item_service.create_line_item(
                bsp, draft_estimate.id, description="Late", quantity=1, unit_price="1"
            )

    def test_draft_guard_can_be_disabled(self, ctx, bsp, draft_estimate):
        ctx.config["LINE_ITEM_CREATE_REQUIRES_DRAFT"] = False
        estimate_service.submit_cost_estimate(bsp, draft_estimate.id)

        line_item_service.create_line_item(bsp, draft_estimate.id, description="Late", quantity=2, unit_price="5")
        db.session.refresh(draft_estimate)
        assert draft_estimate.total_cost == Decimal("25010.00")

    def test_roles_without_estimate_access(self, actors, draft_estimate):
        with pytest.raises(AuthorizationError):
            line_item_service.create_line_item(
                actors[UserRole.KKF], draft_estimate.id, description="x", quantity=1, unit_price="1"
            )


class TestUpdateLineItem:

    def test_update_reaggregates_total(self, bsp, draft_estimate, laptop_item):
        item = line_item_service.update_line_item(bsp, laptop_item.id, quantity=10)

        assert item.total_price == Decimal("1200.00")
        db.session.refresh(draft_estimate)
        assert draft_estimate.total_cost == Decimal("1200.00")

    def test_sum_invariant_over_several_items(self, bsp, draft_estimate, laptop_item):
        line_item_service.create_line_item(
            bsp, draft_estimate.id, description="Dock", quantity=5, unit_price="89.90"
        )
        line_item_service.update_line_item(bsp, laptop_item.id, unit_price="115.00")

        db.session.refresh(draft_estimate)
        items_total = sum(item.total_price for item in draft_estimate.line_items)
        assert draft_estimate.total_cost == items_total == Decimal("6199.50")

    def test_non_draft_parent_rejected(self, bsp, draft_estimate, laptop_item):
        estimate_service.submit_cost_estimate(bsp, draft_estimate.id)
        with pytest.raises(InvalidStateError):
            line_item_service.update_line_item(bsp, laptop_item.id, quantity=1)

        db.session.refresh(laptop_item)
        assert laptop_item.quantity == 50

    def test_missing_item(self, bsp):
        with pytest.raises(NotFoundError):
            line_item_service.update_line_item(bsp, 404, quantity=1)

    def test_update_past_money_range_keeps_item(self, bsp, laptop_item):
        with pytest.raises(ValidationError):
            line_item_service.update_line_item(bsp, laptop_item.id, unit_price="9999999999999.99")

        db.session.refresh(laptop_item)
        assert laptop_item.unit_price == Decimal("120.00")
        assert laptop_item.total_price == Decimal("6000.00")

    def test_unknown_field_rejected(self, bsp, laptop_item):
        with pytest.raises(ValidationError):
            line_item_service.update_line_item(bsp, laptop_item.id, total_price="1.00")


class TestDeleteLineItem:

    def test_delete_reaggregates_remaining(self, bsp, draft_estimate, laptop_item):
        line_item_service.create_line_item(
            bsp, draft_estimate.id, description="Dock", quantity=2, unit_price="100.00"
        )

        estimate = line_item_service.delete_line_item(bsp, laptop_item.id)
        assert estimate.total_cost == Decimal("200.00")
        assert [item.description for item in estimate.line_items] == ["Dock"]

    def test_delete_last_item_zeroes_total(self, bsp, laptop_item):
        estimate = line_item_service.delete_line_item(bsp, laptop_item.id)
        assert estimate.total_cost == Decimal("0.00")
        assert estimate.line_items == []

    def test_creator_must_still_be_bsp(self, actors, bsp, laptop_item):
        user_service.update_user(actors[UserRole.SUPERADMIN], bsp.id, role="ADMIN")

        with pytest.raises(AuthorizationError):
            line_item_service.delete_line_item(actors[UserRole.DAU], laptop_item.id)
        assert db.session.get(CostEstimateLineItem, laptop_item.id) is not None

    def test_any_estimate_role_may_delete_bsp_items(self, actors, laptop_item):
        estimate = line_item_service.delete_line_item(actors[UserRole.DAU], laptop_item.id)
        assert estimate.line_items == []

    def test_non_draft_parent_rejected(self, bsp, draft_estimate, laptop_item):
        estimate_service.submit_cost_estimate(bsp, draft_estimate.id)
        with pytest.raises(InvalidStateError):
            line_item_service.delete_line_item(bsp, laptop_item.id)

    def test_missing_item(self, bsp):
        with pytest.raises(NotFoundError):
            line_item_service.delete_line_item(bsp, 404)


class TestListLineItems:

    def test_list_by_estimate(self, bsp, draft_estimate, laptop_item):
        items = line_item_service.list_line_items(bsp, draft_estimate.id)
        assert [item.id for item in items] == [laptop_item.id]

    def test_unknown_estimate_has_no_items(self, bsp):
        assert line_item_service.list_line_items(bsp, 4242) == []
