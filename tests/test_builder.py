"""
Tests for the adjustment builder
Staging is pure: nothing here may touch catalog quantities
"""

from datetime import date
from decimal import Decimal

import pytest

from stockledger.core.exceptions import InsufficientStock, NotFound, ValidationError
from stockledger.models.adjustment import AdjustmentStatus, AdjustmentType
from stockledger.services.builder import AdjustmentBuilder
from stockledger.services.validation import line_total


class TestStaging:
    def test_decrease_snapshot(self, catalog, products):
        builder = AdjustmentBuilder(catalog, AdjustmentType.DECREASE, "Damaged Goods")

        staged = builder.add_item("SKU-100", 10)

        assert staged.current_stock == 50
        assert staged.new_stock == 40
        assert staged.unit_cost == Decimal("20.00")
        assert staged.total_cost == Decimal("200.00")
        assert catalog.get("SKU-100").quantity == 50

    def test_totals_over_two_items(self, catalog, products):
        builder = AdjustmentBuilder(catalog, "increase", "Supplier Bonus")
        builder.add_item("A", 5)
        builder.add_item("B", 3)

        assert builder.total_quantity == 8
        assert builder.total_value == Decimal("200.00")

    def test_repriced_cost_is_snapshotted_in_cents(self, catalog, products, ledger, db_session):
        catalog.update_product("A", unit_cost="0.125")
        db_session.commit()
        builder = AdjustmentBuilder(catalog, AdjustmentType.INCREASE, "Transfer In")

        staged = builder.add_item("A", 3)

        assert staged.unit_cost == Decimal("0.13")
        assert staged.total_cost == Decimal("0.39")
        draft = ledger.save_draft(builder.build(created_by="Jane Storekeeper", adjustment_date=date(2026, 10, 19)))
        assert ledger.submit(draft.id, "Jane Storekeeper").status == AdjustmentStatus.PENDING

    @pytest.mark.parametrize(
        "quantity, unit_cost, expected",
        [(1, "0.125", "0.13"), (3, "0.125", "0.38"), (2, "0.005", "0.01"), (7, "1.10", "7.70")],
    )
    def test_line_total_rounds_half_up_once(self, quantity, unit_cost, expected):
        assert line_total(quantity, unit_cost) == Decimal(expected)

    @pytest.mark.parametrize("magnitude", [0, -3, 2.5, True, "4"])
    def test_bad_magnitude(self, catalog, products, magnitude):
        builder = AdjustmentBuilder(catalog, AdjustmentType.INCREASE, "Supplier Bonus")

        with pytest.raises(ValidationError):
            builder.add_item("A", magnitude)
        assert builder.items == ()

    def test_duplicate_sku_rejected(self, catalog, products):
        builder = AdjustmentBuilder(catalog, AdjustmentType.INCREASE, "Supplier Bonus")
        builder.add_item("A", 1)

        with pytest.raises(ValidationError, match="already staged"):
            builder.add_item("A", 2)
        assert len(builder.items) == 1

    def test_unknown_sku(self, catalog, products):
        builder = AdjustmentBuilder(catalog, AdjustmentType.INCREASE, "Supplier Bonus")

        with pytest.raises(NotFound):
            builder.add_item("MISSING", 1)

    def test_decrease_beyond_stock_needs_override(self, catalog, products):
        builder = AdjustmentBuilder(catalog, AdjustmentType.DECREASE, "Theft/Loss")

        with pytest.raises(InsufficientStock):
            builder.add_item("B", 9)

        staged = builder.add_item("B", 9, allow_negative=True)
        assert staged.new_stock == -3

    def test_remove_item(self, catalog, products):
        builder = AdjustmentBuilder(catalog, AdjustmentType.INCREASE, "Supplier Bonus")
        builder.add_item("A", 1)

        builder.remove_item("A")

        assert builder.items == ()
        with pytest.raises(NotFound):
            builder.remove_item("A")

    def test_change_type_clears_reason_and_items(self, catalog, products):
        builder = AdjustmentBuilder(catalog, AdjustmentType.INCREASE, "Supplier Bonus")
        builder.add_item("A", 1)

        builder.change_type(AdjustmentType.DECREASE)

        assert builder.reason is None
        assert builder.items == ()
        assert "Damaged Goods" in builder.reasons


class TestReasons:
    def test_reason_must_match_type(self, catalog):
        builder = AdjustmentBuilder(catalog, AdjustmentType.INCREASE)

        with pytest.raises(ValidationError):
            builder.set_reason("Damaged Goods")
        assert builder.set_reason("  Return from Customer ") == "Return from Customer"

    def test_unknown_type(self, catalog):
        with pytest.raises(ValidationError):
            AdjustmentBuilder(catalog, "sideways")


class TestBuild:
    def test_build_returns_transient_draft(self, catalog, products):
        builder = AdjustmentBuilder(catalog, AdjustmentType.DECREASE, "Expired Products")
        builder.add_item("SKU-100", 10, "shelf 3")
        builder.add_item("A", 2)

        draft = builder.build(created_by="Jane", adjustment_date=date(2026, 10, 1), notes="  ")

        assert draft.status == AdjustmentStatus.DRAFT
        assert draft.id is None
        assert draft.notes is None
        assert [item.position for item in draft.items] == [1, 2]
        assert draft.items[0].item_reason == "shelf 3"
        assert draft.total_quantity == 12
        assert draft.total_value == Decimal("220.00")
        assert not draft.allow_negative

    def test_build_requires_items_and_reason(self, catalog, products):
        builder = AdjustmentBuilder(catalog, AdjustmentType.INCREASE)
        with pytest.raises(ValidationError):
            builder.build(created_by="Jane")

        builder.add_item("A", 1)
        with pytest.raises(ValidationError, match="reason"):
            builder.build(created_by="Jane")
