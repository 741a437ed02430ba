"""
Tests for the adjustment ledger
Lifecycle transitions, all-or-nothing application and reversal
"""

import json
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select, text

from stockledger.core.exceptions import (
    ConcurrencyConflict,
    InsufficientStock,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from stockledger.models.adjustment import AdjustmentStatus, AdjustmentType, MovementKind, StockAdjustment
from stockledger.models.audit import AuditLog
from stockledger.services.builder import AdjustmentBuilder
from stockledger.services.catalog import InventoryCatalog
from stockledger.services.ledger import AdjustmentLedger
from stockledger.services.locking import SkuLockRegistry


def build(catalog, adjustment_type, reason, *lines, allow_negative=False, on=None):
    builder = AdjustmentBuilder(catalog, adjustment_type, reason)
    for sku, magnitude in lines:
        builder.add_item(sku, magnitude, allow_negative=allow_negative)
    return builder.build(created_by="Jane Storekeeper", adjustment_date=on or date(2026, 10, 19))


def quantity(catalog, sku):
    return catalog.get(sku).quantity


def events(db_session, adjustment_id):
    rows = db_session.scalars(
        select(AuditLog).where(AuditLog.entity_id == adjustment_id).order_by(AuditLog.id)
    ).all()
    return [row.event_type for row in rows]


class RacingCatalog(InventoryCatalog):
    """Another writer bumps the product row between the locked read and the flush"""

    def apply_delta(self, sku, signed_delta, *, strict=False):
        self.db.connection().execute(
            text("UPDATE products SET version = version + 1 WHERE sku = :sku"), {"sku": sku}
        )
        return super().apply_delta(sku, signed_delta, strict=strict)


class TestCreate:
    def test_create_records_pending_without_touching_stock(self, ledger, catalog, products):
        adjustment = ledger.create(build(catalog, AdjustmentType.DECREASE, "Damaged Goods", ("SKU-100", 10)))

        assert adjustment.status == AdjustmentStatus.PENDING
        assert adjustment.adjustment_no == "SA-20261019-0001"
        assert len(adjustment.id) == 32
        assert quantity(catalog, "SKU-100") == 50

    def test_numbers_increase_per_day(self, ledger, catalog, products):
        first = ledger.create(build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 1)))
        second = ledger.create(build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 1)))
        other_day = ledger.create(
            build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 1), on=date(2026, 10, 20))
        )

        assert first.adjustment_no == "SA-20261019-0001"
        assert second.adjustment_no == "SA-20261019-0002"
        assert other_day.adjustment_no == "SA-20261020-0001"

    def test_auto_approve_applies_immediately(self, db_session, catalog, products):
        ledger = AdjustmentLedger(db_session, catalog=catalog, auto_approve=True, locks=SkuLockRegistry())

        adjustment = ledger.create(build(catalog, AdjustmentType.INCREASE, "Return from Customer", ("A", 5)))

        assert adjustment.status == AdjustmentStatus.APPROVED
        assert adjustment.approved_by == "Jane Storekeeper"
        assert quantity(catalog, "A") == 45
        assert "stock_adjustment.auto_approved" in events(db_session, adjustment.id)

    def test_failed_auto_approve_keeps_pending_record(self, db_session, catalog, products):
        ledger = AdjustmentLedger(db_session, catalog=catalog, auto_approve=True, locks=SkuLockRegistry())
        draft = build(catalog, AdjustmentType.DECREASE, "Theft/Loss", ("A", 5), ("B", 4))
        catalog.apply_delta("B", -3)
        db_session.commit()

        with pytest.raises(InsufficientStock):
            ledger.create(draft)

        recorded = ledger.get_by_number("SA-20261019-0001")
        assert recorded.status == AdjustmentStatus.PENDING
        assert [item.sku for item in recorded.items] == ["A", "B"]
        assert quantity(catalog, "A") == 40
        assert quantity(catalog, "B") == 3
        assert events(db_session, recorded.id) == [
            "stock_adjustment.submitted",
            "stock_adjustment.approve_failed",
        ]

    def test_snapshots_survive_product_changes(self, ledger, catalog, products, db_session):
        adjustment = ledger.create(build(catalog, AdjustmentType.DECREASE, "Damaged Goods", ("SKU-100", 10)))
        catalog.update_product("SKU-100", name="Widget Mk II", unit_cost="99")
        db_session.commit()
        db_session.expire_all()

        item = ledger.get(adjustment.id).items[0]
        assert item.name == "Widget"
        assert item.unit_cost == Decimal("20.00")
        assert item.total_cost == Decimal("200.00")
        assert item.current_stock == 50

    def test_recording_twice_rejected(self, ledger, catalog, products):
        draft = build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 1))
        ledger.create(draft)

        with pytest.raises(InvalidTransition):
            ledger.create(draft)

    def test_tampered_line_total_rejected(self, ledger, catalog, products):
        draft = build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 2))
        draft.items[0].total_cost = Decimal("1.00")

        with pytest.raises(ValidationError, match="Line total"):
            ledger.create(draft)

    def test_reason_outside_vocabulary_rejected(self, ledger, catalog, products):
        draft = build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 2))
        draft.reason = "Damaged Goods"

        with pytest.raises(ValidationError):
            ledger.create(draft)


class TestApprove:
    def test_decrease_then_reverse_restores_quantity(self, ledger, catalog, products):
        adjustment = ledger.create(build(catalog, AdjustmentType.DECREASE, "Damaged Goods", ("SKU-100", 10)))
        assert adjustment.items[0].new_stock == 40
        assert adjustment.items[0].total_cost == Decimal("200.00")

        ledger.approve(adjustment.id, "Maria Manager")
        assert quantity(catalog, "SKU-100") == 40
        assert adjustment.status == AdjustmentStatus.APPROVED
        assert adjustment.approved_by == "Maria Manager"
        assert adjustment.approved_date is not None

        ledger.reverse(adjustment.id, "Maria Manager")
        assert quantity(catalog, "SKU-100") == 50
        assert adjustment.status == AdjustmentStatus.REVERSED
        assert adjustment.reversed_by == "Maria Manager"

    def test_applied_deltas_match_total_quantity_times_sign(self, ledger, catalog, products):
        adjustment = ledger.create(
            build(catalog, AdjustmentType.DECREASE, "Stock Count - Missing", ("A", 5), ("B", 3))
        )
        ledger.approve(adjustment.id, "Maria Manager")

        applied = ledger.applied_deltas(adjustment.id)
        assert applied == {"A": -5, "B": -3}
        assert sum(applied.values()) == adjustment.total_quantity * adjustment.sign
        assert [m.kind for m in ledger.movements(adjustment.id)] == [MovementKind.APPLY] * 2

    def test_strict_failure_is_all_or_nothing(self, ledger, catalog, products, db_session):
        adjustment = ledger.create(
            build(catalog, AdjustmentType.DECREASE, "Theft/Loss", ("A", 5), ("B", 4))
        )
        # Stock drifts after staging; B can no longer cover the decrease.
        catalog.apply_delta("B", -3)
        db_session.commit()

        with pytest.raises(InsufficientStock):
            ledger.approve(adjustment.id, "Maria Manager")

        reloaded = ledger.get(adjustment.id)
        assert reloaded.status == AdjustmentStatus.PENDING
        assert quantity(catalog, "A") == 40
        assert quantity(catalog, "B") == 3
        assert ledger.movements(adjustment.id) == []
        assert "stock_adjustment.approve_failed" in events(db_session, adjustment.id)

    def test_allow_negative_clamps_and_reverse_restores(self, ledger, catalog, products):
        adjustment = ledger.create(
            build(catalog, AdjustmentType.DECREASE, "Theft/Loss", ("B", 9), allow_negative=True)
        )
        assert adjustment.items[0].new_stock == -3

        ledger.approve(adjustment.id, "Maria Manager")
        assert quantity(catalog, "B") == 0
        movement = ledger.movements(adjustment.id)[0]
        assert movement.clamped
        assert movement.applied_delta == -6

        ledger.reverse(adjustment.id, "Maria Manager")
        assert quantity(catalog, "B") == 6

    def test_approve_twice_is_invalid(self, ledger, catalog, products):
        adjustment = ledger.create(build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 5)))
        ledger.approve(adjustment.id, "Maria Manager")

        with pytest.raises(InvalidTransition):
            ledger.approve(adjustment.id, "Maria Manager")
        assert quantity(catalog, "A") == 45

    def test_unknown_adjustment(self, ledger, products):
        with pytest.raises(NotFound):
            ledger.approve("0" * 32, "Maria Manager")

    def test_stale_product_row_raises_conflict(self, db_session, catalog, products):
        racing = AdjustmentLedger(
            db_session,
            catalog=RacingCatalog(db_session),
            auto_approve=False,
            locks=SkuLockRegistry(),
        )
        adjustment = racing.create(build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 5)))

        with pytest.raises(ConcurrencyConflict):
            racing.approve(adjustment.id, "Maria Manager")

        assert racing.get(adjustment.id).status == AdjustmentStatus.PENDING
        assert quantity(catalog, "A") == 40
        assert racing.movements(adjustment.id) == []


class TestImmutability:
    def test_item_rows_cannot_be_edited(self, ledger, catalog, products, db_session):
        adjustment = ledger.create(build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 5)))

        adjustment.items[0].name = "Something else"
        with pytest.raises(ValidationError):
            db_session.flush()
        db_session.rollback()

        assert ledger.get(adjustment.id).items[0].name == "Bolt"

    def test_movement_rows_cannot_be_edited(self, ledger, catalog, products, db_session):
        adjustment = ledger.create(build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 5)))
        ledger.approve(adjustment.id, "Maria Manager")

        movement = ledger.movements(adjustment.id)[0]
        movement.applied_delta = 50
        with pytest.raises(ValidationError):
            db_session.flush()
        db_session.rollback()

        assert ledger.movements(adjustment.id)[0].applied_delta == 5


class TestRejectAndReverse:
    def test_reject_has_no_catalog_effect(self, ledger, catalog, products):
        adjustment = ledger.create(build(catalog, AdjustmentType.DECREASE, "Staff Use", ("A", 5)))

        ledger.reject(adjustment.id, "Maria Manager", "  wrong shelf  ")

        assert adjustment.status == AdjustmentStatus.REJECTED
        assert adjustment.rejection_reason == "wrong shelf"
        assert quantity(catalog, "A") == 40

    @pytest.mark.parametrize("terminal", ["reject", "reverse"])
    def test_reversing_terminal_records_is_invalid(self, ledger, catalog, products, terminal):
        adjustment = ledger.create(build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 5)))
        if terminal == "reject":
            ledger.reject(adjustment.id, "Maria Manager")
        else:
            ledger.approve(adjustment.id, "Maria Manager")
            ledger.reverse(adjustment.id, "Maria Manager")
        before = quantity(catalog, "A")

        with pytest.raises(InvalidTransition):
            ledger.reverse(adjustment.id, "Maria Manager")
        assert quantity(catalog, "A") == before

    def test_reverse_clamps_and_notes_when_stock_was_consumed(self, ledger, catalog, products, db_session):
        adjustment = ledger.create(build(catalog, AdjustmentType.INCREASE, "Transfer In", ("B", 10)))
        ledger.approve(adjustment.id, "Maria Manager")
        catalog.apply_delta("B", -14)
        db_session.commit()

        ledger.reverse(adjustment.id, "Maria Manager")

        assert quantity(catalog, "B") == 0
        reversal = [m for m in ledger.movements(adjustment.id) if m.kind == MovementKind.REVERSE][0]
        assert reversal.requested_delta == -10
        assert reversal.applied_delta == -2
        assert "clamped" in reversal.note
        audit = db_session.scalar(
            select(AuditLog).where(
                AuditLog.entity_id == adjustment.id,
                AuditLog.event_type == "stock_adjustment.reversed",
            )
        )
        assert json.loads(audit.details)["clamped"][0]["sku"] == "B"


class TestDrafts:
    def test_save_submit_approve(self, ledger, catalog, products):
        draft = ledger.save_draft(build(catalog, AdjustmentType.INCREASE, "Manufacturing Yield", ("A", 2)))
        assert draft.status == AdjustmentStatus.DRAFT

        ledger.submit(draft.id, "Jane Storekeeper")
        assert draft.status == AdjustmentStatus.PENDING

        ledger.approve(draft.id, "Maria Manager")
        assert quantity(catalog, "A") == 42

    def test_delete_draft_has_no_catalog_effect(self, ledger, catalog, products, db_session):
        draft = ledger.save_draft(build(catalog, AdjustmentType.DECREASE, "Samples Given", ("A", 2)))

        draft_id = draft.id

        ledger.delete_draft(draft_id, actor="Jane Storekeeper")

        assert db_session.get(StockAdjustment, draft_id) is None
        assert quantity(catalog, "A") == 40

    def test_numbering_continues_after_deleted_draft(self, ledger, catalog, products):
        first = ledger.save_draft(build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 1)))
        second = ledger.save_draft(build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 2)))
        assert (first.adjustment_no, second.adjustment_no) == ("SA-20261019-0001", "SA-20261019-0002")

        ledger.delete_draft(first.id)
        third = ledger.create(build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 3)))

        assert third.adjustment_no == "SA-20261019-0003"
        assert ledger.get_by_number("SA-20261019-0002").id == second.id

    def test_submit_with_auto_approve_applies(self, db_session, catalog, products):
        ledger = AdjustmentLedger(db_session, catalog=catalog, auto_approve=True, locks=SkuLockRegistry())
        draft = ledger.save_draft(build(catalog, AdjustmentType.INCREASE, "Manufacturing Yield", ("A", 2)))

        submitted = ledger.submit(draft.id, "Jane Storekeeper")

        assert submitted.status == AdjustmentStatus.APPROVED
        assert quantity(catalog, "A") == 42
        assert events(db_session, draft.id)[-2:] == [
            "stock_adjustment.submitted",
            "stock_adjustment.auto_approved",
        ]

    def test_pending_cannot_be_deleted(self, ledger, catalog, products):
        adjustment = ledger.create(build(catalog, AdjustmentType.DECREASE, "Samples Given", ("A", 2)))

        with pytest.raises(InvalidTransition):
            ledger.delete_draft(adjustment.id)
        assert ledger.get(adjustment.id).status == AdjustmentStatus.PENDING


class TestReads:
    def test_get_by_number_and_filters(self, ledger, catalog, products):
        increase = ledger.create(build(catalog, AdjustmentType.INCREASE, "Supplier Bonus", ("A", 1)))
        ledger.create(build(catalog, AdjustmentType.DECREASE, "Damaged Goods", ("B", 1)))

        assert ledger.get_by_number(increase.adjustment_no).id == increase.id
        assert [a.id for a in ledger.list(adjustment_type=AdjustmentType.INCREASE)] == [increase.id]
        assert len(ledger.list(sku="B")) == 1
        assert len(ledger.list(search="damaged")) == 1
        with pytest.raises(NotFound):
            ledger.get_by_number("SA-19990101-0001")
