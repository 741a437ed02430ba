"""
Stock adjustment ledger.

Owns the adjustment lifecycle::

    draft -> pending -> approved -> reversed
                     -> rejected

and is the only code path that pushes adjustment deltas into the catalog.
Deltas are applied once when a record enters ``approved`` and undone once
when it enters ``reversed``. Every catalog touch is written to
``stock_movements`` in the same transaction as the status change.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime

from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stockledger.core.config import settings
from stockledger.core.exceptions import ConcurrencyConflict, InvalidTransition, LedgerError, ValidationError
from stockledger.models.adjustment import (
    AdjustmentStatus,
    MovementKind,
    StockAdjustment,
    StockMovement,
)
from stockledger.services.audit import record_audit
from stockledger.services.catalog import DeltaResult, InventoryCatalog
from stockledger.services.locking import SkuLockRegistry, sku_locks
from stockledger.services.ports import AdjustmentRepo, Catalog
from stockledger.services.repository import AdjustmentRepository
from stockledger.services.validation import line_total, validate_magnitude, validate_reason

logger = logging.getLogger(__name__)

ENTITY_TYPE = "stock_adjustment"


class AdjustmentLedger:
    def __init__(
        self,
        db: Session,
        *,
        catalog: Catalog | None = None,
        repository: AdjustmentRepo | None = None,
        auto_approve: bool | None = None,
        strict_approval: bool | None = None,
        locks: SkuLockRegistry | None = None,
    ):
        self.db = db
        self.catalog = catalog or InventoryCatalog(db)
        self.repository = repository or AdjustmentRepository(db)
        self.auto_approve = settings.auto_approve if auto_approve is None else auto_approve
        self.strict_approval = settings.strict_approval if strict_approval is None else strict_approval
        self.locks = locks or sku_locks

    # -- reads ---------------------------------------------------------------

    def get(self, adjustment_id: str) -> StockAdjustment:
        return self.repository.get(adjustment_id)

    def get_by_number(self, adjustment_no: str) -> StockAdjustment:
        return self.repository.get_by_number(adjustment_no)

    def list(self, **filters) -> list[StockAdjustment]:
        return list(self.repository.list(**filters))

    def movements(self, adjustment_id: str) -> list[StockMovement]:
        self.repository.get(adjustment_id)
        return self.repository.movements(adjustment_id)

    def applied_deltas(self, adjustment_id: str, kind: MovementKind = MovementKind.APPLY) -> dict[str, int]:
        totals: dict[str, int] = defaultdict(int)
        for movement in self.movements(adjustment_id):
            if movement.kind == kind:
                totals[movement.sku] += movement.applied_delta
        return dict(totals)

    # -- transitions ---------------------------------------------------------

    def create(self, draft: StockAdjustment, *, actor_id: int | None = None) -> StockAdjustment:
        """Record a built draft as pending, or approve it outright under auto-approve."""
        self._validate_draft(draft)
        self._persist(draft, AdjustmentStatus.PENDING)
        # Pending is committed first so a failed auto-approve leaves it on record.
        self._audit("stock_adjustment.submitted", draft, draft.created_by, actor_id)
        self._commit()
        logger.info("Adjustment %s submitted by %s", draft.adjustment_no, draft.created_by)
        if self.auto_approve:
            return self._apply(
                self.repository.get(draft.id, for_update=True),
                approver=draft.created_by,
                actor_id=actor_id,
                event_type="stock_adjustment.auto_approved",
            )
        return draft

    def save_draft(self, draft: StockAdjustment, *, actor_id: int | None = None) -> StockAdjustment:
        self._validate_draft(draft)
        self._persist(draft, AdjustmentStatus.DRAFT)
        self._audit("stock_adjustment.draft_saved", draft, draft.created_by, actor_id)
        self._commit()
        logger.info("Adjustment %s saved as draft", draft.adjustment_no)
        return draft

    def submit(self, adjustment_id: str, actor: str, *, actor_id: int | None = None) -> StockAdjustment:
        adjustment = self.repository.get(adjustment_id, for_update=True)
        self._require(adjustment, {AdjustmentStatus.DRAFT}, "submit")
        self._validate_items(adjustment)
        adjustment.status = AdjustmentStatus.PENDING
        self._audit("stock_adjustment.submitted", adjustment, actor, actor_id)
        self._commit()
        logger.info("Adjustment %s submitted by %s", adjustment.adjustment_no, actor)
        if self.auto_approve:
            return self._apply(
                self.repository.get(adjustment_id, for_update=True),
                approver=actor,
                actor_id=actor_id,
                event_type="stock_adjustment.auto_approved",
            )
        return adjustment

    def approve(self, adjustment_id: str, approver: str, *, actor_id: int | None = None) -> StockAdjustment:
        adjustment = self.repository.get(adjustment_id, for_update=True)
        self._require(adjustment, {AdjustmentStatus.PENDING}, "approve")
        return self._apply(adjustment, approver=approver, actor_id=actor_id, event_type="stock_adjustment.approved")

    def reject(
        self,
        adjustment_id: str,
        approver: str,
        reason: str | None = None,
        *,
        actor_id: int | None = None,
    ) -> StockAdjustment:
        adjustment = self.repository.get(adjustment_id, for_update=True)
        self._require(adjustment, {AdjustmentStatus.PENDING}, "reject")
        adjustment.status = AdjustmentStatus.REJECTED
        adjustment.approved_by = approver
        adjustment.approved_date = datetime.utcnow()
        adjustment.rejection_reason = reason.strip() if reason and reason.strip() else None
        self._audit(
            "stock_adjustment.rejected",
            adjustment,
            approver,
            actor_id,
            {"reason": adjustment.rejection_reason},
        )
        self._commit()
        logger.info("Adjustment %s rejected by %s", adjustment.adjustment_no, approver)
        return adjustment

    def reverse(self, adjustment_id: str, actor: str, *, actor_id: int | None = None) -> StockAdjustment:
        adjustment = self.repository.get(adjustment_id, for_update=True)
        self._require(adjustment, {AdjustmentStatus.APPROVED}, "reverse")

        # Undo what actually reached the catalog, which differs from the
        # staged magnitude when the forward apply clamped at zero.
        forward = self.applied_deltas(adjustment.id)
        skus = [item.sku for item in adjustment.items]
        with self.locks.hold(skus):
            self.catalog.lock(skus)
            results: list[DeltaResult] = []
            try:
                for item in adjustment.items:
                    applied = forward.get(item.sku, adjustment.sign * item.adjustment_quantity)
                    results.append(self.catalog.apply_delta(item.sku, -applied, strict=False))
            except LedgerError as exc:
                self._abort(adjustment, "stock_adjustment.reverse_failed", actor, actor_id, exc)
                raise

            clamped = []
            for result in results:
                note = None
                if result.clamped:
                    note = (
                        f"Reversal clamped at zero: requested {result.requested_delta:+d}, "
                        f"applied {result.applied_delta:+d}"
                    )
                    clamped.append(
                        {
                            "sku": result.sku,
                            "requested_delta": result.requested_delta,
                            "applied_delta": result.applied_delta,
                        }
                    )
                self._record_movement(adjustment, result, MovementKind.REVERSE, note)

            adjustment.status = AdjustmentStatus.REVERSED
            adjustment.reversed_by = actor
            adjustment.reversed_date = datetime.utcnow()
            self._audit("stock_adjustment.reversed", adjustment, actor, actor_id, {"clamped": clamped})
            self._commit()

        if clamped:
            logger.warning("Adjustment %s reversed with clamped deltas: %s", adjustment.adjustment_no, clamped)
        else:
            logger.info("Adjustment %s reversed by %s", adjustment.adjustment_no, actor)
        return adjustment

    def delete_draft(self, adjustment_id: str, *, actor: str | None = None, actor_id: int | None = None) -> None:
        adjustment = self.repository.get(adjustment_id, for_update=True)
        self._require(adjustment, {AdjustmentStatus.DRAFT}, "delete")
        adjustment_no = adjustment.adjustment_no
        self.repository.delete(adjustment)
        self._audit("stock_adjustment.draft_deleted", adjustment, actor, actor_id)
        self._commit()
        logger.info("Draft adjustment %s deleted", adjustment_no)

    # -- internals -----------------------------------------------------------

    def _apply(
        self,
        adjustment: StockAdjustment,
        *,
        approver: str,
        actor_id: int | None,
        event_type: str,
    ) -> StockAdjustment:
        strict = self.strict_approval and not adjustment.allow_negative
        skus = [item.sku for item in adjustment.items]
        with self.locks.hold(skus):
            self.catalog.lock(skus)
            results: list[DeltaResult] = []
            try:
                for item in adjustment.items:
                    results.append(
                        self.catalog.apply_delta(
                            item.sku,
                            adjustment.sign * item.adjustment_quantity,
                            strict=strict,
                        )
                    )
            except LedgerError as exc:
                self._abort(adjustment, "stock_adjustment.approve_failed", approver, actor_id, exc)
                raise

            for result in results:
                note = None
                if result.clamped:
                    note = f"Clamped at zero: requested {result.requested_delta:+d}, applied {result.applied_delta:+d}"
                self._record_movement(adjustment, result, MovementKind.APPLY, note)

            adjustment.status = AdjustmentStatus.APPROVED
            adjustment.approved_by = approver
            adjustment.approved_date = datetime.utcnow()
            self._audit(
                event_type,
                adjustment,
                approver,
                actor_id,
                {"strict": strict, "deltas": {r.sku: r.applied_delta for r in results}},
            )
            self._commit()

        logger.info("Adjustment %s approved by %s", adjustment.adjustment_no, approver)
        return adjustment

    def _abort(
        self,
        adjustment: StockAdjustment,
        event_type: str,
        actor: str | None,
        actor_id: int | None,
        error: LedgerError,
    ) -> None:
        # Rollback discards every delta applied so far in this call.
        adjustment_id, adjustment_no = adjustment.id, adjustment.adjustment_no
        self.db.rollback()
        logger.warning("Adjustment %s not applied: %s", adjustment_no, error.message)
        record_audit(
            self.db,
            event_type,
            actor_name=actor,
            actor_user_id=actor_id,
            entity_type=ENTITY_TYPE,
            entity_id=adjustment_id,
            details={"adjustment_no": adjustment_no, "error": error.code, "message": error.message, **error.context},
        )
        self.db.commit()

    def _record_movement(
        self,
        adjustment: StockAdjustment,
        result: DeltaResult,
        kind: MovementKind,
        note: str | None,
    ) -> None:
        self.db.add(
            StockMovement(
                adjustment_id=adjustment.id,
                sku=result.sku,
                kind=kind,
                requested_delta=result.requested_delta,
                applied_delta=result.applied_delta,
                quantity_before=result.quantity_before,
                quantity_after=result.new_quantity,
                note=note,
            )
        )

    def _persist(self, draft: StockAdjustment, status: AdjustmentStatus) -> None:
        draft.adjustment_no = self.repository.next_number(draft.date)
        draft.status = status
        try:
            self.repository.add(draft)
        except IntegrityError as exc:
            self.db.rollback()
            raise ConcurrencyConflict(
                f"Adjustment number {draft.adjustment_no} was taken concurrently, retry",
                adjustment_no=draft.adjustment_no,
            ) from exc

    def _require(self, adjustment: StockAdjustment, allowed: set[AdjustmentStatus], action: str) -> None:
        if adjustment.status in allowed:
            return
        current = adjustment.status.value
        adjustment_id, adjustment_no = adjustment.id, adjustment.adjustment_no
        self.db.rollback()
        raise InvalidTransition(
            f"Cannot {action} adjustment {adjustment_no}: status is {current}",
            adjustment_id=adjustment_id,
            status=current,
            action=action,
        )

    def _validate_draft(self, draft: StockAdjustment) -> None:
        if not isinstance(draft, StockAdjustment):
            raise ValidationError("Expected a built stock adjustment draft")
        state = inspect(draft)
        if state.persistent or state.detached:
            raise InvalidTransition("Adjustment has already been recorded", adjustment_id=draft.id)
        if draft.status not in (None, AdjustmentStatus.DRAFT):
            raise InvalidTransition(f"Only drafts can be recorded, got {draft.status.value}")
        if not draft.created_by or not draft.created_by.strip():
            raise ValidationError("created_by is required")
        if draft.date is None:
            raise ValidationError("Adjustment date is required")
        self._validate_items(draft)

    def _validate_items(self, adjustment: StockAdjustment) -> None:
        validate_reason(adjustment.adjustment_type, adjustment.reason)
        if not adjustment.items:
            raise ValidationError("An adjustment needs at least one item")
        seen: set[str] = set()
        for item in adjustment.items:
            if item.sku in seen:
                raise ValidationError(f"{item.sku} appears more than once in this adjustment", sku=item.sku)
            seen.add(item.sku)
            validate_magnitude(item.adjustment_quantity)
            if item.total_cost != line_total(item.adjustment_quantity, item.unit_cost):
                raise ValidationError(f"Line total for {item.sku} does not match quantity x unit cost", sku=item.sku)
            if item.new_stock != item.current_stock + adjustment.sign * item.adjustment_quantity:
                raise ValidationError(f"New stock for {item.sku} does not match the adjustment", sku=item.sku)

    def _audit(
        self,
        event_type: str,
        adjustment: StockAdjustment,
        actor: str | None,
        actor_id: int | None,
        details: dict | None = None,
    ) -> None:
        record_audit(
            self.db,
            event_type,
            actor_name=actor,
            actor_user_id=actor_id,
            entity_type=ENTITY_TYPE,
            entity_id=adjustment.id,
            details={"adjustment_no": adjustment.adjustment_no, **(details or {})},
        )

    def _commit(self) -> None:
        try:
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            raise ConcurrencyConflict("Stock records changed concurrently, reload and retry") from exc
        except IntegrityError as exc:
            self.db.rollback()
            raise ConcurrencyConflict("Conflicting write detected, reload and retry") from exc
