from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query, Response, status

from stockledger.api.deps import get_catalog, get_ledger, require_permission
from stockledger.models.adjustment import AdjustmentStatus, AdjustmentType
from stockledger.models.user import User
from stockledger.schemas.adjustment import (
    AdjustmentCreateRequest,
    AdjustmentPrintOut,
    AdjustmentReportOut,
    AdjustmentSummaryOut,
    MovementOut,
    PeriodTotalsOut,
    ReasonVocabularyOut,
    RejectRequest,
    StockAdjustmentRecord,
    TotalsOut,
)
from stockledger.services import reporting
from stockledger.services.builder import AdjustmentBuilder
from stockledger.services.catalog import InventoryCatalog
from stockledger.services.export import adjustments_to_csv, serialize_for_print
from stockledger.services.ledger import AdjustmentLedger
from stockledger.services.validation import reasons_for

router = APIRouter(prefix="/adjustments", tags=["Stock Adjustments"])

Granularity = Literal["day", "week", "month"]


def _record(adjustment) -> StockAdjustmentRecord:
    return StockAdjustmentRecord.from_model(adjustment)


@router.get("/reasons", response_model=ReasonVocabularyOut)
def list_reasons(current_user: User = Depends(require_permission("adjustments:view"))):
    return ReasonVocabularyOut(
        increase=list(reasons_for(AdjustmentType.INCREASE)),
        decrease=list(reasons_for(AdjustmentType.DECREASE)),
    )


@router.post("", response_model=StockAdjustmentRecord, status_code=status.HTTP_201_CREATED)
def create_adjustment(
    payload: AdjustmentCreateRequest,
    current_user: User = Depends(require_permission("adjustments:create")),
    catalog: InventoryCatalog = Depends(get_catalog),
    ledger: AdjustmentLedger = Depends(get_ledger),
):
    builder = AdjustmentBuilder(catalog, payload.adjustment_type, payload.reason)
    for item in payload.items:
        builder.add_item(item.sku, item.quantity, item.reason, allow_negative=payload.allow_negative)
    draft = builder.build(
        created_by=current_user.display_name,
        adjustment_date=payload.date,
        notes=payload.notes,
    )
    if payload.submit:
        adjustment = ledger.create(draft, actor_id=current_user.id)
    else:
        adjustment = ledger.save_draft(draft, actor_id=current_user.id)
    return _record(adjustment)


@router.get("", response_model=list[StockAdjustmentRecord])
def list_adjustments(
    search: str | None = None,
    adjustment_type: AdjustmentType | None = None,
    status_filter: AdjustmentStatus | None = Query(default=None, alias="status"),
    reason: str | None = None,
    sku: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(require_permission("adjustments:view")),
    ledger: AdjustmentLedger = Depends(get_ledger),
):
    adjustments = ledger.list(
        search=search,
        adjustment_type=adjustment_type,
        status=status_filter,
        reason=reason,
        sku=sku,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return [_record(adjustment) for adjustment in adjustments]


@router.get("/summary", response_model=AdjustmentReportOut)
def adjustment_summary(
    date_from: date | None = None,
    date_to: date | None = None,
    granularity: Granularity = "month",
    current_user: User = Depends(require_permission("adjustments:view")),
    ledger: AdjustmentLedger = Depends(get_ledger),
):
    adjustments = ledger.list(date_from=date_from, date_to=date_to)
    summary = reporting.summarize(adjustments)
    approved = {AdjustmentStatus.APPROVED}
    return AdjustmentReportOut(
        summary=AdjustmentSummaryOut.model_validate(summary),
        by_type={
            adjustment_type.value: TotalsOut.model_validate(totals)
            for adjustment_type, totals in reporting.totals_by_type(adjustments, approved).items()
        },
        by_status={
            adjustment_status.value: TotalsOut.model_validate(totals)
            for adjustment_status, totals in reporting.totals_by_status(adjustments).items()
        },
        by_period=[
            PeriodTotalsOut(
                period_start=start,
                label=label,
                count=totals.count,
                quantity=totals.quantity,
                value=totals.value,
            )
            for start, label, totals in reporting.totals_by_period(adjustments, granularity, approved)
        ],
        reasons=reporting.distinct_reasons(adjustments),
    )


@router.get("/export/csv")
def export_adjustments_csv(
    search: str | None = None,
    adjustment_type: AdjustmentType | None = None,
    status_filter: AdjustmentStatus | None = Query(default=None, alias="status"),
    reason: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    current_user: User = Depends(require_permission("adjustments:view")),
    ledger: AdjustmentLedger = Depends(get_ledger),
):
    adjustments = reporting.filter_adjustments(
        ledger.list(),
        search=search,
        adjustment_type=adjustment_type,
        status=status_filter,
        reason=reason,
        date_from=date_from,
        date_to=date_to,
    )
    return Response(
        content=adjustments_to_csv(adjustments),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="stock-adjustments-{date.today():%Y%m%d}.csv"'},
    )


@router.get("/by-number/{adjustment_no}", response_model=StockAdjustmentRecord)
def get_adjustment_by_number(
    adjustment_no: str,
    current_user: User = Depends(require_permission("adjustments:view")),
    ledger: AdjustmentLedger = Depends(get_ledger),
):
    return _record(ledger.get_by_number(adjustment_no))


@router.get("/{adjustment_id}", response_model=StockAdjustmentRecord)
def get_adjustment(
    adjustment_id: str,
    current_user: User = Depends(require_permission("adjustments:view")),
    ledger: AdjustmentLedger = Depends(get_ledger),
):
    return _record(ledger.get(adjustment_id))


@router.get("/{adjustment_id}/print", response_model=AdjustmentPrintOut)
def print_adjustment(
    adjustment_id: str,
    current_user: User = Depends(require_permission("adjustments:view")),
    ledger: AdjustmentLedger = Depends(get_ledger),
):
    return serialize_for_print(ledger.get(adjustment_id))


@router.get("/{adjustment_id}/movements", response_model=list[MovementOut])
def list_movements(
    adjustment_id: str,
    current_user: User = Depends(require_permission("adjustments:view")),
    ledger: AdjustmentLedger = Depends(get_ledger),
):
    return [MovementOut.model_validate(movement) for movement in ledger.movements(adjustment_id)]


@router.post("/{adjustment_id}/submit", response_model=StockAdjustmentRecord)
def submit_adjustment(
    adjustment_id: str,
    current_user: User = Depends(require_permission("adjustments:create")),
    ledger: AdjustmentLedger = Depends(get_ledger),
):
    return _record(ledger.submit(adjustment_id, current_user.display_name, actor_id=current_user.id))


@router.post("/{adjustment_id}/approve", response_model=StockAdjustmentRecord)
def approve_adjustment(
    adjustment_id: str,
    current_user: User = Depends(require_permission("adjustments:approve")),
    ledger: AdjustmentLedger = Depends(get_ledger),
):
    return _record(ledger.approve(adjustment_id, current_user.display_name, actor_id=current_user.id))


@router.post("/{adjustment_id}/reject", response_model=StockAdjustmentRecord)
def reject_adjustment(
    adjustment_id: str,
    payload: RejectRequest | None = None,
    current_user: User = Depends(require_permission("adjustments:approve")),
    ledger: AdjustmentLedger = Depends(get_ledger),
):
    reason = payload.reason if payload else None
    return _record(ledger.reject(adjustment_id, current_user.display_name, reason, actor_id=current_user.id))


@router.post("/{adjustment_id}/reverse", response_model=StockAdjustmentRecord)
def reverse_adjustment(
    adjustment_id: str,
    current_user: User = Depends(require_permission("adjustments:approve")),
    ledger: AdjustmentLedger = Depends(get_ledger),
):
    return _record(ledger.reverse(adjustment_id, current_user.display_name, actor_id=current_user.id))


@router.delete("/{adjustment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_draft(
    adjustment_id: str,
    current_user: User = Depends(require_permission("adjustments:create")),
    ledger: AdjustmentLedger = Depends(get_ledger),
):
    ledger.delete_draft(adjustment_id, actor=current_user.display_name, actor_id=current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
