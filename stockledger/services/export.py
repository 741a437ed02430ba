import csv
import io
from collections.abc import Iterable

from stockledger.core.config import settings
from stockledger.models.adjustment import StockAdjustment

CSV_HEADERS = [
    "Adjustment No",
    "Date",
    "Type",
    "Reason",
    "Items",
    "Total Qty",
    "Total Value",
    "Status",
    "Created By",
]

SIGNATURE_CAPTIONS = ("Prepared By", "Approved By", "Received By")


def _money(value) -> str:
    return f"{value:.2f}"


def _signed(sign: int, quantity: int) -> str:
    return f"{'+' if sign > 0 else '-'}{quantity}"


def adjustments_to_csv(adjustments: Iterable[StockAdjustment]) -> str:
    sio = io.StringIO()
    writer = csv.writer(sio)
    writer.writerow(CSV_HEADERS)
    for adjustment in adjustments:
        writer.writerow(
            [
                adjustment.adjustment_no,
                adjustment.date.isoformat(),
                adjustment.adjustment_type.value,
                adjustment.reason,
                len(adjustment.items),
                adjustment.total_quantity,
                _money(adjustment.total_value),
                adjustment.status.value,
                adjustment.created_by,
            ]
        )
    return sio.getvalue()


def serialize_for_print(adjustment: StockAdjustment, currency: str | None = None) -> dict:
    """Structured view of one adjustment for a printable voucher.

    Quantities are shown with their sign (``+10`` / ``-10``); rendering the
    voucher is left to the caller.
    """
    sign = adjustment.sign
    return {
        "header": {
            "adjustment_no": adjustment.adjustment_no,
            "date": adjustment.date.isoformat(),
            "adjustment_type": adjustment.adjustment_type.value,
            "reason": adjustment.reason,
            "status": adjustment.status.value,
            "created_by": adjustment.created_by,
            "approved_by": adjustment.approved_by,
            "approved_date": adjustment.approved_date.isoformat() if adjustment.approved_date else None,
        },
        "lines": [
            {
                "position": item.position,
                "sku": item.sku,
                "name": item.name,
                "current_stock": item.current_stock,
                "adjustment": _signed(sign, item.adjustment_quantity),
                "new_stock": item.new_stock,
                "unit_cost": _money(item.unit_cost),
                "total_cost": _money(item.total_cost),
                "reason": item.item_reason,
            }
            for item in adjustment.items
        ],
        "totals": {
            "items": len(adjustment.items),
            "quantity": _signed(sign, adjustment.total_quantity),
            "value": _money(adjustment.total_value),
        },
        "notes": adjustment.notes,
        "signatures": list(SIGNATURE_CAPTIONS),
        "currency": currency or settings.currency,
    }
