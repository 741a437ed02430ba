from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from stockledger.core.exceptions import ValidationError
from stockledger.models.adjustment import AdjustmentType

CENT = Decimal("0.01")

ADJUSTMENT_REASONS: dict[AdjustmentType, tuple[str, ...]] = {
    AdjustmentType.INCREASE: (
        "Stock Count - Found Extra",
        "Supplier Bonus",
        "Return from Customer",
        "Manufacturing Yield",
        "Transfer In",
        "Correction - System Error",
        "Other - Increase",
    ),
    AdjustmentType.DECREASE: (
        "Stock Count - Missing",
        "Damaged Goods",
        "Expired Products",
        "Theft/Loss",
        "Samples Given",
        "Staff Use",
        "Transfer Out",
        "Correction - System Error",
        "Other - Decrease",
    ),
}


def coerce_adjustment_type(value: AdjustmentType | str) -> AdjustmentType:
    if isinstance(value, AdjustmentType):
        return value
    try:
        return AdjustmentType(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(f"Unknown adjustment type: {value!r}") from exc


def reasons_for(adjustment_type: AdjustmentType | str) -> tuple[str, ...]:
    return ADJUSTMENT_REASONS[coerce_adjustment_type(adjustment_type)]


def validate_reason(adjustment_type: AdjustmentType | str, reason: str | None) -> str:
    adjustment_type = coerce_adjustment_type(adjustment_type)
    if reason is None or not reason.strip():
        raise ValidationError("Adjustment reason is required")
    cleaned = reason.strip()
    if cleaned not in ADJUSTMENT_REASONS[adjustment_type]:
        raise ValidationError(
            f"Reason {cleaned!r} is not valid for a {adjustment_type.value} adjustment",
            reason=cleaned,
            adjustment_type=adjustment_type.value,
        )
    return cleaned


def validate_magnitude(value) -> int:
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Adjustment quantity must be an integer", quantity=value)
    if value <= 0:
        raise ValidationError("Adjustment quantity must be greater than zero", quantity=value)
    return value


def to_money(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid monetary amount: {value!r}") from exc
    if amount < 0:
        raise ValidationError("Monetary amounts cannot be negative", amount=str(amount))
    return amount


def line_total(quantity: int, unit_cost) -> Decimal:
    """Round once per line; totals are sums of already-rounded line values."""
    return (Decimal(quantity) * to_money(unit_cost)).quantize(CENT, rounding=ROUND_HALF_UP)


def clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None
