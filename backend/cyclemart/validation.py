from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Callable

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text

from .errors import ValidationError
from .money import MAX_AMOUNT, ZERO, quantize_money, to_decimal
from .models.inventory import INVENTORY_TYPES
from .models.invoices import INVOICE_TYPES, PAYMENT_METHODS, PAYMENT_STATUSES
from .models.work_orders import WORK_ORDER_PRIORITIES, WORK_ORDER_STATUSES
from .time_utils import parse_iso_datetime


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    What a client may send for one model:
    - writable_fields: columns the client may set
    - required_on_create: must be present and non-empty on create
    - extra_fields: non-column keys passed through for the service to handle
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    extra_fields: set[str] = field(default_factory=set)


def _field_error(key: str, message: str) -> ValidationError:
    return ValidationError(f"{key} {message}", errors=[{"field": key, "message": message}])


def _as_int(col, value: Any) -> int:
    if isinstance(value, bool) or isinstance(value, float):
        raise _field_error(col.key, "must be a whole number")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        # "1e3" and "2.0" parse elsewhere but are not whole-number input
        if text and text.lstrip("+-").isdigit():
            return int(text)
    raise _field_error(col.key, "must be a whole number")


def _as_decimal(col, value: Any) -> Decimal:
    try:
        amount = to_decimal(value, field=col.key)
    except ValueError as exc:
        raise ValidationError(str(exc), errors=[{"field": col.key, "message": "must be a number"}])
    scale = col.type.scale
    if scale is None:
        return amount
    try:
        return amount.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise _field_error(col.key, "is out of range")


def _as_bool(col, value: Any) -> bool:
    return value if isinstance(value, bool) else bool(value)


def _as_datetime(col, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    parsed = None
    if isinstance(value, str):
        try:
            parsed = parse_iso_datetime(value)
        except ValueError:
            parsed = None
    if parsed is None:
        raise _field_error(col.key, "must be an ISO-8601 date or datetime")
    return parsed


def _as_text(col, value: Any) -> str:
    text = str(value).strip()
    if not text and not col.nullable:
        raise _field_error(col.key, "cannot be blank")
    limit = getattr(col.type, "length", None)
    if limit and len(text) > limit:
        raise _field_error(col.key, f"is longer than {limit} characters")
    return text


# Checked in order; Text is a String subclass so it shares _as_text
_COERCERS: tuple[tuple[type, Callable[[Any, Any], Any]], ...] = (
    (Boolean, _as_bool),
    (Integer, _as_int),
    (Numeric, _as_decimal),
    (DateTime, _as_datetime),
    (String, _as_text),
    (Text, _as_text),
)


def _coerce(col, value: Any) -> Any:
    if value is None:
        if not col.nullable:
            raise _field_error(col.key, "cannot be null")
        return None
    for column_type, coercer in _COERCERS:
        if isinstance(col.type, column_type):
            return coercer(col, value)
    return value


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Clean a JSON body into a patch dict for ``model``.

    Column metadata drives coercion (type, nullability, String length); the
    policy decides which keys are accepted at all. With partial=False the
    required_on_create fields must be present. Extra fields are returned
    as sent.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                errors=[{"field": f, "message": "required"} for f in missing],
            )

    columns = {c.key: c for c in model.__mapper__.columns}
    rejected = [
        k for k in payload
        if k not in policy.extra_fields and (k not in policy.writable_fields or k not in columns)
    ]
    if rejected:
        raise ValidationError(
            f"Field not allowed: {', '.join(rejected)}",
            errors=[{"field": k, "message": "not allowed"} for k in rejected],
        )

    return {
        k: raw if k in policy.extra_fields else _coerce(columns[k], raw)
        for k, raw in payload.items()
    }


def _check_money(patch: dict, key: str, *, allow_zero: bool = True) -> None:
    if key not in patch or patch[key] is None:
        return
    value = patch[key]
    if value < ZERO or (not allow_zero and value == ZERO):
        raise ValidationError(f"{key} must be {'>=' if allow_zero else '>'} 0")
    if value > MAX_AMOUNT:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}")


def _check_choice(patch: dict, key: str, choices) -> None:
    if key in patch and patch[key] is not None and patch[key] not in choices:
        raise ValidationError(f"{key} must be one of {', '.join(choices)}")


def _check_non_negative_int(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None and patch[key] < 0:
        raise ValidationError(f"{key} must be >= 0")


def enforce_rules_inventory_item(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_money(patch, "cost")
    _check_money(patch, "price")
    _check_non_negative_int(patch, "quantity")
    _check_non_negative_int(patch, "minimum_stock")
    _check_non_negative_int(patch, "warranty_period_years")
    _check_choice(patch, "type", INVENTORY_TYPES)
    if "sku" in patch and patch["sku"]:
        patch["sku"] = patch["sku"].upper()


def enforce_rules_work_order(patch: dict) -> None:
    _check_choice(patch, "status", WORK_ORDER_STATUSES)
    _check_choice(patch, "priority", WORK_ORDER_PRIORITIES)
    _check_money(patch, "estimated_cost")
    _check_money(patch, "actual_cost")
    if "labor_hours" in patch and patch["labor_hours"] is not None and patch["labor_hours"] < 0:
        raise ValidationError("labor_hours must be >= 0")


def enforce_rules_invoice(patch: dict) -> None:
    _check_choice(patch, "type", INVOICE_TYPES)
    _check_choice(patch, "payment_status", PAYMENT_STATUSES)
    _check_money(patch, "subtotal")
    if "tax_rate" in patch and patch["tax_rate"] is not None:
        if not (ZERO <= patch["tax_rate"] <= 1):
            raise ValidationError("tax_rate must be a fraction between 0 and 1")


def enforce_rules_payment(patch: dict) -> None:
    if "amount" not in patch or patch["amount"] is None:
        raise ValidationError("amount is required")
    patch["amount"] = quantize_money(patch["amount"])
    _check_money(patch, "amount", allow_zero=False)
    if not patch.get("payment_method"):
        raise ValidationError("payment_method is required")
    _check_choice(patch, "payment_method", PAYMENT_METHODS)
