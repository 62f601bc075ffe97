from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from courseshop.errors import ValidationError
from courseshop.time_utils import parse_iso_datetime


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

MAX_EVIDENCE_URL_LENGTH = 2048


def parse_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects bools, floats and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def parse_optional_int(value: Any, field: str, minimum: int | None = None) -> int | None:
    if value is None or value == "":
        return None
    number = parse_int(value, field)
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return number


def parse_id_list(value: Any, field: str) -> list[int]:
    """Parse a non-empty JSON array of positive integer ids."""
    if value is None:
        raise ValidationError(f"{field} required")
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list of ids")
    if not value:
        raise ValidationError(f"{field} must not be empty")

    ids = []
    for raw in value:
        number = parse_int(raw, field)
        if number <= 0:
            raise ValidationError(f"{field} must contain positive ids")
        ids.append(number)
    return ids


def parse_money_cents(value: Any, field: str) -> int:
    cents = parse_int(value, field)
    if cents < 0:
        raise ValidationError(f"{field} cannot be negative")
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} cents")
    return cents


def parse_percent(value: Any, field: str = "discount_percent") -> Decimal:
    """Percent in (0, 100], up to two decimal places."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        percent = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not percent.is_finite():
        raise ValidationError(f"{field} must be a number")
    if percent <= 0 or percent > 100:
        raise ValidationError(f"{field} must be greater than 0 and at most 100")
    if percent != percent.quantize(Decimal("0.01")):
        raise ValidationError(f"{field} allows at most two decimal places")
    return percent


def parse_optional_datetime(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def parse_evidence_url(value: Any) -> str:
    """The payment evidence URL is opaque; only its presence and size are checked."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("payment_evidence_url required")
    url = value.strip()
    if len(url) > MAX_EVIDENCE_URL_LENGTH:
        raise ValidationError(
            f"payment_evidence_url cannot exceed {MAX_EVIDENCE_URL_LENGTH} characters"
        )
    return url


def parse_coupon_payload(data: dict, *, partial: bool = False) -> dict:
    """
    Validate an admin coupon payload.

    Returns only the keys present in the payload (all of them on create).
    A discount is either a percentage or a fixed amount, never both.
    """
    fields: dict[str, Any] = {}

    if "code" in data or not partial:
        code = data.get("code")
        if not isinstance(code, str) or not code.strip():
            raise ValidationError("code required")
        fields["code"] = code.strip().upper()

    has_percent = data.get("discount_percent") not in (None, "")
    has_amount = data.get("discount_amount_cents") not in (None, "")
    if has_percent and has_amount:
        raise ValidationError("Provide either discount_percent or discount_amount_cents, not both")
    if not partial and not (has_percent or has_amount):
        raise ValidationError("discount_percent or discount_amount_cents required")

    if has_percent:
        fields["discount_percent"] = parse_percent(data["discount_percent"])
        fields["discount_amount_cents"] = None
    elif has_amount:
        amount = parse_money_cents(data["discount_amount_cents"], "discount_amount_cents")
        if amount == 0:
            raise ValidationError("discount_amount_cents must be greater than 0")
        fields["discount_amount_cents"] = amount
        fields["discount_percent"] = None

    if "max_uses" in data or not partial:
        fields["max_uses"] = parse_optional_int(data.get("max_uses"), "max_uses", minimum=1)

    if "expires_at" in data or not partial:
        fields["expires_at"] = parse_optional_datetime(data.get("expires_at"), "expires_at")

    if "is_active" in data:
        if not isinstance(data["is_active"], bool):
            raise ValidationError("is_active must be a boolean")
        fields["is_active"] = data["is_active"]
    elif not partial:
        fields["is_active"] = True

    return fields


MAX_NOTE_LENGTH = 255


def parse_optional_note(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("note must be a string")
    note = value.strip()
    if len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(f"note cannot exceed {MAX_NOTE_LENGTH} characters")
    return note or None
