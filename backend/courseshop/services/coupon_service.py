# Overview: Coupon evaluation (pure) plus coupon administration and checkout preview.

"""
Coupon Service

CouponEvaluator is side-effect free: it looks at a coupon snapshot and a
subtotal and says how much would come off, or that the coupon does not
apply. It never raises for a bad coupon; checkout silently ignores coupons
that fail validation.

The usage counter is not touched here. Consuming a use is the order
factory's job, through the gateway's conditional increment.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Coupon, Order
from courseshop.time_utils import as_utc_naive, utcnow


COUPON_NOT_FOUND = "not_found"
COUPON_INACTIVE = "inactive"
COUPON_EXPIRED = "expired"
COUPON_EXHAUSTED = "exhausted"

REJECTION_MESSAGES = {
    COUPON_NOT_FOUND: "Invalid coupon code",
    COUPON_INACTIVE: "This coupon is inactive",
    COUPON_EXPIRED: "This coupon has expired",
    COUPON_EXHAUSTED: "This coupon has reached its usage limit",
}


@dataclass(frozen=True)
class CouponDiscount:
    coupon_id: int
    discount_cents: int


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


class CouponEvaluator:
    def __init__(self, clock=utcnow):
        self.clock = clock

    def rejection_reason(self, coupon: Coupon | None, now: datetime | None = None) -> str | None:
        """First failed check, in order: exists, active, not expired, under cap."""
        if coupon is None:
            return COUPON_NOT_FOUND
        if not coupon.is_active:
            return COUPON_INACTIVE

        now = now or self.clock()
        expires_at = as_utc_naive(coupon.expires_at)
        if expires_at is not None and expires_at <= now:
            return COUPON_EXPIRED

        if coupon.max_uses is not None and (coupon.current_uses or 0) >= coupon.max_uses:
            return COUPON_EXHAUSTED
        return None

    @staticmethod
    def discount_for(coupon: Coupon, subtotal_cents: int) -> int:
        """Raw discount in cents; callers clamp the resulting total at zero."""
        if coupon.discount_percent is not None:
            percent = Decimal(str(coupon.discount_percent))
            raw = Decimal(subtotal_cents) * percent / Decimal(100)
            return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        if coupon.discount_amount_cents is not None:
            return coupon.discount_amount_cents
        return 0

    def evaluate(self, coupon: Coupon | None, subtotal_cents: int, now: datetime | None = None) -> CouponDiscount | None:
        if self.rejection_reason(coupon, now) is not None:
            return None
        return CouponDiscount(coupon_id=coupon.id, discount_cents=self.discount_for(coupon, subtotal_cents))


# =============================================================================
# CHECKOUT PREVIEW
# =============================================================================

def find_coupon(code: str | None) -> Coupon | None:
    normalized = normalize_code(code)
    if not normalized:
        return None
    return db.session.query(Coupon).filter_by(code=normalized).first()


def verify_coupon(code: str | None, cart_total_cents: int) -> dict:
    """
    Preview a coupon against a cart total without consuming it.

    Unlike checkout, the caller gets the rejection reason back.
    """
    if code is not None and not isinstance(code, str):
        raise ValidationError("code must be a string")
    if not normalize_code(code):
        raise ValidationError("Coupon code required")
    if cart_total_cents < 0:
        raise ValidationError("cart_total_cents cannot be negative")

    coupon = find_coupon(code)
    evaluator = CouponEvaluator()
    reason = evaluator.rejection_reason(coupon)
    if reason is not None:
        return {
            "is_valid": False,
            "reason": reason,
            "message": REJECTION_MESSAGES[reason],
        }

    discount_cents = min(evaluator.discount_for(coupon, cart_total_cents), cart_total_cents)
    return {
        "is_valid": True,
        "coupon": coupon.to_dict(),
        "discount_cents": discount_cents,
        "new_total_cents": cart_total_cents - discount_cents,
    }


# =============================================================================
# ADMINISTRATION
# =============================================================================

def list_coupons(active_only: bool = False) -> list[dict]:
    q = db.session.query(Coupon)
    if active_only:
        q = q.filter_by(is_active=True)
    return [c.to_dict() for c in q.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()]


def _ensure_code_available(code: str, coupon_id: int | None = None) -> None:
    q = db.session.query(Coupon).filter_by(code=code)
    if coupon_id is not None:
        q = q.filter(Coupon.id != coupon_id)
    if q.first():
        raise ConflictError(f"Coupon code {code} already exists")


def create_coupon(fields: dict) -> Coupon:
    """Create a coupon from fields already validated by parse_coupon_payload."""
    _ensure_code_available(fields["code"])
    coupon = Coupon(current_uses=0, **fields)
    db.session.add(coupon)
    db.session.commit()
    return coupon


def update_coupon(coupon_id: int, fields: dict) -> Coupon:
    coupon = db.session.query(Coupon).filter_by(id=coupon_id).first()
    if not coupon:
        raise NotFoundError("Coupon not found")

    if "code" in fields:
        _ensure_code_available(fields["code"], coupon_id=coupon.id)

    max_uses = fields.get("max_uses", coupon.max_uses)
    if max_uses is not None and max_uses < coupon.current_uses:
        raise ValidationError(
            "max_uses cannot be lower than current_uses",
            details={"current_uses": coupon.current_uses},
        )

    for key, value in fields.items():
        setattr(coupon, key, value)

    if coupon.discount_percent is None and coupon.discount_amount_cents is None:
        db.session.rollback()
        raise ValidationError("discount_percent or discount_amount_cents required")

    db.session.commit()
    return coupon


def delete_coupon(coupon_id: int) -> None:
    """Delete an unused coupon. Coupons referenced by orders can only be deactivated."""
    coupon = db.session.query(Coupon).filter_by(id=coupon_id).first()
    if not coupon:
        raise NotFoundError("Coupon not found")

    in_use = db.session.query(Order.id).filter_by(coupon_id=coupon.id).first()
    if in_use:
        raise ConflictError("Coupon is referenced by orders; deactivate it instead")

    db.session.delete(coupon)
    db.session.commit()
