from __future__ import annotations

from ..extensions import db
from courseshop.time_utils import to_utc_z


class Coupon(db.Model):
    """
    Discount code.

    Carries either a percentage or a fixed amount in cents. current_uses is
    only ever moved by the conditional increment in the persistence gateway,
    so it never exceeds max_uses when a cap is set.
    """
    __tablename__ = "coupons"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_coupons_code"),
        db.CheckConstraint("current_uses >= 0", name="ck_coupons_current_uses_non_negative"),
        db.CheckConstraint(
            "max_uses IS NULL OR current_uses <= max_uses",
            name="ck_coupons_uses_within_cap",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Always stored uppercase
    code = db.Column(db.String(64), nullable=False, index=True)

    discount_percent = db.Column(db.Numeric(5, 2), nullable=True)
    discount_amount_cents = db.Column(db.Integer, nullable=True)

    max_uses = db.Column(db.Integer, nullable=True)
    current_uses = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "discount_percent": str(self.discount_percent) if self.discount_percent is not None else None,
            "discount_amount_cents": self.discount_amount_cents,
            "max_uses": self.max_uses,
            "current_uses": self.current_uses,
            "is_active": self.is_active,
            "expires_at": to_utc_z(self.expires_at) if self.expires_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
