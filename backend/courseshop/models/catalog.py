from __future__ import annotations

from ..extensions import db
from courseshop.time_utils import to_utc_z


class Course(db.Model):
    """
    Catalog item that can be bought.

    Owned by catalog management; the order engine only reads the price and
    never writes here. A NULL price means the course is free.
    """
    __tablename__ = "courses"
    __table_args__ = (
        db.CheckConstraint("price_cents IS NULL OR price_cents >= 0", name="ck_courses_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)

    price_cents = db.Column(db.Integer, nullable=True)
    is_published = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    @property
    def effective_price_cents(self) -> int:
        return self.price_cents or 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "price_cents": self.price_cents,
            "is_published": self.is_published,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
