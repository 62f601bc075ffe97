from __future__ import annotations

from ..extensions import db
from courseshop.time_utils import to_utc_z


class Purchase(db.Model):
    """
    Entitlement: grants one user access to one course, permanently.

    The (user_id, course_id) unique constraint is the real guarantee against
    duplicate access; application-level pre-checks are only an optimization.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("user_id", "course_id", name="uq_purchases_user_course"),
        db.Index("ix_purchases_course_id", "course_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False)

    # Order that granted access (NULL for grants made outside checkout)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    course = db.relationship("Course")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "order_id": self.order_id,
            "created_at": to_utc_z(self.created_at),
        }
