# Overview: Idempotent course access grants (Purchase rows).

"""
Entitlement Service

grant() reads the user's existing access for the requested courses and
inserts only the difference. The read is an optimization: two concurrent
grants can both see "not owned", so the unique constraint on
(user_id, course_id) decides, and losing that race counts as success.

grant() runs inside the caller's transaction (checkout or approval). Use
grant_entitlements() for a standalone unit of work.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Purchase
from .persistence import PersistenceGateway, SqlAlchemyGateway


class EntitlementGranter:
    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    def grant(self, user_id: int, item_ids, order_id: int | None = None) -> list[int]:
        """Ensure access exists for every item. Returns the ids newly granted."""
        requested = list(dict.fromkeys(item_ids))
        if not requested:
            return []

        with self.gateway.transaction():
            owned = self.gateway.owned_course_ids(user_id, requested)
            granted = []
            for course_id in requested:
                if course_id in owned:
                    continue
                if self.gateway.insert_entitlement(user_id, course_id, order_id=order_id):
                    granted.append(course_id)
        return granted


def grant_entitlements(user_id: int, item_ids, order_id: int | None = None) -> list[int]:
    return EntitlementGranter(SqlAlchemyGateway()).grant(user_id, item_ids, order_id=order_id)


def list_owned_course_ids(user_id: int) -> list[int]:
    rows = (
        db.session.query(Purchase.course_id)
        .filter_by(user_id=user_id)
        .order_by(Purchase.created_at.desc(), Purchase.id.desc())
        .all()
    )
    return [row.course_id for row in rows]
