# Overview: Reviewer decisions on pending orders; completion grants course access.

"""
Approval Workflow

A reviewer moves a PENDING or PENDING_REVIEW order to COMPLETED or
CANCELLED. The transition is checked against the status persisted at the
time of the write, not a cached one: the row is locked where the database
supports it and the status write itself is a compare-and-set, so two
reviewers racing on one order cannot both win.

COMPLETED grants access for every line in the same transaction as the
status write. Re-sending the status an order already has in a terminal
state is a no-op (for COMPLETED the grant is re-run, which is idempotent).
CANCELLED leaves entitlements and the coupon counter untouched.
"""

from __future__ import annotations

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Order, OrderEvent
from ..models.orders import ORDER_STATUS_CANCELLED, ORDER_STATUS_COMPLETED
from courseshop.time_utils import utcnow
from .entitlement_service import EntitlementGranter
from .order_states import REVIEW_STATUSES, is_terminal, validate_transition
from .persistence import PersistenceGateway, SqlAlchemyGateway


class ApprovalWorkflow:
    def __init__(self, gateway: PersistenceGateway, granter: EntitlementGranter | None = None):
        self.gateway = gateway
        self.granter = granter or EntitlementGranter(gateway)

    def set_order_status(
        self,
        order_id: int,
        new_status: str,
        actor_user_id: int | None = None,
        note: str | None = None,
    ) -> Order:
        if not isinstance(new_status, str) or new_status not in REVIEW_STATUSES:
            raise ValidationError(
                f"Reviewers can only set {', '.join(sorted(REVIEW_STATUSES))}",
                details={"requested_status": new_status},
            )

        with self.gateway.transaction():
            order = self.gateway.get_order(order_id, lock=True)
            if not order:
                raise NotFoundError("Order not found")

            current = order.status
            if current == new_status and is_terminal(current):
                if current == ORDER_STATUS_COMPLETED:
                    self.granter.grant(order.user_id, order.item_ids, order_id=order.id)
                return order

            validate_transition(current, new_status)

            now = utcnow()
            values = {"updated_at": now}
            if new_status == ORDER_STATUS_COMPLETED:
                values["completed_at"] = now
            elif new_status == ORDER_STATUS_CANCELLED:
                values["cancelled_at"] = now

            user_id = order.user_id
            item_ids = order.item_ids
            if not self.gateway.update_order_status(order, current, new_status, **values):
                raise ConflictError(
                    "Order status changed concurrently; reload and retry",
                    details={"expected_status": current},
                )

            if new_status == ORDER_STATUS_COMPLETED:
                self.granter.grant(user_id, item_ids, order_id=order_id)

            self.gateway.add_order_event(OrderEvent(
                order_id=order_id,
                event_type="order.status_changed",
                from_status=current,
                to_status=new_status,
                actor_user_id=actor_user_id,
                note=note,
                occurred_at=now,
            ))

        return order


def set_order_status(
    order_id: int,
    new_status: str,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> Order:
    return ApprovalWorkflow(SqlAlchemyGateway()).set_order_status(order_id, new_status, actor_user_id, note=note)
