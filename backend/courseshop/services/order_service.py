# Overview: Checkout; turns a cart into a persisted order and, for free orders, into access.

"""
Order Service

OrderFactory.create_order() runs as one transaction:

1. resolve every requested course (exact count, else NotFoundError)
2. drop courses the buyer already owns (nothing left -> ValidationError)
3. subtotal from current catalog prices
4. evaluate the coupon; a coupon that does not apply is ignored
5. consume one coupon use with a conditional increment; losing the race
   for the last use means full price, not an error
6. persist the order header and one line per course, prices snapshotted
7. a zero total completes the order and grants access immediately

Coupon uses are spent at order creation and are not given back if the
order is later cancelled.
"""

from __future__ import annotations

from ..errors import ConflictError, NotFoundError, Unauthorized, ValidationError
from ..extensions import db
from ..models import Order, OrderEvent, OrderLine
from ..models.orders import (
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_PENDING_REVIEW,
    VALID_ORDER_STATUSES,
)
from courseshop.time_utils import utcnow
from .coupon_service import CouponDiscount, CouponEvaluator, normalize_code
from .entitlement_service import EntitlementGranter
from .order_states import initial_status_for_total, validate_transition
from .persistence import PersistenceGateway, SqlAlchemyGateway


class OrderFactory:
    def __init__(
        self,
        gateway: PersistenceGateway,
        evaluator: CouponEvaluator | None = None,
        granter: EntitlementGranter | None = None,
    ):
        self.gateway = gateway
        self.evaluator = evaluator or CouponEvaluator()
        self.granter = granter or EntitlementGranter(gateway)

    def create_order(self, user_id: int | None, item_ids, coupon_code: str | None = None) -> Order:
        if not user_id:
            raise Unauthorized("Authentication required")

        requested = list(dict.fromkeys(item_ids or []))
        if not requested:
            raise ValidationError("At least one item is required")

        with self.gateway.transaction():
            courses = self.gateway.find_courses(requested)
            if len(courses) != len(requested):
                found = {course.id for course in courses}
                raise NotFoundError(
                    "One or more items not found",
                    details={"missing_item_ids": [i for i in requested if i not in found]},
                )

            owned = self.gateway.owned_course_ids(user_id, requested)
            by_id = {course.id: course for course in courses}
            to_buy = [by_id[i] for i in requested if i not in owned]
            if not to_buy:
                raise ValidationError(
                    "All selected items are already owned",
                    details={"owned_item_ids": sorted(owned)},
                )

            subtotal_cents = sum(course.effective_price_cents for course in to_buy)
            applied = self._apply_coupon(coupon_code, subtotal_cents)
            discount_cents = applied.discount_cents if applied else 0
            total_cents = max(0, subtotal_cents - discount_cents)

            status = initial_status_for_total(total_cents)
            now = utcnow()

            order = Order(
                user_id=user_id,
                subtotal_cents=subtotal_cents,
                discount_cents=subtotal_cents - total_cents,
                total_cents=total_cents,
                status=status,
                coupon_id=applied.coupon_id if applied else None,
                created_at=now,
                updated_at=now,
                completed_at=now if status == ORDER_STATUS_COMPLETED else None,
            )
            for course in to_buy:
                order.lines.append(OrderLine(course_id=course.id, unit_price_cents=course.effective_price_cents))

            self.gateway.add_order(order)
            self.gateway.add_order_event(OrderEvent(
                order_id=order.id,
                event_type="order.created",
                to_status=status,
                actor_user_id=user_id,
                occurred_at=now,
            ))

            if status == ORDER_STATUS_COMPLETED:
                self.granter.grant(user_id, [course.id for course in to_buy], order_id=order.id)

        return order

    def _apply_coupon(self, coupon_code: str | None, subtotal_cents: int) -> CouponDiscount | None:
        code = normalize_code(coupon_code)
        if not code:
            return None

        coupon = self.gateway.find_coupon_by_code(code)
        applied = self.evaluator.evaluate(coupon, subtotal_cents)
        if applied is None:
            return None

        if not self.gateway.consume_coupon_use(coupon):
            return None
        return applied


def submit_payment_evidence(
    order_id: int,
    user_id: int,
    payment_evidence_url: str,
    gateway: PersistenceGateway | None = None,
) -> Order:
    """
    Attach payment evidence and move PENDING -> PENDING_REVIEW.

    Only the owner may submit. Re-submitting while still in review replaces
    the URL without another transition.
    """
    gateway = gateway or SqlAlchemyGateway()

    with gateway.transaction():
        order = gateway.get_order(order_id, lock=True)
        if not order or order.user_id != user_id:
            raise NotFoundError("Order not found")

        current = order.status
        now = utcnow()
        if current != ORDER_STATUS_PENDING_REVIEW:
            validate_transition(current, ORDER_STATUS_PENDING_REVIEW)

        if not gateway.update_order_status(
            order,
            current,
            ORDER_STATUS_PENDING_REVIEW,
            payment_evidence_url=payment_evidence_url,
            updated_at=now,
        ):
            raise ConflictError("Order status changed while submitting payment evidence")

        gateway.add_order_event(OrderEvent(
            order_id=order_id,
            event_type="order.payment_submitted",
            from_status=current,
            to_status=ORDER_STATUS_PENDING_REVIEW,
            actor_user_id=user_id,
            occurred_at=now,
        ))

    return order


def create_order(user_id: int | None, item_ids, coupon_code: str | None = None) -> Order:
    return OrderFactory(SqlAlchemyGateway()).create_order(user_id, item_ids, coupon_code)


def get_order_for_user(order_id: int, user_id: int) -> Order:
    order = db.session.query(Order).filter_by(id=order_id, user_id=user_id).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def list_orders_for_user(user_id: int) -> list[Order]:
    return (
        db.session.query(Order)
        .filter_by(user_id=user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def list_orders(status: str | None = None) -> list[Order]:
    q = db.session.query(Order)
    if status:
        if status not in VALID_ORDER_STATUSES:
            raise ValidationError(
                f"Unknown order status {status}",
                details={"valid_statuses": list(VALID_ORDER_STATUSES)},
            )
        q = q.filter_by(status=status)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).all()
