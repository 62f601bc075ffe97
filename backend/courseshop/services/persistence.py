# Overview: Storage seam for the order engine; SQLAlchemy implementation over the Flask-SQLAlchemy session.

"""
PersistenceGateway

The order engine components never touch ``db.session`` directly. Each one
receives a gateway in its constructor, which lets tests swap in an
in-memory implementation and keeps every storage guarantee in one place:

- transaction(): atomic unit of work, re-entrant; only the outermost block
  commits. Any SQLAlchemy error rolls back and surfaces as StorageFailure.
- consume_coupon_use(): single conditional UPDATE, verified by row count.
- insert_entitlement(): guarded by the (user_id, course_id) unique
  constraint; a duplicate is reported as "not inserted", never raised.
- update_order_status(): compare-and-set on the persisted status.
"""

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import StorageFailure
from ..extensions import db
from ..models import Coupon, Course, Order, OrderEvent, Purchase
from .concurrency import begin_immediate_if_sqlite, compare_and_set, lock_for_update


class PersistenceGateway:
    """Storage operations the order engine depends on."""

    @contextmanager
    def transaction(self):
        raise NotImplementedError

    def find_courses(self, course_ids: list[int]) -> list[Course]:
        raise NotImplementedError

    def owned_course_ids(self, user_id: int, course_ids: list[int]) -> set[int]:
        raise NotImplementedError

    def find_coupon_by_code(self, code: str) -> Coupon | None:
        raise NotImplementedError

    def consume_coupon_use(self, coupon: Coupon) -> bool:
        raise NotImplementedError

    def add_order(self, order: Order) -> Order:
        raise NotImplementedError

    def add_order_event(self, event: OrderEvent) -> None:
        raise NotImplementedError

    def get_order(self, order_id: int, lock: bool = False) -> Order | None:
        raise NotImplementedError

    def update_order_status(self, order: Order, expected_status: str, new_status: str, **values) -> bool:
        raise NotImplementedError

    def insert_entitlement(self, user_id: int, course_id: int, order_id: int | None = None) -> bool:
        raise NotImplementedError


class SqlAlchemyGateway(PersistenceGateway):
    def __init__(self, session=None):
        self.session = session if session is not None else db.session
        self._depth = 0

    @contextmanager
    def transaction(self):
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            begin_immediate_if_sqlite(self.session)
            yield self
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailure("Transaction could not be committed") from exc
        except Exception:
            self.session.rollback()
            raise
        finally:
            self._depth = 0

    def find_courses(self, course_ids: list[int]) -> list[Course]:
        if not course_ids:
            return []
        return self.session.query(Course).filter(Course.id.in_(course_ids)).all()

    def owned_course_ids(self, user_id: int, course_ids: list[int]) -> set[int]:
        if not course_ids:
            return set()
        rows = (
            self.session.query(Purchase.course_id)
            .filter(Purchase.user_id == user_id, Purchase.course_id.in_(course_ids))
            .all()
        )
        return {row.course_id for row in rows}

    def find_coupon_by_code(self, code: str) -> Coupon | None:
        return self.session.query(Coupon).filter_by(code=code).first()

    def consume_coupon_use(self, coupon: Coupon) -> bool:
        stmt = (
            update(Coupon)
            .where(
                Coupon.id == coupon.id,
                Coupon.is_active.is_(True),
                or_(Coupon.max_uses.is_(None), Coupon.current_uses < Coupon.max_uses),
            )
            .values(current_uses=Coupon.current_uses + 1)
            .execution_options(synchronize_session=False)
        )
        consumed = compare_and_set(self.session, stmt)
        # The in-session snapshot is stale either way
        self.session.expire(coupon)
        return consumed

    def add_order(self, order: Order) -> Order:
        self.session.add(order)
        self.session.flush()
        return order

    def add_order_event(self, event: OrderEvent) -> None:
        self.session.add(event)
        self.session.flush()

    def get_order(self, order_id: int, lock: bool = False) -> Order | None:
        query = self.session.query(Order).filter_by(id=order_id)
        if lock:
            query = lock_for_update(query)
        return query.first()

    def update_order_status(self, order: Order, expected_status: str, new_status: str, **values) -> bool:
        stmt = (
            update(Order)
            .where(Order.id == order.id, Order.status == expected_status)
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        updated = compare_and_set(self.session, stmt)
        self.session.expire(order)
        return updated

    def insert_entitlement(self, user_id: int, course_id: int, order_id: int | None = None) -> bool:
        nested = self.session.begin_nested()
        try:
            self.session.add(Purchase(user_id=user_id, course_id=course_id, order_id=order_id))
            self.session.flush()
        except IntegrityError:
            # Concurrent grant won the unique constraint; access exists either way
            nested.rollback()
            return False
        nested.commit()
        return True
