"""
Checkout tests.

Verifies:
- Zero-total orders complete and grant access immediately (scenario A)
- Percent coupons reduce the total and spend one use (scenario B)
- Exhausted coupons are ignored, not rejected (scenario C)
- Carts of already-owned items are refused without writing (scenario E)
- Missing items, partial ownership, price snapshots, clamping at zero
- A failure part-way through checkout leaves no trace
"""

from decimal import Decimal

import pytest

from courseshop.errors import NotFoundError, StorageFailure, Unauthorized, ValidationError
from courseshop.models import Coupon, Course, Order, OrderEvent, Purchase
from courseshop.models.orders import (
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PENDING_REVIEW,
)
from courseshop.services import order_service
from courseshop.services.entitlement_service import grant_entitlements
from courseshop.services.order_service import OrderFactory
from courseshop.services.persistence import SqlAlchemyGateway


# =============================================================================
# COMPONENT (in-memory gateway)
# =============================================================================


@pytest.fixture
def shop(gateway):
    gateway.add_course(Course(id=1, title="Free intro", price_cents=None))
    gateway.add_course(Course(id=2, title="SQL", price_cents=1000))
    gateway.add_course(Course(id=3, title="Python", price_cents=2500))
    return gateway


class TestOrderFactoryComponent:

    def test_free_cart_completes_immediately(self, shop):
        order = OrderFactory(shop).create_order(42, [1])
        assert order.status == ORDER_STATUS_COMPLETED
        assert order.total_cents == 0
        assert order.completed_at is not None
        assert shop.owned_by(42) == [1]

    def test_percent_coupon_spends_one_use(self, shop):
        shop.add_coupon(Coupon(id=5, code="SAVE10", discount_percent=Decimal("10"), max_uses=10))
        order = OrderFactory(shop).create_order(42, [2], "save10")
        assert order.total_cents == 900
        assert order.discount_cents == 100
        assert order.status == ORDER_STATUS_PENDING
        assert order.coupon_id == 5
        assert shop.coupons["SAVE10"].current_uses == 1
        assert shop.owned_by(42) == []

    def test_exhausted_coupon_ignored(self, shop):
        shop.add_coupon(Coupon(id=5, code="ONCE", discount_amount_cents=500, max_uses=1, current_uses=1))
        order = OrderFactory(shop).create_order(42, [2], "ONCE")
        assert order.total_cents == 1000
        assert order.coupon_id is None
        assert shop.coupons["ONCE"].current_uses == 1

    def test_unknown_coupon_ignored(self, shop):
        order = OrderFactory(shop).create_order(42, [2], "NOPE")
        assert order.total_cents == 1000
        assert order.coupon_id is None

    def test_lost_race_for_last_use_means_full_price(self, shop):
        c = shop.add_coupon(Coupon(id=5, code="LAST", discount_amount_cents=500, max_uses=1))
        # Evaluation sees a free slot, but the conditional increment finds none
        original = shop.consume_coupon_use
        shop.consume_coupon_use = lambda coupon: False
        order = OrderFactory(shop).create_order(42, [2], "LAST")
        shop.consume_coupon_use = original
        assert order.total_cents == 1000
        assert order.coupon_id is None
        assert c.current_uses == 0

    def test_fixed_coupon_larger_than_subtotal_clamps_to_zero(self, shop):
        shop.add_coupon(Coupon(id=5, code="BIG", discount_amount_cents=5000))
        order = OrderFactory(shop).create_order(42, [2], "BIG")
        assert order.total_cents == 0
        assert order.discount_cents == 1000
        assert order.status == ORDER_STATUS_COMPLETED
        assert shop.owned_by(42) == [2]

    def test_owned_only_cart_rejected_without_write(self, shop):
        shop.purchases[(42, 2)] = None
        with pytest.raises(ValidationError) as exc:
            OrderFactory(shop).create_order(42, [2])
        assert exc.value.details["owned_item_ids"] == [2]
        assert shop.orders == {}

    def test_owned_items_filtered_from_mixed_cart(self, shop):
        shop.purchases[(42, 2)] = None
        order = OrderFactory(shop).create_order(42, [2, 3])
        assert order.item_ids == [3]
        assert order.subtotal_cents == 2500

    def test_missing_item(self, shop):
        with pytest.raises(NotFoundError) as exc:
            OrderFactory(shop).create_order(42, [2, 99])
        assert exc.value.details["missing_item_ids"] == [99]
        assert shop.orders == {}

    def test_duplicate_ids_collapse(self, shop):
        order = OrderFactory(shop).create_order(42, [2, 2, 3])
        assert order.item_ids == [2, 3]
        assert order.subtotal_cents == 3500

    def test_empty_cart(self, shop):
        with pytest.raises(ValidationError):
            OrderFactory(shop).create_order(42, [])

    def test_anonymous_caller(self, shop):
        with pytest.raises(Unauthorized):
            OrderFactory(shop).create_order(None, [2])

    def test_creation_event_recorded(self, shop):
        order = OrderFactory(shop).create_order(42, [2])
        assert [(e.event_type, e.order_id, e.to_status) for e in shop.events] == [
            ("order.created", order.id, ORDER_STATUS_PENDING)
        ]

    def test_failure_rolls_back_order_and_coupon_use(self, shop):
        shop.add_coupon(Coupon(id=5, code="FREE", discount_percent=Decimal("100"), max_uses=1))
        shop.fail_insert_for.add(2)
        with pytest.raises(StorageFailure):
            OrderFactory(shop).create_order(42, [2], "FREE")
        assert shop.orders == {}
        assert shop.events == []
        assert shop.coupons["FREE"].current_uses == 0
        assert shop.owned_by(42) == []


# =============================================================================
# DATABASE
# =============================================================================


class TestCreateOrderDatabase:

    def test_scenario_a_free_item(self, db_session, buyer, make_course):
        free = make_course("Free", price_cents=0)
        order = order_service.create_order(buyer.id, [free.id])
        assert order.status == ORDER_STATUS_COMPLETED
        assert order.total_cents == 0
        assert db_session.query(Purchase).filter_by(user_id=buyer.id, course_id=free.id).count() == 1

    def test_scenario_b_percent_coupon(self, db_session, buyer, make_course, make_coupon):
        course = make_course("Paid", price_cents=1000)
        coupon = make_coupon("TEN", percent=10)
        order = order_service.create_order(buyer.id, [course.id], "TEN")
        assert order.total_cents == 900
        assert order.status == ORDER_STATUS_PENDING
        db_session.refresh(coupon)
        assert coupon.current_uses == 1

    def test_scenario_c_exhausted_coupon(self, db_session, buyer, make_course, make_coupon):
        course = make_course("Paid", price_cents=1000)
        coupon = make_coupon("ONCE", percent=50, max_uses=1, current_uses=1)
        order = order_service.create_order(buyer.id, [course.id], "ONCE")
        assert order.total_cents == 1000
        assert order.coupon_id is None
        db_session.refresh(coupon)
        assert coupon.current_uses == 1

    def test_last_use_consumed_exactly_once(self, db_session, buyer, other_buyer, make_course, make_coupon):
        course = make_course("Paid", price_cents=1000)
        coupon = make_coupon("LAST", amount_cents=200, max_uses=1)
        first = order_service.create_order(buyer.id, [course.id], "LAST")
        second = order_service.create_order(other_buyer.id, [course.id], "LAST")
        assert first.total_cents == 800
        assert second.total_cents == 1000
        db_session.refresh(coupon)
        assert coupon.current_uses == 1

    def test_scenario_e_already_owned(self, db_session, buyer, make_course):
        course = make_course("Owned", price_cents=1000)
        grant_entitlements(buyer.id, [course.id])
        with pytest.raises(ValidationError):
            order_service.create_order(buyer.id, [course.id])
        assert db_session.query(Order).count() == 0

    def test_lines_snapshot_catalog_price(self, db_session, buyer, make_course):
        course = make_course("Repriced", price_cents=1500)
        order = order_service.create_order(buyer.id, [course.id])
        course.price_cents = 3000
        db_session.commit()
        db_session.refresh(order)
        assert [line.unit_price_cents for line in order.lines] == [1500]
        assert order.total_cents == 1500

    def test_primary_item_is_first_line(self, db_session, buyer, make_course):
        a, b = make_course("A"), make_course("B")
        order = order_service.create_order(buyer.id, [b.id, a.id])
        data = order.to_dict()
        assert data["primary_item_id"] == b.id
        assert [line["course_id"] for line in data["lines"]] == [b.id, a.id]

    def test_creation_event_persisted(self, db_session, buyer, make_course):
        course = make_course()
        order = order_service.create_order(buyer.id, [course.id])
        events = db_session.query(OrderEvent).filter_by(order_id=order.id).all()
        assert [e.event_type for e in events] == ["order.created"]


class TestSubmitPaymentEvidence:

    def test_moves_pending_to_review(self, db_session, buyer, make_course):
        order = order_service.create_order(buyer.id, [make_course().id])
        updated = order_service.submit_payment_evidence(order.id, buyer.id, "https://files.example/receipt.png")
        assert updated.status == ORDER_STATUS_PENDING_REVIEW
        assert updated.payment_evidence_url == "https://files.example/receipt.png"

    def test_resubmission_replaces_url(self, db_session, buyer, make_course):
        order = order_service.create_order(buyer.id, [make_course().id])
        order_service.submit_payment_evidence(order.id, buyer.id, "https://files.example/a.png")
        updated = order_service.submit_payment_evidence(order.id, buyer.id, "https://files.example/b.png")
        assert updated.status == ORDER_STATUS_PENDING_REVIEW
        assert updated.payment_evidence_url == "https://files.example/b.png"

    def test_other_users_order_is_not_found(self, db_session, buyer, other_buyer, make_course):
        order = order_service.create_order(buyer.id, [make_course().id])
        with pytest.raises(NotFoundError):
            order_service.submit_payment_evidence(order.id, other_buyer.id, "https://files.example/x.png")

    def test_completed_order_rejects_evidence(self, db_session, buyer, make_course):
        order = order_service.create_order(buyer.id, [make_course(price_cents=0).id])
        with pytest.raises(ValidationError):
            order_service.submit_payment_evidence(order.id, buyer.id, "https://files.example/x.png")


class TestListOrders:

    def test_user_sees_only_own_orders(self, db_session, buyer, other_buyer, make_course):
        course = make_course()
        mine = order_service.create_order(buyer.id, [course.id])
        order_service.create_order(other_buyer.id, [course.id])
        assert [o.id for o in order_service.list_orders_for_user(buyer.id)] == [mine.id]

    def test_status_filter(self, db_session, buyer, make_course):
        order_service.create_order(buyer.id, [make_course(price_cents=0).id])
        pending = order_service.create_order(buyer.id, [make_course(price_cents=100).id])
        assert [o.id for o in order_service.list_orders(ORDER_STATUS_PENDING)] == [pending.id]

    def test_unknown_status_filter(self, db_session):
        with pytest.raises(ValidationError):
            order_service.list_orders("SHIPPED")


class TestSqlAlchemyGatewayGuards:

    def test_spent_coupon_use_refused(self, db_session, make_coupon):
        coupon = make_coupon("SPENT", amount_cents=100, max_uses=1, current_uses=1)
        gw = SqlAlchemyGateway()
        with gw.transaction():
            assert gw.consume_coupon_use(coupon) is False
        db_session.refresh(coupon)
        assert coupon.current_uses == 1

    def test_inactive_coupon_use_refused(self, db_session, make_coupon):
        coupon = make_coupon("OFF", percent=10, is_active=False)
        gw = SqlAlchemyGateway()
        with gw.transaction():
            assert gw.consume_coupon_use(coupon) is False
        db_session.refresh(coupon)
        assert coupon.current_uses == 0

    def test_last_use_then_refused(self, db_session, make_coupon):
        coupon = make_coupon("ONE", amount_cents=100, max_uses=1)
        gw = SqlAlchemyGateway()
        with gw.transaction():
            assert gw.consume_coupon_use(coupon) is True
            assert gw.consume_coupon_use(coupon) is False
        db_session.refresh(coupon)
        assert coupon.current_uses == 1

    def test_status_update_with_stale_expectation(self, db_session, buyer, make_course):
        order = order_service.create_order(buyer.id, [make_course().id])
        gw = SqlAlchemyGateway()
        with gw.transaction():
            assert gw.update_order_status(order, ORDER_STATUS_PENDING_REVIEW, ORDER_STATUS_COMPLETED) is False
        db_session.refresh(order)
        assert order.status == ORDER_STATUS_PENDING
        assert order.completed_at is None

    def test_status_update_with_current_expectation(self, db_session, buyer, make_course):
        order = order_service.create_order(buyer.id, [make_course().id])
        gw = SqlAlchemyGateway()
        with gw.transaction():
            assert gw.update_order_status(order, ORDER_STATUS_PENDING, ORDER_STATUS_PENDING_REVIEW) is True
            assert gw.update_order_status(order, ORDER_STATUS_PENDING, ORDER_STATUS_COMPLETED) is False
        db_session.refresh(order)
        assert order.status == ORDER_STATUS_PENDING_REVIEW
