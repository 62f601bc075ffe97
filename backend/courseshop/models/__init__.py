from .auth import User, SessionToken
from .catalog import Course
from .coupons import Coupon
from .orders import Order, OrderLine, OrderEvent
from .entitlements import Purchase

__all__ = [
    'User', 'SessionToken',
    'Course',
    'Coupon',
    'Order', 'OrderLine', 'OrderEvent',
    'Purchase',
]
