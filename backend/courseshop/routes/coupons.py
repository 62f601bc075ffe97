# Overview: Public coupon preview for the cart page.

from flask import Blueprint, request, jsonify, current_app

from ..errors import ShopError, error_response
from ..services import coupon_service
from ..validation import parse_money_cents


coupons_bp = Blueprint("coupons", __name__, url_prefix="/api/coupons")


@coupons_bp.post("/verify")
def verify_coupon_route():
    """
    Preview a coupon against a cart total. Does not consume a use.

    Body: {"code": str, "cart_total_cents": int}
    """
    try:
        data = request.get_json(silent=True) or {}
        cart_total_cents = parse_money_cents(data.get("cart_total_cents", 0), "cart_total_cents")

        result = coupon_service.verify_coupon(data.get("code"), cart_total_cents)
        return jsonify(result), 200 if result["is_valid"] else 400

    except ShopError as e:
        return error_response(e, "Failed to verify coupon")
    except Exception:
        current_app.logger.exception("Failed to verify coupon")
        return jsonify({"error": "Internal server error"}), 500
