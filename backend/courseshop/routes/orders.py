# Overview: Flask API routes for buyer checkout and order history.

"""Buyer-facing order routes."""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import ShopError, ValidationError, error_response
from ..models.orders import ORDER_STATUS_PENDING_REVIEW
from ..services import order_service
from ..validation import parse_evidence_url, parse_id_list


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.route("", methods=["POST"])
@require_auth
def create_order_route():
    """
    Check out a cart.

    Body: {"item_ids": [int], "coupon_code": str?}
    A coupon that does not apply is ignored, not rejected.
    """
    try:
        data = request.get_json(silent=True) or {}
        item_ids = parse_id_list(data.get("item_ids"), "item_ids")
        coupon_code = data.get("coupon_code")
        if coupon_code is not None and not isinstance(coupon_code, str):
            raise ValidationError("coupon_code must be a string")

        order = order_service.create_order(g.current_user.id, item_ids, coupon_code)

        current_app.logger.info(
            "Order %s created for user %s: status=%s total_cents=%s coupon_id=%s",
            order.id, order.user_id, order.status, order.total_cents, order.coupon_id,
        )
        return jsonify({"order": order.to_dict()}), 201

    except ShopError as e:
        return error_response(e, "Failed to create order")
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.route("", methods=["GET"])
@require_auth
def list_orders_route():
    try:
        orders = order_service.list_orders_for_user(g.current_user.id)
        return jsonify({"orders": [order.to_dict() for order in orders]}), 200
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order_for_user(order_id, g.current_user.id)
        return jsonify({"order": order.to_dict()}), 200
    except ShopError as e:
        return error_response(e, "Failed to load order")
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>")
@require_auth
def submit_payment_evidence_route(order_id: int):
    """
    Attach payment evidence to the caller's own order.

    Body: {"payment_evidence_url": str, "status": "PENDING_REVIEW"}
    """
    try:
        data = request.get_json(silent=True) or {}
        status = data.get("status", ORDER_STATUS_PENDING_REVIEW)
        if status != ORDER_STATUS_PENDING_REVIEW:
            raise ValidationError(f"Buyers can only set status {ORDER_STATUS_PENDING_REVIEW}")
        url = parse_evidence_url(data.get("payment_evidence_url"))

        order = order_service.submit_payment_evidence(order_id, g.current_user.id, url)

        current_app.logger.info("Payment evidence submitted for order %s", order_id)
        return jsonify({"order": order.to_dict()}), 200

    except ShopError as e:
        return error_response(e, "Failed to submit payment evidence")
    except Exception:
        current_app.logger.exception("Failed to submit payment evidence")
        return jsonify({"error": "Internal server error"}), 500
