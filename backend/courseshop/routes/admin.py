# Overview: Flask API routes for reviewers; order approval and coupon management.

"""
Admin routes

All routes require an authenticated ADMIN.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_admin
from ..errors import ShopError, ValidationError, error_response
from ..services import approval_service, coupon_service, order_service
from ..validation import parse_coupon_payload, parse_int, parse_optional_note


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# ORDERS
# =============================================================================

@admin_bp.get("/orders")
@require_auth
@require_admin
def list_orders_route():
    """List all orders, newest first. Optional ?status= filter."""
    try:
        orders = order_service.list_orders(request.args.get("status"))
        return jsonify({"orders": [order.to_dict() for order in orders]}), 200
    except ShopError as e:
        return error_response(e, "Failed to list orders")
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/orders")
@require_auth
@require_admin
def set_order_status_route():
    """
    Approve or cancel an order.

    Body: {"order_id": int, "status": "COMPLETED" | "CANCELLED", "note": str?}
    Completing grants access to every course on the order. The optional
    note (e.g. a cancellation reason) is kept on the audit event.
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("order_id") is None or not data.get("status"):
            raise ValidationError("order_id and status required")
        if not isinstance(data["status"], str):
            raise ValidationError("status must be a string")
        order_id = parse_int(data["order_id"], "order_id")
        note = parse_optional_note(data.get("note"))

        order = approval_service.set_order_status(order_id, data["status"], g.current_user.id, note=note)

        current_app.logger.info(
            "Order %s set to %s by admin %s", order_id, order.status, g.current_user.id,
        )
        return jsonify({"order": order.to_dict()}), 200

    except ShopError as e:
        return error_response(e, "Failed to update order status")
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# COUPONS
# =============================================================================

@admin_bp.get("/coupons")
@require_auth
@require_admin
def list_coupons_route():
    try:
        active_only = request.args.get("active_only", "false").lower() == "true"
        return jsonify({"coupons": coupon_service.list_coupons(active_only)}), 200
    except Exception:
        current_app.logger.exception("Failed to list coupons")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/coupons")
@require_auth
@require_admin
def create_coupon_route():
    """
    Create a coupon.

    Body: {"code", "discount_percent" | "discount_amount_cents",
           "max_uses"?, "expires_at"?}
    """
    try:
        fields = parse_coupon_payload(request.get_json(silent=True) or {})
        coupon = coupon_service.create_coupon(fields)
        return jsonify({"coupon": coupon.to_dict()}), 201
    except ShopError as e:
        return error_response(e, "Failed to create coupon")
    except Exception:
        current_app.logger.exception("Failed to create coupon")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/coupons")
@require_auth
@require_admin
def update_coupon_route():
    """
    Update a coupon; only the keys present are changed.

    Body: {"id": int, ...coupon fields}. {"id", "is_active"} toggles status.
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("id") is None:
            raise ValidationError("id required")
        coupon_id = parse_int(data["id"], "id")
        fields = parse_coupon_payload(data, partial=True)

        coupon = coupon_service.update_coupon(coupon_id, fields)
        return jsonify({"coupon": coupon.to_dict()}), 200
    except ShopError as e:
        return error_response(e, "Failed to update coupon")
    except Exception:
        current_app.logger.exception("Failed to update coupon")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/coupons/<int:coupon_id>")
@require_auth
@require_admin
def delete_coupon_route(coupon_id: int):
    try:
        coupon_service.delete_coupon(coupon_id)
        return jsonify({"success": True}), 200
    except ShopError as e:
        return error_response(e, "Failed to delete coupon")
    except Exception:
        current_app.logger.exception("Failed to delete coupon")
        return jsonify({"error": "Internal server error"}), 500
