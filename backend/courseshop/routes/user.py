# Overview: Read-only views of the caller's course access.

from flask import Blueprint, jsonify, g

from ..decorators import require_auth
from ..services import entitlement_service


user_bp = Blueprint("user", __name__, url_prefix="/api/user")


@user_bp.get("/purchases")
@require_auth
def list_purchases_route():
    """Course ids the caller has access to."""
    course_ids = entitlement_service.list_owned_course_ids(g.current_user.id)
    return jsonify({"course_ids": course_ids}), 200
