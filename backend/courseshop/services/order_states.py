# Overview: Order status state machine shared by checkout, payment submission and review.

from __future__ import annotations

from ..errors import InvalidTransitionError
from ..models.orders import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PENDING_REVIEW,
)

TERMINAL_STATUSES = frozenset({ORDER_STATUS_COMPLETED, ORDER_STATUS_CANCELLED})

# Statuses a reviewer may set through the approval workflow
REVIEW_STATUSES = frozenset({ORDER_STATUS_COMPLETED, ORDER_STATUS_CANCELLED})

ALLOWED_TRANSITIONS = {
    ORDER_STATUS_PENDING: frozenset({
        ORDER_STATUS_PENDING_REVIEW,
        ORDER_STATUS_COMPLETED,
        ORDER_STATUS_CANCELLED,
    }),
    ORDER_STATUS_PENDING_REVIEW: frozenset({
        ORDER_STATUS_COMPLETED,
        ORDER_STATUS_CANCELLED,
    }),
    ORDER_STATUS_COMPLETED: frozenset(),
    ORDER_STATUS_CANCELLED: frozenset(),
}


def initial_status_for_total(total_cents: int) -> str:
    """Zero-total orders are born completed; everything else waits for payment."""
    return ORDER_STATUS_COMPLETED if total_cents == 0 else ORDER_STATUS_PENDING


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def validate_transition(current: str, new: str) -> None:
    if not can_transition(current, new):
        raise InvalidTransitionError(
            f"Cannot change order status from {current} to {new}",
            details={"current_status": current, "requested_status": new},
        )
