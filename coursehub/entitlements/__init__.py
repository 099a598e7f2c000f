"""Entitlement evaluator: the single access decision point."""

from .evaluator import decide, decide_dashboard, decide_instructor_dashboard
from .models import AccessDecision, AccessReason
from .service import EntitlementService


__all__ = [
    "AccessDecision",
    "AccessReason",
    "EntitlementService",
    "decide",
    "decide_dashboard",
    "decide_instructor_dashboard",
]
