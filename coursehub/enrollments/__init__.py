"""Enrollment lifecycle module.

Provides:
- Enrollment entity and payment/lifecycle states
- Storage port with in-memory and Cassandra adapters
- EnrollmentService in .service (free/paid enrollment, checkout, lesson completion)
"""

from .models import Enrollment, EnrollmentState, PaymentStatus
from .repository import (
    CassandraEnrollmentRepository,
    EnrollmentRepository,
    InMemoryEnrollmentRepository,
)


__all__ = [
    "CassandraEnrollmentRepository",
    "Enrollment",
    "EnrollmentRepository",
    "EnrollmentState",
    "InMemoryEnrollmentRepository",
    "PaymentStatus",
]
