"""Hospital record types and their wire codec."""

from .models import (
    Appointment,
    AppointmentStatus,
    Doctor,
    EmailAction,
    EmailLog,
    EmailStatus,
    EntityKind,
    EntityRecord,
    Identifiable,
    InvalidTransitionError,
    Named,
    Patient,
    Person,
    User,
    UserRole,
)

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "Doctor",
    "EmailAction",
    "EmailLog",
    "EmailStatus",
    "EntityKind",
    "EntityRecord",
    "Identifiable",
    "InvalidTransitionError",
    "Named",
    "Patient",
    "Person",
    "User",
    "UserRole",
]
