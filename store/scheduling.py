"""Appointment slot conflict detection over the cached appointments."""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from records.codec import normalize_timestamp
from records.models import Appointment, AppointmentStatus, EntityKind

from .cache import EntityCache

MINIMUM_SEPARATION = timedelta(minutes=60)


@dataclass(frozen=True)
class Availability:
    available: bool
    doctor_name: Optional[str] = None
    conflicting: Optional[Appointment] = None

    def __bool__(self) -> bool:
        return self.available

    @property
    def message(self) -> str:
        if self.available:
            return "Doctor is available at that date/time."
        return f"Doctor {self.doctor_name or 'unknown'} is NOT available at that date/time."


def check_availability(
    cache: EntityCache,
    doctor_id: uuid.UUID,
    candidate: datetime,
    *,
    window: timedelta = MINIMUM_SEPARATION,
    include_canceled: bool = True,
) -> Availability:
    """Decide whether ``doctor_id`` can take an appointment at ``candidate``.

    The slot is free only when every existing appointment for the doctor is
    more than ``window`` away. Canceled appointments still block unless
    ``include_canceled`` is False.
    """

    candidate = normalize_timestamp(candidate)
    for appointment in cache.values(EntityKind.APPOINTMENT):
        if appointment.doctor_id != doctor_id:
            continue
        if not include_canceled and appointment.status is AppointmentStatus.CANCELED:
            continue
        if abs(normalize_timestamp(appointment.appointment_date) - candidate) <= window:
            match = cache.find_by_id(EntityKind.DOCTOR, doctor_id)
            name = match[1].name if match else str(doctor_id)
            return Availability(available=False, doctor_name=name, conflicting=appointment)
    return Availability(available=True)


__all__ = ["Availability", "MINIMUM_SEPARATION", "check_availability"]
