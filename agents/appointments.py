"""Appointment agent providing scheduling operations."""

from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import datetime
from typing import Iterable, List, Optional, Protocol, Tuple

from connector.errors import SelectorUnavailableError
from connector.gemini_client import DoctorSelection
from records.codec import normalize_timestamp
from records.models import (
    Appointment,
    AppointmentStatus,
    Doctor,
    EmailAction,
    EntityKind,
    InvalidTransitionError,
)
from store.cache import EntityCache
from store.repository import Repository
from store.results import FailureKind, OperationResult
from store.scheduling import check_availability

from .notifications import NotificationService
from .people import DoctorService, PatientService

logger = logging.getLogger(__name__)


class DoctorSelector(Protocol):
    def select_doctor(self, symptoms: str, doctors: Iterable[Doctor]) -> DoctorSelection:
        """Pick the doctor best suited to ``symptoms``."""


class AppointmentService:
    """Books, cancels and lists appointments against the session cache."""

    def __init__(
        self,
        repository: Repository,
        cache: EntityCache,
        patients: PatientService,
        doctors: DoctorService,
        notifications: NotificationService,
        *,
        selector: Optional[DoctorSelector] = None,
    ) -> None:
        if repository.kind is not EntityKind.APPOINTMENT:
            raise ValueError("AppointmentService requires an appointment repository")
        self._repository = repository
        self._cache = cache
        self._patients = patients
        self._doctors = doctors
        self._notifications = notifications
        self._selector = selector

    def request(self, patient_id: uuid.UUID, symptoms: str, when: datetime) -> OperationResult:
        """Let the doctor selector choose a doctor for ``symptoms`` and book it."""

        doctors = [doctor for _, doctor in self._doctors.list()]
        if not doctors:
            return OperationResult.failed(FailureKind.NOT_FOUND, "No doctors are registered.")
        if self._selector is None:
            return OperationResult.failed(FailureKind.TRANSPORT, "Doctor selection service is not configured.")

        try:
            selection = self._selector.select_doctor(symptoms, doctors)
        except SelectorUnavailableError as exc:
            logger.error("Doctor selection failed: %s", exc)
            return OperationResult.from_exception(exc, "selecting a doctor")

        if not selection.resolved or self._doctors.repository.find_by_id(selection.doctor_id) is None:
            logger.warning("Doctor selection unresolved: %s", selection.reason)
            return OperationResult.failed(FailureKind.MALFORMED, "No doctor could be assigned by AI.")

        result = self.book(patient_id, selection.doctor_id, when)
        if result.ok and selection.reason:
            return dataclasses.replace(result, message=f"{result.message} ({selection.reason})")
        return result

    def book(self, patient_id: uuid.UUID, doctor_id: uuid.UUID, when: datetime) -> OperationResult:
        patient_match = self._patients.repository.find_by_id(patient_id)
        if patient_match is None:
            return OperationResult.failed(FailureKind.NOT_FOUND, "Patient not found.")
        doctor_match = self._doctors.repository.find_by_id(doctor_id)
        if doctor_match is None:
            return OperationResult.failed(FailureKind.NOT_FOUND, "Doctor not found.")
        _, patient = patient_match
        _, doctor = doctor_match

        when = normalize_timestamp(when)
        availability = check_availability(self._cache, doctor_id, when)
        if not availability:
            return OperationResult.failed(FailureKind.CONFLICT, availability.message)

        appointment = Appointment(patient_id=patient_id, doctor_id=doctor_id, appointment_date=when)
        created = self._repository.create(appointment)
        if not created.ok:
            return created

        for service, owner_id in ((self._doctors, doctor_id), (self._patients, patient_id)):
            linked = service.attach_appointment(owner_id, appointment.id)
            if not linked.ok:
                logger.warning("Appointment %s not linked on %s: %s", appointment.id, service.noun, linked.message)

        self._notifications.send_appointment_email(appointment, patient.email, doctor, EmailAction.CONFIRMATION)
        return OperationResult.success(
            f"Appointment successfully created with Dr. {doctor.name} on {when:%Y-%m-%d %H:%M}",
            key=created.key,
            value=appointment,
        )

    def _transition(self, key: str, target: AppointmentStatus) -> OperationResult:
        current = self._repository.get(key)
        if current is None:
            return OperationResult.failed(FailureKind.NOT_FOUND, "Appointment not found.")
        changed = dataclasses.replace(current)
        try:
            changed.transition_to(target)
        except InvalidTransitionError as exc:
            return OperationResult.failed(FailureKind.CONFLICT, str(exc), key=key)
        return self._repository.update(key, changed)

    def cancel(self, key: str) -> OperationResult:
        result = self._transition(key, AppointmentStatus.CANCELED)
        if not result.ok:
            return result
        appointment = result.value
        patient = self._patients.repository.find_by_id(appointment.patient_id)
        doctor = self._doctors.repository.find_by_id(appointment.doctor_id)
        if patient is not None:
            self._notifications.send_appointment_email(
                appointment,
                patient[1].email,
                doctor[1] if doctor else None,
                EmailAction.CANCELLATION,
            )
        return OperationResult.success(
            "Appointment has been successfully canceled and the patient notified!", key=key, value=appointment
        )

    def mark_attended(self, key: str) -> OperationResult:
        result = self._transition(key, AppointmentStatus.ATTENDED)
        if result.ok:
            return OperationResult.success("Appointment marked as attended.", key=key, value=result.value)
        return result

    def _sorted(self, predicate) -> List[Tuple[str, Appointment]]:
        selected = [(key, appt) for key, appt in self._repository.all().items() if predicate(appt)]
        return sorted(selected, key=lambda item: item[1].appointment_date)

    def list_for_patient(self, patient_id: uuid.UUID) -> List[Tuple[str, Appointment]]:
        return self._sorted(lambda appt: appt.patient_id == patient_id)

    def list_for_doctor(self, doctor_id: uuid.UUID) -> List[Tuple[str, Appointment]]:
        return self._sorted(lambda appt: appt.doctor_id == doctor_id)

    def list_all(self) -> List[Tuple[str, Appointment]]:
        return self._sorted(lambda appt: True)

    def scheduled(self) -> List[Tuple[str, Appointment]]:
        return self._sorted(lambda appt: appt.status is AppointmentStatus.SCHEDULED)


__all__ = ["AppointmentService", "DoctorSelector"]
