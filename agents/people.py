"""Patient and doctor registration and maintenance."""
from __future__ import annotations

import uuid
from typing import List, Optional, Tuple

from records.models import Doctor, EntityKind, Patient, Person
from store.repository import Repository
from store.results import FailureKind, OperationResult


def _normalize(value: str) -> str:
    return value.strip().lower()


def document_taken(
    repository: Repository, document_number: str, *, exclude_key: Optional[str] = None
) -> bool:
    """Whether another cached record of the repository's kind uses ``document_number``."""

    target = _normalize(document_number)
    for key, person in repository.all().items():
        if key == exclude_key:
            continue
        if _normalize(person.document_number) == target:
            return True
    return False


class PersonService:
    """Shared workflows for the two person-like kinds."""

    kind: EntityKind
    noun = "person"

    def __init__(self, repository: Repository) -> None:
        if repository.kind is not self.kind:
            raise ValueError(f"{type(self).__name__} requires a {self.kind.label} repository")
        self._repository = repository

    @property
    def repository(self) -> Repository:
        return self._repository

    def register(self, person: Person) -> OperationResult:
        if not person.document_number.strip():
            return OperationResult.failed(FailureKind.CONFLICT, "Document number must be provided.")
        if document_taken(self._repository, person.document_number):
            return OperationResult.failed(
                FailureKind.CONFLICT,
                "This document number is already registered. Please use a different document number.",
            )
        result = self._repository.create(person)
        if result.ok:
            return OperationResult.success(
                f"{self.noun.capitalize()} registered successfully!", key=result.key, value=person
            )
        return result

    def list(self) -> List[Tuple[str, Person]]:
        return sorted(self._repository.all().items(), key=lambda item: _normalize(item[1].name))

    def find(self, name: str) -> Optional[Tuple[str, Person]]:
        return self._repository.find_by_name(name)

    def show_by_id(self, entity_id: uuid.UUID) -> OperationResult:
        match = self._repository.find_by_id(entity_id)
        if match is None:
            return OperationResult.failed(FailureKind.NOT_FOUND, f"{self.noun.capitalize()} not found.")
        key, person = match
        return OperationResult.success(f"{self.noun.capitalize()} profile", key=key, value=person)

    def update(self, name: str, replacement: Person) -> OperationResult:
        """Replace the whole record of the person called ``name``."""

        match = self.find(name)
        if match is None:
            return OperationResult.failed(FailureKind.NOT_FOUND, f"{self.noun.capitalize()} not found.")
        key, existing = match
        if document_taken(self._repository, replacement.document_number, exclude_key=key):
            return OperationResult.failed(
                FailureKind.CONFLICT, "That document number is already registered to someone else."
            )
        replacement.id = existing.id
        replacement.appointment_ids = list(existing.appointment_ids)
        result = self._repository.update(key, replacement)
        if result.ok:
            return OperationResult.success(f"{self.noun.capitalize()} updated successfully!", key=key, value=replacement)
        return result

    def delete(self, name: str) -> OperationResult:
        result = self._repository.delete(name)
        if result.failure is FailureKind.NOT_FOUND:
            return OperationResult.failed(FailureKind.NOT_FOUND, f"{self.noun.capitalize()} not found.")
        if result.ok:
            return OperationResult.success(f"{self.noun.capitalize()} '{name}' was deleted successfully!", key=result.key)
        return result

    def attach_appointment(self, entity_id: uuid.UUID, appointment_id: uuid.UUID) -> OperationResult:
        """Append ``appointment_id`` and rewrite the stored id list."""

        match = self._repository.find_by_id(entity_id)
        if match is None:
            return OperationResult.failed(FailureKind.NOT_FOUND, f"{self.noun.capitalize()} not found.")
        key, person = match
        appointment_ids = list(person.appointment_ids)
        if appointment_id not in appointment_ids:
            appointment_ids.append(appointment_id)
        return self._repository.update_field(key, "appointmentIds", appointment_ids)


class PatientService(PersonService):
    kind = EntityKind.PATIENT
    noun = "patient"

    def register(self, person: Person) -> OperationResult:
        if not isinstance(person, Patient):
            raise TypeError("PatientService.register expects a Patient")
        return super().register(person)


class DoctorService(PersonService):
    kind = EntityKind.DOCTOR
    noun = "doctor"

    def register(self, person: Person) -> OperationResult:
        if not isinstance(person, Doctor):
            raise TypeError("DoctorService.register expects a Doctor")
        return super().register(person)

    def by_specialization(self, specialization: str) -> List[Tuple[str, Doctor]]:
        target = _normalize(specialization)
        return [item for item in self.list() if _normalize(item[1].specialization) == target]


__all__ = ["DoctorService", "PatientService", "PersonService", "document_taken"]
