"""Record types stored in the hospital document collections."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Type, Union, runtime_checkable

from . import codec


class AppointmentStatus(Enum):
    SCHEDULED = "Scheduled"
    ATTENDED = "Attended"
    CANCELED = "Canceled"


class EmailStatus(Enum):
    SENT = "Sent"
    NOT_SENT = "NotSent"


class EmailAction(Enum):
    CONFIRMATION = "Confirmation"
    CANCELLATION = "Cancellation"


class UserRole(str, Enum):
    PATIENT = "Patient"
    DOCTOR = "Doctor"


class InvalidTransitionError(ValueError):
    """Raised when an appointment status change is not allowed."""


_ALLOWED_TRANSITIONS = {
    AppointmentStatus.SCHEDULED: {AppointmentStatus.ATTENDED, AppointmentStatus.CANCELED},
    AppointmentStatus.ATTENDED: set(),
    AppointmentStatus.CANCELED: set(),
}


@runtime_checkable
class Identifiable(Protocol):
    """A record that carries its own UUID."""

    id: Optional[uuid.UUID]

    def ensure_id(self) -> uuid.UUID:
        """Assign a new identifier if none is set and return it."""


@runtime_checkable
class Named(Protocol):
    """A record with a human-readable name used for natural-key lookups."""

    def display_name(self) -> str:
        """Return the name shown to operators."""


class _IdentifiedRecord:
    id: Optional[uuid.UUID]

    def ensure_id(self) -> uuid.UUID:
        if self.id is None:
            self.id = uuid.uuid4()
        return self.id


@dataclass
class Person(_IdentifiedRecord):
    """Fields shared by patients and doctors."""

    name: str = ""
    age: int = 0
    address: str = ""
    phone: str = ""
    email: str = ""
    document_number: str = ""
    id: Optional[uuid.UUID] = None

    def display_name(self) -> str:
        return self.name

    def _person_wire(self) -> Dict[str, Any]:
        return {
            "id": codec.encode_uuid(self.id),
            "name": self.name,
            "age": self.age,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "documentNumber": self.document_number,
        }

    @staticmethod
    def _person_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
        age = codec.extract(payload, "age", 0)
        return {
            "id": codec.decode_uuid(codec.extract(payload, "id")),
            "name": str(codec.extract(payload, "name") or ""),
            "age": int(age) if age is not None else 0,
            "address": str(codec.extract(payload, "address") or ""),
            "phone": str(codec.extract(payload, "phone") or ""),
            "email": str(codec.extract(payload, "email") or ""),
            "document_number": str(codec.extract(payload, "documentNumber") or ""),
        }


@dataclass
class Patient(Person):
    appointment_ids: List[uuid.UUID] = field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        payload = self._person_wire()
        payload["appointmentIds"] = codec.encode_uuid_list(self.appointment_ids)
        return payload

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "Patient":
        return cls(
            appointment_ids=codec.decode_uuid_list(codec.extract(payload, "appointmentIds")),
            **cls._person_fields(payload),
        )


@dataclass
class Doctor(Person):
    specialization: str = ""
    appointment_ids: List[uuid.UUID] = field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        payload = self._person_wire()
        payload["specialization"] = self.specialization
        payload["appointmentIds"] = codec.encode_uuid_list(self.appointment_ids)
        return payload

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "Doctor":
        return cls(
            specialization=str(codec.extract(payload, "specialization") or ""),
            appointment_ids=codec.decode_uuid_list(codec.extract(payload, "appointmentIds")),
            **cls._person_fields(payload),
        )


@dataclass
class Appointment(_IdentifiedRecord):
    """A patient booked with a doctor at a given time."""

    patient_id: uuid.UUID
    doctor_id: uuid.UUID
    appointment_date: datetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    id: Optional[uuid.UUID] = None

    def __post_init__(self) -> None:
        self.appointment_date = codec.normalize_timestamp(self.appointment_date)

    def can_transition(self, target: AppointmentStatus) -> bool:
        return target in _ALLOWED_TRANSITIONS[self.status]

    def transition_to(self, target: AppointmentStatus) -> None:
        if not self.can_transition(target):
            raise InvalidTransitionError(
                f"Appointment cannot move from {self.status.value} to {target.value}"
            )
        self.status = target

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": codec.encode_uuid(self.id),
            "patientId": codec.encode_uuid(self.patient_id),
            "doctorId": codec.encode_uuid(self.doctor_id),
            "appointmentDate": codec.encode_timestamp(self.appointment_date),
            "status": codec.encode_ordinal(self.status),
        }

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "Appointment":
        return cls(
            id=codec.decode_uuid(codec.extract(payload, "id")),
            patient_id=codec.decode_uuid(codec.require(payload, "patientId")),
            doctor_id=codec.decode_uuid(codec.require(payload, "doctorId")),
            appointment_date=codec.decode_timestamp(codec.require(payload, "appointmentDate")),
            status=codec.decode_enum(
                AppointmentStatus, codec.extract(payload, "status"), AppointmentStatus.SCHEDULED
            ),
        )


@dataclass
class User(_IdentifiedRecord):
    name: str
    username: str
    password: str
    role: UserRole
    entity_id: Optional[uuid.UUID] = None
    id: Optional[uuid.UUID] = None

    def display_name(self) -> str:
        return self.name

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": codec.encode_uuid(self.id),
            "name": self.name,
            "username": self.username,
            "password": self.password,
            "role": self.role.value,
            "entityId": codec.encode_uuid(self.entity_id),
        }

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "User":
        return cls(
            id=codec.decode_uuid(codec.extract(payload, "id")),
            name=str(codec.extract(payload, "name") or ""),
            username=str(codec.require(payload, "username")),
            password=str(codec.extract(payload, "password") or ""),
            role=codec.decode_enum(UserRole, codec.require(payload, "role")),
            entity_id=codec.decode_uuid(codec.extract(payload, "entityId")),
        )


@dataclass
class EmailLog(_IdentifiedRecord):
    """Outcome of one attempt to email a patient about an appointment."""

    appointment_id: uuid.UUID
    recipient_email: str
    sent_date: datetime = field(default_factory=datetime.now)
    status: EmailStatus = EmailStatus.NOT_SENT
    id: Optional[uuid.UUID] = None

    def __post_init__(self) -> None:
        self.sent_date = codec.normalize_timestamp(self.sent_date)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": codec.encode_uuid(self.id),
            "appointmentId": codec.encode_uuid(self.appointment_id),
            "recipientEmail": self.recipient_email,
            "sentDate": codec.encode_timestamp(self.sent_date),
            "status": codec.encode_ordinal(self.status),
        }

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "EmailLog":
        return cls(
            id=codec.decode_uuid(codec.extract(payload, "id")),
            appointment_id=codec.decode_uuid(codec.require(payload, "appointmentId")),
            recipient_email=str(codec.extract(payload, "recipientEmail") or ""),
            sent_date=codec.decode_timestamp(codec.require(payload, "sentDate")),
            status=codec.decode_enum(EmailStatus, codec.extract(payload, "status"), EmailStatus.NOT_SENT),
        )


EntityRecord = Union[Patient, Doctor, Appointment, User, EmailLog]


class EntityKind(Enum):
    """Closed set of record kinds, each bound to its class and collection."""

    PATIENT = ("Patients", Patient)
    DOCTOR = ("Doctors", Doctor)
    APPOINTMENT = ("Appointments", Appointment)
    USER = ("Users", User)
    EMAIL_LOG = ("EmailLogs", EmailLog)

    def __init__(self, collection: str, model: Type[EntityRecord]) -> None:
        self.collection = collection
        self.model = model

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", " ")

    def decode(self, payload: Mapping[str, Any]) -> EntityRecord:
        if not isinstance(payload, Mapping):
            raise ValueError(f"{self.model.__name__} payload must be a JSON object")
        return self.model.from_wire(payload)

    def check(self, record: Any) -> EntityRecord:
        if not isinstance(record, self.model):
            raise TypeError(f"Expected {self.model.__name__}, got {type(record).__name__}")
        return record

    @classmethod
    def of(cls, record: EntityRecord) -> "EntityKind":
        # Doctor and Patient share a base class but neither subclasses the other.
        for kind in cls:
            if type(record) is kind.model:
                return kind
        raise TypeError(f"{type(record).__name__} is not a hospital record")


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
