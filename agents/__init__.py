"""Domain workflows for patients, doctors, users and appointments."""

from .appointments import AppointmentService, DoctorSelector
from .notifications import NotificationService
from .people import DoctorService, PatientService
from .users import UserService

__all__ = [
    "AppointmentService",
    "DoctorSelector",
    "DoctorService",
    "NotificationService",
    "PatientService",
    "UserService",
]
