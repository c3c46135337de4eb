"""User accounts linked to patient or doctor profiles."""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from records.models import Doctor, EntityKind, Patient, Person, User, UserRole
from store.repository import Repository
from store.results import FailureKind, OperationResult

from .people import DoctorService, PatientService

logger = logging.getLogger(__name__)


class UserService:
    """Registers and maintains login accounts."""

    def __init__(
        self,
        repository: Repository,
        patients: PatientService,
        doctors: DoctorService,
    ) -> None:
        if repository.kind is not EntityKind.USER:
            raise ValueError("UserService requires a user repository")
        self._repository = repository
        self._patients = patients
        self._doctors = doctors

    def username_taken(self, username: str, *, exclude_key: Optional[str] = None) -> bool:
        target = username.strip().lower()
        return any(
            key != exclude_key and user.username.strip().lower() == target
            for key, user in self._repository.all().items()
        )

    def _profiles(self, role: UserRole) -> Repository:
        service = self._patients if role is UserRole.PATIENT else self._doctors
        return service.repository

    def _profile_exists(self, user: User) -> bool:
        return self.linked_profile(user) is not None

    def register(self, user: User) -> OperationResult:
        """Create ``user`` once its username is free and its profile exists."""

        if not user.username.strip():
            return OperationResult.failed(FailureKind.CONFLICT, "Username must be provided.")
        if self.username_taken(user.username):
            return OperationResult.failed(FailureKind.CONFLICT, "Username already exists. Choose a different one.")
        if not self._profile_exists(user):
            return OperationResult.failed(
                FailureKind.NOT_FOUND, f"No {user.role.value.lower()} profile is linked to this user."
            )
        result = self._repository.create(user)
        if result.ok:
            return OperationResult.success("User registered successfully!", key=result.key, value=user)
        return result

    def register_with_profile(
        self, name: str, username: str, password: str, profile: Person
    ) -> OperationResult:
        """Register the patient or doctor ``profile`` and a user linked to it."""

        if self.username_taken(username):
            return OperationResult.failed(FailureKind.CONFLICT, "Username already exists. Choose a different one.")
        if isinstance(profile, Patient):
            role, created = UserRole.PATIENT, self._patients.register(profile)
        elif isinstance(profile, Doctor):
            role, created = UserRole.DOCTOR, self._doctors.register(profile)
        else:
            raise TypeError("profile must be a Patient or a Doctor")
        if not created.ok:
            return created

        result = self.register(User(name=name, username=username, password=password, role=role, entity_id=profile.id))
        if not result.ok:
            rollback = self._profiles(role).delete_by_id(created.key)
            if not rollback.ok:
                logger.warning("Orphan %s profile %s left behind: %s", role.value.lower(), created.key, rollback.message)
        return result

    def list(self) -> List[Tuple[str, User]]:
        return sorted(self._repository.all().items(), key=lambda item: item[1].username.lower())

    def find(self, text: str) -> Optional[Tuple[str, User]]:
        """Match on username first, then on full name."""

        target = text.strip().lower()
        for key, user in self._repository.all().items():
            if user.username.strip().lower() == target or user.name.strip().lower() == target:
                return key, user
        return None

    def update(
        self,
        text: str,
        *,
        name: str,
        username: str,
        password: str,
        role: UserRole,
    ) -> OperationResult:
        match = self.find(text)
        if match is None:
            return OperationResult.failed(FailureKind.NOT_FOUND, "User not found.")
        key, existing = match
        if self.username_taken(username, exclude_key=key):
            return OperationResult.failed(FailureKind.CONFLICT, "That username is already taken by another user.")
        replacement = User(
            id=existing.id,
            name=name,
            username=username,
            password=password,
            role=role,
            entity_id=existing.entity_id,
        )
        if not self._profile_exists(replacement):
            return OperationResult.failed(
                FailureKind.CONFLICT, f"This user is not linked to a {role.value.lower()} profile."
            )
        result = self._repository.update(key, replacement)
        if result.ok:
            return OperationResult.success("User updated successfully!", key=key, value=replacement)
        return result

    def linked_profile(self, user: User) -> Optional[Tuple[str, Person]]:
        if user.entity_id is None:
            return None
        return self._profiles(user.role).find_by_id(user.entity_id)


__all__ = ["UserService"]
