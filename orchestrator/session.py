"""Wiring of clients, cache, repositories and services for one session."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Mapping, Optional

from agents.appointments import AppointmentService, DoctorSelector
from agents.notifications import Mailer, NotificationService
from agents.people import DoctorService, PatientService
from agents.users import UserService
from connector.firebase_client import DEFAULT_DATABASE_URL, FirebaseClient
from connector.gemini_client import DEFAULT_GEMINI_API_KEY, GeminiDoctorSelector
from connector.mailer import DEFAULT_EMAIL_WEBHOOK_URL, AppsScriptMailer
from connector.memory import build_collections, load_export
from records.models import EntityKind
from store.cache import EntityCache
from store.loader import BulkLoader, LoadReport
from store.repository import CollectionStore, build_repositories

logger = logging.getLogger(__name__)


class HospitalSession:
    """Owns the cache for the lifetime of one operator session."""

    def __init__(
        self,
        stores: Mapping[EntityKind, CollectionStore],
        *,
        selector: Optional[DoctorSelector] = None,
        mailer: Optional[Mailer] = None,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        self.cache = EntityCache()
        self.repositories = build_repositories(stores, self.cache)
        self.loader = BulkLoader(self.repositories)
        self.patients = PatientService(self.repositories[EntityKind.PATIENT])
        self.doctors = DoctorService(self.repositories[EntityKind.DOCTOR])
        self.users = UserService(self.repositories[EntityKind.USER], self.patients, self.doctors)
        self.notifications = NotificationService(mailer, self.repositories[EntityKind.EMAIL_LOG])
        self.appointments = AppointmentService(
            self.repositories[EntityKind.APPOINTMENT],
            self.cache,
            self.patients,
            self.doctors,
            self.notifications,
            selector=selector,
        )
        self._on_close = on_close
        self.last_report: Optional[LoadReport] = None

    @classmethod
    def remote(cls) -> "HospitalSession":
        """Build a session against the configured Firebase database."""

        client = FirebaseClient()
        stores = {kind: client.collection(kind) for kind in EntityKind}
        selector = GeminiDoctorSelector() if DEFAULT_GEMINI_API_KEY else None
        sender = AppsScriptMailer() if DEFAULT_EMAIL_WEBHOOK_URL else None
        if selector is None:
            logger.warning("GEMINI_API_KEY is not set; doctor selection is disabled")
        if sender is None:
            logger.warning("EMAIL_WEBHOOK_URL is not set; appointment emails will be logged as not sent")
        logger.debug("Using document store at %s", DEFAULT_DATABASE_URL)
        return cls(stores, selector=selector, mailer=sender, on_close=client.close)

    @classmethod
    def offline(
        cls,
        *,
        seed: Optional[Path] = None,
        selector: Optional[DoctorSelector] = None,
        mailer: Optional[Mailer] = None,
    ) -> "HospitalSession":
        """Build a session over in-memory collections, optionally filled from an export file."""

        documents = load_export(seed) if seed is not None else None
        return cls(build_collections(documents), selector=selector, mailer=mailer)

    def start(self) -> LoadReport:
        self.last_report = self.loader.load_all()
        return self.last_report

    def refresh(self, *kinds: EntityKind) -> LoadReport:
        return self.loader.refresh(*(kinds or tuple(EntityKind)))

    def close(self) -> None:
        self.cache.clear()
        if self._on_close is not None:
            self._on_close()

    def __enter__(self) -> "HospitalSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["HospitalSession"]
