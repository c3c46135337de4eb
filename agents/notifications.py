"""Appointment emails and their delivery log."""
from __future__ import annotations

import logging
from datetime import datetime
from html import escape
from typing import List, Optional, Protocol, Tuple

from records.models import Appointment, Doctor, EmailAction, EmailLog, EmailStatus, EntityKind
from store.repository import Repository

logger = logging.getLogger(__name__)

SUBJECTS = {
    EmailAction.CONFIRMATION: "Medical Appointment Confirmation",
    EmailAction.CANCELLATION: "Medical Appointment Cancellation",
}


class Mailer(Protocol):
    def send(self, recipient: str, subject: str, html_body: str) -> bool:
        """Deliver an HTML message and report whether it was accepted."""


def render_body(appointment: Appointment, doctor: Optional[Doctor], action: EmailAction) -> str:
    doctor_name = escape(doctor.name) if doctor else "your doctor"
    when = appointment.appointment_date.strftime("%A, %d %B %Y %H:%M")
    if action is EmailAction.CONFIRMATION:
        text = (
            f"Your medical appointment with Dr. {doctor_name} has been confirmed for "
            f"<strong>{when}</strong>. Please arrive 15 minutes before the scheduled time."
        )
    else:
        text = (
            f"Your medical appointment with Dr. {doctor_name}, scheduled for "
            f"<strong>{when}</strong>, has been cancelled. If you wish to reschedule, please contact us."
        )
    return (
        f"<html><body><h2>{SUBJECTS[action]}</h2><p>Dear patient,</p><p>{text}</p>"
        "<p>This is an automated message. Do not reply to this email.</p></body></html>"
    )


class NotificationService:
    """Sends appointment emails and records every attempt as an EmailLog."""

    def __init__(self, mailer: Optional[Mailer], repository: Repository) -> None:
        if repository.kind is not EntityKind.EMAIL_LOG:
            raise ValueError("NotificationService requires an email log repository")
        self._mailer = mailer
        self._repository = repository

    def send_appointment_email(
        self,
        appointment: Appointment,
        recipient: str,
        doctor: Optional[Doctor],
        action: EmailAction,
    ) -> EmailLog:
        """Best effort: failures end up in the log entry, never in an exception."""

        log = EmailLog(appointment_id=appointment.ensure_id(), recipient_email=recipient)
        delivered = False
        if self._mailer is None:
            logger.warning("No mailer configured; email for appointment %s not sent", appointment.id)
        elif not recipient:
            logger.warning("Appointment %s has no recipient address", appointment.id)
        else:
            try:
                delivered = self._mailer.send(recipient, SUBJECTS[action], render_body(appointment, doctor, action))
            except Exception:  # noqa: BLE001 - delivery must never break the booking flow
                logger.exception("Mailer raised while emailing %s", recipient)
                delivered = False

        log.status = EmailStatus.SENT if delivered else EmailStatus.NOT_SENT
        log.sent_date = datetime.now()
        result = self._repository.create(log)
        if not result.ok:
            logger.warning("Could not record email log for appointment %s: %s", appointment.id, result.message)
        return log

    def history(self) -> List[Tuple[str, EmailLog]]:
        return sorted(self._repository.all().items(), key=lambda item: item[1].sent_date)


__all__ = ["Mailer", "NotificationService", "SUBJECTS", "render_body"]
