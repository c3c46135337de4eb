import unittest
import uuid
from datetime import datetime, timedelta
from unittest.mock import MagicMock

from connector.errors import SelectorUnavailableError
from connector.gemini_client import DoctorSelection, GeminiDoctorSelector
from connector.memory import build_collections
from orchestrator.session import HospitalSession
from records.models import AppointmentStatus, Doctor, EmailStatus, EntityKind, Patient
from store.results import FailureKind

NINE_AM = datetime(2025, 1, 1, 9, 0)


class AppointmentServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.collections = build_collections()
        self.selector = MagicMock()
        self.mailer = MagicMock()
        self.mailer.send.return_value = True
        self.session = HospitalSession(self.collections, selector=self.selector, mailer=self.mailer)
        self.session.start()

        self.patient = Patient(name="Ana Lopez", email="ana@example.com", document_number="P-1")
        self.doctor = Doctor(name="Gregory House", document_number="D-1", specialization="Diagnostics")
        self.session.patients.register(self.patient)
        self.doctor_key = self.session.doctors.register(self.doctor).key

    def _book(self, when: datetime = NINE_AM):
        return self.session.appointments.book(self.patient.id, self.doctor.id, when)

    def _email_logs(self):
        return [log for _, log in self.session.notifications.history()]

    def test_book_creates_appointment_links_owners_and_emails_patient(self) -> None:
        result = self._book()

        self.assertTrue(result.ok)
        self.assertEqual(result.message, "Appointment successfully created with Dr. Gregory House on 2025-01-01 09:00")
        appointment = result.value
        self.assertIs(self.session.repositories[EntityKind.APPOINTMENT].get(result.key), appointment)
        self.assertEqual(self.session.doctors.find("Gregory House")[1].appointment_ids, [appointment.id])
        self.assertEqual(self.session.patients.find("Ana Lopez")[1].appointment_ids, [appointment.id])
        self.assertEqual(
            self.collections[EntityKind.DOCTOR].documents[self.doctor_key]["appointmentIds"], [str(appointment.id)]
        )
        self.mailer.send.assert_called_once()
        recipient, subject, _ = self.mailer.send.call_args[0]
        self.assertEqual(recipient, "ana@example.com")
        self.assertEqual(subject, "Medical Appointment Confirmation")
        self.assertEqual([log.status for log in self._email_logs()], [EmailStatus.SENT])

    def test_conflicting_slot_is_rejected_without_writes(self) -> None:
        self._book()
        self.mailer.send.reset_mock()
        calls_before = list(self.collections[EntityKind.APPOINTMENT].calls)

        result = self._book(NINE_AM + timedelta(minutes=30))

        self.assertIs(result.failure, FailureKind.CONFLICT)
        self.assertEqual(result.message, "Doctor Gregory House is NOT available at that date/time.")
        self.assertEqual(self.collections[EntityKind.APPOINTMENT].calls, calls_before)
        self.mailer.send.assert_not_called()

    def test_slot_after_the_hour_is_accepted(self) -> None:
        self._book()

        self.assertTrue(self._book(datetime(2025, 1, 1, 10, 1)).ok)
        self.assertEqual(len(self.session.appointments.list_all()), 2)

    def test_failed_email_is_logged_but_booking_succeeds(self) -> None:
        self.mailer.send.return_value = False

        result = self._book()

        self.assertTrue(result.ok)
        self.assertEqual([log.status for log in self._email_logs()], [EmailStatus.NOT_SENT])

    def test_mailer_exception_does_not_break_booking(self) -> None:
        self.mailer.send.side_effect = RuntimeError("smtp exploded")

        result = self._book()

        self.assertTrue(result.ok)
        self.assertEqual([log.status for log in self._email_logs()], [EmailStatus.NOT_SENT])

    def test_store_failure_reports_transport_and_sends_nothing(self) -> None:
        self.collections[EntityKind.APPOINTMENT].fail = True

        result = self._book()

        self.assertIs(result.failure, FailureKind.TRANSPORT)
        self.assertEqual(self.session.appointments.list_all(), [])
        self.mailer.send.assert_not_called()
        self.assertEqual(self._email_logs(), [])

    def test_unknown_patient_is_not_found(self) -> None:
        result = self.session.appointments.book(uuid.uuid4(), self.doctor.id, NINE_AM)

        self.assertIs(result.failure, FailureKind.NOT_FOUND)

    def test_request_books_doctor_chosen_by_selector(self) -> None:
        self.selector.select_doctor.return_value = DoctorSelection(doctor_id=self.doctor.id, reason="Diagnostics fits")

        result = self.session.appointments.request(self.patient.id, "mystery fever", NINE_AM)

        self.assertTrue(result.ok)
        self.assertIn("Diagnostics fits", result.message)
        symptoms, doctors = self.selector.select_doctor.call_args[0]
        self.assertEqual(symptoms, "mystery fever")
        self.assertEqual([doctor.id for doctor in doctors], [self.doctor.id])

    def test_request_with_unknown_doctor_is_malformed(self) -> None:
        self.selector.select_doctor.return_value = DoctorSelection(doctor_id=uuid.uuid4(), reason="made up")

        result = self.session.appointments.request(self.patient.id, "cough", NINE_AM)

        self.assertIs(result.failure, FailureKind.MALFORMED)
        self.assertEqual(self.session.appointments.list_all(), [])

    def test_unreadable_model_reply_books_nothing(self) -> None:
        http = MagicMock()
        response = MagicMock(ok=True, status_code=200)
        response.json.return_value = {
            "candidates": [{"content": {"parts": [{"text": "I would pick Dr. House, he is great."}]}}]
        }
        http.post.return_value = response
        session = HospitalSession(
            self.collections, selector=GeminiDoctorSelector(api_key="test-key", session=http), mailer=self.mailer
        )
        session.start()

        result = session.appointments.request(self.patient.id, "cough", NINE_AM)

        self.assertIs(result.failure, FailureKind.MALFORMED)
        self.assertEqual(result.message, "No doctor could be assigned by AI.")
        self.assertEqual(self.collections[EntityKind.APPOINTMENT].documents, {})

    def test_unavailable_selector_reports_transport(self) -> None:
        self.selector.select_doctor.side_effect = SelectorUnavailableError("service down")

        result = self.session.appointments.request(self.patient.id, "cough", NINE_AM)

        self.assertIs(result.failure, FailureKind.TRANSPORT)

    def test_request_without_selector_reports_transport(self) -> None:
        session = HospitalSession(self.collections)
        session.start()

        result = session.appointments.request(self.patient.id, "cough", NINE_AM)

        self.assertIs(result.failure, FailureKind.TRANSPORT)


class AppointmentStatusChangeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.collections = build_collections()
        self.mailer = MagicMock()
        self.mailer.send.return_value = True
        self.session = HospitalSession(self.collections, mailer=self.mailer)
        self.session.start()
        self.patient = Patient(name="Ana Lopez", email="ana@example.com", document_number="P-1")
        self.doctor = Doctor(name="Gregory House", document_number="D-1")
        self.session.patients.register(self.patient)
        self.session.doctors.register(self.doctor)
        self.key = self.session.appointments.book(self.patient.id, self.doctor.id, NINE_AM).key
        self.mailer.send.reset_mock()

    def _status(self) -> AppointmentStatus:
        return self.session.repositories[EntityKind.APPOINTMENT].get(self.key).status

    def test_cancel_updates_store_and_notifies_patient(self) -> None:
        result = self.session.appointments.cancel(self.key)

        self.assertTrue(result.ok)
        self.assertIs(self._status(), AppointmentStatus.CANCELED)
        self.assertEqual(self.collections[EntityKind.APPOINTMENT].documents[self.key]["status"], 2)
        self.assertEqual(self.mailer.send.call_args[0][1], "Medical Appointment Cancellation")

    def test_terminal_appointment_cannot_change_again(self) -> None:
        self.session.appointments.cancel(self.key)

        self.assertIs(self.session.appointments.cancel(self.key).failure, FailureKind.CONFLICT)
        self.assertIs(self.session.appointments.mark_attended(self.key).failure, FailureKind.CONFLICT)
        self.assertIs(self._status(), AppointmentStatus.CANCELED)

    def test_mark_attended(self) -> None:
        result = self.session.appointments.mark_attended(self.key)

        self.assertTrue(result.ok)
        self.assertIs(self._status(), AppointmentStatus.ATTENDED)
        self.mailer.send.assert_not_called()

    def test_failed_cancel_keeps_cached_status(self) -> None:
        self.collections[EntityKind.APPOINTMENT].fail = True

        result = self.session.appointments.cancel(self.key)

        self.assertIs(result.failure, FailureKind.TRANSPORT)
        self.assertIs(self._status(), AppointmentStatus.SCHEDULED)
        self.mailer.send.assert_not_called()

    def test_unknown_key_is_not_found(self) -> None:
        self.assertIs(self.session.appointments.cancel("missing").failure, FailureKind.NOT_FOUND)

    def test_listings_are_sorted_by_date(self) -> None:
        other_doctor = Doctor(name="Lisa Cuddy", document_number="D-2")
        self.session.doctors.register(other_doctor)
        self.session.appointments.book(self.patient.id, other_doctor.id, NINE_AM - timedelta(days=1))
        self.session.appointments.book(self.patient.id, other_doctor.id, NINE_AM + timedelta(days=1))

        dates = [appt.appointment_date for _, appt in self.session.appointments.list_for_patient(self.patient.id)]

        self.assertEqual(dates, sorted(dates))
        self.assertEqual(len(dates), 3)
        self.assertEqual(len(self.session.appointments.list_for_doctor(self.doctor.id)), 1)

    def test_scheduled_excludes_closed_appointments(self) -> None:
        self.session.appointments.mark_attended(self.key)

        self.assertEqual(self.session.appointments.scheduled(), [])


if __name__ == "__main__":
    unittest.main()
