import io
import json
import tempfile
import unittest
import uuid
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

from connector.memory import build_collections, load_export
from orchestrator import main as cli
from orchestrator.session import HospitalSession
from records.models import Doctor, EntityKind, Patient


class CommandLineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.collections = build_collections()
        patient = Patient(name="Ana Lopez", email="ana@example.com", document_number="P-1", id=uuid.uuid4())
        doctor = Doctor(name="Gregory House", specialization="Diagnostics", document_number="D-1", id=uuid.uuid4())
        self.collections[EntityKind.PATIENT].documents[str(patient.id)] = patient.to_wire()
        self.collections[EntityKind.DOCTOR].documents[str(doctor.id)] = doctor.to_wire()
        self.session = HospitalSession(self.collections)

        self.offline_patcher = patch.object(cli.HospitalSession, "offline", return_value=self.session)
        self.offline_patcher.start()

    def tearDown(self) -> None:
        self.offline_patcher.stop()

    def _run(self, *argv: str) -> str:
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            exit_code = cli.main(["--offline", *argv])
        self.assertEqual(exit_code, 0)
        return buffer.getvalue()

    def test_sync_reports_counts(self) -> None:
        output = self._run("sync")

        self.assertIn("Patients=1", output)
        self.assertIn("Doctors=1", output)
        self.assertIn("Appointments=0", output)

    def test_patients_lists_seeded_records(self) -> None:
        self.assertIn("Ana Lopez (P-1)", self._run("patients"))

    def test_empty_listing(self) -> None:
        self.assertIn("No records found.", self._run("users"))

    def test_book_then_conflict(self) -> None:
        booked = self._run(
            "book", "--patient-document", "p-1", "--at", "2025-01-01 09:00", "--doctor-name", "gregory house"
        )
        conflict = self._run(
            "book", "--patient-document", "P-1", "--at", "2025-01-01 09:30", "--doctor-name", "Gregory House"
        )

        self.assertIn("OK: Appointment successfully created with Dr. Gregory House on 2025-01-01 09:00", booked)
        self.assertIn("ERROR: Doctor Gregory House is NOT available at that date/time.", conflict)
        self.assertEqual(len(self.collections[EntityKind.APPOINTMENT].documents), 1)
        self.assertIn("2025-01-01 09:00  Scheduled", self._run("appointments", "--doctor-name", "Gregory House"))

    def test_book_for_unknown_patient(self) -> None:
        output = self._run("book", "--patient-document", "X", "--at", "2025-01-01 09:00", "--doctor-name", "House")

        self.assertIn("ERROR: Patient not found.", output)

    def test_cancel_unknown_key(self) -> None:
        self.assertIn("ERROR: Appointment not found.", self._run("cancel", "missing"))

    def test_register_patient_with_login(self) -> None:
        output = self._run(
            "register-patient", "--name", "Luis Perez", "--document", "P-2", "--age", "41",
            "--email", "luis@example.com", "--username", "luis", "--password", "pw",
        )

        self.assertIn("OK: User registered successfully!", output)
        self.assertIn("luis [Patient] Luis Perez", self._run("users"))
        self.assertIn("Luis Perez (P-2) luis@example.com", self._run("patients"))

    def test_register_patient_with_taken_document(self) -> None:
        output = self._run("register-patient", "--name", "Someone Else", "--document", "p-1")

        self.assertIn("ERROR: This document number is already registered", output)
        self.assertEqual(len(self.collections[EntityKind.PATIENT].documents), 1)

    def test_register_doctor_then_user_for_it(self) -> None:
        registered = self._run(
            "register-doctor", "--name", "Lisa Cuddy", "--document", "D-2", "--specialization", "Endocrinology"
        )
        linked = self._run(
            "register-user", "--username", "cuddy", "--password", "pw", "--role", "doctor", "--profile-document", "D-2"
        )

        self.assertIn("OK: Doctor registered successfully!", registered)
        self.assertIn("OK: User registered successfully!", linked)
        self.assertIn("cuddy [Doctor] Lisa Cuddy", self._run("users"))

    def test_register_user_for_unknown_profile(self) -> None:
        output = self._run(
            "register-user", "--username", "x", "--password", "pw", "--role", "patient", "--profile-document", "nope"
        )

        self.assertIn("ERROR: No patient has document number nope.", output)

    def test_update_patient_keeps_untouched_fields(self) -> None:
        output = self._run("update-patient", "Ana Lopez", "--phone", "555-0199")

        self.assertIn("OK: Patient updated successfully!", output)
        patient = next(iter(self.collections[EntityKind.PATIENT].documents.values()))
        self.assertEqual(patient["phone"], "555-0199")
        self.assertEqual(patient["email"], "ana@example.com")
        self.assertEqual(patient["documentNumber"], "P-1")

    def test_update_doctor_specialization(self) -> None:
        self._run("update-doctor", "gregory house", "--specialization", "Nephrology")

        self.assertIn("Gregory House - Nephrology (D-1)", self._run("doctors"))

    def test_delete_doctor_by_name(self) -> None:
        self.assertIn("OK: Doctor 'Gregory House' was deleted successfully!", self._run("delete-doctor", "Gregory House"))
        self.assertEqual(self.collections[EntityKind.DOCTOR].documents, {})
        self.assertIn("ERROR: Patient not found.", self._run("delete-patient", "Nobody"))

    def test_update_user_cannot_change_linked_role(self) -> None:
        self._run("register-user", "--username", "ana", "--password", "pw", "--role", "patient",
                  "--profile-document", "P-1")

        changed = self._run("update-user", "ana", "--password", "new")
        flipped = self._run("update-user", "ana", "--role", "doctor")

        self.assertIn("OK: User updated successfully!", changed)
        self.assertIn("ERROR:", flipped)
        self.assertIn("ana [Patient] Ana Lopez", self._run("users"))

    def test_malformed_date_is_rejected_by_parser(self) -> None:
        with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit):
            cli.parse_args(["book", "--patient-document", "P-1", "--at", "tomorrow", "--doctor-name", "House"])


class OfflineSeedTests(unittest.TestCase):
    def test_offline_session_is_filled_from_export(self) -> None:
        doctor = Doctor(name="Gregory House", specialization="Diagnostics", document_number="D-1", id=uuid.uuid4())
        export = {"Doctors": {str(doctor.id): doctor.to_wire()}, "Invoices": {}}
        buffer = io.StringIO()
        with tempfile.TemporaryDirectory() as folder:
            path = Path(folder) / "export.json"
            path.write_text(json.dumps(export), encoding="utf-8")

            with redirect_stdout(buffer):
                cli.main(["--offline", "--seed", str(path), "doctors"])

        self.assertIn("Gregory House - Diagnostics (D-1)", buffer.getvalue())

    def test_export_must_be_keyed_by_collection(self) -> None:
        with tempfile.TemporaryDirectory() as folder:
            path = Path(folder) / "export.json"
            path.write_text("[]", encoding="utf-8")

            with self.assertRaises(ValueError):
                load_export(path)


if __name__ == "__main__":
    unittest.main()
