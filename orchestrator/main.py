"""Command line entry point for the hospital records console."""
from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

if __package__ is None or __package__ == "":  # pragma: no cover - runtime safety for script execution
    sys.path.append(str(Path(__file__).resolve().parent.parent))

from agents.people import PersonService
from orchestrator.session import HospitalSession
from records.models import Appointment, Doctor, EntityKind, Patient, Person, User, UserRole
from store.results import OperationResult

DATE_FORMAT = "%Y-%m-%d %H:%M"
PERSON_FIELDS = ("name", "document_number", "age", "address", "phone", "email")
ROLE_CHOICES = tuple(role.value.lower() for role in UserRole)


def _parse_when(value: str) -> datetime:
    try:
        return datetime.strptime(value, DATE_FORMAT)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Dates must look like 2025-01-01 09:00, got {value!r}") from exc


def _report(result: OperationResult) -> int:
    print(("OK: " if result.ok else "ERROR: ") + result.message)
    return 0


def _print_rows(rows: Iterable[Tuple[str, object]], describe) -> None:
    empty = True
    for key, record in rows:
        empty = False
        print(f"{key}  {describe(record)}")
    if empty:
        print("No records found.")


def _describe_appointment(appointment: Appointment) -> str:
    return (
        f"{appointment.appointment_date:{DATE_FORMAT}}  {appointment.status.value:<9}  "
        f"patient={appointment.patient_id} doctor={appointment.doctor_id}"
    )


def _by_document(session: HospitalSession, kind: EntityKind, document_number: str) -> Optional[Person]:
    target = document_number.strip().lower()
    for person in session.repositories[kind].values():
        if person.document_number.strip().lower() == target:
            return person
    return None


def _patient_by_document(session: HospitalSession, document_number: str) -> Optional[Patient]:
    return _by_document(session, EntityKind.PATIENT, document_number)


def _person_fields(args: argparse.Namespace) -> Dict[str, object]:
    """Person attributes given on the command line, skipping the ones left out."""

    names = list(PERSON_FIELDS)
    if args.command.endswith("doctor"):
        names.append("specialization")
    return {name: getattr(args, name) for name in names if getattr(args, name) is not None}


def _person_service(session: HospitalSession, command: str) -> PersonService:
    return session.doctors if command.endswith("doctor") else session.patients


def _register_person(session: HospitalSession, args: argparse.Namespace) -> int:
    model = Doctor if args.command.endswith("doctor") else Patient
    profile = model(**_person_fields(args))
    if args.username:
        if not args.password:
            print("ERROR: --password is required together with --username.")
            return 0
        return _report(session.users.register_with_profile(profile.name, args.username, args.password, profile))
    return _report(_person_service(session, args.command).register(profile))


def _update_person(session: HospitalSession, args: argparse.Namespace) -> int:
    service = _person_service(session, args.command)
    match = service.find(args.target)
    if match is None:
        print(f"ERROR: {service.noun.capitalize()} not found.")
        return 0
    replacement = dataclasses.replace(match[1], **_person_fields(args))
    return _report(service.update(args.target, replacement))


def _register_user(session: HospitalSession, args: argparse.Namespace) -> int:
    role = UserRole[args.role.upper()]
    kind = EntityKind.PATIENT if role is UserRole.PATIENT else EntityKind.DOCTOR
    profile = _by_document(session, kind, args.profile_document)
    if profile is None:
        print(f"ERROR: No {kind.label} has document number {args.profile_document}.")
        return 0
    user = User(name=args.name or profile.name, username=args.username, password=args.password, role=role,
                entity_id=profile.id)
    return _report(session.users.register(user))


def _update_user(session: HospitalSession, args: argparse.Namespace) -> int:
    match = session.users.find(args.target)
    if match is None:
        print("ERROR: User not found.")
        return 0
    existing = match[1]
    return _report(
        session.users.update(
            args.target,
            name=args.name or existing.name,
            username=args.username or existing.username,
            password=args.password or existing.password,
            role=UserRole[args.role.upper()] if args.role else existing.role,
        )
    )


def run_command(session: HospitalSession, args: argparse.Namespace) -> int:
    command = args.command
    if command == "sync":
        report = session.last_report or session.refresh()
        print(f"Loaded: {report.summary()}")
        for kind, message in report.failures.items():
            print(f"ERROR: {kind.collection}: {message}")
        return 0
    if command == "patients":
        _print_rows(session.patients.list(), lambda p: f"{p.name} ({p.document_number}) {p.email}")
        return 0
    if command == "doctors":
        _print_rows(session.doctors.list(), lambda d: f"{d.name} - {d.specialization} ({d.document_number})")
        return 0
    if command == "users":
        _print_rows(session.users.list(), lambda u: f"{u.username} [{u.role.value}] {u.name}")
        return 0
    if command == "emails":
        _print_rows(
            session.notifications.history(),
            lambda log: f"{log.sent_date:{DATE_FORMAT}}  {log.status.value:<7}  {log.recipient_email}",
        )
        return 0
    if command == "appointments":
        session.refresh(EntityKind.APPOINTMENT)
        if args.patient_document:
            patient = _patient_by_document(session, args.patient_document)
            if patient is None:
                print("ERROR: Patient not found.")
                return 0
            rows = session.appointments.list_for_patient(patient.id)
        elif args.doctor_name:
            match = session.doctors.find(args.doctor_name)
            if match is None:
                print("ERROR: Doctor not found.")
                return 0
            rows = session.appointments.list_for_doctor(match[1].id)
        else:
            rows = session.appointments.list_all()
        _print_rows(rows, _describe_appointment)
        return 0
    if command == "book":
        patient = _patient_by_document(session, args.patient_document)
        if patient is None:
            print("ERROR: Patient not found.")
            return 0
        if args.doctor_name:
            match = session.doctors.find(args.doctor_name)
            if match is None:
                print("ERROR: Doctor not found.")
                return 0
            return _report(session.appointments.book(patient.id, match[1].id, args.at))
        return _report(session.appointments.request(patient.id, args.symptoms, args.at))
    if command == "cancel":
        return _report(session.appointments.cancel(args.key))
    if command == "attend":
        return _report(session.appointments.mark_attended(args.key))
    if command in ("register-patient", "register-doctor"):
        return _register_person(session, args)
    if command in ("update-patient", "update-doctor"):
        return _update_person(session, args)
    if command in ("delete-patient", "delete-doctor"):
        return _report(_person_service(session, command).delete(args.target))
    if command == "register-user":
        return _register_user(session, args)
    if command == "update-user":
        return _update_user(session, args)
    raise ValueError(f"Unknown command {command!r}")


def _add_person_arguments(parser: argparse.ArgumentParser, *, required: bool, doctor: bool) -> None:
    parser.add_argument("--name", required=required)
    parser.add_argument("--document", dest="document_number", required=required, help="Identity document number")
    parser.add_argument("--age", type=int)
    parser.add_argument("--address")
    parser.add_argument("--phone")
    parser.add_argument("--email")
    if doctor:
        parser.add_argument("--specialization", required=required)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Hospital records console")
    parser.add_argument("--offline", action="store_true", help="Use an in-memory store instead of Firebase")
    parser.add_argument("--seed", type=Path, help="JSON export used to fill the in-memory store (with --offline)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("sync", help="Reload every collection from the store")
    commands.add_parser("patients", help="List patients")
    commands.add_parser("doctors", help="List doctors")
    commands.add_parser("users", help="List users")
    commands.add_parser("emails", help="Show the email history")

    listing = commands.add_parser("appointments", help="List appointments")
    scope = listing.add_mutually_exclusive_group()
    scope.add_argument("--patient-document", help="Only appointments of this patient")
    scope.add_argument("--doctor-name", help="Only appointments of this doctor")

    book = commands.add_parser("book", help="Book an appointment")
    book.add_argument("--patient-document", required=True)
    book.add_argument("--at", required=True, type=_parse_when, help="Date and time as YYYY-MM-DD HH:MM")
    target = book.add_mutually_exclusive_group(required=True)
    target.add_argument("--doctor-name", help="Book with this doctor")
    target.add_argument("--symptoms", help="Let the AI assistant choose a doctor")

    for name, description in (("cancel", "Cancel an appointment"), ("attend", "Mark an appointment attended")):
        sub = commands.add_parser(name, help=description)
        sub.add_argument("key", help="Appointment record key")

    for noun in ("patient", "doctor"):
        register = commands.add_parser(f"register-{noun}", help=f"Register a {noun}")
        _add_person_arguments(register, required=True, doctor=noun == "doctor")
        register.add_argument("--username", help="Also create a login linked to the new profile")
        register.add_argument("--password")

        update = commands.add_parser(f"update-{noun}", help=f"Edit a {noun} found by name")
        update.add_argument("target", help=f"Current name of the {noun}")
        _add_person_arguments(update, required=False, doctor=noun == "doctor")

        delete = commands.add_parser(f"delete-{noun}", help=f"Delete a {noun} by name")
        delete.add_argument("target", help=f"Name of the {noun}")

    register_user = commands.add_parser("register-user", help="Add a login for an existing profile")
    register_user.add_argument("--username", required=True)
    register_user.add_argument("--password", required=True)
    register_user.add_argument("--role", required=True, choices=ROLE_CHOICES)
    register_user.add_argument("--profile-document", required=True, help="Document number of the linked profile")
    register_user.add_argument("--name", help="Defaults to the profile's name")

    update_user = commands.add_parser("update-user", help="Edit a user found by username or name")
    update_user.add_argument("target", help="Username or name of the user")
    update_user.add_argument("--name")
    update_user.add_argument("--username")
    update_user.add_argument("--password")
    update_user.add_argument("--role", choices=ROLE_CHOICES)

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    session = HospitalSession.offline(seed=args.seed) if args.offline else HospitalSession.remote()
    with session:
        return run_command(session, args)


if __name__ == "__main__":
    sys.exit(main())
