"""Doctor selection through the Gemini ``generateContent`` REST API."""
from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import requests

from records.models import Doctor

from .errors import SelectorUnavailableError
from .firebase_client import DEFAULT_BACKOFF_FACTOR, DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT_SECONDS, build_session

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/models"
)
DEFAULT_GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
DEFAULT_GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")

UNRESOLVED_REASON = "The doctor could not be determined."

PROMPT_TEMPLATE = """
You have the following doctors: {doctors}.
Based on the patient's symptoms: "{symptoms}",
choose the most suitable doctor and respond ONLY in EXACT JSON format like this:
{{
  "selectedDoctorId": "doctor_id_here",
  "reason": "brief explanation of why you selected this doctor"
}}"""


@dataclass(frozen=True)
class DoctorSelection:
    """Doctor picked for a symptom description; ``doctor_id`` is None when unresolved."""

    doctor_id: Optional[uuid.UUID]
    reason: str

    @property
    def resolved(self) -> bool:
        return self.doctor_id is not None

    @classmethod
    def unresolved(cls, reason: str = UNRESOLVED_REASON) -> "DoctorSelection":
        return cls(doctor_id=None, reason=reason)


def _strip_code_fences(text: str) -> str:
    return text.replace("```json", "").replace("```", "").strip()


def parse_selection(text: Optional[str]) -> DoctorSelection:
    """Turn the model's reply into a selection, degrading to unresolved."""

    if not text:
        return DoctorSelection.unresolved()
    try:
        data = json.loads(_strip_code_fences(text))
    except ValueError:
        logger.warning("Doctor selection reply was not valid JSON: %.200s", text)
        return DoctorSelection.unresolved()
    if not isinstance(data, dict):
        return DoctorSelection.unresolved()

    lowered = {str(key).lower(): value for key, value in data.items()}
    raw_id = lowered.get("selecteddoctorid")
    reason = str(lowered.get("reason") or "")
    try:
        doctor_id = uuid.UUID(str(raw_id)) if raw_id else None
    except ValueError:
        logger.warning("Doctor selection reply carried an invalid id: %r", raw_id)
        return DoctorSelection.unresolved()
    if doctor_id is None or doctor_id.int == 0:
        return DoctorSelection.unresolved(reason or UNRESOLVED_REASON)
    return DoctorSelection(doctor_id=doctor_id, reason=reason)


class GeminiDoctorSelector:
    """Ranks doctors against a symptom description using Gemini."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = DEFAULT_GEMINI_API_KEY,
        model: str = DEFAULT_GEMINI_MODEL,
        base_url: str = DEFAULT_GEMINI_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key must be provided")
        self.api_key = api_key
        self.url = f"{base_url.rstrip('/')}/{model}:generateContent"
        self.timeout = timeout
        self._session = session or build_session(
            max_retries=DEFAULT_MAX_RETRIES, backoff_factor=DEFAULT_BACKOFF_FACTOR
        )

    @staticmethod
    def build_prompt(symptoms: str, doctors: Iterable[Doctor]) -> str:
        listing = ", ".join(f"{doctor.id}:{doctor.name}-{doctor.specialization}" for doctor in doctors)
        return PROMPT_TEMPLATE.format(doctors=listing, symptoms=symptoms)

    def select_doctor(self, symptoms: str, doctors: Iterable[Doctor]) -> DoctorSelection:
        body: Dict[str, Any] = {
            "contents": [{"parts": [{"text": self.build_prompt(symptoms, doctors)}]}]
        }
        try:
            response = self._session.post(
                self.url,
                params={"key": self.api_key},
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Gemini request failed: %s", exc)
            raise SelectorUnavailableError("Doctor selection service is unreachable") from exc

        if not response.ok:
            logger.error("Gemini error response: status=%s body=%s", response.status_code, response.text[:2048])
            raise SelectorUnavailableError(
                f"Doctor selection service responded with status {response.status_code}"
            )

        try:
            text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError):
            logger.warning("Gemini response did not contain candidate text")
            return DoctorSelection.unresolved()
        return parse_selection(text if isinstance(text, str) else None)


__all__ = ["DoctorSelection", "GeminiDoctorSelector", "parse_selection"]
