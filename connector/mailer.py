"""Email dispatch through an Apps Script web hook."""
from __future__ import annotations

import logging
import os
from typing import Optional

import requests

from .firebase_client import DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

DEFAULT_EMAIL_WEBHOOK_URL = os.getenv("EMAIL_WEBHOOK_URL")


class AppsScriptMailer:
    """Posts HTML emails to a web hook that relays them to the recipient."""

    def __init__(
        self,
        *,
        webhook_url: Optional[str] = DEFAULT_EMAIL_WEBHOOK_URL,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not webhook_url:
            raise ValueError("webhook_url must be provided")
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._session = session or requests.Session()

    def send(self, recipient: str, subject: str, html_body: str) -> bool:
        """Return whether the hook accepted the message."""

        payload = {
            "patientEmail": recipient,
            "subject": subject,
            "body": html_body,
            "isHtml": True,
        }
        try:
            response = self._session.post(self.webhook_url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("Email dispatch to %s failed: %s", recipient, exc)
            return False

        if not response.ok:
            logger.error("Email hook rejected message: status=%s body=%s", response.status_code, response.text[:512])
            return False
        logger.info("Email '%s' sent to %s", subject, recipient)
        return True


__all__ = ["AppsScriptMailer"]
