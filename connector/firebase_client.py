"""Firebase Realtime Database client utilities.

This module provides the HTTP client used to persist hospital records in a
Firebase Realtime Database. Each entity kind lives in its own collection and
records are addressed as ``/<collection>/<id>.json``. The client manages the
HTTP session with retries and converts transport and decoding problems into
structured exceptions so that callers can report them without crashing.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional, Tuple, Union

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from records import codec
from records.models import EntityKind, EntityRecord, Named

from .errors import StoreNotFoundError, StoreSerializationError, StoreTransportError

__all__ = ["CollectionClient", "FirebaseClient", "build_session"]


# Handlers are left to the hosting application.
logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_FACTOR = 0.5

DEFAULT_DATABASE_URL = os.getenv(
    "FIREBASE_DATABASE_URL", "https://crud1-ab551-default-rtdb.firebaseio.com"
)
DEFAULT_AUTH_TOKEN = os.getenv("FIREBASE_AUTH_TOKEN", "")


def build_session(*, max_retries: int, backoff_factor: float) -> requests.Session:
    session = requests.Session()
    retry_strategy = Retry(
        total=max_retries,
        read=max_retries,
        connect=max_retries,
        status=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "PUT", "PATCH", "DELETE"),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class FirebaseClient:
    """Low level access to a Firebase Realtime Database over REST."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_DATABASE_URL,
        auth_token: Optional[str] = DEFAULT_AUTH_TOKEN,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must be provided")

        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token or ""
        self.timeout = timeout
        self._session = session or build_session(max_retries=max_retries, backoff_factor=backoff_factor)

    def collection(self, kind: EntityKind) -> "CollectionClient":
        return CollectionClient(self, kind)

    def close(self) -> None:
        self._session.close()

    def request(
        self,
        method: str,
        path: str,
        *,
        payload: Any = None,
        expected_status: Union[int, Tuple[int, ...]] = (200,),
    ) -> Any:
        """Send ``method`` to ``path`` and return the decoded JSON body."""

        if not path:
            raise ValueError("path must be provided")
        if isinstance(expected_status, int):
            expected_status = (expected_status,)

        url = f"{self.base_url}/{path.lstrip('/')}"
        params: Dict[str, str] = {}
        if self.auth_token:
            params["auth"] = self.auth_token

        logger.debug("%s %s", method.upper(), url)
        try:
            response = self._session.request(
                method=method.upper(),
                url=url,
                params=params or None,
                json=payload,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Request to Firebase failed: %s", exc)
            raise StoreTransportError(f"Failed to reach the document store: {exc}") from exc

        if response.status_code not in expected_status:
            self._log_error_response(response)
            raise StoreTransportError(
                f"Document store responded with unexpected status {response.status_code}"
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.error("Invalid JSON received from Firebase for %s", url)
            raise StoreSerializationError("Document store response was not valid JSON") from exc

    @staticmethod
    def _log_error_response(response: Response) -> None:
        content_type = response.headers.get("Content-Type", "")
        if "json" in content_type:
            try:
                parsed = response.json()
                logger.error("Firebase error response: status=%s body=%s", response.status_code, parsed)
                return
            except ValueError:
                pass
        logger.error("Firebase error response: status=%s body=%s", response.status_code, response.text[:2048])


class CollectionClient:
    """Typed CRUD against the collection that stores one entity kind."""

    def __init__(self, client: FirebaseClient, kind: EntityKind) -> None:
        self._client = client
        self.kind = kind

    def _record_path(self, record_id: str, field: Optional[str] = None) -> str:
        if not record_id:
            raise ValueError("record_id must be provided")
        if field:
            return f"{self.kind.collection}/{record_id}/{field}.json"
        return f"{self.kind.collection}/{record_id}.json"

    def _encode(self, entity: EntityRecord) -> Dict[str, Any]:
        try:
            payload = self.kind.check(entity).to_wire()
            # Fail here rather than inside requests.
            json.dumps(payload)
        except (TypeError, ValueError) as exc:
            raise StoreSerializationError(f"Could not encode {self.kind.label}: {exc}") from exc
        return payload

    def _decode(self, key: str, payload: Any) -> EntityRecord:
        try:
            return self.kind.decode(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise StoreSerializationError(f"Could not decode {self.kind.label} '{key}': {exc}") from exc

    def create(self, entity: EntityRecord) -> str:
        """Write a new record under its identifier, assigning one if needed."""

        record_id = str(self.kind.check(entity).ensure_id())
        self._client.request("PUT", self._record_path(record_id), payload=self._encode(entity))
        logger.info("Created %s %s", self.kind.label, record_id)
        return record_id

    def get_all(self) -> Dict[str, EntityRecord]:
        data = self._client.request("GET", f"{self.kind.collection}.json")
        if data is None:
            return {}
        if isinstance(data, list):
            data = {str(index): item for index, item in enumerate(data) if item is not None}
        if not isinstance(data, dict):
            raise StoreSerializationError(f"{self.kind.collection} collection must be a JSON object")

        records: Dict[str, EntityRecord] = {}
        for key, payload in data.items():
            try:
                records[str(key)] = self._decode(str(key), payload)
            except StoreSerializationError as exc:
                logger.warning("Skipping invalid %s record %s: %s", self.kind.label, key, exc)
        return records

    def get_by_id(self, record_id: str) -> EntityRecord:
        data = self._client.request("GET", self._record_path(record_id))
        if data is None:
            raise StoreNotFoundError(f"{self.kind.label.capitalize()} '{record_id}' not found")
        return self._decode(record_id, data)

    def update(self, record_id: str, entity: EntityRecord) -> None:
        self._client.request("PUT", self._record_path(record_id), payload=self._encode(entity))
        logger.info("Updated %s %s", self.kind.label, record_id)

    def update_field(self, record_id: str, field: str, value: Any) -> None:
        """Write a single attribute of a stored record.

        Firebase cannot PATCH arrays, so array values replace the whole field
        with PUT while scalar values are sent with PATCH.
        """

        if not field:
            raise ValueError("field must be provided")
        wire_field = codec.camel_case(field)
        encoded = codec.encode_value(value)
        method = "PUT" if codec.is_array_value(value) else "PATCH"
        logger.debug("%s field %s on %s %s", method, wire_field, self.kind.label, record_id)
        self._client.request(method, self._record_path(record_id, wire_field), payload=encoded)

    def delete_by_id(self, record_id: str) -> None:
        self._client.request("DELETE", self._record_path(record_id))
        logger.info("Deleted %s %s", self.kind.label, record_id)

    def delete_by_name(self, name: str) -> str:
        """Delete the first record whose display name matches ``name``."""

        target = name.strip().lower()
        for key, record in self.get_all().items():
            if isinstance(record, Named) and record.display_name().strip().lower() == target:
                self.delete_by_id(key)
                return key
        raise StoreNotFoundError(f"{self.kind.label.capitalize()} '{name}' not found")
