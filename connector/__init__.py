"""Connector interfaces for the hospital records platform."""

from .errors import (
    SelectorUnavailableError,
    StoreClientError,
    StoreNotFoundError,
    StoreSerializationError,
    StoreTransportError,
)
from .firebase_client import CollectionClient, FirebaseClient
from .gemini_client import DoctorSelection, GeminiDoctorSelector
from .mailer import AppsScriptMailer
from .memory import InMemoryCollection, build_collections, load_export

__all__ = [
    "AppsScriptMailer",
    "CollectionClient",
    "DoctorSelection",
    "FirebaseClient",
    "GeminiDoctorSelector",
    "InMemoryCollection",
    "SelectorUnavailableError",
    "StoreClientError",
    "StoreNotFoundError",
    "StoreSerializationError",
    "StoreTransportError",
    "build_collections",
    "load_export",
]
