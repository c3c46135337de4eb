"""Cache, repository and loader that keep session state in step with the store."""

from .cache import EntityCache
from .loader import BulkLoader, LoadReport
from .repository import CollectionStore, Repository, build_repositories
from .results import FailureKind, OperationResult
from .scheduling import Availability, check_availability

__all__ = [
    "Availability",
    "BulkLoader",
    "CollectionStore",
    "EntityCache",
    "FailureKind",
    "LoadReport",
    "OperationResult",
    "Repository",
    "build_repositories",
    "check_availability",
]
