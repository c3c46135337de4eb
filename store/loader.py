"""Bulk loading of the remote collections into the session cache."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping

from records.models import EntityKind

from .repository import Repository

logger = logging.getLogger(__name__)


@dataclass
class LoadReport:
    """Counts per loaded kind and the message for every kind that failed."""

    loaded: Dict[EntityKind, int] = field(default_factory=dict)
    failures: Dict[EntityKind, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        parts = [f"{kind.collection}={count}" for kind, count in self.loaded.items()]
        parts.extend(f"{kind.collection}=failed" for kind in self.failures)
        return ", ".join(parts)


class BulkLoader:
    """Replaces cache mappings wholesale with the store's collections.

    A kind whose fetch fails is emptied rather than left holding records
    from an earlier load.
    """

    def __init__(self, repositories: Mapping[EntityKind, Repository]) -> None:
        self._repositories = repositories

    def load_all(self) -> LoadReport:
        logger.info("Loading data from the document store")
        report = self.refresh(*EntityKind)
        if report.ok:
            logger.info("Data loaded successfully: %s", report.summary())
        else:
            logger.warning("Data loaded with failures: %s", report.summary())
        return report

    def refresh(self, *kinds: EntityKind) -> LoadReport:
        report = LoadReport()
        for kind in kinds:
            result = self._repositories[kind].refresh()
            if result.ok:
                report.loaded[kind] = result.value
            else:
                report.failures[kind] = result.message
        return report


__all__ = ["BulkLoader", "LoadReport"]
