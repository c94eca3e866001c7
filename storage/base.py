"""Store interface consumed by the ingestion runner."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from processor.models import CanonicalEvent, ErrorRecord, RunStatus, UpsertResult


class EventStore(ABC):
    """Events store with upsert-by-natural-key and append-only run logs."""

    @abstractmethod
    def find_source_by_name(self, name: str) -> Optional[str]:
        """Return the id of the source called ``name``, or None."""

    @abstractmethod
    def upsert_event(self, event: CanonicalEvent) -> UpsertResult:
        """
        Insert or replace an event keyed on (source_id, source_event_id).

        Implementations must report failures in the returned UpsertResult
        instead of raising.
        """

    @abstractmethod
    def create_run(self, source_id: str, started_at: datetime) -> str:
        """Record the start of a run and return its id."""

    @abstractmethod
    def finalize_run(
        self,
        run_id: str,
        finished_at: datetime,
        status: RunStatus,
        events_found: int = 0,
        events_upserted: int = 0,
        errors_count: int = 0,
        notes: Optional[Dict[str, Any]] = None
    ) -> None:
        """Write the terminal fields of a run. A run is finalized once."""

    @abstractmethod
    def append_errors(self, records: List[ErrorRecord]) -> None:
        """Batch-insert per-item error records."""
