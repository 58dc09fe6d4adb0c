"""Ingestion and deduplication filter.

Normalizes raw feed records, drops reports that repeat a stored event
(or one earlier in the same batch), and persists the rest. Malformed
records are logged and skipped without aborting the batch.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Iterable

from quakerisk.core.dedup import DEFAULT_WINDOW, RecentEventIndex, comparison_start
from quakerisk.core.errors import MalformedInputError
from quakerisk.core.event import Event, EventCandidate, normalize_record
from quakerisk.runtime import Clock, utc_now
from quakerisk.store import EventStore


logger = logging.getLogger(__name__)


class IngestOutcome(str, Enum):
    """What happened to one candidate record."""
    ADMITTED = "admitted"
    DUPLICATE_IGNORED = "duplicate_ignored"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class RecordResult:
    """Outcome for one input record.

    Attributes:
        index: Position of the record in the batch
        outcome: What happened to it
        event: Stored event (ADMITTED only)
        duplicate_of: Id of the stored event it repeats, when known
        error: Reason the record was rejected (MALFORMED only)
    """
    index: int
    outcome: IngestOutcome
    event: Event | None = None
    duplicate_of: str | None = None
    error: str | None = None


@dataclass
class IngestReport:
    """Outcome of one ingest call."""
    results: list[RecordResult] = field(default_factory=list)

    @property
    def admitted(self) -> list[Event]:
        return [r.event for r in self.results if r.outcome is IngestOutcome.ADMITTED]

    @property
    def duplicate_count(self) -> int:
        return sum(1 for r in self.results if r.outcome is IngestOutcome.DUPLICATE_IGNORED)

    @property
    def malformed_count(self) -> int:
        return sum(1 for r in self.results if r.outcome is IngestOutcome.MALFORMED)


class IngestionFilter:
    """Admits new events into the store exactly once."""

    def __init__(
        self,
        store: EventStore,
        clock: Clock = utc_now,
        window: timedelta = DEFAULT_WINDOW,
    ) -> None:
        """Initialize the filter.

        Args:
            store: Event store to read the window from and write to
            clock: Time source anchoring the dedup window
            window: How far back stored events are compared
        """
        self.store = store
        self.clock = clock
        self.window = window
        # Serializes batches so two concurrent ingests cannot both admit
        # the same occurrence.
        self._lock = threading.Lock()

    def ingest(self, records: Iterable[dict[str, Any] | EventCandidate]) -> list[Event]:
        """Admit the new events of a batch.

        Returns:
            Newly admitted events, in input order
        """
        return self.ingest_detailed(records).admitted

    def ingest_detailed(
        self,
        records: Iterable[dict[str, Any] | EventCandidate],
    ) -> IngestReport:
        """Admit the new events of a batch and report every outcome."""
        report = IngestReport()
        candidates: list[tuple[int, EventCandidate]] = []

        for position, record in enumerate(records):
            try:
                candidate = (
                    record if isinstance(record, EventCandidate)
                    else normalize_record(record)
                )
            except MalformedInputError as e:
                logger.warning("Skipping malformed record %d: %s", position, e)
                report.results.append(RecordResult(
                    index=position,
                    outcome=IngestOutcome.MALFORMED,
                    error=str(e),
                ))
                continue
            candidates.append((position, candidate))

        with self._lock:
            start = comparison_start(
                self.clock(),
                (candidate.time for _, candidate in candidates),
                self.window,
            )
            index = RecentEventIndex.build(self.store.events_since(start))

            for position, candidate in candidates:
                existing = index.find_duplicate(candidate)
                if existing is not None:
                    logger.debug("Ignoring duplicate report at %s", candidate.place)
                    report.results.append(RecordResult(
                        index=position,
                        outcome=IngestOutcome.DUPLICATE_IGNORED,
                        duplicate_of=getattr(existing, "id", None),
                    ))
                    continue

                event = self.store.create_event(candidate)
                index.add(event)
                report.results.append(RecordResult(
                    index=position,
                    outcome=IngestOutcome.ADMITTED,
                    event=event,
                ))

        report.results.sort(key=lambda r: r.index)

        logger.info(
            "Ingested batch: %d admitted, %d duplicates, %d malformed",
            len(report.admitted),
            report.duplicate_count,
            report.malformed_count,
        )

        return report
