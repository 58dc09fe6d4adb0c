"""Tests for the ingestion and deduplication filter."""

import random
import threading
import pytest
from datetime import datetime, timedelta, timezone

from quakerisk.core.event import EventCandidate
from quakerisk.ingestion import IngestionFilter, IngestOutcome
from quakerisk.store import EventStore


NOW = datetime(2024, 3, 2, 12, 0, 0, tzinfo=timezone.utc)
T0 = NOW - timedelta(hours=1)


def make_candidate(place="Tokyo Bay", magnitude=7.2, time=T0):
    return EventCandidate(
        place=place,
        magnitude=magnitude,
        depth_km=8.0,
        latitude=35.6762,
        longitude=139.6503,
        time=time,
    )


def make_record(place="Tokyo Bay", magnitude=7.2, time=T0):
    """A USGS-shaped feature."""
    return {
        "id": "us7000abcd",
        "properties": {
            "place": place,
            "mag": magnitude,
            "time": int(time.timestamp() * 1000),
        },
        "geometry": {"coordinates": [139.6503, 35.6762, 8.0]},
    }


@pytest.fixture
def store():
    return EventStore(rng=random.Random(3), clock=lambda: NOW)


@pytest.fixture
def ingestion(store):
    return IngestionFilter(store, clock=lambda: NOW)


class TestIngest:
    """Tests for IngestionFilter.ingest()."""

    def test_admits_new_events(self, ingestion, store):
        admitted = ingestion.ingest([make_record(), make_record(place="Chile")])

        assert [e.place for e in admitted] == ["Tokyo Bay", "Chile"]
        assert len(store.all_events()) == 2

    def test_repeat_report_is_ignored(self, ingestion, store):
        """A: stored. B: a repeat within tolerance. C: five minutes later."""
        a = make_candidate()
        b = make_candidate(magnitude=7.25, time=T0 + timedelta(minutes=2))
        c = make_candidate(time=T0 + timedelta(minutes=5))

        assert len(ingestion.ingest([a])) == 1
        report = ingestion.ingest_detailed([b, c])

        assert [r.outcome for r in report.results] == [
            IngestOutcome.DUPLICATE_IGNORED,
            IngestOutcome.ADMITTED,
        ]
        assert report.results[0].duplicate_of == store.all_events()[0].id
        assert len(store.all_events()) == 2

    def test_repeats_within_one_batch(self, ingestion, store):
        first = make_candidate()
        second = make_candidate(magnitude=7.21, time=T0 + timedelta(minutes=1))

        admitted = ingestion.ingest([first, second])

        assert len(admitted) == 1
        assert len(store.all_events()) == 1

    def test_reingesting_same_batch_admits_nothing(self, ingestion, store):
        batch = [make_record(), make_record(place="Chile")]
        ingestion.ingest(batch)

        assert ingestion.ingest(batch) == []
        assert len(store.all_events()) == 2

    def test_stored_event_just_outside_window_still_matches(self, store):
        """A repeat inside the window matches a report just before it."""
        a_time = NOW - timedelta(hours=1)
        IngestionFilter(store, clock=lambda: NOW).ingest(
            [make_candidate(magnitude=5.0, time=a_time)]
        )

        later = IngestionFilter(
            store, clock=lambda: a_time + timedelta(hours=24, seconds=30)
        )
        repeat = make_candidate(magnitude=5.05, time=a_time + timedelta(minutes=2))

        assert later.ingest([repeat]) == []
        assert len(store.all_events()) == 1

    def test_old_candidate_matches_old_stored_event(self, store):
        """Candidates older than the window are still compared."""
        old_time = NOW - timedelta(hours=30)
        IngestionFilter(store, clock=lambda: NOW).ingest([make_candidate(time=old_time)])

        later = IngestionFilter(store, clock=lambda: NOW + timedelta(hours=1))

        assert later.ingest([make_candidate(time=old_time)]) == []
        assert len(store.all_events()) == 1

    def test_same_time_magnitude_scenario(self, ingestion, store):
        """A 5.0 stored; 5.05 at the same time repeats it; 5.2 is new."""
        assert len(ingestion.ingest([make_candidate(magnitude=5.0)])) == 1

        report = ingestion.ingest_detailed([
            make_candidate(magnitude=5.05),
            make_candidate(magnitude=5.2),
        ])

        assert [r.outcome for r in report.results] == [
            IngestOutcome.DUPLICATE_IGNORED,
            IngestOutcome.ADMITTED,
        ]
        assert sorted(e.magnitude for e in store.all_events()) == [5.0, 5.2]

    def test_magnitudes_one_tenth_apart_are_both_admitted(self, ingestion):
        admitted = ingestion.ingest([make_candidate(magnitude=4.5), make_candidate(magnitude=4.6)])
        assert [e.magnitude for e in admitted] == [4.5, 4.6]

    def test_malformed_record_is_skipped(self, ingestion, store):
        bad = make_record()
        del bad["geometry"]

        report = ingestion.ingest_detailed([bad, make_record(place="Chile")])

        assert [r.outcome for r in report.results] == [
            IngestOutcome.MALFORMED,
            IngestOutcome.ADMITTED,
        ]
        assert report.malformed_count == 1
        assert report.results[0].error
        assert [e.place for e in store.all_events()] == ["Chile"]

    def test_badly_shaped_records_do_not_end_batch(self, ingestion, store):
        """Records of the wrong shape are malformed, not fatal."""
        bad_properties = make_record()
        bad_properties["properties"] = ["oops"]
        bad_coordinates = make_record(place="Fiji")
        bad_coordinates["geometry"]["coordinates"] = {"lon": 1.0, "lat": 2.0}

        report = ingestion.ingest_detailed([
            make_record(place="Chile"),
            bad_properties,
            bad_coordinates,
            make_record(place="Peru"),
        ])

        assert [r.outcome for r in report.results] == [
            IngestOutcome.ADMITTED,
            IngestOutcome.MALFORMED,
            IngestOutcome.MALFORMED,
            IngestOutcome.ADMITTED,
        ]
        assert [r.index for r in report.results] == [0, 1, 2, 3]
        assert [e.place for e in report.admitted] == ["Chile", "Peru"]

    def test_empty_batch(self, ingestion):
        report = ingestion.ingest_detailed([])
        assert report.admitted == []
        assert report.duplicate_count == 0


class TestConcurrentIngest:
    """Concurrent batches must admit an occurrence once."""

    def test_parallel_identical_batches(self, ingestion, store):
        batch = [make_candidate(), make_candidate(place="Chile")]
        start = threading.Barrier(8)

        def worker():
            start.wait()
            ingestion.ingest(batch)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.all_events()) == 2
