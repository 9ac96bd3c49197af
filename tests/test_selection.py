"""
Tests for selection weights, seeded sampling and view aggregates.
"""

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from retrieval.text_store import InMemoryTextStore
from selection.sampler import (
    date_seed,
    mulberry32,
    select_daily_entry,
    select_entry,
    select_random_entry,
    weighted_random_selection,
)
from selection.views import ViewLog, ViewType, build_stubs, daily_stubs
from selection.weighting import (
    EntryStub,
    WeightedEntry,
    calculate_base_weight,
    calculate_entry_weight,
    rating_multiplier,
    weigh_entries,
)

from .conftest import CORPUS

NOW = datetime(2025, 3, 14, tzinfo=timezone.utc)


class TestWeights:
    def test_never_seen(self):
        assert calculate_base_weight(EntryStub(id=1, source="meditations"), NOW) == 10.0

    def test_recharge_after_one_view(self):
        stub = EntryStub(id=1, source="meditations", view_count=1, last_seen=NOW - timedelta(days=30))
        assert calculate_base_weight(stub, NOW) == pytest.approx(1.0)

    def test_recharge_is_capped_and_decays_with_views(self):
        stub = EntryStub(id=1, source="meditations", view_count=3, last_seen=NOW - timedelta(days=300))
        assert calculate_base_weight(stub, NOW) == pytest.approx(2.5)

    def test_seen_without_timestamp_counts_as_recharged(self):
        stub = EntryStub(id=1, source="meditations", view_count=1)
        assert calculate_base_weight(stub, NOW) == pytest.approx(1.0)

    def test_just_seen_has_zero_weight(self):
        stub = EntryStub(id=1, source="meditations", view_count=2, last_seen=NOW)
        assert calculate_base_weight(stub, NOW) == 0.0

    def test_naive_timestamps_are_utc(self):
        stub = EntryStub(id=1, source="meditations", view_count=1, last_seen=datetime(2025, 2, 12))
        assert calculate_base_weight(stub, NOW) == pytest.approx(1.0)

    def test_rating_multiplier_rounds_half_up(self):
        assert rating_multiplier(None) == 1.0
        assert rating_multiplier(2.5) == 1.3
        assert rating_multiplier(1.4) == 0.7
        assert rating_multiplier(2.0) == 1.0

    def test_all_layers_multiply(self):
        stub = EntryStub(id=1, source="fragments", marked=True, avg_rating=3.0)
        # 10 * 1.3 * 0.75 * 1.3
        assert calculate_entry_weight(stub, NOW) == pytest.approx(12.675)

    def test_weigh_entries_keeps_stub_fields(self):
        (weighted,) = weigh_entries([EntryStub(id=4, source="discourses", marked=True)], NOW)
        assert isinstance(weighted, WeightedEntry)
        assert (weighted.id, weighted.source, weighted.marked) == (4, "discourses", True)
        assert weighted.weight == pytest.approx(10 * 1.3 * 0.85)


class TestSampler:
    def test_mulberry32_is_deterministic(self):
        a, b = mulberry32(42), mulberry32(42)
        first = [a() for _ in range(5)]
        assert first == [b() for _ in range(5)]
        assert all(0.0 <= x < 1.0 for x in first)
        assert first != [mulberry32(43)() for _ in range(5)]

    def test_date_seed(self):
        assert date_seed("ab") == 3105
        assert date_seed("") == 0
        assert date_seed("2025-03-14") != date_seed("2025-03-15")

    def test_zero_weights_are_never_picked(self):
        entries = [
            WeightedEntry(id=1, source="m", weight=0.0),
            WeightedEntry(id=2, source="m", weight=5.0),
            WeightedEntry(id=3, source="m", weight=0.0),
        ]
        rng = mulberry32(7)
        assert {weighted_random_selection(entries, rng).id for _ in range(200)} == {2}

    def test_empty_list_raises(self):
        with pytest.raises(ValueError):
            weighted_random_selection([], mulberry32(1))

    def test_selection_is_proportional_to_weight(self):
        entries = [WeightedEntry(id=i, source="m", weight=w) for i, w in enumerate([1.0, 2.0, 7.0])]
        rng = np.random.default_rng(12345).random
        trials = 20000
        counts = np.zeros(3)
        for _ in range(trials):
            counts[weighted_random_selection(entries, rng).id] += 1
        assert counts / trials == pytest.approx([0.1, 0.2, 0.7], abs=0.02)

    def test_daily_selection_is_stable_for_a_date(self):
        stubs = [EntryStub(id=i, source="meditations") for i in range(1, 30)]
        picks = {select_daily_entry(stubs, "2025-03-14") for _ in range(5)}
        assert len(picks) == 1
        assert select_entry(stubs, seed="2025-03-14") in picks

    def test_daily_selection_varies_across_dates(self):
        stubs = [EntryStub(id=i, source="meditations") for i in range(1, 30)]
        picks = {select_daily_entry(stubs, f"2025-03-{day:02d}") for day in range(1, 29)}
        assert len(picks) > 1

    def test_daily_selection_skips_just_seen_entries(self):
        stubs = [
            EntryStub(id=1, source="meditations", view_count=1, last_seen=datetime(2025, 3, 14, tzinfo=timezone.utc)),
            EntryStub(id=2, source="meditations"),
        ]
        assert select_daily_entry(stubs, "2025-03-14") == 2

    def test_random_selection_uses_given_source(self):
        stubs = [EntryStub(id=1, source="meditations"), EntryStub(id=2, source="meditations")]
        assert select_random_entry(stubs, rng=lambda: 0.99) == 1
        assert select_random_entry(stubs, rng=lambda: 0.0) == 2
        assert select_entry(stubs) in {1, 2}


class TestViews:
    def test_daily_views_deduplicated_per_day(self):
        log = ViewLog()
        first = log.record_view(5, ViewType.DAILY, NOW)
        again = log.record_view(5, "daily", NOW + timedelta(hours=3))
        assert again is first
        log.record_view(5, ViewType.RANDOM, NOW + timedelta(hours=4))
        log.record_view(5, ViewType.DAILY, NOW + timedelta(days=1))

        stats = log.aggregate(5)
        assert stats.view_count == 3
        assert stats.last_seen == NOW + timedelta(days=1)

    def test_average_of_recent_ratings(self):
        log = ViewLog()
        ratings = [1, 3, 3, 2]
        for day, rating in enumerate(ratings):
            record = log.record_view(9, ViewType.RANDOM, NOW + timedelta(days=day))
            log.rate(record.id, rating)

        # Latest three: 2, 3, 3
        assert log.aggregate(9).avg_rating == pytest.approx(8 / 3)

    def test_rate_validation(self):
        log = ViewLog()
        record = log.record_view(1, viewed_at=NOW)
        with pytest.raises(ValueError):
            log.rate(record.id, 4)
        with pytest.raises(KeyError):
            log.rate(999, 2)

    def test_unseen_aggregate(self):
        stats = ViewLog().aggregate(1)
        assert stats.view_count == 0
        assert stats.last_seen is None
        assert stats.avg_rating is None

    def test_build_stubs_from_store(self):
        store = InMemoryTextStore(CORPUS)
        log = ViewLog()
        marked = store.get("meditations", 2, "1")
        log.record_view(marked.id, viewed_at=NOW)

        stubs = build_stubs(store.reflectable_entries(), log)

        assert len(stubs) == 10
        first = stubs[0]
        assert (first.id, first.marked, first.view_count) == (marked.id, True, 1)
        assert all(s.source != "seneca-tranquillity" for s in stubs)
        assert select_daily_entry(stubs, "2025-03-14") != marked.id

    def test_aggregate_before_cutoff(self):
        log = ViewLog()
        log.rate(log.record_view(3, ViewType.RANDOM, NOW - timedelta(days=2)).id, 1)
        log.rate(log.record_view(3, ViewType.RANDOM, NOW + timedelta(hours=2)).id, 3)

        stats = log.aggregate(3, before=NOW)
        assert stats.view_count == 1
        assert stats.last_seen == NOW - timedelta(days=2)
        assert stats.avg_rating == 1.0
        assert log.aggregate(3, before=datetime(2025, 3, 1)).view_count == 0

    def test_daily_pick_survives_recording_the_days_view(self):
        store = InMemoryTextStore(CORPUS)
        log = ViewLog()
        entries = store.reflectable_entries()

        first = select_daily_entry(daily_stubs(entries, log, "2025-03-14"), "2025-03-14")
        log.record_view(first, ViewType.DAILY, datetime(2025, 3, 14, 8, tzinfo=timezone.utc))
        log.record_view(first, ViewType.RANDOM, datetime(2025, 3, 14, 9, tzinfo=timezone.utc))
        second = select_daily_entry(daily_stubs(entries, log, "2025-03-14"), "2025-03-14")

        assert second == first
        assert log.aggregate(first).view_count == 2

    def test_daily_stubs_count_earlier_days(self):
        store = InMemoryTextStore(CORPUS)
        log = ViewLog()
        log.record_view(1, ViewType.DAILY, datetime(2025, 3, 13, 8, tzinfo=timezone.utc))

        stubs = {s.id: s for s in daily_stubs(store.reflectable_entries(), log, "2025-03-14")}
        assert stubs[1].view_count == 1
        assert stubs[1].last_seen == datetime(2025, 3, 13, 8, tzinfo=timezone.utc)
