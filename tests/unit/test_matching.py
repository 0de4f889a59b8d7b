"""
Unit tests for the matching engine
Tests track/take matching rules and merge plan construction
"""
import pytest

from session_migrator.core.config import MatchingConfig, MatchStrategy
from session_migrator.core.logging import migration_logger
from session_migrator.core.matching import (
    EntitySummary,
    MergePlan,
    build_plan,
    match_takes,
    match_tracks,
)
from session_migrator.core.snapshot import TakeRecord, TrackRecord
from session_migrator.store.memory import InMemoryDocumentStore
from session_migrator.store.models import Document, TrackEntity


def tracks(*names):
    return {i: TrackRecord(index=i, name=name) for i, name in enumerate(names)}


def summaries(*names):
    return [EntitySummary(index=i, name=name) for i, name in enumerate(names)]


def store_with(*names):
    return InMemoryDocumentStore(Document(tracks=[TrackEntity(name=n) for n in names]))


@pytest.mark.unit
class TestTrackMatching:
    """Test name and index matching of tracks"""

    def test_drums_bass_scenario(self):
        """Bass merges into destination 0, Drums is created at index 2"""
        plan = build_plan(store_with("Bass", "Vox"), tracks("Drums", "Bass"), MatchingConfig())

        assert plan.mappings == {1: 0, 0: 2}
        assert plan.to_create == [0]
        assert plan.dest_count == 2
        assert plan.merged() == [1]
        assert not plan.replace

    def test_matching_is_injective(self):
        """Duplicate names never map two sources onto one destination"""
        strategy = MatchStrategy(exact_name=True, index_fallback=True)
        matches = match_tracks(tracks("A", "A", "A", "B"), summaries("A", "B", "A"), strategy)

        matched = [d for d in matches.values() if d is not None]
        assert len(matched) == len(set(matched))

    def test_duplicate_names_resolve_in_source_order(self):
        matches = match_tracks(tracks("Gtr", "Gtr"), summaries("Gtr", "Keys", "Gtr"), MatchStrategy())

        assert matches == {0: 0, 1: 2}

    def test_unique_name_pair_is_always_matched(self):
        matches = match_tracks(tracks("Keys", "Pad", "Lead"), summaries("Lead", "Bass", "Pad"), MatchStrategy())

        assert matches[2] == 0
        assert matches[1] == 2
        assert matches[0] is None

    def test_index_fallback(self):
        strategy = MatchStrategy(exact_name=True, index_fallback=True)
        matches = match_tracks(tracks("Drums", "Bass"), summaries("Bass", "Vox"), strategy)

        # Drums is processed first and claims index 0 before Bass can match by name
        assert matches == {0: 0, 1: 1}

    def test_index_fallback_uses_free_index(self):
        strategy = MatchStrategy(exact_name=False, index_fallback=True)
        matches = match_tracks(tracks("One", "Two", "Three"), summaries("X", "Y"), strategy)

        assert matches == {0: 0, 1: 1, 2: None}

    def test_empty_names_do_not_match_by_name(self):
        matches = match_tracks(tracks(""), summaries(""), MatchStrategy())

        assert matches == {0: None}


@pytest.mark.unit
class TestMergePlan:
    """Test merge plan creation ordering"""

    def test_created_indices_follow_existing_tracks(self):
        plan = build_plan(store_with("A", "B", "C"), tracks("X", "B", "Y", "Z"), MatchingConfig())

        assert plan.to_create == [0, 2, 3]
        created = [plan.mappings[si] for si in plan.to_create]
        assert created == [3, 4, 5]
        assert all(index >= plan.dest_count for index in created)

    def test_fallback_create_off_drops_unmatched(self):
        plan = build_plan(
            store_with("Bass", "Vox"),
            tracks("Drums", "Bass"),
            MatchingConfig(fallback_create=False),
        )

        assert plan.mappings == {1: 0}
        assert plan.to_create == []

    @pytest.mark.parametrize("fallback_create", [True, False])
    def test_unmatched_outcome_is_logged(self, monkeypatch, fallback_create):
        logged = []
        monkeypatch.setattr(
            migration_logger, "log_unmatched", lambda name, created: logged.append((name, created))
        )

        build_plan(store_with("Bass"), tracks("Drums", "Bass"), MatchingConfig(fallback_create=fallback_create))

        assert logged == [("Drums", fallback_create)]

    def test_destination_names_are_read_at_call_time(self):
        store = store_with("Old")
        store.set_track_name(store.get_track(0), "Drums")

        plan = build_plan(store, tracks("Drums"), MatchingConfig())

        assert plan.mappings == {0: 0}

    def test_identity_plan(self):
        plan = MergePlan.identity([2, 0, 1])

        assert plan.replace
        assert plan.mappings == {0: 0, 1: 1, 2: 2}
        assert plan.is_created(2)
        assert plan.merged() == []


@pytest.mark.unit
class TestTakeMatching:
    """Test take matching within one item"""

    def test_takes_match_by_name(self):
        takes = [
            TakeRecord(track_index=0, item_index=0, take_index=0, name="Take 1"),
            TakeRecord(track_index=0, item_index=0, take_index=1, name="Comp"),
        ]
        matches = match_takes(takes, summaries("Comp", "Other"), MatchStrategy())

        assert matches == {0: None, 1: 0}
