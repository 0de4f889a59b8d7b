"""
Unit tests for section readers and writers
Tests tempo synthesis, crossfades, lanes, stretch markers, FX and envelopes
"""
import pytest

from session_migrator.core.config import MigrationConfig
from session_migrator.core.keys import (
    fade_shape_name,
    normalize_take_envelope_name,
    normalize_track_envelope_name,
    pan_mode_name,
)
from session_migrator.core.logging import migration_logger
from session_migrator.core.matching import MergePlan
from session_migrator.core.result import WriteReport
from session_migrator.core.snapshot import (
    Envelope,
    EnvelopePoint,
    FxState,
    ItemProperties,
    ItemRecord,
    ProjectSnapshot,
    StretchMarker,
    TakeRecord,
    TakeStretchMarkers,
    TakeType,
    TempoMarker,
    TrackRecord,
)
from session_migrator.sections.base import WriteContext
from session_migrator.sections.envelopes import write_take_envelopes, write_track_envelopes
from session_migrator.sections.fx import write_fx_chain
from session_migrator.sections.items import (
    ItemsSection,
    crossfades_on_track,
    detect_crossfades,
    items_in_time_range,
    items_on_track,
    items_with_fades,
    reconcile_overlap,
)
from session_migrator.sections.markers import filter_by_kind, find_marker_by_name
from session_migrator.sections.stretch_markers import StretchMarkersSection, get_markers_for_take
from session_migrator.sections.take_markers import find_marker_by_name as find_take_marker_by_name
from session_migrator.sections.take_markers import get_markers_for_take as get_take_markers_for_take
from session_migrator.sections.takes import TakesSection, active_take_for_item, takes_by_type, takes_for_item
from session_migrator.sections.tempo import TempoSection, find_marker_at_time, get_tempo_at_time
from session_migrator.sections.tracks import (
    LANE_NOT_PLAYING,
    LANE_PLAYS_EXCLUSIVELY,
    TracksSection,
    filter_fixed_lane_tracks,
    get_active_lanes_for_track,
    get_track_by_name,
)
from session_migrator.store.memory import InMemoryDocumentStore
from session_migrator.store.models import Document, EnvelopeEntity, FxEntity, TakeEntity

from conftest import make_item, make_track


def item_record(track_index, item_index, position, length, lane=0, **props):
    return ItemRecord(
        track_index=track_index,
        item_index=item_index,
        properties=ItemProperties(position=position, length=length, fixed_lane=lane, **props),
    )


@pytest.mark.unit
class TestTempoSection:
    """Test tempo map read and write"""

    def test_empty_tempo_map_synthesizes_marker(self):
        store = InMemoryDocumentStore(Document(default_tempo=TempoMarker(bpm=87.0, numerator=6, denominator=8)))

        tempo = TempoSection().parse(store)["tempo"]

        assert len(tempo) == 1
        assert tempo[0].time == 0.0
        assert (tempo[0].bpm, tempo[0].numerator, tempo[0].denominator) == (87.0, 6, 8)

    def test_first_marker_updated_in_place(self):
        store = InMemoryDocumentStore(Document(tempo=[TempoMarker(bpm=120.0), TempoMarker(time=2.0, bpm=60.0)]))
        snapshot = ProjectSnapshot(tempo=[TempoMarker(bpm=90.0), TempoMarker(time=4.0, bpm=100.0)])
        config = MigrationConfig.model_validate({"tempo": {"clear_existing_markers": True}})

        report = TempoSection().write(store, snapshot, config, WriteContext())

        assert report.written == 2
        assert [(m.time, m.bpm) for m in store.document.tempo] == [(0.0, 90.0), (4.0, 100.0)]


@pytest.mark.unit
class TestCrossfades:
    """Test crossfade detection and overlap reconciliation"""

    def test_detects_overlap_on_same_lane_only(self):
        items = [
            item_record(0, 0, 0.0, 2.0, fade_out_shape=1),
            item_record(0, 1, 1.5, 2.0, fade_in_shape=5),
            item_record(0, 2, 1.0, 3.0, lane=1),
        ]

        crossfades = detect_crossfades(0, items[:2])
        assert len(crossfades) == 1
        xf = crossfades[0]
        assert (xf.overlap_start, xf.overlap_end) == (1.5, 2.0)
        assert xf.overlap_length == pytest.approx(0.5)
        assert (xf.item1_fadeout_shape, xf.item2_fadein_shape) == (1, 5)

        # Lane 1 item sorts between the lane 0 pair and breaks adjacency
        assert detect_crossfades(0, items) == []

    def test_reconcile_is_idempotent(self):
        first, second = make_item(0.0, 3.0), make_item(2.0, 2.0)
        store = InMemoryDocumentStore(Document(tracks=[make_track("T", items=[first, second])]))

        assert reconcile_overlap(store, first, second, 0.5)
        assert first.properties["length"] == pytest.approx(2.5)

        assert not reconcile_overlap(store, first, second, 0.5)
        assert first.properties["length"] == pytest.approx(2.5)

    def test_within_tolerance_left_alone(self):
        first, second = make_item(0.0, 2.5004), make_item(2.0, 2.0)
        store = InMemoryDocumentStore(Document(tracks=[make_track("T", items=[first, second])]))

        assert not reconcile_overlap(store, first, second, 0.5)
        assert first.properties["length"] == 2.5004

    def test_crossfade_pass_twice_keeps_overlap(self):
        first, second = make_item(0.0, 2.5), make_item(2.0, 2.0)
        store = InMemoryDocumentStore(Document(tracks=[make_track("T", items=[first, second])]))
        crossfades = detect_crossfades(0, [item_record(0, 0, 0.0, 2.5), item_record(0, 1, 2.0, 2.0)])
        context = WriteContext(item_mapping={(0, 0): first, (0, 1): second})
        section = ItemsSection()

        section.apply_crossfades(store, crossfades, context)
        report = section.apply_crossfades(store, crossfades, context)

        overlap = first.properties["position"] + first.properties["length"] - second.properties["position"]
        assert report.written == 1
        assert overlap == pytest.approx(0.5, abs=0.001)
        assert first.properties["fade_out_length"] == pytest.approx(0.5)
        assert second.properties["fade_in_length"] == pytest.approx(0.5)

    def test_missing_items_are_skipped(self):
        crossfades = detect_crossfades(3, [item_record(3, 0, 0.0, 2.0), item_record(3, 1, 1.0, 2.0)])

        report = ItemsSection().apply_crossfades(InMemoryDocumentStore(), crossfades, WriteContext())

        assert report.written == 0
        assert report.skipped[0].reason == "crossfade items were not created"


@pytest.mark.unit
class TestLanes:
    """Test fixed-lane configuration and lane playing states"""

    def test_lane_scenario(self, source_store, empty_store):
        snapshot = ProjectSnapshot(
            **TracksSection().parse(source_store),
            **ItemsSection().parse(source_store),
        )
        config = MigrationConfig()
        context = WriteContext()

        TracksSection().write(empty_store, snapshot, config, context)
        ItemsSection().write(empty_store, snapshot, config, context)
        TracksSection().apply_lane_playing_states(empty_store, snapshot, config, context)

        drums = empty_store.get_track(0)
        assert empty_store.get_lane_count(drums) >= 2
        assert empty_store.get_lane_name(drums, 0) == "Kick"
        assert empty_store.get_lane_name(drums, 1) == "Snare"

        states = {item.properties["fixed_lane"]: item.lane_plays for item in drums.items}
        assert states == {0: LANE_PLAYS_EXCLUSIVELY, 1: LANE_NOT_PLAYING}

    def test_active_lanes_read_from_playing_items(self, source_store):
        drums = TracksSection().parse(source_store)["tracks"][0]

        assert drums.lane_info.is_fixed_lane
        assert drums.lane_info.lane_count == 2
        assert drums.lane_info.lane_names == {0: "Kick", 1: "Snare"}
        assert drums.lane_info.active_lanes == {0}


@pytest.mark.unit
class TestMappingConsistency:
    """Test skips when an entity is not where the track mapping puts it"""

    def test_track_envelopes_skipped_off_mapped_index(self, empty_store):
        volume = Envelope(name="Volume", points=[EnvelopePoint(time=0.0, value=0.5)])
        snapshot = ProjectSnapshot(tracks={3: TrackRecord(index=3, name="Late", envelopes=[volume])})
        plan = MergePlan.identity([3])
        context = WriteContext(plan=plan, track_mapping=plan.mappings)

        report = TracksSection().write(empty_store, snapshot, MigrationConfig(), context)

        # Insertion clamps to the end of an empty track list
        track = empty_store.get_track(0)
        assert track.name == "Late"
        assert track.envelopes == []
        assert [(s.entity_key, s.reason) for s in report.skipped] == [
            ("track[3]/envelopes", "track is not at its mapped index"),
        ]

    def test_takes_skipped_when_item_is_off_its_mapped_track(self):
        item = make_item(0.0, 1.0, takes=[TakeEntity(name="Keep")])
        store = InMemoryDocumentStore(Document(tracks=[make_track("A", items=[item]), make_track("B")]))
        snapshot = ProjectSnapshot(takes=[TakeRecord(track_index=0, item_index=0, take_index=0, name="New")])
        context = WriteContext(track_mapping={0: 1}, item_mapping={(0, 0): item})

        report = TakesSection().write(store, snapshot, MigrationConfig(), context)

        assert report.written == 0
        assert [(s.entity_key, s.reason) for s in report.skipped] == [
            ("track[0]/item[0]", "item is not on its mapped track"),
        ]
        assert [t.name for t in item.takes] == ["Keep"]


@pytest.mark.unit
class TestStretchMarkers:
    """Test two-pass stretch marker write"""

    def test_stretch_scenario(self):
        take = TakeEntity()
        store = InMemoryDocumentStore(Document(tracks=[make_track("T", items=[make_item(0.0, 4.0, takes=[take])])]))
        markers = [
            StretchMarker(position=2.5, source_position=2.5, slope=-0.2),
            StretchMarker(position=0.0, source_position=0.0, slope=0.0),
            StretchMarker(position=1.0, source_position=1.0, slope=0.3),
        ]
        snapshot = ProjectSnapshot(stretch_markers=[
            TakeStretchMarkers(track_index=0, item_index=0, take_index=0, markers=markers),
        ])

        report = StretchMarkersSection().write(store, snapshot, MigrationConfig(), WriteContext())

        assert report.written == 3
        written = [store.get_stretch_marker(take, i) for i in range(store.count_stretch_markers(take))]
        assert [m.position for m in written] == [0.0, 1.0, 2.5]
        assert [m.slope for m in written] == [0.0, 0.3, -0.2]

    def test_missing_take_is_skipped(self, empty_store):
        snapshot = ProjectSnapshot(stretch_markers=[
            TakeStretchMarkers(
                track_index=5,
                item_index=0,
                take_index=0,
                markers=[StretchMarker(position=0.0, source_position=0.0)],
            ),
        ])

        report = StretchMarkersSection().write(empty_store, snapshot, MigrationConfig(), WriteContext())

        assert report
        assert report.written == 0
        assert [(s.entity_key, s.reason) for s in report.skipped] == [
            ("track[5]/item[0]/take[0]", "destination take not found"),
        ]


@pytest.mark.unit
class TestFxChains:
    """Test FX cloning and name-based reconstruction"""

    def test_clone_keeps_vendor_state(self, source_store, empty_store):
        source_track = source_store.get_track(0)
        dest_track = empty_store.insert_track(0)
        report = WriteReport(section="tracks")

        write_fx_chain(
            empty_store,
            dest_track,
            [FxState(name="ReaEQ")],
            report,
            "track[0]",
            source=source_store,
            source_owner=source_track,
        )

        assert dest_track.fx[0].state == "vendor-chunk"
        assert dest_track.fx[0] is not source_track.fx[0]
        assert report.fallbacks == []

    def test_rebuild_by_name_records_fallback(self, empty_store, monkeypatch):
        logged = []
        monkeypatch.setattr(migration_logger, "log_fallback", lambda *args: logged.append(args))
        dest_track = empty_store.insert_track(0)
        dest_track.fx.append(FxEntity(name="Old"))
        chain = [FxState(name="ReaComp", preset="Gentle", params=[0.1, 0.9], enabled=False)]
        report = WriteReport(section="tracks")

        write_fx_chain(empty_store, dest_track, chain, report, "track[0]")

        assert [fx.name for fx in dest_track.fx] == ["ReaComp"]
        fx = dest_track.fx[0]
        assert (fx.preset, fx.params, fx.enabled, fx.state) == ("Gentle", [0.1, 0.9], False, None)
        assert report.fallbacks[0].reason.startswith("fallback:")
        assert logged == [("tracks", "track[0]", "FX rebuilt by name")]

    def test_uninstalled_fx_dropped(self):
        store = InMemoryDocumentStore(Document(installed_fx=["ReaEQ"]))
        track = store.insert_track(0)

        write_fx_chain(store, track, [FxState(name="Missing"), FxState(name="ReaEQ")], WriteReport(section="t"), "t")

        assert [fx.name for fx in track.fx] == ["ReaEQ"]


@pytest.mark.unit
class TestEnvelopes:
    """Test envelope name normalization and writes"""

    @pytest.mark.parametrize("name,expected", [
        ("Volume", "volume"),
        ("Track Volume (Pre-FX)", "volume (pre-fx)"),
        ("Pan (ReaSurround)", "pan"),
        ("  Pan   (Pre-FX) ", "pan (pre-fx)"),
    ])
    def test_track_envelope_names(self, name, expected):
        assert normalize_track_envelope_name(name) == expected

    @pytest.mark.parametrize("name,expected", [
        ("Take Playrate", "rate"),
        ("Playrate", "rate"),
        ("Take Volume (Pre-FX)", "volume"),
        ("Mute", "mute"),
    ])
    def test_take_envelope_names(self, name, expected):
        assert normalize_take_envelope_name(name) == expected

    def test_track_envelope_replaces_points_and_automation(self, empty_store):
        track = empty_store.insert_track(0)
        existing = EnvelopeEntity(name="Volume", points=[EnvelopePoint(time=9.0, value=0.1)])
        track.envelopes.append(existing)
        empty_store.insert_automation_item(existing, 0.0, 1.0)

        envelope = Envelope(
            name="Track Volume",
            points=[EnvelopePoint(time=2.0, value=0.5), EnvelopePoint(time=0.0, value=1.0)],
        )
        report = WriteReport(section="tracks")
        write_track_envelopes(empty_store, track, [envelope], report, "track[0]")

        assert [p.time for p in existing.points] == [0.0, 2.0]
        assert existing.automation_items == []
        assert report.written == 1

    def test_unavailable_envelope_is_skipped(self, empty_store):
        track = empty_store.insert_track(0)
        report = WriteReport(section="tracks")

        write_track_envelopes(empty_store, track, [Envelope(name="Width")], report, "track[0]")

        assert report.skipped[0].reason == "envelope not available on destination"

    def test_take_envelope_created_on_demand(self, empty_store):
        take = TakeEntity()
        report = WriteReport(section="takes")

        write_take_envelopes(empty_store, take, [Envelope(name="Take Pitch", points=[EnvelopePoint()])], report, "t")

        assert [env.name for env in take.envelopes] == ["Pitch"]
        assert len(take.envelopes[0].points) == 1


@pytest.mark.unit
class TestQueryHelpers:
    """Test decoding tables and item filters"""

    def test_fade_shape_names(self):
        assert fade_shape_name(0) == "Linear"
        assert fade_shape_name(3) == "Slow Start/End"
        assert fade_shape_name(6) == "No Curve"
        assert fade_shape_name(42) == "Unknown"

    def test_pan_mode_names(self):
        assert pan_mode_name(5) == "Stereo Pan"
        assert pan_mode_name(2) == "Unknown"

    def test_item_filters(self):
        items = [
            item_record(0, 0, 0.0, 1.0),
            item_record(0, 1, 2.0, 1.0, fade_in_length=0.1),
            item_record(0, 2, 5.0, 1.0),
        ]

        assert [r.item_index for r in items_in_time_range(items, 0.5, 2.5)] == [0, 1]
        assert [r.item_index for r in items_with_fades(items)] == [1]

    def test_tempo_at_time(self, source_store):
        tempo = TempoSection().parse(source_store)["tempo"]

        assert get_tempo_at_time(source_store, 9.0) == (120.0, 3, 4)
        assert get_tempo_at_time(source_store, 2.0) == (96.0, 4, 4)
        assert find_marker_at_time(tempo, 8.0) == 1
        assert find_marker_at_time(tempo, 7.9) == 0
        assert find_marker_at_time(tempo[1:], 1.0) == -1

    def test_lane_and_take_marker_lookups(self, source_store, integrator):
        snapshot = integrator.parse_project(source_store)

        assert get_active_lanes_for_track(snapshot.tracks, 0) == {0}
        assert get_active_lanes_for_track(snapshot.tracks, 9) == set()
        assert [m.name for m in get_take_markers_for_take(snapshot.take_markers, 1, 0, 1).markers] == ["Drop"]
        assert get_take_markers_for_take(snapshot.take_markers, 1, 0, 0) is None

    def test_crossfades_on_track(self):
        overlapping = [item_record(0, 0, 0.0, 2.0), item_record(0, 1, 1.5, 2.0)]
        crossfades = detect_crossfades(0, overlapping) + detect_crossfades(1, [item_record(1, 0, 0.0, 1.0)])

        assert [(xf.item1_index, xf.item2_index) for xf in crossfades_on_track(crossfades, 0)] == [(0, 1)]
        assert crossfades_on_track(crossfades, 1) == []

    def test_snapshot_queries(self, source_store, integrator):
        snapshot = integrator.parse_project(source_store)

        assert get_track_by_name(snapshot.tracks, "Bass").index == 1
        assert [t.name for t in filter_fixed_lane_tracks(snapshot.tracks)] == ["Drums"]
        assert [t.name for t in takes_for_item(snapshot.takes, 1, 0)] == ["DI", "Synth"]
        assert active_take_for_item(snapshot.takes, 1, 0).name == "Synth"
        assert [t.name for t in takes_by_type(snapshot.takes, TakeType.MIDI)] == ["Synth"]
        assert [r.item_index for r in items_on_track(snapshot.items, 0)] == [0, 1]
        assert find_marker_by_name(snapshot.markers, "Verse").is_region
        assert [m.name for m in filter_by_kind(snapshot.markers, is_region=False)] == ["Intro"]
        assert get_markers_for_take(snapshot.stretch_markers, 1, 0, 1).take_name == "Synth"
        assert find_take_marker_by_name(snapshot.take_markers, "Drop").position == 0.5
