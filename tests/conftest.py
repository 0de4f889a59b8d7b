"""
Session Migrator Testing Configuration
Pytest fixtures building in-memory project documents
"""
import mido
import pytest
import sys
from pathlib import Path

# Add src to Python path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from session_migrator.core.config import MigrationConfig, MigratorSettings
from session_migrator.core.integrator import Integrator
from session_migrator.core.snapshot import EnvelopePoint, ProjectMarker, TakeMarker, TempoMarker
from session_migrator.store.memory import InMemoryDocumentStore, pack_midi_events
from session_migrator.store.models import (
    Document,
    EnvelopeEntity,
    FxEntity,
    ItemEntity,
    StretchMarkerEntity,
    TakeEntity,
    TrackEntity,
)


def make_item(position: float, length: float, lane: int = 0, lane_plays: int = 0, takes=None, **props) -> ItemEntity:
    """Item with its position, length and fixed lane set"""
    item = ItemEntity(lane_plays=lane_plays, takes=takes or [])
    item.properties.update({"position": position, "length": length, "fixed_lane": lane, **props})
    return item


def make_track(name: str, items=None, **kwargs) -> TrackEntity:
    return TrackEntity(name=name, items=items or [], **kwargs)


MIDI_EVENTS = pack_midi_events([
    (0, mido.Message("note_on", note=36, velocity=100)),
    (240, mido.Message("note_off", note=36)),
    (0, mido.Message("note_on", note=38, velocity=90)),
    # Zero-velocity note-on ends the note
    (240, mido.Message("note_on", note=38, velocity=0)),
])


@pytest.fixture
def test_settings():
    """Settings isolated from the environment's config file and log file"""
    return MigratorSettings(LOG_FILE_PATH=None, MIGRATION_CONFIG_PATH=None, DEBUG=True)


@pytest.fixture
def migration_config():
    return MigrationConfig()


@pytest.fixture
def integrator(migration_config, test_settings):
    return Integrator(config=migration_config, settings=test_settings)


@pytest.fixture
def source_document():
    """
    Two-track source project

    "Drums" is a fixed-lane track (lanes Kick/Snare, lane 0 playing) with an
    EQ and a volume envelope. "Bass" holds one item with an audio take and a
    MIDI take carrying stretch and take markers.
    """
    drums = make_track(
        "Drums",
        items=[
            make_item(0.0, 2.0, lane=0, lane_plays=1, takes=[TakeEntity(name="Kick", source="kick.wav")]),
            make_item(0.0, 2.0, lane=1, lane_plays=0, takes=[TakeEntity(name="Snare", source="snare.wav")]),
        ],
        fixed_lanes=True,
        lane_names=["Kick", "Snare"],
        fx=[FxEntity(name="ReaEQ", params=[0.5, 0.25], preset="Bright", state="vendor-chunk")],
        envelopes=[EnvelopeEntity(
            name="Volume",
            points=[EnvelopePoint(time=0.0, value=1.0), EnvelopePoint(time=4.0, value=0.5)],
        )],
    )
    drums.properties.update({"volume": 0.8, "pan_mode": 5, "solo": 1})

    bass_takes = [
        TakeEntity(name="DI", source="bass_di.wav"),
        TakeEntity(
            name="Synth",
            midi=MIDI_EVENTS,
            stretch_markers=[
                StretchMarkerEntity(position=0.0, source_position=0.0, slope=0.0),
                StretchMarkerEntity(position=1.0, source_position=1.1, slope=0.3),
                StretchMarkerEntity(position=2.5, source_position=2.4, slope=-0.2),
            ],
            take_markers=[TakeMarker(position=0.5, name="Drop")],
            fx=[FxEntity(name="ReaSynth")],
        ),
    ]
    bass = make_track("Bass", items=[make_item(4.0, 4.0, takes=bass_takes, fade_in_shape=2)])
    bass.items[0].active_take = 1
    bass.properties.update({"mute": True, "rec_arm": 1})

    return Document(
        name="Source",
        project_info={"sample_rate": 48000.0, "sample_rate_use": 1, "title": "Session", "author": "Band"},
        tempo=[
            TempoMarker(time=0.0, bpm=96.0),
            TempoMarker(time=8.0, bpm=120.0, numerator=3, denominator=4),
        ],
        markers=[
            ProjectMarker(position=0.0, name="Intro", number=1),
            ProjectMarker(is_region=True, position=4.0, end_position=8.0, name="Verse", number=1),
        ],
        tracks=[drums, bass],
    )


@pytest.fixture
def source_store(source_document):
    return InMemoryDocumentStore(source_document)


@pytest.fixture
def destination_store():
    """Destination already holding "Bass" and "Vox" tracks"""
    return InMemoryDocumentStore(Document(
        name="Destination",
        tracks=[make_track("Bass"), make_track("Vox")],
    ))


@pytest.fixture
def empty_store():
    return InMemoryDocumentStore(Document(name="Empty"))


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
