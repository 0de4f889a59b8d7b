"""
Session Migrator Entity Snapshot
Immutable records capturing one document's state at a point in time
"""

import base64
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Set

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer


def _decode_blob(value: Any) -> Any:
    if isinstance(value, str):
        return base64.b64decode(value)
    return value


def _encode_blob(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


# Raw MIDI event stream; travels as base64 text in JSON
MidiBlob = Annotated[
    bytes,
    BeforeValidator(_decode_blob),
    PlainSerializer(_encode_blob, return_type=str, when_used="json"),
]


class SnapshotModel(BaseModel):
    """Base configuration for snapshot records"""
    model_config = ConfigDict(frozen=True, extra="forbid")


class PropertyRecord(SnapshotModel):
    """
    Strongly-typed scalar property bag

    Field names double as the property keys exchanged with the Document Store,
    so the key set of each entity kind is fixed by its record class.
    """

    @classmethod
    def keys(cls) -> List[str]:
        return list(cls.model_fields)


# ============================================================================
# PROJECT-LEVEL RECORDS
# ============================================================================

class ProjectInfo(SnapshotModel):
    sample_rate: Optional[float] = None
    sample_rate_use: Optional[int] = None
    title: Optional[str] = None
    author: Optional[str] = None
    notes: Optional[str] = None


class TempoMarker(SnapshotModel):
    time: float = 0.0
    measure_index: int = 0
    beat_position: float = 0.0
    bpm: float = 120.0
    numerator: int = 4
    denominator: int = 4
    linear: bool = False


class ProjectMarker(SnapshotModel):
    is_region: bool = False
    position: float = 0.0
    end_position: float = 0.0
    name: str = ""
    number: int = -1
    color: int = 0
    guid: str = ""


# ============================================================================
# SHARED TRACK / TAKE RECORDS
# ============================================================================

class EnvelopePoint(SnapshotModel):
    time: float = 0.0
    value: float = 0.0
    shape: int = 0
    tension: float = 0.0
    selected: bool = False


class AutomationItem(SnapshotModel):
    """Automation sub-segment nested in a track envelope"""
    position: float = 0.0
    length: float = 0.0
    start_offset: float = 0.0
    baseline: float = 0.0
    amplitude: float = 1.0
    loop_source: bool = False
    pool_id: int = -1
    points: List[EnvelopePoint] = Field(default_factory=list)


class Envelope(SnapshotModel):
    name: str = ""
    points: List[EnvelopePoint] = Field(default_factory=list)
    automation_items: List[AutomationItem] = Field(default_factory=list)


class FxState(SnapshotModel):
    name: str
    enabled: bool = True
    offline: bool = False
    preset: Optional[str] = None
    params: List[float] = Field(default_factory=list)


# ============================================================================
# TRACKS
# ============================================================================

class TrackProperties(PropertyRecord):
    color: int = 0
    channel_count: int = 2
    volume: float = 1.0
    pan: float = 0.0
    width: float = 1.0
    dual_pan_left: float = -1.0
    dual_pan_right: float = 1.0
    pan_mode: int = -1
    pan_law: float = -1.0
    pan_law_flags: int = -1
    folder_depth: int = 0
    folder_compact: int = 0
    mute: bool = False
    solo: int = 0
    rec_arm: int = 0
    rec_input: int = 0
    phase: bool = False
    perf_flags: int = 0
    height_lock: bool = False


class LaneInfo(SnapshotModel):
    is_fixed_lane: bool = False
    lane_count: int = 0
    lane_names: Dict[int, str] = Field(default_factory=dict)
    active_lanes: Set[int] = Field(default_factory=set)


class TrackRecord(SnapshotModel):
    index: int
    name: str = ""
    properties: TrackProperties = Field(default_factory=TrackProperties)
    fx: List[FxState] = Field(default_factory=list)
    envelopes: List[Envelope] = Field(default_factory=list)
    lane_info: LaneInfo = Field(default_factory=LaneInfo)


# ============================================================================
# ITEMS
# ============================================================================

class ItemProperties(PropertyRecord):
    position: float = 0.0
    length: float = 0.0
    snap_offset: float = 0.0
    volume: float = 1.0
    current_take: int = 0
    lane_y: float = 0.0
    lane_height: float = 0.0
    fixed_lane: int = 0
    lane_hidden: bool = False
    color: int = 0
    mute: bool = False
    loop_source: bool = False
    all_takes_play: bool = False
    group_id: int = 0
    selected: bool = False
    fade_in_length: float = 0.0
    fade_out_length: float = 0.0
    fade_in_curve: float = 0.0
    fade_out_curve: float = 0.0
    fade_in_auto_length: float = -1.0
    fade_out_auto_length: float = -1.0
    fade_in_shape: int = 0
    fade_out_shape: int = 0


class ItemRecord(SnapshotModel):
    track_index: int
    item_index: int
    properties: ItemProperties = Field(default_factory=ItemProperties)
    notes: str = ""


class Crossfade(SnapshotModel):
    """Overlap between two time-adjacent items on the same lane of one track"""
    track_index: int
    lane: int
    item1_index: int
    item2_index: int
    overlap_start: float
    overlap_end: float
    overlap_length: float
    item1_fadeout_shape: int = 0
    item2_fadein_shape: int = 0


# ============================================================================
# TAKES
# ============================================================================

class TakeType(str, Enum):
    MIDI = "MIDI"
    AUDIO = "AUDIO"


class TakeProperties(PropertyRecord):
    start_offset: float = 0.0
    volume: float = 1.0
    pan: float = 0.0
    pan_law: float = -1.0
    play_rate: float = 1.0
    pitch: float = 0.0
    preserve_pitch: bool = True
    channel_mode: int = 0
    pitch_mode: int = -1
    stretch_flags: int = 0
    stretch_fade_size: float = 0.0
    color: int = 0
    fx_channel_count: int = 2


class MidiContent(SnapshotModel):
    events: MidiBlob = b""
    note_count: int = 0


class TakeRecord(SnapshotModel):
    track_index: int
    item_index: int
    take_index: int
    name: str = ""
    is_active: bool = False
    properties: TakeProperties = Field(default_factory=TakeProperties)
    fx: List[FxState] = Field(default_factory=list)
    envelopes: List[Envelope] = Field(default_factory=list)
    type: TakeType = TakeType.AUDIO
    midi: Optional[MidiContent] = None
    source: Optional[str] = None


class StretchMarker(SnapshotModel):
    position: float
    source_position: float
    slope: float = 0.0


class TakeStretchMarkers(SnapshotModel):
    track_index: int
    item_index: int
    take_index: int
    take_name: str = ""
    markers: List[StretchMarker] = Field(default_factory=list)


class TakeMarker(SnapshotModel):
    position: float
    name: str = ""
    color: int = 0


class TakeMarkerSet(SnapshotModel):
    track_index: int
    item_index: int
    take_index: int
    markers: List[TakeMarker] = Field(default_factory=list)


# ============================================================================
# ROOT
# ============================================================================

class MigrationStats(SnapshotModel):
    """Counts computed right after the read phase"""
    tracks: int = 0
    fixed_lane_tracks: int = 0
    total_active_lanes: int = 0
    muted_tracks: int = 0
    soloed_tracks: int = 0
    rec_armed_tracks: int = 0
    pan_modes: Dict[str, int] = Field(default_factory=dict)
    items: int = 0
    crossfades: int = 0
    takes: int = 0
    midi_takes: int = 0
    audio_takes: int = 0
    total_midi_notes: int = 0
    fx_count: int = 0
    tempo_markers: int = 0
    markers: int = 0
    stretch_markers: int = 0
    take_markers: int = 0


class ProjectSnapshot(SnapshotModel):
    """Full in-memory read of one document"""
    project_info: ProjectInfo = Field(default_factory=ProjectInfo)
    tempo: List[TempoMarker] = Field(default_factory=lambda: [TempoMarker()], min_length=1)
    markers: List[ProjectMarker] = Field(default_factory=list)
    tracks: Dict[int, TrackRecord] = Field(default_factory=dict)
    items: List[ItemRecord] = Field(default_factory=list)
    crossfades: List[Crossfade] = Field(default_factory=list)
    takes: List[TakeRecord] = Field(default_factory=list)
    stretch_markers: List[TakeStretchMarkers] = Field(default_factory=list)
    take_markers: List[TakeMarkerSet] = Field(default_factory=list)
    stats: Optional[MigrationStats] = None

    @property
    def track_count(self) -> int:
        return len(self.tracks)
