"""
In-Memory Document Models
JSON-serializable project documents backing the in-memory store
"""

import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.snapshot import (
    EnvelopePoint,
    ItemProperties,
    MidiBlob,
    ProjectMarker,
    TakeMarker,
    TakeProperties,
    TempoMarker,
    TrackProperties,
)


def new_guid() -> str:
    return "{" + str(uuid.uuid4()).upper() + "}"


class Entity(BaseModel):
    """Mutable document node; handles compare by identity, not by value"""
    model_config = ConfigDict(validate_assignment=False)

    guid: str = Field(default_factory=new_guid)

    def __eq__(self, other: object) -> bool:
        return self is other

    __hash__ = object.__hash__


class FxEntity(Entity):
    name: str
    enabled: bool = True
    offline: bool = False
    preset: Optional[str] = None
    params: List[float] = Field(default_factory=list)
    # Vendor-specific plugin state; survives cloning, lost on reconstruct
    state: Optional[str] = None


class AutomationItemEntity(Entity):
    position: float = 0.0
    length: float = 0.0
    start_offset: float = 0.0
    baseline: float = 0.0
    amplitude: float = 1.0
    loop_source: bool = False
    pool_id: int = -1
    points: List[EnvelopePoint] = Field(default_factory=list)


class EnvelopeEntity(Entity):
    name: str
    points: List[EnvelopePoint] = Field(default_factory=list)
    automation_items: List[AutomationItemEntity] = Field(default_factory=list)


class StretchMarkerEntity(Entity):
    position: float
    source_position: float
    slope: float = 0.0


class TakeEntity(Entity):
    name: str = ""
    properties: Dict[str, Any] = Field(default_factory=lambda: TakeProperties().model_dump())
    fx: List[FxEntity] = Field(default_factory=list)
    envelopes: List[EnvelopeEntity] = Field(default_factory=list)
    midi: Optional[MidiBlob] = None
    source: Optional[str] = None
    stretch_markers: List[StretchMarkerEntity] = Field(default_factory=list)
    take_markers: List[TakeMarker] = Field(default_factory=list)


class ItemEntity(Entity):
    properties: Dict[str, Any] = Field(default_factory=lambda: ItemProperties().model_dump())
    notes: str = ""
    lane_plays: int = 0
    active_take: int = 0
    takes: List[TakeEntity] = Field(default_factory=list)


class TrackEntity(Entity):
    name: str = ""
    properties: Dict[str, Any] = Field(default_factory=lambda: TrackProperties().model_dump())
    fx: List[FxEntity] = Field(default_factory=list)
    envelopes: List[EnvelopeEntity] = Field(default_factory=list)
    fixed_lanes: bool = False
    lane_names: List[str] = Field(default_factory=list)
    items: List[ItemEntity] = Field(default_factory=list)


class Document(BaseModel):
    """Complete project document"""
    name: str = "Untitled"
    project_info: Dict[str, Any] = Field(default_factory=dict)
    # Effective tempo when the document stores no tempo markers
    default_tempo: TempoMarker = Field(default_factory=TempoMarker)
    tempo: List[TempoMarker] = Field(default_factory=list)
    markers: List[ProjectMarker] = Field(default_factory=list)
    tracks: List[TrackEntity] = Field(default_factory=list)
    # FX names the host can instantiate by name; None means any
    installed_fx: Optional[List[str]] = None
