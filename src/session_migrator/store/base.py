"""
Document Store Contract
Abstract interface over a host project document
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

from ..core.snapshot import (
    AutomationItem,
    EnvelopePoint,
    FxState,
    ProjectMarker,
    StretchMarker,
    TakeMarker,
    TempoMarker,
)

logger = logging.getLogger(__name__)

# Opaque references handed out by a store binding. Writers never look inside.
Handle = Any

# Automation-item index addressing the underlying envelope
UNDERLYING = -1


class DocumentStoreError(Exception):
    """Base document store error"""
    pass


class EntityNotFoundError(DocumentStoreError):
    """Invalid handle or out-of-range index"""
    pass


class DocumentStore(ABC):
    """
    One open project document

    Enumeration is by dense index; everything returned from ``get_*`` or
    ``add_*``/``insert_*`` is an opaque handle valid until the entity is
    deleted. Scalar properties use the field names of the matching
    ``*Properties`` record as keys.
    """

    name: str = "document"

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self, label: str) -> Iterator["DocumentStore"]:
        """Group every mutation inside the block into one undo step"""
        self.begin_transaction(label)
        try:
            yield self
        except Exception:
            logger.error(f"Transaction '{label}' failed on {self.name}, rolling back")
            self.rollback_transaction()
            raise
        self.commit_transaction()

    @abstractmethod
    def begin_transaction(self, label: str) -> None:
        pass

    @abstractmethod
    def commit_transaction(self) -> None:
        pass

    @abstractmethod
    def rollback_transaction(self) -> None:
        pass

    # ------------------------------------------------------------------
    # Project
    # ------------------------------------------------------------------

    @abstractmethod
    def get_project_value(self, key: str) -> Any:
        """Project scalar (sample_rate, sample_rate_use, title, author, notes); None if unset"""

    @abstractmethod
    def set_project_value(self, key: str, value: Any) -> None:
        pass

    # ------------------------------------------------------------------
    # Tempo map
    # ------------------------------------------------------------------

    @abstractmethod
    def count_tempo_markers(self) -> int:
        pass

    @abstractmethod
    def get_tempo_marker(self, index: int) -> TempoMarker:
        pass

    @abstractmethod
    def set_tempo_marker(self, index: int, marker: TempoMarker) -> None:
        """Update an existing marker in place"""

    @abstractmethod
    def add_tempo_marker(self, marker: TempoMarker) -> None:
        pass

    @abstractmethod
    def delete_tempo_marker(self, index: int) -> None:
        pass

    @abstractmethod
    def time_signature_at(self, time: float) -> TempoMarker:
        """Effective tempo and time signature at ``time``"""

    # ------------------------------------------------------------------
    # Project markers and regions
    # ------------------------------------------------------------------

    @abstractmethod
    def count_markers(self) -> int:
        pass

    @abstractmethod
    def get_marker(self, index: int) -> ProjectMarker:
        pass

    @abstractmethod
    def add_marker(self, marker: ProjectMarker) -> int:
        pass

    @abstractmethod
    def delete_marker(self, index: int) -> None:
        pass

    # ------------------------------------------------------------------
    # Tracks
    # ------------------------------------------------------------------

    @abstractmethod
    def count_tracks(self) -> int:
        pass

    @abstractmethod
    def get_track(self, index: int) -> Handle:
        pass

    @abstractmethod
    def insert_track(self, index: int) -> Handle:
        pass

    @abstractmethod
    def delete_track(self, track: Handle) -> None:
        pass

    @abstractmethod
    def track_index(self, track: Handle) -> int:
        pass

    @abstractmethod
    def get_track_name(self, track: Handle) -> str:
        pass

    @abstractmethod
    def set_track_name(self, track: Handle, name: str) -> None:
        pass

    @abstractmethod
    def get_track_value(self, track: Handle, key: str) -> Any:
        pass

    @abstractmethod
    def set_track_value(self, track: Handle, key: str, value: Any) -> None:
        pass

    # Fixed lanes

    @abstractmethod
    def is_fixed_lane(self, track: Handle) -> bool:
        pass

    @abstractmethod
    def get_lane_count(self, track: Handle) -> int:
        pass

    @abstractmethod
    def convert_to_fixed_lanes(self, track: Handle) -> None:
        pass

    @abstractmethod
    def add_lane(self, track: Handle) -> None:
        pass

    @abstractmethod
    def get_lane_name(self, track: Handle, lane: int) -> str:
        pass

    @abstractmethod
    def set_lane_name(self, track: Handle, lane: int, name: str) -> None:
        pass

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    @abstractmethod
    def count_items(self, track: Handle) -> int:
        pass

    @abstractmethod
    def get_item(self, track: Handle, index: int) -> Handle:
        pass

    @abstractmethod
    def add_item(self, track: Handle) -> Handle:
        pass

    @abstractmethod
    def delete_item(self, item: Handle) -> None:
        pass

    @abstractmethod
    def item_track(self, item: Handle) -> Handle:
        """Parent track of an item"""

    @abstractmethod
    def get_item_value(self, item: Handle, key: str) -> Any:
        pass

    @abstractmethod
    def set_item_value(self, item: Handle, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def get_item_notes(self, item: Handle) -> str:
        pass

    @abstractmethod
    def set_item_notes(self, item: Handle, notes: str) -> None:
        pass

    @abstractmethod
    def get_lane_plays(self, item: Handle) -> int:
        """0 = not playing, 1 = plays exclusively, 2 = plays along"""

    @abstractmethod
    def set_lane_plays(self, item: Handle, state: int) -> None:
        pass

    @abstractmethod
    def create_crossfade(self, item1: Handle, item2: Handle, start: float, end: float) -> None:
        """Native crossfade over ``[start, end]`` between two overlapping items"""

    # ------------------------------------------------------------------
    # Takes
    # ------------------------------------------------------------------

    @abstractmethod
    def count_takes(self, item: Handle) -> int:
        pass

    @abstractmethod
    def get_take(self, item: Handle, index: int) -> Handle:
        pass

    @abstractmethod
    def add_take(self, item: Handle) -> Handle:
        pass

    @abstractmethod
    def delete_take(self, take: Handle) -> None:
        pass

    @abstractmethod
    def take_item(self, take: Handle) -> Handle:
        """Parent item of a take"""

    @abstractmethod
    def get_take_name(self, take: Handle) -> str:
        pass

    @abstractmethod
    def set_take_name(self, take: Handle, name: str) -> None:
        pass

    @abstractmethod
    def get_take_value(self, take: Handle, key: str) -> Any:
        pass

    @abstractmethod
    def set_take_value(self, take: Handle, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def get_active_take(self, item: Handle) -> Optional[Handle]:
        pass

    @abstractmethod
    def set_active_take(self, take: Handle) -> None:
        pass

    # Source content

    @abstractmethod
    def is_midi(self, take: Handle) -> bool:
        pass

    @abstractmethod
    def get_midi_events(self, take: Handle) -> bytes:
        pass

    @abstractmethod
    def count_midi_notes(self, take: Handle) -> int:
        pass

    @abstractmethod
    def set_midi_source(self, take: Handle) -> None:
        """Attach an empty MIDI source so the take is recognized as MIDI"""

    @abstractmethod
    def set_midi_events(self, take: Handle, events: bytes) -> None:
        pass

    @abstractmethod
    def get_source(self, take: Handle) -> Optional[str]:
        """Audio source reference; None for MIDI or empty takes"""

    @abstractmethod
    def set_source(self, take: Handle, source: str) -> None:
        pass

    # ------------------------------------------------------------------
    # Stretch markers
    # ------------------------------------------------------------------

    @abstractmethod
    def count_stretch_markers(self, take: Handle) -> int:
        pass

    @abstractmethod
    def get_stretch_marker(self, take: Handle, index: int) -> StretchMarker:
        pass

    @abstractmethod
    def add_stretch_marker(self, take: Handle, position: float, source_position: float) -> Handle:
        """Create a marker; the returned handle stays valid when others are inserted"""

    @abstractmethod
    def set_stretch_marker_slope(self, take: Handle, marker: Handle, slope: float) -> None:
        pass

    @abstractmethod
    def delete_stretch_marker(self, take: Handle, index: int) -> None:
        pass

    # ------------------------------------------------------------------
    # Take markers
    # ------------------------------------------------------------------

    @abstractmethod
    def count_take_markers(self, take: Handle) -> int:
        pass

    @abstractmethod
    def get_take_marker(self, take: Handle, index: int) -> TakeMarker:
        pass

    @abstractmethod
    def add_take_marker(self, take: Handle, marker: TakeMarker) -> None:
        pass

    @abstractmethod
    def delete_take_marker(self, take: Handle, index: int) -> None:
        pass

    # ------------------------------------------------------------------
    # FX chains (owner is a track or a take)
    # ------------------------------------------------------------------

    @abstractmethod
    def count_fx(self, owner: Handle) -> int:
        pass

    @abstractmethod
    def get_fx(self, owner: Handle, index: int) -> FxState:
        pass

    @abstractmethod
    def add_fx_by_name(self, owner: Handle, name: str) -> Optional[int]:
        """Instantiate an FX by name; None when the host cannot load it"""

    @abstractmethod
    def delete_fx(self, owner: Handle, index: int) -> None:
        pass

    @abstractmethod
    def copy_fx(self, source: "DocumentStore", source_owner: Handle, source_index: int, dest_owner: Handle) -> bool:
        """Clone one FX verbatim, vendor state included, from another document"""

    @abstractmethod
    def set_fx_preset(self, owner: Handle, index: int, preset: str) -> bool:
        pass

    @abstractmethod
    def set_fx_param(self, owner: Handle, index: int, param: int, value: float) -> None:
        pass

    @abstractmethod
    def set_fx_enabled(self, owner: Handle, index: int, enabled: bool) -> None:
        pass

    @abstractmethod
    def set_fx_offline(self, owner: Handle, index: int, offline: bool) -> None:
        pass

    # ------------------------------------------------------------------
    # Envelopes (owner is a track or a take)
    # ------------------------------------------------------------------

    @abstractmethod
    def count_envelopes(self, owner: Handle) -> int:
        pass

    @abstractmethod
    def get_envelope(self, owner: Handle, index: int) -> Handle:
        pass

    @abstractmethod
    def get_envelope_name(self, envelope: Handle) -> str:
        pass

    @abstractmethod
    def ensure_envelope(self, owner: Handle, key: str) -> Optional[Handle]:
        """Create (or reveal) the standard envelope for a normalized key"""

    @abstractmethod
    def get_envelope_points(self, envelope: Handle, automation_item: int = UNDERLYING) -> List[EnvelopePoint]:
        pass

    @abstractmethod
    def clear_envelope_points(self, envelope: Handle, automation_item: int = UNDERLYING) -> None:
        pass

    @abstractmethod
    def insert_envelope_point(
        self,
        envelope: Handle,
        point: EnvelopePoint,
        automation_item: int = UNDERLYING,
        sort: bool = True,
    ) -> None:
        pass

    @abstractmethod
    def sort_envelope_points(self, envelope: Handle, automation_item: int = UNDERLYING) -> None:
        pass

    @abstractmethod
    def count_automation_items(self, envelope: Handle) -> int:
        pass

    @abstractmethod
    def get_automation_item(self, envelope: Handle, index: int) -> AutomationItem:
        pass

    @abstractmethod
    def insert_automation_item(self, envelope: Handle, position: float, length: float) -> int:
        pass

    @abstractmethod
    def set_automation_item_value(self, envelope: Handle, index: int, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def delete_automation_item(self, envelope: Handle, index: int) -> None:
        pass
