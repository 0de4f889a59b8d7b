"""
In-Memory Document Store
Complete DocumentStore binding over a pydantic Document
"""

import logging
import struct
from typing import Any, List, Optional, Tuple, Union

import mido

from ..core.keys import TAKE_ENVELOPE_KEYS, TRACK_ENVELOPE_KEYS
from ..core.snapshot import (
    AutomationItem,
    EnvelopePoint,
    FxState,
    ProjectMarker,
    StretchMarker,
    TakeMarker,
    TempoMarker,
)
from .base import UNDERLYING, DocumentStore, EntityNotFoundError, Handle
from .models import (
    AutomationItemEntity,
    Document,
    EnvelopeEntity,
    FxEntity,
    ItemEntity,
    StretchMarkerEntity,
    TakeEntity,
    TrackEntity,
    new_guid,
)

logger = logging.getLogger(__name__)

_AUTOMATION_ITEM_KEYS = {"start_offset", "baseline", "amplitude", "loop_source", "pool_id"}


def _index_of(items: List[Any], target: Any) -> int:
    for i, candidate in enumerate(items):
        if candidate is target:
            return i
    raise EntityNotFoundError(f"{type(target).__name__} is not part of this document")


def _at(items: List[Any], index: int, kind: str) -> Any:
    if index < 0 or index >= len(items):
        raise EntityNotFoundError(f"{kind} index {index} out of range (count {len(items)})")
    return items[index]


def count_note_ons(events: bytes) -> int:
    """
    Count note-on messages in a packed MIDI event stream

    Each event is ``<int32 offset><uint8 flags><int32 length><message>``,
    little-endian.
    """
    count = 0
    pos = 0
    header = struct.Struct("<iBi")
    while pos + header.size <= len(events):
        _, _, length = header.unpack_from(events, pos)
        pos += header.size
        message = events[pos:pos + length]
        pos += length
        try:
            msg = mido.Message.from_bytes(message)
        except ValueError:
            # Text and meta events are not channel messages
            continue
        if msg.type == "note_on" and msg.velocity > 0:
            count += 1
    return count


def pack_midi_events(events: List[Tuple[int, Union[mido.Message, bytes]]]) -> bytes:
    """Pack ``(offset, message)`` pairs into the event stream format"""
    packed = []
    for offset, msg in events:
        raw = bytes(msg.bytes()) if isinstance(msg, mido.Message) else bytes(msg)
        packed.append(struct.pack("<iBi", offset, 0, len(raw)) + raw)
    return b"".join(packed)


class InMemoryDocumentStore(DocumentStore):
    """DocumentStore over a plain Document, with a snapshot-based undo stack"""

    def __init__(self, document: Optional[Document] = None):
        self.document = document or Document()
        self.name = self.document.name
        self.undo_stack: List[Tuple[str, Document]] = []
        self._pending: List[Tuple[str, Document]] = []

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def begin_transaction(self, label: str) -> None:
        self._pending.append((label, self.document.model_copy(deep=True)))

    def commit_transaction(self) -> None:
        label, before = self._pending.pop()
        if not self._pending:
            self.undo_stack.append((label, before))
            logger.debug(f"Committed '{label}' on {self.name}")

    def rollback_transaction(self) -> None:
        _, before = self._pending.pop()
        self.document = before

    def undo(self) -> Optional[str]:
        """Restore the state before the last committed transaction"""
        if not self.undo_stack:
            return None
        label, before = self.undo_stack.pop()
        self.document = before
        return label

    # ------------------------------------------------------------------
    # Project
    # ------------------------------------------------------------------

    def get_project_value(self, key: str) -> Any:
        return self.document.project_info.get(key)

    def set_project_value(self, key: str, value: Any) -> None:
        self.document.project_info[key] = value

    # ------------------------------------------------------------------
    # Tempo map
    # ------------------------------------------------------------------

    def count_tempo_markers(self) -> int:
        return len(self.document.tempo)

    def get_tempo_marker(self, index: int) -> TempoMarker:
        return _at(self.document.tempo, index, "Tempo marker")

    def set_tempo_marker(self, index: int, marker: TempoMarker) -> None:
        _at(self.document.tempo, index, "Tempo marker")
        self.document.tempo[index] = marker
        self.document.tempo.sort(key=lambda m: m.time)

    def add_tempo_marker(self, marker: TempoMarker) -> None:
        self.document.tempo.append(marker)
        self.document.tempo.sort(key=lambda m: m.time)

    def delete_tempo_marker(self, index: int) -> None:
        _at(self.document.tempo, index, "Tempo marker")
        del self.document.tempo[index]

    def time_signature_at(self, time: float) -> TempoMarker:
        current = self.document.default_tempo
        for marker in self.document.tempo:
            if marker.time <= time:
                current = marker
        return current.model_copy(update={"time": time})

    # ------------------------------------------------------------------
    # Project markers and regions
    # ------------------------------------------------------------------

    def count_markers(self) -> int:
        return len(self.document.markers)

    def get_marker(self, index: int) -> ProjectMarker:
        return _at(self.document.markers, index, "Marker")

    def add_marker(self, marker: ProjectMarker) -> int:
        if marker.number < 0:
            used = {m.number for m in self.document.markers if m.is_region == marker.is_region}
            number = 1
            while number in used:
                number += 1
            marker = marker.model_copy(update={"number": number})
        if not marker.guid:
            marker = marker.model_copy(update={"guid": new_guid()})
        self.document.markers.append(marker)
        self.document.markers.sort(key=lambda m: (m.position, m.is_region))
        return _index_of(self.document.markers, marker)

    def delete_marker(self, index: int) -> None:
        _at(self.document.markers, index, "Marker")
        del self.document.markers[index]

    # ------------------------------------------------------------------
    # Tracks
    # ------------------------------------------------------------------

    def count_tracks(self) -> int:
        return len(self.document.tracks)

    def get_track(self, index: int) -> TrackEntity:
        return _at(self.document.tracks, index, "Track")

    def insert_track(self, index: int) -> TrackEntity:
        track = TrackEntity()
        index = max(0, min(index, len(self.document.tracks)))
        self.document.tracks.insert(index, track)
        return track

    def delete_track(self, track: TrackEntity) -> None:
        del self.document.tracks[_index_of(self.document.tracks, track)]

    def track_index(self, track: TrackEntity) -> int:
        return _index_of(self.document.tracks, track)

    def get_track_name(self, track: TrackEntity) -> str:
        return track.name

    def set_track_name(self, track: TrackEntity, name: str) -> None:
        track.name = name

    def get_track_value(self, track: TrackEntity, key: str) -> Any:
        return track.properties.get(key)

    def set_track_value(self, track: TrackEntity, key: str, value: Any) -> None:
        track.properties[key] = value

    def is_fixed_lane(self, track: TrackEntity) -> bool:
        return track.fixed_lanes

    def get_lane_count(self, track: TrackEntity) -> int:
        return len(track.lane_names) if track.fixed_lanes else 0

    def convert_to_fixed_lanes(self, track: TrackEntity) -> None:
        track.fixed_lanes = True
        if not track.lane_names:
            track.lane_names.append("")

    def add_lane(self, track: TrackEntity) -> None:
        if not track.fixed_lanes:
            self.convert_to_fixed_lanes(track)
        track.lane_names.append("")

    def get_lane_name(self, track: TrackEntity, lane: int) -> str:
        return _at(track.lane_names, lane, "Lane")

    def set_lane_name(self, track: TrackEntity, lane: int, name: str) -> None:
        _at(track.lane_names, lane, "Lane")
        track.lane_names[lane] = name

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def count_items(self, track: TrackEntity) -> int:
        return len(track.items)

    def get_item(self, track: TrackEntity, index: int) -> ItemEntity:
        return _at(track.items, index, "Item")

    def add_item(self, track: TrackEntity) -> ItemEntity:
        item = ItemEntity()
        track.items.append(item)
        return item

    def delete_item(self, item: ItemEntity) -> None:
        track = self.item_track(item)
        del track.items[_index_of(track.items, item)]

    def item_track(self, item: ItemEntity) -> TrackEntity:
        for track in self.document.tracks:
            if any(candidate is item for candidate in track.items):
                return track
        raise EntityNotFoundError("Item is not part of this document")

    def get_item_value(self, item: ItemEntity, key: str) -> Any:
        return item.properties.get(key)

    def set_item_value(self, item: ItemEntity, key: str, value: Any) -> None:
        item.properties[key] = value

    def get_item_notes(self, item: ItemEntity) -> str:
        return item.notes

    def set_item_notes(self, item: ItemEntity, notes: str) -> None:
        item.notes = notes

    def get_lane_plays(self, item: ItemEntity) -> int:
        return item.lane_plays

    def set_lane_plays(self, item: ItemEntity, state: int) -> None:
        item.lane_plays = int(state)

    def create_crossfade(self, item1: ItemEntity, item2: ItemEntity, start: float, end: float) -> None:
        length = max(0.0, end - start)
        item1.properties["fade_out_length"] = length
        item2.properties["fade_in_length"] = length

    # ------------------------------------------------------------------
    # Takes
    # ------------------------------------------------------------------

    def count_takes(self, item: ItemEntity) -> int:
        return len(item.takes)

    def get_take(self, item: ItemEntity, index: int) -> TakeEntity:
        return _at(item.takes, index, "Take")

    def add_take(self, item: ItemEntity) -> TakeEntity:
        take = TakeEntity()
        item.takes.append(take)
        return take

    def delete_take(self, take: TakeEntity) -> None:
        item = self.take_item(take)
        index = _index_of(item.takes, take)
        del item.takes[index]
        if item.active_take >= len(item.takes) or item.active_take > index:
            item.active_take = max(0, item.active_take - 1)

    def take_item(self, take: TakeEntity) -> ItemEntity:
        for track in self.document.tracks:
            for item in track.items:
                if any(candidate is take for candidate in item.takes):
                    return item
        raise EntityNotFoundError("Take is not part of this document")

    def get_take_name(self, take: TakeEntity) -> str:
        return take.name

    def set_take_name(self, take: TakeEntity, name: str) -> None:
        take.name = name

    def get_take_value(self, take: TakeEntity, key: str) -> Any:
        return take.properties.get(key)

    def set_take_value(self, take: TakeEntity, key: str, value: Any) -> None:
        take.properties[key] = value

    def get_active_take(self, item: ItemEntity) -> Optional[TakeEntity]:
        if not item.takes:
            return None
        return item.takes[min(item.active_take, len(item.takes) - 1)]

    def set_active_take(self, take: TakeEntity) -> None:
        item = self.take_item(take)
        item.active_take = _index_of(item.takes, take)
        item.properties["current_take"] = item.active_take

    def is_midi(self, take: TakeEntity) -> bool:
        return take.midi is not None

    def get_midi_events(self, take: TakeEntity) -> bytes:
        return take.midi or b""

    def count_midi_notes(self, take: TakeEntity) -> int:
        return count_note_ons(take.midi or b"")

    def set_midi_source(self, take: TakeEntity) -> None:
        take.source = None
        take.midi = b""

    def set_midi_events(self, take: TakeEntity, events: bytes) -> None:
        if take.midi is None:
            raise EntityNotFoundError("Take has no MIDI source")
        take.midi = bytes(events)

    def get_source(self, take: TakeEntity) -> Optional[str]:
        return take.source

    def set_source(self, take: TakeEntity, source: str) -> None:
        take.midi = None
        take.source = source

    # ------------------------------------------------------------------
    # Stretch markers
    # ------------------------------------------------------------------

    def count_stretch_markers(self, take: TakeEntity) -> int:
        return len(take.stretch_markers)

    def get_stretch_marker(self, take: TakeEntity, index: int) -> StretchMarker:
        marker = _at(take.stretch_markers, index, "Stretch marker")
        return StretchMarker(
            position=marker.position,
            source_position=marker.source_position,
            slope=marker.slope,
        )

    def add_stretch_marker(self, take: TakeEntity, position: float, source_position: float) -> StretchMarkerEntity:
        marker = StretchMarkerEntity(position=position, source_position=source_position)
        take.stretch_markers.append(marker)
        take.stretch_markers.sort(key=lambda m: m.position)
        return marker

    def set_stretch_marker_slope(self, take: TakeEntity, marker: StretchMarkerEntity, slope: float) -> None:
        _index_of(take.stretch_markers, marker)
        marker.slope = slope

    def delete_stretch_marker(self, take: TakeEntity, index: int) -> None:
        _at(take.stretch_markers, index, "Stretch marker")
        del take.stretch_markers[index]

    # ------------------------------------------------------------------
    # Take markers
    # ------------------------------------------------------------------

    def count_take_markers(self, take: TakeEntity) -> int:
        return len(take.take_markers)

    def get_take_marker(self, take: TakeEntity, index: int) -> TakeMarker:
        return _at(take.take_markers, index, "Take marker")

    def add_take_marker(self, take: TakeEntity, marker: TakeMarker) -> None:
        take.take_markers.append(marker)
        take.take_markers.sort(key=lambda m: m.position)

    def delete_take_marker(self, take: TakeEntity, index: int) -> None:
        _at(take.take_markers, index, "Take marker")
        del take.take_markers[index]

    # ------------------------------------------------------------------
    # FX chains
    # ------------------------------------------------------------------

    def count_fx(self, owner: Handle) -> int:
        return len(owner.fx)

    def get_fx(self, owner: Handle, index: int) -> FxState:
        fx = _at(owner.fx, index, "FX")
        return FxState(
            name=fx.name,
            enabled=fx.enabled,
            offline=fx.offline,
            preset=fx.preset,
            params=list(fx.params),
        )

    def add_fx_by_name(self, owner: Handle, name: str) -> Optional[int]:
        installed = self.document.installed_fx
        if not name or (installed is not None and name not in installed):
            return None
        owner.fx.append(FxEntity(name=name))
        return len(owner.fx) - 1

    def delete_fx(self, owner: Handle, index: int) -> None:
        _at(owner.fx, index, "FX")
        del owner.fx[index]

    def copy_fx(self, source: DocumentStore, source_owner: Handle, source_index: int, dest_owner: Handle) -> bool:
        if not isinstance(source, InMemoryDocumentStore):
            return False
        fx = _at(source_owner.fx, source_index, "FX")
        clone = fx.model_copy(deep=True)
        clone.guid = new_guid()
        dest_owner.fx.append(clone)
        return True

    def set_fx_preset(self, owner: Handle, index: int, preset: str) -> bool:
        fx = _at(owner.fx, index, "FX")
        fx.preset = preset
        return True

    def set_fx_param(self, owner: Handle, index: int, param: int, value: float) -> None:
        fx = _at(owner.fx, index, "FX")
        while len(fx.params) <= param:
            fx.params.append(0.0)
        fx.params[param] = value

    def set_fx_enabled(self, owner: Handle, index: int, enabled: bool) -> None:
        _at(owner.fx, index, "FX").enabled = bool(enabled)

    def set_fx_offline(self, owner: Handle, index: int, offline: bool) -> None:
        _at(owner.fx, index, "FX").offline = bool(offline)

    # ------------------------------------------------------------------
    # Envelopes
    # ------------------------------------------------------------------

    def count_envelopes(self, owner: Handle) -> int:
        return len(owner.envelopes)

    def get_envelope(self, owner: Handle, index: int) -> EnvelopeEntity:
        return _at(owner.envelopes, index, "Envelope")

    def get_envelope_name(self, envelope: EnvelopeEntity) -> str:
        return envelope.name

    def ensure_envelope(self, owner: Handle, key: str) -> Optional[EnvelopeEntity]:
        table = TRACK_ENVELOPE_KEYS if isinstance(owner, TrackEntity) else TAKE_ENVELOPE_KEYS
        name = table.get(key)
        if name is None:
            return None
        for envelope in owner.envelopes:
            if envelope.name == name:
                return envelope
        envelope = EnvelopeEntity(name=name)
        owner.envelopes.append(envelope)
        return envelope

    def _points(self, envelope: EnvelopeEntity, automation_item: int) -> List[EnvelopePoint]:
        if automation_item == UNDERLYING:
            return envelope.points
        return _at(envelope.automation_items, automation_item, "Automation item").points

    def get_envelope_points(self, envelope: EnvelopeEntity, automation_item: int = UNDERLYING) -> List[EnvelopePoint]:
        return list(self._points(envelope, automation_item))

    def clear_envelope_points(self, envelope: EnvelopeEntity, automation_item: int = UNDERLYING) -> None:
        self._points(envelope, automation_item).clear()

    def insert_envelope_point(
        self,
        envelope: EnvelopeEntity,
        point: EnvelopePoint,
        automation_item: int = UNDERLYING,
        sort: bool = True,
    ) -> None:
        points = self._points(envelope, automation_item)
        points.append(point)
        if sort:
            points.sort(key=lambda p: p.time)

    def sort_envelope_points(self, envelope: EnvelopeEntity, automation_item: int = UNDERLYING) -> None:
        self._points(envelope, automation_item).sort(key=lambda p: p.time)

    def count_automation_items(self, envelope: EnvelopeEntity) -> int:
        return len(envelope.automation_items)

    def get_automation_item(self, envelope: EnvelopeEntity, index: int) -> AutomationItem:
        ai = _at(envelope.automation_items, index, "Automation item")
        return AutomationItem(
            position=ai.position,
            length=ai.length,
            start_offset=ai.start_offset,
            baseline=ai.baseline,
            amplitude=ai.amplitude,
            loop_source=ai.loop_source,
            pool_id=ai.pool_id,
            points=list(ai.points),
        )

    def insert_automation_item(self, envelope: EnvelopeEntity, position: float, length: float) -> int:
        envelope.automation_items.append(AutomationItemEntity(position=position, length=length))
        return len(envelope.automation_items) - 1

    def set_automation_item_value(self, envelope: EnvelopeEntity, index: int, key: str, value: Any) -> None:
        if key not in _AUTOMATION_ITEM_KEYS:
            raise KeyError(f"Unknown automation item property: {key}")
        setattr(_at(envelope.automation_items, index, "Automation item"), key, value)

    def delete_automation_item(self, envelope: EnvelopeEntity, index: int) -> None:
        _at(envelope.automation_items, index, "Automation item")
        del envelope.automation_items[index]
