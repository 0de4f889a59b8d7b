"""
Tracks Section
Tracks, their FX and envelopes, and fixed-lane configuration
"""

import logging
from typing import Any, Dict, List, Optional, Set

from ..core.config import MigrationConfig, TracksConfig
from ..core.keys import track_label
from ..core.result import WriteReport
from ..core.snapshot import LaneInfo, ProjectSnapshot, TrackProperties, TrackRecord
from ..store.base import DocumentStore, DocumentStoreError, Handle
from .base import Section, WriteContext, on_mapped_track
from .envelopes import parse_envelopes, write_track_envelopes
from .fx import parse_fx_chain, write_fx_chain

logger = logging.getLogger(__name__)

LANE_NOT_PLAYING = 0
LANE_PLAYS_EXCLUSIVELY = 1
LANE_PLAYS_ALONG = 2


class TracksSection(Section):
    """
    Track writer with two modes

    Replace: optionally delete every destination track, then insert source
    tracks at their own indices. Merge: update matched tracks in place, then
    append the plan's creations after the pre-existing tracks.
    """

    name = "tracks"

    # ------------------------------------------------------------------
    # Parse
    # ------------------------------------------------------------------

    def parse(self, store: DocumentStore) -> Dict[str, Any]:
        tracks = {}
        for index in range(store.count_tracks()):
            track = store.get_track(index)
            values = {key: store.get_track_value(track, key) for key in TrackProperties.keys()}
            tracks[index] = TrackRecord(
                index=index,
                name=store.get_track_name(track),
                properties=TrackProperties(**{k: v for k, v in values.items() if v is not None}),
                fx=parse_fx_chain(store, track),
                envelopes=parse_envelopes(store, track),
                lane_info=self._parse_lane_info(store, track),
            )
        return {"tracks": tracks}

    def _parse_lane_info(self, store: DocumentStore, track: Handle) -> LaneInfo:
        if not store.is_fixed_lane(track):
            return LaneInfo()

        lane_count = store.get_lane_count(track)
        active = set()
        for i in range(store.count_items(track)):
            item = store.get_item(track, i)
            if store.get_lane_plays(item) in (LANE_PLAYS_EXCLUSIVELY, LANE_PLAYS_ALONG):
                active.add(int(store.get_item_value(item, "fixed_lane") or 0))

        return LaneInfo(
            is_fixed_lane=True,
            lane_count=lane_count,
            lane_names={lane: store.get_lane_name(track, lane) or "" for lane in range(lane_count)},
            active_lanes=active,
        )

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def write(
        self,
        store: DocumentStore,
        snapshot: ProjectSnapshot,
        config: MigrationConfig,
        context: WriteContext,
    ) -> WriteReport:
        report = self.new_report()
        plan = context.plan

        if plan is None or plan.replace:
            self._write_replace(store, snapshot, config.tracks, context, report)
        else:
            self._write_merge(store, snapshot, config.tracks, context, report)

        return self.finish(report)

    def _write_replace(
        self,
        store: DocumentStore,
        snapshot: ProjectSnapshot,
        toggles: TracksConfig,
        context: WriteContext,
        report: WriteReport,
    ) -> None:
        if toggles.clear_existing_tracks:
            for i in range(store.count_tracks() - 1, -1, -1):
                store.delete_track(store.get_track(i))

        for source_index in sorted(snapshot.tracks):
            track = store.insert_track(source_index)
            self._populate(store, track, snapshot.tracks[source_index], toggles, context, report)

    def _write_merge(
        self,
        store: DocumentStore,
        snapshot: ProjectSnapshot,
        toggles: TracksConfig,
        context: WriteContext,
        report: WriteReport,
    ) -> None:
        plan = context.plan

        # Handles cached before any insertion shifts indices
        existing = [store.get_track(i) for i in range(store.count_tracks())]

        for source_index in plan.merged():
            record = snapshot.tracks.get(source_index)
            dest_index = plan.mappings[source_index]
            if record is None or dest_index >= len(existing):
                self.skip(report, track_label(source_index), f"destination track {dest_index} not found")
                continue
            logger.debug(f"Merging track {source_index} into destination {dest_index}")
            self._populate(store, existing[dest_index], record, toggles, context, report)

        insert_base = store.count_tracks()
        for k, source_index in enumerate(plan.to_create):
            record = snapshot.tracks.get(source_index)
            if record is None:
                continue
            logger.debug(f"Creating track at {insert_base + k} from source {source_index}")
            track = store.insert_track(insert_base + k)
            self._populate(store, track, record, toggles, context, report)

    def _populate(
        self,
        store: DocumentStore,
        track: Handle,
        record: TrackRecord,
        toggles: TracksConfig,
        context: WriteContext,
        report: WriteReport,
    ) -> None:
        key = track_label(record.index)

        if toggles.name:
            store.set_track_name(track, record.name)

        if toggles.properties:
            for prop, value in record.properties.model_dump().items():
                store.set_track_value(track, prop, value)

        # FX before envelopes so parameter envelopes can bind
        if toggles.fx:
            write_fx_chain(
                store,
                track,
                record.fx,
                report,
                key,
                clear_existing=toggles.fx_clear_existing,
                source=context.source,
                source_owner=_source_track(context.source, record.index),
            )

        if toggles.envelopes and record.envelopes:
            if on_mapped_track(store, context, record.index, track):
                write_track_envelopes(store, track, record.envelopes, report, key)
            else:
                self.skip(report, f"{key}/envelopes", "track is not at its mapped index")

        if toggles.lane_configuration:
            apply_lane_configuration(store, track, record.lane_info)

        report.written += 1

    # ------------------------------------------------------------------
    # Lane playing state (runs after items exist)
    # ------------------------------------------------------------------

    def apply_lane_playing_states(
        self,
        store: DocumentStore,
        snapshot: ProjectSnapshot,
        config: MigrationConfig,
        context: WriteContext,
    ) -> WriteReport:
        """Flag items on active lanes as playing exclusively, all others as silent"""
        report = WriteReport(section="lane_playing_states")
        if not config.tracks.lane_configuration:
            return report

        for source_index, record in sorted(snapshot.tracks.items()):
            if not record.lane_info.is_fixed_lane:
                continue
            dest_index = context.dest_track_index(source_index)
            try:
                track = store.get_track(dest_index) if dest_index is not None else None
            except DocumentStoreError:
                track = None
            if track is None:
                self.skip(report, track_label(source_index), "no destination track for lane states")
                continue

            active = record.lane_info.active_lanes
            for i in range(store.count_items(track)):
                item = store.get_item(track, i)
                lane = int(store.get_item_value(item, "fixed_lane") or 0)
                store.set_lane_plays(item, LANE_PLAYS_EXCLUSIVELY if lane in active else LANE_NOT_PLAYING)
                report.written += 1

        return report


def apply_lane_configuration(store: DocumentStore, track: Handle, lane_info: LaneInfo) -> None:
    """Convert to fixed lanes, grow to the source lane count and name the lanes"""
    if not lane_info.is_fixed_lane:
        return

    if store.get_lane_count(track) == 0:
        store.convert_to_fixed_lanes(track)

    while store.get_lane_count(track) < lane_info.lane_count:
        store.add_lane(track)

    for lane, name in sorted(lane_info.lane_names.items()):
        if name and lane < store.get_lane_count(track):
            store.set_lane_name(track, lane, name)


def _source_track(source: Optional[DocumentStore], index: int) -> Optional[Handle]:
    if source is None:
        return None
    try:
        return source.get_track(index)
    except DocumentStoreError:
        return None


# ============================================================================
# QUERY HELPERS
# ============================================================================

def get_track_by_name(tracks: Dict[int, TrackRecord], name: str) -> Optional[TrackRecord]:
    for index in sorted(tracks):
        if tracks[index].name == name:
            return tracks[index]
    return None


def filter_fixed_lane_tracks(tracks: Dict[int, TrackRecord]) -> List[TrackRecord]:
    return [tracks[i] for i in sorted(tracks) if tracks[i].lane_info.is_fixed_lane]


def get_active_lanes_for_track(tracks: Dict[int, TrackRecord], track_index: int) -> Set[int]:
    record = tracks.get(track_index)
    if record is None:
        return set()
    return set(record.lane_info.active_lanes)
