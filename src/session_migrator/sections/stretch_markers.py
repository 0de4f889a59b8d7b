"""
Stretch Markers Section
Per-take time-warp markers written in two passes
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.config import MigrationConfig
from ..core.keys import take_label
from ..core.result import WriteReport
from ..core.snapshot import ProjectSnapshot, StretchMarker, TakeStretchMarkers
from ..store.base import DocumentStore, Handle
from .base import Section, WriteContext, resolve_take

logger = logging.getLogger(__name__)


class StretchMarkersSection(Section):
    """
    Stretch marker writer

    Pass one creates every marker and keeps the handle the store returns;
    pass two applies slopes through those handles, since slope belongs to an
    existing marker and creation order need not match marker order.
    """

    name = "stretch_markers"

    def parse(self, store: DocumentStore) -> Dict[str, Any]:
        groups: List[TakeStretchMarkers] = []
        for track_index in range(store.count_tracks()):
            track = store.get_track(track_index)
            for item_index in range(store.count_items(track)):
                item = store.get_item(track, item_index)
                for take_index in range(store.count_takes(item)):
                    take = store.get_take(item, take_index)
                    count = store.count_stretch_markers(take)
                    if count == 0:
                        continue
                    groups.append(TakeStretchMarkers(
                        track_index=track_index,
                        item_index=item_index,
                        take_index=take_index,
                        take_name=store.get_take_name(take),
                        markers=[store.get_stretch_marker(take, i) for i in range(count)],
                    ))
        return {"stretch_markers": groups}

    def write(
        self,
        store: DocumentStore,
        snapshot: ProjectSnapshot,
        config: MigrationConfig,
        context: WriteContext,
    ) -> WriteReport:
        report = self.new_report()
        toggles = config.stretch_markers

        for group in snapshot.stretch_markers:
            key = take_label(group.track_index, group.item_index, group.take_index)
            take = resolve_take(store, context, group.track_index, group.item_index, group.take_index)
            if take is None:
                self.skip(report, key, "destination take not found")
                continue

            if toggles.clear_existing:
                clear_stretch_markers(store, take)

            if not toggles.markers:
                continue

            created = self._create_markers(store, take, group.markers)
            report.written += len(created)

            if toggles.slopes:
                for handle, marker in created:
                    store.set_stretch_marker_slope(take, handle, marker.slope)

            logger.debug(f"Wrote {len(created)} stretch markers to {key}")

        return self.finish(report)

    def _create_markers(self, store: DocumentStore, take: Handle, markers: List[StretchMarker]):
        created = []
        for marker in sorted(markers, key=lambda m: m.position):
            handle = store.add_stretch_marker(take, marker.position, marker.source_position)
            if handle is not None:
                created.append((handle, marker))
        return created


def clear_stretch_markers(store: DocumentStore, take: Handle) -> int:
    count = store.count_stretch_markers(take)
    for i in range(count - 1, -1, -1):
        store.delete_stretch_marker(take, i)
    return count


def get_markers_for_take(
    groups: List[TakeStretchMarkers],
    track_index: int,
    item_index: int,
    take_index: int,
) -> Optional[TakeStretchMarkers]:
    for group in groups:
        if (group.track_index, group.item_index, group.take_index) == (track_index, item_index, take_index):
            return group
    return None
