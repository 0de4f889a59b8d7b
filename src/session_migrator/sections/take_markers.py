"""
Take Markers Section
Named markers inside takes
"""

from typing import Any, Dict, List, Optional

from ..core.config import MigrationConfig
from ..core.keys import take_label
from ..core.result import WriteReport
from ..core.snapshot import ProjectSnapshot, TakeMarker, TakeMarkerSet
from ..store.base import DocumentStore, Handle
from .base import Section, WriteContext, resolve_take


class TakeMarkersSection(Section):
    name = "take_markers"

    def parse(self, store: DocumentStore) -> Dict[str, Any]:
        sets: List[TakeMarkerSet] = []
        for track_index in range(store.count_tracks()):
            track = store.get_track(track_index)
            for item_index in range(store.count_items(track)):
                item = store.get_item(track, item_index)
                for take_index in range(store.count_takes(item)):
                    take = store.get_take(item, take_index)
                    count = store.count_take_markers(take)
                    if count == 0:
                        continue
                    sets.append(TakeMarkerSet(
                        track_index=track_index,
                        item_index=item_index,
                        take_index=take_index,
                        markers=[store.get_take_marker(take, i) for i in range(count)],
                    ))
        return {"take_markers": sets}

    def write(
        self,
        store: DocumentStore,
        snapshot: ProjectSnapshot,
        config: MigrationConfig,
        context: WriteContext,
    ) -> WriteReport:
        report = self.new_report()
        toggles = config.take_markers

        for marker_set in snapshot.take_markers:
            key = take_label(marker_set.track_index, marker_set.item_index, marker_set.take_index)
            take = resolve_take(store, context, marker_set.track_index, marker_set.item_index, marker_set.take_index)
            if take is None:
                self.skip(report, key, "destination take not found")
                continue

            if toggles.clear_existing:
                clear_take_markers(store, take)

            if toggles.markers:
                for marker in marker_set.markers:
                    store.add_take_marker(take, marker)
                    report.written += 1

        return self.finish(report)


def clear_take_markers(store: DocumentStore, take: Handle) -> int:
    count = store.count_take_markers(take)
    for i in range(count - 1, -1, -1):
        store.delete_take_marker(take, i)
    return count


def get_markers_for_take(
    marker_sets: List[TakeMarkerSet],
    track_index: int,
    item_index: int,
    take_index: int,
) -> Optional[TakeMarkerSet]:
    for marker_set in marker_sets:
        if (marker_set.track_index, marker_set.item_index, marker_set.take_index) == (track_index, item_index, take_index):
            return marker_set
    return None


def find_marker_by_name(marker_sets: List[TakeMarkerSet], name: str) -> Optional[TakeMarker]:
    for marker_set in marker_sets:
        for marker in marker_set.markers:
            if marker.name == name:
                return marker
    return None
