"""
Items Section
Media items with complete fade support and crossfade reconciliation
"""

import logging
from typing import Any, Dict, List

from ..core.config import MigrationConfig
from ..core.keys import TIME_EPSILON, item_label, track_label
from ..core.result import WriteReport
from ..core.snapshot import Crossfade, ItemProperties, ItemRecord, ProjectSnapshot
from ..store.base import DocumentStore, DocumentStoreError, Handle
from .base import Section, WriteContext

logger = logging.getLogger(__name__)


class ItemsSection(Section):
    """
    Item writer

    All items are created before any crossfade is applied: crossfade
    creation needs both items in their final positions.
    """

    name = "items"

    # ------------------------------------------------------------------
    # Parse
    # ------------------------------------------------------------------

    def parse(self, store: DocumentStore) -> Dict[str, Any]:
        items: List[ItemRecord] = []
        crossfades: List[Crossfade] = []

        for track_index in range(store.count_tracks()):
            track = store.get_track(track_index)
            track_items = []
            for item_index in range(store.count_items(track)):
                item = store.get_item(track, item_index)
                values = {key: store.get_item_value(item, key) for key in ItemProperties.keys()}
                record = ItemRecord(
                    track_index=track_index,
                    item_index=item_index,
                    properties=ItemProperties(**{k: v for k, v in values.items() if v is not None}),
                    notes=store.get_item_notes(item) or "",
                )
                items.append(record)
                track_items.append(record)
            crossfades.extend(detect_crossfades(track_index, track_items))

        return {"items": items, "crossfades": crossfades}

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
        """Create items per destination track and record the item-identity map"""
        report = self.new_report()
        toggles = config.items

        by_track: Dict[int, List[ItemRecord]] = {}
        for record in snapshot.items:
            dest_index = context.dest_track_index(record.track_index)
            if dest_index is None:
                self.skip(report, item_label(record.track_index, record.item_index), "source track not in plan")
                continue
            by_track.setdefault(dest_index, []).append(record)

        for dest_index in sorted(by_track):
            records = by_track[dest_index]
            try:
                track = store.get_track(dest_index)
            except DocumentStoreError:
                for record in records:
                    self.skip(
                        report,
                        item_label(record.track_index, record.item_index),
                        f"destination track {dest_index} not found",
                    )
                continue

            if toggles.clear_existing_items:
                for i in range(store.count_items(track) - 1, -1, -1):
                    store.delete_item(store.get_item(track, i))

            if not toggles.create_items:
                continue

            for record in records:
                item = store.add_item(track)
                context.item_mapping[(record.track_index, record.item_index)] = item

                if toggles.properties:
                    for prop, value in record.properties.model_dump().items():
                        store.set_item_value(item, prop, value)
                if toggles.notes and record.notes:
                    store.set_item_notes(item, record.notes)
                report.written += 1

        if toggles.crossfades and snapshot.crossfades:
            report.merge(self.apply_crossfades(store, snapshot.crossfades, context))

        return self.finish(report)

    def apply_crossfades(
        self,
        store: DocumentStore,
        crossfades: List[Crossfade],
        context: WriteContext,
    ) -> WriteReport:
        """
        Restore recorded overlaps between created items

        When the live overlap drifted from the recorded one by more than
        TIME_EPSILON, the first item's length is adjusted; fade shapes are
        reasserted before the native crossfade is created.
        """
        report = WriteReport(section="crossfades")

        for xf in crossfades:
            key = f"{track_label(xf.track_index)}/crossfade[{xf.item1_index}->{xf.item2_index}]"
            item1 = context.item_mapping.get((xf.track_index, xf.item1_index))
            item2 = context.item_mapping.get((xf.track_index, xf.item2_index))
            if item1 is None or item2 is None:
                self.skip(report, key, "crossfade items were not created")
                continue

            reconcile_overlap(store, item1, item2, xf.overlap_length)
            store.set_item_value(item1, "fade_out_shape", xf.item1_fadeout_shape)
            store.set_item_value(item2, "fade_in_shape", xf.item2_fadein_shape)
            store.create_crossfade(item1, item2, xf.overlap_start, xf.overlap_end)
            report.written += 1

        return report


def reconcile_overlap(store: DocumentStore, item1: Handle, item2: Handle, overlap_length: float) -> bool:
    """Stretch or trim ``item1`` so it overlaps ``item2`` by ``overlap_length``; True if changed"""
    pos1 = float(store.get_item_value(item1, "position") or 0.0)
    len1 = float(store.get_item_value(item1, "length") or 0.0)
    pos2 = float(store.get_item_value(item2, "position") or 0.0)

    current = (pos1 + len1) - pos2
    if abs(current - overlap_length) <= TIME_EPSILON:
        return False

    store.set_item_value(item1, "length", pos2 + overlap_length - pos1)
    return True


def detect_crossfades(track_index: int, items: List[ItemRecord]) -> List[Crossfade]:
    """Overlaps between position-adjacent items on the same lane of one track"""
    ordered = sorted(items, key=lambda r: r.properties.position)
    crossfades = []

    for first, second in zip(ordered, ordered[1:]):
        p1, p2 = first.properties, second.properties
        if p1.fixed_lane != p2.fixed_lane:
            continue
        end1 = p1.position + p1.length
        if end1 <= p2.position:
            continue

        overlap_start = p2.position
        overlap_end = min(end1, p2.position + p2.length)
        overlap_length = overlap_end - overlap_start
        if overlap_length <= 0:
            continue

        crossfades.append(Crossfade(
            track_index=track_index,
            lane=p1.fixed_lane,
            item1_index=first.item_index,
            item2_index=second.item_index,
            overlap_start=overlap_start,
            overlap_end=overlap_end,
            overlap_length=overlap_length,
            item1_fadeout_shape=p1.fade_out_shape,
            item2_fadein_shape=p2.fade_in_shape,
        ))

    return crossfades


# ============================================================================
# QUERY HELPERS
# ============================================================================

def items_on_track(items: List[ItemRecord], track_index: int) -> List[ItemRecord]:
    return [r for r in items if r.track_index == track_index]


def items_in_time_range(items: List[ItemRecord], start: float, end: float) -> List[ItemRecord]:
    """Items overlapping ``[start, end)``"""
    return [
        r for r in items
        if r.properties.position < end and r.properties.position + r.properties.length > start
    ]


def items_with_fades(items: List[ItemRecord]) -> List[ItemRecord]:
    result = []
    for r in items:
        p = r.properties
        if p.fade_in_length > 0 or p.fade_out_length > 0 or p.fade_in_auto_length > 0 or p.fade_out_auto_length > 0:
            result.append(r)
    return result


def crossfades_on_track(crossfades: List[Crossfade], track_index: int) -> List[Crossfade]:
    return [xf for xf in crossfades if xf.track_index == track_index]
