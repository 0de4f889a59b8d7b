"""
Takes Section
Takes with FX, MIDI data, audio sources and take envelopes
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..core.config import MigrationConfig, TakesConfig
from ..core.keys import ItemKey, item_label, take_label
from ..core.matching import EntitySummary, match_takes
from ..core.result import WriteReport
from ..core.snapshot import (
    MidiContent,
    ProjectSnapshot,
    TakeProperties,
    TakeRecord,
    TakeType,
)
from ..store.base import DocumentStore, DocumentStoreError, Handle
from .base import Section, WriteContext, on_mapped_track, resolve_item
from .envelopes import parse_envelopes, write_take_envelopes
from .fx import parse_fx_chain, write_fx_chain

logger = logging.getLogger(__name__)


class TakesSection(Section):
    name = "takes"

    # ------------------------------------------------------------------
    # Parse
    # ------------------------------------------------------------------

    def parse(self, store: DocumentStore) -> Dict[str, Any]:
        takes: List[TakeRecord] = []
        for track_index in range(store.count_tracks()):
            track = store.get_track(track_index)
            for item_index in range(store.count_items(track)):
                item = store.get_item(track, item_index)
                active = store.get_active_take(item)
                for take_index in range(store.count_takes(item)):
                    take = store.get_take(item, take_index)
                    takes.append(self._parse_take(store, take, track_index, item_index, take_index, take is active))
        return {"takes": takes}

    def _parse_take(
        self,
        store: DocumentStore,
        take: Handle,
        track_index: int,
        item_index: int,
        take_index: int,
        is_active: bool,
    ) -> TakeRecord:
        values = {key: store.get_take_value(take, key) for key in TakeProperties.keys()}
        if store.is_midi(take):
            content = {
                "type": TakeType.MIDI,
                "midi": MidiContent(
                    events=store.get_midi_events(take),
                    note_count=store.count_midi_notes(take),
                ),
            }
        else:
            content = {"type": TakeType.AUDIO, "source": store.get_source(take)}

        return TakeRecord(
            track_index=track_index,
            item_index=item_index,
            take_index=take_index,
            name=store.get_take_name(take),
            is_active=is_active,
            properties=TakeProperties(**{k: v for k, v in values.items() if v is not None}),
            fx=parse_fx_chain(store, take),
            envelopes=parse_envelopes(store, take, automation_items=False),
            **content,
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
        """
        Write takes item by item

        With ``clear_default_takes`` every existing take on the item is
        removed and all source takes are created. Otherwise source takes are
        matched against the existing ones and only unmatched takes are
        created, subject to ``matching.fallback_create``.
        """
        report = self.new_report()

        for (track_index, item_index), group in _group_by_item(snapshot.takes):
            key = item_label(track_index, item_index)
            item = resolve_item(store, context, track_index, item_index)
            if item is None:
                for take in group:
                    self.skip(report, take_label(track_index, item_index, take.take_index), "destination item not found")
                continue

            try:
                parent = store.item_track(item)
            except DocumentStoreError:
                parent = None
            if parent is None or not on_mapped_track(store, context, track_index, parent):
                self.skip(report, key, "item is not on its mapped track")
                continue

            targets = self._plan_item(store, item, group, config, report)

            active = None
            for record, dest_take in targets:
                self._write_take(store, dest_take, record, config.takes, context, report)
                context.take_mapping[(track_index, item_index, record.take_index)] = dest_take
                if record.is_active:
                    active = dest_take

            if config.takes.set_active_take and active is not None:
                store.set_active_take(active)

        return self.finish(report)

    def _plan_item(
        self,
        store: DocumentStore,
        item: Handle,
        group: List[TakeRecord],
        config: MigrationConfig,
        report: WriteReport,
    ) -> List[Tuple[TakeRecord, Handle]]:
        """Pair every source take of one item with the destination take it writes into"""
        if config.takes.clear_default_takes:
            for i in range(store.count_takes(item) - 1, -1, -1):
                store.delete_take(store.get_take(item, i))
            return [(record, store.add_take(item)) for record in group]

        existing = [store.get_take(item, i) for i in range(store.count_takes(item))]
        if config.matching.enabled:
            summaries = [EntitySummary(index=i, name=store.get_take_name(t)) for i, t in enumerate(existing)]
            matches = match_takes(group, summaries, config.matching.takes)
        else:
            matches = {record.take_index: None for record in group}

        targets = []
        for record in group:
            dest_index = matches.get(record.take_index)
            if dest_index is not None:
                targets.append((record, existing[dest_index]))
            elif config.matching.fallback_create:
                targets.append((record, store.add_take(item)))
            else:
                self.skip(
                    report,
                    take_label(record.track_index, record.item_index, record.take_index),
                    "no matching destination take",
                )
        return targets

    def _write_take(
        self,
        store: DocumentStore,
        take: Handle,
        record: TakeRecord,
        toggles: TakesConfig,
        context: WriteContext,
        report: WriteReport,
    ) -> None:
        key = take_label(record.track_index, record.item_index, record.take_index)

        if toggles.name:
            store.set_take_name(take, record.name)

        if toggles.properties:
            for prop, value in record.properties.model_dump().items():
                store.set_take_value(take, prop, value)

        if toggles.source_content:
            if record.type == TakeType.MIDI and record.midi is not None:
                # Source type first so the events land on a MIDI take
                store.set_midi_source(take)
                store.set_midi_events(take, record.midi.events)
            elif record.type == TakeType.AUDIO and record.source:
                store.set_source(take, record.source)

        if toggles.fx:
            write_fx_chain(
                store,
                take,
                record.fx,
                report,
                key,
                clear_existing=True,
                source=context.source,
                source_owner=_source_take(context.source, record),
            )

        if toggles.envelopes and record.envelopes:
            write_take_envelopes(store, take, record.envelopes, report, key)

        report.written += 1


def _group_by_item(takes: List[TakeRecord]) -> List[Tuple[ItemKey, List[TakeRecord]]]:
    groups: Dict[ItemKey, List[TakeRecord]] = {}
    for record in takes:
        groups.setdefault((record.track_index, record.item_index), []).append(record)
    return [(key, sorted(group, key=lambda r: r.take_index)) for key, group in sorted(groups.items())]


def _source_take(source: Optional[DocumentStore], record: TakeRecord) -> Optional[Handle]:
    """Live source take addressed by its own source-document coordinates"""
    if source is None:
        return None
    try:
        track = source.get_track(record.track_index)
        item = source.get_item(track, record.item_index)
        return source.get_take(item, record.take_index)
    except DocumentStoreError:
        return None


# ============================================================================
# QUERY HELPERS
# ============================================================================

def takes_for_item(takes: List[TakeRecord], track_index: int, item_index: int) -> List[TakeRecord]:
    return [t for t in takes if t.track_index == track_index and t.item_index == item_index]


def active_take_for_item(takes: List[TakeRecord], track_index: int, item_index: int) -> Optional[TakeRecord]:
    for take in takes_for_item(takes, track_index, item_index):
        if take.is_active:
            return take
    return None


def takes_by_type(takes: List[TakeRecord], take_type: TakeType) -> List[TakeRecord]:
    return [t for t in takes if t.type == take_type]
