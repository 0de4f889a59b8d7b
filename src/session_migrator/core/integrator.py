"""
Session Migrator Integrator
Sequences snapshot capture, merge planning and ordered section writes
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..sections.base import Section, WriteContext
from ..sections.items import ItemsSection
from ..sections.markers import MarkersSection
from ..sections.project_info import ProjectInfoSection
from ..sections.stretch_markers import StretchMarkersSection
from ..sections.take_markers import TakeMarkersSection
from ..sections.takes import TakesSection
from ..sections.tempo import TempoSection
from ..sections.tracks import TracksSection
from ..store.base import DocumentStore
from .config import MigrationConfig, MigratorSettings, get_settings, load_migration_config
from .keys import pan_mode_name
from .logging import migration_logger
from .matching import MergePlan, build_plan
from .result import Result, SkipRecord, WriteReport
from .snapshot import MigrationStats, ProjectSnapshot, TakeType

logger = logging.getLogger(__name__)

TRANSACTION_LABEL = "Session Migrator - Complete Transfer"


class MigrationError(Exception):
    """Migration could not start"""
    pass


class MigrationOutcome(BaseModel):
    """What one write phase produced"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool = True
    snapshot: ProjectSnapshot
    plan: Optional[MergePlan] = None
    reports: List[WriteReport] = Field(default_factory=list)

    @property
    def stats(self) -> Optional[MigrationStats]:
        return self.snapshot.stats

    @property
    def skipped(self) -> List[SkipRecord]:
        return [record for report in self.reports for record in report.skipped]

    def report(self, section: str) -> Optional[WriteReport]:
        for report in self.reports:
            if report.section == section:
                return report
        return None


class Integrator:
    """
    Orchestrator for document-to-document migration

    Reads the whole source first, then writes sections in dependency order:
    project info, tempo, markers, tracks, items, lane playing states, takes,
    stretch markers, take markers.
    """

    def __init__(
        self,
        config: Optional[MigrationConfig] = None,
        settings: Optional[MigratorSettings] = None,
    ):
        self.settings = settings or get_settings()
        self.config = config or load_migration_config(self.settings.MIGRATION_CONFIG_PATH)

        self.project_info = ProjectInfoSection()
        self.tempo = TempoSection()
        self.markers = MarkersSection()
        self.tracks = TracksSection()
        self.items = ItemsSection()
        self.takes = TakesSection()
        self.stretch_markers = StretchMarkersSection()
        self.take_markers = TakeMarkersSection()

    @property
    def sections(self) -> List[Section]:
        """Registered sections in parse order"""
        return [
            self.project_info,
            self.tempo,
            self.markers,
            self.tracks,
            self.items,
            self.takes,
            self.stretch_markers,
            self.take_markers,
        ]

    # ============================================================================
    # READ PHASE
    # ============================================================================

    def parse_project(self, store: DocumentStore) -> ProjectSnapshot:
        """Read every section of a document into one snapshot with statistics"""
        fields: Dict[str, object] = {}
        for section in self.sections:
            fields.update(section.parse(store))

        snapshot = ProjectSnapshot(**fields)
        snapshot = snapshot.model_copy(update={"stats": self.generate_statistics(snapshot)})
        logger.info(f"Parsed {store.name}: {snapshot.track_count} tracks, {len(snapshot.items)} items")
        return snapshot

    # ============================================================================
    # WRITE PHASE
    # ============================================================================

    def write_project(
        self,
        destination: DocumentStore,
        snapshot: ProjectSnapshot,
        source: Optional[DocumentStore] = None,
        clear_destination: bool = False,
        config: Optional[MigrationConfig] = None,
    ) -> MigrationOutcome:
        """
        Write a snapshot into a destination inside one undoable transaction

        Tracks are merged by plan when matching is enabled and nothing is
        cleared. Otherwise source tracks replace the destination ones at
        their own indices.
        """
        config = self._effective_config(config or self.config, clear_destination)
        outcome = MigrationOutcome(snapshot=snapshot)

        with destination.transaction(TRANSACTION_LABEL):
            context = WriteContext(source=source)

            def write(section: Section) -> WriteReport:
                return section.write(destination, snapshot, config, context)

            outcome.reports.append(write(self.project_info))
            outcome.reports.append(write(self.tempo))
            outcome.reports.append(write(self.markers))

            if config.matching.enabled and not config.tracks.clear_existing_tracks:
                plan = build_plan(destination, snapshot.tracks, config.matching)
            else:
                plan = MergePlan.identity(list(snapshot.tracks))
            context.plan = plan
            context.track_mapping = plan.mappings
            outcome.plan = plan

            outcome.reports.append(write(self.tracks))
            outcome.reports.append(write(self.items))
            outcome.reports.append(
                self.tracks.apply_lane_playing_states(destination, snapshot, config, context)
            )
            outcome.reports.append(write(self.takes))
            outcome.reports.append(write(self.stretch_markers))
            outcome.reports.append(write(self.take_markers))

        outcome.success = all(outcome.reports)
        return outcome

    def _effective_config(self, config: MigrationConfig, clear_destination: bool) -> MigrationConfig:
        if not clear_destination:
            return config
        config = config.model_copy(deep=True)
        config.tracks.clear_existing_tracks = True
        config.tempo.clear_existing_markers = True
        config.markers.clear_existing = True
        return config

    # ============================================================================
    # ENTRY POINTS
    # ============================================================================

    def migrate(
        self,
        source: Optional[DocumentStore],
        destination: Optional[DocumentStore],
        clear_destination: bool = False,
        open_documents: Optional[int] = None,
    ) -> Result[MigrationOutcome]:
        """
        Migrate ``source`` into ``destination``

        Args:
            source: Document to read from
            destination: Document to write into
            clear_destination: Replace destination tracks, tempo and markers
            open_documents: Number of documents the host has open; defaults
                to the number of documents passed in

        Returns:
            Result carrying the outcome, or the pre-condition failure message
        """
        if source is None:
            return Result.err("No source document found")
        if destination is None:
            return Result.err("No destination document found")

        if open_documents is None:
            open_documents = 2 if source is not destination else 1
        if open_documents < self.settings.MIN_OPEN_DOCUMENTS:
            return Result.err(
                f"At least {self.settings.MIN_OPEN_DOCUMENTS} open documents are required, found {open_documents}"
            )

        migration_logger.log_migration_start(source.name, destination.name, clear_destination=clear_destination)
        started = time.perf_counter()

        snapshot = self.parse_project(source)
        self.log_statistics(snapshot.stats, "PARSED")
        outcome = self.write_project(destination, snapshot, source=source, clear_destination=clear_destination)

        migration_logger.log_migration_complete(
            outcome.success,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            skipped=len(outcome.skipped),
        )
        return Result.ok(outcome)

    def migrate_or_raise(
        self,
        source: Optional[DocumentStore],
        destination: Optional[DocumentStore],
        clear_destination: bool = False,
        open_documents: Optional[int] = None,
    ) -> MigrationOutcome:
        result = self.migrate(source, destination, clear_destination, open_documents)
        if result.is_err():
            raise MigrationError(result.error)
        return result.unwrap()

    # ============================================================================
    # STATISTICS
    # ============================================================================

    def generate_statistics(self, snapshot: ProjectSnapshot) -> MigrationStats:
        pan_modes: Dict[str, int] = {}
        fixed_lane_tracks = active_lanes = muted = soloed = armed = 0
        fx_count = 0

        for record in snapshot.tracks.values():
            props = record.properties
            if record.lane_info.is_fixed_lane:
                fixed_lane_tracks += 1
                active_lanes += len(record.lane_info.active_lanes)
            muted += 1 if props.mute else 0
            soloed += 1 if props.solo > 0 else 0
            armed += 1 if props.rec_arm > 0 else 0
            mode = pan_mode_name(props.pan_mode)
            pan_modes[mode] = pan_modes.get(mode, 0) + 1
            fx_count += len(record.fx)

        midi_takes = [t for t in snapshot.takes if t.type == TakeType.MIDI]
        fx_count += sum(len(t.fx) for t in snapshot.takes)

        return MigrationStats(
            tracks=snapshot.track_count,
            fixed_lane_tracks=fixed_lane_tracks,
            total_active_lanes=active_lanes,
            muted_tracks=muted,
            soloed_tracks=soloed,
            rec_armed_tracks=armed,
            pan_modes=pan_modes,
            items=len(snapshot.items),
            crossfades=len(snapshot.crossfades),
            takes=len(snapshot.takes),
            midi_takes=len(midi_takes),
            audio_takes=len(snapshot.takes) - len(midi_takes),
            total_midi_notes=sum(t.midi.note_count for t in midi_takes if t.midi is not None),
            fx_count=fx_count,
            tempo_markers=len(snapshot.tempo),
            markers=len(snapshot.markers),
            stretch_markers=sum(len(g.markers) for g in snapshot.stretch_markers),
            take_markers=sum(len(s.markers) for s in snapshot.take_markers),
        )

    def log_statistics(self, stats: Optional[MigrationStats], action: str = "PARSED") -> None:
        if stats is not None:
            migration_logger.log_statistics(stats.model_dump(), action=action)

    # ============================================================================
    # SELECTIVE OPERATIONS
    # ============================================================================

    def copy_template_only(self, source: DocumentStore, destination: DocumentStore) -> MigrationOutcome:
        """Copy track structure without items, takes or their markers"""
        snapshot = self.parse_project(source)
        template = snapshot.model_copy(update={
            "items": [],
            "crossfades": [],
            "takes": [],
            "stretch_markers": [],
            "take_markers": [],
        })
        return self.write_project(destination, template, source=source, clear_destination=True)

    def copy_tempo_and_markers_only(self, source: DocumentStore, destination: DocumentStore) -> List[WriteReport]:
        snapshot = ProjectSnapshot(**self.tempo.parse(source), **self.markers.parse(source))
        context = WriteContext(source=source)
        with destination.transaction("Session Migrator - Tempo and Markers"):
            return [
                self.tempo.write(destination, snapshot, self.config, context),
                self.markers.write(destination, snapshot, self.config, context),
            ]

    # ============================================================================
    # DIAGNOSTICS
    # ============================================================================

    def validate_sections(self) -> bool:
        """Every registered section exposes callable parse and write"""
        valid = True
        for section in self.sections:
            for method in ("parse", "write"):
                if not callable(getattr(section, method, None)):
                    logger.error(f"Section {section.name} is missing {method}")
                    valid = False
        return valid

    def test_roundtrip(self, store: DocumentStore, document_factory: Callable[[], DocumentStore]) -> bool:
        """Write a document into a fresh one and check track and item counts survive"""
        original = self.parse_project(store)
        fresh = document_factory()
        outcome = self.write_project(fresh, original, source=store, clear_destination=True)
        if not outcome.success:
            return False

        roundtrip = self.parse_project(fresh)
        tracks_match = roundtrip.track_count == original.track_count
        items_match = len(roundtrip.items) == len(original.items)
        if not (tracks_match and items_match):
            logger.warning(
                f"Round trip mismatch - tracks {original.track_count}/{roundtrip.track_count}, "
                f"items {len(original.items)}/{len(roundtrip.items)}"
            )
        return tracks_match and items_match
