"""
Tempo Section
Tempo map and time signature markers
"""

from typing import Any, Dict, List, Tuple

from ..core.config import MigrationConfig
from ..core.result import WriteReport
from ..core.snapshot import ProjectSnapshot, TempoMarker
from ..store.base import DocumentStore
from .base import Section, WriteContext


class TempoSection(Section):
    name = "tempo"

    def parse(self, store: DocumentStore) -> Dict[str, Any]:
        count = store.count_tempo_markers()
        if count == 0:
            # Every document has an effective tempo at time 0
            effective = store.time_signature_at(0.0)
            markers = [TempoMarker(
                time=0.0,
                measure_index=0,
                beat_position=0.0,
                bpm=effective.bpm,
                numerator=effective.numerator,
                denominator=effective.denominator,
                linear=False,
            )]
        else:
            markers = [store.get_tempo_marker(i) for i in range(count)]
        return {"tempo": markers}

    def write(
        self,
        store: DocumentStore,
        snapshot: ProjectSnapshot,
        config: MigrationConfig,
        context: WriteContext,
    ) -> WriteReport:
        """Update marker 0 in place and insert the rest"""
        report = self.new_report()

        if config.tempo.clear_existing_markers:
            for i in range(store.count_tempo_markers() - 1, 0, -1):
                store.delete_tempo_marker(i)

        if config.tempo.markers:
            self._write_markers(store, snapshot.tempo, report)

        return self.finish(report)

    def _write_markers(self, store: DocumentStore, markers: List[TempoMarker], report: WriteReport) -> None:
        for i, marker in enumerate(markers):
            if i == 0 and store.count_tempo_markers() > 0:
                store.set_tempo_marker(0, marker)
            else:
                store.add_tempo_marker(marker)
            report.written += 1


# ============================================================================
# QUERY HELPERS
# ============================================================================

def get_tempo_at_time(store: DocumentStore, time: float) -> Tuple[float, int, int]:
    """Effective (bpm, numerator, denominator) at ``time``"""
    effective = store.time_signature_at(time)
    return effective.bpm, effective.numerator, effective.denominator


def find_marker_at_time(markers: List[TempoMarker], time: float) -> int:
    """Index of the last tempo marker at or before ``time``, -1 when none"""
    found = -1
    for i, marker in enumerate(markers):
        if marker.time <= time:
            found = i
    return found
