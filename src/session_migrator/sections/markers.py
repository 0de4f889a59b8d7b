"""
Markers Section
Project markers and regions
"""

from typing import Any, Dict, List, Optional

from ..core.config import MigrationConfig
from ..core.result import WriteReport
from ..core.snapshot import ProjectMarker, ProjectSnapshot
from ..store.base import DocumentStore
from .base import Section, WriteContext


class MarkersSection(Section):
    name = "markers"

    def parse(self, store: DocumentStore) -> Dict[str, Any]:
        return {"markers": [store.get_marker(i) for i in range(store.count_markers())]}

    def write(
        self,
        store: DocumentStore,
        snapshot: ProjectSnapshot,
        config: MigrationConfig,
        context: WriteContext,
    ) -> WriteReport:
        report = self.new_report()
        toggles = config.markers

        if toggles.clear_existing:
            for i in range(store.count_markers() - 1, -1, -1):
                store.delete_marker(i)

        for marker in snapshot.markers:
            wanted = toggles.regions if marker.is_region else toggles.markers
            if not wanted:
                continue
            # The destination assigns its own GUID
            store.add_marker(marker.model_copy(update={"guid": ""}))
            report.written += 1

        return self.finish(report)


def find_marker_by_name(markers: List[ProjectMarker], name: str) -> Optional[ProjectMarker]:
    for marker in markers:
        if marker.name == name:
            return marker
    return None


def filter_by_kind(markers: List[ProjectMarker], is_region: bool) -> List[ProjectMarker]:
    return [m for m in markers if m.is_region == is_region]
