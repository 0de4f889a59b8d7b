"""
Project Info Section
Project-level settings and metadata
"""

from typing import Any, Dict

from ..core.config import MigrationConfig
from ..core.result import WriteReport
from ..core.snapshot import ProjectInfo, ProjectSnapshot
from ..store.base import DocumentStore
from .base import Section, WriteContext

DEFAULT_SAMPLE_RATE = 44100.0
DEFAULT_SAMPLE_RATE_USE = 0


class ProjectInfoSection(Section):
    """Flat scalar copy with defaults for missing sample-rate fields"""

    name = "project_info"

    def parse(self, store: DocumentStore) -> Dict[str, Any]:
        info = ProjectInfo(**{key: store.get_project_value(key) for key in ProjectInfo.model_fields})
        return {"project_info": info}

    def write(
        self,
        store: DocumentStore,
        snapshot: ProjectSnapshot,
        config: MigrationConfig,
        context: WriteContext,
    ) -> WriteReport:
        report = self.new_report()
        info = snapshot.project_info
        toggles = config.project_info

        values = {
            "sample_rate": info.sample_rate if info.sample_rate is not None else DEFAULT_SAMPLE_RATE,
            "sample_rate_use": info.sample_rate_use if info.sample_rate_use is not None else DEFAULT_SAMPLE_RATE_USE,
            "title": info.title,
            "author": info.author,
            "notes": info.notes,
        }
        for key, value in values.items():
            if not getattr(toggles, key) or value is None:
                continue
            store.set_project_value(key, value)
            report.written += 1

        return self.finish(report)
