"""
Section Base
Shared write context and destination-identity resolution for section writers
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.config import MigrationConfig
from ..core.keys import ItemKey, TakeKey
from ..core.logging import migration_logger
from ..core.matching import MergePlan
from ..core.result import WriteReport
from ..core.snapshot import ProjectSnapshot
from ..store.base import DocumentStore, DocumentStoreError, Handle

logger = logging.getLogger(__name__)


class WriteContext(BaseModel):
    """
    State threaded through every writer of one migration

    ``track_mapping`` of None means identity. ``item_mapping`` and
    ``take_mapping`` fill up as the Items and Takes writers run.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    plan: Optional[MergePlan] = None
    track_mapping: Optional[Dict[int, int]] = None
    item_mapping: Dict[ItemKey, Any] = Field(default_factory=dict)
    take_mapping: Dict[TakeKey, Any] = Field(default_factory=dict)
    source: Optional[DocumentStore] = None

    def dest_track_index(self, source_track_index: int) -> Optional[int]:
        if self.track_mapping is None:
            return source_track_index
        return self.track_mapping.get(source_track_index)


class Section(ABC):
    """One slice of the document: unconditional parse, toggle-gated write"""

    name: str = "section"

    @abstractmethod
    def parse(self, store: DocumentStore) -> Dict[str, Any]:
        """Read this section's snapshot fields from a document"""

    @abstractmethod
    def write(
        self,
        store: DocumentStore,
        snapshot: ProjectSnapshot,
        config: MigrationConfig,
        context: WriteContext,
    ) -> WriteReport:
        """Apply this section of ``snapshot`` to a destination document"""

    def new_report(self) -> WriteReport:
        migration_logger.log_section_start(self.name)
        return WriteReport(section=self.name)

    def finish(self, report: WriteReport) -> WriteReport:
        migration_logger.log_section_complete(
            self.name,
            written=report.written,
            skipped=len(report.skipped),
            fallbacks=len(report.fallbacks),
        )
        return report

    def skip(self, report: WriteReport, entity_key: str, reason: str) -> None:
        report.skip(entity_key, reason)
        migration_logger.log_skip(self.name, entity_key, reason)


# ============================================================================
# RESOLUTION DISCIPLINE
# track via mapping, item via identity map then position, take by position
# ============================================================================

def resolve_track(store: DocumentStore, context: WriteContext, track_index: int) -> Optional[Handle]:
    dest_index = context.dest_track_index(track_index)
    if dest_index is None:
        return None
    try:
        return store.get_track(dest_index)
    except DocumentStoreError:
        return None


def resolve_item(
    store: DocumentStore,
    context: WriteContext,
    track_index: int,
    item_index: int,
) -> Optional[Handle]:
    mapped = context.item_mapping.get((track_index, item_index))
    if mapped is not None:
        return mapped
    track = resolve_track(store, context, track_index)
    if track is None:
        return None
    try:
        return store.get_item(track, item_index)
    except DocumentStoreError:
        return None


def resolve_take(
    store: DocumentStore,
    context: WriteContext,
    track_index: int,
    item_index: int,
    take_index: int,
) -> Optional[Handle]:
    mapped = context.take_mapping.get((track_index, item_index, take_index))
    if mapped is not None:
        return mapped
    item = resolve_item(store, context, track_index, item_index)
    if item is None:
        return None
    try:
        return store.get_take(item, take_index)
    except DocumentStoreError:
        return None


def on_mapped_track(store: DocumentStore, context: WriteContext, track_index: int, track: Handle) -> bool:
    """False when ``track`` is not where the mapping says source ``track_index`` landed"""
    expected = context.dest_track_index(track_index)
    if expected is None:
        return False
    try:
        return store.track_index(track) == expected
    except DocumentStoreError:
        return False

