"""
Matching Engine
Maps source track/take identities onto destination identities
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, TYPE_CHECKING

from pydantic import BaseModel, Field

from .config import MatchingConfig, MatchStrategy
from .logging import migration_logger
from .snapshot import TakeRecord, TrackRecord

if TYPE_CHECKING:
    from ..store.base import DocumentStore

logger = logging.getLogger(__name__)


class EntitySummary(BaseModel):
    """Name and position of a destination entity; all matching needs"""
    index: int
    name: str = ""


class MergePlan(BaseModel):
    """
    Resolved mapping plus explicit creation list

    ``mappings`` covers every source index that survives the plan, including
    those in ``to_create``; the k-th created entry maps to
    ``dest_count + k``.
    """
    mappings: Dict[int, int] = Field(default_factory=dict)
    to_create: List[int] = Field(default_factory=list)
    dest_count: int = 0
    replace: bool = False

    def is_created(self, source_index: int) -> bool:
        return source_index in self.to_create

    def merged(self) -> List[int]:
        """Source indices matched to pre-existing destination tracks, ascending"""
        created = set(self.to_create)
        return sorted(si for si in self.mappings if si not in created)

    @classmethod
    def identity(cls, source_indices: Sequence[int]) -> "MergePlan":
        """Plan used by full-replace writes: every source index lands on itself"""
        ordered = sorted(source_indices)
        return cls(
            mappings={si: si for si in ordered},
            to_create=ordered,
            dest_count=0,
            replace=True,
        )


def _match(
    sources: Sequence[EntitySummary],
    destinations: Sequence[EntitySummary],
    strategy: MatchStrategy,
) -> Dict[int, Optional[int]]:
    dest_by_index = {d.index: d for d in destinations}
    dest_order = sorted(destinations, key=lambda d: d.index)
    used = set()
    matches: Dict[int, Optional[int]] = {}

    for src in sorted(sources, key=lambda s: s.index):
        match_idx = None

        if strategy.exact_name and src.name:
            for dest in dest_order:
                if dest.index not in used and dest.name == src.name:
                    match_idx = dest.index
                    break

        if match_idx is None and strategy.index_fallback:
            if src.index in dest_by_index and src.index not in used:
                match_idx = src.index

        if match_idx is not None:
            used.add(match_idx)
        matches[src.index] = match_idx

    return matches


def match_tracks(
    source_tracks: Mapping[int, TrackRecord],
    dest_tracks: Sequence[EntitySummary],
    strategy: MatchStrategy,
) -> Dict[int, Optional[int]]:
    """
    Match source tracks to destination tracks

    Source tracks are processed in ascending index order. Exact name wins over
    index fallback; each destination index is consumed at most once.

    Returns:
        Source index -> destination index, or None for "create new"
    """
    sources = [EntitySummary(index=si, name=rec.name) for si, rec in source_tracks.items()]
    matches = _match(sources, dest_tracks, strategy)

    dest_names = {d.index: d.name for d in dest_tracks}
    for si, di in matches.items():
        migration_logger.log_match(
            source_tracks[si].name or "(unnamed)",
            di,
            dest_names.get(di) if di is not None else None,
        )
    return matches


def match_takes(
    source_takes: Sequence[TakeRecord],
    dest_takes: Sequence[EntitySummary],
    strategy: MatchStrategy,
) -> Dict[int, Optional[int]]:
    """Match one item's takes; same rules as tracks, scoped to the item"""
    sources = [EntitySummary(index=t.take_index, name=t.name) for t in source_takes]
    return _match(sources, dest_takes, strategy)


def build_plan(
    destination: "DocumentStore",
    source_tracks: Mapping[int, TrackRecord],
    matching: MatchingConfig,
) -> MergePlan:
    """
    Build the Merge Plan for a migration

    Destination track names are read fresh from the store at call time.
    Unmatched sources are appended after the existing destination tracks in
    ascending source order, or dropped when ``fallback_create`` is off.
    """
    dest_tracks = [
        EntitySummary(index=i, name=destination.get_track_name(destination.get_track(i)))
        for i in range(destination.count_tracks())
    ]
    matches = match_tracks(source_tracks, dest_tracks, matching.tracks)

    plan = MergePlan(dest_count=len(dest_tracks))
    for si in sorted(matches):
        di = matches[si]
        if di is not None:
            plan.mappings[si] = di
        else:
            migration_logger.log_unmatched(source_tracks[si].name or "(unnamed)", matching.fallback_create)
            if matching.fallback_create:
                plan.to_create.append(si)

    for k, si in enumerate(plan.to_create):
        plan.mappings[si] = plan.dest_count + k

    logger.info(
        f"Merge plan built - merged: {len(plan.mappings) - len(plan.to_create)}, "
        f"created: {len(plan.to_create)}"
    )
    return plan
