"""
Session Migrator Core Module
Configuration, logging, snapshot records and the matching engine
"""

from .result import Result, SkipRecord, WriteReport
from .snapshot import ProjectSnapshot, MigrationStats
from .matching import MergePlan, build_plan, match_tracks, match_takes

__all__ = [
    "Result",
    "SkipRecord",
    "WriteReport",
    "ProjectSnapshot",
    "MigrationStats",
    "MergePlan",
    "build_plan",
    "match_tracks",
    "match_takes",
]
