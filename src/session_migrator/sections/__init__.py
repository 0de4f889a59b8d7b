"""
Session Migrator Sections
One reader/writer per document section
"""

from .base import Section, WriteContext
from .items import ItemsSection
from .markers import MarkersSection
from .project_info import ProjectInfoSection
from .stretch_markers import StretchMarkersSection
from .take_markers import TakeMarkersSection
from .takes import TakesSection
from .tempo import TempoSection
from .tracks import TracksSection

__all__ = [
    "Section",
    "WriteContext",
    "ItemsSection",
    "MarkersSection",
    "ProjectInfoSection",
    "StretchMarkersSection",
    "TakeMarkersSection",
    "TakesSection",
    "TempoSection",
    "TracksSection",
]
