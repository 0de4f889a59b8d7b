"""
Session Migrator Configuration Management
Centralized settings using Pydantic with environment variable support
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ============================================================================
# MIGRATION TOGGLES
# Reading is unconditional; these only gate what gets written.
# ============================================================================

class ToggleSection(BaseModel):
    """Base for one configuration domain"""
    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class TracksConfig(ToggleSection):
    name: bool = True
    properties: bool = True
    fx: bool = True
    envelopes: bool = True
    lane_configuration: bool = True
    clear_existing_tracks: bool = False
    fx_clear_existing: bool = True


class ItemsConfig(ToggleSection):
    clear_existing_items: bool = False
    create_items: bool = True
    properties: bool = True
    notes: bool = True
    crossfades: bool = True


class TakesConfig(ToggleSection):
    clear_default_takes: bool = True
    name: bool = True
    properties: bool = True
    source_content: bool = True
    fx: bool = True
    envelopes: bool = True
    set_active_take: bool = True


class TempoConfig(ToggleSection):
    markers: bool = True
    clear_existing_markers: bool = False


class ProjectInfoConfig(ToggleSection):
    sample_rate: bool = True
    sample_rate_use: bool = True
    title: bool = True
    author: bool = True
    notes: bool = True


class StretchMarkersConfig(ToggleSection):
    markers: bool = True
    slopes: bool = True
    clear_existing: bool = False


class TakeMarkersConfig(ToggleSection):
    markers: bool = True
    clear_existing: bool = False


class MarkersConfig(ToggleSection):
    markers: bool = True
    regions: bool = True
    clear_existing: bool = False


class MatchStrategy(ToggleSection):
    """Which matching passes run, in order: exact name, then same index"""
    exact_name: bool = True
    index_fallback: bool = False


class MatchingConfig(ToggleSection):
    enabled: bool = True
    tracks: MatchStrategy = Field(default_factory=MatchStrategy)
    takes: MatchStrategy = Field(default_factory=MatchStrategy)
    fallback_create: bool = True


class MigrationConfig(ToggleSection):
    """Nested toggle tree read once per migration"""
    tracks: TracksConfig = Field(default_factory=TracksConfig)
    items: ItemsConfig = Field(default_factory=ItemsConfig)
    takes: TakesConfig = Field(default_factory=TakesConfig)
    tempo: TempoConfig = Field(default_factory=TempoConfig)
    project_info: ProjectInfoConfig = Field(default_factory=ProjectInfoConfig)
    stretch_markers: StretchMarkersConfig = Field(default_factory=StretchMarkersConfig)
    take_markers: TakeMarkersConfig = Field(default_factory=TakeMarkersConfig)
    markers: MarkersConfig = Field(default_factory=MarkersConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)

    @classmethod
    def domains(cls) -> List[str]:
        """Recognized top-level configuration domains"""
        return list(cls.model_fields)


# ============================================================================
# APPLICATION SETTINGS
# ============================================================================

class MigratorSettings(BaseSettings):
    """Session Migrator settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Session Migrator"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ============================================================================
    # LOGGING SETTINGS
    # ============================================================================
    LOG_FILE_PATH: Optional[str] = None
    LOG_MAX_SIZE: int = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT: int = 5
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # ============================================================================
    # MIGRATION SETTINGS
    # ============================================================================
    MIGRATION_CONFIG_PATH: Optional[str] = None
    MIN_OPEN_DOCUMENTS: int = Field(default=2, ge=2)

    def __init__(self, **kwargs):
        """Initialize settings and create the log directory when file logging is on"""
        super().__init__(**kwargs)
        self._create_directories()

    def _create_directories(self) -> None:
        if self.LOG_FILE_PATH:
            Path(self.LOG_FILE_PATH).parent.mkdir(parents=True, exist_ok=True)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.DEBUG

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return not self.DEBUG

    def get_logging_config(self) -> dict:
        """Get logging configuration dictionary"""
        return {
            "level": self.LOG_LEVEL,
            "file_path": self.LOG_FILE_PATH,
            "max_size": self.LOG_MAX_SIZE,
            "backup_count": self.LOG_BACKUP_COUNT,
        }


@lru_cache()
def get_settings() -> MigratorSettings:
    """Get application settings (cached)"""
    return MigratorSettings()


def load_migration_config(path: Optional[Union[str, Path]] = None) -> MigrationConfig:
    """
    Load the migration toggle tree

    Args:
        path: JSON file holding a partial or complete toggle tree. Falls back
            to ``MIGRATION_CONFIG_PATH``; defaults apply when neither exists.

    Returns:
        Validated MigrationConfig
    """
    if path is None:
        path = get_settings().MIGRATION_CONFIG_PATH
    if not path:
        return MigrationConfig()

    config_path = Path(path)
    if not config_path.exists():
        return MigrationConfig()

    with open(config_path, "r", encoding="utf-8") as handle:
        payload = json.load(handle)
    return MigrationConfig.model_validate(payload)
