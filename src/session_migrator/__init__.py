"""
Session Migrator
Migrates tracks, items, takes, tempo and markers between project documents
"""

from .core.config import MigrationConfig, MigratorSettings, get_settings, load_migration_config
from .core.integrator import Integrator, MigrationError, MigrationOutcome
from .store.memory import InMemoryDocumentStore

__version__ = "0.1.0"

__all__ = [
    "Integrator",
    "MigrationError",
    "MigrationOutcome",
    "MigrationConfig",
    "MigratorSettings",
    "get_settings",
    "load_migration_config",
    "InMemoryDocumentStore",
]
