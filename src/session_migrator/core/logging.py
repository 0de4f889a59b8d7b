"""
Session Migrator Logging Configuration
Structured logging setup with optional file rotation
"""

import logging
import logging.handlers
import sys
from typing import Any, Optional

import structlog
from pythonjsonlogger import jsonlogger

from .config import get_settings


def setup_logging(settings=None) -> logging.Logger:
    """Set up structured logging for Session Migrator"""
    settings = settings or get_settings()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)

    if settings.is_development:
        console_formatter = logging.Formatter(
            '\033[92m%(asctime)s\033[0m - '
            '\033[94m%(name)s\033[0m - '
            '%(levelname)s - '
            '%(message)s',
            datefmt='%H:%M:%S'
        )
    else:
        console_formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(message)s'
        )

    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if settings.LOG_FILE_PATH:
        file_handler = logging.handlers.RotatingFileHandler(
            settings.LOG_FILE_PATH,
            maxBytes=settings.LOG_MAX_SIZE,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(jsonlogger.JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(pathname)s %(lineno)d %(funcName)s %(message)s'
        ))
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if not settings.is_development
            else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("session_migrator.migration").setLevel(logging.DEBUG)

    logger = logging.getLogger("session_migrator")
    logger.info(f"Logging configured - Level: {settings.LOG_LEVEL}")

    return logger


class MigrationLogger:
    """Specialized logger for migration runs"""

    def __init__(self):
        self.logger = structlog.get_logger("session_migrator.migration")

    def log_migration_start(self, source: str, destination: str, **kwargs: Any) -> None:
        """Log start of a migration"""
        self.logger.info(
            "Migration started",
            source=source,
            destination=destination,
            **kwargs
        )

    def log_migration_complete(self, success: bool, duration_ms: float, **kwargs: Any) -> None:
        """Log completion of a migration"""
        self.logger.info(
            "Migration completed",
            success=success,
            duration_ms=duration_ms,
            **kwargs
        )

    def log_section_start(self, section: str, **kwargs: Any) -> None:
        self.logger.debug("Section write started", section=section, **kwargs)

    def log_section_complete(
        self,
        section: str,
        written: int,
        skipped: int = 0,
        **kwargs: Any
    ) -> None:
        """Log completion of one section writer"""
        self.logger.info(
            "Section write completed",
            section=section,
            written=written,
            skipped=skipped,
            **kwargs
        )

    def log_match(self, source_name: str, dest_index: Optional[int], dest_name: Optional[str] = None) -> None:
        """Log one track matching decision"""
        if dest_index is None:
            self.logger.debug("No matching destination track", source_name=source_name)
        else:
            self.logger.debug(
                "Matched track",
                source_name=source_name,
                dest_index=dest_index,
                dest_name=dest_name
            )

    def log_unmatched(self, source_name: str, created: bool) -> None:
        """Log what the Merge Plan does with an unmatched source track"""
        if created:
            self.logger.info("Unmatched track marked for creation", source_name=source_name)
        else:
            self.logger.info("Unmatched track dropped", source_name=source_name)

    def log_skip(self, section: str, entity_key: str, reason: str) -> None:
        """Log an entity that could not be resolved in the destination"""
        self.logger.warning(
            "Entity skipped",
            section=section,
            entity_key=entity_key,
            reason=reason
        )

    def log_fallback(self, section: str, entity_key: str, reason: str) -> None:
        """Log a reduced-fidelity write"""
        self.logger.info(
            "Fidelity fallback",
            section=section,
            entity_key=entity_key,
            reason=reason
        )

    def log_statistics(self, stats: dict, action: str = "PARSED") -> None:
        self.logger.info("Migration statistics", action=action, **stats)


# Create global logger instance
migration_logger = MigrationLogger()

__all__ = [
    "setup_logging",
    "MigrationLogger",
    "migration_logger",
]
