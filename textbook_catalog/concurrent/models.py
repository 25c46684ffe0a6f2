"""
Data models for the concurrent crawl.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional
from datetime import datetime
from enum import Enum

from textbook_catalog.utils.errors import ValidationError


class CrawlState(Enum):
    """Lifecycle of one crawl run."""
    IDLE = "idle"
    FETCHING_ROOT = "fetching_root"
    DISPATCHING = "dispatching"
    AWAITING_WORKERS = "awaiting_workers"
    EXPORTING = "exporting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ConcurrentConfig:
    """Configuration for the concurrent crawl."""
    max_workers: int = 10
    district_delay: float = 0.1
    shutdown_timeout: float = 60.0
    shutdown_grace: float = 10.0

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.validate()

    def validate(self) -> None:
        """
        Validate configuration parameters.

        Raises:
            ValidationError: If configuration is invalid
        """
        errors = []

        if not (1 <= self.max_workers <= 50):
            errors.append("max_workers must be between 1 and 50")

        if not (0.0 <= self.district_delay <= 60.0):
            errors.append("district_delay must be between 0.0 and 60.0")

        if self.shutdown_timeout <= 0:
            errors.append("shutdown_timeout must be positive")

        if self.shutdown_grace <= 0:
            errors.append("shutdown_grace must be positive")

        if errors:
            raise ValidationError(
                "Concurrent configuration validation failed",
                {"errors": errors}
            )


@dataclass
class CrawlSummary:
    """Outcome of one crawl run."""
    state: CrawlState
    started_at: datetime
    completed_at: Optional[datetime] = None
    cities_found: int = 0
    cities_failed: int = 0
    districts_processed: int = 0
    districts_failed: int = 0
    records_collected: int = 0
    raw_export_path: Optional[str] = None
    raw_export_ok: bool = False

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": round(self.duration_seconds, 2),
            "cities_found": self.cities_found,
            "cities_failed": self.cities_failed,
            "districts_processed": self.districts_processed,
            "districts_failed": self.districts_failed,
            "records_collected": self.records_collected,
            "raw_export_path": self.raw_export_path,
            "raw_export_ok": self.raw_export_ok,
        }
