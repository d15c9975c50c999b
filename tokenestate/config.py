"""Runtime configuration models for tokenestate."""

import json
from pathlib import Path

from pydantic import BaseModel, Field

from tokenestate.models.enums import PerformanceRange


class ProjectorConfig(BaseModel):
    strict_ordering: bool = True
    max_buffered: int = Field(default=1000, ge=1)
    buffer_timeout: float = Field(default=30.0, gt=0)
    dedup_window: int = Field(default=100_000, ge=1)
    rejection_window: int = Field(default=10_000, ge=1)
    workers: int = Field(default=1, ge=1)


class TaxPolicy(BaseModel):
    """Lot-matching and holding-period policy for one jurisdiction.

    ``long_term_days`` overrides the jurisdiction table when set.
    """

    jurisdiction: str = "US"
    long_term_days: int | None = Field(default=None, ge=0)

    @property
    def threshold_days(self) -> int:
        from tokenestate.engines.policy import long_term_days

        if self.long_term_days is not None:
            return self.long_term_days
        return long_term_days(self.jurisdiction)


class AnalyticsConfig(BaseModel):
    workers: int = Field(default=4, ge=1)
    timeout: float | None = Field(default=None, gt=0)
    default_range: PerformanceRange = PerformanceRange.ONE_YEAR


class AppConfig(BaseModel):
    projector: ProjectorConfig = Field(default_factory=ProjectorConfig)
    tax: TaxPolicy = Field(default_factory=TaxPolicy)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)


def load_config(path: Path | None) -> AppConfig:
    """Load an AppConfig from a JSON file, or the defaults when no path is given."""
    if path is None:
        return AppConfig()
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    return AppConfig(**json.loads(path.read_text()))
