"""Base interface for ledger event sources."""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field

from tokenestate.engines.projector import IngestSummary
from tokenestate.normalization.events import NormalizationResult, RawRecord


@dataclass
class IngestResult:
    """Bundles the outcome of one pass over an event source."""

    source: str
    batch_id: str | None = None
    received: int = 0
    persisted: int = 0
    normalization: NormalizationResult = field(default_factory=NormalizationResult)
    projection: IngestSummary = field(default_factory=IngestSummary)

    @property
    def rejected(self) -> int:
        return self.normalization.rejected + self.projection.rejected + self.projection.errors


class EventSource(ABC):
    """Abstract base class for raw ledger record sources.

    Delivery is at-least-once with no ordering guarantee; consumers must not
    assume more.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable identifier recorded with each import batch."""
        ...

    @abstractmethod
    def records(self) -> Iterator[RawRecord]:
        """Yield raw records. May block on I/O."""
        ...
