"""Ingest pipeline: source -> normalizer -> persisted inbox -> projector.

Reading and normalizing happen before any projector lock is taken; applying
the batch is a separate, in-memory step. When a repository is attached every
received event is persisted first, so projections can be rebuilt from the
inbox on the next start-up.
"""

import logging

from tokenestate.db.repository import LedgerRepository
from tokenestate.engines.projector import IngestSummary, StateProjector
from tokenestate.ingestion.base import EventSource, IngestResult
from tokenestate.normalization.events import EventNormalizer

logger = logging.getLogger(__name__)


class IngestPipeline:
    def __init__(
        self,
        projector: StateProjector,
        repository: LedgerRepository | None = None,
        normalizer: EventNormalizer | None = None,
    ):
        self.projector = projector
        self.repository = repository
        self.normalizer = normalizer or EventNormalizer()

    def restore(self) -> IngestSummary:
        """Replay the persisted inbox into the projector."""
        if self.repository is None:
            return IngestSummary()
        events = self.repository.load_events()
        if not events:
            return IngestSummary()
        logger.info("Restoring %d persisted event(s)", len(events))
        return self.projector.load_history(events)

    def run(self, source: EventSource) -> IngestResult:
        """Normalize, persist and apply every record from ``source``."""
        records = list(source.records())
        result = IngestResult(source=source.name, received=len(records))
        result.normalization = self.normalizer.normalize_many(records)
        events = result.normalization.events

        if self.repository is not None:
            result.batch_id = self.repository.create_import_batch(
                "ledger", source.name, record_count=len(records)
            )
            for event in events:
                if self.repository.save_event(event, result.batch_id):
                    result.persisted += 1

        result.projection = self.projector.ingest(events)

        if self.repository is not None:
            batch_ids = {(e.asset_id, e.id) for e in events}
            for rejected in self.projector.rejected_events():
                if (rejected.event.asset_id, rejected.event.id) in batch_ids:
                    self.repository.save_rejection(rejected)
            self.repository.finish_import_batch(
                result.batch_id,
                accepted=result.projection.applied + result.projection.buffered,
                rejected=result.rejected,
            )

        logger.info(
            "Ingested %s: received=%d normalized=%d applied=%d rejected=%d",
            source.name,
            result.received,
            len(events),
            result.projection.applied,
            result.rejected,
        )
        return result
