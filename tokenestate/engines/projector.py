"""State projector: event-sourced per-asset supply and holder ledger.

Consumes normalized events and maintains one ``AssetState`` per asset.
Application is idempotent (replaying an event id is a no-op) and tolerant of
out-of-order delivery: sequenced events wait in a bounded per-asset buffer
until their predecessor arrives, and are released best-effort (flagging the
asset ``degraded``) when the buffer overflows or times out.

Each asset has its own lane lock, so events for one asset are applied
serially while different assets proceed concurrently. States are replaced
copy-on-write; readers always see a complete published snapshot.
"""

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from bisect import insort

from tokenestate.config import ProjectorConfig
from tokenestate.engines.event_log import EventLog
from tokenestate.exceptions import (
    InsufficientBalanceError,
    InvariantViolationError,
    ProjectionError,
)
from tokenestate.models.enums import EventKind
from tokenestate.models.events import Event, RejectedEvent
from tokenestate.models.state import AssetState

logger = logging.getLogger(__name__)


class ApplyOutcome(StrEnum):
    APPLIED = "APPLIED"
    DUPLICATE = "DUPLICATE"
    BUFFERED = "BUFFERED"


@dataclass(order=True)
class _Buffered:
    sequence: int
    arrival: int
    buffered_at: float = field(compare=False)
    event: Event = field(compare=False)


@dataclass
class IngestSummary:
    """Counts from applying a batch of events."""

    applied: int = 0
    duplicates: int = 0
    buffered: int = 0
    rejected: int = 0
    errors: int = 0
    messages: list[str] = field(default_factory=list)

    def merge(self, other: "IngestSummary") -> None:
        self.applied += other.applied
        self.duplicates += other.duplicates
        self.buffered += other.buffered
        self.rejected += other.rejected
        self.errors += other.errors
        self.messages.extend(other.messages)


class _AssetLane:
    """Everything the projector owns for one asset, guarded by ``lock``."""

    def __init__(self, asset_id: str, dedup_window: int, rejection_window: int):
        self.asset_id = asset_id
        self.lock = threading.Lock()
        self.state = AssetState(asset_id=asset_id)
        self.dedup_window = dedup_window
        self.applied_ids: OrderedDict[str, None] = OrderedDict()
        self.pending: list[_Buffered] = []
        self.pending_ids: set[str] = set()
        # Most recent rejections by event id; the repository keeps the full record.
        self.rejection_window = rejection_window
        self.rejected: OrderedDict[str, RejectedEvent] = OrderedDict()
        self.arrivals = 0

    def seen(self, event_id: str) -> bool:
        return (
            event_id in self.applied_ids
            or event_id in self.pending_ids
            or event_id in self.rejected
        )

    def remember(self, event_id: str) -> None:
        self.applied_ids[event_id] = None
        self.applied_ids.move_to_end(event_id)
        while len(self.applied_ids) > self.dedup_window:
            self.applied_ids.popitem(last=False)

    def record_rejection(self, rejection: RejectedEvent) -> None:
        self.rejected[rejection.event.id] = rejection
        self.rejected.move_to_end(rejection.event.id)
        while len(self.rejected) > self.rejection_window:
            self.rejected.popitem(last=False)

    def has_expired(self, now: float, timeout: float) -> bool:
        return any(now - item.buffered_at >= timeout for item in self.pending)

    def expected_sequence(self) -> int | None:
        last = self.state.last_applied_sequence
        return None if last is None else last + 1

    def mark_degraded(self) -> None:
        if not self.state.degraded:
            self.state = self.state.model_copy(update={"degraded": True})


class StateProjector:
    """Maintains per-asset ``AssetState`` from a stream of events.

    Args:
        config: Ordering, buffering and dedup settings.
        event_log: Retained history that accepted events are appended to.
        clock: Monotonic clock (seconds) used for buffer timeouts.
        now: Wall clock used for ``last_updated`` and rejection timestamps.

    Usage::

        projector = StateProjector()
        projector.apply(event)           # True if the state changed
        state = projector.get_state("asset-1")
    """

    def __init__(
        self,
        config: ProjectorConfig | None = None,
        event_log: EventLog | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] | None = None,
    ):
        self.config = config or ProjectorConfig()
        self.event_log = event_log if event_log is not None else EventLog()
        self.clock = clock
        self.now = now or (lambda: datetime.now(timezone.utc))
        self._lanes: dict[str, _AssetLane] = {}
        self._lanes_lock = threading.Lock()

    # --- Public API ---

    def apply(self, event: Event) -> bool:
        """Apply one event. Returns True if the asset's state changed.

        Raises:
            InsufficientBalanceError: the event was rejected; state unchanged.
            InvariantViolationError: the asset is halted pending re-derivation.
        """
        return self.apply_event(event) == ApplyOutcome.APPLIED

    def apply_event(self, event: Event) -> ApplyOutcome:
        """Apply one event and report whether it was applied, buffered or a replay."""
        lane = self._lane(event.asset_id)
        with lane.lock:
            return self._apply_locked(lane, event)

    def ingest(self, events: Iterable[Event]) -> IngestSummary:
        """Apply many events, isolating failures per event.

        Events are grouped into per-asset lanes (order within an asset is
        preserved); lanes run on a thread pool when ``config.workers > 1``.
        """
        lanes: dict[str, list[Event]] = {}
        for event in events:
            lanes.setdefault(event.asset_id, []).append(event)

        summary = IngestSummary()
        if self.config.workers > 1 and len(lanes) > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
                for lane_summary in pool.map(self._ingest_lane, lanes.values()):
                    summary.merge(lane_summary)
        else:
            for lane_events in lanes.values():
                summary.merge(self._ingest_lane(lane_events))
        self.flush_expired()

        if summary.applied or summary.rejected:
            logger.info(
                "Ingested %d event(s): applied=%d duplicates=%d buffered=%d rejected=%d errors=%d",
                sum(len(v) for v in lanes.values()),
                summary.applied,
                summary.duplicates,
                summary.buffered,
                summary.rejected,
                summary.errors,
            )
        return summary

    def load_history(self, events: Iterable[Event]) -> IngestSummary:
        """Rebuild projections from a persisted event inbox at start-up."""
        summary = self.ingest(events)
        self.flush_expired(force=True)
        return summary

    def get_state(self, asset_id: str) -> AssetState | None:
        """Latest published state, or None for an asset never seen.

        Buffered events past ``buffer_timeout`` are released first, so a
        stalled asset is reported degraded instead of waiting for more traffic.
        """
        lane = self._lanes.get(asset_id)
        if lane is None:
            return None
        if lane.has_expired(self.clock(), self.config.buffer_timeout):
            with lane.lock:
                if not lane.state.halted:
                    self._release_expired(lane)
        return lane.state

    def assets(self) -> list[str]:
        with self._lanes_lock:
            return sorted(self._lanes)

    def states(self) -> list[AssetState]:
        return [state for state in (self.get_state(a) for a in self.assets()) if state]

    def pending_count(self, asset_id: str) -> int:
        lane = self._lanes.get(asset_id)
        return len(lane.pending) if lane is not None else 0

    def rejected_events(self, asset_id: str | None = None) -> list[RejectedEvent]:
        if asset_id is not None:
            lane = self._lanes.get(asset_id)
            return list(lane.rejected.values()) if lane is not None else []
        rejected: list[RejectedEvent] = []
        for asset in self.assets():
            rejected.extend(self._lanes[asset].rejected.values())
        return sorted(rejected, key=lambda r: r.rejected_at)

    def flush_expired(self, force: bool = False) -> int:
        """Release buffered events older than ``buffer_timeout``.

        With ``force`` every buffered event is released. Released events are
        applied in sequence order, skipping the missing predecessors, and the
        asset is flagged degraded. Returns the number of events released.
        """
        released = 0
        for asset_id in self.assets():
            lane = self._lanes[asset_id]
            with lane.lock:
                if not lane.state.halted:
                    released += self._release_expired(lane, force=force)
        return released

    def rederive(self, asset_id: str) -> AssetState:
        """Rebuild an asset's state from its retained history.

        Raises:
            InvariantViolationError: the replayed history is itself inconsistent.
        """
        lane = self._lane(asset_id)
        with lane.lock:
            return self._rederive_locked(lane)

    # --- Lanes ---

    def _lane(self, asset_id: str) -> _AssetLane:
        lane = self._lanes.get(asset_id)
        if lane is not None:
            return lane
        with self._lanes_lock:
            lane = self._lanes.get(asset_id)
            if lane is None:
                lane = _AssetLane(asset_id, self.config.dedup_window, self.config.rejection_window)
                self._lanes[asset_id] = lane
            return lane

    def _ingest_lane(self, events: list[Event]) -> IngestSummary:
        summary = IngestSummary()
        for event in events:
            try:
                outcome = self.apply_event(event)
            except InsufficientBalanceError as e:
                summary.rejected += 1
                summary.messages.append(str(e))
                continue
            except ProjectionError as e:
                summary.errors += 1
                summary.messages.append(str(e))
                continue
            if outcome == ApplyOutcome.APPLIED:
                summary.applied += 1
            elif outcome == ApplyOutcome.BUFFERED:
                summary.buffered += 1
            else:
                summary.duplicates += 1
        return summary

    # --- Ordering ---

    def _apply_locked(self, lane: _AssetLane, event: Event) -> ApplyOutcome:
        if lane.state.halted:
            raise InvariantViolationError(
                event.id, lane.asset_id, "projection halted pending re-derivation"
            )
        if lane.seen(event.id) or (event.asset_id, event.id) in self.event_log:
            logger.debug("Ignoring replayed event %s on asset %s", event.id, lane.asset_id)
            return ApplyOutcome.DUPLICATE

        self._release_expired(lane)

        if event.sequence is None or not self.config.strict_ordering:
            self._commit(lane, event)
            return ApplyOutcome.APPLIED

        expected = lane.expected_sequence()
        if expected is None:
            in_order = event.sequence <= 1
        else:
            in_order = event.sequence == expected

        if in_order:
            try:
                self._commit(lane, event)
            except InsufficientBalanceError:
                self._drain(lane)
                raise
            self._drain(lane)
            return ApplyOutcome.APPLIED

        if expected is not None and event.sequence < expected:
            logger.warning(
                "Late event %s on asset %s (sequence %d, expected %d); applying best-effort",
                event.id,
                lane.asset_id,
                event.sequence,
                expected,
            )
            self._commit(lane, event)
            lane.mark_degraded()
            return ApplyOutcome.APPLIED

        self._buffer(lane, event)
        return ApplyOutcome.BUFFERED

    def _buffer(self, lane: _AssetLane, event: Event) -> None:
        lane.arrivals += 1
        insort(lane.pending, _Buffered(event.sequence, lane.arrivals, self.clock(), event))
        lane.pending_ids.add(event.id)
        logger.debug(
            "Buffered event %s on asset %s (sequence %d, expected %s)",
            event.id,
            lane.asset_id,
            event.sequence,
            lane.expected_sequence(),
        )
        while len(lane.pending) > self.config.max_buffered:
            logger.warning(
                "Reorder buffer full for asset %s (%d events); releasing best-effort",
                lane.asset_id,
                len(lane.pending),
            )
            self._release_one(lane)

    def _drain(self, lane: _AssetLane) -> None:
        """Apply buffered events that are now next in sequence."""
        while lane.pending:
            expected = lane.expected_sequence()
            head = lane.pending[0]
            if expected is not None and head.sequence > expected:
                return
            lane.pending.pop(0)
            lane.pending_ids.discard(head.event.id)
            if expected is not None and head.sequence < expected:
                lane.mark_degraded()
            self._commit_quietly(lane, head.event)

    def _release_expired(self, lane: _AssetLane, force: bool = False) -> int:
        released = 0
        while lane.pending:
            oldest = min(item.buffered_at for item in lane.pending)
            if not force and self.clock() - oldest < self.config.buffer_timeout:
                break
            released += self._release_one(lane)
        return released

    def _release_one(self, lane: _AssetLane) -> int:
        """Apply the lowest buffered sequence despite the gap, then drain."""
        head = lane.pending.pop(0)
        lane.pending_ids.discard(head.event.id)
        logger.warning(
            "Releasing event %s on asset %s without predecessor (sequence %d, expected %s)",
            head.event.id,
            lane.asset_id,
            head.sequence,
            lane.expected_sequence(),
        )
        lane.mark_degraded()
        self._commit_quietly(lane, head.event)
        self._drain(lane)
        return 1

    # --- Mutation ---

    def _commit_quietly(self, lane: _AssetLane, event: Event) -> None:
        """Commit an event nobody is waiting on; failures are recorded and logged."""
        try:
            self._commit(lane, event)
        except ProjectionError as e:
            logger.error("Deferred event %s on asset %s failed: %s", event.id, lane.asset_id, e)

    def _commit(self, lane: _AssetLane, event: Event) -> None:
        try:
            new_state = self._mutate(lane.state, event)
        except InsufficientBalanceError as e:
            self._reject(lane, event, e)
            raise

        if not new_state.is_consistent():
            logger.error(
                "Invariant violated by event %s on asset %s: held=%s available=%s total=%s",
                event.id,
                lane.asset_id,
                new_state.held_supply,
                new_state.available_supply,
                new_state.total_supply,
            )
            lane.state = lane.state.model_copy(update={"halted": True})
            try:
                self._rederive_locked(lane)
            except InvariantViolationError:
                raise InvariantViolationError(
                    event.id, lane.asset_id, "supply invariant violated; re-derivation failed"
                ) from None
            raise InvariantViolationError(
                event.id, lane.asset_id, "supply invariant violated; state re-derived from history"
            )

        lane.state = new_state
        lane.remember(event.id)
        self.event_log.append(event)

        if event.kind == EventKind.MINT and new_state.degraded:
            logger.info("Mint %s on degraded asset %s; re-deriving", event.id, lane.asset_id)
            try:
                self._rederive_locked(lane)
            except InvariantViolationError as e:
                logger.error("Self-heal re-derivation failed for asset %s: %s", lane.asset_id, e)

    def _reject(self, lane: _AssetLane, event: Event, error: ProjectionError) -> None:
        logger.error(
            "Rejected event %s on asset %s: %s",
            event.id,
            lane.asset_id,
            error,
        )
        lane.record_rejection(
            RejectedEvent(
                event=event,
                reason=str(error),
                error_type=type(error).__name__,
                rejected_at=self.now(),
            )
        )
        # A rejected event still consumes its sequence so successors are not stalled.
        if event.sequence is not None:
            last = lane.state.last_applied_sequence
            if last is None or event.sequence > last:
                lane.state = lane.state.model_copy(update={"last_applied_sequence": event.sequence})

    def _mutate(self, state: AssetState, event: Event) -> AssetState:
        """Return the state after ``event``. Raises InsufficientBalanceError."""
        balances = dict(state.holder_balances)
        total = state.total_supply
        available = state.available_supply
        amount = event.token_amount or Decimal("0")

        def debit(holder: str | None) -> None:
            nonlocal available
            if holder is None:
                if available < amount:
                    raise InsufficientBalanceError(
                        event.id, state.asset_id, "available supply", amount, available
                    )
                available -= amount
                return
            balance = balances.get(holder, Decimal("0"))
            if balance < amount:
                raise InsufficientBalanceError(event.id, state.asset_id, holder, amount, balance)
            remaining = balance - amount
            if remaining > 0:
                balances[holder] = remaining
            else:
                balances.pop(holder, None)

        def credit(holder: str | None) -> None:
            nonlocal available
            if holder is None:
                available += amount
            else:
                balances[holder] = balances.get(holder, Decimal("0")) + amount

        match event.kind:
            case EventKind.MINT:
                total += amount
                credit(event.to_address)
            case EventKind.BURN:
                debit(event.from_address)
                total -= amount
            case EventKind.TRANSFER:
                debit(event.from_address)
                credit(event.to_address)
            case EventKind.DIVIDEND | EventKind.FEE:
                pass

        last_sequence = state.last_applied_sequence
        if event.sequence is not None and (last_sequence is None or event.sequence > last_sequence):
            last_sequence = event.sequence

        return state.model_copy(
            update={
                "total_supply": total,
                "available_supply": available,
                "holder_balances": balances,
                "transaction_count": state.transaction_count + 1,
                "last_applied_sequence": last_sequence,
                "last_updated": self.now(),
            }
        )

    # --- Re-derivation ---

    def _rederive_locked(self, lane: _AssetLane) -> AssetState:
        history = list(self.event_log.snapshot(lane.asset_id))
        if all(e.sequence is not None for e in history):
            history.sort(key=lambda e: (e.sequence, e.occurred_at, e.id))

        state = AssetState(asset_id=lane.asset_id)
        skipped = 0
        for event in history:
            try:
                state = self._mutate(state, event)
            except InsufficientBalanceError as e:
                skipped += 1
                logger.warning("Re-derivation of asset %s skipped event %s: %s", lane.asset_id, event.id, e)

        if not state.is_consistent():
            lane.state = lane.state.model_copy(update={"halted": True})
            raise InvariantViolationError(
                history[-1].id if history else "<none>",
                lane.asset_id,
                "history replay does not satisfy the supply invariant",
            )

        last = lane.state.last_applied_sequence
        if last is not None and (state.last_applied_sequence is None or last > state.last_applied_sequence):
            state = state.model_copy(update={"last_applied_sequence": last})
        lane.state = state.model_copy(update={"degraded": skipped > 0, "halted": False})
        logger.info(
            "Re-derived asset %s from %d event(s) (%d skipped)", lane.asset_id, len(history), skipped
        )
        return lane.state
