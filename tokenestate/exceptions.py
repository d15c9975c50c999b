"""Custom exceptions for tokenestate."""

from decimal import Decimal
from typing import Any


class LedgerError(Exception):
    """Base exception for ledger projection and analytics errors."""


class NormalizationError(LedgerError):
    """Raised when a raw ledger record cannot become an Event."""

    def __init__(self, record_id: str | None, message: str):
        self.record_id = record_id
        super().__init__(f"Record {record_id or '<no id>'}: {message}")


class MalformedEventError(NormalizationError):
    """Raised when a raw record lacks required fields or has invalid values."""

    def __init__(self, record_id: str | None, field: str, message: str):
        self.field = field
        super().__init__(record_id, f"malformed '{field}': {message}")


class UnsupportedEventKindError(NormalizationError):
    """Raised when a raw record describes an event kind the projector ignores."""

    def __init__(self, record_id: str | None, kind: str):
        self.kind = kind
        super().__init__(record_id, f"unsupported event kind '{kind}'")


class ProjectionError(LedgerError):
    """Raised when an event cannot be applied to an asset's state."""

    def __init__(self, event_id: str, asset_id: str, message: str):
        self.event_id = event_id
        self.asset_id = asset_id
        super().__init__(f"Event {event_id} on asset {asset_id}: {message}")


class InsufficientBalanceError(ProjectionError):
    """Raised when a transfer or burn would drive a balance negative."""

    def __init__(
        self,
        event_id: str,
        asset_id: str,
        holder: str,
        requested: Decimal,
        available: Decimal,
    ):
        self.holder = holder
        self.requested = requested
        self.available = available
        super().__init__(
            event_id,
            asset_id,
            f"insufficient balance for {holder}: requested={requested}, available={available}",
        )


class InvariantViolationError(ProjectionError):
    """Raised when an asset's supply no longer adds up.

    Halts incremental updates for the asset until re-derivation succeeds.
    """


class NotFoundError(LedgerError):
    """Raised by lookups for an entity that does not exist."""


class PropertyNotFoundError(NotFoundError):
    """Raised when reference data for a property is missing."""

    def __init__(self, property_id: str):
        self.property_id = property_id
        super().__init__(f"Property not found: {property_id}")


class ReplayTimeoutError(LedgerError):
    """Raised when a bounded replay exceeds its deadline.

    ``partial`` holds whatever results were completed before the deadline.
    """

    def __init__(self, operation: str, partial: list[Any]):
        self.operation = operation
        self.partial = partial
        super().__init__(
            f"{operation} exceeded its deadline after {len(partial)} result(s)"
        )
