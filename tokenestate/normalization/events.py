"""Event normalization: raw ledger records to typed Events."""

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from tokenestate.exceptions import MalformedEventError, UnsupportedEventKindError
from tokenestate.models.enums import EventKind
from tokenestate.models.events import Event

logger = logging.getLogger(__name__)

RawRecord = dict[str, Any]

KIND_ALIASES: dict[str, EventKind] = {
    "mint": EventKind.MINT,
    "issue": EventKind.MINT,
    "transfer": EventKind.TRANSFER,
    "purchase": EventKind.TRANSFER,
    "sale": EventKind.TRANSFER,
    "dividend": EventKind.DIVIDEND,
    "fee": EventKind.FEE,
    "burn": EventKind.BURN,
    "redeem": EventKind.BURN,
}

INDEXER_TRANSFER_KEY = "asset-transfer-transaction"


def _nested_asset_id(raw: RawRecord) -> Any:
    inner = raw.get(INDEXER_TRANSFER_KEY)
    return inner.get("asset-id") if isinstance(inner, dict) else None


# Tried in order; the first strategy that yields a value names the asset.
ASSET_ID_STRATEGIES: list[tuple[str, Callable[[RawRecord], Any]]] = [
    ("assetId", lambda raw: raw.get("assetId")),
    ("asset_id", lambda raw: raw.get("asset_id")),
    (f"{INDEXER_TRANSFER_KEY}.asset-id", _nested_asset_id),
    ("asa_id", lambda raw: raw.get("asa_id")),
]


@dataclass
class NormalizationResult:
    """Events accepted from a batch plus per-reason rejection counts."""

    events: list[Event] = field(default_factory=list)
    malformed: int = 0
    unsupported: int = 0
    duplicates: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def rejected(self) -> int:
        return self.malformed + self.unsupported


class EventNormalizer:
    """Converts heterogeneous raw ledger records into one closed Event shape.

    Two record shapes are recognised: flat records (already keyed by kind,
    asset, from/to and amounts) and indexer asset-transfer transactions.
    ``reserve_addresses`` names the issuer wallets whose indexer transfers
    represent primary sales or buy-backs against the available supply.
    """

    def __init__(
        self,
        reserve_addresses: Iterable[str] = (),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.reserve_addresses = set(reserve_addresses)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def normalize(self, raw: RawRecord) -> Event:
        """Normalize one raw record. Raises a NormalizationError subclass."""
        if not isinstance(raw, dict):
            raise MalformedEventError(None, "record", f"expected an object, got {type(raw).__name__}")
        if INDEXER_TRANSFER_KEY in raw or "tx-type" in raw:
            event = self._parse_indexer(raw)
        else:
            event = self._parse_flat(raw)
        self._validate(event)
        return event

    def normalize_many(self, records: Iterable[RawRecord]) -> NormalizationResult:
        """Normalize a batch, skipping and counting records that fail."""
        result = NormalizationResult()
        seen_ids: set[str] = set()
        for raw in records:
            try:
                event = self.normalize(raw)
            except UnsupportedEventKindError as e:
                logger.warning("Skipping unsupported record: %s", e)
                result.unsupported += 1
                result.errors.append(str(e))
                continue
            except MalformedEventError as e:
                logger.warning("Skipping malformed record: %s", e)
                result.malformed += 1
                result.errors.append(str(e))
                continue
            if event.id in seen_ids:
                result.duplicates += 1
                continue
            seen_ids.add(event.id)
            result.events.append(event)
        return result

    # --- Record shapes ---

    def _parse_flat(self, raw: RawRecord) -> Event:
        record_id = _first(raw, "id", "txId", "tx_id")
        if record_id in (None, ""):
            raise MalformedEventError(None, "id", "missing")
        record_id = str(record_id)

        kind_raw = _first(raw, "kind", "type")
        if kind_raw in (None, ""):
            raise MalformedEventError(record_id, "kind", "missing")
        kind = self._resolve_kind(record_id, kind_raw)

        return Event(
            id=record_id,
            kind=kind,
            asset_id=self._resolve_asset_id(record_id, raw),
            from_address=_address(_first(raw, "from", "from_address", "fromAddress")),
            to_address=_address(_first(raw, "to", "to_address", "toAddress")),
            token_amount=_decimal(record_id, "token_amount", _first(raw, "token_amount", "tokenAmount")),
            cash_amount=_decimal(record_id, "cash_amount", _first(raw, "cash_amount", "cashAmount", "amount")),
            occurred_at=self._timestamp(record_id, _first(raw, "occurred_at", "occurredAt", "timestamp")),
            observed_at=self._observed_at(record_id, raw),
            sequence=_sequence(record_id, _first(raw, "sequence", "seq")),
            source="flat",
        )

    def _parse_indexer(self, raw: RawRecord) -> Event:
        record_id = raw.get("id")
        if record_id in (None, ""):
            raise MalformedEventError(None, "id", "missing")
        record_id = str(record_id)

        tx_type = raw.get("tx-type", "axfer")
        if tx_type != "axfer":
            raise UnsupportedEventKindError(record_id, str(tx_type))
        inner = raw.get(INDEXER_TRANSFER_KEY)
        if not isinstance(inner, dict):
            raise MalformedEventError(record_id, INDEXER_TRANSFER_KEY, "missing")

        token_amount = _decimal(record_id, "amount", inner.get("amount"))
        if token_amount is None:
            raise MalformedEventError(record_id, "amount", "missing")
        if token_amount == 0:
            # Zero-amount asset transfers are opt-ins, not ownership changes.
            raise UnsupportedEventKindError(record_id, "opt_in")

        note = _note(record_id, raw.get("note"))
        kind = self._resolve_kind(record_id, note.get("kind", "transfer"))

        sender = _address(raw.get("sender"))
        receiver = _address(inner.get("receiver"))
        if kind == EventKind.TRANSFER:
            if sender in self.reserve_addresses:
                sender = None
            if receiver in self.reserve_addresses:
                receiver = None

        round_time = raw.get("round-time")
        if round_time is None:
            raise MalformedEventError(record_id, "round-time", "missing")

        return Event(
            id=record_id,
            kind=kind,
            asset_id=self._resolve_asset_id(record_id, raw),
            from_address=sender,
            to_address=receiver,
            token_amount=token_amount,
            cash_amount=_decimal(record_id, "cash_amount", note.get("cash_amount")),
            occurred_at=self._timestamp(record_id, round_time),
            observed_at=self._observed_at(record_id, raw),
            sequence=_sequence(record_id, note.get("sequence")),
            source="indexer",
        )

    # --- Field resolution ---

    @staticmethod
    def _resolve_kind(record_id: str, kind_raw: Any) -> EventKind:
        kind = KIND_ALIASES.get(str(kind_raw).strip().lower())
        if kind is None:
            raise UnsupportedEventKindError(record_id, str(kind_raw))
        return kind

    @staticmethod
    def _resolve_asset_id(record_id: str, raw: RawRecord) -> str:
        for _name, strategy in ASSET_ID_STRATEGIES:
            value = strategy(raw)
            if value not in (None, ""):
                return str(value)
        tried = ", ".join(name for name, _ in ASSET_ID_STRATEGIES)
        raise MalformedEventError(record_id, "asset_id", f"missing (tried {tried})")

    def _observed_at(self, record_id: str, raw: RawRecord) -> datetime:
        value = _first(raw, "observed_at", "observedAt")
        if value is None:
            return self.clock()
        return self._timestamp(record_id, value, field_name="observed_at")

    @staticmethod
    def _timestamp(record_id: str, value: Any, field_name: str = "occurred_at") -> datetime:
        if value is None or value == "":
            raise MalformedEventError(record_id, field_name, "missing")
        try:
            if isinstance(value, datetime):
                parsed = value
            elif isinstance(value, (int, float)) and not isinstance(value, bool):
                parsed = datetime.fromtimestamp(value, tz=timezone.utc)
            else:
                parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except (TypeError, ValueError, OverflowError) as e:
            raise MalformedEventError(record_id, field_name, f"unparseable timestamp {value!r}") from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    # --- Validation ---

    @staticmethod
    def _validate(event: Event) -> None:
        """Enforce the per-kind required fields."""
        if event.kind in (EventKind.MINT, EventKind.BURN, EventKind.TRANSFER):
            if not event.token_amount:
                raise MalformedEventError(event.id, "token_amount", f"required and positive for {event.kind}")
        if event.kind == EventKind.TRANSFER and not (event.from_address or event.to_address):
            raise MalformedEventError(event.id, "to", "transfer needs a sender or a receiver")
        if event.kind == EventKind.DIVIDEND:
            if event.cash_amount is None:
                raise MalformedEventError(event.id, "cash_amount", "required for DIVIDEND")
            if not event.to_address:
                raise MalformedEventError(event.id, "to", "required for DIVIDEND")
        if event.kind == EventKind.FEE:
            if event.cash_amount is None:
                raise MalformedEventError(event.id, "cash_amount", "required for FEE")
            if not event.from_address:
                raise MalformedEventError(event.id, "from", "required for FEE")


def _first(raw: RawRecord, *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _address(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _decimal(record_id: str, field_name: str, value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise MalformedEventError(record_id, field_name, f"not a number: {value!r}") from e
    if not amount.is_finite():
        raise MalformedEventError(record_id, field_name, f"not finite: {value!r}")
    if amount < 0:
        raise MalformedEventError(record_id, field_name, f"negative amount {amount}")
    return amount


def _sequence(record_id: str, value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        sequence = int(value)
    except (TypeError, ValueError) as e:
        raise MalformedEventError(record_id, "sequence", f"not an integer: {value!r}") from e
    if sequence < 0:
        raise MalformedEventError(record_id, "sequence", f"negative sequence {sequence}")
    return sequence


def _note(record_id: str, value: Any) -> dict:
    if value is None or value == "":
        return {}
    if isinstance(value, dict):
        return value
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError) as e:
        raise MalformedEventError(record_id, "note", "not a JSON object") from e
    if not isinstance(parsed, dict):
        raise MalformedEventError(record_id, "note", "not a JSON object")
    return parsed
