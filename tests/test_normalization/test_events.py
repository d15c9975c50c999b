"""Tests for event normalization."""

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from tokenestate.exceptions import MalformedEventError, UnsupportedEventKindError
from tokenestate.models.enums import EventKind
from tokenestate.normalization.events import EventNormalizer

OBSERVED = datetime(2024, 6, 1, tzinfo=timezone.utc)


def flat(**overrides) -> dict:
    record = {
        "id": "tx-1",
        "kind": "purchase",
        "assetId": "123",
        "to": "ALICE",
        "tokenAmount": "10",
        "cashAmount": "100.50",
        "occurredAt": "2024-03-01T10:00:00Z",
        "sequence": 4,
    }
    record.update(overrides)
    return record


def indexer(**overrides) -> dict:
    record = {
        "id": "ALGO-TX-1",
        "tx-type": "axfer",
        "sender": "RESERVE",
        "round-time": 1709287200,
        "confirmed-round": 35000000,
        "asset-transfer-transaction": {
            "asset-id": 777,
            "receiver": "ALICE",
            "amount": 25,
        },
        "note": json.dumps({"kind": "purchase", "cash_amount": "250", "sequence": 2}),
    }
    record.update(overrides)
    return record


class TestFlatRecords:
    def setup_method(self):
        self.normalizer = EventNormalizer(clock=lambda: OBSERVED)

    def test_purchase_becomes_transfer(self):
        event = self.normalizer.normalize(flat())
        assert event.kind == EventKind.TRANSFER
        assert event.asset_id == "123"
        assert event.from_address is None
        assert event.to_address == "ALICE"
        assert event.token_amount == Decimal("10")
        assert event.cash_amount == Decimal("100.50")
        assert event.sequence == 4
        assert event.occurred_at == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
        assert event.observed_at == OBSERVED
        assert event.source == "flat"

    def test_snake_case_keys(self):
        record = {
            "id": "tx-2",
            "type": "dividend",
            "asset_id": "9",
            "to_address": "BOB",
            "cash_amount": 12,
            "occurred_at": "2024-03-01T00:00:00+00:00",
        }
        event = self.normalizer.normalize(record)
        assert event.kind == EventKind.DIVIDEND
        assert event.asset_id == "9"
        assert event.cash_amount == Decimal("12")
        assert event.sequence is None

    def test_naive_timestamp_treated_as_utc(self):
        event = self.normalizer.normalize(flat(occurredAt="2024-03-01T10:00:00"))
        assert event.occurred_at.tzinfo is not None
        assert event.occurred_at.utcoffset().total_seconds() == 0

    def test_epoch_timestamp(self):
        event = self.normalizer.normalize(flat(occurredAt=0))
        assert event.occurred_at == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_unknown_kind_is_unsupported(self):
        with pytest.raises(UnsupportedEventKindError) as exc:
            self.normalizer.normalize(flat(kind="stake"))
        assert exc.value.kind == "stake"
        assert exc.value.record_id == "tx-1"

    def test_missing_asset_id(self):
        record = flat()
        del record["assetId"]
        with pytest.raises(MalformedEventError) as exc:
            self.normalizer.normalize(record)
        assert exc.value.field == "asset_id"

    def test_missing_id(self):
        with pytest.raises(MalformedEventError):
            self.normalizer.normalize(flat(id=""))

    def test_negative_amount(self):
        with pytest.raises(MalformedEventError) as exc:
            self.normalizer.normalize(flat(tokenAmount="-5"))
        assert exc.value.field == "token_amount"

    def test_non_numeric_amount(self):
        with pytest.raises(MalformedEventError):
            self.normalizer.normalize(flat(cashAmount="lots"))

    def test_transfer_requires_tokens(self):
        with pytest.raises(MalformedEventError):
            self.normalizer.normalize(flat(tokenAmount=None))

    def test_transfer_requires_a_party(self):
        with pytest.raises(MalformedEventError):
            self.normalizer.normalize(flat(to=None))

    def test_buy_back_has_no_receiver(self):
        event = self.normalizer.normalize(flat(to=None, **{"from": "ALICE"}))
        assert event.from_address == "ALICE"
        assert event.to_address is None

    def test_dividend_requires_cash_and_receiver(self):
        with pytest.raises(MalformedEventError):
            self.normalizer.normalize(flat(kind="dividend", cashAmount=None))
        with pytest.raises(MalformedEventError):
            self.normalizer.normalize(flat(kind="dividend", to=None))

    def test_fee_requires_payer(self):
        with pytest.raises(MalformedEventError):
            self.normalizer.normalize(flat(kind="fee", to=None))
        event = self.normalizer.normalize(flat(kind="fee", to=None, **{"from": "ALICE"}))
        assert event.kind == EventKind.FEE

    def test_unparseable_timestamp(self):
        with pytest.raises(MalformedEventError) as exc:
            self.normalizer.normalize(flat(occurredAt="yesterday"))
        assert exc.value.field == "occurred_at"

    def test_non_dict_record(self):
        with pytest.raises(MalformedEventError):
            self.normalizer.normalize(["not", "a", "record"])


class TestIndexerRecords:
    def setup_method(self):
        self.normalizer = EventNormalizer(reserve_addresses=["RESERVE"], clock=lambda: OBSERVED)

    def test_primary_sale_from_reserve(self):
        event = self.normalizer.normalize(indexer())
        assert event.kind == EventKind.TRANSFER
        assert event.asset_id == "777"
        assert event.from_address is None
        assert event.to_address == "ALICE"
        assert event.token_amount == Decimal("25")
        assert event.cash_amount == Decimal("250")
        assert event.sequence == 2
        assert event.source == "indexer"
        assert event.occurred_at == datetime.fromtimestamp(1709287200, tz=timezone.utc)

    def test_secondary_transfer_keeps_sender(self):
        event = self.normalizer.normalize(indexer(sender="BOB", note=None))
        assert event.from_address == "BOB"
        assert event.cash_amount is None
        assert event.sequence is None

    def test_zero_amount_is_opt_in(self):
        record = indexer()
        record["asset-transfer-transaction"] = {"asset-id": 777, "receiver": "ALICE", "amount": 0}
        with pytest.raises(UnsupportedEventKindError) as exc:
            self.normalizer.normalize(record)
        assert exc.value.kind == "opt_in"

    def test_other_transaction_types_unsupported(self):
        with pytest.raises(UnsupportedEventKindError):
            self.normalizer.normalize(indexer(**{"tx-type": "pay"}))

    def test_note_must_be_an_object(self):
        with pytest.raises(MalformedEventError):
            self.normalizer.normalize(indexer(note="[1, 2]"))

    def test_note_as_dict(self):
        event = self.normalizer.normalize(indexer(note={"kind": "dividend", "cash_amount": "5"}))
        assert event.kind == EventKind.DIVIDEND
        assert event.cash_amount == Decimal("5")

    def test_top_level_asset_id_wins(self):
        event = self.normalizer.normalize(indexer(assetId="override"))
        assert event.asset_id == "override"


class TestNormalizeMany:
    def setup_method(self):
        self.normalizer = EventNormalizer(clock=lambda: OBSERVED)

    def test_empty(self):
        result = self.normalizer.normalize_many([])
        assert result.events == []
        assert result.rejected == 0

    def test_counts_and_dedup(self):
        records = [
            flat(id="a"),
            flat(id="a"),
            flat(id="b", kind="stake"),
            flat(id="c", tokenAmount="-1"),
            flat(id="d"),
        ]
        result = self.normalizer.normalize_many(records)
        assert [e.id for e in result.events] == ["a", "d"]
        assert result.duplicates == 1
        assert result.unsupported == 1
        assert result.malformed == 1
        assert result.rejected == 2
        assert len(result.errors) == 2
