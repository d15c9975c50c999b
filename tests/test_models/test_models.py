"""Tests for models, configuration and exceptions."""

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from tokenestate.config import AppConfig, TaxPolicy, load_config
from tokenestate.exceptions import InsufficientBalanceError, ProjectionError, ReplayTimeoutError
from tokenestate.models.enums import PerformanceRange
from tokenestate.models.events import EventCursor
from tokenestate.models.state import AssetState


class TestEvent:
    def test_unit_price(self, make_event):
        assert make_event("t1", "TRANSFER", tokens=4, cash=50).unit_price == Decimal("12.5")
        assert make_event("t2", "TRANSFER", tokens=4).unit_price is None

    def test_frozen(self, make_event):
        event = make_event("t1", "MINT", tokens=1)
        with pytest.raises(ValidationError):
            event.token_amount = Decimal("2")

    def test_negative_amount_rejected(self, make_event):
        with pytest.raises(ValidationError):
            make_event("t1", "MINT", tokens=-1)

    def test_touches(self, make_event):
        event = make_event("t1", "TRANSFER", from_address="ALICE", to_address="BOB", tokens=1)
        assert event.touches("ALICE") and event.touches("BOB")
        assert not event.touches("CAROL")


class TestEventCursor:
    def test_encode_decode(self, make_event):
        cursor = EventCursor.from_event(make_event("t1", "MINT", tokens=1, sequence=3))
        decoded = EventCursor.decode(cursor.encode())
        assert decoded == cursor
        assert decoded.occurred_at.tzinfo is not None

    def test_unsequenced_event(self, make_event):
        assert EventCursor.from_event(make_event("t1", "MINT", tokens=1)).sequence == -1

    def test_garbage(self):
        with pytest.raises(ValueError):
            EventCursor.decode("not-a-cursor")


class TestAssetState:
    def test_consistent(self):
        state = AssetState(
            asset_id="a",
            total_supply=Decimal("100"),
            available_supply=Decimal("60"),
            holder_balances={"ALICE": Decimal("40")},
        )
        assert state.is_consistent()
        assert state.held_supply == Decimal("40")

    def test_supply_mismatch(self):
        state = AssetState(asset_id="a", total_supply=Decimal("100"), available_supply=Decimal("70"),
                           holder_balances={"ALICE": Decimal("40")})
        assert not state.is_consistent()

    def test_zero_balance_is_inconsistent(self):
        state = AssetState(asset_id="a", total_supply=Decimal("0"), holder_balances={"ALICE": Decimal("0")})
        assert not state.is_consistent()


class TestConfig:
    def test_defaults(self):
        config = load_config(None)
        assert config.projector.strict_ordering
        assert config.tax.threshold_days == 365
        assert config.analytics.default_range == PerformanceRange.ONE_YEAR

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"projector": {"buffer_timeout": 2, "workers": 4}, "tax": {"jurisdiction": "AU"}}))
        config = load_config(path)
        assert config.projector.buffer_timeout == 2
        assert config.projector.workers == 4
        assert config.tax.jurisdiction == "AU"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.json")

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            AppConfig(projector={"max_buffered": 0})

    def test_threshold_override(self):
        assert TaxPolicy(jurisdiction="US", long_term_days=30).threshold_days == 30

    def test_unknown_jurisdiction(self):
        with pytest.raises(ValueError, match="Valid: AU, DE, US"):
            TaxPolicy(jurisdiction="XX").threshold_days


class TestExceptions:
    def test_insufficient_balance_message(self):
        error = InsufficientBalanceError("t1", "p1", "ALICE", Decimal("5"), Decimal("2"))
        assert isinstance(error, ProjectionError)
        assert "requested=5" in str(error)
        assert error.holder == "ALICE"

    def test_replay_timeout_keeps_partial(self):
        error = ReplayTimeoutError("performance", [1, 2])
        assert error.partial == [1, 2]
        assert "2 result(s)" in str(error)


def test_cursor_timestamps_are_utc(make_event):
    cursor = EventCursor.from_event(make_event("t1", "MINT", tokens=1))
    assert cursor.occurred_at == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
