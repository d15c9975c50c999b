"""Tests for the ownership index."""

from decimal import Decimal

from tokenestate.engines.ownership import OwnershipIndex
from tokenestate.engines.projector import StateProjector


class TestOwnershipIndex:
    def setup_method(self):
        self.projector = StateProjector()
        self.index = OwnershipIndex(self.projector)

    def _fund(self, make_event, allocations: dict[str, int]):
        self.projector.apply(make_event("m1", "MINT", tokens=1000))
        for i, (wallet, tokens) in enumerate(allocations.items()):
            self.projector.apply(make_event(f"t{i}", "TRANSFER", to_address=wallet, tokens=tokens))

    def test_unknown_asset(self):
        assert self.index.get_ownership("nope") == []
        assert self.index.get_summary("nope") is None

    def test_sorted_by_tokens_then_wallet(self, make_event):
        self._fund(make_event, {"CAROL": 100, "ALICE": 400, "BOB": 100, "DAVE": 200})
        entries = self.index.get_ownership("asset-1")
        assert [e.wallet for e in entries] == ["ALICE", "DAVE", "BOB", "CAROL"]
        assert entries[0].ownership_percentage == Decimal("40")

    def test_balances_plus_available_equal_total(self, make_event):
        self._fund(make_event, {"ALICE": 123, "BOB": 77})
        state = self.projector.get_state("asset-1")
        held = sum(e.tokens_owned for e in self.index.get_ownership("asset-1"))
        assert held + state.available_supply == state.total_supply

    def test_summary(self, make_event):
        self._fund(make_event, {"ALICE": 400, "BOB": 100, "CAROL": 100, "DAVE": 200})
        summary = self.index.get_summary("asset-1")
        assert summary.total_owners == 4
        assert summary.average_ownership == Decimal("20")
        assert summary.median_ownership == Decimal("15")
        assert summary.concentration_ratio == Decimal("40")
        assert [e.wallet for e in summary.top_owners] == ["ALICE", "DAVE", "BOB", "CAROL"]

    def test_summary_without_holders(self, make_event):
        self.projector.apply(make_event("m1", "MINT", tokens=1000))
        summary = self.index.get_summary("asset-1")
        assert summary.total_owners == 0
        assert summary.top_owners == []

    def test_wallet_positions(self, make_event):
        self.projector.apply(make_event("m1", "MINT", "a", tokens=10))
        self.projector.apply(make_event("m2", "MINT", "b", tokens=10))
        self.projector.apply(make_event("t1", "TRANSFER", "a", to_address="ALICE", tokens=3))
        self.projector.apply(make_event("t2", "TRANSFER", "b", to_address="BOB", tokens=3))
        assert self.index.wallet_positions("ALICE") == {"a": Decimal("3")}
        assert self.index.wallet_positions("NOBODY") == {}
