"""Tests for CLI commands."""

import json

import pytest
from typer.testing import CliRunner

from tokenestate.cli import app

runner = CliRunner()

EVENTS = [
    {"id": "m1", "kind": "mint", "assetId": "p1", "tokenAmount": 1000, "occurredAt": "2024-01-01T00:00:00Z", "sequence": 1},
    {"id": "t1", "kind": "purchase", "assetId": "p1", "to": "ALICE", "tokenAmount": 300, "cashAmount": 3000,
     "occurredAt": "2024-01-02T00:00:00Z", "sequence": 2},
    {"id": "t2", "kind": "purchase", "assetId": "p1", "to": "BOB", "tokenAmount": 200, "cashAmount": 2000,
     "occurredAt": "2024-01-03T00:00:00Z", "sequence": 3},
    {"id": "d1", "kind": "dividend", "assetId": "p1", "to": "ALICE", "cashAmount": 15,
     "occurredAt": "2024-02-01T00:00:00Z", "sequence": 4},
    {"id": "x1", "kind": "transfer", "assetId": "p1", "from": "CAROL", "to": "BOB", "tokenAmount": 5,
     "occurredAt": "2024-02-02T00:00:00Z", "sequence": 5},
]

PROPERTIES = [
    {"id": "p1", "title": "Maple Street Duplex", "location": "Austin, TX", "propertyType": "residential",
     "currentTokenPrice": "12", "totalValue": "500000"},
]


@pytest.fixture
def db(tmp_path):
    return tmp_path / "ledger.db"


@pytest.fixture
def loaded_db(tmp_path, db):
    events = tmp_path / "events.json"
    events.write_text(json.dumps(EVENTS))
    properties = tmp_path / "properties.json"
    properties.write_text(json.dumps(PROPERTIES))
    assert runner.invoke(app, ["--db", str(db), "ingest", str(events)]).exit_code == 0
    assert runner.invoke(app, ["--db", str(db), "import-properties", str(properties)]).exit_code == 0
    return db


class TestCLI:
    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "tokenized real estate" in result.output

    def test_ingest_help(self):
        result = runner.invoke(app, ["ingest", "--help"])
        assert result.exit_code == 0

    def test_tax_report_help(self):
        result = runner.invoke(app, ["tax-report", "--help"])
        assert result.exit_code == 0

    def test_query_without_database(self, db):
        result = runner.invoke(app, ["--db", str(db), "state", "p1"])
        assert result.exit_code == 1
        assert "No database found" in result.output


class TestIngestCommands:
    def test_ingest_counts(self, tmp_path, db):
        path = tmp_path / "events.json"
        path.write_text(json.dumps(EVENTS))
        result = runner.invoke(app, ["--db", str(db), "ingest", str(path)])
        assert result.exit_code == 0
        assert "Records received:   5" in result.output
        assert "Applied:            4" in result.output
        assert "Rejected:           1" in result.output

    def test_reingest_is_idempotent(self, tmp_path, loaded_db):
        path = tmp_path / "events.json"
        result = runner.invoke(app, ["--db", str(loaded_db), "ingest", str(path)])
        assert result.exit_code == 0
        assert "Applied:            0" in result.output
        assert "Already seen:       5" in result.output

    def test_ingest_missing_file(self, tmp_path, db):
        result = runner.invoke(app, ["--db", str(db), "ingest", str(tmp_path / "nope.json")])
        assert result.exit_code == 1

    def test_import_properties(self, loaded_db):
        result = runner.invoke(app, ["--db", str(loaded_db), "holdings", "ALICE"])
        assert "Maple Street Duplex" in result.output


class TestQueryCommands:
    def test_state(self, loaded_db):
        result = runner.invoke(app, ["--db", str(loaded_db), "state", "p1"])
        assert result.exit_code == 0
        assert "Available supply:  500" in result.output
        assert "Funded:            50.00%" in result.output

    def test_unknown_asset(self, loaded_db):
        result = runner.invoke(app, ["--db", str(loaded_db), "state", "p9"])
        assert result.exit_code == 1

    def test_ownership_summary(self, loaded_db):
        result = runner.invoke(app, ["--db", str(loaded_db), "ownership", "p1", "--summary"])
        assert result.exit_code == 0
        assert "ALICE" in result.output
        assert "Owners: 2" in result.output

    def test_events_pagination(self, loaded_db):
        result = runner.invoke(app, ["--db", str(loaded_db), "events", "--limit", "2"])
        assert result.exit_code == 0
        assert "Next page: --before" in result.output

    def test_events_bad_cursor(self, loaded_db):
        result = runner.invoke(app, ["--db", str(loaded_db), "events", "--before", "@@@"])
        assert result.exit_code == 1
        assert "invalid cursor" in result.output

    def test_rejected(self, loaded_db):
        result = runner.invoke(app, ["--db", str(loaded_db), "rejected"])
        assert result.exit_code == 0
        assert "x1" in result.output
        assert "InsufficientBalanceError" in result.output

    def test_holdings(self, loaded_db):
        result = runner.invoke(app, ["--db", str(loaded_db), "holdings", "ALICE"])
        assert result.exit_code == 0
        assert "$3,600.00" in result.output

    def test_performance(self, loaded_db):
        result = runner.invoke(app, ["--db", str(loaded_db), "performance", "ALICE", "--range", "ALL"])
        assert result.exit_code == 0
        assert "Max drawdown" in result.output

    def test_diversification(self, loaded_db):
        result = runner.invoke(app, ["--db", str(loaded_db), "diversification", "ALICE"])
        assert result.exit_code == 0
        assert "Diversification score: 0/100" in result.output

    def test_summary(self, loaded_db):
        result = runner.invoke(app, ["--db", str(loaded_db), "summary", "ALICE"])
        assert result.exit_code == 0
        assert "PORTFOLIO SUMMARY" in result.output

    def test_tax_report(self, loaded_db):
        result = runner.invoke(app, ["--db", str(loaded_db), "tax-report", "ALICE", "2024"])
        assert result.exit_code == 0
        assert "$15.00" in result.output

    def test_tax_report_unknown_jurisdiction(self, loaded_db):
        result = runner.invoke(app, ["--db", str(loaded_db), "tax-report", "ALICE", "2024", "-j", "XX"])
        assert result.exit_code == 1
        assert "Unknown jurisdiction" in result.output
