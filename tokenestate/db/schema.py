"""SQLite database schema definition."""

import sqlite3
from pathlib import Path

SCHEMA_VERSION = 2

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS import_batches (
    id TEXT PRIMARY KEY,
    source TEXT NOT NULL,
    file_path TEXT NOT NULL,
    imported_at TEXT NOT NULL DEFAULT (datetime('now')),
    record_count INTEGER NOT NULL DEFAULT 0,
    accepted_count INTEGER NOT NULL DEFAULT 0,
    rejected_count INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'pending'
);

CREATE TABLE IF NOT EXISTS ledger_events (
    asset_id TEXT NOT NULL,
    id TEXT NOT NULL,
    batch_id TEXT REFERENCES import_batches(id),
    kind TEXT NOT NULL,
    from_address TEXT,
    to_address TEXT,
    token_amount TEXT,
    cash_amount TEXT,
    occurred_at TEXT NOT NULL,
    observed_at TEXT NOT NULL,
    sequence INTEGER,
    source TEXT NOT NULL,
    received_order INTEGER NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (asset_id, id)
);

CREATE INDEX IF NOT EXISTS idx_ledger_events_order
    ON ledger_events (received_order);

CREATE TABLE IF NOT EXISTS rejected_events (
    asset_id TEXT NOT NULL,
    event_id TEXT NOT NULL,
    error_type TEXT NOT NULL,
    reason TEXT NOT NULL,
    rejected_at TEXT NOT NULL,
    PRIMARY KEY (asset_id, event_id)
);

CREATE TABLE IF NOT EXISTS properties (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    location TEXT NOT NULL DEFAULT 'Unknown',
    property_type TEXT NOT NULL DEFAULT 'residential',
    total_value TEXT NOT NULL DEFAULT '0',
    current_token_price TEXT NOT NULL DEFAULT '0',
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


def create_schema(db_path: Path | str) -> sqlite3.Connection:
    """Create the database schema. Returns the connection.

    The connection may be shared with the ingest pipeline's worker threads.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.executescript(SCHEMA_SQL)

    from tokenestate.db.migrations import migrate

    migrate(conn)
    return conn
