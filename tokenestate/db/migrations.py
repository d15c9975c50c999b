"""Database schema migrations."""

import logging
import sqlite3

from tokenestate.db.schema import SCHEMA_VERSION

logger = logging.getLogger(__name__)


def get_current_version(conn: sqlite3.Connection) -> int:
    """Get the current schema version from the database."""
    try:
        cursor = conn.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row and row[0] else 0
    except sqlite3.OperationalError:
        return 0


def migrate(conn: sqlite3.Connection) -> None:
    """Run any pending migrations and record the current schema version."""
    current = get_current_version(conn)
    if current >= SCHEMA_VERSION:
        return

    if 0 < current < 2:
        logger.info("Migrating ledger database from schema %d to 2", current)
        conn.execute("ALTER TABLE import_batches ADD COLUMN accepted_count INTEGER NOT NULL DEFAULT 0")
        conn.execute("ALTER TABLE import_batches ADD COLUMN rejected_count INTEGER NOT NULL DEFAULT 0")

    conn.execute(
        "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
        (SCHEMA_VERSION,),
    )
    conn.commit()
