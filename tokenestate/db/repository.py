"""Data access layer for the ledger event inbox and property reference data."""

import sqlite3
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from tokenestate.db.store import PropertyStore
from tokenestate.exceptions import PropertyNotFoundError
from tokenestate.models.enums import EventKind
from tokenestate.models.events import Event, RejectedEvent
from tokenestate.models.state import PropertyRecord


def _opt_str(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _opt_decimal(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


class LedgerRepository(PropertyStore):
    """CRUD operations for persisted events, rejections and properties."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def _rows(self, cursor: sqlite3.Cursor) -> list[dict]:
        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]

    # --- Import batches ---

    def create_import_batch(self, source: str, file_path: str, record_count: int = 0) -> str:
        """Create an import batch record. Returns the batch ID."""
        batch_id = str(uuid4())
        self.conn.execute(
            """INSERT INTO import_batches (id, source, file_path, record_count, status)
               VALUES (?, ?, ?, ?, 'pending')""",
            (batch_id, source, file_path, record_count),
        )
        self.conn.commit()
        return batch_id

    def finish_import_batch(self, batch_id: str, accepted: int, rejected: int) -> None:
        self.conn.execute(
            """UPDATE import_batches
               SET accepted_count = ?, rejected_count = ?, status = 'completed'
               WHERE id = ?""",
            (accepted, rejected, batch_id),
        )
        self.conn.commit()

    def get_import_batches(self) -> list[dict]:
        cursor = self.conn.execute("SELECT * FROM import_batches ORDER BY imported_at, id")
        return self._rows(cursor)

    # --- Ledger events ---

    def save_event(self, event: Event, batch_id: str | None = None) -> bool:
        """Persist a received event. Returns False if (asset, id) was already stored."""
        cursor = self.conn.execute(
            """INSERT OR IGNORE INTO ledger_events
               (asset_id, id, batch_id, kind, from_address, to_address,
                token_amount, cash_amount, occurred_at, observed_at,
                sequence, source, received_order)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?,
                       (SELECT COALESCE(MAX(received_order), 0) + 1 FROM ledger_events))""",
            (
                event.asset_id,
                event.id,
                batch_id,
                event.kind.value,
                event.from_address,
                event.to_address,
                _opt_str(event.token_amount),
                _opt_str(event.cash_amount),
                event.occurred_at.isoformat(),
                event.observed_at.isoformat(),
                event.sequence,
                event.source,
            ),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def load_events(self) -> list[Event]:
        """Every persisted event in the order it was received."""
        cursor = self.conn.execute("SELECT * FROM ledger_events ORDER BY received_order")
        return [
            Event(
                id=row["id"],
                kind=EventKind(row["kind"]),
                asset_id=row["asset_id"],
                from_address=row["from_address"],
                to_address=row["to_address"],
                token_amount=_opt_decimal(row["token_amount"]),
                cash_amount=_opt_decimal(row["cash_amount"]),
                occurred_at=datetime.fromisoformat(row["occurred_at"]),
                observed_at=datetime.fromisoformat(row["observed_at"]),
                sequence=row["sequence"],
                source=row["source"],
            )
            for row in self._rows(cursor)
        ]

    def count_events(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM ledger_events").fetchone()[0]

    # --- Rejections ---

    def save_rejection(self, rejected: RejectedEvent) -> None:
        self.conn.execute(
            """INSERT OR REPLACE INTO rejected_events
               (asset_id, event_id, error_type, reason, rejected_at)
               VALUES (?, ?, ?, ?, ?)""",
            (
                rejected.event.asset_id,
                rejected.event.id,
                rejected.error_type,
                rejected.reason,
                rejected.rejected_at.isoformat(),
            ),
        )
        self.conn.commit()

    def get_rejections(self, asset_id: str | None = None) -> list[dict]:
        if asset_id:
            cursor = self.conn.execute(
                "SELECT * FROM rejected_events WHERE asset_id = ? ORDER BY rejected_at, event_id",
                (asset_id,),
            )
        else:
            cursor = self.conn.execute("SELECT * FROM rejected_events ORDER BY rejected_at, event_id")
        return self._rows(cursor)

    # --- Properties ---

    def save_property(self, record: PropertyRecord) -> None:
        self.conn.execute(
            """INSERT OR REPLACE INTO properties
               (id, title, location, property_type, total_value, current_token_price, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, datetime('now'))""",
            (
                record.id,
                record.title,
                record.location,
                record.property_type,
                str(record.total_value),
                str(record.current_token_price),
            ),
        )
        self.conn.commit()

    def get_property(self, property_id: str) -> PropertyRecord:
        cursor = self.conn.execute("SELECT * FROM properties WHERE id = ?", (property_id,))
        rows = self._rows(cursor)
        if not rows:
            raise PropertyNotFoundError(property_id)
        return self._property(rows[0])

    def list_properties(self) -> list[PropertyRecord]:
        cursor = self.conn.execute("SELECT * FROM properties ORDER BY id")
        return [self._property(row) for row in self._rows(cursor)]

    @staticmethod
    def _property(row: dict) -> PropertyRecord:
        return PropertyRecord(
            id=row["id"],
            title=row["title"],
            location=row["location"],
            property_type=row["property_type"],
            total_value=Decimal(row["total_value"]),
            current_token_price=Decimal(row["current_token_price"]),
        )
