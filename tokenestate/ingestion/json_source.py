"""JSON and JSON-lines file sources for ledger records and property data."""

import json
from collections.abc import Iterator
from decimal import Decimal, InvalidOperation
from pathlib import Path

from pydantic import ValidationError

from tokenestate.ingestion.base import EventSource
from tokenestate.models.state import PropertyRecord
from tokenestate.normalization.events import RawRecord

# Wrapper keys used by indexer and export responses around the record list.
RECORD_LIST_KEYS = ("transactions", "events", "records")


class JsonFileSource(EventSource):
    """Reads raw records from a JSON file.

    Accepts a JSON array, an object wrapping the array under one of
    ``RECORD_LIST_KEYS``, a single record object, or JSON lines (one record
    per line, ``.jsonl``/``.ndjson``).
    """

    def __init__(self, path: Path):
        self.path = path

    @property
    def name(self) -> str:
        return str(self.path)

    def records(self) -> Iterator[RawRecord]:
        if not self.path.exists():
            raise FileNotFoundError(f"File not found: {self.path}")

        if self.path.suffix.lower() in (".jsonl", ".ndjson"):
            yield from self._read_lines()
            return

        raw = json.loads(self.path.read_text())
        if isinstance(raw, dict):
            for key in RECORD_LIST_KEYS:
                if isinstance(raw.get(key), list):
                    raw = raw[key]
                    break
            else:
                raw = [raw]
        if not isinstance(raw, list):
            raise ValueError(f"{self.path}: expected a JSON array or object, got {type(raw).__name__}")
        yield from raw

    def _read_lines(self) -> Iterator[RawRecord]:
        with self.path.open() as handle:
            for line_number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError as e:
                    raise ValueError(f"{self.path}:{line_number}: invalid JSON: {e.msg}") from e


def load_properties(path: Path) -> list[PropertyRecord]:
    """Read property reference data from a JSON array of objects.

    Accepts snake_case or camelCase keys (``propertyType``,
    ``currentTokenPrice``, ``totalValue``).
    """
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    raw = json.loads(path.read_text())
    if isinstance(raw, dict):
        raw = raw.get("properties", [raw])

    records = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValueError(f"{path}: expected property objects, got {item!r}")
        property_id = item.get("id") or item.get("asset_id") or item.get("assetId")
        if not property_id:
            raise ValueError(f"{path}: property record without an id: {item!r}")
        try:
            records.append(
                PropertyRecord(
                    id=str(property_id),
                    title=item.get("title", ""),
                    location=item.get("location") or "Unknown",
                    property_type=item.get("property_type") or item.get("propertyType") or "residential",
                    total_value=Decimal(str(item.get("total_value", item.get("totalValue", "0")))),
                    current_token_price=Decimal(
                        str(item.get("current_token_price", item.get("currentTokenPrice", "0")))
                    ),
                )
            )
        except (InvalidOperation, ValidationError) as e:
            raise ValueError(f"{path}: invalid property record {item!r}") from e
    return records
