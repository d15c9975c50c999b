"""Reference property store contract and an in-memory implementation."""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from tokenestate.exceptions import PropertyNotFoundError
from tokenestate.models.state import PropertyRecord


class PropertyStore(ABC):
    """Key-value access to property reference data."""

    @abstractmethod
    def get_property(self, property_id: str) -> PropertyRecord:
        """Return the property. Raises PropertyNotFoundError."""

    @abstractmethod
    def save_property(self, record: PropertyRecord) -> None:
        """Insert or replace a property record."""

    @abstractmethod
    def list_properties(self) -> list[PropertyRecord]:
        """All known properties, ordered by id."""


class InMemoryPropertyStore(PropertyStore):
    def __init__(self, records: Iterable[PropertyRecord] = ()):
        self._records = {record.id: record for record in records}

    def get_property(self, property_id: str) -> PropertyRecord:
        try:
            return self._records[property_id]
        except KeyError:
            raise PropertyNotFoundError(property_id) from None

    def save_property(self, record: PropertyRecord) -> None:
        self._records[record.id] = record

    def list_properties(self) -> list[PropertyRecord]:
        return [self._records[key] for key in sorted(self._records)]
