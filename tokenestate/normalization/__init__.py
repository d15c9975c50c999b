"""Normalization layer for ledger events and tax lots."""

from tokenestate.normalization.events import EventNormalizer, NormalizationResult
from tokenestate.normalization.ledger import LedgerBuilder

__all__ = ["EventNormalizer", "LedgerBuilder", "NormalizationResult"]
