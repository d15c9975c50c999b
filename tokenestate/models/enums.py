"""Enumerations for tokenestate."""

from enum import StrEnum


class EventKind(StrEnum):
    MINT = "MINT"
    TRANSFER = "TRANSFER"
    DIVIDEND = "DIVIDEND"
    FEE = "FEE"
    BURN = "BURN"


class HoldingPeriod(StrEnum):
    SHORT_TERM = "SHORT_TERM"
    LONG_TERM = "LONG_TERM"


class BucketDimension(StrEnum):
    PROPERTY_TYPE = "PROPERTY_TYPE"
    LOCATION = "LOCATION"
    SIZE_RANGE = "SIZE_RANGE"


class TaxTransactionType(StrEnum):
    DISPOSAL = "DISPOSAL"
    DIVIDEND = "DIVIDEND"


class PerformanceRange(StrEnum):
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    ALL = "ALL"
