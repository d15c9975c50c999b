"""Tax and analytics policy tables.

Long-term holding thresholds keyed by jurisdiction, plus the investment-size
and performance-range tables used by analytics. Never hardcode these in computation
functions; look them up here or accept them through ``TaxPolicy``.

Sources:
  - US: IRC §1222, assets held more than one year are long-term.
  - AU: ITAA 1997 s115-25, CGT discount after 12 months.
  - DE: EStG §23, private sale gains exempt after one year.
"""

from decimal import Decimal

DEFAULT_JURISDICTION = "US"

# ---------------------------------------------------------------------------
# Holding period (days) that must be *exceeded* for a long-term disposal.
# ---------------------------------------------------------------------------
LONG_TERM_HOLDING_DAYS: dict[str, int] = {
    "US": 365,
    "AU": 365,
    "DE": 365,
}

# ---------------------------------------------------------------------------
# Investment-size buckets: (label, lower bound inclusive, upper bound exclusive).
# Upper bound None means unbounded.
# ---------------------------------------------------------------------------
SIZE_RANGES: list[tuple[str, Decimal, Decimal | None]] = [
    ("$0 - $5K", Decimal("0"), Decimal("5000")),
    ("$5K - $15K", Decimal("5000"), Decimal("15000")),
    ("$15K - $50K", Decimal("15000"), Decimal("50000")),
    ("$50K+", Decimal("50000"), None),
]

# Number of largest owners listed in an ownership summary.
TOP_OWNER_COUNT = 10

# Share of owners (by count) whose combined ownership is the concentration ratio.
CONCENTRATION_OWNER_SHARE = Decimal("0.1")


def long_term_days(jurisdiction: str) -> int:
    """Return the long-term threshold for a jurisdiction code."""
    try:
        return LONG_TERM_HOLDING_DAYS[jurisdiction.upper()]
    except KeyError:
        valid = ", ".join(sorted(LONG_TERM_HOLDING_DAYS))
        raise ValueError(f"Unknown jurisdiction '{jurisdiction}'. Valid: {valid}") from None

# ---------------------------------------------------------------------------
# Named performance ranges: months of history and checkpoint spacing (days).
# ALL has no lower bound other than the wallet's first event.
# ---------------------------------------------------------------------------
RANGE_MONTHS: dict[str, int | None] = {
    "3M": 3,
    "6M": 6,
    "1Y": 12,
    "ALL": None,
}

RANGE_STEP_DAYS: dict[str, int] = {
    "3M": 1,
    "6M": 7,
    "1Y": 7,
    "ALL": 30,
}
