"""
Pure calculations shared by the metric aggregators.

Nothing here touches the event store or logs; every function is a total
function of its arguments so the aggregators can be property-tested through
these building blocks.
"""

import math
import re
from typing import Iterable, Mapping, Optional, TypeVar

from engagement.models.events import OBSERVATION_HOURS

V = TypeVar("V")

HOURS_PER_DAY = 24
HOURS_PER_WEEK = 168

WEEK_BUCKETS: tuple[tuple[int, int], ...] = (
    (0, 167),
    (168, 335),
    (336, 503),
    (504, OBSERVATION_HOURS - 1),
)
"""Inclusive hour ranges of the four reporting weeks; the last absorbs days 28-29."""

WEEK_LABELS: tuple[str, ...] = tuple(f"Week {i}" for i in range(1, len(WEEK_BUCKETS) + 1))

INCOME_BRACKETS: tuple[str, ...] = ("Under $50K", "$50K-$75K", "$75K-$100K", "Over $100K")
"""Income bracket labels in display order."""

_NUMERIC_INCOME = re.compile(r"^\d+(\.\d+)?$")


# =============================================================================
# Rates and display formatting
# =============================================================================


def completion_rate(received: int, completed: int) -> float:
    """
    Percentage of received offers that were completed.

    Rounded to 2 decimals and clamped to ``[0, 100]``; 0 when nothing was
    received.

    >>> completion_rate(100, 50)
    50.0
    >>> completion_rate(24719, 12881)
    52.11
    >>> completion_rate(0, 10)
    0.0
    """
    if received <= 0:
        return 0.0
    rate = completed / received * 100
    return round(min(max(rate, 0.0), 100.0), 2)


def format_percent(rate: float) -> str:
    """
    Display form of a percentage: one decimal, trailing ``.0`` dropped.

    >>> format_percent(50.0)
    '50%'
    >>> format_percent(52.11)
    '52.1%'
    """
    return f"{round(rate, 1):g}%"


def format_count(count: int) -> str:
    """
    >>> format_count(306534)
    '306,534'
    """
    return f"{count:,}"


def format_currency(amount: float) -> str:
    """
    >>> format_currency(1234.5)
    '$1,234.50'
    """
    return f"${amount:,.2f}"


def round_half_up(value: float) -> int:
    """
    Nearest integer with halves rounded up, for estimated counts.

    >>> round_half_up(2.5)
    3
    """
    return math.floor(value + 0.5)


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean, 0 for an empty input."""
    items = list(values)
    if not items:
        return 0.0
    return sum(items) / len(items)


# =============================================================================
# Time bucketing
# =============================================================================


def day_for_hour(hour: int) -> int:
    return hour // HOURS_PER_DAY


def week_for_hour(hour: int) -> int:
    return hour // HOURS_PER_WEEK


def cap_most_recent(series: Mapping[int, V], max_items: int) -> list[tuple[int, V]]:
    """
    Ascending ``(key, value)`` pairs restricted to the *max_items* largest keys.

    >>> cap_most_recent({3: "c", 1: "a", 2: "b"}, 2)
    [(2, 'b'), (3, 'c')]
    """
    ordered = sorted(series.items())
    if max_items <= 0:
        return []
    return ordered[-max_items:]


# =============================================================================
# Income brackets
# =============================================================================


def parse_income(raw: object) -> Optional[float]:
    """
    Numeric income from a customer row.

    Only plain non-negative decimal text (or a non-negative number) counts;
    blanks, words and signed values are treated as missing.
    """
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) and value >= 0 else None
    if isinstance(raw, str):
        text = raw.strip()
        if _NUMERIC_INCOME.match(text):
            return float(text)
    return None


def income_bracket(income: float) -> int:
    """
    Index into :data:`INCOME_BRACKETS`.

    Boundaries: ``< 50000``, ``[50000, 75000]``, ``(75000, 100000]``, ``> 100000``.

    >>> [income_bracket(x) for x in (49999, 50000, 75000, 75001, 100000, 100001)]
    [0, 1, 1, 2, 2, 3]
    """
    if income < 50000:
        return 0
    if income <= 75000:
        return 1
    if income <= 100000:
        return 2
    return 3
