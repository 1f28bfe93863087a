"""
Period-over-period comparison of metric totals.
"""

import logging
import math
from dataclasses import asdict, dataclass

logger = logging.getLogger(__name__)


@dataclass
class MetricDelta:
    value: float
    change: float  # percent vs previous window

    def as_dict(self) -> dict:
        return asdict(self)


def _number(x) -> float:
    if isinstance(x, bool) or not isinstance(x, (int, float)) or math.isnan(x):
        return 0
    return x


def _round1(x: float) -> float:
    # half-up: 6.25 -> 6.3, where round() gives 6.2
    return math.floor(x * 10 + 0.5) / 10


def delta(current, previous) -> MetricDelta:
    """
    Value of the current window plus its percent change vs the previous one.

    With nothing in the previous window the change is 100 when anything was
    recorded now and 0 otherwise.
    """
    current = _number(current)
    previous = _number(previous)
    if previous == 0:
        return MetricDelta(value=current, change=100 if current > 0 else 0)
    return MetricDelta(value=current, change=_round1((current - previous) / previous * 100))


def compare_totals(current: dict, previous: dict) -> dict[str, MetricDelta]:
    """Delta for every metric in ``current``; metrics missing from ``previous`` count as 0."""
    return {name: delta(value, previous.get(name, 0)) for name, value in current.items()}


def position_change(current: float, previous: float) -> float:
    """Absolute position movement, current − previous (negative = improved)."""
    current = _number(current)
    previous = _number(previous)
    if not current or not previous:
        return 0
    return round(current - previous, 1)
