"""Outcome distribution: validation and cumulative-range sampling.

Probabilities are stored as percents (0-100). Sampling maps a unit random
value onto half-open cumulative ranges in insertion order:

    outcome i  ->  [sum(p_j for j < i) / 100, sum(p_j for j <= i) / 100)

Zero-probability outcomes get an empty range and are never drawn.
"""

import logging
import math
from bisect import bisect_right
from collections.abc import Iterable, Mapping
from typing import Any

from . import (
    Distribution,
    EmptyDistribution,
    InvalidOutcome,
    Outcome,
    ProbabilitySumInvalid,
)

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.1  # absolute, in percentage points


def validate(
    outcomes: Iterable[Outcome], tolerance: float = DEFAULT_TOLERANCE
) -> Distribution:
    """Check an outcome sequence and freeze it into a sampleable Distribution.

    Args:
        outcomes: Outcomes in draw order.
        tolerance: Allowed absolute deviation of the probability sum from 100.

    Raises:
        EmptyDistribution: No outcomes were given.
        InvalidOutcome: A probability is negative/non-finite or a multiplier
            is non-finite.
        ProbabilitySumInvalid: ``|sum(p) - 100| > tolerance``.
    """
    items = tuple(outcomes)
    if not items:
        raise EmptyDistribution()

    for o in items:
        if not math.isfinite(o.probability_percent) or o.probability_percent < 0:
            raise InvalidOutcome(o.label, f"probability {o.probability_percent!r} out of range")
        if not math.isfinite(o.multiplier):
            raise InvalidOutcome(o.label, f"multiplier {o.multiplier!r} is not finite")

    total = sum(o.probability_percent for o in items)
    if abs(total - 100.0) > tolerance:
        raise ProbabilitySumInvalid(total, tolerance)

    ends = []
    cumulative = 0.0
    for o in items:
        cumulative += o.probability_percent
        ends.append(cumulative / 100.0)

    logger.debug("Validated distribution: %d outcomes, total %.4f%%", len(items), total)
    return Distribution(outcomes=items, cumulative_ends=tuple(ends))


def sample(distribution: Distribution, random_unit: float) -> Outcome:
    """Return the outcome whose cumulative range contains ``random_unit``.

    If ``random_unit`` lies past the last range's end (the probability sum
    fell slightly short of 100 within tolerance, or float drift), the last
    outcome is returned.
    """
    idx = bisect_right(distribution.cumulative_ends, random_unit)
    if idx >= len(distribution.outcomes):
        return distribution.outcomes[-1]
    return distribution.outcomes[idx]


def cumulative_ranges(distribution: Distribution) -> list[tuple[float, float]]:
    """(start, end) fraction pairs, one per outcome."""
    ranges = []
    start = 0.0
    for end in distribution.cumulative_ends:
        ranges.append((start, end))
        start = end
    return ranges


def theoretical_expectancy(distribution: Distribution) -> float:
    """Probability-weighted mean R multiple per draw."""
    return sum(o.probability_percent / 100.0 * o.multiplier for o in distribution)


def from_fractions(
    records: Iterable[Mapping[str, Any]], tolerance: float = DEFAULT_TOLERANCE
) -> Distribution:
    """Build a Distribution from records whose ``probability`` is a 0-1 fraction.

    Each record needs ``name`` (or ``label``), ``probability`` and
    ``multiplier`` (``rMultiple`` / ``r_multiple`` accepted); ``color`` is
    optional.
    """
    outcomes = []
    for rec in records:
        label = rec.get("label", rec.get("name", ""))
        multiplier = rec.get("multiplier", rec.get("r_multiple", rec.get("rMultiple")))
        if multiplier is None:
            raise InvalidOutcome(label, "missing multiplier")
        probability = rec.get("probability")
        if probability is None:
            raise InvalidOutcome(label, "missing probability")
        outcomes.append(
            Outcome(
                label=label,
                probability_percent=float(probability) * 100.0,
                multiplier=float(multiplier),
                color=rec.get("color", ""),
            )
        )
    return validate(outcomes, tolerance=tolerance)
