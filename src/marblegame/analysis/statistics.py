"""Statistics helpers shared by the single-run simulator and the Monte Carlo engine.

Pure computation functions: percentile, mean, population standard deviation,
histogram binning and peak-relative drawdown.

Percentile convention is nearest-rank, lower:

    index = floor(p / 100 * n), clamped to n - 1

on an ascending-sorted sample. This is NOT numpy's default linear
interpolation; ``np.percentile`` must not be substituted.
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from . import NonPositiveParameter

logger = logging.getLogger(__name__)

PERCENTILE_LEVELS = (5, 10, 25, 50, 75, 90, 95)


@dataclass(frozen=True)
class HistogramBucket:
    range_start: float
    range_end: float
    count: int
    frequency_percent: float


# ---------------------------------------------------------------------------
# Percentiles
# ---------------------------------------------------------------------------


def percentile_index(n: int, p: float) -> int:
    """Index of the p-th percentile in a sorted sample of size ``n``."""
    if n <= 0:
        raise ValueError("percentile of an empty sample is undefined")
    if not 0 <= p <= 100:
        raise ValueError(f"percentile must be within [0, 100], got {p}")
    return min(int(math.floor(p / 100.0 * n)), n - 1)


def percentile(sorted_values: Sequence[float] | np.ndarray, p: float) -> float:
    """Nearest-rank-lower percentile of an ascending-sorted sample."""
    return float(sorted_values[percentile_index(len(sorted_values), p)])


def percentile_table(
    sorted_values: Sequence[float] | np.ndarray,
    levels: tuple[int, ...] = PERCENTILE_LEVELS,
) -> dict[str, float]:
    """{"p5": ..., "p10": ..., ...} for an ascending-sorted sample."""
    return {f"p{level}": percentile(sorted_values, level) for level in levels}


# ---------------------------------------------------------------------------
# Moments
# ---------------------------------------------------------------------------


def mean(values: Sequence[float] | np.ndarray) -> float:
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        raise ValueError("mean of an empty sample is undefined")
    return float(np.mean(arr))


def stddev(values: Sequence[float] | np.ndarray) -> float:
    """Population standard deviation (divides by N, not N - 1)."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        raise ValueError("stddev of an empty sample is undefined")
    return float(np.std(arr, ddof=0))


# ---------------------------------------------------------------------------
# Histogram
# ---------------------------------------------------------------------------


def histogram(
    values: Sequence[float] | np.ndarray, bucket_count: int
) -> list[HistogramBucket]:
    """Equal-width histogram between min(values) and max(values).

    Bucket i covers [min + i*w, min + (i+1)*w) with w = (max - min) / bucket_count.
    The last bucket is closed on the right so the maximum is counted. When
    all values are equal (w == 0) every value falls into bucket 0.
    """
    if bucket_count < 1:
        raise NonPositiveParameter("bucket_count", bucket_count)
    arr = np.asarray(values, dtype=float)
    n = arr.size
    if n == 0:
        raise ValueError("histogram of an empty sample is undefined")

    lo = float(arr.min())
    hi = float(arr.max())
    width = (hi - lo) / bucket_count

    if width > 0:
        idx = np.floor((arr - lo) / width).astype(np.int64)
        idx = np.clip(idx, 0, bucket_count - 1)
    else:
        idx = np.zeros(n, dtype=np.int64)
    counts = np.bincount(idx, minlength=bucket_count)

    buckets = []
    for i in range(bucket_count):
        start = lo + i * width
        end = hi if i == bucket_count - 1 else lo + (i + 1) * width
        count = int(counts[i])
        buckets.append(
            HistogramBucket(
                range_start=start,
                range_end=end,
                count=count,
                frequency_percent=count / n * 100.0,
            )
        )
    return buckets


# ---------------------------------------------------------------------------
# Drawdown
# ---------------------------------------------------------------------------


def max_drawdown_percent(trajectory: Sequence[float] | np.ndarray) -> float:
    """Largest peak-to-trough decline as a percentage of the running peak.

    Steps where the running peak is not positive contribute 0.
    """
    if len(trajectory) == 0:
        return 0.0
    peak = trajectory[0]
    worst = 0.0
    for equity in trajectory:
        if equity > peak:
            peak = equity
        if peak > 0:
            dd = (peak - equity) / peak * 100.0
            if dd > worst:
                worst = dd
    return float(worst)


def max_drawdown_amount(trajectory: Sequence[float] | np.ndarray) -> float:
    """Largest peak-to-trough decline in absolute equity units."""
    if len(trajectory) == 0:
        return 0.0
    arr = np.asarray(trajectory, dtype=float)
    running_peak = np.maximum.accumulate(arr)
    return float(np.max(running_peak - arr))
