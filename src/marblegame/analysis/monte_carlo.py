"""Monte Carlo driver for the marble game.

Runs many independent single-path simulations and aggregates them into
summary statistics, percentile tables, a return histogram and a per-draw
confidence band (average / p10 / p90 equity).

Runs execute in batches. Batch boundaries are a scheduling concern only:
run ``i`` always draws from ``random_source_factory(i)`` so the aggregate is
identical whatever the batch size, worker count or completion order.
"""

import asyncio
import logging
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from dataclasses import dataclass
from typing import NoReturn, Protocol

import numpy as np

from . import (
    Distribution,
    NonPositiveParameter,
    RunParameters,
    SimulationCancelled,
    SingleRunResult,
)
from .distribution import theoretical_expectancy
from .random_source import RandomSourceFactory, SeededRandomSourceFactory
from .single_run import run_single
from .statistics import (
    HistogramBucket,
    histogram,
    mean,
    percentile_index,
    percentile_table,
    stddev,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_SIMULATIONS = 1000
DEFAULT_BUCKETS = 20
DEFAULT_BATCH_SIZE = 100
BAND_LOWER = 10
BAND_UPPER = 90

ProgressCallback = Callable[[int, int], None]


class StopSignal(Protocol):
    def is_set(self) -> bool: ...


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MonteCarloSummary:
    mean_return_percent: float
    return_volatility: float  # population stddev of return %
    probability_of_profit: float  # % of runs with total_return > 0
    mean_max_drawdown_percent: float
    theoretical_expectancy: float  # R per draw, probability-weighted
    mean_average_multiple: float  # R per draw, actually drawn
    mean_win_rate_percent: float


@dataclass(frozen=True)
class PercentileTables:
    return_percent: dict[str, float]
    final_equity: dict[str, float]
    max_drawdown_percent: dict[str, float]


@dataclass(frozen=True)
class EquityBandPoint:
    draw: int
    average: float
    p10: float
    p90: float


@dataclass(frozen=True)
class RunPoint:
    run: int  # 1-based
    return_percent: float
    max_drawdown_percent: float
    final_equity: float
    win_rate_percent: float


@dataclass(frozen=True)
class MonteCarloResult:
    simulation_count: int
    params: RunParameters
    summary: MonteCarloSummary
    percentiles: PercentileTables
    histogram: tuple[HistogramBucket, ...]
    equity_band: tuple[EquityBandPoint, ...]
    run_points: tuple[RunPoint, ...]


# ---------------------------------------------------------------------------
# Main entry points
# ---------------------------------------------------------------------------


def run_batch(
    distribution: Distribution,
    params: RunParameters,
    simulation_count: int = DEFAULT_SIMULATIONS,
    bucket_count: int = DEFAULT_BUCKETS,
    random_source_factory: RandomSourceFactory | None = None,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: ProgressCallback | None = None,
    stop_event: StopSignal | None = None,
    max_workers: int = 1,
    seed: int | str | None = None,
) -> MonteCarloResult:
    """Run ``simulation_count`` independent paths and aggregate them.

    Args:
        distribution: Validated outcome distribution.
        params: Run parameters shared by every path.
        simulation_count: Number of independent runs.
        bucket_count: Histogram bucket count for return %.
        random_source_factory: ``run_index -> RandomSource``. Defaults to a
            SeededRandomSourceFactory built from ``seed``.
        batch_size: Runs per batch; progress and stop checks happen between
            batches.
        on_progress: Called as ``on_progress(completed, total)`` after each batch.
        stop_event: Checked between batches; once set, partial runs are
            discarded and SimulationCancelled is raised.
        max_workers: >1 dispatches batches to a ProcessPoolExecutor. The
            factory must then be picklable.
        seed: Root seed for the default factory (int or string key).

    Raises:
        NonPositiveParameter: simulation_count, bucket_count, batch_size or
            max_workers below 1.
        SimulationCancelled: stop_event was set before all runs finished.
    """
    _check_batch_args(simulation_count, bucket_count, batch_size, max_workers)
    factory = random_source_factory or SeededRandomSourceFactory(seed)

    logger.info(
        "Monte Carlo: %d runs x %d draws, risk %.4f, batch %d, workers %d",
        simulation_count, params.draw_count, params.risk_fraction,
        batch_size, max_workers,
    )

    if max_workers > 1 and simulation_count > batch_size:
        runs = _run_parallel(
            distribution, params, factory, simulation_count, batch_size,
            max_workers, on_progress, stop_event,
        )
    else:
        runs = []
        for chunk in _iter_batches(
            distribution, params, factory, simulation_count, batch_size, stop_event
        ):
            runs.extend(chunk)
            _report(on_progress, len(runs), simulation_count)

    result = aggregate_runs(distribution, params, runs, bucket_count)
    logger.info(
        "Monte Carlo complete: mean return %.2f%%, P(profit) %.1f%%",
        result.summary.mean_return_percent, result.summary.probability_of_profit,
    )
    return result


async def run_batch_async(
    distribution: Distribution,
    params: RunParameters,
    simulation_count: int = DEFAULT_SIMULATIONS,
    bucket_count: int = DEFAULT_BUCKETS,
    random_source_factory: RandomSourceFactory | None = None,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: ProgressCallback | None = None,
    stop_event: StopSignal | None = None,
    seed: int | str | None = None,
) -> MonteCarloResult:
    """Same as run_batch but yields to the event loop between batches."""
    _check_batch_args(simulation_count, bucket_count, batch_size, 1)
    factory = random_source_factory or SeededRandomSourceFactory(seed)

    runs: list[SingleRunResult] = []
    for chunk in _iter_batches(
        distribution, params, factory, simulation_count, batch_size, stop_event
    ):
        runs.extend(chunk)
        _report(on_progress, len(runs), simulation_count)
        await asyncio.sleep(0)

    return aggregate_runs(distribution, params, runs, bucket_count)


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


def _check_batch_args(
    simulation_count: int, bucket_count: int, batch_size: int, max_workers: int
) -> None:
    for name, value in (
        ("simulation_count", simulation_count),
        ("bucket_count", bucket_count),
        ("batch_size", batch_size),
        ("max_workers", max_workers),
    ):
        if value < 1:
            raise NonPositiveParameter(name, value)


def _report(on_progress: ProgressCallback | None, completed: int, total: int) -> None:
    logger.debug("Progress: %d/%d runs", completed, total)
    if on_progress is not None:
        on_progress(completed, total)


def _simulate_range(
    distribution: Distribution,
    params: RunParameters,
    factory: RandomSourceFactory,
    start: int,
    stop: int,
) -> list[SingleRunResult]:
    """Picklable worker: runs ``start..stop-1``, each with its own source."""
    return [
        run_single(distribution, params, factory(i), record_draws=False)
        for i in range(start, stop)
    ]


def _iter_batches(
    distribution: Distribution,
    params: RunParameters,
    factory: RandomSourceFactory,
    simulation_count: int,
    batch_size: int,
    stop_event: StopSignal | None,
) -> Iterator[list[SingleRunResult]]:
    completed = 0
    for start in range(0, simulation_count, batch_size):
        if stop_event is not None and stop_event.is_set():
            logger.warning(
                "Monte Carlo cancelled after %d/%d runs", completed, simulation_count
            )
            raise SimulationCancelled(completed, simulation_count)
        stop = min(start + batch_size, simulation_count)
        chunk = _simulate_range(distribution, params, factory, start, stop)
        completed += len(chunk)
        yield chunk


def _run_parallel(
    distribution: Distribution,
    params: RunParameters,
    factory: RandomSourceFactory,
    simulation_count: int,
    batch_size: int,
    max_workers: int,
    on_progress: ProgressCallback | None,
    stop_event: StopSignal | None,
) -> list[SingleRunResult]:
    """Run batches in a process pool and reassemble them in batch order.

    At most ``max_workers`` batches are in flight. The stop signal is checked
    before each submission and after each finished batch.
    """
    bounds = [
        (start, min(start + batch_size, simulation_count))
        for start in range(0, simulation_count, batch_size)
    ]
    max_workers = min(max_workers, len(bounds))
    logger.info("Running %d batches with %d workers", len(bounds), max_workers)

    chunks: dict[int, list[SingleRunResult]] = {}
    completed = 0
    next_batch = 0

    def stopped() -> bool:
        return completed < simulation_count and stop_event is not None and stop_event.is_set()

    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        in_flight: dict[Future, int] = {}
        while next_batch < len(bounds) or in_flight:
            while next_batch < len(bounds) and len(in_flight) < max_workers:
                if stopped():
                    _cancel(in_flight, completed, simulation_count)
                start, stop = bounds[next_batch]
                future = executor.submit(_simulate_range, distribution, params, factory, start, stop)
                in_flight[future] = next_batch
                next_batch += 1

            done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
            for future in sorted(done, key=in_flight.__getitem__):
                chunk = future.result()
                chunks[in_flight.pop(future)] = chunk
                completed += len(chunk)
                _report(on_progress, completed, simulation_count)
                if stopped():
                    _cancel(in_flight, completed, simulation_count)

    return [run for b in range(len(bounds)) for run in chunks[b]]


def _cancel(in_flight: dict[Future, int], completed: int, simulation_count: int) -> NoReturn:
    for future in in_flight:
        future.cancel()
    logger.warning("Monte Carlo cancelled after %d/%d runs", completed, simulation_count)
    raise SimulationCancelled(completed, simulation_count)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def aggregate_runs(
    distribution: Distribution,
    params: RunParameters,
    runs: Sequence[SingleRunResult],
    bucket_count: int = DEFAULT_BUCKETS,
) -> MonteCarloResult:
    """Build a MonteCarloResult from completed runs sharing one draw count."""
    if not runs:
        raise ValueError("cannot aggregate zero runs")
    n = len(runs)

    returns = np.array([r.total_return_percent for r in runs], dtype=float)
    finals = np.array([r.final_equity for r in runs], dtype=float)
    drawdowns = np.array([r.max_drawdown_percent for r in runs], dtype=float)
    profitable = sum(1 for r in runs if r.total_return > 0)

    summary = MonteCarloSummary(
        mean_return_percent=mean(returns),
        return_volatility=stddev(returns),
        probability_of_profit=profitable / n * 100.0,
        mean_max_drawdown_percent=mean(drawdowns),
        theoretical_expectancy=theoretical_expectancy(distribution),
        mean_average_multiple=mean([r.average_multiple for r in runs]),
        mean_win_rate_percent=mean([r.win_rate_percent for r in runs]),
    )

    percentiles = PercentileTables(
        return_percent=percentile_table(np.sort(returns)),
        final_equity=percentile_table(np.sort(finals)),
        max_drawdown_percent=percentile_table(np.sort(drawdowns)),
    )

    run_points = tuple(
        RunPoint(
            run=i + 1,
            return_percent=r.total_return_percent,
            max_drawdown_percent=r.max_drawdown_percent,
            final_equity=r.final_equity,
            win_rate_percent=r.win_rate_percent,
        )
        for i, r in enumerate(runs)
    )

    return MonteCarloResult(
        simulation_count=n,
        params=params,
        summary=summary,
        percentiles=percentiles,
        histogram=tuple(histogram(returns, bucket_count)),
        equity_band=tuple(equity_band(runs)),
        run_points=run_points,
    )


def equity_band(runs: Sequence[SingleRunResult]) -> list[EquityBandPoint]:
    """Average, p10 and p90 equity at every draw index across runs.

    All runs must have the same trajectory length.
    """
    lengths = {len(r.equity_trajectory) for r in runs}
    if len(lengths) != 1:
        raise ValueError(f"runs have differing trajectory lengths: {sorted(lengths)}")

    matrix = np.array([r.equity_trajectory for r in runs], dtype=float)
    average = matrix.mean(axis=0)
    ordered = np.sort(matrix, axis=0)
    lo = percentile_index(len(runs), BAND_LOWER)
    hi = percentile_index(len(runs), BAND_UPPER)

    return [
        EquityBandPoint(
            draw=k,
            average=float(average[k]),
            p10=float(ordered[lo, k]),
            p90=float(ordered[hi, k]),
        )
        for k in range(matrix.shape[1])
    ]
