"""Single-path marble draw simulator.

Each draw risks ``risk_fraction`` of current equity and applies the drawn
outcome's R multiple to the risked amount:

    risked  = equity * risk_fraction
    result  = risked * multiplier
    equity += result

Equity is never floored: multiples below -1/risk_fraction drive it negative
and the run simply continues from there.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np

from . import Distribution, DrawEvent, RunParameters, SingleRunResult
from .distribution import sample
from .random_source import RandomSource
from .statistics import max_drawdown_amount, max_drawdown_percent

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------


def run_single(
    distribution: Distribution,
    params: RunParameters,
    random_source: RandomSource,
    record_draws: bool = True,
) -> SingleRunResult:
    """Simulate ``params.draw_count`` draws and return the equity path with metrics.

    Args:
        distribution: Validated outcome distribution.
        params: Starting equity, risk fraction and draw count.
        random_source: Zero-arg callable yielding floats in [0, 1).
        record_draws: Keep a DrawEvent per draw. The Monte Carlo engine turns
            this off since it only needs the trajectory.

    Returns:
        SingleRunResult. A draw counts as a win iff its multiplier is strictly
        positive; everything else (including a 0 multiple) is a loss.
    """
    start = float(params.starting_equity)
    equity = start
    wins = 0
    multiple_sum = 0.0
    trajectory = [start]
    draws: list[DrawEvent] = []

    for i in range(1, params.draw_count + 1):
        risked = equity * params.risk_fraction
        outcome = sample(distribution, random_source())
        signed = risked * outcome.multiplier
        before = equity
        equity += signed

        multiple_sum += outcome.multiplier
        if outcome.multiplier > 0:
            wins += 1

        trajectory.append(equity)
        if record_draws:
            draws.append(
                DrawEvent(
                    index=i,
                    outcome=outcome,
                    risked_amount=risked,
                    signed_result=signed,
                    equity_before=before,
                    equity_after=equity,
                    running_average_multiple=multiple_sum / i,
                )
            )

    n = params.draw_count
    total_return = equity - start
    return SingleRunResult(
        starting_equity=start,
        final_equity=equity,
        total_return=total_return,
        total_return_percent=total_return / start * 100.0,
        win_count=wins,
        loss_count=n - wins,
        win_rate_percent=wins / n * 100.0,
        average_multiple=multiple_sum / n,
        max_drawdown_percent=max_drawdown_percent(trajectory),
        equity_trajectory=tuple(trajectory),
        draws=tuple(draws),
    )


# ---------------------------------------------------------------------------
# Extended per-run statistics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RunStatistics:
    """Trade-journal style metrics for one run with recorded draws.

    Here a winning draw has ``signed_result > 0`` and a losing draw
    ``signed_result < 0``; draws returning exactly 0 are in neither group.
    """

    expectancy: float  # mean signed result per draw, currency units
    average_win: float
    average_loss: float  # <= 0
    gross_profit: float
    gross_loss: float  # >= 0, absolute
    profit_factor: float
    winning_draws: int
    losing_draws: int
    per_draw_return_stddev: float
    sharpe_ratio: float
    volatility_percent: float
    max_drawdown_amount: float
    recovery_factor: float
    calmar_ratio: float


@dataclass(frozen=True)
class DrawTally:
    label: str
    multiplier: float
    count: int


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator != 0 else math.inf


def _require_draws(result: SingleRunResult) -> None:
    if not result.draws:
        raise ValueError("run was simulated without draw recording")


def compute_run_statistics(result: SingleRunResult) -> RunStatistics:
    """Derive expectancy, win/loss, ratio and volatility metrics from a recorded run.

    Per-draw returns skip steps whose prior equity is exactly 0. Ratios with a
    zero denominator (no losses, no drawdown) are ``math.inf``.
    """
    _require_draws(result)

    signed = np.array([d.signed_result for d in result.draws], dtype=float)
    gains = signed[signed > 0]
    losses = signed[signed < 0]

    gross_profit = float(gains.sum())
    gross_loss = float(abs(losses.sum()))

    equity = np.asarray(result.equity_trajectory, dtype=float)
    prev, curr = equity[:-1], equity[1:]
    nonzero = prev != 0
    returns = (curr[nonzero] - prev[nonzero]) / prev[nonzero]

    if returns.size:
        ret_std = float(np.std(returns, ddof=0))
        ret_mean = float(np.mean(returns))
    else:
        ret_std = 0.0
        ret_mean = 0.0
    sharpe = ret_mean / ret_std if ret_std != 0 else 0.0

    dd_amount = max_drawdown_amount(result.equity_trajectory)

    return RunStatistics(
        expectancy=float(signed.mean()),
        average_win=float(gains.mean()) if gains.size else 0.0,
        average_loss=float(losses.mean()) if losses.size else 0.0,
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        profit_factor=_ratio(gross_profit, gross_loss),
        winning_draws=int(gains.size),
        losing_draws=int(losses.size),
        per_draw_return_stddev=ret_std,
        sharpe_ratio=sharpe,
        volatility_percent=ret_std * math.sqrt(returns.size) * 100.0,
        max_drawdown_amount=dd_amount,
        recovery_factor=_ratio(result.total_return, dd_amount),
        calmar_ratio=_ratio(result.total_return_percent, result.max_drawdown_percent),
    )


def tally_draws(result: SingleRunResult) -> list[DrawTally]:
    """Count drawn outcomes per R multiple, highest multiple first."""
    _require_draws(result)
    counts: dict[float, list] = {}
    for d in result.draws:
        entry = counts.get(d.outcome.multiplier)
        if entry is None:
            counts[d.outcome.multiplier] = [d.outcome.label, 1]
        else:
            entry[1] += 1
    tallies = [DrawTally(label=label, multiplier=m, count=c) for m, (label, c) in counts.items()]
    tallies.sort(key=lambda t: t.multiplier, reverse=True)
    return tallies
