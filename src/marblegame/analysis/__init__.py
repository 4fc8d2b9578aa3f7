"""Marble game simulation engine.

Shared value types and the configuration error taxonomy used by:
- distribution: validated outcome bag + cumulative sampling
- single_run: one equity path over a sequence of draws
- statistics: percentile / histogram / drawdown helpers
- monte_carlo: repeated single runs + cross-run aggregation
- players: several position sizes against one shared draw sequence
"""

import math
import numbers
from dataclasses import dataclass, field


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Invalid simulation input. Raised before any draw is made."""


class EmptyDistribution(ConfigError):
    def __init__(self) -> None:
        super().__init__("Distribution must contain at least one outcome")


class ProbabilitySumInvalid(ConfigError):
    def __init__(self, total: float, tolerance: float) -> None:
        self.total = total
        self.tolerance = tolerance
        super().__init__(
            f"Probabilities must sum to 100% (±{tolerance}), got {total:.4f}%"
        )


class InvalidOutcome(ConfigError):
    def __init__(self, label: str, reason: str) -> None:
        self.label = label
        self.reason = reason
        super().__init__(f"Outcome {label!r}: {reason}")


class NonPositiveParameter(ConfigError):
    def __init__(self, name: str, value: float) -> None:
        self.name = name
        self.value = value
        super().__init__(f"{name} must be positive, got {value!r}")


class ParameterOutOfRange(ConfigError):
    def __init__(self, name: str, value: float, upper: float) -> None:
        self.name = name
        self.value = value
        self.upper = upper
        super().__init__(f"{name} must be at most {upper}, got {value!r}")


class InvalidPlayers(ConfigError):
    pass


class SimulationCancelled(RuntimeError):
    """Monte Carlo batch stopped by an external signal; partial runs are discarded."""

    def __init__(self, completed: int, requested: int) -> None:
        self.completed = completed
        self.requested = requested
        super().__init__(f"Simulation cancelled after {completed}/{requested} runs")


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Outcome:
    """One marble in the bag: a probability and the R multiple it pays."""

    label: str
    probability_percent: float
    multiplier: float
    color: str = ""


@dataclass(frozen=True)
class Distribution:
    """Validated, ordered outcome set. Build with ``distribution.validate``."""

    outcomes: tuple[Outcome, ...]
    cumulative_ends: tuple[float, ...]  # right edge of each range, as a fraction

    def __len__(self) -> int:
        return len(self.outcomes)

    def __iter__(self):
        return iter(self.outcomes)

    @property
    def total_percent(self) -> float:
        return sum(o.probability_percent for o in self.outcomes)


def _check_positive(name: str, value: float) -> None:
    if not math.isfinite(value) or value <= 0:
        raise NonPositiveParameter(name, value)


@dataclass(frozen=True)
class RunParameters:
    starting_equity: float
    risk_fraction: float  # (0, 1]
    draw_count: int

    def __post_init__(self) -> None:
        _check_positive("starting_equity", self.starting_equity)
        _check_positive("risk_fraction", self.risk_fraction)
        if self.risk_fraction > 1:
            raise ParameterOutOfRange("risk_fraction", self.risk_fraction, 1)
        count = self.draw_count
        if isinstance(count, bool) or not isinstance(count, numbers.Integral) or count < 1:
            raise NonPositiveParameter("draw_count", self.draw_count)

    @classmethod
    def from_percent(
        cls, starting_equity: float, risk_percent: float, draw_count: int
    ) -> "RunParameters":
        """Build from a 0-100 risk percentage."""
        return cls(starting_equity, risk_percent / 100.0, draw_count)


@dataclass(frozen=True)
class DrawEvent:
    index: int  # 1-based
    outcome: Outcome
    risked_amount: float
    signed_result: float
    equity_before: float
    equity_after: float
    running_average_multiple: float


@dataclass(frozen=True)
class SingleRunResult:
    starting_equity: float
    final_equity: float
    total_return: float
    total_return_percent: float
    win_count: int
    loss_count: int
    win_rate_percent: float
    average_multiple: float
    max_drawdown_percent: float
    equity_trajectory: tuple[float, ...]  # len == draw_count + 1
    draws: tuple[DrawEvent, ...] = field(default=(), repr=False)

    @property
    def draw_count(self) -> int:
        return len(self.equity_trajectory) - 1


__all__ = [
    "ConfigError",
    "EmptyDistribution",
    "ProbabilitySumInvalid",
    "InvalidOutcome",
    "NonPositiveParameter",
    "ParameterOutOfRange",
    "InvalidPlayers",
    "SimulationCancelled",
    "Outcome",
    "Distribution",
    "RunParameters",
    "DrawEvent",
    "SingleRunResult",
]
