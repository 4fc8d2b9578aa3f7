"""Shared-draw player comparison.

Every player trades the same marble sequence; only position size differs.
The unit random values are drawn once and replayed to each player, so any
difference in outcome comes from the risk fraction alone.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from . import (
    Distribution,
    InvalidPlayers,
    Outcome,
    RunParameters,
    SingleRunResult,
)
from .random_source import RandomSource, SequenceRandomSource
from .single_run import DrawTally, RunStatistics, compute_run_statistics, run_single, tally_draws

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Player:
    name: str
    risk_fraction: float
    objective: str = ""

    @classmethod
    def from_percent(cls, name: str, risk_percent: float, objective: str = "") -> "Player":
        return cls(name=name, risk_fraction=risk_percent / 100.0, objective=objective)


@dataclass(frozen=True)
class PlayerResult:
    player: Player
    run: SingleRunResult
    statistics: RunStatistics


@dataclass(frozen=True)
class PlayerComparison:
    starting_equity: float
    draw_count: int
    drawn: tuple[Outcome, ...]
    draw_tally: tuple[DrawTally, ...]
    average_multiple: float
    results: tuple[PlayerResult, ...]
    best_return: str
    best_sharpe: str
    lowest_drawdown: str


def compare_players(
    distribution: Distribution,
    starting_equity: float,
    draw_count: int,
    players: Iterable[Player],
    random_source: RandomSource,
) -> PlayerComparison:
    """Run every player against one shared draw sequence.

    ``lowest_drawdown`` ranks players by peak-relative max drawdown percent,
    not by drawdown amount over starting equity.

    Raises:
        InvalidPlayers: No players, a blank name, or duplicate names.
        NonPositiveParameter / ParameterOutOfRange: Bad equity, draw count or
            a player's risk fraction. All players are checked before drawing.
    """
    roster = list(players)
    if not roster:
        raise InvalidPlayers("At least one player is required")
    seen: set[str] = set()
    for p in roster:
        if not p.name.strip():
            raise InvalidPlayers("Player name must not be blank")
        if p.name in seen:
            raise InvalidPlayers(f"Duplicate player name {p.name!r}")
        seen.add(p.name)

    run_params = [RunParameters(starting_equity, p.risk_fraction, draw_count) for p in roster]

    units = [random_source() for _ in range(draw_count)]
    logger.info("Comparing %d players over %d shared draws", len(roster), draw_count)

    results = []
    for player, params in zip(roster, run_params):
        run = run_single(distribution, params, SequenceRandomSource(units))
        results.append(PlayerResult(player=player, run=run, statistics=compute_run_statistics(run)))

    first = results[0].run
    return PlayerComparison(
        starting_equity=float(starting_equity),
        draw_count=draw_count,
        drawn=tuple(d.outcome for d in first.draws),
        draw_tally=tuple(tally_draws(first)),
        average_multiple=first.average_multiple,
        results=tuple(results),
        best_return=max(results, key=lambda r: r.run.total_return_percent).player.name,
        best_sharpe=max(results, key=lambda r: r.statistics.sharpe_ratio).player.name,
        lowest_drawdown=min(results, key=lambda r: r.run.max_drawdown_percent).player.name,
    )
