"""Unit tests for marblegame.analysis.single_run."""

import dataclasses
import math

import numpy as np
import pytest

from marblegame.analysis import (
    NonPositiveParameter,
    Outcome,
    ParameterOutOfRange,
    RunParameters,
)
from marblegame.analysis.distribution import validate
from marblegame.analysis.random_source import SeededRandomSourceFactory, SequenceRandomSource
from marblegame.analysis.single_run import compute_run_statistics, run_single, tally_draws
from marblegame.analysis.statistics import max_drawdown_percent


def _run(dist, values, equity=1000, risk=0.1, record_draws=True):
    params = RunParameters(equity, risk, len(values))
    return run_single(dist, params, SequenceRandomSource(values), record_draws=record_draws)


# ---------------------------------------------------------------------------
# RunParameters
# ---------------------------------------------------------------------------


class TestRunParameters:
    def test_from_percent(self):
        params = RunParameters.from_percent(10000, 2, 50)
        assert params.risk_fraction == pytest.approx(0.02)
        assert params.draw_count == 50

    @pytest.mark.parametrize("kwargs", [
        {"starting_equity": 0, "risk_fraction": 0.1, "draw_count": 10},
        {"starting_equity": -5, "risk_fraction": 0.1, "draw_count": 10},
        {"starting_equity": 1000, "risk_fraction": 0, "draw_count": 10},
        {"starting_equity": 1000, "risk_fraction": 0.1, "draw_count": 0},
        {"starting_equity": 1000, "risk_fraction": 0.1, "draw_count": 2.5},
        {"starting_equity": float("nan"), "risk_fraction": 0.1, "draw_count": 10},
        {"starting_equity": 1000, "risk_fraction": 0.1, "draw_count": 2.0},
        {"starting_equity": 1000, "risk_fraction": 0.1, "draw_count": float("nan")},
        {"starting_equity": 1000, "risk_fraction": 0.1, "draw_count": True},
        {"starting_equity": 1000, "risk_fraction": 0.1, "draw_count": "3"},
    ])
    def test_non_positive(self, kwargs):
        with pytest.raises(NonPositiveParameter):
            RunParameters(**kwargs)

    def test_numpy_integer_draw_count(self):
        assert RunParameters(1000, 0.1, np.int64(3)).draw_count == 3

    def test_risk_above_one(self):
        with pytest.raises(ParameterOutOfRange):
            RunParameters(1000, 1.5, 10)

    def test_full_risk_allowed(self):
        assert RunParameters(1000, 1.0, 1).risk_fraction == 1.0


# ---------------------------------------------------------------------------
# run_single
# ---------------------------------------------------------------------------


class TestRunSingle:
    def test_single_winning_draw(self, coin_flip, one_draw_params):
        result = run_single(coin_flip, one_draw_params, SequenceRandomSource([0.3]))
        draw = result.draws[0]
        assert draw.outcome.label == "A"
        assert draw.risked_amount == pytest.approx(100.0)
        assert draw.signed_result == pytest.approx(200.0)
        assert result.final_equity == pytest.approx(1200.0)
        assert result.total_return_percent == pytest.approx(20.0)
        assert result.max_drawdown_percent == 0.0
        assert result.win_count == 1
        assert result.loss_count == 0

    def test_single_losing_draw(self, coin_flip, one_draw_params):
        result = run_single(coin_flip, one_draw_params, SequenceRandomSource([0.7]))
        assert result.final_equity == pytest.approx(900.0)
        assert result.total_return == pytest.approx(-100.0)
        assert result.max_drawdown_percent == pytest.approx(10.0)
        assert result.win_rate_percent == 0.0

    def test_risk_compounds_on_current_equity(self, coin_flip):
        result = _run(coin_flip, [0.3, 0.3])
        assert result.draws[1].risked_amount == pytest.approx(120.0)
        assert result.final_equity == pytest.approx(1440.0)

    def test_trajectory_shape(self, coin_flip):
        result = _run(coin_flip, [0.3, 0.7, 0.3])
        assert result.draw_count == 3
        assert len(result.equity_trajectory) == 4
        assert result.equity_trajectory[0] == 1000.0
        assert result.equity_trajectory[-1] == result.final_equity
        for d in result.draws:
            assert d.equity_after == pytest.approx(d.equity_before + d.signed_result)
            assert d.equity_after == result.equity_trajectory[d.index]

    def test_win_plus_loss_equals_draws(self, default_bag):
        values = [i / 20 for i in range(20)]
        result = _run(default_bag, values, risk=0.02)
        assert result.win_count + result.loss_count == 20

    def test_zero_multiplier_counts_as_loss(self):
        dist = validate([
            Outcome("W", 50, 1),
            Outcome("Z", 50, 0),
        ])
        result = _run(dist, [0.1, 0.6, 0.6])
        assert result.win_count == 1
        assert result.loss_count == 2
        assert result.final_equity == pytest.approx(1100.0)

    def test_running_average_multiple(self, coin_flip):
        result = _run(coin_flip, [0.3, 0.7, 0.3])
        assert [d.running_average_multiple for d in result.draws] == pytest.approx([2.0, 0.5, 1.0])
        assert result.average_multiple == pytest.approx(1.0)

    def test_equity_can_go_negative(self):
        dist = validate([Outcome("L", 100, -20)])
        result = _run(dist, [0.5])
        assert result.final_equity == pytest.approx(-1000.0)
        assert result.total_return_percent == pytest.approx(-200.0)
        assert result.max_drawdown_percent == pytest.approx(200.0)

    def test_drawdown_after_equity_turns_negative(self):
        dist = validate([Outcome("W", 50, 3), Outcome("X", 50, -15)])
        result = _run(dist, [0.1, 0.9, 0.1])
        assert result.equity_trajectory == pytest.approx((1000, 1300, -650, -845))
        assert result.max_drawdown_percent == pytest.approx(2145 / 1300 * 100)

    @pytest.mark.parametrize("seed", range(5))
    def test_drawdown_matches_running_peak(self, seed):
        dist = validate([
            Outcome("W", 40, 3),
            Outcome("L", 50, -1),
            Outcome("X", 10, -15),
        ])
        source = SeededRandomSourceFactory(seed)(0)
        result = run_single(dist, RunParameters(1000, 0.1, 40), source)

        peak = result.equity_trajectory[0]
        worst = 0.0
        for equity in result.equity_trajectory:
            peak = max(peak, equity)
            worst = max(worst, (peak - equity) / peak * 100.0)
        assert result.max_drawdown_percent == pytest.approx(worst)
        assert result.max_drawdown_percent == pytest.approx(
            max_drawdown_percent(result.equity_trajectory)
        )

    def test_without_draw_recording(self, coin_flip):
        result = _run(coin_flip, [0.3, 0.7], record_draws=False)
        assert result.draws == ()
        assert len(result.equity_trajectory) == 3
        assert result.final_equity == pytest.approx(1080.0)

    def test_consumes_one_value_per_draw(self, coin_flip):
        source = SequenceRandomSource([0.1, 0.2, 0.3, 0.4])
        run_single(coin_flip, RunParameters(1000, 0.1, 3), source)
        assert source.remaining == 1

    def test_result_is_frozen(self, coin_flip, one_draw_params):
        result = run_single(coin_flip, one_draw_params, SequenceRandomSource([0.3]))
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.final_equity = 0.0


# ---------------------------------------------------------------------------
# compute_run_statistics / tally_draws
# ---------------------------------------------------------------------------


class TestRunStatistics:
    @pytest.fixture
    def mixed_run(self, coin_flip):
        # signed results: +200, -120, +216 -> final 1296
        return _run(coin_flip, [0.3, 0.7, 0.3])

    def test_expectancy_and_grosses(self, mixed_run):
        stats = compute_run_statistics(mixed_run)
        assert stats.expectancy == pytest.approx(296 / 3)
        assert stats.gross_profit == pytest.approx(416.0)
        assert stats.gross_loss == pytest.approx(120.0)
        assert stats.profit_factor == pytest.approx(416 / 120)
        assert stats.average_win == pytest.approx(208.0)
        assert stats.average_loss == pytest.approx(-120.0)
        assert stats.winning_draws == 2
        assert stats.losing_draws == 1

    def test_return_volatility_and_sharpe(self, mixed_run):
        # per-draw returns: 0.2, -0.1, 0.2
        stats = compute_run_statistics(mixed_run)
        std = math.sqrt(0.02)
        assert stats.per_draw_return_stddev == pytest.approx(std)
        assert stats.sharpe_ratio == pytest.approx(0.1 / std)
        assert stats.volatility_percent == pytest.approx(std * math.sqrt(3) * 100)

    def test_drawdown_ratios(self, mixed_run):
        stats = compute_run_statistics(mixed_run)
        assert stats.max_drawdown_amount == pytest.approx(120.0)
        assert stats.recovery_factor == pytest.approx(296 / 120)
        assert stats.calmar_ratio == pytest.approx(29.6 / 10)

    def test_no_losses_gives_infinite_ratios(self, coin_flip):
        stats = compute_run_statistics(_run(coin_flip, [0.1, 0.2]))
        assert stats.profit_factor == math.inf
        assert stats.recovery_factor == math.inf
        assert stats.average_loss == 0.0

    def test_single_draw_has_zero_sharpe(self, coin_flip):
        stats = compute_run_statistics(_run(coin_flip, [0.3]))
        assert stats.per_draw_return_stddev == 0.0
        assert stats.sharpe_ratio == 0.0

    def test_requires_recorded_draws(self, coin_flip):
        with pytest.raises(ValueError):
            compute_run_statistics(_run(coin_flip, [0.3], record_draws=False))


class TestTallyDraws:
    def test_highest_multiple_first(self, coin_flip):
        tally = tally_draws(_run(coin_flip, [0.7, 0.3, 0.3]))
        assert [(t.label, t.multiplier, t.count) for t in tally] == [("A", 2, 2), ("B", -1, 1)]

    def test_counts_sum_to_draws(self, default_bag):
        result = _run(default_bag, [i / 10 for i in range(10)], risk=0.02)
        assert sum(t.count for t in tally_draws(result)) == 10
