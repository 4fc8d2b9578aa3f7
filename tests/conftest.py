"""Pytest configuration and shared fixtures."""

import pytest

from marblegame.analysis import Outcome, RunParameters
from marblegame.analysis.distribution import validate
from marblegame.profiles import get_profile


@pytest.fixture
def coin_flip_outcomes():
    """Two marbles: A pays +2R, B loses 1R, 50/50."""
    return [
        Outcome(label="A", probability_percent=50, multiplier=2, color="#3B82F6"),
        Outcome(label="B", probability_percent=50, multiplier=-1, color="#EF4444"),
    ]


@pytest.fixture
def coin_flip(coin_flip_outcomes):
    return validate(coin_flip_outcomes)


@pytest.fixture
def default_bag():
    """The seven-marble default bag (expectancy +0.45R)."""
    return get_profile("Default").distribution()


@pytest.fixture
def one_draw_params():
    return RunParameters(starting_equity=1000, risk_fraction=0.1, draw_count=1)
