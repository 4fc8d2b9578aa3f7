"""Built-in trading-system presets.

Each preset is a seven-marble bag (Blue/Green/Silver/Pearl winners,
Orange/Red/Black losers) describing a stylised trading system. Read-only:
nothing here is persisted.
"""

from dataclasses import dataclass

from marblegame.analysis import Distribution, Outcome
from marblegame.analysis.distribution import DEFAULT_TOLERANCE, validate

COLORS = {
    "Blue": "#3B82F6",
    "Green": "#10B981",
    "Silver": "#6B7280",
    "Pearl": "#F3F4F6",
    "Orange": "#F97316",
    "Red": "#EF4444",
    "Black": "#1F2937",
}


@dataclass(frozen=True)
class TradingProfile:
    name: str
    description: str
    outcomes: tuple[Outcome, ...]

    def distribution(self, tolerance: float = DEFAULT_TOLERANCE) -> Distribution:
        return validate(self.outcomes, tolerance=tolerance)


def _bag(*pairs: tuple[float, float]) -> tuple[Outcome, ...]:
    """Build the seven marbles from (probability %, multiplier) pairs in COLORS order."""
    return tuple(
        Outcome(label=label, probability_percent=p, multiplier=m, color=color)
        for (label, color), (p, m) in zip(COLORS.items(), pairs, strict=True)
    )


PROFILES: tuple[TradingProfile, ...] = (
    TradingProfile(
        "Default",
        "Classic marble bag: positive expectancy with occasional heavy losses.",
        _bag((20, 1), (15, 3), (10, 4), (5, 7), (25, -1), (15, -2), (10, -4)),
    ),
    TradingProfile(
        "Undisciplined Trader",
        "Poor risk management with potential for large losses. "
        "Represents emotional trading without proper stops.",
        _bag((20, 1), (15, 3), (10, 4), (5, 7), (25, -1), (15, -2), (10, -4)),
    ),
    TradingProfile(
        "Professional Momentum",
        "Low win rate but high reward system. Cuts losses quickly and lets "
        "winners run with trend following.",
        _bag((10, 2), (15, 4), (8, 6), (2, 10), (40, -1), (20, -1), (5, -1)),
    ),
    TradingProfile(
        "Mean Reversion Master",
        "High win rate system targeting oversold/overbought conditions. "
        "Small consistent profits with controlled losses.",
        _bag((35, 1), (25, 1.5), (15, 2), (0, 0), (15, -1.5), (8, -2), (2, -3)),
    ),
    TradingProfile(
        "Breakout Specialist",
        "Moderate win rate focusing on volatility expansion and range breakouts. "
        "Variable outcomes based on market conditions.",
        _bag((15, 2), (20, 3), (8, 5), (2, 8), (30, -1), (20, -1.5), (5, -2)),
    ),
    TradingProfile(
        "Conservative Swing",
        "Balanced approach with good risk management. Targets multi-day trends "
        "with reasonable risk-reward ratios.",
        _bag((25, 1.5), (20, 2.5), (15, 3), (0, 0), (25, -1), (12, -1.5), (3, -2)),
    ),
    TradingProfile(
        "Aggressive Scalper",
        "Very high win rate with small profits. Focuses on quick entries and "
        "exits with tight risk control.",
        _bag((45, 0.5), (30, 0.8), (10, 1.2), (0, 0), (10, -0.8), (4, -1.5), (1, -2)),
    ),
    TradingProfile(
        "Trend Following Pro",
        "Low win rate but captures major trends. Patient system that waits for "
        "strong directional moves.",
        _bag((12, 3), (18, 5), (8, 8), (2, 15), (35, -1), (20, -1), (5, -1)),
    ),
    TradingProfile(
        "Statistical Arbitrage",
        "High frequency system with very high win rate. Exploits small "
        "statistical edges with tight risk control.",
        _bag((40, 0.6), (25, 1), (15, 1.5), (0, 0), (12, -1), (6, -1.5), (2, -2.5)),
    ),
    TradingProfile(
        "News/Event Trader",
        "Moderate win rate with high volatility outcomes. Trades around "
        "earnings, news, and market events.",
        _bag((20, 2), (15, 4), (15, 6), (5, 10), (20, -2), (15, -3), (10, -4)),
    ),
    TradingProfile(
        "Novice Trader",
        "Poor performance with inconsistent results. Represents beginner "
        "mistakes like no stops, revenge trading, and FOMO.",
        _bag((15, 1), (10, 2), (8, 3), (2, 5), (25, -1.5), (25, -2.5), (15, -5)),
    ),
)


def get_profile(name: str) -> TradingProfile:
    """Case-insensitive preset lookup; raises KeyError for unknown names."""
    key = name.strip().lower()
    for profile in PROFILES:
        if profile.name.lower() == key:
            return profile
    raise KeyError(f"Unknown profile {name!r}; choose from: {', '.join(profile_names())}")


def profile_names() -> list[str]:
    return [p.name for p in PROFILES]
