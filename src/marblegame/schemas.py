"""Pydantic output schemas for marble game results.

Mirror the engine's frozen dataclasses as plain records (numbers, strings
and lists) for JSON export. Infinite ratios dump to ``null`` in JSON mode.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ResultSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, ser_json_inf_nan="null")

    @classmethod
    def from_result(cls, result: Any):
        return cls.model_validate(result, from_attributes=True)


# --- Inputs ---


class OutcomeSchema(ResultSchema):
    label: str
    color: str = ""
    probability_percent: float = Field(description="Draw probability, 0-100")
    multiplier: float = Field(description="R multiple applied to the risked amount")


class RunParametersSchema(ResultSchema):
    starting_equity: float
    risk_fraction: float = Field(description="Fraction of current equity risked per draw")
    draw_count: int


# --- Single run ---


class DrawEventSchema(ResultSchema):
    index: int
    outcome: OutcomeSchema
    risked_amount: float
    signed_result: float
    equity_before: float
    equity_after: float
    running_average_multiple: float


class SingleRunSchema(ResultSchema):
    starting_equity: float
    final_equity: float
    total_return: float
    total_return_percent: float
    win_count: int
    loss_count: int
    win_rate_percent: float
    average_multiple: float = Field(description="Mean R multiple actually drawn")
    max_drawdown_percent: float = Field(description="Peak-relative max drawdown (%)")
    equity_trajectory: list[float]
    draws: list[DrawEventSchema] = Field(default_factory=list)


class RunStatisticsSchema(ResultSchema):
    expectancy: float
    average_win: float
    average_loss: float
    gross_profit: float
    gross_loss: float
    profit_factor: float
    winning_draws: int
    losing_draws: int
    per_draw_return_stddev: float
    sharpe_ratio: float
    volatility_percent: float
    max_drawdown_amount: float
    recovery_factor: float
    calmar_ratio: float


class DrawTallySchema(ResultSchema):
    label: str
    multiplier: float
    count: int


class SingleRunReportSchema(ResultSchema):
    theoretical_expectancy: float = Field(description="Probability-weighted R per draw")
    run: SingleRunSchema
    statistics: RunStatisticsSchema
    draw_tally: list[DrawTallySchema]


# --- Monte Carlo ---


class HistogramBucketSchema(ResultSchema):
    range_start: float
    range_end: float
    count: int
    frequency_percent: float


class EquityBandPointSchema(ResultSchema):
    draw: int
    average: float
    p10: float
    p90: float


class RunPointSchema(ResultSchema):
    run: int
    return_percent: float
    max_drawdown_percent: float
    final_equity: float
    win_rate_percent: float


class MonteCarloSummarySchema(ResultSchema):
    mean_return_percent: float
    return_volatility: float
    probability_of_profit: float
    mean_max_drawdown_percent: float
    theoretical_expectancy: float
    mean_average_multiple: float
    mean_win_rate_percent: float


class PercentileTablesSchema(ResultSchema):
    return_percent: dict[str, float]
    final_equity: dict[str, float]
    max_drawdown_percent: dict[str, float]


class MonteCarloSchema(ResultSchema):
    simulation_count: int
    params: RunParametersSchema
    summary: MonteCarloSummarySchema
    percentiles: PercentileTablesSchema
    histogram: list[HistogramBucketSchema]
    equity_band: list[EquityBandPointSchema]
    run_points: list[RunPointSchema] = Field(default_factory=list)


# --- Player comparison ---


class PlayerSchema(ResultSchema):
    name: str
    risk_fraction: float
    objective: str = ""


class PlayerResultSchema(ResultSchema):
    player: PlayerSchema
    run: SingleRunSchema
    statistics: RunStatisticsSchema


class PlayerComparisonSchema(ResultSchema):
    starting_equity: float
    draw_count: int
    drawn: list[OutcomeSchema]
    draw_tally: list[DrawTallySchema]
    average_multiple: float
    results: list[PlayerResultSchema]
    best_return: str
    best_sharpe: str
    lowest_drawdown: str
