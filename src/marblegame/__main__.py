import logging
import sys
from typing import NoReturn

import click

from marblegame.analysis import ConfigError, Distribution, Outcome, RunParameters
from marblegame.analysis.distribution import theoretical_expectancy, validate
from marblegame.analysis.monte_carlo import run_batch
from marblegame.analysis.players import Player, compare_players
from marblegame.analysis.random_source import SeededRandomSourceFactory
from marblegame.analysis.single_run import compute_run_statistics, run_single, tally_draws
from marblegame.config import Settings
from marblegame.logging_config import setup_logging
from marblegame.profiles import PROFILES, get_profile

logger = logging.getLogger(__name__)

DEFAULT_PLAYERS = (
    Player.from_percent("Vic", 20, "Shoot for the moon!"),
    Player.from_percent("Cassie", 5, "No losses strategy"),
    Player.from_percent("William", 10, "Balanced 30% target"),
    Player.from_percent("Alex", 8, "Conservative growth"),
)


# ---------------------------------------------------------------------------
# Option parsing helpers
# ---------------------------------------------------------------------------


def _parse_outcome(text: str) -> Outcome:
    parts = text.split(":")
    if len(parts) != 3:
        raise click.BadParameter(f"expected LABEL:PERCENT:MULTIPLIER, got {text!r}")
    label, pct, mult = parts
    try:
        return Outcome(label=label, probability_percent=float(pct), multiplier=float(mult))
    except ValueError as e:
        raise click.BadParameter(f"non-numeric percent or multiplier in {text!r}") from e


def _parse_player(text: str) -> Player:
    name, sep, pct = text.rpartition(":")
    if not sep or not name:
        raise click.BadParameter(f"expected NAME:RISK_PERCENT, got {text!r}")
    try:
        return Player.from_percent(name, float(pct))
    except ValueError as e:
        raise click.BadParameter(f"non-numeric risk percent in {text!r}") from e


def _resolve_seed(seed: str | None) -> int | str | None:
    if not seed:
        return None
    try:
        return int(seed)
    except ValueError:
        return seed


def _build_distribution(
    settings: Settings, profile: str | None, outcome_specs: tuple[str, ...]
) -> Distribution:
    if outcome_specs:
        outcomes = [_parse_outcome(s) for s in outcome_specs]
        return validate(outcomes, tolerance=settings.probability_tolerance)
    try:
        preset = get_profile(profile or settings.default_profile)
    except KeyError as e:
        raise click.BadParameter(str(e.args[0]), param_hint="--profile") from e
    return preset.distribution(tolerance=settings.probability_tolerance)


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(2)


def distribution_options(func):
    for option in reversed((
        click.option("--profile", "-p", default=None, help="Built-in profile name"),
        click.option("--outcome", "-o", "outcome_specs", multiple=True,
                     help="Custom outcome LABEL:PERCENT:MULTIPLIER (repeatable)"),
        click.option("--equity", "-e", type=float, default=None, help="Starting equity"),
        click.option("--draws", "-n", type=int, default=None, help="Draws per run"),
        click.option("--seed", "-s", default=None, help="Integer or string seed"),
        click.option("--json", "as_json", is_flag=True, help="Emit JSON instead of text"),
    )):
        func = option(func)
    return func


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """Marble Game - trading risk simulator"""
    settings = Settings()
    setup_logging(settings.log_dir, settings.log_level)
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        for handler in logging.getLogger().handlers:
            handler.setLevel(logging.DEBUG)
    ctx.obj = settings


@cli.command()
def profiles():
    """List built-in trading-system profiles."""
    for profile in PROFILES:
        expectancy = theoretical_expectancy(profile.distribution())
        click.echo(f"{profile.name:<24} E={expectancy:+.3f}R  {profile.description}")


@cli.command()
@distribution_options
@click.option("--risk", "-r", type=float, default=None, help="Risk per draw (% of equity)")
@click.option("--draw-log", is_flag=True, help="Print every draw")
@click.pass_obj
def run(settings: Settings, profile, outcome_specs, equity, draws, seed, as_json,
        risk, draw_log):
    """Run a single simulated path."""
    from marblegame.schemas import (
        DrawTallySchema,
        RunStatisticsSchema,
        SingleRunReportSchema,
        SingleRunSchema,
    )

    try:
        distribution = _build_distribution(settings, profile, outcome_specs)
        params = RunParameters.from_percent(
            equity if equity is not None else settings.starting_equity,
            risk if risk is not None else settings.risk_percent,
            draws if draws is not None else settings.draw_count,
        )
    except ConfigError as e:
        _fail(str(e))

    source = SeededRandomSourceFactory(_resolve_seed(seed or settings.seed))(0)
    result = run_single(distribution, params, source)
    stats = compute_run_statistics(result)

    if as_json:
        report = SingleRunReportSchema(
            theoretical_expectancy=theoretical_expectancy(distribution),
            run=SingleRunSchema.from_result(result),
            statistics=RunStatisticsSchema.from_result(stats),
            draw_tally=[DrawTallySchema.from_result(t) for t in tally_draws(result)],
        )
        click.echo(report.model_dump_json(indent=2))
        return

    if draw_log:
        for d in result.draws:
            click.echo(
                f"  #{d.index:<4} {d.outcome.label:<8} {d.outcome.multiplier:+6.2f}R  "
                f"risk {d.risked_amount:>12,.2f}  result {d.signed_result:>+12,.2f}  "
                f"equity {d.equity_after:>14,.2f}"
            )
    click.echo(f"Final equity:      {result.final_equity:,.2f}")
    click.echo(f"Total return:      {result.total_return:+,.2f} ({result.total_return_percent:+.2f}%)")
    click.echo(f"Win rate:          {result.win_rate_percent:.1f}% "
               f"({result.win_count}W / {result.loss_count}L)")
    click.echo(f"Average multiple:  {result.average_multiple:+.3f}R "
               f"(theoretical {theoretical_expectancy(distribution):+.3f}R)")
    click.echo(f"Max drawdown:      {result.max_drawdown_percent:.2f}%")
    click.echo(f"Profit factor:     {stats.profit_factor:.2f}")
    click.echo(f"Sharpe (per draw): {stats.sharpe_ratio:.3f}")
    click.echo("Draw tally:")
    for t in tally_draws(result):
        click.echo(f"  {t.label:<8} {t.multiplier:+6.2f}R  x{t.count}")


@cli.command("monte-carlo")
@distribution_options
@click.option("--risk", "-r", type=float, default=None, help="Risk per draw (% of equity)")
@click.option("--simulations", "-m", type=int, default=None, help="Number of runs")
@click.option("--buckets", "-b", type=int, default=None, help="Histogram buckets")
@click.option("--workers", "-w", type=int, default=None, help="Worker processes")
@click.option("--batch-size", type=int, default=None, help="Runs per batch")
@click.option("--include-runs", is_flag=True, help="Include per-run points in JSON output")
@click.pass_obj
def monte_carlo(settings: Settings, profile, outcome_specs, equity, draws, seed, as_json,
                risk, simulations, buckets, workers, batch_size, include_runs):
    """Run a Monte Carlo batch and print aggregate statistics."""
    from marblegame.schemas import MonteCarloSchema

    simulation_count = simulations if simulations is not None else settings.simulation_count

    def on_progress(completed: int, total: int) -> None:
        logger.info("Progress: %d/%d simulations", completed, total)

    try:
        distribution = _build_distribution(settings, profile, outcome_specs)
        params = RunParameters.from_percent(
            equity if equity is not None else settings.starting_equity,
            risk if risk is not None else settings.risk_percent,
            draws if draws is not None else settings.draw_count,
        )
        result = run_batch(
            distribution,
            params,
            simulation_count,
            buckets if buckets is not None else settings.histogram_buckets,
            batch_size=batch_size if batch_size is not None else settings.batch_size,
            max_workers=workers if workers is not None else settings.max_workers,
            seed=_resolve_seed(seed or settings.seed),
            on_progress=on_progress,
        )
    except ConfigError as e:
        _fail(str(e))
    except KeyboardInterrupt:
        click.echo("\nSimulation interrupted.", err=True)
        sys.exit(130)

    if as_json:
        exclude = None if include_runs else {"run_points"}
        click.echo(MonteCarloSchema.from_result(result).model_dump_json(indent=2, exclude=exclude))
        return

    s = result.summary
    click.echo(f"Simulations:            {result.simulation_count}")
    click.echo(f"Mean return:            {s.mean_return_percent:+.2f}%")
    click.echo(f"Return volatility:      {s.return_volatility:.2f}%")
    click.echo(f"Probability of profit:  {s.probability_of_profit:.1f}%")
    click.echo(f"Mean max drawdown:      {s.mean_max_drawdown_percent:.2f}%")
    click.echo(f"Expectancy:             {s.theoretical_expectancy:+.3f}R theoretical, "
               f"{s.mean_average_multiple:+.3f}R drawn")

    tables = (
        ("Return %", result.percentiles.return_percent, "{:+.2f}"),
        ("Final equity", result.percentiles.final_equity, "{:,.0f}"),
        ("Max drawdown %", result.percentiles.max_drawdown_percent, "{:.2f}"),
    )
    for title, table, fmt in tables:
        row = "  ".join(f"{k.upper()} {fmt.format(v)}" for k, v in table.items())
        click.echo(f"{title:<16} {row}")

    click.echo("Return histogram:")
    peak = max(b.count for b in result.histogram) or 1
    for b in result.histogram:
        bar = "#" * round(b.count / peak * 40)
        click.echo(f"  {b.range_start:>9.1f}% .. {b.range_end:>9.1f}%  {b.count:>6}  {bar}")


@cli.command()
@distribution_options
@click.option("--player", "player_specs", multiple=True,
              help="Player NAME:RISK_PERCENT (repeatable; default: four sample players)")
@click.pass_obj
def compare(settings: Settings, profile, outcome_specs, equity, draws, seed, as_json,
            player_specs):
    """Compare position sizes on one shared draw sequence."""
    from marblegame.schemas import PlayerComparisonSchema

    players = [_parse_player(s) for s in player_specs] or list(DEFAULT_PLAYERS)
    try:
        distribution = _build_distribution(settings, profile, outcome_specs)
        source = SeededRandomSourceFactory(_resolve_seed(seed or settings.seed))(0)
        comparison = compare_players(
            distribution,
            equity if equity is not None else settings.starting_equity,
            draws if draws is not None else settings.draw_count,
            players,
            source,
        )
    except ConfigError as e:
        _fail(str(e))

    if as_json:
        click.echo(PlayerComparisonSchema.from_result(comparison).model_dump_json(indent=2))
        return

    click.echo(f"{comparison.draw_count} shared draws, average {comparison.average_multiple:+.3f}R")
    for r in comparison.results:
        click.echo(
            f"  {r.player.name:<12} risk {r.player.risk_fraction * 100:5.1f}%  "
            f"final {r.run.final_equity:>14,.2f}  return {r.run.total_return_percent:+9.2f}%  "
            f"maxDD {r.run.max_drawdown_percent:6.2f}%  sharpe {r.statistics.sharpe_ratio:+.3f}"
        )
    click.echo(f"Best return: {comparison.best_return}   Best Sharpe: {comparison.best_sharpe}   "
               f"Lowest drawdown: {comparison.lowest_drawdown}")


if __name__ == "__main__":
    cli()
