"""Tests for the marblegame click CLI."""

import json

import pytest
from click.testing import CliRunner

from marblegame.__main__ import cli


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.setenv("MARBLE_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("MARBLE_LOG_LEVEL", "WARNING")
    monkeypatch.delenv("MARBLE_SEED", raising=False)
    monkeypatch.chdir(tmp_path)
    return CliRunner()


class TestProfilesCommand:
    def test_lists_presets(self, runner):
        result = runner.invoke(cli, ["profiles"])
        assert result.exit_code == 0
        assert "Default" in result.output
        assert "Novice Trader" in result.output


class TestRunCommand:
    def test_json_output(self, runner):
        result = runner.invoke(cli, ["run", "--draws", "5", "--seed", "7", "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert len(payload["run"]["equity_trajectory"]) == 6
        assert len(payload["run"]["draws"]) == 5
        assert payload["theoretical_expectancy"] == pytest.approx(0.45)
        assert sum(t["count"] for t in payload["draw_tally"]) == 5

    def test_seeded_runs_repeat(self, runner):
        args = ["run", "-n", "10", "-s", "abc", "--json"]
        first = runner.invoke(cli, args)
        second = runner.invoke(cli, args)
        assert first.output == second.output

    def test_custom_outcomes(self, runner):
        result = runner.invoke(
            cli, ["run", "-o", "Win:100:1", "-e", "1000", "-r", "10", "-n", "2"]
        )
        assert result.exit_code == 0, result.output
        assert "1,210.00" in result.output

    def test_bad_probability_sum(self, runner):
        result = runner.invoke(cli, ["run", "-o", "A:60:1", "-o", "B:30:-1"])
        assert result.exit_code == 2
        assert "100%" in result.output

    def test_malformed_outcome(self, runner):
        result = runner.invoke(cli, ["run", "-o", "A:sixty:1"])
        assert result.exit_code == 2

    def test_unknown_profile(self, runner):
        result = runner.invoke(cli, ["run", "--profile", "Lucky Guess"])
        assert result.exit_code == 2

    def test_risk_out_of_range(self, runner):
        result = runner.invoke(cli, ["run", "--risk", "150"])
        assert result.exit_code == 2


class TestMonteCarloCommand:
    def test_json_without_run_points(self, runner):
        result = runner.invoke(
            cli, ["monte-carlo", "-m", "50", "-n", "10", "-b", "5", "-s", "1", "--json"]
        )
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["simulation_count"] == 50
        assert len(payload["histogram"]) == 5
        assert "run_points" not in payload

    def test_include_runs(self, runner):
        result = runner.invoke(
            cli, ["monte-carlo", "-m", "20", "-n", "5", "-s", "1", "--json", "--include-runs"]
        )
        assert len(json.loads(result.output)["run_points"]) == 20

    def test_text_output(self, runner):
        result = runner.invoke(cli, ["monte-carlo", "-m", "30", "-n", "5", "-s", "1"])
        assert result.exit_code == 0, result.output
        assert "Probability of profit" in result.output
        assert "Return histogram" in result.output

    def test_zero_simulations(self, runner):
        result = runner.invoke(cli, ["monte-carlo", "-m", "0"])
        assert result.exit_code == 2


class TestCompareCommand:
    def test_default_players(self, runner):
        result = runner.invoke(cli, ["compare", "-n", "20", "-s", "9", "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert [r["player"]["name"] for r in payload["results"]] == [
            "Vic", "Cassie", "William", "Alex",
        ]
        assert len(payload["drawn"]) == 20

    def test_custom_players(self, runner):
        result = runner.invoke(
            cli, ["compare", "--player", "Tim:1", "--player", "Ann:3", "-n", "5"]
        )
        assert result.exit_code == 0, result.output
        assert "Tim" in result.output
        assert "Best return" in result.output

    def test_duplicate_players(self, runner):
        result = runner.invoke(cli, ["compare", "--player", "Tim:1", "--player", "Tim:2"])
        assert result.exit_code == 2
