from typer.testing import CliRunner

from agrostock.cli import app

runner = CliRunner()


def test_show_config_lists_settings() -> None:
    result = runner.invoke(app, ["show-config"])
    assert result.exit_code == 0, result.output
    assert "movement_timeout_seconds" in result.output


def test_low_stock_on_empty_database() -> None:
    result = runner.invoke(app, ["low-stock"])
    assert result.exit_code == 0, result.output
    assert "No records" in result.output


def test_recompute_aggregates_reports_counts() -> None:
    result = runner.invoke(app, ["recompute-aggregates"])
    assert result.exit_code == 0, result.output
    assert "Recomputed 0 product(s) and 0 warehouse(s)" in result.output
