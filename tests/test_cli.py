from pathlib import Path
import json

import pytest
import pandas as pd
import yaml
from typer.testing import CliRunner

from stocksim import cli
from stocksim.cli_utils import write_parameters
from stocksim.core.config import ConfigError, load_config
from stocksim.core.models import SimulationParameters


runner = CliRunner()


def _write_fixture(tmp_path: Path) -> Path:
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        "parameters:\n"
        "  demand_variability: 0\n"
        "  lead_time: 7\n"
        "  reorder_point: 20\n"
        "  order_quantity: 50\n"
        "  initial_stock: 100\n"
        "  simulation_duration: 90\n"
        "  seasonality_enabled: false\n"
        "  external_factors_enabled: false\n"
        "scenarios:\n"
        "- name: Short Run\n"
        "  parameters:\n"
        "    simulation_duration: 30\n"
        "- name: Big Orders\n"
        "  parameters:\n"
        "    order_quantity: 100\n"
    )
    return cfg


def test_help_exits_zero():
    res = runner.invoke(cli.app, ["--help"])
    assert res.exit_code == 0
    assert "run" in res.stdout
    assert "compare" in res.stdout
    assert "config" in res.stdout


def test_version_flag():
    res = runner.invoke(cli.app, ["--version"])
    assert res.exit_code == 0
    assert cli.__version__ in res.stdout


def test_run_command_smoke(tmp_path):
    cfg = _write_fixture(tmp_path)
    out_json = tmp_path / "out.json"
    daily_csv = tmp_path / "daily.csv"
    debug_path = tmp_path / "debug.jsonl"

    res = runner.invoke(
        cli.app,
        [
            "run",
            "--config",
            str(cfg),
            "--output",
            str(out_json),
            "--daily",
            str(daily_csv),
            "--debug",
            str(debug_path),
        ],
    )
    assert res.exit_code == 0, res.stdout

    payload = json.loads(out_json.read_text())
    assert payload["summary"]["total_demand"] == 900
    assert payload["summary"]["total_orders"] == 10
    assert payload["summary"]["service_level"] == 0.5
    assert payload["parameters"]["lead_time"] == 7
    assert "daily" not in payload

    daily = pd.read_csv(daily_csv)
    assert len(daily) == 90
    assert list(daily.columns)[:3] == ["day", "demand", "stock_level"]

    events = [json.loads(line) for line in debug_path.read_text().splitlines()]
    stages = {e["stage"] for e in events}
    assert {"sim.start", "day.state", "order.placed", "sim.summary"} <= stages
    assert "Wrote results" in res.stdout


def test_run_named_scenario_csv(tmp_path):
    cfg = _write_fixture(tmp_path)
    out_csv = tmp_path / "out.csv"
    res = runner.invoke(
        cli.app,
        ["run", "--config", str(cfg), "--scenario", "Short Run", "--format", "csv", "--output", str(out_csv)],
    )
    assert res.exit_code == 0, res.stdout
    summary = pd.read_csv(out_csv)
    assert summary.loc[0, "total_demand"] == 300
    assert summary.loc[0, "stockout_days"] == 13


def test_run_seed_is_reproducible(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("parameters:\n  simulation_duration: 40\nrun:\n  seed: 5\n")
    outputs = []
    for name in ("a.json", "b.json"):
        out = tmp_path / name
        res = runner.invoke(cli.app, ["run", "--config", str(cfg), "--output", str(out), "--daily", str(tmp_path / f"{name}.daily.json")])
        assert res.exit_code == 0, res.stdout
        outputs.append(json.loads(out.read_text()))
    assert outputs[0]["seed"] == 5
    assert outputs[0]["summary"] == outputs[1]["summary"]


def test_run_unknown_scenario_errors(tmp_path):
    cfg = _write_fixture(tmp_path)
    res = runner.invoke(cli.app, ["run", "--config", str(cfg), "--scenario", "Nope", "--output", str(tmp_path / "o.json")])
    assert res.exit_code == 1


def test_run_invalid_config_errors(tmp_path):
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("parameters:\n  simulation_duration: 0\n")
    res = runner.invoke(cli.app, ["run", "--config", str(cfg), "--output", str(tmp_path / "o.json")])
    assert res.exit_code == 1


def test_run_rejects_unknown_format(tmp_path):
    cfg = _write_fixture(tmp_path)
    res = runner.invoke(cli.app, ["run", "--config", str(cfg), "--format", "xml"])
    assert res.exit_code == 1


def test_run_rejects_bad_daily_suffix(tmp_path):
    cfg = _write_fixture(tmp_path)
    res = runner.invoke(
        cli.app,
        ["run", "--config", str(cfg), "--output", str(tmp_path / "o.json"), "--daily", str(tmp_path / "daily.txt")],
    )
    assert res.exit_code == 1
    assert not (tmp_path / "o.json").exists()
    assert not (tmp_path / "daily.txt").exists()


def test_compare_command(tmp_path):
    cfg = _write_fixture(tmp_path)
    out = tmp_path / "compare.csv"
    debug_path = tmp_path / "debug.json"
    res = runner.invoke(
        cli.app,
        ["compare", "--config", str(cfg), "--seed", "1", "--output", str(out), "--debug", str(debug_path)],
    )
    assert res.exit_code == 0, res.stdout

    table = pd.read_csv(out)
    assert list(table["scenario"]) == ["default", "short-run", "big-orders"]
    assert list(table["total_demand"]) == [900, 300, 900]
    assert "short-run" in res.stdout

    events = json.loads(debug_path.read_text())
    assert {e["scenario"] for e in events if e["stage"] == "sim.start"} == {"default", "short-run", "big-orders"}


def test_config_command_writes_and_preserves(tmp_path):
    cfg = _write_fixture(tmp_path)
    user_input = "\n".join(["0.25", "3", "15", "60", "80", "30", "n", "y"]) + "\n"
    res = runner.invoke(cli.app, ["config", str(cfg)], input=user_input)
    assert res.exit_code == 0, res.stdout

    raw = yaml.safe_load(cfg.read_text())
    assert [s["name"] for s in raw["scenarios"]] == ["Short Run", "Big Orders"]
    params = load_config(cfg).parameters
    assert params.demand_variability == 0.25
    assert params.lead_time == 3
    assert params.reorder_point == 15
    assert params.order_quantity == 60
    assert params.initial_stock == 80
    assert params.simulation_duration == 30
    assert params.seasonality_enabled is False
    assert params.external_factors_enabled is True


def test_config_command_rejects_invalid(tmp_path):
    path = tmp_path / "new.yaml"
    user_input = "\n".join(["0.5", "7", "20", "0", "100", "90", "y", "y"]) + "\n"
    res = runner.invoke(cli.app, ["config", str(path)], input=user_input)
    assert res.exit_code == 1
    assert not path.exists()


def test_compare_rejects_bad_output_suffix_before_running(tmp_path):
    cfg = _write_fixture(tmp_path)
    debug_path = tmp_path / "debug.jsonl"
    res = runner.invoke(
        cli.app,
        ["compare", "--config", str(cfg), "--output", str(tmp_path / "table.txt"), "--debug", str(debug_path)],
    )
    assert res.exit_code == 1
    assert not (tmp_path / "table.txt").exists()
    assert not debug_path.exists()


def test_compare_rejects_scenario_named_default(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("scenarios:\n- name: Default\n  parameters:\n    lead_time: 2\n")
    res = runner.invoke(cli.app, ["compare", "--config", str(cfg), "--seed", "1"])
    assert res.exit_code == 1
    assert "reserved" in res.output


def test_config_command_rejects_missing_extension(tmp_path):
    path = tmp_path / "params"
    res = runner.invoke(cli.app, ["config", str(path)], input="\n" * 8)
    assert res.exit_code == 1
    assert not path.exists()


def test_write_parameters_requires_readable_extension(tmp_path):
    with pytest.raises(ConfigError, match="Unsupported"):
        write_parameters(tmp_path / "params", SimulationParameters())
    assert not (tmp_path / "params").exists()


@pytest.mark.parametrize("name", ["params.yml", "params.yaml", "params.json"])
def test_write_parameters_round_trips(tmp_path, name):
    params = SimulationParameters(lead_time=3, demand_variability=0.2, seasonality_enabled=False)
    path = tmp_path / name
    write_parameters(path, params)
    assert load_config(path).parameters == params
