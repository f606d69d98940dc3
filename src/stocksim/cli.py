"""Command line entrypoint for stocksim.

Implements three commands:

* ``run``: simulate one parameter set (base or a named scenario).
* ``compare``: run the base and every named scenario side by side.
* ``config``: prompt-driven editor for the base parameters.
"""
from __future__ import annotations

import json
from dataclasses import asdict, fields
from pathlib import Path
from typing import Optional

import pandas as pd
import typer

from stocksim.cli_utils import check_config_path, check_frame_path, write_frame, write_parameters
from stocksim.core.config import ConfigError, SimulationConfig, load_config
from stocksim.core.debug import NullDebugCollector, build_debug_collector
from stocksim.core.models import SimulationParameters, ValidationError
from stocksim.engine.scenarios import DEFAULT_SCENARIO_ID, ScenarioStore
from stocksim.engine.simulate import run_simulation

__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="Inventory reorder-point simulator CLI")


def _exit_with_error(msg: str) -> None:
    typer.echo(f"Error: {msg}", err=True)
    raise typer.Exit(code=1)


def _load(config: Optional[Path]) -> SimulationConfig:
    if config is None:
        return SimulationConfig()
    try:
        return load_config(config)
    except ConfigError as exc:
        _exit_with_error(str(exc))


def _resolve_seed(seed: Optional[int], cfg: SimulationConfig) -> Optional[int]:
    if seed is not None:
        return seed
    raw = cfg.run.get("seed")
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        _exit_with_error("run.seed must be an integer")


def _debug_for(path: Optional[Path]):
    return build_debug_collector(path) if path else NullDebugCollector()


def _close_debug(collector) -> None:
    close = getattr(collector, "close", None)
    if close is not None:
        close()


@app.command()
def run(
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, help="Parameters YAML/JSON file"),
    scenario: Optional[str] = typer.Option(None, help="Named scenario from the config to run instead of the base parameters"),
    seed: Optional[int] = typer.Option(None, help="Random seed; defaults to run.seed in config, else unseeded"),
    format: str = typer.Option("json", "--format", "-f", help="Output format: json or csv"),
    output: Optional[Path] = typer.Option(None, help="Output file path; defaults to results.<format>"),
    daily: Optional[Path] = typer.Option(None, help="Optional per-day output (.json or .csv)"),
    debug: Optional[Path] = typer.Option(None, help="Write debug events (.jsonl, or .json for a single document)"),
):
    """Run a single simulation and write its summary."""

    cfg = _load(config)
    params = cfg.parameters
    if scenario is not None:
        if scenario not in cfg.scenarios:
            _exit_with_error(f"Unknown scenario '{scenario}'; available: {sorted(cfg.scenarios)}")
        params = cfg.scenarios[scenario]

    fmt = format.lower()
    if fmt not in {"json", "csv"}:
        _exit_with_error("format must be json or csv")
    if daily:
        try:
            check_frame_path(daily)
        except ConfigError as exc:
            _exit_with_error(f"daily {exc}")

    effective_seed = _resolve_seed(seed, cfg)
    debug_collector = _debug_for(debug)
    try:
        result = run_simulation(params, seed=effective_seed, debug=debug_collector)
    finally:
        _close_debug(debug_collector)

    output_path = output or Path(f"results.{fmt}")
    summary_df = pd.DataFrame([asdict(result.summary)])
    if fmt == "json":
        output_path.write_text(json.dumps(result.to_dict(include_daily=False), indent=2))
    else:
        summary_df.to_csv(output_path, index=False)

    if daily:
        write_frame(daily, result.to_frame())
        typer.echo(f"Wrote daily data to {daily} ({len(result.daily)} rows)")

    typer.echo(summary_df.to_string(index=False))
    typer.echo(f"Wrote results to {output_path}")
    if debug:
        typer.echo(f"Debug events -> {debug}")


@app.command()
def compare(
    config: Path = typer.Option(..., exists=True, readable=True, help="Config with parameters and scenarios"),
    seed: Optional[int] = typer.Option(None, help="Random seed used for every scenario"),
    output: Optional[Path] = typer.Option(None, help="Optional comparison table output (.json or .csv)"),
    debug: Optional[Path] = typer.Option(None, help="Write debug events (.jsonl or .json)"),
):
    """Run the base parameters and each named scenario, then compare KPIs."""

    if output:
        try:
            check_frame_path(output)
        except ConfigError as exc:
            _exit_with_error(str(exc))

    cfg = _load(config)
    effective_seed = _resolve_seed(seed, cfg)
    debug_collector = _debug_for(debug)
    store = ScenarioStore(cfg.parameters, debug=debug_collector)
    try:
        store.run_simulation(seed=effective_seed)
        store.add_to_comparison(DEFAULT_SCENARIO_ID)
        for name, params in cfg.scenarios.items():
            store.update_parameters(**asdict(params))
            try:
                scenario_id = store.save_scenario(name)
            except ValidationError as exc:
                _exit_with_error(f"scenario '{name}': {exc}")
            store.run_simulation(seed=effective_seed)
            if store.error:
                _exit_with_error(f"scenario '{name}': {store.error}")
            store.add_to_comparison(scenario_id)
    finally:
        _close_debug(debug_collector)

    table = store.comparison_frame()
    if output:
        write_frame(output, table)
        typer.echo(f"Wrote comparison to {output}")
    typer.echo(table.to_string(index=False))


@app.command()
def config(
    path: Path = typer.Argument(..., help="Path to save parameters YAML/JSON"),
):
    """Interactive editor for the base simulation parameters."""

    try:
        check_config_path(path)
    except ConfigError as exc:
        _exit_with_error(str(exc))

    current = SimulationParameters()
    if path.exists():
        try:
            current = load_config(path).parameters
            typer.echo(f"Loaded existing parameters from {path}")
        except ConfigError as exc:
            typer.echo(f"Could not load existing config: {exc}", err=True)

    values = {}
    for f in fields(SimulationParameters):
        default = getattr(current, f.name)
        label = f.name.replace("_", " ").capitalize()
        if isinstance(default, bool):
            values[f.name] = typer.confirm(label, default=default)
        else:
            values[f.name] = typer.prompt(label, default=default, type=type(default))

    try:
        params = SimulationParameters(**values)
    except ValidationError as exc:
        _exit_with_error(str(exc))

    try:
        write_parameters(path, params)
    except ConfigError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Saved parameters to {path}")


def _print_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def version_callback(
    version: bool = typer.Option(False, "--version", callback=_print_version, is_eager=True, help="Show version and exit"),
):
    pass


def main() -> None:  # pragma: no cover - thin wrapper for console_script
    app()


__all__ = ["app", "main"]


if __name__ == "__main__":  # pragma: no cover
    main()
