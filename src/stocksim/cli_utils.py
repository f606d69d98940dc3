"""Shared CLI helpers for reading and writing config files."""
from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict

import pandas as pd
import yaml

from stocksim.core.config import CONFIG_SUFFIXES, YAML_SUFFIXES, ConfigError, _load_raw
from stocksim.core.models import SimulationParameters

FRAME_SUFFIXES = frozenset({".json", ".csv"})


def parameters_to_dict(params: SimulationParameters) -> dict:
    return asdict(params)


def check_config_path(path: Path) -> None:
    """Reject paths ``load_config`` could not read back."""
    if path.suffix.lower() not in CONFIG_SUFFIXES:
        raise ConfigError(f"Unsupported config extension: {path.suffix or '(none)'}; use .yaml, .yml or .json")


def check_frame_path(path: Path) -> None:
    if path.suffix.lower() not in FRAME_SUFFIXES:
        raise ConfigError("output path must end with .json or .csv")


def write_parameters(path: Path, params: SimulationParameters) -> None:
    """Persist parameters while preserving any other keys in the file.

    This keeps sections like scenarios/run intact when editing only the base
    parameter set.
    """

    check_config_path(path)
    base: Dict[str, Any] = {}
    if path.exists():
        try:
            base = _load_raw(path)
        except ConfigError:
            base = {}
    base["parameters"] = parameters_to_dict(params)

    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() in YAML_SUFFIXES:
        path.write_text(yaml.safe_dump(base, sort_keys=False))
    else:
        path.write_text(json.dumps(base, indent=2, sort_keys=False))


def write_frame(path: Path, df: pd.DataFrame) -> None:
    """Write a table as .json (records) or .csv depending on the suffix."""
    check_frame_path(path)
    if path.suffix.lower() == ".json":
        path.write_text(df.to_json(orient="records", indent=2))
    else:
        df.to_csv(path, index=False)


__all__ = [
    "FRAME_SUFFIXES",
    "check_config_path",
    "check_frame_path",
    "parameters_to_dict",
    "write_frame",
    "write_parameters",
]
