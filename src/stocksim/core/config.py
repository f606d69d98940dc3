"""Configuration loader for simulation parameters and named scenarios.

Supports YAML and JSON files. Parameter keys may be written in snake_case or
in the camelCase used by the dashboard (``leadTime``, ``reorderPoint``, ...).
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict

try:
    import yaml
except ModuleNotFoundError as exc:  # pragma: no cover - defensive import
    raise ImportError("PyYAML is required to load YAML configs") from exc

from .models import SimulationParameters, ValidationError


class ConfigError(ValueError):
    """Raised when configuration cannot be parsed into domain models."""


YAML_SUFFIXES = frozenset({".yaml", ".yml"})
CONFIG_SUFFIXES = YAML_SUFFIXES | {".json"}

_PARAMETER_KEYS = {f.name for f in fields(SimulationParameters)}
_CAMEL_ALIASES = {
    "demandVariability": "demand_variability",
    "leadTime": "lead_time",
    "reorderPoint": "reorder_point",
    "orderQuantity": "order_quantity",
    "initialStock": "initial_stock",
    "simulationDuration": "simulation_duration",
    "seasonalityEnabled": "seasonality_enabled",
    "externalFactorsEnabled": "external_factors_enabled",
}


@dataclass(frozen=True)
class SimulationConfig:
    parameters: SimulationParameters = field(default_factory=SimulationParameters)
    scenarios: Dict[str, SimulationParameters] = field(default_factory=dict)
    run: Dict[str, Any] = field(default_factory=dict)


def _load_raw(path: Path) -> Dict[str, Any]:
    text = path.read_text()
    suffix = path.suffix.lower()
    try:
        if suffix in YAML_SUFFIXES:
            raw = yaml.safe_load(text) or {}
        elif suffix == ".json":
            raw = json.loads(text)
        else:
            raise ConfigError(f"Unsupported config extension: {path.suffix}")
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not parse {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def normalize_parameter_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map camelCase aliases onto field names and reject unknown keys."""
    if not isinstance(raw, dict):
        raise ConfigError("parameters must be a mapping")
    out: Dict[str, Any] = {}
    for key, value in raw.items():
        name = _CAMEL_ALIASES.get(key, key)
        if name not in _PARAMETER_KEYS:
            raise ConfigError(f"Unknown parameter: {key}")
        out[name] = value
    return out


def parse_parameters(raw: Dict[str, Any], base: SimulationParameters | None = None) -> SimulationParameters:
    values = normalize_parameter_keys(raw or {})
    try:
        if base is None:
            return SimulationParameters(**values)
        return replace(base, **values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid parameters: {exc}") from exc


def _parse_scenarios(raw: Any, base: SimulationParameters) -> Dict[str, SimulationParameters]:
    if raw is None:
        return {}
    if not isinstance(raw, list):
        raise ConfigError("scenarios must be a list")
    scenarios: Dict[str, SimulationParameters] = {}
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("name"):
            raise ConfigError("each scenario needs a name")
        name = str(entry["name"])
        if name in scenarios:
            raise ConfigError(f"Duplicate scenario name: {name}")
        try:
            scenarios[name] = parse_parameters(entry.get("parameters") or {}, base=base)
        except ConfigError as exc:
            raise ConfigError(f"Scenario '{name}': {exc}") from exc
    return scenarios


def load_config(path: str | Path) -> SimulationConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    raw = _load_raw(path)
    parameters = parse_parameters(raw.get("parameters") or {})
    scenarios = _parse_scenarios(raw.get("scenarios"), parameters)
    run = raw.get("run") or {}
    if not isinstance(run, dict):
        raise ConfigError("run section must be a mapping")
    return SimulationConfig(parameters=parameters, scenarios=scenarios, run=run)


def load_parameters(path: str | Path) -> SimulationParameters:
    return load_config(path).parameters


__all__ = [
    "CONFIG_SUFFIXES",
    "ConfigError",
    "SimulationConfig",
    "load_config",
    "load_parameters",
    "normalize_parameter_keys",
    "parse_parameters",
    "YAML_SUFFIXES",
]
