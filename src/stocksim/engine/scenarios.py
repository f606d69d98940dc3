"""In-memory scenario store: named parameter sets, run history and comparison."""
from __future__ import annotations

import datetime as dt
import re
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, List, Optional

import pandas as pd

from stocksim.core.debug import DebugCollector, NullDebugCollector, ScopedDebugCollector
from stocksim.core.config import ConfigError, normalize_parameter_keys
from stocksim.core.models import SimulationParameters, SimulationSummary, ValidationError
from stocksim.engine.simulate import SimulationResult, run_simulation

DEFAULT_SCENARIO_ID = "default"
HISTORY_LIMIT = 10

COMPARISON_COLUMNS = [
    "scenario",
    "name",
    "average_stock_level",
    "total_demand",
    "total_orders",
    "stockout_days",
    "service_level",
    "inventory_turnover",
    "average_order_cycle",
]


def _now() -> dt.datetime:
    """Wall clock used for history entries; tests monkeypatch this."""

    return dt.datetime.now(dt.timezone.utc)


def scenario_id_for(name: str) -> str:
    return re.sub(r"\s+", "-", name.lower())


@dataclass
class SavedScenario:
    name: str
    parameters: SimulationParameters
    results: Optional[SimulationResult] = None


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    timestamp: str
    parameters: SimulationParameters
    summary: Dict[str, Any]


class ScenarioStore:
    """Holds the working parameter set, its latest result and saved scenarios.

    Mirrors the dashboard's scenario panel: runs are cached on the current
    scenario, the history keeps the last ``HISTORY_LIMIT`` runs, and the
    ``default`` scenario can never be deleted.
    """

    def __init__(self, parameters: SimulationParameters | None = None, debug: DebugCollector | None = None):
        self.debug = debug or NullDebugCollector()
        self.parameters = parameters or SimulationParameters()
        self.results: Optional[SimulationResult] = None
        self.history: List[HistoryEntry] = []
        self.is_running = False
        self.current_scenario = DEFAULT_SCENARIO_ID
        self.saved_scenarios: Dict[str, SavedScenario] = {
            DEFAULT_SCENARIO_ID: SavedScenario(name="Default Scenario", parameters=self.parameters),
        }
        self.comparison_mode = False
        self.comparison_scenarios: List[str] = []
        self.error: Optional[str] = None
        self._run_count = 0

    # -- getters -----------------------------------------------------------

    @property
    def available_scenarios(self) -> List[Dict[str, str]]:
        return [{"id": key, "name": sc.name} for key, sc in self.saved_scenarios.items()]

    @property
    def simulation_summary(self) -> Optional[SimulationSummary]:
        return self.results.summary if self.results else None

    def stock_levels_over_time(self) -> pd.DataFrame:
        return self.results.stock_levels_over_time() if self.results else pd.DataFrame(columns=["day", "stock_level"])

    def demand_over_time(self) -> pd.DataFrame:
        return self.results.demand_over_time() if self.results else pd.DataFrame(columns=["day", "demand"])

    def orders_over_time(self) -> pd.DataFrame:
        return self.results.orders_over_time() if self.results else pd.DataFrame(columns=["day", "quantity"])

    def stockouts_over_time(self) -> pd.DataFrame:
        return self.results.stockouts_over_time() if self.results else pd.DataFrame(columns=["day", "duration"])

    # -- actions -----------------------------------------------------------

    def update_parameters(self, **changes: Any) -> SimulationParameters:
        """Merge ``changes`` into the working parameters (validated).

        Keys may be field names or the dashboard's camelCase aliases.
        """
        try:
            values = normalize_parameter_keys(changes)
        except ConfigError as exc:
            raise ValidationError(str(exc)) from exc
        self.parameters = replace(self.parameters, **values)
        return self.parameters

    def run_simulation(self, seed: Optional[int] = None) -> Optional[SimulationResult]:
        """Run the working parameters and cache the result.

        Validation failures are kept on ``error`` rather than raised, matching
        the dashboard which shows them next to the run button.
        """

        self.is_running = True
        self.error = None
        scoped = ScopedDebugCollector(self.debug, scenario=self.current_scenario)
        try:
            result = run_simulation(self.parameters, seed=seed, debug=scoped)
        except ValueError as exc:
            self.error = str(exc) or "Failed to run simulation"
            scoped.emit("scenario.run_error", {"error": self.error}, ts=_now())
            return None
        finally:
            self.is_running = False

        self.results = result
        self._run_count += 1
        now = _now()
        summary = result.summary
        self.history.append(
            HistoryEntry(
                id=f"sim-{int(now.timestamp() * 1000)}-{self._run_count}",
                timestamp=now.isoformat(),
                parameters=self.parameters,
                summary={
                    "average_stock_level": summary.average_stock_level,
                    "total_demand": summary.total_demand,
                    "stockout_days": summary.stockout_days,
                    "service_level": summary.service_level,
                },
            )
        )
        if len(self.history) > HISTORY_LIMIT:
            self.history = self.history[-HISTORY_LIMIT:]

        if self.current_scenario in self.saved_scenarios:
            self.saved_scenarios[self.current_scenario].results = result
        scoped.emit("scenario.run", {"history_size": len(self.history)}, ts=now)
        return result

    def save_scenario(self, name: str) -> str:
        scenario_id = scenario_id_for(name)
        if scenario_id == DEFAULT_SCENARIO_ID:
            raise ValidationError(f"'{name}' is reserved for the default scenario")
        self.saved_scenarios[scenario_id] = SavedScenario(
            name=name,
            parameters=self.parameters,
            results=self.results,
        )
        self.current_scenario = scenario_id
        self.debug.emit("scenario.saved", {"name": name}, ts=_now(), scenario=scenario_id)
        return scenario_id

    def load_scenario(self, scenario_id: str) -> bool:
        saved = self.saved_scenarios.get(scenario_id)
        if saved is None:
            return False
        self.parameters = saved.parameters
        self.results = saved.results
        self.current_scenario = scenario_id
        return True

    def delete_scenario(self, scenario_id: str) -> bool:
        if scenario_id == DEFAULT_SCENARIO_ID or scenario_id not in self.saved_scenarios:
            return False
        del self.saved_scenarios[scenario_id]
        if self.current_scenario == scenario_id:
            self.load_scenario(DEFAULT_SCENARIO_ID)
        self.comparison_scenarios = [s for s in self.comparison_scenarios if s != scenario_id]
        self.debug.emit("scenario.deleted", {}, ts=_now(), scenario=scenario_id)
        return True

    def toggle_comparison_mode(self) -> bool:
        self.comparison_mode = not self.comparison_mode
        if self.comparison_mode and self.current_scenario not in self.comparison_scenarios:
            self.comparison_scenarios.append(self.current_scenario)
        return self.comparison_mode

    def add_to_comparison(self, scenario_id: str) -> None:
        if scenario_id in self.saved_scenarios and scenario_id not in self.comparison_scenarios:
            self.comparison_scenarios.append(scenario_id)

    def remove_from_comparison(self, scenario_id: str) -> None:
        self.comparison_scenarios = [s for s in self.comparison_scenarios if s != scenario_id]

    def clear_comparison(self) -> None:
        self.comparison_scenarios = []
        self.comparison_mode = False

    def reset_to_defaults(self) -> None:
        self.load_scenario(DEFAULT_SCENARIO_ID)

    def comparison_frame(self) -> pd.DataFrame:
        """KPIs of every compared scenario; scenarios never run show NaN."""
        rows = []
        for scenario_id in self.comparison_scenarios:
            saved = self.saved_scenarios.get(scenario_id)
            if saved is None:
                continue
            row: Dict[str, Any] = {"scenario": scenario_id, "name": saved.name}
            if saved.results is not None:
                row.update(asdict(saved.results.summary))
            rows.append(row)
        return pd.DataFrame(rows, columns=COMPARISON_COLUMNS)


__all__ = [
    "DEFAULT_SCENARIO_ID",
    "HISTORY_LIMIT",
    "HistoryEntry",
    "SavedScenario",
    "ScenarioStore",
    "scenario_id_for",
]
