"""Engine package running inventory simulations and scenario bookkeeping."""

from .scenarios import ScenarioStore
from .simulate import SimulationResult, run_simulation

__all__ = ["run_simulation", "SimulationResult", "ScenarioStore"]
