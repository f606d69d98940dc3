"""Domain models for the inventory simulation core.

Provides data structures with validation for simulation inputs, per-day
records, in-flight orders and run summaries.
"""
from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import Optional


class ValidationError(ValueError):
    """Raised when model inputs violate constraints."""


def _require_int(name: str, value) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{name} must be a whole number")
        return int(value)
    if not isinstance(value, numbers.Integral):
        raise ValidationError(f"{name} must be an integer")
    return int(value)


@dataclass(frozen=True)
class SimulationParameters:
    demand_variability: float = 0.5
    lead_time: int = 7
    reorder_point: int = 20
    order_quantity: int = 50
    initial_stock: int = 100
    simulation_duration: int = 90
    seasonality_enabled: bool = True
    external_factors_enabled: bool = True

    def __post_init__(self):
        for name in ("lead_time", "reorder_point", "order_quantity", "initial_stock", "simulation_duration"):
            object.__setattr__(self, name, _require_int(name, getattr(self, name)))
        try:
            variability = float(self.demand_variability)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"demand_variability must be numeric: {self.demand_variability!r}") from exc
        if not math.isfinite(variability):
            raise ValidationError("demand_variability must be finite")
        object.__setattr__(self, "demand_variability", variability)

        if self.simulation_duration < 1:
            raise ValidationError("simulation_duration must be at least 1 day")
        if self.order_quantity <= 0:
            raise ValidationError("order_quantity must be positive")
        if self.lead_time < 0:
            raise ValidationError("lead_time must be non-negative")
        if self.reorder_point < 0:
            raise ValidationError("reorder_point must be non-negative")
        if self.initial_stock < 0:
            raise ValidationError("initial_stock must be non-negative")
        # Values above 1 are accepted and only widen the demand swing.
        if variability < 0:
            raise ValidationError("demand_variability must be non-negative")
        object.__setattr__(self, "seasonality_enabled", bool(self.seasonality_enabled))
        object.__setattr__(self, "external_factors_enabled", bool(self.external_factors_enabled))


@dataclass(frozen=True)
class PendingOrder:
    quantity: int
    order_day: int
    arrival_day: int


@dataclass(frozen=True)
class DailyRecord:
    day: int
    demand: int
    stock_level: int
    order_placed: bool
    order_quantity: int
    stockout: bool
    stockout_duration: int


@dataclass(frozen=True)
class SimulationSummary:
    average_stock_level: float
    total_demand: int
    total_orders: int
    stockout_days: int
    service_level: float
    inventory_turnover: Optional[float]
    average_order_cycle: float


__all__ = [
    "ValidationError",
    "SimulationParameters",
    "PendingOrder",
    "DailyRecord",
    "SimulationSummary",
]
