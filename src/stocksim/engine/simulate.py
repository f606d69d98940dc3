"""Day-by-day inventory simulation engine."""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from stocksim.core.debug import DebugCollector, NullDebugCollector
from stocksim.core.models import DailyRecord, PendingOrder, SimulationParameters, SimulationSummary

BASE_DEMAND = 10.0
SEASON_PERIOD_DAYS = 30.0
SEASON_AMPLITUDE = 0.3
EXTERNAL_EVENT_PROBABILITY = 0.05
SPIKE_MIN = 1.0
SPIKE_SPAN = 1.5  # spike factor in [1.0, 2.5)

DAILY_COLUMNS = [
    "day",
    "demand",
    "stock_level",
    "order_placed",
    "order_quantity",
    "stockout",
    "stockout_duration",
]


def _round_half_up(value: float) -> int:
    """Round like the dashboard did (.5 always goes up, also for negatives)."""
    return int(math.floor(value + 0.5))


def seasonal_factor(day: int) -> float:
    """30-day sinusoid oscillating between 0.7x and 1.3x."""
    return math.sin(day / SEASON_PERIOD_DAYS * math.pi) * SEASON_AMPLITUDE + 1.0


def daily_demand(day: int, params: SimulationParameters, rng: np.random.Generator) -> Tuple[int, Optional[float]]:
    """Draw one day's demand.

    Returns the demand and the external spike factor applied that day (``None``
    when no event fired). Draw order is fixed: event check, spike size (only
    when the event fires), variability.
    """

    base = BASE_DEMAND
    if params.seasonality_enabled:
        base *= seasonal_factor(day)

    spike = None
    if params.external_factors_enabled and rng.random() < EXTERNAL_EVENT_PROBABILITY:
        spike = rng.random() * SPIKE_SPAN + SPIKE_MIN
        base *= spike

    variability = 1.0 + (rng.random() * 2.0 - 1.0) * params.demand_variability
    return max(0, _round_half_up(base * variability)), spike


def backfill_stockout_durations(rows: List[Dict[str, Any]]) -> List[Tuple[int, int, int]]:
    """Overwrite ``stockout_duration`` with the length of each stockout run.

    ``rows`` must be in day order. A run still open on the last day is closed at
    the end of the series. Returns ``(first_day, last_day, length)`` per run.
    """

    runs: List[Tuple[int, int, int]] = []
    start: Optional[int] = None

    def close(end: int) -> None:
        length = end - start
        for row in rows[start:end]:
            row["stockout_duration"] = length
        runs.append((rows[start]["day"], rows[end - 1]["day"], length))

    for idx, row in enumerate(rows):
        if row["stockout"]:
            if start is None:
                start = idx
            continue
        if start is not None:
            close(idx)
            start = None

    if start is not None:
        close(len(rows))

    return runs


def summarize(
    stock_levels: Sequence[int],
    total_demand: int,
    total_orders: int,
    stockout_days: int,
    order_cycles: Sequence[int],
    duration: int,
) -> SimulationSummary:
    """Aggregate run KPIs; turnover is ``None`` when average stock is zero."""

    if duration <= 0:
        return SimulationSummary(
            average_stock_level=0.0,
            total_demand=total_demand,
            total_orders=total_orders,
            stockout_days=stockout_days,
            service_level=0.0,
            inventory_turnover=None,
            average_order_cycle=0.0,
        )

    average_stock = float(sum(stock_levels)) / duration
    turnover = total_demand / average_stock if average_stock > 0 else None
    cycle = float(sum(order_cycles)) / len(order_cycles) if order_cycles else 0.0
    return SimulationSummary(
        average_stock_level=average_stock,
        total_demand=total_demand,
        total_orders=total_orders,
        stockout_days=stockout_days,
        service_level=1.0 - stockout_days / duration,
        inventory_turnover=turnover,
        average_order_cycle=cycle,
    )


@dataclass(frozen=True)
class SimulationResult:
    parameters: SimulationParameters
    daily: Tuple[DailyRecord, ...]
    summary: SimulationSummary
    seed: Optional[int] = None

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(r) for r in self.daily], columns=DAILY_COLUMNS)

    def stock_levels_over_time(self) -> pd.DataFrame:
        return self.to_frame()[["day", "stock_level"]]

    def demand_over_time(self) -> pd.DataFrame:
        return self.to_frame()[["day", "demand"]]

    def orders_over_time(self) -> pd.DataFrame:
        df = self.to_frame()
        orders = df.loc[df["order_placed"], ["day", "order_quantity"]]
        return orders.rename(columns={"order_quantity": "quantity"}).reset_index(drop=True)

    def stockouts_over_time(self) -> pd.DataFrame:
        df = self.to_frame()
        outs = df.loc[df["stock_level"] == 0, ["day", "stockout_duration"]]
        return outs.rename(columns={"stockout_duration": "duration"}).reset_index(drop=True)

    def to_dict(self, include_daily: bool = True) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "parameters": asdict(self.parameters),
            "seed": self.seed,
            "summary": asdict(self.summary),
        }
        if include_daily:
            payload["daily"] = [asdict(r) for r in self.daily]
        return payload


def _resolve_rng(seed: Optional[int], rng: Optional[np.random.Generator]) -> np.random.Generator:
    if rng is not None:
        if seed is not None:
            raise ValueError("pass either seed or rng, not both")
        return rng
    return np.random.default_rng(seed)


def run_simulation(
    parameters: SimulationParameters,
    *,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    debug: DebugCollector | None = None,
) -> SimulationResult:
    """Simulate ``parameters.simulation_duration`` days of a single stocked item.

    - Demand arrives first-thing: orders due today are received, then demand is
      served from stock; unmet demand is lost.
    - At most one replenishment order is in flight; a new one is placed when
      end-of-day stock is at or below the reorder point.
    - Orders with ``lead_time=0`` are received at the start of the next day.
    """

    debug = debug or NullDebugCollector()
    rng = _resolve_rng(seed, rng)
    params = parameters

    debug.emit("sim.start", {"parameters": asdict(params), "seed": seed}, ts=0)
    if params.demand_variability > 1:
        debug.emit(
            "params.variability_out_of_range",
            {"demand_variability": params.demand_variability},
            ts=0,
        )

    stock = params.initial_stock
    pending: List[PendingOrder] = []
    rows: List[Dict[str, Any]] = []
    stock_levels: List[int] = []
    order_cycles: List[int] = []
    total_demand = 0
    total_orders = 0
    stockout_days = 0
    last_order_day = 0

    for day in range(1, params.simulation_duration + 1):
        demand, spike = daily_demand(day, params, rng)
        total_demand += demand
        if spike is not None:
            debug.emit("demand.spike", {"factor": spike, "demand": demand}, ts=day)

        arrived = [o for o in pending if o.arrival_day <= day]
        if arrived:
            pending = [o for o in pending if o.arrival_day > day]
            for order in arrived:
                stock += order.quantity
                debug.emit(
                    "order.arrived",
                    {"quantity": order.quantity, "order_day": order.order_day},
                    ts=day,
                )

        stock -= min(stock, demand)

        order_placed = False
        if stock <= params.reorder_point and not pending:
            order = PendingOrder(
                quantity=params.order_quantity,
                order_day=day,
                arrival_day=day + params.lead_time,
            )
            pending.append(order)
            order_placed = True
            total_orders += 1
            if last_order_day > 0:
                order_cycles.append(day - last_order_day)
            last_order_day = day
            debug.emit(
                "order.placed",
                {"quantity": order.quantity, "arrival_day": order.arrival_day, "stock_level": stock},
                ts=day,
            )

        stockout = stock == 0
        if stockout:
            stockout_days += 1
        stock_levels.append(stock)

        debug.emit(
            "day.state",
            {"demand": demand, "stock_level": stock, "pending_orders": len(pending), "stockout": stockout},
            ts=day,
        )
        rows.append(
            {
                "day": day,
                "demand": demand,
                "stock_level": stock,
                "order_placed": order_placed,
                "order_quantity": params.order_quantity if order_placed else 0,
                "stockout": stockout,
                "stockout_duration": 1 if stockout else 0,
            }
        )

    for first, last, length in backfill_stockout_durations(rows):
        debug.emit("stockout.run", {"first_day": first, "last_day": last, "length": length}, ts=first)

    summary = summarize(
        stock_levels,
        total_demand=total_demand,
        total_orders=total_orders,
        stockout_days=stockout_days,
        order_cycles=order_cycles,
        duration=params.simulation_duration,
    )
    debug.emit("sim.summary", asdict(summary), ts=params.simulation_duration)

    daily = tuple(DailyRecord(**row) for row in rows)
    return SimulationResult(parameters=params, daily=daily, summary=summary, seed=seed)


__all__ = [
    "SimulationResult",
    "run_simulation",
    "daily_demand",
    "seasonal_factor",
    "backfill_stockout_durations",
    "summarize",
]
