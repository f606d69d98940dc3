"""Deterministic debug collectors for structured JSON events."""
from __future__ import annotations

import datetime as _dt
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol


class DebugCollector(Protocol):
    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, scenario: Optional[str] = None) -> None:
        ...


def _json_safe_scalar(val: Any) -> Any:
    """Convert common non-JSON types to safe representations."""
    if isinstance(val, (_dt.datetime, _dt.date, _dt.time)):
        return val.isoformat()
    # numpy scalars expose item(); plain Python numbers pass through untouched
    if hasattr(val, "item") and not isinstance(val, (int, float, bool, str)):
        try:
            return val.item()
        except (TypeError, ValueError):
            return str(val)
    return val


def _ordered(obj: Any) -> Any:
    """Recursively order mappings for deterministic JSON dumps."""
    if isinstance(obj, dict):
        return {k: _ordered(obj[k]) for k in sorted(obj)}
    if isinstance(obj, (list, tuple)):
        return [_ordered(v) for v in obj]
    return _json_safe_scalar(obj)


def _event(stage: str, payload: Dict[str, Any], ts: Any, scenario: Optional[str]) -> Dict[str, Any]:
    return {
        "stage": stage,
        "ts": _json_safe_scalar(ts),
        "scenario": scenario,
        "payload": _ordered(payload),
    }


class NullDebugCollector:
    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, scenario: Optional[str] = None) -> None:  # noqa: D401
        """Discard events (no-op)."""
        return


@dataclass
class ListDebugCollector:
    events: List[Dict[str, Any]] = field(default_factory=list)

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, scenario: Optional[str] = None) -> None:
        self.events.append(_event(stage, payload, ts, scenario))

    def stages(self, stage: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["stage"] == stage]


class JsonlDebugWriter:
    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("a", encoding="utf-8")

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, scenario: Optional[str] = None) -> None:
        json.dump(_event(stage, payload, ts, scenario), self._fh, sort_keys=True)
        self._fh.write("\n")
        self._fh.flush()

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()

    def __del__(self):  # pragma: no cover - best effort cleanup
        try:
            self.close()
        except Exception:
            pass


class JsonDebugWriter:
    """Collect all events in memory then write a single JSON array.

    Used when callers pass a ``--debug`` path ending with ``.json`` so one run
    produces one self-contained audit file.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._events: List[Dict[str, Any]] = []

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, scenario: Optional[str] = None) -> None:
        self._events.append(_event(stage, payload, ts, scenario))

    def finalize(self) -> None:
        """Write collected events as a single JSON document."""
        self.path.write_text(json.dumps(self._events, indent=2))

    def close(self) -> None:
        self.finalize()


def build_debug_collector(path: str | Path) -> DebugCollector:
    """Factory: .json -> JsonDebugWriter, otherwise JsonlDebugWriter."""
    if str(path).lower().endswith(".json"):
        return JsonDebugWriter(path)
    return JsonlDebugWriter(path)


class ScopedDebugCollector:
    """Wrapper that injects a fixed scenario id into every emit."""

    def __init__(self, inner: DebugCollector, *, scenario: Optional[str] = None):
        self.inner = inner
        self.scenario = scenario

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any, scenario: Optional[str] = None) -> None:
        eff_scenario = scenario if scenario is not None else self.scenario
        self.inner.emit(stage, payload, ts=ts, scenario=eff_scenario)


__all__ = [
    "DebugCollector",
    "NullDebugCollector",
    "ListDebugCollector",
    "JsonlDebugWriter",
    "JsonDebugWriter",
    "build_debug_collector",
    "ScopedDebugCollector",
]
