"""Mission system: loading, objective evaluation and progression.

Missions run strictly in order; only the one at ``current_mission_index``
is checked. Every placement, demolition and cycle re-evaluates all of its
objectives against the live state, and when they all hold at once the
reward is granted and the pointer advances. Passing the last mission sets
``game_complete`` and the evaluator never runs again.

``sustain_cycles`` objectives own a counter keyed "<mission id>_<index>"
in ``GameState.sustain_counters``: +1 each evaluation the condition holds,
back to 0 the first time it does not.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from city.catalog import level_for_experience
from city.grid import Grid, distance, is_within_radius_of
from city.state import GameState
from city.types import RESIDENTIAL_TYPES, Mission, Objective, Reward, TileType


DEFAULT_COVERAGE_RADIUS = 3.0
RECYCLING_RADIUS = 2.0

_FLAT_INCOME_TARGETS = {
    "wind_income": (TileType.WIND_TURBINE, 5),
    "transit_income": (TileType.TRANSIT, 10),
}


def default_missions_path() -> Path:
    return Path(__file__).resolve().parent / "missions.json"


def _objective_from_dict(entry: dict) -> Objective:
    radius = entry.get("radius")
    return Objective(
        kind=str(entry["kind"]),
        target=str(entry["target"]),
        value=float(entry.get("value", 0)),
        cycles=int(entry.get("cycles", 0)),
        source=entry.get("source"),
        radius=float(radius) if radius is not None else None,
    )


def _mission_from_dict(entry: dict) -> Mission:
    reward = entry.get("reward", {})
    return Mission(
        id=str(entry["id"]),
        level_required=int(entry.get("level_required", 1)),
        title=str(entry.get("title", entry["id"])),
        description=str(entry.get("description", "")),
        objectives=tuple(_objective_from_dict(o) for o in entry.get("objectives", [])),
        reward=Reward(
            xp=int(reward.get("xp", 0)),
            money=int(reward.get("money", 0)),
            unlocks=tuple(TileType(u) for u in reward.get("unlocks", [])),
        ),
    )


def load_missions(path: Optional[Path] = None) -> List[Mission]:
    if path is None:
        path = default_missions_path()
    raw = json.loads(path.read_text(encoding="utf-8"))
    return [_mission_from_dict(entry) for entry in raw.get("missions", [])]


def sustain_key(mission: Mission, objective_index: int) -> str:
    return f"{mission.id}_{objective_index}"


# ── Metrics ─────────────────────────────────────────────────────────


def _homes(grid: Grid) -> list:
    return [t for t in grid.tiles if t.type in RESIDENTIAL_TYPES]


def _buildings(grid: Grid, include_roads: bool) -> list:
    return [
        t for t in grid.tiles
        if not t.is_empty and (include_roads or t.type != TileType.ROAD)
    ]


def _all_active(tiles: Sequence) -> bool:
    return len(tiles) > 0 and all(t.active for t in tiles)


def metric_value(target: str, state: GameState) -> float:
    """Scalar city metric named by a maintain objective."""
    if target == "happiness":
        return state.avg_happiness
    if target == "pollution":
        return state.avg_pollution
    if target == "cycle_income":
        return state.last_cycle_income
    return 0.0


def coverage_count(grid: Grid, source: TileType, target: TileType, radius: float) -> int:
    sources = [t for t in grid.tiles if t.type == source and t.active]
    return sum(
        1 for t in grid.tiles
        if t.type == target and any(distance(s, t) <= radius for s in sources)
    )


def reach_value_current(target: str, grid: Grid) -> float:
    """Current value of a structural ``reach_value`` target.

    All-or-nothing targets report 1 when they hold and 0 otherwise.
    """
    if target in ("all_residential_active", "all_residential_powered"):
        return 1.0 if _all_active(_homes(grid)) else 0.0
    if target == "all_powered":
        return 1.0 if _all_active(_buildings(grid, include_roads=False)) else 0.0
    if target == "all_active":
        return 1.0 if _all_active(_buildings(grid, include_roads=True)) else 0.0
    if target == "happy_residential_count":
        return float(sum(1 for t in _homes(grid) if t.happiness > 75))
    if target == "total_residential":
        return float(sum(1 for t in _homes(grid) if t.active))
    if target == "all_factories_recycled":
        factories = [t for t in grid.tiles if t.type == TileType.FACTORY]
        ok = len(factories) > 0 and all(
            is_within_radius_of(f, grid, TileType.RECYCLING, RECYCLING_RADIUS) for f in factories
        )
        return 1.0 if ok else 0.0
    return 0.0


def sustain_condition(obj: Objective, state: GameState) -> bool:
    target = obj.target
    grid = state.grid
    if target == "happiness":
        return state.avg_happiness >= obj.value
    if target == "pollution_max":
        return state.avg_pollution <= obj.value
    if target in ("income", "income_min"):
        return state.last_cycle_income >= obj.value
    if target in ("all_powered", "all_active"):
        return _all_active(_buildings(grid, include_roads=False))
    if target in _FLAT_INCOME_TARGETS:
        type_, per_tile = _FLAT_INCOME_TARGETS[target]
        return grid.count(type_, active_only=True) * per_tile >= obj.value
    if target == "all_happy":
        homes = _homes(grid)
        return len(homes) > 0 and all(t.happiness >= obj.value for t in homes)
    return False


def _tile_type(name: Optional[str]) -> Optional[TileType]:
    try:
        return TileType(name)
    except ValueError:
        return None


def _coverage(obj: Objective, grid: Grid) -> int:
    source = _tile_type(obj.source)
    target = _tile_type(obj.target)
    if source is None or target is None:
        return 0
    radius = obj.radius if obj.radius is not None else DEFAULT_COVERAGE_RADIUS
    return coverage_count(grid, source, target, radius)


def _count(obj: Objective, grid: Grid, active_only: bool) -> int:
    type_ = _tile_type(obj.target)
    if type_ is None:
        return 0
    return grid.count(type_, active_only=active_only)


def objective_met(obj: Objective, key: str, state: GameState, counters: Dict[str, int]) -> bool:
    """Check one objective; updates ``counters`` in place for sustain objectives."""
    kind = obj.kind
    if kind == "build_count":
        return _count(obj, state.grid, active_only=False) >= obj.value
    if kind == "build_active":
        return _count(obj, state.grid, active_only=True) >= obj.value
    if kind == "maintain_min":
        return metric_value(obj.target, state) >= obj.value
    if kind == "maintain_max":
        return metric_value(obj.target, state) <= obj.value
    if kind == "earn_total":
        return state.total_income_earned >= obj.value
    if kind == "reach_value":
        return reach_value_current(obj.target, state.grid) >= obj.value
    if kind == "radius_coverage":
        return _coverage(obj, state.grid) >= obj.value
    if kind == "sustain_cycles":
        counters[key] = counters.get(key, 0) + 1 if sustain_condition(obj, state) else 0
        return counters[key] >= obj.cycles
    return False


# ── Evaluation ──────────────────────────────────────────────────────


@dataclass
class MissionOutcome:
    completed: Optional[Mission] = None
    leveled_up: bool = False
    game_complete: bool = False


def current_mission(state: GameState, missions: Sequence[Mission]) -> Optional[Mission]:
    if state.game_complete or state.current_mission_index >= len(missions):
        return None
    return missions[state.current_mission_index]


def evaluate_missions(state: GameState, missions: Sequence[Mission]) -> tuple[GameState, MissionOutcome]:
    """Return the state after checking the current mission, plus what happened."""
    mission = current_mission(state, missions)
    if mission is None:
        return state, MissionOutcome()

    counters = dict(state.sustain_counters)
    # No short-circuit: every sustain counter must see every evaluation.
    results = [
        objective_met(obj, sustain_key(mission, i), state, counters)
        for i, obj in enumerate(mission.objectives)
    ]
    state = replace(state, sustain_counters=counters)
    if not all(results):
        return state, MissionOutcome()

    reward = mission.reward
    xp = state.xp + reward.xp
    level = level_for_experience(xp)
    unlocked = list(state.unlocked_buildings)
    for u in reward.unlocks:
        if u not in unlocked:
            unlocked.append(u)
    index = state.current_mission_index + 1
    game_complete = index >= len(missions)

    new_state = replace(
        state,
        xp=xp,
        level=level,
        money=state.money + reward.money,
        unlocked_buildings=unlocked,
        completed_missions=state.completed_missions + [mission.id],
        current_mission_index=index,
        game_complete=game_complete,
    )
    return new_state, MissionOutcome(
        completed=mission,
        leveled_up=level > state.level,
        game_complete=game_complete,
    )


# ── Progress (read-only, for the mission panel) ─────────────────────


@dataclass
class ObjectiveProgress:
    current: float
    target: float
    label: str
    met: bool

    @property
    def percent(self) -> float:
        if self.target <= 0:
            return 100.0 if self.met else 0.0
        return max(0.0, min(100.0, self.current / self.target * 100.0))


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.1f}"


def objective_progress(obj: Objective, index: int, mission: Mission, state: GameState) -> ObjectiveProgress:
    kind = obj.kind
    grid = state.grid
    target = float(obj.value)

    if kind in ("build_count", "build_active"):
        c = float(_count(obj, grid, active_only=kind == "build_active"))
        prefix = "Build" if kind == "build_count" else "Active"
        return ObjectiveProgress(c, target, f"{prefix} {obj.target}: {_fmt(c)}/{_fmt(target)}", c >= target)

    if kind == "radius_coverage":
        c = float(_coverage(obj, grid))
        label = f"{obj.source} cover {obj.target}: {_fmt(c)}/{_fmt(target)}"
        return ObjectiveProgress(c, target, label, c >= target)

    if kind == "maintain_min":
        v = metric_value(obj.target, state)
        return ObjectiveProgress(min(v, target), target, f"{obj.target} >= {_fmt(target)}: {_fmt(v)}", v >= target)

    if kind == "maintain_max":
        v = metric_value(obj.target, state)
        met = v <= target
        return ObjectiveProgress(target if met else 0.0, target, f"{obj.target} <= {_fmt(target)}: {_fmt(v)}", met)

    if kind == "earn_total":
        v = float(state.total_income_earned)
        return ObjectiveProgress(min(v, target), target, f"Income: ${_fmt(v)}/${_fmt(target)}", v >= target)

    if kind == "reach_value":
        c = reach_value_current(obj.target, grid)
        return ObjectiveProgress(c, target, f"{obj.target}: {_fmt(c)}/{_fmt(target)}", c >= target)

    if kind == "sustain_cycles":
        sustained = float(state.sustain_counters.get(sustain_key(mission, index), 0))
        need = float(obj.cycles)
        label = f"{obj.target}: {_fmt(sustained)}/{_fmt(need)} cycles"
        return ObjectiveProgress(sustained, need, label, sustained >= need)

    return ObjectiveProgress(0.0, target, obj.target, False)


def mission_progress(state: GameState, missions: Sequence[Mission]) -> List[ObjectiveProgress]:
    mission = current_mission(state, missions)
    if mission is None:
        return []
    return [objective_progress(obj, i, mission, state) for i, obj in enumerate(mission.objectives)]


def mission_statuses(state: GameState, missions: Sequence[Mission]) -> List[tuple[Mission, str]]:
    """Every mission paired with ``completed``, ``current`` or ``locked``."""
    out: List[tuple[Mission, str]] = []
    for i, m in enumerate(missions):
        if state.game_complete or i < state.current_mission_index:
            out.append((m, "completed"))
        elif i == state.current_mission_index:
            out.append((m, "current"))
        else:
            out.append((m, "locked"))
    return out
