from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from city.catalog import building_def
from city.dependencies import resolve_dependencies
from city.grid import Grid, Tile
from city.missions import current_mission, evaluate_missions, load_missions
from city.simulation import REVOLT_CYCLES, run_cycle
from city.state import CrisisState, GameState, new_game_state
from city.types import Mission, TileType


CYCLE_INTERVAL = 5.0
CRISIS_COST_MULT = 1.2
REFUND_RATE = 0.5


class RejectReason(str, Enum):
    OUT_OF_BOUNDS = "out_of_bounds"
    DEMOLISH_MODE = "demolish_mode"
    OCCUPIED = "occupied"
    NO_SELECTION = "no_selection"
    LOCKED = "locked"
    ECONOMIC_COLLAPSE = "economic_collapse"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    EMPTY_TILE = "empty_tile"


@dataclass(frozen=True)
class ActionResult:
    applied: bool
    reason: Optional[RejectReason] = None

    def __bool__(self) -> bool:
        return self.applied


APPLIED = ActionResult(True)


def _rejected(reason: RejectReason) -> ActionResult:
    return ActionResult(False, reason)


@dataclass
class GameEvent:
    kind: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CycleReport:
    income: int
    newly_abandoned: List[str]
    cycle: int


def building_cost(type_: TileType, crisis: CrisisState) -> int:
    cost = building_def(type_).cost
    if crisis.environmental_crisis:
        return math.ceil(cost * CRISIS_COST_MULT)
    return cost


def _without_just_placed(grid: Grid) -> Grid:
    if not any(t.just_placed for t in grid.tiles):
        return grid
    return Grid(grid.width, grid.height, [
        replace(t, just_placed=False) if t.just_placed else t for t in grid.tiles
    ])


class GameController:
    """Owns the authoritative GameState and is its only writer.

    Every entry point swaps in a new state object; nothing already handed
    out through ``state`` or ``snapshot()`` is modified afterwards.
    """

    def __init__(
        self,
        state: Optional[GameState] = None,
        missions: Optional[Sequence[Mission]] = None,
        cycle_interval: float = CYCLE_INTERVAL,
    ) -> None:
        self._state = state if state is not None else new_game_state()
        self.missions: List[Mission] = list(missions) if missions is not None else load_missions()
        self.cycle_interval = cycle_interval
        self.paused = False
        self._tick_accumulator = 0.0
        self._in_cycle = False
        self._events: List[GameEvent] = []

    # ── Read-only surface ─────────────────────────────────────────

    @property
    def state(self) -> GameState:
        return self._state

    def snapshot(self) -> GameState:
        return self._state.snapshot()

    @property
    def current_mission(self) -> Optional[Mission]:
        return current_mission(self._state, self.missions)

    def drain_events(self) -> List[GameEvent]:
        events, self._events = self._events, []
        return events

    def _emit(self, kind: str, /, **data: Any) -> None:
        self._events.append(GameEvent(kind, data))

    # ── Selection ─────────────────────────────────────────────────

    def select_building(self, type_: Optional[TileType]) -> ActionResult:
        if type_ is not None and not self._state.is_unlocked(type_):
            return _rejected(RejectReason.LOCKED)
        self._state = replace(self._state, selected_building=type_, demolish_mode=False)
        return APPLIED

    def toggle_demolish(self) -> ActionResult:
        self._state = replace(
            self._state,
            demolish_mode=not self._state.demolish_mode,
            selected_building=None,
        )
        return APPLIED

    # ── Topology changes ──────────────────────────────────────────

    def place_building(self, x: int, y: int, type_: Optional[TileType] = None) -> ActionResult:
        """Build the given (or selected) type at (x, y).

        In demolish mode a click is routed to ``demolish`` instead.
        """
        s = self._state
        tile = s.grid.get(x, y)
        if tile is None:
            return _rejected(RejectReason.OUT_OF_BOUNDS)
        if s.demolish_mode:
            if tile.is_empty:
                return _rejected(RejectReason.DEMOLISH_MODE)
            return self.demolish(x, y)

        type_ = type_ if type_ is not None else s.selected_building
        if type_ is None:
            return _rejected(RejectReason.NO_SELECTION)
        if s.crisis.economic_collapse:
            return _rejected(RejectReason.ECONOMIC_COLLAPSE)
        if not tile.is_empty:
            return _rejected(RejectReason.OCCUPIED)
        if not s.is_unlocked(type_):
            return _rejected(RejectReason.LOCKED)
        cost = building_cost(type_, s.crisis)
        if s.money < cost:
            return _rejected(RejectReason.INSUFFICIENT_FUNDS)

        grid = _without_just_placed(s.grid).copy()
        grid.set(Tile(x, y, type=type_, just_placed=True))
        self._state = replace(s, grid=resolve_dependencies(grid), money=s.money - cost)
        self._emit("placed", type=type_, x=x, y=y, cost=cost)
        self._check_missions()
        return APPLIED

    def demolish(self, x: int, y: int) -> ActionResult:
        s = self._state
        tile = s.grid.get(x, y)
        if tile is None:
            return _rejected(RejectReason.OUT_OF_BOUNDS)
        if tile.is_empty:
            return _rejected(RejectReason.EMPTY_TILE)

        refund = math.floor(building_def(tile.type).cost * REFUND_RATE)
        grid = _without_just_placed(s.grid).copy()
        grid.set(tile.cleared())
        streaks = list(s.low_happiness_cycles)
        streaks[grid.index(x, y)] = 0
        self._state = replace(
            s,
            grid=resolve_dependencies(grid),
            money=s.money + refund,
            low_happiness_cycles=streaks,
        )
        self._emit("demolished", type=tile.type, x=x, y=y, refund=refund)
        self._check_missions()
        return APPLIED

    # ── Cycle ─────────────────────────────────────────────────────

    def step(self, dt: float) -> None:
        """Accumulate frame time and fire cycles at the configured period."""
        if self.paused or self._state.game_complete:
            self._tick_accumulator = 0.0
            return
        self._tick_accumulator += dt
        interval = self.cycle_interval if self.cycle_interval > 0 else CYCLE_INTERVAL
        while self._tick_accumulator >= interval:
            self._tick_accumulator -= interval
            self.advance_cycle()

    def advance_cycle(self) -> Optional[CycleReport]:
        """Run one cycle. Returns None when the game is over or a cycle is in flight."""
        if self._state.game_complete or self._in_cycle:
            return None
        self._in_cycle = True
        try:
            return self._do_cycle()
        finally:
            self._in_cycle = False

    def _do_cycle(self) -> CycleReport:
        s = self._state
        result = run_cycle(_without_just_placed(s.grid), s.crisis, s.low_happiness_cycles)

        money = s.money + result.income
        crisis = replace(result.crisis, economic_collapse=money < 0)
        self._state = replace(
            s,
            grid=result.grid,
            money=money,
            cycles=s.cycles + 1,
            total_income_earned=s.total_income_earned + result.income,
            avg_happiness=result.avg_happiness,
            avg_pollution=result.avg_pollution,
            last_cycle_income=result.income,
            crisis=crisis,
            low_happiness_cycles=result.low_happiness_cycles,
            abandoned_count=result.abandoned_count,
        )

        self._emit(
            "cycle_complete",
            cycle=self._state.cycles,
            income=result.income,
            newly_abandoned=list(result.newly_abandoned),
        )
        self._emit_crisis_changes(s.crisis, crisis)
        self._check_missions()
        return CycleReport(result.income, list(result.newly_abandoned), self._state.cycles)

    def _emit_crisis_changes(self, before: CrisisState, after: CrisisState) -> None:
        if after.protest_cycles == 1:
            self._emit("crisis", kind="protest")
        elif after.protest_cycles == REVOLT_CYCLES:
            self._emit("crisis", kind="revolt")
        if after.environmental_crisis and not before.environmental_crisis:
            self._emit("crisis", kind="environmental")
        if after.economic_collapse and not before.economic_collapse:
            self._emit("crisis", kind="economic")

    def _check_missions(self) -> None:
        before_level = self._state.level
        self._state, outcome = evaluate_missions(self._state, self.missions)
        if outcome.completed is None:
            return
        self._emit("mission_complete", mission_id=outcome.completed.id, reward=outcome.completed.reward)
        if outcome.leveled_up:
            self._emit("level_up", level=self._state.level, previous=before_level)
        if outcome.game_complete:
            self._emit("game_complete")


class CycleTimer:
    """Drives ``advance_cycle`` from an asyncio task at a fixed period.

    Ticks never overlap: each one runs to completion on the event loop
    before the next sleep starts. ``cancel`` stops it between ticks.
    """

    def __init__(self, controller: GameController, interval: Optional[float] = None) -> None:
        self.controller = controller
        self.interval = interval if interval is not None else controller.cycle_interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task  # type: ignore[return-value]

    async def _run(self) -> None:
        while not self.controller.state.game_complete:
            await asyncio.sleep(self.interval)
            if not self.controller.paused:
                self.controller.advance_cycle()

    async def cancel(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
