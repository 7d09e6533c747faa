from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from city.catalog import STARTING_MONEY, STARTING_UNLOCKS
from city.dependencies import resolve_dependencies
from city.grid import GRID_SIZE, Grid
from city.types import TileType


@dataclass
class CrisisState:
    protest_cycles: int = 0          # consecutive cycles with avg happiness < 40
    environmental_crisis: bool = False  # avg pollution > 80, fresh every cycle
    economic_collapse: bool = False     # money < 0, fresh every cycle


@dataclass
class GameState:
    grid: Grid = field(default_factory=Grid)
    money: int = STARTING_MONEY
    xp: int = 0
    level: int = 1
    cycles: int = 0
    total_income_earned: int = 0
    current_mission_index: int = 0
    completed_missions: List[str] = field(default_factory=list)
    unlocked_buildings: List[TileType] = field(default_factory=lambda: list(STARTING_UNLOCKS))
    selected_building: Optional[TileType] = None
    demolish_mode: bool = False
    avg_happiness: int = 0
    avg_pollution: int = 0
    last_cycle_income: int = 0
    game_complete: bool = False
    # "<mission id>_<objective index>" -> consecutive evaluations the condition held
    sustain_counters: Dict[str, int] = field(default_factory=dict)
    crisis: CrisisState = field(default_factory=CrisisState)
    # Consecutive cycles below the abandonment threshold, indexed like grid.tiles.
    low_happiness_cycles: List[int] = field(
        default_factory=lambda: [0] * (GRID_SIZE * GRID_SIZE)
    )
    abandoned_count: int = 0

    def is_unlocked(self, type_: TileType) -> bool:
        return type_ in self.unlocked_buildings

    def snapshot(self) -> "GameState":
        """Independent deep copy, safe to hand to a background saver."""
        return copy.deepcopy(self)


def new_game_state() -> GameState:
    state = GameState()
    state.grid = resolve_dependencies(state.grid)
    return state


def score(state: GameState) -> int:
    return state.money + state.xp * 10
