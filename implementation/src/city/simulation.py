from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

from city.catalog import HAPPINESS_EFFECTS, POLLUTION_EFFECTS, find_building_def
from city.grid import Grid, Point, Tile, distance, tiles_within_radius
from city.state import CrisisState
from city.types import RESIDENTIAL_TYPES, Effect, TileType


BASE_HAPPINESS = 80.0
NO_WATER_PENALTY = 20.0
NO_POWER_PENALTY = 20.0
NO_ROAD_PENALTY = 15.0
ENVIRONMENTAL_HAPPINESS_PENALTY = 20.0

ABANDON_HAPPINESS = 25.0
ABANDON_STREAK = 4

PROTEST_MULT = 0.7       # protest streak >= 1
REVOLT_MULT = 0.5        # protest streak >= 3, replaces PROTEST_MULT
REVOLT_CYCLES = 3
ENVIRONMENTAL_INCOME_MULT = 0.8
PROTEST_HAPPINESS = 40     # rounded avg happiness below this extends the protest streak
ENVIRONMENTAL_POLLUTION = 80  # rounded avg pollution above this is an environmental crisis

RESIDENTIAL_BASE_INCOME = {
    TileType.RESIDENTIAL: 8.0,
    TileType.GREEN_TOWER: 20.0,
}
FLAT_INCOME = {
    TileType.FACTORY: 30.0,
    TileType.WIND_TURBINE: 5.0,
    TileType.TRANSIT: 10.0,
    TileType.ECO_DOME: 30.0,
}


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def is_protesting(avg_happiness: float) -> bool:
    return round_half_up(avg_happiness) < PROTEST_HAPPINESS


def is_polluted(avg_pollution: float) -> bool:
    return round_half_up(avg_pollution) > ENVIRONMENTAL_POLLUTION


def falloff(effect: Effect, d: float) -> float:
    """Linear radial decay; zero beyond the effect radius."""
    if d > effect.radius:
        return 0.0
    return effect.magnitude * (1.0 - d / (effect.radius + 1))


def _accumulate(tile: Tile, tiles: Sequence[Tile], effects: Dict[TileType, Effect]) -> float:
    total = 0.0
    for other in tiles:
        if not other.active or (other.x == tile.x and other.y == tile.y):
            continue
        effect = effects.get(other.type)
        if effect is None:
            continue
        total += falloff(effect, distance(tile, other))
    return total


@dataclass
class CycleResult:
    grid: Grid
    income: int
    avg_happiness: int
    avg_pollution: int
    low_happiness_cycles: List[int]
    crisis: CrisisState
    newly_abandoned: List[str] = field(default_factory=list)
    abandoned_count: int = 0


def run_cycle(grid: Grid, crisis: CrisisState, low_happiness_cycles: Sequence[int]) -> CycleResult:
    """Advance the city by one cycle. Pure: the input grid is not touched.

    Pipeline (each pass reads the fully materialised output of the last):
    1. Pollution: signed falloff from active sources, clamped 0..100.
       The rounded city average decides this cycle's environmental crisis.
    2. Happiness: residential tiles only. Base 80, amenity/hazard falloff,
       utility penalties, then the environmental crisis penalty.
       The rounded residential average extends or resets the protest streak.
    3. Abandonment: 4 straight cycles under 25 abandons; recovery clears it.
    4. Income: per tile, protest multiplier on homes, crisis multiplier
       on the total.

    ``crisis.economic_collapse`` depends on money and passes through untouched.
    """
    g = _pollution_pass(grid)
    avg_pollution = sum(t.pollution for t in g.tiles) / len(g.tiles)
    crisis = replace(crisis, environmental_crisis=is_polluted(avg_pollution))

    g = _happiness_pass(g, crisis)
    homes = [t for t in g.tiles if t.type in RESIDENTIAL_TYPES]
    avg_happiness = sum(t.happiness for t in homes) / len(homes) if homes else 0.0
    protesting = is_protesting(avg_happiness)
    crisis = replace(crisis, protest_cycles=crisis.protest_cycles + 1 if protesting else 0)

    g, streaks, newly_abandoned = _abandonment_pass(g, low_happiness_cycles)
    income = _income_pass(g, crisis)

    return CycleResult(
        grid=g,
        income=round_half_up(income),
        avg_happiness=round_half_up(avg_happiness),
        avg_pollution=round_half_up(avg_pollution),
        low_happiness_cycles=streaks,
        crisis=crisis,
        newly_abandoned=newly_abandoned,
        abandoned_count=sum(1 for t in g.tiles if t.type in RESIDENTIAL_TYPES and t.abandoned),
    )


def _pollution_pass(grid: Grid) -> Grid:
    src = grid.tiles
    return Grid(grid.width, grid.height, [
        replace(t, pollution=clamp(_accumulate(t, src, POLLUTION_EFFECTS), 0.0, 100.0))
        for t in src
    ])


def tile_happiness(tile: Tile, tiles: Sequence[Tile]) -> float:
    h = BASE_HAPPINESS + _accumulate(tile, tiles, HAPPINESS_EFFECTS)
    if not tile.water_supplied:
        h -= NO_WATER_PENALTY
    if not tile.powered:
        h -= NO_POWER_PENALTY
    if not tile.road_connected:
        h -= NO_ROAD_PENALTY
    return clamp(h, 0.0, 100.0)


def _happiness_pass(grid: Grid, crisis: CrisisState) -> Grid:
    src = grid.tiles
    out: List[Tile] = []
    for t in src:
        if t.type not in RESIDENTIAL_TYPES:
            out.append(t)
            continue
        h = tile_happiness(t, src)
        if crisis.environmental_crisis:
            h = clamp(h - ENVIRONMENTAL_HAPPINESS_PENALTY, 0.0, 100.0)
        out.append(replace(t, happiness=h))
    return Grid(grid.width, grid.height, out)


def _abandonment_pass(grid: Grid, streaks_in: Sequence[int]) -> tuple[Grid, List[int], List[str]]:
    streaks = list(streaks_in)
    if len(streaks) != len(grid.tiles):
        streaks = (streaks + [0] * len(grid.tiles))[:len(grid.tiles)]
    newly_abandoned: List[str] = []
    out: List[Tile] = []
    for i, t in enumerate(grid.tiles):
        if t.type not in RESIDENTIAL_TYPES:
            # A lot that stopped being a home forgets its streak.
            streaks[i] = 0
            out.append(t)
            continue
        if t.happiness < ABANDON_HAPPINESS:
            streaks[i] += 1
            if streaks[i] >= ABANDON_STREAK:
                if not t.abandoned:
                    newly_abandoned.append(t.id)
                t = replace(t, abandoned=True)
        else:
            streaks[i] = 0
            t = replace(t, abandoned=False)
        out.append(t)
    return Grid(grid.width, grid.height, out), streaks, newly_abandoned


def tile_income(tile: Tile) -> float:
    """Pre-crisis income of one tile."""
    if not tile.active:
        return 0.0
    base = RESIDENTIAL_BASE_INCOME.get(tile.type)
    if base is not None:
        if tile.abandoned or tile.happiness < ABANDON_HAPPINESS:
            return 0.0
        return base * (tile.happiness / 100.0)
    return FLAT_INCOME.get(tile.type, 0.0)


def protest_multiplier(protest_cycles: int) -> float:
    if protest_cycles >= REVOLT_CYCLES:
        return REVOLT_MULT
    if protest_cycles >= 1:
        return PROTEST_MULT
    return 1.0


def _income_pass(grid: Grid, crisis: CrisisState) -> float:
    mult = protest_multiplier(crisis.protest_cycles)
    total = 0.0
    for t in grid.tiles:
        income = tile_income(t)
        if t.type in RESIDENTIAL_TYPES:
            income *= mult
        total += income
    if crisis.environmental_crisis:
        total *= ENVIRONMENTAL_INCOME_MULT
    return total


# ── Preview / tooltip queries ───────────────────────────────────────


@dataclass
class BreakdownItem:
    label: str
    value: int


@dataclass
class NeighbourhoodImpact:
    affected_homes: int
    estimated_change: int


def pollution_preview(pos: Point, type_: TileType) -> List[Point]:
    """Cells a polluting building would reach if placed at ``pos``."""
    d = find_building_def(type_)
    if d is None or d.pollution <= 0:
        return []
    return tiles_within_radius(pos, d.radius or 2)


def happiness_breakdown(tile: Tile, grid: Grid) -> List[BreakdownItem]:
    items = [BreakdownItem("Base", int(BASE_HAPPINESS))]
    for other in grid.tiles:
        if not other.active or (other.x == tile.x and other.y == tile.y):
            continue
        effect = HAPPINESS_EFFECTS.get(other.type)
        if effect is None:
            continue
        d = distance(tile, other)
        if d > effect.radius:
            continue
        name = find_building_def(other.type).name  # type: ignore[union-attr]
        items.append(BreakdownItem(f"{name} nearby", round_half_up(falloff(effect, d))))
    if not tile.water_supplied:
        items.append(BreakdownItem("No water", -int(NO_WATER_PENALTY)))
    if not tile.powered:
        items.append(BreakdownItem("No power", -int(NO_POWER_PENALTY)))
    if not tile.road_connected:
        items.append(BreakdownItem("No road", -int(NO_ROAD_PENALTY)))
    return items


def _impact_on_homes(tile: Tile, grid: Grid, effect: Effect) -> NeighbourhoodImpact:
    affected = 0
    change = 0.0
    for other in grid.tiles:
        if other.type not in RESIDENTIAL_TYPES or not other.active:
            continue
        d = distance(tile, other)
        if d > effect.radius:
            continue
        affected += 1
        change += RESIDENTIAL_BASE_INCOME[other.type] * (abs(falloff(effect, d)) / 100.0)
    return NeighbourhoodImpact(affected, round_half_up(change))


def factory_impact(tile: Tile, grid: Grid) -> NeighbourhoodImpact:
    """Homes a factory drags down, and roughly how much income they lose."""
    return _impact_on_homes(tile, grid, HAPPINESS_EFFECTS[TileType.FACTORY])


def park_benefit(tile: Tile, grid: Grid) -> NeighbourhoodImpact:
    return _impact_on_homes(tile, grid, HAPPINESS_EFFECTS[TileType.PARK])


def active_homes(grid: Grid) -> int:
    return sum(
        1 for t in grid.tiles
        if t.type in RESIDENTIAL_TYPES and t.active and not t.abandoned
    )


def hovered_tile_summary(tile: Optional[Tile]) -> str:
    if tile is None or tile.is_empty:
        return ""
    d = find_building_def(tile.type)
    name = d.name if d is not None else tile.type.value
    status = "active" if tile.active else "inactive"
    if tile.abandoned:
        status = "abandoned"
    parts = [f"{name} ({status})", f"pollution {round_half_up(tile.pollution)}"]
    if tile.type in RESIDENTIAL_TYPES:
        parts.append(f"happiness {round_half_up(tile.happiness)}")
    return " | ".join(parts)
