"""Dependency resolution: which buildings have their road/water/power.

Runs after every placement or demolition, never on the cycle timer.
Each pass reads one frozen snapshot of the grid and writes a fresh copy,
so the order tiles are visited in cannot change the outcome. Passes repeat
until nothing changes: a water plant that just gained road access turns
active in pass one and supplies its neighbours in pass two.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace

from city.grid import Grid, Point, Tile, has_adjacent_road, is_within_radius_of
from city.types import POWER_SOURCES, RESIDENTIAL_TYPES, WATER_SOURCES, TileType


UTILITY_RADIUS = 3

_POWER_ONLY = frozenset({TileType.HOSPITAL, TileType.SCHOOL, TileType.ECO_DOME})


@dataclass
class DependencyCheck:
    valid: bool
    missing: list[str] = field(default_factory=list)


def check_dependencies(type_: TileType, pos: Point | Tile, grid: Grid) -> DependencyCheck:
    missing: list[str] = []
    if type_ != TileType.ROAD and not has_adjacent_road(pos, grid):
        missing.append("Needs road access")
    if type_ in RESIDENTIAL_TYPES:
        if not is_within_radius_of(pos, grid, WATER_SOURCES, UTILITY_RADIUS):
            missing.append(f"Needs water (water plant within {UTILITY_RADIUS})")
        if not is_within_radius_of(pos, grid, POWER_SOURCES, UTILITY_RADIUS):
            missing.append(f"Needs power (solar/wind within {UTILITY_RADIUS})")
    elif type_ == TileType.FACTORY:
        if not is_within_radius_of(pos, grid, WATER_SOURCES, UTILITY_RADIUS):
            missing.append("Needs water supply")
    elif type_ in _POWER_ONLY:
        if not is_within_radius_of(pos, grid, POWER_SOURCES, UTILITY_RADIUS):
            missing.append("Needs power")
    return DependencyCheck(valid=not missing, missing=missing)


def _resolve_tile(tile: Tile, snapshot: Grid) -> Tile:
    if tile.is_empty:
        return tile
    return replace(
        tile,
        active=check_dependencies(tile.type, tile, snapshot).valid,
        road_connected=tile.type == TileType.ROAD or has_adjacent_road(tile, snapshot),
        water_supplied=is_within_radius_of(tile, snapshot, WATER_SOURCES, UTILITY_RADIUS),
        powered=is_within_radius_of(tile, snapshot, POWER_SOURCES, UTILITY_RADIUS),
    )


def resolve_pass(grid: Grid) -> Grid:
    """One simultaneous update: every tile sees the same input grid."""
    return Grid(grid.width, grid.height, [_resolve_tile(t, grid) for t in grid.tiles])


def resolve_dependencies(grid: Grid) -> Grid:
    """Return a new grid with active/connection flags at their fixed point."""
    current = grid
    # Activity only propagates from utilities to consumers, so this settles
    # in a handful of passes; the bound guards against oscillation.
    for _ in range(len(grid.tiles) + 1):
        nxt = resolve_pass(current)
        if nxt.tiles == current.tiles:
            return nxt
        current = nxt
    return current


def missing_requirements(grid: Grid) -> dict[str, list[str]]:
    """Tile id -> missing requirement hints, for every inactive building."""
    hints: dict[str, list[str]] = {}
    for tile in grid.tiles:
        if tile.is_empty:
            continue
        check = check_dependencies(tile.type, tile, grid)
        if not check.valid:
            hints[tile.id] = check.missing
    return hints
