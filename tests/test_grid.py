"""Tests for the grid model and spatial queries."""

import math

import pytest

from city.grid import (
    GRID_SIZE,
    Grid,
    Tile,
    distance,
    has_adjacent_road,
    is_within_radius_of,
    tiles_within_radius,
)
from city.types import TileType


def make_grid(*tiles: Tile) -> Grid:
    grid = Grid()
    for tile in tiles:
        grid.set(tile)
    return grid


def test_grid_is_ten_by_ten_and_row_major():
    grid = Grid()
    assert GRID_SIZE == 10
    assert len(grid.tiles) == 100
    assert grid.index(3, 4) == 43
    tile = grid.tiles[43]
    assert (tile.x, tile.y) == (3, 4)
    assert tile.id == "3_4"
    assert all(t.is_empty for t in grid)


def test_out_of_bounds_access():
    grid = Grid()
    assert grid.get(10, 0) is None
    assert grid.get(-1, 5) is None
    with pytest.raises(IndexError):
        grid.index(0, 10)


def test_wrong_tile_count_is_rejected():
    with pytest.raises(ValueError):
        Grid(10, 10, [Tile(0, 0)])


def test_copy_is_independent():
    grid = make_grid(Tile(1, 1, TileType.ROAD, active=True))
    clone = grid.copy()
    clone.set(Tile(1, 1))
    assert grid.get(1, 1).type == TileType.ROAD
    assert clone.get(1, 1).is_empty


def test_distance_is_euclidean():
    assert distance((0, 0), (3, 4)) == 5.0
    assert distance(Tile(1, 1), (2, 2)) == pytest.approx(math.sqrt(2))


def test_adjacent_road_is_orthogonal_only():
    grid = make_grid(Tile(5, 5, TileType.ROAD, active=True))
    assert has_adjacent_road((5, 4), grid)
    assert has_adjacent_road((4, 5), grid)
    assert not has_adjacent_road((6, 6), grid)
    assert not has_adjacent_road((5, 5), grid)


def test_radius_check_counts_active_sources_only():
    grid = make_grid(Tile(0, 0, TileType.WATER_PLANT, active=True))
    assert is_within_radius_of((3, 0), grid, TileType.WATER_PLANT, 3)
    assert not is_within_radius_of((3, 1), grid, TileType.WATER_PLANT, 3)

    grid.set(Tile(0, 0, TileType.WATER_PLANT, active=False))
    assert not is_within_radius_of((1, 0), grid, TileType.WATER_PLANT, 3)


def test_radius_check_accepts_several_types():
    grid = make_grid(Tile(9, 9, TileType.WIND_TURBINE, active=True))
    assert is_within_radius_of((8, 8), grid, (TileType.SOLAR_PLANT, TileType.WIND_TURBINE), 3)


def test_tiles_within_radius_row_major_without_centre():
    assert tiles_within_radius((0, 0), 1) == [(1, 0), (0, 1)]
    around = tiles_within_radius((5, 5), 1.5)
    assert len(around) == 8
    assert (5, 5) not in around
    assert around == sorted(around, key=lambda p: (p[1], p[0]))
