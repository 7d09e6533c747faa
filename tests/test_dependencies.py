"""Tests for dependency checks and the fixed-point resolver."""

from city.dependencies import (
    check_dependencies,
    missing_requirements,
    resolve_dependencies,
    resolve_pass,
)
from city.grid import Grid, Tile
from city.types import TileType


def make_grid(*tiles: Tile) -> Grid:
    grid = Grid()
    for tile in tiles:
        grid.set(tile)
    return grid


def small_town() -> Grid:
    # Water plant and solar plant share the road at (1, 0); the house sits below it.
    return make_grid(
        Tile(0, 0, TileType.WATER_PLANT),
        Tile(1, 0, TileType.ROAD),
        Tile(2, 0, TileType.SOLAR_PLANT),
        Tile(1, 1, TileType.RESIDENTIAL),
    )


def test_road_is_always_valid():
    assert check_dependencies(TileType.ROAD, (4, 4), Grid()).valid


def test_house_without_anything_reports_every_need():
    check = check_dependencies(TileType.RESIDENTIAL, (5, 5), Grid())
    assert not check.valid
    assert check.missing == [
        "Needs road access",
        "Needs water (water plant within 3)",
        "Needs power (solar/wind within 3)",
    ]


def test_factory_and_service_needs():
    grid = make_grid(Tile(5, 5, TileType.ROAD, active=True))
    assert check_dependencies(TileType.FACTORY, (5, 4), grid).missing == ["Needs water supply"]
    assert check_dependencies(TileType.HOSPITAL, (5, 4), grid).missing == ["Needs power"]
    assert check_dependencies(TileType.PARK, (5, 4), grid).valid


def test_single_pass_reads_one_snapshot():
    once = resolve_pass(small_town())
    assert once.get(0, 0).active
    assert once.get(2, 0).active
    # The plants were inactive in the snapshot, so the house waits a pass.
    assert not once.get(1, 1).active


def test_resolver_reaches_fixed_point():
    grid = resolve_dependencies(small_town())
    house = grid.get(1, 1)
    assert house.active
    assert house.water_supplied and house.powered and house.road_connected
    assert grid.get(1, 0).road_connected


def test_resolver_is_idempotent_and_pure():
    original = small_town()
    resolved = resolve_dependencies(original)
    assert resolve_dependencies(resolved).tiles == resolved.tiles
    assert not original.get(1, 1).active


def test_empty_tiles_are_untouched():
    grid = resolve_dependencies(small_town())
    assert grid.get(9, 9) == Tile(9, 9)


def test_plant_without_road_supplies_nothing():
    grid = resolve_dependencies(make_grid(
        Tile(0, 0, TileType.WATER_PLANT),
        Tile(5, 0, TileType.ROAD),
        Tile(5, 1, TileType.SOLAR_PLANT),
        Tile(4, 0, TileType.RESIDENTIAL),
    ))
    assert not grid.get(0, 0).active
    house = grid.get(4, 0)
    assert house.powered
    assert not house.water_supplied
    assert not house.active


def test_missing_requirements_lists_inactive_buildings():
    grid = resolve_dependencies(make_grid(Tile(5, 5, TileType.RESIDENTIAL)))
    assert missing_requirements(grid) == {
        "5_5": [
            "Needs road access",
            "Needs water (water plant within 3)",
            "Needs power (solar/wind within 3)",
        ]
    }
