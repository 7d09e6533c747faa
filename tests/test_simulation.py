"""Tests for the cycle engine and its read-only preview queries."""

import pytest

from city import simulation
from city.grid import Grid, Tile
from city.simulation import (
    falloff,
    factory_impact,
    happiness_breakdown,
    hovered_tile_summary,
    is_polluted,
    is_protesting,
    park_benefit,
    pollution_preview,
    protest_multiplier,
    round_half_up,
    run_cycle,
)
from city.state import CrisisState
from city.types import Effect, TileType

NO_STREAKS = [0] * 100


def make_grid(*tiles: Tile) -> Grid:
    grid = Grid()
    for tile in tiles:
        grid.set(tile)
    return grid


def home(x: int, y: int, type_: TileType = TileType.RESIDENTIAL, connected: bool = True) -> Tile:
    return Tile(
        x, y, type_,
        active=connected,
        water_supplied=connected,
        powered=connected,
        road_connected=connected,
    )


def building(x: int, y: int, type_: TileType) -> Tile:
    return Tile(x, y, type_, active=True, road_connected=True)


def full_of_factories() -> Grid:
    return Grid(10, 10, [building(x, y, TileType.FACTORY) for y in range(10) for x in range(10)])


def test_falloff_is_linear_to_the_radius():
    effect = Effect(40, 2)
    assert falloff(effect, 0) == 40
    assert falloff(effect, 1) == pytest.approx(40 * 2 / 3)
    assert falloff(effect, 2) == pytest.approx(40 / 3)
    assert falloff(effect, 2.01) == 0.0


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.4999) == 2


def test_pollution_spreads_from_active_factory_only():
    grid = make_grid(building(5, 5, TileType.FACTORY))
    out = run_cycle(grid, CrisisState(), NO_STREAKS).grid
    assert out.get(5, 5).pollution == 0.0
    assert out.get(5, 6).pollution == pytest.approx(40 * 2 / 3)
    assert out.get(7, 5).pollution == pytest.approx(40 / 3)
    assert out.get(5, 8).pollution == 0.0

    idle = make_grid(Tile(5, 5, TileType.FACTORY, active=False))
    assert all(t.pollution == 0.0 for t in run_cycle(idle, CrisisState(), NO_STREAKS).grid)


def test_average_pollution_is_over_all_tiles():
    result = run_cycle(make_grid(building(5, 5, TileType.FACTORY)), CrisisState(), NO_STREAKS)
    # About 244.6 points spread over 100 tiles.
    assert result.avg_pollution == 2


def test_pollution_is_clamped_at_zero():
    grid = make_grid(building(0, 0, TileType.PARK))
    out = run_cycle(grid, CrisisState(), NO_STREAKS).grid
    assert out.get(1, 0).pollution == 0.0


def test_connected_house_starts_at_base_happiness():
    result = run_cycle(make_grid(home(0, 0)), CrisisState(), NO_STREAKS)
    assert result.grid.get(0, 0).happiness == 80.0
    assert result.avg_happiness == 80
    assert result.income == 6  # 8 * 0.8 = 6.4


def test_park_raises_nearby_happiness():
    grid = make_grid(home(0, 0), building(1, 0, TileType.PARK))
    h = run_cycle(grid, CrisisState(), NO_STREAKS).grid.get(0, 0).happiness
    assert h == pytest.approx(80 + 20 * 2 / 3)


def test_missing_utilities_cost_fifty_five():
    grid = make_grid(home(0, 0, connected=False))
    result = run_cycle(grid, CrisisState(), NO_STREAKS)
    assert result.grid.get(0, 0).happiness == 25.0
    assert result.income == 0  # inactive homes earn nothing


def test_happiness_is_clamped():
    low = make_grid(
        home(1, 1, connected=False),
        building(0, 1, TileType.FACTORY),
        building(2, 1, TileType.FACTORY),
    )
    assert run_cycle(low, CrisisState(), NO_STREAKS).grid.get(1, 1).happiness == 0.0

    high = make_grid(
        home(1, 1),
        building(0, 1, TileType.PARK),
        building(2, 1, TileType.ECO_DOME),
    )
    assert run_cycle(high, CrisisState(), NO_STREAKS).grid.get(1, 1).happiness == 100.0


def test_environmental_penalty_applies_after_base_clamp():
    grid = make_grid(home(0, 0))
    out = simulation._happiness_pass(grid, CrisisState(environmental_crisis=True))
    assert out.get(0, 0).happiness == 60.0


def test_income_per_tile_type():
    grid = make_grid(
        home(0, 0),
        home(9, 9, TileType.GREEN_TOWER),
        building(0, 9, TileType.FACTORY),
        building(9, 0, TileType.WIND_TURBINE),
    )
    result = run_cycle(grid, CrisisState(), NO_STREAKS)
    tower = result.grid.get(9, 9).happiness
    house = result.grid.get(0, 0).happiness
    expected = 8 * house / 100 + 20 * tower / 100 + 30 + 5
    assert result.income == round_half_up(expected)


def test_four_low_cycles_abandon_a_house():
    grid = make_grid(home(0, 0, connected=False), building(1, 0, TileType.FACTORY))
    streaks = NO_STREAKS
    crisis = CrisisState()
    for _ in range(3):
        result = run_cycle(grid, crisis, streaks)
        grid, streaks, crisis = result.grid, result.low_happiness_cycles, result.crisis
        assert not grid.get(0, 0).abandoned
    assert streaks[0] == 3

    result = run_cycle(grid, crisis, streaks)
    assert result.grid.get(0, 0).abandoned
    assert result.newly_abandoned == ["0_0"]
    assert result.abandoned_count == 1

    again = run_cycle(result.grid, result.crisis, result.low_happiness_cycles)
    assert again.newly_abandoned == []
    assert again.grid.get(0, 0).abandoned


def test_recovery_clears_abandonment():
    grid = make_grid(Tile(0, 0, TileType.RESIDENTIAL, active=True, water_supplied=True,
                          powered=True, road_connected=True, abandoned=True))
    streaks = [4] + [0] * 99
    result = run_cycle(grid, CrisisState(), streaks)
    assert not result.grid.get(0, 0).abandoned
    assert result.low_happiness_cycles[0] == 0
    assert result.abandoned_count == 0


def test_protest_streak_halves_home_income_on_third_cycle():
    # Four unconnected but active towers sit at happiness 25: earning, yet protesting.
    towers = [Tile(x, y, TileType.GREEN_TOWER, active=True) for x, y in ((0, 0), (9, 0), (0, 9), (9, 9))]
    grid = make_grid(*towers)
    crisis = CrisisState()
    streaks = NO_STREAKS
    incomes = []
    for _ in range(3):
        result = run_cycle(grid, crisis, streaks)
        grid, crisis, streaks = result.grid, result.crisis, result.low_happiness_cycles
        incomes.append(result.income)
    assert crisis.protest_cycles == 3
    assert incomes == [14, 14, 10]  # baseline 20


def test_protest_resets_on_recovery():
    result = run_cycle(make_grid(home(0, 0)), CrisisState(protest_cycles=2), NO_STREAKS)
    assert result.crisis.protest_cycles == 0


def test_empty_city_counts_as_unhappy():
    result = run_cycle(Grid(), CrisisState(), NO_STREAKS)
    assert result.avg_happiness == 0
    assert result.crisis.protest_cycles == 1


def test_heavy_pollution_triggers_crisis_in_same_cycle():
    result = run_cycle(full_of_factories(), CrisisState(), NO_STREAKS)
    assert result.avg_pollution == 100
    assert result.crisis.environmental_crisis
    assert result.income == 2400  # 100 factories * 30 * 0.8


def test_crisis_clears_when_pollution_drops():
    result = run_cycle(Grid(), CrisisState(environmental_crisis=True), NO_STREAKS)
    assert not result.crisis.environmental_crisis


def test_economic_flag_passes_through():
    result = run_cycle(Grid(), CrisisState(economic_collapse=True), NO_STREAKS)
    assert result.crisis.economic_collapse


def test_protest_multiplier_steps():
    assert protest_multiplier(0) == 1.0
    assert protest_multiplier(1) == 0.7
    assert protest_multiplier(2) == 0.7
    assert protest_multiplier(3) == 0.5
    assert protest_multiplier(7) == 0.5


def test_run_cycle_does_not_touch_input():
    grid = make_grid(home(0, 0), building(1, 0, TileType.FACTORY))
    before = [Tile(**vars(t)) for t in grid.tiles]
    run_cycle(grid, CrisisState(), NO_STREAKS)
    assert grid.tiles == before


def test_pollution_preview():
    assert pollution_preview((0, 0), TileType.PARK) == []
    assert pollution_preview((0, 0), TileType.FACTORY) == [(1, 0), (2, 0), (0, 1), (1, 1), (0, 2)]


def test_happiness_breakdown_labels():
    grid = make_grid(home(0, 0, connected=False), building(1, 0, TileType.PARK))
    items = [(i.label, i.value) for i in happiness_breakdown(grid.get(0, 0), grid)]
    assert items == [
        ("Base", 80),
        ("Park nearby", 13),
        ("No water", -20),
        ("No power", -20),
        ("No road", -15),
    ]


def test_factory_impact_and_park_benefit():
    grid = make_grid(home(0, 0), home(9, 9), building(1, 0, TileType.FACTORY), building(0, 1, TileType.PARK))
    impact = factory_impact(grid.get(1, 0), grid)
    assert impact.affected_homes == 1
    assert impact.estimated_change == round_half_up(8 * (25 * 2 / 3) / 100)
    benefit = park_benefit(grid.get(0, 1), grid)
    assert benefit.affected_homes == 1
    assert benefit.estimated_change == 1


def test_hovered_tile_summary():
    assert hovered_tile_summary(None) == ""
    assert hovered_tile_summary(Tile(0, 0)) == ""
    tile = Tile(0, 0, TileType.RESIDENTIAL, active=True, pollution=12.4, happiness=79.6)
    assert hovered_tile_summary(tile) == "House (active) | pollution 12 | happiness 80"


def test_crisis_thresholds_use_rounded_averages():
    assert not is_protesting(39.7)
    assert not is_protesting(40.0)
    assert is_protesting(39.4)
    assert not is_polluted(80.4)
    assert not is_polluted(80.0)
    assert is_polluted(80.5)


def test_average_reported_as_forty_does_not_protest():
    # 25 + hospital at 1 (9) + transit at sqrt(2) (about 5.74) = about 39.74.
    grid = make_grid(
        Tile(1, 1, TileType.RESIDENTIAL),
        building(2, 1, TileType.HOSPITAL),
        building(2, 2, TileType.TRANSIT),
    )
    result = run_cycle(grid, CrisisState(), NO_STREAKS)
    assert result.grid.get(1, 1).happiness == pytest.approx(39.737, abs=1e-3)
    assert result.avg_happiness == 40
    assert result.crisis.protest_cycles == 0


POLLUTION_SOURCES = [
    (TileType.FACTORY, 40, 2),
    (TileType.PARK, -15, 2),
    (TileType.RECYCLING, -20, 2),
    (TileType.TRANSIT, -10, 4),
    (TileType.ECO_DOME, -30, 4),
    (TileType.WIND_TURBINE, -5, 3),
    (TileType.HOSPITAL, 0, 3),
    (TileType.SCHOOL, 0, 3),
]

HAPPINESS_SOURCES = [
    (TileType.FACTORY, -25, 2),
    (TileType.PARK, 20, 2),
    (TileType.RECYCLING, 10, 2),
    (TileType.TRANSIT, 8, 4),
    (TileType.ECO_DOME, 25, 5),
    (TileType.HOSPITAL, 12, 3),
    (TileType.SCHOOL, 12, 3),
    (TileType.WIND_TURBINE, 0, 3),
]

# Two factories one step above and below the measured cell keep its
# pollution well inside 0..100, so mitigation shows up unclamped.
FACTORY_BASELINE = 2 * 40 * 2 / 3


def expected_falloff(magnitude: float, radius: int, d: int) -> float:
    return magnitude * (1 - d / (radius + 1)) if d <= radius else 0.0


@pytest.mark.parametrize("type_,magnitude,radius", POLLUTION_SOURCES)
def test_pollution_effect_of_each_source(type_, magnitude, radius):
    for d in range(1, radius + 2):
        grid = make_grid(
            building(0, 5, type_),
            building(d, 4, TileType.FACTORY),
            building(d, 6, TileType.FACTORY),
        )
        pollution = run_cycle(grid, CrisisState(), NO_STREAKS).grid.get(d, 5).pollution
        assert pollution - FACTORY_BASELINE == pytest.approx(expected_falloff(magnitude, radius, d)), d


@pytest.mark.parametrize("type_,magnitude,radius", HAPPINESS_SOURCES)
def test_happiness_effect_of_each_source(type_, magnitude, radius):
    for d in range(1, radius + 2):
        # An unserviced house sits at 25, clear of both clamps.
        grid = make_grid(building(0, 5, type_), Tile(d, 5, TileType.RESIDENTIAL))
        happiness = run_cycle(grid, CrisisState(), NO_STREAKS).grid.get(d, 5).happiness
        assert happiness - 25 == pytest.approx(expected_falloff(magnitude, radius, d)), d


def test_eco_dome_happiness_reaches_further_than_its_pollution():
    homes = make_grid(building(0, 5, TileType.ECO_DOME), Tile(5, 5, TileType.RESIDENTIAL))
    assert run_cycle(homes, CrisisState(), NO_STREAKS).grid.get(5, 5).happiness == pytest.approx(25 + 25 / 6)

    smog = make_grid(
        building(0, 5, TileType.ECO_DOME),
        building(5, 4, TileType.FACTORY),
        building(5, 6, TileType.FACTORY),
    )
    assert run_cycle(smog, CrisisState(), NO_STREAKS).grid.get(5, 5).pollution == pytest.approx(FACTORY_BASELINE)


def test_inactive_sources_have_no_effect():
    grid = make_grid(Tile(0, 5, TileType.ECO_DOME), Tile(1, 5, TileType.RESIDENTIAL))
    assert run_cycle(grid, CrisisState(), NO_STREAKS).grid.get(1, 5).happiness == 25.0


def test_flat_income_of_service_buildings():
    grid = make_grid(
        building(0, 0, TileType.FACTORY),
        building(9, 0, TileType.WIND_TURBINE),
        building(0, 9, TileType.TRANSIT),
        building(9, 9, TileType.ECO_DOME),
        building(5, 0, TileType.HOSPITAL),
        building(5, 9, TileType.SCHOOL),
        building(0, 5, TileType.PARK),
        building(9, 5, TileType.RECYCLING),
    )
    assert run_cycle(grid, CrisisState(), NO_STREAKS).income == 30 + 5 + 10 + 30
