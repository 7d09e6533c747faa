"""Tests for the save record and file persistence."""

import json

import pytest

from city.controller import GameController
from city.grid import Grid
from city.missions import load_missions
from city.save import (
    SAVE_VERSION,
    build_save_dict,
    load_game,
    restore_from_dict,
    save_game,
    save_game_async,
)
from city.state import GameState
from city.types import TileType


def played_state() -> GameState:
    controller = GameController(missions=load_missions())
    for x, type_ in ((0, TileType.ROAD), (1, TileType.ROAD), (2, TileType.ROAD)):
        controller.place_building(x, 0, type_)
    controller.place_building(1, 1, TileType.RESIDENTIAL)
    controller.place_building(0, 1, TileType.WATER_PLANT)
    controller.place_building(2, 1, TileType.SOLAR_PLANT)
    controller.advance_cycle()
    controller.advance_cycle()
    return controller.state


def test_record_round_trips_through_dict():
    state = played_state()
    data = build_save_dict(state)
    assert data["version"] == SAVE_VERSION
    assert len(data["grid"]) == 10 and len(data["grid"][0]) == 10

    restored = restore_from_dict(json.loads(json.dumps(data)))
    assert restored is not None
    assert build_save_dict(restored) == data
    assert restored.grid.get(1, 1).active
    assert restored.completed_missions == ["m1_roads"]
    assert restored.crisis == state.crisis


def test_save_and_load_file(tmp_path):
    path = tmp_path / "save.json"
    state = played_state()
    save_game(state, path)
    assert path.exists()
    assert not path.with_suffix(".tmp").exists()

    loaded = load_game(path)
    assert build_save_dict(loaded) == build_save_dict(state)
    assert loaded.selected_building is None
    assert not loaded.demolish_mode


def test_missing_file_starts_fresh(tmp_path):
    state = load_game(tmp_path / "nope.json")
    assert state.money == 500
    assert state.cycles == 0
    assert all(t.is_empty for t in state.grid)


def test_corrupt_file_starts_fresh(tmp_path, capsys):
    path = tmp_path / "save.json"
    path.write_text("{not json", encoding="utf-8")
    state = load_game(path)
    assert state.money == 500
    assert "[save]" in capsys.readouterr().out


def test_record_without_version_starts_fresh(tmp_path):
    path = tmp_path / "save.json"
    path.write_text(json.dumps({"money": 9999}), encoding="utf-8")
    assert load_game(path).money == 500


@pytest.mark.parametrize(
    "mutate",
    [
        lambda d: d["grid"].pop(),
        lambda d: d.pop("money"),
        lambda d: d["grid"][0][0].update(type="castle"),
        lambda d: d["grid"][0][0].update(x=5),
    ],
)
def test_bad_records_are_rejected(mutate):
    data = build_save_dict(played_state())
    mutate(data)
    assert restore_from_dict(data) is None


def test_short_streak_list_is_reset():
    data = build_save_dict(played_state())
    data["low_happiness_cycles"] = [1, 2, 3]
    restored = restore_from_dict(data)
    assert restored.low_happiness_cycles == [0] * 100


def test_empty_grid_round_trips():
    restored = restore_from_dict(build_save_dict(GameState(grid=Grid())))
    assert restored is not None
    assert restored.grid.tiles == Grid().tiles


@pytest.mark.asyncio
async def test_async_save_writes_snapshot(tmp_path):
    path = tmp_path / "save.json"
    controller = GameController(missions=load_missions())
    controller.place_building(0, 0, TileType.ROAD)
    snapshot = controller.snapshot()

    pending = save_game_async(snapshot, path)
    controller.place_building(1, 0, TileType.ROAD)
    await pending

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["money"] == 490
    assert saved["grid"][0][1]["type"] == "empty"
