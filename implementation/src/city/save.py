"""Save/load for game state.

Auto-save: JSON to a local file, written atomically (tmp + rename).
The record is a plain dict of grid, economy, progression, averages and
crisis state; loading a missing or malformed record yields a fresh game.
Background saves always work on a snapshot, never on the live state.
"""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

from city.catalog import STARTING_UNLOCKS
from city.grid import GRID_SIZE, Grid, Tile
from city.state import CrisisState, GameState, new_game_state
from city.types import TileType

SAVE_VERSION = 1


def _tile_to_dict(t: Tile) -> dict:
    return {
        "x": t.x,
        "y": t.y,
        "type": t.type.value,
        "active": t.active,
        "pollution": t.pollution,
        "happiness": t.happiness,
        "water_supplied": t.water_supplied,
        "powered": t.powered,
        "road_connected": t.road_connected,
        "abandoned": t.abandoned,
    }


def _tile_from_dict(data: dict) -> Tile:
    return Tile(
        x=int(data["x"]),
        y=int(data["y"]),
        type=TileType(data.get("type", TileType.EMPTY.value)),
        active=bool(data.get("active", False)),
        pollution=float(data.get("pollution", 0.0)),
        happiness=float(data.get("happiness", 0.0)),
        water_supplied=bool(data.get("water_supplied", False)),
        powered=bool(data.get("powered", False)),
        road_connected=bool(data.get("road_connected", False)),
        abandoned=bool(data.get("abandoned", False)),
    )


def build_save_dict(state: GameState) -> dict:
    """Build a JSON-serializable dict from game state."""
    return {
        "version": SAVE_VERSION,
        "grid": [[_tile_to_dict(t) for t in row] for row in state.grid.rows()],
        "money": state.money,
        "xp": state.xp,
        "level": state.level,
        "cycles": state.cycles,
        "total_income_earned": state.total_income_earned,
        "current_mission_index": state.current_mission_index,
        "completed_missions": list(state.completed_missions),
        "unlocked_buildings": [t.value for t in state.unlocked_buildings],
        "avg_happiness": state.avg_happiness,
        "avg_pollution": state.avg_pollution,
        "last_cycle_income": state.last_cycle_income,
        "game_complete": state.game_complete,
        "sustain_counters": dict(state.sustain_counters),
        "crisis": {
            "protest_cycles": state.crisis.protest_cycles,
            "environmental_crisis": state.crisis.environmental_crisis,
            "economic_collapse": state.crisis.economic_collapse,
        },
        "low_happiness_cycles": list(state.low_happiness_cycles),
        "abandoned_count": state.abandoned_count,
    }


def restore_from_dict(data: dict) -> Optional[GameState]:
    """Rebuild game state from a save dict. Returns None if the record is unusable."""
    try:
        rows = data["grid"]
        if len(rows) != GRID_SIZE or any(len(row) != GRID_SIZE for row in rows):
            print(f"[save] Warning: grid is not {GRID_SIZE}x{GRID_SIZE}, ignoring save")
            return None
        tiles = []
        for y, row in enumerate(rows):
            for x, cell in enumerate(row):
                tile = _tile_from_dict(cell)
                if (tile.x, tile.y) != (x, y):
                    print(f"[save] Warning: tile ({tile.x},{tile.y}) stored at ({x},{y}), ignoring save")
                    return None
                tiles.append(tile)

        crisis_data = data.get("crisis", {})
        streaks = [int(v) for v in data.get("low_happiness_cycles", [])]
        if len(streaks) != GRID_SIZE * GRID_SIZE:
            streaks = [0] * (GRID_SIZE * GRID_SIZE)

        return GameState(
            grid=Grid(GRID_SIZE, GRID_SIZE, tiles),
            money=int(data["money"]),
            xp=int(data.get("xp", 0)),
            level=int(data.get("level", 1)),
            cycles=int(data.get("cycles", 0)),
            total_income_earned=int(data.get("total_income_earned", 0)),
            current_mission_index=int(data.get("current_mission_index", 0)),
            completed_missions=[str(m) for m in data.get("completed_missions", [])],
            unlocked_buildings=[
                TileType(t) for t in data.get("unlocked_buildings", [u.value for u in STARTING_UNLOCKS])
            ],
            avg_happiness=int(data.get("avg_happiness", 0)),
            avg_pollution=int(data.get("avg_pollution", 0)),
            last_cycle_income=int(data.get("last_cycle_income", 0)),
            game_complete=bool(data.get("game_complete", False)),
            sustain_counters={str(k): int(v) for k, v in data.get("sustain_counters", {}).items()},
            crisis=CrisisState(
                protest_cycles=int(crisis_data.get("protest_cycles", 0)),
                environmental_crisis=bool(crisis_data.get("environmental_crisis", False)),
                economic_collapse=bool(crisis_data.get("economic_collapse", False)),
            ),
            low_happiness_cycles=streaks,
            abandoned_count=int(data.get("abandoned_count", 0)),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        print(f"[save] Error restoring save data: {e}")
        return None


def save_game(state: GameState, path: Path) -> None:
    """Auto-save: write JSON atomically (tmp + rename)."""
    data = build_save_dict(state)
    tmp_path = path.with_suffix(".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(path)
    except OSError as e:
        print(f"[save] Error saving game: {e}")


async def save_game_async(snapshot: GameState, path: Path) -> None:
    """Write ``snapshot`` off the event loop. Pass a copy, not the live state."""
    await asyncio.to_thread(save_game, snapshot, path)


def load_game(path: Optional[Path]) -> GameState:
    """Auto-load: read JSON and restore it, or start fresh on missing/corrupt file."""
    if path is None or not path.exists():
        return new_game_state()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print(f"[save] Error loading save file: {e}")
        return new_game_state()
    if not isinstance(data, dict) or "version" not in data:
        print("[save] Could not parse save file (not a valid save)")
        return new_game_state()
    state = restore_from_dict(data)
    return state if state is not None else new_game_state()
