from __future__ import annotations

from typing import Dict, List, Optional

from city.types import BuildingDef, Effect, TileType


STARTING_MONEY = 500
STARTING_UNLOCKS = (
    TileType.ROAD,
    TileType.RESIDENTIAL,
    TileType.WATER_PLANT,
    TileType.SOLAR_PLANT,
)
MAX_LEVEL = 10


def _def(type_: TileType, name: str, symbol: str, cost: int, income: int,
         pollution: int, radius: int, unlock_level: int, *needs: str) -> BuildingDef:
    return BuildingDef(
        type=type_,
        name=name,
        symbol=symbol,
        cost=cost,
        income=income,
        pollution=pollution,
        radius=radius,
        unlock_level=unlock_level,
        needs=tuple(needs),
    )


BUILDINGS: Dict[TileType, BuildingDef] = {
    d.type: d
    for d in (
        _def(TileType.ROAD, "Road", "=", 10, 0, 0, 0, 1),
        _def(TileType.RESIDENTIAL, "House", "H", 50, 8, 0, 0, 1, "Road", "Water", "Power"),
        _def(TileType.WATER_PLANT, "Water Plant", "W", 100, 0, 5, 3, 1, "Road"),
        _def(TileType.FACTORY, "Factory", "F", 150, 30, 40, 2, 2, "Road", "Water"),
        _def(TileType.SOLAR_PLANT, "Solar Plant", "S", 200, 0, 0, 3, 1, "Road"),
        _def(TileType.PARK, "Park", "P", 80, 0, -15, 2, 4, "Road"),
        _def(TileType.HOSPITAL, "Hospital", "+", 250, 0, 0, 3, 5, "Road", "Power"),
        _def(TileType.SCHOOL, "School", "Sc", 200, 0, 0, 3, 6, "Road", "Power"),
        _def(TileType.WIND_TURBINE, "Wind Turbine", "Wt", 180, 5, -5, 3, 7, "Road"),
        _def(TileType.RECYCLING, "Recycling", "R", 160, 0, -20, 2, 8, "Road"),
        _def(TileType.TRANSIT, "Transit Hub", "T", 220, 10, -10, 4, 9, "Road"),
        _def(TileType.GREEN_TOWER, "Green Tower", "G", 300, 15, 0, 0, 9, "Road", "Water", "Power"),
        _def(TileType.ECO_DOME, "Eco Dome", "E", 500, 0, -30, 4, 10, "Road", "Power"),
    )
}

BUILDING_LIST: List[BuildingDef] = list(BUILDINGS.values())

# Per-source effects used by the cycle engine. Falloff is
# magnitude * (1 - d / (radius + 1)) for d <= radius, from active sources only.
POLLUTION_EFFECTS: Dict[TileType, Effect] = {
    TileType.FACTORY: Effect(40, 2),
    TileType.PARK: Effect(-15, 2),
    TileType.RECYCLING: Effect(-20, 2),
    TileType.TRANSIT: Effect(-10, 4),
    TileType.ECO_DOME: Effect(-30, 4),
    TileType.WIND_TURBINE: Effect(-5, 3),
}

HAPPINESS_EFFECTS: Dict[TileType, Effect] = {
    TileType.FACTORY: Effect(-25, 2),
    TileType.PARK: Effect(20, 2),
    TileType.HOSPITAL: Effect(12, 3),
    TileType.SCHOOL: Effect(12, 3),
    TileType.TRANSIT: Effect(8, 4),
    TileType.RECYCLING: Effect(10, 2),
    TileType.ECO_DOME: Effect(25, 5),
}

LEVEL_XP_THRESHOLDS: Dict[int, int] = {
    1: 0,
    2: 100,
    3: 250,
    4: 450,
    5: 700,
    6: 1050,
    7: 1480,
    8: 2000,
    9: 2660,
    10: 3500,
}


def find_building_def(type_: TileType | str) -> Optional[BuildingDef]:
    """Non-raising lookup; returns None for anything outside the catalog."""
    try:
        return BUILDINGS.get(TileType(type_))
    except ValueError:
        return None


def building_def(type_: TileType | str) -> BuildingDef:
    """Strict lookup. The catalog is closed, so a miss is a programming error."""
    found = find_building_def(type_)
    if found is None:
        raise KeyError(f"Unknown building type: {type_!r}")
    return found


def level_for_experience(xp: float) -> int:
    """Highest level whose XP threshold ``xp`` meets or exceeds."""
    for level in range(MAX_LEVEL, 0, -1):
        if xp >= LEVEL_XP_THRESHOLDS[level]:
            return level
    return 1


def xp_progress(xp: float, level: int) -> float:
    """Percent of the way from the current level's threshold to the next one."""
    current = LEVEL_XP_THRESHOLDS.get(level, 0)
    nxt = LEVEL_XP_THRESHOLDS.get(level + 1, LEVEL_XP_THRESHOLDS[MAX_LEVEL])
    if nxt <= current:
        return 100.0
    return (xp - current) / (nxt - current) * 100.0
