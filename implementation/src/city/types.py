from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class TileType(str, Enum):
    EMPTY = "empty"
    ROAD = "road"
    RESIDENTIAL = "residential"
    WATER_PLANT = "water_plant"
    FACTORY = "factory"
    SOLAR_PLANT = "solar_plant"
    PARK = "park"
    HOSPITAL = "hospital"
    SCHOOL = "school"
    WIND_TURBINE = "wind_turbine"
    RECYCLING = "recycling"
    TRANSIT = "transit"
    GREEN_TOWER = "green_tower"
    ECO_DOME = "eco_dome"


# Tiles that have a happiness score and pay income from it.
RESIDENTIAL_TYPES = frozenset({TileType.RESIDENTIAL, TileType.GREEN_TOWER})
POWER_SOURCES = (TileType.SOLAR_PLANT, TileType.WIND_TURBINE)
WATER_SOURCES = (TileType.WATER_PLANT,)


@dataclass(frozen=True)
class BuildingDef:
    type: TileType
    name: str
    symbol: str
    cost: int
    income: int
    pollution: int
    radius: int
    unlock_level: int
    needs: Tuple[str, ...] = ()  # display only; the real check lives in dependencies.py


@dataclass(frozen=True)
class Effect:
    """Signed magnitude applied with linear falloff out to ``radius``."""
    magnitude: float
    radius: int


@dataclass(frozen=True)
class Objective:
    kind: str
    target: str
    value: float
    cycles: int = 0
    source: Optional[str] = None
    radius: Optional[float] = None


@dataclass(frozen=True)
class Reward:
    xp: int
    money: int
    unlocks: Tuple[TileType, ...] = ()


@dataclass(frozen=True)
class Mission:
    id: str
    level_required: int
    title: str
    description: str
    objectives: Tuple[Objective, ...] = field(default_factory=tuple)
    reward: Reward = field(default_factory=lambda: Reward(xp=0, money=0))
