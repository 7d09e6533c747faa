from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator, Optional, Tuple

from city.types import TileType


GRID_SIZE = 10

Point = Tuple[int, int]


@dataclass
class Tile:
    x: int
    y: int
    type: TileType = TileType.EMPTY
    active: bool = False
    pollution: float = 0.0
    happiness: float = 0.0
    water_supplied: bool = False
    powered: bool = False
    road_connected: bool = False
    abandoned: bool = False
    just_placed: bool = False  # presentation hint only

    @property
    def id(self) -> str:
        return f"{self.x}_{self.y}"

    @property
    def is_empty(self) -> bool:
        return self.type == TileType.EMPTY

    def cleared(self) -> "Tile":
        """Same coordinates, back to an empty lot with every derived field reset."""
        return Tile(self.x, self.y)


@dataclass
class Grid:
    """Fixed 10x10 board, stored row-major."""
    width: int = GRID_SIZE
    height: int = GRID_SIZE
    tiles: list[Tile] = field(default=None, repr=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.tiles is None:
            self.tiles = [Tile(x, y) for y in range(self.height) for x in range(self.width)]
        if len(self.tiles) != self.width * self.height:
            raise ValueError(
                f"Grid expects {self.width * self.height} tiles, got {len(self.tiles)}"
            )

    def index(self, x: int, y: int) -> int:
        if not self.in_bounds(x, y):
            raise IndexError(f"Grid index out of bounds: ({x}, {y})")
        return y * self.width + x

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get(self, x: int, y: int) -> Optional[Tile]:
        if not self.in_bounds(x, y):
            return None
        return self.tiles[self.index(x, y)]

    def set(self, tile: Tile) -> None:
        self.tiles[self.index(tile.x, tile.y)] = tile

    def __iter__(self) -> Iterator[Tile]:
        return iter(self.tiles)

    def rows(self) -> list[list[Tile]]:
        return [self.tiles[y * self.width:(y + 1) * self.width] for y in range(self.height)]

    def neighbors(self, x: int, y: int) -> list[Point]:
        coords: list[Point] = []
        if x > 0:
            coords.append((x - 1, y))
        if x < self.width - 1:
            coords.append((x + 1, y))
        if y > 0:
            coords.append((x, y - 1))
        if y < self.height - 1:
            coords.append((x, y + 1))
        return coords

    def copy(self) -> "Grid":
        return Grid(self.width, self.height, [replace(t) for t in self.tiles])

    def count(self, type_: TileType, active_only: bool = False) -> int:
        return sum(
            1 for t in self.tiles
            if t.type == type_ and (t.active or not active_only)
        )


# ── Spatial queries ─────────────────────────────────────────────────


def distance(a: Point | Tile, b: Point | Tile) -> float:
    """Euclidean distance; every radius check in the game uses this."""
    ax, ay = _xy(a)
    bx, by = _xy(b)
    return math.hypot(ax - bx, ay - by)


def has_adjacent_road(pos: Point | Tile, grid: Grid) -> bool:
    x, y = _xy(pos)
    for nx, ny in grid.neighbors(x, y):
        if grid.tiles[grid.index(nx, ny)].type == TileType.ROAD:
            return True
    return False


def is_within_radius_of(
    pos: Point | Tile,
    grid: Grid,
    types: TileType | Iterable[TileType],
    radius: float,
) -> bool:
    """True if an *active* tile of one of ``types`` lies within ``radius``.

    ``pos`` itself is not excluded.
    """
    wanted = _type_set(types)
    for other in grid.tiles:
        if other.type in wanted and other.active and distance(pos, other) <= radius:
            return True
    return False


def tiles_within_radius(pos: Point | Tile, radius: float,
                        width: int = GRID_SIZE, height: int = GRID_SIZE) -> list[Point]:
    """Row-major coordinates within ``radius`` of ``pos``, excluding ``pos``."""
    px, py = _xy(pos)
    result: list[Point] = []
    for y in range(height):
        for x in range(width):
            if (x, y) == (px, py):
                continue
            if distance((px, py), (x, y)) <= radius:
                result.append((x, y))
    return result


def _xy(p: Point | Tile) -> Point:
    if isinstance(p, Tile):
        return p.x, p.y
    return p[0], p[1]


def _type_set(types: TileType | Iterable[TileType]) -> frozenset:
    if isinstance(types, TileType):
        return frozenset((types,))
    return frozenset(types)

