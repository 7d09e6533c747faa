from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, Union

from raylib_compat import (
    Color,
    draw_rectangle,
    draw_rectangle_lines,
    draw_text,
    measure_text,
)

from city.catalog import BUILDING_LIST, building_def, xp_progress
from city.controller import GameController, GameEvent, RejectReason, building_cost
from city.dependencies import check_dependencies
from city.grid import Tile
from city.layout import Layout
from city.missions import mission_progress, mission_statuses
from city.simulation import (
    factory_impact,
    happiness_breakdown,
    hovered_tile_summary,
    park_benefit,
    pollution_preview,
    active_homes,
)
from city.state import score
from city.types import RESIDENTIAL_TYPES, TileType


DEMOLISH = "demolish"
ToolbarHit = Union[TileType, str]

BANNER_SECONDS = 4.0
FLOAT_SECONDS = 1.3
PULSE_SECONDS = 0.5

WHITE = Color(240, 240, 240, 255)
MUTED = Color(150, 150, 165, 255)
GOLD = Color(245, 190, 60, 255)
RED = Color(235, 80, 95, 255)
GREEN = Color(90, 210, 120, 255)
PANEL = Color(28, 30, 40, 235)
PANEL_EDGE = Color(80, 84, 104, 255)
BACKGROUND = Color(18, 20, 28, 255)

TILE_COLORS = {
    TileType.EMPTY: Color(46, 58, 46, 255),
    TileType.ROAD: Color(90, 90, 96, 255),
    TileType.RESIDENTIAL: Color(210, 150, 90, 255),
    TileType.WATER_PLANT: Color(70, 140, 220, 255),
    TileType.FACTORY: Color(140, 110, 100, 255),
    TileType.SOLAR_PLANT: Color(235, 200, 60, 255),
    TileType.PARK: Color(70, 170, 80, 255),
    TileType.HOSPITAL: Color(230, 230, 235, 255),
    TileType.SCHOOL: Color(180, 120, 200, 255),
    TileType.WIND_TURBINE: Color(170, 220, 230, 255),
    TileType.RECYCLING: Color(60, 190, 150, 255),
    TileType.TRANSIT: Color(220, 120, 60, 255),
    TileType.GREEN_TOWER: Color(120, 200, 110, 255),
    TileType.ECO_DOME: Color(90, 200, 200, 255),
}

_REJECT_MESSAGES = {
    RejectReason.OCCUPIED: "Tile already occupied",
    RejectReason.NO_SELECTION: "Select a building first",
    RejectReason.LOCKED: "Building is locked",
    RejectReason.ECONOMIC_COLLAPSE: "Bankrupt! Earn money before building",
    RejectReason.INSUFFICIENT_FUNDS: "Not enough money",
    RejectReason.DEMOLISH_MODE: "Nothing to demolish here",
    RejectReason.EMPTY_TILE: "Nothing to demolish here",
}

_CRISIS_BANNERS = {
    "protest": "Citizens are protesting! Happiness critical!",
    "revolt": "CITIZEN REVOLT! Build parks or reduce pollution!",
    "environmental": "ENVIRONMENTAL CRISIS! Pollution out of control!",
    "economic": "ECONOMIC COLLAPSE! Cannot build anything!",
}


@dataclass
class FloatingText:
    text: str
    color: object
    remaining: float = FLOAT_SECONDS


@dataclass
class Ui:
    """Presentation state and drawing. Owns every timer the player sees."""
    banner: Optional[str] = None
    banner_remaining: float = 0.0
    floating: List[FloatingText] = field(default_factory=list)
    pulse_remaining: float = 0.0
    mission_flash: Optional[str] = None
    mission_flash_remaining: float = 0.0
    level_up_remaining: float = 0.0

    # ── Event intake / timers ─────────────────────────────────────

    def show_banner(self, text: str) -> None:
        self.banner = text
        self.banner_remaining = BANNER_SECONDS

    def show_rejection(self, reason: Optional[RejectReason]) -> None:
        text = _REJECT_MESSAGES.get(reason) if reason is not None else None
        if text:
            self.floating.append(FloatingText(text, RED))

    def handle_events(self, events: Iterable[GameEvent]) -> None:
        for ev in events:
            if ev.kind == "cycle_complete":
                income = ev.data.get("income", 0)
                if income > 0:
                    self.floating.append(FloatingText(f"+${income}", GOLD))
                elif income < 0:
                    self.floating.append(FloatingText(f"-${abs(income)}", RED))
                for _ in ev.data.get("newly_abandoned", []):
                    self.floating.append(FloatingText("House abandoned!", RED))
                self.pulse_remaining = PULSE_SECONDS
            elif ev.kind == "crisis":
                text = _CRISIS_BANNERS.get(ev.data.get("kind", ""))
                if text:
                    self.show_banner(text)
            elif ev.kind == "mission_complete":
                self.mission_flash = ev.data.get("mission_id")
                self.mission_flash_remaining = 2.5
            elif ev.kind == "level_up":
                self.level_up_remaining = 2.5
                self.show_banner(f"LEVEL UP! Level {ev.data.get('level')}")
            elif ev.kind == "game_complete":
                self.show_banner("SUSTAIN CITY LEGEND! All missions complete!")

    def update(self, dt: float) -> None:
        if self.banner_remaining > 0:
            self.banner_remaining -= dt
            if self.banner_remaining <= 0:
                self.banner = None
        for f in self.floating:
            f.remaining -= dt
        self.floating = [f for f in self.floating if f.remaining > 0]
        self.pulse_remaining = max(0.0, self.pulse_remaining - dt)
        self.level_up_remaining = max(0.0, self.level_up_remaining - dt)
        if self.mission_flash_remaining > 0:
            self.mission_flash_remaining -= dt
            if self.mission_flash_remaining <= 0:
                self.mission_flash = None

    # ── Hit testing ───────────────────────────────────────────────

    @staticmethod
    def toolbar_slots(layout: Layout) -> List[Tuple[ToolbarHit, int, int, int, int]]:
        slots: List[Tuple[ToolbarHit, int, int, int, int]] = []
        y = layout.toolbar_y
        step = layout.toolbar_button_h + layout.toolbar_gap
        for d in BUILDING_LIST:
            slots.append((d.type, layout.toolbar_x, y, layout.toolbar_button_w, layout.toolbar_button_h))
            y += step
        slots.append((DEMOLISH, layout.toolbar_x, y, layout.toolbar_button_w, layout.toolbar_button_h))
        return slots

    def toolbar_hit(self, layout: Layout, mx: float, my: float) -> Optional[ToolbarHit]:
        for key, x, y, w, h in self.toolbar_slots(layout):
            if x <= mx < x + w and y <= my < y + h:
                return key
        return None

    @staticmethod
    def cell_to_screen(layout: Layout, x: int, y: int) -> Tuple[int, int]:
        return (
            layout.grid_origin_x + x * layout.grid_cell_size,
            layout.grid_origin_y + y * layout.grid_cell_size,
        )

    @staticmethod
    def screen_to_cell(layout: Layout, controller: GameController, sx: float, sy: float) -> Optional[Tuple[int, int]]:
        grid = controller.state.grid
        x = int((sx - layout.grid_origin_x) // layout.grid_cell_size)
        y = int((sy - layout.grid_origin_y) // layout.grid_cell_size)
        if sx < layout.grid_origin_x or sy < layout.grid_origin_y:
            return None
        if grid.in_bounds(x, y):
            return x, y
        return None

    # ── Drawing ───────────────────────────────────────────────────

    def draw(self, controller: GameController, layout: Layout, mouse_x: float, mouse_y: float) -> None:
        hover = self.screen_to_cell(layout, controller, mouse_x, mouse_y)
        self.draw_top_bar(controller, layout)
        self.draw_toolbar(controller, layout, mouse_x, mouse_y)
        self.draw_grid(controller, layout, hover)
        self.draw_mission_panel(controller, layout)
        self.draw_overlays(controller, layout, hover)

    def draw_top_bar(self, controller: GameController, layout: Layout) -> None:
        s = controller.state
        draw_rectangle(layout.top_bar_x, layout.top_bar_y, layout.window_width, layout.top_bar_h, PANEL)
        money_color = RED if s.money < 0 else GOLD
        draw_text(f"${s.money}", 12, 14, 20, money_color)
        level_color = GOLD if self.level_up_remaining > 0 else WHITE
        draw_text(f"Lvl {s.level}", 140, 14, 20, level_color)

        bar_x, bar_y = 220, 20
        pct = max(0.0, min(100.0, xp_progress(s.xp, s.level)))
        draw_rectangle(bar_x, bar_y, layout.xp_bar_width, 10, Color(50, 52, 66, 255))
        draw_rectangle(bar_x, bar_y, int(layout.xp_bar_width * pct / 100.0), 10, GREEN)
        draw_text(f"{s.xp} XP", bar_x + layout.xp_bar_width + 8, 16, 16, MUTED)

        cycle_color = GOLD if self.pulse_remaining > 0 else WHITE
        draw_text(f"Cycle {s.cycles}", 480, 14, 20, cycle_color)
        sign = "+" if s.last_cycle_income >= 0 else "-"
        draw_text(f"{sign}${abs(s.last_cycle_income)}/cycle", 600, 14, 20, GOLD)
        if controller.paused:
            draw_text("PAUSED", 820, 14, 20, RED)

    def draw_toolbar(self, controller: GameController, layout: Layout, mouse_x: float, mouse_y: float) -> None:
        s = controller.state
        hovered = self.toolbar_hit(layout, mouse_x, mouse_y)
        for key, x, y, w, h in self.toolbar_slots(layout):
            if key == DEMOLISH:
                selected = s.demolish_mode
                label = "Demolish (50% refund)"
                locked = False
            else:
                d = building_def(key)
                selected = s.selected_building == key
                locked = not s.is_unlocked(key)
                label = f"{d.name}  ${building_cost(key, s.crisis)}"
                if locked:
                    label = f"{d.name}  (Lvl {d.unlock_level})"
            fill = Color(60, 64, 90, 255) if selected else PANEL
            if hovered == key and not locked:
                fill = Color(48, 52, 72, 255)
            draw_rectangle(x, y, w, h, fill)
            draw_rectangle_lines(x, y, w, h, GOLD if selected else PANEL_EDGE)
            if key != DEMOLISH:
                draw_rectangle(x + 6, y + 8, 18, 18, TILE_COLORS[key])
            draw_text(label, x + 30, y + 10, 14, MUTED if locked else WHITE)

    def draw_grid(self, controller: GameController, layout: Layout, hover: Optional[Tuple[int, int]]) -> None:
        s = controller.state
        size = layout.grid_cell_size
        preview = set()
        if hover is not None and s.selected_building is not None:
            preview = set(pollution_preview(hover, s.selected_building))

        for tile in s.grid:
            px, py = self.cell_to_screen(layout, tile.x, tile.y)
            draw_rectangle(px, py, size - 1, size - 1, TILE_COLORS[tile.type])
            if tile.pollution > 0:
                alpha = int(min(160.0, tile.pollution * 1.6))
                draw_rectangle(px, py, size - 1, size - 1, Color(120, 90, 40, alpha))
            if (tile.x, tile.y) in preview:
                draw_rectangle(px, py, size - 1, size - 1, Color(200, 60, 60, 70))
            if not tile.is_empty:
                symbol = building_def(tile.type).symbol
                draw_text(symbol, px + 6, py + 6, 18, Color(20, 20, 24, 255))
                if not tile.active:
                    draw_rectangle_lines(px + 2, py + 2, size - 5, size - 5, RED)
                if tile.abandoned:
                    draw_text("X", px + size - 16, py + 4, 16, RED)
                if tile.type in RESIDENTIAL_TYPES and tile.active:
                    draw_text(f"{int(tile.happiness)}", px + 6, py + size - 18, 12, Color(20, 20, 24, 255))
            if tile.just_placed:
                draw_rectangle_lines(px, py, size - 1, size - 1, WHITE)

        if hover is not None:
            hx, hy = self.cell_to_screen(layout, *hover)
            draw_rectangle_lines(hx, hy, size - 1, size - 1, GOLD)

    def draw_mission_panel(self, controller: GameController, layout: Layout) -> None:
        s = controller.state
        x, y, w = layout.mission_panel_x, layout.mission_panel_y, layout.mission_panel_w
        draw_rectangle(x, y, w, layout.mission_panel_h, PANEL)
        draw_rectangle_lines(x, y, w, layout.mission_panel_h, PANEL_EDGE)
        cy = y + 8

        if s.game_complete:
            draw_text("SUSTAIN CITY LEGEND!", x + 8, cy, 16, GOLD)
            draw_text("You completed all missions!", x + 8, cy + 24, 12, WHITE)
            draw_text(f"Score: {score(s)}", x + 8, cy + 44, 14, GREEN)
            return

        mission = controller.current_mission
        crises = []
        if s.crisis.protest_cycles >= 1:
            crises.append("Protest")
        if s.crisis.environmental_crisis:
            crises.append("Pollution")
        if s.crisis.economic_collapse:
            crises.append("Bankrupt")

        if mission is not None:
            flash = self.mission_flash is not None
            draw_text(f"Missions - Lvl {mission.level_required}", x + 8, cy, 14, GOLD)
            cy += 20
            for m, status in mission_statuses(s, controller.missions):
                if status == "completed":
                    draw_text(f"[x] {m.title}", x + 8, cy, 10, GREEN)
                elif status == "current":
                    draw_text(f" >  {m.title}", x + 8, cy, 10, GOLD)
                else:
                    draw_text(f" -  {m.title}", x + 8, cy, 10, MUTED)
                cy += 12
            cy += 8
            draw_text(mission.title, x + 8, cy, 14, GREEN if flash else WHITE)
            cy += 18
            for line in _wrap_text(mission.description, w - 16, 10):
                draw_text(line, x + 8, cy, 10, MUTED)
                cy += 13
            cy += 4
            for progress in mission_progress(s, controller.missions):
                draw_text(progress.label, x + 8, cy, 10, GREEN if progress.met else WHITE)
                cy += 13
                draw_rectangle(x + 8, cy, w - 16, 5, Color(50, 52, 66, 255))
                draw_rectangle(x + 8, cy, int((w - 16) * progress.percent / 100.0), 5, GREEN if progress.met else GOLD)
                cy += 11
            reward = mission.reward
            text = f"Reward: +${reward.money} | +{reward.xp} XP"
            if reward.unlocks:
                text += " | " + ", ".join(u.value for u in reward.unlocks)
            for line in _wrap_text(text, w - 16, 10):
                draw_text(line, x + 8, cy, 10, GOLD)
                cy += 13

        cy += 10
        draw_text("CITY HEALTH", x + 8, cy, 12, WHITE)
        cy += 18
        rows = [
            (f"Income/cycle: ${s.last_cycle_income}", GOLD),
            (f"Active homes: {active_homes(s.grid)}", WHITE),
            (f"Abandoned: {s.abandoned_count}", RED if s.abandoned_count > 0 else WHITE),
            (f"Avg happiness: {s.avg_happiness}%", _health_color(s.avg_happiness, 50, 70, higher_is_better=True)),
            (f"Avg pollution: {s.avg_pollution}%", _health_color(s.avg_pollution, 30, 60, higher_is_better=False)),
            (f"Crises: {', '.join(crises) if crises else 'None'}", RED if crises else GREEN),
        ]
        for text, color in rows:
            draw_text(text, x + 8, cy, 10, color)
            cy += 14

    def draw_overlays(self, controller: GameController, layout: Layout, hover: Optional[Tuple[int, int]]) -> None:
        s = controller.state
        if self.banner:
            width = _measure(self.banner, 18)
            bx = (layout.window_width - width) // 2
            draw_rectangle(bx - 10, layout.banner_y - 6, width + 20, 30, Color(90, 20, 30, 230))
            draw_text(self.banner, bx, layout.banner_y, 18, WHITE)

        fy = layout.top_bar_h + 4
        for f in self.floating:
            draw_text(f.text, layout.grid_origin_x + 10, fy, 16, f.color)
            fy += 18

        if hover is None:
            return
        tile = s.grid.get(*hover)
        for i, line in enumerate(self.tooltip_lines(controller, tile)):
            draw_text(line, layout.grid_origin_x, layout.tooltip_y + i * 13, 11, MUTED)

    @staticmethod
    def tooltip_lines(controller: GameController, tile: Optional[Tile]) -> List[str]:
        s = controller.state
        if tile is None:
            return []
        if tile.is_empty:
            if s.selected_building is None:
                return []
            check = check_dependencies(s.selected_building, tile, s.grid)
            if check.valid:
                d = building_def(s.selected_building)
                needs = f" (needs {', '.join(d.needs)})" if d.needs else ""
                return [f"Build {d.name} here for ${building_cost(s.selected_building, s.crisis)}{needs}"]
            return ["; ".join(check.missing)]

        lines = [hovered_tile_summary(tile)]
        if tile.type in RESIDENTIAL_TYPES:
            items = happiness_breakdown(tile, s.grid)
            lines.append(", ".join(f"{i.label} {i.value:+d}" for i in items))
        elif tile.type == TileType.FACTORY:
            impact = factory_impact(tile, s.grid)
            lines.append(f"Hurts {impact.affected_homes} homes (~${impact.estimated_change}/cycle lost)")
        elif tile.type == TileType.PARK:
            benefit = park_benefit(tile, s.grid)
            lines.append(f"Helps {benefit.affected_homes} homes (~${benefit.estimated_change}/cycle gained)")
        if not tile.active:
            lines.append("; ".join(check_dependencies(tile.type, tile, s.grid).missing))
        return lines


def _health_color(value: float, warn: float, bad: float, higher_is_better: bool):
    if higher_is_better:
        if value < warn:
            return RED
        return GOLD if value < bad else GREEN
    if value > bad:
        return RED
    return GOLD if value > warn else GREEN


def _measure(text: str, font_size: int) -> int:
    width = measure_text(text, font_size) if measure_text is not None else None
    if width is None:
        return int(len(text) * font_size * 0.6)
    return int(width)


def _wrap_text(text: str, max_width: int, font_size: int) -> list[str]:
    if not text:
        return []
    words = text.split()
    lines: list[str] = []
    current = ""
    for word in words:
        candidate = word if not current else f"{current} {word}"
        width = _measure(candidate, font_size)
        if width <= max_width or not current:
            current = candidate
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines
