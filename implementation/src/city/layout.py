from __future__ import annotations

from dataclasses import dataclass
import json
import os
from pathlib import Path


def _repo_root() -> Path:
    here = Path(__file__).resolve()
    return here.parents[3]


def default_layout_path() -> Path:
    return _repo_root() / "implementation" / "layout.json"


def default_save_path() -> Path:
    override = os.environ.get("SUSTAIN_CITY_SAVE")
    if override:
        return Path(override).resolve()
    return Path(__file__).resolve().parents[1] / "save.json"


@dataclass
class Layout:
    window_width: int = 960
    window_height: int = 640

    top_bar_x: int = 0
    top_bar_y: int = 0
    top_bar_h: int = 48
    xp_bar_width: int = 160

    toolbar_x: int = 8
    toolbar_y: int = 60
    toolbar_button_w: int = 176
    toolbar_button_h: int = 34
    toolbar_gap: int = 4

    grid_origin_x: int = 200
    grid_origin_y: int = 60
    grid_cell_size: int = 50

    mission_panel_x: int = 716
    mission_panel_y: int = 60
    mission_panel_w: int = 236
    mission_panel_h: int = 500

    banner_y: int = 570
    tooltip_y: int = 600

    cycle_interval: float = 5.0
    autosave_interval: float = 30.0
    target_fps: int = 60


def load_layout(path: Path | None = None) -> Layout:
    if path is None:
        path = default_layout_path()
    if not path.exists():
        return Layout()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return Layout()
    try:
        return Layout(**data)
    except TypeError:
        return Layout()

