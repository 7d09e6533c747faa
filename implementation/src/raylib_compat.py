"""raylib compatibility layer over the raylib / pyray C bindings.

Imports whichever binding is installed and re-exports snake_case names,
encoding str arguments to UTF-8 where the CFFI layer expects const char*.
"""
from __future__ import annotations

try:
    from raylib import *  # type: ignore
except Exception:
    try:
        from pyray import *  # type: ignore
    except Exception as exc:
        raise ImportError(
            "Could not import raylib bindings. Install 'raylib' or 'pyray'."
        ) from exc

# Some bindings expose Color as a struct, others use plain tuples.
if "Color" not in globals():
    def Color(r: int, g: int, b: int, a: int):  # type: ignore
        return (r, g, b, a)

# Map the snake_case names the game uses to CamelCase raylib bindings if needed.
_CAMEL_MAP = {
    "init_window": "InitWindow",
    "set_target_fps": "SetTargetFPS",
    "window_should_close": "WindowShouldClose",
    "begin_drawing": "BeginDrawing",
    "clear_background": "ClearBackground",
    "end_drawing": "EndDrawing",
    "get_frame_time": "GetFrameTime",
    "is_key_pressed": "IsKeyPressed",
    "draw_text": "DrawText",
    "draw_rectangle": "DrawRectangle",
    "draw_rectangle_lines": "DrawRectangleLines",
    "close_window": "CloseWindow",
    "get_mouse_position": "GetMousePosition",
    "is_mouse_button_pressed": "IsMouseButtonPressed",
    "measure_text": "MeasureText",
    "set_exit_key": "SetExitKey",
}

for _snake, _camel in _CAMEL_MAP.items():
    if _snake not in globals() and _camel in globals():
        globals()[_snake] = globals()[_camel]

if "MOUSE_BUTTON_LEFT" not in globals():
    MOUSE_BUTTON_LEFT = 0  # type: ignore
if "MOUSE_BUTTON_RIGHT" not in globals():
    MOUSE_BUTTON_RIGHT = 1  # type: ignore


def _encode_text(value):  # type: ignore
    if isinstance(value, str):
        return value.encode("utf-8")
    return value


# Wrap functions that expect const char*
if "init_window" in globals():
    _init_window = globals()["init_window"]
    def init_window(width, height, title):  # type: ignore
        return _init_window(width, height, _encode_text(title))
    globals()["init_window"] = init_window

if "draw_text" in globals():
    _draw_text = globals()["draw_text"]
    def draw_text(text, x, y, size, color):  # type: ignore
        return _draw_text(_encode_text(text), x, y, size, color)
    globals()["draw_text"] = draw_text

if "measure_text" in globals():
    _measure_text = globals()["measure_text"]
    def measure_text(text, size):  # type: ignore
        return _measure_text(_encode_text(text), size)
    globals()["measure_text"] = measure_text
else:
    def measure_text(text, size):  # type: ignore
        return None
    globals()["measure_text"] = measure_text


def mouse_xy() -> tuple[float, float]:
    """Mouse position as a plain tuple; bindings return a struct or a tuple."""
    mouse = get_mouse_position()  # type: ignore[name-defined]
    if hasattr(mouse, "x"):
        return float(mouse.x), float(mouse.y)
    return float(mouse[0]), float(mouse[1])
