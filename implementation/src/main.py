from __future__ import annotations

import asyncio

from raylib_compat import (
    KEY_D,
    KEY_ESCAPE,
    KEY_SPACE,
    MOUSE_BUTTON_LEFT,
    MOUSE_BUTTON_RIGHT,
    begin_drawing,
    clear_background,
    close_window,
    end_drawing,
    get_frame_time,
    init_window,
    is_key_pressed,
    is_mouse_button_pressed,
    mouse_xy,
    set_exit_key,
    set_target_fps,
    window_should_close,
)

from city.controller import GameController
from city.layout import default_save_path, load_layout
from city.save import load_game, save_game, save_game_async
from city.ui import BACKGROUND, DEMOLISH, Ui


def _log_events(events) -> None:
    for ev in events:
        if ev.kind == "cycle_complete":
            abandoned = ev.data.get("newly_abandoned", [])
            suffix = f", abandoned {', '.join(abandoned)}" if abandoned else ""
            print(f"[cycle] #{ev.data.get('cycle')} income {ev.data.get('income')}{suffix}")
        elif ev.kind == "crisis":
            print(f"[cycle] crisis: {ev.data.get('kind')}")
        elif ev.kind == "mission_complete":
            print(f"[cycle] mission complete: {ev.data.get('mission_id')}")
        elif ev.kind == "game_complete":
            print("[cycle] all missions complete")


async def main() -> None:
    layout = load_layout()
    init_window(layout.window_width, layout.window_height, "Sustain City")
    set_exit_key(0)  # Esc deselects instead of closing
    set_target_fps(layout.target_fps)

    save_path = default_save_path()
    controller = GameController(load_game(save_path), cycle_interval=layout.cycle_interval)
    ui = Ui()

    since_save = 0.0
    pending_save: asyncio.Task | None = None

    try:
        while not window_should_close():
            dt = get_frame_time()
            mx, my = mouse_xy()

            if is_key_pressed(KEY_D):
                controller.toggle_demolish()
            if is_key_pressed(KEY_ESCAPE):
                controller.select_building(None)
                if controller.state.demolish_mode:
                    controller.toggle_demolish()
            if is_key_pressed(KEY_SPACE):
                controller.paused = not controller.paused

            if is_mouse_button_pressed(MOUSE_BUTTON_LEFT):
                hit = ui.toolbar_hit(layout, mx, my)
                if hit == DEMOLISH:
                    controller.toggle_demolish()
                elif hit is not None:
                    if controller.state.selected_building == hit:
                        result = controller.select_building(None)
                    else:
                        result = controller.select_building(hit)
                    ui.show_rejection(result.reason)
                else:
                    cell = ui.screen_to_cell(layout, controller, mx, my)
                    if cell is not None:
                        result = controller.place_building(*cell)
                        ui.show_rejection(result.reason)
            if is_mouse_button_pressed(MOUSE_BUTTON_RIGHT):
                cell = ui.screen_to_cell(layout, controller, mx, my)
                if cell is not None:
                    ui.show_rejection(controller.demolish(*cell).reason)

            controller.step(dt)
            events = controller.drain_events()
            _log_events(events)
            ui.handle_events(events)
            ui.update(dt)

            begin_drawing()
            clear_background(BACKGROUND)
            ui.draw(controller, layout, mx, my)
            end_drawing()

            since_save += dt
            if since_save >= layout.autosave_interval and (pending_save is None or pending_save.done()):
                since_save = 0.0
                pending_save = asyncio.create_task(save_game_async(controller.snapshot(), save_path))

            await asyncio.sleep(0)
    finally:
        if pending_save is not None and not pending_save.done():
            await pending_save
        save_game(controller.state, save_path)
        close_window()


if __name__ == "__main__":
    asyncio.run(main())
