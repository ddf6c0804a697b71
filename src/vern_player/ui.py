"""Terminal player: key handling, status line and the main loop.

The loop doubles as the session's event loop: each frame waits briefly for a
key, applies it to the store, then polls the device so its events are
processed in order on this same thread.
"""

from typing import Optional

from blessed import Terminal
from blessed.keyboard import Keystroke
from loguru import logger

from vern_player.app import PlayerApp
from vern_player.core.output import set_screen_mode
from vern_player.domain.playback import PlaybackState, format_time, progress_percent
from vern_player.domain.playback.media_session import (
    ACTION_NEXT,
    ACTION_PAUSE,
    ACTION_PLAY,
    ACTION_PREVIOUS,
)

HELP_LINE = (
    "space play/pause  n next  p previous  ←/→ seek  +/- volume  "
    "s shuffle  r repeat  c clear queue  q quit"
)


def handle_key(app: PlayerApp, key: Keystroke) -> bool:
    """Apply one key press to the player.

    Transport keys go through the media session, the same path OS media
    keys take; everything else calls the store directly.

    Returns:
        False when the key asks to quit, True otherwise
    """
    store = app.store
    state = store.state
    ui_config = app.config.ui
    char = str(key)
    name = getattr(key, "name", None)

    if char in ("q", "Q", "\x03"):
        return False

    if char == " ":
        app.media_session.dispatch(ACTION_PAUSE if state.is_playing else ACTION_PLAY)
    elif char == "n":
        app.media_session.dispatch(ACTION_NEXT)
    elif char == "p":
        app.media_session.dispatch(ACTION_PREVIOUS)
    elif char == "s":
        store.toggle_shuffle()
    elif char == "r":
        store.cycle_repeat_mode()
    elif char in ("+", "="):
        store.set_volume(state.volume + ui_config.volume_step)
    elif char in ("-", "_"):
        store.set_volume(state.volume - ui_config.volume_step)
    elif char == "c":
        store.clear_queue()
    elif name in ("KEY_LEFT", "KEY_RIGHT"):
        if state.current_song is None:
            return True
        step = ui_config.seek_step_seconds if name == "KEY_RIGHT" else -ui_config.seek_step_seconds
        target = max(0.0, state.current_time + step)
        if state.duration > 0:
            target = min(target, state.duration)
        store.set_current_time(target)
    else:
        logger.debug(f"Unbound key: {char!r} ({name})")

    return True


def render_status(state: PlaybackState) -> str:
    """One-line summary of the current playback state."""
    if state.current_song is None:
        now_playing = "Nothing playing"
    else:
        now_playing = f"{state.current_song.artist} - {state.current_song.title}"

    icon = "▶" if state.is_playing else "⏸"
    position = f"{format_time(state.current_time)} / {format_time(state.duration)}"
    percent = progress_percent(state.current_time, state.duration)

    if state.queue_index >= 0:
        queue_info = f"[{state.queue_index + 1}/{len(state.queue)}]"
    else:
        queue_info = f"[-/{len(state.queue)}]"

    return (
        f"{icon} {now_playing}  {position} ({percent:.0f}%)  "
        f"vol {round(state.volume * 100)}%  repeat:{state.repeat_mode.value}  "
        f"shuffle:{'on' if state.is_shuffle else 'off'}  {queue_info}"
    )


def run_interactive(app: PlayerApp, term: Optional[Terminal] = None) -> None:
    """Run the key/poll/render loop until the user quits."""
    term = term or Terminal()
    interval = 1.0 / max(1, app.config.ui.refresh_rate)

    print(HELP_LINE)
    set_screen_mode(True)
    try:
        with term.cbreak(), term.hidden_cursor():
            running = True
            while running:
                key = term.inkey(timeout=interval)
                if key:
                    running = handle_key(app, key)

                app.tick()

                line = render_status(app.store.state)[: max(term.width - 1, 10)]
                print(term.move_x(0) + term.clear_eol + line, end="", flush=True)
    except KeyboardInterrupt:
        logger.info("Ctrl+C detected - exiting")
    finally:
        set_screen_mode(False)
        print()
