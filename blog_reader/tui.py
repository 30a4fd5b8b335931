"""Curses front end for the interactive reader."""

from __future__ import annotations

import curses
import logging
from typing import Optional

from .app import Action, AppState, Controller, ItemKind, Mode, key_to_action

logger = logging.getLogger(__name__)

TICK_MS = 250
SEARCH_HEIGHT = 3
INFO_HEIGHT = 7
HIGHLIGHT_SYMBOL = ">> "

_SPECIAL_KEYS = {
    curses.KEY_DOWN: Action.NEXT,
    curses.KEY_UP: Action.PREVIOUS,
    curses.KEY_HOME: Action.FIRST,
    curses.KEY_END: Action.LAST,
    curses.KEY_ENTER: Action.OPEN,
}

# color pair numbers
_CYAN, _YELLOW, _RED, _MAGENTA, _GREEN = range(1, 6)

_KIND_COLORS = {
    ItemKind.FEED: _CYAN,
    ItemKind.MANUAL: _YELLOW,
    ItemKind.ERROR: _RED,
    ItemKind.STATUS: _MAGENTA,
}


def run_tui(controller: Controller) -> None:
    """Run the interactive loop until the user quits."""
    curses.wrapper(_main, controller)


def _main(stdscr, controller: Controller) -> None:
    curses.curs_set(0)
    stdscr.timeout(TICK_MS)
    stdscr.keypad(True)
    _init_colors()

    while controller.state.running:
        controller.poll()
        draw(stdscr, controller.state)
        key = _read_key(stdscr)
        if key is None:
            continue
        if isinstance(key, Action):
            if controller.state.mode is Mode.NORMAL:
                controller.dispatch(key)
            elif key is Action.OPEN:
                controller.handle_search_key("\n")
            continue
        if controller.state.mode is Mode.SEARCH:
            controller.handle_search_key(key)
            continue
        action = key_to_action(key)
        if action is not None:
            controller.dispatch(action)


def _read_key(stdscr):
    """Return a typed character, a special-key Action, or None on timeout."""
    try:
        key = stdscr.get_wch()
    except curses.error:
        return None
    if isinstance(key, int):
        if key == curses.KEY_BACKSPACE:
            return "\b"
        return _SPECIAL_KEYS.get(key)
    if key == "\r":
        return "\n"
    return key


def _init_colors() -> None:
    if not curses.has_colors():
        return
    curses.start_color()
    curses.use_default_colors()
    curses.init_pair(_CYAN, curses.COLOR_CYAN, -1)
    curses.init_pair(_YELLOW, curses.COLOR_YELLOW, -1)
    curses.init_pair(_RED, curses.COLOR_RED, -1)
    curses.init_pair(_MAGENTA, curses.COLOR_MAGENTA, -1)
    curses.init_pair(_GREEN, curses.COLOR_GREEN, -1)


def _color(pair: Optional[int]) -> int:
    if pair is None or not curses.has_colors():
        return curses.A_NORMAL
    return curses.color_pair(pair)


def _put(win, y: int, x: int, text: str, attr: int = curses.A_NORMAL) -> None:
    height, width = win.getmaxyx()
    if y >= height or x >= width:
        return
    try:
        win.addnstr(y, x, text, width - x - 1, attr)
    except curses.error:
        pass


def _panel(stdscr, top: int, height: int, title: str, attr: int = curses.A_NORMAL):
    _, width = stdscr.getmaxyx()
    win = stdscr.derwin(height, width, top, 0)
    win.attron(attr)
    win.box()
    win.attroff(attr)
    _put(win, 0, 2, f" {title} ", attr)
    return win


def _item_attr(item) -> int:
    if item.kind in (ItemKind.FEED, ItemKind.MANUAL) and not item.is_new:
        return curses.A_DIM
    return _color(_KIND_COLORS.get(item.kind))


def draw(stdscr, state: AppState) -> None:
    stdscr.erase()
    height, width = stdscr.getmaxyx()
    list_height = height - SEARCH_HEIGHT - INFO_HEIGHT
    if list_height < 3 or width < 20:
        _put(stdscr, 0, 0, "Terminal too small")
        stdscr.refresh()
        return

    items_win = _panel(stdscr, 0, list_height, "Blog Updates")
    visible = state.visible_items()
    rows = list_height - 2
    selected = state.selected if state.selected is not None else -1
    offset = max(0, selected - rows + 1)
    for row, item in enumerate(visible[offset:offset + rows]):
        index = offset + row
        attr = _item_attr(item)
        prefix = " " * len(HIGHLIGHT_SYMBOL)
        if index == selected:
            attr |= curses.A_BOLD | curses.A_REVERSE
            prefix = HIGHLIGHT_SYMBOL
        _put(items_win, row + 1, 1, prefix + item.text, attr)

    search_attr = _color(_YELLOW) if state.mode is Mode.SEARCH else curses.A_NORMAL
    search_win = _panel(stdscr, list_height, SEARCH_HEIGHT, "Search", search_attr)
    _put(search_win, 1, 1, state.query, search_attr)

    info_win = _panel(
        stdscr, list_height + SEARCH_HEIGHT, INFO_HEIGHT, "Info", _color(_GREEN)
    )
    for row, message in enumerate(state.info):
        _put(info_win, row + 1, 1, message, _color(_GREEN))

    stdscr.refresh()
