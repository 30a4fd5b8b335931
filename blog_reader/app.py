"""Interactive application state and the actions that transform it.

Nothing in here touches the terminal: the curses front end in ``tui`` reads
one key at a time, turns it into an :class:`Action` with :func:`key_to_action`
and hands it to :meth:`Controller.dispatch`. Check cycles run on a worker
thread and their reports are picked up by :meth:`Controller.poll` between
keys.
"""

from __future__ import annotations

import enum
import logging
import queue
import threading
import webbrowser
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional, Sequence

from .checker import check_and_save
from .models import (
    CheckReport,
    FeedUpdate,
    ManualUpdate,
    Source,
    SourceFailure,
    StateMapping,
)
from .templating import format_date

logger = logging.getLogger(__name__)

MAX_INFO_MESSAGES = 5

HELP_LINES = [
    "Press 'u' to check for updates.",
    "Press 'o' or Enter to open selected link.",
    "Press '/' to search/filter.",
    "Use j/k to scroll.",
    "Press g or G to go to first or last item.",
    "Press 'q' to quit.",
]


class Action(enum.Enum):
    UPDATE = "update"
    OPEN = "open"
    NEXT = "next"
    PREVIOUS = "previous"
    FIRST = "first"
    LAST = "last"
    SEARCH = "search"
    QUIT = "quit"


class Mode(enum.Enum):
    NORMAL = "normal"
    SEARCH = "search"


class ItemKind(enum.Enum):
    FEED = "feed"
    MANUAL = "manual"
    ERROR = "error"
    STATUS = "status"
    HELP = "help"


KEY_ACTIONS = {
    "u": Action.UPDATE,
    "o": Action.OPEN,
    "\n": Action.OPEN,
    "j": Action.NEXT,
    "k": Action.PREVIOUS,
    "g": Action.FIRST,
    "G": Action.LAST,
    "/": Action.SEARCH,
    "q": Action.QUIT,
}


def key_to_action(key: str) -> Optional[Action]:
    """Map a normal-mode key to its action, or None when unbound."""
    return KEY_ACTIONS.get(key)


@dataclass
class ListItem:
    text: str
    kind: ItemKind
    link: Optional[str] = None
    is_new: bool = False


@dataclass
class AppState:
    items: List[ListItem] = field(default_factory=list)
    info: Deque[str] = field(default_factory=lambda: deque(maxlen=MAX_INFO_MESSAGES))
    selected: Optional[int] = None
    query: str = ""
    mode: Mode = Mode.NORMAL
    checking: bool = False
    running: bool = True

    def visible_items(self) -> List[ListItem]:
        needle = self.query.lower()
        return [item for item in self.items if needle in item.text.lower()]

    def selected_item(self) -> Optional[ListItem]:
        visible = self.visible_items()
        if self.selected is None or not visible:
            return None
        return visible[min(self.selected, len(visible) - 1)]

    def add_info(self, message: str) -> None:
        self.info.append(f"[INFO] {message}")


def initial_state() -> AppState:
    state = AppState(items=[ListItem(line, ItemKind.HELP) for line in HELP_LINES])
    state.selected = 0
    return state


def move_selection(state: AppState, action: Action) -> None:
    """Apply a scroll action; NEXT and PREVIOUS wrap around."""
    count = len(state.visible_items())
    if count == 0:
        state.selected = None
        return

    current = state.selected
    if action is Action.FIRST:
        state.selected = 0
    elif action is Action.LAST:
        state.selected = count - 1
    elif action is Action.NEXT:
        state.selected = 0 if current is None or current >= count - 1 else current + 1
    elif action is Action.PREVIOUS:
        if current is None:
            state.selected = 0
        else:
            state.selected = count - 1 if current == 0 else min(current, count) - 1


def clamp_selection(state: AppState) -> None:
    count = len(state.visible_items())
    if count == 0:
        state.selected = None
    elif state.selected is None:
        state.selected = 0
    elif state.selected >= count:
        state.selected = count - 1


def feed_item_text(source_name: str, entry) -> str:
    if entry.published is not None:
        return f"[FEED] {format_date(entry.published)} | {source_name:<20} | {entry.title}"
    return f"[FEED] {source_name:<32} | {entry.title}"


def apply_report(
    state: AppState, report: CheckReport, save_error: Optional[str] = None
) -> None:
    """Append the outcome of a check cycle to the item list."""
    shown_links = {item.link for item in state.items if item.link}
    for result in report.results:
        if isinstance(result, FeedUpdate):
            for entry in result.new_entries:
                if entry.link and entry.link in shown_links:
                    continue
                shown_links.add(entry.link)
                state.items.append(
                    ListItem(
                        feed_item_text(result.source_name, entry),
                        ItemKind.FEED,
                        link=entry.link or None,
                        is_new=True,
                    )
                )
        elif isinstance(result, ManualUpdate):
            if result.changed:
                if result.url in shown_links:
                    for item in state.items:
                        if item.link == result.url:
                            item.is_new = True
                    state.add_info(f"{result.source_name} changed again")
                    continue
                shown_links.add(result.url)
                state.items.append(
                    ListItem(
                        f"[MANUAL] New content detected on {result.source_name}",
                        ItemKind.MANUAL,
                        link=result.url,
                        is_new=True,
                    )
                )
            else:
                state.add_info(f"No changes for {result.source_name}")
        elif isinstance(result, SourceFailure):
            state.items.append(
                ListItem(f"[ERROR] {result.source_name}: {result.error}", ItemKind.ERROR)
            )

    if save_error:
        state.items.append(
            ListItem(f"[ERROR] State not saved: {save_error}", ItemKind.ERROR)
        )

    state.add_info(
        f"Check finished: {report.new_entry_count} new, "
        f"{report.changed_count} changed, {len(report.failures)} failed"
    )
    clamp_selection(state)


class Controller:
    """Owns the application state and runs check cycles off the UI thread."""

    def __init__(
        self,
        sources: Sequence[Source],
        store,
        source_state: StateMapping,
        concurrency: int = 8,
        timeout: float = 10.0,
        max_seen_ids: Optional[int] = None,
        opener: Callable[[str], bool] = webbrowser.open,
        runner: Callable = check_and_save,
    ) -> None:
        self.sources = list(sources)
        self.store = store
        self.source_state = source_state
        self.options = {
            "concurrency": concurrency,
            "timeout": timeout,
            "max_seen_ids": max_seen_ids,
        }
        self.opener = opener
        self.runner = runner
        self.state = initial_state()
        self._results: "queue.Queue" = queue.Queue()
        self._worker: Optional[threading.Thread] = None

    def dispatch(self, action: Action) -> None:
        if action is Action.QUIT:
            self.state.running = False
        elif action is Action.UPDATE:
            self.request_check()
        elif action is Action.OPEN:
            self.open_selected()
        elif action is Action.SEARCH:
            self.state.mode = Mode.SEARCH
        else:
            move_selection(self.state, action)

    def handle_search_key(self, key: str) -> None:
        """Edit the filter query; Enter or Escape leaves search mode."""
        state = self.state
        if key in ("\n", "\x1b"):
            state.mode = Mode.NORMAL
        elif key in ("\b", "\x7f"):
            state.query = state.query[:-1]
        elif key.isprintable():
            state.query += key
        clamp_selection(state)

    def request_check(self) -> bool:
        """Start a check cycle unless one is already running."""
        state = self.state
        if state.checking:
            state.add_info("A check is already in progress.")
            return False
        if not self.sources:
            state.items.append(
                ListItem("[ERROR] No sources configured.", ItemKind.ERROR)
            )
            clamp_selection(state)
            return False

        state.checking = True
        for item in state.items:
            item.is_new = False
        state.items.append(ListItem("Checking for updates...", ItemKind.STATUS))
        state.query = ""
        state.selected = len(state.items) - 1

        self._worker = threading.Thread(
            target=self._run_check, name="check-cycle", daemon=True
        )
        self._worker.start()
        return True

    def _run_check(self) -> None:
        try:
            report, save_error = self.runner(
                self.store, self.sources, self.source_state, **self.options
            )
            self._results.put((report, save_error))
        except Exception as exc:  # noqa: BLE001 - surfaced as a status line
            logger.exception("Check cycle failed")
            self._results.put((None, exc))

    def wait(self, timeout: Optional[float] = None) -> None:
        if self._worker is not None:
            self._worker.join(timeout)

    def poll(self) -> bool:
        """Apply finished check cycles; returns True when anything changed."""
        updated = False
        while True:
            try:
                report, error = self._results.get_nowait()
            except queue.Empty:
                return updated
            updated = True
            self.state.checking = False
            if report is None:
                self.state.items.append(
                    ListItem(f"[ERROR] Check failed: {error}", ItemKind.ERROR)
                )
                clamp_selection(self.state)
                continue
            self.source_state = report.state
            apply_report(self.state, report, str(error) if error else None)

    def open_selected(self) -> None:
        item = self.state.selected_item()
        if item is None or not item.link:
            return
        try:
            opened = self.opener(item.link)
        except Exception as exc:  # noqa: BLE001 - webbrowser raises assorted errors
            logger.warning("Failed to open %s: %s", item.link, exc)
            self.state.items.append(
                ListItem(f"[ERROR] Failed to open link: {exc}", ItemKind.ERROR)
            )
            return
        if opened is False:
            self.state.items.append(
                ListItem(f"[ERROR] No browser available for {item.link}", ItemKind.ERROR)
            )
            return
        self.state.add_info(f"Opened {item.link}")
