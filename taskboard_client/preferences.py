from __future__ import annotations

from functools import cmp_to_key
import logging
import threading
from typing import Any, Iterable

from taskboard_client.models import Board
from taskboard_client.storage import StateStore

logger = logging.getLogger(__name__)

PREFERENCES_STATE_KEY = "ui-preferences"
MAX_PINNED_BOARDS = 5

VIEW_MODES = ("grid", "list")
SORT_FIELDS = ("alphabetic", "date", "deadline")
SORT_DIRECTIONS = ("asc", "desc")


class PreferenceStore:
    def __init__(self, state_store: StateStore | None = None):
        self._state_store = state_store
        self._lock = threading.RLock()
        self._view_mode = "grid"
        self._sort_field = "alphabetic"
        self._sort_direction = "asc"
        self._is_panel_open = True
        self._pinned_board_ids: list[int] = []
        self.restore()

    @property
    def view_mode(self) -> str:
        return self._view_mode

    @property
    def sort_field(self) -> str:
        return self._sort_field

    @property
    def sort_direction(self) -> str:
        return self._sort_direction

    @property
    def is_panel_open(self) -> bool:
        return self._is_panel_open

    @property
    def pinned_board_ids(self) -> tuple[int, ...]:
        with self._lock:
            return tuple(self._pinned_board_ids)

    def restore(self) -> None:
        if self._state_store is None:
            return
        state = self._state_store.load(PREFERENCES_STATE_KEY)
        if state is None:
            return

        with self._lock:
            if state.get("viewMode") in VIEW_MODES:
                self._view_mode = state["viewMode"]
            if state.get("sortField") in SORT_FIELDS:
                self._sort_field = state["sortField"]
            if state.get("sortDirection") in SORT_DIRECTIONS:
                self._sort_direction = state["sortDirection"]
            if isinstance(state.get("isPanelOpen"), bool):
                self._is_panel_open = state["isPanelOpen"]
            self._pinned_board_ids = _restore_pins(state.get("pinnedBoardIds"))

    def save(self) -> None:
        if self._state_store is None:
            return
        self._state_store.save(PREFERENCES_STATE_KEY, self.to_snapshot())

    def to_snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "viewMode": self._view_mode,
                "sortField": self._sort_field,
                "sortDirection": self._sort_direction,
                "pinnedBoardIds": list(self._pinned_board_ids),
                "isPanelOpen": self._is_panel_open,
            }

    def is_pinned(self, board_id: int) -> bool:
        with self._lock:
            return board_id in self._pinned_board_ids

    def toggle_pin_board(self, board_id: int) -> bool:
        with self._lock:
            if board_id in self._pinned_board_ids:
                self._pinned_board_ids.remove(board_id)
                pinned = False
            elif len(self._pinned_board_ids) >= MAX_PINNED_BOARDS:
                logger.debug("Pin limit reached, not pinning board %s", board_id)
                return False
            else:
                self._pinned_board_ids.append(board_id)
                pinned = True
        self.save()
        return pinned

    def unpin_board(self, board_id: int) -> bool:
        with self._lock:
            if board_id not in self._pinned_board_ids:
                return False
            self._pinned_board_ids.remove(board_id)
        self.save()
        return True

    def set_view_mode(self, mode: str) -> None:
        self._set_choice("_view_mode", mode, VIEW_MODES)

    def set_sort_field(self, field: str) -> None:
        self._set_choice("_sort_field", field, SORT_FIELDS)

    def set_sort_direction(self, direction: str) -> None:
        self._set_choice("_sort_direction", direction, SORT_DIRECTIONS)

    def toggle_panel(self) -> bool:
        with self._lock:
            self._is_panel_open = not self._is_panel_open
            is_open = self._is_panel_open
        self.save()
        return is_open

    def arrange(self, boards: Iterable[Board]) -> list[Board]:
        boards = list(boards)
        pinned_ids = self.pinned_board_ids
        by_id = {board.id: board for board in boards}
        pinned = [by_id[board_id] for board_id in pinned_ids if board_id in by_id]
        rest = [board for board in boards if board.id not in pinned_ids]

        compare = _COMPARATORS[self._sort_field]
        if self._sort_direction == "desc":
            rest.sort(key=cmp_to_key(lambda a, b: -compare(a, b)))
        else:
            rest.sort(key=cmp_to_key(compare))
        return pinned + rest

    def _set_choice(self, attribute: str, value: str, choices: tuple[str, ...]) -> None:
        if value not in choices:
            raise ValueError(f"Expected one of {', '.join(choices)}, got {value!r}")
        with self._lock:
            setattr(self, attribute, value)
        self.save()


def _restore_pins(raw: Any) -> list[int]:
    if not isinstance(raw, list):
        return []
    pins: list[int] = []
    for value in raw:
        if isinstance(value, int) and not isinstance(value, bool) and value not in pins:
            pins.append(value)
    if len(pins) > MAX_PINNED_BOARDS:
        logger.warning("Stored pins exceed the limit of %d, keeping the first ones", MAX_PINNED_BOARDS)
        pins = pins[:MAX_PINNED_BOARDS]
    return pins


def _compare(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _compare_names(a: Board, b: Board) -> int:
    return _compare(a.name.casefold(), b.name.casefold())


def _compare_ids(a: Board, b: Board) -> int:
    return _compare(a.id, b.id)


def _compare_deadlines(a: Board, b: Board) -> int:
    if not a.deadline and not b.deadline:
        return 0
    if not a.deadline:
        return 1
    if not b.deadline:
        return -1
    return _compare(a.deadline, b.deadline)


_COMPARATORS = {
    "alphabetic": _compare_names,
    "date": _compare_ids,
    "deadline": _compare_deadlines,
}
