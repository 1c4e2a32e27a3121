from __future__ import annotations

from typing import Any

from taskboard_client.apis import BoardApi
from taskboard_client.auth import SessionStore
from taskboard_client.cache import EntityCache
from taskboard_client.models import Board, BoardStatus, BoardType, Identity
from taskboard_client.mutations import (
    CreateBoard,
    CreateBoardInput,
    DeleteBoard,
    MutationEngine,
    StatusChangeInput,
    UpdateBoard,
    UpdateBoardInput,
    UpdateBoardStatus,
)
from taskboard_client.preferences import PreferenceStore
from taskboard_client.queries import BoardQueries

_FIELD_NAMES = {
    "name": "name",
    "status": "status",
    "link": "link",
    "description": "description",
    "deadline": "deadline",
    "category": "category",
    "board_type": "boardType",
}


class BoardClientService:
    def __init__(
        self,
        session: SessionStore,
        cache: EntityCache,
        board_api: BoardApi,
        queries: BoardQueries,
        engine: MutationEngine,
        preferences: PreferenceStore,
    ):
        self._session = session
        self._cache = cache
        self._queries = queries
        self._engine = engine
        self._preferences = preferences
        self._create_board = CreateBoard(board_api, session)
        self._update_board = UpdateBoard(board_api, session)
        self._update_board_status = UpdateBoardStatus(board_api, session)
        self._delete_board = DeleteBoard(board_api, session, preferences)

    @property
    def cache(self) -> EntityCache:
        return self._cache

    @property
    def preferences(self) -> PreferenceStore:
        return self._preferences

    def identity(self) -> Identity:
        return self._session.identity

    def sign_in(self, username: str, password: str) -> Identity:
        return self._session.sign_in(username, password)

    def sign_out(self) -> None:
        self._session.logout()

    def validate_session(self) -> bool:
        return self._session.validate_session()

    def boards(self) -> list[Board]:
        return self._queries.boards()

    def arranged_boards(self) -> list[Board]:
        return self._preferences.arrange(self._queries.boards())

    def pinned_boards(self) -> list[Board]:
        by_id = {board.id: board for board in self._queries.boards()}
        return [by_id[board_id] for board_id in self._preferences.pinned_board_ids if board_id in by_id]

    def board_detail(self, slug: str) -> Board:
        return self._queries.board_detail(slug)

    def create_board(
        self,
        name: str,
        status: BoardStatus | str = BoardStatus.PLANNED,
        board_type: BoardType | str = BoardType.INDIVIDUAL,
        link: str | None = None,
        description: str | None = None,
        deadline: str | None = None,
        category: str | None = None,
    ) -> Board | None:
        variables = CreateBoardInput(
            name=name,
            status=status,
            board_type=board_type,
            link=link,
            description=description,
            deadline=deadline,
            category=category,
        )
        return _to_board(self._engine.mutate(self._create_board, variables))

    def update_board(self, board_id: int, **changes: Any) -> Board | None:
        unknown = sorted(name for name in changes if name not in _FIELD_NAMES)
        if unknown:
            raise TypeError("Unexpected board fields: " + ", ".join(unknown))

        wire_changes = {
            _FIELD_NAMES[name]: value.value if isinstance(value, (BoardStatus, BoardType)) else value
            for name, value in changes.items()
        }
        variables = UpdateBoardInput(board_id=board_id, changes=wire_changes)
        return _to_board(self._engine.mutate(self._update_board, variables))

    def update_board_status(self, board_id: int, status: BoardStatus | str) -> Board | None:
        variables = StatusChangeInput(board_id=board_id, status=status)
        return _to_board(self._engine.mutate(self._update_board_status, variables))

    def delete_board(self, board_id: int) -> None:
        self._engine.mutate(self._delete_board, board_id)

    def toggle_pin_board(self, board_id: int) -> bool:
        return self._preferences.toggle_pin_board(board_id)


def _to_board(result: Any) -> Board | None:
    if isinstance(result, dict) and "id" in result:
        return Board.from_dict(result)
    return None
