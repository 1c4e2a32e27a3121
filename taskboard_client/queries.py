from __future__ import annotations

import logging
import time
from typing import Any, Callable

from taskboard_client.apis import BoardApi
from taskboard_client.auth import SessionStore
from taskboard_client.cache import CacheEntry, CacheStatus, EntityCache, QueryKey
from taskboard_client.http import ApiHttpError
from taskboard_client.models import Board, BoardPage

logger = logging.getLogger(__name__)

_EMPTY_PAGE: dict[str, Any] = {"content": [], "totalElements": 0}


class BoardKeys:
    ALL = QueryKey("boards")

    @staticmethod
    def list_for(user_id: int | None) -> QueryKey:
        return QueryKey("boards", "list", user_id or 0)

    @staticmethod
    def detail(slug: str) -> QueryKey:
        return QueryKey("boards", "detail", slug)


class BoardQueries:
    def __init__(
        self,
        board_api: BoardApi,
        cache: EntityCache,
        session: SessionStore,
        stale_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ):
        self._board_api = board_api
        self._cache = cache
        self._session = session
        self._stale_seconds = stale_seconds
        self._clock = clock

    def boards(self) -> list[Board]:
        return self.board_page().content

    def board_page(self) -> BoardPage:
        identity = self._session.identity
        if not identity.is_authenticated or identity.user_id is None:
            return BoardPage()

        entry = self._cache.get(BoardKeys.list_for(identity.user_id))
        if self._is_fresh(entry):
            return BoardPage.from_dict(entry.data)
        return BoardPage.from_dict(self.fetch_boards())

    def fetch_boards(self) -> dict[str, Any]:
        identity = self._session.identity
        if not identity.is_authenticated or identity.user_id is None:
            return dict(_EMPTY_PAGE)

        key = BoardKeys.list_for(identity.user_id)
        data = self._fetch(key, lambda: self._board_api.list_boards(identity.token, identity.user_id))
        return data if data is not None else dict(_EMPTY_PAGE)

    def board_detail(self, slug: str | None) -> Board:
        slug = (slug or "").strip()
        if not slug or slug in ("null", "undefined"):
            raise ValueError("Board slug is required")

        key = BoardKeys.detail(slug)
        entry = self._cache.get(key)
        if self._is_fresh(entry):
            return Board.from_dict(entry.data)

        token = self._session.identity.token
        data = self._fetch(key, lambda: self._board_api.get_board(token, slug))
        if data is None:
            raise LookupError(f"Board {slug!r} is no longer cached")
        return Board.from_dict(data)

    def _fetch(self, key: QueryKey, loader: Callable[[], dict[str, Any]]) -> Any:
        generation = self._cache.begin_fetch(key)
        try:
            data = loader()
        except Exception as exc:
            self._cache.fail_fetch(key, generation, str(exc))
            if isinstance(exc, ApiHttpError) and exc.is_auth_rejection:
                self._session.expire(exc.status_code)
            raise

        if not self._cache.complete_fetch(key, generation, data):
            logger.debug("Fetch for %r was cancelled, keeping cached data", key)
        return self._cache.get_data(key)

    def _is_fresh(self, entry: CacheEntry | None) -> bool:
        if entry is None or entry.status != CacheStatus.SUCCESS or entry.is_stale:
            return False
        return self._clock() - entry.last_updated < self._stale_seconds
