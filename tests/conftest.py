from __future__ import annotations

from typing import Any, Callable

import pytest

from taskboard_client.auth import SessionStore
from taskboard_client.cache import EntityCache
from taskboard_client.mutations import MutationEngine, Notifier
from taskboard_client.preferences import PreferenceStore
from taskboard_client.queries import BoardKeys, BoardQueries
from taskboard_client.storage import StateStore


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.successes: list[str] = []
        self.errors: list[str] = []

    def success(self, message: str) -> None:
        self.successes.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


class FakeApi:
    """Records calls; returns ``results[name]`` or raises ``errors[name]``."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.results: dict[str, Any] = {}
        self.errors: dict[str, Exception] = {}
        self.hooks: dict[str, Callable[..., None]] = {}

    def _call(self, name: str, *args: Any) -> Any:
        self.calls.append((name, args))
        hook = self.hooks.get(name)
        if hook is not None:
            hook(*args)
        if name in self.errors:
            raise self.errors[name]
        return self.results.get(name, {})

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call_name, args in self.calls if call_name == name]


class FakeAuthApi(FakeApi):
    def login(self, username: str, password: str) -> dict[str, Any]:
        return self._call("login", username, password)

    def logout(self, token: str | None, refresh_token: str | None) -> dict[str, Any]:
        return self._call("logout", token, refresh_token)

    def me(self, token: str | None) -> dict[str, Any]:
        return self._call("me", token)


class FakeBoardApi(FakeApi):
    def list_boards(self, token: str | None, user_id: int) -> dict[str, Any]:
        return self._call("list_boards", token, user_id)

    def get_board(self, token: str | None, slug: str) -> dict[str, Any]:
        return self._call("get_board", token, slug)

    def create_board(self, token: str | None, payload: dict[str, Any]) -> dict[str, Any]:
        return self._call("create_board", token, payload)

    def update_board(self, token: str | None, board_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        return self._call("update_board", token, board_id, payload)

    def update_board_status(self, token: str | None, board_id: int, status: str) -> dict[str, Any]:
        return self._call("update_board_status", token, board_id, status)

    def delete_board(self, token: str | None, board_id: int) -> dict[str, Any]:
        return self._call("delete_board", token, board_id)


def make_board(board_id: int, name: str, status: str = "PLANNED", **extra: Any) -> dict[str, Any]:
    board = {
        "id": board_id,
        "name": name,
        "slug": name.lower().replace(" ", "-"),
        "status": status,
        "boardType": "INDIVIDUAL",
    }
    board.update(extra)
    return board


LOGIN_PAYLOAD = {
    "id": 1,
    "username": "alice",
    "token": "access-1",
    "refreshToken": "refresh-1",
}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> EntityCache:
    return EntityCache(clock=clock)


@pytest.fixture
def state_store(tmp_path) -> StateStore:
    return StateStore(str(tmp_path / "state"))


@pytest.fixture
def auth_api() -> FakeAuthApi:
    return FakeAuthApi()


@pytest.fixture
def board_api() -> FakeBoardApi:
    return FakeBoardApi()


@pytest.fixture
def session(auth_api: FakeAuthApi, cache: EntityCache, state_store: StateStore) -> SessionStore:
    store = SessionStore(auth_api, cache, state_store)
    store.login(LOGIN_PAYLOAD)
    return store


@pytest.fixture
def preferences(state_store: StateStore) -> PreferenceStore:
    return PreferenceStore(state_store)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def engine(cache: EntityCache, notifier: RecordingNotifier, clock: FakeClock) -> MutationEngine:
    return MutationEngine(cache, notifier, clock=clock)


@pytest.fixture
def queries(board_api: FakeBoardApi, cache: EntityCache, session: SessionStore, clock: FakeClock) -> BoardQueries:
    return BoardQueries(board_api, cache, session, stale_seconds=300, clock=clock)


@pytest.fixture
def list_key():
    return BoardKeys.list_for(LOGIN_PAYLOAD["id"])
