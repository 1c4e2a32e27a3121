from __future__ import annotations

from dataclasses import dataclass, field
import logging
import time
from typing import Any, Callable, Mapping

from taskboard_client.apis import BoardApi
from taskboard_client.auth import SessionStore
from taskboard_client.cache import CacheEntry, EntityCache, QueryKey
from taskboard_client.http import ApiHttpError
from taskboard_client.models import BoardStatus, BoardType
from taskboard_client.preferences import PreferenceStore
from taskboard_client.queries import BoardKeys

logger = logging.getLogger(__name__)

DUPLICATE_NAME_MESSAGE = "A board with this name already exists"

_EDITABLE_FIELDS = ("name", "status", "link", "description", "deadline", "category", "boardType")


class MutationError(RuntimeError):
    def __init__(self, user_message: str, status_code: int | None = None):
        super().__init__(user_message)
        self.user_message = user_message
        self.status_code = status_code


class NotAuthenticatedError(MutationError):
    pass


class InvalidMutationError(MutationError):
    pass


class DuplicateNameError(MutationError):
    pass


class MutationFailedError(MutationError):
    pass


@dataclass
class MutationRecord:
    variables: Any
    key: QueryKey | None
    previous_snapshot: CacheEntry | None
    applied_at: float


class Notifier:
    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.error(message)


class Mutation:
    name = "mutation"
    success_message = "Saved"
    failure_message = "The change could not be saved"
    conflict_message: str | None = None

    def cancel_selector(self, variables: Any) -> QueryKey | None:
        return None

    def target_key(self, variables: Any) -> QueryKey | None:
        return None

    def optimistic_update(self, data: Any, variables: Any) -> Any:
        return data

    def execute(self, variables: Any) -> Any:
        raise NotImplementedError

    def reconcile(self, cache: EntityCache, result: Any, record: MutationRecord) -> None:
        pass

    def on_settled(self, record: MutationRecord, error: MutationError | None) -> None:
        pass

    def settle_selector(self, variables: Any) -> QueryKey | None:
        return None


class MutationEngine:
    def __init__(
        self,
        cache: EntityCache,
        notifier: Notifier | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._cache = cache
        self._notifier = notifier or Notifier()
        self._clock = clock

    def mutate(self, mutation: Mutation, variables: Any) -> Any:
        record = self._prepare(mutation, variables)
        error: MutationError | None = None
        try:
            result = mutation.execute(variables)
        except Exception as exc:
            error = self._classify(mutation, exc)
            self._rollback(record)
            logger.warning("%s failed: %s", mutation.name, exc)
            self._notifier.error(error.user_message)
            if error is exc:
                raise
            raise error from exc
        else:
            mutation.reconcile(self._cache, result, record)
            self._notifier.success(mutation.success_message)
            return result
        finally:
            self._finalize(mutation, record, error)

    def _prepare(self, mutation: Mutation, variables: Any) -> MutationRecord:
        cancel_selector = mutation.cancel_selector(variables)
        if cancel_selector is not None:
            self._cache.cancel(cancel_selector)

        key = mutation.target_key(variables)
        previous = None
        if key is not None:
            previous = self._cache.patch(key, lambda data: mutation.optimistic_update(data, variables))

        return MutationRecord(
            variables=variables,
            key=key,
            previous_snapshot=previous,
            applied_at=self._clock(),
        )

    def _rollback(self, record: MutationRecord) -> None:
        if record.previous_snapshot is not None:
            self._cache.restore(record.previous_snapshot)

    def _finalize(self, mutation: Mutation, record: MutationRecord, error: MutationError | None) -> None:
        mutation.on_settled(record, error)
        selector = mutation.settle_selector(record.variables)
        if selector is not None:
            self._cache.invalidate(selector)

    @staticmethod
    def _classify(mutation: Mutation, exc: Exception) -> MutationError:
        if isinstance(exc, MutationError):
            return exc
        if isinstance(exc, ApiHttpError):
            if exc.status_code == 409 and mutation.conflict_message:
                return DuplicateNameError(mutation.conflict_message, status_code=409)
            return MutationFailedError(mutation.failure_message, status_code=exc.status_code)
        return MutationFailedError(mutation.failure_message)


@dataclass(frozen=True)
class CreateBoardInput:
    name: str
    status: BoardStatus = BoardStatus.PLANNED
    board_type: BoardType = BoardType.INDIVIDUAL
    link: str | None = None
    description: str | None = None
    deadline: str | None = None
    category: str | None = None


@dataclass(frozen=True)
class UpdateBoardInput:
    board_id: int
    changes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StatusChangeInput:
    board_id: int
    status: BoardStatus


class BoardMutation(Mutation):
    def __init__(self, board_api: BoardApi, session: SessionStore):
        self._board_api = board_api
        self._session = session

    def cancel_selector(self, variables: Any) -> QueryKey:
        return BoardKeys.ALL

    def settle_selector(self, variables: Any) -> QueryKey:
        return BoardKeys.ALL

    def on_settled(self, record: MutationRecord, error: MutationError | None) -> None:
        if error is not None and error.status_code in (401, 403):
            self._session.expire(error.status_code)

    def _list_key(self) -> QueryKey:
        return BoardKeys.list_for(self._session.identity.user_id)

    @staticmethod
    def _require_board_id(board_id: Any) -> int:
        if isinstance(board_id, bool) or not isinstance(board_id, int) or board_id <= 0:
            raise InvalidMutationError(f"Invalid board id: {board_id!r}")
        return board_id

    @staticmethod
    def _write_server_board(cache: EntityCache, record: MutationRecord, board: Any) -> None:
        if not isinstance(board, dict) or "id" not in board:
            return

        if record.key is not None:
            cache.patch(record.key, lambda data: _merge_row(data, board["id"], board))

        slug = board.get("slug")
        if slug and cache.get(BoardKeys.detail(slug)) is not None:
            cache.set(BoardKeys.detail(slug), board)


class CreateBoard(BoardMutation):
    name = "create board"
    success_message = "Board created"
    failure_message = "Board could not be created"
    conflict_message = DUPLICATE_NAME_MESSAGE

    def execute(self, variables: CreateBoardInput) -> dict[str, Any]:
        identity = self._session.identity
        if not identity.is_authenticated or identity.user_id is None:
            raise NotAuthenticatedError("User not authenticated")

        name = (variables.name or "").strip()
        if not name:
            raise InvalidMutationError("Board name is required")

        payload: dict[str, Any] = {
            "name": name,
            "status": _status_value(variables.status),
            "boardType": _board_type_value(variables.board_type),
            "userId": identity.user_id,
        }
        for wire_name, value in (
            ("link", variables.link),
            ("description", variables.description),
            ("deadline", variables.deadline),
            ("category", variables.category),
        ):
            if value is not None:
                payload[wire_name] = value

        return self._board_api.create_board(identity.token, payload)


class UpdateBoard(BoardMutation):
    name = "update board"
    success_message = "Board updated"
    failure_message = "Board could not be updated"
    conflict_message = DUPLICATE_NAME_MESSAGE

    def target_key(self, variables: UpdateBoardInput) -> QueryKey:
        return self._list_key()

    def optimistic_update(self, data: Any, variables: UpdateBoardInput) -> Any:
        try:
            changes = _normalize_changes(variables.changes)
        except InvalidMutationError:
            return data
        return _merge_row(data, variables.board_id, changes)

    def execute(self, variables: UpdateBoardInput) -> dict[str, Any]:
        board_id = self._require_board_id(variables.board_id)
        changes = _normalize_changes(variables.changes)
        if not changes:
            raise InvalidMutationError("Nothing to update")
        if "name" in changes and not str(changes["name"]).strip():
            raise InvalidMutationError("Board name is required")

        identity = self._session.identity
        payload = dict(changes)
        if identity.user_id is not None:
            payload["userId"] = identity.user_id
        return self._board_api.update_board(identity.token, board_id, payload)

    def reconcile(self, cache: EntityCache, result: Any, record: MutationRecord) -> None:
        self._write_server_board(cache, record, result)


class UpdateBoardStatus(BoardMutation):
    name = "update board status"
    success_message = "Status updated"
    failure_message = "Status could not be updated"

    def target_key(self, variables: StatusChangeInput) -> QueryKey:
        return self._list_key()

    def optimistic_update(self, data: Any, variables: StatusChangeInput) -> Any:
        try:
            status = _status_value(variables.status)
        except InvalidMutationError:
            return data
        return _merge_row(data, variables.board_id, {"status": status})

    def execute(self, variables: StatusChangeInput) -> dict[str, Any]:
        board_id = self._require_board_id(variables.board_id)
        status = _status_value(variables.status)
        return self._board_api.update_board_status(self._session.identity.token, board_id, status)

    def reconcile(self, cache: EntityCache, result: Any, record: MutationRecord) -> None:
        self._write_server_board(cache, record, result)


class DeleteBoard(BoardMutation):
    name = "delete board"
    success_message = "Board deleted"
    failure_message = "Board could not be deleted"

    def __init__(
        self,
        board_api: BoardApi,
        session: SessionStore,
        preferences: PreferenceStore | None = None,
    ):
        super().__init__(board_api, session)
        self._preferences = preferences

    def target_key(self, variables: int) -> QueryKey:
        return self._list_key()

    def optimistic_update(self, data: Any, variables: int) -> Any:
        return _remove_row(data, variables)

    def execute(self, variables: int) -> dict[str, Any]:
        board_id = self._require_board_id(variables)
        return self._board_api.delete_board(self._session.identity.token, board_id)

    def on_settled(self, record: MutationRecord, error: MutationError | None) -> None:
        super().on_settled(record, error)
        if error is None and self._preferences is not None:
            self._preferences.unpin_board(record.variables)


def _normalize_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    unknown = [name for name in changes if name not in _EDITABLE_FIELDS]
    if unknown:
        raise InvalidMutationError("Unknown board fields: " + ", ".join(sorted(unknown)))

    normalized = dict(changes)
    if "status" in normalized:
        normalized["status"] = _status_value(normalized["status"])
    if "boardType" in normalized:
        normalized["boardType"] = _board_type_value(normalized["boardType"])
    return normalized


def _status_value(status: Any) -> str:
    try:
        return BoardStatus(status).value
    except ValueError as exc:
        raise InvalidMutationError(f"Unknown board status: {status!r}") from exc


def _board_type_value(board_type: Any) -> str:
    try:
        return BoardType(board_type).value
    except ValueError as exc:
        raise InvalidMutationError(f"Unknown board type: {board_type!r}") from exc


def _rows(data: Any) -> list[dict[str, Any]] | None:
    if isinstance(data, dict) and isinstance(data.get("content"), list):
        return data["content"]
    return None


def _merge_row(data: Any, board_id: int, changes: Mapping[str, Any]) -> Any:
    rows = _rows(data)
    if rows is None:
        return data
    data["content"] = [
        {**row, **changes} if row.get("id") == board_id else row
        for row in rows
    ]
    return data


def _remove_row(data: Any, board_id: int) -> Any:
    rows = _rows(data)
    if rows is None:
        return data
    remaining = [row for row in rows if row.get("id") != board_id]
    removed = len(rows) - len(remaining)
    data["content"] = remaining
    if removed and isinstance(data.get("totalElements"), int):
        data["totalElements"] = max(0, data["totalElements"] - removed)
    return data
