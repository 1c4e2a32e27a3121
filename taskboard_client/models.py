from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class BoardStatus(str, Enum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    STOPPED = "STOPPED"
    ABANDONED = "ABANDONED"


class BoardType(str, Enum):
    INDIVIDUAL = "INDIVIDUAL"
    TEAM = "TEAM"


@dataclass(frozen=True)
class Identity:
    user_id: int | None = None
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    deletion_scheduled_at: str | None = None
    token: str | None = None
    refresh_token: str | None = None
    is_authenticated: bool = False
    is_validating: bool = False

    @staticmethod
    def anonymous() -> "Identity":
        return Identity()

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "username": self.username,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "deletionScheduledAt": self.deletion_scheduled_at,
            "token": self.token,
            "refreshToken": self.refresh_token,
            "isAuthenticated": self.is_authenticated,
        }

    @staticmethod
    def from_snapshot(state: dict[str, Any]) -> "Identity":
        user_id = state.get("userId")
        is_authenticated = bool(state.get("isAuthenticated")) and isinstance(user_id, int)
        return Identity(
            user_id=user_id if isinstance(user_id, int) else None,
            username=state.get("username"),
            first_name=state.get("firstName"),
            last_name=state.get("lastName"),
            deletion_scheduled_at=state.get("deletionScheduledAt"),
            token=state.get("token"),
            refresh_token=state.get("refreshToken"),
            is_authenticated=is_authenticated,
        )


@dataclass(frozen=True)
class Board:
    id: int
    name: str
    slug: str = ""
    status: BoardStatus = BoardStatus.PLANNED
    board_type: BoardType = BoardType.INDIVIDUAL
    link: str | None = None
    description: str | None = None
    deadline: str | None = None
    category: str | None = None
    owner_name: str | None = None

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Board":
        return Board(
            id=int(data["id"]),
            name=str(data.get("name", "")),
            slug=str(data.get("slug") or ""),
            status=BoardStatus(data.get("status") or BoardStatus.PLANNED.value),
            board_type=BoardType(data.get("boardType") or BoardType.INDIVIDUAL.value),
            link=data.get("link"),
            description=data.get("description"),
            deadline=data.get("deadline"),
            category=data.get("category"),
            owner_name=data.get("ownerName"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "status": self.status.value,
            "boardType": self.board_type.value,
            "link": self.link,
            "description": self.description,
            "deadline": self.deadline,
            "category": self.category,
            "ownerName": self.owner_name,
        }


@dataclass(frozen=True)
class BoardPage:
    content: list[Board] = field(default_factory=list)
    total_elements: int = 0

    @staticmethod
    def from_dict(data: dict[str, Any] | None) -> "BoardPage":
        if not data:
            return BoardPage()
        content = [Board.from_dict(item) for item in data.get("content") or []]
        total = data.get("totalElements")
        return BoardPage(
            content=content,
            total_elements=int(total) if total is not None else len(content),
        )
