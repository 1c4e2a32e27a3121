from __future__ import annotations

from typing import Any
from urllib.parse import quote

from taskboard_client.http import HttpClient


class BoardApi:
    boards_path = "/boards"

    def __init__(self, http_client: HttpClient):
        self._http_client = http_client

    def list_boards(self, token: str | None, user_id: int) -> dict[str, Any]:
        return self._http_client.get_json(token, self.boards_path, params={"userId": user_id})

    def get_board(self, token: str | None, slug: str) -> dict[str, Any]:
        return self._http_client.get_json(token, f"{self.boards_path}/{quote(slug, safe='')}")

    def create_board(self, token: str | None, payload: dict[str, Any]) -> dict[str, Any]:
        return self._http_client.post_json(token, self.boards_path, payload)

    def update_board(self, token: str | None, board_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        return self._http_client.patch_json(token, f"{self.boards_path}/{board_id}", payload)

    def update_board_status(self, token: str | None, board_id: int, status: str) -> dict[str, Any]:
        return self._http_client.patch_json(
            token,
            f"{self.boards_path}/{board_id}/status",
            {"status": status},
        )

    def delete_board(self, token: str | None, board_id: int) -> dict[str, Any]:
        return self._http_client.delete(token, f"{self.boards_path}/{board_id}")
