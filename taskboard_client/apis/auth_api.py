from __future__ import annotations

from typing import Any

from taskboard_client.http import HttpClient


class AuthApi:
    login_path = "/auth/login"
    logout_path = "/auth/logout"
    me_path = "/auth/me"

    def __init__(self, http_client: HttpClient):
        self._http_client = http_client

    def login(self, username: str, password: str) -> dict[str, Any]:
        payload = {"username": username, "password": password}
        return self._http_client.post_json(None, self.login_path, payload)

    def logout(self, token: str | None, refresh_token: str | None) -> dict[str, Any]:
        payload = {"refreshToken": refresh_token} if refresh_token else {}
        return self._http_client.post_json(token, self.logout_path, payload)

    def me(self, token: str | None) -> dict[str, Any]:
        return self._http_client.get_json(token, self.me_path)
