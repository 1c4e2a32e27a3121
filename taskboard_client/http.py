from __future__ import annotations

import logging
import time
from typing import Any

import requests

from taskboard_client.config import AppSettings

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


class ApiHttpError(RuntimeError):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_auth_rejection(self) -> bool:
        return self.status_code in (401, 403)


class ApiNetworkError(ApiHttpError):
    def __init__(self, message: str):
        super().__init__(status_code=0, message=message)


class HttpClient:
    def __init__(self, settings: AppSettings, session: requests.Session | None = None):
        self._settings = settings
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )

    def get_json(
        self,
        token: str | None,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        last_error: ApiHttpError | None = None
        attempts = self._settings.retry_attempts + 1
        for attempt in range(1, attempts + 1):
            try:
                return self._request("GET", token, path, params=params)
            except ApiHttpError as exc:
                last_error = exc
                retryable = isinstance(exc, ApiNetworkError) or exc.status_code in _RETRYABLE_STATUS_CODES
                if retryable and attempt < attempts:
                    logger.debug("GET %s failed (%s), retrying (%s/%s)", path, exc, attempt, attempts - 1)
                    time.sleep(1.5 * attempt)
                    continue
                raise

        if last_error is None:
            raise ApiHttpError(status_code=0, message="Request failed")
        raise last_error

    def post_json(self, token: str | None, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", token, path, payload=payload)

    def patch_json(self, token: str | None, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("PATCH", token, path, payload=payload)

    def delete(self, token: str | None, path: str) -> dict[str, Any]:
        return self._request("DELETE", token, path)

    def _request(
        self,
        method: str,
        token: str | None,
        path: str,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._settings.base_url}{path}"
        headers = {"Authorization": f"Bearer {token}"} if token else {}

        try:
            response = self._session.request(
                method,
                url,
                headers=headers,
                json=payload,
                params=params,
                timeout=self._settings.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise ApiNetworkError(f"{method} {path} failed: {exc}") from exc

        if response.ok:
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError:
                logger.debug("%s %s returned a non-JSON body, ignoring it", method, path)
                return {}

        message = response.text[:500]
        raise ApiHttpError(
            status_code=response.status_code,
            message=f"HTTP {response.status_code}: {message}",
        )
