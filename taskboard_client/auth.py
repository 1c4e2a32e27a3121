from __future__ import annotations

from dataclasses import replace
from enum import Enum
import logging
import threading
from typing import Any, Mapping

from taskboard_client.apis import AuthApi
from taskboard_client.cache import EntityCache
from taskboard_client.http import ApiHttpError
from taskboard_client.models import Identity
from taskboard_client.storage import StateStore

logger = logging.getLogger(__name__)

AUTH_STATE_KEY = "auth"

_PROFILE_FIELDS = (
    ("username", "username"),
    ("firstName", "first_name"),
    ("lastName", "last_name"),
    ("deletionScheduledAt", "deletion_scheduled_at"),
)


class AuthenticationError(RuntimeError):
    pass


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


class SessionStore:
    def __init__(
        self,
        auth_api: AuthApi,
        cache: EntityCache,
        state_store: StateStore | None = None,
    ):
        self._auth_api = auth_api
        self._cache = cache
        self._state_store = state_store
        self._lock = threading.RLock()
        self._identity = Identity.anonymous()
        self.restore()

    @property
    def identity(self) -> Identity:
        with self._lock:
            return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self.identity.is_authenticated

    @property
    def state(self) -> SessionState:
        if self.is_authenticated:
            return SessionState.AUTHENTICATED
        return SessionState.ANONYMOUS

    def restore(self) -> Identity:
        if self._state_store is None:
            return self.identity

        snapshot = self._state_store.load(AUTH_STATE_KEY)
        if snapshot is None:
            return self.identity

        with self._lock:
            self._identity = Identity.from_snapshot(snapshot)
            identity = self._identity
        if identity.is_authenticated:
            logger.debug("Restored session for user %s", identity.user_id)
        return identity

    def save(self) -> None:
        if self._state_store is None:
            return
        self._state_store.save(AUTH_STATE_KEY, self.identity.to_snapshot())

    def sign_in(self, username: str, password: str) -> Identity:
        username = (username or "").strip()
        if not username or not password:
            raise AuthenticationError("Username and password are required")

        try:
            response = self._auth_api.login(username, password)
        except ApiHttpError as exc:
            if exc.is_auth_rejection:
                raise AuthenticationError("Invalid username or password") from exc
            raise AuthenticationError(f"Sign in failed: {exc}") from exc

        return self.login(response)

    def login(self, data: Mapping[str, Any]) -> Identity:
        raw_user_id = data.get("id")
        if isinstance(raw_user_id, bool) or not isinstance(raw_user_id, int):
            if raw_user_id is not None:
                logger.warning("Ignoring non-integer user id %r in login response", raw_user_id)
            raw_user_id = None
        identity = Identity(
            user_id=raw_user_id,
            username=data.get("username"),
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            deletion_scheduled_at=data.get("deletionScheduledAt"),
            token=data.get("token"),
            refresh_token=data.get("refreshToken"),
            is_authenticated=True,
        )

        with self._lock:
            previous_user_id = self._identity.user_id
            self._identity = identity

        if previous_user_id != identity.user_id:
            self._cache.clear()
        self.save()
        logger.info("Signed in as %s", identity.username)
        return identity

    def logout(self) -> None:
        identity = self.identity
        try:
            if identity.token or identity.refresh_token:
                try:
                    self._auth_api.logout(identity.token, identity.refresh_token)
                except ApiHttpError as exc:
                    logger.warning("Backend logout failed, clearing local session anyway: %s", exc)
        finally:
            self._clear_session()

    def validate_session(self) -> bool:
        identity = self.identity
        if not identity.is_authenticated:
            return False

        with self._lock:
            self._identity = replace(self._identity, is_validating=True)

        try:
            profile = self._auth_api.me(identity.token)
        except ApiHttpError as exc:
            if exc.is_auth_rejection:
                self.expire(exc.status_code)
            else:
                logger.warning("Session check failed, keeping current session: %s", exc)
            return self.is_authenticated
        finally:
            with self._lock:
                self._identity = replace(self._identity, is_validating=False)

        updates = {
            attribute: profile[wire_name]
            for wire_name, attribute in _PROFILE_FIELDS
            if wire_name in profile
        }
        with self._lock:
            current = self._identity
            if not current.is_authenticated or current.user_id != identity.user_id:
                return current.is_authenticated
            self._identity = replace(current, **updates)
        self.save()
        return True

    def expire(self, status_code: int | None = None) -> None:
        """End the session after the server rejected its credentials.

        Unlike ``logout`` this makes no backend call.
        """
        if not self.is_authenticated:
            return
        logger.warning("Session rejected by server (HTTP %s), signing out", status_code)
        self._clear_session()

    def update_username(self, username: str) -> None:
        self._update(username=username)

    def update_token(self, token: str) -> None:
        self._update(token=token)

    def set_deletion_scheduled_at(self, value: str | None) -> None:
        self._update(deletion_scheduled_at=value)

    def _update(self, **changes: Any) -> None:
        with self._lock:
            self._identity = replace(self._identity, **changes)
        self.save()

    def _clear_session(self) -> None:
        with self._lock:
            self._identity = Identity.anonymous()
        self.save()
        self._cache.clear()
        logger.info("Signed out")
