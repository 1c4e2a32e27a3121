from __future__ import annotations

from unittest import mock

import pytest
import requests

from taskboard_client.apis import AuthApi
from taskboard_client.auth import AUTH_STATE_KEY, AuthenticationError, SessionState, SessionStore
from taskboard_client.cache import EntityCache
from taskboard_client.config import AppSettings
from taskboard_client.http import ApiHttpError, ApiNetworkError, HttpClient
from taskboard_client.models import Identity
from taskboard_client.queries import BoardKeys

from conftest import LOGIN_PAYLOAD, FakeAuthApi, make_board


def test_starts_anonymous_without_stored_state(auth_api, cache, state_store):
    store = SessionStore(auth_api, cache, state_store)

    assert store.identity == Identity.anonymous()
    assert store.state == SessionState.ANONYMOUS


def test_login_sets_identity_and_persists(session, state_store):
    identity = session.identity
    assert identity.user_id == 1
    assert identity.username == "alice"
    assert identity.token == "access-1"
    assert identity.is_authenticated
    assert session.state == SessionState.AUTHENTICATED
    assert state_store.load(AUTH_STATE_KEY)["userId"] == 1


def test_login_handles_missing_optional_fields(auth_api, cache):
    store = SessionStore(auth_api, cache)
    identity = store.login({"id": 2, "username": "minimal"})

    assert identity.first_name is None
    assert identity.last_name is None
    assert identity.deletion_scheduled_at is None
    assert identity.is_authenticated


def test_session_survives_restart(session, auth_api, state_store):
    restored = SessionStore(auth_api, EntityCache(), state_store)

    assert restored.identity == session.identity
    assert restored.is_authenticated


def test_unknown_snapshot_version_starts_anonymous(auth_api, cache, state_store):
    state_store._persistence(AUTH_STATE_KEY).save('{"version": 99, "state": {"userId": 1, "isAuthenticated": true}}')

    store = SessionStore(auth_api, cache, state_store)

    assert not store.is_authenticated


def test_corrupt_snapshot_starts_anonymous(auth_api, cache, state_store):
    state_store._persistence(AUTH_STATE_KEY).save("{not json")

    assert not SessionStore(auth_api, cache, state_store).is_authenticated


def test_sign_in_calls_backend_then_logs_in(auth_api, cache):
    auth_api.results["login"] = dict(LOGIN_PAYLOAD)
    store = SessionStore(auth_api, cache)

    identity = store.sign_in(" alice ", "secret")

    assert auth_api.called("login") == [("alice", "secret")]
    assert identity.user_id == 1


def test_sign_in_rejects_bad_credentials(auth_api, cache):
    auth_api.errors["login"] = ApiHttpError(401, "HTTP 401")
    store = SessionStore(auth_api, cache)

    with pytest.raises(AuthenticationError, match="Invalid username or password"):
        store.sign_in("alice", "wrong")
    assert not store.is_authenticated


def test_sign_in_requires_credentials(auth_api, cache):
    with pytest.raises(AuthenticationError):
        SessionStore(auth_api, cache).sign_in("", "secret")
    assert auth_api.calls == []


def test_logout_clears_state_cache_and_revokes(session, auth_api, cache, state_store):
    cache.set(BoardKeys.list_for(1), {"content": [make_board(1, "A")], "totalElements": 1})

    session.logout()

    assert auth_api.called("logout") == [("access-1", "refresh-1")]
    assert session.identity == Identity.anonymous()
    assert cache.keys() == []
    assert state_store.load(AUTH_STATE_KEY)["isAuthenticated"] is False


def test_logout_clears_state_even_if_backend_fails(session, auth_api, cache):
    auth_api.errors["logout"] = ApiNetworkError("connection refused")
    cache.set(BoardKeys.list_for(1), {"content": []})

    session.logout()

    assert not session.is_authenticated
    assert session.identity.user_id is None
    assert cache.keys() == []


def test_logout_clears_state_on_unexpected_error(session, auth_api):
    auth_api.errors["logout"] = KeyError("refreshToken")

    with pytest.raises(KeyError):
        session.logout()

    assert not session.is_authenticated


def test_validate_session_is_noop_when_anonymous(auth_api, cache):
    store = SessionStore(auth_api, cache)

    assert store.validate_session() is False
    assert auth_api.calls == []


@pytest.mark.parametrize("status_code", [401, 403])
def test_rejected_session_signs_out_without_logout_call(session, auth_api, cache, status_code):
    auth_api.errors["me"] = ApiHttpError(status_code, f"HTTP {status_code}")
    cache.set(BoardKeys.list_for(1), {"content": []})

    assert session.validate_session() is False

    assert not session.is_authenticated
    assert session.identity.user_id is None
    assert cache.keys() == []
    assert auth_api.called("logout") == []


def test_network_errors_never_sign_out(session, auth_api):
    before = session.identity
    auth_api.errors["me"] = ApiNetworkError("GET /auth/me failed: connection reset")

    for _ in range(3):
        assert session.validate_session() is True
        assert session.is_authenticated

    assert session.identity == before


def test_server_errors_keep_session(session, auth_api):
    auth_api.errors["me"] = ApiHttpError(502, "HTTP 502")

    assert session.validate_session() is True
    assert session.identity.user_id == 1


def test_successful_validation_merges_profile(session, auth_api, state_store):
    auth_api.results["me"] = {
        "id": 42,
        "username": "alice2",
        "firstName": "Alice",
        "lastName": "Liddell",
        "deletionScheduledAt": "2025-01-01",
    }

    assert session.validate_session() is True

    identity = session.identity
    assert identity.username == "alice2"
    assert identity.first_name == "Alice"
    assert identity.last_name == "Liddell"
    assert identity.deletion_scheduled_at == "2025-01-01"
    assert identity.user_id == 1
    assert identity.is_authenticated
    assert not identity.is_validating
    assert state_store.load(AUTH_STATE_KEY)["username"] == "alice2"


def test_validation_sends_current_token(session, auth_api):
    session.update_token("access-2")
    session.validate_session()

    assert auth_api.called("me") == [("access-2",)]


def test_update_username_keeps_authentication(session):
    session.update_username("new")

    assert session.identity.username == "new"
    assert session.identity.user_id == 1
    assert session.is_authenticated


def test_set_deletion_scheduled_at(session):
    session.set_deletion_scheduled_at("2024-12-31")
    assert session.identity.deletion_scheduled_at == "2024-12-31"

    session.set_deletion_scheduled_at(None)
    assert session.identity.deletion_scheduled_at is None


def test_switching_users_hides_previous_users_boards(session, cache, queries, board_api):
    board_api.results["list_boards"] = {"content": [make_board(1, "Alice board")], "totalElements": 1}
    assert [board.name for board in queries.boards()] == ["Alice board"]

    session.logout()
    board_api.results["list_boards"] = {"content": [], "totalElements": 0}
    session.login({"id": 2, "username": "bob", "token": "access-bob"})

    assert cache.get(BoardKeys.list_for(1)) is None
    assert queries.boards() == []
    assert board_api.called("list_boards")[-1] == ("access-bob", 2)


def test_login_as_different_user_evicts_cache_without_logout(session, cache):
    cache.set(BoardKeys.list_for(1), {"content": [make_board(1, "A")]})

    session.login({"id": 2, "username": "bob"})

    assert cache.keys() == []


def test_login_again_as_same_user_keeps_cache(session, cache):
    cache.set(BoardKeys.list_for(1), {"content": [make_board(1, "A")]})

    session.login(LOGIN_PAYLOAD)

    assert cache.keys() == [BoardKeys.list_for(1)]


def test_session_store_without_persistence(cache):
    store = SessionStore(FakeAuthApi(), cache)
    store.login(LOGIN_PAYLOAD)
    store.logout()
    assert not store.is_authenticated


def test_login_with_non_integer_id_does_not_fail(auth_api, cache):
    store = SessionStore(auth_api, cache)

    identity = store.login({"id": "abc", "username": "odd", "token": "t"})

    assert identity.user_id is None
    assert identity.username == "odd"


def test_expire_signs_out_without_logout_call(session, auth_api, cache):
    cache.set(BoardKeys.list_for(1), {"content": []})

    session.expire(401)

    assert not session.is_authenticated
    assert cache.keys() == []
    assert auth_api.called("logout") == []


def _text_response(body: str) -> mock.Mock:
    response = mock.Mock()
    response.status_code = 200
    response.ok = True
    response.content = body.encode()
    response.text = body
    response.json.side_effect = requests.JSONDecodeError("Expecting value", body, 0)
    return response


@pytest.fixture
def http_session():
    fake = mock.Mock(spec=requests.Session)
    fake.headers = {}
    return fake


@pytest.fixture
def live_session_store(http_session, cache):
    settings = AppSettings(
        base_url="http://localhost:8080",
        timeout_seconds=5,
        retry_attempts=0,
        stale_seconds=300,
        state_dir="unused",
        log_level="INFO",
    )
    store = SessionStore(AuthApi(HttpClient(settings, http_session)), cache)
    store.login(LOGIN_PAYLOAD)
    return store


def test_logout_accepts_plain_text_confirmation(live_session_store, http_session):
    http_session.request.return_value = _text_response("Çıkış başarılı")

    live_session_store.logout()

    assert not live_session_store.is_authenticated
    assert http_session.request.call_args.args[:2] == ("POST", "http://localhost:8080/auth/logout")


def test_validation_tolerates_html_success_page(live_session_store, http_session):
    http_session.request.return_value = _text_response("<html><body>ok</body></html>")

    assert live_session_store.validate_session() is True
    assert live_session_store.identity.username == "alice"
