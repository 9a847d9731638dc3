"""Tests for ApiClient (bearer header, error mapping, session invalidation)."""

import httpx
import pytest
from pytest_httpx import HTTPXMock

from eventy.application.services.auth_session import AuthSession
from eventy.config import ApiSettings
from eventy.domain.entities import Session
from eventy.domain.events import AuthEvent, AuthEventBus
from eventy.domain.exceptions import RequestFailed, RequestFailureKind, SessionInvalidated
from eventy.infrastructure.integrations.api_client import ApiClient
from eventy.infrastructure.integrations.keycloak_client import KeycloakClient
from eventy.infrastructure.observability.logging import set_correlation_id

BASE = "https://api.example.com/api"


@pytest.fixture
async def api(api_settings: ApiSettings, events: AuthEventBus):
    client = ApiClient(api_settings, events)
    yield client
    await client.close()


class TestHeaders:
    async def test_public_call_without_token(
        self, api: ApiClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=f"{BASE}/events", json=[])

        assert await api.get("/events") == []
        assert "Authorization" not in httpx_mock.get_request().headers

    async def test_bearer_token_follows_session(
        self, api: ApiClient, events: AuthEventBus, session: Session, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=f"{BASE}/favorites/user/user-1", json=[])
        await events.emit(AuthEvent.SESSION_CHANGED, session)

        await api.get("/favorites/user/user-1")

        assert api.has_token
        request = httpx_mock.get_request()
        assert request.headers["Authorization"] == f"Bearer {session.access_token}"

    async def test_logout_drops_token(
        self, api: ApiClient, events: AuthEventBus, session: Session
    ) -> None:
        await events.emit(AuthEvent.SESSION_CHANGED, session)
        await events.emit(AuthEvent.SESSION_CHANGED, None)

        assert not api.has_token

    async def test_correlation_id_forwarded(
        self, api: ApiClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=f"{BASE}/transactions", method="POST", json={})
        set_correlation_id("purchase-abc")

        await api.post("/transactions", json={"ticketId": "tk_1"})

        assert httpx_mock.get_request().headers["X-Correlation-ID"] == "purchase-abc"

    async def test_query_params(self, api: ApiClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{BASE}/events?search=rock", json=[])

        await api.get("/events", params={"search": "rock"})


class TestErrorMapping:
    @pytest.mark.parametrize(
        ("status_code", "kind"),
        [
            (400, RequestFailureKind.CLIENT),
            (404, RequestFailureKind.CLIENT),
            (409, RequestFailureKind.CLIENT),
            (500, RequestFailureKind.SERVER),
            (503, RequestFailureKind.SERVER),
        ],
    )
    async def test_status_codes(
        self,
        api: ApiClient,
        httpx_mock: HTTPXMock,
        status_code: int,
        kind: RequestFailureKind,
    ) -> None:
        httpx_mock.add_response(url=f"{BASE}/tickets/tk_1", status_code=status_code)

        with pytest.raises(RequestFailed) as exc_info:
            await api.get("/tickets/tk_1")

        assert not isinstance(exc_info.value, SessionInvalidated)
        assert exc_info.value.kind == kind
        assert exc_info.value.status_code == status_code

    async def test_network_error(self, api: ApiClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("no route to host"))

        with pytest.raises(RequestFailed) as exc_info:
            await api.get("/events")

        assert exc_info.value.kind == RequestFailureKind.NETWORK

    async def test_timeout(self, api: ApiClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("slow"))

        with pytest.raises(RequestFailed) as exc_info:
            await api.get("/events")

        assert exc_info.value.kind == RequestFailureKind.NETWORK

    async def test_malformed_body(self, api: ApiClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{BASE}/events", text="<html>oops</html>")

        with pytest.raises(RequestFailed) as exc_info:
            await api.get("/events")

        assert exc_info.value.kind == RequestFailureKind.MALFORMED

    async def test_empty_body_is_none(self, api: ApiClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{BASE}/transactions/tx_1/confirm", method="POST")

        assert await api.post("/transactions/tx_1/confirm") is None


class TestSessionInvalidation:
    """A 401/403 mid-session logs the user out before the caller sees the error."""

    @pytest.fixture
    async def logged_in(
        self,
        api: ApiClient,
        keycloak_settings,
        browser,
        token_store,
        events: AuthEventBus,
        make_token,
    ) -> AuthSession:
        # api is requested first so its token copy follows the restored session
        auth = AuthSession(KeycloakClient(keycloak_settings), browser, token_store, events)
        token_store.token = make_token(sub="user-1")
        await auth.restore_session()
        return auth

    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_auth_failure_logs_out_before_raising(
        self,
        api: ApiClient,
        logged_in: AuthSession,
        token_store,
        events: AuthEventBus,
        httpx_mock: HTTPXMock,
        status_code: int,
    ) -> None:
        invalidations: list[int] = []
        events.subscribe(AuthEvent.SESSION_INVALIDATED, invalidations.append)
        httpx_mock.add_response(
            url=f"{BASE}/interactions/messages/conversations", status_code=status_code
        )
        assert api.has_token

        with pytest.raises(SessionInvalidated) as exc_info:
            await api.get("/interactions/messages/conversations")

        assert exc_info.value.status_code == status_code
        assert invalidations == [status_code]
        # Everything is already torn down when the caller gets the exception
        assert logged_in.current_session() is None
        assert token_store.token is None
        assert token_store.clear_calls == 1
        assert not api.has_token

    async def test_next_request_is_anonymous(
        self, api: ApiClient, logged_in: AuthSession, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=f"{BASE}/favorites/user/user-1", status_code=403)
        httpx_mock.add_response(url=f"{BASE}/events", json=[])

        with pytest.raises(SessionInvalidated):
            await api.get("/favorites/user/user-1")
        await api.get("/events")

        first, second = httpx_mock.get_requests()
        assert "Authorization" in first.headers
        assert "Authorization" not in second.headers

    async def test_auth_failure_without_session(
        self, api: ApiClient, events: AuthEventBus, httpx_mock: HTTPXMock
    ) -> None:
        invalidations: list[int] = []
        events.subscribe(AuthEvent.SESSION_INVALIDATED, invalidations.append)
        httpx_mock.add_response(url=f"{BASE}/favorites", method="POST", status_code=401)

        with pytest.raises(SessionInvalidated):
            await api.post("/favorites", json={})

        assert invalidations == [401]
