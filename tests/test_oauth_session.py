"""Tests for the OAuth2 session: authorize URL, code exchange and refresh."""

import base64
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from src.brokerage.exceptions import (
    AuthExchangeError,
    CredentialStoreError,
    NoRefreshTokenError,
    RefreshError,
)
from src.oauth.credentials import Credential, CredentialStore
from src.oauth.session import OAuthSession, SessionState
from src.settings import SchwabSettings

TOKEN_URL = "https://auth.example.com/v1/oauth/token"
AUTHORIZE_URL = "https://auth.example.com/v1/oauth/authorize"
REDIRECT_URI = "https://127.0.0.1:8080"


def _token_response(**overrides):
    body = {
        "access_token": "access-new",
        "refresh_token": "refresh-new",
        "token_type": "Bearer",
        "scope": "api",
        "expires_in": 1800,
    }
    body.update(overrides)
    return {k: v for k, v in body.items() if v is not None}


class _TokenEndpoint:
    """Records token requests and answers with a canned response."""

    def __init__(self, response=None):
        self.requests = []
        self.response = response or httpx.Response(200, json=_token_response())

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    @property
    def last_form(self):
        return {k: v[0] for k, v in parse_qs(self.requests[-1].content.decode()).items()}


def _make_session(endpoint, store, clock):
    client = httpx.AsyncClient(transport=httpx.MockTransport(endpoint))
    return OAuthSession(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri=REDIRECT_URI,
        store=store,
        authorize_url=AUTHORIZE_URL,
        token_url=TOKEN_URL,
        http_client=client,
        clock=clock,
    )


def _seed(store, clock, refresh_token="refresh-old", expires_in=1800):
    store.save(Credential.issue(
        access_token="access-old",
        refresh_token=refresh_token,
        expires_in=expires_in,
        issued_at=clock(),
    ))


# =====================================================================
# Test: Authorize URL
# =====================================================================


class TestAuthorizeURL:

    def test_query_parameters(self, token_path, clock):
        session = _make_session(_TokenEndpoint(), CredentialStore(token_path), clock)
        url = urlparse(session.build_authorize_url())
        assert f"{url.scheme}://{url.netloc}{url.path}" == AUTHORIZE_URL
        query = parse_qs(url.query)
        assert query == {
            "client_id": ["client-id"],
            "redirect_uri": [REDIRECT_URI],
            "response_type": ["code"],
        }

    def test_from_settings(self, token_path):
        settings = SchwabSettings(
            client_id="cid", client_secret="secret", token_file=str(token_path),
        )
        session = OAuthSession.from_settings(settings)
        assert session.build_authorize_url().startswith(
            "https://api.schwabapi.com/v1/oauth/authorize?client_id=cid"
        )
        assert session.store.path == token_path


# =====================================================================
# Test: Code Exchange
# =====================================================================


class TestCodeExchange:

    @pytest.mark.asyncio
    async def test_exchange_success(self, token_path, clock):
        endpoint = _TokenEndpoint()
        store = CredentialStore(token_path)
        session = _make_session(endpoint, store, clock)

        cred = await session.exchange_code_for_credential("auth-code")

        assert cred.access_token == "access-new"
        assert cred.refresh_token == "refresh-new"
        assert cred.expires_at == clock() + timedelta(seconds=1800)
        assert session.is_authenticated()
        assert session.state == SessionState.AUTHENTICATED
        assert store.load() == cred

    @pytest.mark.asyncio
    async def test_exchange_request_shape(self, token_path, clock):
        endpoint = _TokenEndpoint()
        session = _make_session(endpoint, CredentialStore(token_path), clock)

        await session.exchange_code_for_credential("auth-code")

        request = endpoint.requests[0]
        assert request.method == "POST"
        assert str(request.url) == TOKEN_URL
        expected = base64.b64encode(b"client-id:client-secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert endpoint.last_form == {
            "grant_type": "authorization_code",
            "code": "auth-code",
            "redirect_uri": REDIRECT_URI,
        }

    @pytest.mark.asyncio
    async def test_exchange_rejected(self, token_path, clock):
        endpoint = _TokenEndpoint(httpx.Response(400, text="invalid_grant"))
        store = CredentialStore(token_path)
        session = _make_session(endpoint, store, clock)

        with pytest.raises(AuthExchangeError) as exc_info:
            await session.exchange_code_for_credential("bad-code")

        assert exc_info.value.status == 400
        assert exc_info.value.body == "invalid_grant"
        assert not session.is_authenticated()
        assert store.load() is None

    @pytest.mark.asyncio
    async def test_exchange_non_json_body(self, token_path, clock):
        endpoint = _TokenEndpoint(httpx.Response(200, text="<html>oops</html>"))
        session = _make_session(endpoint, CredentialStore(token_path), clock)
        with pytest.raises(AuthExchangeError):
            await session.exchange_code_for_credential("code")
        assert session.credential is None

    @pytest.mark.asyncio
    async def test_exchange_missing_access_token(self, token_path, clock):
        body = _token_response(access_token=None)
        endpoint = _TokenEndpoint(httpx.Response(200, json=body))
        session = _make_session(endpoint, CredentialStore(token_path), clock)
        with pytest.raises(AuthExchangeError):
            await session.exchange_code_for_credential("code")

    @pytest.mark.asyncio
    async def test_exchange_empty_access_token(self, token_path, clock):
        body = _token_response(access_token="")
        endpoint = _TokenEndpoint(httpx.Response(200, json=body))
        session = _make_session(endpoint, CredentialStore(token_path), clock)
        with pytest.raises(AuthExchangeError):
            await session.exchange_code_for_credential("code")

    @pytest.mark.asyncio
    async def test_exchange_network_failure(self, token_path, clock):
        endpoint = _TokenEndpoint(httpx.ConnectError("connection refused"))
        session = _make_session(endpoint, CredentialStore(token_path), clock)
        with pytest.raises(AuthExchangeError) as exc_info:
            await session.exchange_code_for_credential("code")
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


# =====================================================================
# Test: Refresh
# =====================================================================


class TestRefresh:

    @pytest.mark.asyncio
    async def test_refresh_success(self, token_path, clock):
        store = CredentialStore(token_path)
        _seed(store, clock)
        endpoint = _TokenEndpoint()
        session = _make_session(endpoint, store, clock)
        session.load()
        clock.advance(1700)

        cred = await session.refresh()

        assert endpoint.last_form == {
            "grant_type": "refresh_token",
            "refresh_token": "refresh-old",
        }
        assert cred.access_token == "access-new"
        assert cred.expires_at == clock() + timedelta(seconds=1800)
        assert store.load() == cred
        assert session.state == SessionState.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_refresh_keeps_refresh_token_when_omitted(self, token_path, clock):
        store = CredentialStore(token_path)
        _seed(store, clock)
        body = _token_response(refresh_token=None)
        session = _make_session(_TokenEndpoint(httpx.Response(200, json=body)), store, clock)
        session.load()

        cred = await session.refresh()

        assert cred.refresh_token == "refresh-old"

    @pytest.mark.asyncio
    async def test_refresh_without_credential(self, token_path, clock):
        endpoint = _TokenEndpoint()
        session = _make_session(endpoint, CredentialStore(token_path), clock)
        with pytest.raises(NoRefreshTokenError):
            await session.refresh()
        assert endpoint.requests == []

    @pytest.mark.asyncio
    async def test_refresh_without_refresh_token(self, token_path, clock):
        store = CredentialStore(token_path)
        _seed(store, clock, refresh_token="")
        endpoint = _TokenEndpoint()
        session = _make_session(endpoint, store, clock)
        session.load()

        with pytest.raises(NoRefreshTokenError):
            await session.refresh()

        assert endpoint.requests == []
        assert session.state == SessionState.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_refresh_rejected_drops_credential(self, token_path, clock):
        store = CredentialStore(token_path)
        _seed(store, clock)
        endpoint = _TokenEndpoint(httpx.Response(401, text="invalid refresh token"))
        session = _make_session(endpoint, store, clock)
        session.load()

        with pytest.raises(RefreshError) as exc_info:
            await session.refresh()

        assert exc_info.value.status == 401
        assert session.credential is None
        assert session.state == SessionState.UNAUTHENTICATED
        # The persisted file is left for the next authorization
        assert store.load() is not None

    @pytest.mark.asyncio
    async def test_refresh_save_failure_drops_credential(self, token_path, clock, monkeypatch):
        store = CredentialStore(token_path)
        _seed(store, clock)
        session = _make_session(_TokenEndpoint(), store, clock)
        session.load()

        def failing_save(credential):
            raise CredentialStoreError("disk full")

        monkeypatch.setattr(store, "save", failing_save)

        with pytest.raises(CredentialStoreError):
            await session.refresh()

        assert session.credential is None
        assert session.state == SessionState.UNAUTHENTICATED
        assert store.load().refresh_token == "refresh-old"

    @pytest.mark.asyncio
    async def test_exchange_save_failure_leaves_session_unauthenticated(self, token_path, clock, monkeypatch):
        store = CredentialStore(token_path)
        session = _make_session(_TokenEndpoint(), store, clock)

        def failing_save(credential):
            raise CredentialStoreError("permission denied")

        monkeypatch.setattr(store, "save", failing_save)

        with pytest.raises(CredentialStoreError):
            await session.exchange_code_for_credential("code-123")

        assert not session.is_authenticated()


class TestEnsureFresh:

    def test_needs_refresh_window(self, token_path, clock):
        store = CredentialStore(token_path)
        _seed(store, clock, expires_in=1800)
        session = _make_session(_TokenEndpoint(), store, clock)
        session.load()
        window = timedelta(minutes=5)

        clock.advance(1499)
        assert not session.needs_refresh(window)
        clock.advance(1)
        assert session.needs_refresh(window)
        assert session.needs_refresh(timedelta(0)) is False

    def test_needs_refresh_without_credential(self, token_path, clock):
        session = _make_session(_TokenEndpoint(), CredentialStore(token_path), clock)
        assert not session.needs_refresh(timedelta(minutes=5))

    @pytest.mark.asyncio
    async def test_outside_window_is_a_no_op(self, token_path, clock):
        store = CredentialStore(token_path)
        _seed(store, clock)
        endpoint = _TokenEndpoint()
        session = _make_session(endpoint, store, clock)
        session.load()

        assert await session.ensure_fresh(timedelta(minutes=5)) is False
        assert endpoint.requests == []

    @pytest.mark.asyncio
    async def test_inside_window_refreshes(self, token_path, clock):
        store = CredentialStore(token_path)
        _seed(store, clock)
        endpoint = _TokenEndpoint()
        session = _make_session(endpoint, store, clock)
        session.load()
        clock.advance(1600)

        assert await session.ensure_fresh(timedelta(minutes=5)) is True
        assert len(endpoint.requests) == 1
        assert session.credential.access_token == "access-new"
        assert await session.ensure_fresh(timedelta(minutes=5)) is False


# =====================================================================
# Test: Session State
# =====================================================================


class TestSessionState:

    def test_unauthenticated_without_credential(self, token_path, clock):
        session = _make_session(_TokenEndpoint(), CredentialStore(token_path), clock)
        assert session.load() is None
        assert not session.is_authenticated()
        assert session.state == SessionState.UNAUTHENTICATED

    def test_expiry_boundary(self, token_path, clock):
        store = CredentialStore(token_path)
        _seed(store, clock, expires_in=1800)
        session = _make_session(_TokenEndpoint(), store, clock)
        session.load()

        clock.advance(1799)
        assert session.is_authenticated()
        clock.advance(1)
        assert not session.is_authenticated()
        # An expired credential is still held; only validity changes
        assert session.state == SessionState.AUTHENTICATED

    def test_logout(self, token_path, clock):
        store = CredentialStore(token_path)
        _seed(store, clock)
        session = _make_session(_TokenEndpoint(), store, clock)
        session.load()

        session.logout()

        assert session.credential is None
        assert not token_path.exists()
