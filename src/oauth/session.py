"""OAuth2 Session.

Owns the authorization-code and refresh-token exchanges against a vendor
token endpoint, and the live credential they produce.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlencode
import asyncio
import logging

import httpx

from src.brokerage.exceptions import (
    AuthExchangeError,
    CredentialStoreError,
    NoRefreshTokenError,
    RefreshError,
)
from src.oauth.credentials import Credential, CredentialStore, utc_now

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """OAuth session lifecycle state."""
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


class OAuthSession:
    """OAuth2 authorization-code session.

    The session is the only writer of its credential; every change is
    mirrored to the credential store. One session per brokerage login, so
    several accounts can hold independent sessions side by side.

    Example:
        session = OAuthSession(client_id, client_secret, redirect_uri, store,
                               authorize_url=..., token_url=...)
        print(session.build_authorize_url())
        await session.exchange_code_for_credential(code)
        assert session.is_authenticated()
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        store: CredentialStore,
        authorize_url: str,
        token_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.authorize_url = authorize_url
        self.token_url = token_url
        self._store = store
        self._clock = clock
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._credential: Optional[Credential] = None
        self._refreshing = False
        self._refresh_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> "OAuthSession":
        """Build a session from ``SchwabSettings``."""
        return cls(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            redirect_uri=settings.redirect_uri,
            store=CredentialStore(settings.token_file),
            authorize_url=settings.authorize_url,
            token_url=settings.token_url,
            http_client=http_client,
            timeout=settings.request_timeout,
            clock=clock,
        )

    # -- State -------------------------------------------------------------

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    @property
    def store(self) -> CredentialStore:
        return self._store

    @property
    def state(self) -> SessionState:
        if self._refreshing:
            return SessionState.REFRESHING
        if self._credential is None:
            return SessionState.UNAUTHENTICATED
        return SessionState.AUTHENTICATED

    def now(self) -> datetime:
        return self._clock()

    def is_authenticated(self) -> bool:
        """True iff a credential is held and it has not expired yet."""
        return self._credential is not None and self._credential.is_valid_at(self._clock())

    def load(self) -> Optional[Credential]:
        """Restore the credential from the store, if one is persisted."""
        self._credential = self._store.load()
        if self._credential is not None:
            logger.info(
                "Loaded credential from %s (expires %s)",
                self._store.path, self._credential.expires_at.isoformat(),
            )
        return self._credential

    def logout(self) -> None:
        """Forget the credential in memory and on disk."""
        self._credential = None
        self._store.clear()

    # -- Authorization code flow -------------------------------------------

    def build_authorize_url(self) -> str:
        """Build the URL the user visits to grant access."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    async def exchange_code_for_credential(self, code: str) -> Credential:
        """Exchange an authorization code for a credential and persist it.

        Raises:
            AuthExchangeError: If the token endpoint rejects the code or
                answers with a malformed body.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        }
        credential = await self._request_token(data, AuthExchangeError, "token exchange")
        self._set_credential(credential)
        logger.info(
            "Authorization code exchanged; credential expires %s",
            credential.expires_at.isoformat(),
        )
        return credential

    # -- Refresh flow ------------------------------------------------------

    def needs_refresh(self, window: timedelta) -> bool:
        """True when a credential is held and expires within ``window``."""
        if self._credential is None:
            return False
        return self._clock() + window >= self._credential.expires_at

    async def ensure_fresh(self, window: timedelta) -> bool:
        """Refresh if the credential expires within ``window``.

        Every caller sharing this session waits on one lock, so a refresh
        token is spent at most once however many transports use it.
        Returns True if this call performed the refresh.
        """
        if not self.needs_refresh(window):
            return False
        async with self._refresh_lock:
            # Another caller may have refreshed while we waited.
            if not self.needs_refresh(window):
                return False
            logger.info("Credential expires within %s; refreshing", window)
            await self.refresh()
            return True

    async def refresh(self) -> Credential:
        """Exchange the stored refresh token for a new credential.

        On failure the session drops back to unauthenticated; only the
        authorization-code flow can recover it. That includes a failure to
        persist the new credential, since the old refresh token has already
        been spent.

        Raises:
            NoRefreshTokenError: If no refresh token is held.
            RefreshError: If the token endpoint rejects the refresh.
            CredentialStoreError: If the new credential cannot be saved.
        """
        current = self._credential
        if current is None or not current.has_refresh_token:
            self._credential = None
            raise NoRefreshTokenError()

        data = {
            "grant_type": "refresh_token",
            "refresh_token": current.refresh_token,
        }
        self._refreshing = True
        try:
            credential = await self._request_token(
                data, RefreshError, "token refresh",
                previous_refresh_token=current.refresh_token,
            )
        except RefreshError as e:
            self._credential = None
            logger.warning("Token refresh failed: %s", e)
            raise
        finally:
            self._refreshing = False

        self._set_credential(credential)
        logger.info("Token refreshed; credential expires %s", credential.expires_at.isoformat())
        return credential

    # -- Internals ---------------------------------------------------------

    def _set_credential(self, credential: Credential) -> None:
        # Memory never runs ahead of disk.
        try:
            self._store.save(credential)
        except CredentialStoreError as e:
            self._credential = None
            logger.error("Could not persist credential to %s: %s", self._store.path, e)
            raise
        self._credential = credential

    async def _request_token(
        self,
        data: dict[str, str],
        error_cls: type,
        operation: str,
        previous_refresh_token: str = "",
    ) -> Credential:
        try:
            resp = await self._http.post(
                self.token_url,
                data=data,
                auth=httpx.BasicAuth(self.client_id, self.client_secret),
            )
        except httpx.HTTPError as e:
            raise error_cls(f"{operation} request failed: {e}") from e

        if resp.status_code != 200:
            raise error_cls(
                f"{operation} failed with status {resp.status_code}: {resp.text}",
                status=resp.status_code,
                body=resp.text,
            )

        try:
            body = resp.json()
            access_token = body["access_token"]
            expires_in = int(body["expires_in"])
        except (ValueError, KeyError, TypeError) as e:
            raise error_cls(
                f"malformed {operation} response: {e}",
                status=resp.status_code,
                body=resp.text,
            ) from e

        if not isinstance(access_token, str) or not access_token:
            raise error_cls(
                f"malformed {operation} response: empty access_token",
                status=resp.status_code,
                body=resp.text,
            )

        return Credential.issue(
            access_token=access_token,
            refresh_token=body.get("refresh_token") or previous_refresh_token,
            token_type=body.get("token_type") or "Bearer",
            scope=body.get("scope") or "",
            expires_in=expires_in,
            issued_at=self._clock(),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
