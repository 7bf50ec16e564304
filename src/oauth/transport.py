"""Authenticated HTTP Transport.

Wraps every outbound API call: refreshes the credential shortly before it
expires, attaches the bearer header, and executes the request once.
"""

from datetime import timedelta
from typing import Any, Optional
import logging

import httpx

from src.brokerage.exceptions import (
    CredentialStoreError,
    NotAuthenticatedError,
    RefreshError,
    RefreshFailedError,
    TransportError,
)
from src.oauth.session import OAuthSession

logger = logging.getLogger(__name__)

DEFAULT_SAFETY_WINDOW = timedelta(minutes=5)


class AuthenticatedTransport:
    """Bearer-token transport bound to one OAuth session.

    Failed requests are never retried; the caller decides whether to retry.
    Concurrent callers, including other transports on the same session,
    share a single in-flight refresh.

    Example:
        transport = AuthenticatedTransport(session, "https://api.schwabapi.com")
        resp = await transport.send("GET", "/trader/v1/accounts")
    """

    def __init__(
        self,
        session: OAuthSession,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        safety_window: timedelta = DEFAULT_SAFETY_WINDOW,
    ):
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._safety_window = safety_window

    @property
    def session(self) -> OAuthSession:
        return self._session

    @property
    def safety_window(self) -> timedelta:
        return self._safety_window

    def needs_refresh(self) -> bool:
        """True when a credential is held and expires within the safety window."""
        return self._session.needs_refresh(self._safety_window)

    async def ensure_fresh(self) -> None:
        """Refresh the credential if it is inside the safety window.

        Raises:
            RefreshFailedError: If the refresh was attempted and failed.
        """
        try:
            await self._session.ensure_fresh(self._safety_window)
        except (RefreshError, CredentialStoreError) as e:
            raise RefreshFailedError(f"failed to refresh token: {e}") from e

    async def send(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
    ) -> httpx.Response:
        """Execute an authenticated request and return the raw response.

        Raises:
            RefreshFailedError: If the pre-emptive refresh failed.
            NotAuthenticatedError: If no valid credential is held; no
                request is made.
            TransportError: If the request could not be completed.
        """
        await self.ensure_fresh()

        if not self._session.is_authenticated():
            raise NotAuthenticatedError()

        credential = self._session.credential
        headers = {
            "Authorization": f"Bearer {credential.access_token}",
            "Content-Type": "application/json",
        }
        url = f"{self._base_url}{path}"

        logger.debug("%s %s", method, path)
        try:
            return await self._http.request(
                method, url, params=params, json=json, headers=headers,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
