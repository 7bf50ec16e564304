"""OAuth Redirect Capture.

A one-shot local HTTPS endpoint that receives the authorization redirect
and hands the code to the waiting OAuth session.
"""

from pathlib import Path
from typing import Optional
import asyncio
import logging
import webbrowser

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from src.brokerage.exceptions import AuthExchangeError, ConfigError
from src.oauth.credentials import Credential
from src.oauth.session import OAuthSession

logger = logging.getLogger(__name__)


class AuthorizationCodeReceiver:
    """Captures exactly one authorization code from the OAuth redirect.

    The first request carrying ``code`` (or ``error``) resolves the
    receiver; any later redirect is answered with 409 and dropped.

    Example:
        receiver = AuthorizationCodeReceiver()
        # serve receiver.app, send the user to the authorize URL
        code = await receiver.wait_for_code(timeout=300)
    """

    def __init__(self):
        self._result: Optional[asyncio.Future] = None
        self.app = FastAPI(title="OAuth redirect capture", docs_url=None, redoc_url=None)

        @self.app.get("/", response_class=PlainTextResponse)
        async def callback(code: Optional[str] = None, error: Optional[str] = None):
            return self._accept(code, error)

    @property
    def received(self) -> bool:
        return self._result is not None and self._result.done()

    def _future(self) -> asyncio.Future:
        if self._result is None:
            self._result = asyncio.get_running_loop().create_future()
        return self._result

    def _accept(self, code: Optional[str], error: Optional[str]) -> PlainTextResponse:
        if not code and not error:
            logger.warning("Redirect received without a code parameter")
            return PlainTextResponse("No code parameter found in the request", status_code=400)

        future = self._future()
        if future.done():
            logger.warning("Ignoring redirect after the authorization code was received")
            return PlainTextResponse("Authorization code already received", status_code=409)

        if error:
            future.set_exception(AuthExchangeError(f"authorization denied: {error}"))
            return PlainTextResponse(f"Authorization failed: {error}", status_code=400)

        future.set_result(code)
        logger.info("Authorization code received")
        return PlainTextResponse(
            "Authorization code received successfully!\n\nYou can close this window."
        )

    def result(self) -> str:
        """Return the captured code; only valid once ``received`` is true."""
        if not self.received:
            raise RuntimeError("no authorization code received yet")
        return self._result.result()

    async def wait_for_code(self, timeout: Optional[float] = None) -> str:
        """Wait for the redirect and return its authorization code.

        Raises:
            asyncio.TimeoutError: If no redirect arrives within ``timeout``.
            AuthExchangeError: If the redirect carried an OAuth error.
        """
        return await asyncio.wait_for(self._future(), timeout)


def _check_tls_files(certfile: str, keyfile: str) -> None:
    for path in (certfile, keyfile):
        if not Path(path).is_file():
            raise ConfigError(f"TLS file not found for the redirect server: {path}")


async def _serve(server: uvicorn.Server, host: str, port: int) -> None:
    # uvicorn calls sys.exit(1) when it cannot bind, which would otherwise
    # escape the event loop.
    try:
        await server.serve()
    except SystemExit as e:
        raise ConfigError(f"redirect server could not start on {host}:{port}") from e


async def run_authorization_flow(
    session: OAuthSession,
    settings,
    open_browser: bool = True,
) -> Credential:
    """Run the interactive authorization-code flow end to end.

    Starts the local redirect server, sends the user to the authorize URL,
    waits for the code, exchanges it, and stops the server in every case.
    When the browser cannot be opened, or ``open_browser`` is false, the
    URL is printed instead.

    A port already in use makes the server stop before any redirect can
    arrive; that surfaces as ``ConfigError`` rather than exiting the
    process.

    Raises:
        ConfigError: If the TLS files are missing or the server cannot start
            or stops early.
        AuthExchangeError: On timeout, denial, or a rejected exchange.
    """
    _check_tls_files(settings.tls_certfile, settings.tls_keyfile)

    host, port = settings.callback_host, settings.callback_port
    receiver = AuthorizationCodeReceiver()
    config = uvicorn.Config(
        receiver.app,
        host=host,
        port=port,
        ssl_certfile=settings.tls_certfile,
        ssl_keyfile=settings.tls_keyfile,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    serve_task = asyncio.create_task(_serve(server, host, port))
    code_task = asyncio.ensure_future(receiver.wait_for_code())

    try:
        authorize_url = session.build_authorize_url()
        if not (open_browser and webbrowser.open(authorize_url)):
            print("Please visit the following URL to authorize the application:")
            print(authorize_url)

        done, _ = await asyncio.wait(
            {serve_task, code_task},
            timeout=settings.auth_timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if code_task not in done:
            if serve_task in done:
                error = serve_task.exception()
                if isinstance(error, ConfigError):
                    raise error
                raise ConfigError(f"redirect server on {host}:{port} stopped") from error
            raise AuthExchangeError(
                f"no authorization code received within {settings.auth_timeout:.0f}s"
            )

        return await session.exchange_code_for_credential(code_task.result())
    finally:
        code_task.cancel()
        server.should_exit = True
        await asyncio.wait({serve_task})
        if not serve_task.cancelled() and serve_task.exception() is not None:
            logger.debug("Redirect server exited with %r", serve_task.exception())
