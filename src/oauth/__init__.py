"""OAuth2 Token Lifecycle.

Authorization-code acquisition, pre-expiry refresh and durable persistence
of the credential used by every authenticated brokerage call.

Example:
    from src.oauth import OAuthSession, AuthenticatedTransport, run_authorization_flow

    session = OAuthSession.from_settings(settings)
    if session.load() is None:
        await run_authorization_flow(session, settings)
    transport = AuthenticatedTransport(session, settings.base_url)
"""

from src.oauth.credentials import Credential, CredentialStore
from src.oauth.session import OAuthSession, SessionState
from src.oauth.transport import AuthenticatedTransport, DEFAULT_SAFETY_WINDOW
from src.oauth.callback import AuthorizationCodeReceiver, run_authorization_flow

__all__ = [
    # Credentials
    "Credential",
    "CredentialStore",
    # Session
    "OAuthSession",
    "SessionState",
    # Transport
    "AuthenticatedTransport",
    "DEFAULT_SAFETY_WINDOW",
    # Redirect capture
    "AuthorizationCodeReceiver",
    "run_authorization_flow",
]
