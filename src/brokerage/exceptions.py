"""Brokerage Exception Hierarchy.

Typed errors raised by the OAuth layer, the authenticated transport and
vendor adapters. Every failure surfaces as one of these; nothing is retried
beyond the single pre-emptive token refresh.
"""

from typing import Optional


class BrokerageError(Exception):
    """Base exception for all brokerage errors."""
    pass


class ConfigError(BrokerageError):
    """Raised when local configuration is missing or malformed."""
    pass


class CredentialStoreError(BrokerageError, OSError):
    """Raised when the persisted credential cannot be read or written."""
    pass


class AuthExchangeError(BrokerageError):
    """Raised when the token endpoint rejects an authorization code."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: str = "",
    ):
        super().__init__(message)
        self.status = status
        self.body = body


class RefreshError(BrokerageError):
    """Raised when the token endpoint rejects a refresh token."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: str = "",
    ):
        super().__init__(message)
        self.status = status
        self.body = body


class NoRefreshTokenError(RefreshError):
    """Raised when a refresh is requested without a stored refresh token."""

    def __init__(self, message: str = "no refresh token available"):
        super().__init__(message)


class NotAuthenticatedError(BrokerageError):
    """Raised when no valid credential exists at call time.

    The network is never touched when this is raised.
    """

    def __init__(self, message: str = "not authenticated"):
        super().__init__(message)


class TransportError(BrokerageError):
    """Raised when an authenticated request cannot be executed."""
    pass


class RefreshFailedError(TransportError):
    """Raised when the pre-emptive refresh before a request fails.

    The underlying ``RefreshError``, or the ``CredentialStoreError`` when
    the refreshed credential could not be saved, is the ``__cause__``.
    """
    pass


class VendorAPIError(BrokerageError):
    """Raised when a business endpoint answers with a non-2xx status."""

    def __init__(self, status: int, body: str = "", operation: str = ""):
        prefix = f"{operation} failed" if operation else "request failed"
        super().__init__(f"{prefix} with status {status}: {body}")
        self.status = status
        self.body = body
        self.operation = operation


class ResponseParseError(BrokerageError):
    """Raised when a vendor response body cannot be decoded or mapped."""
    pass


class OrderValidationError(BrokerageError, ValueError):
    """Raised when an order request fails local validation."""
    pass
