"""
Exceptions raised by the Envoy API clients.
Author: Johandré van Deventer
Date: 2025-06-13
"""

from typing import Optional


class EnvoyApiError(Exception):
    """Base exception for Envoy and identity-service errors"""

    pass


class ResponseDecodeError(EnvoyApiError):
    """Exception for response bodies that do not have the expected shape"""

    pass


class NotAuthenticated(EnvoyApiError):
    """Exception for using a session before a token is available"""

    pass


class HttpStatusError(EnvoyApiError):
    """Base exception for responses with an unexpected HTTP status"""

    def __init__(self, message: str, status: int, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        message = super().__str__()
        if self.body:
            return f"{message}\n{self.body}"
        return message


class AuthenticationFailed(HttpStatusError):
    """Exception for a failed login against the identity service"""

    def __init__(self, expected: int, actual: int, body: Optional[str] = None):
        super().__init__(
            f"Unexpected HTTP status. Expected: {expected}, Found: {actual}",
            status=actual,
            body=body,
        )
        self.expected = expected
        self.actual = actual


class TokenExchangeFailed(HttpStatusError):
    """Exception for a failed code-for-token exchange on the device"""

    def __init__(self, status: int, body: Optional[str] = None, reason: str = ""):
        message = f"Token exchange failed (HTTP status: {status})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, status=status, body=body)


class MetricsFetchFailed(HttpStatusError):
    """Exception for a non-200 response from the production endpoint"""

    def __init__(self, status: int, body: Optional[str] = None):
        super().__init__(
            f"Error while fetching production data (HTTP status: {status})",
            status=status,
            body=body,
        )
