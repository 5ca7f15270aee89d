"""
Authentication session for the local Envoy gateway.

Reuses a stored token when one exists, otherwise runs the PKCE handshake:

    UNAUTHENTICATED -> CODE_REQUESTED -> CODE_OBTAINED -> TOKEN_OBTAINED -> AUTHENTICATED

Any failing step leaves the session in FAILED and re-raises. Nothing is retried
and nothing is refreshed; a rejected token is dropped with invalidate() and the
next authenticate() starts over.

Author: Johandré van Deventer
Date: 2025-06-13
"""

import threading
from enum import Enum
from typing import Callable, Optional

from api.auth import AuthClient, Credentials, TokenExchangeClient
from api.errors import NotAuthenticated
from api.pkce import PkceParams, generate_pkce_params
from storage.token_storage import TokenStorage


class AuthState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    CODE_REQUESTED = "code_requested"
    CODE_OBTAINED = "code_obtained"
    TOKEN_OBTAINED = "token_obtained"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class AuthSession:
    def __init__(
        self,
        credentials: Credentials,
        token_storage: TokenStorage,
        auth_client: AuthClient,
        token_client: TokenExchangeClient,
        redirect_uri: str,
        pkce_factory: Callable[[], PkceParams] = generate_pkce_params,
    ):
        self.credentials = credentials
        self.token_storage = token_storage
        self.auth_client = auth_client
        self.token_client = token_client
        self.redirect_uri = redirect_uri
        self.pkce_factory = pkce_factory

        self.state = AuthState.UNAUTHENTICATED
        self.from_cache = False
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def is_authenticated(self) -> bool:
        return self.state is AuthState.AUTHENTICATED

    @property
    def token(self) -> str:
        if not self.is_authenticated or not self._token:
            raise NotAuthenticated(f"Session is {self.state.value}, no token available")
        return self._token

    def authenticate(self) -> str:
        """
        Return a usable access token, running the PKCE handshake when none is stored.

        Raises:
            AuthenticationFailed: If the identity service rejects the login
            TokenExchangeFailed: If the gateway refuses the code
            TokenStorageError: If the stored token cannot be read or written
        """
        with self._lock:
            if self.is_authenticated and self._token:
                return self._token

            self.state = AuthState.UNAUTHENTICATED
            self._token = None
            try:
                token = self.token_storage.load()
                if token:
                    self.from_cache = True
                else:
                    self.from_cache = False
                    token = self._handshake()
            except Exception:
                self.state = AuthState.FAILED
                raise

            self._token = token
            self.state = AuthState.AUTHENTICATED
            return token

    def _handshake(self) -> str:
        pkce = self.pkce_factory()
        self.state = AuthState.CODE_REQUESTED

        login = self.auth_client.get_code(
            self.credentials, pkce.code_challenge, self.redirect_uri
        )
        self.state = AuthState.CODE_OBTAINED

        exchange = self.token_client.get_jwt(
            pkce.code_verifier, login.code, self.redirect_uri
        )
        self.state = AuthState.TOKEN_OBTAINED

        self.token_storage.save(exchange.access_token)
        return exchange.access_token

    def invalidate(self) -> None:
        """Forget the live token and remove it from storage."""
        with self._lock:
            self._token = None
            self.from_cache = False
            self.state = AuthState.UNAUTHENTICATED
            self.token_storage.clear()
