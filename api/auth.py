"""
Authentication against the Enphase identity service and the local Envoy.

Two steps make up the PKCE handshake:
    1. AuthClient posts the login form to the identity service, which answers
       with a 302 whose Location carries the authorization code.
    2. TokenExchangeClient trades that code (plus the PKCE verifier) for an
       access token on the gateway itself.

Author: Johandré van Deventer
Date: 2025-06-13
"""

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qs, urlsplit

import requests

from api.errors import AuthenticationFailed, TokenExchangeFailed

LOGIN_PATH = "/login"
TOKEN_PATH = "/auth/get_jwt"
CALLBACK_PATH = "/auth/callback"

LOGIN_CLIENT = "envoy-ui"
LOGIN_CLIENT_ID = "envoy-ui-client"
TOKEN_CLIENT_ID = "envoy-ui-1"

MAX_ERROR_BODY = 500


@dataclass(frozen=True)
class Credentials:
    login_email: str
    login_password: str = field(repr=False)
    serial_num: str


@dataclass(frozen=True)
class LoginRedirectResult:
    code: str
    location: str = field(repr=False)


@dataclass(frozen=True)
class TokenExchangeResult:
    access_token: str = field(repr=False)


def build_redirect_uri(envoy_url: str) -> str:
    """Callback URL registered for the Envoy UI client; both steps must use it verbatim."""
    return f"{envoy_url.rstrip('/')}{CALLBACK_PATH}"


def _body_preview(response: requests.Response) -> Optional[str]:
    text = response.text
    if not text:
        return None
    return text[:MAX_ERROR_BODY]


class AuthClient:
    """Requests an authorization code from the identity service."""

    def __init__(self, session: requests.Session, auth_url: str, timeout: float = 15):
        self.session = session
        self.auth_url = auth_url.rstrip("/")
        self.timeout = timeout

    def get_code(
        self, credentials: Credentials, code_challenge: str, redirect_uri: str
    ) -> LoginRedirectResult:
        """
        Log in and extract the authorization code from the redirect

        Args:
            credentials: Login email, password and gateway serial number
            code_challenge: S256 PKCE challenge for this attempt
            redirect_uri: Callback URL on the gateway

        Returns:
            LoginRedirectResult holding the code

        Raises:
            AuthenticationFailed: On any status other than 302, or a redirect without a code
        """
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        payload = {
            "username": credentials.login_email,
            "password": credentials.login_password,
            "codeChallenge": code_challenge,
            "redirectUri": redirect_uri,
            "client": LOGIN_CLIENT,
            "clientId": LOGIN_CLIENT_ID,
            "authFlow": "oauth",
            "serialNum": credentials.serial_num,
            "grantType": "authorize",
            "state": "",
            "invalidSerialNum": "",
        }

        response = self.session.post(
            url=f"{self.auth_url}{LOGIN_PATH}",
            headers=headers,
            data=payload,
            allow_redirects=False,
            timeout=self.timeout,
        )

        if response.status_code != 302:
            raise AuthenticationFailed(
                expected=302, actual=response.status_code, body=_body_preview(response)
            )

        location = response.headers.get("Location")
        if not location:
            raise AuthenticationFailed(
                expected=302, actual=302, body="Redirect has no Location header"
            )

        codes = parse_qs(urlsplit(location).query).get("code")
        if not codes or not codes[0]:
            raise AuthenticationFailed(
                expected=302, actual=302, body="Redirect Location has no code parameter"
            )

        return LoginRedirectResult(code=codes[0], location=location)


class TokenExchangeClient:
    """Exchanges an authorization code for an access token on the gateway."""

    def __init__(self, session: requests.Session, envoy_url: str, timeout: float = 15):
        self.session = session
        self.envoy_url = envoy_url.rstrip("/")
        self.timeout = timeout

    def get_jwt(
        self, code_verifier: str, code: str, redirect_uri: str
    ) -> TokenExchangeResult:
        """
        Trade the code and PKCE verifier for a bearer token

        Raises:
            TokenExchangeFailed: On a non-2xx status, a non-JSON body or a missing token
        """
        payload = {
            "client_id": TOKEN_CLIENT_ID,
            "code": code,
            "code_verifier": code_verifier,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        }

        response = self.session.post(
            url=f"{self.envoy_url}{TOKEN_PATH}",
            json=payload,
            allow_redirects=False,
            timeout=self.timeout,
        )

        if not 200 <= response.status_code < 300:
            raise TokenExchangeFailed(response.status_code, _body_preview(response))

        try:
            data = response.json()
        except ValueError as e:
            raise TokenExchangeFailed(
                response.status_code, reason="response is not JSON"
            ) from e

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(access_token, str) or not access_token:
            raise TokenExchangeFailed(
                response.status_code, reason="response has no access_token"
            )

        return TokenExchangeResult(access_token=access_token)
