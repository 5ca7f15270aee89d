"""
PKCE (RFC 7636) verifier and challenge generation for the Envoy login flow.
Author: Johandré van Deventer
Date: 2025-06-13
"""

import base64
import hashlib
import secrets
from dataclasses import dataclass

MIN_VERIFIER_BYTES = 32


@dataclass(frozen=True)
class PkceParams:
    code_verifier: str
    code_challenge: str
    method: str = "S256"

    def __repr__(self) -> str:
        return f"PkceParams(code_verifier='***', code_challenge='{self.code_challenge}', method='{self.method}')"


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def generate_code_verifier(num_bytes: int = MIN_VERIFIER_BYTES) -> str:
    """Generate a random URL-safe code verifier without padding"""
    if num_bytes < MIN_VERIFIER_BYTES:
        raise ValueError(
            f"Code verifier needs at least {MIN_VERIFIER_BYTES} random bytes, got {num_bytes}"
        )
    return _b64url(secrets.token_bytes(num_bytes))


def generate_code_challenge(code_verifier: str) -> str:
    """Derive the S256 challenge: Base64url(SHA-256(verifier)) without padding"""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return _b64url(digest)


def generate_pkce_params() -> PkceParams:
    """Create a fresh verifier/challenge pair for one authentication attempt"""
    code_verifier = generate_code_verifier()
    return PkceParams(
        code_verifier=code_verifier,
        code_challenge=generate_code_challenge(code_verifier),
    )
