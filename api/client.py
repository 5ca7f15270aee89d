"""
HTTP sessions for the identity service and the local Envoy gateway.
Author: Johandré van Deventer
Date: 2025-06-13
"""

import json
from typing import Any, Optional
from urllib.parse import parse_qsl

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.exceptions import InsecureRequestWarning
from urllib3.util.retry import Retry

from utils.utils import format_payload, redact, redact_pairs

MAX_BODY_PREVIEW = 2000


def _no_retry_adapter() -> HTTPAdapter:
    # Redirects are surfaced to the caller, never followed or retried here
    retries = Retry(total=0, connect=0, read=0, redirect=0, raise_on_redirect=False)
    return HTTPAdapter(max_retries=retries)


def create_session(verify: bool = True, debug: bool = False) -> requests.Session:
    """Create a requests session that performs no automatic retries

    Args:
        verify: Validate TLS certificates
        debug: Print each request/response pair with sensitive fields redacted

    Returns:
        Configured requests session
    """
    session = requests.Session()
    session.verify = verify
    adapter = _no_retry_adapter()
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    if debug:
        session.hooks["response"].append(log_exchange)

    return session


def create_auth_session(debug: bool = False) -> requests.Session:
    """Session for the remote identity service (certificates always verified)."""
    return create_session(verify=True, debug=debug)


def create_envoy_session(debug: bool = False) -> requests.Session:
    """Session for the local gateway, which serves a self-signed certificate."""
    urllib3.disable_warnings(InsecureRequestWarning)
    return create_session(verify=False, debug=debug)


def _decode_request_body(request: requests.PreparedRequest) -> Optional[Any]:
    body = request.body
    if not body:
        return None
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")

    content_type = request.headers.get("Content-Type", "")
    if "application/x-www-form-urlencoded" in content_type:
        return dict(redact_pairs(parse_qsl(body, keep_blank_values=True)))
    try:
        return json.loads(body)
    except ValueError:
        return "<unparsed body>"


def _decode_response_body(response: requests.Response) -> Optional[Any]:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text[:MAX_BODY_PREVIEW]


def log_exchange(response: requests.Response, *args, **kwargs) -> requests.Response:
    """requests response hook printing a redacted view of the round trip"""
    request = response.request
    print(f"→ {request.method} {request.url}")
    print(f"  Request.headers= {format_payload(dict(request.headers))}")
    print(f"  Request.body= {format_payload(_decode_request_body(request))}")
    print(f"← {response.status_code} {response.reason}")
    print(f"  Response.headers= {format_payload(redact(dict(response.headers)))}")
    print(f"  Response.body= {format_payload(_decode_response_body(response))}")
    return response
