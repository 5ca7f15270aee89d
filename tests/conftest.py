"""
Shared fixtures for the Envoy power monitor tests.

HTTP traffic is never sent: sessions are MagicMocks whose post/get return
canned responses built by make_response.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from config.config import reset_config
from shutdown.shutdown_controller import reset_shutdown

ENVOY_URL = "https://envoy.local"
AUTH_URL = "https://entrez.enphaseenergy.com"
REDIRECT_URI = "https://envoy.local/auth/callback"


def make_response(status_code=200, json_body=None, text=None, headers=None):
    """Build a MagicMock shaped like requests.Response."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.headers = CaseInsensitiveDict(headers or {})

    if json_body is not None:
        response.text = json.dumps(json_body)
        response.json.return_value = json_body
    else:
        response.text = text or ""
        response.json.side_effect = ValueError("No JSON object could be decoded")

    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def production_body():
    return {
        "production": [
            {"type": "inverters", "activeCount": 20, "wNow": 480},
            {"type": "eim", "measurementType": "production", "wNow": 500},
        ],
        "consumption": [
            {"type": "eim", "measurementType": "total-consumption", "wNow": 200},
            {"type": "eim", "measurementType": "net-consumption", "wNow": -300},
        ],
    }


@pytest.fixture(autouse=True)
def _reset_globals():
    reset_config()
    reset_shutdown()
    yield
    reset_config()
    reset_shutdown()
