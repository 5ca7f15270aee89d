"""
Module for fetching live power data from the local Envoy gateway.
Author: Johandré van Deventer
Date: 2025-06-13
"""

from typing import Dict

import requests

from api.errors import MetricsFetchFailed, NotAuthenticated, ResponseDecodeError
from models.process_power import PowerReading, process_production_response

PRODUCTION_PATH = "/production.json"
MAX_ERROR_BODY = 2000


def bearer_headers(access_token: str) -> Dict[str, str]:
    """Build the Authorization header for a single request."""
    if not access_token:
        raise NotAuthenticated("No access token available for the Envoy request")
    return {"Authorization": f"Bearer {access_token}"}


class MetricsClient:
    """Reads instantaneous production/consumption from the gateway."""

    def __init__(self, session: requests.Session, envoy_url: str, timeout: float = 15):
        self.session = session
        self.envoy_url = envoy_url.rstrip("/")
        self.timeout = timeout

    def get_current_power(self, access_token: str) -> PowerReading:
        """
        Fetch production.json with details and reduce it to three totals.

        Args:
            access_token: Bearer token, attached to this request only

        Returns:
            PowerReading with production, consumption and net in watts

        Raises:
            MetricsFetchFailed: If the gateway answers with anything but 200
            ResponseDecodeError: If the body is not the expected JSON shape
        """
        headers = {"Accept": "application/json", **bearer_headers(access_token)}

        response = self.session.get(
            url=f"{self.envoy_url}{PRODUCTION_PATH}",
            headers=headers,
            params={"details": 1},
            timeout=self.timeout,
        )

        if response.status_code != 200:
            raise MetricsFetchFailed(
                response.status_code, response.text[:MAX_ERROR_BODY] or None
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ResponseDecodeError("Production response is not valid JSON") from e

        return process_production_response(data)
