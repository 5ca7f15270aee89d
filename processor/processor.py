# processor/processor.py

"""
Processor for live Envoy power data: authenticate once, then poll.
Author: Johandré van Deventer
Date: 2025-06-13
"""

import time
from pathlib import Path
from typing import Any, Optional

import requests
from tqdm import tqdm
from api.auth import AuthClient, Credentials, TokenExchangeClient, build_redirect_uri
from api.client import create_auth_session, create_envoy_session
from api.data import MetricsClient
from api.errors import EnvoyApiError, MetricsFetchFailed
from api.session import AuthSession
from models.process_power import PowerReading, readings_to_dataframe
from shutdown.shutdown_controller import is_shutdown_requested, wait_for_shutdown
from storage.token_storage import (
    FileTokenStorage,
    MemoryTokenStorage,
    TokenStorage,
    TokenStorageError,
)
from utils.utils import print_header, print_sub_header


class PowerDataProcessorError(Exception):
    """Base exception for power data processor errors."""

    pass


def format_reading(reading: PowerReading) -> str:
    return (
        f"{reading.timestamp:%Y-%m-%d %H:%M:%S}  "
        f"Production: {reading.production:.0f} W | "
        f"Consumption: {reading.consumption:.0f} W | "
        f"Net: {reading.net:.0f} W"
    )


class PowerDataProcessor:
    def __init__(
        self,
        app_config: dict[str, Any],
        token_storage: Optional[TokenStorage] = None,
        auth_session: Optional[AuthSession] = None,
        metrics_client: Optional[MetricsClient] = None,
    ):
        """
        Wire the HTTP sessions, token storage and clients from the configuration.

        Args:
            app_config (dict[str, Any]): Validated application configuration.
            token_storage: Replaces the configured token storage.
            auth_session: Replaces the AuthSession built from the configuration.
            metrics_client: Replaces the MetricsClient built from the configuration.
        """
        self.app_config = app_config
        self.readings: list[PowerReading] = []

        http_settings = self.app_config["http_settings"]
        self.timeout = http_settings["timeout"]
        self.debug = bool(http_settings.get("debug", False))

        if auth_session is None or metrics_client is None:
            self._create_sessions()

        self.token_storage = token_storage or self._create_token_storage()

        self.auth_session = auth_session or self._create_auth_session()
        self.metrics_client = metrics_client or MetricsClient(
            self.envoy_http, self.app_config["envoy_url"], self.timeout
        )

    def _create_sessions(self):
        """Create the identity-service and gateway HTTP sessions."""
        print_sub_header("Creating API Sessions")
        self.auth_http = create_auth_session(debug=self.debug)
        self.envoy_http = create_envoy_session(debug=self.debug)
        print("✔  API sessions created successfully")

    def _create_token_storage(self) -> TokenStorage:
        token_path = self.app_config["token_storage"].get("path")
        if not token_path:
            print("• Token caching disabled, tokens are kept in memory only")
            return MemoryTokenStorage()
        print(f"• Token cache: {token_path}")
        return FileTokenStorage(token_path)

    def _create_auth_session(self) -> AuthSession:
        credentials = Credentials(
            login_email=self.app_config["login_email"],
            login_password=self.app_config["login_password"],
            serial_num=self.app_config["serial_num"],
        )
        return AuthSession(
            credentials=credentials,
            token_storage=self.token_storage,
            auth_client=AuthClient(
                self.auth_http, self.app_config["auth_url"], self.timeout
            ),
            token_client=TokenExchangeClient(
                self.envoy_http, self.app_config["envoy_url"], self.timeout
            ),
            redirect_uri=build_redirect_uri(self.app_config["envoy_url"]),
        )

    def authenticate(self):
        print_sub_header("Authenticating")
        authenticate_start_time = time.time()
        try:
            self.auth_session.authenticate()
        except (EnvoyApiError, TokenStorageError, requests.RequestException) as e:
            raise PowerDataProcessorError(f"Failed to authenticate: {e}") from e

        authenticate_duration = time.time() - authenticate_start_time
        print(f"⏱  Time taken to authenticate: {authenticate_duration:.2f} seconds")
        if self.auth_session.from_cache:
            print("✔  Using cached access token")
        else:
            print("✔  New access token obtained and cached")

    def fetch_reading(self) -> PowerReading:
        try:
            return self.metrics_client.get_current_power(self.auth_session.token)
        except MetricsFetchFailed as e:
            if e.status == 401:
                # The device no longer accepts the token; the next run logs in again
                self.auth_session.invalidate()
                raise PowerDataProcessorError(
                    f"Access token rejected by the Envoy, cached token discarded: {e}"
                ) from e
            raise PowerDataProcessorError(f"Failed to fetch power data: {e}") from e
        except (EnvoyApiError, TokenStorageError, requests.RequestException) as e:
            raise PowerDataProcessorError(f"Failed to fetch power data: {e}") from e

    def save_readings(self) -> Optional[Path]:
        csv_path = self.app_config["output"].get("csv_path")
        if not csv_path or not self.readings:
            return None

        file = Path(csv_path)
        df = readings_to_dataframe(self.readings)
        try:
            file.parent.mkdir(parents=True, exist_ok=True)
            df.to_csv(file, mode="a", header=not file.exists(), index=False)
        except OSError as e:
            raise PowerDataProcessorError(
                f"Failed to save readings to {file}: {e}"
            ) from e
        print(f"✔  Saved {len(self.readings)} readings to {file}")
        return file

    def run(self) -> list[PowerReading]:
        """
        Authenticate, then take the configured number of readings.
        """
        print_header("Starting Power Monitoring")

        self.authenticate()

        samples = self.app_config["polling"]["samples"]
        interval = self.app_config["polling"]["interval"]

        print_sub_header("Current Power")

        readings_bar = tqdm(
            total=samples or None,
            desc="Readings",
            unit="reading",
            disable=samples == 1,
            leave=True,
        )

        try:
            taken = 0
            while not is_shutdown_requested():
                reading = self.fetch_reading()
                self.readings.append(reading)
                tqdm.write(f"• {format_reading(reading)}")
                readings_bar.update(1)

                taken += 1
                if samples and taken >= samples:
                    break
                if wait_for_shutdown(interval):
                    break
        finally:
            readings_bar.close()
            if is_shutdown_requested():
                print("\nShutdown requested. Saving collected readings...", flush=True)
            self.save_readings()

        return self.readings
