"""
Tests for the polling processor and the command-line entry point.
"""

from unittest.mock import MagicMock

import pandas as pd
import pytest
import requests

import main
from api.data import MetricsClient
from api.errors import AuthenticationFailed, MetricsFetchFailed
from api.session import AuthSession
from config.config import DEFAULT_CONFIG, _merge
from models.process_power import PowerReading
from processor.processor import PowerDataProcessor, PowerDataProcessorError, format_reading
from shutdown.shutdown_controller import request_shutdown
from storage.token_storage import FileTokenStorage, MemoryTokenStorage


def build_config(tmp_path, **overrides):
    config = _merge(
        DEFAULT_CONFIG,
        {
            "serial_num": "202332112345",
            "login_email": "owner@example.com",
            "login_password": "hunter2",
            "token_storage": {"path": str(tmp_path / "token.dat")},
            "polling": {"samples": 1, "interval": 0},
        },
    )
    return _merge(config, overrides)


@pytest.fixture
def auth_session():
    session = MagicMock(spec=AuthSession)
    session.token = "tok-1"
    session.from_cache = True
    return session


@pytest.fixture
def metrics_client():
    client = MagicMock(spec=MetricsClient)
    client.get_current_power.return_value = PowerReading(
        production=500, consumption=200, net=-300
    )
    return client


class TestPowerDataProcessor:
    def test_builds_file_storage_from_config(self, tmp_path):
        processor = PowerDataProcessor(build_config(tmp_path))

        assert isinstance(processor.token_storage, FileTokenStorage)
        assert processor.auth_session.redirect_uri == "https://envoy.local/auth/callback"
        assert processor.auth_http.verify is True
        assert processor.envoy_http.verify is False

    def test_memory_storage_without_token_path(self, tmp_path):
        config = build_config(tmp_path, token_storage={"path": None})

        processor = PowerDataProcessor(config)

        assert isinstance(processor.token_storage, MemoryTokenStorage)

    def test_takes_configured_number_of_samples(self, tmp_path, auth_session, metrics_client):
        config = build_config(tmp_path, polling={"samples": 3, "interval": 0})
        processor = PowerDataProcessor(
            config, auth_session=auth_session, metrics_client=metrics_client
        )

        readings = processor.run()

        auth_session.authenticate.assert_called_once()
        assert len(readings) == 3
        for c in metrics_client.get_current_power.call_args_list:
            assert c.args == ("tok-1",)

    def test_stops_on_shutdown(self, tmp_path, auth_session, metrics_client):
        config = build_config(tmp_path, polling={"samples": 0, "interval": 0})
        processor = PowerDataProcessor(
            config, auth_session=auth_session, metrics_client=metrics_client
        )

        def reading_then_shutdown(token):
            request_shutdown()
            return PowerReading(production=1, consumption=2, net=1)

        metrics_client.get_current_power.side_effect = reading_then_shutdown

        assert len(processor.run()) == 1

    def test_authentication_failure_is_wrapped(self, tmp_path, auth_session, metrics_client):
        auth_session.authenticate.side_effect = AuthenticationFailed(expected=302, actual=200)
        processor = PowerDataProcessor(
            build_config(tmp_path), auth_session=auth_session, metrics_client=metrics_client
        )

        with pytest.raises(PowerDataProcessorError) as exc_info:
            processor.run()

        assert isinstance(exc_info.value.__cause__, AuthenticationFailed)
        metrics_client.get_current_power.assert_not_called()

    def test_rejected_token_is_invalidated(self, tmp_path, auth_session, metrics_client):
        metrics_client.get_current_power.side_effect = MetricsFetchFailed(401, "Unauthorized")
        processor = PowerDataProcessor(
            build_config(tmp_path), auth_session=auth_session, metrics_client=metrics_client
        )

        with pytest.raises(PowerDataProcessorError):
            processor.run()

        auth_session.invalidate.assert_called_once()
        metrics_client.get_current_power.assert_called_once()

    def test_other_metrics_failures_keep_token(self, tmp_path, auth_session, metrics_client):
        metrics_client.get_current_power.side_effect = MetricsFetchFailed(500, "oops")
        processor = PowerDataProcessor(
            build_config(tmp_path), auth_session=auth_session, metrics_client=metrics_client
        )

        with pytest.raises(PowerDataProcessorError):
            processor.run()

        auth_session.invalidate.assert_not_called()

    def test_readings_are_appended_to_csv(self, tmp_path, auth_session, metrics_client):
        csv_path = tmp_path / "out" / "power.csv"
        config = build_config(
            tmp_path,
            polling={"samples": 2, "interval": 0},
            output={"csv_path": str(csv_path)},
        )

        for _ in range(2):
            PowerDataProcessor(
                config, auth_session=auth_session, metrics_client=metrics_client
            ).run()

        df = pd.read_csv(csv_path)
        assert len(df) == 4
        assert df["Production (W)"].tolist() == [500.0] * 4

    def test_connection_error_during_login_is_wrapped(self, tmp_path):
        processor = PowerDataProcessor(build_config(tmp_path))
        processor.auth_http.post = MagicMock(
            side_effect=requests.exceptions.ConnectionError("Name or service not known")
        )

        with pytest.raises(PowerDataProcessorError) as exc_info:
            processor.run()

        assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectionError)

    def test_timeout_during_reading_is_wrapped(self, tmp_path, auth_session, metrics_client):
        metrics_client.get_current_power.side_effect = requests.exceptions.ReadTimeout("timed out")
        processor = PowerDataProcessor(
            build_config(tmp_path), auth_session=auth_session, metrics_client=metrics_client
        )

        with pytest.raises(PowerDataProcessorError) as exc_info:
            processor.run()

        assert isinstance(exc_info.value.__cause__, requests.exceptions.Timeout)
        auth_session.invalidate.assert_not_called()

    def test_unwritable_csv_path_is_wrapped(self, tmp_path, auth_session, metrics_client):
        csv_dir = tmp_path / "power.csv"
        csv_dir.mkdir()
        config = build_config(tmp_path, output={"csv_path": str(csv_dir)})
        processor = PowerDataProcessor(
            config, auth_session=auth_session, metrics_client=metrics_client
        )

        with pytest.raises(PowerDataProcessorError) as exc_info:
            processor.run()

        assert isinstance(exc_info.value.__cause__, OSError)


def test_format_reading():
    line = format_reading(PowerReading(production=512.4, consumption=200, net=-312.4))

    assert "Production: 512 W" in line
    assert "Net: -312 W" in line


class TestMain:
    def test_config_error_exits_non_zero(self, tmp_path, monkeypatch, capsys):
        for name in ("ENVOY_SERIAL_NUM", "ENVOY_LOGIN_EMAIL", "ENVOY_LOGIN_PASSWORD"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setattr(main, "install_signal_handlers", lambda: None)

        assert main.main(["--config", str(tmp_path / "missing.yaml")]) == 1
        assert "Error loading configuration" in capsys.readouterr().out

    def test_missing_explicit_config_file_exits_non_zero(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("ENVOY_SERIAL_NUM", "202332112345")
        monkeypatch.setenv("ENVOY_LOGIN_EMAIL", "owner@example.com")
        monkeypatch.setenv("ENVOY_LOGIN_PASSWORD", "hunter2")
        monkeypatch.setattr(main, "install_signal_handlers", lambda: None)
        monkeypatch.setattr(main, "PowerDataProcessor", MagicMock())

        assert main.main(["--config", str(tmp_path / "typo.yaml")]) == 1
        assert "Config file not found" in capsys.readouterr().out
        main.PowerDataProcessor.assert_not_called()

    def test_connection_error_exits_non_zero(self, tmp_path, monkeypatch, capsys):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "auth_url: https://127.0.0.1:9\n"
            "serial_num: '202332112345'\n"
            "login_email: owner@example.com\n"
            "login_password: hunter2\n"
            f"token_storage:\n  path: {tmp_path / 'token.dat'}\n",
            encoding="utf-8",
        )
        for name in ("ENVOY_AUTH_URL", "ENVOY_TOKEN_PATH"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setattr(main, "install_signal_handlers", lambda: None)
        monkeypatch.setattr(
            requests.Session,
            "post",
            MagicMock(side_effect=requests.exceptions.ConnectionError("Connection refused")),
        )

        assert main.main(["--config", str(config_file)]) == 1
        assert "Failed to authenticate" in capsys.readouterr().out

    def test_runs_processor_with_cli_overrides(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "serial_num: '202332112345'\n"
            "login_email: owner@example.com\n"
            "login_password: hunter2\n",
            encoding="utf-8",
        )
        seen = {}

        class FakeProcessor:
            def __init__(self, app_config):
                seen.update(app_config)

            def run(self):
                return []

        monkeypatch.setattr(main, "install_signal_handlers", lambda: None)
        monkeypatch.setattr(main, "PowerDataProcessor", FakeProcessor)

        code = main.main(
            ["--config", str(config_file), "--samples", "3", "--interval", "2", "--debug"]
        )

        assert code == 0
        assert seen["polling"] == {"samples": 3, "interval": 2}
        assert seen["http_settings"]["debug"] is True
