"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from zoomphone.config import (
    DEFAULT_API_BASE_URL,
    DEFAULT_REDIRECT_URI,
    DEFAULT_WEBHOOK_PORT,
    ConfigError,
    load_settings,
)


class TestLoadSettings:
    def test_defaults_with_empty_environment(self):
        settings = load_settings({})

        assert settings.client_id == ""
        assert settings.redirect_uri == DEFAULT_REDIRECT_URI
        assert settings.api_base_url == DEFAULT_API_BASE_URL
        assert settings.webhook_port == DEFAULT_WEBHOOK_PORT
        assert settings.log_level == "INFO"
        assert settings.recordings_dir == "./recordings"
        assert settings.token_file == ".tokens.json"

    def test_reads_all_variables(self):
        settings = load_settings(
            {
                "ZOOM_CLIENT_ID": "cid",
                "ZOOM_CLIENT_SECRET": "csecret",
                "ZOOM_REDIRECT_URI": "http://localhost:9000/cb",
                "ZOOM_API_BASE_URL": "https://example.test/v2/",
                "ZOOM_WEBHOOK_SECRET_TOKEN": "whsec",
                "WEBHOOK_PORT": "8080",
                "LOG_LEVEL": "debug",
                "RECORDINGS_OUTPUT_DIR": "/tmp/rec",
                "ZOOM_TOKEN_FILE": "/tmp/tokens.json",
            }
        )

        assert settings.client_id == "cid"
        assert settings.client_secret == "csecret"
        assert settings.redirect_uri == "http://localhost:9000/cb"
        assert settings.api_base_url == "https://example.test/v2"
        assert settings.webhook_secret == "whsec"
        assert settings.webhook_port == 8080
        assert settings.log_level == "DEBUG"
        assert settings.recordings_dir == "/tmp/rec"
        assert settings.token_file == "/tmp/tokens.json"

    def test_non_integer_port_is_config_error(self):
        with pytest.raises(ConfigError, match="WEBHOOK_PORT"):
            load_settings({"WEBHOOK_PORT": "abc"})

    def test_reads_process_environment_by_default(self, monkeypatch):
        monkeypatch.setenv("ZOOM_CLIENT_ID", "from-env")
        assert load_settings().client_id == "from-env"


class TestMissingCredentials:
    def test_lists_unset_variables(self):
        assert load_settings({}).missing_credentials() == ["ZOOM_CLIENT_ID", "ZOOM_CLIENT_SECRET"]

    def test_empty_when_both_set(self):
        settings = load_settings({"ZOOM_CLIENT_ID": "a", "ZOOM_CLIENT_SECRET": "b"})
        assert settings.missing_credentials() == []
