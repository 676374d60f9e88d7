"""Tests for config validation in github_app_auth/config.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from github_app_auth.config import LogFormat, Settings, get_settings, override_settings


class TestConfigValidation:
    def test_defaults(self):
        s = Settings()
        assert s.github_api_url == "https://api.github.com"
        assert s.jwt_ttl == 600
        assert s.token_safety_margin == 120.0
        assert s.exchange_max_attempts == 3
        assert s.serve_stale_on_error is False

    def test_reads_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("GITHUB_APP_AUTH_GITHUB_API_URL", "https://ghe.example.com/api/v3")
        monkeypatch.setenv("GITHUB_APP_AUTH_LOG_FORMAT", "json")
        s = Settings()
        assert s.github_api_url == "https://ghe.example.com/api/v3"
        assert s.log_format == LogFormat.JSON

    def test_jwt_ttl_above_github_ceiling_rejected(self):
        with pytest.raises(ValidationError):
            Settings(jwt_ttl=601)

    def test_zero_attempts_rejected(self):
        with pytest.raises(ValidationError):
            Settings(exchange_max_attempts=0)

    def test_non_http_api_url_rejected(self):
        with pytest.raises(ValidationError, match="GITHUB_API_URL"):
            Settings(github_api_url="api.github.com")

    def test_fallback_ttl_must_exceed_margin(self):
        with pytest.raises(ValidationError, match="FALLBACK_TOKEN_TTL"):
            Settings(fallback_token_ttl=60, token_safety_margin=120)

    def test_backoff_max_below_base_rejected(self):
        with pytest.raises(ValidationError, match="BACKOFF_MAX"):
            Settings(exchange_backoff_base=5, exchange_backoff_max=1)


class TestSettingsSingleton:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_override_settings(self):
        s = Settings(token_safety_margin=30)
        override_settings(s)
        assert get_settings() is s
