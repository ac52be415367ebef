"""Test the Square settings."""

import logging
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from square_connect.core.dependencies import get_square_client
from square_connect.core.settings import (
    SQUARE_BASE_URL_PRODUCTION,
    SQUARE_BASE_URL_SANDBOX,
    PersistencePolicy,
    SquareSettings,
)


def test_defaults_to_sandbox_and_best_effort(monkeypatch: pytest.MonkeyPatch) -> None:
    """Without an environment selector the sandbox is used."""
    monkeypatch.delenv("SQUARE_ENVIRONMENT", raising=False)
    monkeypatch.delenv("SQUARE_PERSISTENCE_POLICY", raising=False)
    settings = SquareSettings(_env_file=None)
    assert settings.environment == "sandbox"
    assert settings.square_base_url == SQUARE_BASE_URL_SANDBOX
    assert settings.persistence_policy is PersistencePolicy.BEST_EFFORT
    assert settings.success_path == "/api/square/success"


def test_reads_environment_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    """Client identity and environment come from the process environment."""
    monkeypatch.setenv("SQUARE_APP_ID", "app-id")
    monkeypatch.setenv("SQUARE_APP_SECRET", "app-secret")
    monkeypatch.setenv("REDIRECT_URI", "https://example.com/api/square/callback")
    monkeypatch.setenv("SQUARE_ENVIRONMENT", "Production")
    monkeypatch.setenv("SQUARE_PERSISTENCE_POLICY", "strict")

    settings = SquareSettings(_env_file=None)

    assert settings.square_app_id == "app-id"
    assert settings.square_app_secret == "app-secret"
    assert settings.redirect_uri == "https://example.com/api/square/callback"
    assert settings.environment == "production"
    assert settings.square_base_url == SQUARE_BASE_URL_PRODUCTION
    assert settings.persistence_policy is PersistencePolicy.STRICT
    assert settings.is_oauth_configured


def test_square_redirect_uri_alias(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REDIRECT_URI", raising=False)
    monkeypatch.setenv("SQUARE_REDIRECT_URI", "https://example.com/cb")
    assert SquareSettings(_env_file=None).redirect_uri == "https://example.com/cb"


def test_unknown_environment_is_rejected() -> None:
    with pytest.raises(ValidationError):
        SquareSettings(_env_file=None, square_environment="staging")


def test_missing_oauth_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Every absent piece of client identity is reported by name."""
    for name in ("SQUARE_APP_ID", "SQUARE_APP_SECRET", "REDIRECT_URI", "SQUARE_REDIRECT_URI"):
        monkeypatch.delenv(name, raising=False)
    settings = SquareSettings(_env_file=None, square_app_id="app-id")
    assert settings.missing_oauth_settings() == ["SQUARE_APP_SECRET", "REDIRECT_URI"]
    assert not settings.is_oauth_configured


def test_square_client_logs_base_url(caplog: pytest.LogCaptureFixture) -> None:
    """The token exchange client is created for the configured Square domain."""
    settings = SquareSettings(_env_file=None, square_environment="production")
    with (
        patch("square_connect.core.dependencies.get_settings", return_value=settings),
        patch("square_connect.core.dependencies.Client") as client_cls,
        caplog.at_level(logging.INFO, logger="dependencies"),
    ):
        get_square_client.__wrapped__()

    client_cls.assert_called_once_with(
        environment="production", square_version=settings.square_version
    )
    assert SQUARE_BASE_URL_PRODUCTION in caplog.text
