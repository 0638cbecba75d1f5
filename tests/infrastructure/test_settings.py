"""Tests for application settings."""

import os

import pytest
from pydantic import ValidationError as PydanticValidationError

from nutrir.infrastructure.settings import APP_NAME, AuthConfig, Settings


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove NUTRIR_ variables and run from an empty directory."""
    for name in [
        "NUTRIR_APP_NAME", "NUTRIR_LOG_LEVEL", "NUTRIR_JSON_LOGS", "NUTRIR_JWT_SECRET",
        "NUTRIR_JWT_ALGORITHM", "NUTRIR_PRACTITIONER_CLAIM", "NUTRIR_HEARTBEAT_INTERVAL",
        "NUTRIR_CORS_ORIGINS",
    ]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestSettings:
    """Test Settings loading."""

    def test_defaults(self, clean_env):
        settings = Settings()

        assert settings.app_name == APP_NAME
        assert settings.log_level == "INFO"
        assert settings.json_logs is False
        assert settings.heartbeat_interval == 30.0
        assert settings.cors_origins == ["http://localhost:3000"]
        assert settings.auth_config.jwt_algorithm == "HS256"
        assert settings.auth_config.practitioner_claim == "sub"
        assert not settings.auth_config.is_configured

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("NUTRIR_JSON_LOGS", "true")
        clean_env.setenv("NUTRIR_HEARTBEAT_INTERVAL", "5")
        clean_env.setenv("NUTRIR_CORS_ORIGINS", "https://a.example, https://b.example")
        clean_env.setenv("NUTRIR_JWT_SECRET", "s3cret")
        clean_env.setenv("NUTRIR_PRACTITIONER_CLAIM", "practitioner_id")

        settings = Settings()

        assert settings.json_logs is True
        assert settings.heartbeat_interval == 5.0
        assert settings.cors_origins == ["https://a.example", "https://b.example"]
        assert settings.auth_config.is_configured
        assert settings.auth_config.practitioner_claim == "practitioner_id"

    def test_env_file_is_loaded(self, clean_env, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text("NUTRIR_APP_NAME=From File\n")

        try:
            settings = Settings(env_file=str(env_file))
            assert settings.app_name == "From File"
        finally:
            os.environ.pop("NUTRIR_APP_NAME", None)

    def test_secret_not_exposed_in_repr(self, clean_env):
        clean_env.setenv("NUTRIR_JWT_SECRET", "do-not-log-me")

        settings = Settings()

        assert "do-not-log-me" not in repr(settings.auth_config)


class TestAuthConfig:
    """Test AuthConfig validation."""

    def test_algorithm_is_normalized(self):
        assert AuthConfig(jwt_algorithm="hs512").jwt_algorithm == "HS512"

    def test_unsupported_algorithm_rejected(self):
        with pytest.raises(PydanticValidationError):
            AuthConfig(jwt_algorithm="none")

    def test_empty_secret_is_not_configured(self):
        assert not AuthConfig(jwt_secret="").is_configured
