"""Application Settings and Configuration.

This module provides application-wide settings loaded from the environment
(optionally from a .env file) with sensible development defaults.

Security Impact:
    - The token verification secret is held as SecretStr and never logged
    - Auth settings are validated before use
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator

logger = logging.getLogger(__name__)

# Application metadata
APP_NAME = "Nutrir Realtime"
APP_VERSION = "1.0.0"

# Seconds between keep-alive frames on idle realtime connections
DEFAULT_HEARTBEAT_INTERVAL = 30.0

DEFAULT_CORS_ORIGINS = "http://localhost:3000"


class AuthConfig(BaseModel):
    """Remote channel authentication configuration.

    Parameters:
        jwt_secret: Key used to verify bearer tokens (secret)
        jwt_algorithm: Signing algorithm of the identity provider's tokens
        practitioner_claim: Claim holding the owning practitioner's id
    """

    jwt_secret: Optional[SecretStr] = Field(None, description="Token verification key (secret)")
    jwt_algorithm: str = Field(default="HS256", description="Token signing algorithm")
    practitioner_claim: str = Field(default="sub", min_length=1, description="Practitioner id claim")

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Validate token algorithm."""
        supported = ["HS256", "HS384", "HS512", "RS256", "RS384", "RS512", "ES256"]
        if v.upper() not in supported:
            raise ValueError(f"Unsupported JWT algorithm: {v}. Supported: {supported}")
        return v.upper()

    @property
    def is_configured(self) -> bool:
        """True when a verification secret is available."""
        return self.jwt_secret is not None and bool(self.jwt_secret.get_secret_value())


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    """Application settings loaded from the environment.

    All variables use the NUTRIR_ prefix. A .env file in the working
    directory is loaded first when present; real environment variables win.
    """

    def __init__(self, env_file: Optional[str] = None):
        """Initialize settings from environment.

        Parameters:
            env_file: Optional path to a .env file (default: ./.env)
        """
        env_path = Path(env_file) if env_file else Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment from {env_path}")

        self.app_name = os.getenv("NUTRIR_APP_NAME", APP_NAME)
        self.app_version = APP_VERSION

        # Logging
        self.log_level = os.getenv("NUTRIR_LOG_LEVEL", "INFO")
        self.json_logs = _env_flag("NUTRIR_JSON_LOGS")

        # Realtime
        self.heartbeat_interval = float(
            os.getenv("NUTRIR_HEARTBEAT_INTERVAL", str(DEFAULT_HEARTBEAT_INTERVAL))
        )

        # CORS
        self.cors_origins: List[str] = [
            origin.strip()
            for origin in os.getenv("NUTRIR_CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
            if origin.strip()
        ]

        self._auth_config: Optional[AuthConfig] = None

    @property
    def auth_config(self) -> AuthConfig:
        """Get remote channel authentication configuration.

        Returns:
            AuthConfig built lazily from NUTRIR_JWT_* variables

        Security Impact:
            - The secret is wrapped in SecretStr before any other use
        """
        if self._auth_config is None:
            self._auth_config = AuthConfig(
                jwt_secret=os.getenv("NUTRIR_JWT_SECRET"),
                jwt_algorithm=os.getenv("NUTRIR_JWT_ALGORITHM", "HS256"),
                practitioner_claim=os.getenv("NUTRIR_PRACTITIONER_CLAIM", "sub"),
            )
        return self._auth_config


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings instance (created on first use)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
