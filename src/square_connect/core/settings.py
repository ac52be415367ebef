"""
Settings for the Square connection service.
"""

from enum import Enum

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SQUARE_VERSION = "2023-09-25"
SQUARE_BASE_URL_SANDBOX = "https://connect.squareupsandbox.com"
SQUARE_BASE_URL_PRODUCTION = "https://connect.squareup.com"
SQUARE_SUCCESS_PATH = "/api/square/success"

load_dotenv()


class PersistencePolicy(Enum):
    """
    What the callback does when storing the exchanged tokens fails.

    BEST_EFFORT logs the failure and still reports success to the user once the
    token exchange has succeeded. STRICT reports ``database_error`` instead.
    """

    BEST_EFFORT = "best_effort"
    STRICT = "strict"


class SquareSettings(BaseSettings):
    """
    Settings for the Square OAuth callback.
    """

    square_app_id: str = ""
    square_app_secret: str = ""
    redirect_uri: str = Field(
        default="", validation_alias=AliasChoices("redirect_uri", "square_redirect_uri")
    )
    square_environment: str = "sandbox"
    square_version: str = SQUARE_VERSION
    success_path: str = Field(
        default=SQUARE_SUCCESS_PATH,
        validation_alias=AliasChoices("success_path", "square_success_path"),
    )
    persistence_policy: PersistencePolicy = Field(
        default=PersistencePolicy.BEST_EFFORT,
        validation_alias=AliasChoices("persistence_policy", "square_persistence_policy"),
    )
    claim_state: bool = Field(
        default=False, validation_alias=AliasChoices("claim_state", "square_claim_state")
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("square_environment", mode="before")
    @classmethod
    def normalize_environment(cls, value: str | None) -> str:
        """Only ``sandbox`` and ``production`` are known Square environments."""
        environment = (value or "sandbox").strip().lower()
        if environment not in ("sandbox", "production"):
            raise ValueError(f"Invalid environment: {value}")
        return environment

    @property
    def environment(self) -> str:
        """Square SDK environment name."""
        return self.square_environment

    @property
    def square_base_url(self) -> str:
        """Base URL of the Square Connect API for the configured environment."""
        if self.square_environment == "production":
            return SQUARE_BASE_URL_PRODUCTION
        return SQUARE_BASE_URL_SANDBOX

    def missing_oauth_settings(self) -> list[str]:
        """Names of the client identity settings that are not configured."""
        required = {
            "SQUARE_APP_ID": self.square_app_id,
            "SQUARE_APP_SECRET": self.square_app_secret,
            "REDIRECT_URI": self.redirect_uri,
        }
        return [name for name, value in required.items() if not value]

    @property
    def is_oauth_configured(self) -> bool:
        return not self.missing_oauth_settings()
