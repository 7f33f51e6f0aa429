"""
Tunable timings and endpoints for the sync engine, validated with pydantic.
"""

from pydantic import BaseModel, field_validator, model_validator

DEFAULT_BASE_URL = "https://auxbar.me"
DISCORD_CLIENT_ID = "1457077045090717717"


class SyncSettings(BaseModel):
    """Engine-wide settings. Defaults match the production service."""

    base_url: str = DEFAULT_BASE_URL

    # Session renewal
    token_lifetime_s: float = 15 * 60
    refresh_ratio: float = 0.8

    # Media sampling and change detection
    poll_interval_s: float = 1.0
    drift_slack_factor: float = 1.5
    drift_threshold_ms: int = 2500

    # Real-time link
    reconnect_timeout_s: float = 30.0
    error_reconnect_timeout_s: float = 5.0

    # Presence
    discord_client_id: str = DISCORD_CLIENT_ID
    presence_grace_delay_s: float = 2.0
    presence_reconnect_interval_s: float = 15.0

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Base URL must start with http:// or https://.")
        return v.rstrip("/")

    @field_validator(
        "token_lifetime_s",
        "poll_interval_s",
        "reconnect_timeout_s",
        "error_reconnect_timeout_s",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Intervals and timeouts must be greater than zero.")
        return v

    @field_validator(
        "presence_grace_delay_s", "presence_reconnect_interval_s", "drift_slack_factor"
    )
    @classmethod
    def validate_not_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Value cannot be negative.")
        return v

    @field_validator("refresh_ratio")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        # Renewal must happen strictly before the token expires.
        if not 0 < v < 1:
            raise ValueError("Refresh ratio must be between 0 and 1 (exclusive).")
        return v

    @model_validator(mode="after")
    def validate_reconnect_timeouts(self) -> "SyncSettings":
        if self.error_reconnect_timeout_s > self.reconnect_timeout_s:
            raise ValueError(
                "The error reconnect timeout cannot exceed the reconnect timeout."
            )
        return self

    @property
    def refresh_interval_s(self) -> float:
        """Seconds between scheduled token renewals."""
        return self.token_lifetime_s * self.refresh_ratio
