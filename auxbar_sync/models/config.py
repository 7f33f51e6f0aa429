"""
Pydantic models for the persisted application configuration.

The on-disk document uses the camelCase keys written by earlier releases of the
client; keys are matched case-insensitively so older files keep loading.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


def _match_aliases(model: type[BaseModel], data: Any) -> Any:
    """Rewrites keys of ``data`` to the model's field names, ignoring case."""
    if not isinstance(data, dict):
        return data

    lookup: dict[str, str] = {}
    for name, field in model.model_fields.items():
        key = field.alias or name
        lookup[name.lower()] = name
        lookup[key.lower()] = name

    return {lookup.get(str(k).lower(), k): v for k, v in data.items()}


class DisplayConfig(BaseModel):
    """User toggles for what the rich presence shows."""

    enabled: bool = True
    show_album_name: bool = Field(True, alias="showAlbumName")
    show_progress: bool = Field(True, alias="showPlaybackProgress")
    show_button: bool = Field(True, alias="showButton")

    class Config:
        """Pydantic model configuration."""

        populate_by_name = True
        validate_assignment = True

    @model_validator(mode="before")
    @classmethod
    def normalize_keys(cls, data: Any) -> Any:
        return _match_aliases(cls, data)


class AppConfig(BaseModel):
    """The persisted state of the client: tokens, widget slug and display toggles."""

    access_token: str | None = Field(None, alias="accessToken")
    refresh_token: str | None = Field(None, alias="refreshToken")
    widget_slug: str | None = Field(None, alias="widgetSlug")
    discord: DisplayConfig = Field(default_factory=DisplayConfig)

    class Config:
        """Pydantic model configuration."""

        populate_by_name = True
        validate_assignment = True
        str_strip_whitespace = True

    @model_validator(mode="before")
    @classmethod
    def normalize_keys(cls, data: Any) -> Any:
        return _match_aliases(cls, data)

    @field_validator("access_token", "refresh_token", "widget_slug")
    @classmethod
    def empty_as_none(cls, v: str | None) -> str | None:
        """Treats blank strings the same as a missing value."""
        return v or None

    @field_validator("discord", mode="before")
    @classmethod
    def default_display(cls, v: Any) -> Any:
        return DisplayConfig() if v is None else v

    @property
    def has_tokens(self) -> bool:
        return bool(self.access_token and self.refresh_token)

    def to_document(self) -> dict[str, Any]:
        """Returns the JSON-ready representation written to disk."""
        return self.model_dump(by_alias=True)
