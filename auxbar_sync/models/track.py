"""
The immutable description of what is currently playing.
"""

from typing import Any

from pydantic import BaseModel, Field


class TrackState(BaseModel):
    """
    A single observation of the playing track.

    Idle (nothing playing) is represented by ``None`` wherever a
    ``TrackState | None`` is accepted. Wire names follow the remote service:
    ``albumArt``, ``progress`` and ``duration`` (milliseconds).
    """

    title: str
    artist: str
    album: str | None = None
    album_art: str | None = Field(None, alias="albumArt")
    playing: bool = False
    position_ms: int | None = Field(None, alias="progress")
    duration_ms: int | None = Field(None, alias="duration")

    class Config:
        """Pydantic model configuration."""

        frozen = True
        populate_by_name = True

    @property
    def identity(self) -> tuple[str, str]:
        """The key used to decide whether two states describe the same track."""
        return (self.title, self.artist)

    def to_wire(self) -> dict[str, Any]:
        """Returns the camelCase payload sent to the remote service."""
        return self.model_dump(by_alias=True)

    def describe(self) -> str:
        return f"{self.title} — {self.artist}"
