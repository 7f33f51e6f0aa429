"""
The authenticated session held by the SessionManager.
"""

import time
from dataclasses import dataclass


@dataclass(frozen=True)
class Session:
    """Access/refresh token pair with an approximate expiry (Unix time)."""

    access_token: str
    refresh_token: str
    expires_at: float

    @classmethod
    def issue(cls, access_token: str, refresh_token: str, lifetime_s: float) -> "Session":
        """Creates a session that expires ``lifetime_s`` seconds from now."""
        return cls(access_token, refresh_token, time.time() + lifetime_s)

    @property
    def seconds_left(self) -> float:
        return max(0.0, self.expires_at - time.time())

    def __repr__(self) -> str:
        return f"Session(access_token='{self.access_token[:8]}...', expires_at={self.expires_at:.0f})"
