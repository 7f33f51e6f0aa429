"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class AuxbarError(Exception):
    """Base exception for all application-specific errors."""


class AuthenticationError(AuxbarError):
    """Raised when login fails due to invalid credentials or an unreachable server."""


class SessionConflictError(AuxbarError):
    """
    Raised when the account already has an active session on another client.

    The login can be retried with ``force_login=True`` to take the session over.
    """


class RefreshFailedError(AuxbarError):
    """Raised when the refresh token is rejected. The session cannot be recovered."""


class TransportError(AuxbarError):
    """Raised for real-time connection failures. Handled by the reconnect loop."""


class PresenceClientError(AuxbarError):
    """Raised when the rich presence client is unavailable or rejects an update."""


class ConfigurationError(AuxbarError):
    """Raised for issues related to configuration loading or validation."""


class StaleConnectionError(TransportError):
    """Raised when the real-time connection stays silent for too long."""
