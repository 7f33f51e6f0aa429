"""
Auxbar API Layer.

This package handles authentication against the Auxbar service and the
lifecycle of the resulting session tokens.
"""

from .client import AuxbarAPIClient
from .session import SessionManager

__all__ = ["AuxbarAPIClient", "SessionManager"]
