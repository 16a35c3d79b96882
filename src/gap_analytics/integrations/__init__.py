"""
External integrations for gap-analytics.

Provides the OAuth-based connection to Strava.
"""

from .base import (
    AuthenticationError,
    IntegrationError,
    OAuthCredentials,
    RateLimitError,
)

from .strava import (
    ActivityNotFoundError,
    StravaClient,
    StravaOAuthFlow,
)

__all__ = [
    # Errors and credentials
    "AuthenticationError",
    "IntegrationError",
    "OAuthCredentials",
    "RateLimitError",
    # Strava
    "ActivityNotFoundError",
    "StravaClient",
    "StravaOAuthFlow",
]
