"""
Strava token record and the errors raised by the Strava integration.

Strava issues short-lived access tokens (six hours) together with a
refresh token; both arrive in the same JSON body from /oauth/token, along
with the athlete summary on the first exchange. `OAuthCredentials` keeps
that body in the shape Strava sends it (expiry as epoch seconds) so it can
be cached as-is and rebuilt from every token response.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


# Called with (activities fetched so far, requested count)
ProgressCallback = Callable[[int, int], None]

# Treat tokens as expired this long before Strava does
EXPIRY_MARGIN_SECONDS = 300


class IntegrationError(Exception):
    """A Strava request failed."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


class AuthenticationError(IntegrationError):
    """Token rejected, expired or not refreshable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, "unauthorized", status_code)


class RateLimitError(IntegrationError):
    """Strava's 15-minute or daily request quota is used up."""

    def __init__(self, message: str, retry_after: int):
        self.retry_after = retry_after
        super().__init__(message, "rate_limit", 429)


@dataclass
class OAuthCredentials:
    """Access and refresh tokens for one Strava athlete."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None    # epoch seconds
    scope: Optional[str] = None
    athlete_id: Optional[int] = None
    athlete_name: Optional[str] = None

    def seconds_left(self, now: Optional[float] = None) -> Optional[float]:
        if self.expires_at is None:
            return None
        return self.expires_at - (time.time() if now is None else now)

    @property
    def is_expired(self) -> bool:
        left = self.seconds_left()
        return left is not None and left <= EXPIRY_MARGIN_SECONDS

    @property
    def needs_refresh(self) -> bool:
        return self.is_expired and bool(self.refresh_token)

    @property
    def auth_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    @classmethod
    def from_token_response(
        cls,
        data: Dict[str, Any],
        scope: Optional[str] = None,
        previous: Optional["OAuthCredentials"] = None,
    ) -> "OAuthCredentials":
        """
        Build credentials from a /oauth/token response body.

        Refresh responses carry no athlete and may omit the refresh token;
        those fields are taken from `previous`.

        Raises:
            AuthenticationError: If the body has no access token
        """
        if not data.get("access_token"):
            raise AuthenticationError("Token response without access_token")

        athlete = data.get("athlete") or {}
        name = " ".join(
            part for part in (athlete.get("firstname"), athlete.get("lastname")) if part
        )

        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or (previous.refresh_token if previous else None),
            expires_at=int(data["expires_at"]) if data.get("expires_at") else None,
            scope=scope or (previous.scope if previous else None),
            athlete_id=athlete.get("id") or (previous.athlete_id if previous else None),
            athlete_name=name or (previous.athlete_name if previous else None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "scope": self.scope,
            "athlete_id": self.athlete_id,
            "athlete_name": self.athlete_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OAuthCredentials":
        expires_at = data.get("expires_at")
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=int(expires_at) if expires_at is not None else None,
            scope=data.get("scope"),
            athlete_id=data.get("athlete_id"),
            athlete_name=data.get("athlete_name"),
        )
