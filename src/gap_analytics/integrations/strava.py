"""
Strava integration for activity sync and split enrichment.

Implements:
- OAuth 2.0 flow for Strava (authorize, code exchange, token refresh)
- Paginated activity listing
- Single-activity detail with per-km splits
"""

import asyncio
import logging
import secrets
import urllib.parse
from typing import Any, Dict, List, Optional

import httpx

from ..exceptions import MalformedActivityError
from ..models.activity import RawActivity
from .base import (
    AuthenticationError,
    IntegrationError,
    OAuthCredentials,
    ProgressCallback,
    RateLimitError,
)

logger = logging.getLogger(__name__)

# Longest single wait on a 429 before retrying
MAX_RETRY_WAIT_SECONDS = 60


class ActivityNotFoundError(IntegrationError):
    """Activity not found on Strava."""

    def __init__(self, activity_id: int):
        self.activity_id = activity_id
        super().__init__(f"Activity {activity_id} not found", "not_found", 404)


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        data = response.json() if response.content else {}
    except ValueError:
        return response.text or fallback
    if isinstance(data, dict):
        return data.get("message", fallback)
    return fallback


class StravaOAuthFlow:
    """
    OAuth 2.0 flow for Strava.

    Usage:
        oauth = StravaOAuthFlow(
            client_id="your_client_id",
            client_secret="your_client_secret",
            redirect_uri="http://localhost:5173/callback",
        )
        auth_url = oauth.get_authorization_url()
        # After the athlete authorizes, exchange the code:
        credentials = await oauth.exchange_code(code)
    """

    authorize_url = "https://www.strava.com/oauth/authorize"
    token_url = "https://www.strava.com/oauth/token"

    # Read-only access to all activities, including private ones
    DEFAULT_SCOPE = "read,activity:read_all,profile:read_all"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scope: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scope = scope or self.DEFAULT_SCOPE
        self._http_client = http_client
        self._state: Optional[str] = None

    def validate_state(self, state: str) -> bool:
        """Check the `state` echoed on the callback against the one we sent."""
        return self._state is not None and secrets.compare_digest(self._state, state)

    def get_authorization_url(self) -> str:
        """
        Get the Strava authorization URL.

        Each call issues a fresh CSRF state.

        Returns:
            Full authorization URL to redirect the athlete to.
        """
        self._state = secrets.token_urlsafe(32)

        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "state": self._state,
            "approval_prompt": "auto",
        }

        query = urllib.parse.urlencode(params)
        return f"{self.authorize_url}?{query}"

    async def _post_token(self, payload: Dict[str, str], failure: str) -> Dict[str, Any]:
        payload = {"client_id": self.client_id, "client_secret": self.client_secret, **payload}

        if self._http_client is not None:
            response = await self._http_client.post(self.token_url, data=payload)
        else:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(self.token_url, data=payload)

        if response.status_code != 200:
            raise AuthenticationError(
                _error_message(response, f"{failure}: {response.status_code}"),
                response.status_code,
            )
        return response.json()

    async def exchange_code(self, code: str) -> OAuthCredentials:
        """
        Exchange authorization code for access token.

        Args:
            code: Authorization code from callback

        Returns:
            OAuth credentials with access and refresh tokens

        Raises:
            AuthenticationError: If code exchange fails
        """
        data = await self._post_token(
            {"code": code, "grant_type": "authorization_code"},
            "Token exchange failed",
        )
        return OAuthCredentials.from_token_response(data, scope=self.scope)

    async def refresh_token(self, credentials: OAuthCredentials) -> OAuthCredentials:
        """
        Refresh an expired access token.

        Strava may rotate the refresh token; the athlete info is carried over.

        Raises:
            AuthenticationError: If no refresh token or refresh fails
        """
        if not credentials.refresh_token:
            raise AuthenticationError("No refresh token available")

        data = await self._post_token(
            {"refresh_token": credentials.refresh_token, "grant_type": "refresh_token"},
            "Token refresh failed",
        )
        return OAuthCredentials.from_token_response(data, previous=credentials)


class StravaClient:
    """
    Client for Strava API v3.

    Rate limits (Strava API):
    - 15-minute limit: 200 requests
    - Daily limit: 2,000 requests

    Usage:
        credentials = await oauth_flow.exchange_code(code)
        async with StravaClient(credentials) as client:
            activities = await client.get_activities(count=1000)
            detail = await client.get_activity(activities[0].id)
    """

    base_url = "https://www.strava.com/api/v3"

    # Fixed listing page size (Strava maximum)
    PAGE_SIZE = 200

    # Rate limit tracking
    _rate_limit_15min: int = 200
    _rate_limit_daily: int = 2000
    _rate_limit_usage_15min: int = 0
    _rate_limit_usage_daily: int = 0

    def __init__(
        self,
        credentials: OAuthCredentials,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not credentials.access_token:
            raise ValueError("Credentials have no access token")
        self.credentials = credentials
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=30.0)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "StravaClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        max_retries: int = 3,
    ) -> Any:
        """
        Make an API request with rate limit handling.

        Args:
            method: HTTP method
            endpoint: API endpoint (e.g., "/athlete/activities")
            params: Query parameters
            max_retries: Maximum attempts when rate limited

        Returns:
            Response data (dict or list)

        Raises:
            AuthenticationError: If token is expired or invalid
            RateLimitError: If rate limit exceeded after retries
            ActivityNotFoundError: If activity not found (404)
            IntegrationError: For other API errors
        """
        url = f"{self.base_url}{endpoint}"
        headers = self.credentials.auth_header

        client = await self._get_client()

        for attempt in range(max_retries):
            response = await client.request(method, url, headers=headers, params=params)

            self._update_rate_limits(response)

            if response.status_code == 200:
                return response.json()

            if response.status_code == 401:
                raise AuthenticationError(
                    "Token expired or invalid. Please re-authenticate.",
                    401,
                )

            if response.status_code == 404:
                if "/activities/" in endpoint:
                    activity_id = int(endpoint.split("/activities/")[1].split("/")[0])
                    raise ActivityNotFoundError(activity_id)
                raise IntegrationError(f"Resource not found: {endpoint}", "not_found", 404)

            if response.status_code == 429:
                retry_after = self._get_retry_after(response)
                if attempt < max_retries - 1:
                    wait = min(retry_after, MAX_RETRY_WAIT_SECONDS)
                    logger.warning(
                        "Strava rate limit hit, retrying in %ss (attempt %d/%d)",
                        wait, attempt + 1, max_retries,
                    )
                    await asyncio.sleep(wait)
                    continue
                raise RateLimitError(
                    "Strava rate limit exceeded. Please wait before retrying.",
                    retry_after,
                )

            raise IntegrationError(
                f"Strava API error: {_error_message(response, f'HTTP {response.status_code}')}",
                str(response.status_code),
                response.status_code,
            )

        raise IntegrationError("Max retries exceeded")

    def _update_rate_limits(self, response: httpx.Response) -> None:
        """Update rate limit tracking from response headers."""
        # Format: "15min,daily" for both X-RateLimit-Limit and X-RateLimit-Usage
        limit_header = response.headers.get("X-RateLimit-Limit", "")
        usage_header = response.headers.get("X-RateLimit-Usage", "")

        if limit_header:
            parts = limit_header.split(",")
            if len(parts) >= 2:
                self._rate_limit_15min = int(parts[0])
                self._rate_limit_daily = int(parts[1])

        if usage_header:
            parts = usage_header.split(",")
            if len(parts) >= 2:
                self._rate_limit_usage_15min = int(parts[0])
                self._rate_limit_usage_daily = int(parts[1])

    def _get_retry_after(self, response: httpx.Response) -> int:
        """Get retry-after time from rate limit response."""
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            return int(retry_after)

        # Strava windows are 15 minutes
        return 900

    @property
    def rate_limit_remaining_15min(self) -> int:
        """Get remaining requests in 15-minute window."""
        return max(0, self._rate_limit_15min - self._rate_limit_usage_15min)

    @property
    def rate_limit_remaining_daily(self) -> int:
        """Get remaining requests in daily window."""
        return max(0, self._rate_limit_daily - self._rate_limit_usage_daily)

    async def get_activities(
        self,
        count: int = 1000,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[RawActivity]:
        """
        Get the athlete's most recent activities.

        Pages through /athlete/activities at 200 per page until `count`
        activities are collected or an empty page is returned. Records that
        cannot be parsed are skipped with a warning.

        Args:
            count: Maximum number of activities to return
            on_progress: Called with (fetched, count) after each page

        Returns:
            List of RawActivity objects without splits, newest first
        """
        activities: List[RawActivity] = []
        page = 1

        while len(activities) < count:
            response = await self._request(
                "GET",
                "/athlete/activities",
                params={"per_page": self.PAGE_SIZE, "page": page},
            )
            if not isinstance(response, list) or not response:
                break

            for data in response:
                try:
                    activities.append(RawActivity.from_api_response(data))
                except MalformedActivityError as e:
                    logger.warning("Skipping malformed activity: %s", e.message)

            if on_progress:
                on_progress(min(len(activities), count), count)
            page += 1

        logger.info("Fetched %d activities from Strava", min(len(activities), count))
        return activities[:count]

    async def get_activity(self, activity_id: int) -> RawActivity:
        """
        Get detailed activity data, including `splits_metric`.

        Raises:
            ActivityNotFoundError: If the activity does not exist
            IntegrationError: If the payload cannot be parsed
        """
        response = await self._request("GET", f"/activities/{activity_id}")
        try:
            return RawActivity.from_api_response(response)
        except MalformedActivityError as e:
            raise IntegrationError(e.message, "malformed") from e
