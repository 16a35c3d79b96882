"""Tests for the Strava client and OAuth flow."""

import json
import urllib.parse
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from gap_analytics.integrations.base import (
    AuthenticationError,
    IntegrationError,
    OAuthCredentials,
    RateLimitError,
)
from gap_analytics.integrations.strava import (
    ActivityNotFoundError,
    StravaClient,
    StravaOAuthFlow,
)


# ============================================================================
# Fixtures
# ============================================================================

def _summary(activity_id, **overrides):
    data = {
        "id": activity_id,
        "name": f"Run {activity_id}",
        "sport_type": "Run",
        "type": "Run",
        "start_date": "2024-05-01T07:00:00Z",
        "start_date_local": "2024-05-01T09:00:00Z",
        "distance": 8000.0,
        "moving_time": 2400,
        "elapsed_time": 2450,
        "total_elevation_gain": 40.0,
        "average_speed": 3.33,
        "average_heartrate": 148.0,
    }
    data.update(overrides)
    return data


def _mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def credentials():
    """Strava credentials with a non-expiring token."""
    return OAuthCredentials(access_token="token-abc", refresh_token="refresh-xyz")


@pytest.fixture
def paged_handler():
    """Handler serving `total` activities in pages, recording requests."""
    def _make(total):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            page = int(request.url.params["page"])
            per_page = int(request.url.params["per_page"])
            first = (page - 1) * per_page
            ids = range(first + 1, min(first + per_page, total) + 1)
            return httpx.Response(200, json=[_summary(i) for i in ids])

        return handler, requests
    return _make


# ============================================================================
# StravaClient
# ============================================================================

class TestStravaClientListing:
    """Tests for paginated activity listing."""

    def test_client_requires_access_token(self):
        """Test credentials without an access token are rejected."""
        with pytest.raises(ValueError):
            StravaClient(OAuthCredentials(access_token=""))

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, credentials):
        """Test requests carry the access token."""
        seen = []

        def handler(request):
            seen.append(request.headers["Authorization"])
            return httpx.Response(200, json=[])

        async with _mock_client(handler) as http:
            await StravaClient(credentials, http_client=http).get_activities(count=10)

        assert seen == ["Bearer token-abc"]

    @pytest.mark.asyncio
    async def test_pages_until_empty(self, credentials, paged_handler):
        """Test paging stops at the first empty page."""
        handler, requests = paged_handler(450)

        async with _mock_client(handler) as http:
            client = StravaClient(credentials, http_client=http)
            activities = await client.get_activities(count=1000)

        assert len(activities) == 450
        assert [int(r.url.params["page"]) for r in requests] == [1, 2, 3, 4]
        assert all(r.url.params["per_page"] == "200" for r in requests)
        assert requests[0].headers["Authorization"] == "Bearer token-abc"

    @pytest.mark.asyncio
    async def test_count_limits_result(self, credentials, paged_handler):
        """Test no more than `count` activities are returned."""
        handler, requests = paged_handler(1000)

        async with _mock_client(handler) as http:
            client = StravaClient(credentials, http_client=http)
            activities = await client.get_activities(count=250)

        assert len(activities) == 250
        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_progress_reported_per_page(self, credentials, paged_handler):
        """Test progress callback receives (fetched, requested)."""
        handler, _ = paged_handler(300)
        on_progress = MagicMock()

        async with _mock_client(handler) as http:
            await StravaClient(credentials, http_client=http).get_activities(count=1000, on_progress=on_progress)

        assert [c.args for c in on_progress.call_args_list] == [(200, 1000), (300, 1000)]

    @pytest.mark.asyncio
    async def test_malformed_records_skipped(self, credentials):
        """Test unparseable records are dropped, the rest kept."""
        def handler(request):
            if request.url.params["page"] == "1":
                return httpx.Response(200, json=[_summary(1), {"name": "no id"}, _summary(3)])
            return httpx.Response(200, json=[])

        async with _mock_client(handler) as http:
            activities = await StravaClient(credentials, http_client=http).get_activities()

        assert [a.id for a in activities] == [1, 3]

    @pytest.mark.asyncio
    async def test_rate_limit_headers_tracked(self, credentials):
        """Test usage headers update the remaining budget."""
        def handler(request):
            return httpx.Response(
                200,
                json=[],
                headers={"X-RateLimit-Limit": "200,2000", "X-RateLimit-Usage": "150,1200"},
            )

        async with _mock_client(handler) as http:
            client = StravaClient(credentials, http_client=http)
            await client.get_activities()

        assert client.rate_limit_remaining_15min == 50
        assert client.rate_limit_remaining_daily == 800


class TestStravaClientErrors:
    """Tests for HTTP error mapping."""

    @pytest.mark.asyncio
    async def test_unauthorized(self, credentials):
        """Test 401 raises AuthenticationError."""
        async with _mock_client(lambda r: httpx.Response(401, json={"message": "Authorization Error"})) as http:
            with pytest.raises(AuthenticationError):
                await StravaClient(credentials, http_client=http).get_activities()

    @pytest.mark.asyncio
    async def test_activity_not_found(self, credentials):
        """Test 404 on an activity raises ActivityNotFoundError."""
        async with _mock_client(lambda r: httpx.Response(404, json={"message": "Record Not Found"})) as http:
            with pytest.raises(ActivityNotFoundError) as exc:
                await StravaClient(credentials, http_client=http).get_activity(987)

        assert exc.value.activity_id == 987
        assert exc.value.code == "not_found"

    @pytest.mark.asyncio
    async def test_server_error(self, credentials):
        """Test other statuses raise IntegrationError with the provider message."""
        async with _mock_client(lambda r: httpx.Response(500, json={"message": "Internal"})) as http:
            with pytest.raises(IntegrationError) as exc:
                await StravaClient(credentials, http_client=http).get_activities()

        assert "Internal" in str(exc.value)
        assert exc.value.code == "500"

    @pytest.mark.asyncio
    async def test_rate_limit_retry(self, credentials):
        """Test 429 is retried after the advertised delay."""
        responses = [
            httpx.Response(429, headers={"Retry-After": "5"}),
            httpx.Response(200, json=_summary(42)),
        ]

        async with _mock_client(lambda r: responses.pop(0)) as http:
            with patch("gap_analytics.integrations.strava.asyncio.sleep", new=AsyncMock()) as sleep:
                activity = await StravaClient(credentials, http_client=http).get_activity(42)

        assert activity.id == 42
        sleep.assert_awaited_once_with(5)

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self, credentials):
        """Test RateLimitError after the last attempt, with the wait capped."""
        async with _mock_client(lambda r: httpx.Response(429)) as http:
            with patch("gap_analytics.integrations.strava.asyncio.sleep", new=AsyncMock()) as sleep:
                with pytest.raises(RateLimitError) as exc:
                    await StravaClient(credentials, http_client=http).get_activity(42)

        assert exc.value.retry_after == 900
        assert sleep.await_count == 2
        sleep.assert_awaited_with(60)


class TestStravaClientDetail:
    """Tests for single-activity detail."""

    @pytest.mark.asyncio
    async def test_splits_parsed(self, credentials):
        """Test splits_metric becomes Split records."""
        detail = _summary(7, splits_metric=[
            {"split": 1, "distance": 1000.0, "moving_time": 300, "average_speed": 3.33, "average_heartrate": 140},
            {"split": 2, "distance": 1000.0, "moving_time": 295, "average_speed": 3.39, "average_heartrate": 146},
        ])

        def handler(request):
            assert request.url.path == "/api/v3/activities/7"
            return httpx.Response(200, json=detail)

        async with _mock_client(handler) as http:
            activity = await StravaClient(credentials, http_client=http).get_activity(7)

        assert activity.has_splits is True
        assert [s.average_heartrate for s in activity.splits] == [140, 146]

    @pytest.mark.asyncio
    async def test_malformed_detail(self, credentials):
        """Test an unparseable detail payload raises IntegrationError."""
        async with _mock_client(lambda r: httpx.Response(200, json={"name": "broken"})) as http:
            with pytest.raises(IntegrationError) as exc:
                await StravaClient(credentials, http_client=http).get_activity(7)

        assert exc.value.code == "malformed"

    @pytest.mark.asyncio
    async def test_close_keeps_injected_client(self, credentials):
        """Test closing the Strava client leaves a caller's client open."""
        async with _mock_client(lambda r: httpx.Response(200, json=[])) as http:
            async with StravaClient(credentials, http_client=http):
                pass
            assert http.is_closed is False


# ============================================================================
# StravaOAuthFlow
# ============================================================================

class TestStravaOAuthFlow:
    """Tests for the OAuth flow."""

    def test_authorization_url(self):
        """Test the authorize URL carries client, scope and state."""
        flow = StravaOAuthFlow("12345", "secret", "http://localhost:5173/callback")

        url = flow.get_authorization_url()
        query = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)

        assert url.startswith("https://www.strava.com/oauth/authorize?")
        assert query["client_id"] == ["12345"]
        assert query["response_type"] == ["code"]
        assert query["scope"] == ["read,activity:read_all,profile:read_all"]
        assert flow.validate_state(query["state"][0]) is True

    @pytest.mark.asyncio
    async def test_exchange_code(self):
        """Test a code exchange yields credentials with athlete info."""
        seen = {}

        def handler(request):
            seen.update(urllib.parse.parse_qs(request.content.decode()))
            return httpx.Response(200, json={
                "access_token": "new-access",
                "refresh_token": "new-refresh",
                "expires_at": 1717243200,
                "athlete": {"id": 42, "firstname": "Ana", "lastname": "Runner"},
            })

        async with _mock_client(handler) as http:
            flow = StravaOAuthFlow("12345", "secret", "http://localhost/callback", http_client=http)
            credentials = await flow.exchange_code("auth-code")

        assert seen["grant_type"] == ["authorization_code"]
        assert seen["code"] == ["auth-code"]
        assert credentials.access_token == "new-access"
        assert credentials.refresh_token == "new-refresh"
        assert credentials.athlete_id == 42
        assert credentials.athlete_name == "Ana Runner"
        assert credentials.expires_at == 1717243200
        assert credentials.scope == "read,activity:read_all,profile:read_all"

    @pytest.mark.asyncio
    async def test_exchange_code_rejected(self):
        """Test a failed exchange raises AuthenticationError."""
        async with _mock_client(lambda r: httpx.Response(400, json={"message": "Bad Request"})) as http:
            flow = StravaOAuthFlow("12345", "secret", "http://localhost/callback", http_client=http)
            with pytest.raises(AuthenticationError, match="Bad Request"):
                await flow.exchange_code("bad-code")

    @pytest.mark.asyncio
    async def test_refresh_token(self, credentials):
        """Test refresh keeps athlete info and swaps tokens."""
        credentials.athlete_name = "Ana Runner"

        def handler(request):
            body = urllib.parse.parse_qs(request.content.decode())
            assert body["grant_type"] == ["refresh_token"]
            assert body["refresh_token"] == ["refresh-xyz"]
            return httpx.Response(200, content=json.dumps({
                "access_token": "fresh",
                "expires_at": 1717243200,
            }))

        async with _mock_client(handler) as http:
            flow = StravaOAuthFlow("12345", "secret", "http://localhost/callback", http_client=http)
            refreshed = await flow.refresh_token(credentials)

        assert refreshed.access_token == "fresh"
        assert refreshed.refresh_token == "refresh-xyz"
        assert refreshed.athlete_name == "Ana Runner"

    @pytest.mark.asyncio
    async def test_refresh_without_token(self):
        """Test refresh needs a refresh token."""
        flow = StravaOAuthFlow("12345", "secret", "http://localhost/callback")
        with pytest.raises(AuthenticationError):
            await flow.refresh_token(OAuthCredentials(access_token="t"))
