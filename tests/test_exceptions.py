"""Tests for the exception hierarchy."""

from gap_analytics.exceptions import (
    ActivityNotInStoreError,
    CacheError,
    ConfigurationError,
    DataNotFoundError,
    ErrorCode,
    GapAnalyticsError,
    MalformedActivityError,
    ValidationError,
)


class TestGapAnalyticsError:
    """Tests for the base exception."""

    def test_to_dict(self):
        """Test the error payload includes details only when present."""
        assert GapAnalyticsError("boom").to_dict() == {
            "error": {"code": "INTERNAL_ERROR", "message": "boom"},
        }
        error = ValidationError("bad year", field="year")
        assert error.to_dict()["error"]["details"] == {"field": "year"}

    def test_repr(self):
        """Test repr shows class, code and message."""
        assert repr(CacheError("gone")) == "CacheError(code=CACHE_READ_ERROR, message='gone')"


class TestSubclasses:
    """Tests for specific error types."""

    def test_malformed_activity(self):
        """Test malformed activities are validation errors with their own code."""
        error = MalformedActivityError("no start date", activity_id=12)

        assert isinstance(error, ValidationError)
        assert error.code == ErrorCode.ACTIVITY_MALFORMED
        assert error.details == {"activity_id": 12}

    def test_activity_not_in_store(self):
        """Test the not-found error names the activity."""
        error = ActivityNotInStoreError(42)

        assert isinstance(error, DataNotFoundError)
        assert error.code == ErrorCode.ACTIVITY_NOT_FOUND
        assert error.message == "Activity not found: 42"

    def test_cache_write_error(self):
        """Test write failures use the write code."""
        error = CacheError("disk full", path="/tmp/cache.json", write=True)

        assert error.code == ErrorCode.CACHE_WRITE_ERROR
        assert error.details["path"] == "/tmp/cache.json"

    def test_configuration_error_default_message(self):
        """Test the default configuration message."""
        error = ConfigurationError()

        assert error.code == ErrorCode.STRAVA_NOT_CONFIGURED
        assert "not configured" in str(error)
