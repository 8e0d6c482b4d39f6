"""Tests for refresh error classification."""
import asyncio

import httpx
import pytest
from sqlalchemy.exc import ArgumentError, DataError, IntegrityError, OperationalError

from tiktrack.provider.client import (
    ProviderConfigError,
    ProviderError,
    ProviderNotFoundError,
    ProviderRateLimitError,
)
from tiktrack.refresh.errors import FatalRefreshError, RefreshErrorKind, classify


def _status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://example.test/user/info")
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError(f"HTTP {code}", request=request, response=response)


class TestRateLimited:
    def test_provider_rate_limit_error(self):
        assert classify(ProviderRateLimitError("slow down", status_code=429)) is RefreshErrorKind.RATE_LIMITED

    def test_httpx_429(self):
        assert classify(_status_error(429)) is RefreshErrorKind.RATE_LIMITED

    def test_generic_error_with_429_status_attribute(self):
        assert classify(ProviderError("boom", status_code=429)) is RefreshErrorKind.RATE_LIMITED

    @pytest.mark.parametrize(
        "message",
        [
            "Rate limit exceeded. Please try again later.",
            "Rate limit exceeded for tiktok",
            "429 Too Many Requests",
            "You have exceeded the rate-limit",
            "Monthly quota exceeded for this plan",
        ],
    )
    def test_rate_limit_vocabulary(self, message):
        assert classify(Exception(message)) is RefreshErrorKind.RATE_LIMITED

    def test_rate_limit_wins_over_server_error_status(self):
        err = ProviderError("upstream says: rate limit hit", status_code=503)
        assert classify(err) is RefreshErrorKind.RATE_LIMITED

    def test_429_inside_account_id_is_not_rate_limit(self):
        err = ProviderNotFoundError("Account 6766542912345 not found", status_code=404)
        assert classify(err) is RefreshErrorKind.NOT_FOUND


class TestNotFound:
    def test_provider_not_found(self):
        assert classify(ProviderNotFoundError("gone")) is RefreshErrorKind.NOT_FOUND

    def test_httpx_404(self):
        assert classify(_status_error(404)) is RefreshErrorKind.NOT_FOUND

    def test_message(self):
        assert classify(Exception("User ID 123 not found. Please verify")) is RefreshErrorKind.NOT_FOUND


class TestTransient:
    @pytest.mark.parametrize(
        "error",
        [
            asyncio.TimeoutError(),
            httpx.ReadTimeout("read timed out"),
            httpx.ConnectError("connection refused"),
            ConnectionResetError("reset by peer"),
            OperationalError("SELECT 1", {}, Exception("database is locked")),
        ],
    )
    def test_network_and_timeout_errors(self, error):
        assert classify(error) is RefreshErrorKind.TRANSIENT

    @pytest.mark.parametrize("code", [408, 500, 502, 503])
    def test_server_statuses(self, code):
        assert classify(_status_error(code)) is RefreshErrorKind.TRANSIENT

    def test_unknown_error_defaults_to_transient(self):
        assert classify(ValueError("unexpected payload shape")) is RefreshErrorKind.TRANSIENT


class TestFatal:
    def test_missing_api_key(self):
        assert classify(ProviderConfigError("RAPIDAPI_KEY is not configured")) is RefreshErrorKind.FATAL

    @pytest.mark.parametrize("code", [401, 403])
    def test_auth_statuses(self, code):
        assert classify(_status_error(code)) is RefreshErrorKind.FATAL

    def test_bad_database_url(self):
        assert classify(ArgumentError("Could not parse rfc1738 URL")) is RefreshErrorKind.FATAL

    def test_fatal_refresh_error_passthrough(self):
        assert classify(FatalRefreshError("aborted")) is RefreshErrorKind.FATAL

    def test_credentials_message(self):
        assert classify(RuntimeError("invalid credentials supplied")) is RefreshErrorKind.FATAL


class TestStoreErrors:
    """Store error text carries the SQL parameters, i.e. profile values."""

    def test_rate_limit_number_in_parameters_is_transient(self):
        err = OperationalError(
            "UPDATE profilerecord SET followers=? WHERE account_id = ?",
            (429, "1111111111"),
            Exception("database is locked"),
        )
        assert classify(err) is RefreshErrorKind.TRANSIENT

    def test_fatal_vocabulary_in_bio_is_transient(self):
        err = IntegrityError(
            "UPDATE profilerecord SET bio=? WHERE account_id = ?",
            ("DM for api key giveaways, no credentials needed", "1111111111"),
            Exception("NOT NULL constraint failed: profilerecord.handle"),
        )
        assert classify(err) is RefreshErrorKind.TRANSIENT

    def test_not_found_vocabulary_in_parameters_is_transient(self):
        err = DataError(
            "INSERT INTO profilerecord (bio) VALUES (?)",
            ("page not found lol",),
            Exception("value too long"),
        )
        assert classify(err) is RefreshErrorKind.TRANSIENT
