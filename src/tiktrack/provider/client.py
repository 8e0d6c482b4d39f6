"""
Async client for the RapidAPI TikTok scraper.

The provider enforces its own rate limit and is frequently slow or flaky, so
every request is bounded by an httpx timeout and failures are raised as typed
ProviderError subclasses for the refresh error classifier to interpret.

Credentials come from Settings (RAPIDAPI_KEY); a missing key is raised as
ProviderConfigError before any request is made.
"""
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from tiktrack.config import Settings, get_settings
from tiktrack.provider.normalizer import normalize_post, normalize_user_info

logger = logging.getLogger(__name__)


# ── Exceptions ────────────────────────────────────────────────────────────────

class ProviderError(RuntimeError):
    """Raised when the provider answers with an unusable response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderRateLimitError(ProviderError):
    """Raised when the provider rejects a request with HTTP 429."""


class ProviderNotFoundError(ProviderError):
    """Raised when the requested account does not exist upstream."""


class ProviderConfigError(ProviderError):
    """Raised when the provider cannot be called at all (e.g. missing API key)."""


# ── Main class ────────────────────────────────────────────────────────────────

class TikTokClient:
    """
    Thin async wrapper over the scraper's /user/info and /user/posts endpoints.

    Usage:
        async with TikTokClient() as client:
            profile = await client.fetch_profile("6766559322627589000")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            settings: Settings instance. Defaults to get_settings().
            http: Pre-built httpx.AsyncClient (tests pass a MockTransport one).
        """
        self._settings = settings or get_settings()
        self._http = http or httpx.AsyncClient(
            base_url=f"https://{self._settings.rapidapi_host}",
            timeout=httpx.Timeout(self._settings.provider_timeout_seconds),
        )

    async def __aenter__(self) -> "TikTokClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _headers(self) -> Dict[str, str]:
        if not self._settings.rapidapi_key:
            raise ProviderConfigError("RAPIDAPI_KEY is not configured")
        return {
            "x-rapidapi-key": self._settings.rapidapi_key,
            "x-rapidapi-host": self._settings.rapidapi_host,
        }

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET a provider endpoint and return the decoded JSON body."""
        headers = self._headers()
        response = await self._http.get(path, params=params, headers=headers)

        if response.status_code == 429:
            raise ProviderRateLimitError(
                "Rate limit exceeded. Please try again later.", status_code=429
            )
        if response.status_code == 404:
            raise ProviderNotFoundError(
                f"Account {params.get('user_id')} not found", status_code=404
            )
        if response.status_code >= 400:
            raise ProviderError(
                f"Provider request {path} failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.json()

    async def fetch_profile(self, account_id: str) -> Dict[str, Any]:
        """
        Fetch identity + statistics for one account.

        Returns:
            ProfileRecord field dict (see normalizer.normalize_user_info).

        Raises:
            ProviderConfigError, ProviderRateLimitError, ProviderNotFoundError,
            ProviderError, or httpx transport/timeout errors.
        """
        user_id = clean_account_id(account_id)
        payload = await self._get("/user/info", {"user_id": user_id})

        data = payload.get("data") or {}
        if not data.get("user"):
            # The scraper answers 200 with an empty body for unknown ids
            raise ProviderNotFoundError(f"Account {user_id} not found")
        return normalize_user_info(payload, account_id=user_id)

    async def fetch_posts(self, account_id: str, count: int = 30) -> List[Dict[str, Any]]:
        """Fetch the most recent posts for one account as normalized dicts."""
        user_id = clean_account_id(account_id)
        payload = await self._get("/user/posts", {"user_id": user_id, "count": count})
        videos = (payload.get("data") or {}).get("videos") or []
        logger.debug("Fetched %d posts for %s", len(videos), user_id)
        return [normalize_post(v) for v in videos]


def clean_account_id(account_id: str) -> str:
    """Strip everything but digits; upstream ids are numeric."""
    cleaned = re.sub(r"\D", "", account_id.strip())
    if not cleaned:
        raise ProviderNotFoundError(
            f"Invalid account id {account_id!r}: must be numeric"
        )
    return cleaned
