"""
DeviantArt API gateway.

Owns the OAuth2 client-credentials token, paces every outbound call through a
single rate gate, and retries transient failures with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from ..exceptions import ApiError, AuthError

logger = logging.getLogger("deviation-import.source")

DA_API_BASE = "https://www.deviantart.com/api/v1/oauth2"
DA_TOKEN_URL = "https://www.deviantart.com/oauth2/token"

DEFAULT_TIMEOUT = 30.0
MAX_RETRIES = 3
MAX_AUTH_REFRESHES = 2
RETRY_BASE_DELAY = 1.0
TOKEN_EXPIRY_MARGIN = 60.0
FOLDER_LIST_LIMIT = 50
DEFAULT_PAGE_SIZE = 24


class RateLimiter:
    """Enforces a minimum interval between consecutive calls."""

    def __init__(self, interval_ms: int = 1000):
        self.interval = interval_ms / 1000.0
        self._last_call: float | None = None

    async def wait(self) -> None:
        if self._last_call is not None:
            elapsed = time.monotonic() - self._last_call
            remaining = self.interval - elapsed
            if remaining > 0:
                await asyncio.sleep(remaining)
        self._last_call = time.monotonic()


class DeviantArtClient:
    """
    Rate-limited client for the DeviantArt gallery API.

    Auth and page-enumeration failures raise (AuthError / ApiError) and are
    expected to abort the caller's run. Per-item content fetches are the
    caller's to degrade.

    Attributes:
        client_id: OAuth client id
        client_secret: OAuth client secret
        rate_limiter: Shared pacing gate for every outbound request
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        interval_ms: int = 1000,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.rate_limiter = RateLimiter(interval_ms)
        self._client = http_client
        self._owns_client = http_client is None
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    async def __aenter__(self) -> DeviantArtClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
            self._owns_client = True
        return self._client

    # =========================================================================
    # Token lifecycle
    # =========================================================================

    def _token_valid(self) -> bool:
        return self._access_token is not None and time.monotonic() < self._token_expires_at

    def clear_token(self) -> None:
        self._access_token = None
        self._token_expires_at = 0.0

    async def authenticate(self) -> str:
        """
        Return a usable access token, requesting a new one when needed.

        A cached token is reused until 60 seconds before its expiry.

        Raises:
            AuthError: If the token endpoint rejects the request or is unreachable
        """
        if self._token_valid():
            return self._access_token  # type: ignore[return-value]

        logger.info("Authenticating with DeviantArt API...")
        form = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        await self.rate_limiter.wait()
        try:
            response = await self.http.post(DA_TOKEN_URL, data=form)
        except httpx.RequestError as e:
            raise AuthError(f"DA auth failed: {e}") from e

        if not response.is_success:
            raise AuthError(
                f"DA auth failed: {response.status_code} {response.text}",
                {"status_code": response.status_code},
            )

        data = response.json()
        token = data.get("access_token")
        if not token:
            raise AuthError("DA auth failed: response has no access_token")

        expires_in = float(data.get("expires_in", 3600))
        self._access_token = token
        self._token_expires_at = time.monotonic() + expires_in - TOKEN_EXPIRY_MARGIN
        logger.info("Authenticated successfully")
        return token

    # =========================================================================
    # HTTP Helpers
    # =========================================================================

    async def fetch_with_retry(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        max_retries: int = MAX_RETRIES,
    ) -> httpx.Response:
        """
        GET a URL with pacing, token attachment and retry logic.

        - 401: drop the token, re-authenticate and try again. Refreshes are
          not counted against max_retries but are capped at MAX_AUTH_REFRESHES.
        - 429, 5xx and transport errors: exponential backoff (1s, 2s, 4s...)
          up to max_retries, then ApiError.
        - Any other non-2xx: ApiError immediately.

        Args:
            url: Full endpoint URL
            params: Query parameters (the access token is added automatically)
            max_retries: Retries allowed for transient failures

        Returns:
            The successful response

        Raises:
            AuthError: If authentication fails or 401s persist after refreshing
            ApiError: On non-transient errors or retry exhaustion
        """
        retries = 0
        auth_refreshes = 0
        last_status: int | None = None

        while True:
            token = await self.authenticate()
            await self.rate_limiter.wait()

            query = dict(params or {})
            query["access_token"] = token

            try:
                response = await self.http.get(url, params=query)
            except httpx.RequestError as e:
                last_status = None
                if retries >= max_retries:
                    raise ApiError(
                        f"DA API: max retries exceeded for {url}: {e}", None, url
                    ) from e
                delay = RETRY_BASE_DELAY * (2 ** retries)
                logger.warning(
                    f"DA API transport error on attempt {retries + 1} ({e}), retrying in {delay:.0f}s..."
                )
                retries += 1
                await asyncio.sleep(delay)
                continue

            if response.is_success:
                return response

            last_status = response.status_code

            if last_status == 401:
                if auth_refreshes >= MAX_AUTH_REFRESHES:
                    raise AuthError(
                        f"DA API kept returning 401 for {url} after {auth_refreshes} token refreshes",
                        {"url": url},
                    )
                logger.info("Access token rejected, re-authenticating")
                auth_refreshes += 1
                self.clear_token()
                continue

            if last_status == 429 or last_status >= 500:
                if retries >= max_retries:
                    break
                delay = RETRY_BASE_DELAY * (2 ** retries)
                logger.warning(
                    f"DA API {last_status} on attempt {retries + 1}, retrying in {delay:.0f}s..."
                )
                retries += 1
                await asyncio.sleep(delay)
                continue

            raise ApiError(
                f"DA API error: {last_status} {response.text}", last_status, url
            )

        raise ApiError(f"DA API: max retries exceeded for {url}", last_status, url)

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def list_folders(self, username: str) -> list[dict[str, Any]]:
        """
        List every gallery folder of a user, following pagination.

        Returns:
            Raw folder objects (``folderid``, ``name``, ``size`` ...)
        """
        folders: list[dict[str, Any]] = []
        offset = 0
        while True:
            response = await self.fetch_with_retry(
                f"{DA_API_BASE}/gallery/folders",
                {"username": username, "limit": FOLDER_LIST_LIMIT, "offset": offset},
            )
            data = response.json()
            results = data.get("results", [])
            folders.extend(results)
            if not data.get("has_more") or not results:
                break
            offset = data.get("next_offset") or offset + len(results)
        return folders

    async def list_folder_page(
        self,
        folder_id: str,
        username: str,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """
        Fetch one page of a gallery folder.

        Returns:
            Raw page object with ``results`` and ``has_more``
        """
        response = await self.fetch_with_retry(
            f"{DA_API_BASE}/gallery/{folder_id}",
            {
                "username": username,
                "offset": offset,
                "limit": limit,
                "mature_content": "true",
            },
        )
        return response.json()

    async def fetch_item_content(self, item_id: str) -> str:
        """
        Fetch the long description markup of one deviation.

        Returns:
            Description HTML, empty string when the item has none
        """
        response = await self.fetch_with_retry(f"{DA_API_BASE}/deviation/{item_id}/content")
        data = response.json()
        return data.get("html") or ""
