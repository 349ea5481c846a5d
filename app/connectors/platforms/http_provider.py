"""NAPWATCH — HTTP Platform Provider.

Reads a platform's published listing as JSON over HTTP.
Handles retry with exponential backoff, rate limiting and failure typing.
"""

import asyncio
import re
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from app.config import settings
from app.connectors.platforms.base import FetchResult, PlatformProvider
from app.core.exceptions import ProviderError
from app.core.logging import get_logger
from app.models.identity_models import (
    FailureReason,
    FetchFailure,
    PlatformTarget,
    RawSnapshot,
)

logger = get_logger("platforms.http")


def platform_slug(name: str) -> str:
    """'Google My Business' -> 'google-my-business'."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class HttpPlatformProvider(PlatformProvider):
    """Async HTTP client for listing endpoints that return identity JSON.

    The target's ``endpoint`` is used as the URL when set; otherwise the URL
    is ``{base_url}/{slug}``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_base_delay: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.provider_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.provider_timeout_seconds
        self.max_retries = max(1, max_retries if max_retries is not None else settings.provider_max_retries)
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else settings.provider_retry_base_delay
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _url_for(self, target: PlatformTarget) -> str:
        if target.endpoint:
            return target.endpoint
        if not self.base_url:
            raise ProviderError(
                f"No endpoint configured for {target.name}", reason="not_found"
            )
        return f"{self.base_url}/{platform_slug(target.name)}"

    async def _backoff(self, attempt: int) -> None:
        wait = self.retry_base_delay * (2 ** (attempt - 1))
        if wait > 0:
            await asyncio.sleep(wait)

    # ── Core Request Method ──

    async def _request(self, url: str) -> tuple[Dict[str, Any], int]:
        """GET with retry. Returns (payload, attempts)."""
        client = await self._get_client()

        for attempt in range(1, self.max_retries + 1):
            try:
                resp = await client.get(url)

                # Rate limited
                if resp.status_code == 429 and attempt < self.max_retries:
                    logger.warning(
                        f"Rate limited (429) by {url}. Retrying (attempt {attempt}/{self.max_retries})"
                    )
                    await self._backoff(attempt)
                    continue

                if resp.status_code == 404:
                    raise ProviderError(
                        f"Listing not found at {url}",
                        reason="not_found",
                        status_code=404,
                        attempts=attempt,
                    )

                resp.raise_for_status()
                try:
                    return resp.json(), attempt
                except ValueError as e:
                    raise ProviderError(
                        f"Invalid JSON from {url}: {e}",
                        reason="parse_error",
                        attempts=attempt,
                    ) from e

            except httpx.HTTPStatusError as e:
                if attempt < self.max_retries and e.response.status_code >= 500:
                    logger.warning(
                        f"Server error {e.response.status_code} from {url}. Retrying"
                    )
                    await self._backoff(attempt)
                    continue
                raise ProviderError(
                    f"HTTP {e.response.status_code} from {url}",
                    reason="network",
                    status_code=e.response.status_code,
                    attempts=attempt,
                ) from e

            except httpx.TimeoutException as e:
                if attempt < self.max_retries:
                    logger.warning(f"Timeout fetching {url}. Retrying")
                    await self._backoff(attempt)
                    continue
                raise ProviderError(
                    f"Timed out after {self.max_retries} attempts: {e}",
                    reason="timeout",
                    attempts=attempt,
                ) from e

            except httpx.RequestError as e:
                if attempt < self.max_retries:
                    logger.warning(f"Request error: {e}. Retrying")
                    await self._backoff(attempt)
                    continue
                raise ProviderError(
                    f"Connection failed after {self.max_retries} attempts: {e}",
                    reason="network",
                    attempts=attempt,
                ) from e

        raise ProviderError("Max retries exhausted", reason="network")

    async def fetch_snapshot(self, target: PlatformTarget) -> FetchResult:
        attempts = 0
        try:
            url = self._url_for(target)
            payload, attempts = await self._request(url)
            if not isinstance(payload, dict):
                raise ProviderError(
                    f"Expected a JSON object from {url}", reason="parse_error"
                )
            # Some sources wrap the listing, e.g. {"data": {...}}
            if isinstance(payload.get("data"), dict):
                payload = payload["data"]
            payload.setdefault("platform", target.name)
            payload.setdefault("url", url)
            try:
                snapshot = RawSnapshot.model_validate(payload)
            except ValidationError as e:
                raise ProviderError(
                    f"Malformed listing from {url}: {e.error_count()} errors",
                    reason="parse_error",
                ) from e
            logger.info(f"Fetched listing for {target.name}", extra={"platform": target.name})
            return snapshot
        except ProviderError as e:
            logger.warning(
                f"Fetch failed for {target.name}: {e}", extra={"platform": target.name}
            )
            return FetchFailure(
                platform=target.name,
                reason=FailureReason(e.reason),
                message=str(e),
                attempts=max(attempts, e.attempts),
            )
