"""Exchange of a signed app JWT for an installation access token.

``InstallationTokenClient.exchange`` POSTs to
``{base}/app/installations/{id}/access_tokens`` and classifies failures:

  - 401 / 403 and other 4xx  → AuthRejectedError, never retried
  - 429, 5xx, network errors → TransientError, retried with jittered backoff
  - unreadable body          → ProtocolError, never retried
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Callable
from datetime import UTC

import httpx
from pydantic import ValidationError

from github_app_auth.config import Settings
from github_app_auth.errors import AuthRejectedError, ProtocolError, TransientError
from github_app_auth.models import (
    DEFAULT_GITHUB_API,
    AccessTokenResponse,
    Authentication,
    CacheKey,
    InstallationToken,
    SignedAssertion,
)

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


class InstallationTokenClient:
    def __init__(
        self,
        default_base_url: str = DEFAULT_GITHUB_API,
        timeout: float = 30.0,
        max_attempts: int = 3,
        backoff_base: float = 0.5,
        backoff_max: float = 30.0,
        fallback_ttl: float = 3300.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.default_base_url = default_base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.fallback_ttl = fallback_ttl
        self._transport = transport
        self._clock = clock
        # Lazily initialised so no connection is opened at construction time.
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, s: Settings, transport: httpx.AsyncBaseTransport | None = None) -> InstallationTokenClient:
        return cls(
            default_base_url=s.github_api_url,
            timeout=s.request_timeout,
            max_attempts=s.exchange_max_attempts,
            backoff_base=s.exchange_backoff_base,
            backoff_max=s.exchange_backoff_max,
            fallback_ttl=s.fallback_token_ttl,
            transport=transport,
        )

    def _get_client(self) -> httpx.AsyncClient:
        # No base_url: enterprise installations each bring their own host.
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        """Close the shared HTTP client (call during shutdown)."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _backoff(self, attempt: int) -> float:
        """Full-jitter exponential backoff: 0.5s, 1s, 2s ... ceilings."""
        ceiling = min(self.backoff_max, self.backoff_base * 2 ** (attempt - 1))
        return random.uniform(0, ceiling)

    def _retry_after(self, resp: httpx.Response) -> float | None:
        value = resp.headers.get("Retry-After")
        if value is None:
            return None
        try:
            return min(self.backoff_max, max(0.0, float(value)))
        except ValueError:
            return None

    async def exchange(self, assertion: SignedAssertion, auth: Authentication) -> InstallationToken:
        """Trade ``assertion`` for an installation token, retrying transient failures."""
        key = CacheKey.for_auth(auth, self.default_base_url)

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._exchange_once(assertion, key)
            except TransientError as exc:
                exc.attempts = attempt
                if attempt == self.max_attempts:
                    logger.error("Token exchange for %s failed after %d attempts: %s", key, attempt, exc)
                    raise
                wait = exc.retry_after if exc.retry_after is not None else self._backoff(attempt)
                logger.warning(
                    "Transient token exchange failure for %s (attempt %d/%d), retrying in %.2fs: %s",
                    key,
                    attempt,
                    self.max_attempts,
                    wait,
                    exc,
                )
                await asyncio.sleep(wait)

        raise AssertionError("unreachable")  # loop always returns or raises

    async def _exchange_once(self, assertion: SignedAssertion, key: CacheKey) -> InstallationToken:
        client = self._get_client()
        url = f"{key.base_url}/app/installations/{key.installation_id}/access_tokens"
        try:
            resp = await client.post(
                url,
                headers={
                    "Authorization": f"Bearer {assertion.jwt}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                },
            )
        except httpx.TransportError as exc:
            raise TransientError(key, None, f"Network error during token exchange: {exc!r}") from exc

        status = resp.status_code
        if status == 429 or status >= 500:
            retry_after = self._retry_after(resp) if status == 429 else None
            raise TransientError(key, status, "GitHub could not issue an installation token", retry_after=retry_after)
        if status in (401, 403):
            raise AuthRejectedError(key, status, f"GitHub rejected the app credentials: {_message(resp)}")
        if status >= 400:
            raise AuthRejectedError(key, status, f"GitHub refused the token request: {_message(resp)}")
        if status not in (200, 201):
            raise ProtocolError(key, status, "Unexpected status from the access_tokens endpoint")

        try:
            body = AccessTokenResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise ProtocolError(key, status, f"Malformed access token response: {exc}") from exc

        if body.expires_at is None:
            expires_at = self._clock() + self.fallback_ttl
            logger.info("No expires_at in token response for %s, assuming %.0fs", key, self.fallback_ttl)
        else:
            server_expiry = body.expires_at
            if server_expiry.tzinfo is None:
                server_expiry = server_expiry.replace(tzinfo=UTC)
            expires_at = server_expiry.timestamp()

        logger.info("Issued installation token for %s, expires at %.0f", key, expires_at)
        return InstallationToken(
            token=body.token,
            expires_at=expires_at,
            key=key,
            permissions=body.permissions,
            repository_selection=body.repository_selection,
        )


def _message(resp: httpx.Response) -> str:
    """Best-effort ``message`` field from a GitHub error body."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return resp.text[:200]
