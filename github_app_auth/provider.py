from __future__ import annotations

import asyncio
import logging

import httpx

from github_app_auth.cache import TokenCache
from github_app_auth.config import Settings, get_settings
from github_app_auth.credentials import Credentials
from github_app_auth.errors import SecretResolutionError
from github_app_auth.github.exchange import InstallationTokenClient
from github_app_auth.github.signer import AssertionSigner
from github_app_auth.logs import current_key, current_secret
from github_app_auth.models import Authentication, CacheKey, InstallationToken

logger = logging.getLogger(__name__)


class CredentialProvider:
    """Hands out installation tokens for GitHub App secrets.

    ``token()`` looks like a read but is not always one: on a cache miss or
    near expiry it signs a fresh app JWT and calls GitHub, so it can take as
    long as the exchange (including retries) and can fail with any
    ``GitHubAppAuthError``. Pass ``timeout`` to bound the wait; a caller that
    times out or is cancelled does not abort a renewal other callers share.
    """

    def __init__(
        self,
        credentials: Credentials,
        signer: AssertionSigner | None = None,
        client: InstallationTokenClient | None = None,
        cache: TokenCache | None = None,
    ):
        self.credentials = credentials
        self.signer = signer or AssertionSigner()
        self.client = client or InstallationTokenClient()
        self.cache = cache or TokenCache()

    @classmethod
    def from_settings(
        cls,
        credentials: Credentials,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> CredentialProvider:
        s = settings or get_settings()
        return cls(
            credentials,
            signer=AssertionSigner.from_settings(s),
            client=InstallationTokenClient.from_settings(s, transport=transport),
            cache=TokenCache(safety_margin=s.token_safety_margin, serve_stale_on_error=s.serve_stale_on_error),
        )

    async def __aenter__(self) -> CredentialProvider:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _resolve(self, secret_name: str) -> Authentication:
        try:
            return await self.credentials.get_auth_secret(secret_name)
        except Exception as exc:
            logger.warning("Could not resolve GitHub App secret %s: %s", secret_name, exc)
            raise SecretResolutionError(secret_name, str(exc) or type(exc).__name__) from exc

    async def _issue(self, auth: Authentication) -> InstallationToken:
        # Sign right before each exchange; assertions are never reused.
        assertion = self.signer.sign(auth)
        return await self.client.exchange(assertion, auth)

    def key_for(self, auth: Authentication) -> CacheKey:
        return CacheKey.for_auth(auth, self.client.default_base_url)

    async def installation_token(self, secret_name: str, *, timeout: float | None = None) -> InstallationToken:
        secret_ctx = current_secret.set(secret_name)
        try:
            async with asyncio.timeout(timeout):
                auth = await self._resolve(secret_name)
                key = self.key_for(auth)
                key_ctx = current_key.set(str(key))
                try:
                    return await self.cache.get_or_renew(key, lambda: self._issue(auth))
                finally:
                    current_key.reset(key_ctx)
        finally:
            current_secret.reset(secret_ctx)

    async def token(self, secret_name: str, *, timeout: float | None = None) -> str:
        """Return a bearer token for the installation behind ``secret_name``."""
        return (await self.installation_token(secret_name, timeout=timeout)).token

    def invalidate(self, token: InstallationToken) -> None:
        """Forget ``token`` so the next request for its key renews."""
        self.cache.invalidate(token.key, token)
