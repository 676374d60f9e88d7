from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

import httpx

from github_app_auth.provider import CredentialProvider

logger = logging.getLogger(__name__)


class InstallationAuth(httpx.Auth):
    """httpx auth that sends an installation token for ``secret_name``.

    A 401 means the token was revoked or expired early: it is dropped from the
    cache and the request is sent once more with a renewed token.

    Async clients only, since issuing a token may hit the network.
    """

    def __init__(self, provider: CredentialProvider, secret_name: str, timeout: float | None = None):
        self.provider = provider
        self.secret_name = secret_name
        self.timeout = timeout

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        token = await self.provider.installation_token(self.secret_name, timeout=self.timeout)
        request.headers["Authorization"] = f"Bearer {token.token}"
        response = yield request

        if response.status_code == 401:
            logger.warning("Token rejected on %s %s, refreshing", request.method, request.url.path)
            self.provider.invalidate(token)
            token = await self.provider.installation_token(self.secret_name, timeout=self.timeout)
            request.headers["Authorization"] = f"Bearer {token.token}"
            yield request

    def sync_auth_flow(self, request: httpx.Request):
        raise RuntimeError("InstallationAuth requires an httpx.AsyncClient")
