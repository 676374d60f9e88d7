"""Exception hierarchy for installation-token issuance.

Only ``TransientError`` is retried, and only inside the exchange step.
Everything else is permanent for the call that raised it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from github_app_auth.models import CacheKey


class GitHubAppAuthError(Exception):
    """Base class for every error raised by this package."""


class SecretResolutionError(GitHubAppAuthError):
    def __init__(self, secret_name: str, reason: str):
        self.secret_name = secret_name
        super().__init__(f"Could not resolve GitHub App secret {secret_name!r}: {reason}")


class InvalidKeyError(GitHubAppAuthError):
    def __init__(self, app_id: int, reason: str):
        self.app_id = app_id
        super().__init__(f"Invalid private key for GitHub App {app_id}: {reason}")


class _ExchangeError(GitHubAppAuthError):
    """Failure talking to the access_tokens endpoint for one cache key."""

    def __init__(self, key: CacheKey, status_code: int | None, reason: str):
        self.key = key
        self.status_code = status_code
        status = f"HTTP {status_code}" if status_code is not None else "no response"
        super().__init__(f"{reason} ({status}) for {key}")


class AuthRejectedError(_ExchangeError):
    """GitHub refused the app or installation (bad key, revoked app, unknown installation)."""


class TransientError(_ExchangeError):
    """Network failure, rate limit or 5xx; ``attempts`` is how many tries were spent."""

    def __init__(
        self,
        key: CacheKey,
        status_code: int | None,
        reason: str,
        attempts: int = 1,
        retry_after: float | None = None,
    ):
        self.attempts = attempts
        self.retry_after = retry_after  # seconds, from a Retry-After header
        super().__init__(key, status_code, reason)


class ProtocolError(_ExchangeError):
    """The endpoint answered with a body we could not understand."""
