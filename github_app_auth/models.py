from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, Field

DEFAULT_GITHUB_API = "https://api.github.com"


@dataclass(frozen=True)
class Authentication:
    """Everything needed to act as one installation of a GitHub App."""

    app_id: int
    installation_id: int
    private_key: str = field(repr=False)  # PEM
    enterprise_base_url: str = ""  # empty = public GitHub API

    def __post_init__(self) -> None:
        if self.app_id <= 0:
            raise ValueError(f"GitHub App ID must be a positive integer, got {self.app_id!r}")
        if self.installation_id <= 0:
            raise ValueError(f"Installation ID must be a positive integer, got {self.installation_id!r}")
        if not self.private_key.strip():
            raise ValueError(f"Private key for GitHub App {self.app_id} is empty")


@dataclass(frozen=True)
class CacheKey:
    app_id: int
    installation_id: int
    base_url: str

    @classmethod
    def for_auth(cls, auth: Authentication, default_base_url: str = DEFAULT_GITHUB_API) -> CacheKey:
        base_url = (auth.enterprise_base_url or default_base_url).rstrip("/")
        return cls(auth.app_id, auth.installation_id, base_url)

    def __str__(self) -> str:
        return f"app {self.app_id} installation {self.installation_id} at {self.base_url}"


@dataclass(frozen=True)
class SignedAssertion:
    jwt: str = field(repr=False)
    issuer: str
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class InstallationToken:
    token: str = field(repr=False)
    expires_at: float  # epoch seconds
    key: CacheKey
    permissions: dict[str, str] = field(default_factory=dict, compare=False)
    repository_selection: str | None = None

    def remaining(self, now: float) -> float:
        return self.expires_at - now

    def is_expired(self, now: float) -> bool:
        return self.remaining(now) <= 0

    def is_usable(self, now: float, margin: float) -> bool:
        """True while more than ``margin`` seconds of validity remain."""
        return self.remaining(now) > margin


# ── Response schema of POST /app/installations/{id}/access_tokens ──


class AccessTokenResponse(BaseModel):
    token: str = Field(min_length=1)
    expires_at: datetime | None = None
    permissions: dict[str, str] = {}
    repository_selection: str | None = None
