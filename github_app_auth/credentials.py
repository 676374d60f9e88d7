"""Where ``Authentication`` records come from.

The engine only needs one coroutine, ``get_auth_secret``. Any store that can
produce the four GitHub App fields for a secret name (mounted Kubernetes
secrets, a vault client, an in-memory map in tests) satisfies the protocol.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

from github_app_auth.models import Authentication

logger = logging.getLogger(__name__)

# Key names used by repository credential secrets
APP_ID_KEY = "githubAppID"
INSTALLATION_ID_KEY = "githubAppInstallationID"
ENTERPRISE_BASE_URL_KEY = "githubAppEnterpriseBaseUrl"
PRIVATE_KEY_KEY = "githubAppPrivateKey"


@runtime_checkable
class Credentials(Protocol):
    async def get_auth_secret(self, secret_name: str) -> Authentication: ...


def _text(value: str | bytes) -> str:
    return value.decode() if isinstance(value, bytes) else value


def _int_field(data: Mapping[str, str | bytes], name: str) -> int:
    raw = data.get(name)
    if raw is None or not _text(raw).strip():
        raise ValueError(f"Secret is missing {name!r}")
    try:
        return int(_text(raw).strip())
    except ValueError:
        raise ValueError(f"Secret field {name!r} is not an integer: {_text(raw).strip()!r}") from None


def authentication_from_secret_data(data: Mapping[str, str | bytes]) -> Authentication:
    """Build an ``Authentication`` from secret key/value pairs (``githubApp*`` keys)."""
    private_key = data.get(PRIVATE_KEY_KEY)
    if private_key is None:
        raise ValueError(f"Secret is missing {PRIVATE_KEY_KEY!r}")
    return Authentication(
        app_id=_int_field(data, APP_ID_KEY),
        installation_id=_int_field(data, INSTALLATION_ID_KEY),
        private_key=_text(private_key),
        enterprise_base_url=_text(data.get(ENTERPRISE_BASE_URL_KEY, "")).strip(),
    )


class StaticCredentials:
    """In-memory credentials, keyed by secret name."""

    def __init__(self, secrets: Mapping[str, Authentication] | None = None):
        self._secrets: dict[str, Authentication] = dict(secrets or {})

    def add(self, secret_name: str, auth: Authentication) -> None:
        self._secrets[secret_name] = auth

    async def get_auth_secret(self, secret_name: str) -> Authentication:
        try:
            return self._secrets[secret_name]
        except KeyError:
            raise KeyError(f"No GitHub App secret named {secret_name!r}") from None


class SecretDirectoryCredentials:
    """Reads secrets mounted as ``<root>/<secret_name>/<key>`` files.

    This is the layout Kubernetes uses for a secret volume: one file per data
    key. Files are read on every call so rotated secrets are picked up without
    a restart.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _read(self, secret_name: str) -> dict[str, bytes]:
        if not secret_name or "/" in secret_name or secret_name in (".", ".."):
            raise ValueError(f"Invalid secret name: {secret_name!r}")
        secret_dir = self.root / secret_name
        if not secret_dir.is_dir():
            raise FileNotFoundError(f"Secret directory not found: {secret_dir}")
        data: dict[str, bytes] = {}
        for key in (APP_ID_KEY, INSTALLATION_ID_KEY, ENTERPRISE_BASE_URL_KEY, PRIVATE_KEY_KEY):
            path = secret_dir / key
            if path.is_file():
                data[key] = path.read_bytes()
        return data

    async def get_auth_secret(self, secret_name: str) -> Authentication:
        data = await asyncio.to_thread(self._read, secret_name)
        logger.debug("Loaded secret %s with keys %s", secret_name, sorted(data))
        return authentication_from_secret_data(data)
