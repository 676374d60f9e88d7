"""Print an installation token for a mounted GitHub App secret.

    python -m github_app_auth my-repo-creds --secrets-dir /var/run/secrets/github-app
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from github_app_auth.config import get_settings
from github_app_auth.credentials import SecretDirectoryCredentials
from github_app_auth.errors import GitHubAppAuthError
from github_app_auth.logs import configure_logging
from github_app_auth.provider import CredentialProvider

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="github_app_auth", description=__doc__.splitlines()[0])
    parser.add_argument("secret_name", help="name of the secret directory holding the githubApp* keys")
    parser.add_argument("--secrets-dir", default=settings.secrets_dir, help="root of the mounted secrets")
    parser.add_argument("--timeout", type=float, default=60.0, help="seconds to wait for a token")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> str:
    credentials = SecretDirectoryCredentials(args.secrets_dir)
    async with CredentialProvider.from_settings(credentials) as provider:
        return await provider.token(args.secret_name, timeout=args.timeout)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging()
    try:
        token = asyncio.run(_run(args))
    except GitHubAppAuthError as exc:
        logger.error("%s", exc)
        return 1
    except TimeoutError:
        logger.error("Timed out after %.0fs waiting for a token", args.timeout)
        return 1
    print(token)
    return 0


if __name__ == "__main__":
    sys.exit(main())
