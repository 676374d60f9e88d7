from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from github_app_auth.models import CacheKey, InstallationToken

logger = logging.getLogger(__name__)

RenewFunc = Callable[[], Awaitable[InstallationToken]]


class _Renewal:
    """One in-flight renewal and the number of callers still waiting on it."""

    __slots__ = ("task", "waiters")

    def __init__(self, task: asyncio.Task[InstallationToken]):
        self.task = task
        self.waiters = 0


class TokenCache:
    """Installation tokens keyed by (app, installation, base URL).

    Reads of a warm entry never suspend. On a miss, ``get_or_renew`` runs the
    renewal as a task that every concurrent caller for the same key awaits, so
    a key has at most one exchange in flight while other keys renew in
    parallel.

    All bookkeeping happens between ``await`` points on the event loop, which
    is what makes the check-then-insert of the in-flight slot atomic. Instances
    must not be shared across event loops or threads.

    Entries are never evicted on a timer; a stale entry is replaced the next
    time its key is asked for.
    """

    def __init__(
        self,
        safety_margin: float = 120.0,
        serve_stale_on_error: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.safety_margin = safety_margin
        self.serve_stale_on_error = serve_stale_on_error
        self._clock = clock
        self._entries: dict[CacheKey, InstallationToken] = {}
        self._renewals: dict[CacheKey, _Renewal] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: CacheKey) -> InstallationToken | None:
        """Return the current token for ``key`` unless it is inside the safety margin."""
        token = self._entries.get(key)
        if token is not None and token.is_usable(self._clock(), self.safety_margin):
            return token
        return None

    def put(self, token: InstallationToken) -> None:
        self._entries[token.key] = token

    def invalidate(self, key: CacheKey, token: InstallationToken | None = None) -> None:
        """Drop the entry for ``key``.

        When ``token`` is given the entry is only dropped if it is still that
        token, so a stale rejection cannot evict a newer renewal.
        """
        current = self._entries.get(key)
        if current is None:
            return
        if token is not None and current.token != token.token:
            return
        del self._entries[key]
        logger.info("Invalidated cached token for %s", key)

    def clear(self) -> None:
        self._entries.clear()

    def renewal_in_progress(self, key: CacheKey) -> bool:
        return key in self._renewals

    async def get_or_renew(self, key: CacheKey, renew: RenewFunc) -> InstallationToken:
        token = self.get(key)
        if token is not None:
            return token

        renewal = self._renewals.get(key)
        if renewal is None:
            task = asyncio.get_running_loop().create_task(self._renew(key, renew))
            renewal = _Renewal(task)
            self._renewals[key] = renewal
            task.add_done_callback(lambda t: self._renewal_done(key, t))
        else:
            logger.debug("Joining in-flight renewal for %s", key)

        renewal.waiters += 1
        try:
            # shield: a cancelled caller only gives up its own wait
            return await asyncio.shield(renewal.task)
        except asyncio.CancelledError:
            if renewal.waiters == 1 and not renewal.task.done():
                logger.info("Last caller for %s went away, cancelling renewal", key)
                # Detach first so callers arriving while the task unwinds start afresh
                if self._renewals.get(key) is renewal:
                    del self._renewals[key]
                renewal.task.cancel()
            raise
        finally:
            renewal.waiters -= 1

    async def _renew(self, key: CacheKey, renew: RenewFunc) -> InstallationToken:
        previous = self._entries.get(key)
        logger.debug("Renewing installation token for %s", key)
        try:
            token = await renew()
        except Exception:
            if self.serve_stale_on_error and previous is not None and not previous.is_expired(self._clock()):
                logger.warning(
                    "Renewal failed for %s, serving previous token with %.0fs left",
                    key,
                    previous.remaining(self._clock()),
                    exc_info=True,
                )
                return previous
            raise
        self._entries[key] = token
        return token

    def _renewal_done(self, key: CacheKey, task: asyncio.Task[InstallationToken]) -> None:
        if self._renewals.get(key) is not None and self._renewals[key].task is task:
            del self._renewals[key]
        # Mark the outcome as retrieved; waiters already re-raise it.
        if not task.cancelled():
            task.exception()
