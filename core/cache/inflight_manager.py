from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging

    from models.lookup_models import QueryKey, TranslationResult


__all__: list[str] = ["InFlightManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class InFlightManager:
    """Coalesces concurrent resolutions of the same QueryKey.

    The first caller for a key becomes the leader and resolves it; later callers wait on the leader's
    future and receive the same result object, or the same exception.
    """

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Future[TranslationResult]] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    @property
    def pending(self) -> int:
        return len(self._inflight)

    async def component_teardown(self) -> None:
        """Cancel every pending in-flight future."""
        async with self._lock:
            for fut in self._inflight.values():
                if not fut.done():
                    fut.cancel()
            self._inflight.clear()
        logger.info("InFlightManager torn down and in-flight state cleared")

    async def mark_inflight_start(self, key: QueryKey, timeout: float | None = None) -> TranslationResult | None:
        """Register as leader for ``key``, or wait for the current leader.

        Args:
            key (QueryKey): Key being resolved.
            timeout (float | None): Longest wait for a leader's result. None waits indefinitely.

        Returns:
            TranslationResult | None: The leader's result, or None if the caller is now the leader and must
            resolve the key and then call ``store_inflight_result`` or ``store_inflight_exception``.

        Raises:
            TimeoutError: If the leader did not finish within ``timeout`` or was cancelled.
            Exception: Whatever the leader stored with ``store_inflight_exception``.
        """
        digest: str = key.digest
        async with self._lock:
            if digest not in self._inflight:
                fut: asyncio.Future[TranslationResult] = asyncio.get_running_loop().create_future()
                self._inflight[digest] = fut
                logger.debug("Marked in-flight start for %s", key)
                return None
            fut = self._inflight[digest]
            logger.debug("In-flight resolution detected for %s, waiting", key)

        try:
            result: TranslationResult = await asyncio.wait_for(asyncio.shield(fut), timeout=timeout)
        except TimeoutError:
            logger.warning("In-flight wait timed out for %s", key)
            msg: str = f"In-flight resolution timed out for key: {StringUtils.short_key(digest)}"
            raise TimeoutError(msg) from None
        except asyncio.CancelledError:
            if not fut.cancelled():
                raise
            logger.warning("In-flight resolution cancelled for %s", key)
            msg = f"In-flight resolution cancelled for key: {StringUtils.short_key(digest)}"
            raise TimeoutError(msg) from None
        else:
            logger.debug("Received in-flight result for %s", key)
            return result

    async def store_inflight_result(self, key: QueryKey, result: TranslationResult) -> None:
        """Complete the leader's future with ``result`` and release the waiters."""
        async with self._lock:
            fut: asyncio.Future[TranslationResult] | None = self._inflight.pop(key.digest, None)
            if fut and not fut.done():
                fut.set_result(result)
                logger.debug("Released in-flight waiters for %s", key)
            else:
                logger.debug("No pending in-flight future for %s when storing result", key)

    async def store_inflight_exception(self, key: QueryKey, exc: BaseException) -> None:
        """Fail the leader's future with ``exc``; every waiter re-raises it."""
        async with self._lock:
            fut: asyncio.Future[TranslationResult] | None = self._inflight.pop(key.digest, None)
            if fut and not fut.done():
                if isinstance(exc, asyncio.CancelledError):
                    fut.cancel()
                else:
                    fut.set_exception(exc)
                    # Mark retrieved so an unobserved failure does not log "exception was never retrieved".
                    fut.exception()
                logger.debug("Propagated in-flight exception to waiters for %s", key)
            else:
                logger.debug("No pending in-flight future for %s when storing exception", key)
