"""Per-provider rate and concurrency governor.

Each provider gets a budget of requests per rolling window and a ceiling on simultaneous calls. Callers
that find the budget exhausted wait in a FIFO queue and are granted permits in arrival order whenever a
permit is released or the window rolls over. Budgets are mutated only here, under one asyncio lock.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Final

from models.provider_models import (
    BackoffStrategy,
    GovernorStatus,
    Permit,
    ProviderBudget,
    ProviderId,
    ProviderLimits,
    TrafficProfile,
)
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from models.config_models import Config, ProviderSettings

__all__: list[str] = ["GovernorQueueTimeoutError", "RateGovernor"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEDICATED_DEPLOYMENT_USERS: Final[int] = 1000


class GovernorQueueTimeoutError(Exception):
    """A permit was not granted in time. Raised for our own throttling, never for provider failures."""

    def __init__(self, provider_id: ProviderId, msg: str) -> None:
        self.provider_id: ProviderId = provider_id
        super().__init__(msg)


@dataclass
class _Waiter:
    future: asyncio.Future[Permit]
    requester: str | None = None
    enqueued_at: float = field(default_factory=time.monotonic)


class RateGovernor:
    """Grants permits to call providers within their window and concurrency limits.

    Args:
        limits (dict[ProviderId, ProviderLimits]): Configured limits per provider.
        tick_sec (float): Interval of the window roll-over task.
        clock (Callable[[], float]): Monotonic time source in seconds.

    Attributes:
        PROFILE_FACTORS (ClassVar[dict[TrafficProfile, tuple[float, float]]]): Budget and backoff
            multipliers per traffic profile.
    """

    PROFILE_FACTORS: ClassVar[dict[TrafficProfile, tuple[float, float]]] = {
        TrafficProfile.LIGHT: (0.5, 2.0),
        TrafficProfile.MEDIUM: (1.0, 1.0),
        TrafficProfile.HEAVY: (2.0, 0.5),
    }
    DRAIN_TIMEOUT_SEC: ClassVar[float] = 5.0

    def __init__(
        self,
        limits: dict[ProviderId, ProviderLimits],
        *,
        tick_sec: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock: Callable[[], float] = clock
        self._tick_sec: float = tick_sec
        self._base_limits: dict[ProviderId, ProviderLimits] = dict(limits)
        self._limits: dict[ProviderId, ProviderLimits] = dict(limits)
        self._budgets: dict[ProviderId, ProviderBudget] = {}
        self._waiters: dict[ProviderId, deque[_Waiter]] = {pid: deque() for pid in limits}
        self._active: dict[int, Permit] = {}
        self._permit_ids = itertools.count(1)
        self._profile: TrafficProfile = TrafficProfile.MEDIUM
        self._lock: asyncio.Lock = asyncio.Lock()
        self._idle: asyncio.Event = asyncio.Event()
        self._idle.set()
        self._tick_task: asyncio.Task[None] | None = None
        self._is_loaded: bool = False

    @classmethod
    def from_config(cls, config: Config) -> RateGovernor:
        """Build a governor from the provider sections of ``config``."""
        limits: dict[ProviderId, ProviderLimits] = {}
        for provider_id in ProviderId:
            settings: ProviderSettings = getattr(config, provider_id.config_section)
            limits[provider_id] = ProviderLimits(
                max_requests_per_window=settings.MAX_REQUESTS_PER_WINDOW,
                window_duration_ms=settings.WINDOW_DURATION_MS,
                max_concurrent_requests=settings.MAX_CONCURRENT_REQUESTS,
                max_retries=settings.MAX_RETRIES,
                backoff_ms=settings.BACKOFF_MS,
                backoff_strategy=BackoffStrategy(settings.BACKOFF_STRATEGY.lower()),
                call_timeout_sec=settings.CALL_TIMEOUT_SEC,
            )
        return cls(limits, tick_sec=config.RESOLUTION.WINDOW_TICK_SEC)

    @property
    def is_loaded(self) -> bool:
        return self._is_loaded

    @property
    def profile(self) -> TrafficProfile:
        return self._profile

    def limits(self, provider_id: ProviderId) -> ProviderLimits:
        """Effective limits for ``provider_id`` after traffic profile scaling."""
        return self._limits[provider_id]

    async def component_load(self) -> None:
        """Initialize budgets and start the window roll-over task."""
        async with self._lock:
            now: float = self._clock()
            for provider_id, limits in self._limits.items():
                self._budgets[provider_id] = ProviderBudget(
                    provider_id=provider_id,
                    window_start=now,
                    max_per_window=limits.max_requests_per_window,
                    max_concurrent=limits.max_concurrent_requests,
                )
            self._is_loaded = True
        if self._tick_task is None:
            self._tick_task = asyncio.create_task(self._tick_loop(), name="governor_window_tick")
        logger.info("RateGovernor loaded for providers: %s", [str(pid) for pid in self._budgets])

    async def component_teardown(self, drain_timeout: float | None = None) -> None:
        """Stop the tick task, fail queued waiters and wait for active permits to drain.

        Args:
            drain_timeout (float | None): Longest wait for active permits. Defaults to ``DRAIN_TIMEOUT_SEC``.
        """
        if self._tick_task is not None:
            self._tick_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._tick_task
            self._tick_task = None

        async with self._lock:
            self._is_loaded = False
            for provider_id, waiters in self._waiters.items():
                while waiters:
                    waiter: _Waiter = waiters.popleft()
                    if not waiter.future.done():
                        msg: str = f"Governor shutting down, '{provider_id}' wait aborted"
                        waiter.future.set_exception(GovernorQueueTimeoutError(provider_id, msg))

        try:
            await asyncio.wait_for(self._idle.wait(), timeout=drain_timeout or self.DRAIN_TIMEOUT_SEC)
        except TimeoutError:
            logger.warning("RateGovernor teardown with %d permits still active", len(self._active))
        logger.info("RateGovernor torn down")

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._tick_sec)
            async with self._lock:
                for budget in self._budgets.values():
                    self._roll_window(budget)
                    self._dispatch(budget)

    def _roll_window(self, budget: ProviderBudget) -> None:
        now: float = self._clock()
        if now - budget.window_start >= self._limits[budget.provider_id].window_duration_sec:
            budget.window_start = now
            budget.requests_in_window = 0
            self._settle_ceilings(budget)

    def _settle_ceilings(self, budget: ProviderBudget) -> None:
        """Move published ceilings toward the effective limits, never below what is already in use."""
        limits: ProviderLimits = self._limits[budget.provider_id]
        budget.max_concurrent = max(limits.max_concurrent_requests, budget.active_requests)
        budget.max_per_window = max(limits.max_requests_per_window, budget.requests_in_window)

    def _grant(self, budget: ProviderBudget, requester: str | None) -> Permit:
        budget.active_requests += 1
        budget.requests_in_window += 1
        permit = Permit(
            provider_id=budget.provider_id,
            permit_id=next(self._permit_ids),
            granted_at=self._clock(),
            requester=requester,
        )
        self._active[permit.permit_id] = permit
        self._idle.clear()
        return permit

    def _dispatch(self, budget: ProviderBudget) -> None:
        """Grant permits to queued waiters, oldest first, while the budget allows."""
        waiters: deque[_Waiter] = self._waiters[budget.provider_id]
        while waiters and budget.has_slot:
            waiter: _Waiter = waiters.popleft()
            if waiter.future.done():
                continue
            permit: Permit = self._grant(budget, waiter.requester)
            waiter.future.set_result(permit)
            logger.debug(
                "Granted queued permit #%d for '%s' (requester: %s)",
                permit.permit_id,
                permit.provider_id,
                permit.requester,
            )

    def _release_locked(self, permit: Permit) -> None:
        if permit.released:
            return
        permit.released = True
        self._active.pop(permit.permit_id, None)
        budget: ProviderBudget | None = self._budgets.get(permit.provider_id)
        if budget is not None:
            budget.active_requests = max(0, budget.active_requests - 1)
            self._settle_ceilings(budget)
            self._dispatch(budget)
        if not self._active:
            self._idle.set()

    async def acquire(
        self, provider_id: ProviderId, *, timeout: float | None = None, requester: str | None = None
    ) -> Permit:
        """Obtain a permit to call ``provider_id``, waiting in FIFO order if needed.

        Args:
            provider_id (ProviderId): Provider to call.
            timeout (float | None): Longest wait in the queue. None waits indefinitely.
            requester (str | None): Opaque caller identity, logged only.

        Returns:
            Permit: Granted permit. Must be passed to ``release``.

        Raises:
            GovernorQueueTimeoutError: If no permit was granted within ``timeout`` or the governor shut down.
            RuntimeError: If the governor is not loaded.
            KeyError: If ``provider_id`` has no configured limits.
        """
        async with self._lock:
            if not self._is_loaded:
                msg = "RateGovernor is not loaded"
                raise RuntimeError(msg)
            budget: ProviderBudget = self._budgets[provider_id]
            self._roll_window(budget)
            waiters: deque[_Waiter] = self._waiters[provider_id]
            if not waiters and budget.has_slot:
                return self._grant(budget, requester)
            waiter = _Waiter(future=asyncio.get_running_loop().create_future(), requester=requester)
            waiters.append(waiter)
            logger.debug("Queued for '%s' (position %d, requester: %s)", provider_id, len(waiters), requester)

        try:
            return await asyncio.wait_for(asyncio.shield(waiter.future), timeout=timeout)
        except TimeoutError:
            async with self._lock:
                if self._withdraw(provider_id, waiter):
                    msg = f"Queue wait for '{provider_id}' exceeded {timeout}s"
                    raise GovernorQueueTimeoutError(provider_id, msg) from None
            # Granted between the timeout and the lock.
            return waiter.future.result()
        except asyncio.CancelledError:
            # The lock is never held across an await, so this runs atomically with respect to other holders.
            if not self._withdraw(provider_id, waiter) and not waiter.future.cancelled():
                if waiter.future.exception() is None:
                    self._release_locked(waiter.future.result())
            raise

    def _withdraw(self, provider_id: ProviderId, waiter: _Waiter) -> bool:
        """Remove a waiter that has not been granted. Returns False if it already was granted or failed."""
        if waiter.future.done():
            return False
        with contextlib.suppress(ValueError):
            self._waiters[provider_id].remove(waiter)
        waiter.future.cancel()
        return True

    async def release(self, permit: Permit) -> None:
        """Return a permit. Releasing the same permit twice has no effect."""
        async with self._lock:
            self._release_locked(permit)

    def get_status(self, provider_id: ProviderId) -> GovernorStatus:
        """Snapshot of the budget and queue of ``provider_id``."""
        budget: ProviderBudget | None = self._budgets.get(provider_id)
        limits: ProviderLimits = self._limits[provider_id]
        return GovernorStatus(
            provider_id=provider_id,
            requests_in_window=budget.requests_in_window if budget else 0,
            active_requests=budget.active_requests if budget else 0,
            max_per_window=budget.max_per_window if budget else limits.max_requests_per_window,
            max_concurrent=budget.max_concurrent if budget else limits.max_concurrent_requests,
            queue_length=sum(1 for waiter in self._waiters[provider_id] if not waiter.future.done()),
            window_start=budget.window_start if budget else 0.0,
            profile=self._profile,
        )

    async def update_limits(self, provider_id: ProviderId, limits: ProviderLimits) -> None:
        """Replace the configured limits of one provider. The current traffic profile still applies."""
        async with self._lock:
            self._base_limits[provider_id] = limits
            self._waiters.setdefault(provider_id, deque())
            self._apply_limits_locked(provider_id)
        logger.info("Limits updated for '%s': %s", provider_id, self._limits[provider_id])

    def _apply_limits_locked(self, provider_id: ProviderId) -> None:
        budget_factor, backoff_factor = self.PROFILE_FACTORS[self._profile]
        effective: ProviderLimits = self._base_limits[provider_id].scaled(budget_factor, backoff_factor)
        self._limits[provider_id] = effective
        budget: ProviderBudget | None = self._budgets.get(provider_id)
        if budget is None:
            if self._is_loaded:
                self._budgets[provider_id] = ProviderBudget(
                    provider_id=provider_id,
                    window_start=self._clock(),
                    max_per_window=effective.max_requests_per_window,
                    max_concurrent=effective.max_concurrent_requests,
                )
            return
        # Lowered ceilings step down as permits drain and windows roll; nothing is revoked.
        self._settle_ceilings(budget)
        self._dispatch(budget)

    @staticmethod
    def profile_for_users(active_users: int) -> TrafficProfile:
        if active_users <= 10:
            return TrafficProfile.LIGHT
        if active_users <= 100:
            return TrafficProfile.MEDIUM
        return TrafficProfile.HEAVY

    async def apply_traffic_profile(self, active_users: int) -> TrafficProfile:
        """Scale every provider's limits for the observed number of active users.

        Args:
            active_users (int): Concurrent users of the calling application.

        Returns:
            TrafficProfile: Profile now in effect.
        """
        profile: TrafficProfile = self.profile_for_users(active_users)
        if active_users > DEDICATED_DEPLOYMENT_USERS:
            logger.warning(
                "%d active users exceeds %d; consider a dedicated deployment", active_users, DEDICATED_DEPLOYMENT_USERS
            )
        async with self._lock:
            self._profile = profile
            for provider_id in self._base_limits:
                self._apply_limits_locked(provider_id)
        logger.info("Traffic profile '%s' applied for %d active users", profile, active_users)
        return profile
