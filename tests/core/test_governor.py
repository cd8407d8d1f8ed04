"""Tests for RateGovernor: window and concurrency budgets, FIFO queueing, traffic profiles."""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING

import pytest

from core.governor import GovernorQueueTimeoutError, RateGovernor
from models.provider_models import GovernorStatus, Permit, ProviderId, ProviderLimits, TrafficProfile

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from models.config_models import Config

DICT: ProviderId = ProviderId.SPECIALIZED_DICTIONARY
MT: ProviderId = ProviderId.PRIMARY_TRANSLATOR


class FakeClock:
    def __init__(self) -> None:
        self.now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def governor(clock: FakeClock) -> AsyncGenerator[RateGovernor]:
    limits: dict[ProviderId, ProviderLimits] = {
        DICT: ProviderLimits(max_requests_per_window=3, window_duration_ms=1000, max_concurrent_requests=2),
        MT: ProviderLimits(max_requests_per_window=10, window_duration_ms=1000, max_concurrent_requests=1),
    }
    gov = RateGovernor(limits, tick_sec=0.01, clock=clock)
    await gov.component_load()
    yield gov
    await gov.component_teardown(drain_timeout=0.1)


@pytest.mark.asyncio
async def test_acquire_before_load_raises() -> None:
    gov = RateGovernor({DICT: ProviderLimits()})

    with pytest.raises(RuntimeError):
        await gov.acquire(DICT)


@pytest.mark.asyncio
async def test_grants_within_budget(governor: RateGovernor) -> None:
    permit: Permit = await governor.acquire(DICT, requester="user-1")
    status: GovernorStatus = governor.get_status(DICT)

    assert permit.provider_id is DICT
    assert permit.requester == "user-1"
    assert status.active_requests == 1
    assert status.requests_in_window == 1

    await governor.release(permit)

    assert governor.get_status(DICT).active_requests == 0


@pytest.mark.asyncio
async def test_double_release_has_no_effect(governor: RateGovernor) -> None:
    first: Permit = await governor.acquire(DICT)
    second: Permit = await governor.acquire(DICT)

    await governor.release(first)
    await governor.release(first)

    assert governor.get_status(DICT).active_requests == 1
    await governor.release(second)


@pytest.mark.asyncio
async def test_concurrency_limit_queues_in_fifo_order(governor: RateGovernor) -> None:
    held: Permit = await governor.acquire(MT)
    order: list[str] = []

    async def wait(name: str) -> Permit:
        permit: Permit = await governor.acquire(MT, timeout=1.0, requester=name)
        order.append(name)
        return permit

    tasks: list[asyncio.Task[Permit]] = []
    for name in ("a", "b", "c"):
        tasks.append(asyncio.create_task(wait(name)))
        await asyncio.sleep(0)
    assert governor.get_status(MT).queue_length == 3

    await governor.release(held)
    for task in tasks:
        await governor.release(await task)

    assert order == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_queue_timeout_raises_governor_error(governor: RateGovernor) -> None:
    held: Permit = await governor.acquire(MT)

    with pytest.raises(GovernorQueueTimeoutError) as excinfo:
        await governor.acquire(MT, timeout=0.05)

    assert excinfo.value.provider_id is MT
    assert governor.get_status(MT).queue_length == 0
    await governor.release(held)


@pytest.mark.asyncio
async def test_window_budget_resets_on_rollover(governor: RateGovernor, clock: FakeClock) -> None:
    for _ in range(3):
        await governor.release(await governor.acquire(DICT))
    assert governor.get_status(DICT).requests_in_window == 3

    waiter: asyncio.Task[Permit] = asyncio.create_task(governor.acquire(DICT, timeout=1.0))
    await asyncio.sleep(0.05)
    assert not waiter.done()

    clock.advance(1.0)
    permit: Permit = await asyncio.wait_for(waiter, timeout=1.0)

    assert governor.get_status(DICT).requests_in_window == 1
    await governor.release(permit)


@pytest.mark.asyncio
async def test_cancelled_waiter_leaves_queue(governor: RateGovernor) -> None:
    held: Permit = await governor.acquire(MT)
    waiter: asyncio.Task[Permit] = asyncio.create_task(governor.acquire(MT))
    await asyncio.sleep(0)

    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter
    await governor.release(held)

    status: GovernorStatus = governor.get_status(MT)
    assert status.queue_length == 0
    assert status.active_requests == 0


@pytest.mark.asyncio
async def test_teardown_fails_queued_waiters(clock: FakeClock) -> None:
    gov = RateGovernor({MT: ProviderLimits(max_concurrent_requests=1)}, tick_sec=0.01, clock=clock)
    await gov.component_load()
    held: Permit = await gov.acquire(MT)
    waiter: asyncio.Task[Permit] = asyncio.create_task(gov.acquire(MT))
    await asyncio.sleep(0)

    teardown: asyncio.Task[None] = asyncio.create_task(gov.component_teardown(drain_timeout=1.0))
    with pytest.raises(GovernorQueueTimeoutError):
        await waiter
    await gov.release(held)
    await teardown

    assert gov.is_loaded is False


@pytest.mark.parametrize(
    ("users", "profile"),
    [(0, TrafficProfile.LIGHT), (10, TrafficProfile.LIGHT), (11, TrafficProfile.MEDIUM), (500, TrafficProfile.HEAVY)],
)
def test_profile_for_users(users: int, profile: TrafficProfile) -> None:
    assert RateGovernor.profile_for_users(users) is profile


@pytest.mark.asyncio
async def test_traffic_profile_scales_limits(governor: RateGovernor, caplog: pytest.LogCaptureFixture) -> None:
    profile: TrafficProfile = await governor.apply_traffic_profile(2000)

    assert profile is TrafficProfile.HEAVY
    assert governor.limits(MT).max_requests_per_window == 20
    assert governor.limits(MT).max_concurrent_requests == 2
    assert governor.get_status(MT).max_concurrent == 2
    assert any("dedicated deployment" in rec.message for rec in caplog.records)

    await governor.apply_traffic_profile(1)

    assert governor.limits(MT).max_requests_per_window == 5
    assert governor.limits(MT).max_concurrent_requests == 1


def _assert_within_ceilings(status: GovernorStatus) -> None:
    assert status.active_requests <= status.max_concurrent
    assert status.requests_in_window <= status.max_per_window


@pytest.mark.asyncio
async def test_lowered_limits_step_down_as_permits_drain(governor: RateGovernor, clock: FakeClock) -> None:
    permits: list[Permit] = [await governor.acquire(DICT), await governor.acquire(DICT)]

    await governor.update_limits(DICT, ProviderLimits(max_requests_per_window=1, max_concurrent_requests=1))

    status: GovernorStatus = governor.get_status(DICT)
    _assert_within_ceilings(status)
    assert status.active_requests == 2
    assert status.max_concurrent == 2
    with pytest.raises(GovernorQueueTimeoutError):
        await governor.acquire(DICT, timeout=0.02)

    await governor.release(permits[0])
    status = governor.get_status(DICT)
    _assert_within_ceilings(status)
    assert status.max_concurrent == 1

    await governor.release(permits[1])
    status = governor.get_status(DICT)
    _assert_within_ceilings(status)
    assert status.max_concurrent == 1
    assert status.max_per_window == 2

    clock.advance(1.0)
    permit: Permit = await governor.acquire(DICT, timeout=0.5)
    status = governor.get_status(DICT)
    _assert_within_ceilings(status)
    assert status.max_per_window == 1
    await governor.release(permit)


@pytest.mark.asyncio
async def test_lighter_traffic_profile_never_exposes_overcommit(governor: RateGovernor) -> None:
    await governor.apply_traffic_profile(2000)
    permits: list[Permit] = [await governor.acquire(DICT) for _ in range(4)]

    await governor.apply_traffic_profile(5)

    _assert_within_ceilings(governor.get_status(DICT))
    for permit in permits:
        await governor.release(permit)
        _assert_within_ceilings(governor.get_status(DICT))
    assert governor.get_status(DICT).max_concurrent == governor.limits(DICT).max_concurrent_requests


def test_from_config_reads_provider_sections(config: Config) -> None:
    config.PRIMARY_TRANSLATOR.MAX_CONCURRENT_REQUESTS = 7
    config.GENERATIVE_FALLBACK.BACKOFF_STRATEGY = "LINEAR"

    gov: RateGovernor = RateGovernor.from_config(config)

    assert gov.limits(MT).max_concurrent_requests == 7
    assert gov.limits(ProviderId.GENERATIVE_FALLBACK).backoff_delay(3) == pytest.approx(0.03)


@pytest.mark.asyncio
async def test_budget_limits_hold_under_random_load() -> None:
    rng = random.Random(20240611)  # noqa: S311
    limits: dict[ProviderId, ProviderLimits] = {
        DICT: ProviderLimits(max_requests_per_window=15, window_duration_ms=50, max_concurrent_requests=3),
        MT: ProviderLimits(max_requests_per_window=8, window_duration_ms=30, max_concurrent_requests=2),
    }
    gov = RateGovernor(limits, tick_sec=0.005)
    await gov.component_load()
    violations: list[str] = []
    granted: list[ProviderId] = []

    def check(provider_id: ProviderId) -> None:
        status: GovernorStatus = gov.get_status(provider_id)
        if status.active_requests > status.max_concurrent:
            violations.append(f"{provider_id}: {status.active_requests} active > {status.max_concurrent}")
        if status.requests_in_window > status.max_per_window:
            violations.append(f"{provider_id}: {status.requests_in_window} in window > {status.max_per_window}")

    async def worker(provider_id: ProviderId, hold: float, timeout: float) -> None:
        try:
            permit: Permit = await gov.acquire(provider_id, timeout=timeout)
        except GovernorQueueTimeoutError:
            return
        granted.append(provider_id)
        check(provider_id)
        try:
            await asyncio.sleep(hold)
        finally:
            await gov.release(permit)
        check(provider_id)

    tasks: list[asyncio.Task[None]] = [
        asyncio.create_task(worker(rng.choice([DICT, MT]), rng.uniform(0.0, 0.01), rng.uniform(0.01, 0.3)))
        for _ in range(120)
    ]
    await asyncio.gather(*tasks)
    await gov.component_teardown(drain_timeout=0.5)

    assert violations == []
    assert granted
    for provider_id in (DICT, MT):
        assert gov.get_status(provider_id).active_requests == 0
