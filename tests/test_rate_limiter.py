"""레이트 리미터 / TTL 저장소"""
from infrastructure.rate_limit.limiter import RateLimiter
from infrastructure.rate_limit.memory_store import InMemoryRateLimitStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _limiter(clock, max_requests=3, window=60):
    return RateLimiter(
        InMemoryRateLimitStore(clock=clock),
        name="webhook",
        window_seconds=window,
        max_requests=max_requests,
        suspicious_multiplier=2,
        suspicious_ttl=600,
    )


async def test_allows_up_to_limit_then_blocks():
    clock = FakeClock()
    limiter = _limiter(clock)

    results = [await limiter.check("ua") for _ in range(4)]

    assert [r.success for r in results] == [True, True, True, False]
    assert [r.remaining for r in results[:3]] == [2, 1, 0]
    assert results[3].reset_at == 1060.0


async def test_window_expiry_resets_counter():
    clock = FakeClock()
    limiter = _limiter(clock)
    for _ in range(4):
        await limiter.check("ua")

    clock.now += 61

    result = await limiter.check("ua")
    assert result.success
    assert result.total_hits == 1


async def test_identifiers_are_independent():
    limiter = _limiter(FakeClock(), max_requests=1)
    assert (await limiter.check("a")).success
    assert not (await limiter.check("a")).success
    assert (await limiter.check("b")).success


async def test_repeated_abuse_blocks_client_ip():
    clock = FakeClock()
    limiter = _limiter(clock, max_requests=2)

    for _ in range(5):
        await limiter.check("ua", client_ip="10.0.0.9")

    # 윈도가 지나도 의심 IP 차단은 유지
    clock.now += 120
    assert not (await limiter.check("other-ua", client_ip="10.0.0.9")).success
    assert (await limiter.check("other-ua", client_ip="10.0.0.10")).success

    clock.now += 600
    assert (await limiter.check("other-ua", client_ip="10.0.0.9")).success


async def test_manual_block_unblock_and_status():
    limiter = _limiter(FakeClock())
    assert await limiter.status("ua") is None

    await limiter.check("ua")
    status = await limiter.status("ua")
    assert status.success and status.total_hits == 1

    await limiter.block("ua", 300)
    assert not (await limiter.check("ua")).success
    await limiter.unblock("ua")
    assert (await limiter.check("ua")).success


async def test_purge_expired_entries():
    clock = FakeClock()
    store = InMemoryRateLimitStore(clock=clock)
    await store.hit("a", 10)
    await store.block("b", 5)

    clock.now += 11

    assert await store.purge_expired() == 2
    assert await store.peek("a") is None


async def test_expired_keys_are_evicted_while_counting():
    clock = FakeClock()
    store = InMemoryRateLimitStore(clock=clock, sweep_every=5)
    for n in range(5):
        await store.hit(f"webhook:ua-{n}", 10)
    await store.block("webhook:ua-0", 5)
    assert len(store) == 6

    clock.now += 11
    for n in range(5, 10):
        await store.hit(f"webhook:ua-{n}", 10)

    # 다섯 번째 hit에서 만료된 윈도와 차단이 정리됨
    assert len(store) == 5
    assert await store.peek("webhook:ua-0") is None
    assert await store.peek("webhook:ua-9") == (1, 1021.0)


async def test_store_stays_bounded_under_many_distinct_keys():
    clock = FakeClock()
    store = InMemoryRateLimitStore(clock=clock, sweep_every=50)
    limiter = RateLimiter(
        store,
        name="webhook",
        window_seconds=1,
        max_requests=10,
    )
    for n in range(500):
        await limiter.check(f"ua-{n}")
        clock.now += 0.1

    assert len(store) <= 60
