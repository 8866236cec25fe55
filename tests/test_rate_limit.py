from portfolio_api.rate_limit import RedisRateLimiter, SlidingWindowRateLimiter
from tests.conftest import FakeRedis


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestSlidingWindow:
    async def test_limit_then_block(self):
        """The limit is inclusive; the next hit is refused."""
        limiter = SlidingWindowRateLimiter(limit=3, window=60, clock=FakeClock())
        results = [await limiter.hit("1.2.3.4") for _ in range(4)]
        assert [allowed for allowed, _ in results] == [True, True, True, False]
        assert results[-1][1] >= 1

    async def test_window_slides(self):
        """Old hits expire after the window."""
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(limit=2, window=60, clock=clock)
        await limiter.hit("ip")
        clock.now += 30
        await limiter.hit("ip")
        assert (await limiter.hit("ip"))[0] is False

        clock.now += 31
        assert (await limiter.hit("ip"))[0] is True
        assert (await limiter.hit("ip"))[0] is False

    async def test_retry_after_counts_down(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(limit=1, window=60, clock=clock)
        await limiter.hit("ip")
        clock.now += 50
        allowed, retry_after = await limiter.hit("ip")
        assert not allowed
        assert retry_after == 11

    async def test_idle_keys_are_pruned(self):
        """Keys whose hits all expired are dropped."""
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(limit=5, window=60, clock=clock)
        await limiter.hit("a")
        clock.now += 120
        await limiter.hit("b")
        assert set(limiter._hits) == {"b"}

    async def test_sweep_runs_once_per_window(self):
        """Allowed hits do not rescan every key until a window has passed since the last sweep."""
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(limit=5, window=60, clock=clock)
        swept = []
        original = limiter._prune
        limiter._prune = lambda cutoff: (swept.append(cutoff), original(cutoff))

        for i in range(50):
            clock.now += 1
            await limiter.hit(f"10.0.0.{i}")
        assert len(swept) == 0

        clock.now += 20
        await limiter.hit("10.0.1.1")
        assert len(swept) == 1
        assert "10.0.0.0" not in limiter._hits
        assert "10.0.0.49" in limiter._hits


class TestRedisLimiter:
    async def test_counts_in_redis(self):
        """INCR counts requests and EXPIRE is set once per window."""
        redis = FakeRedis()
        limiter = RedisRateLimiter(redis, limit=2, window=60)
        assert (await limiter.hit("ip"))[0]
        assert (await limiter.hit("ip"))[0]
        allowed, retry_after = await limiter.hit("ip")
        assert not allowed
        assert retry_after == 60
        assert redis.data["ratelimit:ip"] == "3"

    async def test_window_expiry_set_by_first_hit(self):
        """The first hit creates the key with its TTL; later hits only increment."""
        redis = FakeRedis()
        limiter = RedisRateLimiter(redis, limit=5, window=60)
        await limiter.hit("ip")
        assert redis.ttls["ratelimit:ip"] == 60
        assert redis.data["ratelimit:ip"] == "1"

        redis.ttls["ratelimit:ip"] = 12
        allowed, _ = await limiter.hit("ip")
        assert allowed
        assert redis.ttls["ratelimit:ip"] == 12
        assert redis.data["ratelimit:ip"] == "2"

    async def test_fails_open(self):
        """A Redis outage does not block traffic."""
        redis = FakeRedis()
        redis.down = True
        assert await RedisRateLimiter(redis, limit=1).hit("ip") == (True, 0)
