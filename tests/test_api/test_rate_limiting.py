"""Tests for the per-key fixed-window rate limiter."""

import pytest

from synditracker.api.rate_limit import RateLimiter

PAYLOAD = {"post_id": 42, "site_url": "https://a.example", "aggregator": "Feedzy"}


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_allows_up_to_max(self, fake_redis):
        limiter = RateLimiter(fake_redis, max_requests=3, window_seconds=60)
        decisions = [await limiter.check(1) for _ in range(3)]
        assert all(d.allowed for d in decisions)
        assert [d.count for d in decisions] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_rejects_over_max_with_retry_after(self, fake_redis):
        limiter = RateLimiter(fake_redis, max_requests=3, window_seconds=60)
        for _ in range(3):
            await limiter.check(1)
        fake_redis.advance(15)

        decision = await limiter.check(1)

        assert decision.allowed is False
        assert decision.retry_after == 45

    @pytest.mark.asyncio
    async def test_window_expiry_resets_counter(self, fake_redis):
        limiter = RateLimiter(fake_redis, max_requests=3, window_seconds=60)
        for _ in range(4):
            await limiter.check(1)
        fake_redis.advance(61)

        decision = await limiter.check(1)

        assert decision.allowed is True
        assert decision.count == 1

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, fake_redis):
        limiter = RateLimiter(fake_redis, max_requests=1, window_seconds=60)
        assert (await limiter.check(1)).allowed
        assert (await limiter.check(2)).allowed
        assert not (await limiter.check(1)).allowed

    @pytest.mark.asyncio
    async def test_fails_open_when_redis_down(self, fake_redis):
        fake_redis.fail = True
        limiter = RateLimiter(fake_redis, max_requests=1, window_seconds=60)
        assert (await limiter.check(1)).allowed
        assert (await limiter.check(1)).allowed

    @pytest.mark.asyncio
    async def test_reset_clears_counter(self, fake_redis):
        limiter = RateLimiter(fake_redis, max_requests=1, window_seconds=60)
        await limiter.check(1)
        await limiter.reset(1)
        assert (await limiter.check(1)).allowed


class TestRateLimitedIngestion:
    @pytest.fixture
    def limited_services(self, services, fake_redis):
        services.rate_limiter = RateLimiter(fake_redis, max_requests=3, window_seconds=60)
        return services

    def test_fourth_request_is_429(self, limited_services, client, site_key):
        headers = {"X-Site-Key": site_key.key_value}
        for _ in range(3):
            assert client.post("/log", json=PAYLOAD, headers=headers).status_code == 200

        response = client.post("/log", json=PAYLOAD, headers=headers)

        assert response.status_code == 429
        assert "message" in response.json()
        assert int(response.headers["Retry-After"]) == 60

    def test_rejected_request_is_not_stored(self, limited_services, client, site_key, event_repo):
        headers = {"X-Site-Key": site_key.key_value}
        for _ in range(4):
            client.post("/log", json=PAYLOAD, headers=headers)
        assert len(event_repo.events) == 3

    def test_next_window_succeeds(self, limited_services, client, site_key, fake_redis):
        headers = {"X-Site-Key": site_key.key_value}
        for _ in range(4):
            client.post("/log", json=PAYLOAD, headers=headers)
        fake_redis.advance(60)

        response = client.post("/log", json=PAYLOAD, headers=headers)

        assert response.status_code == 200

    def test_pings_count_toward_limit(self, limited_services, client, site_key):
        headers = {"X-Site-Key": site_key.key_value}
        for _ in range(3):
            client.post("/log", json={"aggregator": "Test"}, headers=headers)
        response = client.post("/log", json=PAYLOAD, headers=headers)
        assert response.status_code == 429
