"""Tests for core/policy_cache.py — TTL expiry against a fake clock."""

from __future__ import annotations

import pytest

from core.policy import Policy, parse_policy
from core.policy_cache import DEFAULT_TTL_SECONDS, PolicyCache


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy() -> Policy:
    return parse_policy("agent.eth", {"agent.maxSpendUSDC": "100", "agent.allowedActions": "payment"})


class TestPolicyCache:
    def test_default_ttl_is_five_minutes(self) -> None:
        assert PolicyCache().ttl_seconds == DEFAULT_TTL_SECONDS == 300

    def test_negative_ttl_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            PolicyCache(ttl_seconds=-1)

    def test_miss_returns_none(self, clock: FakeClock) -> None:
        assert PolicyCache(clock=clock).get("agent.eth") is None

    def test_hit_returns_same_object(self, clock: FakeClock, policy: Policy) -> None:
        cache = PolicyCache(ttl_seconds=300, clock=clock)
        cache.put("agent.eth", policy)
        clock.advance(299)
        assert cache.get("agent.eth") is policy

    def test_expires_at_ttl(self, clock: FakeClock, policy: Policy) -> None:
        cache = PolicyCache(ttl_seconds=300, clock=clock)
        entry = cache.put("agent.eth", policy)
        assert entry.expires_at == 1300.0
        clock.advance(300)
        assert cache.get("agent.eth") is None

    def test_zero_ttl_never_hits(self, clock: FakeClock, policy: Policy) -> None:
        cache = PolicyCache(ttl_seconds=0, clock=clock)
        cache.put("agent.eth", policy)
        assert cache.get("agent.eth") is None

    def test_put_replaces_stale_entry(self, clock: FakeClock, policy: Policy) -> None:
        cache = PolicyCache(ttl_seconds=10, clock=clock)
        cache.put("agent.eth", policy)
        clock.advance(20)
        newer = parse_policy("agent.eth", {"agent.maxSpendUSDC": "5", "agent.allowedActions": "payment"})
        cache.put("agent.eth", newer)
        assert cache.get("agent.eth") is newer
        assert len(cache) == 1

    def test_contains_respects_expiry(self, clock: FakeClock, policy: Policy) -> None:
        cache = PolicyCache(ttl_seconds=10, clock=clock)
        cache.put("agent.eth", policy)
        assert "agent.eth" in cache
        clock.advance(10)
        assert "agent.eth" not in cache

    def test_clear(self, clock: FakeClock, policy: Policy) -> None:
        cache = PolicyCache(clock=clock)
        cache.put("a.eth", policy)
        cache.put("b.eth", policy)
        cache.clear()
        assert len(cache) == 0
        assert cache.get("a.eth") is None
