import pytest

from couponhub.core.csrf import CsrfTokenStore
from couponhub.core.ratelimit import RateLimit, RateLimiter
from couponhub.core.sessions import AccountLocked, SessionExpired, SessionManager


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestRateLimiter:
    def test_blocks_after_max_requests_in_window(self, clock):
        limiter = RateLimiter(clock=clock)
        limit = RateLimit(3, window_seconds=60)

        results = [limiter.hit("ip:GET:/x", limit)[0] for _ in range(4)]

        assert results == [True, True, True, False]

    def test_window_reset_allows_again(self, clock):
        limiter = RateLimiter(clock=clock)
        limit = RateLimit(2, window_seconds=60)
        limiter.hit("k", limit)
        limiter.hit("k", limit)

        allowed, retry_after = limiter.hit("k", limit)
        assert not allowed
        assert 0 < retry_after <= 60

        clock.advance(61)
        assert limiter.hit("k", limit)[0]

    def test_keys_are_independent(self, clock):
        limiter = RateLimiter(clock=clock)
        limit = RateLimit(1, window_seconds=60)

        assert limiter.hit("a", limit)[0]
        assert not limiter.hit("a", limit)[0]
        assert limiter.hit("b", limit)[0]

    def test_purge_expired(self, clock):
        limiter = RateLimiter(clock=clock)
        limiter.hit("a", RateLimit(5, window_seconds=10))
        limiter.hit("b", RateLimit(5, window_seconds=100))
        clock.advance(50)

        assert limiter.purge_expired() == 1

    def test_new_key_drops_stale_windows(self, clock):
        limiter = RateLimiter(clock=clock)
        limit = RateLimit(5, window_seconds=10)
        for i in range(100):
            limiter.hit(f"10.0.0.{i}:GET:/x", limit)
        clock.advance(11)

        limiter.hit("10.0.1.1:GET:/x", limit)

        assert limiter.purge_expired() == 0
        assert len(limiter._windows) == 1


class TestSessionManager:
    def make(self, clock, **kw):
        opts = dict(activity_timeout=1800, max_concurrent=2, max_failed_attempts=5, lockout_seconds=900)
        opts.update(kw)
        return SessionManager(clock=clock, **opts)

    def test_lockout_after_five_failures(self, clock):
        sm = self.make(clock)
        for _ in range(4):
            sm.record_failed_attempt("u1")
        sm.check_lockout("u1")

        assert sm.record_failed_attempt("u1") == 5
        with pytest.raises(AccountLocked):
            sm.check_lockout("u1")
        assert sm.stats()["lockedUsers"] == 1

    def test_lockout_expires(self, clock):
        sm = self.make(clock)
        for _ in range(5):
            sm.record_failed_attempt("u1")

        clock.advance(901)
        sm.check_lockout("u1")
        assert sm.session_info("u1")["isLocked"] is False

    def test_unlock_clears_attempts(self, clock):
        sm = self.make(clock)
        for _ in range(5):
            sm.record_failed_attempt("u1")

        sm.unlock("u1")

        sm.check_lockout("u1")
        assert sm.stats()["failedAttempts"] == 0

    def test_force_logout_is_idempotent(self, clock):
        sm = self.make(clock)
        sid = sm.create_session("u1", ip_address="1.1.1.1", user_agent="ua")
        sm.create_session("u2", ip_address="1.1.1.1", user_agent="ua")

        assert sm.force_logout_user("u1", "test") == 1
        assert sm.force_logout_user("u1", "test") == 0
        assert not sm.is_active(sid)
        assert sm.stats()["activeSessions"] == 1

    def test_inactive_session_expires(self, clock):
        sm = self.make(clock)
        sid = sm.create_session("u1", ip_address="ip", user_agent="ua")
        clock.advance(1000)
        sm.validate(sid, "u1")

        clock.advance(1801)
        with pytest.raises(SessionExpired):
            sm.validate(sid, "u1")

    def test_session_bound_to_user(self, clock):
        sm = self.make(clock)
        sid = sm.create_session("u1", ip_address="ip", user_agent="ua")

        with pytest.raises(SessionExpired):
            sm.validate(sid, "u2")

    def test_oldest_session_evicted_over_limit(self, clock):
        sm = self.make(clock)
        first = sm.create_session("u1", ip_address="ip", user_agent="ua")
        clock.advance(1)
        second = sm.create_session("u1", ip_address="ip", user_agent="ua")
        clock.advance(1)
        third = sm.create_session("u1", ip_address="ip", user_agent="ua")

        assert not sm.is_active(first)
        assert sm.is_active(second) and sm.is_active(third)
        assert sm.session_info("u1")["activeSessions"] == 2

    def test_cleanup_expired(self, clock):
        sm = self.make(clock)
        sm.create_session("u1", ip_address="ip", user_agent="ua")
        clock.advance(1801)
        sm.create_session("u2", ip_address="ip", user_agent="ua")

        assert sm.cleanup_expired() == 1
        assert sm.stats()["activeSessions"] == 1


class TestCsrfTokens:
    def test_token_bound_to_owner(self, clock):
        store = CsrfTokenStore(ttl_seconds=3600, clock=clock)
        token = store.issue("session-1")

        assert store.validate(token, "session-1")
        assert not store.validate(token, "session-2")
        assert not store.validate(token, "anon:127.0.0.1")

    def test_missing_or_unknown_token(self, clock):
        store = CsrfTokenStore(ttl_seconds=3600, clock=clock)

        assert not store.validate(None, "s")
        assert not store.validate("", "s")
        assert not store.validate("not-issued", "s")

    def test_token_expires(self, clock):
        store = CsrfTokenStore(ttl_seconds=3600, clock=clock)
        token = store.issue("s")

        clock.advance(3601)
        assert not store.validate(token, "s")
