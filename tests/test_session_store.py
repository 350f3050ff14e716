"""Tests for the session tracker."""

import threading

from lendchat.sessions.session_store import SessionStore
from tests.conftest import FakeClock


class TestNewSession:
    def setup_method(self):
        self.clock = FakeClock()
        self.store = SessionStore(clock=self.clock, timeout_provider=lambda: 1.0)

    def test_unknown_identifier_is_new(self):
        assert self.store.is_new_session("+18095550101") is True

    def test_touched_identifier_is_not_new(self):
        self.store.touch("+18095550101")
        assert self.store.is_new_session("+18095550101") is False

    def test_new_again_after_timeout(self):
        self.store.touch("+18095550101")
        self.clock.advance(1.1)
        assert self.store.is_new_session("+18095550101") is True

    def test_exactly_at_timeout_is_not_new(self):
        self.store.touch("+18095550101")
        self.clock.advance(1.0)
        assert self.store.is_new_session("+18095550101") is False

    def test_touch_refreshes_expired_session(self):
        self.store.touch("user-1")
        self.clock.advance(5)
        assert self.store.is_new_session("user-1") is True
        self.store.touch("user-1")
        assert self.store.is_new_session("user-1") is False

    def test_check_does_not_touch(self):
        self.store.is_new_session("user-1")
        assert "user-1" not in self.store
        assert self.store.is_new_session("user-1") is True

    def test_identifiers_are_independent(self):
        self.store.touch("user-1")
        assert self.store.is_new_session("user-2") is True


class TestTimeoutFromEnvironment:
    def test_timeout_change_applies_without_restart(self, monkeypatch):
        clock = FakeClock()
        store = SessionStore(clock=clock)
        monkeypatch.setenv("LENDCHAT_SESSION_TIMEOUT_SECONDS", "1800")
        store.touch("user-1")
        clock.advance(10)
        assert store.is_new_session("user-1") is False

        monkeypatch.setenv("LENDCHAT_SESSION_TIMEOUT_SECONDS", "1")
        assert store.is_new_session("user-1") is True


class TestCapacity:
    def test_least_recently_touched_evicted(self):
        store = SessionStore(max_entries=2, timeout_provider=lambda: 60)
        store.touch("a")
        store.touch("b")
        store.touch("a")
        store.touch("c")
        assert len(store) == 2
        assert "b" not in store
        assert "a" in store and "c" in store

    def test_explicit_zero_capacity_is_honoured(self):
        store = SessionStore(max_entries=0, timeout_provider=lambda: 60)
        store.touch("a")
        assert len(store) == 0
        assert store.is_new_session("a") is True

    def test_sweep_expired_removes_only_stale(self):
        clock = FakeClock()
        store = SessionStore(clock=clock, timeout_provider=lambda: 10)
        store.touch("old")
        clock.advance(20)
        store.touch("fresh")
        assert store.sweep_expired() == 1
        assert "old" not in store
        assert "fresh" in store


class TestConcurrency:
    def test_concurrent_touches_keep_every_identifier(self):
        store = SessionStore(max_entries=10_000, timeout_provider=lambda: 60)

        def worker(offset: int) -> None:
            for i in range(200):
                store.touch(f"user-{offset}-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 1600
