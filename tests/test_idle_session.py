"""Tests for the idle-session monitor.

Times are in milliseconds on a fake clock (idle timeout 1000) so deadline
comparisons are exact.
"""

import threading
from unittest.mock import MagicMock

import pytest

from core.auth import LocalAuthProvider, TokenStore
from services.session import (
    LOOSE_ACTIVITY_EVENTS,
    IdleSessionMonitor,
    LocalActivityEvents,
    SessionState,
    ThreadTimerScheduler,
)

TOKEN_KEYS = ("assetfolio-auth-token", "assetfolio.auth.token")


@pytest.fixture
def token_store():
    return TokenStore()


@pytest.fixture
def auth(token_store):
    return LocalAuthProvider({"me@example.com": "secret"}, token_store, token_key=TOKEN_KEYS[0])


@pytest.fixture
def events():
    return LocalActivityEvents()


@pytest.fixture
def navigate():
    return MagicMock()


@pytest.fixture
def make_monitor(auth, events, fake_clock, fake_scheduler, token_store, navigate):
    def factory(**overrides):
        kwargs = dict(
            idle_timeout=1000,
            clock=fake_clock,
            scheduler=fake_scheduler,
            fallback_sign_out=auth.force_sign_out,
            token_store=token_store,
            token_keys=TOKEN_KEYS,
            navigate=navigate,
            login_path="/login",
        )
        kwargs.update(overrides)
        return IdleSessionMonitor(kwargs.pop("auth", auth), events, **kwargs)

    return factory


@pytest.fixture
def signed_in_monitor(make_monitor, auth):
    monitor = make_monitor()
    monitor.bind()
    auth.sign_in("me@example.com", "secret")
    return monitor


class TestIdleTimer:
    """Tests for the idle deadline."""

    def test_logs_out_once_at_timeout(self, signed_in_monitor, fake_scheduler, navigate, auth):
        fake_scheduler.advance(999)
        assert auth.get_current_user() is not None
        navigate.assert_not_called()

        fake_scheduler.advance(1)
        assert auth.get_current_user() is None
        navigate.assert_called_once_with("/login")

        fake_scheduler.advance(10_000)
        navigate.assert_called_once()

    def test_activity_postpones_deadline(self, signed_in_monitor, fake_scheduler, events, navigate):
        fake_scheduler.advance(900)
        events.emit_interaction("keydown")

        fake_scheduler.advance(999)
        navigate.assert_not_called()
        assert signed_in_monitor.state == SessionState.ACTIVE

        fake_scheduler.advance(1)
        navigate.assert_called_once_with("/login")
        assert signed_in_monitor.last_activity_at == 900

    def test_only_one_timer_pending(self, signed_in_monitor, fake_scheduler, events):
        for _ in range(5):
            events.emit_interaction("pointerdown")
        assert len(fake_scheduler.pending) == 1

    def test_non_qualifying_events_ignored(self, signed_in_monitor, fake_scheduler, events, navigate):
        fake_scheduler.advance(500)
        events.emit_interaction("mousemove")
        events.emit_interaction("scroll")

        fake_scheduler.advance(500)
        navigate.assert_called_once_with("/login")

    def test_loose_event_set(self, make_monitor, auth, fake_scheduler, events, navigate):
        monitor = make_monitor(qualifying_events=LOOSE_ACTIVITY_EVENTS)
        monitor.bind()
        auth.sign_in("me@example.com", "secret")

        fake_scheduler.advance(500)
        events.emit_interaction("mousemove")
        fake_scheduler.advance(500)

        navigate.assert_not_called()

    def test_idle_for(self, signed_in_monitor, fake_scheduler):
        fake_scheduler.advance(250)
        assert signed_in_monitor.idle_for() == 250

    def test_rejects_non_positive_timeout(self, make_monitor):
        with pytest.raises(ValueError):
            make_monitor(idle_timeout=0)


class TestVisibility:
    """Tests for tab visibility handling."""

    def test_hidden_marks_idle_and_keeps_timer(self, signed_in_monitor, fake_scheduler, events):
        fake_scheduler.advance(100)
        events.emit_visibility(False)

        assert signed_in_monitor.state == SessionState.IDLE
        assert len(fake_scheduler.pending) == 1

    def test_hidden_tab_still_times_out(self, signed_in_monitor, fake_scheduler, events, navigate):
        events.emit_visibility(False)
        fake_scheduler.advance(1000)
        navigate.assert_called_once_with("/login")

    def test_catch_up_on_return(self, signed_in_monitor, fake_clock, events, navigate, auth):
        """Timers throttled while hidden: the overdue logout happens as soon as the tab is visible."""
        fake_clock.advance(100)
        events.emit_visibility(False)
        fake_clock.advance(1400)

        events.emit_visibility(True)

        navigate.assert_called_once_with("/login")
        assert auth.get_current_user() is None

    def test_return_before_timeout_rearms_remaining(self, signed_in_monitor, fake_clock, fake_scheduler, events, navigate):
        events.emit_visibility(False)
        fake_clock.advance(400)
        events.emit_visibility(True)

        assert signed_in_monitor.state == SessionState.ACTIVE
        assert [t.due for t in fake_scheduler.pending] == [1000]
        fake_scheduler.advance(599)
        navigate.assert_not_called()
        fake_scheduler.advance(1)
        navigate.assert_called_once()


class TestLogout:
    """Tests for the logout sequence."""

    def test_clears_all_token_keys(self, signed_in_monitor, token_store, fake_scheduler):
        token_store.set(TOKEN_KEYS[1], "legacy")
        assert TOKEN_KEYS[0] in token_store

        fake_scheduler.advance(1000)

        assert TOKEN_KEYS[0] not in token_store
        assert TOKEN_KEYS[1] not in token_store

    def test_reentrant_calls_run_once(self, make_monitor, auth, fake_scheduler):
        calls = []
        monitor = None

        def navigate(target):
            calls.append(target)
            monitor.perform_logout()

        monitor = make_monitor(navigate=navigate)
        monitor.bind()
        auth.sign_in("me@example.com", "secret")

        monitor.perform_logout()
        monitor.perform_logout()
        fake_scheduler.advance(5000)

        assert calls == ["/login"]

    def test_concurrent_calls_sign_out_once(self, make_monitor):
        primary = MagicMock()
        primary.subscribe.return_value = lambda: None
        primary.get_current_user.return_value = None
        monitor = make_monitor(auth=primary)
        monitor.start()

        threads = [threading.Thread(target=monitor.perform_logout) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(5)

        primary.sign_out.assert_called_once()

    def test_stays_logging_out_until_next_start(self, signed_in_monitor, fake_scheduler, auth, events):
        fake_scheduler.advance(1000)
        assert signed_in_monitor.is_logging_out
        assert signed_in_monitor.state == SessionState.INACTIVE
        events.emit_interaction("keydown")
        assert fake_scheduler.pending == []

        auth.sign_in("me@example.com", "secret")
        assert not signed_in_monitor.is_logging_out
        assert signed_in_monitor.state == SessionState.ACTIVE

    def test_fallback_used_when_primary_fails(self, make_monitor, navigate, token_store):
        primary = MagicMock()
        primary.sign_out.side_effect = RuntimeError("network down")
        fallback = MagicMock()
        monitor = make_monitor(auth=primary, fallback_sign_out=fallback)
        monitor.start()
        token_store.set(TOKEN_KEYS[0], "t")

        monitor.perform_logout()

        fallback.assert_called_once()
        navigate.assert_called_once_with("/login")
        assert TOKEN_KEYS[0] not in token_store

    def test_forced_redirect_when_every_path_fails(self, make_monitor, navigate, token_store, events):
        primary = MagicMock()
        primary.sign_out.side_effect = RuntimeError("network down")
        fallback = MagicMock(side_effect=RuntimeError("also down"))
        monitor = make_monitor(auth=primary, fallback_sign_out=fallback)
        monitor.start()
        token_store.set(TOKEN_KEYS[0], "t")

        monitor.perform_logout()

        navigate.assert_called_once_with("/login?forcedLogout=true")
        assert TOKEN_KEYS[0] not in token_store
        assert monitor.state == SessionState.INACTIVE
        assert events.listener_count == 0

    def test_no_fallback_configured_forces_redirect(self, make_monitor, navigate):
        primary = MagicMock()
        primary.sign_out.side_effect = RuntimeError("boom")
        monitor = make_monitor(auth=primary, fallback_sign_out=None)
        monitor.start()

        monitor.perform_logout()

        navigate.assert_called_once_with("/login?forcedLogout=true")

    def test_navigation_failure_is_swallowed(self, make_monitor, auth):
        monitor = make_monitor(navigate=MagicMock(side_effect=RuntimeError("no window")))
        monitor.bind()
        auth.sign_in("me@example.com", "secret")

        monitor.perform_logout()

        assert monitor.state == SessionState.INACTIVE

    def test_logout_without_session_is_noop(self, make_monitor, navigate):
        make_monitor().perform_logout()
        navigate.assert_not_called()

    def test_idle_check_keeps_a_recently_active_session(self, signed_in_monitor, fake_clock, fake_scheduler, navigate, auth):
        fake_clock.advance(500)

        signed_in_monitor.perform_logout(idle_check=True)

        assert signed_in_monitor.state == SessionState.ACTIVE
        assert auth.get_current_user() is not None
        navigate.assert_not_called()
        assert len(fake_scheduler.pending) == 1

    def test_activity_between_timeout_and_logout_wins(self, signed_in_monitor, fake_scheduler, events, navigate, auth):
        logout = signed_in_monitor.perform_logout
        late = ["keydown"]

        def logout_after_late_activity(**kwargs):
            while late:
                events.emit_interaction(late.pop())
            logout(**kwargs)

        signed_in_monitor.perform_logout = logout_after_late_activity

        fake_scheduler.advance(1000)
        assert auth.get_current_user() is not None
        assert signed_in_monitor.state == SessionState.ACTIVE
        navigate.assert_not_called()

        fake_scheduler.advance(1000)
        assert auth.get_current_user() is None
        navigate.assert_called_once_with("/login")


class TestLifecycle:
    """Tests for binding to the auth provider and teardown."""

    def test_bind_without_user_stays_inactive(self, make_monitor, fake_scheduler, events):
        monitor = make_monitor()
        monitor.bind()

        assert monitor.state == SessionState.INACTIVE
        assert fake_scheduler.pending == []
        assert events.listener_count == 0

    def test_sign_in_starts_and_sign_out_stops(self, make_monitor, auth, fake_scheduler, events):
        monitor = make_monitor()
        monitor.bind()

        auth.sign_in("me@example.com", "secret")
        assert monitor.state == SessionState.ACTIVE
        assert monitor.user.email == "me@example.com"
        assert events.listener_count == 2

        auth.sign_out()
        assert monitor.state == SessionState.INACTIVE
        assert fake_scheduler.pending == []
        assert events.listener_count == 0

    def test_bind_with_existing_user_starts(self, make_monitor, auth):
        auth.sign_in("me@example.com", "secret")
        monitor = make_monitor()
        monitor.bind()
        assert monitor.state == SessionState.ACTIVE

    def test_unbind_leaves_nothing_behind(self, signed_in_monitor, auth, fake_scheduler, events, navigate):
        signed_in_monitor.unbind()

        assert fake_scheduler.pending == []
        assert events.listener_count == 0
        auth.sign_out()
        auth.sign_in("me@example.com", "secret")
        fake_scheduler.advance(5000)
        navigate.assert_not_called()

    def test_start_is_idempotent(self, signed_in_monitor, fake_scheduler, events):
        signed_in_monitor.start()
        assert len(fake_scheduler.pending) == 1
        assert events.listener_count == 2

    def test_failed_sign_in_does_not_start(self, make_monitor, auth):
        monitor = make_monitor()
        monitor.bind()
        assert auth.sign_in("me@example.com", "wrong") is None
        assert monitor.state == SessionState.INACTIVE


class TestThreadTimerScheduler:
    """Tests for the threading.Timer scheduler."""

    def test_runs_callback(self):
        fired = threading.Event()
        ThreadTimerScheduler().call_later(0.01, fired.set)
        assert fired.wait(2)

    def test_cancel(self):
        fired = threading.Event()
        handle = ThreadTimerScheduler().call_later(0.05, fired.set)
        handle.cancel()
        assert not fired.wait(0.2)
