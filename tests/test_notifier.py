"""Tests for change notification (polling and the silent demo notifier)."""

import asyncio

import pytest

from nexora.config import get_settings
from nexora.services.notifier import (
    NullChangeNotifier,
    PollingChangeNotifier,
    Subscription,
    create_notifier,
)

INTERVAL = 0.05


class TestPollingChangeNotifier:
    """Tests for PollingChangeNotifier."""

    def test_rejects_non_positive_interval(self):
        """Test interval validation."""
        with pytest.raises(ValueError):
            PollingChangeNotifier(0)

    @pytest.mark.asyncio
    async def test_fires_repeatedly(self):
        """Test the callback runs once per interval."""
        calls = []
        notifier = PollingChangeNotifier(INTERVAL)
        sub = notifier.subscribe(lambda: calls.append(1))

        await asyncio.sleep(INTERVAL * 5.5)
        sub.cancel()

        assert 3 <= len(calls) <= 6

    @pytest.mark.asyncio
    async def test_does_not_fire_immediately(self):
        """Test the first tick comes after one interval."""
        calls = []
        sub = PollingChangeNotifier(INTERVAL).subscribe(lambda: calls.append(1))

        await asyncio.sleep(0)
        assert calls == []
        sub.cancel()

    @pytest.mark.asyncio
    async def test_cancel_stops_future_calls(self):
        """Test no callbacks after cancel."""
        calls = []
        sub = PollingChangeNotifier(INTERVAL).subscribe(lambda: calls.append(1))

        await asyncio.sleep(INTERVAL * 2.5)
        sub.cancel()
        seen = len(calls)
        await asyncio.sleep(INTERVAL * 3)

        assert len(calls) == seen
        assert sub.active is False

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self):
        """Test cancelling twice."""
        sub = PollingChangeNotifier(INTERVAL).subscribe(lambda: None)
        sub.cancel()
        sub.cancel()
        assert sub.active is False

    @pytest.mark.asyncio
    async def test_failing_callback_keeps_polling(self):
        """Test that one error doesn't end the subscription."""
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("refresh failed")

        sub = PollingChangeNotifier(INTERVAL).subscribe(flaky)
        await asyncio.sleep(INTERVAL * 3.5)
        sub.cancel()

        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_async_callback_in_flight_survives_cancel(self):
        """Test cancelling doesn't abort a refresh that already started."""
        started = asyncio.Event()
        finished = asyncio.Event()

        async def slow_refresh():
            started.set()
            await asyncio.sleep(INTERVAL * 2)
            finished.set()

        sub = PollingChangeNotifier(INTERVAL).subscribe(slow_refresh)
        await asyncio.wait_for(started.wait(), timeout=1)
        sub.cancel()

        await asyncio.wait_for(finished.wait(), timeout=1)
        assert finished.is_set()

    @pytest.mark.asyncio
    async def test_failing_async_callback_keeps_polling(self):
        """Test that a raising coroutine is logged, not fatal."""
        calls = []

        async def broken():
            calls.append(1)
            raise RuntimeError("boom")

        sub = PollingChangeNotifier(INTERVAL).subscribe(broken)
        await asyncio.sleep(INTERVAL * 3.5)
        sub.cancel()

        assert len(calls) >= 2


class TestNullChangeNotifier:
    """Tests for the demo mode notifier."""

    @pytest.mark.asyncio
    async def test_never_fires(self):
        """Test that nothing is ever called."""
        calls = []
        sub = NullChangeNotifier().subscribe(lambda: calls.append(1))

        await asyncio.sleep(INTERVAL * 2)
        assert calls == []
        assert isinstance(sub, Subscription)
        assert sub.active is False
        sub.cancel()


class TestCreateNotifier:
    """Tests for notifier selection."""

    def test_demo_mode_gets_null_notifier(self):
        """Test no polling without an API."""
        assert isinstance(create_notifier(get_settings()), NullChangeNotifier)

    def test_remote_mode_polls_every_15_seconds(self, monkeypatch):
        """Test the default polling period."""
        monkeypatch.setenv("NEXORA_API_BASE_URL", "http://api.test/api")
        get_settings.cache_clear()

        notifier = create_notifier()
        assert isinstance(notifier, PollingChangeNotifier)
        assert notifier.interval == 15.0

    def test_explicit_demo_mode_overrides_settings(self, monkeypatch):
        """Test the caller's demo_mode wins over the API switch."""
        assert isinstance(create_notifier(demo_mode=False), PollingChangeNotifier)

        monkeypatch.setenv("NEXORA_API_BASE_URL", "http://api.test/api")
        get_settings.cache_clear()
        assert isinstance(create_notifier(demo_mode=True), NullChangeNotifier)
