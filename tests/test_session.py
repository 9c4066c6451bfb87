"""Tests for NotificationSession wiring."""

from unittest.mock import AsyncMock

import pytest

from common.utils.exceptions import StreamFailedError, TransportError
from forum_notifications.schemas.events import (
    Connected,
    NewNotification,
    NotificationDeleted,
    StreamError,
    UnreadCount,
)
from forum_notifications.schemas.notifications import NotificationsPage
from forum_notifications.services.notifications.session import (
    MODE_POLLING,
    MODE_PUSH,
    MODE_STOPPED,
    NotificationSession,
)
from forum_notifications.services.stream.polling import VisibilityState
from forum_notifications.signals import ContentChangedSignal
from helpers import FakeChannel, ManualSleep, settle


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def sleep():
    return ManualSleep()


@pytest.fixture
def signal():
    return ContentChangedSignal()


@pytest.fixture
def initial_page(mock_api, make_notification):
    page = NotificationsPage(
        notifications=[make_notification(1), make_notification(2), make_notification(3, read=True)],
        unreadCount=2,
    )
    mock_api.get_notifications.return_value = page
    mock_api.get_unread_count.return_value = 2
    return page


@pytest.fixture
def make_session(mock_api, channel, store, signal, sleep, test_settings, initial_page):
    def _make(**overrides):
        settings = test_settings.model_copy(update=overrides)
        return NotificationSession(
            api=mock_api,
            channel_factory=lambda: channel,
            settings=settings,
            store=store,
            signal=signal,
            visibility=VisibilityState(),
            sleep=sleep,
        )
    return _make


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

class TestStart:

    @pytest.mark.asyncio
    async def test_push_start_fetches_then_opens_channel(self, make_session, channel, mock_api):
        session = make_session()

        await session.start()

        assert session.mode == MODE_PUSH
        assert channel.opened is True
        assert session.state.unread_count == 2
        assert len(session.state.notifications) == 3
        mock_api.get_notifications.assert_awaited_once()
        mock_api.get_unread_count.assert_awaited_once()

        await session.aclose()

    @pytest.mark.asyncio
    async def test_push_disabled_starts_polling(self, make_session, channel, mock_api):
        session = make_session(PUSH_ENABLED=False)

        await session.start()
        await settle()

        assert session.mode == MODE_POLLING
        assert channel.opened is False
        assert session.poller.running is True
        mock_api.get_unread_count.assert_awaited_once()

        await session.aclose()

    @pytest.mark.asyncio
    async def test_start_is_only_honored_once(self, make_session, mock_api):
        session = make_session()

        await session.start()
        await session.start()

        mock_api.get_notifications.assert_awaited_once()
        await session.aclose()


# ---------------------------------------------------------------------------
# Stream event routing
# ---------------------------------------------------------------------------

class TestStreamRouting:

    @pytest.mark.asyncio
    async def test_unread_count_goes_through_merge_rule(self, make_session, channel):
        session = make_session()
        await session.start()

        channel.emit(UnreadCount(count=7))
        assert session.state.unread_count == 7

        await session.mark_as_read(1)
        channel.emit(UnreadCount(count=7))
        assert session.state.unread_count == 6

        await session.aclose()

    @pytest.mark.asyncio
    async def test_new_notification_triggers_refetch(self, make_session, channel, mock_api, make_notification):
        session = make_session()
        await session.start()
        mock_api.get_notifications.return_value = NotificationsPage(
            notifications=[make_notification(9), make_notification(1), make_notification(2)],
            unreadCount=3,
        )

        channel.emit(NewNotification(payload={"id": 9}))
        await settle()

        assert session.state.notifications[0].id == 9
        assert session.state.unread_count == 3
        await session.aclose()

    @pytest.mark.asyncio
    async def test_deleted_removes_without_touching_count(self, make_session, channel):
        session = make_session()
        await session.start()

        channel.emit(NotificationDeleted(notification_id=1))

        assert session.store.get(1) is None
        assert session.state.unread_count == 2
        await session.aclose()

    @pytest.mark.asyncio
    async def test_connected_and_transient_errors_change_nothing(self, make_session, channel):
        session = make_session()
        await session.start()
        before = session.state

        channel.emit(Connected(payload={"userId": 1}))
        channel.emit(StreamError(error=TransportError(message="dropped"), terminal=False))

        assert session.mode == MODE_PUSH
        assert session.state == before
        await session.aclose()

    @pytest.mark.asyncio
    async def test_terminal_error_falls_back_to_polling(self, make_session, channel, mock_api, sleep):
        session = make_session()
        await session.start()

        channel.emit(StreamError(error=StreamFailedError(message="gave up"), terminal=True))
        await settle()

        assert channel.closed is True
        assert session.mode == MODE_POLLING
        assert session.poller.running is True
        assert mock_api.get_unread_count.await_count == 2
        assert sleep.calls == [30.0]

        await session.aclose()

    @pytest.mark.asyncio
    async def test_events_after_fallback_are_ignored(self, make_session, channel):
        session = make_session()
        await session.start()
        listener = channel.listeners[0]

        channel.emit(StreamError(error=StreamFailedError(message="gave up"), terminal=True))
        listener(UnreadCount(count=50))

        assert session.state.unread_count == 2
        await session.aclose()


# ---------------------------------------------------------------------------
# Content-changed signal and reconciliation
# ---------------------------------------------------------------------------

class TestRefreshTriggers:

    @pytest.mark.asyncio
    async def test_content_changed_refetches_list_and_count(self, make_session, signal, mock_api):
        session = make_session()
        await session.start()

        signal.send("question_deleted")
        await settle()

        assert mock_api.get_notifications.await_count == 2
        assert mock_api.get_unread_count.await_count == 2
        await session.aclose()

    @pytest.mark.asyncio
    async def test_signal_ignored_before_start(self, make_session, signal, mock_api):
        make_session()

        signal.send("question_deleted")
        await settle()

        mock_api.get_notifications.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reconcile_loop_refetches_when_unprotected(self, make_session, mock_api, sleep):
        session = make_session(RECONCILE_INTERVAL_SECONDS=300)
        await session.start()
        await settle()
        assert 300 in sleep.calls

        await sleep.release()

        assert mock_api.get_notifications.await_count == 2
        await session.aclose()

    @pytest.mark.asyncio
    async def test_reconcile_loop_skips_while_protected(self, make_session, mock_api, sleep):
        session = make_session(RECONCILE_INTERVAL_SECONDS=300)
        await session.start()
        await session.mark_as_read(1)
        await settle()

        await sleep.release()

        assert mock_api.get_notifications.await_count == 1
        await session.aclose()


# ---------------------------------------------------------------------------
# Teardown
# ---------------------------------------------------------------------------

class TestClose:

    @pytest.mark.asyncio
    async def test_close_releases_everything(self, make_session, channel, signal, mock_api):
        session = make_session()
        await session.start()

        await session.aclose()

        assert session.mode == MODE_STOPPED
        assert channel.closed is True
        assert signal.receivers == 0
        assert session.state.notifications == ()
        assert session.state.unread_count == 0
        mock_api.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_waits_for_pending_confirmation(self, make_session, mock_api, make_notification):
        session = make_session()
        await session.start()
        confirmed = []

        async def confirm(notification_id):
            await settle()
            confirmed.append(notification_id)
            return make_notification(notification_id, read=True)

        mock_api.mark_as_read = AsyncMock(side_effect=confirm)
        session.mark_as_read(1)

        await session.aclose()

        assert confirmed == [1]
        assert len(session.tasks) == 0

    @pytest.mark.asyncio
    async def test_close_stops_polling(self, make_session):
        session = make_session(PUSH_ENABLED=False)
        await session.start()

        await session.aclose()
        await session.aclose()

        assert session.poller.running is False

    @pytest.mark.asyncio
    async def test_async_context_manager(self, make_session, channel):
        async with make_session() as session:
            assert session.mode == MODE_PUSH

        assert session.mode == MODE_STOPPED
        assert channel.closed is True
