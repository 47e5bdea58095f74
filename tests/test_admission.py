"""Tests for chat admission."""

from unittest.mock import MagicMock

import pytest

from chat_voice_bot.admission import AdmissionFilter
from chat_voice_bot.config import BotSettings
from chat_voice_bot.queues import BoundedLog, PendingQueue
from conftest import make_event


@pytest.fixture
def admission():
    settings = BotSettings()
    return AdmissionFilter(settings, PendingQueue(), BoundedLog(maxlen=100))


class TestAdmissionFilter:
    """Tests for the ignore list, auto reply and feed pause."""

    def test_admits_regular_viewer(self, admission):
        event = make_event(username="kevzo")
        assert admission.admit(event) is True
        assert admission.queue.get_nowait() is event
        assert admission.display_log.items() == [event]

    @pytest.mark.parametrize("username", ["nightbot", "Nightbot", "STREAMELEMENTS"])
    def test_ignored_users_are_logged_not_queued(self, admission, username):
        event = make_event(username=username)
        assert admission.admit(event) is False
        assert admission.queue.empty()
        assert admission.display_log.items() == [event]

    def test_runtime_ignore_and_unignore(self, admission):
        admission.settings.ignore("Spammer")
        assert admission.admit(make_event(username="spammer")) is False

        admission.settings.unignore("SPAMMER")
        assert admission.admit(make_event(username="spammer")) is True

    def test_auto_reply_off_still_displays(self, admission):
        admission.settings.auto_reply = False
        event = make_event()

        assert admission.admit(event) is False
        assert admission.queue.empty()
        assert admission.display_log.items() == [event]

    def test_feed_pause_discards_entirely(self, admission):
        admission.feed_paused = True
        assert admission.admit(make_event()) is False
        assert admission.queue.empty()
        assert len(admission.display_log) == 0

    def test_callbacks(self):
        on_admit = MagicMock()
        on_change = MagicMock()
        settings = BotSettings()
        admission = AdmissionFilter(
            settings, PendingQueue(), BoundedLog(maxlen=10), on_admit=on_admit, on_change=on_change
        )

        event = make_event()
        admission.admit(event)
        admission.admit(make_event(username="nightbot"))

        on_admit.assert_called_once_with(event)
        assert on_change.call_count == 2

    def test_newer_event_replaces_waiting_one(self, admission):
        first, second = make_event(message="a"), make_event(message="b")
        admission.admit(first)
        admission.admit(second)
        assert admission.queue.qsize() == 1
        assert admission.queue.get_nowait() is second
