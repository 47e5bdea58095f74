"""Tests for the response record state machine and history ring."""

import pytest

from chat_voice_bot.interfaces.tts import AudioEncoding, AudioItem
from chat_voice_bot.responses import (
    InvalidTransitionError,
    ResponseHistory,
    ResponseRecord,
    TextStatus,
    VoiceStatus,
)
from conftest import make_event


@pytest.fixture
def record():
    return ResponseRecord.from_event(make_event(username="kevzo", display_name="Kevzo", message="yo"))


class TestResponseRecord:
    """Tests for allowed and forbidden transitions."""

    def test_from_event(self, record):
        assert record.user == "Kevzo"
        assert record.original_message == "yo"
        assert record.text_status is TextStatus.PENDING
        assert record.voice_status is None
        assert len(record.id) == 9

    def test_ids_are_unique(self):
        event = make_event()
        ids = {ResponseRecord.from_event(event).id for _ in range(100)}
        assert len(ids) == 100

    def test_happy_path(self, record):
        record.start_processing()
        assert record.is_active

        record.attempt_text("gemini")
        assert record.text_provider == "gemini"

        record.complete_text("Hey Kevzo!", "gemini")
        assert record.text_status is TextStatus.DONE
        assert record.voice_status is VoiceStatus.PENDING
        assert not record.is_active
        assert not record.is_finished

        item = AudioItem(encoding=AudioEncoding.DELEGATE, text="Hey Kevzo!")
        record.attempt_voice("system")
        record.complete_voice(item)
        assert record.voice_status is VoiceStatus.DONE
        assert record.voice_provider == "system"
        assert record.audio is item
        assert record.is_finished

    def test_text_error(self, record):
        record.start_processing()
        record.fail_text("Generation failed: boom", reason="[gemini] other: boom")
        assert record.text_status is TextStatus.ERROR
        assert record.reply_text == "Generation failed: boom"
        assert record.error == "[gemini] other: boom"
        assert record.voice_status is None
        assert record.is_finished

    def test_voice_error_keeps_text_done(self, record):
        record.start_processing()
        record.complete_text("Hi!", "openai")
        record.fail_voice("tts down")
        assert record.text_status is TextStatus.DONE
        assert record.voice_status is VoiceStatus.ERROR
        assert record.reply_text == "Hi!"

    def test_cannot_complete_text_before_processing(self, record):
        with pytest.raises(InvalidTransitionError):
            record.complete_text("Hi!", "gemini")

    def test_cannot_enter_voice_before_text_done(self, record):
        record.start_processing()
        with pytest.raises(InvalidTransitionError):
            record.attempt_voice("gemini")

    def test_cannot_fail_text_twice(self, record):
        record.start_processing()
        record.fail_text("nope")
        with pytest.raises(InvalidTransitionError):
            record.fail_text("again")

    def test_cannot_leave_voice_terminal_state(self, record):
        record.start_processing()
        record.complete_text("Hi!", "gemini")
        record.complete_voice(None)
        with pytest.raises(InvalidTransitionError):
            record.fail_voice("late failure")

    def test_copy_is_detached(self, record):
        snapshot = record.copy()
        record.start_processing()
        assert snapshot.text_status is TextStatus.PENDING


class TestResponseHistory:
    """Tests for the bounded response ring."""

    def test_newest_first_and_bounded(self):
        history = ResponseHistory(maxlen=50)
        records = [ResponseRecord.from_event(make_event(message=str(i))) for i in range(60)]
        for r in records:
            history.add(r)

        snapshot = history.snapshot()
        assert len(history) == 50
        assert snapshot[0].id == records[-1].id
        assert snapshot[-1].id == records[10].id

    def test_active(self):
        history = ResponseHistory()
        idle = ResponseRecord.from_event(make_event())
        busy = ResponseRecord.from_event(make_event())
        busy.start_processing()
        history.add(idle)
        history.add(busy)
        assert history.active() == [busy]

    def test_snapshot_returns_copies(self):
        history = ResponseHistory()
        record = ResponseRecord.from_event(make_event())
        history.add(record)
        snapshot = history.snapshot()
        record.start_processing()
        assert snapshot[0].text_status is TextStatus.PENDING
