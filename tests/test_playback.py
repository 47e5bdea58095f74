"""Tests for the audio sequencer and PCM helpers.

Tests cover:
- Back-to-back scheduling of RAW_PCM clips
- COMPRESSED and DELEGATE items waiting for scheduled PCM
- Skipping items that fail to decode or play
- Active/idle notifications
"""

import asyncio

import numpy as np
import pytest
import pytest_asyncio

from chat_voice_bot.audio import pcm_bytes_to_frames
from chat_voice_bot.interfaces.tts import AudioEncoding, AudioItem
from chat_voice_bot.playback import AudioSequencer
from conftest import make_pcm


def pcm_item(duration, response_id=None, channels=1, sample_rate=24000):
    return AudioItem(
        encoding=AudioEncoding.RAW_PCM,
        data=make_pcm(duration, sample_rate=sample_rate, channels=channels),
        sample_rate=sample_rate,
        channels=channels,
        response_id=response_id,
    )


# --- Fixtures ---


@pytest_asyncio.fixture
async def sequencer(fake_output):
    seq = AudioSequencer(fake_output)
    seq.start()
    yield seq
    await seq.stop()


# --- PCM helpers ---


class TestPcmHelpers:
    """Tests for PCM conversion."""

    def test_frames_shape_mono(self, test_audio_24k_pcm):
        frames = pcm_bytes_to_frames(test_audio_24k_pcm)
        assert frames.shape == (24000, 1)
        assert frames.dtype == np.float32
        assert np.abs(frames).max() <= 1.0

    def test_frames_shape_stereo(self):
        frames = pcm_bytes_to_frames(make_pcm(0.5, channels=2), channels=2)
        assert frames.shape == (12000, 2)

    def test_partial_frame_rejected(self):
        with pytest.raises(ValueError):
            pcm_bytes_to_frames(b"\x00\x00\x00", channels=1)
        with pytest.raises(ValueError):
            pcm_bytes_to_frames(b"\x00\x00", channels=2)

    def test_item_duration(self):
        assert pcm_item(0.5).duration == pytest.approx(0.5)
        assert AudioItem(encoding=AudioEncoding.DELEGATE, text="hi").duration is None


# --- AudioSequencer ---


class TestPcmScheduling:
    """Tests for back-to-back PCM placement."""

    @pytest.mark.asyncio
    async def test_clips_are_contiguous(self, sequencer):
        durations = [0.5, 0.25, 1.0]
        for i, d in enumerate(durations):
            sequencer.enqueue(pcm_item(d, response_id=f"r{i}"))
        await sequencer.drain()

        clips = list(sequencer.history)
        assert [c.response_id for c in clips] == ["r0", "r1", "r2"]
        assert clips[0].start == 0.0
        for prev, nxt in zip(clips, clips[1:]):
            assert nxt.start >= prev.end
            assert nxt.start == pytest.approx(prev.end)

    @pytest.mark.asyncio
    async def test_schedule_starts_at_clock_when_idle(self, sequencer, fake_output):
        sequencer.enqueue(pcm_item(0.1))
        await sequencer.drain()

        fake_output.now = 50.0
        sequencer.enqueue(pcm_item(0.1))
        await sequencer.drain()

        assert sequencer.history[-1].start == 50.0

    @pytest.mark.asyncio
    async def test_stereo_passes_channels(self, sequencer, fake_output):
        sequencer.enqueue(pcm_item(0.2, channels=2))
        await sequencer.drain()

        start = next(e for e in fake_output.events if e[0] == "pcm_start")
        assert start[3] == (4800, 2)
        assert start[2] == pytest.approx(0.2)

    @pytest.mark.asyncio
    async def test_sample_rate_respected(self, sequencer):
        sequencer.enqueue(pcm_item(1.0, sample_rate=22050))
        await sequencer.drain()
        assert sequencer.history[0].duration == pytest.approx(1.0)


class TestOrdering:
    """Tests for ordering across encodings."""

    @pytest.mark.asyncio
    async def test_compressed_waits_for_scheduled_pcm(self, sequencer, fake_output):
        sequencer.enqueue(pcm_item(0.1))
        sequencer.enqueue(AudioItem(encoding=AudioEncoding.COMPRESSED, data=b"ID3data"))
        await sequencer.drain()

        kinds = [e[0] for e in fake_output.events]
        assert kinds == ["pcm_start", "pcm_end", "compressed"]

    @pytest.mark.asyncio
    async def test_delegate_speaks_text(self, sequencer, fake_output):
        sequencer.enqueue(pcm_item(0.1))
        sequencer.enqueue(AudioItem(encoding=AudioEncoding.DELEGATE, text="Hey chat", voice="Samantha"))
        await sequencer.drain()

        assert fake_output.events[-1] == ("speak", "Hey chat", "Samantha")
        assert [e[0] for e in fake_output.events].index("pcm_end") < len(fake_output.events) - 1

    @pytest.mark.asyncio
    async def test_pcm_after_compressed_scheduled_after_it(self, sequencer, fake_output):
        sequencer.enqueue(AudioItem(encoding=AudioEncoding.COMPRESSED, data=b"a"))
        sequencer.enqueue(pcm_item(0.1))
        await sequencer.drain()

        assert [e[0] for e in fake_output.events] == ["compressed", "pcm_start", "pcm_end"]


class TestFailures:
    """Tests for skipping bad items."""

    @pytest.mark.asyncio
    async def test_undecodable_compressed_is_skipped(self, sequencer, fake_output):
        fake_output.fail_compressed = True
        sequencer.enqueue(AudioItem(encoding=AudioEncoding.COMPRESSED, data=b"garbage"))
        sequencer.enqueue(AudioItem(encoding=AudioEncoding.DELEGATE, text="still here"))
        await sequencer.drain()

        assert fake_output.events == [("speak", "still here", None)]

    @pytest.mark.asyncio
    async def test_truncated_pcm_is_skipped(self, sequencer, fake_output):
        sequencer.enqueue(AudioItem(encoding=AudioEncoding.RAW_PCM, data=b"\x00\x01\x02"))
        sequencer.enqueue(pcm_item(0.1, response_id="ok"))
        await sequencer.drain()

        assert [c.response_id for c in sequencer.history] == ["ok"]

    @pytest.mark.asyncio
    async def test_empty_payloads_are_skipped(self, sequencer, fake_output):
        sequencer.enqueue(AudioItem(encoding=AudioEncoding.COMPRESSED, data=b""))
        sequencer.enqueue(AudioItem(encoding=AudioEncoding.DELEGATE, text=""))
        await sequencer.drain()

        assert fake_output.events == []
        assert sequencer.qsize() == 0

    @pytest.mark.asyncio
    async def test_pcm_playback_failure_does_not_stop_worker(self, sequencer, fake_output):
        fake_output.fail_pcm = True
        sequencer.enqueue(pcm_item(0.1))
        await sequencer.drain()

        fake_output.fail_pcm = False
        sequencer.enqueue(AudioItem(encoding=AudioEncoding.DELEGATE, text="recovered"))
        await sequencer.drain()

        assert fake_output.events[-1] == ("speak", "recovered", None)


class TestState:
    """Tests for active/idle notifications."""

    @pytest.mark.asyncio
    async def test_active_then_idle(self, sequencer):
        states = []
        sequencer.on_state_change(states.append)

        sequencer.enqueue(pcm_item(0.1))
        assert sequencer.active
        await sequencer.drain()
        await asyncio.sleep(0)

        assert states == [True, False]
        assert not sequencer.active

    @pytest.mark.asyncio
    async def test_stop_cancels_playback(self, fake_output):
        fake_output.pcm_play_time = 10.0
        seq = AudioSequencer(fake_output)
        seq.start()
        seq.enqueue(pcm_item(0.1))
        await asyncio.sleep(0.01)

        await asyncio.wait_for(seq.stop(), timeout=1.0)

        assert not seq.active
        assert ("pcm_end", 0.0) not in fake_output.events
