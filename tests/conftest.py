"""Shared test fixtures: PCM audio, fake providers and a fake audio output."""
import asyncio
import itertools

import numpy as np
import pytest

from chat_voice_bot.config import BotSettings
from chat_voice_bot.cooldown import CooldownGovernor
from chat_voice_bot.failover import ProviderRing, TextFailoverOrchestrator, VoiceSynthesizer
from chat_voice_bot.interfaces.events import ChatEvent
from chat_voice_bot.interfaces.llm import TextProvider
from chat_voice_bot.interfaces.playback import AudioOutput
from chat_voice_bot.interfaces.tts import AudioEncoding, AudioItem, SpeechProvider
from chat_voice_bot.pipeline import ResponsePipeline


def make_pcm(duration: float, sample_rate: int = 24000, channels: int = 1, frequency: float = 440.0) -> bytes:
    """Generate interleaved 16-bit PCM of a sine wave."""
    t = np.linspace(0, duration, int(sample_rate * duration), False)
    audio = np.sin(2 * np.pi * frequency * t) * 0.5
    audio_int16 = (audio * 32767).astype(np.int16)
    if channels > 1:
        audio_int16 = np.repeat(audio_int16[:, None], channels, axis=1)
    return audio_int16.tobytes()


_event_ids = itertools.count(1)


def make_event(username: str = "viewer", message: str = "hello aura", display_name: str | None = None) -> ChatEvent:
    return ChatEvent(
        id=f"msg-{next(_event_ids)}",
        username=username,
        display_name=display_name or username.capitalize(),
        message=message,
    )


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTextProvider(TextProvider):
    """Text provider returning a fixed reply or raising a fixed error."""

    def __init__(self, provider_id, reply="Let's gooo!", error=None, attempts=None, gate=None, side_effect=None):
        self.provider_id = provider_id
        self.model = f"{provider_id}-model"
        self.reply = reply
        self.error = error
        self.prompts = []
        self.attempts = attempts if attempts is not None else []
        self.gate = gate
        self.side_effect = side_effect

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        self.attempts.append(self.provider_id)
        if self.side_effect is not None:
            self.side_effect()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


class FakeSpeechProvider(SpeechProvider):
    """Speech provider returning a short RAW_PCM clip (or raising)."""

    def __init__(self, provider_id="fake-voice", error=None, encoding=AudioEncoding.RAW_PCM, duration=0.1):
        self.provider_id = provider_id
        self.error = error
        self.encoding = encoding
        self.duration = duration
        self.calls = []

    async def synthesize(self, text: str, voice: str | None = None) -> AudioItem:
        self.calls.append((text, voice))
        if self.error is not None:
            raise self.error
        if self.encoding is AudioEncoding.DELEGATE:
            return AudioItem(encoding=AudioEncoding.DELEGATE, text=text, voice=voice)
        if self.encoding is AudioEncoding.COMPRESSED:
            return AudioItem(encoding=AudioEncoding.COMPRESSED, data=b"ID3fake", text=text, voice=voice)
        return AudioItem(encoding=AudioEncoding.RAW_PCM, data=make_pcm(self.duration), text=text, voice=voice)


class FakeAudioOutput(AudioOutput):
    """Records playback calls against a manual clock."""

    def __init__(self, now: float = 0.0, pcm_play_time: float = 0.01):
        self.now = now
        self.pcm_play_time = pcm_play_time
        self.events = []
        self.fail_compressed = False
        self.fail_pcm = False
        self.closed = False

    def clock(self) -> float:
        return self.now

    async def play_pcm(self, frames, sample_rate, start_at):
        self.events.append(("pcm_start", start_at, len(frames) / sample_rate, frames.shape))
        await asyncio.sleep(self.pcm_play_time)
        if self.fail_pcm:
            raise RuntimeError("device lost")
        self.events.append(("pcm_end", start_at))

    async def play_compressed(self, data):
        if self.fail_compressed:
            raise RuntimeError("cannot decode")
        self.events.append(("compressed", data))

    async def speak(self, text, voice=None):
        self.events.append(("speak", text, voice))

    async def close(self):
        self.closed = True


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def test_audio_24k_pcm() -> bytes:
    """One second of 440Hz sine at 24kHz mono (Gemini TTS format)."""
    return make_pcm(1.0)


@pytest.fixture
def settings() -> BotSettings:
    return BotSettings(response_cooldown=15.0, voice_provider="fake-voice", voice="Puck")


@pytest.fixture
def fake_output() -> FakeAudioOutput:
    return FakeAudioOutput()


def build_pipeline(
    settings: BotSettings,
    text_providers: list[TextProvider],
    clock=None,
    speech_provider: SpeechProvider | None = None,
    sequencer=None,
    preferred: str | None = None,
    prompt_builder=None,
    lockout_duration: int = 90,
    tick_interval: float = 1.0,
) -> ResponsePipeline:
    """Wire a pipeline from fakes."""
    ring = ProviderRing([p.provider_id for p in text_providers], preferred=preferred)
    text = TextFailoverOrchestrator({p.provider_id: p for p in text_providers}, ring, timeout=1.0)
    speech = speech_provider or FakeSpeechProvider()
    voice = VoiceSynthesizer({speech.provider_id: speech}, provider_id=speech.provider_id, timeout=1.0)
    governor = CooldownGovernor(
        cooldown=settings.response_cooldown,
        lockout_duration=lockout_duration,
        clock=clock or ManualClock(),
    )
    return ResponsePipeline(
        settings=settings,
        text=text,
        voice=voice,
        governor=governor,
        sequencer=sequencer,
        prompt_builder=prompt_builder,
        poll_interval=0.01,
        post_attempt_delay=0.0,
        tick_interval=tick_interval,
    )
