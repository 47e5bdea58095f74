"""Tests for factory wiring and the top-level application.

Tests cover:
- Provider construction from config entries
- Pipeline wiring from a loaded config
- Running chat source, pipeline and playback together
"""

import asyncio
import logging
from unittest.mock import patch

import pytest

from chat_voice_bot import factory
from chat_voice_bot.app import ChatVoiceBot
from chat_voice_bot.config import BotConfig, TextProviderConfig, VoiceProviderConfig
from chat_voice_bot.interfaces.events import ChatSource, ConnectionStatus
from chat_voice_bot.playback import AudioSequencer
from chat_voice_bot.providers import (
    GeminiSpeech,
    GeminiText,
    OpenAIChatText,
    OpenAISpeech,
    SystemSpeech,
    TwitchChatSource,
    WyomingTTS,
)
from chat_voice_bot.responses import TextStatus
from conftest import FakeAudioOutput, FakeSpeechProvider, FakeTextProvider, build_pipeline, make_event


class ScriptedChatSource(ChatSource):
    """Chat source that delivers a fixed list of events and then ends."""

    def __init__(self, events, linger: float = 0.5):
        self.events = events
        self.linger = linger
        self.closed = False

    async def run(self, on_event, on_status):
        on_status(ConnectionStatus.CONNECTED)
        for event in self.events:
            on_event(event)
        await asyncio.sleep(self.linger)
        on_status(ConnectionStatus.DISCONNECTED)

    async def close(self):
        self.closed = True


# --- Factory ---


class TestFactory:
    """Tests for building providers from config."""

    def test_text_providers(self):
        gemini = factory.create_text_provider(TextProviderConfig(id="g", type="gemini", api_key="k"), 10)
        local = factory.create_text_provider(
            TextProviderConfig(id="local", type="openai", endpoint="http://localhost:8000/v1/chat/completions"),
            10,
        )
        assert isinstance(gemini, GeminiText)
        assert gemini.provider_id == "g"
        assert isinstance(local, OpenAIChatText)
        assert local.endpoint.startswith("http://localhost")

    def test_speech_providers(self):
        assert isinstance(factory.create_speech_provider(VoiceProviderConfig(id="g"), 10), GeminiSpeech)
        assert isinstance(
            factory.create_speech_provider(VoiceProviderConfig(id="o", type="openai"), 10), OpenAISpeech
        )
        wyoming = factory.create_speech_provider(
            VoiceProviderConfig(id="w", type="wyoming", host="piper", port=10201), 10
        )
        assert isinstance(wyoming, WyomingTTS)
        assert (wyoming.host, wyoming.port) == ("piper", 10201)
        assert isinstance(
            factory.create_speech_provider(VoiceProviderConfig(id="s", type="system"), 10), SystemSpeech
        )

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            factory.create_text_provider(TextProviderConfig(id="x", type="nope"), 10)

    def test_orchestrator_ring(self):
        config = BotConfig()
        config.text.preferred = "openai"
        orchestrator = factory.create_text_orchestrator(config)
        assert list(orchestrator.ring.rotation()) == ["openai", "gemini"]

    def test_pipeline_from_config(self):
        config = BotConfig()
        config.bot.response_cooldown = 42
        config.bot.lockout_duration = 60
        pipeline = factory.create_pipeline(config)

        assert pipeline.governor.cooldown == 42
        assert pipeline.governor.lockout_duration == 60
        assert pipeline.voice.provider_id == "gemini"
        assert pipeline.settings.voice == "Puck"

    def test_chat_source(self):
        config = BotConfig()
        with pytest.raises(ValueError):
            factory.create_chat_source(config)

        config.chat.channel = "aura_live"
        source = factory.create_chat_source(config)
        assert isinstance(source, TwitchChatSource)
        assert source.channel == "aura_live"


# --- ChatVoiceBot ---


class TestChatVoiceBot:
    """Tests for running the full loop."""

    def test_from_config_without_audio(self):
        config = BotConfig()
        config.chat.channel = "aura_live"
        config.audio.enabled = False

        bot = ChatVoiceBot.from_config(config)

        assert bot.sequencer is None
        assert bot.output is None
        assert bot.pipeline.settings.voice_provider is None

    def test_from_config_with_audio(self):
        config = BotConfig()
        config.chat.channel = "aura_live"
        output = FakeAudioOutput()

        with patch("chat_voice_bot.factory.create_audio_output", return_value=output):
            bot = ChatVoiceBot.from_config(config, observers=[lambda _s: None])

        assert bot.output is output
        assert isinstance(bot.sequencer, AudioSequencer)
        assert bot.pipeline.sequencer is bot.sequencer

    @pytest.mark.asyncio
    async def test_run_until_chat_ends(self, settings):
        output = FakeAudioOutput()
        sequencer = AudioSequencer(output)
        pipeline = build_pipeline(settings, [FakeTextProvider("A", reply="Hi chat!")], sequencer=sequencer)
        source = ScriptedChatSource([make_event(message="hello"), make_event(username="nightbot")])
        bot = ChatVoiceBot(pipeline, source, sequencer=sequencer, output=output)

        await asyncio.wait_for(bot.run(), timeout=5.0)

        records = pipeline.history.snapshot()
        assert len(records) == 1
        assert records[0].text_status is TextStatus.DONE
        assert len(pipeline.chat_log) == 2
        assert source.closed
        assert output.closed
        assert pipeline.connection_status is ConnectionStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_unreachable_wyoming_voice_warns_at_startup(self, settings, caplog):
        settings.voice_provider = "piper"
        piper = WyomingTTS(provider_id="piper", host="piper", port=10200)
        pipeline = build_pipeline(settings, [FakeTextProvider("A")], speech_provider=piper)
        bot = ChatVoiceBot(pipeline, ScriptedChatSource([], linger=0.0))
        caplog.set_level(logging.WARNING, logger="chat_voice_bot.app")

        with patch.object(piper, "_get_client", side_effect=ConnectionRefusedError()):
            assert await bot.check_voice_provider() is False

        assert any("piper is not available" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_available_voice_passes_startup_check(self, settings):
        pipeline = build_pipeline(settings, [FakeTextProvider("A")], speech_provider=FakeSpeechProvider())
        bot = ChatVoiceBot(pipeline, ScriptedChatSource([], linger=0.0))

        assert await bot.check_voice_provider() is True

        settings.voice_provider = None
        assert await bot.check_voice_provider() is True
