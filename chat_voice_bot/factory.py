"""Factory functions for constructing the bot from configuration.

This module is the single place that wires together:
- Text providers and the failover ring
- The speech provider registry
- Audio output and the playback sequencer
- The chat source
- The response pipeline

Entry points call these factories to construct the bot from config.
"""

from __future__ import annotations

from chat_voice_bot.config import BotConfig, BotSettings, TextProviderConfig, VoiceProviderConfig
from chat_voice_bot.cooldown import CooldownGovernor
from chat_voice_bot.failover import ProviderRing, TextFailoverOrchestrator, VoiceSynthesizer
from chat_voice_bot.interfaces.events import ChatSource
from chat_voice_bot.interfaces.llm import TextProvider
from chat_voice_bot.interfaces.playback import AudioOutput
from chat_voice_bot.interfaces.tts import SpeechProvider
from chat_voice_bot.logging_config import get_logger
from chat_voice_bot.pipeline import ResponsePipeline
from chat_voice_bot.playback import AudioSequencer

logger = get_logger(__name__)


def create_text_provider(cfg: TextProviderConfig, timeout: float) -> TextProvider:
    """Create one text provider from its config entry.

    Args:
        cfg: Provider entry from the text.providers list.
        timeout: HTTP timeout in seconds.

    Returns:
        Configured TextProvider.
    """
    if cfg.type == "gemini":
        from chat_voice_bot.providers.gemini import GeminiText
        return GeminiText(
            provider_id=cfg.id,
            model=cfg.model,
            api_key=cfg.api_key,
            endpoint=cfg.endpoint,
            timeout=timeout,
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens,
        )
    if cfg.type == "openai":
        from chat_voice_bot.providers.openai_llm import OpenAIChatText
        return OpenAIChatText(
            provider_id=cfg.id,
            endpoint=cfg.endpoint,
            model=cfg.model,
            api_key=cfg.api_key,
            timeout=timeout,
            max_tokens=cfg.max_tokens,
            temperature=cfg.temperature,
        )
    raise ValueError(f"Unknown text provider type: {cfg.type}")


def create_speech_provider(cfg: VoiceProviderConfig, timeout: float) -> SpeechProvider:
    """Create one speech provider from its config entry.

    Args:
        cfg: Provider entry from the voice.providers list.
        timeout: HTTP timeout in seconds.

    Returns:
        Configured SpeechProvider.
    """
    if cfg.type == "gemini":
        from chat_voice_bot.providers.gemini import GeminiSpeech
        return GeminiSpeech(
            provider_id=cfg.id,
            model=cfg.model,
            api_key=cfg.api_key,
            endpoint=cfg.endpoint,
            timeout=timeout,
        )
    if cfg.type == "openai":
        from chat_voice_bot.providers.openai_llm import OpenAISpeech
        return OpenAISpeech(
            provider_id=cfg.id,
            endpoint=cfg.endpoint,
            model=cfg.model,
            api_key=cfg.api_key,
            timeout=timeout,
        )
    if cfg.type == "wyoming":
        from chat_voice_bot.providers.wyoming_tts import WyomingTTS
        return WyomingTTS(provider_id=cfg.id, host=cfg.host or "localhost", port=cfg.port or 10200)
    if cfg.type == "system":
        from chat_voice_bot.providers.system_speech import SystemSpeech
        return SystemSpeech(provider_id=cfg.id, command=cfg.command)
    raise ValueError(f"Unknown voice provider type: {cfg.type}")


def create_text_orchestrator(config: BotConfig) -> TextFailoverOrchestrator:
    """Build every configured text provider and the ring over them."""
    providers = {p.id: create_text_provider(p, config.text.timeout) for p in config.text.providers}
    ring = ProviderRing([p.id for p in config.text.providers], preferred=config.text.preferred)
    logger.info(f"Text providers: {list(ring.rotation())}")
    return TextFailoverOrchestrator(providers, ring, timeout=config.text.timeout)


def create_voice_synthesizer(config: BotConfig) -> VoiceSynthesizer:
    """Build every registered speech provider; only the selected one is used."""
    providers = {p.id: create_speech_provider(p, config.voice.timeout) for p in config.voice.providers}
    logger.info(f"Voice provider: {config.voice.provider or 'disabled'} (voice={config.voice.voice})")
    return VoiceSynthesizer(
        providers,
        provider_id=config.voice.provider,
        voice=config.voice.voice,
        timeout=config.voice.timeout,
    )


def create_audio_output(config: BotConfig) -> AudioOutput:
    """Create the local audio output."""
    from chat_voice_bot.providers.sounddevice_output import SoundDeviceOutput

    speech_command = next(
        (p.command for p in config.voice.providers if p.type == "system" and p.command),
        None,
    )
    return SoundDeviceOutput(device=config.audio.device, speech_command=speech_command)


def create_chat_source(config: BotConfig) -> ChatSource:
    """Create the Twitch chat source."""
    from chat_voice_bot.providers.twitch_chat import TwitchChatSource

    if not config.chat.channel:
        raise ValueError("No chat channel configured (set chat.channel or pass --channel)")
    return TwitchChatSource(
        channel=config.chat.channel,
        nickname=config.chat.nickname,
        oauth_token=config.chat.oauth_token,
        host=config.chat.host,
        port=config.chat.port,
        tls=config.chat.tls,
        reconnect_delay=config.chat.reconnect_delay,
    )


def create_pipeline(
    config: BotConfig,
    settings: BotSettings | None = None,
    sequencer: AudioSequencer | None = None,
) -> ResponsePipeline:
    """Wire the response pipeline from configuration.

    Args:
        config: Loaded configuration.
        settings: Live settings (derived from config if None).
        sequencer: Audio sequencer (None runs without playback).

    Returns:
        Configured ResponsePipeline.
    """
    settings = settings or BotSettings.from_config(config)
    governor = CooldownGovernor(
        cooldown=settings.response_cooldown,
        lockout_duration=config.bot.lockout_duration,
    )
    return ResponsePipeline(
        settings=settings,
        text=create_text_orchestrator(config),
        voice=create_voice_synthesizer(config),
        governor=governor,
        sequencer=sequencer,
        poll_interval=config.bot.poll_interval,
        post_attempt_delay=config.bot.post_attempt_delay,
        response_history=config.bot.response_history,
        chat_history=config.bot.chat_history,
    )
