"""Chat Voice Bot - speaks AI replies to live Twitch chat."""

from chat_voice_bot.admission import AdmissionFilter
from chat_voice_bot.config import BotConfig, BotSettings, load_config
from chat_voice_bot.cooldown import CooldownGovernor, CooldownState
from chat_voice_bot.failover import (
    GenerationAborted,
    ProviderRing,
    ProvidersExhaustedError,
    TextFailoverOrchestrator,
    TextGeneration,
    ThrottledError,
    VoiceSynthesizer,
)
from chat_voice_bot.interfaces.events import ChatEvent, ChatSource, ConnectionStatus
from chat_voice_bot.interfaces.llm import ErrorKind, ProviderError, TextProvider
from chat_voice_bot.interfaces.playback import AudioOutput
from chat_voice_bot.interfaces.tts import AudioEncoding, AudioItem, SpeechProvider
from chat_voice_bot.logging_config import BotLogger, get_logger, setup_logging
from chat_voice_bot.pipeline import PipelineSnapshot, ResponsePipeline, StepOutcome
from chat_voice_bot.playback import AudioSequencer, ScheduledClip
from chat_voice_bot.queues import BoundedLog, PendingQueue
from chat_voice_bot.responses import ResponseHistory, ResponseRecord, TextStatus, VoiceStatus

__all__ = [
    # Interfaces
    "ChatEvent",
    "ChatSource",
    "ConnectionStatus",
    "ErrorKind",
    "ProviderError",
    "TextProvider",
    "SpeechProvider",
    "AudioEncoding",
    "AudioItem",
    "AudioOutput",
    # Core
    "AdmissionFilter",
    "PendingQueue",
    "BoundedLog",
    "CooldownGovernor",
    "CooldownState",
    "ProviderRing",
    "TextFailoverOrchestrator",
    "TextGeneration",
    "VoiceSynthesizer",
    "ThrottledError",
    "ProvidersExhaustedError",
    "GenerationAborted",
    "ResponseRecord",
    "ResponseHistory",
    "TextStatus",
    "VoiceStatus",
    "ResponsePipeline",
    "PipelineSnapshot",
    "StepOutcome",
    "AudioSequencer",
    "ScheduledClip",
    # Config
    "BotConfig",
    "BotSettings",
    "load_config",
    # Logging
    "setup_logging",
    "get_logger",
    "BotLogger",
]
