"""Interfaces for pluggable components."""

from chat_voice_bot.interfaces.events import (
    ChatEvent,
    ChatEventCallback,
    ChatSource,
    ConnectionStatus,
    StatusCallback,
)
from chat_voice_bot.interfaces.llm import ErrorKind, ProviderError, TextProvider
from chat_voice_bot.interfaces.playback import AudioOutput
from chat_voice_bot.interfaces.tts import AudioEncoding, AudioItem, SpeechProvider

__all__ = [
    # Text generation
    "ErrorKind",
    "ProviderError",
    "TextProvider",
    # Speech
    "AudioEncoding",
    "AudioItem",
    "SpeechProvider",
    # Playback
    "AudioOutput",
    # Chat ingestion
    "ChatEvent",
    "ChatEventCallback",
    "ChatSource",
    "ConnectionStatus",
    "StatusCallback",
]
