"""Chat, text, speech and audio-output adapters.

The sounddevice output is imported on demand (chat_voice_bot.factory) since
it needs PortAudio at import time.
"""

from chat_voice_bot.providers.gemini import GeminiSpeech, GeminiText
from chat_voice_bot.providers.openai_llm import OpenAIChatText, OpenAISpeech
from chat_voice_bot.providers.system_speech import SystemSpeech
from chat_voice_bot.providers.twitch_chat import TwitchChatSource
from chat_voice_bot.providers.wyoming_tts import WyomingTTS

__all__ = [
    # Text
    "GeminiText",
    "OpenAIChatText",
    # Speech
    "GeminiSpeech",
    "OpenAISpeech",
    "WyomingTTS",
    "SystemSpeech",
    # Chat
    "TwitchChatSource",
]
