"""Local system speech (say / espeak / festival / flite).

The provider does no synthesis itself: it returns a DELEGATE AudioItem and
the playback adapter hands the text to the local speech command when the
item's turn comes.
"""

import asyncio
import shutil

from chat_voice_bot.interfaces.llm import ErrorKind, ProviderError
from chat_voice_bot.interfaces.tts import AudioEncoding, AudioItem, SpeechProvider
from chat_voice_bot.logging_config import get_logger

logger = get_logger(__name__)

SPEECH_COMMANDS = ("say", "espeak", "festival", "flite")


def detect_speech_command() -> str | None:
    """Detect the first available system speech command."""
    for command in SPEECH_COMMANDS:
        if shutil.which(command):
            return command
    return None


def build_speech_args(command: str, text: str, voice: str | None = None) -> list[str]:
    """Build the argv for speaking text with a system command."""
    name = command.rsplit("/", 1)[-1]
    if name == "say":
        return [command, "-v", voice, text] if voice else [command, text]
    if name == "espeak":
        return [command, "-v", voice, text] if voice else [command, text]
    if name == "festival":
        # festival reads text from stdin
        return [command, "--tts"]
    if name == "flite":
        return [command, "-t", text]
    return [command, text]


async def speak_with_system(text: str, voice: str | None = None, command: str | None = None) -> None:
    """Speak text with a system command, returning when speech ends.

    Raises:
        RuntimeError: If no speech command is available or it fails.
    """
    command = command or detect_speech_command()
    if command is None:
        raise RuntimeError(f"no system speech command found (tried {', '.join(SPEECH_COMMANDS)})")

    args = build_speech_args(command, text, voice)
    stdin_data = text.encode() if args[-1] == "--tts" else None
    process = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.PIPE if stdin_data is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    _, stderr = await process.communicate(stdin_data)
    if process.returncode != 0:
        raise RuntimeError(f"{args[0]} exited with {process.returncode}: {stderr.decode(errors='replace').strip()}")


class SystemSpeech(SpeechProvider):
    """Speech provider that delegates to the local speech command."""

    def __init__(self, provider_id: str = "system", command: str | None = None):
        self.provider_id = provider_id
        self.command = command

    async def is_available(self) -> bool:
        if self.command:
            return shutil.which(self.command) is not None
        return detect_speech_command() is not None

    async def synthesize(self, text: str, voice: str | None = None) -> AudioItem:
        if not await self.is_available():
            raise ProviderError(
                ErrorKind.MISSING_CREDENTIAL,
                "no system speech command available",
                provider=self.provider_id,
            )
        return AudioItem(encoding=AudioEncoding.DELEGATE, text=text, voice=voice)
