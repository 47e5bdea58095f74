"""Abstract interface for speech-synthesis providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

# Raw PCM returned by the speech providers is 16-bit at this rate unless
# the provider says otherwise.
DEFAULT_PCM_SAMPLE_RATE = 24000


class AudioEncoding(Enum):
    """How an AudioItem is played back."""
    RAW_PCM = "raw_pcm"          # interleaved 16-bit little-endian samples
    COMPRESSED = "compressed"    # container format (mp3, wav, ogg...) decoded at playback
    DELEGATE = "delegate"        # text handed to the local speech capability


@dataclass
class AudioItem:
    """One playable unit for the audio sequencer.

    Attributes:
        encoding: Playback family for this item.
        data: Payload bytes (None for DELEGATE items).
        text: Text to speak (DELEGATE items) or the reply it was made from.
        voice: Optional voice selector.
        sample_rate: Sample rate of RAW_PCM payloads in Hz.
        channels: Number of interleaved channels in RAW_PCM payloads.
        response_id: ResponseRecord this audio belongs to.
    """
    encoding: AudioEncoding
    data: bytes | None = None
    text: str | None = None
    voice: str | None = None
    sample_rate: int = DEFAULT_PCM_SAMPLE_RATE
    channels: int = 1
    response_id: str | None = None

    @property
    def duration(self) -> float | None:
        """Duration in seconds for RAW_PCM payloads, None otherwise."""
        if self.encoding is not AudioEncoding.RAW_PCM or not self.data:
            return None
        return len(self.data) / (self.sample_rate * 2 * self.channels)


class SpeechProvider(ABC):
    """Abstract base class for speech-synthesis providers.

    All TTS implementations (Gemini, OpenAI speech, Wyoming/Piper,
    local system speech) should inherit from this class and implement
    the synthesize() method.
    """

    provider_id: str = "unknown"

    @abstractmethod
    async def synthesize(self, text: str, voice: str | None = None) -> AudioItem:
        """Synthesize text to a playable AudioItem.

        Args:
            text: Text to synthesize.
            voice: Optional voice identifier.

        Returns:
            AudioItem in the provider's encoding family.

        Raises:
            ProviderError: With a classified kind on any failure.
        """
        pass

    async def is_available(self) -> bool:
        """Check if the provider can be used.

        Returns:
            True if the provider is configured.
        """
        return True
