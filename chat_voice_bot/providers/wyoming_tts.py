"""Wyoming protocol TTS client provider.

This provider connects to a Wyoming-compatible TTS server like wyoming-piper.

Usage:
    from chat_voice_bot.providers.wyoming_tts import WyomingTTS

    tts = WyomingTTS(host="localhost", port=10200)
    item = await tts.synthesize("Hello chat")
    # item.data contains raw 16-bit PCM bytes
"""

from wyoming.audio import AudioChunk, AudioStart, AudioStop
from wyoming.client import AsyncTcpClient
from wyoming.error import Error
from wyoming.info import Describe, Info
from wyoming.tts import Synthesize, SynthesizeVoice

from chat_voice_bot.interfaces.llm import ErrorKind, ProviderError
from chat_voice_bot.interfaces.tts import AudioEncoding, AudioItem, SpeechProvider
from chat_voice_bot.logging_config import get_logger

logger = get_logger(__name__)


class WyomingTTS(SpeechProvider):
    """TTS provider using Wyoming protocol.

    Connects to a Wyoming-compatible TTS server over TCP and requests
    speech synthesis using the Wyoming protocol.

    Attributes:
        host: Server hostname.
        port: Server port (default: 10200 for wyoming-piper).
    """

    def __init__(self, provider_id: str = "wyoming", host: str = "localhost", port: int = 10200):
        """Initialize the Wyoming TTS provider.

        Args:
            provider_id: Identifier used for attribution.
            host: Wyoming TTS server hostname.
            port: Wyoming TTS server port.
        """
        self.provider_id = provider_id
        self.host = host
        self.port = port

    async def _get_client(self) -> AsyncTcpClient:
        """Create and connect a new client."""
        client = AsyncTcpClient(self.host, self.port)
        try:
            await client.connect()
        except OSError as e:
            raise ProviderError(
                ErrorKind.TRANSPORT,
                f"cannot connect to {self.host}:{self.port}: {e}",
                provider=self.provider_id,
            ) from e
        return client

    async def get_info(self) -> Info:
        """Get server capabilities.

        Returns:
            Wyoming Info object with server details.
        """
        client = await self._get_client()
        try:
            await client.write_event(Describe().event())
            event = await client.read_event()
            if event is None:
                raise ProviderError(ErrorKind.TRANSPORT, "connection closed", provider=self.provider_id)
            return Info.from_event(event)
        finally:
            await client.disconnect()

    async def synthesize(self, text: str, voice: str | None = None) -> AudioItem:
        """Synthesize text to raw PCM.

        Args:
            text: Text to synthesize.
            voice: Optional voice name known to the server.

        Returns:
            RAW_PCM AudioItem in the server's rate and channel layout.
        """
        client = await self._get_client()

        try:
            synthesize_voice = SynthesizeVoice(name=voice) if voice else None
            await client.write_event(Synthesize(text=text, voice=synthesize_voice).event())

            audio_chunks = []
            sample_rate = 22050
            sample_width = 2
            channels = 1

            while True:
                event = await client.read_event()

                if event is None:
                    raise ProviderError(
                        ErrorKind.TRANSPORT,
                        "connection closed before audio-stop",
                        provider=self.provider_id,
                    )

                if Error.is_type(event.type):
                    error = Error.from_event(event)
                    raise ProviderError(ErrorKind.OTHER, error.text, provider=self.provider_id)

                if AudioStart.is_type(event.type):
                    audio_start = AudioStart.from_event(event)
                    sample_rate = audio_start.rate
                    sample_width = audio_start.width
                    channels = audio_start.channels
                    continue

                if AudioChunk.is_type(event.type):
                    chunk = AudioChunk.from_event(event)
                    audio_chunks.append(chunk.audio)
                    continue

                if AudioStop.is_type(event.type):
                    break

        except OSError as e:
            raise ProviderError(ErrorKind.TRANSPORT, str(e), provider=self.provider_id) from e
        finally:
            await client.disconnect()

        if sample_width != 2:
            raise ProviderError(
                ErrorKind.OTHER,
                f"unsupported sample width {sample_width} (expected 16-bit)",
                provider=self.provider_id,
            )

        audio_data = b"".join(audio_chunks)
        if not audio_data:
            raise ProviderError(ErrorKind.EMPTY_RESULT, "server returned no audio", provider=self.provider_id)

        logger.debug(f"Wyoming synthesized {len(audio_data)} bytes at {sample_rate} Hz")
        return AudioItem(
            encoding=AudioEncoding.RAW_PCM,
            data=audio_data,
            text=text,
            voice=voice,
            sample_rate=sample_rate,
            channels=channels,
        )

    async def is_available(self) -> bool:
        """Check if the Wyoming TTS server is available.

        Returns:
            True if the server is reachable and responding.
        """
        try:
            info = await self.get_info()
            return info.tts is not None and len(info.tts) > 0
        except (ProviderError, OSError) as e:
            logger.debug(f"Wyoming TTS at {self.host}:{self.port} unavailable: {e}")
            return False
