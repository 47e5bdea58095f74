"""Provider failover for text generation and single-provider speech synthesis.

Text generation walks an ordered ring of providers starting at the
preferred one, trying each at most once per request, until one answers.
A throttling failure stops the walk immediately: quota exhaustion is
treated as a systemic condition and escalated to the cooldown governor.

Speech synthesis uses a single configured provider and never rotates.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Mapping, Optional

from chat_voice_bot.interfaces.events import ChatEvent
from chat_voice_bot.interfaces.llm import ErrorKind, ProviderError, TextProvider
from chat_voice_bot.interfaces.tts import AudioItem, SpeechProvider
from chat_voice_bot.logging_config import get_logger
from chat_voice_bot.responses import ResponseRecord

logger = get_logger(__name__)

DEFAULT_PROVIDER_TIMEOUT = 20.0

PromptBuilder = Callable[[ChatEvent], str]


class ThrottledError(Exception):
    """A provider reported quota exhaustion; remaining attempts were skipped."""

    def __init__(self, cause: ProviderError):
        self.cause = cause
        self.provider = cause.provider
        super().__init__(f"Throttled by {cause.provider}: {cause.message}")


class ProvidersExhaustedError(Exception):
    """Every provider in the ring failed for this request."""

    def __init__(self, last_error: Optional[ProviderError], attempted: list[str]):
        self.last_error = last_error
        self.attempted = attempted
        reason = str(last_error) if last_error else "no providers configured"
        super().__init__(f"All text providers failed ({', '.join(attempted) or 'none'}); last error: {reason}")


class GenerationAborted(Exception):
    """A pause was asserted before the next provider attempt could start."""
    pass


@dataclass(frozen=True)
class ProviderRing:
    """Ordered, fixed provider ids with a stored rotation start offset.

    Usage:
        ring = ProviderRing(("gemini", "openai", "local"), preferred="openai")
        list(ring.rotation())  # ["openai", "local", "gemini"]
    """

    providers: tuple[str, ...]
    start: int = 0

    def __init__(self, providers, preferred: Optional[str] = None):
        ids = tuple(providers)
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate provider ids in ring: {ids}")
        object.__setattr__(self, "providers", ids)
        object.__setattr__(self, "start", self._offset(ids, preferred))

    @staticmethod
    def _offset(ids: tuple[str, ...], preferred: Optional[str]) -> int:
        if preferred is None or not ids:
            return 0
        if preferred not in ids:
            raise ValueError(f"Preferred provider '{preferred}' not in ring {list(ids)}")
        return ids.index(preferred)

    @property
    def preferred(self) -> Optional[str]:
        return self.providers[self.start] if self.providers else None

    def with_preferred(self, preferred: Optional[str]) -> "ProviderRing":
        """Return a ring with a different start point (same order)."""
        return ProviderRing(self.providers, preferred=preferred)

    def rotation(self) -> Iterator[str]:
        """Yield every provider once, starting at the preferred one."""
        n = len(self.providers)
        for i in range(n):
            yield self.providers[(self.start + i) % n]

    def __len__(self) -> int:
        return len(self.providers)


@dataclass
class TextGeneration:
    """Successful text generation result.

    Attributes:
        text: The generated reply.
        provider: Id of the provider that produced it.
        attempted: Provider ids attempted, in order.
    """
    text: str
    provider: str
    attempted: list[str]


async def _with_timeout(coro, timeout: Optional[float], provider_id: str):
    try:
        if timeout is None:
            return await coro
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ProviderError(
            ErrorKind.TRANSPORT,
            f"no response within {timeout:.0f}s",
            provider=provider_id,
        ) from e


class TextFailoverOrchestrator:
    """Generates reply text with provider rotation.

    Attributes:
        providers: Registered text providers keyed by id.
        ring: Provider ring (order and default preferred provider).
        timeout: Per-attempt timeout in seconds.
    """

    def __init__(
        self,
        providers: Mapping[str, TextProvider],
        ring: ProviderRing,
        timeout: Optional[float] = DEFAULT_PROVIDER_TIMEOUT,
    ):
        self.providers = dict(providers)
        self.ring = ring
        self.timeout = timeout

    async def generate(
        self,
        event: ChatEvent,
        record: ResponseRecord,
        prompt_builder: PromptBuilder,
        preferred: Optional[str] = None,
        should_continue: Optional[Callable[[], bool]] = None,
        on_attempt: Optional[Callable[[ResponseRecord], None]] = None,
    ) -> TextGeneration:
        """Generate a reply for a chat event.

        Args:
            event: The chat event being answered.
            record: Record to attribute attempts to (must be processing).
            prompt_builder: Builds the prompt from the event.
            preferred: Rotation start for this request (defaults to the ring's).
            should_continue: Checked before each attempt; False aborts.
            on_attempt: Called after the record is attributed to a provider.

        Returns:
            TextGeneration from the first provider that succeeded.

        Raises:
            ThrottledError: A provider reported quota exhaustion.
            ProvidersExhaustedError: Every provider failed.
            GenerationAborted: should_continue returned False.
        """
        ring = self.ring.with_preferred(preferred) if preferred else self.ring
        prompt = prompt_builder(event)
        attempted: list[str] = []
        last_error: Optional[ProviderError] = None

        for provider_id in ring.rotation():
            if should_continue is not None and not should_continue():
                logger.info(f"Generation for {record.id} stopped before {provider_id} (paused)")
                raise GenerationAborted(f"Paused before attempting {provider_id}")

            attempted.append(provider_id)
            record.attempt_text(provider_id)
            if on_attempt is not None:
                on_attempt(record)

            try:
                text = await self._attempt(provider_id, prompt)
            except ProviderError as e:
                if e.provider is None:
                    e.provider = provider_id
                if e.is_throttled:
                    logger.warning(f"Provider {provider_id} throttled; skipping remaining providers: {e.message}")
                    raise ThrottledError(e) from e
                logger.warning(
                    f"Text provider {provider_id} failed ({e.kind.value}): {e.message}",
                    extra={"provider": provider_id, "response_id": record.id},
                )
                last_error = e
                continue

            return TextGeneration(text=text, provider=provider_id, attempted=attempted)

        raise ProvidersExhaustedError(last_error, attempted)

    async def _attempt(self, provider_id: str, prompt: str) -> str:
        provider = self.providers.get(provider_id)
        if provider is None:
            raise ProviderError(ErrorKind.OTHER, "provider not configured", provider=provider_id)

        start = time.monotonic()
        try:
            text = await _with_timeout(provider.generate(prompt), self.timeout, provider_id)
        except ProviderError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error from text provider {provider_id}: {e}", exc_info=True)
            raise ProviderError(ErrorKind.OTHER, str(e) or type(e).__name__, provider=provider_id) from e

        text = (text or "").strip()
        if not text:
            raise ProviderError(ErrorKind.EMPTY_RESULT, "provider returned no text", provider=provider_id)

        logger.llm(
            provider=provider_id,
            prompt_length=len(prompt),
            response_length=len(text),
            latency_ms=(time.monotonic() - start) * 1000,
            model=getattr(provider, "model", None),
        )
        return text


class VoiceSynthesizer:
    """Synthesizes reply audio with one configured provider (no rotation).

    Attributes:
        providers: Registered speech providers keyed by id.
        provider_id: Default provider to use.
        voice: Default voice selector.
        timeout: Per-attempt timeout in seconds.
    """

    def __init__(
        self,
        providers: Mapping[str, SpeechProvider],
        provider_id: Optional[str],
        voice: Optional[str] = None,
        timeout: Optional[float] = DEFAULT_PROVIDER_TIMEOUT,
    ):
        self.providers = dict(providers)
        self.provider_id = provider_id
        self.voice = voice
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.provider_id)

    async def synthesize(
        self,
        text: str,
        record: ResponseRecord,
        provider_id: Optional[str] = None,
        voice: Optional[str] = None,
    ) -> AudioItem:
        """Synthesize reply audio.

        Args:
            text: Reply text.
            record: Record to attribute the voice provider to.
            provider_id: Override for the configured provider.
            voice: Override for the configured voice.

        Returns:
            AudioItem tagged with the record id.

        Raises:
            ProviderError: On any synthesis failure.
        """
        provider_id = provider_id or self.provider_id
        voice = voice or self.voice
        if not provider_id:
            raise ProviderError(ErrorKind.OTHER, "no voice provider selected")

        record.attempt_voice(provider_id)
        provider = self.providers.get(provider_id)
        if provider is None:
            raise ProviderError(ErrorKind.OTHER, "provider not configured", provider=provider_id)

        start = time.monotonic()
        try:
            item = await _with_timeout(provider.synthesize(text, voice), self.timeout, provider_id)
        except ProviderError as e:
            if e.provider is None:
                e.provider = provider_id
            raise
        except Exception as e:
            logger.error(f"Unexpected error from voice provider {provider_id}: {e}", exc_info=True)
            raise ProviderError(ErrorKind.OTHER, str(e) or type(e).__name__, provider=provider_id) from e

        item.response_id = record.id
        if item.voice is None:
            item.voice = voice
        logger.tts(
            provider=provider_id,
            text_length=len(text),
            encoding=item.encoding.value,
            latency_ms=(time.monotonic() - start) * 1000,
        )
        return item
